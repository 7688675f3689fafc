from datetime import datetime, timezone


def utcnow():
    """Naive UTC 'now'; sqlite drops tzinfo so every stored timestamp stays naive."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
