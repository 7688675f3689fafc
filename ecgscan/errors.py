"""Error taxonomy shared by every service.

Services raise these; the app-level error handler turns them into the
standard JSON envelope with the status code carried by the exception.
"""


class EcgScanError(Exception):
    status_code = 500
    kind = "error"

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(EcgScanError):
    """Malformed or missing create / laudation input."""
    status_code = 400
    kind = "validation"


class UnauthenticatedError(EcgScanError):
    status_code = 401
    kind = "unauthenticated"


class UnauthorizedError(EcgScanError):
    status_code = 403
    kind = "unauthorized"


class NotFoundError(EcgScanError):
    status_code = 404
    kind = "not_found"


class InvalidStateError(EcgScanError):
    """Transition attempted on a record that is no longer in the required state."""
    status_code = 409
    kind = "invalid_state"


class StorageError(EcgScanError):
    status_code = 502
    kind = "storage"


class TransportError(EcgScanError):
    status_code = 503
    kind = "transport"
