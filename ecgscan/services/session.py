import logging

from sqlalchemy.exc import SQLAlchemyError

from ecgscan.errors import TransportError
from ecgscan.extensions import db

logger = logging.getLogger(__name__)


def commit_or_raise(action: str):
    """Commit the session; on a store failure roll back and surface a TransportError."""
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("%s failed: %s", action, e)
        raise TransportError(f"Could not {action}") from e
