import logging
from dataclasses import dataclass

from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity

from ecgscan.errors import UnauthenticatedError, UnauthorizedError
from ecgscan.extensions import db
from ecgscan.models.enums import Role, parse_enum
from ecgscan.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentIdentity:
    id: int
    role: Role

    @property
    def is_physician(self):
        return self.role is Role.PHYSICIAN


def identity_for_user(user: User | None) -> CurrentIdentity | None:
    if user is None:
        return None
    role = parse_enum(Role, user.role)
    if role is None:
        logger.warning("user %s has unknown role %r", user.id, user.role)
        return None
    return CurrentIdentity(id=user.id, role=role)


def current_identity() -> CurrentIdentity | None:
    """Identity of the JWT bearer, or None when the request carries no token."""
    verify_jwt_in_request(optional=True)
    user_id = get_jwt_identity()
    if user_id is None:
        return None
    try:
        user = db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None
    return identity_for_user(user)


def require_identity(identity: CurrentIdentity | None) -> CurrentIdentity:
    if identity is None:
        raise UnauthenticatedError("Authentication required")
    return identity


def require_role(identity: CurrentIdentity | None, *roles: Role) -> CurrentIdentity:
    identity = require_identity(identity)
    if identity.role not in roles:
        allowed = ", ".join(r.value for r in roles)
        raise UnauthorizedError(f"Only {allowed} may perform this action")
    return identity


def can_access_record(identity: CurrentIdentity | None, record) -> bool:
    """Uploader always; any physician while pending; the laudating physician once lauded."""
    if identity is None:
        return False
    if record.uploader_id == identity.id:
        return True
    if not identity.is_physician:
        return False
    if record.is_pending:
        return True
    return record.laudation_doctor_id == identity.id


def require_record_access(identity: CurrentIdentity | None, record) -> CurrentIdentity:
    identity = require_identity(identity)
    if not can_access_record(identity, record):
        raise UnauthorizedError("You do not have access to this record")
    return identity
