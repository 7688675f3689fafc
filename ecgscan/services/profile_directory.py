import logging
from dataclasses import dataclass, asdict
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from ecgscan.extensions import db
from ecgscan.models.user import User

logger = logging.getLogger(__name__)

PLACEHOLDER_USERNAME = "Unknown"
PLACEHOLDER_AVATAR = "https://ui-avatars.com/api/?name=U"


@dataclass(frozen=True)
class Profile:
    id: Optional[int]
    username: str
    avatar_url: Optional[str]
    role: Optional[str]

    def to_dict(self):
        return asdict(self)


def placeholder_profile(user_id=None) -> Profile:
    return Profile(id=user_id, username=PLACEHOLDER_USERNAME, avatar_url=PLACEHOLDER_AVATAR, role=None)


def default_avatar(username: str) -> str:
    return f"https://ui-avatars.com/api/?name={username}&background=random"


# A lookup is any callable id -> Profile | None
ProfileLookup = Callable[[int], Optional[Profile]]


class UserProfileLookup:
    """Reads public profiles out of the users table."""

    def __call__(self, user_id: int) -> Optional[Profile]:
        user = db.session.get(User, user_id)
        if user is None:
            return None
        return Profile(
            id=user.id,
            username=user.username,
            avatar_url=user.avatar_url or default_avatar(user.username),
            role=user.role,
        )


class ProfileDirectory:
    """
    Cached, best-effort profile decoration.

    Hits are cached forever (staleness is acceptable for display data);
    misses and lookup failures degrade to the placeholder and are not cached.
    """

    def __init__(self, lookup: ProfileLookup):
        self._lookup = lookup
        self._cache: dict[int, Profile] = {}

    def get(self, user_id) -> Optional[Profile]:
        if user_id is None:
            return None
        cached = self._cache.get(user_id)
        if cached is not None:
            return cached
        profile = self._lookup(user_id)
        if profile is not None:
            self._cache[user_id] = profile
        return profile

    def resolve(self, user_id) -> Profile:
        try:
            profile = self.get(user_id)
        except SQLAlchemyError as e:
            logger.warning("profile lookup for %s failed: %s", user_id, e)
            return placeholder_profile(user_id)
        if profile is None:
            logger.warning("profile %s not found, using placeholder", user_id)
            return placeholder_profile(user_id)
        return profile
