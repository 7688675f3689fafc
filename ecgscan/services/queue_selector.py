import logging

from ecgscan.errors import ValidationError
from ecgscan.extensions import db
from ecgscan.models.enums import Priority, Role, parse_enum
from ecgscan.services.identity import CurrentIdentity, require_role
from ecgscan.services.profile_directory import ProfileDirectory
from ecgscan.services.record_store import EnrichedRecord, enrich_record, pending_query

logger = logging.getLogger(__name__)


def parse_priority(value) -> Priority:
    priority = parse_enum(Priority, value)
    if priority is None:
        raise ValidationError("priority must be one of: " + ", ".join(p.value for p in Priority))
    return priority


class QueueSelector:
    """
    Picks the next record a physician should laudate.

    Each priority class is an independent FIFO; the physician chooses which
    queue to drain, Urgent is never blended ahead of Elective here.
    """

    def __init__(self, identity: CurrentIdentity | None, profiles: ProfileDirectory):
        self.identity = identity
        self.profiles = profiles

    def next_pending(self, priority) -> EnrichedRecord | None:
        require_role(self.identity, Role.PHYSICIAN)
        priority = parse_priority(priority)
        record = db.session.scalars(pending_query(priority).limit(1)).first()
        if record is None:
            logger.debug("%s queue is empty", priority.value)
            return None
        return enrich_record(record, self.profiles)
