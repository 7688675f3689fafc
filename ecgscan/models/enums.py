import enum


class Priority(str, enum.Enum):
    URGENT = "Urgent"
    ELECTIVE = "Elective"


class Sex(str, enum.Enum):
    MALE = "Male"
    FEMALE = "Female"


class Pacemaker(str, enum.Enum):
    YES = "Yes"
    NO = "No"


class RecordStatus(str, enum.Enum):
    PENDING = "pending"
    LAUDED = "lauded"


class Role(str, enum.Enum):
    NURSE = "nurse"
    PHYSICIAN = "physician"


def parse_enum(enum_cls, value):
    """Return the member whose value matches, or None."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None
