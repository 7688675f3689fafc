import pytest

from ecgscan.errors import ValidationError, UnauthorizedError, UnauthenticatedError
from ecgscan.extensions import db
from ecgscan.models.ecg import EcgRecord
from ecgscan.services.identity import identity_for_user
from ecgscan.services.laudation_service import LaudationEngine
from ecgscan.services.queue_selector import QueueSelector


def _selector(user, profiles):
    return QueueSelector(identity_for_user(user), profiles)


def test_empty_queue_returns_none(physician, profiles):
    assert _selector(physician, profiles).next_pending("Urgent") is None


def test_fifo_within_priority(nurse, physician, create_record, profiles):
    a = create_record(nurse, patient_name="A")
    b = create_record(nurse, patient_name="B")
    selector = _selector(physician, profiles)

    assert selector.next_pending("Urgent").id == a

    LaudationEngine(identity_for_user(physician), profiles).submit_laudation(a, physician.id, "Ok.", {})

    assert selector.next_pending("Urgent").id == b


def test_oldest_created_at_wins_over_insert_order(nurse, physician, create_record, profiles):
    newer = create_record(nurse)
    older = create_record(nurse)
    rec = db.session.get(EcgRecord, older)
    rec.created_at = db.session.get(EcgRecord, newer).created_at.replace(year=2000)
    db.session.commit()

    assert _selector(physician, profiles).next_pending("Urgent").id == older


def test_queues_never_mix(nurse, physician, create_record, profiles):
    elective = create_record(nurse, priority="Elective")
    urgent = create_record(nurse, priority="Urgent")
    selector = _selector(physician, profiles)

    for priority, expected in (("Urgent", urgent), ("Elective", elective)):
        picked = selector.next_pending(priority)
        assert picked.id == expected
        assert picked.record.priority == priority
        assert picked.status == "pending"


def test_lauded_records_are_never_returned(nurse, physician, create_record, profiles):
    only = create_record(nurse)
    LaudationEngine(identity_for_user(physician), profiles).submit_laudation(only, physician.id, "Ok.", {})

    assert _selector(physician, profiles).next_pending("Urgent") is None


def test_unknown_priority(physician, profiles):
    with pytest.raises(ValidationError):
        _selector(physician, profiles).next_pending("Urgente")


def test_nurse_cannot_pull_queue(nurse, profiles):
    with pytest.raises(UnauthorizedError):
        _selector(nurse, profiles).next_pending("Urgent")


def test_anonymous_cannot_pull_queue(profiles):
    with pytest.raises(UnauthenticatedError):
        QueueSelector(None, profiles).next_pending("Urgent")


def test_enriched_with_uploader(nurse, physician, create_record, profiles):
    create_record(nurse)
    assert _selector(physician, profiles).next_pending("Urgent").creator.username == "Nurse Joy"
