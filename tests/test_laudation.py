import pytest
from sqlalchemy.orm.attributes import set_committed_value

from ecgscan.errors import (
    InvalidStateError, ValidationError, UnauthorizedError, NotFoundError, UnauthenticatedError,
)
from ecgscan.extensions import db
from ecgscan.models.ecg import EcgRecord
from ecgscan.services.identity import identity_for_user
from ecgscan.services.laudation_service import (
    LaudationEngine, LaudationDraft, compose_report, normalize_details, LAUDATION_FIELDS,
)
from ecgscan.services.queue_selector import QueueSelector
from ecgscan.services.record_store import RecordStore


def _engine(user, profiles):
    return LaudationEngine(identity_for_user(user), profiles)


def _snapshot(record_id):
    db.session.expire_all()
    rec = db.session.get(EcgRecord, record_id)
    return {
        "status": rec.status,
        "laudation_content": rec.laudation_content,
        "laudation_doctor_id": rec.laudation_doctor_id,
        "laudation_details": rec.laudation_details,
        "lauded_at": rec.lauded_at,
    }


# --- derived report ---

def test_compose_report_full_form():
    report = compose_report({
        "ritmo": "Sinusal",
        "fc": "72",
        "pr": 160,
        "qrs": "90",
        "eixo": "Normal",
        "brc": True,
        "brd": True,
        "repolarizacao": "Normal",
        "outrosAchados": "Sem outros achados",
    })

    assert report.split("\n") == [
        "Ritmo: Sinusal.",
        "Frequência Cardíaca: 72 bpm.",
        "Intervalo PR: 160 ms.",
        "Duração QRS: 90 ms.",
        "Eixo elétrico: Normal.",
        "Bloqueios de Ramo: Bloqueio de Ramo Completo (BRC) e Bloqueio de Ramo Direito (BRD).",
        "Repolarização: Normal.",
        "Outros Achados: Sem outros achados.",
    ]


def test_compose_report_skips_empty_fields():
    assert compose_report({"ritmo": "Sinusal", "fc": "", "brd": True}) == (
        "Ritmo: Sinusal.\nBloqueios de Ramo: Bloqueio de Ramo Direito (BRD)."
    )
    assert compose_report({}) == ""


def test_normalize_details_fills_every_field():
    snapshot = normalize_details({"ritmo": "Sinusal"})
    assert set(snapshot) == set(LAUDATION_FIELDS)
    assert snapshot["brc"] is False
    assert snapshot["fc"] == ""


@pytest.mark.parametrize("details", [
    {"unknown": "x"},
    {"brc": "yes"},
    {"fc": True},
    {"ritmo": ["Sinusal"]},
    "Sinusal",
])
def test_normalize_details_rejects_bad_input(details):
    with pytest.raises(ValidationError):
        normalize_details(details)


def test_draft_regenerates_until_hand_edited():
    draft = LaudationDraft(ritmo="Sinusal")
    assert draft.report == "Ritmo: Sinusal."

    draft.set_field("fc", "80")
    assert draft.report == "Ritmo: Sinusal.\nFrequência Cardíaca: 80 bpm."

    draft.edit_report("Ritmo sinusal, sem alterações.")
    draft.set_field("brd", True)
    assert draft.report == "Ritmo sinusal, sem alterações."
    assert "Bloqueio de Ramo Direito (BRD)" in draft.suggested_report

    draft.reset_report()
    assert draft.report == draft.suggested_report
    assert not draft.report_dirty


# --- state machine ---

def test_submit_transitions_record(nurse, physician, create_record, profiles):
    record_id = create_record(nurse)

    lauded = _engine(physician, profiles).submit_laudation(
        record_id, physician.id, "Sinus rhythm, normal.", {"ritmo": "Sinusal"}
    )

    rec = lauded.record
    assert rec.status == "lauded"
    assert rec.laudation_content == "Sinus rhythm, normal."
    assert rec.laudation_doctor_id == physician.id
    assert rec.laudation_details["ritmo"] == "Sinusal"
    assert rec.lauded_at is not None
    assert lauded.laudation_doctor.username == "Dr. Carvalho"


def test_stored_text_is_what_was_submitted(nurse, physician, create_record, profiles):
    record_id = create_record(nurse)
    draft = LaudationDraft(ritmo="Sinusal")
    draft.edit_report("Hand written report.")

    lauded = _engine(physician, profiles).submit_draft(record_id, draft)

    assert lauded.record.laudation_content == "Hand written report."


def test_double_submit_fails_without_mutation(nurse, physician, create_record, profiles):
    record_id = create_record(nurse)
    engine = _engine(physician, profiles)
    engine.submit_laudation(record_id, physician.id, "First.", {"ritmo": "Sinusal"})
    after_first = _snapshot(record_id)

    with pytest.raises(InvalidStateError):
        engine.submit_laudation(record_id, physician.id, "Second.", {"ritmo": "Juncional"})

    assert _snapshot(record_id) == after_first


def test_stale_write_loses_to_the_first_physician(nurse, physician, make_user, create_record, profiles):
    record_id = create_record(nurse)
    other = make_user("physician", "Dr. Late")
    _engine(physician, profiles).submit_laudation(record_id, physician.id, "First.", {})

    # the late physician still holds a view where the record is pending
    rec = db.session.get(EcgRecord, record_id)
    set_committed_value(rec, "status", "pending")

    with pytest.raises(InvalidStateError):
        _engine(other, profiles).submit_laudation(record_id, other.id, "Second.", {})

    snapshot = _snapshot(record_id)
    assert snapshot["laudation_content"] == "First."
    assert snapshot["laudation_doctor_id"] == physician.id


def test_empty_report_rejected(nurse, physician, create_record, profiles):
    record_id = create_record(nurse)
    with pytest.raises(ValidationError):
        _engine(physician, profiles).submit_laudation(record_id, physician.id, "   ", {})
    assert _snapshot(record_id)["status"] == "pending"


def test_nurse_cannot_laudate(nurse, create_record, profiles):
    record_id = create_record(nurse)
    with pytest.raises(UnauthorizedError):
        _engine(nurse, profiles).submit_laudation(record_id, nurse.id, "Ok.", {})


def test_anonymous_cannot_laudate(nurse, create_record, profiles):
    record_id = create_record(nurse)
    with pytest.raises(UnauthenticatedError):
        LaudationEngine(None, profiles).submit_laudation(record_id, 1, "Ok.", {})


def test_cannot_sign_for_another_physician(nurse, physician, make_user, create_record, profiles):
    record_id = create_record(nurse)
    with pytest.raises(UnauthorizedError):
        _engine(physician, profiles).submit_laudation(record_id, make_user("physician").id, "Ok.", {})


def test_unknown_record(physician, profiles):
    with pytest.raises(NotFoundError):
        _engine(physician, profiles).submit_laudation(404, physician.id, "Ok.", {})


def test_triage_scenario(nurse, physician, create_record, profiles):
    record_id = create_record(
        nurse, priority="Urgent", patient_name="Jane Doe", age=54, sex="Female", has_pacemaker="No",
    )
    selector = QueueSelector(identity_for_user(physician), profiles)

    picked = selector.next_pending("Urgent")
    assert picked.id == record_id

    _engine(physician, profiles).submit_laudation(
        picked.id, physician.id, "Sinus rhythm, normal.", {"ritmo": "Sinusal"}
    )

    assert selector.next_pending("Urgent") is None
    store = RecordStore(identity_for_user(physician), profiles)
    assert store.get_by_id(record_id).status == "lauded"
