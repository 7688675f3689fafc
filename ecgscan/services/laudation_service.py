import logging
from typing import Callable, Optional

from sqlalchemy import update

from ecgscan.errors import ValidationError, NotFoundError, InvalidStateError, UnauthorizedError
from ecgscan.extensions import db
from ecgscan.models.ecg import EcgRecord
from ecgscan.models.enums import RecordStatus, Role
from ecgscan.services.identity import CurrentIdentity, require_role
from ecgscan.services.profile_directory import ProfileDirectory
from ecgscan.services.record_store import EnrichedRecord, enrich_record
from ecgscan.services.session import commit_or_raise
from ecgscan.utils.clock import utcnow

logger = logging.getLogger(__name__)

# Form order; the derived report follows it too.
LAUDATION_FIELDS = (
    "ritmo", "fc", "pr", "qrs", "eixo", "brc", "brd", "repolarizacao", "outrosAchados",
)
FLAG_FIELDS = {"brc", "brd"}

RITMO_OPTIONS = [
    "Sinusal", "Ectópico Atrial", "Juncional",
    "Fibrilação Atrial", "Flutter Atrial", "MP (Marcapasso)", "Outro",
]
REPOLARIZACAO_OPTIONS = [
    "Normal", "Alterado Difuso da Repolarização Ventricular",
    "Infradesnivelamento", "Supradesnivelamento", "Outro",
]

BLOCK_LABELS = {
    "brc": "Bloqueio de Ramo Completo (BRC)",
    "brd": "Bloqueio de Ramo Direito (BRD)",
}


def normalize_details(details) -> dict:
    """Full snapshot of the form: every key present, flags as bools, the rest as text."""
    if details is None:
        details = {}
    if not isinstance(details, dict):
        raise ValidationError("laudation details must be an object")

    unknown = sorted(set(details) - set(LAUDATION_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown laudation fields: {', '.join(unknown)}", details=unknown)

    out = {}
    for key in LAUDATION_FIELDS:
        value = details.get(key)
        if key in FLAG_FIELDS:
            if value is None:
                value = False
            elif not isinstance(value, bool):
                raise ValidationError(f"{key} must be true or false")
        elif value is None:
            value = ""
        elif isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise ValidationError(f"{key} must be text")
        else:
            value = str(value).strip()
        out[key] = value
    return out


def compose_report(details) -> str:
    """One sentence per populated field, in form order, newline separated."""
    form = normalize_details(details)
    parts = []
    if form["ritmo"]:
        parts.append(f"Ritmo: {form['ritmo']}.")
    if form["fc"]:
        parts.append(f"Frequência Cardíaca: {form['fc']} bpm.")
    if form["pr"]:
        parts.append(f"Intervalo PR: {form['pr']} ms.")
    if form["qrs"]:
        parts.append(f"Duração QRS: {form['qrs']} ms.")
    if form["eixo"]:
        parts.append(f"Eixo elétrico: {form['eixo']}.")
    blocks = [label for key, label in BLOCK_LABELS.items() if form[key]]
    if blocks:
        parts.append(f"Bloqueios de Ramo: {' e '.join(blocks)}.")
    if form["repolarizacao"]:
        parts.append(f"Repolarização: {form['repolarizacao']}.")
    if form["outrosAchados"]:
        parts.append(f"Outros Achados: {form['outrosAchados']}.")
    return "\n".join(parts)


class LaudationDraft:
    """
    Structured form plus the editable report text.

    The report follows the structured fields until the physician edits it by
    hand; after that only reset_report() brings the suggestion back.
    """

    def __init__(self, **fields):
        self._fields = normalize_details(fields)
        self.report = compose_report(self._fields)
        self.report_dirty = False

    @property
    def details(self) -> dict:
        return dict(self._fields)

    @property
    def suggested_report(self) -> str:
        return compose_report(self._fields)

    def set_field(self, name, value):
        updated = dict(self._fields)
        updated[name] = value
        self._fields = normalize_details(updated)
        if not self.report_dirty:
            self.report = compose_report(self._fields)

    def edit_report(self, text):
        self.report = text
        self.report_dirty = True

    def reset_report(self):
        self.report_dirty = False
        self.report = compose_report(self._fields)


class LaudationEngine:
    def __init__(self, identity: CurrentIdentity | None, profiles: ProfileDirectory,
                 on_lauded: Optional[Callable] = None):
        self.identity = identity
        self.profiles = profiles
        # called with the committed record; narrows who may follow its chat
        self.on_lauded = on_lauded

    def submit_laudation(self, record_id, physician_id, report_text, details) -> EnrichedRecord:
        identity = require_role(self.identity, Role.PHYSICIAN)
        if physician_id != identity.id:
            raise UnauthorizedError("Laudation must be signed by the authenticated physician")
        if not isinstance(report_text, str) or not report_text.strip():
            raise ValidationError("Laudation report is required.")
        snapshot = normalize_details(details)

        record = db.session.get(EcgRecord, record_id)
        if record is None:
            raise NotFoundError(f"Record {record_id} not found")
        if not record.is_pending:
            raise InvalidStateError(f"Record {record_id} is already {record.status}")

        # Conditional single write: the store re-checks status, so a concurrent
        # laudation that landed first makes this one affect zero rows.
        result = db.session.execute(
            update(EcgRecord)
            .where(EcgRecord.id == record_id, EcgRecord.status == RecordStatus.PENDING.value)
            .values(
                status=RecordStatus.LAUDED.value,
                laudation_content=report_text,
                laudation_doctor_id=identity.id,
                laudation_details=snapshot,
                lauded_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            logger.warning("stale laudation of record %s by %s rejected", record_id, identity.id)
            raise InvalidStateError(f"Record {record_id} was lauded by someone else")

        commit_or_raise("submit laudation")
        db.session.refresh(record)
        logger.info("record %s lauded by %s", record_id, identity.id)
        if self.on_lauded is not None:
            self.on_lauded(record)
        return enrich_record(record, self.profiles)

    def submit_draft(self, record_id, draft: LaudationDraft) -> EnrichedRecord:
        identity = require_role(self.identity, Role.PHYSICIAN)
        return self.submit_laudation(record_id, identity.id, draft.report, draft.details)
