import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select

from ecgscan.errors import ValidationError, NotFoundError, UnauthorizedError
from ecgscan.extensions import db
from ecgscan.models.ecg import EcgRecord
from ecgscan.models.enums import Priority, Sex, Pacemaker, RecordStatus, Role, parse_enum
from ecgscan.services.identity import (
    CurrentIdentity, require_identity, require_role, require_record_access,
)
from ecgscan.services.profile_directory import Profile, ProfileDirectory
from ecgscan.services.session import commit_or_raise

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("patient_name", "age", "sex", "has_pacemaker", "priority", "notes")
PATIENT_NAME_MAX = 120


@dataclass
class ImageUpload:
    data: bytes
    content_type: str
    filename: Optional[str] = None


@dataclass
class EnrichedRecord:
    record: EcgRecord
    creator: Profile
    laudation_doctor: Optional[Profile] = None

    @property
    def id(self):
        return self.record.id

    @property
    def status(self):
        return self.record.status

    def to_dict(self):
        rec = self.record
        return {
            "id": rec.id,
            "patient_name": rec.patient_name,
            "age": rec.age,
            "sex": rec.sex,
            "has_pacemaker": rec.has_pacemaker,
            "priority": rec.priority,
            "image_url": rec.image_url,
            "notes": rec.notes,
            "uploader_id": rec.uploader_id,
            "status": rec.status,
            "laudation_content": rec.laudation_content,
            "laudation_doctor_id": rec.laudation_doctor_id,
            "laudation_details": rec.laudation_details,
            "created_at": rec.created_at.isoformat() if rec.created_at else None,
            "lauded_at": rec.lauded_at.isoformat() if rec.lauded_at else None,
            "creator": self.creator.to_dict(),
            "laudation_doctor": self.laudation_doctor.to_dict() if self.laudation_doctor else None,
        }


def _parse_age(value):
    if isinstance(value, bool):
        return None
    try:
        age = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return age if age >= 0 else None


def validate_record_fields(fields: dict) -> dict:
    """Return the normalized column values or raise ValidationError listing every problem."""
    errors: list[str] = []
    fields = fields or {}

    for name in REQUIRED_FIELDS:
        value = fields.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            errors.append(f"{name} is required.")

    patient_name = fields.get("patient_name")
    if patient_name is not None and len(str(patient_name).strip()) > PATIENT_NAME_MAX:
        errors.append(f"patient_name is too long (max {PATIENT_NAME_MAX}).")

    age = _parse_age(fields.get("age"))
    if fields.get("age") not in (None, "") and age is None:
        errors.append("age must be a non-negative integer.")

    sex = parse_enum(Sex, fields.get("sex"))
    if fields.get("sex") and sex is None:
        errors.append("sex must be one of: " + ", ".join(s.value for s in Sex))

    pacemaker = parse_enum(Pacemaker, fields.get("has_pacemaker"))
    if fields.get("has_pacemaker") and pacemaker is None:
        errors.append("has_pacemaker must be one of: " + ", ".join(p.value for p in Pacemaker))

    priority = parse_enum(Priority, fields.get("priority"))
    if fields.get("priority") and priority is None:
        errors.append("priority must be one of: " + ", ".join(p.value for p in Priority))

    if errors:
        raise ValidationError(errors[0], details=errors)

    return {
        "patient_name": str(fields["patient_name"]).strip(),
        "age": age,
        "sex": sex.value,
        "has_pacemaker": pacemaker.value,
        "priority": priority.value,
        "notes": str(fields["notes"]).strip(),
    }


def enrich_record(record: EcgRecord, profiles: ProfileDirectory) -> EnrichedRecord:
    doctor = None
    if record.status == RecordStatus.LAUDED.value and record.laudation_doctor_id:
        doctor = profiles.resolve(record.laudation_doctor_id)
    return EnrichedRecord(record=record, creator=profiles.resolve(record.uploader_id), laudation_doctor=doctor)


def pending_query(priority: Priority | None = None):
    """Pending records, oldest first (FIFO within a priority class)."""
    stmt = select(EcgRecord).where(EcgRecord.status == RecordStatus.PENDING.value)
    if priority is not None:
        stmt = stmt.where(EcgRecord.priority == priority.value)
    return stmt.order_by(EcgRecord.created_at.asc(), EcgRecord.id.asc())


class RecordStore:
    def __init__(self, identity: CurrentIdentity | None, profiles: ProfileDirectory, storage=None):
        self.identity = identity
        self.profiles = profiles
        self.storage = storage

    # --- CREATE ---
    def create_record(self, fields: dict, image: ImageUpload | None) -> int:
        identity = require_role(self.identity, Role.NURSE)
        values = validate_record_fields(fields)
        if image is None or not image.data:
            raise ValidationError("image is required.", details=["image is required."])

        # No record without a stored image. A failed insert below orphans the blob.
        image_url = self.storage.store(image.data, image.content_type, image.filename)

        record = EcgRecord(
            **values,
            image_url=image_url,
            uploader_id=identity.id,
            status=RecordStatus.PENDING.value,
        )
        db.session.add(record)
        commit_or_raise("create record")
        logger.info("record %s created by %s (%s)", record.id, identity.id, record.priority)
        return record.id

    # --- READ ---
    def get_by_id(self, record_id) -> EnrichedRecord:
        identity = require_identity(self.identity)
        record = db.session.get(EcgRecord, record_id)
        if record is None:
            raise NotFoundError(f"Record {record_id} not found")
        require_record_access(identity, record)
        return enrich_record(record, self.profiles)

    def list_by_uploader(self, uploader_id) -> list[EnrichedRecord]:
        identity = require_identity(self.identity)
        if identity.id != uploader_id:
            raise UnauthorizedError("You can only list your own uploads")
        stmt = (
            select(EcgRecord)
            .where(EcgRecord.uploader_id == uploader_id)
            .order_by(EcgRecord.created_at.desc(), EcgRecord.id.desc())
        )
        return [enrich_record(r, self.profiles) for r in db.session.scalars(stmt)]

    def list_by_physician(self, physician_id) -> list[EnrichedRecord]:
        identity = require_identity(self.identity)
        if identity.id != physician_id:
            raise UnauthorizedError("You can only list your own laudations")
        stmt = (
            select(EcgRecord)
            .where(
                EcgRecord.laudation_doctor_id == physician_id,
                EcgRecord.status == RecordStatus.LAUDED.value,
            )
            .order_by(EcgRecord.created_at.desc(), EcgRecord.id.desc())
        )
        return [enrich_record(r, self.profiles) for r in db.session.scalars(stmt)]

    def list_mine(self) -> list[EnrichedRecord]:
        identity = require_identity(self.identity)
        return MY_RECORDS[identity.role](self, identity.id)

    def list_pending(self, priority: Priority | None = None) -> list[EnrichedRecord]:
        require_role(self.identity, Role.PHYSICIAN)
        return [enrich_record(r, self.profiles) for r in db.session.scalars(pending_query(priority))]


# "My records" per role; a new role is one new entry here.
MY_RECORDS = {
    Role.NURSE: RecordStore.list_by_uploader,
    Role.PHYSICIAN: RecordStore.list_by_physician,
}
