from ecgscan.extensions import db
from ecgscan.models.enums import RecordStatus
from ecgscan.utils.clock import utcnow


class EcgRecord(db.Model):
    __tablename__ = 'ecg_records'
    __table_args__ = (
        db.Index('ix_ecg_records_queue', 'status', 'priority', 'created_at'),
    )

    id = db.Column(db.Integer, primary_key=True)

    # --- PATIENT ---
    patient_name = db.Column(db.String(120), nullable=False)
    age = db.Column(db.Integer, nullable=False)
    sex = db.Column(db.String(10), nullable=False)           # Male / Female
    has_pacemaker = db.Column(db.String(3), nullable=False)  # Yes / No

    # Urgent / Elective, fixed at creation
    priority = db.Column(db.String(10), nullable=False)

    image_url = db.Column(db.String(512), nullable=False)
    notes = db.Column(db.Text, nullable=False, default='')

    uploader_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    # pending -> lauded, nothing else
    status = db.Column(db.String(10), nullable=False, default=RecordStatus.PENDING.value)

    # --- LAUDATION (written together, once) ---
    laudation_content = db.Column(db.Text, nullable=True)
    laudation_doctor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    laudation_details = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    lauded_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_pending(self):
        return self.status == RecordStatus.PENDING.value

    def __repr__(self):
        return f"<EcgRecord ID: {self.id} - {self.priority} - {self.status}>"
