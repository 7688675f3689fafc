from flask import Blueprint, request

from ecgscan.errors import ValidationError
from ecgscan.services.providers import record_store
from ecgscan.services.queue_selector import parse_priority
from ecgscan.services.record_store import ImageUpload
from ecgscan.services.storage_service import allowed_file
from ecgscan.utils.response import success, created

record_bp = Blueprint('records', __name__, url_prefix='/api/records')


def _image_from_request():
    file = request.files.get('image')
    if not file or not file.filename:
        return None
    if not allowed_file(file.filename):
        raise ValidationError("Image must be PNG, JPG or JPEG")
    return ImageUpload(data=file.read(), content_type=file.mimetype, filename=file.filename)


# --- 1. NURSE UPLOADS AN ECG (multipart: fields + 'image') ---
@record_bp.route('', methods=['POST'])
def create_record():
    fields = request.form.to_dict()
    record_id = record_store().create_record(fields, _image_from_request())
    return created({"id": record_id, "status": "pending"}, "ECG sent for laudation")


# --- 2. MY RECORDS (nurse: my uploads, physician: my laudations) ---
@record_bp.route('/mine', methods=['GET'])
def list_my_records():
    records = record_store().list_mine()
    return success([r.to_dict() for r in records], "Records loaded")


# --- 3. PENDING LIST (optionally one priority class), oldest first ---
@record_bp.route('/pending', methods=['GET'])
def list_pending():
    raw = request.args.get('priority')
    priority = parse_priority(raw) if raw else None
    records = record_store().list_pending(priority)
    return success([r.to_dict() for r in records], "Pending records loaded")


# --- 4. RECORD DETAIL ---
@record_bp.route('/<int:record_id>', methods=['GET'])
def get_record(record_id):
    return success(record_store().get_by_id(record_id).to_dict(), "Record loaded")
