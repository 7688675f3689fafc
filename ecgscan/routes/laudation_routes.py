from flask import Blueprint, request

from ecgscan.errors import ValidationError
from ecgscan.services.laudation_service import (
    compose_report, normalize_details, LAUDATION_FIELDS, RITMO_OPTIONS, REPOLARIZACAO_OPTIONS,
)
from ecgscan.services.providers import queue_selector, laudation_engine
from ecgscan.utils.response import success

laudation_bp = Blueprint('laudation', __name__, url_prefix='/api/laudation')


# --- 1. NEXT RECORD FROM A QUEUE (?priority=Urgent|Elective) ---
@laudation_bp.route('/next', methods=['GET'])
def next_pending():
    record = queue_selector().next_pending(request.args.get('priority'))
    if record is None:
        return success(None, "Queue is empty")
    return success(record.to_dict(), "Next record")


# --- 2. FORM OPTIONS ---
@laudation_bp.route('/options', methods=['GET'])
def form_options():
    return success({
        "fields": list(LAUDATION_FIELDS),
        "ritmo": RITMO_OPTIONS,
        "repolarizacao": REPOLARIZACAO_OPTIONS,
    })


# --- 3. PREVIEW THE DERIVED REPORT (touches no record) ---
@laudation_bp.route('/preview', methods=['POST'])
def preview_report():
    data = request.get_json(silent=True) or {}
    details = data.get('details', {})
    return success({
        "details": normalize_details(details),
        "report": compose_report(details),
    })


# --- 4. SUBMIT LAUDATION, then hand back the new head of the same queue ---
@laudation_bp.route('/<int:record_id>', methods=['POST'])
def submit_laudation(record_id):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON body is required")

    engine = laudation_engine()
    identity = engine.identity
    lauded = engine.submit_laudation(
        record_id,
        identity.id if identity else None,
        data.get('report'),
        data.get('details'),
    )
    following = queue_selector().next_pending(lauded.record.priority)
    return success({
        "record": lauded.to_dict(),
        "next": following.to_dict() if following else None,
    }, "Laudation submitted")
