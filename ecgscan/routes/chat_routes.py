from flask import Blueprint, request

from ecgscan.services.providers import chat_channel
from ecgscan.utils.response import success, created

chat_bp = Blueprint('chat', __name__, url_prefix='/api/records/<int:record_id>/messages')


# --- 1. HISTORY (oldest first); live messages arrive on socket room record_<id> ---
@chat_bp.route('', methods=['GET'])
def get_history(record_id):
    messages = chat_channel().history(record_id)
    return success([m.to_dict() for m in messages], "Chat history loaded")


# --- 2. SEND ---
@chat_bp.route('', methods=['POST'])
def send_message(record_id):
    data = request.get_json(silent=True) or {}
    message_id = chat_channel().post_message(record_id, data.get('body'))
    return created({"id": message_id}, "Message sent")
