from flask import current_app

from ecgscan.services.chat_channel import ChatChannel
from ecgscan.services.identity import current_identity, can_access_record
from ecgscan.services.laudation_service import LaudationEngine
from ecgscan.services.queue_selector import QueueSelector
from ecgscan.services.record_store import RecordStore


def profile_directory():
    return current_app.extensions["profile_directory"]


def blob_storage():
    return current_app.extensions["blob_storage"]


def message_broker():
    return current_app.extensions["message_broker"]


def record_store():
    return RecordStore(current_identity(), profile_directory(), blob_storage())


def queue_selector():
    return QueueSelector(current_identity(), profile_directory())


def revoke_chat_access(record):
    """After laudation only the uploader and the laudating physician keep the live chat."""
    from ecgscan.socket_events import revoke_room_access

    message_broker().revoke(record.id, lambda identity: can_access_record(identity, record))
    revoke_room_access(record)


def laudation_engine():
    return LaudationEngine(current_identity(), profile_directory(), on_lauded=revoke_chat_access)


def chat_channel():
    from ecgscan.socket_events import emit_new_message

    return ChatChannel(current_identity(), profile_directory(), message_broker(), emit=emit_new_message)
