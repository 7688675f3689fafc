import logging
from collections import defaultdict

from flask import request
from flask_jwt_extended import decode_token
from flask_socketio import join_room, leave_room, emit
from jwt.exceptions import PyJWTError
from flask_jwt_extended.exceptions import JWTExtendedException

from ecgscan.errors import EcgScanError
from ecgscan.extensions import db, socketio
from ecgscan.models.ecg import EcgRecord
from ecgscan.models.user import User
from ecgscan.services.chat_channel import room_for
from ecgscan.services.identity import identity_for_user, can_access_record, require_record_access

logger = logging.getLogger(__name__)

NAMESPACE = '/'

# sid -> CurrentIdentity of the socket
_connections = {}
# room -> sids joined to it
_room_members = defaultdict(set)


def _as_id(value):
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def emit_new_message(room, payload):
    socketio.emit('new_message', payload, to=room, namespace=NAMESPACE)


def revoke_room_access(record):
    """Drop every socket in the record's room that may no longer read it."""
    room = room_for(record.id)
    removed = 0
    for sid in list(_room_members.get(room, ())):
        identity = _connections.get(sid)
        if identity is not None and can_access_record(identity, record):
            continue
        leave_room(room, sid=sid, namespace=NAMESPACE)
        socketio.emit('chat_closed', {"record_id": record.id}, to=sid, namespace=NAMESPACE)
        _room_members[room].discard(sid)
        removed += 1
    if not _room_members.get(room):
        _room_members.pop(room, None)
    if removed:
        logger.info("removed %d socket(s) from %s", removed, room)
    return removed


# 1. Client connects with {"token": "<JWT>"} as the auth payload
@socketio.on('connect')
def handle_connect(auth=None):
    token = (auth or {}).get('token')
    if not token:
        logger.info("socket %s rejected: no token", request.sid)
        return False
    try:
        decoded = decode_token(token)
    except (PyJWTError, JWTExtendedException) as e:
        logger.info("socket %s rejected: %s", request.sid, e)
        return False

    user_id = _as_id(decoded.get("sub"))
    identity = identity_for_user(db.session.get(User, user_id)) if user_id is not None else None
    if identity is None:
        logger.info("socket %s rejected: unknown user", request.sid)
        return False
    _connections[request.sid] = identity
    logger.info("socket %s connected as user %s", request.sid, identity.id)


@socketio.on('disconnect')
def handle_disconnect(*args):
    _connections.pop(request.sid, None)
    for room in list(_room_members):
        _room_members[room].discard(request.sid)
        if not _room_members[room]:
            del _room_members[room]


# 2. Chat screen opened: {"record_id": 10} joins room record_10
@socketio.on('join')
def handle_join(data):
    raw_id = data.get('record_id') if isinstance(data, dict) else None
    record_id = _as_id(raw_id)
    if record_id is None:
        emit('chat_error', {"message": "record_id must be an integer", "record_id": raw_id})
        return
    record = db.session.get(EcgRecord, record_id)
    if record is None:
        emit('chat_error', {"message": "Record not found", "record_id": record_id})
        return
    try:
        require_record_access(_connections.get(request.sid), record)
    except EcgScanError as e:
        emit('chat_error', {"message": e.message, "record_id": record_id})
        return
    room = room_for(record.id)
    join_room(room)
    _room_members[room].add(request.sid)
    emit('joined', {"record_id": record.id})
    logger.info("socket %s joined %s", request.sid, room)


# 3. Chat screen closed
@socketio.on('leave')
def handle_leave(data):
    record_id = _as_id(data.get('record_id') if isinstance(data, dict) else None)
    if record_id is not None:
        room = room_for(record_id)
        leave_room(room)
        _room_members[room].discard(request.sid)
        if not _room_members[room]:
            del _room_members[room]
        logger.info("socket %s left %s", request.sid, room)
