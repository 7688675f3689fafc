import logging
import queue
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy import select

from ecgscan.errors import ValidationError, NotFoundError
from ecgscan.extensions import db
from ecgscan.models.chat import ChatMessage
from ecgscan.models.ecg import EcgRecord
from ecgscan.services.identity import CurrentIdentity, require_identity, require_record_access
from ecgscan.services.profile_directory import Profile, ProfileDirectory
from ecgscan.services.session import commit_or_raise

logger = logging.getLogger(__name__)


def room_for(record_id) -> str:
    return f"record_{record_id}"


@dataclass(frozen=True)
class EnrichedMessage:
    id: int
    record_id: int
    sender_id: int
    body: str
    created_at: object
    sender: Profile

    @property
    def sort_key(self):
        return (self.created_at, self.id)

    def to_dict(self):
        return {
            "id": self.id,
            "record_id": self.record_id,
            "sender_id": self.sender_id,
            "body": self.body,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "sender": self.sender.to_dict(),
        }


def enrich_message(msg: ChatMessage, profiles: ProfileDirectory) -> EnrichedMessage:
    return EnrichedMessage(
        id=msg.id,
        record_id=msg.record_id,
        sender_id=msg.sender_id,
        body=msg.body,
        created_at=msg.created_at,
        sender=profiles.resolve(msg.sender_id),
    )


_CLOSED = object()


class Subscription:
    """
    Live feed of new messages for one record.

    Either iterate it (blocking channel) or hand it an on_message callback.
    Ids already delivered are dropped, so a re-delivered creation event
    reaches the consumer once. unsubscribe() is idempotent; a delivery racing
    with it may still reach the callback one last time.
    """

    def __init__(self, record_id, on_message: Optional[Callable] = None, on_close: Optional[Callable] = None,
                 identity: Optional[CurrentIdentity] = None):
        self.record_id = record_id
        self.identity = identity
        self._on_message = on_message
        self._on_close = on_close
        self._queue: queue.Queue = queue.Queue()
        self._seen: set = set()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self):
        return self._closed

    def deliver(self, message) -> bool:
        with self._lock:
            if self._closed or message.id in self._seen:
                return False
            self._seen.add(message.id)
        if self._on_message is not None:
            self._on_message(message)
        else:
            self._queue.put(message)
        return True

    def get(self, timeout: Optional[float] = None):
        """Next message, or None on timeout or once unsubscribed."""
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            self._queue.put(_CLOSED)
            return None
        return item

    def drain(self) -> list:
        items = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if item is _CLOSED:
                self._queue.put(_CLOSED)
                break
            items.append(item)
        return items

    def __iter__(self):
        while True:
            item = self.get()
            if item is None:
                return
            yield item

    def unsubscribe(self):
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._queue.put(_CLOSED)
        if self._on_close is not None:
            self._on_close(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.unsubscribe()


class MessageBroker:
    """In-process fan-out of newly posted messages to live subscriptions."""

    def __init__(self):
        self._subscribers = defaultdict(set)
        self._lock = threading.Lock()

    def subscribe(self, record_id, on_message=None, identity=None) -> Subscription:
        sub = Subscription(record_id, on_message=on_message, on_close=self._remove, identity=identity)
        with self._lock:
            self._subscribers[record_id].add(sub)
        logger.debug("subscription opened on record %s", record_id)
        return sub

    def _remove(self, sub: Subscription):
        with self._lock:
            subs = self._subscribers.get(sub.record_id)
            if subs is not None:
                subs.discard(sub)
                if not subs:
                    del self._subscribers[sub.record_id]
        logger.debug("subscription closed on record %s", sub.record_id)

    def revoke(self, record_id, keep: Callable) -> int:
        """Close every subscription on the record whose identity fails keep(identity)."""
        with self._lock:
            targets = [s for s in self._subscribers.get(record_id, ()) if not keep(s.identity)]
        for sub in targets:
            sub.unsubscribe()
        if targets:
            logger.info("closed %d subscription(s) on record %s", len(targets), record_id)
        return len(targets)

    def subscriber_count(self, record_id) -> int:
        with self._lock:
            return len(self._subscribers.get(record_id, ()))

    def publish(self, record_id, message):
        with self._lock:
            targets = list(self._subscribers.get(record_id, ()))
        for sub in targets:
            try:
                sub.deliver(message)
            except Exception:
                # a failing subscriber never stops delivery to the others
                logger.exception("subscriber on record %s failed", record_id)


class ChatView:
    """
    Client-side merged view of a record's thread.

    History and pushed messages go through receive(); duplicates by id are
    dropped and the list is always in (created_at, id) order regardless of
    arrival order.
    """

    def __init__(self, messages=()):
        self._by_id = {}
        self._lock = threading.Lock()
        self.load_history(messages)

    def load_history(self, messages):
        for msg in messages:
            self.receive(msg)

    def receive(self, message) -> bool:
        with self._lock:
            if message.id in self._by_id:
                return False
            self._by_id[message.id] = message
            return True

    @property
    def messages(self) -> list:
        with self._lock:
            return sorted(self._by_id.values(), key=lambda m: m.sort_key)

    def __len__(self):
        return len(self._by_id)


class ChatChannel:
    def __init__(self, identity: CurrentIdentity | None, profiles: ProfileDirectory,
                 message_broker: MessageBroker, emit: Optional[Callable] = None):
        self.identity = identity
        self.profiles = profiles
        self.broker = message_broker
        self.emit = emit

    def _record(self, record_id) -> EcgRecord:
        record = db.session.get(EcgRecord, record_id)
        if record is None:
            raise NotFoundError(f"Record {record_id} not found")
        return record

    def post_message(self, record_id, body) -> int:
        require_identity(self.identity)
        record = self._record(record_id)
        identity = require_record_access(self.identity, record)
        if not isinstance(body, str) or not body.strip():
            raise ValidationError("Message body is required.")

        msg = ChatMessage(record_id=record.id, sender_id=identity.id, body=body)
        db.session.add(msg)
        commit_or_raise("post message")

        enriched = enrich_message(msg, self.profiles)
        self.broker.publish(record.id, enriched)
        if self.emit is not None:
            self.emit(room_for(record.id), enriched.to_dict())
        logger.info("message %s posted on record %s by %s", msg.id, record.id, identity.id)
        return msg.id

    def history(self, record_id) -> list[EnrichedMessage]:
        require_identity(self.identity)
        record = self._record(record_id)
        require_record_access(self.identity, record)
        stmt = (
            select(ChatMessage)
            .where(ChatMessage.record_id == record.id)
            .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
        )
        return [enrich_message(m, self.profiles) for m in db.session.scalars(stmt)]

    def subscribe(self, record_id, on_message=None) -> Subscription:
        """New messages only; fetch history() separately for the backlog."""
        identity = require_identity(self.identity)
        record = self._record(record_id)
        require_record_access(identity, record)
        return self.broker.subscribe(record.id, on_message=on_message, identity=identity)

    def open_view(self, record_id) -> tuple[ChatView, Subscription]:
        """Subscribe, then load history; the overlap is deduplicated by the view."""
        view = ChatView()
        sub = self.subscribe(record_id, on_message=view.receive)
        try:
            view.load_history(self.history(record_id))
        except Exception:
            sub.unsubscribe()
            raise
        return view, sub
