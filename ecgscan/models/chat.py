from ecgscan.extensions import db
from ecgscan.utils.clock import utcnow


class ChatMessage(db.Model):
    __tablename__ = 'chat_messages'
    __table_args__ = (
        db.Index('ix_chat_messages_thread', 'record_id', 'created_at'),
    )

    id = db.Column(db.Integer, primary_key=True)
    record_id = db.Column(db.Integer, db.ForeignKey('ecg_records.id'), nullable=False)
    sender_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    body = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<ChatMessage {self.id} record={self.record_id}>"
