"""
Webhook Event Models

SQLAlchemy models for raw webhook events and the messages parsed from them.
"""

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

from messenger_webhooks.kernel.time import utc_now

Base = declarative_base()


class MessageKind:
    """Values stored in `messages.kind`."""

    MESSAGE = "message"
    POSTBACK = "postback"
    DELIVERY = "delivery"
    READ = "read"


class RawEvent(Base):
    """
    A webhook payload exactly as received (or replayed from the audit log).

    `raw_payload` + `event_type` form the duplicate-detection key used by
    the JSON importer.
    """

    __tablename__ = "raw_events"

    # Identity
    id = Column(Integer, primary_key=True, autoincrement=True)

    # Event info
    event_type = Column(String(100), nullable=False, index=True)  # webhook, messaging, field_<name>
    received_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
    raw_payload = Column(Text, nullable=False)
    object_type = Column(String(50), nullable=True)  # "page", "instagram", ...

    # Status
    processed = Column(Boolean, nullable=False, default=False, index=True)

    # Relationships
    messages = relationship(
        "Message",
        back_populates="raw_event",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<RawEvent {self.id} ({self.event_type})>"


class Message(Base):
    """
    A normalized messaging sub-event.

    `kind` decides which of `text`, `postback_payload` and
    `delivery_watermark` may be set; the parser never sets more than one.
    """

    __tablename__ = "messages"

    # Identity
    id = Column(Integer, primary_key=True, autoincrement=True)
    raw_event_id = Column(
        Integer,
        ForeignKey("raw_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Participants
    message_id = Column(String(255), nullable=True, index=True)  # Meta "mid"
    sender_id = Column(String(100), nullable=False, index=True)
    recipient_id = Column(String(100), nullable=False, index=True)

    # Content
    text = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    kind = Column(String(50), nullable=False, index=True)  # message, postback, delivery, read
    is_echo = Column(Boolean, nullable=False, default=False)
    app_id = Column(String(100), nullable=True)
    postback_payload = Column(Text, nullable=True)
    delivery_watermark = Column(BigInteger, nullable=True)

    # Bookkeeping
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    responded = Column(Boolean, nullable=False, default=False, index=True)

    # Relationship
    raw_event = relationship("RawEvent", back_populates="messages")

    def __repr__(self) -> str:
        return f"<Message {self.id} ({self.kind} from {self.sender_id})>"
