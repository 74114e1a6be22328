"""
Events API Routes

Read-only query surface over stored webhook events and messages.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator

from messenger_webhooks.kernel.time import coerce_utc
from messenger_webhooks.storage import EventStore

router = APIRouter(tags=["Events"])


def get_event_store() -> EventStore:
    return EventStore()


# =============================================================================
# RESPONSE MODELS
# =============================================================================


class _UTCModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    @field_validator("*", mode="after")
    @classmethod
    def _utc(cls, value):
        # SQLite returns naive timestamps; everything stored is UTC.
        if isinstance(value, datetime):
            return coerce_utc(value)
        return value


class MessageResponse(_UTCModel):
    id: int
    raw_event_id: int
    message_id: str | None = None
    sender_id: str
    recipient_id: str
    text: str | None = None
    timestamp: datetime
    kind: str
    is_echo: bool
    app_id: str | None = None
    postback_payload: str | None = None
    delivery_watermark: int | None = None
    created_at: datetime
    responded: bool


class RawEventResponse(_UTCModel):
    id: int
    event_type: str
    received_at: datetime
    raw_payload: str
    object_type: str | None = None
    processed: bool
    messages: list[MessageResponse] = Field(default_factory=list)


class EventListResponse(BaseModel):
    events: list[RawEventResponse]
    total: int


class MessageListResponse(BaseModel):
    messages: list[MessageResponse]
    total: int


# =============================================================================
# ENDPOINTS
# =============================================================================


@router.get("/events", response_model=EventListResponse)
async def list_events(
    start_date: datetime | None = Query(None, description="Inclusive lower bound on received_at"),
    end_date: datetime | None = Query(None, description="Inclusive upper bound on received_at"),
    event_type: str | None = Query(None, description="Exact event type, e.g. 'webhook'"),
    store: EventStore = Depends(get_event_store),
) -> EventListResponse:
    """Stored webhook events, newest first, each with its messages."""
    events = await store.list_events(start_date, end_date, event_type)
    return EventListResponse(
        events=[RawEventResponse.model_validate(e) for e in events],
        total=len(events),
    )


@router.get("/messages", response_model=MessageListResponse)
async def list_messages(
    sender_id: str | None = Query(None),
    start_date: datetime | None = Query(None, description="Inclusive lower bound on event time"),
    end_date: datetime | None = Query(None, description="Inclusive upper bound on event time"),
    store: EventStore = Depends(get_event_store),
) -> MessageListResponse:
    """Stored messages, newest first."""
    messages = await store.list_messages(sender_id, start_date, end_date)
    return MessageListResponse(
        messages=[MessageResponse.model_validate(m) for m in messages],
        total=len(messages),
    )


@router.get("/messages/unresponded", response_model=MessageListResponse)
async def list_unresponded_messages(
    store: EventStore = Depends(get_event_store),
) -> MessageListResponse:
    """Inbound user messages not yet answered, oldest first."""
    messages = await store.list_unresponded_messages()
    return MessageListResponse(
        messages=[MessageResponse.model_validate(m) for m in messages],
        total=len(messages),
    )
