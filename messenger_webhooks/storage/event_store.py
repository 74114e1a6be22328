"""
Webhook event store (relational path).

Every call runs in its own unit of work and commits immediately; there is no
transaction spanning a whole request. Database errors propagate to the caller,
since the database is the primary record.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import and_, func, select
from sqlalchemy.orm import selectinload

from messenger_webhooks.db.client import get_db_session
from messenger_webhooks.db.models import Message, MessageKind, RawEvent
from messenger_webhooks.kernel.time import coerce_utc, utc_now

logger = structlog.get_logger()


class EventStore:
    """Save and query RawEvent / Message rows."""

    async def save_event(
        self,
        event_type: str,
        raw_payload: str,
        object_type: str | None = None,
    ) -> int:
        """Insert a live-ingested event (processed=False) and return its id."""
        async with get_db_session() as session:
            raw_event = RawEvent(
                event_type=event_type,
                received_at=utc_now(),
                raw_payload=raw_payload,
                object_type=object_type,
                processed=False,
            )
            session.add(raw_event)
            await session.flush()
            event_id = raw_event.id

        logger.info("Webhook event saved to database", id=event_id, event_type=event_type)
        return event_id

    async def save_migrated_event(
        self,
        event_type: str,
        raw_payload: str,
        received_at: datetime,
        object_type: str | None = None,
    ) -> int:
        """Insert an event replayed from the file log; it was handled when first received."""
        async with get_db_session() as session:
            raw_event = RawEvent(
                event_type=event_type,
                received_at=coerce_utc(received_at),
                raw_payload=raw_payload,
                object_type=object_type,
                processed=True,
            )
            session.add(raw_event)
            await session.flush()
            return raw_event.id

    async def save_message(self, raw_event_id: int, message: Message) -> int:
        """Attach a message to its parent event and insert it."""
        message.raw_event_id = raw_event_id
        message.created_at = utc_now()

        async with get_db_session() as session:
            session.add(message)
            await session.flush()
            message_id = message.id

        logger.info(
            "Message saved to database",
            id=message_id,
            sender_id=message.sender_id,
            kind=message.kind,
        )
        return message_id

    async def event_exists(self, raw_payload: str, event_type: str) -> bool:
        """Content-equality duplicate check used by the JSON importer."""
        async with get_db_session() as session:
            result = await session.execute(
                select(RawEvent.id)
                .where(RawEvent.raw_payload == raw_payload, RawEvent.event_type == event_type)
                .limit(1)
            )
            return result.first() is not None

    async def list_events(
        self,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        event_type: str | None = None,
    ) -> list[RawEvent]:
        """Events received within [start_date, end_date], newest first, messages loaded."""
        query = select(RawEvent).options(selectinload(RawEvent.messages))

        if start_date is not None:
            query = query.where(RawEvent.received_at >= coerce_utc(start_date))
        if end_date is not None:
            query = query.where(RawEvent.received_at <= coerce_utc(end_date))
        if event_type:
            query = query.where(RawEvent.event_type == event_type)

        query = query.order_by(RawEvent.received_at.desc(), RawEvent.id.desc())

        async with get_db_session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def list_messages(
        self,
        sender_id: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[Message]:
        """Messages by sender and/or event time, newest first, parent event loaded."""
        query = select(Message).options(selectinload(Message.raw_event))

        if sender_id:
            query = query.where(Message.sender_id == sender_id)
        if start_date is not None:
            query = query.where(Message.timestamp >= coerce_utc(start_date))
        if end_date is not None:
            query = query.where(Message.timestamp <= coerce_utc(end_date))

        query = query.order_by(Message.timestamp.desc(), Message.id.desc())

        async with get_db_session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def list_unresponded_messages(self) -> list[Message]:
        """Inbound user messages nobody has answered yet, oldest first."""
        query = (
            select(Message)
            .options(selectinload(Message.raw_event))
            .where(
                and_(
                    Message.responded.is_(False),
                    Message.is_echo.is_(False),
                    Message.kind == MessageKind.MESSAGE,
                )
            )
            .order_by(Message.timestamp.asc(), Message.id.asc())
        )

        async with get_db_session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def get_stats(self, recent_limit: int = 5) -> dict[str, Any]:
        """Counts for the database-stats endpoint."""
        async with get_db_session() as session:
            total_events = await session.scalar(select(func.count(RawEvent.id)))
            total_messages = await session.scalar(select(func.count(Message.id)))

            kind_rows = await session.execute(
                select(Message.kind, func.count(Message.id))
                .group_by(Message.kind)
                .order_by(Message.kind)
            )
            message_kinds = [{"kind": kind, "count": count} for kind, count in kind_rows.all()]

            recent_rows = await session.execute(
                select(RawEvent, func.count(Message.id))
                .outerjoin(Message, Message.raw_event_id == RawEvent.id)
                .group_by(RawEvent.id)
                .order_by(RawEvent.received_at.desc(), RawEvent.id.desc())
                .limit(recent_limit)
            )
            recent_events = [
                {
                    "id": raw_event.id,
                    "event_type": raw_event.event_type,
                    "received_at": coerce_utc(raw_event.received_at),
                    "object_type": raw_event.object_type,
                    "message_count": message_count,
                }
                for raw_event, message_count in recent_rows.all()
            ]

        unresponded = await self.list_unresponded_messages()

        return {
            "total_webhook_events": total_events or 0,
            "total_messages": total_messages or 0,
            "unresponded_messages": len(unresponded),
            "message_kinds": message_kinds,
            "recent_events": recent_events,
        }
