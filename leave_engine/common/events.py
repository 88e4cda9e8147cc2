"""Transition-event outbox: model, emit helper, and consumer reads.

The engine only records events. An external notifier polls the undelivered
rows and acknowledges them once delivered.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import DateTime, Index, String, select
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from leave_engine.common.constants import LeaveEventType
from leave_engine.common.exceptions import NotFoundException
from leave_engine.database import Base

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Outbox table ────────────────────────────────────────────────────

class LeaveEvent(Base):
    """Append-only log of leave transitions awaiting delivery."""

    __tablename__ = "leave_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    employee_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    payload: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_leave_events_entity", "entity_type", "entity_id"),
        Index("ix_leave_events_delivered_at", "delivered_at"),
    )

    def __repr__(self) -> str:
        return f"<LeaveEvent {self.event_type} {self.entity_type}/{self.entity_id}>"


# ── Helpers ─────────────────────────────────────────────────────────

async def emit_event(
    session: AsyncSession,
    *,
    event_type: LeaveEventType,
    entity_type: str,
    entity_id: uuid.UUID,
    employee_id: Optional[uuid.UUID] = None,
    actor_id: Optional[uuid.UUID] = None,
    payload: Optional[dict[str, Any]] = None,
) -> LeaveEvent:
    """
    Record a transition event in the outbox and flush it.

    Args:
        session: Async SQLAlchemy session (shares the caller's transaction).
        event_type: submitted | approved | rejected | paid_status_changed | ...
        entity_type: e.g. "leave_request", "leave_balance".
        entity_id: UUID of the affected entity.
        employee_id: Employee the event concerns.
        actor_id: Reviewer or administrator who caused it, if any.
        payload: JSON-safe details for the consumer.
    """
    event = LeaveEvent(
        event_type=event_type.value,
        entity_type=entity_type,
        entity_id=entity_id,
        employee_id=employee_id,
        actor_id=actor_id,
        payload=payload or {},
    )
    session.add(event)
    await session.flush()
    logger.debug("Emitted %s for %s/%s", event_type.value, entity_type, entity_id)
    return event


async def list_undelivered(session: AsyncSession, *, limit: int = 100) -> list[LeaveEvent]:
    """Oldest-first undelivered events."""
    result = await session.execute(
        select(LeaveEvent)
        .where(LeaveEvent.delivered_at.is_(None))
        .order_by(LeaveEvent.created_at.asc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def mark_delivered(session: AsyncSession, event_id: uuid.UUID) -> LeaveEvent:
    event = await session.get(LeaveEvent, event_id)
    if event is None:
        raise NotFoundException("LeaveEvent", str(event_id))
    if event.delivered_at is None:
        event.delivered_at = utcnow()
        await session.flush()
    return event
