"""Events router: the notifier polls undelivered events and acknowledges them."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.constants import MAX_PAGE_SIZE
from leave_engine.common.events import list_undelivered, mark_delivered
from leave_engine.database import get_db
from leave_engine.events.schemas import LeaveEventOut

router = APIRouter(prefix="", tags=["events"])


# ── GET / ───────────────────────────────────────────────────────────

@router.get("", response_model=list[LeaveEventOut])
async def list_pending_events(
    limit: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
):
    """Undelivered transition events, oldest first."""
    return await list_undelivered(db, limit=limit)


# ── PUT /{id}/delivered ─────────────────────────────────────────────

@router.put("/{event_id}/delivered", response_model=LeaveEventOut)
async def acknowledge_event(
    event_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Mark an event delivered. Repeated acknowledgements are harmless."""
    return await mark_delivered(db, event_id)
