"""Balance router: reads, availability checks, adjustments and year-end rollover."""

import uuid
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.dates import local_today
from leave_engine.common.rate_limit import limiter
from leave_engine.config import settings
from leave_engine.database import get_db
from leave_engine.ledger.schemas import (
    AvailabilityOut,
    BalanceAdjustRequest,
    BalanceOut,
    RolloverAllRequest,
    RolloverRequest,
    RolloverSummary,
)
from leave_engine.ledger.service import BalanceLedger

router = APIRouter(prefix="", tags=["balances"])


# ── POST /rollover ──────────────────────────────────────────────────

@router.post("/rollover", response_model=RolloverSummary)
@limiter.limit(settings.RATE_LIMIT_BULK)
async def rollover_all(
    request: Request,
    body: RolloverAllRequest,
    db: AsyncSession = Depends(get_db),
):
    """Year-end rollover for every employee holding a balance of the leave type."""
    balances = await BalanceLedger.rollover_all(
        db, body.leave_type, body.from_year, body.to_year,
    )
    return RolloverSummary(
        leave_type=body.leave_type,
        from_year=body.from_year,
        to_year=body.to_year,
        balances_rolled=len(balances),
        balances=[BalanceOut.model_validate(b) for b in balances],
    )


# ── GET /{employee_id} ──────────────────────────────────────────────

@router.get("/{employee_id}", response_model=list[BalanceOut])
async def list_balances(
    employee_id: uuid.UUID,
    year: Optional[int] = Query(None, ge=1900, le=9999),
    db: AsyncSession = Depends(get_db),
):
    """Materialised balances of an employee, newest year first."""
    return await BalanceLedger.list_balances(db, employee_id, year=year)


# ── GET /{employee_id}/{leave_type} ─────────────────────────────────

@router.get("/{employee_id}/{leave_type}", response_model=BalanceOut)
async def get_balance(
    employee_id: uuid.UUID,
    leave_type: str,
    year: Optional[int] = Query(None, ge=1900, le=9999),
    db: AsyncSession = Depends(get_db),
):
    """Balance for the year (default: current), created from the active policy if new."""
    return await BalanceLedger.get_balance(
        db, employee_id, leave_type, year or local_today().year,
    )


# ── GET /{employee_id}/{leave_type}/availability ────────────────────

@router.get("/{employee_id}/{leave_type}/availability", response_model=AvailabilityOut)
async def check_availability(
    employee_id: uuid.UUID,
    leave_type: str,
    days: Decimal = Query(..., gt=0),
    year: Optional[int] = Query(None, ge=1900, le=9999),
    db: AsyncSession = Depends(get_db),
):
    """Non-mutating check of whether `days` fit in the remaining balance."""
    year = year or local_today().year
    remaining = await BalanceLedger.peek_remaining(db, employee_id, leave_type, year)
    shortfall = await BalanceLedger.check_availability(
        db, employee_id, leave_type, year, days,
    )
    return AvailabilityOut(
        employee_id=employee_id,
        leave_type=leave_type.strip().lower(),
        year=year,
        requested_days=days,
        remaining=remaining,
        shortfall=shortfall,
        sufficient=shortfall == 0,
    )


# ── POST /{employee_id}/{leave_type}/adjust ─────────────────────────

@router.post("/{employee_id}/{leave_type}/adjust", response_model=BalanceOut)
async def adjust_balance(
    employee_id: uuid.UUID,
    leave_type: str,
    body: BalanceAdjustRequest,
    db: AsyncSession = Depends(get_db),
):
    """Manually credit or debit an employee's entitlement."""
    return await BalanceLedger.adjust_balance(
        db,
        employee_id,
        leave_type,
        body.year or local_today().year,
        body.days,
        body.reason,
        actor_id=body.adjusted_by,
    )


# ── POST /{employee_id}/{leave_type}/rollover ───────────────────────

@router.post("/{employee_id}/{leave_type}/rollover", response_model=BalanceOut)
async def rollover_year(
    employee_id: uuid.UUID,
    leave_type: str,
    body: RolloverRequest,
    db: AsyncSession = Depends(get_db),
):
    """Carry the capped remaining balance into the next year."""
    return await BalanceLedger.rollover_year(
        db, employee_id, leave_type, body.from_year, body.to_year,
    )
