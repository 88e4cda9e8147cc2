"""Reports router: yearly, monthly, current-month and per-employee history."""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.dates import local_today
from leave_engine.database import get_db
from leave_engine.reports.schemas import (
    CurrentMonthReport,
    HistorySummary,
    MonthlyReport,
    ReportFilters,
    YearlyReport,
)
from leave_engine.reports.service import AggregationEngine

router = APIRouter(prefix="", tags=["reports"])


def _filters(
    department: Optional[str] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    leave_type: Optional[str] = Query(None),
) -> ReportFilters:
    return ReportFilters(department=department, employee_id=employee_id, leave_type=leave_type)


# ── GET /yearly ─────────────────────────────────────────────────────

@router.get("/yearly", response_model=YearlyReport)
async def get_yearly_stats(
    year: Optional[int] = Query(None, ge=1900, le=9999),
    filters: ReportFilters = Depends(_filters),
    db: AsyncSession = Depends(get_db),
):
    """Paid/unpaid days per employee for the year (default: current)."""
    return await AggregationEngine.yearly_stats(db, filters, year or local_today().year)


# ── GET /monthly ────────────────────────────────────────────────────

@router.get("/monthly", response_model=MonthlyReport)
async def get_monthly_stats(
    year: Optional[int] = Query(None, ge=1900, le=9999),
    filters: ReportFilters = Depends(_filters),
    db: AsyncSession = Depends(get_db),
):
    """Twelve monthly buckets per employee with a reconciling yearly total."""
    return await AggregationEngine.monthly_stats(db, filters, year or local_today().year)


# ── GET /current-month ──────────────────────────────────────────────

@router.get("/current-month", response_model=CurrentMonthReport)
async def get_current_month_stats(
    as_of: Optional[date] = Query(None),
    filters: ReportFilters = Depends(_filters),
    db: AsyncSession = Depends(get_db),
):
    return await AggregationEngine.current_month_stats(db, filters, as_of=as_of)


# ── GET /history/{employee_id} ──────────────────────────────────────

@router.get("/history/{employee_id}", response_model=HistorySummary)
async def get_history_summary(
    employee_id: uuid.UUID,
    year: Optional[int] = Query(None, ge=1900, le=9999),
    db: AsyncSession = Depends(get_db),
):
    """Request counts and approved days for one employee's year."""
    return await AggregationEngine.history_summary(
        db, employee_id, year or local_today().year,
    )
