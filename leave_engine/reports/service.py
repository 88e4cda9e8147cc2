"""Aggregation engine: yearly, monthly and current-month leave statistics.

All figures come from approved requests run through DayAllocator, so a
request that crosses a month or year boundary contributes only the portion
inside the reported period, and the yearly figure of an employee always
equals the sum of their twelve months.
"""

from __future__ import annotations

import calendar
import logging
import uuid
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.allocation.service import DayAllocator
from leave_engine.common.constants import MONTH_NAMES, LeaveStatus
from leave_engine.common.dates import local_today
from leave_engine.common.exceptions import NotFoundException
from leave_engine.directory.service import EmployeeDirectory
from leave_engine.leave.models import LeaveRequest
from leave_engine.reports.schemas import (
    CurrentMonthReport,
    DayTotals,
    EmployeeMonthlyStats,
    EmployeeMonthTotals,
    EmployeeYearlyStats,
    HistorySummary,
    LeaveTypeTotals,
    MonthlyReport,
    MonthStats,
    ReportFilters,
    RequestPortion,
    YearlyReport,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _empty_months() -> dict[int, MonthStats]:
    return {m: MonthStats(month=m, month_name=MONTH_NAMES[m]) for m in range(1, 13)}


class AggregationEngine:
    """Lock-free reads over approved requests."""

    @staticmethod
    async def _approved_in_range(
        db: AsyncSession,
        filters: ReportFilters,
        period_start: date,
        period_end: date,
    ) -> list[LeaveRequest]:
        scope = await EmployeeDirectory.scope_ids(
            db, department=filters.department, employee_id=filters.employee_id,
        )
        if scope is not None and not scope:
            return []

        query = (
            select(LeaveRequest)
            .where(
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.start_date <= period_end,
                LeaveRequest.end_date >= period_start,
            )
            .order_by(LeaveRequest.employee_id, LeaveRequest.start_date)
        )
        if scope is not None:
            query = query.where(LeaveRequest.employee_id.in_(scope))
        if filters.leave_type:
            query = query.where(LeaveRequest.leave_type == filters.leave_type.strip().lower())

        result = await db.execute(query)
        return list(result.scalars().all())

    # ─────────────────────────────────────────────────────────────────
    # Yearly
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def yearly_stats(
        db: AsyncSession,
        filters: ReportFilters,
        year: int,
    ) -> YearlyReport:
        """Per-employee paid/unpaid totals for `year`, by leave type, with drill-down."""
        requests = await AggregationEngine._approved_in_range(
            db, filters, date(year, 1, 1), date(year, 12, 31),
        )

        stats: dict[uuid.UUID, EmployeeYearlyStats] = {}
        by_type: dict[uuid.UUID, dict[str, LeaveTypeTotals]] = defaultdict(dict)
        totals = DayTotals()

        for req in requests:
            allocations = DayAllocator.allocate(req, year=year)
            paid = sum((a.paid_days for a in allocations), ZERO)
            unpaid = sum((a.unpaid_days for a in allocations), ZERO)

            emp = stats.setdefault(req.employee_id, EmployeeYearlyStats(employee_id=req.employee_id))
            emp.add(paid, unpaid)
            totals.add(paid, unpaid)

            lt = by_type[req.employee_id].setdefault(
                req.leave_type, LeaveTypeTotals(leave_type=req.leave_type),
            )
            lt.add(paid, unpaid)
            lt.request_count += 1

            emp.requests.append(
                RequestPortion(
                    request_id=req.id,
                    leave_type=req.leave_type,
                    start_date=req.start_date,
                    end_date=req.end_date,
                    is_paid=req.is_paid,
                    paid_days=paid,
                    unpaid_days=unpaid,
                    total_days=paid + unpaid,
                )
            )

        briefs = await EmployeeDirectory.lookup(db, stats.keys())
        for emp_id, emp in stats.items():
            emp.employee = briefs.get(emp_id)
            emp.by_leave_type = sorted(by_type[emp_id].values(), key=lambda t: t.leave_type)

        logger.debug("Yearly stats %s: %d request(s), %d employee(s)", year, len(requests), len(stats))
        return YearlyReport(
            year=year,
            filters=filters,
            totals=totals,
            employees=sorted(stats.values(), key=lambda e: str(e.employee_id)),
        )

    # ─────────────────────────────────────────────────────────────────
    # Monthly
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def monthly_stats(
        db: AsyncSession,
        filters: ReportFilters,
        year: int,
    ) -> MonthlyReport:
        """Months 1..12 per employee plus a yearly total equal to their sum."""
        requests = await AggregationEngine._approved_in_range(
            db, filters, date(year, 1, 1), date(year, 12, 31),
        )

        months: dict[uuid.UUID, dict[int, MonthStats]] = {}
        for req in requests:
            table = months.setdefault(req.employee_id, _empty_months())
            for alloc in DayAllocator.allocate(req, year=year):
                table[alloc.month].add(alloc.paid_days, alloc.unpaid_days)

        briefs = await EmployeeDirectory.lookup(db, months.keys())
        employees = []
        for emp_id, table in months.items():
            yearly = DayTotals()
            for m in table.values():
                yearly.add(m.paid_days, m.unpaid_days)
            employees.append(
                EmployeeMonthlyStats(
                    employee_id=emp_id,
                    employee=briefs.get(emp_id),
                    months=[table[m] for m in range(1, 13)],
                    yearly_total=yearly,
                )
            )

        employees.sort(key=lambda e: str(e.employee_id))
        return MonthlyReport(year=year, filters=filters, employees=employees)

    @staticmethod
    async def current_month_stats(
        db: AsyncSession,
        filters: Optional[ReportFilters] = None,
        *,
        as_of: Optional[date] = None,
    ) -> CurrentMonthReport:
        """Totals for the month containing `as_of`; employees with zero days are left out."""
        filters = filters or ReportFilters()
        as_of = as_of or local_today()
        last_day = calendar.monthrange(as_of.year, as_of.month)[1]

        requests = await AggregationEngine._approved_in_range(
            db, filters, as_of.replace(day=1), as_of.replace(day=last_day),
        )

        per_employee: dict[uuid.UUID, EmployeeMonthTotals] = {}
        totals = DayTotals()
        for req in requests:
            for alloc in DayAllocator.allocate(req, year=as_of.year):
                if alloc.month != as_of.month:
                    continue
                emp = per_employee.setdefault(
                    req.employee_id, EmployeeMonthTotals(employee_id=req.employee_id),
                )
                emp.add(alloc.paid_days, alloc.unpaid_days)
                totals.add(alloc.paid_days, alloc.unpaid_days)

        employees = [e for e in per_employee.values() if e.total_days > 0]
        briefs = await EmployeeDirectory.lookup(db, (e.employee_id for e in employees))
        for emp in employees:
            emp.employee = briefs.get(emp.employee_id)
        employees.sort(key=lambda e: e.total_days, reverse=True)

        return CurrentMonthReport(
            as_of=as_of,
            year=as_of.year,
            month=as_of.month,
            month_name=MONTH_NAMES[as_of.month],
            totals=totals,
            employees=employees,
        )

    # ─────────────────────────────────────────────────────────────────
    # History
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def history_summary(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> HistorySummary:
        """Request counts by status plus approved days by leave type and month."""
        brief = (await EmployeeDirectory.lookup(db, [employee_id])).get(employee_id)
        if brief is None:
            raise NotFoundException("Employee", str(employee_id))
        period_start, period_end = date(year, 1, 1), date(year, 12, 31)

        count_rows = await db.execute(
            select(LeaveRequest.status, func.count())
            .where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.start_date <= period_end,
                LeaveRequest.end_date >= period_start,
            )
            .group_by(LeaveRequest.status)
        )
        counts = {status: 0 for status in LeaveStatus}
        for status, count in count_rows.all():
            counts[status] = count

        requests = await AggregationEngine._approved_in_range(
            db, ReportFilters(employee_id=employee_id), period_start, period_end,
        )
        approved = DayTotals()
        by_type: dict[str, LeaveTypeTotals] = {}
        table = _empty_months()
        for req in requests:
            lt = by_type.setdefault(req.leave_type, LeaveTypeTotals(leave_type=req.leave_type))
            lt.request_count += 1
            for alloc in DayAllocator.allocate(req, year=year):
                approved.add(alloc.paid_days, alloc.unpaid_days)
                lt.add(alloc.paid_days, alloc.unpaid_days)
                table[alloc.month].add(alloc.paid_days, alloc.unpaid_days)

        return HistorySummary(
            employee_id=employee_id,
            employee=brief,
            year=year,
            request_counts=counts,
            approved_days=approved,
            days_by_leave_type=sorted(by_type.values(), key=lambda t: t.leave_type),
            days_by_month=[table[m] for m in range(1, 13)],
        )
