"""Day allocator: paid/unpaid split and calendar-month apportionment.

Everything here is pure. Month shares are computed with exact rational
arithmetic on *cumulative* totals and only then quantised to 0.01 day, so the
per-month values of a request always add back up to the request exactly:

    Σ month.total_days == request.total_days
    Σ month.paid_days  == paid_days
"""

from __future__ import annotations

import calendar
import math
from datetime import date, timedelta
from decimal import Decimal
from fractions import Fraction
from typing import TYPE_CHECKING, Iterator, Optional

from leave_engine.allocation.schemas import MonthlyAllocation, PaidUnpaidSplit
from leave_engine.common.constants import HALF_DAY

if TYPE_CHECKING:
    from leave_engine.leave.models import LeaveRequest

ZERO = Decimal("0")
_HUNDRED = 100


def _quantise(value: Fraction) -> Decimal:
    """Round a non-negative rational to 0.01, half up."""
    cents = math.floor(value * _HUNDRED + Fraction(1, 2))
    return Decimal(cents) / _HUNDRED


def month_spans(start: date, end: date) -> Iterator[tuple[int, int, int]]:
    """Yield (year, month, calendar days) for each month touched by [start, end]."""
    cursor = start
    while cursor <= end:
        last_day = calendar.monthrange(cursor.year, cursor.month)[1]
        month_end = min(date(cursor.year, cursor.month, last_day), end)
        yield cursor.year, cursor.month, (month_end - cursor).days + 1
        cursor = month_end + timedelta(days=1)


class DayAllocator:

    @staticmethod
    def count_calendar_days(start: date, end: date, is_half_day: bool = False) -> Decimal:
        """Inclusive calendar days; a half-day request counts 0.5."""
        if is_half_day:
            return HALF_DAY
        return Decimal((end - start).days + 1)

    @staticmethod
    def determine_paid_unpaid(total_days: Decimal, remaining: Decimal) -> PaidUnpaidSplit:
        """Split a request against the balance remaining before it is charged."""
        paid = min(total_days, max(ZERO, remaining))
        unpaid = total_days - paid
        return PaidUnpaidSplit(paid_days=paid, unpaid_days=unpaid, is_paid=unpaid == 0)

    @staticmethod
    def effective_split(request: "LeaveRequest") -> PaidUnpaidSplit:
        """Reporting split, honouring a reviewer's paid-status override.

        An override reclassifies the whole request; otherwise the day-level
        split recorded at approval is used.
        """
        total = request.total_days
        if request.paid_status_overridden or request.paid_days is None:
            if request.is_paid:
                return PaidUnpaidSplit(paid_days=total, unpaid_days=ZERO, is_paid=True)
            return PaidUnpaidSplit(paid_days=ZERO, unpaid_days=total, is_paid=False)
        unpaid = request.unpaid_days or ZERO
        return PaidUnpaidSplit(
            paid_days=request.paid_days,
            unpaid_days=unpaid,
            is_paid=unpaid == 0,
        )

    @staticmethod
    def apportion_across_months(
        request: "LeaveRequest",
        paid_days: Decimal,
        unpaid_days: Decimal,
    ) -> list[MonthlyAllocation]:
        """One allocation per calendar month the request touches.

        Shares are proportional to the calendar days of the span falling in
        each month, which also spreads a half-day or calendar-adjusted
        total_days evenly. The month total and the paid part are quantised;
        unpaid is whatever is left, so total_days never drifts by rounding.
        """
        span_days = (request.end_date - request.start_date).days + 1
        paid = Fraction(paid_days)
        total = paid + Fraction(unpaid_days)

        allocations: list[MonthlyAllocation] = []
        elapsed = 0
        prev_paid = prev_unpaid = prev_total = ZERO
        for year, month, days in month_spans(request.start_date, request.end_date):
            elapsed += days
            share = Fraction(elapsed, span_days)
            cum_total = _quantise(total * share)
            # Keep both parts non-decreasing while the total stays exact
            cum_paid = max(prev_paid, min(_quantise(paid * share), cum_total - prev_unpaid))

            month_total = cum_total - prev_total
            month_paid = cum_paid - prev_paid
            month_unpaid = month_total - month_paid
            prev_paid, prev_total = cum_paid, cum_total
            prev_unpaid = cum_total - cum_paid

            allocations.append(
                MonthlyAllocation(
                    employee_id=request.employee_id,
                    leave_type=request.leave_type,
                    year=year,
                    month=month,
                    paid_days=month_paid,
                    unpaid_days=month_unpaid,
                    total_days=month_total,
                )
            )
        return allocations

    @staticmethod
    def allocate(
        request: "LeaveRequest",
        *,
        year: Optional[int] = None,
    ) -> list[MonthlyAllocation]:
        """Apportion the effective split, optionally keeping one year's months."""
        split = DayAllocator.effective_split(request)
        allocations = DayAllocator.apportion_across_months(
            request, split.paid_days, split.unpaid_days,
        )
        if year is not None:
            allocations = [a for a in allocations if a.year == year]
        return allocations
