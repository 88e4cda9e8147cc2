"""DayAllocator tests: pure logic, no DB."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

import pytest

from leave_engine.allocation.service import DayAllocator, month_spans
from leave_engine.leave.models import LeaveRequest


def _request(
    start: date,
    end: date,
    total: Decimal,
    *,
    is_paid: Optional[bool] = None,
    paid: Optional[Decimal] = None,
    unpaid: Optional[Decimal] = None,
    overridden: bool = False,
) -> LeaveRequest:
    return LeaveRequest(
        id=uuid.uuid4(),
        employee_id=uuid.uuid4(),
        leave_type="annual",
        start_date=start,
        end_date=end,
        total_days=total,
        is_paid=is_paid,
        paid_days=paid,
        unpaid_days=unpaid,
        paid_status_overridden=overridden,
    )


class TestCountCalendarDays:

    def test_inclusive_range(self):
        assert DayAllocator.count_calendar_days(date(2026, 1, 28), date(2026, 2, 1)) == 5

    def test_single_day(self):
        assert DayAllocator.count_calendar_days(date(2026, 3, 2), date(2026, 3, 2)) == 1

    def test_half_day(self):
        assert DayAllocator.count_calendar_days(
            date(2026, 3, 2), date(2026, 3, 2), is_half_day=True,
        ) == Decimal("0.5")

    def test_leap_february(self):
        assert DayAllocator.count_calendar_days(date(2028, 2, 1), date(2028, 2, 29)) == 29


class TestDeterminePaidUnpaid:

    @pytest.mark.parametrize(
        "total, remaining, paid, unpaid, is_paid",
        [
            ("5", "25", "5", "0", True),
            ("5", "5", "5", "0", True),
            ("5", "2", "2", "3", False),
            ("5", "0", "0", "5", False),
            ("5", "-3", "0", "5", False),
            ("0.5", "0.5", "0.5", "0", True),
        ],
    )
    def test_split(self, total, remaining, paid, unpaid, is_paid):
        split = DayAllocator.determine_paid_unpaid(Decimal(total), Decimal(remaining))
        assert split.paid_days == Decimal(paid)
        assert split.unpaid_days == Decimal(unpaid)
        assert split.is_paid is is_paid
        assert split.paid_days + split.unpaid_days == Decimal(total)


class TestApportionAcrossMonths:

    def test_two_month_span(self):
        """Jan 28 – Feb 1 → 4 days in January, 1 in February."""
        req = _request(date(2026, 1, 28), date(2026, 2, 1), Decimal("5"))
        allocs = DayAllocator.apportion_across_months(req, Decimal("5"), Decimal("0"))

        assert [(a.year, a.month) for a in allocs] == [(2026, 1), (2026, 2)]
        assert allocs[0].paid_days == Decimal("4")
        assert allocs[1].paid_days == Decimal("1")
        assert sum(a.total_days for a in allocs) == Decimal("5")

    def test_unpaid_portion_spread_proportionally(self):
        req = _request(date(2026, 1, 28), date(2026, 2, 1), Decimal("5"))
        allocs = DayAllocator.apportion_across_months(req, Decimal("2"), Decimal("3"))

        assert sum(a.paid_days for a in allocs) == Decimal("2")
        assert sum(a.unpaid_days for a in allocs) == Decimal("3")
        for a in allocs:
            assert a.total_days == a.paid_days + a.unpaid_days
        assert allocs[0].total_days == Decimal("4")
        assert allocs[1].total_days == Decimal("1")

    def test_thirds_reconcile_exactly(self):
        """Awkward ratios still sum back to the request exactly."""
        req = _request(date(2026, 1, 31), date(2026, 3, 1), Decimal("10"))
        allocs = DayAllocator.apportion_across_months(req, Decimal("7"), Decimal("3"))

        assert len(allocs) == 3
        assert sum(a.paid_days for a in allocs) == Decimal("7")
        assert sum(a.unpaid_days for a in allocs) == Decimal("3")
        assert sum(a.total_days for a in allocs) == Decimal("10")
        for a in allocs:
            assert a.paid_days >= 0 and a.unpaid_days >= 0
            assert a.paid_days == a.paid_days.quantize(Decimal("0.01"))

    def test_half_cent_ties_keep_month_totals_exact(self):
        """Jan 31 – Feb 3 with 0.5 paid: 0.125 and 0.875 both sit on a tie."""
        req = _request(date(2026, 1, 31), date(2026, 2, 3), Decimal("4"))
        allocs = DayAllocator.apportion_across_months(req, Decimal("0.5"), Decimal("3.5"))

        assert [a.total_days for a in allocs] == [Decimal("1"), Decimal("3")]
        assert sum(a.paid_days for a in allocs) == Decimal("0.5")
        assert sum(a.unpaid_days for a in allocs) == Decimal("3.5")
        for a in allocs:
            assert a.total_days == a.paid_days + a.unpaid_days
            assert a.paid_days >= 0 and a.unpaid_days >= 0

    def test_calendar_adjusted_total(self):
        """A working-day total smaller than the span is spread across months."""
        req = _request(date(2026, 1, 26), date(2026, 2, 6), Decimal("8"))
        allocs = DayAllocator.apportion_across_months(req, Decimal("8"), Decimal("0"))
        assert sum(a.total_days for a in allocs) == Decimal("8")

    def test_year_boundary(self):
        req = _request(date(2025, 12, 30), date(2026, 1, 2), Decimal("4"))
        allocs = DayAllocator.apportion_across_months(req, Decimal("4"), Decimal("0"))
        assert [(a.year, a.month, a.total_days) for a in allocs] == [
            (2025, 12, Decimal("2")),
            (2026, 1, Decimal("2")),
        ]

    def test_half_day_single_month(self):
        req = _request(date(2026, 3, 2), date(2026, 3, 2), Decimal("0.5"))
        allocs = DayAllocator.apportion_across_months(req, Decimal("0.5"), Decimal("0"))
        assert len(allocs) == 1
        assert allocs[0].total_days == Decimal("0.5")

    def test_month_spans_cover_range(self):
        spans = list(month_spans(date(2026, 2, 27), date(2026, 4, 2)))
        assert spans == [(2026, 2, 2), (2026, 3, 31), (2026, 4, 2)]


class TestEffectiveSplit:

    def test_day_level_split_used_by_default(self):
        req = _request(
            date(2026, 3, 2), date(2026, 3, 6), Decimal("5"),
            is_paid=False, paid=Decimal("2"), unpaid=Decimal("3"),
        )
        split = DayAllocator.effective_split(req)
        assert (split.paid_days, split.unpaid_days) == (Decimal("2"), Decimal("3"))

    def test_override_to_paid_reclassifies_all_days(self):
        req = _request(
            date(2026, 3, 2), date(2026, 3, 6), Decimal("5"),
            is_paid=True, paid=Decimal("2"), unpaid=Decimal("3"), overridden=True,
        )
        split = DayAllocator.effective_split(req)
        assert (split.paid_days, split.unpaid_days) == (Decimal("5"), Decimal("0"))

    def test_override_to_unpaid(self):
        req = _request(
            date(2026, 3, 2), date(2026, 3, 6), Decimal("5"),
            is_paid=False, paid=Decimal("5"), unpaid=Decimal("0"), overridden=True,
        )
        split = DayAllocator.effective_split(req)
        assert split.paid_days == Decimal("0")
        assert split.unpaid_days == Decimal("5")

    def test_allocate_filters_year(self):
        req = _request(
            date(2025, 12, 30), date(2026, 1, 2), Decimal("4"),
            is_paid=True, paid=Decimal("4"), unpaid=Decimal("0"),
        )
        allocs = DayAllocator.allocate(req, year=2026)
        assert [(a.month, a.paid_days) for a in allocs] == [(1, Decimal("2"))]
