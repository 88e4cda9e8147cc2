"""Report Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from leave_engine.common.constants import LeaveStatus
from leave_engine.directory.schemas import EmployeeBrief


class ReportFilters(BaseModel):
    department: Optional[str] = None
    employee_id: Optional[uuid.UUID] = None
    leave_type: Optional[str] = None


class DayTotals(BaseModel):
    paid_days: Decimal = Decimal("0")
    unpaid_days: Decimal = Decimal("0")
    total_days: Decimal = Decimal("0")

    def add(self, paid: Decimal, unpaid: Decimal) -> None:
        self.paid_days += paid
        self.unpaid_days += unpaid
        self.total_days += paid + unpaid


# ═════════════════════════════════════════════════════════════════════
# Yearly
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeTotals(DayTotals):
    leave_type: str
    request_count: int = 0


class RequestPortion(BaseModel):
    """The part of one approved request that falls inside the report period."""

    request_id: uuid.UUID
    leave_type: str
    start_date: date
    end_date: date
    is_paid: Optional[bool] = None
    paid_days: Decimal
    unpaid_days: Decimal
    total_days: Decimal


class EmployeeYearlyStats(DayTotals):
    employee_id: uuid.UUID
    employee: Optional[EmployeeBrief] = None
    by_leave_type: list[LeaveTypeTotals] = Field(default_factory=list)
    requests: list[RequestPortion] = Field(default_factory=list)


class YearlyReport(BaseModel):
    year: int
    filters: ReportFilters
    totals: DayTotals
    employees: list[EmployeeYearlyStats]


# ═════════════════════════════════════════════════════════════════════
# Monthly
# ═════════════════════════════════════════════════════════════════════


class MonthStats(DayTotals):
    month: int
    month_name: str


class EmployeeMonthlyStats(BaseModel):
    employee_id: uuid.UUID
    employee: Optional[EmployeeBrief] = None
    months: list[MonthStats]
    yearly_total: DayTotals


class MonthlyReport(BaseModel):
    year: int
    filters: ReportFilters
    employees: list[EmployeeMonthlyStats]


class EmployeeMonthTotals(DayTotals):
    employee_id: uuid.UUID
    employee: Optional[EmployeeBrief] = None


class CurrentMonthReport(BaseModel):
    as_of: date
    year: int
    month: int
    month_name: str
    totals: DayTotals
    employees: list[EmployeeMonthTotals]


# ═════════════════════════════════════════════════════════════════════
# History
# ═════════════════════════════════════════════════════════════════════


class HistorySummary(BaseModel):
    """One employee's year at a glance."""

    employee_id: uuid.UUID
    employee: Optional[EmployeeBrief] = None
    year: int
    request_counts: dict[LeaveStatus, int]
    approved_days: DayTotals
    days_by_leave_type: list[LeaveTypeTotals]
    days_by_month: list[MonthStats]
