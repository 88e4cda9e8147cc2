"""Leave request Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from leave_engine.common.constants import HalfDayPeriod, LeaveStatus, ReviewAction
from leave_engine.directory.schemas import EmployeeBrief


# ═════════════════════════════════════════════════════════════════════
# Leave Request: Create
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for submitting a leave request.

    Date consistency (end before start, half-day spans) is checked by the
    lifecycle service so every entry point reports it the same way.
    """

    model_config = ConfigDict(populate_by_name=True)

    employee_id: uuid.UUID = Field(..., validation_alias=AliasChoices("employee_id", "employeeId"))
    leave_type: str = Field(
        ..., max_length=50, validation_alias=AliasChoices("leave_type", "leaveType"),
    )
    start_date: date = Field(
        ..., validation_alias=AliasChoices("start_date", "startDate", "from_date"),
    )
    end_date: date = Field(
        ..., validation_alias=AliasChoices("end_date", "endDate", "to_date"),
    )
    is_half_day: bool = Field(False, validation_alias=AliasChoices("is_half_day", "isHalfDay"))
    half_day_period: Optional[HalfDayPeriod] = Field(
        None, validation_alias=AliasChoices("half_day_period", "halfDayPeriod"),
    )
    total_days: Optional[Decimal] = Field(
        None,
        validation_alias=AliasChoices("total_days", "totalDays"),
        description="Working-day count from a calendar service; defaults to calendar days.",
    )
    reason: Optional[str] = Field(None, max_length=1000)

    @field_validator("leave_type")
    @classmethod
    def normalise_leave_type(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("leave_type must not be blank.")
        return v


# ═════════════════════════════════════════════════════════════════════
# Leave Request: Response
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestOut(BaseModel):
    """Full leave request response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type: str
    policy_id: uuid.UUID
    start_date: date
    end_date: date
    total_days: Decimal
    is_half_day: bool
    half_day_period: Optional[HalfDayPeriod] = None
    status: LeaveStatus
    is_paid: Optional[bool] = None
    paid_days: Optional[Decimal] = None
    unpaid_days: Optional[Decimal] = None
    charged_days: Decimal
    paid_status_overridden: bool
    balance_shortfall: Decimal
    reason: Optional[str] = None
    submitted_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[uuid.UUID] = None
    reviewer_comments: Optional[str] = None
    revoked_at: Optional[datetime] = None
    updated_at: datetime

    # Enriched by service
    employee: Optional[EmployeeBrief] = None


# ═════════════════════════════════════════════════════════════════════
# Review / Paid status / Revoke
# ═════════════════════════════════════════════════════════════════════


class LeaveReviewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: ReviewAction
    reviewer_id: Optional[uuid.UUID] = Field(
        None, validation_alias=AliasChoices("reviewer_id", "reviewerId", "reviewed_by"),
    )
    comments: Optional[str] = Field(None, max_length=500)


class BulkReviewRequest(LeaveReviewRequest):
    request_ids: list[uuid.UUID] = Field(
        ..., min_length=1, max_length=100,
        validation_alias=AliasChoices("request_ids", "requestIds", "ids"),
    )


class BulkReviewItem(BaseModel):
    request_id: uuid.UUID
    success: bool
    status: Optional[LeaveStatus] = None
    error_kind: Optional[str] = None
    error: Optional[str] = None


class BulkReviewResult(BaseModel):
    action: ReviewAction
    succeeded: int
    failed: int
    results: list[BulkReviewItem]


class PaidStatusUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_paid: bool = Field(..., validation_alias=AliasChoices("is_paid", "isPaid"))


class LeaveRevokeRequest(BaseModel):
    """Correction of an approved request; committed days are given back."""

    model_config = ConfigDict(populate_by_name=True)

    reason: str = Field(..., min_length=5, max_length=500)
    reviewer_id: Optional[uuid.UUID] = Field(
        None, validation_alias=AliasChoices("reviewer_id", "reviewerId", "reviewed_by"),
    )


# ═════════════════════════════════════════════════════════════════════
# Leave Request Filters
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestFilters(BaseModel):
    """Query filters for listing leave requests."""

    employee_id: Optional[uuid.UUID] = None
    department: Optional[str] = None
    status: Optional[LeaveStatus] = None
    leave_type: Optional[str] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
