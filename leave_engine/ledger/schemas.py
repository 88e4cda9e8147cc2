"""Ledger Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from leave_engine.common.constants import MAX_ADJUSTMENT_DAYS


class BalanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type: str
    year: int
    policy_id: uuid.UUID
    base_entitlement: Decimal
    carried_forward: Decimal
    adjusted: Decimal
    entitlement: Decimal
    used: Decimal
    remaining: Decimal
    version: int
    updated_at: datetime


class AvailabilityOut(BaseModel):
    employee_id: uuid.UUID
    leave_type: str
    year: int
    requested_days: Decimal
    remaining: Decimal
    shortfall: Decimal
    sufficient: bool


class BalanceAdjustRequest(BaseModel):
    """Manual credit (positive) or debit (negative) against the entitlement."""

    model_config = ConfigDict(populate_by_name=True)

    days: Decimal = Field(..., validation_alias=AliasChoices("days", "adjustment"))
    reason: str = Field(..., min_length=5, max_length=500)
    year: Optional[int] = Field(None, ge=1900, le=9999)
    adjusted_by: Optional[uuid.UUID] = Field(
        None, validation_alias=AliasChoices("adjusted_by", "adjustedBy", "actor_id"),
    )

    @field_validator("days")
    @classmethod
    def days_within_limit(cls, v: Decimal) -> Decimal:
        if v == 0:
            raise ValueError("Adjustment must be non-zero.")
        if abs(v) > MAX_ADJUSTMENT_DAYS:
            raise ValueError(f"Adjustment cannot exceed {MAX_ADJUSTMENT_DAYS} days.")
        return v

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 5:
            raise ValueError("Reason must be at least 5 characters.")
        return v


class RolloverRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_year: int = Field(..., ge=1900, le=9999, validation_alias=AliasChoices("from_year", "fromYear"))
    to_year: int = Field(..., ge=1900, le=9999, validation_alias=AliasChoices("to_year", "toYear"))

    @model_validator(mode="after")
    def years_ascend(self) -> "RolloverRequest":
        if self.to_year <= self.from_year:
            raise ValueError("to_year must be after from_year.")
        return self


class RolloverAllRequest(RolloverRequest):
    leave_type: str = Field(..., max_length=50, validation_alias=AliasChoices("leave_type", "leaveType"))

    @field_validator("leave_type")
    @classmethod
    def normalise_leave_type(cls, v: str) -> str:
        return v.strip().lower()


class RolloverSummary(BaseModel):
    leave_type: str
    from_year: int
    to_year: int
    balances_rolled: int
    balances: list[BalanceOut]
