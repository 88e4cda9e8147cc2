"""Leave policy Pydantic v2 schemas.

Policy payloads arrive under several spellings (``maxDaysPerYear`` vs
``totalDaysPerYear``, camelCase vs snake_case, ``carryForwardDays``).
The write schemas accept every known alias and normalise them into the one
canonical field set used by the engine; responses use canonical names only.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

LEAVE_TYPE = AliasChoices("leave_type", "leaveType", "type")
TOTAL_DAYS = AliasChoices(
    "total_days_per_year", "totalDaysPerYear", "maxDaysPerYear", "max_days_per_year",
)
CAN_CARRY = AliasChoices("can_carry_forward", "canCarryForward")
MAX_CARRY = AliasChoices(
    "max_carry_forward_days", "maxCarryForwardDays", "carryForwardDays", "carry_forward_days",
)
REQUIRES_APPROVAL = AliasChoices("requires_approval", "requiresApproval")
ALLOW_HALF_DAY = AliasChoices("allow_half_day", "allowHalfDay")
ALLOW_NEGATIVE = AliasChoices("allow_negative_balance", "allowNegativeBalance")
MIN_NOTICE = AliasChoices("min_notice_days", "minNoticeDays", "advanceNoticeDays")
MAX_PER_REQUEST = AliasChoices("max_days_per_request", "maxDaysPerRequest")


def _normalise_leave_type(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().lower()
    if not value:
        raise ValueError("leave_type must not be blank.")
    return value


class PolicyCreate(BaseModel):
    """Payload for creating a leave policy (created active)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    leave_type: str = Field(..., max_length=50, validation_alias=LEAVE_TYPE)
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    total_days_per_year: Decimal = Field(..., validation_alias=TOTAL_DAYS)
    can_carry_forward: Optional[bool] = Field(None, validation_alias=CAN_CARRY)
    max_carry_forward_days: Decimal = Field(Decimal("0"), ge=0, validation_alias=MAX_CARRY)
    requires_approval: bool = Field(True, validation_alias=REQUIRES_APPROVAL)
    allow_half_day: bool = Field(True, validation_alias=ALLOW_HALF_DAY)
    allow_negative_balance: bool = Field(False, validation_alias=ALLOW_NEGATIVE)
    min_notice_days: int = Field(0, ge=0, validation_alias=MIN_NOTICE)
    max_days_per_request: Optional[Decimal] = Field(None, gt=0, validation_alias=MAX_PER_REQUEST)

    normalise_leave_type = field_validator("leave_type")(_normalise_leave_type)

    @model_validator(mode="after")
    def infer_carry_forward(self) -> "PolicyCreate":
        # Sources that only send a carry-forward day count imply the flag
        if self.can_carry_forward is None:
            self.can_carry_forward = self.max_carry_forward_days > 0
        return self


class PolicyUpdate(BaseModel):
    """Partial update; only fields present in the payload are applied."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    leave_type: Optional[str] = Field(None, max_length=50, validation_alias=LEAVE_TYPE)
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    total_days_per_year: Optional[Decimal] = Field(None, validation_alias=TOTAL_DAYS)
    can_carry_forward: Optional[bool] = Field(None, validation_alias=CAN_CARRY)
    max_carry_forward_days: Optional[Decimal] = Field(None, ge=0, validation_alias=MAX_CARRY)
    requires_approval: Optional[bool] = Field(None, validation_alias=REQUIRES_APPROVAL)
    allow_half_day: Optional[bool] = Field(None, validation_alias=ALLOW_HALF_DAY)
    allow_negative_balance: Optional[bool] = Field(None, validation_alias=ALLOW_NEGATIVE)
    min_notice_days: Optional[int] = Field(None, ge=0, validation_alias=MIN_NOTICE)
    max_days_per_request: Optional[Decimal] = Field(None, gt=0, validation_alias=MAX_PER_REQUEST)

    normalise_leave_type = field_validator("leave_type")(_normalise_leave_type)


class PolicyStatusUpdate(BaseModel):
    is_active: bool = Field(..., validation_alias=AliasChoices("is_active", "isActive"))


class PolicyOut(BaseModel):
    """Canonical policy representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    leave_type: str
    name: Optional[str] = None
    description: Optional[str] = None
    total_days_per_year: Decimal
    can_carry_forward: bool
    max_carry_forward_days: Decimal
    requires_approval: bool
    allow_half_day: bool
    allow_negative_balance: bool
    min_notice_days: int
    max_days_per_request: Optional[Decimal] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
