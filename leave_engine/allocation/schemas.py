"""Allocation value objects."""

from __future__ import annotations

import uuid
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class PaidUnpaidSplit(BaseModel):
    model_config = ConfigDict(frozen=True)

    paid_days: Decimal
    unpaid_days: Decimal
    is_paid: bool


class MonthlyAllocation(BaseModel):
    """Portion of one approved request that falls inside a calendar month."""

    model_config = ConfigDict(frozen=True)

    employee_id: uuid.UUID
    leave_type: str
    year: int
    month: int
    paid_days: Decimal
    unpaid_days: Decimal
    total_days: Decimal
