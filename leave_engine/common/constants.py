"""Enums and constants for the leave engine, matching PostgreSQL ENUM types."""

from __future__ import annotations

import calendar
import enum
from decimal import Decimal


# ── Leave requests ──────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


# Statuses that occupy the calendar for overlap checks
ACTIVE_LEAVE_STATUSES = (LeaveStatus.pending, LeaveStatus.approved)


class HalfDayPeriod(str, enum.Enum):
    morning = "morning"
    afternoon = "afternoon"


class ReviewAction(str, enum.Enum):
    approve = "approve"
    reject = "reject"


# ── Transition events ───────────────────────────────────────────────

class LeaveEventType(str, enum.Enum):
    submitted = "submitted"
    approved = "approved"
    rejected = "rejected"
    paid_status_changed = "paid_status_changed"
    revoked = "revoked"
    balance_adjusted = "balance_adjusted"


# ── Misc constants ──────────────────────────────────────────────────

HALF_DAY = Decimal("0.5")
MAX_ADJUSTMENT_DAYS = Decimal("365")
MONTH_NAMES: dict[int, str] = {m: calendar.month_name[m] for m in range(1, 13)}
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
