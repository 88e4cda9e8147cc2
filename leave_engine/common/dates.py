"""Date helpers shared by the lifecycle and reporting services."""

from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

from leave_engine.config import settings


def local_today() -> date:
    """Current date in the organisation's timezone (settings.TIMEZONE)."""
    return datetime.now(ZoneInfo(settings.TIMEZONE)).date()
