"""Outbox event Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class LeaveEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    event_type: str
    entity_type: str
    entity_id: uuid.UUID
    employee_id: Optional[uuid.UUID] = None
    actor_id: Optional[uuid.UUID] = None
    payload: dict[str, Any]
    created_at: datetime
    delivered_at: Optional[datetime] = None
