"""Directory Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict


class EmployeeBrief(BaseModel):
    """Minimal employee info embedded in leave responses and reports."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    full_name: str
    email: str
    department: Optional[str] = None
