"""Leave policy ORM model."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from leave_engine.common.events import utcnow
from leave_engine.database import Base


class LeavePolicy(Base):
    __tablename__ = "leave_policies"
    __table_args__ = (
        # At most one active policy per leave type
        sa.Index(
            "uq_leave_policies_active_type",
            "leave_type",
            unique=True,
            postgresql_where=sa.text("is_active"),
            sqlite_where=sa.text("is_active = 1"),
        ),
        sa.CheckConstraint("total_days_per_year >= 0", name="ck_policy_total_days"),
        sa.CheckConstraint(
            "max_carry_forward_days <= total_days_per_year",
            name="ck_policy_carry_forward",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    leave_type: Mapped[str] = mapped_column(sa.String(50), nullable=False, index=True)
    name: Mapped[Optional[str]] = mapped_column(sa.String(100))
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    total_days_per_year: Mapped[Decimal] = mapped_column(
        sa.Numeric(7, 2), nullable=False, default=Decimal("0")
    )
    can_carry_forward: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    max_carry_forward_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(7, 2), nullable=False, default=Decimal("0")
    )
    requires_approval: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    allow_half_day: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    allow_negative_balance: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    min_notice_days: Mapped[int] = mapped_column(sa.Integer, default=0)
    max_days_per_request: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(7, 2))
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow
    )

    def __repr__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"<LeavePolicy {self.leave_type} {state}>"
