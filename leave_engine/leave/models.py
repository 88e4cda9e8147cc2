"""Leave request ORM model."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from leave_engine.common.constants import HalfDayPeriod, LeaveStatus
from leave_engine.common.events import utcnow
from leave_engine.database import Base


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.CheckConstraint("end_date >= start_date", name="ck_leave_requests_dates"),
        sa.CheckConstraint("total_days > 0", name="ck_leave_requests_total_days"),
        sa.Index("ix_leave_requests_employee_status", "employee_id", "status"),
        sa.Index("ix_leave_requests_dates", "start_date", "end_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    leave_type: Mapped[str] = mapped_column(sa.String(50), nullable=False, index=True)
    policy_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_policies.id"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    total_days: Mapped[Decimal] = mapped_column(sa.Numeric(7, 2), nullable=False)
    is_half_day: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    half_day_period: Mapped[Optional[HalfDayPeriod]] = mapped_column(
        sa.Enum(HalfDayPeriod, name="half_day_period")
    )
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status"),
        nullable=False,
        default=LeaveStatus.pending,
    )

    # Set at approval; paid/unpaid are the day-level split, is_paid the
    # request-level flag a reviewer may override afterwards.
    is_paid: Mapped[Optional[bool]] = mapped_column(sa.Boolean)
    paid_days: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(7, 2))
    unpaid_days: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(7, 2))
    charged_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(7, 2), nullable=False, default=Decimal("0")
    )
    paid_status_overridden: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    balance_shortfall: Mapped[Decimal] = mapped_column(
        sa.Numeric(7, 2), nullable=False, default=Decimal("0")
    )

    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    submitted_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    reviewer_comments: Mapped[Optional[str]] = mapped_column(sa.Text)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow
    )

    @property
    def ledger_year(self) -> int:
        """Balance year the request is charged against."""
        return self.start_date.year

    def __repr__(self) -> str:
        return (
            f"<LeaveRequest {self.leave_type} {self.start_date}..{self.end_date} "
            f"{self.status.value if self.status else None}>"
        )
