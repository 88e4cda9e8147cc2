"""Leave balance ORM model."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from leave_engine.common.events import utcnow
from leave_engine.database import Base


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        sa.UniqueConstraint(
            "employee_id", "leave_type", "year",
            name="uq_leave_balances_employee_type_year",
        ),
        sa.CheckConstraint("used >= 0", name="ck_leave_balances_used"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    leave_type: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    policy_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_policies.id"),
        nullable=False,
        index=True,
    )
    base_entitlement: Mapped[Decimal] = mapped_column(
        sa.Numeric(7, 2), nullable=False, default=Decimal("0")
    )
    carried_forward: Mapped[Decimal] = mapped_column(
        sa.Numeric(7, 2), nullable=False, default=Decimal("0")
    )
    adjusted: Mapped[Decimal] = mapped_column(
        sa.Numeric(7, 2), nullable=False, default=Decimal("0")
    )
    used: Mapped[Decimal] = mapped_column(
        sa.Numeric(7, 2), nullable=False, default=Decimal("0")
    )
    version: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow
    )

    # Every UPDATE checks and bumps `version`; a mismatch raises StaleDataError
    __mapper_args__ = {"version_id_col": version}

    @property
    def entitlement(self) -> Decimal:
        return self.base_entitlement + self.carried_forward + self.adjusted

    @property
    def remaining(self) -> Decimal:
        return self.entitlement - self.used

    @property
    def key(self) -> tuple[uuid.UUID, str, int]:
        return (self.employee_id, self.leave_type, self.year)

    def __repr__(self) -> str:
        return (
            f"<LeaveBalance {self.employee_id}/{self.leave_type}/{self.year} "
            f"used={self.used} of {self.entitlement}>"
        )
