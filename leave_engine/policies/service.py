"""Policy registry: at most one active leave policy per leave type.

Policies configure the default entitlement the ledger materialises and the
constraints a submission is validated against. Deactivation keeps history;
deletion is only allowed while nothing references the policy.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.events import utcnow
from leave_engine.common.exceptions import (
    DuplicatePolicyError,
    NotFoundException,
    ReferencedEntityError,
    ValidationException,
)
from leave_engine.policies.models import LeavePolicy
from leave_engine.policies.schemas import PolicyCreate, PolicyUpdate

logger = logging.getLogger(__name__)

# Columns a patch may explicitly clear
_NULLABLE_FIELDS = {"name", "description", "max_days_per_request"}


class PolicyRegistry:
    """Async policy operations: create, patch, activate/deactivate, delete."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _validate_limits(total_days: Decimal, max_carry: Decimal) -> None:
        errors: dict[str, list[str]] = {}
        if total_days < 0:
            errors["total_days_per_year"] = ["Must be zero or greater."]
        if max_carry < 0:
            errors["max_carry_forward_days"] = ["Must be zero or greater."]
        elif max_carry > total_days:
            errors["max_carry_forward_days"] = [
                f"Cannot exceed total_days_per_year ({total_days})."
            ]
        if errors:
            raise ValidationException(errors)

    @staticmethod
    async def _ensure_no_other_active(
        db: AsyncSession,
        leave_type: str,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(LeavePolicy.id).where(
            LeavePolicy.leave_type == leave_type,
            LeavePolicy.is_active.is_(True),
        )
        if exclude_id is not None:
            query = query.where(LeavePolicy.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise DuplicatePolicyError(leave_type)

    @staticmethod
    async def _reference_counts(db: AsyncSession, policy_id: uuid.UUID) -> dict[str, int]:
        """Balances and requests pointing at a policy."""
        # Local imports: ledger and leave models import this module's model
        from leave_engine.leave.models import LeaveRequest
        from leave_engine.ledger.models import LeaveBalance

        balance_refs = (
            await db.execute(
                select(func.count()).select_from(LeaveBalance).where(
                    LeaveBalance.policy_id == policy_id,
                )
            )
        ).scalar_one()
        request_refs = (
            await db.execute(
                select(func.count()).select_from(LeaveRequest).where(
                    LeaveRequest.policy_id == policy_id,
                )
            )
        ).scalar_one()
        return {"balances": balance_refs, "requests": request_refs}

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_policy(db: AsyncSession, policy_id: uuid.UUID) -> LeavePolicy:
        policy = await db.get(LeavePolicy, policy_id)
        if policy is None:
            raise NotFoundException("LeavePolicy", str(policy_id))
        return policy

    @staticmethod
    async def find_active_policy(db: AsyncSession, leave_type: str) -> Optional[LeavePolicy]:
        result = await db.execute(
            select(LeavePolicy).where(
                LeavePolicy.leave_type == leave_type.strip().lower(),
                LeavePolicy.is_active.is_(True),
            )
        )
        return result.scalars().first()

    @staticmethod
    async def get_active_policy(db: AsyncSession, leave_type: str) -> LeavePolicy:
        policy = await PolicyRegistry.find_active_policy(db, leave_type)
        if policy is None:
            raise NotFoundException("Active LeavePolicy", leave_type)
        return policy

    @staticmethod
    async def list_policies(
        db: AsyncSession,
        *,
        is_active: Optional[bool] = None,
    ) -> list[LeavePolicy]:
        query = select(LeavePolicy).order_by(LeavePolicy.leave_type, LeavePolicy.created_at)
        if is_active is not None:
            query = query.where(LeavePolicy.is_active == is_active)
        result = await db.execute(query)
        return list(result.scalars().all())

    # ─────────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def create_policy(db: AsyncSession, data: PolicyCreate) -> LeavePolicy:
        """Create an active policy; DuplicatePolicyError if the type is taken."""
        PolicyRegistry._validate_limits(data.total_days_per_year, data.max_carry_forward_days)
        await PolicyRegistry._ensure_no_other_active(db, data.leave_type)

        policy = LeavePolicy(**data.model_dump(), is_active=True)
        db.add(policy)
        await db.flush()

        logger.info(
            "Created %s policy %s (%s days/year)",
            policy.leave_type, policy.id, policy.total_days_per_year,
        )
        return policy

    @staticmethod
    async def update_policy(
        db: AsyncSession,
        policy_id: uuid.UUID,
        patch: PolicyUpdate,
    ) -> LeavePolicy:
        """Apply a partial update, validating the merged limits."""
        policy = await PolicyRegistry.get_policy(db, policy_id)
        changes = {
            field: value
            for field, value in patch.model_dump(exclude_unset=True).items()
            if value is not None or field in _NULLABLE_FIELDS
        }

        total = changes.get("total_days_per_year", policy.total_days_per_year)
        max_carry = changes.get("max_carry_forward_days", policy.max_carry_forward_days)
        PolicyRegistry._validate_limits(total, max_carry)

        new_type = changes.get("leave_type")
        if new_type and new_type != policy.leave_type:
            # Balances and requests are keyed by the leave_type string
            refs = await PolicyRegistry._reference_counts(db, policy.id)
            if any(refs.values()):
                raise ReferencedEntityError("LeavePolicy", policy.id, refs)
            if policy.is_active:
                await PolicyRegistry._ensure_no_other_active(db, new_type, exclude_id=policy.id)

        for field, value in changes.items():
            setattr(policy, field, value)
        policy.updated_at = utcnow()
        await db.flush()

        logger.info("Updated policy %s: %s", policy.id, sorted(changes))
        return policy

    @staticmethod
    async def set_active(
        db: AsyncSession,
        policy_id: uuid.UUID,
        active: bool,
    ) -> LeavePolicy:
        """Flip is_active. Balances and requests are left untouched."""
        policy = await PolicyRegistry.get_policy(db, policy_id)
        if policy.is_active == active:
            return policy
        if active:
            await PolicyRegistry._ensure_no_other_active(
                db, policy.leave_type, exclude_id=policy.id,
            )
        policy.is_active = active
        policy.updated_at = utcnow()
        await db.flush()

        logger.info("Policy %s %s", policy.id, "activated" if active else "deactivated")
        return policy

    @staticmethod
    async def delete_policy(db: AsyncSession, policy_id: uuid.UUID) -> None:
        """Hard delete; ReferencedEntityError while balances or requests use it."""
        policy = await PolicyRegistry.get_policy(db, policy_id)

        refs = await PolicyRegistry._reference_counts(db, policy_id)
        if any(refs.values()):
            raise ReferencedEntityError("LeavePolicy", policy_id, refs)

        await db.delete(policy)
        await db.flush()
        logger.info("Deleted policy %s (%s)", policy_id, policy.leave_type)
