"""Balance ledger: authoritative used/remaining days per (employee, leave type, year).

Rows are materialised lazily from the active policy the first time a key is
touched. Committed days only change through apply_approval/reverse (driven
by the request lifecycle) and adjust_balance; every write goes through the
row's version column so a concurrent writer surfaces as
ConcurrencyConflictError instead of a lost update.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from leave_engine.common.constants import LeaveEventType
from leave_engine.common.events import emit_event, utcnow
from leave_engine.common.exceptions import ConcurrencyConflictError, ValidationException
from leave_engine.ledger.models import LeaveBalance
from leave_engine.policies.models import LeavePolicy
from leave_engine.policies.service import PolicyRegistry

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class BalanceLedger:
    """Async ledger operations. All methods take the caller's session."""

    # ─────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _find(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type: str,
        year: int,
        *,
        for_update: bool = False,
    ) -> Optional[LeaveBalance]:
        query = select(LeaveBalance).where(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.leave_type == leave_type,
            LeaveBalance.year == year,
        )
        if for_update:
            # Locked reads must see the committed row, not the identity map
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def _flush(db: AsyncSession, key: tuple) -> None:
        """Flush pending ledger writes, mapping races to ConcurrencyConflictError.

        The caller owns recovery: approvals run inside a SAVEPOINT that is
        rolled back before the retry, plain requests roll back in get_db.
        """
        try:
            await db.flush()
        except (StaleDataError, IntegrityError) as exc:
            logger.warning("Ledger write conflict on %s: %s", key, exc.__class__.__name__)
            raise ConcurrencyConflictError(key) from exc

    @staticmethod
    async def _materialise(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type: str,
        year: int,
        policy: LeavePolicy,
    ) -> LeaveBalance:
        balance = LeaveBalance(
            employee_id=employee_id,
            leave_type=leave_type,
            year=year,
            policy_id=policy.id,
            base_entitlement=policy.total_days_per_year,
            carried_forward=ZERO,
            adjusted=ZERO,
            used=ZERO,
        )
        db.add(balance)
        await BalanceLedger._flush(db, (employee_id, leave_type, year))
        logger.info(
            "Materialised %s balance for %s/%s: %s days",
            leave_type, employee_id, year, policy.total_days_per_year,
        )
        return balance

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type: str,
        year: int,
        *,
        for_update: bool = False,
    ) -> LeaveBalance:
        """Return the balance row, creating it from the active policy if absent.

        Raises NotFoundException when no row exists and the leave type has no
        active policy.
        """
        leave_type = leave_type.strip().lower()
        balance = await BalanceLedger._find(
            db, employee_id, leave_type, year, for_update=for_update,
        )
        if balance is not None:
            return balance
        policy = await PolicyRegistry.get_active_policy(db, leave_type)
        return await BalanceLedger._materialise(db, employee_id, leave_type, year, policy)

    @staticmethod
    async def list_balances(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        year: Optional[int] = None,
    ) -> list[LeaveBalance]:
        query = select(LeaveBalance).where(LeaveBalance.employee_id == employee_id)
        if year is not None:
            query = query.where(LeaveBalance.year == year)
        result = await db.execute(
            query.order_by(LeaveBalance.year.desc(), LeaveBalance.leave_type)
        )
        return list(result.scalars().all())

    @staticmethod
    async def peek_remaining(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type: str,
        year: int,
    ) -> Decimal:
        """Remaining days without creating a row.

        An untouched key is read as the active policy's full entitlement.
        """
        leave_type = leave_type.strip().lower()
        balance = await BalanceLedger._find(db, employee_id, leave_type, year)
        if balance is not None:
            return balance.remaining
        policy = await PolicyRegistry.get_active_policy(db, leave_type)
        return policy.total_days_per_year

    @staticmethod
    async def check_availability(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type: str,
        year: int,
        days: Decimal,
    ) -> Decimal:
        """Shortfall for `days` against the current remaining; 0 if enough."""
        remaining = await BalanceLedger.peek_remaining(db, employee_id, leave_type, year)
        return max(ZERO, days - remaining)

    # ─────────────────────────────────────────────────────────────────
    # Mutations driven by the request lifecycle
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def apply_approval(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type: str,
        year: int,
        days: Decimal,
    ) -> LeaveBalance:
        """Commit `days` as used. The row is read with FOR UPDATE."""
        balance = await BalanceLedger.get_balance(
            db, employee_id, leave_type, year, for_update=True,
        )
        if days > 0:
            balance.used = balance.used + days
            balance.updated_at = utcnow()
            await BalanceLedger._flush(db, balance.key)
            logger.info(
                "Charged %s day(s) to %s/%s/%s; remaining %s",
                days, employee_id, leave_type, year, balance.remaining,
            )
        return balance

    @staticmethod
    async def reverse(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type: str,
        year: int,
        days: Decimal,
    ) -> Optional[LeaveBalance]:
        """Give back previously committed days. No-op for zero days."""
        if days <= 0:
            return None
        balance = await BalanceLedger.get_balance(
            db, employee_id, leave_type, year, for_update=True,
        )
        balance.used = max(ZERO, balance.used - days)
        balance.updated_at = utcnow()
        await BalanceLedger._flush(db, balance.key)
        logger.info(
            "Reversed %s day(s) on %s/%s/%s; remaining %s",
            days, employee_id, leave_type, year, balance.remaining,
        )
        return balance

    # ─────────────────────────────────────────────────────────────────
    # Administrative mutations
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def adjust_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type: str,
        year: int,
        days: Decimal,
        reason: str,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveBalance:
        """Manual credit or debit of the entitlement, recorded as an event.

        A debit may not take remaining below zero unless the balance's
        policy allows a negative balance.
        """
        balance = await BalanceLedger.get_balance(
            db, employee_id, leave_type, year, for_update=True,
        )
        previous = balance.remaining
        if days < 0 and previous + days < 0:
            policy = await PolicyRegistry.get_policy(db, balance.policy_id)
            if not policy.allow_negative_balance:
                raise ValidationException({
                    "days": [
                        f"Debit would leave {previous + days} day(s); the "
                        f"{balance.leave_type} policy does not allow a negative balance."
                    ],
                })
        balance.adjusted = balance.adjusted + days
        balance.updated_at = utcnow()
        await BalanceLedger._flush(db, balance.key)

        await emit_event(
            db,
            event_type=LeaveEventType.balance_adjusted,
            entity_type="leave_balance",
            entity_id=balance.id,
            employee_id=employee_id,
            actor_id=actor_id,
            payload={
                "leave_type": balance.leave_type,
                "year": year,
                "days": str(days),
                "reason": reason,
                "previous_remaining": str(previous),
                "remaining": str(balance.remaining),
            },
        )
        logger.info(
            "Adjusted %s/%s/%s by %s day(s): %s",
            employee_id, balance.leave_type, year, days, reason,
        )
        return balance

    @staticmethod
    async def rollover_year(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type: str,
        from_year: int,
        to_year: int,
    ) -> LeaveBalance:
        """Open `to_year` with the policy entitlement plus the capped carry.

        carry = min(max(remaining(from_year), 0), max_carry_forward_days) when
        the policy carries forward, else 0. An existing `to_year` row has its
        base and carry reset; used and adjusted are kept.
        """
        if to_year <= from_year:
            raise ValidationException({"to_year": ["Must be after from_year."]})

        leave_type = leave_type.strip().lower()
        policy = await PolicyRegistry.get_active_policy(db, leave_type)

        source = await BalanceLedger._find(db, employee_id, leave_type, from_year)
        remaining = source.remaining if source is not None else policy.total_days_per_year

        carry = ZERO
        if policy.can_carry_forward:
            carry = min(max(remaining, ZERO), policy.max_carry_forward_days)

        target = await BalanceLedger._find(
            db, employee_id, leave_type, to_year, for_update=True,
        )
        if target is None:
            target = LeaveBalance(
                employee_id=employee_id,
                leave_type=leave_type,
                year=to_year,
                policy_id=policy.id,
                carried_forward=carry,
                base_entitlement=policy.total_days_per_year,
                adjusted=ZERO,
                used=ZERO,
            )
            db.add(target)
        else:
            target.policy_id = policy.id
            target.base_entitlement = policy.total_days_per_year
            target.carried_forward = carry
            target.updated_at = utcnow()
        await BalanceLedger._flush(db, (employee_id, leave_type, to_year))

        logger.info(
            "Rolled %s for %s from %s to %s: carried %s of %s remaining",
            leave_type, employee_id, from_year, to_year, carry, remaining,
        )
        return target

    @staticmethod
    async def rollover_all(
        db: AsyncSession,
        leave_type: str,
        from_year: int,
        to_year: int,
    ) -> list[LeaveBalance]:
        """Roll every `from_year` balance of the leave type into `to_year`."""
        leave_type = leave_type.strip().lower()
        result = await db.execute(
            select(LeaveBalance.employee_id).where(
                LeaveBalance.leave_type == leave_type,
                LeaveBalance.year == from_year,
            )
        )
        employee_ids = [row[0] for row in result.all()]

        rolled = [
            await BalanceLedger.rollover_year(db, emp_id, leave_type, from_year, to_year)
            for emp_id in employee_ids
        ]
        logger.info(
            "Year-end rollover of %s %s -> %s: %d balance(s)",
            leave_type, from_year, to_year, len(rolled),
        )
        return rolled
