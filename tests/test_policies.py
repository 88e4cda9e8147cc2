"""Policy registry tests: creation, alias normalisation, activation rules,
partial updates and reference-guarded deletion.

Tests run against SQLite via the shared conftest.py fixtures.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.exceptions import (
    DuplicatePolicyError,
    NotFoundException,
    ReferencedEntityError,
    ValidationException,
)
from leave_engine.leave.schemas import LeaveRequestCreate
from leave_engine.leave.service import RequestLifecycle
from leave_engine.ledger.service import BalanceLedger
from leave_engine.policies.schemas import PolicyCreate, PolicyUpdate
from leave_engine.policies.service import PolicyRegistry
from tests.conftest import seed_employee, seed_policy


# ═════════════════════════════════════════════════════════════════════
# 1. Schema normalisation
# ═════════════════════════════════════════════════════════════════════


class TestPolicySchemas:

    def test_camel_case_aliases_normalised(self):
        data = PolicyCreate.model_validate({
            "leaveType": " Annual ",
            "maxDaysPerYear": "25",
            "carryForwardDays": "5",
            "maxDaysPerRequest": 10,
            "requiresApproval": False,
        })
        assert data.leave_type == "annual"
        assert data.total_days_per_year == Decimal("25")
        assert data.max_carry_forward_days == Decimal("5")
        assert data.max_days_per_request == Decimal("10")
        assert data.requires_approval is False

    def test_carry_forward_flag_inferred_from_days(self):
        data = PolicyCreate(leave_type="sick", total_days_per_year=Decimal("10"),
                            max_carry_forward_days=Decimal("3"))
        assert data.can_carry_forward is True

        data = PolicyCreate(leave_type="sick", total_days_per_year=Decimal("10"))
        assert data.can_carry_forward is False

    def test_explicit_flag_wins_over_inference(self):
        data = PolicyCreate(
            leave_type="sick",
            total_days_per_year=Decimal("10"),
            max_carry_forward_days=Decimal("3"),
            can_carry_forward=False,
        )
        assert data.can_carry_forward is False

    def test_blank_leave_type_rejected(self):
        with pytest.raises(ValidationError):
            PolicyCreate(leave_type="   ", total_days_per_year=Decimal("10"))


# ═════════════════════════════════════════════════════════════════════
# 2. Create / activate
# ═════════════════════════════════════════════════════════════════════


class TestCreatePolicy:

    async def test_create_policy_active_by_default(self, db: AsyncSession):
        policy = await PolicyRegistry.create_policy(
            db, PolicyCreate(leave_type="annual", total_days_per_year=Decimal("25")),
        )
        assert policy.is_active is True
        assert policy.leave_type == "annual"
        assert policy.total_days_per_year == Decimal("25")

    async def test_duplicate_active_policy_rejected(self, db: AsyncSession):
        await seed_policy(db, leave_type="annual")
        with pytest.raises(DuplicatePolicyError) as exc_info:
            await PolicyRegistry.create_policy(
                db, PolicyCreate(leave_type="ANNUAL", total_days_per_year=Decimal("20")),
            )
        assert exc_info.value.kind.value == "duplicate-policy"

    async def test_inactive_policy_does_not_block_new_one(self, db: AsyncSession):
        await seed_policy(db, leave_type="annual", is_active=False)
        policy = await PolicyRegistry.create_policy(
            db, PolicyCreate(leave_type="annual", total_days_per_year=Decimal("20")),
        )
        assert policy.is_active is True

    async def test_carry_forward_above_total_rejected(self, db: AsyncSession):
        with pytest.raises(ValidationException) as exc_info:
            await PolicyRegistry.create_policy(
                db,
                PolicyCreate(
                    leave_type="annual",
                    total_days_per_year=Decimal("5"),
                    max_carry_forward_days=Decimal("6"),
                ),
            )
        assert "max_carry_forward_days" in exc_info.value.errors

    async def test_negative_total_rejected(self, db: AsyncSession):
        with pytest.raises(ValidationException):
            await PolicyRegistry.create_policy(
                db, PolicyCreate(leave_type="annual", total_days_per_year=Decimal("-1")),
            )

    async def test_activate_blocked_by_other_active(self, db: AsyncSession):
        await seed_policy(db, leave_type="annual")
        old = await seed_policy(db, leave_type="annual", is_active=False)
        with pytest.raises(DuplicatePolicyError):
            await PolicyRegistry.set_active(db, old.id, True)

    async def test_deactivate_then_reactivate(self, db: AsyncSession):
        policy = await seed_policy(db, leave_type="annual")
        await PolicyRegistry.set_active(db, policy.id, False)
        assert (await PolicyRegistry.find_active_policy(db, "annual")) is None

        await PolicyRegistry.set_active(db, policy.id, True)
        active = await PolicyRegistry.get_active_policy(db, "annual")
        assert active.id == policy.id

    async def test_get_active_policy_missing(self, db: AsyncSession):
        with pytest.raises(NotFoundException):
            await PolicyRegistry.get_active_policy(db, "sabbatical")


# ═════════════════════════════════════════════════════════════════════
# 3. Update
# ═════════════════════════════════════════════════════════════════════


class TestUpdatePolicy:

    async def test_partial_update_keeps_other_fields(self, db: AsyncSession):
        policy = await seed_policy(db, total_days_per_year=Decimal("25"), min_notice_days=3)
        updated = await PolicyRegistry.update_policy(
            db, policy.id, PolicyUpdate(total_days_per_year=Decimal("30")),
        )
        assert updated.total_days_per_year == Decimal("30")
        assert updated.min_notice_days == 3

    async def test_update_validates_merged_limits(self, db: AsyncSession):
        policy = await seed_policy(
            db,
            total_days_per_year=Decimal("25"),
            can_carry_forward=True,
            max_carry_forward_days=Decimal("10"),
        )
        with pytest.raises(ValidationException):
            await PolicyRegistry.update_policy(
                db, policy.id, PolicyUpdate(total_days_per_year=Decimal("8")),
            )

    async def test_leave_type_change_collision(self, db: AsyncSession):
        await seed_policy(db, leave_type="annual")
        sick = await seed_policy(db, leave_type="sick")
        with pytest.raises(DuplicatePolicyError):
            await PolicyRegistry.update_policy(
                db, sick.id, PolicyUpdate(leave_type="Annual"),
            )

    async def test_unreferenced_policy_can_be_renamed(self, db: AsyncSession):
        policy = await seed_policy(db, leave_type="annual")
        updated = await PolicyRegistry.update_policy(
            db, policy.id, PolicyUpdate(leave_type="Vacation"),
        )
        assert updated.leave_type == "vacation"

    async def test_rename_blocked_while_ledger_uses_policy(self, db: AsyncSession):
        policy = await seed_policy(db, leave_type="annual")
        emp = await seed_employee(db)
        submitted = await RequestLifecycle.submit(
            db,
            LeaveRequestCreate(
                employee_id=emp.id, leave_type="annual",
                start_date=date(2026, 3, 2), end_date=date(2026, 3, 21),
            ),
            today=date(2026, 1, 1),
        )
        await RequestLifecycle.approve(db, submitted.id)

        with pytest.raises(ReferencedEntityError) as exc_info:
            await PolicyRegistry.update_policy(
                db, policy.id, PolicyUpdate(leave_type="vacation"),
            )
        assert exc_info.value.references == {"balances": 1, "requests": 1}

        unchanged = await PolicyRegistry.get_policy(db, policy.id)
        assert unchanged.leave_type == "annual"
        balance = await BalanceLedger.get_balance(db, emp.id, "annual", 2026)
        assert balance.used == Decimal("20")
        assert balance.remaining == Decimal("5")

    async def test_other_fields_still_editable_while_referenced(self, db: AsyncSession):
        policy = await seed_policy(db, leave_type="annual")
        emp = await seed_employee(db)
        await BalanceLedger.get_balance(db, emp.id, "annual", 2026)

        updated = await PolicyRegistry.update_policy(
            db, policy.id, PolicyUpdate(leave_type="Annual", min_notice_days=2),
        )
        assert updated.leave_type == "annual"
        assert updated.min_notice_days == 2

    async def test_clearing_max_days_per_request(self, db: AsyncSession):
        policy = await seed_policy(db, max_days_per_request=Decimal("5"))
        updated = await PolicyRegistry.update_policy(
            db, policy.id, PolicyUpdate.model_validate({"maxDaysPerRequest": None}),
        )
        assert updated.max_days_per_request is None


# ═════════════════════════════════════════════════════════════════════
# 4. Delete
# ═════════════════════════════════════════════════════════════════════


class TestDeletePolicy:

    async def test_delete_unreferenced_policy(self, db: AsyncSession):
        policy = await seed_policy(db)
        await PolicyRegistry.delete_policy(db, policy.id)
        with pytest.raises(NotFoundException):
            await PolicyRegistry.get_policy(db, policy.id)

    async def test_delete_referenced_by_balance_rejected(self, db: AsyncSession):
        policy = await seed_policy(db)
        emp = await seed_employee(db)
        await BalanceLedger.get_balance(db, emp.id, "annual", date.today().year)

        with pytest.raises(ReferencedEntityError) as exc_info:
            await PolicyRegistry.delete_policy(db, policy.id)
        assert exc_info.value.references == {"balances": 1, "requests": 0}

        # Deactivation is still allowed
        deactivated = await PolicyRegistry.set_active(db, policy.id, False)
        assert deactivated.is_active is False

    async def test_list_policies_filters_by_status(self, db: AsyncSession):
        await seed_policy(db, leave_type="annual")
        await seed_policy(db, leave_type="sick", is_active=False)

        assert len(await PolicyRegistry.list_policies(db)) == 2
        active = await PolicyRegistry.list_policies(db, is_active=True)
        assert [p.leave_type for p in active] == ["annual"]
