"""Leave request lifecycle: submit, approve/reject, paid-status override, revoke.

States: pending → approved | rejected. An approved request may be revoked
(approved → rejected) as a correction, which gives its committed days back
to the ledger. Every transition records an outbox event.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from leave_engine.allocation.service import DayAllocator
from leave_engine.common.constants import (
    ACTIVE_LEAVE_STATUSES,
    HALF_DAY,
    LeaveEventType,
    LeaveStatus,
    ReviewAction,
)
from leave_engine.common.dates import local_today
from leave_engine.common.events import emit_event, utcnow
from leave_engine.common.exceptions import (
    ConcurrencyConflictError,
    EngineError,
    InsufficientBalanceError,
    InvalidStateError,
    NotFoundException,
    OverlapError,
    PolicyViolationError,
    ValidationException,
)
from leave_engine.common.pagination import PaginationParams, paginate
from leave_engine.config import settings
from leave_engine.directory.service import EmployeeDirectory
from leave_engine.leave.models import LeaveRequest
from leave_engine.leave.schemas import (
    BulkReviewItem,
    BulkReviewResult,
    LeaveRequestCreate,
    LeaveRequestFilters,
    LeaveRequestOut,
)
from leave_engine.ledger.service import BalanceLedger
from leave_engine.policies.models import LeavePolicy
from leave_engine.policies.service import PolicyRegistry

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ENTITY = "leave_request"


class RequestLifecycle:
    """Async leave request state machine over the caller's session."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _resolve_total_days(data: LeaveRequestCreate) -> Decimal:
        """Validate the date range and return the day count to charge."""
        errors: dict[str, list[str]] = {}
        if data.end_date < data.start_date:
            errors["end_date"] = ["end_date must be on or after start_date."]
        if data.is_half_day:
            if data.start_date != data.end_date:
                errors["is_half_day"] = ["A half-day request must cover a single date."]
            if data.half_day_period is None:
                errors["half_day_period"] = ["half_day_period is required for a half-day request."]
        if errors:
            raise ValidationException(errors)

        span = DayAllocator.count_calendar_days(
            data.start_date, data.end_date, data.is_half_day,
        )
        if data.total_days is None:
            return span
        if data.total_days <= 0 or data.total_days > span:
            raise ValidationException(
                {"total_days": [f"Must be greater than 0 and at most {span}."]}
            )
        if data.total_days % HALF_DAY != 0:
            raise ValidationException({"total_days": ["Must be a multiple of 0.5."]})
        return data.total_days

    @staticmethod
    def _check_policy(
        policy: LeavePolicy,
        data: LeaveRequestCreate,
        total_days: Decimal,
        today: date,
    ) -> None:
        if data.is_half_day and not policy.allow_half_day:
            raise PolicyViolationError(
                "half_day_not_allowed",
                f"Half-day requests are not allowed for {policy.leave_type} leave.",
            )
        if policy.min_notice_days > 0:
            notice = (data.start_date - today).days
            if notice < policy.min_notice_days:
                raise PolicyViolationError(
                    "insufficient_notice",
                    f"{policy.leave_type} leave requires at least "
                    f"{policy.min_notice_days} day(s) advance notice; got {notice}.",
                )
        if policy.max_days_per_request is not None and total_days > policy.max_days_per_request:
            raise PolicyViolationError(
                "max_days_exceeded",
                f"{policy.leave_type} leave allows at most "
                f"{policy.max_days_per_request} day(s) per request.",
            )

    @staticmethod
    async def _find_overlaps(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: date,
        end: date,
    ) -> list[uuid.UUID]:
        result = await db.execute(
            select(LeaveRequest.id).where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status.in_(ACTIVE_LEAVE_STATUSES),
                LeaveRequest.start_date <= end,
                LeaveRequest.end_date >= start,
            )
        )
        return [row[0] for row in result.all()]

    @staticmethod
    async def _load(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> LeaveRequest:
        query = select(LeaveRequest).where(LeaveRequest.id == request_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        request = (await db.execute(query)).scalars().first()
        if request is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return request

    @staticmethod
    async def _with_ledger_retry(
        db: AsyncSession,
        operation: Callable[..., Awaitable[LeaveRequest]],
        *args: Any,
        **kwargs: Any,
    ) -> LeaveRequest:
        """Run a ledger-touching transition in a SAVEPOINT, retrying stale writes.

        Only ConcurrencyConflictError is retried; each attempt starts from a
        fresh read because the failed savepoint expires what it touched.
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(ConcurrencyConflictError),
            stop=stop_after_attempt(settings.LEDGER_MAX_RETRIES),
            wait=wait_exponential(multiplier=0.05, max=1),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                async with db.begin_nested():
                    request = await operation(db, *args, **kwargs)
        return request

    @staticmethod
    def _mark_reviewed(
        request: LeaveRequest,
        status: LeaveStatus,
        reviewer_id: Optional[uuid.UUID],
        comments: Optional[str],
    ) -> None:
        now = utcnow()
        request.status = status
        request.reviewed_by = reviewer_id
        request.reviewed_at = now
        request.reviewer_comments = comments
        request.updated_at = now

    # ─────────────────────────────────────────────────────────────────
    # Submit
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def submit(
        db: AsyncSession,
        data: LeaveRequestCreate,
        *,
        today: Optional[date] = None,
    ) -> LeaveRequest:
        """Validate and persist a new pending request.

        Checks run in order: dates, employee and active policy, policy
        constraints (half day, advance notice, per-request maximum), overlap
        with pending/approved requests, then balance availability. A policy
        that allows a negative balance accepts a shortfall and records it on
        the request. A policy that does not require approval approves the
        request immediately.
        """
        total_days = RequestLifecycle._resolve_total_days(data)

        await EmployeeDirectory.require_active(db, data.employee_id)
        policy = await PolicyRegistry.get_active_policy(db, data.leave_type)

        RequestLifecycle._check_policy(policy, data, total_days, today or local_today())

        conflicts = await RequestLifecycle._find_overlaps(
            db, data.employee_id, data.start_date, data.end_date,
        )
        if conflicts:
            raise OverlapError(conflicts)

        year = data.start_date.year
        shortfall = await BalanceLedger.check_availability(
            db, data.employee_id, policy.leave_type, year, total_days,
        )
        if shortfall > 0 and not policy.allow_negative_balance:
            raise InsufficientBalanceError(shortfall, policy.leave_type)

        request = LeaveRequest(
            employee_id=data.employee_id,
            leave_type=policy.leave_type,
            policy_id=policy.id,
            start_date=data.start_date,
            end_date=data.end_date,
            total_days=total_days,
            is_half_day=data.is_half_day,
            half_day_period=data.half_day_period if data.is_half_day else None,
            status=LeaveStatus.pending,
            charged_days=ZERO,
            balance_shortfall=shortfall,
            reason=data.reason,
        )
        db.add(request)
        await db.flush()

        await emit_event(
            db,
            event_type=LeaveEventType.submitted,
            entity_type=ENTITY,
            entity_id=request.id,
            employee_id=request.employee_id,
            payload={
                "leave_type": request.leave_type,
                "start_date": request.start_date.isoformat(),
                "end_date": request.end_date.isoformat(),
                "total_days": str(total_days),
                "balance_shortfall": str(shortfall),
            },
        )
        logger.info(
            "Submitted %s request %s for %s: %s..%s (%s day(s))",
            request.leave_type, request.id, request.employee_id,
            request.start_date, request.end_date, total_days,
        )

        if not policy.requires_approval:
            return await RequestLifecycle.approve(
                db, request.id, comments="Approved automatically; policy requires no approval.",
            )
        return request

    # ─────────────────────────────────────────────────────────────────
    # Approve / Reject
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _approve_once(
        db: AsyncSession,
        request_id: uuid.UUID,
        reviewer_id: Optional[uuid.UUID],
        comments: Optional[str],
    ) -> LeaveRequest:
        request = await RequestLifecycle._load(db, request_id, for_update=True)
        if request.status != LeaveStatus.pending:
            raise InvalidStateError("leave request", request.status.value, "approve")

        policy = await PolicyRegistry.get_policy(db, request.policy_id)
        balance = await BalanceLedger.get_balance(
            db, request.employee_id, request.leave_type, request.ledger_year, for_update=True,
        )
        split = DayAllocator.determine_paid_unpaid(request.total_days, balance.remaining)
        if split.unpaid_days > 0 and not policy.allow_negative_balance:
            raise InsufficientBalanceError(split.unpaid_days, request.leave_type)

        await BalanceLedger.apply_approval(
            db, request.employee_id, request.leave_type, request.ledger_year, split.paid_days,
        )

        RequestLifecycle._mark_reviewed(request, LeaveStatus.approved, reviewer_id, comments)
        request.is_paid = split.is_paid
        request.paid_days = split.paid_days
        request.unpaid_days = split.unpaid_days
        request.charged_days = split.paid_days
        await db.flush()

        await emit_event(
            db,
            event_type=LeaveEventType.approved,
            entity_type=ENTITY,
            entity_id=request.id,
            employee_id=request.employee_id,
            actor_id=reviewer_id,
            payload={
                "leave_type": request.leave_type,
                "paid_days": str(split.paid_days),
                "unpaid_days": str(split.unpaid_days),
                "is_paid": split.is_paid,
            },
        )
        logger.info(
            "Approved request %s: %s paid, %s unpaid",
            request.id, split.paid_days, split.unpaid_days,
        )
        return request

    @staticmethod
    async def approve(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        reviewer_id: Optional[uuid.UUID] = None,
        comments: Optional[str] = None,
    ) -> LeaveRequest:
        """pending → approved, charging the paid portion to the ledger.

        The split is taken against the balance at approval time. Unpaid days
        are only accepted when the policy allows a negative balance.
        """
        return await RequestLifecycle._with_ledger_retry(
            db, RequestLifecycle._approve_once, request_id, reviewer_id, comments,
        )

    @staticmethod
    async def reject(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        reviewer_id: Optional[uuid.UUID] = None,
        comments: Optional[str] = None,
    ) -> LeaveRequest:
        """pending → rejected. The ledger is not touched."""
        request = await RequestLifecycle._load(db, request_id, for_update=True)
        if request.status != LeaveStatus.pending:
            raise InvalidStateError("leave request", request.status.value, "reject")

        RequestLifecycle._mark_reviewed(request, LeaveStatus.rejected, reviewer_id, comments)
        await db.flush()

        await emit_event(
            db,
            event_type=LeaveEventType.rejected,
            entity_type=ENTITY,
            entity_id=request.id,
            employee_id=request.employee_id,
            actor_id=reviewer_id,
            payload={"leave_type": request.leave_type, "comments": comments},
        )
        logger.info("Rejected request %s", request.id)
        return request

    @staticmethod
    async def review(
        db: AsyncSession,
        request_id: uuid.UUID,
        action: ReviewAction,
        *,
        reviewer_id: Optional[uuid.UUID] = None,
        comments: Optional[str] = None,
    ) -> LeaveRequest:
        if action == ReviewAction.approve:
            return await RequestLifecycle.approve(
                db, request_id, reviewer_id=reviewer_id, comments=comments,
            )
        return await RequestLifecycle.reject(
            db, request_id, reviewer_id=reviewer_id, comments=comments,
        )

    @staticmethod
    async def bulk_review(
        db: AsyncSession,
        request_ids: Iterable[uuid.UUID],
        action: ReviewAction,
        *,
        reviewer_id: Optional[uuid.UUID] = None,
        comments: Optional[str] = None,
    ) -> BulkReviewResult:
        """Review each request independently; one failure does not stop the rest."""
        results: list[BulkReviewItem] = []
        for request_id in dict.fromkeys(request_ids):
            try:
                request = await RequestLifecycle.review(
                    db, request_id, action, reviewer_id=reviewer_id, comments=comments,
                )
            except EngineError as exc:
                logger.info("Bulk %s skipped %s: %s", action.value, request_id, exc.kind.value)
                results.append(
                    BulkReviewItem(
                        request_id=request_id,
                        success=False,
                        error_kind=exc.kind.value,
                        error=exc.detail,
                    )
                )
                continue
            results.append(
                BulkReviewItem(request_id=request_id, success=True, status=request.status)
            )

        succeeded = sum(1 for r in results if r.success)
        return BulkReviewResult(
            action=action,
            succeeded=succeeded,
            failed=len(results) - succeeded,
            results=results,
        )

    # ─────────────────────────────────────────────────────────────────
    # Corrections on approved requests
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def set_paid_status(
        db: AsyncSession,
        request_id: uuid.UUID,
        is_paid: bool,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveRequest:
        """Override the paid classification used by reports. Balance untouched."""
        request = await RequestLifecycle._load(db, request_id, for_update=True)
        if request.status != LeaveStatus.approved:
            raise InvalidStateError("leave request", request.status.value, "change paid status of")

        previous = request.is_paid
        request.is_paid = is_paid
        request.paid_status_overridden = True
        request.updated_at = utcnow()
        await db.flush()

        await emit_event(
            db,
            event_type=LeaveEventType.paid_status_changed,
            entity_type=ENTITY,
            entity_id=request.id,
            employee_id=request.employee_id,
            actor_id=actor_id,
            payload={"previous": previous, "is_paid": is_paid},
        )
        logger.info("Request %s paid status %s -> %s", request.id, previous, is_paid)
        return request

    @staticmethod
    async def _revoke_once(
        db: AsyncSession,
        request_id: uuid.UUID,
        reviewer_id: Optional[uuid.UUID],
        reason: str,
    ) -> LeaveRequest:
        request = await RequestLifecycle._load(db, request_id, for_update=True)
        if request.status != LeaveStatus.approved:
            raise InvalidStateError("leave request", request.status.value, "revoke")

        returned = request.charged_days
        await BalanceLedger.reverse(
            db, request.employee_id, request.leave_type, request.ledger_year, returned,
        )

        RequestLifecycle._mark_reviewed(request, LeaveStatus.rejected, reviewer_id, reason)
        request.charged_days = ZERO
        request.revoked_at = request.reviewed_at
        await db.flush()

        await emit_event(
            db,
            event_type=LeaveEventType.revoked,
            entity_type=ENTITY,
            entity_id=request.id,
            employee_id=request.employee_id,
            actor_id=reviewer_id,
            payload={
                "leave_type": request.leave_type,
                "days_returned": str(returned),
                "reason": reason,
            },
        )
        logger.info("Revoked request %s; returned %s day(s)", request.id, returned)
        return request

    @staticmethod
    async def revoke(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        reason: str,
        reviewer_id: Optional[uuid.UUID] = None,
    ) -> LeaveRequest:
        """approved → rejected, giving the committed days back to the ledger."""
        return await RequestLifecycle._with_ledger_retry(
            db, RequestLifecycle._revoke_once, request_id, reviewer_id, reason,
        )

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_request(db: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
        return await RequestLifecycle._load(db, request_id)

    @staticmethod
    async def build_responses(
        db: AsyncSession,
        requests: list[LeaveRequest],
    ) -> list[LeaveRequestOut]:
        """LeaveRequestOut list enriched with employee briefs."""
        briefs = await EmployeeDirectory.lookup(db, (r.employee_id for r in requests))
        out = []
        for req in requests:
            item = LeaveRequestOut.model_validate(req)
            item.employee = briefs.get(req.employee_id)
            out.append(item)
        return out

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        filters: LeaveRequestFilters,
        params: PaginationParams,
    ) -> dict:
        """Paginated request list, newest submission first by default."""
        query = select(LeaveRequest).order_by(LeaveRequest.submitted_at.desc())

        if filters.department:
            ids = await EmployeeDirectory.ids_in_department(db, filters.department)
            query = query.where(LeaveRequest.employee_id.in_(ids))
        if filters.employee_id:
            query = query.where(LeaveRequest.employee_id == filters.employee_id)
        if filters.status:
            query = query.where(LeaveRequest.status == filters.status)
        if filters.leave_type:
            query = query.where(LeaveRequest.leave_type == filters.leave_type.strip().lower())
        if filters.from_date:
            query = query.where(LeaveRequest.end_date >= filters.from_date)
        if filters.to_date:
            query = query.where(LeaveRequest.start_date <= filters.to_date)

        rows, meta = await paginate(db, query, params, model=LeaveRequest)
        return {
            "data": await RequestLifecycle.build_responses(db, rows),
            "meta": meta,
        }
