"""Leave request router: submit, review, paid-status override, revoke, listing."""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.constants import LeaveStatus
from leave_engine.common.pagination import PaginationParams
from leave_engine.common.rate_limit import limiter
from leave_engine.config import settings
from leave_engine.database import get_db
from leave_engine.leave.schemas import (
    BulkReviewRequest,
    BulkReviewResult,
    LeaveRequestCreate,
    LeaveRequestFilters,
    LeaveRequestOut,
    LeaveReviewRequest,
    LeaveRevokeRequest,
    PaidStatusUpdate,
)
from leave_engine.leave.service import RequestLifecycle

router = APIRouter(prefix="", tags=["requests"])


async def _respond(db: AsyncSession, request) -> LeaveRequestOut:
    return (await RequestLifecycle.build_responses(db, [request]))[0]


# ── POST / ──────────────────────────────────────────────────────────

@router.post("", response_model=LeaveRequestOut, status_code=status.HTTP_201_CREATED)
async def submit_leave_request(
    body: LeaveRequestCreate,
    db: AsyncSession = Depends(get_db),
):
    """Submit a leave request. Validates dates, policy, overlap and balance."""
    request = await RequestLifecycle.submit(db, body)
    return await _respond(db, request)


# ── GET / ───────────────────────────────────────────────────────────

@router.get("")
async def list_leave_requests(
    employee_id: Optional[uuid.UUID] = Query(None),
    department: Optional[str] = Query(None),
    status: Optional[LeaveStatus] = Query(None),
    leave_type: Optional[str] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """List requests with filters and pagination."""
    filters = LeaveRequestFilters(
        employee_id=employee_id,
        department=department,
        status=status,
        leave_type=leave_type,
        from_date=from_date,
        to_date=to_date,
    )
    return await RequestLifecycle.list_requests(db, filters, pagination)


# ── PUT /bulk-review ────────────────────────────────────────────────

@router.put("/bulk-review", response_model=BulkReviewResult)
@limiter.limit(settings.RATE_LIMIT_BULK)
async def bulk_review(
    request: Request,
    body: BulkReviewRequest,
    db: AsyncSession = Depends(get_db),
):
    """Approve or reject several pending requests; reports per-request outcomes."""
    return await RequestLifecycle.bulk_review(
        db, body.request_ids, body.action,
        reviewer_id=body.reviewer_id, comments=body.comments,
    )


# ── GET /{id} ───────────────────────────────────────────────────────

@router.get("/{request_id}", response_model=LeaveRequestOut)
async def get_leave_request(
    request_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    request = await RequestLifecycle.get_request(db, request_id)
    return await _respond(db, request)


# ── PUT /{id}/review ────────────────────────────────────────────────

@router.put("/{request_id}/review", response_model=LeaveRequestOut)
async def review_leave_request(
    request_id: uuid.UUID,
    body: LeaveReviewRequest,
    db: AsyncSession = Depends(get_db),
):
    """Approve (charges the balance) or reject a pending request."""
    request = await RequestLifecycle.review(
        db, request_id, body.action,
        reviewer_id=body.reviewer_id, comments=body.comments,
    )
    return await _respond(db, request)


# ── PUT /{id}/paid-status ───────────────────────────────────────────

@router.put("/{request_id}/paid-status", response_model=LeaveRequestOut)
async def set_paid_status(
    request_id: uuid.UUID,
    body: PaidStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Reclassify an approved request as paid or unpaid for reporting."""
    request = await RequestLifecycle.set_paid_status(db, request_id, body.is_paid)
    return await _respond(db, request)


# ── PUT /{id}/revoke ────────────────────────────────────────────────

@router.put("/{request_id}/revoke", response_model=LeaveRequestOut)
async def revoke_leave_request(
    request_id: uuid.UUID,
    body: LeaveRevokeRequest,
    db: AsyncSession = Depends(get_db),
):
    """Revoke an approved request and return its days to the balance."""
    request = await RequestLifecycle.revoke(
        db, request_id, reason=body.reason, reviewer_id=body.reviewer_id,
    )
    return await _respond(db, request)
