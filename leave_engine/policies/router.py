"""Policy router: CRUD and activation for leave policies."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.database import get_db
from leave_engine.policies.schemas import (
    PolicyCreate,
    PolicyOut,
    PolicyStatusUpdate,
    PolicyUpdate,
)
from leave_engine.policies.service import PolicyRegistry

router = APIRouter(prefix="", tags=["policies"])


# ── GET / ───────────────────────────────────────────────────────────

@router.get("", response_model=list[PolicyOut])
async def list_policies(
    is_active: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """List policies, optionally only active or inactive ones."""
    return await PolicyRegistry.list_policies(db, is_active=is_active)


# ── POST / ──────────────────────────────────────────────────────────

@router.post("", response_model=PolicyOut, status_code=status.HTTP_201_CREATED)
async def create_policy(
    body: PolicyCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a policy. 409 if an active policy already covers the leave type."""
    return await PolicyRegistry.create_policy(db, body)


# ── GET /active/{leave_type} ────────────────────────────────────────

@router.get("/active/{leave_type}", response_model=PolicyOut)
async def get_active_policy(
    leave_type: str,
    db: AsyncSession = Depends(get_db),
):
    return await PolicyRegistry.get_active_policy(db, leave_type)


# ── GET /{id} ───────────────────────────────────────────────────────

@router.get("/{policy_id}", response_model=PolicyOut)
async def get_policy(
    policy_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    return await PolicyRegistry.get_policy(db, policy_id)


# ── PATCH /{id} ─────────────────────────────────────────────────────

@router.patch("/{policy_id}", response_model=PolicyOut)
async def update_policy(
    policy_id: uuid.UUID,
    body: PolicyUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Partially update a policy. Existing balances are not recalculated."""
    return await PolicyRegistry.update_policy(db, policy_id, body)


# ── PUT /{id}/status ────────────────────────────────────────────────

@router.put("/{policy_id}/status", response_model=PolicyOut)
async def set_policy_status(
    policy_id: uuid.UUID,
    body: PolicyStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Activate or deactivate a policy."""
    return await PolicyRegistry.set_active(db, policy_id, body.is_active)


# ── DELETE /{id} ────────────────────────────────────────────────────

@router.delete("/{policy_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_policy(
    policy_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Delete an unreferenced policy. 409 while balances or requests use it."""
    await PolicyRegistry.delete_policy(db, policy_id)
