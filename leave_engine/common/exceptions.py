"""Engine error taxonomy and RFC 7807 Problem Detail error handlers.

Every error carries a machine-readable ``kind`` so callers branch on the
discriminant instead of matching message text.
"""

from __future__ import annotations

import enum
from decimal import Decimal
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

BASE_ERROR_URI = "https://leave-engine.local/errors"


class ErrorKind(str, enum.Enum):
    validation = "validation"
    overlap = "overlap"
    insufficient_balance = "insufficient-balance"
    policy_violation = "policy-violation"
    duplicate_policy = "duplicate-policy"
    referenced_entity = "referenced-entity"
    not_found = "not-found"
    invalid_state = "invalid-state"
    concurrency_conflict = "concurrency-conflict"


# ── Exception hierarchy ─────────────────────────────────────────────

class EngineError(Exception):
    """Base for all engine errors → RFC 7807 JSON."""

    def __init__(
        self,
        status_code: int,
        kind: ErrorKind,
        title: str,
        detail: str,
        errors: Optional[dict[str, Any]] = None,
    ) -> None:
        self.status_code = status_code
        self.kind = kind
        self.title = title
        self.detail = detail
        self.errors = errors
        super().__init__(detail)

    def extra(self) -> dict[str, Any]:
        """Kind-specific members added to the problem body."""
        return {}


class ValidationException(EngineError):
    """422: malformed dates or fields."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__(
            status_code=422,
            kind=ErrorKind.validation,
            title="Validation Error",
            detail="One or more fields failed validation.",
            errors=errors,
        )


class NotFoundException(EngineError):
    """404: entity not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        self.entity_type = entity_type
        super().__init__(
            status_code=404,
            kind=ErrorKind.not_found,
            title=f"{entity_type} Not Found",
            detail=f"{entity_type} with id '{entity_id}' does not exist.",
        )


class OverlapError(EngineError):
    """409: the date range collides with a pending or approved request."""

    def __init__(self, conflicting_ids: list[Any]) -> None:
        self.conflicting_ids = [str(i) for i in conflicting_ids]
        super().__init__(
            status_code=409,
            kind=ErrorKind.overlap,
            title="Overlapping Leave",
            detail=(
                "A pending or approved leave request already covers "
                "some of these dates."
            ),
            errors={"dates": [f"Conflicts with request {i}." for i in self.conflicting_ids]},
        )

    def extra(self) -> dict[str, Any]:
        return {"conflicting_request_ids": self.conflicting_ids}


class InsufficientBalanceError(EngineError):
    """422: the request needs more days than the ledger holds."""

    def __init__(self, shortfall: Decimal, leave_type: str) -> None:
        self.shortfall = shortfall
        super().__init__(
            status_code=422,
            kind=ErrorKind.insufficient_balance,
            title="Insufficient Balance",
            detail=f"Insufficient {leave_type} balance: short by {shortfall} day(s).",
        )

    def extra(self) -> dict[str, Any]:
        return {"shortfall": str(self.shortfall)}


class PolicyViolationError(EngineError):
    """422: advance notice, half-day or per-request limits breached."""

    def __init__(self, reason: str, detail: str) -> None:
        self.reason = reason
        super().__init__(
            status_code=422,
            kind=ErrorKind.policy_violation,
            title="Policy Violation",
            detail=detail,
        )

    def extra(self) -> dict[str, Any]:
        return {"reason": self.reason}


class DuplicatePolicyError(EngineError):
    """409: an active policy already exists for the leave type."""

    def __init__(self, leave_type: str) -> None:
        super().__init__(
            status_code=409,
            kind=ErrorKind.duplicate_policy,
            title="Duplicate Policy",
            detail=f"An active policy for leave type '{leave_type}' already exists.",
            errors={"leave_type": [f"'{leave_type}' already has an active policy."]},
        )


class ReferencedEntityError(EngineError):
    """409: delete blocked by existing references."""

    def __init__(self, entity_type: str, entity_id: Any, references: dict[str, int]) -> None:
        self.references = references
        refs = ", ".join(f"{count} {name}" for name, count in references.items() if count)
        super().__init__(
            status_code=409,
            kind=ErrorKind.referenced_entity,
            title=f"{entity_type} In Use",
            detail=(
                f"{entity_type} '{entity_id}' is referenced by {refs}; "
                "deactivate it instead."
            ),
        )

    def extra(self) -> dict[str, Any]:
        return {"references": self.references}


class InvalidStateError(EngineError):
    """409: illegal status transition."""

    def __init__(self, entity_type: str, current: str, action: str) -> None:
        self.current = current
        super().__init__(
            status_code=409,
            kind=ErrorKind.invalid_state,
            title="Invalid State",
            detail=f"Cannot {action} a {entity_type} that is {current}.",
        )


class ConcurrencyConflictError(EngineError):
    """409: stale ledger version; retry with a fresh read."""

    def __init__(self, key: tuple[Any, ...]) -> None:
        self.key = key
        super().__init__(
            status_code=409,
            kind=ErrorKind.concurrency_conflict,
            title="Concurrency Conflict",
            detail=f"Ledger entry {'/'.join(str(k) for k in key)} changed concurrently.",
        )


# ── RFC 7807 builder ────────────────────────────────────────────────

def _build_problem_detail(exc: EngineError, request: Request) -> dict[str, Any]:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{exc.kind.value}",
        "kind": exc.kind.value,
        "title": exc.title,
        "status": exc.status_code,
        "detail": exc.detail,
        "instance": str(request.url.path),
    }
    if exc.errors:
        body["errors"] = exc.errors
    body.update(exc.extra())
    return body


# ── FastAPI handlers ────────────────────────────────────────────────

async def _handle_engine_error(
    request: Request,
    exc: EngineError,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_problem_detail(exc, request),
        media_type="application/problem+json",
    )


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    field_errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = err.get("loc", ())
        name = (
            ".".join(str(p) for p in loc[1:])
            if len(loc) > 1
            else str(loc[0]) if loc else "unknown"
        )
        field_errors.setdefault(name, []).append(err.get("msg", "Invalid value"))

    return JSONResponse(
        status_code=422,
        content={
            "type": f"{BASE_ERROR_URI}/{ErrorKind.validation.value}",
            "kind": ErrorKind.validation.value,
            "title": "Validation Error",
            "status": 422,
            "detail": "Request validation failed.",
            "instance": str(request.url.path),
            "errors": field_errors,
        },
        media_type="application/problem+json",
    )


# ── Registration helper (called from main.py) ──────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""
    app.add_exception_handler(EngineError, _handle_engine_error)          # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
