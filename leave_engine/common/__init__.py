"""Common module: shared utilities for the leave engine."""

from leave_engine.common.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    HalfDayPeriod,
    LeaveEventType,
    LeaveStatus,
    ReviewAction,
)
from leave_engine.common.exceptions import (
    ConcurrencyConflictError,
    DuplicatePolicyError,
    EngineError,
    ErrorKind,
    InsufficientBalanceError,
    InvalidStateError,
    NotFoundException,
    OverlapError,
    PolicyViolationError,
    ReferencedEntityError,
    ValidationException,
    register_exception_handlers,
)
from leave_engine.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Constants / Enums
    "HalfDayPeriod",
    "LeaveEventType",
    "LeaveStatus",
    "ReviewAction",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "ConcurrencyConflictError",
    "DuplicatePolicyError",
    "EngineError",
    "ErrorKind",
    "InsufficientBalanceError",
    "InvalidStateError",
    "NotFoundException",
    "OverlapError",
    "PolicyViolationError",
    "ReferencedEntityError",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
