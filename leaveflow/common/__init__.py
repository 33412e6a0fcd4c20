"""Common module — shared utilities for Leaveflow."""

from leaveflow.common.audit import AuditTrail, create_audit_entry
from leaveflow.common.constants import (
    DATE_FORMAT,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    ApprovalRole,
    ApprovalStage,
    Department,
    LeaveStatus,
    LeaveType,
    StageDecision,
    UserRole,
)
from leaveflow.common.exceptions import (
    AppException,
    CompensationFailure,
    ConflictError,
    ForbiddenException,
    InsufficientBalanceException,
    IntegrityFailure,
    NotFoundException,
    PreconditionException,
    ValidationException,
    register_exception_handlers,
)
from leaveflow.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)
from leaveflow.common.transactions import paired_write

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "ApprovalRole",
    "ApprovalStage",
    "Department",
    "LeaveStatus",
    "LeaveType",
    "StageDecision",
    "UserRole",
    "DATE_FORMAT",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "CompensationFailure",
    "ConflictError",
    "ForbiddenException",
    "InsufficientBalanceException",
    "IntegrityFailure",
    "NotFoundException",
    "PreconditionException",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
    # Transactions
    "paired_write",
]
