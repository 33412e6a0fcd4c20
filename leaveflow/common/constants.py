"""Enums and constants for Leaveflow — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    hod = "hod"
    hr = "hr"
    ged = "ged"
    admin = "admin"


class Department(str, enum.Enum):
    vas = "VAS"
    voice = "VOICE"
    accounts = "ACCOUNTS"
    noc = "NOC"
    osp = "OSP"
    admin = "ADMIN"
    customer_service = "CUSTOMER SERVICE"
    field = "FIELD"
    marketing = "MARKETING"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveType(str, enum.Enum):
    annual = "Annual Leave"
    sick = "Sick Leave"
    casual = "Casual Leave"
    other = "Other"


class LeaveStatus(str, enum.Enum):
    pending = "Pending"
    active = "Active"
    approved = "Approved"
    rejected = "Rejected"
    over = "Over"
    cancelled = "Cancelled"


# ── Approval chain ──────────────────────────────────────────────────

class ApprovalRole(str, enum.Enum):
    hod = "HOD"
    hr = "HR"
    ged = "GED"


class ApprovalStage(int, enum.Enum):
    hod = 1
    hr = 2
    ged = 3

    @property
    def role(self) -> ApprovalRole:
        return _STAGE_ROLES[self]

    @classmethod
    def for_role(cls, role: ApprovalRole) -> ApprovalStage:
        return {r: s for s, r in _STAGE_ROLES.items()}[role]


_STAGE_ROLES: dict[ApprovalStage, ApprovalRole] = {
    ApprovalStage.hod: ApprovalRole.hod,
    ApprovalStage.hr: ApprovalRole.hr,
    ApprovalStage.ged: ApprovalRole.ged,
}


class StageDecision(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


# Roles that may act on the HR and GED stages (HOD is checked by department)
STAGE_APPROVER_ROLES: dict[ApprovalStage, frozenset[UserRole]] = {
    ApprovalStage.hr: frozenset({UserRole.hr, UserRole.admin}),
    ApprovalStage.ged: frozenset({UserRole.ged, UserRole.admin}),
}

# A request in one of these states blocks another request for the same days
BLOCKING_LEAVE_STATUSES: tuple[LeaveStatus, ...] = (
    LeaveStatus.pending,
    LeaveStatus.approved,
    LeaveStatus.active,
)


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Persist enum *values* (``"Annual Leave"``) rather than member names."""
    return [str(member.value) for member in enum_cls]


# ── Misc constants ──────────────────────────────────────────────────

DATE_FORMAT = "%Y-%m-%d"
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
