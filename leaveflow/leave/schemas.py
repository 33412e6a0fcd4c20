"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update   → request bodies (write)
  - *Out                → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import Field

from leaveflow.common.constants import (
    ApprovalRole,
    LeaveStatus,
    LeaveType,
    StageDecision,
)
from leaveflow.users.schemas import CamelModel, EmployeeBrief


# ═════════════════════════════════════════════════════════════════════
# Leave Request: Create / Update
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(CamelModel):
    """Payload for applying for leave.

    ``leaveType`` is checked against the allowed set by the service so that
    an unknown type is reported the same way for API and direct callers.
    """

    leave_type: str = Field(..., description="Annual Leave | Sick Leave | Casual Leave | Other")
    other_leave_type: Optional[str] = Field(None, max_length=100)
    from_date: date = Field(..., description="Leave start date (inclusive), YYYY-MM-DD")
    to_date: date = Field(..., description="Leave end date (inclusive), YYYY-MM-DD")
    reason: str = Field(..., min_length=1, max_length=1000)
    reliever_id: uuid.UUID = Field(..., description="Colleague covering during the leave")


class LeaveRequestUpdate(CamelModel):
    """Partial edit of a request still waiting for its HOD decision."""

    leave_type: Optional[str] = None
    other_leave_type: Optional[str] = Field(None, max_length=100)
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    reason: Optional[str] = Field(None, min_length=1, max_length=1000)
    reliever_id: Optional[uuid.UUID] = None


# ═════════════════════════════════════════════════════════════════════
# Leave Request: Response
# ═════════════════════════════════════════════════════════════════════


class ApprovalStepOut(CamelModel):
    """One recorded decision in the approval chain."""

    role: ApprovalRole
    stage: int
    decision: StageDecision
    comments: Optional[str] = None
    decided_at: datetime
    approver: Optional[EmployeeBrief] = None


class LeaveRequestOut(CamelModel):
    """Full leave request response.

    The ``hod*`` / ``hr*`` / ``ged*`` fields are read-only views of the
    approval history, filled in by the service.
    """

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type: LeaveType
    other_leave_type: Optional[str] = None
    from_date: date
    to_date: date
    total_days: int
    reason: Optional[str] = None
    reliever_id: Optional[uuid.UUID] = None
    status: LeaveStatus
    stage: int
    is_editable: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime

    # Enriched by service
    employee: Optional[EmployeeBrief] = None
    reliever: Optional[EmployeeBrief] = None

    hod_approval_status: StageDecision = StageDecision.pending
    hod_approval_date: Optional[datetime] = None
    hod_approval_comment: Optional[str] = None
    hod_approver_id: Optional[uuid.UUID] = None
    hr_approval_status: StageDecision = StageDecision.pending
    hr_approval_date: Optional[datetime] = None
    hr_approval_comment: Optional[str] = None
    hr_approver_id: Optional[uuid.UUID] = None
    ged_approval_status: StageDecision = StageDecision.pending
    ged_approval_date: Optional[datetime] = None
    ged_approval_comment: Optional[str] = None
    ged_approver_id: Optional[uuid.UUID] = None


class LeaveProgressOut(CamelModel):
    """Where a request stands in the HOD → HR → GED chain."""

    id: uuid.UUID
    status: LeaveStatus
    stage: int
    current_role: Optional[ApprovalRole] = None
    approval_flow: list[ApprovalStepOut] = Field(default_factory=list)
