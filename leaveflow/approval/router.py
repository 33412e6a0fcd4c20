"""Approval routers.

``leaves_router`` (mounted under ``/leaves``) carries the generic
approve / reject actions; ``router`` (mounted under ``/approvals``) carries the
per-role actions and the per-stage queues.
"""


import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.approval.schemas import ApprovalDecision
from leaveflow.approval.service import ApprovalService
from leaveflow.auth.dependencies import get_current_user, require_role
from leaveflow.common.constants import ApprovalRole, UserRole
from leaveflow.common.pagination import PaginatedResponse, PaginationParams
from leaveflow.database import get_db
from leaveflow.leave.schemas import LeaveRequestOut
from leaveflow.leave.service import LeaveService
from leaveflow.users.models import Employee

leaves_router = APIRouter(prefix="", tags=["approvals"])
router = APIRouter(prefix="", tags=["approvals"])

_approver = require_role(UserRole.hod, UserRole.hr, UserRole.ged)


# ═════════════════════════════════════════════════════════════════════
# Generic protocol: role inferred from the current stage
# ═════════════════════════════════════════════════════════════════════


# ── PUT /leaves/{id}/approve ────────────────────────────────────────

@leaves_router.put("/{leave_id}/approve", response_model=LeaveRequestOut)
async def approve_leave(
    leave_id: uuid.UUID,
    body: ApprovalDecision,
    employee: Employee = Depends(_approver),
    db: AsyncSession = Depends(get_db),
):
    """Approve at the current stage; the third approval finalizes the request."""
    return await ApprovalService.approve(db, leave_id, employee, comments=body.comments)


# ── PUT /leaves/{id}/reject ─────────────────────────────────────────

@leaves_router.put("/{leave_id}/reject", response_model=LeaveRequestOut)
async def reject_leave(
    leave_id: uuid.UUID,
    body: ApprovalDecision,
    employee: Employee = Depends(_approver),
    db: AsyncSession = Depends(get_db),
):
    """Reject at the current stage (comments required). Days are refunded."""
    return await ApprovalService.reject(db, leave_id, employee, comments=body.comments)


# ═════════════════════════════════════════════════════════════════════
# Per-role protocol
# ═════════════════════════════════════════════════════════════════════


@router.put("/{leave_id}/hod/approve", response_model=LeaveRequestOut)
async def hod_approve(
    leave_id: uuid.UUID,
    body: ApprovalDecision,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ApprovalService.hod_approve(db, leave_id, employee, comments=body.comments)


@router.put("/{leave_id}/hod/reject", response_model=LeaveRequestOut)
async def hod_reject(
    leave_id: uuid.UUID,
    body: ApprovalDecision,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ApprovalService.hod_reject(db, leave_id, employee, comments=body.comments)


@router.put("/{leave_id}/hr/approve", response_model=LeaveRequestOut)
async def hr_approve(
    leave_id: uuid.UUID,
    body: ApprovalDecision,
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    return await ApprovalService.hr_approve(db, leave_id, employee, comments=body.comments)


@router.put("/{leave_id}/hr/reject", response_model=LeaveRequestOut)
async def hr_reject(
    leave_id: uuid.UUID,
    body: ApprovalDecision,
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    return await ApprovalService.hr_reject(db, leave_id, employee, comments=body.comments)


@router.put("/{leave_id}/ged/approve", response_model=LeaveRequestOut)
async def ged_approve(
    leave_id: uuid.UUID,
    body: ApprovalDecision,
    employee: Employee = Depends(require_role(UserRole.ged)),
    db: AsyncSession = Depends(get_db),
):
    return await ApprovalService.ged_approve(db, leave_id, employee, comments=body.comments)


@router.put("/{leave_id}/ged/reject", response_model=LeaveRequestOut)
async def ged_reject(
    leave_id: uuid.UUID,
    body: ApprovalDecision,
    employee: Employee = Depends(require_role(UserRole.ged)),
    db: AsyncSession = Depends(get_db),
):
    return await ApprovalService.ged_reject(db, leave_id, employee, comments=body.comments)


# ═════════════════════════════════════════════════════════════════════
# Queues
# ═════════════════════════════════════════════════════════════════════


@router.get("/hod/queue", response_model=PaginatedResponse[LeaveRequestOut])
async def hod_queue(
    params: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Requests from the HOD's department waiting for the HOD decision."""
    return await LeaveService.get_queue(db, employee, ApprovalRole.hod, params)


@router.get("/hr/queue", response_model=PaginatedResponse[LeaveRequestOut])
async def hr_queue(
    params: PaginationParams = Depends(),
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_queue(db, employee, ApprovalRole.hr, params)


@router.get("/ged/queue", response_model=PaginatedResponse[LeaveRequestOut])
async def ged_queue(
    params: PaginationParams = Depends(),
    employee: Employee = Depends(require_role(UserRole.ged)),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_queue(db, employee, ApprovalRole.ged, params)
