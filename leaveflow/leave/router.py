"""Leave router — apply, edit, cancel, delete, listings, progress.

All endpoints require authentication. The approver listing enforces role
checks; per-request ownership is checked by the service.
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.auth.dependencies import get_current_user, require_role
from leaveflow.common.constants import Department, LeaveStatus, UserRole
from leaveflow.common.pagination import PaginatedResponse, PaginationParams
from leaveflow.database import get_db
from leaveflow.leave.schemas import (
    LeaveProgressOut,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveRequestUpdate,
)
from leaveflow.leave.service import LeaveService
from leaveflow.users.models import Employee

router = APIRouter(prefix="", tags=["leaves"])


# ── POST / ──────────────────────────────────────────────────────────

@router.post("", response_model=LeaveRequestOut, status_code=status.HTTP_201_CREATED)
async def create_leave(
    body: LeaveRequestCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Apply for leave. The working days are deducted from the balance immediately."""
    return await LeaveService.create_leave(db, employee.id, body)


# ── GET /my-leaves ──────────────────────────────────────────────────

@router.get("/my-leaves", response_model=PaginatedResponse[LeaveRequestOut])
async def my_leaves(
    status: Optional[LeaveStatus] = Query(None),
    params: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The authenticated user's leave requests, newest first."""
    return await LeaveService.get_my_leaves(db, employee.id, params, status=status)


# ── GET / ───────────────────────────────────────────────────────────

@router.get("", response_model=PaginatedResponse[LeaveRequestOut])
async def list_leaves(
    status: Optional[LeaveStatus] = Query(None),
    department: Optional[Department] = Query(None),
    params: PaginationParams = Depends(),
    employee: Employee = Depends(
        require_role(UserRole.hod, UserRole.hr, UserRole.ged)
    ),
    db: AsyncSession = Depends(get_db),
):
    """All leave requests for approvers, filterable by status and department."""
    return await LeaveService.list_leaves(
        db, employee, params, status=status, department=department,
    )


# ── GET /{id} ───────────────────────────────────────────────────────

@router.get("/{leave_id}", response_model=LeaveRequestOut)
async def get_leave(
    leave_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_leave(db, leave_id, employee)


# ── GET /{id}/progress ──────────────────────────────────────────────

@router.get("/{leave_id}/progress", response_model=LeaveProgressOut)
async def get_progress(
    leave_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Approval flow so far and the role the request is waiting on."""
    return await LeaveService.get_progress(db, leave_id, employee)


# ── PUT /{id} ───────────────────────────────────────────────────────

@router.put("/{leave_id}", response_model=LeaveRequestOut)
async def edit_leave(
    leave_id: uuid.UUID,
    body: LeaveRequestUpdate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Edit a request that the HOD has not decided yet."""
    return await LeaveService.edit_leave(db, leave_id, employee, body)


# ── PUT /{id}/cancel ────────────────────────────────────────────────

@router.put("/{leave_id}/cancel", response_model=LeaveRequestOut)
async def cancel_leave(
    leave_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a pending or approved request. Its days are refunded."""
    return await LeaveService.cancel_leave(db, leave_id, employee)


# ── DELETE /{id} ────────────────────────────────────────────────────

@router.delete("/{leave_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_leave(
    leave_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete a request that is not approved or active."""
    await LeaveService.delete_leave(db, leave_id, employee)
