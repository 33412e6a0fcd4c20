"""Users router — profile, relievers, leave balance."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.auth.dependencies import get_current_user, require_role
from leaveflow.common.constants import Department, UserRole
from leaveflow.common.pagination import PaginatedResponse, PaginationParams
from leaveflow.database import get_db
from leaveflow.users.models import Employee
from leaveflow.users.schemas import (
    EmployeeOut,
    LeaveBalanceOut,
    LeaveBalanceUpdate,
    RelieverOut,
)
from leaveflow.users.service import UserDirectory

router = APIRouter(prefix="", tags=["users"])


# ── GET /me ─────────────────────────────────────────────────────────

@router.get("/me", response_model=EmployeeOut)
async def get_me(employee: Employee = Depends(get_current_user)):
    return EmployeeOut.model_validate(employee)


# ── GET /me/balance ─────────────────────────────────────────────────

@router.get("/me/balance", response_model=LeaveBalanceOut)
async def get_my_balance(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await UserDirectory.get_balance(db, employee.id)


# ── GET /relievers ──────────────────────────────────────────────────

@router.get("/relievers", response_model=list[RelieverOut])
async def get_relievers(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Active colleagues who can be named as reliever."""
    return await UserDirectory.get_relievers(db, employee.id)


# ── GET / ───────────────────────────────────────────────────────────

@router.get("", response_model=PaginatedResponse[EmployeeOut])
async def list_employees(
    department: Optional[Department] = Query(None),
    active: Optional[bool] = Query(None),
    params: PaginationParams = Depends(),
    employee: Employee = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    return await UserDirectory.list_employees(
        db, params, department=department, is_active=active,
    )


# ── GET /{id} ───────────────────────────────────────────────────────

@router.get("/{employee_id}", response_model=EmployeeOut)
async def get_employee(
    employee_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await UserDirectory.get_profile(db, employee_id)


# ── PUT /{id}/leave-balance ─────────────────────────────────────────

@router.put("/{employee_id}/leave-balance", response_model=LeaveBalanceOut)
async def update_leave_balance(
    employee_id: uuid.UUID,
    body: LeaveBalanceUpdate,
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    """Admin: set a new yearly entitlement. Days already used are kept."""
    return await UserDirectory.set_leave_total(db, employee_id, body.total, employee)
