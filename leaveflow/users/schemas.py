"""User directory Pydantic v2 schemas.

Wire format is camelCase (``staffId``, ``leaveBalance``); both camelCase and
snake_case are accepted on input.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from leaveflow.common.constants import Department, UserRole


class CamelModel(BaseModel):
    """Base for every API schema: camelCase aliases, ORM-readable."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ═════════════════════════════════════════════════════════════════════
# Embedded / shared
# ═════════════════════════════════════════════════════════════════════


class EmployeeBrief(CamelModel):
    """Minimal employee info embedded in leave responses."""

    id: uuid.UUID
    staff_id: str
    first_name: str
    last_name: str
    department: Department


class RelieverOut(EmployeeBrief):
    email: str


# ═════════════════════════════════════════════════════════════════════
# Leave balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceOut(CamelModel):
    """``{total, available, used}`` — total always equals available + used."""

    total: int
    available: int
    used: int


class LeaveBalanceUpdate(CamelModel):
    """Admin payload for setting an employee's yearly entitlement."""

    total: int = Field(..., ge=0, le=366)


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class EmployeeOut(CamelModel):
    """Full employee profile with its current leave balance."""

    id: uuid.UUID
    staff_id: str
    first_name: str
    last_name: str
    email: str
    department: Department
    role: UserRole
    is_hod: bool
    is_active: bool
    leave_balance: LeaveBalanceOut
    created_at: datetime
