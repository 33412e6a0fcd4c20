"""User directory service — employee lookup, relievers, balances.

Leave balances are read and written through ``BalanceLedger``; this module
only exposes them.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.constants import Department, UserRole
from leaveflow.common.exceptions import ConflictError, NotFoundException
from leaveflow.common.pagination import PaginatedResponse, PaginationParams, paginate
from leaveflow.config import settings
from leaveflow.leave.ledger import BalanceLedger
from leaveflow.users.models import Employee
from leaveflow.users.schemas import EmployeeOut, LeaveBalanceOut, RelieverOut

logger = logging.getLogger(__name__)


class UserDirectory:
    """Async read access to employees plus admin balance updates."""

    @staticmethod
    async def get_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        result = await db.execute(select(Employee).where(Employee.id == employee_id))
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    async def get_profile(db: AsyncSession, employee_id: uuid.UUID) -> EmployeeOut:
        employee = await UserDirectory.get_employee(db, employee_id)
        return EmployeeOut.model_validate(employee)

    @staticmethod
    async def find_by_email(db: AsyncSession, email: str) -> Optional[Employee]:
        result = await db.execute(
            select(Employee).where(func.lower(Employee.email) == email.strip().lower())
        )
        return result.scalars().first()

    @staticmethod
    async def is_active(db: AsyncSession, employee_id: uuid.UUID) -> bool:
        result = await db.execute(
            select(Employee.is_active).where(Employee.id == employee_id)
        )
        return bool(result.scalar_one_or_none())

    @staticmethod
    async def list_employees(
        db: AsyncSession,
        params: PaginationParams,
        *,
        department: Optional[Department] = None,
        is_active: Optional[bool] = None,
    ) -> PaginatedResponse:
        query = select(Employee).order_by(Employee.first_name, Employee.last_name)
        if department is not None:
            query = query.where(Employee.department == department)
        if is_active is not None:
            query = query.where(Employee.is_active.is_(is_active))
        return await paginate(
            db, query, params, model=Employee, transform=EmployeeOut.model_validate,
        )

    @staticmethod
    async def get_relievers(db: AsyncSession, employee_id: uuid.UUID) -> list[RelieverOut]:
        """Active colleagues who can cover for *employee_id*, by first name."""
        result = await db.execute(
            select(Employee)
            .where(Employee.id != employee_id, Employee.is_active.is_(True))
            .order_by(Employee.first_name, Employee.last_name)
        )
        return [RelieverOut.model_validate(e) for e in result.scalars().all()]

    @staticmethod
    async def get_balance(db: AsyncSession, employee_id: uuid.UUID) -> LeaveBalanceOut:
        return await BalanceLedger.get_balance(db, employee_id)

    @staticmethod
    async def set_leave_total(
        db: AsyncSession,
        employee_id: uuid.UUID,
        total: int,
        actor: Employee,
    ) -> LeaveBalanceOut:
        await UserDirectory.get_employee(db, employee_id)
        return await BalanceLedger.set_total(db, employee_id, total, actor_id=actor.id)

    @staticmethod
    async def create_employee(
        db: AsyncSession,
        *,
        staff_id: str,
        first_name: str,
        last_name: str,
        email: str,
        department: Department,
        role: UserRole = UserRole.employee,
        is_hod: bool = False,
        leave_total: Optional[int] = None,
    ) -> Employee:
        """Register an employee with a fresh balance (nothing used yet)."""
        if await UserDirectory.find_by_email(db, email) is not None:
            raise ConflictError(f"An employee with email '{email}' already exists.")

        total = settings.DEFAULT_LEAVE_DAYS if leave_total is None else leave_total
        employee = Employee(
            staff_id=staff_id,
            first_name=first_name,
            last_name=last_name,
            email=email.strip().lower(),
            department=department,
            role=role,
            is_hod=is_hod,
            is_active=True,
            leave_total=total,
            leave_available=total,
            leave_used=0,
        )
        db.add(employee)
        await db.flush()
        logger.info("Registered employee %s (%s, %s)", staff_id, department.value, role.value)
        return employee
