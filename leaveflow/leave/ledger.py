"""Leave balance ledger — the only writer of an employee's leave counters.

Every employee carries ``{total, available, used}`` with
``total == available + used``. Each mutation is a single conditional UPDATE
whose WHERE clause carries the guard (``available >= days`` for a debit,
``used >= days`` for a credit), so two concurrent requests can never both
pass the guard against the same remaining days.

The ledger does not commit or open savepoints; callers run it inside
``paired_write`` together with the leave-record write it belongs to.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.audit import create_audit_entry
from leaveflow.common.exceptions import (
    InsufficientBalanceException,
    IntegrityFailure,
    NotFoundException,
    ValidationException,
)
from leaveflow.users.models import Employee
from leaveflow.users.schemas import LeaveBalanceOut

logger = logging.getLogger(__name__)


class BalanceLedger:
    """Async debit / credit / adjust operations on an employee's balance."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _load(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        """Re-read the employee, overwriting any stale identity-map copy."""
        result = await db.execute(
            select(Employee)
            .where(Employee.id == employee_id)
            .execution_options(populate_existing=True)
        )
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    def _to_balance(employee: Employee) -> LeaveBalanceOut:
        return LeaveBalanceOut(
            total=employee.leave_total,
            available=employee.leave_available,
            used=employee.leave_used,
        )

    @staticmethod
    def _check_invariant(employee: Employee) -> None:
        if (
            employee.leave_total != employee.leave_available + employee.leave_used
            or employee.leave_available < 0
            or employee.leave_used < 0
        ):
            logger.error(
                "Balance invariant broken for employee %s: total=%s available=%s used=%s",
                employee.id,
                employee.leave_total,
                employee.leave_available,
                employee.leave_used,
            )
            raise IntegrityFailure(
                f"Leave balance of employee '{employee.id}' is inconsistent.",
                compensated=False,
            )

    @staticmethod
    def _check_days(days: int) -> None:
        if days < 0:
            raise ValidationException({"days": ["Number of days cannot be negative."]})

    # ─────────────────────────────────────────────────────────────────
    # Read
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_balance(db: AsyncSession, employee_id: uuid.UUID) -> LeaveBalanceOut:
        employee = await BalanceLedger._load(db, employee_id)
        return BalanceLedger._to_balance(employee)

    # ─────────────────────────────────────────────────────────────────
    # Debit / Credit / Adjust
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def debit(
        db: AsyncSession,
        employee_id: uuid.UUID,
        days: int,
    ) -> LeaveBalanceOut:
        """Move *days* from available to used.

        Raises ``InsufficientBalanceException`` when fewer than *days* are
        available; nothing is written in that case.
        """
        BalanceLedger._check_days(days)
        if days == 0:
            return await BalanceLedger.get_balance(db, employee_id)

        result = await db.execute(
            update(Employee)
            .where(Employee.id == employee_id, Employee.leave_available >= days)
            .values(
                leave_available=Employee.leave_available - days,
                leave_used=Employee.leave_used + days,
            )
            .execution_options(synchronize_session=False)
        )
        employee = await BalanceLedger._load(db, employee_id)
        if result.rowcount == 0:
            raise InsufficientBalanceException(employee.leave_available, days)

        BalanceLedger._check_invariant(employee)
        logger.info(
            "Debited %d day(s) from employee %s (available=%d used=%d)",
            days, employee_id, employee.leave_available, employee.leave_used,
        )
        return BalanceLedger._to_balance(employee)

    @staticmethod
    async def credit(
        db: AsyncSession,
        employee_id: uuid.UUID,
        days: int,
    ) -> LeaveBalanceOut:
        """Move *days* from used back to available.

        Refunding more days than were used means the ledger and the leave
        records disagree; that is raised as ``IntegrityFailure``.
        """
        BalanceLedger._check_days(days)
        if days == 0:
            return await BalanceLedger.get_balance(db, employee_id)

        result = await db.execute(
            update(Employee)
            .where(Employee.id == employee_id, Employee.leave_used >= days)
            .values(
                leave_available=Employee.leave_available + days,
                leave_used=Employee.leave_used - days,
            )
            .execution_options(synchronize_session=False)
        )
        employee = await BalanceLedger._load(db, employee_id)
        if result.rowcount == 0:
            logger.error(
                "Refund of %d day(s) exceeds used=%d for employee %s",
                days, employee.leave_used, employee_id,
            )
            raise IntegrityFailure(
                f"Cannot refund {days} day(s): only {employee.leave_used} used.",
            )

        BalanceLedger._check_invariant(employee)
        logger.info(
            "Credited %d day(s) to employee %s (available=%d used=%d)",
            days, employee_id, employee.leave_available, employee.leave_used,
        )
        return BalanceLedger._to_balance(employee)

    @staticmethod
    async def adjust(
        db: AsyncSession,
        employee_id: uuid.UUID,
        delta: int,
    ) -> LeaveBalanceOut:
        """Apply a signed change: ``delta > 0`` debits, ``delta < 0`` credits."""
        if delta > 0:
            return await BalanceLedger.debit(db, employee_id, delta)
        if delta < 0:
            return await BalanceLedger.credit(db, employee_id, -delta)
        return await BalanceLedger.get_balance(db, employee_id)

    @staticmethod
    async def confirm(db: AsyncSession, employee_id: uuid.UUID) -> LeaveBalanceOut:
        """Final-approval hook: the days were debited at submission.

        Verifies the balance without changing it.
        """
        employee = await BalanceLedger._load(db, employee_id)
        BalanceLedger._check_invariant(employee)
        return BalanceLedger._to_balance(employee)

    # ─────────────────────────────────────────────────────────────────
    # Admin: set entitlement
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def set_total(
        db: AsyncSession,
        employee_id: uuid.UUID,
        total: int,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveBalanceOut:
        """Set a new yearly entitlement, keeping ``used`` as is."""
        if total < 0:
            raise ValidationException({"total": ["Total leave days cannot be negative."]})

        before = await BalanceLedger._load(db, employee_id)
        old_values = before.leave_balance

        result = await db.execute(
            update(Employee)
            .where(Employee.id == employee_id, Employee.leave_used <= total)
            .values(
                leave_total=total,
                leave_available=total - Employee.leave_used,
            )
            .execution_options(synchronize_session=False)
        )
        employee = await BalanceLedger._load(db, employee_id)
        if result.rowcount == 0:
            raise ValidationException(
                {"total": [
                    f"Total cannot be less than the {employee.leave_used} "
                    "day(s) already used."
                ]}
            )

        BalanceLedger._check_invariant(employee)
        await create_audit_entry(
            db,
            action="balance_update",
            entity_type="employee",
            entity_id=employee_id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=employee.leave_balance,
        )
        logger.info("Leave entitlement of employee %s set to %d", employee_id, total)
        return BalanceLedger._to_balance(employee)
