"""User directory ORM model: Employee with its leave balance counters.

The three balance columns are owned by the leave ledger
(``leaveflow.leave.ledger``); nothing else writes them. The CHECK
constraints keep ``leave_total == leave_available + leave_used`` true at the
database level as well.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leaveflow.common.audit import utcnow
from leaveflow.common.constants import Department, UserRole, enum_values
from leaveflow.database import Base

if TYPE_CHECKING:
    from leaveflow.leave.models import LeaveRequest


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class Employee(Base):
    """Employee record — requester, reliever and approver of leave."""

    __tablename__ = "employees"
    __table_args__ = (
        sa.CheckConstraint(
            "leave_total = leave_available + leave_used",
            name="ck_employee_leave_balance",
        ),
        sa.CheckConstraint("leave_available >= 0", name="ck_employee_leave_available"),
        sa.CheckConstraint("leave_used >= 0", name="ck_employee_leave_used"),
        sa.Index("ix_employees_department", "department"),
    )

    # ── Primary key ─────────────────────────────────────────────────
    id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # ── Identifiers ─────────────────────────────────────────────────
    staff_id: Mapped[str] = mapped_column(
        sa.String(20), unique=True, nullable=False,
    )
    email: Mapped[str] = mapped_column(
        sa.String(255), unique=True, nullable=False,
    )

    # ── Name ────────────────────────────────────────────────────────
    first_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)

    # ── Org / access ────────────────────────────────────────────────
    department: Mapped[Department] = mapped_column(
        sa.Enum(Department, name="department", values_callable=enum_values),
        nullable=False,
    )
    role: Mapped[UserRole] = mapped_column(
        sa.Enum(UserRole, name="user_role", values_callable=enum_values),
        nullable=False,
        default=UserRole.employee,
        server_default=UserRole.employee.value,
    )
    is_hod: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.false(),
    )

    # ── Leave balance ───────────────────────────────────────────────
    leave_total: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    leave_available: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    leave_used: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0, server_default=sa.text("0"),
    )

    # ── Status / Timestamps ─────────────────────────────────────────
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=True, server_default=sa.true(),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=sa.func.now(),
    )

    # ── Relationships ───────────────────────────────────────────────
    leave_requests: Mapped[list[LeaveRequest]] = relationship(
        back_populates="employee",
        foreign_keys="LeaveRequest.employee_id",
        passive_deletes=True,
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def leave_balance(self) -> dict[str, int]:
        return {
            "total": self.leave_total,
            "available": self.leave_available,
            "used": self.leave_used,
        }

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin

    def __repr__(self) -> str:
        return f"<Employee {self.staff_id} {self.full_name!r} ({self.department.value})>"
