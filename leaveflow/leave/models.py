"""Leave ORM models: LeaveRequest and its append-only ApprovalStep history."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leaveflow.common.audit import utcnow
from leaveflow.common.constants import (
    ApprovalRole,
    ApprovalStage,
    LeaveStatus,
    LeaveType,
    StageDecision,
    enum_values,
)
from leaveflow.database import Base
from leaveflow.users.models import Employee


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.CheckConstraint("stage BETWEEN 1 AND 3", name="ck_leave_stage"),
        sa.CheckConstraint("to_date >= from_date", name="ck_leave_date_range"),
        sa.Index("ix_leave_requests_employee", "employee_id"),
        sa.Index("ix_leave_requests_status_stage", "status", "stage"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    leave_type: Mapped[LeaveType] = mapped_column(
        sa.Enum(LeaveType, name="leave_type", values_callable=enum_values),
        nullable=False,
    )
    other_leave_type: Mapped[Optional[str]] = mapped_column(sa.String(100))
    from_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    to_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    total_days: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    reliever_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        sa.Uuid, sa.ForeignKey("employees.id", ondelete="SET NULL")
    )
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status", values_callable=enum_values),
        nullable=False,
        default=LeaveStatus.pending,
        server_default=LeaveStatus.pending.value,
    )
    stage: Mapped[int] = mapped_column(
        sa.Integer,
        nullable=False,
        default=int(ApprovalStage.hod),
        server_default=sa.text("1"),
    )
    is_editable: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=True, server_default=sa.true()
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.false()
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=sa.func.now(),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(
        back_populates="leave_requests", foreign_keys=[employee_id]
    )
    reliever: Mapped[Optional[Employee]] = relationship(foreign_keys=[reliever_id])
    approval_steps: Mapped[list[ApprovalStep]] = relationship(
        back_populates="leave_request",
        order_by="ApprovalStep.stage",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def step_for(self, role: ApprovalRole) -> Optional[ApprovalStep]:
        """The recorded decision for *role*, if that stage has been decided."""
        for step in self.approval_steps:
            if step.role == role:
                return step
        return None

    def decision_for(self, role: ApprovalRole) -> StageDecision:
        step = self.step_for(role)
        return step.decision if step is not None else StageDecision.pending

    def __repr__(self) -> str:
        return (
            f"<LeaveRequest {self.id} {self.leave_type.value} "
            f"{self.from_date}..{self.to_date} {self.status.value}@{self.stage}>"
        )


class ApprovalStep(Base):
    """One decision in a request's approval chain. Rows are never updated."""

    __tablename__ = "approval_steps"
    __table_args__ = (
        sa.UniqueConstraint("leave_id", "stage", name="uq_approval_step_stage"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    leave_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("leave_requests.id", ondelete="CASCADE"), nullable=False
    )
    approver_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        sa.Uuid, sa.ForeignKey("employees.id", ondelete="SET NULL")
    )
    role: Mapped[ApprovalRole] = mapped_column(
        sa.Enum(ApprovalRole, name="approval_role", values_callable=enum_values),
        nullable=False,
    )
    stage: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    decision: Mapped[StageDecision] = mapped_column(
        sa.Enum(StageDecision, name="stage_decision", values_callable=enum_values),
        nullable=False,
    )
    comments: Mapped[Optional[str]] = mapped_column(sa.Text)
    decided_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now()
    )

    # Relationships
    leave_request: Mapped[LeaveRequest] = relationship(back_populates="approval_steps")
    approver: Mapped[Optional[Employee]] = relationship(foreign_keys=[approver_id])
