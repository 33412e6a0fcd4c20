"""Approval service — the HOD → HR → GED state machine.

    Pending(1) ──approve──▶ Pending(2) ──approve──▶ Pending(3) ──approve──▶ Approved
        │                      │                       │
        └──────reject──────────┴────────reject─────────┴──▶ Rejected (days refunded)

Two entry points drive the same transition:

  - generic ``approve`` / ``reject``: the deciding role is inferred from the
    request's current stage; rejecting requires comments
  - per-role ``hod_*`` / ``hr_*`` / ``ged_*``: the caller names the role;
    the earlier stages must already be approved and the role must not have
    decided yet

Stage, status and the ``approval_steps`` history are written together in one
savepoint with the ledger refund (reject) or check (final approve), and the
stage/status update is conditional on the values that were read.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.audit import create_audit_entry
from leaveflow.common.constants import (
    STAGE_APPROVER_ROLES,
    ApprovalRole,
    ApprovalStage,
    LeaveStatus,
    StageDecision,
    UserRole,
)
from leaveflow.common.exceptions import (
    ConflictError,
    ForbiddenException,
    PreconditionException,
    ValidationException,
)
from leaveflow.common.transactions import paired_write
from leaveflow.leave.ledger import BalanceLedger
from leaveflow.leave.models import ApprovalStep, LeaveRequest
from leaveflow.leave.schemas import LeaveRequestOut
from leaveflow.leave.service import LeaveService
from leaveflow.users.models import Employee

logger = logging.getLogger(__name__)


class ApprovalService:
    """Async approval transitions for leave requests."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _ensure_authority(
        leave: LeaveRequest,
        stage: ApprovalStage,
        actor: Employee,
        *,
        admin_may_act_as_hod: bool,
    ) -> None:
        """Who may decide *stage*:

        HOD: a head of department from the requester's department;
        HR: role hr or admin. GED: role ged or admin.
        """
        if stage == ApprovalStage.hod:
            if admin_may_act_as_hod and actor.role == UserRole.admin:
                return
            if not actor.is_hod:
                raise ForbiddenException("Only a head of department can act at the HOD stage.")
            if actor.department != leave.employee.department:
                raise ForbiddenException(
                    "You can only act on leave requests from your own department."
                )
            return

        allowed = STAGE_APPROVER_ROLES[stage]
        if actor.role not in allowed:
            raise ForbiddenException(
                f"Role '{actor.role.value}' cannot act at the {stage.role.value} stage."
            )

    @staticmethod
    def _ensure_prerequisites(leave: LeaveRequest, stage: ApprovalStage) -> None:
        """Per-role protocol: refuse a decision made twice or out of order."""
        role = stage.role
        if leave.step_for(role) is not None:
            raise ConflictError(
                f"Leave request has already been {leave.decision_for(role).value} by {role.value}."
            )
        for earlier in ApprovalStage:
            if earlier >= stage:
                break
            if leave.decision_for(earlier.role) != StageDecision.approved:
                raise PreconditionException(
                    f"Leave request must be approved by {earlier.role.value} "
                    f"before {role.value} can act on it."
                )

    @staticmethod
    def _ensure_pending_at(leave: LeaveRequest, stage: ApprovalStage) -> None:
        if leave.status != LeaveStatus.pending:
            raise PreconditionException(
                f"Leave request is already {leave.status.value}."
            )
        if leave.stage != stage:
            raise PreconditionException(
                f"Leave request is waiting for {ApprovalStage(leave.stage).role.value}, "
                f"not {stage.role.value}."
            )

    @staticmethod
    async def _decide(
        db: AsyncSession,
        leave: LeaveRequest,
        stage: ApprovalStage,
        actor: Employee,
        decision: StageDecision,
        comments: Optional[str],
        *,
        today: Optional[date] = None,
    ) -> LeaveRequestOut:
        """Apply one decision: write the step, move stage / status, and
        refund (reject) or verify (final approve) the ledger."""
        role = stage.role
        final = decision == StageDecision.approved and stage == ApprovalStage.ged

        values: dict[str, Any]
        if decision == StageDecision.rejected:
            values = {"status": LeaveStatus.rejected, "is_editable": False}
        elif final:
            values = {"status": LeaveStatus.approved, "is_editable": False}
        else:
            next_stage = stage + 1
            values = {
                "stage": next_stage,
                "status": LeaveStatus.pending,
                "is_editable": next_stage < ApprovalStage.hr,
            }

        async with paired_write(db, f"{role.value} {decision.value}"):
            await LeaveService.compare_and_set(
                db,
                leave,
                values,
                expected_status=LeaveStatus.pending,
                expected_stage=int(stage),
            )
            db.add(
                ApprovalStep(
                    leave_id=leave.id,
                    approver_id=actor.id,
                    role=role,
                    stage=int(stage),
                    decision=decision,
                    comments=comments,
                )
            )
            await db.flush()

            if decision == StageDecision.rejected:
                await BalanceLedger.credit(db, leave.employee_id, leave.total_days)
            elif final:
                await BalanceLedger.confirm(db, leave.employee_id)

            await create_audit_entry(
                db,
                action="approve" if decision == StageDecision.approved else "reject",
                entity_type="leave_request",
                entity_id=leave.id,
                actor_id=actor.id,
                old_values={"status": leave.status.value, "stage": leave.stage},
                new_values={
                    "status": values["status"].value,
                    "stage": int(values.get("stage", stage)),
                    "role": role.value,
                    "comments": comments,
                },
            )

        logger.info(
            "Leave %s %s by %s (%s) at stage %d",
            leave.id, decision.value, actor.staff_id, role.value, stage,
        )

        leave = await LeaveService.get_request(db, leave.id)
        if final:
            leave = await LeaveService.refresh_display_status(db, leave, today)
        return LeaveService.build_request_response(leave)

    # ─────────────────────────────────────────────────────────────────
    # Generic protocol
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def approve(
        db: AsyncSession,
        leave_id: uuid.UUID,
        actor: Employee,
        *,
        comments: Optional[str] = None,
        today: Optional[date] = None,
    ) -> LeaveRequestOut:
        """Approve at whatever stage the request is waiting on."""
        leave = await LeaveService.get_request(db, leave_id)
        if leave.status != LeaveStatus.pending:
            raise PreconditionException(f"Leave request is already {leave.status.value}.")

        stage = ApprovalStage(leave.stage)
        ApprovalService._ensure_authority(leave, stage, actor, admin_may_act_as_hod=True)
        return await ApprovalService._decide(
            db, leave, stage, actor, StageDecision.approved, comments, today=today,
        )

    @staticmethod
    async def reject(
        db: AsyncSession,
        leave_id: uuid.UUID,
        actor: Employee,
        *,
        comments: Optional[str],
    ) -> LeaveRequestOut:
        """Reject at the current stage. A reason is mandatory."""
        if not comments or not comments.strip():
            raise ValidationException(
                {"comments": ["Please provide a reason for rejection."]}
            )

        leave = await LeaveService.get_request(db, leave_id)
        if leave.status != LeaveStatus.pending:
            raise PreconditionException(f"Leave request is already {leave.status.value}.")

        stage = ApprovalStage(leave.stage)
        ApprovalService._ensure_authority(leave, stage, actor, admin_may_act_as_hod=True)
        return await ApprovalService._decide(
            db, leave, stage, actor, StageDecision.rejected, comments.strip(),
        )

    # ─────────────────────────────────────────────────────────────────
    # Per-role protocol
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def decide_as(
        db: AsyncSession,
        leave_id: uuid.UUID,
        actor: Employee,
        role: ApprovalRole,
        decision: StageDecision,
        *,
        comments: Optional[str] = None,
        today: Optional[date] = None,
    ) -> LeaveRequestOut:
        """Decide as a named role.

        Checks run in order: authority (403), already decided (409 conflict),
        earlier stages approved (409 precondition), request waiting at this
        stage (409 precondition).
        """
        if decision == StageDecision.pending:
            raise ValidationException({"decision": ["Decision must be approved or rejected."]})

        stage = ApprovalStage.for_role(role)
        leave = await LeaveService.get_request(db, leave_id)

        ApprovalService._ensure_authority(leave, stage, actor, admin_may_act_as_hod=False)
        ApprovalService._ensure_prerequisites(leave, stage)
        ApprovalService._ensure_pending_at(leave, stage)

        return await ApprovalService._decide(
            db, leave, stage, actor, decision, comments, today=today,
        )

    @staticmethod
    async def hod_approve(db: AsyncSession, leave_id: uuid.UUID, actor: Employee, **kwargs) -> LeaveRequestOut:
        return await ApprovalService.decide_as(
            db, leave_id, actor, ApprovalRole.hod, StageDecision.approved, **kwargs,
        )

    @staticmethod
    async def hod_reject(db: AsyncSession, leave_id: uuid.UUID, actor: Employee, **kwargs) -> LeaveRequestOut:
        return await ApprovalService.decide_as(
            db, leave_id, actor, ApprovalRole.hod, StageDecision.rejected, **kwargs,
        )

    @staticmethod
    async def hr_approve(db: AsyncSession, leave_id: uuid.UUID, actor: Employee, **kwargs) -> LeaveRequestOut:
        return await ApprovalService.decide_as(
            db, leave_id, actor, ApprovalRole.hr, StageDecision.approved, **kwargs,
        )

    @staticmethod
    async def hr_reject(db: AsyncSession, leave_id: uuid.UUID, actor: Employee, **kwargs) -> LeaveRequestOut:
        return await ApprovalService.decide_as(
            db, leave_id, actor, ApprovalRole.hr, StageDecision.rejected, **kwargs,
        )

    @staticmethod
    async def ged_approve(db: AsyncSession, leave_id: uuid.UUID, actor: Employee, **kwargs) -> LeaveRequestOut:
        return await ApprovalService.decide_as(
            db, leave_id, actor, ApprovalRole.ged, StageDecision.approved, **kwargs,
        )

    @staticmethod
    async def ged_reject(db: AsyncSession, leave_id: uuid.UUID, actor: Employee, **kwargs) -> LeaveRequestOut:
        return await ApprovalService.decide_as(
            db, leave_id, actor, ApprovalRole.ged, StageDecision.rejected, **kwargs,
        )
