"""Leave service layer — request lifecycle and display status.

Business logic:
  - Apply for leave: type, date and reliever validation, Mon–Fri day count,
    overlap check, balance check, insert + debit in one savepoint
  - Edit while still waiting for the HOD, re-charging the day difference
  - Cancel (refund) and delete (refund only while Pending)
  - Display status: Approved → Active → Over, derived from today's date and
    persisted when read
  - Listings: own requests, approver view with status / department filters,
    single request and its approval progress

Stage changes and approval history belong to ``ApprovalService``; the
lifecycle only moves a request to Cancelled, deletes it, or persists the
derived Active / Over status.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leaveflow.common.audit import create_audit_entry
from leaveflow.common.constants import (
    BLOCKING_LEAVE_STATUSES,
    STAGE_APPROVER_ROLES,
    ApprovalRole,
    ApprovalStage,
    Department,
    LeaveStatus,
    LeaveType,
    UserRole,
)
from leaveflow.common.dates import count_working_days, resolve_today
from leaveflow.common.exceptions import (
    ConflictError,
    ForbiddenException,
    InsufficientBalanceException,
    NotFoundException,
    PreconditionException,
    ValidationException,
)
from leaveflow.common.pagination import PaginatedResponse, PaginationParams, paginate
from leaveflow.common.transactions import paired_write
from leaveflow.leave.ledger import BalanceLedger
from leaveflow.leave.models import ApprovalStep, LeaveRequest
from leaveflow.leave.schemas import (
    ApprovalStepOut,
    LeaveProgressOut,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveRequestUpdate,
)
from leaveflow.users.models import Employee

logger = logging.getLogger(__name__)

# Cancelling one of these would refund days that were already given back
# (Rejected, Cancelled) or already taken (Over).
_NOT_CANCELLABLE = frozenset({LeaveStatus.over, LeaveStatus.rejected, LeaveStatus.cancelled})
_NOT_DELETABLE = frozenset({LeaveStatus.active, LeaveStatus.approved})


def derive_display_status(
    status: LeaveStatus,
    from_date: date,
    to_date: date,
    today: date,
) -> LeaveStatus:
    """Status a request should show on *today*.

    Approved becomes Active inside ``[from_date, to_date]`` and Over after
    ``to_date``; Active becomes Over after ``to_date``. Everything else is
    returned unchanged. Idempotent and never moves backwards.
    """
    if status == LeaveStatus.approved:
        if today > to_date:
            return LeaveStatus.over
        if from_date <= today:
            return LeaveStatus.active
        return status
    if status == LeaveStatus.active and today > to_date:
        return LeaveStatus.over
    return status


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave lifecycle operations: apply, edit, cancel, delete, listings."""

    derive_display_status = staticmethod(derive_display_status)

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _request_query():
        return select(LeaveRequest).options(
            selectinload(LeaveRequest.employee),
            selectinload(LeaveRequest.reliever),
            selectinload(LeaveRequest.approval_steps).selectinload(ApprovalStep.approver),
        )

    @staticmethod
    async def get_request(db: AsyncSession, leave_id: uuid.UUID) -> LeaveRequest:
        """Load a request with employee, reliever and approval history.

        Always re-reads from the database: transitions are written with
        conditional UPDATE statements that bypass the identity map.
        """
        result = await db.execute(
            LeaveService._request_query()
            .where(LeaveRequest.id == leave_id)
            .execution_options(populate_existing=True)
        )
        leave = result.scalars().first()
        if leave is None:
            raise NotFoundException("LeaveRequest", str(leave_id))
        return leave

    @staticmethod
    async def _get_active_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        field: Optional[str] = None,
    ) -> Employee:
        """Load an active employee.

        With *field* set, a missing or inactive employee is reported as a
        validation error on that field instead of a 404.
        """
        result = await db.execute(
            select(Employee).where(
                Employee.id == employee_id, Employee.is_active.is_(True),
            )
        )
        employee = result.scalars().first()
        if employee is None:
            if field:
                raise ValidationException(
                    {field: ["Selected employee does not exist or is inactive."]}
                )
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    def _parse_leave_type(value: Any) -> LeaveType:
        try:
            return LeaveType(value)
        except ValueError:
            allowed = ", ".join(t.value for t in LeaveType)
            raise ValidationException(
                {"leave_type": [f"Invalid leave type '{value}'. Allowed: {allowed}."]}
            ) from None

    @staticmethod
    def _count_days(from_date: date, to_date: date) -> int:
        if to_date < from_date:
            raise ValidationException(
                {"to_date": ["End date cannot be before start date."]}
            )
        total_days = count_working_days(from_date, to_date)
        if total_days <= 0:
            raise ValidationException(
                {"dates": ["No working days in the selected range "
                           "(weekends are not counted)."]}
            )
        return total_days

    @staticmethod
    async def _check_reliever(
        db: AsyncSession,
        reliever_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> Employee:
        if reliever_id == employee_id:
            raise ValidationException(
                {"reliever_id": ["You cannot be your own reliever."]}
            )
        return await LeaveService._get_active_employee(db, reliever_id, field="reliever_id")

    @staticmethod
    async def _check_overlap(
        db: AsyncSession,
        employee_id: uuid.UUID,
        from_date: date,
        to_date: date,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(LeaveRequest.id).where(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status.in_(BLOCKING_LEAVE_STATUSES),
            LeaveRequest.from_date <= to_date,
            LeaveRequest.to_date >= from_date,
        )
        if exclude_id is not None:
            query = query.where(LeaveRequest.id != exclude_id)
        if (await db.execute(query.limit(1))).first() is not None:
            raise ValidationException(
                {"dates": [
                    "You already have a pending or approved leave request "
                    "overlapping with these dates."
                ]}
            )

    @staticmethod
    def _require_owner_or_admin(leave: LeaveRequest, actor: Employee, action: str) -> None:
        if leave.employee_id != actor.id and actor.role != UserRole.admin:
            raise ForbiddenException(f"You are not authorized to {action} this leave request.")

    @staticmethod
    def _can_view(leave: LeaveRequest, actor: Employee) -> bool:
        if actor.id in (leave.employee_id, leave.reliever_id):
            return True
        if actor.role in (UserRole.admin, UserRole.hr, UserRole.ged):
            return True
        return actor.is_hod and actor.department == leave.employee.department

    @staticmethod
    async def compare_and_set(
        db: AsyncSession,
        leave: LeaveRequest,
        values: dict[str, Any],
        *,
        expected_status: LeaveStatus,
        expected_stage: Optional[int] = None,
    ) -> None:
        """Write *values* only if the row still has the status (and stage)
        that was read; otherwise another request got there first."""
        criteria = [
            LeaveRequest.id == leave.id,
            LeaveRequest.status == expected_status,
        ]
        if expected_stage is not None:
            criteria.append(LeaveRequest.stage == expected_stage)

        result = await db.execute(
            update(LeaveRequest)
            .where(*criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(
                "Leave request was changed by another request. Reload and try again."
            )

    @staticmethod
    def _snapshot(leave: LeaveRequest) -> dict[str, Any]:
        return {
            "leave_type": leave.leave_type.value,
            "from_date": leave.from_date.isoformat(),
            "to_date": leave.to_date.isoformat(),
            "total_days": leave.total_days,
            "status": leave.status.value,
            "stage": leave.stage,
            "reliever_id": str(leave.reliever_id) if leave.reliever_id else None,
        }

    @staticmethod
    def build_step_response(step: ApprovalStep) -> ApprovalStepOut:
        return ApprovalStepOut.model_validate(step)

    @staticmethod
    def build_request_response(leave: LeaveRequest) -> LeaveRequestOut:
        """Build LeaveRequestOut from ORM, adding the per-role approval views."""
        out = LeaveRequestOut.model_validate(leave)
        for role in ApprovalRole:
            step = leave.step_for(role)
            if step is None:
                continue
            prefix = role.name
            setattr(out, f"{prefix}_approval_status", step.decision)
            setattr(out, f"{prefix}_approval_date", step.decided_at)
            setattr(out, f"{prefix}_approval_comment", step.comments)
            setattr(out, f"{prefix}_approver_id", step.approver_id)
        return out

    # ─────────────────────────────────────────────────────────────────
    # Display status
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def refresh_display_status(
        db: AsyncSession,
        leave: LeaveRequest,
        today: Optional[date] = None,
    ) -> LeaveRequest:
        """Persist the derived Active / Over status of a single request."""
        today = resolve_today(today)
        derived = derive_display_status(leave.status, leave.from_date, leave.to_date, today)
        if derived == leave.status:
            return leave

        result = await db.execute(
            update(LeaveRequest)
            .where(LeaveRequest.id == leave.id, LeaveRequest.status == leave.status)
            .values(status=derived, is_active=derived == LeaveStatus.active)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.info("Leave %s is now %s", leave.id, derived.value)
        return await LeaveService.get_request(db, leave.id)

    @staticmethod
    async def refresh_display_statuses(
        db: AsyncSession,
        today: Optional[date] = None,
        *,
        employee_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Bulk version of ``refresh_display_status``.

        Over is applied first so a request past its end date never stops at
        Active.
        """
        today = resolve_today(today)
        scope = [LeaveRequest.employee_id == employee_id] if employee_id else []

        await db.execute(
            update(LeaveRequest)
            .where(
                *scope,
                LeaveRequest.status.in_([LeaveStatus.approved, LeaveStatus.active]),
                LeaveRequest.to_date < today,
            )
            .values(status=LeaveStatus.over, is_active=False)
            .execution_options(synchronize_session=False)
        )
        await db.execute(
            update(LeaveRequest)
            .where(
                *scope,
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.from_date <= today,
                LeaveRequest.to_date >= today,
            )
            .values(status=LeaveStatus.active, is_active=True)
            .execution_options(synchronize_session=False)
        )

    # ─────────────────────────────────────────────────────────────────
    # Apply for Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def create_leave(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: LeaveRequestCreate,
        *,
        today: Optional[date] = None,
    ) -> LeaveRequestOut:
        """Apply for leave with full validation:
        - Leave type in the allowed set
        - Start date not in the past, end date not before start
        - At least one working day (Mon–Fri) in the range
        - Reliever is an active colleague other than the requester
        - No overlapping pending / approved / active request
        - Enough available balance

        The days are debited immediately; the insert and the debit commit
        together or not at all.
        """
        today = resolve_today(today)

        # ── Load employee ───────────────────────────────────────────
        employee = await LeaveService._get_active_employee(db, employee_id)

        # ── Field validation ────────────────────────────────────────
        leave_type = LeaveService._parse_leave_type(data.leave_type)
        if data.from_date < today:
            raise ValidationException(
                {"from_date": ["Start date cannot be in the past."]}
            )
        total_days = LeaveService._count_days(data.from_date, data.to_date)
        await LeaveService._check_reliever(db, data.reliever_id, employee.id)

        # ── Check overlapping leaves ────────────────────────────────
        await LeaveService._check_overlap(db, employee.id, data.from_date, data.to_date)

        # ── Check sufficient balance ────────────────────────────────
        if employee.leave_available < total_days:
            raise InsufficientBalanceException(employee.leave_available, total_days)

        # ── Insert + debit ──────────────────────────────────────────
        async with paired_write(db, "Leave application"):
            leave = LeaveRequest(
                employee_id=employee.id,
                leave_type=leave_type,
                other_leave_type=data.other_leave_type,
                from_date=data.from_date,
                to_date=data.to_date,
                total_days=total_days,
                reason=data.reason,
                reliever_id=data.reliever_id,
                status=LeaveStatus.pending,
                stage=int(ApprovalStage.hod),
                is_editable=True,
                is_active=False,
            )
            db.add(leave)
            await db.flush()

            await BalanceLedger.debit(db, employee.id, total_days)

            await create_audit_entry(
                db,
                action="create",
                entity_type="leave_request",
                entity_id=leave.id,
                actor_id=employee.id,
                new_values=LeaveService._snapshot(leave),
            )

        logger.info(
            "Leave %s applied by %s: %s, %d day(s)",
            leave.id, employee.staff_id, leave_type.value, total_days,
        )
        return LeaveService.build_request_response(
            await LeaveService.get_request(db, leave.id)
        )

    # ─────────────────────────────────────────────────────────────────
    # Edit Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def edit_leave(
        db: AsyncSession,
        leave_id: uuid.UUID,
        actor: Employee,
        data: LeaveRequestUpdate,
        *,
        today: Optional[date] = None,
    ) -> LeaveRequestOut:
        """Edit a request that is still editable (stage 1, Pending).

        The day difference is charged to (or refunded to) the request
        owner's balance, whoever performs the edit.
        """
        today = resolve_today(today)
        leave = await LeaveService.get_request(db, leave_id)
        LeaveService._require_owner_or_admin(leave, actor, "edit")

        if not (
            leave.is_editable
            and leave.stage < ApprovalStage.hr
            and leave.status == LeaveStatus.pending
        ):
            raise PreconditionException("Leave request cannot be edited at this stage.")

        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return LeaveService.build_request_response(leave)

        values: dict[str, Any] = {}
        if "leave_type" in changes:
            values["leave_type"] = LeaveService._parse_leave_type(changes["leave_type"])
        if "other_leave_type" in changes:
            values["other_leave_type"] = changes["other_leave_type"]
        if changes.get("reason") is not None:
            values["reason"] = changes["reason"]
        if changes.get("reliever_id") is not None:
            await LeaveService._check_reliever(db, changes["reliever_id"], leave.employee_id)
            values["reliever_id"] = changes["reliever_id"]

        from_date = changes.get("from_date") or leave.from_date
        to_date = changes.get("to_date") or leave.to_date
        delta = 0
        if (from_date, to_date) != (leave.from_date, leave.to_date):
            if from_date != leave.from_date and from_date < today:
                raise ValidationException(
                    {"from_date": ["Start date cannot be in the past."]}
                )
            total_days = LeaveService._count_days(from_date, to_date)
            await LeaveService._check_overlap(
                db, leave.employee_id, from_date, to_date, exclude_id=leave.id,
            )
            delta = total_days - leave.total_days
            if delta > 0 and leave.employee.leave_available < delta:
                raise InsufficientBalanceException(leave.employee.leave_available, delta)
            values.update(from_date=from_date, to_date=to_date, total_days=total_days)

        if not values:
            return LeaveService.build_request_response(leave)

        old_values = LeaveService._snapshot(leave)
        async with paired_write(db, "Leave edit"):
            await LeaveService.compare_and_set(
                db,
                leave,
                values,
                expected_status=LeaveStatus.pending,
                expected_stage=int(ApprovalStage.hod),
            )
            if delta:
                await BalanceLedger.adjust(db, leave.employee_id, delta)

            leave = await LeaveService.get_request(db, leave.id)
            await create_audit_entry(
                db,
                action="update",
                entity_type="leave_request",
                entity_id=leave.id,
                actor_id=actor.id,
                old_values=old_values,
                new_values=LeaveService._snapshot(leave),
            )

        logger.info("Leave %s edited by %s (day delta %+d)", leave.id, actor.staff_id, delta)
        return LeaveService.build_request_response(leave)

    # ─────────────────────────────────────────────────────────────────
    # Cancel Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def cancel_leave(
        db: AsyncSession,
        leave_id: uuid.UUID,
        actor: Employee,
        *,
        today: Optional[date] = None,
    ) -> LeaveRequestOut:
        """Cancel a Pending, Approved or Active request and refund its days."""
        leave = await LeaveService.get_request(db, leave_id)
        LeaveService._require_owner_or_admin(leave, actor, "cancel")

        leave = await LeaveService.refresh_display_status(db, leave, today)
        if leave.status in _NOT_CANCELLABLE:
            raise PreconditionException(
                f"Cannot cancel a leave request that is {leave.status.value}."
            )

        old_values = LeaveService._snapshot(leave)
        async with paired_write(db, "Leave cancellation"):
            await LeaveService.compare_and_set(
                db,
                leave,
                {"status": LeaveStatus.cancelled, "is_editable": False, "is_active": False},
                expected_status=leave.status,
            )
            await BalanceLedger.credit(db, leave.employee_id, leave.total_days)

            await create_audit_entry(
                db,
                action="cancel",
                entity_type="leave_request",
                entity_id=leave.id,
                actor_id=actor.id,
                old_values=old_values,
                new_values={"status": LeaveStatus.cancelled.value},
            )

        logger.info(
            "Leave %s cancelled by %s, %d day(s) refunded",
            leave.id, actor.staff_id, leave.total_days,
        )
        return LeaveService.build_request_response(
            await LeaveService.get_request(db, leave.id)
        )

    # ─────────────────────────────────────────────────────────────────
    # Delete Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def delete_leave(
        db: AsyncSession,
        leave_id: uuid.UUID,
        actor: Employee,
        *,
        today: Optional[date] = None,
    ) -> None:
        """Delete a request that is not Approved or Active.

        Days are refunded only while the request is still Pending; Rejected
        and Cancelled requests were refunded when they reached that state.
        """
        leave = await LeaveService.get_request(db, leave_id)
        LeaveService._require_owner_or_admin(leave, actor, "delete")

        leave = await LeaveService.refresh_display_status(db, leave, today)
        if leave.status in _NOT_DELETABLE:
            raise PreconditionException(
                f"Cannot delete a leave request that is {leave.status.value}."
            )

        old_values = LeaveService._snapshot(leave)
        refund = leave.total_days if leave.status == LeaveStatus.pending else 0

        async with paired_write(db, "Leave deletion"):
            await db.execute(
                delete(ApprovalStep)
                .where(ApprovalStep.leave_id == leave.id)
                .execution_options(synchronize_session=False)
            )
            result = await db.execute(
                delete(LeaveRequest)
                .where(LeaveRequest.id == leave.id, LeaveRequest.status == leave.status)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError(
                    "Leave request was changed by another request. Reload and try again."
                )
            if refund:
                await BalanceLedger.credit(db, leave.employee_id, refund)
            db.expunge(leave)

            await create_audit_entry(
                db,
                action="delete",
                entity_type="leave_request",
                entity_id=leave.id,
                actor_id=actor.id,
                old_values=old_values,
            )

        logger.info(
            "Leave %s deleted by %s, %d day(s) refunded", leave.id, actor.staff_id, refund,
        )

    # ─────────────────────────────────────────────────────────────────
    # Read
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_leave(
        db: AsyncSession,
        leave_id: uuid.UUID,
        actor: Employee,
        *,
        today: Optional[date] = None,
    ) -> LeaveRequestOut:
        leave = await LeaveService.get_request(db, leave_id)
        if not LeaveService._can_view(leave, actor):
            raise ForbiddenException("You are not authorized to view this leave request.")
        leave = await LeaveService.refresh_display_status(db, leave, today)
        return LeaveService.build_request_response(leave)

    @staticmethod
    async def get_progress(
        db: AsyncSession,
        leave_id: uuid.UUID,
        actor: Employee,
        *,
        today: Optional[date] = None,
    ) -> LeaveProgressOut:
        """Approval flow of a request: recorded decisions plus the role
        the request is currently waiting on."""
        leave = await LeaveService.get_request(db, leave_id)
        if not LeaveService._can_view(leave, actor):
            raise ForbiddenException("You are not authorized to view this leave request.")
        leave = await LeaveService.refresh_display_status(db, leave, today)

        current_role = (
            ApprovalStage(leave.stage).role
            if leave.status == LeaveStatus.pending
            else None
        )
        return LeaveProgressOut(
            id=leave.id,
            status=leave.status,
            stage=leave.stage,
            current_role=current_role,
            approval_flow=[
                LeaveService.build_step_response(step) for step in leave.approval_steps
            ],
        )

    @staticmethod
    async def get_my_leaves(
        db: AsyncSession,
        employee_id: uuid.UUID,
        params: PaginationParams,
        *,
        status: Optional[LeaveStatus] = None,
        today: Optional[date] = None,
    ) -> PaginatedResponse:
        """The employee's own requests, newest first, statuses refreshed."""
        await LeaveService.refresh_display_statuses(db, today, employee_id=employee_id)

        query = (
            LeaveService._request_query()
            .where(LeaveRequest.employee_id == employee_id)
            .order_by(LeaveRequest.created_at.desc())
            .execution_options(populate_existing=True)
        )
        if status is not None:
            query = query.where(LeaveRequest.status == status)

        return await paginate(
            db,
            query,
            params,
            model=LeaveRequest,
            transform=LeaveService.build_request_response,
        )

    @staticmethod
    async def list_leaves(
        db: AsyncSession,
        actor: Employee,
        params: PaginationParams,
        *,
        status: Optional[LeaveStatus] = None,
        department: Optional[Department] = None,
        today: Optional[date] = None,
    ) -> PaginatedResponse:
        """Approver view of all requests.

        A HOD without a wider role only sees their own department.
        """
        await LeaveService.refresh_display_statuses(db, today)

        query = (
            LeaveService._request_query()
            .join(LeaveRequest.employee)
            .order_by(LeaveRequest.created_at.desc())
            .execution_options(populate_existing=True)
        )
        if actor.role not in (UserRole.admin, UserRole.hr, UserRole.ged):
            if not actor.is_hod:
                raise ForbiddenException("Only approvers can list all leave requests.")
            if department is not None and department != actor.department:
                raise ForbiddenException("You can only view your own department's leave requests.")
            department = actor.department

        if status is not None:
            query = query.where(LeaveRequest.status == status)
        if department is not None:
            query = query.where(Employee.department == department)

        return await paginate(
            db,
            query,
            params,
            model=LeaveRequest,
            transform=LeaveService.build_request_response,
        )

    @staticmethod
    async def get_queue(
        db: AsyncSession,
        actor: Employee,
        role: ApprovalRole,
        params: PaginationParams,
    ) -> PaginatedResponse:
        """Pending requests waiting for *role*'s decision."""
        stage = ApprovalStage.for_role(role)
        query = (
            LeaveService._request_query()
            .join(LeaveRequest.employee)
            .where(
                LeaveRequest.status == LeaveStatus.pending,
                LeaveRequest.stage == int(stage),
            )
            .order_by(LeaveRequest.from_date.asc())
            .execution_options(populate_existing=True)
        )

        if stage == ApprovalStage.hod:
            if not actor.is_hod:
                raise ForbiddenException("Only a head of department can view the HOD queue.")
            query = query.where(Employee.department == actor.department)
        elif actor.role not in STAGE_APPROVER_ROLES[stage]:
            raise ForbiddenException(f"Only {role.value} can view the {role.value} queue.")

        return await paginate(
            db,
            query,
            params,
            model=LeaveRequest,
            transform=LeaveService.build_request_response,
        )
