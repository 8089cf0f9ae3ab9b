"""
Approval Coordinator: admin disposition of pending appointments.

State machine (Appointment.approval_status):
- pending --approve(notes)--> approved
- pending --decline(reason)--> declined
- pending --decline(reason, assignee)--> requires_followup

Every decided state is terminal here. Transitions are applied as a
compare-and-swap on (id, version): the UPDATE only matches a row that is
still pending at the version that was read, so of two admins racing on
the same appointment exactly one wins and the other gets ConflictError.

Customer notices are queued by a decision and only delivered by
send_notifications(), which callers run once the decision has committed.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Sequence
from uuid import UUID

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    Appointment,
    ApprovalStatus,
    AuditAction,
    AuditLog,
    Priority,
    utcnow,
)
from .errors import ConflictError, NotFoundError, ValidationError
from .notifications import CustomerNotifier, LoggingNotifier

logger = logging.getLogger(__name__)


# Sort keys accepted by the pending queue; priority sorts urgent first
PENDING_SORT_COLUMNS = {
    "scheduled_at": Appointment.scheduled_at,
    "created_at": Appointment.created_at,
    "estimated_total": Appointment.estimated_total,
    "priority": case(
        {priority: priority.rank for priority in Priority},
        value=Appointment.priority,
    ),
}


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class PendingPage:
    """One page of appointments awaiting a decision."""
    items: Sequence[Appointment]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        if self.limit < 1:
            return 0
        return (self.total + self.limit - 1) // self.limit

    @property
    def has_next_page(self) -> bool:
        return self.page * self.limit < self.total

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1


@dataclass(frozen=True)
class PendingNotice:
    """A customer notice waiting for its decision to commit."""
    kind: str  # "approval" or "decline"
    appointment_id: UUID
    text: str


# =============================================================================
# APPROVAL COORDINATOR
# =============================================================================


class ApprovalCoordinator:
    """
    Applies approve/decline transitions to appointments.

    Guarantees:
    1. Only pending appointments can be decided
    2. A decision is applied at most once, even under concurrent requests
    3. Invalid input leaves the record untouched
    4. Customers hear about a decision only after it is committed, and a
       failed notice never rolls it back
    """

    def __init__(
        self,
        session: AsyncSession,
        notifier: CustomerNotifier | None = None,
    ):
        self._session = session
        self._notifier = notifier or LoggingNotifier()
        self._outbox: list[PendingNotice] = []

    # =========================================================================
    # APPROVE
    # =========================================================================

    async def approve(
        self,
        appointment_id: UUID,
        notes: str,
        notify_customer: bool = False,
        decided_by: str | None = None,
        expected_version: int | None = None,
    ) -> Appointment:
        """
        Approve a pending appointment.

        With notify_customer the approval notice is queued for
        send_notifications().

        Raises:
            NotFoundError: unknown appointment
            ValidationError: notes are empty
            ConflictError: already decided, or lost a concurrent race
        """
        notes = (notes or "").strip()
        if not notes:
            raise ValidationError("Approval notes are required")

        appointment = await self._get_pending_or_raise(appointment_id, expected_version)

        await self._compare_and_swap(
            appointment,
            approval_status=ApprovalStatus.APPROVED,
            approval_notes=notes,
            decided_by=decided_by,
        )

        await self._log_audit(
            action=AuditAction.APPROVE,
            appointment=appointment,
            actor_ref=decided_by,
            details={"notes": notes, "version": appointment.version},
        )

        logger.info(f"Appointment {appointment_id} approved by {decided_by or 'unknown'}")

        if notify_customer:
            self._outbox.append(PendingNotice("approval", appointment_id, notes))

        return appointment

    # =========================================================================
    # DECLINE
    # =========================================================================

    async def decline(
        self,
        appointment_id: UUID,
        reason: str,
        assigned_to: str | None = None,
        notify_customer: bool = False,
        require_follow_up: bool = False,
        decided_by: str | None = None,
        expected_version: int | None = None,
    ) -> Appointment:
        """
        Decline a pending appointment.

        With an assignee the appointment moves to requires_followup,
        otherwise to declined.

        Raises:
            NotFoundError: unknown appointment
            ValidationError: reason empty, or follow-up required without assignee
            ConflictError: already decided, or lost a concurrent race
        """
        reason = (reason or "").strip()
        assigned_to = (assigned_to or "").strip() or None

        if not reason:
            raise ValidationError("Reason for decline is required")
        if require_follow_up and not assigned_to:
            raise ValidationError("Assigned user is required for follow-up")

        appointment = await self._get_pending_or_raise(appointment_id, expected_version)

        target = (
            ApprovalStatus.REQUIRES_FOLLOWUP if assigned_to else ApprovalStatus.DECLINED
        )

        await self._compare_and_swap(
            appointment,
            approval_status=target,
            decline_reason=reason,
            assigned_follow_up_to=assigned_to,
            decided_by=decided_by,
        )

        await self._log_audit(
            action=AuditAction.DECLINE,
            appointment=appointment,
            actor_ref=decided_by,
            details={
                "reason": reason,
                "assigned_to": assigned_to,
                "status": target.value,
                "version": appointment.version,
            },
        )

        logger.info(f"Appointment {appointment_id} {target.value} by {decided_by or 'unknown'}")

        if notify_customer:
            self._outbox.append(PendingNotice("decline", appointment_id, reason))

        return appointment

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    @property
    def pending_notifications(self) -> list[PendingNotice]:
        return list(self._outbox)

    async def send_notifications(self) -> int:
        """
        Deliver the queued customer notices and return how many went out.

        Call only after the transaction holding the decisions has committed;
        FastAPI routes schedule this as a background task. Failures are
        logged and never raised.
        """
        notices, self._outbox = self._outbox, []
        delivered = 0

        for notice in notices:
            try:
                if notice.kind == "approval":
                    await self._notifier.notify_approval(notice.appointment_id, notice.text)
                else:
                    await self._notifier.notify_decline(notice.appointment_id, notice.text)
                delivered += 1
            except Exception as e:
                logger.error(
                    f"{notice.kind.capitalize()} notification failed for appointment "
                    f"{notice.appointment_id}: {e}"
                )

        return delivered

    def discard_notifications(self) -> None:
        """Drop queued notices, e.g. after the decision was rolled back."""
        self._outbox.clear()

    # =========================================================================
    # READS
    # =========================================================================

    async def get(self, appointment_id: UUID) -> Appointment:
        """Get an appointment or raise NotFoundError."""
        appointment = await self._session.get(
            Appointment, appointment_id, populate_existing=True
        )
        if appointment is None:
            raise NotFoundError(f"Appointment {appointment_id} not found")
        return appointment

    async def list_pending(
        self,
        page: int = 1,
        limit: int = 10,
        include_follow_up: bool = False,
        sort_by: str = "scheduled_at",
        sort_order: str = "asc",
    ) -> PendingPage:
        """
        List appointments awaiting a decision, soonest scheduled first by default.

        Raises:
            ValidationError: page or limit below 1, or an unknown sort key/order
        """
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be at least 1")
        if sort_by not in PENDING_SORT_COLUMNS:
            raise ValidationError(
                f"Cannot sort by {sort_by!r}; use one of {sorted(PENDING_SORT_COLUMNS)}"
            )
        if sort_order not in ("asc", "desc"):
            raise ValidationError("sort_order must be 'asc' or 'desc'")

        statuses = [ApprovalStatus.PENDING]
        if include_follow_up:
            statuses.append(ApprovalStatus.REQUIRES_FOLLOWUP)

        condition = Appointment.approval_status.in_(statuses)

        count_result = await self._session.execute(
            select(func.count()).select_from(Appointment).where(condition)
        )
        total = count_result.scalar_one()

        column = PENDING_SORT_COLUMNS[sort_by]
        primary = column.desc() if sort_order == "desc" else column.asc()

        result = await self._session.execute(
            select(Appointment)
            .where(condition)
            .order_by(primary, Appointment.created_at.asc(), Appointment.id.asc())
            .limit(limit)
            .offset((page - 1) * limit)
        )

        return PendingPage(items=result.scalars().all(), total=total, page=page, limit=limit)

    async def list_by_status(self, status: ApprovalStatus) -> Sequence[Appointment]:
        """All appointments currently in one approval state."""
        result = await self._session.execute(
            select(Appointment)
            .where(Appointment.approval_status == status)
            .order_by(Appointment.created_at.asc())
        )
        return result.scalars().all()

    async def list_upcoming(
        self,
        now: datetime | None = None,
        window: timedelta = timedelta(hours=2),
    ) -> Sequence[Appointment]:
        """Approved appointments scheduled within the window from now."""
        now = now or utcnow()
        result = await self._session.execute(
            select(Appointment)
            .where(
                Appointment.approval_status == ApprovalStatus.APPROVED,
                Appointment.scheduled_at >= now,
                Appointment.scheduled_at <= now + window,
            )
            .order_by(Appointment.scheduled_at.asc())
        )
        return result.scalars().all()

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    async def _get_pending_or_raise(
        self,
        appointment_id: UUID,
        expected_version: int | None,
    ) -> Appointment:
        appointment = await self.get(appointment_id)

        if appointment.approval_status is not ApprovalStatus.PENDING:
            raise ConflictError(
                f"Appointment {appointment_id} is already {appointment.approval_status.value}"
            )

        if expected_version is not None and appointment.version != expected_version:
            raise ConflictError(
                f"Version mismatch: expected v{expected_version}, "
                f"but current is v{appointment.version}. "
                "The appointment was modified by another user."
            )

        return appointment

    async def _compare_and_swap(self, appointment: Appointment, **values) -> None:
        """Apply a transition only if the row is still pending at the version read."""
        read_version = appointment.version

        result = await self._session.execute(
            update(Appointment)
            .where(
                Appointment.id == appointment.id,
                Appointment.version == read_version,
                Appointment.approval_status == ApprovalStatus.PENDING,
            )
            .values(
                decided_at=utcnow(),
                version=Appointment.version + 1,
                **values,
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            raise ConflictError(
                f"Appointment {appointment.id} was decided concurrently; "
                "reload it before retrying"
            )

        await self._session.refresh(appointment)

    async def _log_audit(
        self,
        action: AuditAction,
        appointment: Appointment,
        actor_ref: str | None,
        details: dict,
    ) -> None:
        audit = AuditLog(
            action=action,
            resource_type="appointment",
            resource_id=appointment.id,
            actor_ref=actor_ref,
            details=details,
        )
        self._session.add(audit)
        # Don't flush here - let it be part of the transaction
