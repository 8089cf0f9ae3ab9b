"""SQLAlchemy ORM Models for the appointment approval pipeline.

Appointments are owned by the external booking service; this core only
writes their approval fields and the work-order back-link. Work orders
are created here exactly once per appointment.
"""

from datetime import datetime
from enum import Enum as PyEnum
from uuid import UUID

from sqlalchemy import (
    JSON,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    insert,
    select,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncConnection
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDMixin, utcnow


JSONType = JSON().with_variant(JSONB(), "postgresql")
Money = Numeric(10, 2, asdecimal=False)


def _enum_column(enum_cls: type[PyEnum], name: str) -> Enum:
    return Enum(enum_cls, name=name, values_callable=lambda x: [e.value for e in x])


# =============================================================================
# ENUMS
# =============================================================================


class ApprovalStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"
    REQUIRES_FOLLOWUP = "requires_followup"

    @property
    def is_decided(self) -> bool:
        return self is not ApprovalStatus.PENDING


class Priority(str, PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """Sort key, most pressing first."""
        return _PRIORITY_RANK[self]


class WorkOrderStatus(str, PyEnum):
    ON_HOLD = "on_hold"
    READY_TO_START = "ready_to_start"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


_PRIORITY_RANK = {
    Priority.URGENT: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}

STATUS_LABELS: dict[PyEnum, str] = {
    ApprovalStatus.PENDING: "Pending Approval",
    ApprovalStatus.APPROVED: "Approved",
    ApprovalStatus.DECLINED: "Declined",
    ApprovalStatus.REQUIRES_FOLLOWUP: "Requires Follow-up",
    WorkOrderStatus.ON_HOLD: "On Hold",
    WorkOrderStatus.READY_TO_START: "Ready to Start",
    WorkOrderStatus.IN_PROGRESS: "In Progress",
    WorkOrderStatus.COMPLETED: "Completed",
    WorkOrderStatus.CANCELLED: "Cancelled",
}


def status_label(status: ApprovalStatus | WorkOrderStatus) -> str:
    """Display label for a status; unknown values are an error, not a fallback."""
    try:
        return STATUS_LABELS[status]
    except KeyError:
        raise ValueError(f"Unknown status: {status!r}") from None


# Fulfillment lifecycle edges; only on_hold <-> ready_to_start is driven here.
WORK_ORDER_TRANSITIONS: dict[WorkOrderStatus, frozenset[WorkOrderStatus]] = {
    WorkOrderStatus.ON_HOLD: frozenset({
        WorkOrderStatus.READY_TO_START,
        WorkOrderStatus.CANCELLED,
    }),
    WorkOrderStatus.READY_TO_START: frozenset({
        WorkOrderStatus.ON_HOLD,
        WorkOrderStatus.IN_PROGRESS,
        WorkOrderStatus.CANCELLED,
    }),
    WorkOrderStatus.IN_PROGRESS: frozenset({WorkOrderStatus.COMPLETED}),
    WorkOrderStatus.COMPLETED: frozenset(),
    WorkOrderStatus.CANCELLED: frozenset(),
}


class AuditAction(str, PyEnum):
    APPROVE = "approve"
    DECLINE = "decline"
    CREATE_WORK_ORDER = "create_work_order"
    RECHECK_PARTS = "recheck_parts"


# =============================================================================
# APPOINTMENTS
# =============================================================================


class Appointment(Base, UUIDMixin):
    """A customer's service booking awaiting admin disposition."""

    __tablename__ = "appointments"

    customer_ref: Mapped[str] = mapped_column(String(64), nullable=False)
    vehicle_ref: Mapped[str] = mapped_column(String(64), nullable=False)
    service_type_ref: Mapped[str] = mapped_column(String(64), nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(nullable=False)
    estimated_duration_minutes: Mapped[int] = mapped_column(Integer, default=60)

    # Costing inputs
    estimated_subtotal: Mapped[float] = mapped_column(Money, default=0)
    estimated_total: Mapped[float] = mapped_column(Money, default=0)
    labor_rate: Mapped[float | None] = mapped_column(Money, nullable=True)
    technician_ref: Mapped[str | None] = mapped_column(String(64))
    technician_hourly_rate: Mapped[float | None] = mapped_column(Money, nullable=True)

    priority: Mapped[Priority] = mapped_column(
        _enum_column(Priority, "appointment_priority"),
        default=Priority.MEDIUM,
        nullable=False,
    )

    # Approval state (mutated only by the approval coordinator)
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        _enum_column(ApprovalStatus, "approval_status"),
        default=ApprovalStatus.PENDING,
        nullable=False,
    )
    approval_notes: Mapped[str | None] = mapped_column(Text)
    decline_reason: Mapped[str | None] = mapped_column(Text)
    assigned_follow_up_to: Mapped[str | None] = mapped_column(String(64))
    decided_by: Mapped[str | None] = mapped_column(String(64))
    decided_at: Mapped[datetime | None] = mapped_column()

    work_order_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("work_orders.id", use_alter=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    __table_args__ = (
        Index("idx_appointments_approval_status", "approval_status"),
        Index("idx_appointments_scheduled_at", "scheduled_at"),
    )

    def __repr__(self) -> str:
        return f"<Appointment {self.id} {self.approval_status.value} v{self.version}>"


# =============================================================================
# WORK ORDERS
# =============================================================================


class WorkOrder(Base, UUIDMixin, TimestampMixin):
    """Billable, schedulable unit of work synthesized from an approved appointment."""

    __tablename__ = "work_orders"

    appointment_id: Mapped[UUID] = mapped_column(
        ForeignKey("appointments.id"), nullable=False
    )
    work_order_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[WorkOrderStatus] = mapped_column(
        _enum_column(WorkOrderStatus, "work_order_status"),
        nullable=False,
    )
    priority: Mapped[Priority] = mapped_column(
        _enum_column(Priority, "work_order_priority"),
        nullable=False,
    )
    estimated_start_date: Mapped[datetime | None] = mapped_column()
    estimated_completion_date: Mapped[datetime | None] = mapped_column()

    labor_rate: Mapped[float] = mapped_column(Money, nullable=False)
    labor_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    estimated_total: Mapped[float] = mapped_column(Money, default=0)

    # PartsAvailability.to_dict(): all_available, availability_known,
    # missing_parts, available_parts, total_missing
    parts_availability: Mapped[dict] = mapped_column(JSONType, default=dict)
    created_by: Mapped[str | None] = mapped_column(String(64))

    __table_args__ = (
        UniqueConstraint("appointment_id"),
        UniqueConstraint("work_order_number"),
        Index("idx_work_orders_status", "status"),
    )

    def can_transition_to(self, target: WorkOrderStatus) -> bool:
        return target in WORK_ORDER_TRANSITIONS[self.status]

    def __repr__(self) -> str:
        return f"<WorkOrder #{self.work_order_number} {self.status.value}>"


# =============================================================================
# SEQUENCES
# =============================================================================


WORK_ORDER_COUNTER = "work_order_number"


class Counter(Base):
    """Named monotonic counter, advanced with a single atomic UPDATE."""

    __tablename__ = "counters"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


async def ensure_counters(conn: AsyncConnection) -> None:
    """Insert counter rows that do not exist yet."""
    existing = await conn.execute(
        select(Counter.name).where(Counter.name == WORK_ORDER_COUNTER)
    )
    if existing.scalar_one_or_none() is None:
        await conn.execute(insert(Counter).values(name=WORK_ORDER_COUNTER, value=0))


# =============================================================================
# AUDIT
# =============================================================================


class AuditLog(Base, UUIDMixin):
    """Append-only record of every approval-pipeline mutation."""

    __tablename__ = "audit_logs"

    action: Mapped[AuditAction] = mapped_column(
        _enum_column(AuditAction, "audit_action"), nullable=False
    )
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_id: Mapped[UUID] = mapped_column(nullable=False)
    actor_ref: Mapped[str | None] = mapped_column(String(64))
    details: Mapped[dict] = mapped_column(JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_audit_resource", "resource_type", "resource_id"),
    )
