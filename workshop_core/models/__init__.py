"""SQLAlchemy ORM Models for the approval pipeline."""

from .base import Base, TimestampMixin, UUIDMixin, utcnow
from .models import (
    # Enums
    ApprovalStatus,
    AuditAction,
    Priority,
    WorkOrderStatus,
    STATUS_LABELS,
    WORK_ORDER_TRANSITIONS,
    status_label,
    # Entities
    Appointment,
    AuditLog,
    Counter,
    WorkOrder,
    # Sequences
    WORK_ORDER_COUNTER,
    ensure_counters,
)

__all__ = [
    # Base
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    # Enums
    "ApprovalStatus",
    "AuditAction",
    "Priority",
    "WorkOrderStatus",
    "STATUS_LABELS",
    "WORK_ORDER_TRANSITIONS",
    "status_label",
    # Entities
    "Appointment",
    "AuditLog",
    "Counter",
    "WorkOrder",
    # Sequences
    "WORK_ORDER_COUNTER",
    "ensure_counters",
    "utcnow",
]
