"""Pydantic schemas for appointment approval, alerts, and stats."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from ..models import ApprovalStatus, Priority
from .base import ErrorDetail, PaginationInfo, WorkshopBaseModel
from .work_orders import WorkOrderCreatedResponse, WorkOrderResponse


# =============================================================================
# REQUESTS
# =============================================================================


class ApproveRequest(WorkshopBaseModel):
    """Approve a pending appointment.

    Blank notes are rejected by the coordinator with a validation error
    rather than by the schema, so every caller gets the same message.
    """

    notes: str = Field(default="", max_length=2000)
    notify_customer: bool = False
    create_work_order: bool = Field(
        default=False,
        description="Also create the work order; a failure there never undoes the approval",
    )
    expected_version: int | None = Field(
        default=None,
        description="For optimistic locking: the version you are deciding on",
    )


class DeclineRequest(WorkshopBaseModel):
    """Decline a pending appointment, optionally assigning a follow-up."""

    reason: str = Field(default="", max_length=2000)
    assigned_to: str | None = Field(default=None, max_length=64)
    notify_customer: bool = False
    require_follow_up: bool = Field(
        default=False,
        description="Reject the request unless an assignee is supplied",
    )
    expected_version: int | None = None


# =============================================================================
# RESPONSES
# =============================================================================


class AppointmentResponse(WorkshopBaseModel):
    """Appointment as seen by the approvals screen."""

    id: UUID
    customer_ref: str
    vehicle_ref: str
    service_type_ref: str
    scheduled_at: datetime
    estimated_duration_minutes: int | None = None
    estimated_subtotal: float | None = None
    estimated_total: float | None = None
    priority: Priority
    approval_status: ApprovalStatus
    approval_notes: str | None = None
    decline_reason: str | None = None
    assigned_follow_up_to: str | None = None
    decided_by: str | None = None
    decided_at: datetime | None = None
    work_order_id: UUID | None = None
    created_at: datetime
    version: int


class ApprovalDecisionResponse(AppointmentResponse):
    """The decided appointment, plus the work order when one was requested."""

    work_order: WorkOrderCreatedResponse | None = None
    work_order_error: ErrorDetail | None = None


class PendingApprovalsResponse(WorkshopBaseModel):
    """Paginated pending-approval list."""

    appointments: list[AppointmentResponse]
    pagination: PaginationInfo


class ApprovalHistoryResponse(WorkshopBaseModel):
    """An appointment's decision together with its work order, if any."""

    appointment: AppointmentResponse
    work_order: WorkOrderResponse | None = None


class AlertResponse(WorkshopBaseModel):
    """A derived alert."""

    id: str
    type: str
    title: str
    message: str
    priority: str
    timestamp: datetime
    action_url: str
    dismissed: bool = False


class StatsOverviewResponse(WorkshopBaseModel):
    """Approval analytics overview."""

    total_appointments: int
    by_approval_status: dict[str, int]
    by_priority: dict[str, int]
    by_service_type: dict[str, int]
    work_orders_by_status: dict[str, int]
    total_estimated_revenue: float
    approval_rate: float
    pending_approvals: int
    urgent_approvals: int
