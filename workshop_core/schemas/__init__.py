"""Pydantic schemas for request/response validation."""

from .appointments import (
    AlertResponse,
    AppointmentResponse,
    ApprovalDecisionResponse,
    ApprovalHistoryResponse,
    ApproveRequest,
    DeclineRequest,
    PendingApprovalsResponse,
    StatsOverviewResponse,
)
from .base import (
    ErrorDetail,
    ErrorResponse,
    PaginationInfo,
    WorkshopBaseModel,
)
from .work_orders import (
    AvailablePartSchema,
    MissingPartSchema,
    PartsAvailabilitySchema,
    WorkOrderCreatedResponse,
    WorkOrderResponse,
)

__all__ = [
    # Base
    "WorkshopBaseModel",
    "PaginationInfo",
    "ErrorDetail",
    "ErrorResponse",
    # Appointments
    "ApproveRequest",
    "DeclineRequest",
    "AppointmentResponse",
    "ApprovalDecisionResponse",
    "PendingApprovalsResponse",
    "ApprovalHistoryResponse",
    "AlertResponse",
    "StatsOverviewResponse",
    # Work orders
    "AvailablePartSchema",
    "MissingPartSchema",
    "PartsAvailabilitySchema",
    "WorkOrderResponse",
    "WorkOrderCreatedResponse",
]
