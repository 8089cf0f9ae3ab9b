"""Pydantic schemas for work orders."""

from datetime import datetime
from uuid import UUID

from ..models import Priority, WorkOrderStatus
from .base import WorkshopBaseModel


class MissingPartSchema(WorkshopBaseModel):
    sku: str
    name: str
    quantity: int  # units short
    reason: str = ""
    current_stock: int | None = None


class AvailablePartSchema(WorkshopBaseModel):
    sku: str
    name: str
    quantity: int
    current_stock: int


class PartsAvailabilitySchema(WorkshopBaseModel):
    """Availability snapshot taken when the work order was created or rechecked."""

    all_available: bool
    availability_known: bool = True
    missing_parts: list[MissingPartSchema] = []
    available_parts: list[AvailablePartSchema] = []
    total_missing: int = 0


class WorkOrderResponse(WorkshopBaseModel):
    id: UUID
    appointment_id: UUID
    work_order_number: int
    status: WorkOrderStatus
    priority: Priority
    estimated_start_date: datetime | None = None
    estimated_completion_date: datetime | None = None
    labor_rate: float
    labor_hours: int
    estimated_total: float | None = None
    parts_availability: PartsAvailabilitySchema
    created_by: str | None = None
    created_at: datetime


class WorkOrderCreatedResponse(WorkshopBaseModel):
    """Result of POST /work-orders/from-appointment/{id}."""

    work_order: WorkOrderResponse
    parts_availability: PartsAvailabilitySchema
    message: str
