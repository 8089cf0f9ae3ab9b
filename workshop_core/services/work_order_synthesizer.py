"""
Work Order Synthesizer: approved appointment -> work order.

This module implements the fulfillment hand-off:
- Only approved appointments with a resolvable service type qualify
- Required parts are checked against inventory before scheduling
- Exactly one work order per appointment (unique constraint, not a read-check)
- Work-order numbers come from one atomic counter increment
- An unreachable inventory never blocks creation; the order lands on hold
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import get_settings
from ..models import (
    Appointment,
    ApprovalStatus,
    AuditAction,
    AuditLog,
    Counter,
    WORK_ORDER_COUNTER,
    WorkOrder,
    WorkOrderStatus,
    utcnow,
)
from .errors import (
    AlreadyExistsError,
    ConflictError,
    DependencyUnavailableError,
    InvalidServiceTypeError,
    NotApprovedError,
    NotFoundError,
)
from .parts_availability import PartsAvailability, PartsAvailabilityChecker
from .service_catalog import ServiceCatalog, ServiceCatalogItem

logger = logging.getLogger(__name__)


# Given the appointment and the current time, return the estimated start.
SchedulingPolicy = Callable[[Appointment, datetime], datetime | None]


def soonest_slot(appointment: Appointment, now: datetime) -> datetime | None:
    """Start at the booked time, or now if the booking is already in the past."""
    scheduled = appointment.scheduled_at
    if scheduled is None:
        return now
    if scheduled.tzinfo is None:
        scheduled = scheduled.replace(tzinfo=now.tzinfo)
    return max(scheduled, now)


def resolve_labor_rate(*candidates: float | None, default: float | None = None) -> float:
    """
    First usable rate in priority order, else the configured default.

    Call with (catalog rate, appointment rate, technician hourly rate).
    """
    for rate in candidates:
        if rate is not None and rate > 0:
            return float(rate)
    if default is None:
        default = get_settings().default_labor_rate
    return float(default)


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class WorkOrderResult:
    """Outcome of a work-order synthesis."""
    work_order: WorkOrder
    appointment: Appointment
    parts_availability: PartsAvailability


# =============================================================================
# WORK ORDER SYNTHESIZER
# =============================================================================


class WorkOrderSynthesizer:
    """
    Converts approved appointments into work orders.

    Guarantees:
    1. Preconditions fail with distinct error types
    2. A second creation for the same appointment raises AlreadyExistsError
    3. Work-order numbers are unique under concurrent creation
    4. Parts shortages or an unreachable inventory yield an ON_HOLD order
    """

    def __init__(
        self,
        session: AsyncSession,
        catalog: ServiceCatalog,
        parts_checker: PartsAvailabilityChecker,
        scheduling_policy: SchedulingPolicy = soonest_slot,
        default_labor_rate: float | None = None,
    ):
        self._session = session
        self._catalog = catalog
        self._parts_checker = parts_checker
        self._scheduling_policy = scheduling_policy
        self._default_labor_rate = default_labor_rate

    # =========================================================================
    # CREATE FROM APPOINTMENT
    # =========================================================================

    async def create_from_appointment(
        self,
        appointment_id: UUID,
        created_by: str | None = None,
        now: datetime | None = None,
    ) -> WorkOrderResult:
        """
        Create the work order for an approved appointment.

        Flow:
        1. Load appointment, verify it is approved
        2. Resolve the service type in the catalog
        3. Check parts availability (degrades to "unknown" if unreachable)
        4. Decide status and estimated start
        5. Take the next work-order number
        6. INSERT; the unique constraint rejects duplicates
        7. Link the appointment back to the work order

        Raises:
            NotFoundError, NotApprovedError, InvalidServiceTypeError,
            AlreadyExistsError
        """
        now = now or utcnow()

        # Step 1: Appointment must exist and be approved
        appointment = await self._session.get(
            Appointment, appointment_id, populate_existing=True
        )
        if appointment is None:
            raise NotFoundError(f"Appointment {appointment_id} not found")

        if appointment.approval_status is not ApprovalStatus.APPROVED:
            raise NotApprovedError(
                "Appointment must be approved before creating a work order "
                f"(current status: {appointment.approval_status.value})"
            )

        # Step 2: Service type must resolve
        service = await self._resolve_service_or_raise(appointment)

        # Step 3: Parts availability
        parts_availability = await self._check_parts(appointment, service)

        # Step 4: Status and schedule
        duration_minutes = self._duration_minutes(appointment, service)
        if parts_availability.all_available:
            status = WorkOrderStatus.READY_TO_START
            start = self._scheduling_policy(appointment, now)
        else:
            status = WorkOrderStatus.ON_HOLD
            start = None

        labor_rate = resolve_labor_rate(
            service.labor_rate,
            appointment.labor_rate,
            appointment.technician_hourly_rate,
            default=self._default_labor_rate,
        )
        labor_hours = max(1, math.ceil(duration_minutes / 60))

        # Step 5: Work-order number
        number = await self._next_work_order_number()

        # Step 6: INSERT
        work_order = WorkOrder(
            appointment_id=appointment.id,
            work_order_number=number,
            status=status,
            priority=appointment.priority,
            estimated_start_date=start,
            estimated_completion_date=(
                start + timedelta(minutes=duration_minutes) if start else None
            ),
            labor_rate=labor_rate,
            labor_hours=labor_hours,
            estimated_total=appointment.estimated_total or labor_rate * labor_hours,
            parts_availability=parts_availability.to_dict(),
            created_by=created_by,
        )
        self._session.add(work_order)

        try:
            await self._session.flush()
        except IntegrityError as e:
            # Undo the counter increment together with the failed insert
            await self._session.rollback()
            raise AlreadyExistsError(
                f"A work order has already been created from appointment {appointment_id}"
            ) from e

        # Step 7: Back-link
        appointment.work_order_id = work_order.id

        self._session.add(AuditLog(
            action=AuditAction.CREATE_WORK_ORDER,
            resource_type="work_order",
            resource_id=work_order.id,
            actor_ref=created_by,
            details={
                "appointment_id": str(appointment.id),
                "work_order_number": number,
                "status": status.value,
                "parts_availability": parts_availability.to_dict(),
            },
        ))

        await self._session.flush()

        logger.info(
            f"Work order {number} created from appointment {appointment_id} "
            f"({status.value})"
        )

        return WorkOrderResult(
            work_order=work_order,
            appointment=appointment,
            parts_availability=parts_availability,
        )

    # =========================================================================
    # PARTS RECHECK
    # =========================================================================

    async def recheck_parts(
        self,
        work_order_id: UUID,
        now: datetime | None = None,
    ) -> WorkOrderResult:
        """
        Re-query availability for a work order that has not started.

        Moves ON_HOLD -> READY_TO_START when everything is in stock, and
        READY_TO_START -> ON_HOLD when a part has gone short.

        Raises:
            NotFoundError, ConflictError (already started or closed),
            InvalidServiceTypeError, DependencyUnavailableError
        """
        now = now or utcnow()
        work_order = await self.get_work_order(work_order_id)

        if work_order.status not in (WorkOrderStatus.ON_HOLD, WorkOrderStatus.READY_TO_START):
            raise ConflictError(
                f"Work order {work_order.work_order_number} is {work_order.status.value}; "
                "parts can only be rechecked before work starts"
            )

        appointment = await self._session.get(Appointment, work_order.appointment_id)
        if appointment is None:
            raise NotFoundError(f"Appointment {work_order.appointment_id} not found")

        service = await self._resolve_service_or_raise(appointment)
        parts_availability = await self._parts_checker.check_availability(
            list(service.required_parts)
        )

        target = (
            WorkOrderStatus.READY_TO_START
            if parts_availability.all_available
            else WorkOrderStatus.ON_HOLD
        )

        if target != work_order.status and work_order.can_transition_to(target):
            work_order.status = target
            if target is WorkOrderStatus.READY_TO_START:
                duration = self._duration_minutes(appointment, service)
                start = self._scheduling_policy(appointment, now)
                work_order.estimated_start_date = start
                work_order.estimated_completion_date = (
                    start + timedelta(minutes=duration) if start else None
                )
            else:
                work_order.estimated_start_date = None
                work_order.estimated_completion_date = None

        work_order.parts_availability = parts_availability.to_dict()

        self._session.add(AuditLog(
            action=AuditAction.RECHECK_PARTS,
            resource_type="work_order",
            resource_id=work_order.id,
            details={
                "status": work_order.status.value,
                "parts_availability": parts_availability.to_dict(),
            },
        ))
        await self._session.flush()

        return WorkOrderResult(
            work_order=work_order,
            appointment=appointment,
            parts_availability=parts_availability,
        )

    # =========================================================================
    # READS
    # =========================================================================

    async def get_work_order(self, work_order_id: UUID) -> WorkOrder:
        work_order = await self._session.get(
            WorkOrder, work_order_id, populate_existing=True
        )
        if work_order is None:
            raise NotFoundError(f"Work order {work_order_id} not found")
        return work_order

    async def get_for_appointment(self, appointment_id: UUID) -> WorkOrder | None:
        result = await self._session.execute(
            select(WorkOrder).where(WorkOrder.appointment_id == appointment_id)
        )
        return result.scalar_one_or_none()

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    async def _resolve_service_or_raise(self, appointment: Appointment) -> ServiceCatalogItem:
        service = None
        if appointment.service_type_ref:
            service = await self._catalog.resolve(appointment.service_type_ref)
        if service is None:
            raise InvalidServiceTypeError(
                "Appointment must have a valid service type to create a work order "
                f"(unresolved: {appointment.service_type_ref!r})"
            )
        return service

    async def _check_parts(
        self,
        appointment: Appointment,
        service: ServiceCatalogItem,
    ) -> PartsAvailability:
        try:
            return await self._parts_checker.check_availability(list(service.required_parts))
        except DependencyUnavailableError as e:
            logger.warning(
                f"Parts availability unknown for appointment {appointment.id}, "
                f"work order will be placed on hold: {e}"
            )
            return PartsAvailability.unknown()

    @staticmethod
    def _duration_minutes(appointment: Appointment, service: ServiceCatalogItem) -> int:
        return service.estimated_duration or appointment.estimated_duration_minutes or 60

    async def _next_work_order_number(self) -> int:
        """Advance the counter with one atomic UPDATE ... RETURNING."""
        result = await self._session.execute(
            update(Counter)
            .where(Counter.name == WORK_ORDER_COUNTER)
            .values(value=Counter.value + 1)
            .returning(Counter.value)
            .execution_options(synchronize_session=False)
        )
        number = result.scalar_one_or_none()
        if number is None:
            raise RuntimeError(
                f"Counter {WORK_ORDER_COUNTER!r} is missing; run init_db() first"
            )
        return number
