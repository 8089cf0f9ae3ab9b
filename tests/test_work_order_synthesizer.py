"""
Tests for the Work Order Synthesizer.

These tests verify:
1. PRECONDITIONS: approved appointment with a resolvable service type
2. PARTS: ready_to_start when stocked, on_hold with deficits when short
3. DEGRADED: an unreachable inventory yields an on_hold order, not an error
4. EXACTLY ONCE: one work order per appointment, also under races
5. NUMBERING: unique work-order numbers under concurrent creation
6. RECHECK: on_hold <-> ready_to_start as stock changes
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from workshop_core.models import (
    ApprovalStatus,
    WorkOrder,
    WorkOrderStatus,
    utcnow,
)
from workshop_core.services import (
    AlreadyExistsError,
    ConflictError,
    DependencyUnavailableError,
    InMemoryServiceCatalog,
    InvalidServiceTypeError,
    InventoryPartsChecker,
    MissingPart,
    NotApprovedError,
    NotFoundError,
    RequiredPart,
    ServiceCatalogItem,
    WorkOrderSynthesizer,
    resolve_labor_rate,
)
from workshop_core.services.parts_availability import (
    INSUFFICIENT_STOCK,
    PART_NOT_FOUND,
)


@pytest.fixture
def synthesizer(session, catalog, inventory) -> WorkOrderSynthesizer:
    return WorkOrderSynthesizer(session, catalog=catalog, parts_checker=inventory)


@pytest.fixture
def approved(make_appointment):
    """Factory for approved appointments."""

    async def _make(**overrides):
        overrides.setdefault("approval_status", ApprovalStatus.APPROVED)
        return await make_appointment(**overrides)

    return _make


async def count_work_orders(session) -> int:
    result = await session.execute(select(func.count()).select_from(WorkOrder))
    return result.scalar_one()


# =============================================================================
# TEST: PRECONDITIONS
# =============================================================================


class TestPreconditions:
    """Each failed precondition has its own error type."""

    async def test_pending_appointment_not_approved(self, session, synthesizer, make_appointment):
        appointment = await make_appointment()

        with pytest.raises(NotApprovedError, match="must be approved"):
            await synthesizer.create_from_appointment(appointment.id)

        assert await count_work_orders(session) == 0

    async def test_declined_appointment_not_approved(self, synthesizer, make_appointment):
        appointment = await make_appointment(approval_status=ApprovalStatus.DECLINED)

        with pytest.raises(NotApprovedError):
            await synthesizer.create_from_appointment(appointment.id)

    async def test_unknown_appointment(self, synthesizer):
        with pytest.raises(NotFoundError):
            await synthesizer.create_from_appointment(uuid4())

    async def test_unresolvable_service_type(self, session, synthesizer, approved):
        appointment = await approved(service_type_ref="svc-does-not-exist")

        with pytest.raises(InvalidServiceTypeError, match="valid service type"):
            await synthesizer.create_from_appointment(appointment.id)

        assert await count_work_orders(session) == 0


# =============================================================================
# TEST: CREATE
# =============================================================================


class TestCreateFromAppointment:
    """Tests for the happy paths and parts gating."""

    async def test_all_parts_available_ready_to_start(self, synthesizer, approved):
        """Everything in stock: ready_to_start, scheduled at the booked time."""
        now = utcnow()
        scheduled = now + timedelta(days=1)
        appointment = await approved(scheduled_at=scheduled)

        result = await synthesizer.create_from_appointment(
            appointment.id, created_by="admin-1", now=now
        )
        work_order = result.work_order

        assert work_order.status == WorkOrderStatus.READY_TO_START
        assert result.parts_availability.all_available is True
        assert result.parts_availability.missing_parts == []
        assert work_order.parts_availability["missing_parts"] == []
        assert [p.sku for p in result.parts_availability.available_parts] == [
            "oil-5w30",
            "filter-oil",
        ]
        assert work_order.parts_availability["total_missing"] == 0
        assert work_order.work_order_number == 1
        assert work_order.estimated_start_date == scheduled
        assert work_order.estimated_completion_date == scheduled + timedelta(minutes=45)
        assert work_order.labor_rate == 90.0
        assert work_order.labor_hours == 1
        assert work_order.estimated_total == pytest.approx(91.8)
        assert work_order.created_by == "admin-1"
        assert result.appointment.work_order_id == work_order.id

    async def test_past_booking_starts_now(self, synthesizer, approved):
        now = utcnow()
        appointment = await approved(scheduled_at=now - timedelta(hours=2))

        result = await synthesizer.create_from_appointment(appointment.id, now=now)

        assert result.work_order.estimated_start_date == now

    async def test_short_part_goes_on_hold(self, synthesizer, approved):
        """Brake service needs 2 pads, 1 in stock: on hold, 1 pad missing."""
        appointment = await approved(service_type_ref="svc-brakes")

        result = await synthesizer.create_from_appointment(appointment.id)

        assert result.work_order.status == WorkOrderStatus.ON_HOLD
        assert result.work_order.estimated_start_date is None
        assert result.parts_availability.all_available is False
        assert result.parts_availability.missing_parts == [
            MissingPart(
                sku="brake-pad",
                name="Brake Pad Set",
                quantity=1,
                reason=INSUFFICIENT_STOCK,
                current_stock=1,
            )
        ]
        assert result.parts_availability.total_missing == 1
        assert result.parts_availability.available_parts == []
        assert result.work_order.labor_hours == 3
        assert result.work_order.labor_rate == 120.0

    async def test_unstocked_sku_reported_with_full_quantity(self, session, approved):
        catalog = InMemoryServiceCatalog([
            ServiceCatalogItem(
                id="svc-wipers",
                name="Wiper Replacement",
                labor_rate=60.0,
                estimated_duration=20,
                required_parts=(
                    RequiredPart(sku="wiper-blade", quantity=2),
                    RequiredPart(sku="washer-fluid", quantity=1),
                ),
            )
        ])
        inventory = InventoryPartsChecker()
        inventory.set_stock("washer-fluid", "Washer Fluid", 3)
        synthesizer = WorkOrderSynthesizer(session, catalog=catalog, parts_checker=inventory)
        appointment = await approved(service_type_ref="svc-wipers")

        result = await synthesizer.create_from_appointment(appointment.id)

        assert result.work_order.status == WorkOrderStatus.ON_HOLD
        assert result.parts_availability.missing_parts == [
            MissingPart(
                sku="wiper-blade", name="wiper-blade", quantity=2, reason=PART_NOT_FOUND
            )
        ]

    async def test_unreachable_inventory_degrades_to_on_hold(
        self, session, catalog, unreachable_checker, approved, caplog
    ):
        """An inventory outage never blocks creation; availability is marked unknown."""
        synthesizer = WorkOrderSynthesizer(
            session, catalog=catalog, parts_checker=unreachable_checker
        )
        appointment = await approved()

        with caplog.at_level(logging.WARNING):
            result = await synthesizer.create_from_appointment(appointment.id)

        assert result.work_order.status == WorkOrderStatus.ON_HOLD
        assert result.parts_availability.availability_known is False
        assert result.work_order.parts_availability["availability_known"] is False
        assert unreachable_checker.calls == 1
        assert "Parts availability unknown" in caplog.text

    async def test_custom_scheduling_policy(self, session, catalog, inventory, approved):
        slot = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)
        synthesizer = WorkOrderSynthesizer(
            session,
            catalog=catalog,
            parts_checker=inventory,
            scheduling_policy=lambda appointment, now: slot,
        )
        appointment = await approved()

        result = await synthesizer.create_from_appointment(appointment.id)

        assert result.work_order.estimated_start_date == slot

    async def test_sequential_numbers(self, synthesizer, approved):
        first = await approved()
        second = await approved()

        a = await synthesizer.create_from_appointment(first.id)
        b = await synthesizer.create_from_appointment(second.id)

        assert (a.work_order.work_order_number, b.work_order.work_order_number) == (1, 2)


# =============================================================================
# TEST: LABOR RATE
# =============================================================================


class TestLaborRate:
    """Catalog rate, then appointment rate, then technician rate, then default."""

    def test_resolution_order(self):
        assert resolve_labor_rate(90.0, 80.0, 70.0, default=100.0) == 90.0
        assert resolve_labor_rate(None, 80.0, 70.0, default=100.0) == 80.0
        assert resolve_labor_rate(0, None, 70.0, default=100.0) == 70.0
        assert resolve_labor_rate(None, None, None, default=100.0) == 100.0

    async def test_technician_rate_used_when_catalog_has_none(self, synthesizer, approved):
        appointment = await approved(
            service_type_ref="svc-diagnostic",
            estimated_duration_minutes=150,
            technician_hourly_rate=110.0,
        )

        result = await synthesizer.create_from_appointment(appointment.id)

        assert result.work_order.labor_rate == 110.0
        assert result.work_order.labor_hours == 3

    async def test_default_rate(self, synthesizer, approved):
        appointment = await approved(service_type_ref="svc-diagnostic")

        result = await synthesizer.create_from_appointment(appointment.id)

        assert result.work_order.labor_rate == 100.0


# =============================================================================
# TEST: EXACTLY ONE WORK ORDER PER APPOINTMENT
# =============================================================================


class TestExactlyOnce:
    async def test_second_creation_rejected(self, session, synthesizer, approved):
        appointment = await approved()
        other = await approved()
        appointment_id, other_id = appointment.id, other.id

        await synthesizer.create_from_appointment(appointment_id)
        await session.commit()

        with pytest.raises(AlreadyExistsError, match="already been created"):
            await synthesizer.create_from_appointment(appointment_id)

        assert await count_work_orders(session) == 1

        # The failed attempt must not consume a number
        result = await synthesizer.create_from_appointment(other_id)
        assert result.work_order.work_order_number == 2

    async def test_concurrent_creation_for_one_appointment(
        self, session_factory, catalog, inventory, approved
    ):
        appointment = await approved()

        async def create():
            async with session_factory() as s:
                synthesizer = WorkOrderSynthesizer(s, catalog=catalog, parts_checker=inventory)
                result = await synthesizer.create_from_appointment(appointment.id)
                await s.commit()
                return result.work_order.work_order_number

        results = await asyncio.gather(*(create() for _ in range(4)), return_exceptions=True)

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 3
        assert all(isinstance(f, AlreadyExistsError) for f in failures)

        async with session_factory() as s:
            assert await count_work_orders(s) == 1


class TestConcurrentNumbering:
    async def test_unique_numbers_for_parallel_creations(
        self, session_factory, catalog, inventory, approved
    ):
        appointments = [await approved() for _ in range(5)]

        async def create(appointment_id):
            async with session_factory() as s:
                synthesizer = WorkOrderSynthesizer(s, catalog=catalog, parts_checker=inventory)
                result = await synthesizer.create_from_appointment(appointment_id)
                await s.commit()
                return result.work_order.work_order_number

        numbers = await asyncio.gather(*(create(a.id) for a in appointments))

        assert sorted(numbers) == [1, 2, 3, 4, 5]


# =============================================================================
# TEST: PARTS RECHECK
# =============================================================================


class TestRecheckParts:
    async def test_restock_releases_hold(self, session, synthesizer, inventory, approved):
        appointment = await approved(service_type_ref="svc-brakes")
        created = await synthesizer.create_from_appointment(appointment.id)
        await session.commit()
        assert created.work_order.status == WorkOrderStatus.ON_HOLD

        inventory.set_stock("brake-pad", "Brake Pad Set", 4)
        result = await synthesizer.recheck_parts(created.work_order.id)

        assert result.work_order.status == WorkOrderStatus.READY_TO_START
        assert result.work_order.estimated_start_date is not None
        assert result.work_order.parts_availability["missing_parts"] == []

    async def test_shortage_puts_order_back_on_hold(
        self, session, synthesizer, inventory, approved
    ):
        appointment = await approved()
        created = await synthesizer.create_from_appointment(appointment.id)
        await session.commit()
        assert created.work_order.status == WorkOrderStatus.READY_TO_START

        inventory.set_stock("filter-oil", "Oil Filter", 0)
        result = await synthesizer.recheck_parts(created.work_order.id)

        assert result.work_order.status == WorkOrderStatus.ON_HOLD
        assert result.work_order.estimated_start_date is None
        assert result.parts_availability.missing_parts == [
            MissingPart(
                sku="filter-oil",
                name="Oil Filter",
                quantity=1,
                reason=INSUFFICIENT_STOCK,
                current_stock=0,
            )
        ]

    async def test_started_order_cannot_be_rechecked(self, session, synthesizer, approved):
        appointment = await approved()
        created = await synthesizer.create_from_appointment(appointment.id)
        created.work_order.status = WorkOrderStatus.IN_PROGRESS
        await session.commit()

        with pytest.raises(ConflictError, match="before work starts"):
            await synthesizer.recheck_parts(created.work_order.id)

    async def test_recheck_surfaces_inventory_outage(
        self, session, synthesizer, catalog, unreachable_checker, approved
    ):
        appointment = await approved(service_type_ref="svc-brakes")
        created = await synthesizer.create_from_appointment(appointment.id)
        await session.commit()

        offline = WorkOrderSynthesizer(
            session, catalog=catalog, parts_checker=unreachable_checker
        )
        with pytest.raises(DependencyUnavailableError):
            await offline.recheck_parts(created.work_order.id)

    async def test_unknown_work_order(self, synthesizer):
        with pytest.raises(NotFoundError):
            await synthesizer.recheck_parts(uuid4())
