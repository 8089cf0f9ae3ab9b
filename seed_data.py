#!/usr/bin/env python3
"""
Seed Data Script for Workshop Core

Creates a small "busy Monday" scenario with:
- A service catalog (oil change, brake service, diagnostics)
- Appointments in every approval state:
  - 3 pending (one high value, one waiting over a day, one routine)
  - 2 approved (one already turned into a work order, one starting soon)
  - 1 declined, 1 declined with a follow-up assigned
- A work order synthesized through the real pipeline, held on a short part

Run with: python seed_data.py
"""

import asyncio
from datetime import timedelta

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from workshop_core.core import get_session_context, init_db
from workshop_core.models import (
    Appointment,
    ApprovalStatus,
    Priority,
    utcnow,
)
from workshop_core.services import (
    ApprovalCoordinator,
    InMemoryServiceCatalog,
    InventoryPartsChecker,
    RequiredPart,
    ServiceCatalogItem,
    StockItem,
    WorkOrderSynthesizer,
)

DEMO_CATALOG = [
    ServiceCatalogItem(
        id="svc-oil-change",
        name="Oil Change",
        labor_rate=90.0,
        estimated_duration=45,
        required_parts=(
            RequiredPart(sku="oil-5w30", quantity=5),
            RequiredPart(sku="filter-oil", quantity=1),
        ),
    ),
    ServiceCatalogItem(
        id="svc-brakes",
        name="Brake Service",
        labor_rate=120.0,
        estimated_duration=150,
        required_parts=(RequiredPart(sku="brake-pad", quantity=2),),
    ),
    ServiceCatalogItem(
        id="svc-diagnostic",
        name="Diagnostic",
        labor_rate=0,
        estimated_duration=60,
        required_parts=(),
    ),
]

DEMO_STOCK = [
    StockItem(sku="oil-5w30", name="Engine Oil 5W-30 (1L)", current_stock=40),
    StockItem(sku="filter-oil", name="Oil Filter", current_stock=12),
    StockItem(sku="brake-pad", name="Brake Pad Set", current_stock=1),
]


async def seed_database():
    """Main seeding function."""
    await init_db()

    now = utcnow()

    async with get_session_context() as session:
        print("🌱 Starting database seed...")

        result = await session.execute(text("SELECT COUNT(*) FROM appointments"))
        count = result.scalar()
        if count and count > 0:
            print("⚠️  Database already has data. Clearing existing data...")
            await clear_database(session)

        # =================================================================
        # CREATE APPOINTMENTS
        # =================================================================
        print("\n📅 Creating appointments...")

        engine_rebuild = Appointment(
            customer_ref="cust-1001",
            vehicle_ref="veh-ford-f150",
            service_type_ref="svc-diagnostic",
            scheduled_at=now + timedelta(days=2),
            estimated_subtotal=1400.0,
            estimated_total=1512.0,
            priority=Priority.HIGH,
            created_at=now - timedelta(hours=3),
        )
        stale_request = Appointment(
            customer_ref="cust-1002",
            vehicle_ref="veh-honda-civic",
            service_type_ref="svc-oil-change",
            scheduled_at=now + timedelta(days=1),
            estimated_duration_minutes=45,
            estimated_subtotal=85.0,
            estimated_total=91.8,
            created_at=now - timedelta(hours=30),
        )
        routine_oil = Appointment(
            customer_ref="cust-1003",
            vehicle_ref="veh-toyota-corolla",
            service_type_ref="svc-oil-change",
            scheduled_at=now + timedelta(days=3),
            estimated_duration_minutes=45,
            estimated_subtotal=85.0,
            estimated_total=91.8,
            priority=Priority.LOW,
        )
        brakes = Appointment(
            customer_ref="cust-1004",
            vehicle_ref="veh-subaru-outback",
            service_type_ref="svc-brakes",
            scheduled_at=now + timedelta(days=1, hours=4),
            estimated_duration_minutes=150,
            estimated_subtotal=380.0,
            estimated_total=410.4,
            priority=Priority.HIGH,
            technician_ref="tech-07",
            technician_hourly_rate=110.0,
        )
        starting_soon = Appointment(
            customer_ref="cust-1005",
            vehicle_ref="veh-mazda-3",
            service_type_ref="svc-diagnostic",
            scheduled_at=now + timedelta(minutes=90),
            estimated_subtotal=120.0,
            estimated_total=129.6,
        )
        too_far = Appointment(
            customer_ref="cust-1006",
            vehicle_ref="veh-bmw-x5",
            service_type_ref="svc-brakes",
            scheduled_at=now + timedelta(days=5),
            estimated_subtotal=950.0,
            estimated_total=1026.0,
        )
        callback = Appointment(
            customer_ref="cust-1007",
            vehicle_ref="veh-vw-golf",
            service_type_ref="svc-oil-change",
            scheduled_at=now + timedelta(days=4),
            estimated_subtotal=85.0,
            estimated_total=91.8,
        )

        appointments = [
            engine_rebuild, stale_request, routine_oil,
            brakes, starting_soon, too_far, callback,
        ]
        session.add_all(appointments)
        await session.flush()
        print(f"   ✓ Created {len(appointments)} appointments")

        # =================================================================
        # DECIDE SOME OF THEM
        # =================================================================
        print("\n✅ Recording decisions...")

        coordinator = ApprovalCoordinator(session)
        await coordinator.approve(brakes.id, "Customer confirmed quote by phone", decided_by="seed-admin")
        await coordinator.approve(starting_soon.id, "Walk-in slot confirmed", decided_by="seed-admin")
        await coordinator.decline(too_far.id, "Outside our service area", decided_by="seed-admin")
        await coordinator.decline(
            callback.id,
            "Vehicle history needed before booking",
            assigned_to="tech-03",
            decided_by="seed-admin",
        )
        print("   ✓ 2 approved, 1 declined, 1 requires follow-up")

        # =================================================================
        # CREATE A WORK ORDER
        # =================================================================
        print("\n🔧 Creating work order...")

        synthesizer = WorkOrderSynthesizer(
            session,
            catalog=InMemoryServiceCatalog(DEMO_CATALOG),
            parts_checker=InventoryPartsChecker(DEMO_STOCK),
        )
        result = await synthesizer.create_from_appointment(brakes.id, created_by="seed-admin")
        work_order = result.work_order
        print(
            f"   ✓ WO-{work_order.work_order_number}: {work_order.status.value} "
            f"(missing: {[p.sku for p in result.parts_availability.missing_parts]})"
        )

    print("\n" + "=" * 60)
    print("✅ DATABASE SEEDED SUCCESSFULLY!")
    print("=" * 60)
    print("""
📊 Summary:
   • 3 pending appointments (1 high value, 1 overdue, 1 routine)
   • 2 approved (1 with a work order on hold, 1 starting within 2 hours)
   • 1 declined, 1 requires follow-up

🧪 What you can test:
   1. Alerts: urgent, overdue, backlog, and upcoming alerts all fire
   2. Approvals: approve or decline the pending appointments
   3. Work orders: create one for the diagnostic appointment
   4. Stats: GET /api/appointments/stats/overview

Send X-User-Id and X-User-Role: admin with every request.
""")


async def clear_database(session: AsyncSession):
    """Clear all data from the database (in correct order for FK constraints)."""
    await session.execute(text("UPDATE appointments SET work_order_id = NULL"))

    for table in ["audit_logs", "work_orders", "appointments"]:
        await session.execute(text(f"DELETE FROM {table}"))

    await session.execute(text("UPDATE counters SET value = 0"))
    await session.flush()
    print("   ✓ Cleared existing data")


if __name__ == "__main__":
    asyncio.run(seed_database())
