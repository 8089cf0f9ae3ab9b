"""Shared fixtures: a throwaway SQLite database, collaborators, and factories."""

import os
import tempfile

# The engine in workshop_core.core.database is built at import time
os.environ["DATABASE_URL"] = f"sqlite:///{tempfile.mkdtemp()}/workshop.db"
os.environ["ENVIRONMENT"] = "test"

from datetime import timedelta  # noqa: E402
from uuid import UUID  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from workshop_core.core import build_engine, init_db  # noqa: E402
from workshop_core.models import Appointment, ApprovalStatus, Priority, utcnow  # noqa: E402
from workshop_core.services import (  # noqa: E402
    CustomerNotifier,
    DependencyUnavailableError,
    InMemoryServiceCatalog,
    InventoryPartsChecker,
    PartsAvailability,
    PartsAvailabilityChecker,
    RequiredPart,
    ServiceCatalogItem,
    StockItem,
)


# =============================================================================
# DATABASE
# =============================================================================


@pytest.fixture
async def db_engine(tmp_path):
    """A fresh file-backed database per test, so separate sessions can race."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


# =============================================================================
# COLLABORATORS
# =============================================================================


class RecordingNotifier(CustomerNotifier):
    """Keeps every notification it is asked to send."""

    def __init__(self, fail: bool = False):
        self.sent: list[tuple[str, UUID, str]] = []
        self.fail = fail

    async def notify_approval(self, appointment_id: UUID, notes: str) -> None:
        if self.fail:
            raise RuntimeError("messaging service down")
        self.sent.append(("approved", appointment_id, notes))

    async def notify_decline(self, appointment_id: UUID, reason: str) -> None:
        if self.fail:
            raise RuntimeError("messaging service down")
        self.sent.append(("declined", appointment_id, reason))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def failing_notifier() -> RecordingNotifier:
    return RecordingNotifier(fail=True)


@pytest.fixture
def catalog() -> InMemoryServiceCatalog:
    """Oil change (parts in stock), brake service (short one pad), diagnostic (no parts)."""
    return InMemoryServiceCatalog([
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
            labor_rate=None,
            estimated_duration=None,
            required_parts=(),
        ),
    ])


class UnreachableChecker(PartsAvailabilityChecker):
    """Inventory service that is down."""

    def __init__(self):
        self.calls = 0

    async def check_availability(self, parts: list[RequiredPart]) -> PartsAvailability:
        self.calls += 1
        raise DependencyUnavailableError("inventory service timed out")


@pytest.fixture
def unreachable_checker() -> UnreachableChecker:
    return UnreachableChecker()


@pytest.fixture
def inventory() -> InventoryPartsChecker:
    return InventoryPartsChecker([
        StockItem(sku="oil-5w30", name="Engine Oil 5W-30 (1L)", current_stock=40),
        StockItem(sku="filter-oil", name="Oil Filter", current_stock=10),
        StockItem(sku="brake-pad", name="Brake Pad Set", current_stock=1),
    ])


# =============================================================================
# FACTORIES
# =============================================================================


@pytest.fixture
def make_appointment(session):
    """Persist and commit an appointment; keyword arguments override defaults."""

    async def _make(**overrides) -> Appointment:
        values = {
            "customer_ref": "cust-1",
            "vehicle_ref": "veh-1",
            "service_type_ref": "svc-oil-change",
            "scheduled_at": utcnow() + timedelta(days=1),
            "estimated_duration_minutes": 45,
            "estimated_subtotal": 85.0,
            "estimated_total": 91.8,
            "priority": Priority.MEDIUM,
            "approval_status": ApprovalStatus.PENDING,
        }
        values.update(overrides)
        appointment = Appointment(**values)
        session.add(appointment)
        await session.commit()
        return appointment

    return _make
