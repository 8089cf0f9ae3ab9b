"""
Tests for the HTTP collaborator clients and their wiring.

These tests verify:
1. INVENTORY: replies are parsed; outages and unreadable replies surface as
   DependencyUnavailableError and degrade work-order creation to on_hold
2. CATALOG: 404 means unknown service, other failures mean unavailable
3. WEBHOOK: a failing messaging service never undoes a decision
4. WIRING: HTTP clients when URLs are configured, in-process stand-ins otherwise
"""

import json

import httpx
import pytest

from workshop_core.core import Settings
from workshop_core.models import Appointment, ApprovalStatus, WorkOrderStatus
from workshop_core.services import (
    ApprovalCoordinator,
    DependencyUnavailableError,
    HttpPartsChecker,
    HttpServiceCatalog,
    InMemoryServiceCatalog,
    InventoryPartsChecker,
    LoggingNotifier,
    RequiredPart,
    WebhookNotifier,
    WorkOrderSynthesizer,
    build_collaborators,
)


def replying(status_code: int = 200, **kwargs) -> httpx.MockTransport:
    """Transport answering every request with the same response."""
    return httpx.MockTransport(lambda request: httpx.Response(status_code, **kwargs))


def refusing() -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return httpx.MockTransport(handler)


MALFORMED_AVAILABILITY = [
    pytest.param({"json": []}, id="list-body"),
    pytest.param(
        {"json": {"all_available": False, "missing_parts": [{"name": "brake pad", "quantity": None}]}},
        id="null-quantity",
    ),
    pytest.param({"json": {"missing_parts": "brake-pad"}}, id="parts-not-a-list"),
    pytest.param({"json": {"missing_parts": [{"quantity": 1}]}}, id="part-without-sku"),
    pytest.param({"text": "<html>gateway error</html>"}, id="not-json"),
]


# =============================================================================
# TEST: INVENTORY CLIENT
# =============================================================================


class TestHttpPartsChecker:
    async def test_parses_reply_and_sends_required_parts(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={
                "all_available": False,
                "missing_parts": [{
                    "sku": "brake-pad",
                    "name": "Brake Pad Set",
                    "quantity": 1,
                    "current_stock": 1,
                    "reason": "Insufficient stock",
                }],
                "available_parts": [
                    {"sku": "rotor", "name": "Rotor", "quantity": 2, "current_stock": 6},
                ],
            })

        checker = HttpPartsChecker(
            "http://inventory.test/", transport=httpx.MockTransport(handler)
        )

        result = await checker.check_availability([
            RequiredPart(sku="brake-pad", quantity=2),
            RequiredPart(sku="rotor", quantity=2),
        ])

        assert str(requests[0].url) == "http://inventory.test/availability"
        assert json.loads(requests[0].content) == {
            "parts": [
                {"sku": "brake-pad", "quantity": 2},
                {"sku": "rotor", "quantity": 2},
            ]
        }
        assert result.all_available is False
        assert result.availability_known is True
        assert result.missing_parts[0].sku == "brake-pad"
        assert result.missing_parts[0].reason == "Insufficient stock"
        assert result.available_parts[0].current_stock == 6
        assert result.total_missing == 1

    async def test_missing_stock_means_part_not_found(self):
        checker = HttpPartsChecker("http://inventory.test", transport=replying(json={
            "all_available": False,
            "missing_parts": [{"sku": "wiper-blade", "quantity": 2}],
        }))

        result = await checker.check_availability([RequiredPart(sku="wiper-blade", quantity=2)])

        assert result.missing_parts[0].reason == "Part not found in inventory"
        assert result.missing_parts[0].name == "wiper-blade"

    async def test_reply_listing_short_parts_is_not_all_available(self):
        checker = HttpPartsChecker("http://inventory.test", transport=replying(json={
            "all_available": True,
            "missing_parts": [{"sku": "brake-pad", "quantity": 1}],
        }))

        result = await checker.check_availability([RequiredPart(sku="brake-pad", quantity=2)])

        assert result.all_available is False

    async def test_unreachable(self):
        checker = HttpPartsChecker("http://inventory.test", transport=refusing())

        with pytest.raises(DependencyUnavailableError, match="unreachable"):
            await checker.check_availability([RequiredPart(sku="brake-pad", quantity=2)])

    async def test_server_error(self):
        checker = HttpPartsChecker("http://inventory.test", transport=replying(503))

        with pytest.raises(DependencyUnavailableError):
            await checker.check_availability([RequiredPart(sku="brake-pad", quantity=2)])

    @pytest.mark.parametrize("reply", MALFORMED_AVAILABILITY)
    async def test_unreadable_reply(self, reply):
        checker = HttpPartsChecker("http://inventory.test", transport=replying(**reply))

        with pytest.raises(DependencyUnavailableError, match="unreadable"):
            await checker.check_availability([RequiredPart(sku="brake-pad", quantity=2)])


class TestWorkOrdersWithHttpInventory:
    """An approved appointment always gets its work order, whatever inventory says."""

    async def create(self, session, catalog, make_appointment, transport):
        synthesizer = WorkOrderSynthesizer(
            session,
            catalog=catalog,
            parts_checker=HttpPartsChecker("http://inventory.test", transport=transport),
        )
        appointment = await make_appointment(
            approval_status=ApprovalStatus.APPROVED, service_type_ref="svc-brakes"
        )
        return await synthesizer.create_from_appointment(appointment.id)

    async def test_reachable_inventory_decides_status(self, session, catalog, make_appointment):
        result = await self.create(
            session, catalog, make_appointment,
            replying(json={"all_available": True, "missing_parts": []}),
        )

        assert result.work_order.status == WorkOrderStatus.READY_TO_START
        assert result.parts_availability.availability_known is True

    async def test_unreachable_inventory_yields_on_hold(self, session, catalog, make_appointment):
        result = await self.create(session, catalog, make_appointment, refusing())

        assert result.work_order.status == WorkOrderStatus.ON_HOLD
        assert result.work_order.parts_availability["availability_known"] is False

    @pytest.mark.parametrize("reply", MALFORMED_AVAILABILITY)
    async def test_unreadable_inventory_yields_on_hold(
        self, session, catalog, make_appointment, reply
    ):
        result = await self.create(session, catalog, make_appointment, replying(**reply))

        assert result.work_order.status == WorkOrderStatus.ON_HOLD
        assert result.parts_availability.availability_known is False
        assert result.work_order.estimated_start_date is None


# =============================================================================
# TEST: CATALOG CLIENT
# =============================================================================


class TestHttpServiceCatalog:
    async def test_resolves_entry(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={
                "id": "svc-oil",
                "name": "Oil Change",
                "labor_rate": "90",
                "estimated_duration": 45,
                "required_parts": [{"sku": "oil-5w30", "quantity": 5}, {"sku": "filter-oil"}],
            })

        catalog = HttpServiceCatalog("http://catalog.test", transport=httpx.MockTransport(handler))

        item = await catalog.resolve("svc-oil")

        assert requests[0].url.path == "/services/svc-oil"
        assert item.labor_rate == 90.0
        assert item.estimated_duration == 45
        assert item.required_parts == (
            RequiredPart(sku="oil-5w30", quantity=5),
            RequiredPart(sku="filter-oil", quantity=1),
        )

    async def test_unknown_service_is_none(self):
        catalog = HttpServiceCatalog("http://catalog.test", transport=replying(404))

        assert await catalog.resolve("svc-retired") is None

    async def test_server_error(self):
        catalog = HttpServiceCatalog("http://catalog.test", transport=replying(500))

        with pytest.raises(DependencyUnavailableError, match="returned 500"):
            await catalog.resolve("svc-oil")

    async def test_unreachable(self):
        catalog = HttpServiceCatalog("http://catalog.test", transport=refusing())

        with pytest.raises(DependencyUnavailableError, match="unreachable"):
            await catalog.resolve("svc-oil")

    @pytest.mark.parametrize("reply", [
        pytest.param({"json": {"name": "Oil"}}, id="missing-id"),
        pytest.param({"json": ["svc-oil"]}, id="list-body"),
        pytest.param({"text": "not json"}, id="not-json"),
        pytest.param(
            {"json": {"id": "svc-oil", "required_parts": [{"sku": "oil", "quantity": "lots"}]}},
            id="bad-quantity",
        ),
        pytest.param({"json": {"id": "svc-oil", "labor_rate": "cheap"}}, id="bad-rate"),
    ])
    async def test_unreadable_entry(self, reply):
        catalog = HttpServiceCatalog("http://catalog.test", transport=replying(**reply))

        with pytest.raises(DependencyUnavailableError, match="unreadable"):
            await catalog.resolve("svc-oil")


# =============================================================================
# TEST: WEBHOOK NOTIFIER
# =============================================================================


class TestWebhookNotifier:
    async def test_posts_event(self):
        payloads = []

        def handler(request: httpx.Request) -> httpx.Response:
            payloads.append(json.loads(request.content))
            return httpx.Response(202)

        notifier = WebhookNotifier("http://messaging.test/hook", transport=httpx.MockTransport(handler))

        await notifier.notify_decline("appt-1", "Fully booked")

        assert payloads == [{
            "event": "appointment.declined",
            "appointment_id": "appt-1",
            "reason": "Fully booked",
        }]

    async def test_failing_webhook_keeps_decision(self, session, session_factory, make_appointment):
        appointment = await make_appointment()
        notifier = WebhookNotifier("http://messaging.test/hook", transport=replying(500))
        coordinator = ApprovalCoordinator(session, notifier=notifier)

        await coordinator.approve(appointment.id, "See you Monday", notify_customer=True)
        await session.commit()
        delivered = await coordinator.send_notifications()

        assert delivered == 0
        async with session_factory() as fresh:
            stored = await fresh.get(Appointment, appointment.id)
        assert stored.approval_status == ApprovalStatus.APPROVED


# =============================================================================
# TEST: WIRING
# =============================================================================


class TestBuildCollaborators:
    def test_http_clients_when_urls_configured(self):
        settings = Settings(
            PARTS_SERVICE_URL="http://inventory.test",
            CATALOG_SERVICE_URL="http://catalog.test",
            NOTIFICATION_WEBHOOK_URL="http://messaging.test/hook",
        )

        collaborators = build_collaborators(settings)

        assert isinstance(collaborators.catalog, HttpServiceCatalog)
        assert isinstance(collaborators.parts_checker, HttpPartsChecker)
        assert isinstance(collaborators.notifier, WebhookNotifier)

    def test_in_process_stand_ins_otherwise(self):
        settings = Settings(
            PARTS_SERVICE_URL=None,
            CATALOG_SERVICE_URL=None,
            NOTIFICATION_WEBHOOK_URL=None,
        )

        collaborators = build_collaborators(settings)

        assert isinstance(collaborators.catalog, InMemoryServiceCatalog)
        assert isinstance(collaborators.parts_checker, InventoryPartsChecker)
        assert isinstance(collaborators.notifier, LoggingNotifier)
