"""
Customer Notifications: fire-and-forget approval/decline messages.

Delivery belongs to an external service. Notices are sent only after the
decision that triggered them has committed; a failed notice is logged
and never undoes that decision.
"""

import logging
from abc import ABC, abstractmethod
from uuid import UUID

import httpx

logger = logging.getLogger(__name__)


class CustomerNotifier(ABC):
    """Abstract base for customer notification channels."""

    @abstractmethod
    async def notify_approval(self, appointment_id: UUID, notes: str) -> None:
        """Tell the customer their appointment was approved."""

    @abstractmethod
    async def notify_decline(self, appointment_id: UUID, reason: str) -> None:
        """Tell the customer their appointment was declined."""


class LoggingNotifier(CustomerNotifier):
    """Notifier that only logs; used when no webhook is configured."""

    async def notify_approval(self, appointment_id: UUID, notes: str) -> None:
        logger.info(f"[NOTIFY] Appointment {appointment_id} approved: {notes}")

    async def notify_decline(self, appointment_id: UUID, reason: str) -> None:
        logger.info(f"[NOTIFY] Appointment {appointment_id} declined: {reason}")


class WebhookNotifier(CustomerNotifier):
    """Posts notification events to the messaging service webhook."""

    def __init__(
        self,
        webhook_url: str,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._webhook_url = webhook_url
        self._timeout = timeout_seconds
        self._transport = transport

    async def notify_approval(self, appointment_id: UUID, notes: str) -> None:
        await self._post({
            "event": "appointment.approved",
            "appointment_id": str(appointment_id),
            "notes": notes,
        })

    async def notify_decline(self, appointment_id: UUID, reason: str) -> None:
        await self._post({
            "event": "appointment.declined",
            "appointment_id": str(appointment_id),
            "reason": reason,
        })

    async def _post(self, payload: dict) -> None:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(self._webhook_url, json=payload)
            response.raise_for_status()
