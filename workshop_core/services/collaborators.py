"""Wiring for the external collaborators the pipeline depends on."""

import logging
from dataclasses import dataclass

from ..core.config import Settings
from .notifications import CustomerNotifier, LoggingNotifier, WebhookNotifier
from .parts_availability import (
    HttpPartsChecker,
    InventoryPartsChecker,
    PartsAvailabilityChecker,
)
from .service_catalog import HttpServiceCatalog, InMemoryServiceCatalog, ServiceCatalog

logger = logging.getLogger(__name__)


@dataclass
class Collaborators:
    catalog: ServiceCatalog
    parts_checker: PartsAvailabilityChecker
    notifier: CustomerNotifier


def build_collaborators(settings: Settings) -> Collaborators:
    """
    HTTP clients for every collaborator with a configured URL, in-process
    stand-ins for the rest.
    """
    timeout = settings.collaborator_timeout_seconds

    if settings.catalog_service_url:
        catalog: ServiceCatalog = HttpServiceCatalog(settings.catalog_service_url, timeout)
    else:
        logger.warning("CATALOG_SERVICE_URL not set; using an empty in-memory catalog")
        catalog = InMemoryServiceCatalog()

    if settings.parts_service_url:
        parts_checker: PartsAvailabilityChecker = HttpPartsChecker(
            settings.parts_service_url, timeout
        )
    else:
        logger.warning("PARTS_SERVICE_URL not set; using an empty in-memory inventory")
        parts_checker = InventoryPartsChecker()

    if settings.notification_webhook_url:
        notifier: CustomerNotifier = WebhookNotifier(settings.notification_webhook_url, timeout)
    else:
        notifier = LoggingNotifier()

    return Collaborators(catalog=catalog, parts_checker=parts_checker, notifier=notifier)
