"""Business logic services for the approval pipeline."""

from .alerting_engine import (
    Alert,
    AlertConfig,
    AlertType,
    compute_alerts,
    is_overdue,
    is_urgent,
)
from .approval_coordinator import ApprovalCoordinator, PendingPage
from .approval_stats import ApprovalOverview, approval_overview
from .collaborators import Collaborators, build_collaborators
from .errors import (
    AlreadyExistsError,
    ConflictError,
    DependencyUnavailableError,
    InvalidServiceTypeError,
    NotApprovedError,
    NotFoundError,
    ValidationError,
    WorkshopError,
)
from .notifications import CustomerNotifier, LoggingNotifier, WebhookNotifier
from .parts_availability import (
    AvailablePart,
    HttpPartsChecker,
    InventoryPartsChecker,
    MissingPart,
    PartsAvailability,
    PartsAvailabilityChecker,
    StockItem,
)
from .service_catalog import (
    HttpServiceCatalog,
    InMemoryServiceCatalog,
    RequiredPart,
    ServiceCatalog,
    ServiceCatalogItem,
)
from .work_order_synthesizer import (
    SchedulingPolicy,
    WorkOrderResult,
    WorkOrderSynthesizer,
    resolve_labor_rate,
    soonest_slot,
)

__all__ = [
    # Approval
    "ApprovalCoordinator",
    "PendingPage",
    # Work orders
    "WorkOrderSynthesizer",
    "WorkOrderResult",
    "SchedulingPolicy",
    "resolve_labor_rate",
    "soonest_slot",
    # Alerts & stats
    "Alert",
    "AlertConfig",
    "AlertType",
    "compute_alerts",
    "is_overdue",
    "is_urgent",
    "ApprovalOverview",
    "approval_overview",
    # Collaborators
    "Collaborators",
    "build_collaborators",
    "CustomerNotifier",
    "LoggingNotifier",
    "WebhookNotifier",
    "PartsAvailabilityChecker",
    "InventoryPartsChecker",
    "HttpPartsChecker",
    "PartsAvailability",
    "AvailablePart",
    "MissingPart",
    "StockItem",
    "ServiceCatalog",
    "InMemoryServiceCatalog",
    "HttpServiceCatalog",
    "ServiceCatalogItem",
    "RequiredPart",
    # Errors
    "WorkshopError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "AlreadyExistsError",
    "InvalidServiceTypeError",
    "NotApprovedError",
    "DependencyUnavailableError",
]
