"""Domain exceptions for the approval pipeline.

Every error carries a stable ``code`` so the API layer can surface a
distinct, actionable message for each failure branch.
"""


class WorkshopError(Exception):
    """Base exception for approval-pipeline operations."""

    code = "workshop_error"


class ValidationError(WorkshopError):
    """A required field is missing or blank. Not retried; the caller must fix input."""

    code = "validation_error"


class NotFoundError(WorkshopError):
    """Unknown appointment or work-order id."""

    code = "not_found"


class ConflictError(WorkshopError):
    """Concurrent modification or an already-decided appointment.

    Callers should re-read current state before retrying.
    """

    code = "conflict"


class AlreadyExistsError(ConflictError):
    """A work order already references this appointment."""

    code = "work_order_exists"


class InvalidServiceTypeError(WorkshopError):
    """The appointment's service type does not resolve in the catalog."""

    code = "invalid_service_type"


class NotApprovedError(WorkshopError):
    """Work-order synthesis attempted on an appointment that is not approved."""

    code = "not_approved"


class DependencyUnavailableError(WorkshopError):
    """An external collaborator could not be reached.

    Raised by collaborator clients. Work-order creation degrades an
    inventory outage to an on-hold order instead of propagating it.
    """

    code = "dependency_unavailable"
