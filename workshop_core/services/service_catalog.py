"""
Service Catalog: read-only lookup of service types.

The catalog is owned by another service. This core only resolves a
``service_type_ref`` to its labor rate, duration, and required parts.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import httpx

from .errors import DependencyUnavailableError

logger = logging.getLogger(__name__)


def parse_quantity(value) -> int:
    """Non-negative whole quantity from a collaborator payload."""
    if value is None or isinstance(value, bool):
        raise ValueError(f"invalid quantity: {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"quantity must be a whole number: {value!r}")
    quantity = int(value)
    if quantity < 0:
        raise ValueError(f"quantity must not be negative: {value!r}")
    return quantity


def _optional_number(value, cast):
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"invalid number: {value!r}")
    return cast(value)


@dataclass(frozen=True)
class RequiredPart:
    """A part a service consumes."""
    sku: str
    quantity: int

    def to_dict(self) -> dict:
        return {"sku": self.sku, "quantity": self.quantity}


@dataclass(frozen=True)
class ServiceCatalogItem:
    """Catalog entry for a service type."""
    id: str
    name: str
    labor_rate: float | None
    estimated_duration: int | None  # minutes
    required_parts: tuple[RequiredPart, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: dict) -> "ServiceCatalogItem":
        """
        Parse a catalog entry.

        Raises:
            ValueError: the payload is not a catalog entry
        """
        if not isinstance(data, dict):
            raise ValueError(f"expected an object, got {type(data).__name__}")
        if not data.get("id"):
            raise ValueError("catalog entry has no id")

        parts = data.get("required_parts") or []
        if not isinstance(parts, list):
            raise ValueError("required_parts must be a list")

        required = []
        for part in parts:
            if not isinstance(part, dict) or not part.get("sku"):
                raise ValueError(f"required part has no sku: {part!r}")
            required.append(RequiredPart(
                sku=str(part["sku"]),
                quantity=parse_quantity(part.get("quantity", 1)),
            ))

        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            labor_rate=_optional_number(data.get("labor_rate"), float),
            estimated_duration=_optional_number(data.get("estimated_duration"), int),
            required_parts=tuple(required),
        )


class ServiceCatalog(ABC):
    """Resolves service type references."""

    @abstractmethod
    async def resolve(self, service_type_ref: str) -> ServiceCatalogItem | None:
        """Return the catalog entry, or None if the reference is unknown."""


class InMemoryServiceCatalog(ServiceCatalog):
    """Catalog backed by a fixed set of entries."""

    def __init__(self, items: list[ServiceCatalogItem] | None = None):
        self._items = {item.id: item for item in items or []}

    async def resolve(self, service_type_ref: str) -> ServiceCatalogItem | None:
        return self._items.get(service_type_ref)


class HttpServiceCatalog(ServiceCatalog):
    """Catalog client for the services API (``GET /services/{ref}``)."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._transport = transport

    async def resolve(self, service_type_ref: str) -> ServiceCatalogItem | None:
        url = f"{self._base_url}/services/{service_type_ref}"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise DependencyUnavailableError(f"Service catalog unreachable: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise DependencyUnavailableError(
                f"Service catalog returned {response.status_code} for {service_type_ref}"
            )

        try:
            return ServiceCatalogItem.from_dict(response.json())
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.warning(f"Unreadable catalog entry for {service_type_ref}: {response.text[:200]!r}")
            raise DependencyUnavailableError(
                f"Service catalog returned an unreadable entry for {service_type_ref}: {e}"
            ) from e
