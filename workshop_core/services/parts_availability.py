"""
Parts Availability: inventory lookups for work-order gating.

The checker is an external, read-only collaborator. Given the parts a
service requires, it reports whether everything is in stock. Each short
item carries its deficit and why it is short; each covered item carries
the stock it is covered by.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import httpx

from .errors import DependencyUnavailableError
from .service_catalog import RequiredPart, parse_quantity

logger = logging.getLogger(__name__)

PART_NOT_FOUND = "Part not found in inventory"
INSUFFICIENT_STOCK = "Insufficient stock"


def _part_identity(data: dict) -> tuple[str, str]:
    if not isinstance(data, dict):
        raise ValueError(f"part entry must be an object, got {type(data).__name__}")
    sku = data.get("sku") or data.get("name")
    if not isinstance(sku, str) or not sku:
        raise ValueError(f"part entry has no sku: {data!r}")
    name = data.get("name") or sku
    return sku, str(name)


def _optional_stock(value) -> int | None:
    return None if value is None else parse_quantity(value)


@dataclass(frozen=True)
class MissingPart:
    """A required part that is short, with the deficit quantity."""
    sku: str
    name: str
    quantity: int
    reason: str = INSUFFICIENT_STOCK
    current_stock: int | None = None  # None when the part is not stocked at all

    def to_dict(self) -> dict:
        return {
            "sku": self.sku,
            "name": self.name,
            "quantity": self.quantity,
            "reason": self.reason,
            "current_stock": self.current_stock,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MissingPart":
        sku, name = _part_identity(data)
        current_stock = _optional_stock(data.get("current_stock"))
        default_reason = PART_NOT_FOUND if current_stock is None else INSUFFICIENT_STOCK
        return cls(
            sku=sku,
            name=name,
            quantity=parse_quantity(data.get("quantity")),
            reason=str(data.get("reason") or default_reason),
            current_stock=current_stock,
        )


@dataclass(frozen=True)
class AvailablePart:
    """A required part the inventory covers."""
    sku: str
    name: str
    quantity: int
    current_stock: int

    def to_dict(self) -> dict:
        return {
            "sku": self.sku,
            "name": self.name,
            "quantity": self.quantity,
            "current_stock": self.current_stock,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AvailablePart":
        sku, name = _part_identity(data)
        return cls(
            sku=sku,
            name=name,
            quantity=parse_quantity(data.get("quantity")),
            current_stock=parse_quantity(data.get("current_stock")),
        )


@dataclass(frozen=True)
class PartsAvailability:
    """Snapshot of availability taken when a work order is created."""
    all_available: bool
    missing_parts: list[MissingPart] = field(default_factory=list)
    available_parts: list[AvailablePart] = field(default_factory=list)
    availability_known: bool = True

    @classmethod
    def unknown(cls) -> "PartsAvailability":
        """Availability could not be determined (checker unreachable)."""
        return cls(all_available=False, availability_known=False)

    @property
    def total_missing(self) -> int:
        """Units short across every missing part."""
        return sum(part.quantity for part in self.missing_parts)

    def to_dict(self) -> dict:
        return {
            "all_available": self.all_available,
            "availability_known": self.availability_known,
            "missing_parts": [p.to_dict() for p in self.missing_parts],
            "available_parts": [p.to_dict() for p in self.available_parts],
            "total_missing": self.total_missing,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PartsAvailability":
        """
        Parse an availability reply.

        Raises:
            ValueError: the payload is not an availability object
        """
        if not isinstance(data, dict):
            raise ValueError(f"expected an object, got {type(data).__name__}")

        missing_raw = data.get("missing_parts") or []
        available_raw = data.get("available_parts") or []
        if not isinstance(missing_raw, list) or not isinstance(available_raw, list):
            raise ValueError("missing_parts and available_parts must be lists")

        missing = [MissingPart.from_dict(p) for p in missing_raw]

        return cls(
            # A reply listing short parts is never "all available"
            all_available=bool(data.get("all_available", False)) and not missing,
            missing_parts=missing,
            available_parts=[AvailablePart.from_dict(p) for p in available_raw],
            availability_known=bool(data.get("availability_known", True)),
        )


class PartsAvailabilityChecker(ABC):
    """Inventory lookup used before a work order is scheduled."""

    @abstractmethod
    async def check_availability(
        self,
        parts: list[RequiredPart],
    ) -> PartsAvailability:
        """
        Check stock for the required parts.

        Raises:
            DependencyUnavailableError: if the inventory cannot be reached
                or its reply cannot be read.
        """


@dataclass
class StockItem:
    """One inventory row."""
    sku: str
    name: str
    current_stock: int


class InventoryPartsChecker(PartsAvailabilityChecker):
    """Checker over an in-process stock table."""

    def __init__(self, stock: list[StockItem] | None = None):
        self._stock = {item.sku: item for item in stock or []}

    def set_stock(self, sku: str, name: str, current_stock: int) -> None:
        self._stock[sku] = StockItem(sku=sku, name=name, current_stock=current_stock)

    async def check_availability(
        self,
        parts: list[RequiredPart],
    ) -> PartsAvailability:
        missing: list[MissingPart] = []
        available: list[AvailablePart] = []

        # Sum duplicates so a sku listed twice is checked against its combined need
        needed: dict[str, int] = {}
        for part in parts:
            needed[part.sku] = needed.get(part.sku, 0) + part.quantity

        for sku, quantity in needed.items():
            item = self._stock.get(sku)
            if item is None:
                missing.append(MissingPart(
                    sku=sku,
                    name=sku,
                    quantity=quantity,
                    reason=PART_NOT_FOUND,
                ))
            elif item.current_stock < quantity:
                missing.append(MissingPart(
                    sku=sku,
                    name=item.name,
                    quantity=quantity - item.current_stock,
                    reason=INSUFFICIENT_STOCK,
                    current_stock=item.current_stock,
                ))
            else:
                available.append(AvailablePart(
                    sku=sku,
                    name=item.name,
                    quantity=quantity,
                    current_stock=item.current_stock,
                ))

        return PartsAvailability(
            all_available=not missing,
            missing_parts=missing,
            available_parts=available,
        )


class HttpPartsChecker(PartsAvailabilityChecker):
    """Client for the inventory service (``POST /availability``)."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._transport = transport

    async def check_availability(
        self,
        parts: list[RequiredPart],
    ) -> PartsAvailability:
        payload = {"parts": [p.to_dict() for p in parts]}
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(f"{self._base_url}/availability", json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise DependencyUnavailableError(f"Parts availability service unreachable: {e}") from e

        try:
            return PartsAvailability.from_dict(response.json())
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.warning(f"Unreadable parts availability reply: {response.text[:200]!r}")
            raise DependencyUnavailableError(
                f"Parts availability service returned an unreadable payload: {e}"
            ) from e
