"""Domain Errors

Every failure the reservation core reports is one of these types. Each carries
structured fields so callers can act on the problem without parsing messages.
"""
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence


class ReservationError(Exception):
    """Base class for recoverable reservation errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.__class__.__name__, "detail": self.message}


class InvalidRange(ReservationError):
    def __init__(self, start: date, end: date):
        super().__init__(f"Start date {start.isoformat()} must be before end date {end.isoformat()}")
        self.start = start
        self.end = end

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(start=self.start.isoformat(), end=self.end.isoformat())
        return data


class InvalidRequest(ReservationError):
    """Payload failed validation (empty reason, no items, bad quantity)"""


class UnpricedDate(ReservationError):
    def __init__(self, dates: Iterable[date]):
        self.dates: List[date] = sorted(dates)
        super().__init__(
            "No price defined for: " + ", ".join(d.isoformat() for d in self.dates)
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["dates"] = [d.isoformat() for d in self.dates]
        return data


class UnknownProduct(ReservationError):
    def __init__(self, product_ids: Sequence[str]):
        self.product_ids: List[str] = list(product_ids)
        super().__init__("Unknown product(s): " + ", ".join(self.product_ids))

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["product_ids"] = self.product_ids
        return data


class Unavailable(ReservationError):
    """The cabana cannot be booked for the requested span"""

    def __init__(self, reasons: Sequence[Any]):
        self.reasons = list(reasons)
        super().__init__("Cabana is not bookable: " + "; ".join(r.message for r in self.reasons))

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["reasons"] = [r.model_dump(mode="json") for r in self.reasons]
        return data


class InvalidTransition(ReservationError):
    def __init__(self, current: Any, event: Any, entity: str = "reservation"):
        self.current = current
        self.event = event
        self.entity = entity
        super().__init__(
            f"Cannot apply {_value(event)} to a {entity} in {_value(current)} status"
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(current=_value(self.current), event=_value(self.event), entity=self.entity)
        return data


class Forbidden(ReservationError):
    def __init__(self, actor_id: Any, action: Any):
        self.actor_id = actor_id
        self.action = action
        super().__init__(f"User {actor_id} is not allowed to {_value(action)}")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(actor_id=str(self.actor_id), action=_value(self.action))
        return data


class NotFound(ReservationError):
    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(entity=self.entity, entity_id=str(self.entity_id))
        return data


class Conflict(ReservationError):
    """Concurrent modification detected at commit; the caller should retry"""

    def __init__(self, entity_id: Any, expected_version: Optional[int] = None,
                 actual_version: Optional[int] = None):
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(f"Reservation {entity_id} was modified concurrently, retry the operation")


class StorageUnavailable(Exception):
    """Persistence layer is unreachable. Not a domain error: nothing was committed."""


def _value(item: Any) -> str:
    return getattr(item, "value", item)
