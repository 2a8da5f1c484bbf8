"""Domain Enums"""
from enum import Enum


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    MODIFICATION_PENDING = "MODIFICATION_PENDING"
    EXTRA_PENDING = "EXTRA_PENDING"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELLED = "CANCELLED"

    @property
    def is_occupying(self) -> bool:
        """Whether a reservation in this status holds the cabana's calendar"""
        return self in OCCUPYING_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


OCCUPYING_STATUSES = frozenset({
    ReservationStatus.APPROVED,
    ReservationStatus.CHECKED_IN,
    ReservationStatus.MODIFICATION_PENDING,
    ReservationStatus.EXTRA_PENDING,
})

TERMINAL_STATUSES = frozenset({
    ReservationStatus.REJECTED,
    ReservationStatus.CHECKED_OUT,
    ReservationStatus.CANCELLED,
})


class ReservationEvent(str, Enum):
    CREATE = "CREATE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REQUEST_CANCELLATION = "REQUEST_CANCELLATION"
    REQUEST_EXTRA_ITEMS = "REQUEST_EXTRA_ITEMS"
    REQUEST_MODIFICATION = "REQUEST_MODIFICATION"
    APPROVE_CANCELLATION = "APPROVE_CANCELLATION"
    REJECT_CANCELLATION = "REJECT_CANCELLATION"
    APPROVE_EXTRA_ITEMS = "APPROVE_EXTRA_ITEMS"
    REJECT_EXTRA_ITEMS = "REJECT_EXTRA_ITEMS"
    APPROVE_MODIFICATION = "APPROVE_MODIFICATION"
    REJECT_MODIFICATION = "REJECT_MODIFICATION"
    CHECK_IN = "CHECK_IN"
    CHECK_OUT = "CHECK_OUT"


class RequestStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class CabanaStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    CLOSED = "CLOSED"


class Role(str, Enum):
    SYSTEM_ADMIN = "SYSTEM_ADMIN"
    ADMIN = "ADMIN"
    CASINO_USER = "CASINO_USER"
    FNB_USER = "FNB_USER"


class PriceSource(str, Enum):
    CALENDAR = "CALENDAR"
    RANGE = "RANGE"
    CONCEPT_SPECIFIC = "CONCEPT_SPECIFIC"
    CATALOG = "CATALOG"


class UnavailabilityCode(str, Enum):
    CLOSED_FOR_RESERVATION = "CLOSED_FOR_RESERVATION"
    BLACKOUT = "BLACKOUT"
    OVERLAP = "OVERLAP"


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    PRICE_UPDATE = "PRICE_UPDATE"
    CANCEL_REQUEST = "CANCEL_REQUEST"
    EXTRA_REQUEST = "EXTRA_REQUEST"
    MODIFY_REQUEST = "MODIFY_REQUEST"
    CHECK_IN = "CHECK_IN"
    CHECK_OUT = "CHECK_OUT"


class BroadcastEvent(str, Enum):
    RESERVATION_CREATED = "reservation:created"
    RESERVATION_APPROVED = "reservation:approved"
    RESERVATION_REJECTED = "reservation:rejected"
    RESERVATION_CANCELLED = "reservation:cancelled"
    RESERVATION_CHECKED_IN = "reservation:checked-in"
    RESERVATION_CHECKED_OUT = "reservation:checked-out"
    CALENDAR_UPDATE = "calendar:update"
