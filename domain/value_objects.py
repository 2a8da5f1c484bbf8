"""Domain Value Objects"""
from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID
from typing import List, Optional

from domain.enums import (
    PriceSource, ReservationEvent, ReservationStatus, Role, UnavailabilityCode,
)
from domain.exceptions import InvalidRange

CENT = Decimal("0.01")
ADMIN_ROLES = frozenset({Role.ADMIN, Role.SYSTEM_ADMIN})


def to_money(value) -> Decimal:
    """Quantize any numeric value to a two-place Decimal"""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DateRange(BaseModel):
    """Half-open span of calendar days: start is charged, end is checkout"""
    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode="after")
    def start_before_end(self):
        if self.start >= self.end:
            raise InvalidRange(self.start, self.end)
        return self

    def nights(self) -> int:
        """Calculate number of nights"""
        return (self.end - self.start).days

    def days(self) -> List[date]:
        """Every charged day in the span"""
        return [self.start + timedelta(days=i) for i in range(self.nights())]

    def contains(self, day: date) -> bool:
        return self.start <= day < self.end

    def overlaps(self, other: "DateRange") -> bool:
        return self.start < other.end and other.start < self.end

    def intersection_days(self, other: "DateRange") -> List[date]:
        return [d for d in self.days() if other.contains(d)]


class Actor(BaseModel):
    """Trusted caller identity, already authenticated upstream"""
    model_config = ConfigDict(frozen=True)

    user_id: UUID
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


class ExtraItemRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    quantity: int


class NightlyPrice(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    amount: Decimal
    source: PriceSource
    price_range_id: Optional[UUID] = None
    label: Optional[str] = None


class ExtraItemLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    name: str
    quantity: int
    unit_price: Decimal
    total: Decimal
    source: PriceSource


class PriceBreakdown(BaseModel):
    """Itemized cost of a stay"""
    model_config = ConfigDict(frozen=True)

    cabana_id: str
    concept_id: Optional[str] = None
    start: date
    end: date
    nights: List[NightlyPrice]
    nights_subtotal: Decimal
    concept_fee: Decimal
    extra_items: List[ExtraItemLine]
    extras_subtotal: Decimal
    total: Decimal
    currency: str


class StatusHistoryEntry(BaseModel):
    """One immutable record of a status transition"""
    model_config = ConfigDict(frozen=True)

    from_status: Optional[ReservationStatus] = None
    to_status: ReservationStatus
    event: ReservationEvent
    changed_by: UUID
    reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class UnavailabilityReason(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: UnavailabilityCode
    message: str
    days: List[date] = []
    blackout_id: Optional[UUID] = None
    reservation_id: Optional[UUID] = None


class AvailabilityResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    cabana_id: str
    start: date
    end: date
    reasons: List[UnavailabilityReason] = []

    @property
    def available(self) -> bool:
        return not self.reasons
