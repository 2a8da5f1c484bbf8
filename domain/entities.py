"""Domain Entities - Aggregates"""
from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID, uuid4
from datetime import date, datetime
from typing import Dict, FrozenSet, List, Optional, Tuple
from decimal import Decimal

from domain.enums import (
    CabanaStatus, RequestStatus, ReservationEvent, ReservationStatus, Role,
)
from domain.exceptions import Forbidden, InvalidRequest, InvalidTransition
from domain.value_objects import (
    ADMIN_ROLES, Actor, DateRange, ExtraItemLine, ExtraItemRequest,
    PriceBreakdown, StatusHistoryEntry, to_money, utcnow,
)


# ==================== CATALOG ====================

class CabanaClass(BaseModel):
    class_id: str
    name: str
    description: Optional[str] = None


class Product(BaseModel):
    product_id: str
    name: str
    sale_price: Decimal
    archived: bool = False


class Concept(BaseModel):
    """Bundle of purchasable products with an optional flat service fee"""
    concept_id: str
    name: str
    service_fee: Optional[Decimal] = None
    class_id: Optional[str] = None
    # product_id -> concept-specific unit price
    product_prices: Dict[str, Decimal] = {}

    def price_for(self, product: Product) -> Tuple[Decimal, bool]:
        """Unit price for a product and whether it came from this concept"""
        if product.product_id in self.product_prices:
            return to_money(self.product_prices[product.product_id]), True
        return to_money(product.sale_price), False


class Cabana(BaseModel):
    cabana_id: str
    name: str
    class_id: str
    concept_id: Optional[str] = None
    status: CabanaStatus = CabanaStatus.AVAILABLE
    open_for_reservation: bool = True


class CalendarPrice(BaseModel):
    """Exact daily price for one cabana on one date"""
    cabana_id: str
    day: date
    daily_price: Decimal


class PriceRange(BaseModel):
    """Daily price over [start, end) ranked by priority"""
    price_range_id: UUID = Field(default_factory=uuid4)
    cabana_id: str
    date_range: DateRange
    daily_price: Decimal
    priority: int = 0
    label: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    archived: bool = False

    def rank(self) -> Tuple[int, datetime, str]:
        """Total order: priority, then most recent, then id"""
        return (self.priority, self.created_at, str(self.price_range_id))


class BlackoutWindow(BaseModel):
    blackout_id: UUID = Field(default_factory=uuid4)
    date_range: DateRange
    cabana_id: Optional[str] = None  # None = venue-wide
    reason: str
    archived: bool = False

    def applies_to(self, cabana_id: str) -> bool:
        return self.cabana_id is None or self.cabana_id == cabana_id


# ==================== STATE MACHINE ====================

TRANSITIONS: Dict[Tuple[ReservationStatus, ReservationEvent], ReservationStatus] = {
    (ReservationStatus.PENDING, ReservationEvent.APPROVE): ReservationStatus.APPROVED,
    (ReservationStatus.PENDING, ReservationEvent.REJECT): ReservationStatus.REJECTED,
    (ReservationStatus.APPROVED, ReservationEvent.REQUEST_CANCELLATION): ReservationStatus.MODIFICATION_PENDING,
    (ReservationStatus.APPROVED, ReservationEvent.REQUEST_EXTRA_ITEMS): ReservationStatus.EXTRA_PENDING,
    (ReservationStatus.APPROVED, ReservationEvent.REQUEST_MODIFICATION): ReservationStatus.MODIFICATION_PENDING,
    (ReservationStatus.MODIFICATION_PENDING, ReservationEvent.APPROVE_CANCELLATION): ReservationStatus.CANCELLED,
    (ReservationStatus.MODIFICATION_PENDING, ReservationEvent.REJECT_CANCELLATION): ReservationStatus.APPROVED,
    (ReservationStatus.EXTRA_PENDING, ReservationEvent.APPROVE_EXTRA_ITEMS): ReservationStatus.APPROVED,
    (ReservationStatus.EXTRA_PENDING, ReservationEvent.REJECT_EXTRA_ITEMS): ReservationStatus.APPROVED,
    (ReservationStatus.MODIFICATION_PENDING, ReservationEvent.APPROVE_MODIFICATION): ReservationStatus.APPROVED,
    (ReservationStatus.MODIFICATION_PENDING, ReservationEvent.REJECT_MODIFICATION): ReservationStatus.APPROVED,
    (ReservationStatus.APPROVED, ReservationEvent.CHECK_IN): ReservationStatus.CHECKED_IN,
    (ReservationStatus.CHECKED_IN, ReservationEvent.CHECK_OUT): ReservationStatus.CHECKED_OUT,
}

REQUESTER_ROLES: FrozenSet[Role] = frozenset({Role.CASINO_USER})

EVENT_ROLES: Dict[ReservationEvent, FrozenSet[Role]] = {
    ReservationEvent.CREATE: REQUESTER_ROLES,
    ReservationEvent.APPROVE: ADMIN_ROLES,
    ReservationEvent.REJECT: ADMIN_ROLES,
    ReservationEvent.CHECK_IN: ADMIN_ROLES,
    ReservationEvent.CHECK_OUT: ADMIN_ROLES,
    ReservationEvent.APPROVE_CANCELLATION: frozenset({Role.ADMIN}),
    ReservationEvent.REJECT_CANCELLATION: frozenset({Role.ADMIN}),
    ReservationEvent.APPROVE_EXTRA_ITEMS: frozenset({Role.ADMIN}),
    ReservationEvent.REJECT_EXTRA_ITEMS: frozenset({Role.ADMIN}),
    ReservationEvent.APPROVE_MODIFICATION: frozenset({Role.ADMIN}),
    ReservationEvent.REJECT_MODIFICATION: frozenset({Role.ADMIN}),
}

# Only the user who owns the reservation may fire these
OWNER_EVENTS: FrozenSet[ReservationEvent] = frozenset({
    ReservationEvent.REQUEST_CANCELLATION,
    ReservationEvent.REQUEST_EXTRA_ITEMS,
    ReservationEvent.REQUEST_MODIFICATION,
})


class Reservation(BaseModel):
    """Reservation Aggregate Root Entity"""

    # Identity
    reservation_id: UUID = Field(default_factory=uuid4)

    # References to other contexts
    cabana_id: str
    user_id: UUID

    guest_name: str
    date_range: DateRange
    notes: Optional[str] = None

    status: ReservationStatus = ReservationStatus.PENDING

    # Price snapshot, set only by approving transitions
    total_price: Optional[Decimal] = None
    price_breakdown: Optional[PriceBreakdown] = None
    extra_items: List[ExtraItemLine] = []

    rejection_reason: Optional[str] = None
    check_in_at: Optional[datetime] = None
    checked_in_by: Optional[UUID] = None
    check_out_at: Optional[datetime] = None
    checked_out_by: Optional[UUID] = None

    status_history: Tuple[StatusHistoryEntry, ...] = ()

    # Metadata
    created_at: datetime = Field(default_factory=utcnow)
    modified_at: datetime = Field(default_factory=utcnow)
    version: int = 1

    model_config = ConfigDict(from_attributes=True)

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        cabana_id: str,
        actor: Actor,
        guest_name: str,
        date_range: DateRange,
        notes: Optional[str] = None
    ) -> "Reservation":
        """Create a PENDING reservation with its first history entry"""
        Reservation.authorize(ReservationEvent.CREATE, actor)

        guest_name = (guest_name or "").strip()
        if not guest_name:
            raise InvalidRequest("Guest name is required")

        reservation = Reservation(
            cabana_id=cabana_id,
            user_id=actor.user_id,
            guest_name=guest_name,
            date_range=date_range,
            notes=notes
        )
        reservation.status_history = (
            StatusHistoryEntry(
                from_status=None,
                to_status=ReservationStatus.PENDING,
                event=ReservationEvent.CREATE,
                changed_by=actor.user_id,
                created_at=reservation.created_at
            ),
        )
        return reservation

    # ==================== GUARDS ====================
    @staticmethod
    def authorize(event: ReservationEvent, actor: Actor, owner_id: Optional[UUID] = None) -> None:
        if event in OWNER_EVENTS:
            if actor.user_id != owner_id:
                raise Forbidden(actor.user_id, event)
            return
        if actor.role not in EVENT_ROLES.get(event, frozenset()):
            raise Forbidden(actor.user_id, event)

    def check_transition(self, event: ReservationEvent, actor: Actor) -> ReservationStatus:
        """Validate actor and current status for an event without changing anything"""
        self.authorize(event, actor, owner_id=self.user_id)
        target = TRANSITIONS.get((self.status, event))
        if target is None:
            raise InvalidTransition(self.status, event)
        return target

    def _transition(
        self,
        event: ReservationEvent,
        actor: Actor,
        reason: Optional[str] = None
    ) -> StatusHistoryEntry:
        """Single entry point for every status change"""
        target = self.check_transition(event, actor)
        now = utcnow()
        entry = StatusHistoryEntry(
            from_status=self.status,
            to_status=target,
            event=event,
            changed_by=actor.user_id,
            reason=reason,
            created_at=now
        )
        self.status = target
        self.status_history = self.status_history + (entry,)
        self.modified_at = now
        self.version += 1
        return entry

    # ==================== STATE TRANSITION METHODS ====================
    def approve(self, actor: Actor, breakdown: PriceBreakdown) -> None:
        """Approve and stamp the price computed for this transition"""
        self.check_transition(ReservationEvent.APPROVE, actor)
        self._ensure_breakdown_matches(breakdown)
        self._transition(ReservationEvent.APPROVE, actor)
        self._stamp_price(breakdown)

    def reject(self, actor: Actor, reason: Optional[str] = None) -> None:
        reason = reason.strip() if reason else None
        self._transition(ReservationEvent.REJECT, actor, reason=reason)
        self.rejection_reason = reason

    def request_cancellation(self, actor: Actor, reason: str) -> "CancellationRequest":
        reason = (reason or "").strip()
        self.check_transition(ReservationEvent.REQUEST_CANCELLATION, actor)
        if not reason:
            raise InvalidRequest("Cancellation reason is required")

        self._transition(ReservationEvent.REQUEST_CANCELLATION, actor, reason=reason)
        return CancellationRequest(
            reservation_id=self.reservation_id,
            requested_by=actor.user_id,
            reason=reason
        )

    def request_extra_items(self, actor: Actor, items: List[ExtraItemRequest]) -> "ExtraConceptRequest":
        self.check_transition(ReservationEvent.REQUEST_EXTRA_ITEMS, actor)
        validate_extra_items(items)

        self._transition(ReservationEvent.REQUEST_EXTRA_ITEMS, actor)
        return ExtraConceptRequest(
            reservation_id=self.reservation_id,
            requested_by=actor.user_id,
            items=list(items)
        )

    def resolve_cancellation(self, request: "CancellationRequest", actor: Actor,
                             approve: bool, note: Optional[str] = None) -> None:
        event = (ReservationEvent.APPROVE_CANCELLATION if approve
                 else ReservationEvent.REJECT_CANCELLATION)
        self.check_transition(event, actor)
        request.resolve(actor, approve, note)
        self._transition(event, actor, reason=note or request.reason)

    def resolve_extra_items(self, request: "ExtraConceptRequest", actor: Actor,
                            approve: bool, breakdown: Optional[PriceBreakdown] = None,
                            note: Optional[str] = None) -> None:
        """Resolve an extras request; approval requires the re-run breakdown"""
        event = (ReservationEvent.APPROVE_EXTRA_ITEMS if approve
                 else ReservationEvent.REJECT_EXTRA_ITEMS)
        self.check_transition(event, actor)
        if approve:
            if breakdown is None:
                raise ValueError("Approving extra items requires a price breakdown")
            self._ensure_breakdown_matches(breakdown)
        request.resolve(actor, approve, note)
        self._transition(event, actor, reason=note)
        if approve:
            self._stamp_price(breakdown)

    def request_modification(
        self,
        actor: Actor,
        new_cabana_id: Optional[str] = None,
        new_start: Optional[date] = None,
        new_end: Optional[date] = None,
        new_guest_name: Optional[str] = None
    ) -> "ModificationRequest":
        """Ask to move the stay to another cabana or span, or rename the guest"""
        self.check_transition(ReservationEvent.REQUEST_MODIFICATION, actor)
        new_guest_name = new_guest_name.strip() if new_guest_name else None
        if not any((new_cabana_id, new_start, new_end, new_guest_name)):
            raise InvalidRequest("At least one change is required")

        request = ModificationRequest(
            reservation_id=self.reservation_id,
            requested_by=actor.user_id,
            new_cabana_id=new_cabana_id,
            new_start=new_start,
            new_end=new_end,
            new_guest_name=new_guest_name
        )
        request.target_range(self)

        self._transition(ReservationEvent.REQUEST_MODIFICATION, actor)
        return request

    def resolve_modification(self, request: "ModificationRequest", actor: Actor,
                             approve: bool, breakdown: Optional[PriceBreakdown] = None,
                             note: Optional[str] = None) -> None:
        """Apply or refuse a modification; approval requires the target breakdown"""
        event = (ReservationEvent.APPROVE_MODIFICATION if approve
                 else ReservationEvent.REJECT_MODIFICATION)
        self.check_transition(event, actor)
        note = note.strip() if note else None
        if not approve and not note:
            raise InvalidRequest("Rejection reason is required")

        target_cabana_id = request.target_cabana_id(self)
        target_range = request.target_range(self)
        if approve:
            if breakdown is None:
                raise ValueError("Approving a modification requires a price breakdown")
            if (breakdown.cabana_id != target_cabana_id
                    or breakdown.start != target_range.start
                    or breakdown.end != target_range.end):
                raise ValueError("Price breakdown does not match the requested change")

        request.resolve(actor, approve, note)
        if approve:
            self.cabana_id = target_cabana_id
            self.date_range = target_range
            if request.new_guest_name:
                self.guest_name = request.new_guest_name
        self._transition(event, actor, reason=note)
        if approve:
            self._stamp_price(breakdown)

    def check_in(self, actor: Actor) -> None:
        """Mark guest as checked in"""
        self._transition(ReservationEvent.CHECK_IN, actor)
        self.check_in_at = self.modified_at
        self.checked_in_by = actor.user_id

    def check_out(self, actor: Actor) -> None:
        """Process guest check-out"""
        self._transition(ReservationEvent.CHECK_OUT, actor)
        self.check_out_at = self.modified_at
        self.checked_out_by = actor.user_id

    # ==================== QUERY METHODS ====================
    def get_nights(self) -> int:
        return self.date_range.nights()

    def extra_item_requests(self) -> List[ExtraItemRequest]:
        """Persisted extras as pricing input"""
        return [
            ExtraItemRequest(product_id=line.product_id, quantity=line.quantity)
            for line in self.extra_items
        ]

    @property
    def is_occupying(self) -> bool:
        return self.status.is_occupying

    # ==================== PRIVATE METHODS ====================
    def _ensure_breakdown_matches(self, breakdown: PriceBreakdown) -> None:
        if (breakdown.cabana_id != self.cabana_id
                or breakdown.start != self.date_range.start
                or breakdown.end != self.date_range.end):
            raise ValueError("Price breakdown does not belong to this reservation")

    def _stamp_price(self, breakdown: PriceBreakdown) -> None:
        self.price_breakdown = breakdown
        self.total_price = breakdown.total
        self.extra_items = list(breakdown.extra_items)


def validate_extra_items(items: List[ExtraItemRequest]) -> None:
    if not items:
        raise InvalidRequest("At least one extra item is required")
    bad = [item.product_id for item in items
           if not isinstance(item.quantity, int) or isinstance(item.quantity, bool) or item.quantity <= 0]
    if bad:
        raise InvalidRequest("Quantity must be a positive integer for: " + ", ".join(bad))


# ==================== CHANGE REQUESTS ====================

class ChangeRequest(BaseModel):
    request_id: UUID = Field(default_factory=uuid4)
    reservation_id: UUID
    requested_by: UUID
    status: RequestStatus = RequestStatus.PENDING
    resolved_by: Optional[UUID] = None
    resolved_at: Optional[datetime] = None
    resolution_note: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(from_attributes=True)

    def resolve(self, actor: Actor, approve: bool, note: Optional[str] = None) -> None:
        if self.status != RequestStatus.PENDING:
            raise InvalidTransition(self.status, "APPROVE" if approve else "REJECT", entity="request")
        self.status = RequestStatus.APPROVED if approve else RequestStatus.REJECTED
        self.resolved_by = actor.user_id
        self.resolved_at = utcnow()
        self.resolution_note = note.strip() if note else None


class CancellationRequest(ChangeRequest):
    reason: str


class ExtraConceptRequest(ChangeRequest):
    items: List[ExtraItemRequest]


class ModificationRequest(ChangeRequest):
    """Requested change of cabana, dates or guest name; unset fields keep their value"""
    new_cabana_id: Optional[str] = None
    new_start: Optional[date] = None
    new_end: Optional[date] = None
    new_guest_name: Optional[str] = None

    def target_cabana_id(self, reservation: Reservation) -> str:
        return self.new_cabana_id or reservation.cabana_id

    def target_range(self, reservation: Reservation) -> DateRange:
        return DateRange(
            start=self.new_start or reservation.date_range.start,
            end=self.new_end or reservation.date_range.end
        )
