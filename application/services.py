"""Application Services - Business use cases"""
import logging
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence
from uuid import UUID

from application.side_effects import AuditRecord, Broadcast, Notification
from application.uow import AbstractUnitOfWork
from domain.availability import AvailabilityChecker
from domain.entities import (
    CancellationRequest, ExtraConceptRequest, ModificationRequest, Reservation,
    validate_extra_items,
)
from domain.enums import (
    AuditAction, BroadcastEvent, ReservationEvent, ReservationStatus, Role,
)
from domain.exceptions import Conflict, Forbidden, InvalidRequest, NotFound, UnknownProduct
from domain.pricing import PricingEngine
from domain.value_objects import (
    Actor, AvailabilityResult, DateRange, ExtraItemRequest, PriceBreakdown,
    StatusHistoryEntry,
)

logger = logging.getLogger(__name__)

UnitOfWorkFactory = Callable[[], AbstractUnitOfWork]


class ReservationService:
    """Service for Reservation business use cases

    Every state change runs inside one unit of work: the cabana is locked,
    the reservation re-read, the guard evaluated against that fresh copy and
    the resulting rows committed together. Audit records, notifications and
    broadcasts are queued on the unit of work and only leave after commit.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        currency: str = "TRY",
        today: Callable[[], date] = date.today,
        allow_past_dates: bool = False
    ):
        self.uow_factory = uow_factory
        self.currency = currency
        self.today = today
        self.allow_past_dates = allow_past_dates

    # ==================== COMMANDS ====================

    async def create_reservation(
        self,
        cabana_id: str,
        actor: Actor,
        guest_name: str,
        start: date,
        end: date,
        notes: Optional[str] = None
    ) -> Reservation:
        """Request a cabana for [start, end); the reservation starts PENDING"""
        date_range = DateRange(start=start, end=end)
        if not self.allow_past_dates and start < self.today():
            raise InvalidRequest(f"Start date {start.isoformat()} is in the past")

        reservation = Reservation.create(
            cabana_id=cabana_id,
            actor=actor,
            guest_name=guest_name,
            date_range=date_range,
            notes=notes
        )

        async with self.uow_factory() as uow:
            await uow.lock_cabana(cabana_id)
            await self._checker(uow).assert_bookable(cabana_id, start, end)
            await uow.reservations.add(reservation)

            uow.emit(_audit(actor, AuditAction.CREATE, reservation, old_status=None))
            uow.emit(Notification(
                role=Role.ADMIN,
                title="New reservation request",
                message=(f"{reservation.guest_name} requested cabana {cabana_id} "
                         f"for {_span(reservation)}"),
                metadata=_metadata(reservation)
            ))
            uow.emit(_broadcast(BroadcastEvent.RESERVATION_CREATED, reservation))

        logger.info(f"Reservation {reservation.reservation_id} created for cabana {cabana_id}")
        return reservation

    async def approve(self, reservation_id: UUID, actor: Actor) -> Reservation:
        """Approve a PENDING reservation and stamp its price"""
        async with self.uow_factory() as uow:
            reservation = await self._load_for_update(uow, reservation_id)
            reservation.check_transition(ReservationEvent.APPROVE, actor)

            await self._checker(uow).assert_bookable(
                reservation.cabana_id,
                reservation.date_range.start,
                reservation.date_range.end,
                exclude_reservation_id=reservation.reservation_id
            )
            breakdown = await self._price(uow, reservation, reservation.extra_item_requests())

            old_status = reservation.status
            reservation.approve(actor, breakdown)
            await uow.reservations.update(reservation)

            uow.emit(_audit(actor, AuditAction.APPROVE, reservation, old_status))
            uow.emit(Notification(
                user_id=reservation.user_id,
                title="Reservation approved",
                message=(f"Your reservation of cabana {reservation.cabana_id} for "
                         f"{_span(reservation)} was approved. Total: "
                         f"{breakdown.total} {breakdown.currency}"),
                metadata=_metadata(reservation)
            ))
            uow.emit(_broadcast(BroadcastEvent.RESERVATION_APPROVED, reservation))

        logger.info(f"Reservation {reservation_id} approved at {reservation.total_price}")
        return reservation

    async def reject(self, reservation_id: UUID, actor: Actor, reason: Optional[str] = None) -> Reservation:
        async with self.uow_factory() as uow:
            reservation = await self._load_for_update(uow, reservation_id)
            old_status = reservation.status
            reservation.reject(actor, reason)
            await uow.reservations.update(reservation)

            uow.emit(_audit(actor, AuditAction.REJECT, reservation, old_status))
            message = f"Your reservation of cabana {reservation.cabana_id} for {_span(reservation)} was rejected"
            if reservation.rejection_reason:
                message += f": {reservation.rejection_reason}"
            uow.emit(Notification(
                user_id=reservation.user_id,
                title="Reservation rejected",
                message=message,
                metadata=_metadata(reservation)
            ))
            uow.emit(_broadcast(BroadcastEvent.RESERVATION_REJECTED, reservation))

        logger.info(f"Reservation {reservation_id} rejected")
        return reservation

    async def request_cancellation(self, reservation_id: UUID, actor: Actor, reason: str) -> CancellationRequest:
        """Owner asks to cancel an APPROVED reservation"""
        async with self.uow_factory() as uow:
            reservation = await self._load_for_update(uow, reservation_id)
            old_status = reservation.status
            request = reservation.request_cancellation(actor, reason)
            await uow.reservations.update(reservation)
            await uow.cancellations.add(request)

            uow.emit(_audit(
                actor, AuditAction.CANCEL_REQUEST, reservation, old_status,
                extra={"request_id": str(request.request_id), "reason": request.reason}
            ))
            uow.emit(Notification(
                role=Role.ADMIN,
                title="Cancellation requested",
                message=(f"Cancellation requested for cabana {reservation.cabana_id} "
                         f"({_span(reservation)}): {request.reason}"),
                metadata={**_metadata(reservation), "request_id": str(request.request_id)}
            ))

        logger.info(f"Cancellation requested for reservation {reservation_id}")
        return request

    async def request_extra_items(
        self,
        reservation_id: UUID,
        actor: Actor,
        items: Sequence[ExtraItemRequest]
    ) -> ExtraConceptRequest:
        """Owner asks to add extra products to an APPROVED reservation"""
        items = list(items)
        async with self.uow_factory() as uow:
            reservation = await self._load_for_update(uow, reservation_id)
            reservation.check_transition(ReservationEvent.REQUEST_EXTRA_ITEMS, actor)
            validate_extra_items(items)
            await self._ensure_products_exist(uow, items)

            old_status = reservation.status
            request = reservation.request_extra_items(actor, items)
            await uow.reservations.update(reservation)
            await uow.extra_requests.add(request)

            uow.emit(_audit(
                actor, AuditAction.EXTRA_REQUEST, reservation, old_status,
                extra={
                    "request_id": str(request.request_id),
                    "items": [item.model_dump() for item in request.items],
                }
            ))
            uow.emit(Notification(
                role=Role.ADMIN,
                title="Extra items requested",
                message=(f"{len(request.items)} extra item(s) requested for cabana "
                         f"{reservation.cabana_id} ({_span(reservation)})"),
                metadata={**_metadata(reservation), "request_id": str(request.request_id)}
            ))

        logger.info(f"Extra items requested for reservation {reservation_id}")
        return request

    async def request_modification(
        self,
        reservation_id: UUID,
        actor: Actor,
        new_cabana_id: Optional[str] = None,
        new_start: Optional[date] = None,
        new_end: Optional[date] = None,
        new_guest_name: Optional[str] = None
    ) -> ModificationRequest:
        """Owner asks to move an APPROVED reservation or rename its guest"""
        if new_start is not None and not self.allow_past_dates and new_start < self.today():
            raise InvalidRequest(f"Start date {new_start.isoformat()} is in the past")

        async with self.uow_factory() as uow:
            reservation = await self._load_for_update(uow, reservation_id)
            reservation.check_transition(ReservationEvent.REQUEST_MODIFICATION, actor)
            if new_cabana_id is not None and await uow.catalog.get_cabana(new_cabana_id) is None:
                raise NotFound("Cabana", new_cabana_id)

            old_status = reservation.status
            request = reservation.request_modification(
                actor,
                new_cabana_id=new_cabana_id,
                new_start=new_start,
                new_end=new_end,
                new_guest_name=new_guest_name
            )
            await uow.reservations.update(reservation)
            await uow.modifications.add(request)

            uow.emit(_audit(
                actor, AuditAction.MODIFY_REQUEST, reservation, old_status,
                extra={"request_id": str(request.request_id), **_requested_changes(request)}
            ))
            uow.emit(Notification(
                role=Role.ADMIN,
                title="Modification requested",
                message=f"Modification requested for {reservation.guest_name} ({_span(reservation)})",
                metadata={**_metadata(reservation), "request_id": str(request.request_id)}
            ))

        logger.info(f"Modification requested for reservation {reservation_id}")
        return request

    async def resolve_modification(
        self,
        request_id: UUID,
        actor: Actor,
        approve: bool,
        note: Optional[str] = None
    ) -> Reservation:
        """Approve (move and re-price the stay) or reject a modification request"""
        async with self.uow_factory() as uow:
            request = await uow.modifications.find_by_id(request_id)
            if request is None:
                raise NotFound("ModificationRequest", request_id)
            reservation = await uow.reservations.find_by_id(request.reservation_id)
            if reservation is None:
                raise NotFound("Reservation", request.reservation_id)
            await uow.lock_cabanas({reservation.cabana_id, request.target_cabana_id(reservation)})
            locked_cabana_id = reservation.cabana_id
            reservation = await uow.reservations.find_by_id(request.reservation_id)
            if reservation.cabana_id != locked_cabana_id:
                raise Conflict(reservation.reservation_id)
            request = await uow.modifications.find_by_id(request_id)

            old_cabana_id = reservation.cabana_id
            old_range = reservation.date_range
            old_total = reservation.total_price
            breakdown: Optional[PriceBreakdown] = None
            if approve:
                reservation.check_transition(ReservationEvent.APPROVE_MODIFICATION, actor)
                target_cabana_id = request.target_cabana_id(reservation)
                target_range = request.target_range(reservation)
                await self._checker(uow).assert_bookable(
                    target_cabana_id,
                    target_range.start,
                    target_range.end,
                    exclude_reservation_id=reservation.reservation_id
                )
                cabana = await uow.catalog.get_cabana(target_cabana_id)
                breakdown = await PricingEngine(uow.catalog, self.currency).calculate_price(
                    target_cabana_id,
                    cabana.concept_id,
                    target_range.start,
                    target_range.end,
                    reservation.extra_item_requests()
                )

            old_status = reservation.status
            reservation.resolve_modification(request, actor, approve, breakdown, note)
            await uow.reservations.update(reservation)
            await uow.modifications.update(request)

            changes = {"request_id": str(request.request_id), "request_status": request.status.value}
            if approve:
                changes.update(
                    previous_cabana_id=old_cabana_id,
                    previous_start=old_range.start.isoformat(),
                    previous_end=old_range.end.isoformat(),
                    previous_total=str(old_total) if old_total is not None else None
                )
            uow.emit(_audit(
                actor,
                AuditAction.APPROVE if approve else AuditAction.REJECT,
                reservation,
                old_status,
                extra=changes
            ))
            if approve:
                uow.emit(Notification(
                    user_id=reservation.user_id,
                    title="Modification approved",
                    message=(f"Your reservation now covers cabana {reservation.cabana_id} for "
                             f"{_span(reservation)}. New total: {breakdown.total} {breakdown.currency}"),
                    metadata={**_metadata(reservation), "request_id": str(request.request_id)}
                ))
                uow.emit(_broadcast(BroadcastEvent.CALENDAR_UPDATE, reservation))
            else:
                uow.emit(Notification(
                    user_id=reservation.user_id,
                    title="Modification rejected",
                    message=f"Your modification request was rejected: {request.resolution_note}",
                    metadata={**_metadata(reservation), "request_id": str(request.request_id)}
                ))

        logger.info(f"Modification request {request_id} {'approved' if approve else 'rejected'}")
        return reservation

    async def resolve_cancellation(
        self,
        request_id: UUID,
        actor: Actor,
        approve: bool,
        note: Optional[str] = None
    ) -> Reservation:
        async with self.uow_factory() as uow:
            request = await uow.cancellations.find_by_id(request_id)
            if request is None:
                raise NotFound("CancellationRequest", request_id)
            reservation = await self._load_for_update(uow, request.reservation_id)
            request = await uow.cancellations.find_by_id(request_id)

            old_status = reservation.status
            reservation.resolve_cancellation(request, actor, approve, note)
            await uow.reservations.update(reservation)
            await uow.cancellations.update(request)

            uow.emit(_audit(
                actor,
                AuditAction.APPROVE if approve else AuditAction.REJECT,
                reservation,
                old_status,
                extra={"request_id": str(request.request_id), "request_status": request.status.value}
            ))
            if approve:
                uow.emit(Notification(
                    user_id=reservation.user_id,
                    title="Cancellation approved",
                    message=(f"Your reservation of cabana {reservation.cabana_id} for "
                             f"{_span(reservation)} was cancelled"),
                    metadata={**_metadata(reservation), "request_id": str(request.request_id)}
                ))
                uow.emit(_broadcast(BroadcastEvent.RESERVATION_CANCELLED, reservation))

        logger.info(f"Cancellation request {request_id} {'approved' if approve else 'rejected'}")
        return reservation

    async def resolve_extra_items(
        self,
        request_id: UUID,
        actor: Actor,
        approve: bool,
        note: Optional[str] = None
    ) -> Reservation:
        """Resolve an extras request; approval re-prices the whole stay"""
        async with self.uow_factory() as uow:
            request = await uow.extra_requests.find_by_id(request_id)
            if request is None:
                raise NotFound("ExtraConceptRequest", request_id)
            reservation = await self._load_for_update(uow, request.reservation_id)
            request = await uow.extra_requests.find_by_id(request_id)

            breakdown: Optional[PriceBreakdown] = None
            if approve:
                reservation.check_transition(ReservationEvent.APPROVE_EXTRA_ITEMS, actor)
                items = merge_extra_items(reservation.extra_item_requests() + list(request.items))
                breakdown = await self._price(uow, reservation, items)

            old_status = reservation.status
            old_total = reservation.total_price
            reservation.resolve_extra_items(request, actor, approve, breakdown, note)
            await uow.reservations.update(reservation)
            await uow.extra_requests.update(request)

            changes = {"request_id": str(request.request_id), "request_status": request.status.value}
            if approve:
                changes["previous_total"] = str(old_total) if old_total is not None else None
            uow.emit(_audit(
                actor,
                AuditAction.APPROVE if approve else AuditAction.REJECT,
                reservation,
                old_status,
                extra=changes
            ))
            if approve:
                uow.emit(Notification(
                    user_id=reservation.user_id,
                    title="Extra items approved",
                    message=(f"Extra items for cabana {reservation.cabana_id} were approved. "
                             f"New total: {breakdown.total} {breakdown.currency}"),
                    metadata={**_metadata(reservation), "request_id": str(request.request_id)}
                ))

        logger.info(f"Extra items request {request_id} {'approved' if approve else 'rejected'}")
        return reservation

    async def check_in(self, reservation_id: UUID, actor: Actor) -> Reservation:
        """Mark guest as checked in"""
        async with self.uow_factory() as uow:
            reservation = await self._load_for_update(uow, reservation_id)
            old_status = reservation.status
            reservation.check_in(actor)
            await uow.reservations.update(reservation)

            uow.emit(_audit(actor, AuditAction.CHECK_IN, reservation, old_status))
            uow.emit(_broadcast(BroadcastEvent.RESERVATION_CHECKED_IN, reservation))
            uow.emit(Notification(
                user_id=reservation.user_id,
                title="Guest checked in",
                message=f"{reservation.guest_name} checked in to cabana {reservation.cabana_id}",
                metadata=_metadata(reservation)
            ))

        logger.info(f"Reservation {reservation_id} checked in")
        return reservation

    async def check_out(self, reservation_id: UUID, actor: Actor) -> Reservation:
        """Process guest check-out"""
        async with self.uow_factory() as uow:
            reservation = await self._load_for_update(uow, reservation_id)
            old_status = reservation.status
            reservation.check_out(actor)
            await uow.reservations.update(reservation)

            uow.emit(_audit(actor, AuditAction.CHECK_OUT, reservation, old_status))
            uow.emit(_broadcast(BroadcastEvent.RESERVATION_CHECKED_OUT, reservation))
            uow.emit(Notification(
                user_id=reservation.user_id,
                title="Guest checked out",
                message=f"{reservation.guest_name} checked out of cabana {reservation.cabana_id}",
                metadata=_metadata(reservation)
            ))

        logger.info(f"Reservation {reservation_id} checked out")
        return reservation

    # ==================== QUERIES ====================

    async def preview_price(
        self,
        cabana_id: str,
        concept_id: Optional[str],
        start: date,
        end: date,
        extra_items: Sequence[ExtraItemRequest] = ()
    ) -> PriceBreakdown:
        async with self.uow_factory() as uow:
            return await PricingEngine(uow.catalog, self.currency).calculate_price(
                cabana_id, concept_id, start, end, extra_items
            )

    async def check_availability(self, cabana_id: str, start: date, end: date) -> AvailabilityResult:
        async with self.uow_factory() as uow:
            return await self._checker(uow).is_bookable(cabana_id, start, end)

    async def get_reservation(self, reservation_id: UUID, actor: Actor) -> Reservation:
        async with self.uow_factory() as uow:
            return await self._load_visible(uow, reservation_id, actor)

    async def list_reservations(
        self,
        actor: Actor,
        status: Optional[ReservationStatus] = None,
        cabana_id: Optional[str] = None
    ) -> List[Reservation]:
        """Reservations newest first; requesters only see their own"""
        user_id = actor.user_id if actor.role == Role.CASINO_USER else None
        async with self.uow_factory() as uow:
            return await uow.reservations.find_all(status=status, cabana_id=cabana_id, user_id=user_id)

    async def get_status_history(self, reservation_id: UUID, actor: Actor) -> List[StatusHistoryEntry]:
        reservation = await self.get_reservation(reservation_id, actor)
        return list(reservation.status_history)

    async def list_cancellation_requests(self, reservation_id: UUID, actor: Actor) -> List[CancellationRequest]:
        async with self.uow_factory() as uow:
            await self._load_visible(uow, reservation_id, actor)
            return await uow.cancellations.find_by_reservation(reservation_id)

    async def list_extra_requests(self, reservation_id: UUID, actor: Actor) -> List[ExtraConceptRequest]:
        async with self.uow_factory() as uow:
            await self._load_visible(uow, reservation_id, actor)
            return await uow.extra_requests.find_by_reservation(reservation_id)

    async def list_modification_requests(self, reservation_id: UUID, actor: Actor) -> List[ModificationRequest]:
        async with self.uow_factory() as uow:
            await self._load_visible(uow, reservation_id, actor)
            return await uow.modifications.find_by_reservation(reservation_id)

    # ==================== HELPERS ====================

    def _checker(self, uow: AbstractUnitOfWork) -> AvailabilityChecker:
        return AvailabilityChecker(uow.catalog, uow.reservations)

    async def _load_for_update(self, uow: AbstractUnitOfWork, reservation_id: UUID) -> Reservation:
        """Lock the reservation's cabana and return a copy read under that lock"""
        reservation = await uow.reservations.find_by_id(reservation_id)
        if reservation is None:
            raise NotFound("Reservation", reservation_id)
        await uow.lock_cabana(reservation.cabana_id)
        return await uow.reservations.find_by_id(reservation_id)

    async def _load_visible(self, uow: AbstractUnitOfWork, reservation_id: UUID, actor: Actor) -> Reservation:
        reservation = await uow.reservations.find_by_id(reservation_id)
        if reservation is None:
            raise NotFound("Reservation", reservation_id)
        if actor.role == Role.CASINO_USER and reservation.user_id != actor.user_id:
            raise Forbidden(actor.user_id, "view reservation")
        return reservation

    async def _price(
        self,
        uow: AbstractUnitOfWork,
        reservation: Reservation,
        items: List[ExtraItemRequest]
    ) -> PriceBreakdown:
        # A reservation keeps the concept it was first priced with
        if reservation.price_breakdown is not None:
            concept_id = reservation.price_breakdown.concept_id
        else:
            cabana = await uow.catalog.get_cabana(reservation.cabana_id)
            if cabana is None:
                raise NotFound("Cabana", reservation.cabana_id)
            concept_id = cabana.concept_id
        return await PricingEngine(uow.catalog, self.currency).calculate_price(
            reservation.cabana_id,
            concept_id,
            reservation.date_range.start,
            reservation.date_range.end,
            items
        )

    async def _ensure_products_exist(self, uow: AbstractUnitOfWork, items: List[ExtraItemRequest]) -> None:
        wanted = [item.product_id for item in items]
        found = {p.product_id for p in await uow.catalog.get_products(wanted, include_archived=False)}
        missing = [product_id for product_id in dict.fromkeys(wanted) if product_id not in found]
        if missing:
            raise UnknownProduct(missing)


def merge_extra_items(items: Sequence[ExtraItemRequest]) -> List[ExtraItemRequest]:
    """Sum quantities per product, keeping first-seen order"""
    quantities: Dict[str, int] = {}
    for item in items:
        quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity
    return [ExtraItemRequest(product_id=pid, quantity=qty) for pid, qty in quantities.items()]


def _requested_changes(request: ModificationRequest) -> Dict[str, Optional[str]]:
    return {
        "new_cabana_id": request.new_cabana_id,
        "new_start": request.new_start.isoformat() if request.new_start else None,
        "new_end": request.new_end.isoformat() if request.new_end else None,
        "new_guest_name": request.new_guest_name,
    }


def _span(reservation: Reservation) -> str:
    return f"{reservation.date_range.start.isoformat()} to {reservation.date_range.end.isoformat()}"


def _metadata(reservation: Reservation) -> Dict[str, str]:
    return {
        "reservation_id": str(reservation.reservation_id),
        "cabana_id": reservation.cabana_id,
    }


def _audit(
    actor: Actor,
    action: AuditAction,
    reservation: Reservation,
    old_status: Optional[ReservationStatus],
    extra: Optional[Dict] = None
) -> AuditRecord:
    new_value = {"status": reservation.status.value, "version": reservation.version}
    if reservation.total_price is not None:
        new_value["total_price"] = str(reservation.total_price)
    if extra:
        new_value.update(extra)
    return AuditRecord(
        actor_id=actor.user_id,
        action=action,
        entity_type="Reservation",
        entity_id=str(reservation.reservation_id),
        old_value={"status": old_status.value} if old_status is not None else None,
        new_value=new_value
    )


def _broadcast(event: BroadcastEvent, reservation: Reservation) -> Broadcast:
    return Broadcast(event=event, payload={
        "reservation_id": str(reservation.reservation_id),
        "cabana_id": reservation.cabana_id,
        "status": reservation.status.value,
        "start": reservation.date_range.start.isoformat(),
        "end": reservation.date_range.end.isoformat(),
    })
