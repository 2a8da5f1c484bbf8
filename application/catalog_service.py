"""Catalog administration

Admin-only writes that maintain the inputs of pricing and availability:
price overrides, blackout windows and the open-for-reservation flag.
Nothing is ever removed; price ranges, blackouts and products are archived.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from application.services import UnitOfWorkFactory
from application.side_effects import AuditRecord, Broadcast
from domain.entities import (
    BlackoutWindow, Cabana, CabanaClass, CalendarPrice, Concept, PriceRange, Product,
)
from domain.enums import AuditAction, BroadcastEvent
from domain.exceptions import Forbidden, InvalidRequest, NotFound
from domain.value_objects import Actor, DateRange, to_money

logger = logging.getLogger(__name__)


class CatalogService:

    def __init__(self, uow_factory: UnitOfWorkFactory):
        self.uow_factory = uow_factory

    # ==================== STRUCTURE ====================

    async def register_cabana_class(self, actor: Actor, class_id: str, name: str,
                                    description: Optional[str] = None) -> CabanaClass:
        _require_admin(actor, "register cabana class")
        cabana_class = CabanaClass(class_id=class_id, name=name, description=description)
        async with self.uow_factory() as uow:
            if await uow.catalog.get_cabana_class(class_id) is not None:
                raise InvalidRequest(f"Cabana class {class_id} already exists")
            await uow.catalog.save_cabana_class(cabana_class)
            uow.emit(_audit(actor, AuditAction.CREATE, "CabanaClass", class_id,
                            new_value=cabana_class.model_dump(mode="json")))
        return cabana_class

    async def register_concept(self, actor: Actor, concept_id: str, name: str,
                               service_fee: Optional[Decimal] = None,
                               class_id: Optional[str] = None) -> Concept:
        _require_admin(actor, "register concept")
        if service_fee is not None:
            service_fee = _money(service_fee, "Service fee")
        async with self.uow_factory() as uow:
            if await uow.catalog.get_concept(concept_id) is not None:
                raise InvalidRequest(f"Concept {concept_id} already exists")
            if class_id is not None and await uow.catalog.get_cabana_class(class_id) is None:
                raise NotFound("CabanaClass", class_id)
            concept = Concept(concept_id=concept_id, name=name, service_fee=service_fee, class_id=class_id)
            await uow.catalog.save_concept(concept)
            uow.emit(_audit(actor, AuditAction.CREATE, "Concept", concept_id,
                            new_value=concept.model_dump(mode="json")))
        return concept

    async def register_product(self, actor: Actor, product_id: str, name: str, sale_price: Decimal) -> Product:
        _require_admin(actor, "register product")
        product = Product(product_id=product_id, name=name, sale_price=_money(sale_price, "Sale price"))
        async with self.uow_factory() as uow:
            if await uow.catalog.get_products([product_id], include_archived=True):
                raise InvalidRequest(f"Product {product_id} already exists")
            await uow.catalog.save_product(product)
            uow.emit(_audit(actor, AuditAction.CREATE, "Product", product_id,
                            new_value=product.model_dump(mode="json")))
        return product

    async def archive_product(self, actor: Actor, product_id: str) -> Product:
        _require_admin(actor, "archive product")
        async with self.uow_factory() as uow:
            found = await uow.catalog.get_products([product_id], include_archived=True)
            if not found:
                raise NotFound("Product", product_id)
            product = found[0]
            product.archived = True
            await uow.catalog.save_product(product)
            uow.emit(_audit(actor, AuditAction.DELETE, "Product", product_id))
        return product

    async def register_cabana(
        self,
        actor: Actor,
        cabana_id: str,
        name: str,
        class_id: str,
        concept_id: Optional[str] = None,
        open_for_reservation: bool = True
    ) -> Cabana:
        _require_admin(actor, "register cabana")
        async with self.uow_factory() as uow:
            if await uow.catalog.get_cabana(cabana_id) is not None:
                raise InvalidRequest(f"Cabana {cabana_id} already exists")
            if await uow.catalog.get_cabana_class(class_id) is None:
                raise NotFound("CabanaClass", class_id)
            if concept_id is not None and await uow.catalog.get_concept(concept_id) is None:
                raise NotFound("Concept", concept_id)
            cabana = Cabana(
                cabana_id=cabana_id,
                name=name,
                class_id=class_id,
                concept_id=concept_id,
                open_for_reservation=open_for_reservation
            )
            await uow.catalog.save_cabana(cabana)
            uow.emit(_audit(actor, AuditAction.CREATE, "Cabana", cabana_id,
                            new_value=cabana.model_dump(mode="json")))
        return cabana

    async def get_cabana(self, cabana_id: str) -> Cabana:
        async with self.uow_factory() as uow:
            cabana = await uow.catalog.get_cabana(cabana_id)
        if cabana is None:
            raise NotFound("Cabana", cabana_id)
        return cabana

    async def set_open_for_reservation(self, actor: Actor, cabana_id: str, is_open: bool) -> Cabana:
        _require_admin(actor, "change reservation availability")
        async with self.uow_factory() as uow:
            await uow.lock_cabana(cabana_id)
            cabana = await _get_cabana(uow, cabana_id)
            old = cabana.open_for_reservation
            cabana.open_for_reservation = is_open
            await uow.catalog.save_cabana(cabana)
            uow.emit(_audit(actor, AuditAction.UPDATE, "Cabana", cabana_id,
                            old_value={"open_for_reservation": old},
                            new_value={"open_for_reservation": is_open}))
            uow.emit(Broadcast(event=BroadcastEvent.CALENDAR_UPDATE, payload={"cabana_id": cabana_id}))
        logger.info(f"Cabana {cabana_id} open_for_reservation set to {is_open}")
        return cabana

    # ==================== PRICES ====================

    async def set_concept_product_price(self, actor: Actor, concept_id: str,
                                        product_id: str, price: Decimal) -> Concept:
        _require_admin(actor, "set concept price")
        price = _money(price, "Concept price")
        async with self.uow_factory() as uow:
            concept = await uow.catalog.get_concept(concept_id)
            if concept is None:
                raise NotFound("Concept", concept_id)
            if not await uow.catalog.get_products([product_id], include_archived=False):
                raise NotFound("Product", product_id)
            old = concept.product_prices.get(product_id)
            concept.product_prices = {**concept.product_prices, product_id: price}
            await uow.catalog.save_concept(concept)
            uow.emit(_audit(actor, AuditAction.PRICE_UPDATE, "Concept", concept_id,
                            old_value={product_id: str(old)} if old is not None else None,
                            new_value={product_id: str(price)}))
        return concept

    async def set_calendar_price(self, actor: Actor, cabana_id: str, day: date,
                                 daily_price: Decimal) -> CalendarPrice:
        _require_admin(actor, "set calendar price")
        price = CalendarPrice(cabana_id=cabana_id, day=day, daily_price=_money(daily_price, "Daily price"))
        async with self.uow_factory() as uow:
            await uow.lock_cabana(cabana_id)
            await _get_cabana(uow, cabana_id)
            await uow.catalog.save_calendar_price(price)
            uow.emit(_audit(actor, AuditAction.PRICE_UPDATE, "CabanaPrice", f"{cabana_id}:{day.isoformat()}",
                            new_value={"daily_price": str(price.daily_price)}))
        return price

    async def add_price_range(
        self,
        actor: Actor,
        cabana_id: str,
        start: date,
        end: date,
        daily_price: Decimal,
        priority: int = 0,
        label: Optional[str] = None
    ) -> PriceRange:
        _require_admin(actor, "add price range")
        price_range = PriceRange(
            cabana_id=cabana_id,
            date_range=DateRange(start=start, end=end),
            daily_price=_money(daily_price, "Daily price"),
            priority=priority,
            label=label
        )
        async with self.uow_factory() as uow:
            await uow.lock_cabana(cabana_id)
            await _get_cabana(uow, cabana_id)
            await uow.catalog.save_price_range(price_range)
            uow.emit(_audit(actor, AuditAction.PRICE_UPDATE, "CabanaPriceRange",
                            str(price_range.price_range_id),
                            new_value=price_range.model_dump(mode="json")))
        logger.info(f"Price range {price_range.price_range_id} added for cabana {cabana_id}")
        return price_range

    async def archive_price_range(self, actor: Actor, price_range_id: UUID) -> PriceRange:
        _require_admin(actor, "archive price range")
        async with self.uow_factory() as uow:
            price_range = await uow.catalog.get_price_range(price_range_id)
            if price_range is None:
                raise NotFound("CabanaPriceRange", price_range_id)
            await uow.lock_cabana(price_range.cabana_id)
            price_range.archived = True
            await uow.catalog.save_price_range(price_range)
            uow.emit(_audit(actor, AuditAction.DELETE, "CabanaPriceRange", str(price_range_id)))
        return price_range

    # ==================== BLACKOUTS ====================

    async def add_blackout(
        self,
        actor: Actor,
        start: date,
        end: date,
        reason: str,
        cabana_id: Optional[str] = None
    ) -> BlackoutWindow:
        """Block a span for one cabana, or for the whole venue when cabana_id is None"""
        _require_admin(actor, "add blackout")
        reason = (reason or "").strip()
        if not reason:
            raise InvalidRequest("Blackout reason is required")
        blackout = BlackoutWindow(date_range=DateRange(start=start, end=end), cabana_id=cabana_id, reason=reason)
        async with self.uow_factory() as uow:
            await _lock_blackout_scope(uow, cabana_id)
            await uow.catalog.save_blackout(blackout)
            uow.emit(_audit(actor, AuditAction.CREATE, "BlackoutDate", str(blackout.blackout_id),
                            new_value=blackout.model_dump(mode="json")))
            uow.emit(_calendar_update(blackout))
        logger.info(f"Blackout {blackout.blackout_id} added ({cabana_id or 'venue-wide'})")
        return blackout

    async def archive_blackout(self, actor: Actor, blackout_id: UUID) -> BlackoutWindow:
        _require_admin(actor, "archive blackout")
        async with self.uow_factory() as uow:
            blackout = await uow.catalog.get_blackout(blackout_id)
            if blackout is None:
                raise NotFound("BlackoutDate", blackout_id)
            await _lock_blackout_scope(uow, blackout.cabana_id)
            blackout.archived = True
            await uow.catalog.save_blackout(blackout)
            uow.emit(_audit(actor, AuditAction.DELETE, "BlackoutDate", str(blackout_id)))
            uow.emit(_calendar_update(blackout))
        return blackout


def _require_admin(actor: Actor, action: str) -> None:
    if not actor.is_admin:
        raise Forbidden(actor.user_id, action)


def _money(value, label: str) -> Decimal:
    amount = to_money(value)
    if amount < 0:
        raise InvalidRequest(f"{label} cannot be negative")
    return amount


async def _lock_blackout_scope(uow, cabana_id: Optional[str]) -> None:
    """Lock the blocked cabana, or every cabana for a venue-wide window"""
    if cabana_id is not None:
        await uow.lock_cabana(cabana_id)
        await _get_cabana(uow, cabana_id)
    else:
        await uow.lock_cabanas(c.cabana_id for c in await uow.catalog.get_cabanas())


async def _get_cabana(uow, cabana_id: str) -> Cabana:
    cabana = await uow.catalog.get_cabana(cabana_id)
    if cabana is None:
        raise NotFound("Cabana", cabana_id)
    return cabana


def _audit(actor: Actor, action: AuditAction, entity_type: str, entity_id: str,
           old_value=None, new_value=None) -> AuditRecord:
    return AuditRecord(
        actor_id=actor.user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        old_value=old_value,
        new_value=new_value
    )


def _calendar_update(blackout: BlackoutWindow) -> Broadcast:
    return Broadcast(event=BroadcastEvent.CALENDAR_UPDATE, payload={
        "blackout_id": str(blackout.blackout_id),
        "cabana_id": blackout.cabana_id,
        "start": blackout.date_range.start.isoformat(),
        "end": blackout.date_range.end.isoformat(),
        "archived": blackout.archived,
    })
