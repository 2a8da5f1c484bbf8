"""Pricing Engine - Domain Service

Prices a stay night by night. For each charged day a calendar price wins over
any price range; among ranges the highest priority wins, then the most
recently created. Days with no price are never filled in with a default: they
are collected and reported together.
"""
from datetime import date
from typing import Dict, List, Optional, Sequence

from domain.entities import CalendarPrice, Concept, PriceRange, Product, validate_extra_items
from domain.enums import PriceSource
from domain.exceptions import NotFound, UnknownProduct, UnpricedDate
from domain.repositories import CatalogRepository
from domain.value_objects import (
    DateRange, ExtraItemLine, ExtraItemRequest, NightlyPrice, PriceBreakdown, to_money,
)

ZERO = to_money(0)


class PricingEngine:
    """Itemized cost calculation; reads the catalog, never writes it"""

    def __init__(self, catalog: CatalogRepository, currency: str = "TRY"):
        self.catalog = catalog
        self.currency = currency

    async def calculate_price(
        self,
        cabana_id: str,
        concept_id: Optional[str],
        start: date,
        end: date,
        extra_items: Sequence[ExtraItemRequest] = ()
    ) -> PriceBreakdown:
        date_range = DateRange(start=start, end=end)

        cabana = await self.catalog.get_cabana(cabana_id)
        if cabana is None:
            raise NotFound("Cabana", cabana_id)

        concept = None
        if concept_id is not None:
            concept = await self.catalog.get_concept(concept_id)
            if concept is None:
                raise NotFound("Concept", concept_id)

        nights = await self._price_nights(cabana_id, date_range)
        nights_subtotal = sum((n.amount for n in nights), ZERO)

        concept_fee = ZERO
        if concept is not None and concept.service_fee is not None:
            concept_fee = to_money(concept.service_fee)

        extra_lines = await self._price_extras(concept, list(extra_items))
        extras_subtotal = sum((line.total for line in extra_lines), ZERO)

        return PriceBreakdown(
            cabana_id=cabana_id,
            concept_id=concept_id,
            start=start,
            end=end,
            nights=nights,
            nights_subtotal=nights_subtotal,
            concept_fee=concept_fee,
            extra_items=extra_lines,
            extras_subtotal=extras_subtotal,
            total=nights_subtotal + concept_fee + extras_subtotal,
            currency=self.currency
        )

    async def _price_nights(self, cabana_id: str, date_range: DateRange) -> List[NightlyPrice]:
        calendar: Dict[date, CalendarPrice] = {
            p.day: p for p in await self.catalog.get_calendar_prices(cabana_id, date_range)
        }
        # Archived ranges are excluded by the explicit predicate
        ranges = sorted(
            await self.catalog.get_price_ranges(cabana_id, date_range, include_archived=False),
            key=PriceRange.rank,
            reverse=True
        )

        nights: List[NightlyPrice] = []
        unpriced: List[date] = []
        for day in date_range.days():
            point = calendar.get(day)
            if point is not None:
                nights.append(NightlyPrice(
                    day=day, amount=to_money(point.daily_price), source=PriceSource.CALENDAR
                ))
                continue

            winner = next((r for r in ranges if r.date_range.contains(day)), None)
            if winner is None:
                unpriced.append(day)
                continue
            nights.append(NightlyPrice(
                day=day,
                amount=to_money(winner.daily_price),
                source=PriceSource.RANGE,
                price_range_id=winner.price_range_id,
                label=winner.label
            ))

        if unpriced:
            raise UnpricedDate(unpriced)
        return nights

    async def _price_extras(self, concept: Optional[Concept],
                            extra_items: List[ExtraItemRequest]) -> List[ExtraItemLine]:
        if not extra_items:
            return []
        validate_extra_items(extra_items)

        products: Dict[str, Product] = {
            p.product_id: p
            for p in await self.catalog.get_products(
                {item.product_id for item in extra_items}, include_archived=False
            )
        }
        missing = [item.product_id for item in extra_items if item.product_id not in products]
        if missing:
            raise UnknownProduct(list(dict.fromkeys(missing)))

        lines = []
        for item in extra_items:
            product = products[item.product_id]
            if concept is not None:
                unit_price, from_concept = concept.price_for(product)
            else:
                unit_price, from_concept = to_money(product.sale_price), False
            lines.append(ExtraItemLine(
                product_id=product.product_id,
                name=product.name,
                quantity=item.quantity,
                unit_price=unit_price,
                total=to_money(unit_price * item.quantity),
                source=PriceSource.CONCEPT_SPECIFIC if from_concept else PriceSource.CATALOG
            ))
        return lines

