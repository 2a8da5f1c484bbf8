"""Pricing engine and date range tests"""
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from conftest import insert_price_range
from domain.entities import CalendarPrice, PriceRange
from domain.enums import PriceSource
from domain.exceptions import InvalidRange, InvalidRequest, NotFound, UnknownProduct, UnpricedDate
from domain.pricing import PricingEngine
from domain.value_objects import DateRange, ExtraItemRequest, to_money
from infrastructure.repositories.in_memory_repositories import CALENDAR_PRICES


@pytest.fixture
def engine(catalog):
    return PricingEngine(catalog, currency="TRY")


def add_calendar_price(db, cabana_id, day, amount):
    price = CalendarPrice(cabana_id=cabana_id, day=day, daily_price=Decimal(amount))
    db.insert(CALENDAR_PRICES, (cabana_id, day), price)


# ============================================================================
# VALUE OBJECTS
# ============================================================================

class TestDateRange:

    @pytest.mark.unit
    @pytest.mark.domain
    def test_nights_and_days(self):
        span = DateRange(start=date(2025, 6, 10), end=date(2025, 6, 13))
        assert span.nights() == 3
        assert span.days() == [date(2025, 6, 10), date(2025, 6, 11), date(2025, 6, 12)]

    @pytest.mark.unit
    @pytest.mark.domain
    @pytest.mark.edge_case
    @pytest.mark.parametrize("start,end", [
        (date(2025, 6, 10), date(2025, 6, 10)),
        (date(2025, 6, 11), date(2025, 6, 10)),
    ])
    def test_start_must_be_before_end(self, start, end):
        with pytest.raises(InvalidRange) as exc_info:
            DateRange(start=start, end=end)
        assert exc_info.value.start == start
        assert exc_info.value.end == end

    @pytest.mark.unit
    @pytest.mark.domain
    def test_half_open_overlap(self):
        """Checkout day is free for the next arrival"""
        first = DateRange(start=date(2025, 6, 10), end=date(2025, 6, 13))
        adjacent = DateRange(start=date(2025, 6, 13), end=date(2025, 6, 15))
        crossing = DateRange(start=date(2025, 6, 12), end=date(2025, 6, 14))
        assert not first.overlaps(adjacent)
        assert first.overlaps(crossing)
        assert first.intersection_days(crossing) == [date(2025, 6, 12)]

    @pytest.mark.unit
    @pytest.mark.domain
    def test_to_money_rounds_half_up(self):
        assert to_money("10.005") == Decimal("10.01")
        assert to_money(7) == Decimal("7.00")


# ============================================================================
# NIGHTLY PRICES
# ============================================================================

class TestNightlyPricing:

    @pytest.mark.unit
    @pytest.mark.domain
    async def test_reference_stay(self, engine):
        """3 nights at 100, concept fee 20, towel 15 x 2"""
        breakdown = await engine.calculate_price(
            "C101", "GOLD", date(2025, 6, 10), date(2025, 6, 13),
            [ExtraItemRequest(product_id="TOWEL", quantity=2)]
        )
        assert breakdown.nights_subtotal == Decimal("300.00")
        assert breakdown.concept_fee == Decimal("20.00")
        assert breakdown.extras_subtotal == Decimal("30.00")
        assert breakdown.total == Decimal("350.00")
        assert breakdown.currency == "TRY"
        assert [n.day for n in breakdown.nights] == [
            date(2025, 6, 10), date(2025, 6, 11), date(2025, 6, 12)
        ]

    @pytest.mark.unit
    @pytest.mark.domain
    async def test_calendar_price_beats_any_range(self, engine, database):
        insert_price_range(database, PriceRange(
            cabana_id="C101", date_range=DateRange(start=date(2025, 6, 1), end=date(2025, 6, 30)),
            daily_price=Decimal("500"), priority=99
        ))
        add_calendar_price(database, "C101", date(2025, 6, 11), "80")

        breakdown = await engine.calculate_price("C101", None, date(2025, 6, 10), date(2025, 6, 13))

        amounts = {n.day: (n.amount, n.source) for n in breakdown.nights}
        assert amounts[date(2025, 6, 11)] == (Decimal("80.00"), PriceSource.CALENDAR)
        assert amounts[date(2025, 6, 10)] == (Decimal("500.00"), PriceSource.RANGE)
        assert breakdown.total == Decimal("1080.00")

    @pytest.mark.unit
    @pytest.mark.domain
    @pytest.mark.parametrize("first_priority,second_priority,expected", [
        (10, 5, "150.00"),
        (5, 10, "175.00"),
    ])
    async def test_higher_priority_wins_regardless_of_creation_order(
        self, engine, database, first_priority, second_priority, expected
    ):
        span = DateRange(start=date(2025, 6, 10), end=date(2025, 6, 12))
        older = datetime(2025, 1, 1, tzinfo=timezone.utc)
        insert_price_range(database, PriceRange(
            cabana_id="C102", date_range=span, daily_price=Decimal("150"),
            priority=first_priority, created_at=older
        ))
        insert_price_range(database, PriceRange(
            cabana_id="C102", date_range=span, daily_price=Decimal("175"),
            priority=second_priority, created_at=older + timedelta(days=1)
        ))

        breakdown = await engine.calculate_price("C102", None, date(2025, 6, 10), date(2025, 6, 11))
        assert breakdown.nights[0].amount == Decimal(expected)

    @pytest.mark.unit
    @pytest.mark.domain
    async def test_equal_priority_most_recent_wins(self, engine, database):
        span = DateRange(start=date(2025, 6, 10), end=date(2025, 6, 12))
        base = datetime(2025, 2, 1, tzinfo=timezone.utc)
        newer = insert_price_range(database, PriceRange(
            cabana_id="C102", date_range=span, daily_price=Decimal("140"),
            priority=3, created_at=base + timedelta(hours=1), label="Newer"
        ))
        insert_price_range(database, PriceRange(
            cabana_id="C102", date_range=span, daily_price=Decimal("130"),
            priority=3, created_at=base, label="Older"
        ))

        breakdown = await engine.calculate_price("C102", None, date(2025, 6, 10), date(2025, 6, 11))
        night = breakdown.nights[0]
        assert night.amount == Decimal("140.00")
        assert night.price_range_id == newer.price_range_id
        assert night.label == "Newer"

    @pytest.mark.unit
    @pytest.mark.domain
    @pytest.mark.edge_case
    async def test_exact_tie_is_broken_by_id(self, engine, database):
        span = DateRange(start=date(2025, 6, 10), end=date(2025, 6, 12))
        stamp = datetime(2025, 2, 1, tzinfo=timezone.utc)
        low = insert_price_range(database, PriceRange(
            price_range_id=UUID("00000000-0000-0000-0000-000000000001"),
            cabana_id="C102", date_range=span, daily_price=Decimal("111"), priority=3, created_at=stamp
        ))
        high = insert_price_range(database, PriceRange(
            price_range_id=UUID("ffffffff-0000-0000-0000-000000000000"),
            cabana_id="C102", date_range=span, daily_price=Decimal("222"), priority=3, created_at=stamp
        ))

        for _ in range(3):
            breakdown = await engine.calculate_price("C102", None, date(2025, 6, 10), date(2025, 6, 11))
            assert breakdown.nights[0].price_range_id == high.price_range_id
        assert low.rank() < high.rank()

    @pytest.mark.unit
    @pytest.mark.domain
    async def test_archived_range_is_ignored(self, engine, database):
        insert_price_range(database, PriceRange(
            cabana_id="C102", date_range=DateRange(start=date(2025, 6, 10), end=date(2025, 6, 12)),
            daily_price=Decimal("999"), priority=50, archived=True
        ))
        breakdown = await engine.calculate_price("C102", None, date(2025, 6, 10), date(2025, 6, 11))
        assert breakdown.nights[0].amount == Decimal("100.00")

    @pytest.mark.unit
    @pytest.mark.domain
    @pytest.mark.edge_case
    async def test_every_unpriced_day_is_reported(self, engine):
        """June is priced; July is not"""
        with pytest.raises(UnpricedDate) as exc_info:
            await engine.calculate_price("C101", None, date(2025, 6, 29), date(2025, 7, 3))
        assert exc_info.value.dates == [date(2025, 7, 1), date(2025, 7, 2)]
        assert exc_info.value.to_dict()["dates"] == ["2025-07-01", "2025-07-02"]

    @pytest.mark.unit
    @pytest.mark.domain
    @pytest.mark.edge_case
    async def test_invalid_range(self, engine):
        with pytest.raises(InvalidRange):
            await engine.calculate_price("C101", None, date(2025, 6, 13), date(2025, 6, 10))

    @pytest.mark.unit
    @pytest.mark.domain
    async def test_unknown_cabana_and_concept(self, engine):
        with pytest.raises(NotFound) as exc_info:
            await engine.calculate_price("C999", None, date(2025, 6, 10), date(2025, 6, 11))
        assert exc_info.value.entity == "Cabana"

        with pytest.raises(NotFound) as exc_info:
            await engine.calculate_price("C101", "PLATINUM", date(2025, 6, 10), date(2025, 6, 11))
        assert exc_info.value.entity == "Concept"

    @pytest.mark.unit
    @pytest.mark.domain
    async def test_deterministic(self, engine):
        args = ("C101", "GOLD", date(2025, 6, 3), date(2025, 6, 9),
                [ExtraItemRequest(product_id="FRUIT", quantity=1)])
        first = await engine.calculate_price(*args)
        second = await engine.calculate_price(*args)
        assert first == second

    @pytest.mark.unit
    @pytest.mark.domain
    @pytest.mark.parametrize("nights", [1, 2, 30, 364, 365])
    async def test_decimal_totals_are_exact(self, engine, database, nights):
        """0.10 summed 365 times must not drift"""
        start = date(2030, 1, 1)
        insert_price_range(database, PriceRange(
            cabana_id="C102",
            date_range=DateRange(start=start, end=start + timedelta(days=400)),
            daily_price=Decimal("0.10")
        ))
        breakdown = await engine.calculate_price("C102", None, start, start + timedelta(days=nights))

        assert breakdown.nights_subtotal == sum((n.amount for n in breakdown.nights), Decimal("0"))
        assert breakdown.nights_subtotal == Decimal("0.10") * nights
        assert breakdown.total == breakdown.nights_subtotal + breakdown.concept_fee + breakdown.extras_subtotal


# ============================================================================
# CONCEPT FEE & EXTRAS
# ============================================================================

class TestExtrasPricing:

    @pytest.mark.unit
    @pytest.mark.domain
    async def test_concept_fee_charged_once(self, engine):
        one = await engine.calculate_price("C101", "GOLD", date(2025, 6, 10), date(2025, 6, 11))
        five = await engine.calculate_price("C101", "GOLD", date(2025, 6, 10), date(2025, 6, 15))
        assert one.concept_fee == five.concept_fee == Decimal("20.00")
        assert five.total == Decimal("520.00")

    @pytest.mark.unit
    @pytest.mark.domain
    async def test_concept_override_price_then_catalog_price(self, engine):
        breakdown = await engine.calculate_price(
            "C101", "GOLD", date(2025, 6, 10), date(2025, 6, 11),
            [ExtraItemRequest(product_id="FRUIT", quantity=2),
             ExtraItemRequest(product_id="TOWEL", quantity=1)]
        )
        fruit, towel = breakdown.extra_items
        assert (fruit.unit_price, fruit.total, fruit.source) == (
            Decimal("30.00"), Decimal("60.00"), PriceSource.CONCEPT_SPECIFIC
        )
        assert (towel.unit_price, towel.total, towel.source) == (
            Decimal("15.00"), Decimal("15.00"), PriceSource.CATALOG
        )

    @pytest.mark.unit
    @pytest.mark.domain
    async def test_without_concept_catalog_price_applies(self, engine):
        breakdown = await engine.calculate_price(
            "C102", None, date(2025, 6, 10), date(2025, 6, 11),
            [ExtraItemRequest(product_id="FRUIT", quantity=1)]
        )
        assert breakdown.concept_fee == Decimal("0.00")
        assert breakdown.extra_items[0].unit_price == Decimal("40.00")

    @pytest.mark.unit
    @pytest.mark.domain
    @pytest.mark.edge_case
    async def test_unknown_and_archived_products_named_together(self, engine):
        with pytest.raises(UnknownProduct) as exc_info:
            await engine.calculate_price(
                "C101", "GOLD", date(2025, 6, 10), date(2025, 6, 11),
                [ExtraItemRequest(product_id="NOPE", quantity=1),
                 ExtraItemRequest(product_id="TOWEL", quantity=1),
                 ExtraItemRequest(product_id="OLD", quantity=1)]
            )
        assert exc_info.value.product_ids == ["NOPE", "OLD"]

    @pytest.mark.unit
    @pytest.mark.domain
    @pytest.mark.edge_case
    @pytest.mark.parametrize("quantity", [0, -1])
    async def test_quantity_must_be_positive(self, engine, quantity):
        with pytest.raises(InvalidRequest):
            await engine.calculate_price(
                "C101", "GOLD", date(2025, 6, 10), date(2025, 6, 11),
                [ExtraItemRequest(product_id="TOWEL", quantity=quantity)]
            )
