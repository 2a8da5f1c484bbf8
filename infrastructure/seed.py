"""Demo catalog loaded at startup when SEED_DEMO_DATA is enabled"""
import logging
from datetime import date
from decimal import Decimal

from domain.entities import Cabana, CabanaClass, Concept, PriceRange, Product
from domain.value_objects import DateRange
from infrastructure.repositories.in_memory_repositories import (
    CABANA_CLASSES, CABANAS, CONCEPTS, PRICE_RANGES, PRODUCTS, InMemoryDatabase,
)

logger = logging.getLogger(__name__)

SEASON = DateRange(start=date(2025, 1, 1), end=date(2028, 1, 1))


def seed_demo_catalog(db: InMemoryDatabase) -> None:
    classes = [
        CabanaClass(class_id="STANDARD", name="Standard", description="Poolside cabana"),
        CabanaClass(class_id="VIP", name="VIP", description="Beachfront cabana with butler service"),
    ]
    products = [
        Product(product_id="TOWEL", name="Extra towel set", sale_price=Decimal("15.00")),
        Product(product_id="FRUIT", name="Fruit platter", sale_price=Decimal("40.00")),
        Product(product_id="CHAMPAGNE", name="Champagne bottle", sale_price=Decimal("120.00")),
    ]
    concepts = [
        Concept(
            concept_id="GOLD",
            name="Gold",
            service_fee=Decimal("20.00"),
            class_id="VIP",
            product_prices={"CHAMPAGNE": Decimal("100.00")}
        ),
    ]
    cabanas = [
        Cabana(cabana_id="C101", name="Cabana 101", class_id="VIP", concept_id="GOLD"),
        Cabana(cabana_id="C102", name="Cabana 102", class_id="STANDARD"),
        Cabana(cabana_id="C103", name="Cabana 103", class_id="STANDARD", open_for_reservation=False),
    ]
    ranges = [
        PriceRange(cabana_id="C101", date_range=SEASON, daily_price=Decimal("100.00"), label="Base"),
        PriceRange(cabana_id="C102", date_range=SEASON, daily_price=Decimal("60.00"), label="Base"),
        PriceRange(cabana_id="C103", date_range=SEASON, daily_price=Decimal("60.00"), label="Base"),
    ]

    for item in classes:
        db.insert(CABANA_CLASSES, item.class_id, item)
    for item in products:
        db.insert(PRODUCTS, item.product_id, item)
    for item in concepts:
        db.insert(CONCEPTS, item.concept_id, item)
    for item in cabanas:
        db.insert(CABANAS, item.cabana_id, item)
    for item in ranges:
        db.insert(PRICE_RANGES, item.price_range_id, item)

    logger.info(f"Seeded demo catalog with {len(cabanas)} cabanas")
