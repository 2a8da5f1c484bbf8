"""Shared fixtures: an isolated in-memory venue per test"""
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from application.catalog_service import CatalogService
from application.services import ReservationService
from application.side_effects import SideEffectDispatcher
from domain.entities import Cabana, CabanaClass, Concept, PriceRange, Product
from domain.enums import Role
from domain.value_objects import Actor, DateRange
from infrastructure.repositories.in_memory_repositories import (
    CABANA_CLASSES, CABANAS, CONCEPTS, PRICE_RANGES, PRODUCTS,
    InMemoryCatalogRepository, InMemoryDatabase, InMemoryReservationRepository,
    InMemorySession,
)
from infrastructure.side_effect_sinks import (
    InMemoryAuditLog, InMemoryNotificationCenter, InMemoryUserDirectory,
)
from infrastructure.unit_of_work import InMemoryUnitOfWork

JUNE = DateRange(start=date(2025, 6, 1), end=date(2025, 7, 1))


def insert_price_range(db: InMemoryDatabase, price_range: PriceRange) -> PriceRange:
    db.insert(PRICE_RANGES, price_range.price_range_id, price_range)
    return price_range


def build_catalog(db: InMemoryDatabase) -> None:
    """C101 (GOLD concept, fee 20) and C102 (no concept), 100/night through June 2025"""
    db.insert(CABANA_CLASSES, "VIP", CabanaClass(class_id="VIP", name="VIP"))
    db.insert(PRODUCTS, "TOWEL", Product(product_id="TOWEL", name="Towel set", sale_price=Decimal("15.00")))
    db.insert(PRODUCTS, "FRUIT", Product(product_id="FRUIT", name="Fruit platter", sale_price=Decimal("40.00")))
    db.insert(PRODUCTS, "OLD", Product(product_id="OLD", name="Retired item", sale_price=Decimal("5.00"), archived=True))
    db.insert(CONCEPTS, "GOLD", Concept(
        concept_id="GOLD",
        name="Gold",
        service_fee=Decimal("20.00"),
        class_id="VIP",
        product_prices={"FRUIT": Decimal("30.00")}
    ))
    db.insert(CABANAS, "C101", Cabana(cabana_id="C101", name="Cabana 101", class_id="VIP", concept_id="GOLD"))
    db.insert(CABANAS, "C102", Cabana(cabana_id="C102", name="Cabana 102", class_id="VIP"))
    for cabana_id in ("C101", "C102"):
        insert_price_range(db, PriceRange(
            cabana_id=cabana_id, date_range=JUNE, daily_price=Decimal("100.00"), label="June"
        ))


# ============================================================================
# ACTORS
# ============================================================================

@pytest.fixture
def admin():
    return Actor(user_id=uuid4(), role=Role.ADMIN)


@pytest.fixture
def system_admin():
    return Actor(user_id=uuid4(), role=Role.SYSTEM_ADMIN)


@pytest.fixture
def casino_user():
    return Actor(user_id=uuid4(), role=Role.CASINO_USER)


@pytest.fixture
def other_casino_user():
    return Actor(user_id=uuid4(), role=Role.CASINO_USER)


@pytest.fixture
def fnb_user():
    return Actor(user_id=uuid4(), role=Role.FNB_USER)


# ============================================================================
# STORAGE & SIDE EFFECTS
# ============================================================================

@pytest.fixture
def database():
    db = InMemoryDatabase()
    build_catalog(db)
    return db


@pytest.fixture
def catalog(database):
    """Catalog repository reading committed state"""
    return InMemoryCatalogRepository(InMemorySession(database))


@pytest.fixture
def reservations(database):
    return InMemoryReservationRepository(InMemorySession(database))


@pytest.fixture
def audit_log():
    return InMemoryAuditLog()


@pytest.fixture
def notification_center():
    return InMemoryNotificationCenter()


@pytest.fixture
def user_directory(admin, system_admin):
    return InMemoryUserDirectory({Role.ADMIN: [admin.user_id], Role.SYSTEM_ADMIN: [system_admin.user_id]})


@pytest.fixture
def dispatcher(audit_log, notification_center, user_directory):
    return SideEffectDispatcher(audit_log, notification_center, user_directory, timeout=0.5)


@pytest.fixture
def uow_factory(database, dispatcher):
    return lambda: InMemoryUnitOfWork(database, dispatcher, lock_timeout=1.0)


# ============================================================================
# SERVICES
# ============================================================================

@pytest.fixture
def reservation_service(uow_factory):
    return ReservationService(
        uow_factory,
        currency="TRY",
        today=lambda: date(2025, 5, 1),
        allow_past_dates=False
    )


@pytest.fixture
def catalog_service(uow_factory):
    return CatalogService(uow_factory)


@pytest.fixture
async def approved_reservation(reservation_service, casino_user, admin):
    """C101, 2025-06-10 to 2025-06-13, approved at 320.00"""
    reservation = await reservation_service.create_reservation(
        "C101", casino_user, "Jane Guest", date(2025, 6, 10), date(2025, 6, 13)
    )
    return await reservation_service.approve(reservation.reservation_id, admin)
