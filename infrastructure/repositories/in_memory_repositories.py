"""In-Memory Repository Implementations

Committed rows live in ``InMemoryDatabase``. Repositories never touch it
directly: they read and stage through an ``InMemorySession`` owned by a unit
of work, so a transaction's writes become visible to others only on commit,
all together.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel

from domain.entities import (
    BlackoutWindow, Cabana, CabanaClass, CalendarPrice, Concept, PriceRange,
    Product, Reservation,
)
from domain.enums import ReservationStatus
from domain.exceptions import Conflict, StorageUnavailable
from domain.repositories import (
    CancellationRequestRepository, CatalogRepository,
    ExtraConceptRequestRepository, ModificationRequestRepository,
    ReservationRepository,
)
from domain.value_objects import DateRange

logger = logging.getLogger(__name__)

RESERVATIONS = "reservations"
CANCELLATIONS = "cancellations"
EXTRA_REQUESTS = "extra_requests"
MODIFICATIONS = "modifications"
CABANA_CLASSES = "cabana_classes"
CABANAS = "cabanas"
CONCEPTS = "concepts"
PRODUCTS = "products"
CALENDAR_PRICES = "calendar_prices"
PRICE_RANGES = "price_ranges"
BLACKOUTS = "blackouts"


class InMemoryDatabase:
    """Committed state plus the per-key locks transactions take on it"""

    def __init__(self):
        self.tables: Dict[str, Dict[Any, BaseModel]] = defaultdict(dict)
        self.online = True
        self._locks: Dict[str, asyncio.Lock] = {}

    def ensure_online(self) -> None:
        if not self.online:
            raise StorageUnavailable("Reservation store is unavailable, retry later")

    def lock_for(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def insert(self, table: str, key: Any, row: BaseModel) -> None:
        """Write a committed row directly (seeding)"""
        self.tables[table][key] = row.model_copy(deep=True)


class InMemorySession:
    """Staged writes and read versions for one transaction"""

    def __init__(self, database: InMemoryDatabase):
        self.database = database
        self._staged: Dict[str, Dict[Any, BaseModel]] = defaultdict(dict)
        # version of each reservation as it was last read by this transaction
        self._read_versions: Dict[Any, int] = {}

    def get(self, table: str, key: Any) -> Optional[BaseModel]:
        self.database.ensure_online()
        if key in self._staged[table]:
            return self._staged[table][key]
        row = self.database.tables[table].get(key)
        if row is None:
            return None
        self._remember_version(table, key, row, refresh=True)
        return row.model_copy(deep=True)

    def select(self, table: str, predicate: Callable[[Any], bool]) -> List[BaseModel]:
        """Rows matching predicate, staged versions shadowing committed ones"""
        self.database.ensure_online()
        rows = {}
        for key, row in self.database.tables[table].items():
            self._remember_version(table, key, row)
            rows[key] = row.model_copy(deep=True)
        rows.update(self._staged[table])
        return [row for row in rows.values() if predicate(row)]

    def stage(self, table: str, key: Any, row: BaseModel) -> None:
        self._staged[table][key] = row

    def discard(self) -> None:
        self._staged.clear()
        self._read_versions.clear()

    def commit(self) -> None:
        """Check versions, then apply every staged row or none"""
        self.database.ensure_online()
        committed = self.database.tables

        for key, row in self._staged[RESERVATIONS].items():
            stored = committed[RESERVATIONS].get(key)
            expected = self._read_versions.get((RESERVATIONS, key))
            if stored is None and expected is None:
                continue
            if stored is None or expected is None or stored.version != expected:
                raise Conflict(
                    key,
                    expected_version=expected,
                    actual_version=stored.version if stored is not None else None
                )

        count = 0
        for table, rows in self._staged.items():
            for key, row in rows.items():
                committed[table][key] = row.model_copy(deep=True)
                count += 1
        logger.debug(f"Applied {count} staged rows")
        self.discard()

    def _remember_version(self, table: str, key: Any, row: BaseModel, refresh: bool = False) -> None:
        if table != RESERVATIONS or key in self._staged[table]:
            return
        if refresh or (table, key) not in self._read_versions:
            self._read_versions[(table, key)] = row.version


class InMemoryReservationRepository(ReservationRepository):
    """In-memory implementation of ReservationRepository"""

    def __init__(self, session: InMemorySession):
        self._session = session

    async def add(self, reservation: Reservation) -> Reservation:
        self._session.stage(RESERVATIONS, reservation.reservation_id, reservation)
        return reservation

    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        return self._session.get(RESERVATIONS, reservation_id)

    async def update(self, reservation: Reservation) -> Reservation:
        self._session.stage(RESERVATIONS, reservation.reservation_id, reservation)
        return reservation

    async def find_occupying(self, cabana_id: str, date_range: DateRange) -> List[Reservation]:
        return self._session.select(
            RESERVATIONS,
            lambda r: (r.cabana_id == cabana_id
                       and r.status.is_occupying
                       and r.date_range.overlaps(date_range))
        )

    async def find_all(
        self,
        status: Optional[ReservationStatus] = None,
        cabana_id: Optional[str] = None,
        user_id: Optional[UUID] = None
    ) -> List[Reservation]:
        results = self._session.select(
            RESERVATIONS,
            lambda r: ((status is None or r.status == status)
                       and (cabana_id is None or r.cabana_id == cabana_id)
                       and (user_id is None or r.user_id == user_id))
        )
        return sorted(results, key=lambda r: r.created_at, reverse=True)


class _InMemoryRequestRepository:

    table: str

    def __init__(self, session: InMemorySession):
        self._session = session

    async def add(self, request):
        self._session.stage(self.table, request.request_id, request)
        return request

    async def find_by_id(self, request_id: UUID):
        return self._session.get(self.table, request_id)

    async def update(self, request):
        self._session.stage(self.table, request.request_id, request)
        return request

    async def find_by_reservation(self, reservation_id: UUID):
        results = self._session.select(self.table, lambda r: r.reservation_id == reservation_id)
        return sorted(results, key=lambda r: r.created_at)


class InMemoryCancellationRequestRepository(_InMemoryRequestRepository, CancellationRequestRepository):
    table = CANCELLATIONS


class InMemoryExtraConceptRequestRepository(_InMemoryRequestRepository, ExtraConceptRequestRepository):
    table = EXTRA_REQUESTS


class InMemoryModificationRequestRepository(_InMemoryRequestRepository, ModificationRequestRepository):
    table = MODIFICATIONS


class InMemoryCatalogRepository(CatalogRepository):
    """In-memory implementation of CatalogRepository"""

    def __init__(self, session: InMemorySession):
        self._session = session

    async def get_cabana(self, cabana_id: str) -> Optional[Cabana]:
        return self._session.get(CABANAS, cabana_id)

    async def get_cabanas(self) -> List[Cabana]:
        return sorted(self._session.select(CABANAS, lambda c: True), key=lambda c: c.cabana_id)

    async def get_cabana_class(self, class_id: str) -> Optional[CabanaClass]:
        return self._session.get(CABANA_CLASSES, class_id)

    async def get_concept(self, concept_id: str) -> Optional[Concept]:
        return self._session.get(CONCEPTS, concept_id)

    async def get_products(self, product_ids: Iterable[str], include_archived: bool = False) -> List[Product]:
        wanted = set(product_ids)
        return self._session.select(
            PRODUCTS,
            lambda p: p.product_id in wanted and (include_archived or not p.archived)
        )

    async def get_calendar_prices(self, cabana_id: str, date_range: DateRange) -> List[CalendarPrice]:
        return self._session.select(
            CALENDAR_PRICES,
            lambda p: p.cabana_id == cabana_id and date_range.contains(p.day)
        )

    async def get_price_ranges(self, cabana_id: str, date_range: DateRange,
                               include_archived: bool = False) -> List[PriceRange]:
        return self._session.select(
            PRICE_RANGES,
            lambda r: (r.cabana_id == cabana_id
                       and (include_archived or not r.archived)
                       and r.date_range.overlaps(date_range))
        )

    async def get_price_range(self, price_range_id: UUID) -> Optional[PriceRange]:
        return self._session.get(PRICE_RANGES, price_range_id)

    async def get_blackouts(self, cabana_id: str, date_range: DateRange,
                            include_archived: bool = False) -> List[BlackoutWindow]:
        results = self._session.select(
            BLACKOUTS,
            lambda b: (b.applies_to(cabana_id)
                       and (include_archived or not b.archived)
                       and b.date_range.overlaps(date_range))
        )
        return sorted(results, key=lambda b: b.date_range.start)

    async def get_blackout(self, blackout_id: UUID) -> Optional[BlackoutWindow]:
        return self._session.get(BLACKOUTS, blackout_id)

    async def save_cabana_class(self, cabana_class: CabanaClass) -> CabanaClass:
        self._session.stage(CABANA_CLASSES, cabana_class.class_id, cabana_class)
        return cabana_class

    async def save_cabana(self, cabana: Cabana) -> Cabana:
        self._session.stage(CABANAS, cabana.cabana_id, cabana)
        return cabana

    async def save_concept(self, concept: Concept) -> Concept:
        self._session.stage(CONCEPTS, concept.concept_id, concept)
        return concept

    async def save_product(self, product: Product) -> Product:
        self._session.stage(PRODUCTS, product.product_id, product)
        return product

    async def save_calendar_price(self, price: CalendarPrice) -> CalendarPrice:
        self._session.stage(CALENDAR_PRICES, calendar_key(price), price)
        return price

    async def save_price_range(self, price_range: PriceRange) -> PriceRange:
        self._session.stage(PRICE_RANGES, price_range.price_range_id, price_range)
        return price_range

    async def save_blackout(self, blackout: BlackoutWindow) -> BlackoutWindow:
        self._session.stage(BLACKOUTS, blackout.blackout_id, blackout)
        return blackout


def calendar_key(price: CalendarPrice) -> Tuple[str, Any]:
    return (price.cabana_id, price.day)
