"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional
from uuid import UUID

from domain.entities import (
    BlackoutWindow, Cabana, CabanaClass, CalendarPrice, CancellationRequest,
    Concept, ExtraConceptRequest, ModificationRequest, PriceRange, Product,
    Reservation,
)
from domain.enums import ReservationStatus
from domain.value_objects import DateRange


class ReservationRepository(ABC):
    """Repository interface for Reservation Aggregate"""

    @abstractmethod
    async def add(self, reservation: Reservation) -> Reservation:
        """Stage a new reservation"""
        pass

    @abstractmethod
    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        """Find reservation by ID"""
        pass

    @abstractmethod
    async def update(self, reservation: Reservation) -> Reservation:
        """Stage changes to an existing reservation"""
        pass

    @abstractmethod
    async def find_occupying(self, cabana_id: str, date_range: DateRange) -> List[Reservation]:
        """Occupying reservations on a cabana whose span overlaps date_range"""
        pass

    @abstractmethod
    async def find_all(
        self,
        status: Optional[ReservationStatus] = None,
        cabana_id: Optional[str] = None,
        user_id: Optional[UUID] = None
    ) -> List[Reservation]:
        """Find reservations, newest first"""
        pass


class CancellationRequestRepository(ABC):

    @abstractmethod
    async def add(self, request: CancellationRequest) -> CancellationRequest:
        pass

    @abstractmethod
    async def find_by_id(self, request_id: UUID) -> Optional[CancellationRequest]:
        pass

    @abstractmethod
    async def update(self, request: CancellationRequest) -> CancellationRequest:
        pass

    @abstractmethod
    async def find_by_reservation(self, reservation_id: UUID) -> List[CancellationRequest]:
        pass


class ExtraConceptRequestRepository(ABC):

    @abstractmethod
    async def add(self, request: ExtraConceptRequest) -> ExtraConceptRequest:
        pass

    @abstractmethod
    async def find_by_id(self, request_id: UUID) -> Optional[ExtraConceptRequest]:
        pass

    @abstractmethod
    async def update(self, request: ExtraConceptRequest) -> ExtraConceptRequest:
        pass

    @abstractmethod
    async def find_by_reservation(self, reservation_id: UUID) -> List[ExtraConceptRequest]:
        pass


class ModificationRequestRepository(ABC):

    @abstractmethod
    async def add(self, request: ModificationRequest) -> ModificationRequest:
        pass

    @abstractmethod
    async def find_by_id(self, request_id: UUID) -> Optional[ModificationRequest]:
        pass

    @abstractmethod
    async def update(self, request: ModificationRequest) -> ModificationRequest:
        pass

    @abstractmethod
    async def find_by_reservation(self, reservation_id: UUID) -> List[ModificationRequest]:
        pass


class CatalogRepository(ABC):
    """Cabanas, concepts, products and their price and blackout calendars.

    Read methods take an explicit ``include_archived`` flag; archived rows are
    excluded unless a caller asks for them.
    """

    # ---- reads ----
    @abstractmethod
    async def get_cabana(self, cabana_id: str) -> Optional[Cabana]:
        pass

    @abstractmethod
    async def get_cabanas(self) -> List[Cabana]:
        """Every registered cabana, ordered by id"""
        pass

    @abstractmethod
    async def get_cabana_class(self, class_id: str) -> Optional[CabanaClass]:
        pass

    @abstractmethod
    async def get_concept(self, concept_id: str) -> Optional[Concept]:
        pass

    @abstractmethod
    async def get_products(self, product_ids: Iterable[str], include_archived: bool = False) -> List[Product]:
        pass

    @abstractmethod
    async def get_calendar_prices(self, cabana_id: str, date_range: DateRange) -> List[CalendarPrice]:
        pass

    @abstractmethod
    async def get_price_ranges(self, cabana_id: str, date_range: DateRange,
                               include_archived: bool = False) -> List[PriceRange]:
        """Ranges for a cabana intersecting date_range"""
        pass

    @abstractmethod
    async def get_price_range(self, price_range_id: UUID) -> Optional[PriceRange]:
        pass

    @abstractmethod
    async def get_blackouts(self, cabana_id: str, date_range: DateRange,
                            include_archived: bool = False) -> List[BlackoutWindow]:
        """Venue-wide and cabana-scoped windows intersecting date_range"""
        pass

    @abstractmethod
    async def get_blackout(self, blackout_id: UUID) -> Optional[BlackoutWindow]:
        pass

    # ---- writes (catalog administration only) ----
    @abstractmethod
    async def save_cabana_class(self, cabana_class: CabanaClass) -> CabanaClass:
        pass

    @abstractmethod
    async def save_cabana(self, cabana: Cabana) -> Cabana:
        pass

    @abstractmethod
    async def save_concept(self, concept: Concept) -> Concept:
        pass

    @abstractmethod
    async def save_product(self, product: Product) -> Product:
        pass

    @abstractmethod
    async def save_calendar_price(self, price: CalendarPrice) -> CalendarPrice:
        pass

    @abstractmethod
    async def save_price_range(self, price_range: PriceRange) -> PriceRange:
        pass

    @abstractmethod
    async def save_blackout(self, blackout: BlackoutWindow) -> BlackoutWindow:
        pass
