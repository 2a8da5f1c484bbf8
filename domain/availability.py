"""Availability Checker - Domain Service"""
from datetime import date
from typing import List, Optional
from uuid import UUID

from domain.enums import UnavailabilityCode
from domain.exceptions import NotFound, Unavailable
from domain.repositories import CatalogRepository, ReservationRepository
from domain.value_objects import AvailabilityResult, DateRange, UnavailabilityReason


class AvailabilityChecker:
    """Decides whether a cabana can be booked for a span.

    Every violated rule is reported, not just the first one found.
    """

    def __init__(self, catalog: CatalogRepository, reservations: ReservationRepository):
        self.catalog = catalog
        self.reservations = reservations

    async def is_bookable(
        self,
        cabana_id: str,
        start: date,
        end: date,
        exclude_reservation_id: Optional[UUID] = None
    ) -> AvailabilityResult:
        date_range = DateRange(start=start, end=end)

        cabana = await self.catalog.get_cabana(cabana_id)
        if cabana is None:
            raise NotFound("Cabana", cabana_id)

        reasons: List[UnavailabilityReason] = []

        if not cabana.open_for_reservation:
            reasons.append(UnavailabilityReason(
                code=UnavailabilityCode.CLOSED_FOR_RESERVATION,
                message=f"Cabana {cabana.name} is closed for reservations"
            ))

        for window in await self.catalog.get_blackouts(cabana_id, date_range, include_archived=False):
            days = date_range.intersection_days(window.date_range)
            scope = "venue-wide" if window.cabana_id is None else f"cabana {cabana_id}"
            reasons.append(UnavailabilityReason(
                code=UnavailabilityCode.BLACKOUT,
                message=f"Blackout ({scope}) on {_format_days(days)}: {window.reason}",
                days=days,
                blackout_id=window.blackout_id
            ))

        for other in await self.reservations.find_occupying(cabana_id, date_range):
            if other.reservation_id == exclude_reservation_id:
                continue
            days = date_range.intersection_days(other.date_range)
            reasons.append(UnavailabilityReason(
                code=UnavailabilityCode.OVERLAP,
                message=f"Already reserved on {_format_days(days)}",
                days=days,
                reservation_id=other.reservation_id
            ))

        return AvailabilityResult(cabana_id=cabana_id, start=start, end=end, reasons=reasons)

    async def assert_bookable(
        self,
        cabana_id: str,
        start: date,
        end: date,
        exclude_reservation_id: Optional[UUID] = None
    ) -> None:
        result = await self.is_bookable(cabana_id, start, end, exclude_reservation_id)
        if not result.available:
            raise Unavailable(result.reasons)


def _format_days(days: List[date]) -> str:
    if not days:
        return "-"
    if len(days) == 1:
        return days[0].isoformat()
    return f"{days[0].isoformat()}..{days[-1].isoformat()}"
