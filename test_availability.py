"""Availability checker tests"""
from datetime import date
from uuid import uuid4

import pytest

from domain.availability import AvailabilityChecker
from domain.entities import BlackoutWindow, Reservation
from domain.enums import ReservationStatus, UnavailabilityCode
from domain.exceptions import NotFound, Unavailable
from domain.value_objects import DateRange
from infrastructure.repositories.in_memory_repositories import BLACKOUTS, CABANAS, RESERVATIONS


@pytest.fixture
def checker(catalog, reservations):
    return AvailabilityChecker(catalog, reservations)


def add_reservation(db, cabana_id, start, end, status):
    reservation = Reservation(
        cabana_id=cabana_id,
        user_id=uuid4(),
        guest_name="Existing Guest",
        date_range=DateRange(start=start, end=end),
        status=status
    )
    db.insert(RESERVATIONS, reservation.reservation_id, reservation)
    return reservation


def add_blackout(db, start, end, cabana_id=None, archived=False, reason="Private event"):
    blackout = BlackoutWindow(
        date_range=DateRange(start=start, end=end),
        cabana_id=cabana_id,
        reason=reason,
        archived=archived
    )
    db.insert(BLACKOUTS, blackout.blackout_id, blackout)
    return blackout


class TestAvailabilityChecker:

    @pytest.mark.unit
    @pytest.mark.domain
    async def test_free_cabana_is_bookable(self, checker):
        result = await checker.is_bookable("C101", date(2025, 6, 10), date(2025, 6, 13))
        assert result.available
        assert result.reasons == []

    @pytest.mark.unit
    @pytest.mark.domain
    async def test_closed_for_reservation(self, checker, database):
        database.tables[CABANAS]["C101"].open_for_reservation = False

        result = await checker.is_bookable("C101", date(2025, 6, 10), date(2025, 6, 13))
        assert not result.available
        assert [r.code for r in result.reasons] == [UnavailabilityCode.CLOSED_FOR_RESERVATION]

    @pytest.mark.unit
    @pytest.mark.domain
    async def test_venue_wide_and_cabana_blackouts(self, checker, database):
        venue = add_blackout(database, date(2025, 6, 11), date(2025, 6, 12), reason="Festival")
        own = add_blackout(database, date(2025, 6, 12), date(2025, 6, 20), cabana_id="C101", reason="Repairs")
        add_blackout(database, date(2025, 6, 1), date(2025, 6, 30), cabana_id="C102")

        result = await checker.is_bookable("C101", date(2025, 6, 10), date(2025, 6, 13))

        assert {r.blackout_id for r in result.reasons} == {venue.blackout_id, own.blackout_id}
        by_id = {r.blackout_id: r for r in result.reasons}
        assert by_id[venue.blackout_id].days == [date(2025, 6, 11)]
        assert by_id[own.blackout_id].days == [date(2025, 6, 12)]
        assert "Repairs" in by_id[own.blackout_id].message

    @pytest.mark.unit
    @pytest.mark.domain
    async def test_archived_blackout_does_not_block(self, checker, database):
        add_blackout(database, date(2025, 6, 1), date(2025, 6, 30), archived=True)
        result = await checker.is_bookable("C101", date(2025, 6, 10), date(2025, 6, 13))
        assert result.available

    @pytest.mark.unit
    @pytest.mark.domain
    @pytest.mark.parametrize("status", [
        ReservationStatus.APPROVED,
        ReservationStatus.CHECKED_IN,
        ReservationStatus.MODIFICATION_PENDING,
        ReservationStatus.EXTRA_PENDING,
    ])
    async def test_occupying_reservation_overlaps(self, checker, database, status):
        other = add_reservation(database, "C101", date(2025, 6, 12), date(2025, 6, 15), status)

        result = await checker.is_bookable("C101", date(2025, 6, 10), date(2025, 6, 13))

        assert not result.available
        (reason,) = result.reasons
        assert reason.code == UnavailabilityCode.OVERLAP
        assert reason.reservation_id == other.reservation_id
        assert reason.days == [date(2025, 6, 12)]

    @pytest.mark.unit
    @pytest.mark.domain
    @pytest.mark.parametrize("status", [
        ReservationStatus.PENDING,
        ReservationStatus.REJECTED,
        ReservationStatus.CANCELLED,
        ReservationStatus.CHECKED_OUT,
    ])
    async def test_non_occupying_reservation_does_not_block(self, checker, database, status):
        add_reservation(database, "C101", date(2025, 6, 10), date(2025, 6, 13), status)
        result = await checker.is_bookable("C101", date(2025, 6, 10), date(2025, 6, 13))
        assert result.available

    @pytest.mark.unit
    @pytest.mark.domain
    @pytest.mark.edge_case
    async def test_back_to_back_stays_do_not_overlap(self, checker, database):
        add_reservation(database, "C101", date(2025, 6, 7), date(2025, 6, 10), ReservationStatus.APPROVED)
        add_reservation(database, "C101", date(2025, 6, 13), date(2025, 6, 16), ReservationStatus.APPROVED)
        result = await checker.is_bookable("C101", date(2025, 6, 10), date(2025, 6, 13))
        assert result.available

    @pytest.mark.unit
    @pytest.mark.domain
    async def test_excluded_reservation_is_ignored(self, checker, database):
        own = add_reservation(database, "C101", date(2025, 6, 10), date(2025, 6, 13), ReservationStatus.APPROVED)
        result = await checker.is_bookable(
            "C101", date(2025, 6, 10), date(2025, 6, 13), exclude_reservation_id=own.reservation_id
        )
        assert result.available

    @pytest.mark.unit
    @pytest.mark.domain
    async def test_all_reasons_reported_at_once(self, checker, database):
        database.tables[CABANAS]["C101"].open_for_reservation = False
        add_blackout(database, date(2025, 6, 10), date(2025, 6, 11))
        add_reservation(database, "C101", date(2025, 6, 12), date(2025, 6, 14), ReservationStatus.APPROVED)

        with pytest.raises(Unavailable) as exc_info:
            await checker.assert_bookable("C101", date(2025, 6, 10), date(2025, 6, 13))

        codes = [r.code for r in exc_info.value.reasons]
        assert codes == [
            UnavailabilityCode.CLOSED_FOR_RESERVATION,
            UnavailabilityCode.BLACKOUT,
            UnavailabilityCode.OVERLAP,
        ]
        body = exc_info.value.to_dict()
        assert body["error"] == "Unavailable"
        assert [r["code"] for r in body["reasons"]] == [c.value for c in codes]

    @pytest.mark.unit
    @pytest.mark.domain
    async def test_unknown_cabana(self, checker):
        with pytest.raises(NotFound):
            await checker.is_bookable("C999", date(2025, 6, 10), date(2025, 6, 13))
