"""Catalog administration tests"""
import asyncio
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from domain.enums import AuditAction, PriceSource
from domain.exceptions import Forbidden, InvalidRange, InvalidRequest, NotFound, Unavailable, UnknownProduct
from domain.value_objects import ExtraItemRequest
from infrastructure.repositories.in_memory_repositories import InMemoryDatabase
from infrastructure.seed import seed_demo_catalog


class TestCatalogAdministration:

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.parametrize("actor_fixture", ["casino_user", "fnb_user"])
    async def test_writes_require_admin(self, catalog_service, request, actor_fixture):
        actor = request.getfixturevalue(actor_fixture)
        with pytest.raises(Forbidden):
            await catalog_service.add_price_range(actor, "C101", date(2025, 6, 1), date(2025, 6, 2), Decimal("1"))
        with pytest.raises(Forbidden):
            await catalog_service.add_blackout(actor, date(2025, 6, 1), date(2025, 6, 2), "Storm")

    @pytest.mark.unit
    @pytest.mark.application
    async def test_register_structure(self, catalog_service, system_admin, dispatcher, audit_log):
        await catalog_service.register_cabana_class(system_admin, "FAMILY", "Family", "Two rooms")
        await catalog_service.register_concept(system_admin, "SILVER", "Silver", Decimal("10"), class_id="FAMILY")
        await catalog_service.register_product(system_admin, "ICE", "Ice bucket", Decimal("8.5"))
        cabana = await catalog_service.register_cabana(system_admin, "C201", "Cabana 201", "FAMILY", "SILVER")

        assert cabana.concept_id == "SILVER"
        assert (await catalog_service.get_cabana("C201")).name == "Cabana 201"
        await dispatcher.drain()
        assert [e.entity_type for e in audit_log.entries] == ["CabanaClass", "Concept", "Product", "Cabana"]
        assert {e.action for e in audit_log.entries} == {AuditAction.CREATE}

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.edge_case
    async def test_register_cabana_with_unknown_references(self, catalog_service, admin):
        with pytest.raises(NotFound):
            await catalog_service.register_cabana(admin, "C300", "Cabana 300", "NOPE")
        with pytest.raises(NotFound):
            await catalog_service.register_cabana(admin, "C300", "Cabana 300", "VIP", concept_id="NOPE")

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.edge_case
    async def test_negative_prices_rejected(self, catalog_service, admin):
        with pytest.raises(InvalidRequest):
            await catalog_service.register_product(admin, "BAD", "Bad", Decimal("-1"))
        with pytest.raises(InvalidRequest):
            await catalog_service.set_calendar_price(admin, "C101", date(2025, 6, 10), Decimal("-5"))

    @pytest.mark.unit
    @pytest.mark.application
    async def test_price_range_add_and_archive(self, catalog_service, reservation_service, admin,
                                               dispatcher, audit_log):
        price_range = await catalog_service.add_price_range(
            admin, "C102", date(2025, 6, 10), date(2025, 6, 12), Decimal("180"), priority=10, label="Festival"
        )
        boosted = await reservation_service.preview_price("C102", None, date(2025, 6, 10), date(2025, 6, 11))
        assert boosted.nights[0].amount == Decimal("180.00")
        assert boosted.nights[0].label == "Festival"

        archived = await catalog_service.archive_price_range(admin, price_range.price_range_id)
        assert archived.archived
        restored = await reservation_service.preview_price("C102", None, date(2025, 6, 10), date(2025, 6, 11))
        assert restored.nights[0].amount == Decimal("100.00")

        await dispatcher.drain()
        assert [e.action for e in audit_log.entries] == [AuditAction.PRICE_UPDATE, AuditAction.DELETE]

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.edge_case
    async def test_price_range_validation(self, catalog_service, admin):
        with pytest.raises(InvalidRange):
            await catalog_service.add_price_range(admin, "C101", date(2025, 6, 12), date(2025, 6, 10), Decimal("1"))
        with pytest.raises(NotFound):
            await catalog_service.add_price_range(admin, "C999", date(2025, 6, 10), date(2025, 6, 12), Decimal("1"))
        with pytest.raises(NotFound):
            await catalog_service.archive_price_range(admin, uuid4())

    @pytest.mark.unit
    @pytest.mark.application
    async def test_calendar_price_overrides_range(self, catalog_service, reservation_service, admin):
        await catalog_service.set_calendar_price(admin, "C101", date(2025, 6, 11), Decimal("75"))
        breakdown = await reservation_service.preview_price("C101", None, date(2025, 6, 10), date(2025, 6, 12))
        assert [(n.amount, n.source) for n in breakdown.nights] == [
            (Decimal("100.00"), PriceSource.RANGE),
            (Decimal("75.00"), PriceSource.CALENDAR),
        ]

        await catalog_service.set_calendar_price(admin, "C101", date(2025, 6, 11), Decimal("90"))
        breakdown = await reservation_service.preview_price("C101", None, date(2025, 6, 10), date(2025, 6, 12))
        assert breakdown.total == Decimal("190.00")

    @pytest.mark.unit
    @pytest.mark.application
    async def test_concept_product_price(self, catalog_service, reservation_service, admin):
        await catalog_service.set_concept_product_price(admin, "GOLD", "TOWEL", Decimal("12"))
        breakdown = await reservation_service.preview_price(
            "C101", "GOLD", date(2025, 6, 10), date(2025, 6, 11),
            [ExtraItemRequest(product_id="TOWEL", quantity=2)]
        )
        assert breakdown.extra_items[0].unit_price == Decimal("12.00")
        assert breakdown.extra_items[0].source == PriceSource.CONCEPT_SPECIFIC

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.edge_case
    async def test_register_existing_ids_rejected(self, catalog_service, catalog, admin, dispatcher, audit_log):
        with pytest.raises(InvalidRequest):
            await catalog_service.register_cabana_class(admin, "VIP", "Another VIP")
        with pytest.raises(InvalidRequest):
            await catalog_service.register_concept(admin, "GOLD", "Another gold", Decimal("99"))
        with pytest.raises(InvalidRequest):
            await catalog_service.register_product(admin, "TOWEL", "Cheap towel", Decimal("1"))
        with pytest.raises(InvalidRequest):
            await catalog_service.register_product(admin, "OLD", "Revived", Decimal("1"))
        with pytest.raises(InvalidRequest):
            await catalog_service.register_cabana(admin, "C101", "Replacement", "VIP")

        (towel, old) = sorted(await catalog.get_products(["TOWEL", "OLD"], include_archived=True),
                              key=lambda p: p.product_id, reverse=True)
        assert towel.sale_price == Decimal("15")
        assert old.archived
        assert (await catalog.get_concept("GOLD")).service_fee == Decimal("20")
        assert (await catalog.get_cabana("C101")).concept_id == "GOLD"
        await dispatcher.drain()
        assert audit_log.entries == []

    @pytest.mark.unit
    @pytest.mark.application
    async def test_archived_product_cannot_be_ordered(
self, catalog_service, reservation_service, admin):
        product = await catalog_service.archive_product(admin, "TOWEL")
        assert product.archived
        with pytest.raises(UnknownProduct):
            await reservation_service.preview_price(
                "C101", "GOLD", date(2025, 6, 10), date(2025, 6, 11),
                [ExtraItemRequest(product_id="TOWEL", quantity=1)]
            )


class TestBlackoutsAndOpenFlag:

    @pytest.mark.integration
    @pytest.mark.application
    async def test_blackout_blocks_then_archive_restores(self, catalog_service, reservation_service,
                                                         casino_user, admin, dispatcher, notification_center):
        blackout = await catalog_service.add_blackout(
            admin, date(2025, 6, 11), date(2025, 6, 12), "Private event", cabana_id="C101"
        )
        with pytest.raises(Unavailable):
            await reservation_service.create_reservation(
                "C101", casino_user, "Jane Guest", date(2025, 6, 10), date(2025, 6, 13)
            )

        await catalog_service.archive_blackout(admin, blackout.blackout_id)
        reservation = await reservation_service.create_reservation(
            "C101", casino_user, "Jane Guest", date(2025, 6, 10), date(2025, 6, 13)
        )
        assert reservation.reservation_id is not None

        await dispatcher.drain()
        assert notification_center.events()[:2] == ["calendar:update", "calendar:update"]

    @pytest.mark.concurrency
    @pytest.mark.application
    async def test_venue_blackout_waits_for_cabana_locks(self, catalog_service, uow_factory, admin):
        async with uow_factory() as holder:
            await holder.lock_cabana("C102")
            task = asyncio.create_task(
                catalog_service.add_blackout(admin, date(2025, 6, 20), date(2025, 6, 21), "Storm")
            )
            await asyncio.sleep(0.05)
            assert not task.done()

        blackout = await task
        assert blackout.cabana_id is None

    @pytest.mark.concurrency
    @pytest.mark.application
    async def test_venue_blackout_and_approval_serialize(self, catalog_service, reservation_service,
                                                         casino_user, admin):
        pending = await reservation_service.create_reservation(
            "C101", casino_user, "Jane Guest", date(2025, 6, 10), date(2025, 6, 13)
        )
        results = await asyncio.gather(
            catalog_service.add_blackout(admin, date(2025, 6, 11), date(2025, 6, 12), "Storm"),
            reservation_service.approve(pending.reservation_id, admin),
            return_exceptions=True
        )

        # A blackout never checks existing reservations, an approval does
        assert not isinstance(results[0], Exception)
        if isinstance(results[1], Exception):
            assert isinstance(results[1], Unavailable)

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.edge_case
    async def test_blackout_needs_a_reason(
self, catalog_service, admin):
        with pytest.raises(InvalidRequest):
            await catalog_service.add_blackout(admin, date(2025, 6, 11), date(2025, 6, 12), "  ")

    @pytest.mark.unit
    @pytest.mark.application
    async def test_closing_a_cabana(self, catalog_service, reservation_service, admin):
        closed = await catalog_service.set_open_for_reservation(admin, "C101", False)
        assert not closed.open_for_reservation

        result = await reservation_service.check_availability("C101", date(2025, 6, 10), date(2025, 6, 13))
        assert not result.available

        await catalog_service.set_open_for_reservation(admin, "C101", True)
        result = await reservation_service.check_availability("C101", date(2025, 6, 10), date(2025, 6, 13))
        assert result.available


class TestDemoSeed:

    @pytest.mark.unit
    @pytest.mark.infrastructure
    def test_seed_loads_priced_cabanas(self):
        db = InMemoryDatabase()
        seed_demo_catalog(db)
        assert {"C101", "C102", "C103"} <= set(db.tables["cabanas"])
        assert not db.tables["cabanas"]["C103"].open_for_reservation
        assert db.tables["concepts"]["GOLD"].service_fee == Decimal("20.00")
