"""
Tests for the inventory record store: lookups, edits, bulk updates, provisioning.
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from conftest import OTHER_TENANT_ID, TENANT_ID, add_nights
from pms.errors import ConflictError, NotFoundError, ValidationError
from pms.models import InventoryRecord
from pms.services.inventory_service import inventory_service


async def _available(db, record_id) -> int:
    return (
        await db.execute(select(InventoryRecord.available_rooms).where(InventoryRecord.id == record_id))
    ).scalar_one()


class TestGetByDate:

    async def test_returns_records_for_night(self, db, hotel, stay_start):
        await add_nights(db, hotel, hotel.standard, stay_start, 2)
        await add_nights(db, hotel, hotel.dynamic, stay_start, 2)

        records = await inventory_service.get_by_date(db, TENANT_ID, hotel.property.id, stay_start)
        assert len(records) == 2

        filtered = await inventory_service.get_by_date(
            db, TENANT_ID, hotel.property.id, stay_start, rate_plan_id=hotel.dynamic.id
        )
        assert [r.rate_plan_id for r in filtered] == [hotel.dynamic.id]

    async def test_unknown_property(self, db, hotel, stay_start):
        with pytest.raises(NotFoundError):
            await inventory_service.get_by_date(db, TENANT_ID, uuid.uuid4(), stay_start)

    async def test_other_tenant_cannot_see_property(self, db, hotel, stay_start):
        with pytest.raises(NotFoundError):
            await inventory_service.get_by_date(db, OTHER_TENANT_ID, hotel.property.id, stay_start)


class TestCalendar:

    async def test_paginated_range(self, db, hotel, stay_start):
        await add_nights(db, hotel, hotel.standard, stay_start, 5)
        page = await inventory_service.get_calendar(
            db, TENANT_ID, stay_start, stay_start + timedelta(days=3), limit=2
        )
        assert page["pagination"] == {"page": 1, "limit": 2, "total": 4, "total_pages": 2}
        assert [e["date"] for e in page["inventory"]] == [stay_start, stay_start + timedelta(days=1)]
        assert page["inventory"][0]["room_name"] == "Standard Double"

    async def test_end_before_start(self, db, hotel, stay_start):
        with pytest.raises(ValidationError):
            await inventory_service.get_calendar(db, TENANT_ID, stay_start, stay_start - timedelta(days=1))


class TestUpdate:

    async def test_partial_update(self, db, hotel, stay_start):
        (record,) = await add_nights(db, hotel, hotel.standard, stay_start, 1)
        updated = await inventory_service.update(
            db, TENANT_ID, record.id, {"available_rooms": 3, "price": Decimal("149.50"), "stop_sell": True}
        )
        assert updated.available_rooms == 3
        assert updated.price == Decimal("149.50")
        assert updated.stop_sell is True
        assert updated.total_rooms == 10

    @pytest.mark.parametrize("fields", [
        {"available_rooms": 11},
        {"available_rooms": -1},
        {"total_rooms": 4},
        {"price": Decimal("-1")},
    ])
    async def test_rejects_out_of_range(self, db, hotel, stay_start, fields):
        (record,) = await add_nights(db, hotel, hotel.standard, stay_start, 1)
        record_id = record.id
        with pytest.raises(ValidationError):
            await inventory_service.update(db, TENANT_ID, record_id, fields)
        assert await _available(db, record_id) == 5

    async def test_other_tenant_record(self, db, hotel, stay_start):
        (record,) = await add_nights(db, hotel, hotel.standard, stay_start, 1)
        with pytest.raises(NotFoundError):
            await inventory_service.update(db, OTHER_TENANT_ID, record.id, {"available_rooms": 1})

    async def test_nothing_to_update(self, db, hotel, stay_start):
        (record,) = await add_nights(db, hotel, hotel.standard, stay_start, 1)
        with pytest.raises(ValidationError):
            await inventory_service.update(db, TENANT_ID, record.id, {"available_rooms": None})


class TestBulkUpdate:

    async def test_failures_do_not_abort_others(self, db, hotel, stay_start):
        first, second = await add_nights(db, hotel, hotel.standard, stay_start, 2)
        base = {"room_id": hotel.room.id, "rate_plan_id": hotel.standard.id}

        summary = await inventory_service.bulk_update(db, TENANT_ID, [
            {**base, "date": first.date, "available_rooms": 2, "price": Decimal("90")},
            {**base, "date": second.date, "available_rooms": 20},
            {**base, "date": stay_start + timedelta(days=5), "price": Decimal("80")},
            {**base, "date": stay_start + timedelta(days=6), "total_rooms": 4},
            {"room_id": hotel.room.id, "date": first.date},
        ])

        assert summary["total_updates"] == 5
        assert summary["successful"] == 2
        assert summary["failed"] == 3
        assert [r["success"] for r in summary["results"]] == [True, False, False, True, False]
        assert summary["results"][0]["action"] == "updated"
        assert summary["results"][3]["action"] == "created"
        assert "cannot exceed" in summary["results"][1]["error"]

        assert await _available(db, first.id) == 2
        assert await _available(db, second.id) == 5
        created = (
            await db.execute(
                select(InventoryRecord).where(InventoryRecord.id == summary["results"][3]["inventory_id"])
            )
        ).scalar_one()
        assert (created.available_rooms, created.total_rooms, created.price) == (4, 4, Decimal("100.00"))

    async def test_empty_request(self, db, hotel):
        with pytest.raises(ValidationError):
            await inventory_service.bulk_update(db, TENANT_ID, [])


class TestProvision:

    async def test_creates_and_skips_existing(self, db, hotel, stay_start):
        plan_ids = [hotel.standard.id, hotel.dynamic.id]
        first = await inventory_service.provision_range(
            db, TENANT_ID, hotel.property.id, hotel.room.id, plan_ids, stay_start, 3, 8
        )
        assert first == {"created": 6, "skipped": 0}

        second = await inventory_service.provision_range(
            db, TENANT_ID, hotel.property.id, hotel.room.id, plan_ids, stay_start + timedelta(days=2), 3, 8
        )
        assert second == {"created": 4, "skipped": 2}

        rows = (
            await db.execute(
                select(InventoryRecord).where(InventoryRecord.rate_plan_id == hotel.standard.id)
            )
        ).scalars().all()
        assert len(rows) == 5
        assert all(r.available_rooms == r.total_rooms == 8 for r in rows)
        assert all(r.price == hotel.standard.base_price for r in rows)

    async def test_unknown_rate_plan(self, db, hotel, stay_start):
        with pytest.raises(NotFoundError):
            await inventory_service.provision_range(
                db, TENANT_ID, hotel.property.id, hotel.room.id, [uuid.uuid4()], stay_start, 3, 8
            )

    async def test_date_count_bounds(self, db, hotel, stay_start):
        with pytest.raises(ValidationError):
            await inventory_service.provision_range(
                db, TENANT_ID, hotel.property.id, hotel.room.id, [hotel.standard.id], stay_start, 10_000, 8
            )


class TestConsumeRelease:

    async def test_consume_is_all_or_nothing(self, db, hotel, stay_start):
        first, second = await add_nights(db, hotel, hotel.standard, stay_start, 2)
        first_id = first.id
        await inventory_service.update(db, TENANT_ID, second.id, {"available_rooms": 0})

        with pytest.raises(ConflictError):
            await inventory_service.consume(
                db, TENANT_ID, hotel.room.id, hotel.standard.id, [first.date, second.date], 1
            )
        await db.rollback()
        assert await _available(db, first_id) == 5

    async def test_release_capped_at_total(self, db, hotel, stay_start):
        (record,) = await add_nights(db, hotel, hotel.standard, stay_start, 1, available=9)
        touched = await inventory_service.release(
            db, TENANT_ID, hotel.room.id, hotel.standard.id, [record.date], 3
        )
        await db.commit()
        assert touched == 1
        assert await _available(db, record.id) == 10

    async def test_release_scoped_by_tenant(self, db, hotel, stay_start):
        (record,) = await add_nights(db, hotel, hotel.standard, stay_start, 1, available=1)
        await inventory_service.release(db, OTHER_TENANT_ID, hotel.room.id, hotel.standard.id, [record.date], 3)
        await db.commit()
        assert await _available(db, record.id) == 1

