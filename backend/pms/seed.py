"""Seed script for the PMS development database.

Creates a demo tenant with one property, two room types, a standard and a
dynamic rate plan, and 90 days of inventory starting today.
"""

import asyncio
import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import select

from pms.database import Base, async_session_factory, engine
from pms.models.property import Property, RatePlan, Room
from pms.services.inventory_service import inventory_service

DEMO_TENANT_ID = uuid.UUID("00000000-0000-4000-8000-000000000001")
INVENTORY_DAYS = 90

# ── Property ───────────────────────────────────────────────────────────────────

PROPERTY = {
    "name": "Harbour View Hotel",
    "slug": "harbour-view",
    "description": "Waterfront hotel in the old town",
    "property_type": "hotel",
    "star_rating": 4,
    "address": "12 Quay Street",
    "city": "Lisbon",
    "country": "Portugal",
    "currency": "EUR",
    "amenities": ["wifi", "pool", "spa", "restaurant"],
}

# ── Rooms (total units per night) ─────────────────────────────────────────────

ROOMS = [
    (
        {
            "name": "Standard Double",
            "slug": "standard-double",
            "room_type": "double",
            "max_occupancy": 2,
            "max_adults": 2,
            "max_children": 1,
            "bed_type": "queen",
            "amenities": ["wifi", "tv"],
            "base_price": Decimal("120.00"),
            "currency": "EUR",
        },
        10,
    ),
    (
        {
            "name": "Family Suite",
            "slug": "family-suite",
            "room_type": "suite",
            "max_occupancy": 4,
            "max_adults": 2,
            "max_children": 2,
            "bed_type": "king",
            "amenities": ["wifi", "tv", "minibar", "balcony"],
            "base_price": Decimal("240.00"),
            "currency": "EUR",
        },
        4,
    ),
]

# ── Rate plans ─────────────────────────────────────────────────────────────────

RATE_PLANS = [
    {
        "name": "Standard Rate",
        "plan_type": "standard",
        "base_price": Decimal("120.00"),
        "currency": "EUR",
        "is_dynamic": False,
    },
    {
        "name": "Flex Dynamic",
        "plan_type": "dynamic",
        "base_price": Decimal("110.00"),
        "currency": "EUR",
        "is_dynamic": True,
        "dynamic_rules": {
            "baseMultiplier": 1.0,
            "demandMultipliers": {"low": 0.9, "medium": 1.0, "high": 1.3},
            "seasonMultipliers": {"low_season": 0.85, "normal": 1.0, "high_season": 1.25},
            "occupancyMultipliers": {"lowOccupancy": 0.9, "highOccupancy": 1.2},
            "minPrice": 80,
            "maxPrice": 400,
        },
    },
]


async def seed():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as db:
        # Check if already seeded
        result = await db.execute(select(Property).where(Property.tenant_id == DEMO_TENANT_ID).limit(1))
        if result.scalar_one_or_none():
            print("Database already seeded. Skipping.")
            return

        prop = Property(tenant_id=DEMO_TENANT_ID, **PROPERTY)
        db.add(prop)
        await db.flush()

        plans = [RatePlan(tenant_id=DEMO_TENANT_ID, property_id=prop.id, **p) for p in RATE_PLANS]
        rooms = [(Room(tenant_id=DEMO_TENANT_ID, property_id=prop.id, **r), units) for r, units in ROOMS]
        db.add_all(plans + [room for room, _ in rooms])
        await db.commit()
        print(f"Created property {prop.name} with {len(rooms)} rooms and {len(plans)} rate plans")

        for room, units in rooms:
            summary = await inventory_service.provision_range(
                db,
                DEMO_TENANT_ID,
                property_id=prop.id,
                room_id=room.id,
                rate_plan_ids=[p.id for p in plans],
                date_start=date.today(),
                date_count=INVENTORY_DAYS,
                total_rooms=units,
            )
            print(f"Provisioned {room.name}: {summary['created']} inventory records")

        print(f"Seed complete. Tenant: {DEMO_TENANT_ID}")


if __name__ == "__main__":
    asyncio.run(seed())
