import os

# Must be set before pms.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./pms-test.db")
os.environ["CACHE_ENABLED"] = "false"

import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from pms.database import Base, get_db
from pms.models import InventoryRecord, Property, RatePlan, Room

TENANT_ID = uuid.UUID("11111111-1111-4111-8111-111111111111")
OTHER_TENANT_ID = uuid.UUID("22222222-2222-4222-8222-222222222222")

DYNAMIC_RULES = {
    "demandMultipliers": {"high": 1.2},
    "seasonMultipliers": {"high_season": 1.1},
}


@dataclass
class Hotel:
    property: Property
    room: Room
    standard: RatePlan
    dynamic: RatePlan


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite where every transaction takes the write lock up front."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'pms.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def stay_start() -> date:
    return date.today() + timedelta(days=10)


async def create_hotel(
    db: AsyncSession,
    tenant_id: uuid.UUID = TENANT_ID,
    name: str = "Harbour View",
    city: str = "Lisbon",
    star_rating: int = 4,
    room_amenities: list | None = None,
) -> Hotel:
    prop = Property(
        tenant_id=tenant_id,
        name=name,
        slug=name.lower().replace(" ", "-"),
        star_rating=star_rating,
        address="1 Quay Street",
        city=city,
        country="Portugal",
        currency="EUR",
        amenities=["wifi", "pool"],
        is_active=True,
    )
    db.add(prop)
    await db.flush()

    room = Room(
        tenant_id=tenant_id,
        property_id=prop.id,
        name="Standard Double",
        slug="standard-double",
        room_type="double",
        max_occupancy=3,
        max_adults=2,
        max_children=1,
        amenities=room_amenities if room_amenities is not None else ["wifi", "tv"],
        base_price=Decimal("100.00"),
        currency="EUR",
        is_active=True,
    )
    standard = RatePlan(
        tenant_id=tenant_id,
        property_id=prop.id,
        name="Standard Rate",
        plan_type="standard",
        base_price=Decimal("100.00"),
        currency="EUR",
        is_dynamic=False,
        is_active=True,
    )
    dynamic = RatePlan(
        tenant_id=tenant_id,
        property_id=prop.id,
        name="Flex Dynamic",
        plan_type="dynamic",
        base_price=Decimal("100.00"),
        currency="EUR",
        is_dynamic=True,
        dynamic_rules=DYNAMIC_RULES,
        is_active=True,
    )
    db.add_all([room, standard, dynamic])
    await db.commit()
    return Hotel(property=prop, room=room, standard=standard, dynamic=dynamic)


async def add_nights(
    db: AsyncSession,
    hotel: Hotel,
    plan: RatePlan,
    start: date,
    count: int,
    available: int = 5,
    total: int = 10,
    price: str = "100.00",
    **extra,
) -> list[InventoryRecord]:
    records = [
        InventoryRecord(
            tenant_id=hotel.property.tenant_id,
            property_id=hotel.property.id,
            room_id=hotel.room.id,
            rate_plan_id=plan.id,
            date=start + timedelta(days=i),
            available_rooms=available,
            total_rooms=total,
            price=Decimal(price),
            currency="EUR",
            closed_to_arrival=False,
            closed_to_departure=False,
            stop_sell=False,
            restrictions={},
        )
        for i in range(count)
    ]
    for record in records:
        for key, value in extra.items():
            setattr(record, key, value)
    db.add_all(records)
    await db.commit()
    return records


@pytest.fixture
async def hotel(db) -> Hotel:
    return await create_hotel(db)


@pytest.fixture
async def client(session_factory):
    from pms.main import app

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
