"""Availability search: room/rate plan combinations that can sell a whole stay."""

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import and_, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pms.errors import ValidationError
from pms.models.booking import Booking
from pms.models.inventory import InventoryRecord
from pms.models.property import Property, RatePlan, Room
from pms.services.cache_service import cache_service
from pms.services.pricing_engine import NightPrice, pricing_engine, to_cents
from pms.services.stay import check_stay, stay_nights, validate_stay

logger = logging.getLogger(__name__)

SUGGESTION_LIMIT = 10
POPULAR_DESTINATION_WINDOW = timedelta(days=180)
FILTER_PRICE_WINDOW = timedelta(days=365)


@dataclass
class Candidate:
    """One (room, rate plan) pair that can sell every night of a stay."""

    property: Property
    room: Room
    rate_plan: RatePlan
    nights: list[NightPrice]
    rooms: int

    @property
    def prices(self) -> list[Decimal]:
        return [n.price for n in self.nights]

    @property
    def avg_price(self) -> Decimal:
        return to_cents(sum(self.prices) / len(self.prices))

    @property
    def total_price(self) -> Decimal:
        return to_cents(sum(self.prices) * self.rooms)

    @property
    def min_available_rooms(self) -> int:
        return min(n.available_rooms for n in self.nights)

    @property
    def currency(self) -> str:
        return self.rate_plan.currency or self.room.currency

    def to_dict(self) -> dict:
        prop, room, plan = self.property, self.room, self.rate_plan
        return {
            "property": {
                "id": prop.id,
                "name": prop.name,
                "star_rating": prop.star_rating,
                "address": prop.address,
                "city": prop.city,
                "country": prop.country,
                "amenities": prop.amenities or [],
            },
            "room": {
                "id": room.id,
                "name": room.name,
                "room_type": room.room_type,
                "max_occupancy": room.max_occupancy,
                "max_adults": room.max_adults,
                "max_children": room.max_children,
                "amenities": room.amenities or [],
            },
            "rate_plan": {
                "id": plan.id,
                "name": plan.name,
                "plan_type": plan.plan_type,
                "is_dynamic": plan.is_dynamic,
            },
            "nightly_rates": [
                {"date": n.date, "price": float(n.price), "available_rooms": n.available_rooms}
                for n in self.nights
            ],
            "avg_price": float(self.avg_price),
            "min_price": float(min(self.prices)),
            "max_price": float(max(self.prices)),
            "total_price": float(self.total_price),
            "total_nights": len(self.nights),
            "min_available_rooms": self.min_available_rooms,
            "currency": self.currency,
        }


def _has_any_amenity(room: Room, wanted: list[str]) -> bool:
    offered = {str(a).lower() for a in (room.amenities or [])}
    return any(a.lower() in offered for a in wanted)


def sort_candidates(candidates: list[Candidate], sort_by: str, sort_order: str) -> list[Candidate]:
    """Sort by the requested key; ties fall back to property name ascending."""
    by_name = sorted(candidates, key=lambda c: c.property.name)
    if sort_by == "rating":
        key = lambda c: c.property.star_rating or 0  # noqa: E731
    elif sort_by == "name":
        key = lambda c: c.property.name  # noqa: E731
    else:
        key = lambda c: c.avg_price  # noqa: E731
    return sorted(by_name, key=key, reverse=sort_order == "desc")


class SearchService:
    """Availability search plus the search-page metadata lookups."""

    async def find_candidates(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        check_in: date,
        check_out: date,
        adults: int = 1,
        children: int = 0,
        rooms: int = 1,
        property_id: uuid.UUID | None = None,
        room_id: uuid.UUID | None = None,
        city: str | None = None,
        country: str | None = None,
        room_type: str | None = None,
        amenities: list[str] | None = None,
    ) -> list[Candidate]:
        """Every (room, rate plan) whose inventory satisfies each night of the stay."""
        validate_stay(check_in, check_out)
        nights = stay_nights(check_in, check_out)

        conditions = [
            InventoryRecord.tenant_id == tenant_id,
            InventoryRecord.date >= check_in,
            InventoryRecord.date < check_out,
            Property.is_active.is_(True),
            Room.is_active.is_(True),
            RatePlan.is_active.is_(True),
            Room.max_adults >= adults,
            Room.max_children >= children,
            Room.max_occupancy >= adults + children,
        ]
        if property_id:
            conditions.append(Property.id == property_id)
        if room_id:
            conditions.append(Room.id == room_id)
        if city:
            conditions.append(func.lower(Property.city).contains(city.lower()))
        if country:
            conditions.append(func.lower(Property.country).contains(country.lower()))
        if room_type:
            conditions.append(Room.room_type == room_type)

        result = await db.execute(
            select(InventoryRecord, Room, RatePlan, Property)
            .join(Room, InventoryRecord.room_id == Room.id)
            .join(RatePlan, InventoryRecord.rate_plan_id == RatePlan.id)
            .join(Property, InventoryRecord.property_id == Property.id)
            .where(*conditions)
            .order_by(InventoryRecord.room_id, InventoryRecord.rate_plan_id, InventoryRecord.date)
            .execution_options(populate_existing=True)
        )

        grouped: dict[tuple, dict] = defaultdict(dict)
        entities: dict[tuple, tuple[Property, Room, RatePlan]] = {}
        for record, room, plan, prop in result.all():
            key = (room.id, plan.id)
            grouped[key][record.date] = record
            entities[key] = (prop, room, plan)

        candidates = []
        for key, records in grouped.items():
            prop, room, plan = entities[key]
            if amenities and not _has_any_amenity(room, amenities):
                continue
            if not check_stay(records, nights, rooms).ok:
                continue
            try:
                priced = [pricing_engine.nightly_price(plan, records[n]) for n in nights]
            except ValidationError as e:
                logger.warning(f"Skipping rate plan {plan.id} with invalid dynamic rules: {e.errors}")
                continue
            candidates.append(Candidate(property=prop, room=room, rate_plan=plan, nights=priced, rooms=rooms))

        return candidates

    async def search(self, db: AsyncSession, tenant_id: uuid.UUID, criteria: dict) -> dict:
        check_in = criteria["check_in_date"]
        check_out = criteria["check_out_date"]

        candidates = await self.find_candidates(
            db,
            tenant_id,
            check_in,
            check_out,
            adults=criteria.get("adults", 1),
            children=criteria.get("children", 0),
            rooms=criteria.get("rooms", 1),
            property_id=criteria.get("property_id"),
            city=criteria.get("city"),
            country=criteria.get("country"),
            room_type=criteria.get("room_type"),
            amenities=criteria.get("amenities"),
        )

        min_price = criteria.get("min_price")
        max_price = criteria.get("max_price")
        if min_price is not None:
            candidates = [c for c in candidates if c.avg_price >= min_price]
        if max_price is not None:
            candidates = [c for c in candidates if c.avg_price <= max_price]

        candidates = sort_candidates(
            candidates, criteria.get("sort_by", "price"), criteria.get("sort_order", "asc")
        )

        logger.info(
            f"Search {check_in} -> {check_out} for tenant {tenant_id}: {len(candidates)} results"
        )
        return {
            "search_criteria": criteria,
            "nights": (check_out - check_in).days,
            "total_results": len(candidates),
            "results": [c.to_dict() for c in candidates],
        }

    async def check_availability(self, db: AsyncSession, tenant_id: uuid.UUID, request: dict) -> dict:
        """Per-room availability, each room listing the rate plans that can sell the stay."""
        check_in = request["check_in_date"]
        check_out = request["check_out_date"]
        candidates = await self.find_candidates(
            db,
            tenant_id,
            check_in,
            check_out,
            adults=request.get("adults", 1),
            children=request.get("children", 0),
            rooms=request.get("rooms", 1),
            property_id=request.get("property_id"),
            room_id=request.get("room_id"),
        )

        by_room: dict[uuid.UUID, list[Candidate]] = defaultdict(list)
        for c in candidates:
            by_room[c.room.id].append(c)

        available = []
        for plans in by_room.values():
            plans.sort(key=lambda c: (c.avg_price, c.rate_plan.name))
            room = plans[0].room
            available.append({
                "room_id": room.id,
                "room_name": room.name,
                "room_type": room.room_type,
                "max_occupancy": room.max_occupancy,
                "max_adults": room.max_adults,
                "max_children": room.max_children,
                "amenities": room.amenities or [],
                "currency": plans[0].currency,
                "min_available_rooms": max(c.min_available_rooms for c in plans),
                "avg_price": float(min(c.avg_price for c in plans)),
                "min_price": float(min(min(c.prices) for c in plans)),
                "max_price": float(max(max(c.prices) for c in plans)),
                "rate_plans": [
                    {
                        "rate_plan_id": c.rate_plan.id,
                        "rate_plan_name": c.rate_plan.name,
                        "plan_type": c.rate_plan.plan_type,
                        "avg_price": float(c.avg_price),
                        "min_price": float(min(c.prices)),
                        "max_price": float(max(c.prices)),
                        "total_price": float(c.total_price),
                        "min_available_rooms": c.min_available_rooms,
                    }
                    for c in plans
                ],
            })
        available.sort(key=lambda r: (r["avg_price"], r["room_name"]))

        return {
            "check_in_date": check_in,
            "check_out_date": check_out,
            "adults": request.get("adults", 1),
            "children": request.get("children", 0),
            "rooms": request.get("rooms", 1),
            "nights": (check_out - check_in).days,
            "available_rooms": available,
        }

    async def get_suggestions(
        self, db: AsyncSession, tenant_id: uuid.UUID, query: str, kind: str | None = None
    ) -> dict:
        """Property and city suggestions for a partial query."""
        query = (query or "").strip()
        if len(query) < 2:
            return {"query": query, "suggestions": []}

        pattern = f"%{query.lower()}%"
        suggestions = []

        if kind in (None, "property"):
            result = await db.execute(
                select(Property)
                .where(
                    Property.tenant_id == tenant_id,
                    Property.is_active.is_(True),
                    func.lower(Property.name).like(pattern),
                )
                .order_by(Property.name)
                .limit(SUGGESTION_LIMIT)
            )
            for prop in result.scalars().all():
                location = f"{prop.city}, {prop.country}"
                suggestions.append({
                    "type": "property",
                    "id": prop.id,
                    "name": prop.name,
                    "location": location,
                    "display": f"{prop.name} - {location}",
                })

        if kind in (None, "city"):
            result = await db.execute(
                select(Property.city, Property.country)
                .where(
                    Property.tenant_id == tenant_id,
                    Property.is_active.is_(True),
                    func.lower(Property.city).like(pattern),
                )
                .group_by(Property.city, Property.country)
                .order_by(Property.city)
                .limit(SUGGESTION_LIMIT)
            )
            for city, country in result.all():
                suggestions.append({
                    "type": "city",
                    "name": city,
                    "country": country,
                    "display": f"{city}, {country}",
                })

        return {"query": query, "suggestions": suggestions}

    async def get_filters(
        self, db: AsyncSession, tenant_id: uuid.UUID, property_id: uuid.UUID | None = None
    ) -> dict:
        cached = await cache_service.get_filters(tenant_id, property_id)
        if cached is not None:
            return cached

        room_query = select(distinct(Room.room_type)).where(
            Room.tenant_id == tenant_id, Room.is_active.is_(True)
        )
        prop_query = select(Property.amenities).where(
            Property.tenant_id == tenant_id, Property.is_active.is_(True)
        )
        today = date.today()
        price_query = select(func.min(InventoryRecord.price), func.max(InventoryRecord.price)).where(
            InventoryRecord.tenant_id == tenant_id,
            InventoryRecord.date >= today,
            InventoryRecord.date <= today + FILTER_PRICE_WINDOW,
        )
        if property_id:
            room_query = room_query.where(Room.property_id == property_id)
            prop_query = prop_query.where(Property.id == property_id)
            price_query = price_query.where(InventoryRecord.property_id == property_id)

        room_types = sorted(r for r in (await db.execute(room_query)).scalars().all() if r)
        amenities = set()
        for listed in (await db.execute(prop_query)).scalars().all():
            amenities.update(listed or [])
        low, high = (await db.execute(price_query)).one()

        filters = {
            "room_types": room_types,
            "amenities": sorted(amenities),
            "price_range": {"min": float(low or 0), "max": float(high or 0)},
        }
        await cache_service.set_filters(tenant_id, property_id, filters)
        return filters

    async def get_popular_destinations(
        self, db: AsyncSession, tenant_id: uuid.UUID, limit: int = 10
    ) -> list[dict]:
        """Cities ranked by bookings made in the last six months."""
        cached = await cache_service.get_destinations(tenant_id, limit)
        if cached is not None:
            return cached

        since = datetime.now(timezone.utc) - POPULAR_DESTINATION_WINDOW
        booking_count = func.count(distinct(Booking.id))
        property_count = func.count(distinct(Property.id))
        result = await db.execute(
            select(
                Property.city,
                Property.country,
                booking_count,
                property_count,
                func.avg(Property.star_rating),
            )
            .outerjoin(
                Booking,
                and_(
                    Booking.property_id == Property.id,
                    Booking.tenant_id == tenant_id,
                    Booking.created_at >= since,
                ),
            )
            .where(Property.tenant_id == tenant_id, Property.is_active.is_(True))
            .group_by(Property.city, Property.country)
            .having(booking_count > 0)
            .order_by(booking_count.desc(), property_count.desc(), Property.city.asc())
            .limit(limit)
        )

        destinations = [
            {
                "city": city,
                "country": country,
                "booking_count": bookings,
                "property_count": properties,
                "avg_rating": round(float(rating or 0), 1),
            }
            for city, country, bookings, properties, rating in result.all()
        ]
        await cache_service.set_destinations(tenant_id, limit, destinations)
        return destinations


search_service = SearchService()
