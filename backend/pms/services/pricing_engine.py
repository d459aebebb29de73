"""Dynamic pricing engine: multiplier chain over a nightly base price.

The chain is fixed: base → demand → season → occupancy → clamp → round.
``calculate_dynamic_price`` is pure; the ``PricingEngine`` methods add the
rate plan lookups the HTTP layer needs.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

import pydantic
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pms.errors import NotFoundError, ValidationError
from pms.models.booking import Booking
from pms.models.inventory import InventoryRecord
from pms.models.property import RatePlan
from pms.schemas.pricing import DynamicRules

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
ONE = Decimal("1")

LOW_OCCUPANCY_THRESHOLD = Decimal("0.3")
HIGH_OCCUPANCY_THRESHOLD = Decimal("0.8")

DEFAULT_DEMAND_LEVEL = "medium"
DEFAULT_SEASON = "normal"
DEFAULT_OCCUPANCY_RATE = Decimal("0.5")


def to_cents(value: Decimal) -> Decimal:
    """Round half-up to two decimal places."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceCalculation:
    price: Decimal
    base_multiplier: Decimal = ONE
    demand_multiplier: Decimal = ONE
    season_multiplier: Decimal = ONE
    occupancy_multiplier: Decimal = ONE
    min_price: Decimal | None = None
    max_price: Decimal | None = None

    def applied_rules(self) -> dict:
        return {
            "base_multiplier": float(self.base_multiplier),
            "demand_multiplier": float(self.demand_multiplier),
            "season_multiplier": float(self.season_multiplier),
            "occupancy_multiplier": float(self.occupancy_multiplier),
            "min_price": float(self.min_price) if self.min_price is not None else None,
            "max_price": float(self.max_price) if self.max_price is not None else None,
        }


def calculate_dynamic_price(
    base_price: Decimal,
    rules: DynamicRules,
    demand_level: str = DEFAULT_DEMAND_LEVEL,
    season: str = DEFAULT_SEASON,
    occupancy_rate: Decimal = DEFAULT_OCCUPANCY_RATE,
) -> PriceCalculation:
    """Apply a rate plan's dynamic rules to one night's base price.

    Absent multipliers are the identity. ``occupancy_rate`` is not clamped to
    [0, 1]; values outside the range simply fall into the low or high band.
    """
    base_price = Decimal(str(base_price))
    occupancy_rate = Decimal(str(occupancy_rate))
    if base_price < 0:
        raise ValidationError("basePrice must be greater than or equal to 0")

    price = base_price

    base_multiplier = rules.base_multiplier if rules.base_multiplier is not None else ONE
    price *= base_multiplier

    demand_multiplier = rules.demand_multipliers.get(demand_level, ONE)
    price *= demand_multiplier

    season_multiplier = rules.season_multipliers.get(season, ONE)
    price *= season_multiplier

    occupancy_multiplier = ONE
    bands = rules.occupancy_multipliers
    if bands is not None:
        if occupancy_rate < LOW_OCCUPANCY_THRESHOLD and bands.low_occupancy is not None:
            occupancy_multiplier = bands.low_occupancy
        elif occupancy_rate > HIGH_OCCUPANCY_THRESHOLD and bands.high_occupancy is not None:
            occupancy_multiplier = bands.high_occupancy
    price *= occupancy_multiplier

    if rules.min_price is not None and price < rules.min_price:
        price = rules.min_price
    if rules.max_price is not None and price > rules.max_price:
        price = rules.max_price

    return PriceCalculation(
        price=to_cents(price),
        base_multiplier=base_multiplier,
        demand_multiplier=demand_multiplier,
        season_multiplier=season_multiplier,
        occupancy_multiplier=occupancy_multiplier,
        min_price=rules.min_price,
        max_price=rules.max_price,
    )


def parse_rules(raw: dict | None) -> DynamicRules:
    """Validate a stored ``dynamic_rules`` mapping into typed rules."""
    try:
        return DynamicRules.model_validate(raw or {})
    except pydantic.ValidationError as e:
        raise ValidationError(
            [f"dynamicRules.{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()],
            message="Invalid dynamic pricing rules",
        )


def occupancy_rate_for(record: InventoryRecord) -> Decimal:
    """Share of the night's rooms already sold."""
    if not record.total_rooms:
        return DEFAULT_OCCUPANCY_RATE
    sold = record.total_rooms - record.available_rooms
    return Decimal(sold) / Decimal(record.total_rooms)


@dataclass
class NightPrice:
    date: date
    price: Decimal
    available_rooms: int
    calculation: PriceCalculation | None = field(default=None, repr=False)


class PricingEngine:
    """Resolves nightly prices for rate plans, dynamic or not."""

    def nightly_price(self, rate_plan: RatePlan, record: InventoryRecord) -> NightPrice:
        """Price one inventory night under a rate plan.

        Non-dynamic plans sell at the stored price exactly. Dynamic plans use
        the stored price as base; demand level and season come from the
        night's restrictions when set there.
        """
        stored = Decimal(str(record.price))
        if not rate_plan.is_dynamic:
            return NightPrice(date=record.date, price=stored, available_rooms=record.available_rooms)

        extras = record.restrictions or {}
        calculation = calculate_dynamic_price(
            stored,
            parse_rules(rate_plan.dynamic_rules),
            demand_level=extras.get("demand_level", DEFAULT_DEMAND_LEVEL),
            season=extras.get("season", DEFAULT_SEASON),
            occupancy_rate=occupancy_rate_for(record),
        )
        return NightPrice(
            date=record.date,
            price=calculation.price,
            available_rooms=record.available_rooms,
            calculation=calculation,
        )

    async def calculate_for_rate_plan(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        rate_plan_id: uuid.UUID,
        room_id: uuid.UUID,
        night: date,
        base_price: Decimal,
        demand_level: str = DEFAULT_DEMAND_LEVEL,
        season: str = DEFAULT_SEASON,
        occupancy_rate: Decimal = DEFAULT_OCCUPANCY_RATE,
    ) -> dict:
        """Preview the dynamic price of a night for a dynamic rate plan."""
        result = await db.execute(
            select(RatePlan).where(
                RatePlan.id == rate_plan_id,
                RatePlan.tenant_id == tenant_id,
                RatePlan.is_dynamic.is_(True),
            )
        )
        rate_plan = result.scalar_one_or_none()
        if not rate_plan:
            raise NotFoundError("Rate plan not found or not dynamic")

        calculation = calculate_dynamic_price(
            base_price,
            parse_rules(rate_plan.dynamic_rules),
            demand_level=demand_level,
            season=season,
            occupancy_rate=occupancy_rate,
        )

        return {
            "rate_plan_id": rate_plan_id,
            "room_id": room_id,
            "date": night,
            "base_price": float(base_price),
            "calculated_price": float(calculation.price),
            "demand_level": demand_level,
            "season": season,
            "occupancy_rate": float(occupancy_rate),
            "applied_rules": calculation.applied_rules(),
        }

    async def rate_plan_stats(
        self, db: AsyncSession, tenant_id: uuid.UUID, rate_plan_id: uuid.UUID
    ) -> dict:
        result = await db.execute(
            select(RatePlan.id).where(RatePlan.id == rate_plan_id, RatePlan.tenant_id == tenant_id)
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError("Rate plan not found")

        inv = (
            await db.execute(
                select(
                    func.count(InventoryRecord.id),
                    func.avg(InventoryRecord.price),
                    func.min(InventoryRecord.price),
                    func.max(InventoryRecord.price),
                ).where(
                    InventoryRecord.rate_plan_id == rate_plan_id,
                    InventoryRecord.tenant_id == tenant_id,
                )
            )
        ).one()

        confirmed = Booking.status == "confirmed"
        bookings = (
            await db.execute(
                select(
                    func.count(Booking.id),
                    func.count(case((confirmed, 1))),
                    func.coalesce(func.sum(case((confirmed, Booking.total_amount), else_=0)), 0),
                ).where(Booking.rate_plan_id == rate_plan_id, Booking.tenant_id == tenant_id)
            )
        ).one()

        return {
            "total_inventory_records": inv[0],
            "total_bookings": bookings[0],
            "confirmed_bookings": bookings[1],
            "total_revenue": float(bookings[2] or 0),
            "avg_price": float(inv[1] or 0),
            "min_price": float(inv[2] or 0),
            "max_price": float(inv[3] or 0),
        }


pricing_engine = PricingEngine()
