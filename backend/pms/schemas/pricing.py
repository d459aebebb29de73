import uuid
from datetime import date as date_type, datetime
from decimal import Decimal
from typing import Annotated

from pydantic import Field

from pms.schemas.common import CamelModel, Pagination

Multiplier = Annotated[Decimal, Field(gt=0)]


class OccupancyMultipliers(CamelModel):
    low_occupancy: Decimal | None = Field(None, gt=0)
    high_occupancy: Decimal | None = Field(None, gt=0)


class DynamicRules(CamelModel):
    """Typed view of a rate plan's ``dynamic_rules`` column.

    Every field is optional; an absent multiplier is the identity.
    """

    base_multiplier: Decimal | None = Field(None, gt=0)
    demand_multipliers: dict[str, Multiplier] = Field(default_factory=dict)
    season_multipliers: dict[str, Multiplier] = Field(default_factory=dict)
    occupancy_multipliers: OccupancyMultipliers | None = None
    min_price: Decimal | None = Field(None, ge=0)
    max_price: Decimal | None = Field(None, ge=0)


class AppliedRules(CamelModel):
    base_multiplier: float
    demand_multiplier: float
    season_multiplier: float
    occupancy_multiplier: float
    min_price: float | None = None
    max_price: float | None = None


class DynamicPricingRequest(CamelModel):
    rate_plan_id: uuid.UUID
    room_id: uuid.UUID
    date: date_type
    base_price: Decimal = Field(ge=0)
    demand_level: str = "medium"  # low | medium | high
    season: str = "normal"  # low_season | normal | high_season
    occupancy_rate: Decimal = Decimal("0.5")


class DynamicPricingResponse(CamelModel):
    rate_plan_id: uuid.UUID
    room_id: uuid.UUID
    date: date_type
    base_price: float
    calculated_price: float
    demand_level: str
    season: str
    occupancy_rate: float
    applied_rules: AppliedRules


class RatePlanStatsResponse(CamelModel):
    total_inventory_records: int
    total_bookings: int
    confirmed_bookings: int
    total_revenue: float
    avg_price: float
    min_price: float
    max_price: float


class RatePlanCreateRequest(CamelModel):
    property_id: uuid.UUID
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    plan_type: str = "standard"  # standard | member | corporate | promo | dynamic
    base_price: Decimal = Field(Decimal("0"), ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    is_dynamic: bool = False
    dynamic_rules: dict | None = None
    restrictions: dict | None = None


class RatePlanUpdateRequest(CamelModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    plan_type: str | None = None
    base_price: Decimal | None = Field(None, ge=0)
    currency: str | None = Field(None, min_length=3, max_length=3)
    is_dynamic: bool | None = None
    dynamic_rules: dict | None = None
    restrictions: dict | None = None
    is_active: bool | None = None


class RatePlanResponse(CamelModel):
    id: uuid.UUID
    property_id: uuid.UUID
    name: str
    description: str | None = None
    plan_type: str
    base_price: float
    currency: str
    is_dynamic: bool
    dynamic_rules: dict | None = None
    restrictions: dict | None = None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RatePlanListResponse(CamelModel):
    rate_plans: list[RatePlanResponse]
    pagination: Pagination
