import uuid
from datetime import date as date_type
from decimal import Decimal
from typing import Literal

from pydantic import Field

from pms.schemas.common import CamelModel


class SearchRequest(CamelModel):
    check_in_date: date_type
    check_out_date: date_type
    adults: int = Field(1, ge=1)
    children: int = Field(0, ge=0)
    rooms: int = Field(1, ge=1)
    property_id: uuid.UUID | None = None
    city: str | None = None
    country: str | None = None
    room_type: str | None = None
    min_price: Decimal | None = Field(None, ge=0)
    max_price: Decimal | None = Field(None, ge=0)
    amenities: list[str] = Field(default_factory=list)
    sort_by: Literal["price", "rating", "name"] = "price"
    sort_order: Literal["asc", "desc"] = "asc"


class PropertySummary(CamelModel):
    id: uuid.UUID
    name: str
    star_rating: int | None = None
    address: str | None = None
    city: str
    country: str
    amenities: list = Field(default_factory=list)


class RoomSummary(CamelModel):
    id: uuid.UUID
    name: str
    room_type: str
    max_occupancy: int
    max_adults: int
    max_children: int
    amenities: list = Field(default_factory=list)


class RatePlanSummary(CamelModel):
    id: uuid.UUID
    name: str
    plan_type: str
    is_dynamic: bool


class NightlyRate(CamelModel):
    date: date_type
    price: float
    available_rooms: int


class SearchResult(CamelModel):
    property: PropertySummary
    room: RoomSummary
    rate_plan: RatePlanSummary
    nightly_rates: list[NightlyRate]
    avg_price: float
    min_price: float
    max_price: float
    total_price: float
    total_nights: int
    min_available_rooms: int
    currency: str


class SearchResponse(CamelModel):
    search_criteria: SearchRequest
    nights: int
    total_results: int
    results: list[SearchResult]


class Suggestion(CamelModel):
    type: str  # property | city
    id: uuid.UUID | None = None
    name: str
    country: str | None = None
    location: str | None = None
    display: str


class SuggestionsResponse(CamelModel):
    query: str
    suggestions: list[Suggestion]


class PriceRange(CamelModel):
    min: float
    max: float


class SearchFiltersResponse(CamelModel):
    room_types: list[str]
    amenities: list[str]
    price_range: PriceRange


class PopularDestination(CamelModel):
    city: str
    country: str
    booking_count: int
    property_count: int
    avg_rating: float
