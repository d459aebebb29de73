import uuid
from datetime import date as date_type, datetime
from decimal import Decimal

from pydantic import Field

from pms.schemas.common import CamelModel, Pagination


class InventoryRecordResponse(CamelModel):
    id: uuid.UUID
    property_id: uuid.UUID
    room_id: uuid.UUID
    rate_plan_id: uuid.UUID
    date: date_type
    available_rooms: int
    total_rooms: int
    price: float
    currency: str
    min_stay: int | None = None
    max_stay: int | None = None
    closed_to_arrival: bool
    closed_to_departure: bool
    stop_sell: bool
    restrictions: dict | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CalendarEntry(InventoryRecordResponse):
    room_name: str
    room_type: str
    rate_plan_name: str
    plan_type: str


class CalendarResponse(CamelModel):
    inventory: list[CalendarEntry]
    pagination: Pagination


class InventoryUpdateRequest(CamelModel):
    available_rooms: int | None = None
    total_rooms: int | None = None
    price: Decimal | None = None
    min_stay: int | None = Field(None, ge=1)
    max_stay: int | None = Field(None, ge=1)
    closed_to_arrival: bool | None = None
    closed_to_departure: bool | None = None
    stop_sell: bool | None = None
    restrictions: dict | None = None


class BulkUpdateItem(CamelModel):
    room_id: uuid.UUID | None = None
    rate_plan_id: uuid.UUID | None = None
    date: date_type | None = None
    available_rooms: int | None = None
    total_rooms: int | None = None
    price: Decimal | None = None
    min_stay: int | None = Field(None, ge=1)
    closed_to_arrival: bool | None = None
    closed_to_departure: bool | None = None
    stop_sell: bool | None = None
    restrictions: dict | None = None


class BulkUpdateRequest(CamelModel):
    updates: list[BulkUpdateItem]


class BulkUpdateItemResult(CamelModel):
    room_id: uuid.UUID | None = None
    rate_plan_id: uuid.UUID | None = None
    date: date_type | None = None
    success: bool
    action: str | None = None  # updated | created
    inventory_id: uuid.UUID | None = None
    error: str | None = None


class BulkUpdateResponse(CamelModel):
    total_updates: int
    successful: int
    failed: int
    results: list[BulkUpdateItemResult]


class ProvisionRequest(CamelModel):
    property_id: uuid.UUID
    room_id: uuid.UUID
    rate_plan_ids: list[uuid.UUID] = Field(min_length=1)
    date_start: date_type
    date_count: int = Field(ge=1)
    total_rooms: int = Field(ge=0)


class ProvisionResponse(CamelModel):
    created: int
    skipped: int


class AvailabilityCheckRequest(CamelModel):
    check_in_date: date_type
    check_out_date: date_type
    adults: int = Field(1, ge=1)
    children: int = Field(0, ge=0)
    rooms: int = Field(1, ge=1)
    property_id: uuid.UUID | None = None
    room_id: uuid.UUID | None = None


class RatePlanAvailability(CamelModel):
    rate_plan_id: uuid.UUID
    rate_plan_name: str
    plan_type: str
    avg_price: float
    min_price: float
    max_price: float
    total_price: float
    min_available_rooms: int


class RoomAvailability(CamelModel):
    room_id: uuid.UUID
    room_name: str
    room_type: str
    max_occupancy: int
    max_adults: int
    max_children: int
    amenities: list
    currency: str
    min_available_rooms: int
    avg_price: float
    min_price: float
    max_price: float
    rate_plans: list[RatePlanAvailability]


class AvailabilityCheckResponse(CamelModel):
    check_in_date: date_type
    check_out_date: date_type
    adults: int
    children: int
    rooms: int
    nights: int
    available_rooms: list[RoomAvailability]
