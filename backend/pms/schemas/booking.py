import uuid
from datetime import date as date_type, datetime
from typing import Literal

from pydantic import EmailStr, Field

from pms.schemas.common import CamelModel, Pagination


class GuestInfo(CamelModel):
    email: EmailStr
    first_name: str
    last_name: str
    phone: str | None = None
    nationality: str | None = None


class BookingCreateRequest(CamelModel):
    property_id: uuid.UUID
    room_id: uuid.UUID
    rate_plan_id: uuid.UUID
    guest_id: uuid.UUID | None = None
    guest_info: GuestInfo | None = None
    check_in_date: date_type
    check_out_date: date_type
    adults: int = Field(1, ge=1)
    children: int = Field(0, ge=0)
    rooms: int = Field(1, ge=1)
    special_requests: str | None = None
    channel: str = "direct"


class GuestSummary(CamelModel):
    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    phone: str | None = None


class BookingResponse(CamelModel):
    id: uuid.UUID
    booking_reference: str
    property_id: uuid.UUID
    room_id: uuid.UUID
    rate_plan_id: uuid.UUID
    guest_id: uuid.UUID | None = None
    channel: str
    status: str
    check_in_date: date_type
    check_out_date: date_type
    adults: int
    children: int
    rooms: int
    total_nights: int
    base_price: float
    taxes: float
    fees: float
    total_amount: float
    currency: str
    payment_status: str
    payment_method: str | None = None
    special_requests: str | None = None
    guest_info: dict | None = None
    nightly_prices: list | None = None
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BookingDetailResponse(BookingResponse):
    guest: GuestSummary | None = None


class BookingListResponse(CamelModel):
    bookings: list[BookingDetailResponse]
    pagination: Pagination


class BookingUpdateRequest(CamelModel):
    status: Literal["completed", "no_show"] | None = None
    payment_status: Literal["pending", "paid", "failed", "refunded"] | None = None
    payment_method: str | None = None
    special_requests: str | None = None
    guest_info: dict | None = None


class BookingCancelRequest(CamelModel):
    reason: str | None = None


class ChannelBreakdown(CamelModel):
    channel: str
    booking_count: int
    revenue: float


class BookingStatsResponse(CamelModel):
    total_bookings: int
    confirmed_bookings: int
    cancelled_bookings: int
    completed_bookings: int
    no_show_bookings: int
    recent_bookings: int
    total_revenue: float
    recent_revenue: float
    avg_booking_value: float
    channel_breakdown: list[ChannelBreakdown]
