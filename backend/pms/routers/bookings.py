"""Bookings router: booking commit, lifecycle and reporting."""

import uuid
from datetime import date as date_type

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pms.database import get_db
from pms.dependencies import get_tenant_id
from pms.schemas.booking import (
    BookingCancelRequest,
    BookingCreateRequest,
    BookingDetailResponse,
    BookingListResponse,
    BookingStatsResponse,
    BookingUpdateRequest,
)
from pms.services.booking_service import booking_service

router = APIRouter()


@router.post("", status_code=201, response_model=BookingDetailResponse)
async def create_booking(
    req: BookingCreateRequest,
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    """Create a booking and consume its inventory in one transaction."""
    return await booking_service.create(db, tenant_id, req.model_dump())


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    status: str | None = Query(None),
    channel: str | None = Query(None),
    property_id: uuid.UUID | None = Query(None, alias="propertyId"),
    room_id: uuid.UUID | None = Query(None, alias="roomId"),
    guest_id: uuid.UUID | None = Query(None, alias="guestId"),
    check_in_from: date_type | None = Query(None, alias="checkInFrom"),
    check_out_to: date_type | None = Query(None, alias="checkOutTo"),
    search: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    filters = {
        "status": status,
        "channel": channel,
        "property_id": property_id,
        "room_id": room_id,
        "guest_id": guest_id,
        "check_in_from": check_in_from,
        "check_out_to": check_out_to,
        "search": search,
    }
    return await booking_service.list(db, tenant_id, filters, page=page, limit=limit)


@router.get("/stats", response_model=BookingStatsResponse)
async def booking_stats(
    period: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    return await booking_service.stats(db, tenant_id, period_days=period)


@router.get("/{booking_id}", response_model=BookingDetailResponse)
async def get_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    return await booking_service.get(db, tenant_id, booking_id)


@router.put("/{booking_id}", response_model=BookingDetailResponse)
async def update_booking(
    booking_id: uuid.UUID,
    req: BookingUpdateRequest,
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    return await booking_service.update(db, tenant_id, booking_id, req.model_dump())


@router.put("/{booking_id}/cancel", response_model=BookingDetailResponse)
async def cancel_booking(
    booking_id: uuid.UUID,
    req: BookingCancelRequest | None = None,
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    """Cancel a booking and restore the inventory of its remaining nights."""
    reason = req.reason if req else None
    return await booking_service.cancel(db, tenant_id, booking_id, reason=reason)
