"""Inventory router: calendar, per-date lookups, manager edits and provisioning."""

import uuid
from datetime import date as date_type

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pms.database import get_db
from pms.dependencies import get_tenant_id
from pms.schemas.inventory import (
    AvailabilityCheckRequest,
    AvailabilityCheckResponse,
    BulkUpdateRequest,
    BulkUpdateResponse,
    CalendarResponse,
    InventoryRecordResponse,
    InventoryUpdateRequest,
    ProvisionRequest,
    ProvisionResponse,
)
from pms.services.inventory_service import inventory_service
from pms.services.search_service import search_service

router = APIRouter()


@router.post("/availability", response_model=AvailabilityCheckResponse)
async def check_availability(
    req: AvailabilityCheckRequest,
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    """Rooms and rate plans that can sell the whole stay."""
    return await search_service.check_availability(db, tenant_id, req.model_dump())


@router.get("/calendar", response_model=CalendarResponse)
async def get_calendar(
    start_date: date_type = Query(..., alias="startDate"),
    end_date: date_type = Query(..., alias="endDate"),
    property_id: uuid.UUID | None = Query(None, alias="propertyId"),
    room_id: uuid.UUID | None = Query(None, alias="roomId"),
    rate_plan_id: uuid.UUID | None = Query(None, alias="ratePlanId"),
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    return await inventory_service.get_calendar(
        db,
        tenant_id,
        start_date,
        end_date,
        property_id=property_id,
        room_id=room_id,
        rate_plan_id=rate_plan_id,
        page=page,
        limit=limit,
    )


@router.get("/by-date", response_model=list[InventoryRecordResponse])
async def get_by_date(
    property_id: uuid.UUID = Query(..., alias="propertyId"),
    date: date_type = Query(...),
    room_id: uuid.UUID | None = Query(None, alias="roomId"),
    rate_plan_id: uuid.UUID | None = Query(None, alias="ratePlanId"),
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    return await inventory_service.get_by_date(
        db, tenant_id, property_id, date, room_id=room_id, rate_plan_id=rate_plan_id
    )


@router.put("/bulk-update", response_model=BulkUpdateResponse)
async def bulk_update(
    req: BulkUpdateRequest,
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    """Apply many per-night updates; each item succeeds or fails on its own."""
    return await inventory_service.bulk_update(
        db, tenant_id, [item.model_dump() for item in req.updates]
    )


@router.post("/provision", status_code=201, response_model=ProvisionResponse)
async def provision(
    req: ProvisionRequest,
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    return await inventory_service.provision_range(
        db,
        tenant_id,
        property_id=req.property_id,
        room_id=req.room_id,
        rate_plan_ids=req.rate_plan_ids,
        date_start=req.date_start,
        date_count=req.date_count,
        total_rooms=req.total_rooms,
    )


@router.put("/{inventory_id}", response_model=InventoryRecordResponse)
async def update_inventory(
    inventory_id: uuid.UUID,
    req: InventoryUpdateRequest,
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    return await inventory_service.update(db, tenant_id, inventory_id, req.model_dump())
