"""Rates router: rate plan catalogue, dynamic price preview and statistics."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pms.database import get_db
from pms.dependencies import get_tenant_id
from pms.schemas.pricing import (
    DynamicPricingRequest,
    DynamicPricingResponse,
    RatePlanCreateRequest,
    RatePlanListResponse,
    RatePlanResponse,
    RatePlanStatsResponse,
    RatePlanUpdateRequest,
)
from pms.services.pricing_engine import pricing_engine
from pms.services.rate_plan_service import rate_plan_service

router = APIRouter()


@router.post("/calculate-dynamic", response_model=DynamicPricingResponse)
async def calculate_dynamic(
    req: DynamicPricingRequest,
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    return await pricing_engine.calculate_for_rate_plan(
        db,
        tenant_id,
        rate_plan_id=req.rate_plan_id,
        room_id=req.room_id,
        night=req.date,
        base_price=req.base_price,
        demand_level=req.demand_level,
        season=req.season,
        occupancy_rate=req.occupancy_rate,
    )


@router.get("/plans/{rate_plan_id}/stats", response_model=RatePlanStatsResponse)
async def rate_plan_stats(
    rate_plan_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    return await pricing_engine.rate_plan_stats(db, tenant_id, rate_plan_id)


@router.get("/plans", response_model=RatePlanListResponse)
async def list_rate_plans(
    property_id: uuid.UUID | None = Query(None, alias="propertyId"),
    plan_type: str | None = Query(None, alias="planType"),
    is_dynamic: bool | None = Query(None, alias="isDynamic"),
    include_inactive: bool = Query(False, alias="includeInactive"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    filters = {
        "property_id": property_id,
        "plan_type": plan_type,
        "is_dynamic": is_dynamic,
        "include_inactive": include_inactive,
    }
    return await rate_plan_service.list(db, tenant_id, filters, page=page, limit=limit)


@router.post("/plans", response_model=RatePlanResponse, status_code=201)
async def create_rate_plan(
    req: RatePlanCreateRequest,
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    """Create a rate plan; dynamic rules are validated before they are stored."""
    return await rate_plan_service.create(db, tenant_id, req.model_dump())


@router.get("/plans/{rate_plan_id}", response_model=RatePlanResponse)
async def get_rate_plan(
    rate_plan_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    return await rate_plan_service.get(db, tenant_id, rate_plan_id)


@router.put("/plans/{rate_plan_id}", response_model=RatePlanResponse)
async def update_rate_plan(
    rate_plan_id: uuid.UUID,
    req: RatePlanUpdateRequest,
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    return await rate_plan_service.update(db, tenant_id, rate_plan_id, req.model_dump(exclude_unset=True))


@router.delete("/plans/{rate_plan_id}", status_code=204)
async def delete_rate_plan(
    rate_plan_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    """Soft delete a rate plan without inventory."""
    await rate_plan_service.deactivate(db, tenant_id, rate_plan_id)
