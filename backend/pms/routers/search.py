"""Search router: availability search and search-page metadata."""

import uuid
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pms.database import get_db
from pms.dependencies import get_tenant_id
from pms.schemas.search import (
    PopularDestination,
    SearchFiltersResponse,
    SearchRequest,
    SearchResponse,
    SuggestionsResponse,
)
from pms.services.search_service import search_service

router = APIRouter()


@router.post("", response_model=SearchResponse)
async def search(
    req: SearchRequest,
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    """Room and rate plan combinations available for every night of the stay."""
    return await search_service.search(db, tenant_id, req.model_dump())


@router.get("/suggestions", response_model=SuggestionsResponse)
async def suggestions(
    q: str = Query(""),
    kind: Literal["property", "city"] | None = Query(None, alias="type"),
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    return await search_service.get_suggestions(db, tenant_id, q, kind=kind)


@router.get("/filters", response_model=SearchFiltersResponse)
async def filters(
    property_id: uuid.UUID | None = Query(None, alias="propertyId"),
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    return await search_service.get_filters(db, tenant_id, property_id)


@router.get("/popular-destinations", response_model=list[PopularDestination])
async def popular_destinations(
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
    tenant_id: uuid.UUID = Depends(get_tenant_id),
):
    return await search_service.get_popular_destinations(db, tenant_id, limit)
