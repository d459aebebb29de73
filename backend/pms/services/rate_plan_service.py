"""Rate plan catalogue: create, edit and retire a property's rate plans.

Dynamic rule sets are validated when they are written, so search and
booking never meet a plan whose rules cannot be priced.
"""

import logging
import math
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pms.errors import ConflictError, NotFoundError, ValidationError
from pms.models.inventory import InventoryRecord
from pms.models.property import Property, RatePlan
from pms.services.pricing_engine import parse_rules

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "name",
    "description",
    "plan_type",
    "base_price",
    "currency",
    "is_dynamic",
    "dynamic_rules",
    "restrictions",
    "is_active",
)


class RatePlanService:
    """Tenant-scoped rate plan writes and lookups."""

    async def _get(self, db: AsyncSession, tenant_id: uuid.UUID, rate_plan_id: uuid.UUID) -> RatePlan:
        result = await db.execute(
            select(RatePlan)
            .where(RatePlan.id == rate_plan_id, RatePlan.tenant_id == tenant_id)
            .execution_options(populate_existing=True)
        )
        rate_plan = result.scalar_one_or_none()
        if not rate_plan:
            raise NotFoundError("Rate plan not found")
        return rate_plan

    async def _name_taken(
        self,
        db: AsyncSession,
        property_id: uuid.UUID,
        name: str,
        exclude_id: uuid.UUID | None = None,
    ) -> bool:
        query = select(RatePlan.id).where(RatePlan.property_id == property_id, RatePlan.name == name)
        if exclude_id:
            query = query.where(RatePlan.id != exclude_id)
        return (await db.execute(query)).first() is not None

    async def list(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        filters: dict | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        filters = filters or {}
        conditions = [RatePlan.tenant_id == tenant_id]
        if filters.get("property_id"):
            conditions.append(RatePlan.property_id == filters["property_id"])
        if filters.get("plan_type"):
            conditions.append(RatePlan.plan_type == filters["plan_type"])
        if filters.get("is_dynamic") is not None:
            conditions.append(RatePlan.is_dynamic.is_(filters["is_dynamic"]))
        if filters.get("include_inactive") is not True:
            conditions.append(RatePlan.is_active.is_(True))

        total = (
            await db.execute(select(func.count(RatePlan.id)).where(*conditions))
        ).scalar_one()
        result = await db.execute(
            select(RatePlan)
            .where(*conditions)
            .order_by(RatePlan.created_at.desc(), RatePlan.name)
            .offset((page - 1) * limit)
            .limit(limit)
        )

        return {
            "rate_plans": list(result.scalars().all()),
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit) if limit else 0,
            },
        }

    async def get(self, db: AsyncSession, tenant_id: uuid.UUID, rate_plan_id: uuid.UUID) -> RatePlan:
        return await self._get(db, tenant_id, rate_plan_id)

    async def create(self, db: AsyncSession, tenant_id: uuid.UUID, data: dict) -> RatePlan:
        prop = (
            await db.execute(
                select(Property).where(
                    Property.id == data["property_id"],
                    Property.tenant_id == tenant_id,
                    Property.is_active.is_(True),
                )
            )
        ).scalar_one_or_none()
        if not prop:
            raise NotFoundError("Property not found")

        if data.get("dynamic_rules") is not None:
            parse_rules(data["dynamic_rules"])
        if await self._name_taken(db, prop.id, data["name"]):
            raise ConflictError("Rate plan name already exists for this property")

        rate_plan = RatePlan(
            tenant_id=tenant_id,
            property_id=prop.id,
            name=data["name"],
            description=data.get("description"),
            plan_type=data.get("plan_type") or "standard",
            base_price=data.get("base_price") or 0,
            currency=data.get("currency") or prop.currency,
            is_dynamic=bool(data.get("is_dynamic")),
            dynamic_rules=data.get("dynamic_rules") or {},
            restrictions=data.get("restrictions") or {},
            is_active=True,
        )
        db.add(rate_plan)
        await db.commit()
        await db.refresh(rate_plan)
        logger.info(f"Rate plan created: {rate_plan.name} for property {prop.id}")
        return rate_plan

    async def update(
        self, db: AsyncSession, tenant_id: uuid.UUID, rate_plan_id: uuid.UUID, fields: dict
    ) -> RatePlan:
        values = {key: fields[key] for key in UPDATABLE_FIELDS if fields.get(key) is not None}
        if not values:
            raise ValidationError("No valid fields to update")

        rate_plan = await self._get(db, tenant_id, rate_plan_id)
        if "dynamic_rules" in values:
            parse_rules(values["dynamic_rules"])
        if (
            "name" in values
            and values["name"] != rate_plan.name
            and await self._name_taken(db, rate_plan.property_id, values["name"], exclude_id=rate_plan.id)
        ):
            raise ConflictError("Rate plan name already exists for this property")

        for key, value in values.items():
            setattr(rate_plan, key, value)
        await db.commit()
        await db.refresh(rate_plan)
        logger.info(f"Rate plan updated: {rate_plan.name} ({', '.join(values)})")
        return rate_plan

    async def deactivate(self, db: AsyncSession, tenant_id: uuid.UUID, rate_plan_id: uuid.UUID) -> None:
        """Soft delete. Plans that still carry inventory stay active."""
        rate_plan = await self._get(db, tenant_id, rate_plan_id)
        inventory_count = (
            await db.execute(
                select(func.count(InventoryRecord.id)).where(InventoryRecord.rate_plan_id == rate_plan.id)
            )
        ).scalar_one()
        if inventory_count:
            raise ConflictError("Cannot delete rate plan with active inventory")

        rate_plan.is_active = False
        await db.commit()
        logger.info(f"Rate plan deleted: {rate_plan.name}")


rate_plan_service = RatePlanService()
