"""Inventory record store: per-night availability and price rows.

All reads and writes are scoped by tenant. Stay consumption uses a
conditional decrement so concurrent bookings cannot overdraw a night.
"""

import logging
import math
import uuid
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pms.config import settings
from pms.errors import ConflictError, NotFoundError, PMSError, ValidationError
from pms.models.inventory import InventoryRecord
from pms.models.property import Property, RatePlan, Room
from pms.services.cache_service import cache_service

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "available_rooms",
    "total_rooms",
    "price",
    "min_stay",
    "max_stay",
    "closed_to_arrival",
    "closed_to_departure",
    "stop_sell",
    "restrictions",
)


def _validate_values(available: int, total: int, price) -> None:
    """Reject, never clamp, values outside 0 <= available <= total."""
    errors = []
    if total < 0:
        errors.append("totalRooms must be greater than or equal to 0")
    if available < 0:
        errors.append("availableRooms must be greater than or equal to 0")
    elif available > total:
        errors.append(f"availableRooms ({available}) cannot exceed totalRooms ({total})")
    if price is not None and Decimal(str(price)) < 0:
        errors.append("price must be greater than or equal to 0")
    if errors:
        raise ValidationError(errors)


def _apply_fields(record: InventoryRecord, fields: dict) -> None:
    """Validate the merged result first; the record is untouched on failure."""
    values = {key: fields[key] for key in UPDATABLE_FIELDS if fields.get(key) is not None}
    _validate_values(
        values.get("available_rooms", record.available_rooms),
        values.get("total_rooms", record.total_rooms),
        values.get("price", record.price),
    )
    for key, value in values.items():
        setattr(record, key, value)


class InventoryService:
    """Lookups, manager edits, provisioning and stay consumption."""

    async def _get_property(
        self, db: AsyncSession, tenant_id: uuid.UUID, property_id: uuid.UUID
    ) -> Property:
        result = await db.execute(
            select(Property).where(Property.id == property_id, Property.tenant_id == tenant_id)
        )
        prop = result.scalar_one_or_none()
        if not prop:
            raise NotFoundError("Property not found")
        return prop

    async def get_by_date(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        property_id: uuid.UUID,
        night: date,
        room_id: uuid.UUID | None = None,
        rate_plan_id: uuid.UUID | None = None,
    ) -> list[InventoryRecord]:
        await self._get_property(db, tenant_id, property_id)

        query = select(InventoryRecord).where(
            InventoryRecord.tenant_id == tenant_id,
            InventoryRecord.property_id == property_id,
            InventoryRecord.date == night,
        )
        if room_id:
            query = query.where(InventoryRecord.room_id == room_id)
        if rate_plan_id:
            query = query.where(InventoryRecord.rate_plan_id == rate_plan_id)

        result = await db.execute(query.order_by(InventoryRecord.room_id, InventoryRecord.rate_plan_id))
        return list(result.scalars().all())

    async def get_calendar(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        start_date: date,
        end_date: date,
        property_id: uuid.UUID | None = None,
        room_id: uuid.UUID | None = None,
        rate_plan_id: uuid.UUID | None = None,
        page: int = 1,
        limit: int = 100,
    ) -> dict:
        """Inventory rows between two dates (inclusive), paginated."""
        if end_date < start_date:
            raise ValidationError("End date must be on or after start date")

        conditions = [
            InventoryRecord.tenant_id == tenant_id,
            InventoryRecord.date >= start_date,
            InventoryRecord.date <= end_date,
        ]
        if property_id:
            conditions.append(InventoryRecord.property_id == property_id)
        if room_id:
            conditions.append(InventoryRecord.room_id == room_id)
        if rate_plan_id:
            conditions.append(InventoryRecord.rate_plan_id == rate_plan_id)

        total = (
            await db.execute(select(func.count(InventoryRecord.id)).where(*conditions))
        ).scalar_one()

        result = await db.execute(
            select(InventoryRecord, Room.name, Room.room_type, RatePlan.name, RatePlan.plan_type)
            .join(Room, InventoryRecord.room_id == Room.id)
            .join(RatePlan, InventoryRecord.rate_plan_id == RatePlan.id)
            .where(*conditions)
            .order_by(InventoryRecord.date.asc(), Room.name.asc(), RatePlan.name.asc())
            .offset((page - 1) * limit)
            .limit(limit)
        )

        inventory = []
        for record, room_name, room_type, plan_name, plan_type in result.all():
            inventory.append({
                **self.to_dict(record),
                "room_name": room_name,
                "room_type": room_type,
                "rate_plan_name": plan_name,
                "plan_type": plan_type,
            })

        return {
            "inventory": inventory,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit) if limit else 0,
            },
        }

    async def update(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        record_id: uuid.UUID,
        fields: dict,
    ) -> InventoryRecord:
        """Apply a partial update to one record of the caller's tenant."""
        if not any(fields.get(key) is not None for key in UPDATABLE_FIELDS):
            raise ValidationError("No valid fields to update")

        result = await db.execute(
            select(InventoryRecord)
            .where(InventoryRecord.id == record_id, InventoryRecord.tenant_id == tenant_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()
        if not record:
            raise NotFoundError("Inventory record not found")

        try:
            _apply_fields(record, fields)
        except ValidationError:
            await db.rollback()
            raise

        await db.commit()
        await db.refresh(record)
        await cache_service.invalidate_filters(tenant_id, [record.property_id])
        logger.info(f"Inventory updated: room {record.room_id} plan {record.rate_plan_id} {record.date}")
        return record

    async def bulk_update(
        self, db: AsyncSession, tenant_id: uuid.UUID, updates: list[dict]
    ) -> dict:
        """Apply each update independently; one failure never aborts the rest."""
        if not updates:
            raise ValidationError("Updates array is required")
        if len(updates) > settings.bulk_update_max_items:
            raise ValidationError(
                f"At most {settings.bulk_update_max_items} updates are accepted per request"
            )

        results = []
        touched = set()
        for item in updates:
            room_id = item.get("room_id")
            rate_plan_id = item.get("rate_plan_id")
            night = item.get("date")
            outcome = {"room_id": room_id, "rate_plan_id": rate_plan_id, "date": night}

            if not room_id or not rate_plan_id or not night:
                results.append({
                    **outcome,
                    "success": False,
                    "error": "Room ID, rate plan ID, and date are required",
                })
                continue

            try:
                async with db.begin_nested():
                    action, record = await self._upsert_night(db, tenant_id, item)
                touched.add(record.property_id)
                results.append({
                    **outcome,
                    "success": True,
                    "action": action,
                    "inventory_id": record.id,
                })
            except PMSError as e:
                message = "; ".join(e.errors) if e.errors else e.message
                results.append({**outcome, "success": False, "error": message})
            except SQLAlchemyError as e:
                logger.error(f"Bulk update error: {e}")
                results.append({**outcome, "success": False, "error": str(e.__class__.__name__)})

        await db.commit()
        if touched:
            await cache_service.invalidate_filters(tenant_id, touched)

        successful = sum(1 for r in results if r["success"])
        failed = len(results) - successful
        logger.info(f"Bulk inventory update completed: {successful} successful, {failed} failed")

        return {
            "total_updates": len(updates),
            "successful": successful,
            "failed": failed,
            "results": results,
        }

    async def _upsert_night(
        self, db: AsyncSession, tenant_id: uuid.UUID, item: dict
    ) -> tuple[str, InventoryRecord]:
        result = await db.execute(
            select(InventoryRecord)
            .where(
                InventoryRecord.tenant_id == tenant_id,
                InventoryRecord.room_id == item["room_id"],
                InventoryRecord.rate_plan_id == item["rate_plan_id"],
                InventoryRecord.date == item["date"],
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()
        if record:
            _apply_fields(record, item)
            await db.flush()
            return "updated", record

        if item.get("total_rooms") is None:
            raise NotFoundError("Inventory record not found")

        room, rate_plan = await self._get_room_and_plan(db, tenant_id, item["room_id"], item["rate_plan_id"])
        total = item["total_rooms"]
        record = InventoryRecord(
            tenant_id=tenant_id,
            property_id=room.property_id,
            room_id=room.id,
            rate_plan_id=rate_plan.id,
            date=item["date"],
            total_rooms=total,
            available_rooms=item["available_rooms"] if item.get("available_rooms") is not None else total,
            price=item["price"] if item.get("price") is not None else rate_plan.base_price,
            currency=rate_plan.currency,
            min_stay=item.get("min_stay"),
            closed_to_arrival=bool(item.get("closed_to_arrival")),
            closed_to_departure=bool(item.get("closed_to_departure")),
            stop_sell=bool(item.get("stop_sell")),
            restrictions=item.get("restrictions") or {},
        )
        _validate_values(record.available_rooms, record.total_rooms, record.price)
        db.add(record)
        await db.flush()
        return "created", record

    async def _get_room_and_plan(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        room_id: uuid.UUID,
        rate_plan_id: uuid.UUID,
    ) -> tuple[Room, RatePlan]:
        room = (
            await db.execute(select(Room).where(Room.id == room_id, Room.tenant_id == tenant_id))
        ).scalar_one_or_none()
        if not room:
            raise NotFoundError("Room not found")
        rate_plan = (
            await db.execute(
                select(RatePlan).where(
                    RatePlan.id == rate_plan_id,
                    RatePlan.tenant_id == tenant_id,
                    RatePlan.property_id == room.property_id,
                )
            )
        ).scalar_one_or_none()
        if not rate_plan:
            raise NotFoundError("Rate plan not found")
        return room, rate_plan

    async def provision_range(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        property_id: uuid.UUID,
        room_id: uuid.UUID,
        rate_plan_ids: list[uuid.UUID],
        date_start: date,
        date_count: int,
        total_rooms: int,
    ) -> dict:
        """Create one record per (rate plan, date); dates already present are skipped."""
        if date_count < 1 or date_count > settings.provision_max_days:
            raise ValidationError(f"dateCount must be between 1 and {settings.provision_max_days}")
        if total_rooms < 0:
            raise ValidationError("totalRooms must be greater than or equal to 0")

        await self._get_property(db, tenant_id, property_id)
        room = (
            await db.execute(
                select(Room).where(
                    Room.id == room_id, Room.tenant_id == tenant_id, Room.property_id == property_id
                )
            )
        ).scalar_one_or_none()
        if not room:
            raise NotFoundError("Room not found")

        plans = (
            await db.execute(
                select(RatePlan).where(
                    RatePlan.id.in_(rate_plan_ids),
                    RatePlan.tenant_id == tenant_id,
                    RatePlan.property_id == property_id,
                )
            )
        ).scalars().all()
        missing = set(rate_plan_ids) - {p.id for p in plans}
        if missing:
            raise NotFoundError(f"Rate plan not found: {', '.join(sorted(str(m) for m in missing))}")

        date_end = date_start + timedelta(days=date_count)
        existing = (
            await db.execute(
                select(InventoryRecord.rate_plan_id, InventoryRecord.date).where(
                    InventoryRecord.tenant_id == tenant_id,
                    InventoryRecord.room_id == room_id,
                    InventoryRecord.rate_plan_id.in_(rate_plan_ids),
                    InventoryRecord.date >= date_start,
                    InventoryRecord.date < date_end,
                )
            )
        ).all()
        taken = {(plan_id, night) for plan_id, night in existing}

        created = 0
        for plan in plans:
            for offset in range(date_count):
                night = date_start + timedelta(days=offset)
                if (plan.id, night) in taken:
                    continue
                db.add(InventoryRecord(
                    tenant_id=tenant_id,
                    property_id=property_id,
                    room_id=room_id,
                    rate_plan_id=plan.id,
                    date=night,
                    available_rooms=total_rooms,
                    total_rooms=total_rooms,
                    price=plan.base_price,
                    currency=plan.currency,
                    restrictions={},
                ))
                created += 1

        await db.commit()
        if created:
            await cache_service.invalidate_filters(tenant_id, [property_id])

        logger.info(
            f"Provisioned inventory for room {room_id}: {created} created, {len(taken)} skipped "
            f"({date_start} + {date_count} days, {len(plans)} rate plans)"
        )
        return {"created": created, "skipped": len(taken)}

    async def load_stay(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        room_id: uuid.UUID,
        rate_plan_id: uuid.UUID,
        check_in: date,
        check_out: date,
    ) -> dict[date, InventoryRecord]:
        result = await db.execute(
            select(InventoryRecord)
            .where(
                InventoryRecord.tenant_id == tenant_id,
                InventoryRecord.room_id == room_id,
                InventoryRecord.rate_plan_id == rate_plan_id,
                InventoryRecord.date >= check_in,
                InventoryRecord.date < check_out,
            )
            .order_by(InventoryRecord.date)
            .execution_options(populate_existing=True)
        )
        return {r.date: r for r in result.scalars().all()}

    async def consume(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        room_id: uuid.UUID,
        rate_plan_id: uuid.UUID,
        nights: list[date],
        rooms: int,
    ) -> None:
        """Take ``rooms`` units from every night, or fail with ConflictError.

        Each night is a conditional decrement; zero affected rows means
        another booking got there first. The caller owns the transaction
        and must roll back on failure. Nights are updated in date order so
        concurrent stays lock rows in the same order.
        """
        for night in sorted(nights):
            result = await db.execute(
                update(InventoryRecord)
                .where(
                    InventoryRecord.tenant_id == tenant_id,
                    InventoryRecord.room_id == room_id,
                    InventoryRecord.rate_plan_id == rate_plan_id,
                    InventoryRecord.date == night,
                    InventoryRecord.stop_sell.is_(False),
                    InventoryRecord.available_rooms >= rooms,
                )
                .values(
                    available_rooms=InventoryRecord.available_rooms - rooms,
                    updated_at=func.now(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.warning(
                    f"Inventory contention: room {room_id} plan {rate_plan_id} {night} "
                    f"could not supply {rooms} rooms"
                )
                raise ConflictError(f"Room is no longer available on {night.isoformat()}")

    async def release(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        room_id: uuid.UUID,
        rate_plan_id: uuid.UUID,
        nights: list[date],
        rooms: int,
    ) -> int:
        """Give ``rooms`` units back to each night, capped at total_rooms.

        Returns the number of nights touched. The caller owns the transaction.
        """
        if not nights:
            return 0
        restored = InventoryRecord.available_rooms + rooms
        result = await db.execute(
            update(InventoryRecord)
            .where(
                InventoryRecord.tenant_id == tenant_id,
                InventoryRecord.room_id == room_id,
                InventoryRecord.rate_plan_id == rate_plan_id,
                InventoryRecord.date.in_(sorted(nights)),
            )
            .values(
                available_rooms=case(
                    (restored > InventoryRecord.total_rooms, InventoryRecord.total_rooms),
                    else_=restored,
                ),
                updated_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def to_dict(self, record: InventoryRecord) -> dict:
        return {
            "id": record.id,
            "property_id": record.property_id,
            "room_id": record.room_id,
            "rate_plan_id": record.rate_plan_id,
            "date": record.date,
            "available_rooms": record.available_rooms,
            "total_rooms": record.total_rooms,
            "price": float(record.price),
            "currency": record.currency,
            "min_stay": record.min_stay,
            "max_stay": record.max_stay,
            "closed_to_arrival": record.closed_to_arrival,
            "closed_to_departure": record.closed_to_departure,
            "stop_sell": record.stop_sell,
            "restrictions": record.restrictions,
            "created_at": record.created_at,
            "updated_at": record.updated_at,
        }


inventory_service = InventoryService()
