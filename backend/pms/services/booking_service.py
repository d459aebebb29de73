"""Booking commit, cancellation and booking lookups.

A booking row and the inventory it consumes are written in one transaction.
The decrement is conditional per night, so two bookings racing for the
last room cannot both succeed; the loser gets ConflictError and nothing
it wrote survives.
"""

import logging
import math
import random
import string
import time
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pms.config import settings
from pms.errors import BookingCommitFailed, ConflictError, NotFoundError, PMSError, ValidationError
from pms.models.booking import Booking, Guest
from pms.models.property import Property, RatePlan, Room
from pms.services.inventory_service import inventory_service
from pms.services.pricing_engine import pricing_engine, to_cents
from pms.services.stay import check_stay, stay_nights, validate_occupancy, validate_stay

logger = logging.getLogger(__name__)

REFERENCE_ATTEMPTS = 5
UPDATABLE_FIELDS = ("special_requests", "guest_info", "payment_status", "payment_method")
FINAL_STATUSES = {"completed", "no_show"}


def generate_reference(prefix: str | None = None) -> str:
    """Prefix + UTC epoch milliseconds + four random uppercase alphanumerics."""
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=4))
    return f"{prefix or settings.booking_reference_prefix}{int(time.time() * 1000)}{suffix}"


def compute_amounts(nightly: list[Decimal], rooms: int) -> dict:
    base_price = to_cents(sum(nightly, Decimal("0")) * rooms)
    taxes = to_cents(base_price * settings.tax_rate)
    fees = to_cents(base_price * settings.service_fee_rate)
    return {
        "base_price": base_price,
        "taxes": taxes,
        "fees": fees,
        "total_amount": base_price + taxes + fees,
    }


class BookingService:
    """Creates and manages bookings against tenant inventory."""

    async def _load_stay_targets(
        self, db: AsyncSession, tenant_id: uuid.UUID, data: dict
    ) -> tuple[Property, Room, RatePlan]:
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

        room = (
            await db.execute(
                select(Room).where(
                    Room.id == data["room_id"],
                    Room.tenant_id == tenant_id,
                    Room.property_id == prop.id,
                    Room.is_active.is_(True),
                )
            )
        ).scalar_one_or_none()
        if not room:
            raise NotFoundError("Room not found")

        rate_plan = (
            await db.execute(
                select(RatePlan).where(
                    RatePlan.id == data["rate_plan_id"],
                    RatePlan.tenant_id == tenant_id,
                    RatePlan.property_id == prop.id,
                    RatePlan.is_active.is_(True),
                )
            )
        ).scalar_one_or_none()
        if not rate_plan:
            raise NotFoundError("Rate plan not found")

        return prop, room, rate_plan

    async def _find_guest(self, db: AsyncSession, tenant_id: uuid.UUID, email: str) -> Guest | None:
        return (
            await db.execute(select(Guest).where(Guest.tenant_id == tenant_id, Guest.email == email))
        ).scalar_one_or_none()

    async def _resolve_guest(
        self, db: AsyncSession, tenant_id: uuid.UUID, data: dict
    ) -> Guest:
        """Load the given guest, or upsert one by (tenant, email) from guest info."""
        if data.get("guest_id"):
            guest = (
                await db.execute(
                    select(Guest).where(Guest.id == data["guest_id"], Guest.tenant_id == tenant_id)
                )
            ).scalar_one_or_none()
            if not guest:
                raise NotFoundError("Guest not found")
            return guest

        info = data.get("guest_info")
        if not info:
            raise ValidationError("Guest ID or guest information is required")

        email = info["email"].lower()
        guest = await self._find_guest(db, tenant_id, email)
        if guest is None:
            try:
                async with db.begin_nested():
                    guest = Guest(
                        tenant_id=tenant_id,
                        email=email,
                        first_name=info["first_name"],
                        last_name=info["last_name"],
                    )
                    db.add(guest)
            except IntegrityError:
                # A concurrent booking inserted the same guest first
                logger.info(f"Guest {email} created concurrently, reusing it")
                guest = await self._find_guest(db, tenant_id, email)
                if guest is None:
                    raise
        guest.first_name = info["first_name"]
        guest.last_name = info["last_name"]
        if info.get("phone"):
            guest.phone = info["phone"]
        if info.get("nationality"):
            guest.nationality = info["nationality"]
        return guest

    async def _unique_reference(self, db: AsyncSession, tenant_id: uuid.UUID) -> str:
        for _ in range(REFERENCE_ATTEMPTS):
            reference = generate_reference()
            taken = (
                await db.execute(
                    select(Booking.id).where(
                        Booking.tenant_id == tenant_id, Booking.booking_reference == reference
                    )
                )
            ).scalar_one_or_none()
            if taken is None:
                return reference
        raise BookingCommitFailed("Could not generate a unique booking reference")

    async def create(self, db: AsyncSession, tenant_id: uuid.UUID, data: dict) -> dict:
        """Commit a booking and consume its inventory atomically.

        Prices are recomputed from inventory; nothing the client sends about
        amounts is trusted.
        """
        check_in = data["check_in_date"]
        check_out = data["check_out_date"]
        adults = data.get("adults", 1)
        children = data.get("children", 0)
        rooms = data.get("rooms", 1)

        total_nights = validate_stay(check_in, check_out)
        nights = stay_nights(check_in, check_out)

        try:
            prop, room, rate_plan = await self._load_stay_targets(db, tenant_id, data)
            validate_occupancy(adults, children, room.max_adults, room.max_children, room.max_occupancy)

            records = await inventory_service.load_stay(
                db, tenant_id, room.id, rate_plan.id, check_in, check_out
            )
            stay = check_stay(records, nights, rooms)
            if stay.unavailable:
                raise ConflictError("Room is no longer available for the selected dates", stay.unavailable)
            if stay.restricted:
                raise ValidationError(stay.restricted, message="Stay violates inventory restrictions")

            priced = [pricing_engine.nightly_price(rate_plan, records[n]) for n in nights]
            amounts = compute_amounts([p.price for p in priced], rooms)

            guest = await self._resolve_guest(db, tenant_id, data)
            reference = await self._unique_reference(db, tenant_id)

            booking = Booking(
                tenant_id=tenant_id,
                property_id=prop.id,
                room_id=room.id,
                rate_plan_id=rate_plan.id,
                guest=guest,
                booking_reference=reference,
                channel=data.get("channel") or "direct",
                status="confirmed",
                check_in_date=check_in,
                check_out_date=check_out,
                adults=adults,
                children=children,
                rooms=rooms,
                total_nights=total_nights,
                currency=rate_plan.currency or prop.currency or settings.default_currency,
                payment_status="pending",
                special_requests=data.get("special_requests"),
                guest_info=data.get("guest_info"),
                nightly_prices=[{"date": p.date.isoformat(), "price": float(p.price)} for p in priced],
                **amounts,
            )
            db.add(booking)
            await db.flush()

            await inventory_service.consume(db, tenant_id, room.id, rate_plan.id, nights, rooms)
            await db.commit()
        except PMSError:
            await db.rollback()
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.exception(f"Booking commit failed for room {data.get('room_id')}")
            raise BookingCommitFailed("Booking could not be committed") from e

        logger.info(
            f"Booking {reference} created: room {room.id} plan {rate_plan.id} "
            f"{check_in} -> {check_out} x{rooms}, total {amounts['total_amount']} {booking.currency}"
        )
        return await self.get(db, tenant_id, booking.id)

    async def cancel(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        booking_id: uuid.UUID,
        reason: str | None = None,
        today: date | None = None,
    ) -> dict:
        """Cancel a booking and give its not-yet-elapsed nights back to inventory."""
        today = today or date.today()
        try:
            booking = (
                await db.execute(
                    select(Booking)
                    .where(Booking.id == booking_id, Booking.tenant_id == tenant_id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
            ).scalar_one_or_none()
            if not booking:
                raise NotFoundError("Booking not found")
            if booking.status == "cancelled":
                raise ConflictError("Booking is already cancelled")
            if booking.status == "completed":
                raise ConflictError("Cannot cancel a completed booking")

            remaining = [n for n in stay_nights(booking.check_in_date, booking.check_out_date) if n >= today]
            restored = await inventory_service.release(
                db, tenant_id, booking.room_id, booking.rate_plan_id, remaining, booking.rooms
            )

            booking.status = "cancelled"
            booking.cancellation_reason = reason
            booking.cancelled_at = datetime.now(timezone.utc)
            await db.commit()
        except PMSError:
            await db.rollback()
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.exception(f"Booking cancellation failed for {booking_id}")
            raise BookingCommitFailed("Booking could not be cancelled") from e

        logger.info(
            f"Booking {booking.booking_reference} cancelled: {restored} nights restored x{booking.rooms}"
        )
        return await self.get(db, tenant_id, booking_id)

    async def get(self, db: AsyncSession, tenant_id: uuid.UUID, booking_id: uuid.UUID) -> dict:
        result = await db.execute(
            select(Booking)
            .options(selectinload(Booking.guest))
            .where(Booking.id == booking_id, Booking.tenant_id == tenant_id)
            .execution_options(populate_existing=True)
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking not found")
        return self.to_dict(booking)

    async def list(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        filters: dict | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        filters = filters or {}
        conditions = [Booking.tenant_id == tenant_id]
        if filters.get("status"):
            conditions.append(Booking.status == filters["status"])
        if filters.get("channel"):
            conditions.append(Booking.channel == filters["channel"])
        if filters.get("property_id"):
            conditions.append(Booking.property_id == filters["property_id"])
        if filters.get("room_id"):
            conditions.append(Booking.room_id == filters["room_id"])
        if filters.get("guest_id"):
            conditions.append(Booking.guest_id == filters["guest_id"])
        if filters.get("check_in_from"):
            conditions.append(Booking.check_in_date >= filters["check_in_from"])
        if filters.get("check_out_to"):
            conditions.append(Booking.check_out_date <= filters["check_out_to"])
        if filters.get("search"):
            pattern = f"%{filters['search'].lower()}%"
            conditions.append(
                or_(
                    func.lower(Booking.booking_reference).like(pattern),
                    func.lower(Guest.first_name).like(pattern),
                    func.lower(Guest.last_name).like(pattern),
                    func.lower(Guest.email).like(pattern),
                )
            )

        base = select(Booking).outerjoin(Guest, Booking.guest_id == Guest.id).where(*conditions)
        total = (
            await db.execute(select(func.count()).select_from(base.with_only_columns(Booking.id).subquery()))
        ).scalar_one()

        result = await db.execute(
            base.options(selectinload(Booking.guest))
            .order_by(Booking.created_at.desc(), Booking.booking_reference.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )

        return {
            "bookings": [self.to_dict(b) for b in result.scalars().all()],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit) if limit else 0,
            },
        }

    async def update(
        self, db: AsyncSession, tenant_id: uuid.UUID, booking_id: uuid.UUID, fields: dict
    ) -> dict:
        """Edit booking details or close out a confirmed stay.

        Cancellation goes through ``cancel`` so inventory is restored.
        """
        booking = (
            await db.execute(
                select(Booking)
                .where(Booking.id == booking_id, Booking.tenant_id == tenant_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking not found")
        if booking.status == "cancelled":
            await db.rollback()
            raise ConflictError("Cannot modify a cancelled booking")

        changes = {k: fields[k] for k in UPDATABLE_FIELDS if fields.get(k) is not None}
        status = fields.get("status")
        if status is not None:
            if status not in FINAL_STATUSES:
                await db.rollback()
                raise ValidationError(f"Status can only be changed to {' or '.join(sorted(FINAL_STATUSES))}")
            if booking.status != "confirmed":
                await db.rollback()
                raise ConflictError(f"Cannot change status of a {booking.status} booking")
            changes["status"] = status

        if not changes:
            await db.rollback()
            raise ValidationError("No valid fields to update")

        for key, value in changes.items():
            setattr(booking, key, value)
        await db.commit()

        logger.info(f"Booking {booking.booking_reference} updated: {', '.join(sorted(changes))}")
        return await self.get(db, tenant_id, booking_id)

    async def stats(self, db: AsyncSession, tenant_id: uuid.UUID, period_days: int = 30) -> dict:
        since = datetime.now(timezone.utc) - timedelta(days=period_days)
        confirmed = Booking.status == "confirmed"
        recent = Booking.created_at >= since

        row = (
            await db.execute(
                select(
                    func.count(Booking.id),
                    func.count(case((confirmed, 1))),
                    func.count(case((Booking.status == "cancelled", 1))),
                    func.count(case((Booking.status == "completed", 1))),
                    func.count(case((Booking.status == "no_show", 1))),
                    func.count(case((recent, 1))),
                    func.coalesce(func.sum(case((confirmed, Booking.total_amount), else_=0)), 0),
                    func.coalesce(func.sum(case((and_(confirmed, recent), Booking.total_amount), else_=0)), 0),
                    func.avg(case((confirmed, Booking.total_amount))),
                ).where(Booking.tenant_id == tenant_id)
            )
        ).one()

        channels = await db.execute(
            select(
                Booking.channel,
                func.count(Booking.id),
                func.coalesce(func.sum(case((confirmed, Booking.total_amount), else_=0)), 0),
            )
            .where(Booking.tenant_id == tenant_id, recent)
            .group_by(Booking.channel)
            .order_by(func.count(Booking.id).desc(), Booking.channel)
        )

        return {
            "total_bookings": row[0],
            "confirmed_bookings": row[1],
            "cancelled_bookings": row[2],
            "completed_bookings": row[3],
            "no_show_bookings": row[4],
            "recent_bookings": row[5],
            "total_revenue": float(row[6] or 0),
            "recent_revenue": float(row[7] or 0),
            "avg_booking_value": round(float(row[8] or 0), 2),
            "channel_breakdown": [
                {"channel": channel, "booking_count": count, "revenue": float(revenue or 0)}
                for channel, count, revenue in channels.all()
            ],
        }

    def to_dict(self, booking: Booking) -> dict:
        guest = booking.guest
        return {
            "id": booking.id,
            "booking_reference": booking.booking_reference,
            "property_id": booking.property_id,
            "room_id": booking.room_id,
            "rate_plan_id": booking.rate_plan_id,
            "guest_id": booking.guest_id,
            "channel": booking.channel,
            "status": booking.status,
            "check_in_date": booking.check_in_date,
            "check_out_date": booking.check_out_date,
            "adults": booking.adults,
            "children": booking.children,
            "rooms": booking.rooms,
            "total_nights": booking.total_nights,
            "base_price": float(booking.base_price),
            "taxes": float(booking.taxes),
            "fees": float(booking.fees),
            "total_amount": float(booking.total_amount),
            "currency": booking.currency,
            "payment_status": booking.payment_status,
            "payment_method": booking.payment_method,
            "special_requests": booking.special_requests,
            "guest_info": booking.guest_info,
            "nightly_prices": booking.nightly_prices,
            "cancellation_reason": booking.cancellation_reason,
            "cancelled_at": booking.cancelled_at,
            "created_at": booking.created_at,
            "updated_at": booking.updated_at,
            "guest": {
                "id": guest.id,
                "first_name": guest.first_name,
                "last_name": guest.last_name,
                "email": guest.email,
                "phone": guest.phone,
            } if guest else None,
        }


booking_service = BookingService()
