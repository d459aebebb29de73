"""Core tables: properties, rooms, rate plans, room inventory, guests, bookings

Revision ID: core_001
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision = "core_001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # --- properties ---
    op.create_table(
        "properties",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("property_type", sa.String(50), server_default="hotel"),
        sa.Column("star_rating", sa.Integer),
        sa.Column("address", sa.Text, nullable=False, server_default=""),
        sa.Column("city", sa.String(100), nullable=False),
        sa.Column("country", sa.String(100), nullable=False),
        sa.Column("currency", sa.String(3), server_default="USD"),
        sa.Column("amenities", JSONB, server_default="[]"),
        sa.Column("images", JSONB),
        sa.Column("is_active", sa.Boolean, server_default="true"),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "slug", name="uq_properties_tenant_slug"),
    )
    op.create_index("ix_properties_tenant_id", "properties", ["tenant_id"])
    op.create_index("ix_properties_city", "properties", ["city"])
    op.create_index("ix_properties_country", "properties", ["country"])

    # --- rooms ---
    op.create_table(
        "rooms",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False),
        sa.Column("property_id", UUID(as_uuid=True), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("room_type", sa.String(100), nullable=False),
        sa.Column("max_occupancy", sa.Integer, nullable=False, server_default="1"),
        sa.Column("max_adults", sa.Integer, nullable=False, server_default="1"),
        sa.Column("max_children", sa.Integer, nullable=False, server_default="0"),
        sa.Column("bed_type", sa.String(100)),
        sa.Column("amenities", JSONB, server_default="[]"),
        sa.Column("images", JSONB),
        sa.Column("base_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), server_default="USD"),
        sa.Column("is_active", sa.Boolean, server_default="true"),
        *_timestamps(),
        sa.UniqueConstraint("property_id", "slug", name="uq_rooms_property_slug"),
    )
    op.create_index("ix_rooms_tenant_id", "rooms", ["tenant_id"])
    op.create_index("ix_rooms_property_id", "rooms", ["property_id"])
    op.create_index("ix_rooms_room_type", "rooms", ["room_type"])

    # --- rate_plans ---
    op.create_table(
        "rate_plans",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False),
        sa.Column("property_id", UUID(as_uuid=True), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("plan_type", sa.String(50), nullable=False),
        sa.Column("base_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), server_default="USD"),
        sa.Column("is_dynamic", sa.Boolean, server_default="false"),
        sa.Column("dynamic_rules", JSONB),
        sa.Column("restrictions", JSONB),
        sa.Column("is_active", sa.Boolean, server_default="true"),
        *_timestamps(),
        sa.UniqueConstraint("property_id", "name", name="uq_rate_plans_property_name"),
    )
    op.create_index("ix_rate_plans_tenant_id", "rate_plans", ["tenant_id"])
    op.create_index("ix_rate_plans_property_id", "rate_plans", ["property_id"])

    # --- room_inventory ---
    op.create_table(
        "room_inventory",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False),
        sa.Column("property_id", UUID(as_uuid=True), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("room_id", UUID(as_uuid=True), sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rate_plan_id", UUID(as_uuid=True), sa.ForeignKey("rate_plans.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("available_rooms", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_rooms", sa.Integer, nullable=False, server_default="0"),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), server_default="USD"),
        sa.Column("min_stay", sa.Integer),
        sa.Column("max_stay", sa.Integer),
        sa.Column("closed_to_arrival", sa.Boolean, server_default="false"),
        sa.Column("closed_to_departure", sa.Boolean, server_default="false"),
        sa.Column("stop_sell", sa.Boolean, server_default="false"),
        sa.Column("restrictions", JSONB),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "room_id", "rate_plan_id", "date", name="uq_room_inventory_night"),
        sa.CheckConstraint(
            "available_rooms >= 0 AND available_rooms <= total_rooms",
            name="ck_room_inventory_available_range",
        ),
    )
    op.create_index("idx_room_inventory_lookup", "room_inventory", ["tenant_id", "property_id", "date"])
    op.create_index("ix_room_inventory_room_id", "room_inventory", ["room_id"])
    op.create_index("ix_room_inventory_rate_plan_id", "room_inventory", ["rate_plan_id"])

    # --- guests ---
    op.create_table(
        "guests",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(50)),
        sa.Column("nationality", sa.String(100)),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "email", name="uq_guests_tenant_email"),
    )
    op.create_index("ix_guests_tenant_id", "guests", ["tenant_id"])

    # --- bookings ---
    op.create_table(
        "bookings",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False),
        sa.Column("property_id", UUID(as_uuid=True), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("room_id", UUID(as_uuid=True), sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rate_plan_id", UUID(as_uuid=True), sa.ForeignKey("rate_plans.id", ondelete="CASCADE"), nullable=False),
        sa.Column("guest_id", UUID(as_uuid=True), sa.ForeignKey("guests.id", ondelete="SET NULL")),
        sa.Column("booking_reference", sa.String(50), nullable=False),
        sa.Column("channel", sa.String(100), server_default="direct"),
        sa.Column("channel_booking_id", sa.String(255)),
        sa.Column("status", sa.String(20), server_default="confirmed"),
        sa.Column("check_in_date", sa.Date, nullable=False),
        sa.Column("check_out_date", sa.Date, nullable=False),
        sa.Column("adults", sa.Integer, nullable=False, server_default="1"),
        sa.Column("children", sa.Integer, server_default="0"),
        sa.Column("rooms", sa.Integer, nullable=False, server_default="1"),
        sa.Column("total_nights", sa.Integer, nullable=False),
        sa.Column("base_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("taxes", sa.Numeric(10, 2), server_default="0"),
        sa.Column("fees", sa.Numeric(10, 2), server_default="0"),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), server_default="USD"),
        sa.Column("payment_status", sa.String(20), server_default="pending"),
        sa.Column("payment_method", sa.String(100)),
        sa.Column("special_requests", sa.Text),
        sa.Column("guest_info", JSONB),
        sa.Column("nightly_prices", JSONB),
        sa.Column("cancellation_reason", sa.Text),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "booking_reference", name="uq_bookings_tenant_reference"),
    )
    op.create_index("ix_bookings_tenant_id", "bookings", ["tenant_id"])
    op.create_index("ix_bookings_property_id", "bookings", ["property_id"])
    op.create_index("ix_bookings_room_id", "bookings", ["room_id"])
    op.create_index("ix_bookings_guest_id", "bookings", ["guest_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("idx_bookings_dates", "bookings", ["check_in_date", "check_out_date"])


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("guests")
    op.drop_table("room_inventory")
    op.drop_table("rate_plans")
    op.drop_table("rooms")
    op.drop_table("properties")
