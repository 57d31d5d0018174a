from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _json() -> sa.types.TypeEngine:
    return JSONB().with_variant(sa.JSON(), "sqlite")


def _has_table(name: str) -> bool:
    return sa.inspect(op.get_bind()).has_table(name)


def upgrade() -> None:
    if not _has_table("businesses"):
        op.create_table(
            "businesses",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("admin_phone", sa.String(length=30), nullable=False, index=True),
            sa.Column("business_name", sa.String(length=120), nullable=True),
            sa.Column("business_hours", sa.Text(), nullable=True),
            sa.Column("has_delivery", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("has_pickup", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("business_address", sa.Text(), nullable=True),
            sa.Column("accepts_cash", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("accepts_transfer", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("accepts_deposit", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("deposit_percent", sa.Integer(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        )

    if not _has_table("tenant_channels"):
        op.create_table(
            "tenant_channels",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("phone_number_id", sa.String(length=64), nullable=False, unique=True, index=True),
            sa.Column("display_phone_number", sa.String(length=30), nullable=True),
            sa.Column("access_token", sa.String(), nullable=False),
            sa.Column("verify_token", sa.String(), nullable=True),
            sa.Column("app_secret", sa.String(), nullable=True),
            sa.Column("catalog_id", sa.String(length=64), nullable=True),
            sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=True, index=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        )

    if not _has_table("delivery_zones"):
        op.create_table(
            "delivery_zones",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=False, index=True),
            sa.Column("zone_name", sa.String(length=120), nullable=False),
            sa.Column("price", sa.Integer(), nullable=False, server_default="0"),
        )

    if not _has_table("bank_details"):
        op.create_table(
            "bank_details",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=False, unique=True),
            sa.Column("alias", sa.String(length=60), nullable=True),
            sa.Column("cbu", sa.String(length=30), nullable=True),
            sa.Column("account_holder", sa.String(length=120), nullable=True),
        )

    if not _has_table("products"):
        op.create_table(
            "products",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=False, index=True),
            sa.Column("name", sa.String(length=160), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("price", sa.Integer(), nullable=False),
            sa.Column("category", sa.String(length=80), nullable=True),
            sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("retailer_id", sa.String(length=120), nullable=True, index=True),
        )

    if not _has_table("invite_codes"):
        op.create_table(
            "invite_codes",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("code", sa.String(length=20), nullable=False, unique=True, index=True),
            sa.Column("phone_number_id", sa.String(length=64), nullable=True),
            sa.Column("used_by_phone", sa.String(length=30), nullable=True),
            sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        )

    if not _has_table("admins"):
        op.create_table(
            "admins",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("phone", sa.String(length=30), nullable=False, unique=True, index=True),
            sa.Column("name", sa.String(length=120), nullable=True),
            sa.Column("invite_code_id", sa.Integer(), sa.ForeignKey("invite_codes.id"), nullable=True),
            sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        )

    if not _has_table("admin_states"):
        op.create_table(
            "admin_states",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("phone", sa.String(length=30), nullable=False, unique=True, index=True),
            sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=False),
            sa.Column("current_step", sa.String(length=40), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        )

    if not _has_table("customer_states"):
        op.create_table(
            "customer_states",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=False, index=True),
            sa.Column("phone", sa.String(length=30), nullable=False, index=True),
            sa.Column("current_step", sa.String(length=40), nullable=False),
            sa.Column("cart", _json(), nullable=False),
            sa.Column(
                "selected_zone_id",
                sa.Integer(),
                sa.ForeignKey("delivery_zones.id", ondelete="SET NULL"),
                nullable=True,
            ),
            sa.Column("delivery_method", sa.String(length=20), nullable=True),
            sa.Column("delivery_address", sa.Text(), nullable=True),
            sa.Column("checkout", _json(), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint("business_id", "phone", name="uq_customer_states_business_phone"),
        )

    if not _has_table("orders"):
        op.create_table(
            "orders",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=False, index=True),
            sa.Column("order_number", sa.Integer(), nullable=False),
            sa.Column("client_phone", sa.String(length=30), nullable=False, index=True),
            sa.Column("client_name", sa.String(length=120), nullable=True),
            sa.Column("client_address", sa.Text(), nullable=True),
            sa.Column("items", _json(), nullable=False),
            sa.Column("subtotal", sa.Integer(), nullable=False, server_default="0"),
            sa.Column(
                "delivery_zone_id",
                sa.Integer(),
                sa.ForeignKey("delivery_zones.id", ondelete="SET NULL"),
                nullable=True,
            ),
            sa.Column("delivery_price", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("grand_total", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("payment_method", sa.String(length=20), nullable=False),
            sa.Column("deposit_amount", sa.Integer(), nullable=True),
            sa.Column("order_status", sa.String(length=20), nullable=False, server_default="nuevo"),
            sa.Column("payment_status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
            sa.UniqueConstraint("business_id", "order_number", name="uq_orders_business_number"),
        )

    if not _has_table("subscriptions"):
        op.create_table(
            "subscriptions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=False, index=True),
            sa.Column("plan_slug", sa.String(length=20), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False),
            sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
            sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        )

    if not _has_table("monthly_usage"):
        op.create_table(
            "monthly_usage",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=False, index=True),
            sa.Column("month", sa.String(length=7), nullable=False),
            sa.Column("order_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("analytics_queries", sa.Integer(), nullable=False, server_default="0"),
            sa.UniqueConstraint("business_id", "month", name="uq_monthly_usage_business_month"),
        )

    if not _has_table("processed_messages"):
        op.create_table(
            "processed_messages",
            sa.Column("message_id", sa.String(), primary_key=True),
        )

    if not _has_table("failed_messages"):
        op.create_table(
            "failed_messages",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("phone_number_id", sa.String(length=64), nullable=True),
            sa.Column("sender", sa.String(length=30), nullable=True, index=True),
            sa.Column("payload", sa.Text(), nullable=False),
            sa.Column("error", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        )


def downgrade() -> None:
    for table in (
        "failed_messages",
        "processed_messages",
        "monthly_usage",
        "subscriptions",
        "orders",
        "customer_states",
        "admin_states",
        "admins",
        "invite_codes",
        "products",
        "bank_details",
        "delivery_zones",
        "tenant_channels",
        "businesses",
    ):
        if _has_table(table):
            op.drop_table(table)
