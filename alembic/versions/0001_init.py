"""init
Revision ID: 0001_init
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

ENGAGEMENT_TABLES = ("rating", "likes", "collection")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade():
    op.create_table(
        "addresses",
        sa.Column("address_id", sa.Integer(), primary_key=True, autoincrement=True),
        *_timestamps(),
        sa.Column("rest_id", sa.String(length=64), nullable=True),
        sa.Column("address_type", sa.String(length=30), nullable=False, server_default="restaurant"),
        sa.Column("line1", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("pincode", sa.String(length=12), nullable=True),
    )
    op.create_index("ix_addresses_rest_id", "addresses", ["rest_id"])

    op.create_table(
        "sellers",
        sa.Column("seller_id", sa.String(length=64), primary_key=True),
        *_timestamps(),
        sa.Column("owner_name", sa.String(length=200), nullable=False),
        sa.Column("restaurant_name", sa.String(length=200), nullable=True),
        sa.Column("rest_phone", sa.String(length=20), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column(
            "address_id",
            sa.Integer(),
            sa.ForeignKey("addresses.address_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("menu_id", sa.String(length=80), nullable=True),
        sa.Column("phone_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("account_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("login_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("locked_until", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "account_status IN ('pending', 'active', 'suspended', 'deleted')",
            name="check_account_status",
        ),
    )
    op.create_index("ix_sellers_rest_phone", "sellers", ["rest_phone"], unique=True)
    op.create_index("ix_sellers_address_id", "sellers", ["address_id"])
    op.create_index("ix_sellers_menu_id", "sellers", ["menu_id"])

    op.create_table(
        "users",
        sa.Column("user_id", sa.Integer(), primary_key=True, autoincrement=True),
        *_timestamps(),
        sa.Column("phone", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("gender", sa.String(length=20), nullable=True),
        sa.Column("dob", sa.Date(), nullable=True),
        sa.Column("preference", sa.String(length=255), nullable=True),
        sa.Column("phone_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("account_status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "account_status IN ('pending', 'active', 'suspended', 'deleted')",
            name="check_user_account_status",
        ),
    )
    op.create_index("ix_users_phone", "users", ["phone"], unique=True)

    op.create_table(
        "otp_attempts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("phone_number", sa.String(length=20), nullable=False),
        sa.Column("otp_hash", sa.String(length=255), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("is_signup", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("account_kind", sa.String(length=10), nullable=False, server_default="seller"),
        sa.Column("session_id", sa.String(length=255), nullable=True),
        sa.Column("sms_provider", sa.String(length=20), nullable=False, server_default="console"),
        sa.Column("sms_status", sa.String(length=30), nullable=False, server_default="pending"),
    )
    op.create_index("idx_otp_attempts_phone", "otp_attempts", ["phone_number", "expires_at"])
    op.create_index("idx_otp_attempts_session", "otp_attempts", ["session_id"])

    op.create_table(
        "auth_sessions",
        sa.Column("session_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column(
            "seller_id",
            sa.String(length=64),
            sa.ForeignKey("sellers.seller_id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.user_id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("refresh_token_hash", sa.String(length=255), nullable=False),
        sa.Column("device_info", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_used", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("(seller_id IS NULL) <> (user_id IS NULL)", name="check_session_owner"),
    )
    op.create_index("ix_auth_sessions_seller_id", "auth_sessions", ["seller_id"])
    op.create_index("ix_auth_sessions_user_id", "auth_sessions", ["user_id"])
    op.create_index("ix_auth_sessions_refresh_token_hash", "auth_sessions", ["refresh_token_hash"])
    op.create_index("idx_auth_sessions_active", "auth_sessions", ["is_active", "expires_at"])

    op.create_table(
        "auth_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("seller_id", sa.String(length=64), nullable=True),
        sa.Column("phone_number", sa.String(length=20), nullable=True),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("error_message", sa.Text(), nullable=True),
    )
    op.create_index("idx_auth_logs_seller", "auth_logs", ["seller_id", "created_at"])

    op.create_table(
        "menu",
        sa.Column("item_id", sa.Integer(), primary_key=True, autoincrement=True),
        *_timestamps(),
        sa.Column("rest_id", sa.String(length=64), nullable=False),
        sa.Column("menu_id", sa.String(length=80), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_menu_rest_id", "menu", ["rest_id"])
    op.create_index("ix_menu_menu_id", "menu", ["menu_id"])

    op.create_table(
        "orders",
        sa.Column("order_id", sa.Integer(), primary_key=True, autoincrement=True),
        *_timestamps(),
        sa.Column("rest_id", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="placed"),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
    )
    op.create_index("ix_orders_rest_id", "orders", ["rest_id"])
    op.create_index("ix_orders_user_id", "orders", ["user_id"])

    op.create_table(
        "order_list",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_timestamps(),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("rest_id", sa.String(length=64), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_order_list_order_id", "order_list", ["order_id"])
    op.create_index("ix_order_list_rest_id", "order_list", ["rest_id"])

    op.create_table(
        "rating",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("rest_id", sa.String(length=64), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("review", sa.Text(), nullable=True),
    )
    op.create_table(
        "likes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("rest_id", sa.String(length=64), nullable=False),
    )
    op.create_table(
        "collection",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("rest_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=True),
    )
    for table in ENGAGEMENT_TABLES:
        op.create_index(f"ix_{table}_user_id", table, ["user_id"])
        op.create_index(f"ix_{table}_rest_id", table, ["rest_id"])


def downgrade():
    for table in ENGAGEMENT_TABLES:
        op.drop_index(f"ix_{table}_rest_id", table_name=table)
        op.drop_index(f"ix_{table}_user_id", table_name=table)
        op.drop_table(table)
    for table in ("order_list", "orders", "menu", "auth_logs", "auth_sessions", "otp_attempts", "users", "sellers", "addresses"):
        op.drop_table(table)
