"""storeops initial schema

Revision ID: 20261016_0001
Revises:
Create Date: 2026-10-16 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261016_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _index_exists(inspector: sa.Inspector, table_name: str, index_name: str) -> bool:
    return index_name in {index["name"] for index in inspector.get_indexes(table_name)}


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _ensure_indexes(bind, table_name: str, indexes: list[tuple[str, list, bool]]) -> None:
    inspector = sa.inspect(bind)
    if not _table_exists(inspector, table_name):
        return
    for index_name, columns, unique in indexes:
        if not _index_exists(inspector, table_name, index_name):
            op.create_index(index_name, table_name, columns, unique=unique)


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _table_exists(inspector, "users"):
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("first_name", sa.String(length=100), nullable=False),
            sa.Column("last_name", sa.String(length=100), nullable=False),
            sa.Column("hashed_password", sa.String(length=255), nullable=False),
            sa.Column("phone", sa.String(length=50), nullable=True),
            sa.Column("address", sa.String(length=500), nullable=True),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="customer"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_indexes(
        bind,
        "users",
        [
            ("ix_users_email", ["email"], True),
            ("ux_users_email_lower", [sa.text("lower(email)")], True),
            ("ix_users_role_status", ["role", "status"], False),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "password_reset_tokens"):
        op.create_table(
            "password_reset_tokens",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("token_hash", sa.String(length=64), nullable=False),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_indexes(
        bind,
        "password_reset_tokens",
        [
            ("ix_password_reset_tokens_user_id", ["user_id"], False),
            ("ix_password_reset_tokens_token_hash", ["token_hash"], True),
            ("ix_password_reset_tokens_expires_at", ["expires_at"], False),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "products"):
        op.create_table(
            "products",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("sku", sa.String(length=100), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("category", sa.String(length=100), nullable=True),
            sa.Column("price", sa.Numeric(10, 2), nullable=False),
            sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("physical_inventory", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("min_stock_threshold", sa.Integer(), nullable=False, server_default="5"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("sku"),
        )
    _ensure_indexes(
        bind,
        "products",
        [
            ("ux_products_sku_lower", [sa.text("lower(sku)")], True),
            ("ix_products_is_active_created_at", ["is_active", "created_at"], False),
            ("ix_products_category", ["category"], False),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "orders"):
        op.create_table(
            "orders",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("order_number", sa.String(length=20), nullable=False),
            sa.Column("customer_id", sa.String(length=36), nullable=True),
            sa.Column("customer_name", sa.String(length=200), nullable=False),
            sa.Column("customer_email", sa.String(length=255), nullable=False),
            sa.Column("customer_phone", sa.String(length=50), nullable=False),
            sa.Column("shipping_address", sa.Text(), nullable=False),
            sa.Column("total", sa.Numeric(10, 2), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("payment_method", sa.String(length=30), nullable=False, server_default="cod"),
            sa.Column("assigned_user_id", sa.String(length=36), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["customer_id"], ["users.id"]),
            sa.ForeignKeyConstraint(["assigned_user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("order_number"),
        )
    _ensure_indexes(
        bind,
        "orders",
        [
            ("ix_orders_customer_id", ["customer_id"], False),
            ("ix_orders_assigned_user_id", ["assigned_user_id"], False),
            ("ix_orders_status_created_at", ["status", "created_at"], False),
            ("ix_orders_customer_created_at", ["customer_id", "created_at"], False),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "order_items"):
        op.create_table(
            "order_items",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("order_id", sa.String(length=36), nullable=False),
            sa.Column("product_id", sa.String(length=36), nullable=True),
            sa.Column("product_name", sa.String(length=255), nullable=False),
            sa.Column("product_sku", sa.String(length=100), nullable=True),
            sa.Column("product_price", sa.Numeric(10, 2), nullable=False),
            sa.Column("quantity", sa.Integer(), nullable=False),
            sa.Column("subtotal", sa.Numeric(10, 2), nullable=False),
            sa.Column("fulfilled", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
            sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_indexes(
        bind,
        "order_items",
        [
            ("ix_order_items_order_id", ["order_id"], False),
            ("ix_order_items_product_id", ["product_id"], False),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "inventory_logs"):
        op.create_table(
            "inventory_logs",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("product_id", sa.String(length=36), nullable=True),
            sa.Column("order_id", sa.String(length=36), nullable=True),
            sa.Column("type", sa.String(length=20), nullable=False),
            sa.Column("counter", sa.String(length=30), nullable=False, server_default="stock"),
            sa.Column("quantity", sa.Integer(), nullable=False),
            sa.Column("previous_stock", sa.Integer(), nullable=False),
            sa.Column("new_stock", sa.Integer(), nullable=False),
            sa.Column("reason", sa.Text(), nullable=True),
            sa.Column("user_id", sa.String(length=36), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
            sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_indexes(
        bind,
        "inventory_logs",
        [
            ("ix_inventory_logs_product_id", ["product_id"], False),
            ("ix_inventory_logs_order_id", ["order_id"], False),
            ("ix_inventory_logs_user_id", ["user_id"], False),
            ("ix_inventory_logs_created_at", ["created_at"], False),
            ("ix_inventory_logs_type_created_at", ["type", "created_at"], False),
            ("ix_inventory_logs_product_created_at", ["product_id", "created_at"], False),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "notifications"):
        op.create_table(
            "notifications",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("type", sa.String(length=50), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("data", sa.JSON(), nullable=True),
            sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_indexes(
        bind,
        "notifications",
        [
            ("ix_notifications_user_id", ["user_id"], False),
            ("ix_notifications_user_created_at", ["user_id", "created_at"], False),
        ],
    )


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    for table_name in (
        "notifications",
        "inventory_logs",
        "order_items",
        "orders",
        "products",
        "password_reset_tokens",
        "users",
    ):
        if _table_exists(inspector, table_name):
            op.drop_table(table_name)
