"""add categories and order item line numbers

Revision ID: 20261016_0002
Revises: 20261016_0001
Create Date: 2026-10-16 15:30:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261016_0002"
down_revision: Union[str, None] = "20261016_0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _column_exists(inspector: sa.Inspector, table_name: str, column_name: str) -> bool:
    return column_name in {column["name"] for column in inspector.get_columns(table_name)}


def _index_exists(inspector: sa.Inspector, table_name: str, index_name: str) -> bool:
    return index_name in {index["name"] for index in inspector.get_indexes(table_name)}


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _table_exists(inspector, "categories"):
        op.create_table(
            "categories",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("parent_id", sa.String(length=36), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["parent_id"], ["categories.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
    inspector = sa.inspect(bind)
    if not _index_exists(inspector, "categories", "ix_categories_parent_id"):
        op.create_index("ix_categories_parent_id", "categories", ["parent_id"], unique=False)
    if not _index_exists(inspector, "categories", "ix_categories_is_active_sort_order"):
        op.create_index(
            "ix_categories_is_active_sort_order",
            "categories",
            ["is_active", "sort_order"],
            unique=False,
        )

    inspector = sa.inspect(bind)
    if _table_exists(inspector, "products"):
        if not _column_exists(inspector, "products", "category_id"):
            op.add_column("products", sa.Column("category_id", sa.String(length=36), nullable=True))

        existing_fks = {fk["name"] for fk in inspector.get_foreign_keys("products")}
        if "fk_products_category_id_categories" not in existing_fks:
            op.create_foreign_key(
                "fk_products_category_id_categories",
                "products",
                "categories",
                ["category_id"],
                ["id"],
            )
        inspector = sa.inspect(bind)
        if not _index_exists(inspector, "products", "ix_products_category_id"):
            op.create_index("ix_products_category_id", "products", ["category_id"], unique=False)

    inspector = sa.inspect(bind)
    if _table_exists(inspector, "order_items"):
        if not _column_exists(inspector, "order_items", "line_no"):
            op.add_column(
                "order_items",
                sa.Column("line_no", sa.Integer(), nullable=False, server_default="1"),
            )
        inspector = sa.inspect(bind)
        if not _index_exists(inspector, "order_items", "ix_order_items_order_line_no"):
            op.create_index(
                "ix_order_items_order_line_no",
                "order_items",
                ["order_id", "line_no"],
                unique=False,
            )


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if _table_exists(inspector, "order_items"):
        if _index_exists(inspector, "order_items", "ix_order_items_order_line_no"):
            op.drop_index("ix_order_items_order_line_no", table_name="order_items")
        if _column_exists(inspector, "order_items", "line_no"):
            op.drop_column("order_items", "line_no")

    inspector = sa.inspect(bind)
    if _table_exists(inspector, "products"):
        if _index_exists(inspector, "products", "ix_products_category_id"):
            op.drop_index("ix_products_category_id", table_name="products")
        existing_fks = {fk["name"] for fk in inspector.get_foreign_keys("products")}
        if "fk_products_category_id_categories" in existing_fks:
            op.drop_constraint("fk_products_category_id_categories", "products", type_="foreignkey")
        if _column_exists(inspector, "products", "category_id"):
            op.drop_column("products", "category_id")

    inspector = sa.inspect(bind)
    if _table_exists(inspector, "categories"):
        op.drop_table("categories")
