"""initial salon schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _index_exists(inspector: sa.Inspector, table_name: str, index_name: str) -> bool:
    return index_name in {index["name"] for index in inspector.get_indexes(table_name)}


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


# (table, index name, columns) in creation order.
_INDEXES: list[tuple[str, str, list[str]]] = [
    ("materials", "ix_materials_group_id", ["group_id"]),
    ("materials", "ix_materials_group_name", ["group_id", "name"]),
    ("clients", "ix_clients_group_id", ["group_id"]),
    ("clients", "ix_clients_last_first_name", ["last_name", "first_name"]),
    ("services", "ix_services_group_id", ["group_id"]),
    ("orders", "ix_orders_status_created_at", ["status", "created_at"]),
    ("order_items", "ix_order_items_order_id", ["order_id"]),
    ("order_items", "ix_order_items_material_id", ["material_id"]),
    ("stock_transactions", "ix_stock_transactions_client_id", ["client_id"]),
    ("stock_transactions", "ix_stock_transactions_visit_id", ["visit_id"]),
    ("stock_transactions", "ix_stock_transactions_order_id", ["order_id"]),
    ("stock_transactions", "ix_stock_transactions_cause_created_at", ["cause", "created_at"]),
    ("material_movements", "ix_material_movements_material_id", ["material_id"]),
    ("material_movements", "ix_material_movements_transaction_id", ["transaction_id"]),
    ("material_movements", "ix_material_movements_client_id", ["client_id"]),
    ("material_movements", "ix_material_movements_visit_id", ["visit_id"]),
    ("material_movements", "ix_material_movements_material_created_at", ["material_id", "created_at"]),
    ("material_movements", "ix_material_movements_type_created_at", ["type", "created_at"]),
    ("home_products", "ix_home_products_client_id", ["client_id"]),
    ("home_products", "ix_home_products_material_id", ["material_id"]),
    ("home_products", "ix_home_products_transaction_id", ["transaction_id"]),
    ("home_products", "ix_home_products_purchase_id", ["purchase_id"]),
    ("home_products", "ix_home_products_client_created_at", ["client_id", "created_at"]),
    ("visits", "ix_visits_client_id", ["client_id"]),
    ("visits", "ix_visits_client_created_at", ["client_id", "created_at"]),
    ("visit_services", "ix_visit_services_visit_id", ["visit_id"]),
    ("visit_services", "ix_visit_services_service_id", ["service_id"]),
    ("visit_materials", "ix_visit_materials_visit_service_id", ["visit_service_id"]),
    ("visit_materials", "ix_visit_materials_material_id", ["material_id"]),
]


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _table_exists(inspector, "material_groups"):
        op.create_table(
            "material_groups",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            _created_at(),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "materials"):
        op.create_table(
            "materials",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("group_id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("unit", sa.String(length=4), nullable=False),
            sa.Column("package_size", sa.Numeric(14, 4), nullable=False),
            sa.Column("stock_quantity", sa.Numeric(14, 4), nullable=False, server_default="0"),
            sa.Column("initial_stock", sa.Numeric(14, 4), nullable=False, server_default="0"),
            sa.Column("min_stock", sa.Numeric(14, 4), nullable=False, server_default="0"),
            sa.Column("is_retail_product", sa.Boolean(), nullable=False, server_default=sa.false()),
            _created_at(),
            _updated_at(),
            sa.ForeignKeyConstraint(["group_id"], ["material_groups.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "client_groups"):
        op.create_table(
            "client_groups",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            _created_at(),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "clients"):
        op.create_table(
            "clients",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("group_id", sa.String(length=36), nullable=True),
            sa.Column("first_name", sa.String(length=120), nullable=False),
            sa.Column("last_name", sa.String(length=120), nullable=False),
            sa.Column("phone", sa.String(length=40), nullable=True),
            sa.Column("avatar", sa.String(length=8), nullable=True),
            _created_at(),
            sa.ForeignKeyConstraint(["group_id"], ["client_groups.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "service_groups"):
        op.create_table(
            "service_groups",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            _created_at(),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "services"):
        op.create_table(
            "services",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("group_id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("price", sa.Numeric(12, 2), nullable=True),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            _created_at(),
            sa.ForeignKeyConstraint(["group_id"], ["service_groups.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "orders"):
        op.create_table(
            "orders",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("note", sa.String(length=500), nullable=True),
            sa.Column("ordered_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
            _created_at(),
            _updated_at(),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "order_items"):
        op.create_table(
            "order_items",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("order_id", sa.String(length=36), nullable=False),
            sa.Column("material_id", sa.String(length=36), nullable=False),
            sa.Column("quantity", sa.Numeric(14, 4), nullable=False),
            sa.Column("price", sa.Numeric(12, 2), nullable=True),
            sa.Column("delivered_quantity", sa.Numeric(14, 4), nullable=True),
            sa.Column("added_on_delivery", sa.Boolean(), nullable=False, server_default=sa.false()),
            _created_at(),
            sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
            sa.ForeignKeyConstraint(["material_id"], ["materials.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "stock_transactions"):
        op.create_table(
            "stock_transactions",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("reference", sa.String(length=40), nullable=False),
            sa.Column("cause", sa.String(length=20), nullable=False),
            sa.Column("client_id", sa.String(length=36), nullable=True),
            sa.Column("visit_id", sa.String(length=36), nullable=True),
            sa.Column("order_id", sa.String(length=36), nullable=True),
            sa.Column("note", sa.String(length=500), nullable=True),
            sa.Column("total_price", sa.Numeric(12, 2), nullable=True),
            _created_at(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("reference", name="uq_stock_transactions_reference"),
        )

    if not _table_exists(inspector, "material_movements"):
        op.create_table(
            "material_movements",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("material_id", sa.String(length=36), nullable=False),
            sa.Column("transaction_id", sa.String(length=36), nullable=False),
            sa.Column("line_no", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("type", sa.String(length=20), nullable=False),
            sa.Column("quantity", sa.Numeric(14, 4), nullable=False),
            sa.Column("note", sa.String(length=500), nullable=True),
            sa.Column("client_id", sa.String(length=36), nullable=True),
            sa.Column("visit_id", sa.String(length=36), nullable=True),
            sa.Column("total_price", sa.Numeric(12, 2), nullable=True),
            _created_at(),
            sa.ForeignKeyConstraint(["material_id"], ["materials.id"]),
            sa.ForeignKeyConstraint(["transaction_id"], ["stock_transactions.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "home_products"):
        op.create_table(
            "home_products",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("client_id", sa.String(length=36), nullable=False),
            sa.Column("material_id", sa.String(length=36), nullable=True),
            sa.Column("transaction_id", sa.String(length=36), nullable=True),
            sa.Column("purchase_id", sa.String(length=40), nullable=True),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("quantity", sa.Numeric(14, 4), nullable=False),
            sa.Column("unit", sa.String(length=4), nullable=False),
            sa.Column("package_size", sa.Numeric(14, 4), nullable=False),
            sa.Column("total_price", sa.Numeric(12, 2), nullable=True),
            sa.Column("note", sa.String(length=500), nullable=True),
            _created_at(),
            sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "visits"):
        op.create_table(
            "visits",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("client_id", sa.String(length=36), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="saved"),
            sa.Column("total_price", sa.Numeric(12, 2), nullable=True),
            sa.Column("note", sa.String(length=1000), nullable=True),
            sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
            _created_at(),
            sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "visit_services"):
        op.create_table(
            "visit_services",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("visit_id", sa.String(length=36), nullable=False),
            sa.Column("service_id", sa.String(length=36), nullable=False),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            _created_at(),
            sa.ForeignKeyConstraint(["visit_id"], ["visits.id"]),
            sa.ForeignKeyConstraint(["service_id"], ["services.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "visit_materials"):
        op.create_table(
            "visit_materials",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("visit_service_id", sa.String(length=36), nullable=False),
            sa.Column("material_id", sa.String(length=36), nullable=False),
            sa.Column("quantity", sa.Numeric(14, 4), nullable=False),
            sa.Column("unit", sa.String(length=4), nullable=False),
            _created_at(),
            sa.ForeignKeyConstraint(["visit_service_id"], ["visit_services.id"]),
            sa.ForeignKeyConstraint(["material_id"], ["materials.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    inspector = sa.inspect(bind)
    for table_name, index_name, columns in _INDEXES:
        if _table_exists(inspector, table_name) and not _index_exists(inspector, table_name, index_name):
            op.create_index(index_name, table_name, columns, unique=False)


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    for table_name, index_name, _ in reversed(_INDEXES):
        if _table_exists(inspector, table_name) and _index_exists(inspector, table_name, index_name):
            op.drop_index(index_name, table_name=table_name)

    for table_name in (
        "visit_materials",
        "visit_services",
        "visits",
        "home_products",
        "material_movements",
        "stock_transactions",
        "order_items",
        "orders",
        "services",
        "service_groups",
        "clients",
        "client_groups",
        "materials",
        "material_groups",
    ):
        if _table_exists(inspector, table_name):
            op.drop_table(table_name)
