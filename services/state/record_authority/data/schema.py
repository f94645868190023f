"""SQLAlchemy table definitions owned by Record Authority Service.

Tables are unqualified; sessions pin ``search_path`` to the RAS schema.
"""

from __future__ import annotations

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB

from packages.docstore_shared.ids import record_id_column, record_reference_column

metadata = MetaData()


def _document(name: str, empty: str) -> Column:
    """Return a non-null JSONB document column defaulting to ``empty``."""
    return Column(
        name,
        JSONB,
        nullable=False,
        server_default=text(f"'{empty}'::jsonb"),
    )


def _timestamp(name: str) -> Column:
    return Column(name, DateTime(timezone=True), nullable=False)


def _version() -> Column:
    return Column("version", Integer, nullable=False, server_default=text("1"))


users = Table(
    "users",
    metadata,
    record_id_column("id", table="users"),
    Column("email", String(255), nullable=False),
    Column("name", String(200), nullable=False),
    _document("profile", "{}"),
    _document("preferences", "{}"),
    _document("address", "{}"),
    _timestamp("created_at"),
    _timestamp("updated_at"),
    _version(),
    Index("uq_users_email", "email", unique=True),
    Index("ix_users_profile_gin", "profile", postgresql_using="gin"),
)

products = Table(
    "products",
    metadata,
    record_id_column("id", table="products"),
    Column("name", String(200), nullable=False),
    Column("price", Numeric(18, 2), nullable=False),
    _document("specifications", "{}"),
    _document("metadata", "{}"),
    _document("tags", "[]"),
    _timestamp("created_at"),
    _timestamp("updated_at"),
    _version(),
    CheckConstraint("price >= 0", name="ck_products_price_nonnegative"),
    CheckConstraint("jsonb_typeof(tags) = 'array'", name="ck_products_tags_array"),
    Index("ix_products_name", "name"),
    Index("ix_products_specifications_gin", "specifications", postgresql_using="gin"),
    Index("ix_products_tags_gin", "tags", postgresql_using="gin"),
)

orders = Table(
    "orders",
    metadata,
    record_id_column("id", table="orders"),
    record_reference_column("user_id", table="orders"),
    Column("total_amount", Numeric(18, 2), nullable=False),
    Column("status", String(50), nullable=False, server_default="pending"),
    _document("items", "[]"),
    _document("shipping_address", "{}"),
    _document("payment_info", "{}"),
    _document("order_history", "[]"),
    _timestamp("created_at"),
    _timestamp("updated_at"),
    _version(),
    CheckConstraint(
        "jsonb_typeof(order_history) = 'array'", name="ck_orders_history_array"
    ),
    Index("ix_orders_user_id", "user_id"),
    Index("ix_orders_status", "status"),
    Index("ix_orders_items_gin", "items", postgresql_using="gin"),
)

log_entries = Table(
    "log_entries",
    metadata,
    record_id_column("id", table="log_entries"),
    Column("level", String(20), nullable=False, server_default="info"),
    Column("message", String(1000), nullable=False),
    _document("data", "{}"),
    _document("context", "{}"),
    _timestamp("timestamp"),
    _version(),
    Index("ix_log_entries_level", "level"),
    Index("ix_log_entries_timestamp", "timestamp"),
    Index("ix_log_entries_data_gin", "data", postgresql_using="gin"),
)
