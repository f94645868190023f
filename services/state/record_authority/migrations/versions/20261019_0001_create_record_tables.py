"""create record authority tables"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from services.state.record_authority.data.runtime import record_postgres_schema

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _schema() -> str:
    """Resolve canonical RAS-owned schema name."""
    return record_postgres_schema()


def _ulid(name: str, table: str, *, primary_key: bool = False) -> sa.Column:
    """Return one 16-byte ULID column with its length check."""
    return sa.Column(
        name,
        postgresql.BYTEA(),
        sa.CheckConstraint(
            f"octet_length({name}) = 16", name=f"ck_{table}_{name}_ulid_16"
        ),
        primary_key=primary_key,
        nullable=False,
    )


def _document(name: str, empty: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.JSONB(),
        nullable=False,
        server_default=sa.text(f"'{empty}'::jsonb"),
    )


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False)


def _version() -> sa.Column:
    return sa.Column("version", sa.Integer(), nullable=False, server_default="1")


def upgrade() -> None:
    """Create RAS authoritative schema objects."""
    schema = _schema()

    op.create_table(
        "users",
        _ulid("id", "users", primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        _document("profile", "{}"),
        _document("preferences", "{}"),
        _document("address", "{}"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _version(),
        schema=schema,
    )
    op.create_index("uq_users_email", "users", ["email"], unique=True, schema=schema)
    op.create_index(
        "ix_users_profile_gin",
        "users",
        ["profile"],
        postgresql_using="gin",
        schema=schema,
    )

    op.create_table(
        "products",
        _ulid("id", "products", primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("price", sa.Numeric(18, 2), nullable=False),
        _document("specifications", "{}"),
        _document("metadata", "{}"),
        _document("tags", "[]"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _version(),
        sa.CheckConstraint("price >= 0", name="ck_products_price_nonnegative"),
        sa.CheckConstraint(
            "jsonb_typeof(tags) = 'array'", name="ck_products_tags_array"
        ),
        schema=schema,
    )
    op.create_index("ix_products_name", "products", ["name"], schema=schema)
    op.create_index(
        "ix_products_specifications_gin",
        "products",
        ["specifications"],
        postgresql_using="gin",
        schema=schema,
    )
    op.create_index(
        "ix_products_tags_gin",
        "products",
        ["tags"],
        postgresql_using="gin",
        schema=schema,
    )

    op.create_table(
        "orders",
        _ulid("id", "orders", primary_key=True),
        _ulid("user_id", "orders"),
        sa.Column("total_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column(
            "status", sa.String(length=50), nullable=False, server_default="pending"
        ),
        _document("items", "[]"),
        _document("shipping_address", "{}"),
        _document("payment_info", "{}"),
        _document("order_history", "[]"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _version(),
        sa.CheckConstraint(
            "jsonb_typeof(order_history) = 'array'", name="ck_orders_history_array"
        ),
        schema=schema,
    )
    op.create_index("ix_orders_user_id", "orders", ["user_id"], schema=schema)
    op.create_index("ix_orders_status", "orders", ["status"], schema=schema)
    op.create_index(
        "ix_orders_items_gin",
        "orders",
        ["items"],
        postgresql_using="gin",
        schema=schema,
    )

    op.create_table(
        "log_entries",
        _ulid("id", "log_entries", primary_key=True),
        sa.Column(
            "level", sa.String(length=20), nullable=False, server_default="info"
        ),
        sa.Column("message", sa.String(length=1000), nullable=False),
        _document("data", "{}"),
        _document("context", "{}"),
        _timestamp("timestamp"),
        _version(),
        schema=schema,
    )
    op.create_index("ix_log_entries_level", "log_entries", ["level"], schema=schema)
    op.create_index(
        "ix_log_entries_timestamp", "log_entries", ["timestamp"], schema=schema
    )
    op.create_index(
        "ix_log_entries_data_gin",
        "log_entries",
        ["data"],
        postgresql_using="gin",
        schema=schema,
    )


def downgrade() -> None:
    """Drop RAS authoritative schema objects."""
    schema = _schema()
    op.drop_table("log_entries", schema=schema)
    op.drop_table("orders", schema=schema)
    op.drop_table("products", schema=schema)
    op.drop_table("users", schema=schema)
