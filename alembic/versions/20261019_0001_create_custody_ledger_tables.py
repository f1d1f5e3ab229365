"""create custody ledger tables

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


DOCUMENT_NUMBER_SEQUENCES = ("delivery_document_number_seq", "payment_receipt_number_seq")


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _table_exists(inspector, "customers"):
        op.create_table(
            "customers",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("phone", sa.String(length=40), nullable=True),
            sa.Column("note", sa.String(length=255), nullable=True),
            _created_at(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_customers_phone", "customers", ["phone"], unique=False)
        op.create_index(
            "ix_customers_name_created_at",
            "customers",
            ["name", "created_at"],
            unique=False,
        )

    if not _table_exists(inspector, "products"):
        op.create_table(
            "products",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("unit", sa.String(length=20), nullable=False),
            sa.Column("price", sa.Numeric(12, 2), nullable=False),
            _created_at(),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists(inspector, "customer_stocks"):
        op.create_table(
            "customer_stocks",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("customer_id", sa.String(length=36), nullable=False),
            sa.Column("product_id", sa.String(length=36), nullable=False),
            sa.Column("quantity", sa.BigInteger(), nullable=False),
            _created_at(),
            sa.Column(
                "last_updated",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.func.now(),
            ),
            sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
            sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint(
                "customer_id",
                "product_id",
                name="uq_customer_stocks_customer_product",
            ),
            sa.CheckConstraint("quantity >= 0", name="ck_customer_stocks_quantity_non_negative"),
        )
        op.create_index("ix_customer_stocks_customer_id", "customer_stocks", ["customer_id"], unique=False)
        op.create_index("ix_customer_stocks_product_id", "customer_stocks", ["product_id"], unique=False)

    if not _table_exists(inspector, "deliveries"):
        op.create_table(
            "deliveries",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("customer_id", sa.String(length=36), nullable=False),
            sa.Column("product_id", sa.String(length=36), nullable=False),
            sa.Column("product_name", sa.String(length=255), nullable=False),
            sa.Column("unit", sa.String(length=20), nullable=False),
            sa.Column("quantity", sa.BigInteger(), nullable=False),
            sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
            sa.Column("total_amount", sa.Numeric(14, 2), nullable=False),
            sa.Column("delivery_date", sa.Date(), nullable=False),
            sa.Column("notes", sa.String(length=255), nullable=True),
            sa.Column("document_number", sa.String(length=20), nullable=False),
            sa.Column("idempotency_key", sa.String(length=80), nullable=True),
            _created_at(),
            sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
            sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("document_number"),
            sa.UniqueConstraint("idempotency_key"),
        )
        op.create_index("ix_deliveries_customer_id", "deliveries", ["customer_id"], unique=False)
        op.create_index("ix_deliveries_product_id", "deliveries", ["product_id"], unique=False)
        op.create_index(
            "ix_deliveries_customer_delivery_date",
            "deliveries",
            ["customer_id", "delivery_date"],
            unique=False,
        )

    if not _table_exists(inspector, "payments"):
        op.create_table(
            "payments",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("customer_id", sa.String(length=36), nullable=False),
            sa.Column("amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("payment_method", sa.String(length=30), nullable=False),
            sa.Column("notes", sa.String(length=255), nullable=True),
            sa.Column("receipt_number", sa.String(length=20), nullable=False),
            sa.Column("idempotency_key", sa.String(length=80), nullable=True),
            _created_at(),
            sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("receipt_number"),
            sa.UniqueConstraint("idempotency_key"),
        )
        op.create_index("ix_payments_customer_id", "payments", ["customer_id"], unique=False)
        op.create_index(
            "ix_payments_customer_created_at",
            "payments",
            ["customer_id", "created_at"],
            unique=False,
        )

    if not _table_exists(inspector, "payment_lines"):
        op.create_table(
            "payment_lines",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("payment_id", sa.String(length=36), nullable=False),
            sa.Column("product_id", sa.String(length=36), nullable=False),
            sa.Column("line_no", sa.Integer(), nullable=False),
            sa.Column("quantity", sa.BigInteger(), nullable=False),
            sa.ForeignKeyConstraint(["payment_id"], ["payments.id"]),
            sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_payment_lines_payment_id", "payment_lines", ["payment_id"], unique=False)
        op.create_index("ix_payment_lines_product_id", "payment_lines", ["product_id"], unique=False)

    if not _table_exists(inspector, "document_sequences"):
        op.create_table(
            "document_sequences",
            sa.Column("prefix", sa.String(length=8), nullable=False),
            sa.Column("last_number", sa.Integer(), nullable=False),
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.func.now(),
            ),
            sa.PrimaryKeyConstraint("prefix"),
        )

    if bind.dialect.supports_sequences:
        for sequence_name in DOCUMENT_NUMBER_SEQUENCES:
            op.execute(sa.schema.CreateSequence(sa.Sequence(sequence_name), if_not_exists=True))


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if bind.dialect.supports_sequences:
        for sequence_name in DOCUMENT_NUMBER_SEQUENCES:
            op.execute(sa.schema.DropSequence(sa.Sequence(sequence_name), if_exists=True))

    for table_name in (
        "document_sequences",
        "payment_lines",
        "payments",
        "deliveries",
        "customer_stocks",
        "products",
        "customers",
    ):
        if _table_exists(inspector, table_name):
            op.drop_table(table_name)
