"""initial reconciliation schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00
"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

big_pk = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

run_status = sa.Enum("STARTED", "SUCCESS", "FAILED", name="runstatus")
error_kind = sa.Enum("VALIDATION", "RETRY_EXHAUSTED", "LOAD", "MERGE", "UNEXPECTED", name="errorkind")
payment_status = sa.Enum("PENDING", "COMPLETED", "FAILED", "REFUNDED", name="paymentstatus")


def upgrade():
    op.create_table(
        "customers",
        sa.Column("id", big_pk, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(320), nullable=True, unique=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "products",
        sa.Column("id", big_pk, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("list_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_products_category", "products", ["category"])

    op.create_table(
        "reconciliation_runs",
        sa.Column("id", big_pk, primary_key=True, autoincrement=True),
        sa.Column("run_id", sa.Uuid(), nullable=False),
        sa.Column("process_name", sa.String(100), nullable=False),
        sa.Column("status", run_status, nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("duration_seconds", sa.Float(), nullable=True),
        sa.Column("rows_validated", sa.Integer(), nullable=True),
        sa.Column("rows_rejected", sa.Integer(), nullable=True),
        sa.Column("rows_exhausted", sa.Integer(), nullable=True),
        sa.Column("rows_loaded", sa.Integer(), nullable=True),
        sa.Column("orders_created", sa.Integer(), nullable=True),
        sa.Column("facts_inserted", sa.Integer(), nullable=True),
        sa.Column("facts_updated", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
    )
    op.create_index("ix_reconciliation_runs_run_id", "reconciliation_runs", ["run_id"], unique=True)
    op.create_index("ix_reconciliation_runs_process_name", "reconciliation_runs", ["process_name"])
    op.create_index("ix_reconciliation_runs_status", "reconciliation_runs", ["status"])
    op.create_index("ix_reconciliation_runs_started_at", "reconciliation_runs", ["started_at"])
    op.create_index("idx_run_process_started", "reconciliation_runs", ["process_name", "started_at"])
    op.create_index("idx_run_status", "reconciliation_runs", ["status", "started_at"])

    op.create_table(
        "reconciliation_errors",
        sa.Column("id", big_pk, primary_key=True, autoincrement=True),
        sa.Column("run_id", sa.BigInteger(), sa.ForeignKey("reconciliation_runs.id"), nullable=False),
        sa.Column("source_table", sa.String(100), nullable=False),
        sa.Column("source_row_id", sa.BigInteger(), nullable=True),
        sa.Column("kind", error_kind, nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("logged_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_reconciliation_errors_run_id", "reconciliation_errors", ["run_id"])
    op.create_index("ix_reconciliation_errors_source_row_id", "reconciliation_errors", ["source_row_id"])
    op.create_index("ix_reconciliation_errors_kind", "reconciliation_errors", ["kind"])
    op.create_index("ix_reconciliation_errors_logged_at", "reconciliation_errors", ["logged_at"])

    op.create_table(
        "staging_orders",
        sa.Column("id", big_pk, primary_key=True, autoincrement=True),
        sa.Column("customer_ref", sa.BigInteger(), nullable=True),
        sa.Column("product_ref", sa.BigInteger(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("order_date", sa.Date(), nullable=True),
        sa.Column("source_file", sa.String(500), nullable=True),
        sa.Column("ingested_at", sa.DateTime(), nullable=False),
        sa.Column("valid", sa.Boolean(), nullable=False),
        sa.Column("retry_count", sa.Integer(), nullable=False),
        sa.Column("validated_at", sa.DateTime(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("corrected_at", sa.DateTime(), nullable=True),
        sa.Column("processed", sa.Boolean(), nullable=False),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.Column("load_run_id", sa.BigInteger(), sa.ForeignKey("reconciliation_runs.id"), nullable=True),
    )
    op.create_index("ix_staging_orders_load_run_id", "staging_orders", ["load_run_id"])
    op.create_index("idx_staging_loadable", "staging_orders", ["valid", "processed"])
    op.create_index("idx_staging_retry", "staging_orders", ["valid", "processed", "retry_count"])

    op.create_table(
        "orders",
        sa.Column("id", big_pk, primary_key=True, autoincrement=True),
        sa.Column("customer_id", sa.BigInteger(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("order_date", sa.Date(), nullable=False),
        sa.Column("total", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("load_run_id", sa.BigInteger(), sa.ForeignKey("reconciliation_runs.id"), nullable=True),
        sa.UniqueConstraint("customer_id", "order_date", name="uq_orders_customer_date"),
    )
    op.create_index("ix_orders_customer_id", "orders", ["customer_id"])
    op.create_index("ix_orders_order_date", "orders", ["order_date"])
    op.create_index("ix_orders_load_run_id", "orders", ["load_run_id"])

    op.create_table(
        "order_lines",
        sa.Column("id", big_pk, primary_key=True, autoincrement=True),
        sa.Column("order_id", sa.BigInteger(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("line_total", sa.Numeric(12, 2), nullable=False),
        sa.Column("staging_row_id", sa.BigInteger(), sa.ForeignKey("staging_orders.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("order_id", "product_id", name="uq_order_lines_order_product"),
    )
    op.create_index("ix_order_lines_order_id", "order_lines", ["order_id"])
    op.create_index("ix_order_lines_product_id", "order_lines", ["product_id"])

    op.create_table(
        "payments",
        sa.Column("id", big_pk, primary_key=True, autoincrement=True),
        sa.Column("order_id", sa.BigInteger(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("method", sa.String(50), nullable=False),
        sa.Column("status", payment_status, nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_payments_order_id", "payments", ["order_id"])
    op.create_index("idx_payments_order_id_id", "payments", ["order_id", "id"])

    op.create_table(
        "fact_order_lines",
        sa.Column("order_id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("product_id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("customer_id", sa.BigInteger(), nullable=False),
        sa.Column("order_date", sa.Date(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("line_total", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("payment_status", sa.String(20), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_fact_order_lines_customer_id", "fact_order_lines", ["customer_id"])
    op.create_index("ix_fact_order_lines_order_date", "fact_order_lines", ["order_date"])
    op.create_index("idx_fact_last_updated", "fact_order_lines", ["last_updated"])


def downgrade():
    op.drop_table("fact_order_lines")
    op.drop_table("payments")
    op.drop_table("order_lines")
    op.drop_table("orders")
    op.drop_table("staging_orders")
    op.drop_table("reconciliation_errors")
    op.drop_table("reconciliation_runs")
    op.drop_table("products")
    op.drop_table("customers")
    bind = op.get_bind()
    for enum_type in (payment_status, error_kind, run_status):
        enum_type.drop(bind, checkfirst=True)
