"""Initial schema - order workflow tables

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates:
- orders: procurement orders and their workflow status
- order_items: product lines (duplicates allowed)
- order_pricing: one price row per (order, product)
- order_approvals: append-only transition log
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # === ORDERS ===
    op.create_table(
        "orders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("pharmacy_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("workflow_status", sa.String(30), nullable=False, server_default="pending"),
        sa.Column("total_items", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(14, 2)),
        sa.Column("notes", sa.Text),
        sa.Column("status_reason", sa.Text),
        sa.Column("payment_proof_url", sa.String(500)),
        sa.Column("payment_method", sa.String(50)),
        sa.Column("payment_date", sa.TIMESTAMP),
        sa.Column("payment_rejection_reason", sa.Text),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP, server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP, server_default=sa.func.now()),
        sa.CheckConstraint(
            "workflow_status IN ('pending', 'needs_revision_ps', 'needs_revision_pm', "
            "'approved_pm', 'needs_revision_bs', 'approved_bs', 'invoice_issued', "
            "'needs_revision_pa', 'payment_uploaded', 'payment_rejected', "
            "'payment_verified', 'completed', 'rejected')",
            name="ck_orders_workflow_status",
        ),
    )
    op.create_index("idx_orders_workflow_status", "orders", ["workflow_status"])
    op.create_index("idx_orders_pharmacy", "orders", ["pharmacy_id", "created_at"])

    # === ORDER ITEMS ===
    op.create_table(
        "order_items",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "order_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("product_id", sa.String(64), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("created_at", sa.TIMESTAMP, server_default=sa.func.now()),
        sa.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )
    op.create_index("idx_order_items_order", "order_items", ["order_id"])

    # === ORDER PRICING ===
    op.create_table(
        "order_pricing",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "order_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("product_id", sa.String(64), nullable=False),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("discount_percent", sa.Numeric(5, 2)),
        sa.Column("notes", sa.Text),
        sa.Column("created_at", sa.TIMESTAMP, server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP, server_default=sa.func.now()),
        sa.UniqueConstraint("order_id", "product_id", name="uq_order_pricing_order_product"),
    )

    # === ORDER APPROVALS ===
    op.create_table(
        "order_approvals",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "order_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("orders.id"),
            nullable=False,
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("from_status", sa.String(30), nullable=False),
        sa.Column("to_status", sa.String(30), nullable=False),
        sa.Column("notes", sa.Text),
        sa.Column("created_at", sa.TIMESTAMP, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_order_approvals_order", "order_approvals", ["order_id", "created_at"])
    op.create_index("idx_order_approvals_to_status", "order_approvals", ["to_status"])

    # The log is append-only: refuse UPDATE and DELETE at the database level
    op.execute(
        """
        CREATE OR REPLACE FUNCTION order_approvals_immutable() RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION 'order_approvals rows are append-only';
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        """
        CREATE TRIGGER trg_order_approvals_immutable
        BEFORE UPDATE OR DELETE ON order_approvals
        FOR EACH ROW EXECUTE FUNCTION order_approvals_immutable();
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_order_approvals_immutable ON order_approvals")
    op.execute("DROP FUNCTION IF EXISTS order_approvals_immutable()")
    op.drop_table("order_approvals")
    op.drop_table("order_pricing")
    op.drop_table("order_items")
    op.drop_table("orders")
