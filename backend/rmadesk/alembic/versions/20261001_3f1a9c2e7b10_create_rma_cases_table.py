"""Create rma_cases table.

Revision ID: 3f1a9c2e7b10
Revises:
Create Date: 2026-10-01
"""

import sqlalchemy as sa
from alembic import op

revision = "3f1a9c2e7b10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "rma_cases",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("priority", sa.String(length=20), nullable=False),
        sa.Column("source", sa.String(length=50), nullable=False),
        sa.Column("submission_channel", sa.String(length=50), nullable=False),
        sa.Column("shopify_order_id", sa.String(length=100), nullable=False),
        sa.Column("shopify_order_name", sa.String(length=100), nullable=True),
        sa.Column("shopify_order_number", sa.BigInteger(), nullable=True),
        sa.Column("shopify_return_id", sa.String(length=100), nullable=True),
        sa.Column("external_reference", sa.String(length=150), nullable=True),
        sa.Column("dedupe_key", sa.String(length=255), nullable=True),
        sa.Column("inventory_item_id", sa.String(length=36), nullable=True),
        sa.Column("serial_number", sa.String(length=255), nullable=True),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("customer_email", sa.String(length=255), nullable=True),
        sa.Column("customer_phone", sa.String(length=50), nullable=True),
        sa.Column("customer_contact_preference", sa.String(length=20), nullable=False),
        sa.Column("issue_summary", sa.Text(), nullable=False),
        sa.Column("issue_details", sa.Text(), nullable=True),
        sa.Column("arrival_condition_report", sa.Text(), nullable=True),
        sa.Column("warranty_status", sa.String(length=30), nullable=False),
        sa.Column("warranty_basis", sa.String(length=30), nullable=False),
        sa.Column("warranty_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("warranty_checked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("warranty_decision_notes", sa.Text(), nullable=True),
        sa.Column("order_processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("disposition", sa.String(length=20), nullable=True),
        sa.Column("disposition_reason", sa.Text(), nullable=True),
        sa.Column("assigned_technician_name", sa.String(length=255), nullable=True),
        sa.Column("assigned_technician_email", sa.String(length=255), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("inbound_carrier", sa.String(length=120), nullable=True),
        sa.Column("inbound_tracking_number", sa.String(length=200), nullable=True),
        sa.Column("inbound_tracking_url", sa.Text(), nullable=True),
        sa.Column("inbound_status", sa.String(length=80), nullable=True),
        sa.Column("outbound_carrier", sa.String(length=120), nullable=True),
        sa.Column("outbound_tracking_number", sa.String(length=200), nullable=True),
        sa.Column("outbound_tracking_url", sa.Text(), nullable=True),
        sa.Column("outbound_status", sa.String(length=80), nullable=True),
        sa.Column("hubspot_ticket_id", sa.String(length=100), nullable=True),
        sa.Column("ai_recommendation", sa.JSON(), nullable=True),
        sa.Column("sla_due_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("inspected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("shipped_back_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_back_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("dedupe_key"),
    )
    op.create_index("ix_rma_cases_status", "rma_cases", ["status"])
    op.create_index("ix_rma_cases_shopify_order_id", "rma_cases", ["shopify_order_id"])
    op.create_index("ix_rma_cases_serial_number", "rma_cases", ["serial_number"])
    op.create_index("ix_rma_cases_customer_email", "rma_cases", ["customer_email"])
    op.create_index(
        "ix_rma_cases_assigned_technician_email", "rma_cases", ["assigned_technician_email"]
    )
    op.create_index("ix_rma_cases_shopify_return_id", "rma_cases", ["shopify_return_id"])


def downgrade() -> None:
    op.drop_index("ix_rma_cases_shopify_return_id", table_name="rma_cases")
    op.drop_index("ix_rma_cases_assigned_technician_email", table_name="rma_cases")
    op.drop_index("ix_rma_cases_customer_email", table_name="rma_cases")
    op.drop_index("ix_rma_cases_serial_number", table_name="rma_cases")
    op.drop_index("ix_rma_cases_shopify_order_id", table_name="rma_cases")
    op.drop_index("ix_rma_cases_status", table_name="rma_cases")
    op.drop_table("rma_cases")
