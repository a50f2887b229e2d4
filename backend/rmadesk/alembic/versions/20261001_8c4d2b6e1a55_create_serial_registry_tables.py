"""Create serial_registry and serial_service_events tables.

Revision ID: 8c4d2b6e1a55
Revises: 3f1a9c2e7b10
Create Date: 2026-10-01
"""

import sqlalchemy as sa
from alembic import op

revision = "8c4d2b6e1a55"
down_revision = "3f1a9c2e7b10"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "serial_registry",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("serial_number", sa.String(length=255), nullable=False),
        sa.Column("brand", sa.String(length=255), nullable=True),
        sa.Column("model", sa.String(length=255), nullable=True),
        sa.Column("inventory_item_id", sa.String(length=36), nullable=True),
        sa.Column("rma_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("first_seen_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_rma_at", sa.DateTime(timezone=True), nullable=True),
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
    )
    op.create_index(
        "ix_serial_registry_serial_number", "serial_registry", ["serial_number"], unique=True
    )

    op.create_table(
        "serial_service_events",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("serial_registry_id", sa.String(length=36), nullable=False),
        sa.Column("rma_case_id", sa.String(length=36), nullable=True),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["serial_registry_id"],
            ["serial_registry.id"],
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["rma_case_id"],
            ["rma_cases.id"],
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_serial_service_events_registry_created",
        "serial_service_events",
        ["serial_registry_id", "created_at"],
    )
    op.create_index(
        "ix_serial_service_events_rma_case_id", "serial_service_events", ["rma_case_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_serial_service_events_rma_case_id", table_name="serial_service_events")
    op.drop_index(
        "ix_serial_service_events_registry_created", table_name="serial_service_events"
    )
    op.drop_table("serial_service_events")
    op.drop_index("ix_serial_registry_serial_number", table_name="serial_registry")
    op.drop_table("serial_registry")
