"""Create rma_customer_communications table.

Revision ID: e8a2c5f17b30
Revises: d41e6b7c2f93
Create Date: 2026-10-19
"""

import sqlalchemy as sa
from alembic import op

revision = "e8a2c5f17b30"
down_revision = "d41e6b7c2f93"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "rma_customer_communications",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("rma_case_id", sa.String(length=36), nullable=False),
        sa.Column("channel", sa.String(length=20), nullable=False),
        sa.Column("direction", sa.String(length=20), nullable=False),
        sa.Column("template_key", sa.String(length=50), nullable=True),
        sa.Column("recipient", sa.String(length=255), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["rma_case_id"], ["rma_cases.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_rma_customer_communications_case_created",
        "rma_customer_communications",
        ["rma_case_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_rma_customer_communications_case_created",
        table_name="rma_customer_communications",
    )
    op.drop_table("rma_customer_communications")
