"""Add per-registry sequence to serial_service_events.

Revision ID: d41e6b7c2f93
Revises: b7e3f0a9d412
Create Date: 2026-10-18
"""

import sqlalchemy as sa
from alembic import op

revision = "d41e6b7c2f93"
down_revision = "b7e3f0a9d412"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("serial_service_events") as batch_op:
        batch_op.add_column(
            sa.Column("sequence", sa.Integer(), nullable=False, server_default="0")
        )


def downgrade() -> None:
    with op.batch_alter_table("serial_service_events") as batch_op:
        batch_op.drop_column("sequence")
