"""add nudge held flag

Revision ID: c7e4b1d8a925
Revises: a3f1c9e2b7d4
Create Date: 2026-10-20 10:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "c7e4b1d8a925"
down_revision = "a3f1c9e2b7d4"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("nudges") as batch_op:
        batch_op.add_column(
            sa.Column("held", sa.Boolean(), nullable=False, server_default=sa.text("false"))
        )


def downgrade() -> None:
    with op.batch_alter_table("nudges") as batch_op:
        batch_op.drop_column("held")
