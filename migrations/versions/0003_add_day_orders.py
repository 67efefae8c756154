"""add per-day order counters"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0003_add_day_orders"
down_revision = "0002_add_recurrence"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "task_day_orders",
        sa.Column("day", sa.Date(), primary_key=True),
        sa.Column("last_order", sa.Integer(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("task_day_orders")
