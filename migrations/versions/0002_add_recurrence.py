"""add recurrence fields"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_add_recurrence"
down_revision = "0001_create_tasks"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "tasks",
        sa.Column("recurrence_type", sa.String(length=20), nullable=False, server_default="none"),
    )
    op.add_column(
        "tasks",
        sa.Column("recurrence_interval", sa.Integer(), nullable=False, server_default="1"),
    )
    op.add_column("tasks", sa.Column("recurrence_end_date", sa.DateTime(), nullable=True))
    op.add_column("tasks", sa.Column("recurrence_count", sa.Integer(), nullable=True))
    op.add_column("tasks", sa.Column("recurrence_weekdays", sa.JSON(), nullable=True))
    op.add_column(
        "tasks",
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.add_column(
        "tasks",
        sa.Column(
            "parent_task_id",
            sa.Integer(),
            sa.ForeignKey("tasks.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    op.create_index("ix_tasks_parent_task_id", "tasks", ["parent_task_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_tasks_parent_task_id", table_name="tasks")
    op.drop_column("tasks", "parent_task_id")
    op.drop_column("tasks", "is_recurring")
    op.drop_column("tasks", "recurrence_weekdays")
    op.drop_column("tasks", "recurrence_count")
    op.drop_column("tasks", "recurrence_end_date")
    op.drop_column("tasks", "recurrence_interval")
    op.drop_column("tasks", "recurrence_type")
