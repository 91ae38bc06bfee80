"""Create media task metadata table."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "media_tasks",
        sa.Column("task_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("duration", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("failure_class", sa.String(), nullable=True),
        sa.Column("error_summary", sa.Text(), nullable=True),
        sa.Column("stems_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("task_id"),
    )
    op.create_index("ix_media_tasks_status", "media_tasks", ["status"], unique=False)
    op.create_index(
        "idx_media_tasks_status_processed",
        "media_tasks",
        ["status", "processed_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("idx_media_tasks_status_processed", table_name="media_tasks")
    op.drop_index("ix_media_tasks_status", table_name="media_tasks")
    op.drop_table("media_tasks")
