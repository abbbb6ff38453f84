"""Create variable and reminder tables

Revision ID: a7c1e9d2b4f0
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a7c1e9d2b4f0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Create global_variables table
    op.create_table(
        "global_variables",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("variable_category_id", sa.String(length=100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("emoji", sa.String(length=16), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_global_variables"),
    )

    # Create user_variables table
    op.create_table(
        "user_variables",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("global_variable_id", sa.UUID(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["global_variable_id"],
            ["global_variables.id"],
            name="fk_user_variables_global_variable_id_global_variables",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_user_variables"),
        sa.UniqueConstraint("user_id", "global_variable_id", name="uq_user_variables_user_global"),
    )
    op.create_index("idx_user_variables_user_id", "user_variables", ["user_id"], unique=False)

    # Create reminder_schedules table
    op.create_table(
        "reminder_schedules",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("user_variable_id", sa.UUID(), nullable=False),
        sa.Column("frequency", sa.String(length=10), nullable=False),
        sa.Column("interval", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("by_weekday", sa.JSON(), nullable=True),
        sa.Column("by_month_day", sa.Integer(), nullable=True),
        sa.Column("anchor_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("time_of_day", sa.Time(), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("next_trigger_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("default_value", sa.Float(), nullable=True),
        sa.Column("notification_title_template", sa.String(length=255), nullable=True),
        sa.Column("notification_message_template", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["user_variable_id"],
            ["user_variables.id"],
            name="fk_reminder_schedules_user_variable_id_user_variables",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_reminder_schedules"),
    )
    op.create_index(
        "idx_reminder_schedules_next_trigger",
        "reminder_schedules",
        ["next_trigger_at", "is_active"],
        unique=False,
    )
    op.create_index(
        "idx_reminder_schedules_user_id",
        "reminder_schedules",
        ["user_id"],
        unique=False,
    )
    op.create_index(
        "idx_reminder_schedules_user_variable_id",
        "reminder_schedules",
        ["user_variable_id"],
        unique=False,
    )

    # Create reminder_notifications table
    op.create_table(
        "reminder_notifications",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("schedule_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("trigger_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("completed_or_skipped_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("log_details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["schedule_id"],
            ["reminder_schedules.id"],
            name="fk_reminder_notifications_schedule_id_reminder_schedules",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_reminder_notifications"),
    )
    op.create_index(
        "idx_reminder_notifications_status_trigger",
        "reminder_notifications",
        ["status", "trigger_at"],
        unique=False,
    )
    op.create_index(
        "idx_reminder_notifications_schedule_id",
        "reminder_notifications",
        ["schedule_id"],
        unique=False,
    )
    op.create_index(
        "idx_reminder_notifications_user_id",
        "reminder_notifications",
        ["user_id"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("idx_reminder_notifications_user_id", table_name="reminder_notifications")
    op.drop_index("idx_reminder_notifications_schedule_id", table_name="reminder_notifications")
    op.drop_index("idx_reminder_notifications_status_trigger", table_name="reminder_notifications")
    op.drop_table("reminder_notifications")

    op.drop_index("idx_reminder_schedules_user_variable_id", table_name="reminder_schedules")
    op.drop_index("idx_reminder_schedules_user_id", table_name="reminder_schedules")
    op.drop_index("idx_reminder_schedules_next_trigger", table_name="reminder_schedules")
    op.drop_table("reminder_schedules")

    op.drop_index("idx_user_variables_user_id", table_name="user_variables")
    op.drop_table("user_variables")

    op.drop_table("global_variables")
