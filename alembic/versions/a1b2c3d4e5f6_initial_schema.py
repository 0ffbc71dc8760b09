"""Initial schema: challenges, participants, activity logs, profiles, friendships.

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a1b2c3d4e5f6"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    ]


def upgrade() -> None:
    """Create the activity sync tables."""
    op.create_table(
        "challenges",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False, server_default=""),
        sa.Column("challenge_type", sa.String(50), nullable=False, server_default="steps"),
        sa.Column("goal_value", sa.Integer(), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status_override",
            sa.String(20),
            nullable=True,
            comment="cancelled | archived; NULL means status is derived from time bounds",
        ),
        sa.Column("created_by", sa.String(255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("start_date < end_date", name="ck_challenges_window"),
    )

    op.create_table(
        "challenge_participants",
        sa.Column(
            "challenge_id",
            sa.String(36),
            sa.ForeignKey("challenges.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("user_id", sa.String(255), primary_key=True),
        sa.Column("invite_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column(
            "current_progress",
            sa.Integer(),
            nullable=False,
            server_default="0",
            comment="Running sum of accepted activity values",
        ),
        *_timestamps(),
    )
    op.create_index(
        "ix_challenge_participants_user_status",
        "challenge_participants",
        ["user_id", "invite_status"],
    )

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "challenge_id",
            sa.String(36),
            sa.ForeignKey("challenges.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("activity_type", sa.String(50), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False),
        sa.Column("unit", sa.String(50), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("source", sa.String(20), nullable=False, server_default="manual"),
        sa.Column("client_event_id", sa.String(36), nullable=True),
        sa.Column("source_external_id", sa.String(255), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.UniqueConstraint(
            "challenge_id", "user_id", "client_event_id", name="uq_activity_logs_client_event"
        ),
        sa.UniqueConstraint(
            "source", "source_external_id", name="uq_activity_logs_source_external"
        ),
    )
    op.create_index(
        "ix_activity_logs_challenge_recorded", "activity_logs", ["challenge_id", "recorded_at"]
    )
    op.create_index("ix_activity_logs_user_recorded", "activity_logs", ["user_id", "recorded_at"])

    op.create_table(
        "profiles",
        sa.Column("user_id", sa.String(255), primary_key=True),
        sa.Column("username", sa.String(100), nullable=True, unique=True),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_activity_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("current_streak >= 0", name="ck_profiles_current_streak"),
        sa.CheckConstraint("longest_streak >= 0", name="ck_profiles_longest_streak"),
    )

    op.create_table(
        "friendships",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("requested_by", sa.String(255), nullable=False),
        sa.Column("requested_to", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        *_timestamps(),
        sa.UniqueConstraint("requested_by", "requested_to", name="uq_friendships_pair"),
        sa.CheckConstraint("requested_by <> requested_to", name="ck_friendships_not_self"),
    )
    op.create_index("ix_friendships_requested_by", "friendships", ["requested_by"])
    op.create_index("ix_friendships_requested_to", "friendships", ["requested_to"])


def downgrade() -> None:
    """Drop the activity sync tables."""
    op.drop_index("ix_friendships_requested_to", table_name="friendships")
    op.drop_index("ix_friendships_requested_by", table_name="friendships")
    op.drop_table("friendships")
    op.drop_table("profiles")
    op.drop_index("ix_activity_logs_user_recorded", table_name="activity_logs")
    op.drop_index("ix_activity_logs_challenge_recorded", table_name="activity_logs")
    op.drop_table("activity_logs")
    op.drop_index("ix_challenge_participants_user_status", table_name="challenge_participants")
    op.drop_table("challenge_participants")
    op.drop_table("challenges")
