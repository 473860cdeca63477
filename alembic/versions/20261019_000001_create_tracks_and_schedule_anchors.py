"""create_tracks_and_schedule_anchors

Revision ID: 4f1c2a9e7b10
Revises:
Create Date: 2026-10-19 00:00:01.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4f1c2a9e7b10"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "tracks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("artist", sa.String(length=255), nullable=False),
        sa.Column("duration_ms", sa.BigInteger(), nullable=False),
        sa.Column("play_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tip_weight", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at_ms", sa.BigInteger(), nullable=False),
        sa.CheckConstraint("duration_ms > 0", name=op.f("ck_tracks_duration_positive")),
        sa.CheckConstraint("play_count >= 0", name=op.f("ck_tracks_play_count_non_negative")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_tracks")),
    )
    op.create_table(
        "schedule_anchors",
        sa.Column("channel_id", sa.String(length=64), nullable=False),
        sa.Column("active_track_id", sa.Integer(), nullable=False),
        sa.Column("active_duration_ms", sa.BigInteger(), nullable=False),
        sa.Column("started_at_ms", sa.BigInteger(), nullable=False),
        sa.Column("committed_queue", sa.JSON(), nullable=False),
        sa.Column("recent_history", sa.JSON(), nullable=False),
        sa.Column("updated_at_ms", sa.BigInteger(), nullable=False),
        sa.CheckConstraint(
            "active_duration_ms > 0", name=op.f("ck_schedule_anchors_active_duration_positive")
        ),
        sa.PrimaryKeyConstraint("channel_id", name=op.f("pk_schedule_anchors")),
    )


def downgrade() -> None:
    op.drop_table("schedule_anchors")
    op.drop_table("tracks")
