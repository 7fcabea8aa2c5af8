"""Initial schema for Polla Partidos.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Tables:
- event_windows (at most one active row, enforced by a partial unique index)
- participants, user_roles (sign-in allow-list)
- bets (one row per window + participant)
- admin_tickets (cartilla images)
- odds_cache, access_tokens
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "event_windows",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("min_odds", sa.Numeric(precision=8, scale=3), nullable=True),
        sa.Column("max_odds", sa.Numeric(precision=8, scale=3), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "uq_event_windows_single_active",
        "event_windows",
        ["is_active"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )
    op.create_index("idx_event_windows_created", "event_windows", ["created_at"])

    op.create_table(
        "participants",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "bets",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("window_id", sa.String(length=36), nullable=False),
        sa.Column("participant_id", sa.String(length=36), nullable=False),
        sa.Column("bet_link", sa.Text(), nullable=True),
        sa.Column("bet_image_url", sa.Text(), nullable=True),
        sa.Column("odds", sa.Numeric(precision=8, scale=3), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["window_id"], ["event_windows.id"]),
        sa.ForeignKeyConstraint(["participant_id"], ["participants.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "window_id", "participant_id", name="uq_bets_window_participant"
        ),
    )

    op.create_table(
        "user_roles",
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("email"),
    )

    op.create_table(
        "admin_tickets",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("window_id", sa.String(length=36), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["window_id"], ["event_windows.id"]),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "odds_cache",
        sa.Column("cache_key", sa.String(length=100), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("cache_key"),
    )

    op.create_table(
        "access_tokens",
        sa.Column("token", sa.String(length=128), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("token"),
    )


def downgrade() -> None:
    op.drop_table("access_tokens")
    op.drop_table("odds_cache")
    op.drop_table("admin_tickets")
    op.drop_table("user_roles")
    op.drop_table("bets")
    op.drop_table("participants")
    op.drop_index("idx_event_windows_created", table_name="event_windows")
    op.drop_index("uq_event_windows_single_active", table_name="event_windows")
    op.drop_table("event_windows")
