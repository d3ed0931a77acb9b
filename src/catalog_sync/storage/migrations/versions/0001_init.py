"""
Инициальная миграция.

Создаёт таблицы:
- series
- episodes
- episode_assets
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "series",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category_id", sa.Uuid(), nullable=False),
        sa.Column("language", sa.String(length=10), nullable=True),
        sa.Column(
            "series_type",
            sa.Enum("documentary", "podcast", name="series_type"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_series_category_id", "series", ["category_id"], unique=False)

    op.create_table(
        "episodes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "series_id",
            sa.Uuid(),
            sa.ForeignKey("series.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("publish_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_episodes_series_id", "episodes", ["series_id"], unique=False)

    op.create_table(
        "episode_assets",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "episode_id",
            sa.Uuid(),
            sa.ForeignKey("episodes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("asset_type", sa.String(length=32), nullable=False),
        sa.Column("mime_type", sa.String(length=100), nullable=False),
        sa.Column("size_bytes", sa.BigInteger(), nullable=True),
        sa.Column("url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_episode_assets_episode_id", "episode_assets", ["episode_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_episode_assets_episode_id", table_name="episode_assets")
    op.drop_table("episode_assets")
    op.drop_index("ix_episodes_series_id", table_name="episodes")
    op.drop_table("episodes")
    op.drop_index("ix_series_category_id", table_name="series")
    op.drop_table("series")
    sa.Enum(name="series_type").drop(op.get_bind(), checkfirst=True)
