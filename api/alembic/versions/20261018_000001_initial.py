"""initial schema

Revision ID: 20261018_000001
Revises: 
Create Date: 2026-10-18 00:00:01.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_000001"
down_revision = None
branch_labels = None
depends_on = None


media_type_enum = postgresql.ENUM(
    "movie",
    "series",
    "season",
    "episode",
    "artist",
    "album",
    "track",
    "playlist",
    "collection",
    name="media_type",
    create_type=False,
)
client_type_enum = postgresql.ENUM(
    "plex", "jellyfin", "emby", "subsonic", "radarr", "sonarr", "lidarr", "tmdb",
    name="client_type",
    create_type=False,
)
client_category_enum = postgresql.ENUM(
    "media", "automation", "metadata", name="client_category", create_type=False
)
sync_run_status_enum = postgresql.ENUM(
    "running", "synced", "partial", "empty", "failed", name="sync_run_status", create_type=False
)


def upgrade() -> None:
    """Create clients, media items and sync runs."""
    bind = op.get_bind()
    media_type_enum.create(bind, checkfirst=True)
    client_type_enum.create(bind, checkfirst=True)
    client_category_enum.create(bind, checkfirst=True)
    sync_run_status_enum.create(bind, checkfirst=True)

    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("client_type", client_type_enum, nullable=False),
        sa.Column("category", client_category_enum, nullable=False),
        sa.Column("base_url", sa.String(length=1024), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=True),
        sa.Column("encrypted_secret", sa.String(length=4096), nullable=False, server_default=""),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_error", sa.String(length=500), nullable=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("client_type", "name", name="uq_client_type_name"),
    )
    op.create_index("ix_clients_client_type", "clients", ["client_type"])

    op.create_table(
        "media_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("uuid", sa.String(length=36), nullable=False, unique=True),
        sa.Column("media_type", media_type_enum, nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("release_date", sa.Date(), nullable=True),
        sa.Column("release_year", sa.Integer(), nullable=True),
        sa.Column("stream_url", sa.String(length=1024), nullable=True),
        sa.Column("download_url", sa.String(length=1024), nullable=True),
        sa.Column(
            "sync_clients",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "external_ids",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("data", postgresql.JSONB(astext_type=sa.Text()), nullable=True, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_media_items_media_type", "media_items", ["media_type"])
    op.create_index("ix_media_items_title", "media_items", ["title"])
    op.create_index("ix_media_items_release_year", "media_items", ["release_year"])
    op.create_index(
        "ix_media_items_sync_clients",
        "media_items",
        ["sync_clients"],
        postgresql_using="gin",
        postgresql_ops={"sync_clients": "jsonb_path_ops"},
    )
    op.create_index(
        "ix_media_items_external_ids",
        "media_items",
        ["external_ids"],
        postgresql_using="gin",
        postgresql_ops={"external_ids": "jsonb_path_ops"},
    )

    op.create_table(
        "sync_runs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "client_id",
            sa.Integer(),
            sa.ForeignKey("clients.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("media_type", media_type_enum, nullable=False),
        sa.Column("status", sync_run_status_enum, nullable=False, server_default="running"),
        sa.Column("fetched", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("linked", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("errors", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("error", sa.String(length=500), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_sync_runs_client_id", "sync_runs", ["client_id"])


def downgrade() -> None:
    """Drop tables and enum types."""
    op.drop_index("ix_sync_runs_client_id", table_name="sync_runs")
    op.drop_table("sync_runs")
    op.drop_index("ix_media_items_external_ids", table_name="media_items")
    op.drop_index("ix_media_items_sync_clients", table_name="media_items")
    op.drop_index("ix_media_items_release_year", table_name="media_items")
    op.drop_index("ix_media_items_title", table_name="media_items")
    op.drop_index("ix_media_items_media_type", table_name="media_items")
    op.drop_table("media_items")
    op.drop_index("ix_clients_client_type", table_name="clients")
    op.drop_table("clients")
    bind = op.get_bind()
    sync_run_status_enum.drop(bind, checkfirst=True)
    client_category_enum.drop(bind, checkfirst=True)
    client_type_enum.drop(bind, checkfirst=True)
    media_type_enum.drop(bind, checkfirst=True)
