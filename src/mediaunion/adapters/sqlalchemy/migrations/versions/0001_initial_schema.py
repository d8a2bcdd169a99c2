"""Initial catalog schema.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

_MEDIA_TYPES = ("MOVIE", "SHOW", "EPISODE")
_RUN_STATUSES = ("RUNNING", "COMPLETED", "FAILED")


def _media_type(*, nullable: bool) -> sa.Column[str]:
    return sa.Column(
        "media_type",
        sa.Enum(*_MEDIA_TYPES, name="mediatype", native_enum=False),
        nullable=nullable,
    )


def upgrade() -> None:
    op.create_table(
        "canonical_identity",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("primary_key", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("poster_ref", sa.String(), nullable=True),
        _media_type(nullable=False),
        sa.Column("parent_identity_id", sa.Uuid(), nullable=True),
        sa.Column("merged_into_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["parent_identity_id"],
            ["canonical_identity.id"],
            name="fk_canonical_identity_canonical_identity_parent_identity_id_canonical_identity",
        ),
        sa.ForeignKeyConstraint(
            ["merged_into_id"],
            ["canonical_identity.id"],
            name="fk_canonical_identity_canonical_identity_merged_into_id_canonical_identity",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_canonical_identity"),
    )
    op.create_index("ix_canonical_identity_primary_key", "canonical_identity", ["primary_key"])
    op.create_index(
        "ix_canonical_identity_parent_identity_id", "canonical_identity", ["parent_identity_id"]
    )
    op.create_index(
        "ix_canonical_identity_merged_into_id", "canonical_identity", ["merged_into_id"]
    )

    op.create_table(
        "source_record",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("server_id", sa.String(), nullable=False),
        sa.Column("record_key", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=True),
        _media_type(nullable=True),
        sa.Column("parent_record_key", sa.String(), nullable=True),
        sa.Column("raw_metadata", sa.Text(), nullable=True),
        sa.Column("linked_identity_id", sa.Uuid(), nullable=True),
        sa.ForeignKeyConstraint(
            ["linked_identity_id"],
            ["canonical_identity.id"],
            name="fk_source_record_source_record_linked_identity_id_canonical_identity",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_source_record"),
        sa.UniqueConstraint("server_id", "record_key", name="uq_source_record_location"),
    )
    op.create_index("ix_source_record_linked_identity_id", "source_record", ["linked_identity_id"])

    op.create_table(
        "identity_key",
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("identity_id", sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(
            ["identity_id"],
            ["canonical_identity.id"],
            name="fk_identity_key_identity_key_identity_id_canonical_identity",
        ),
        sa.PrimaryKeyConstraint("key", name="pk_identity_key"),
    )
    op.create_index("ix_identity_key_identity_id", "identity_key", ["identity_id"])

    op.create_table(
        "media_group",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        _media_type(nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_media_group"),
    )

    op.create_table(
        "media_group_member",
        sa.Column("group_id", sa.Uuid(), nullable=False),
        sa.Column("server_id", sa.String(), nullable=False),
        sa.Column("record_key", sa.String(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["group_id"],
            ["media_group.id"],
            name="fk_media_group_member_media_group_member_group_id_media_group",
        ),
        sa.PrimaryKeyConstraint(
            "group_id", "server_id", "record_key", name="pk_media_group_member"
        ),
    )

    op.create_table(
        "playback_event",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user", sa.String(), nullable=False),
        sa.Column("server_id", sa.String(), nullable=False),
        sa.Column("record_key", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("played_duration_seconds", sa.Float(), nullable=False),
        sa.Column("subtitle_text", sa.String(), nullable=True),
        sa.Column("raw_metadata", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_playback_event"),
    )
    op.create_index("ix_playback_event_start_time", "playback_event", ["start_time"])
    op.create_index("ix_playback_event_record", "playback_event", ["server_id", "record_key"])

    op.create_table(
        "reconciliation_run",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*_RUN_STATUSES, name="runstatus", native_enum=False),
            nullable=False,
        ),
        sa.Column("force_full_scan", sa.Boolean(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("created_count", sa.Integer(), nullable=False),
        sa.Column("matched_count", sa.Integer(), nullable=False),
        sa.Column("linked_count", sa.Integer(), nullable=False),
        sa.Column("hierarchy_link_count", sa.Integer(), nullable=False),
        sa.Column("merged_count", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_reconciliation_run"),
    )
    op.create_index("ix_reconciliation_run_status", "reconciliation_run", ["status"])


def downgrade() -> None:
    op.drop_table("reconciliation_run")
    op.drop_table("playback_event")
    op.drop_table("media_group_member")
    op.drop_table("media_group")
    op.drop_table("identity_key")
    op.drop_table("source_record")
    op.drop_table("canonical_identity")
