"""SQLAlchemy mapping metadata for the mediaunion domain model."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
    text,
)
from sqlalchemy.orm import configure_mappers, relationship

from mediaunion.domain.model import (
    CanonicalIdentity,
    Group,
    GroupMember,
    IdentityKey,
    MediaType,
    PlaybackEvent,
    ReconciliationRun,
    RunStatus,
    SourceRecord,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Catalog tables --------------------------------------------------------------

canonical_identity_table = Table(
    "canonical_identity",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("primary_key", String, nullable=False, index=True),
    Column("title", String, nullable=False, default=""),
    Column("year", Integer, nullable=True),
    Column("poster_ref", String, nullable=True),
    Column("media_type", Enum(MediaType, native_enum=False), nullable=False),
    Column(
        "parent_identity_id",
        UUIDColumnType,
        ForeignKey("canonical_identity.id"),
        nullable=True,
        index=True,
    ),
    Column(
        "merged_into_id",
        UUIDColumnType,
        ForeignKey("canonical_identity.id"),
        nullable=True,
        index=True,
    ),
    Column("created_at", UTCDateTime(), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
)

source_record_table = Table(
    "source_record",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("server_id", String, nullable=False),
    Column("record_key", String, nullable=False),
    Column("title", String, nullable=False, default=""),
    Column("year", Integer, nullable=True),
    Column("media_type", Enum(MediaType, native_enum=False), nullable=True),
    Column("parent_record_key", String, nullable=True),
    Column("raw_metadata", Text, nullable=True),
    Column(
        "linked_identity_id",
        UUIDColumnType,
        ForeignKey("canonical_identity.id"),
        nullable=True,
        index=True,
    ),
    UniqueConstraint("server_id", "record_key", name="uq_source_record_location"),
)

identity_key_table = Table(
    "identity_key",
    mapper_registry.metadata,
    Column("key", String, primary_key=True),
    Column(
        "identity_id",
        UUIDColumnType,
        ForeignKey("canonical_identity.id"),
        nullable=False,
        index=True,
    ),
)

# Groups ----------------------------------------------------------------------

media_group_table = Table(
    "media_group",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("name", String, nullable=False),
    Column("media_type", Enum(MediaType, native_enum=False), nullable=False),
    Column("created_at", UTCDateTime(), nullable=True),
)

media_group_member_table = Table(
    "media_group_member",
    mapper_registry.metadata,
    Column("group_id", UUIDColumnType, ForeignKey("media_group.id"), primary_key=True),
    Column("server_id", String, primary_key=True),
    Column("record_key", String, primary_key=True),
    Column("position", Integer, nullable=False, default=0),
)

# History ---------------------------------------------------------------------

playback_event_table = Table(
    "playback_event",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("user", String, nullable=False),
    Column("server_id", String, nullable=False),
    Column("record_key", String, nullable=False),
    Column("title", String, nullable=True),
    Column("start_time", UTCDateTime(), nullable=False, index=True),
    Column("played_duration_seconds", Float, nullable=False, default=0.0),
    Column("subtitle_text", String, nullable=True),
    Column("raw_metadata", Text, nullable=True),
    Index("ix_playback_event_record", "server_id", "record_key"),
)

reconciliation_run_table = Table(
    "reconciliation_run",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("status", Enum(RunStatus, native_enum=False), nullable=False, index=True),
    Column("force_full_scan", Boolean, nullable=False, default=False),
    Column("started_at", UTCDateTime(), nullable=False),
    Column("finished_at", UTCDateTime(), nullable=True),
    Column("message", Text, nullable=True),
    Column("created_count", Integer, nullable=False, default=0),
    Column("matched_count", Integer, nullable=False, default=0),
    Column("linked_count", Integer, nullable=False, default=0),
    Column("hierarchy_link_count", Integer, nullable=False, default=0),
    Column("merged_count", Integer, nullable=False, default=0),
    Index(
        "uq_reconciliation_run_running",
        "status",
        unique=True,
        sqlite_where=text("status = 'RUNNING'"),
        postgresql_where=text("status = 'RUNNING'"),
    ),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(CanonicalIdentity, canonical_identity_table)
    mapper_registry.map_imperatively(SourceRecord, source_record_table)
    mapper_registry.map_imperatively(IdentityKey, identity_key_table)

    mapper_registry.map_imperatively(GroupMember, media_group_member_table)
    mapper_registry.map_imperatively(
        Group,
        media_group_table,
        properties={
            "members": relationship(
                GroupMember,
                order_by=media_group_member_table.c.position,
                lazy="selectin",
                cascade="all, delete-orphan",
            ),
        },
    )

    mapper_registry.map_imperatively(PlaybackEvent, playback_event_table)
    mapper_registry.map_imperatively(ReconciliationRun, reconciliation_run_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
