"""SQLAlchemy mapping metadata for the syncbridge domain model."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Enum,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    orm,
)
from sqlalchemy.orm import configure_mappers

from syncbridge.domain.model import (
    ChangeHistoryRecord,
    ChangeType,
    FieldConflict,
    MatchType,
    RunStatus,
    SourceEntity,
    SyncDirection,
    SyncMapping,
    SyncMode,
    SyncRunRecord,
    SyncStatus,
    TargetEntity,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


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


class JSONObjectType(TypeDecorator[dict[str, Any]]):
    """JSON object stored as text with sorted keys so equal dicts serialise equally."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: dict[str, Any] | None, dialect: Dialect) -> str:
        _ = dialect
        return json.dumps(value or {}, sort_keys=True, default=str)

    def process_result_value(self, value: str | None, dialect: Dialect) -> dict[str, Any]:
        _ = dialect
        if value is None:
            return {}
        loaded = json.loads(value)
        if not isinstance(loaded, dict):
            return {}
        return cast(dict[str, Any], loaded)


class FieldConflictListType(TypeDecorator[list[FieldConflict]]):
    impl = Text
    cache_ok = True

    def process_bind_param(self, value: list[FieldConflict] | None, dialect: Dialect) -> str:
        _ = dialect
        return json.dumps([conflict.as_dict() for conflict in value or []])

    def process_result_value(self, value: str | None, dialect: Dialect) -> list[FieldConflict]:
        _ = dialect
        if value is None:
            return []
        loaded = json.loads(value)
        if not isinstance(loaded, list):
            return []
        items = cast(list[Any], loaded)
        return [FieldConflict.from_dict(item) for item in items if isinstance(item, dict)]


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Snapshot mirrors --------------------------------------------------------------


def _snapshot_table(name: str) -> Table:
    return Table(
        name,
        mapper_registry.metadata,
        Column("external_id", String, primary_key=True),
        Column("system_id", String, nullable=False),
        Column("display_name", String, nullable=True),
        Column("normalized_name_key", String, nullable=False, default=""),
        Column("identifying_fields", JSONObjectType, nullable=False),
        Column("last_seen_at", UTCDateTime, nullable=False),
        Index(f"ix_{name}_normalized_name_key", "normalized_name_key"),
    )


entities_source_table = _snapshot_table("entities_source")
entities_target_table = _snapshot_table("entities_target")

# Pairing state -----------------------------------------------------------------

sync_mappings_table = Table(
    "sync_mappings",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("source_id", String, nullable=False),
    Column("source_name", String, nullable=True),
    Column("target_id", String, nullable=False),
    Column("target_name", String, nullable=True),
    Column("match_type", Enum(MatchType, native_enum=False), nullable=False),
    Column("direction", Enum(SyncDirection, native_enum=False), nullable=False),
    Column("last_sync_at", UTCDateTime, nullable=True),
    Column("last_sync_status", Enum(SyncStatus, native_enum=False), nullable=False),
    Column("conflicts", FieldConflictListType, nullable=False),
    Column("metadata", JSONObjectType, key="meta", nullable=False),
    UniqueConstraint("source_id", name="uq_sync_mappings_source_id"),
    UniqueConstraint("target_id", name="uq_sync_mappings_target_id"),
)

change_history_table = Table(
    "change_history",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("entity_type", String, nullable=False),
    Column("entity_id", String, nullable=False),
    Column("change_type", Enum(ChangeType, native_enum=False), nullable=False),
    Column("field", String, nullable=True),
    Column("old_value", Text, nullable=True),
    Column("new_value", Text, nullable=True),
    Column("snapshot", JSONObjectType, nullable=False),
    Column("synced_at", UTCDateTime, nullable=False),
    Index("ix_change_history_synced_at", "synced_at"),
    Index("ix_change_history_entity", "entity_type", "entity_id"),
)

sync_runs_table = Table(
    "sync_runs",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("pair_name", String, nullable=False),
    Column("mode", Enum(SyncMode, native_enum=False), nullable=False),
    Column("status", Enum(RunStatus, native_enum=False), nullable=False),
    Column("started_at", UTCDateTime, nullable=False),
    Column("duration_ms", Integer, nullable=False),
    Column("counts", JSONObjectType, nullable=False),
    Column("error_message", Text, nullable=True),
    Index("ix_sync_runs_started_at", "started_at"),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(SourceEntity, entities_source_table)
    mapper_registry.map_imperatively(TargetEntity, entities_target_table)
    mapper_registry.map_imperatively(SyncMapping, sync_mappings_table)
    mapper_registry.map_imperatively(ChangeHistoryRecord, change_history_table)
    mapper_registry.map_imperatively(SyncRunRecord, sync_runs_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
