"""Ports for persisting snapshots, mappings, change history and run audits."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from syncbridge.domain.model import (
    ChangeHistoryRecord,
    SnapshotEntity,
    SourceEntity,
    SyncMapping,
    SyncRunRecord,
    TargetEntity,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime

    from syncbridge.domain.model import MatchType, SyncStatus


class UpsertOutcome(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True, slots=True, kw_only=True)
class MappingFilter:
    match_type: MatchType | None = None
    status: SyncStatus | None = None
    has_conflicts: bool | None = None
    limit: int | None = None


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class SnapshotRepository[TSnapshot: SnapshotEntity](Repository[TSnapshot], Protocol):
    """Local mirror of one system's entities, keyed by ``external_id``."""

    def get(self, external_id: str) -> TSnapshot | None: ...

    def list_all(self) -> Sequence[TSnapshot]:
        """Return every entity ordered by ``external_id``."""
        ...

    def upsert(self, entity: TSnapshot) -> TSnapshot: ...

    def apply_fields(self, external_id: str, fields: dict[str, str]) -> None: ...

    def count(self) -> int: ...


@runtime_checkable
class SourceEntityRepository(SnapshotRepository[SourceEntity], Protocol):
    """Snapshot store for the source system."""


@runtime_checkable
class TargetEntityRepository(SnapshotRepository[TargetEntity], Protocol):
    """Snapshot store for the target system."""


@runtime_checkable
class MappingRepository(Repository[SyncMapping], Protocol):
    """Mapping store enforcing the 1:1 source/target invariant."""

    def get(self, mapping_id: int) -> SyncMapping | None: ...

    def get_by_source(self, source_id: str) -> SyncMapping | None: ...

    def get_by_target(self, target_id: str) -> SyncMapping | None: ...

    def upsert(self, mapping: SyncMapping) -> UpsertOutcome:
        """Update the row for ``mapping.source_id`` if present, else insert it."""
        ...

    def create_manual(self, source_id: str, target_id: str, **values: object) -> SyncMapping: ...

    def delete(self, mapping_id: int) -> bool: ...

    def list(self, mapping_filter: MappingFilter | None = None) -> Sequence[SyncMapping]: ...


@runtime_checkable
class ChangeHistoryRepository(Protocol):
    def append(self, records: Iterable[ChangeHistoryRecord]) -> int: ...

    def purge_older_than(self, cutoff: datetime) -> int: ...

    def count(self) -> int: ...


@runtime_checkable
class SyncRunRepository(Repository[SyncRunRecord], Protocol):
    def latest(self) -> SyncRunRecord | None: ...
