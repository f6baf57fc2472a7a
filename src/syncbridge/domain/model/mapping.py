"""Persistent 1:1 mapping between a source and a target entity."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .enums import ConflictResolution, MatchType, SyncDirection, SyncStatus

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True, slots=True)
class FieldConflict:
    """Irreconcilable field difference. Recorded as data, never raised."""

    field: str
    source_value: str | None
    target_value: str | None
    resolution: ConflictResolution

    def as_dict(self) -> dict[str, str | None]:
        return {
            "field": self.field,
            "source_value": self.source_value,
            "target_value": self.target_value,
            "resolution": self.resolution.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> FieldConflict:
        source_value = data.get("source_value")
        target_value = data.get("target_value")
        return cls(
            field=str(data["field"]),
            source_value=None if source_value is None else str(source_value),
            target_value=None if target_value is None else str(target_value),
            resolution=ConflictResolution(str(data["resolution"])),
        )


@dataclass(frozen=True, slots=True)
class MatchCandidate:
    """Transient matcher output; never persisted."""

    target_id: str
    match_type: MatchType
    score: int


@dataclass(eq=False, kw_only=True)
class SyncMapping:
    """Strict 1:1 association between one source and one target entity.

    ``source_id`` and ``target_id`` are each unique across the table. Rows are
    created on the first successful match or record creation, refreshed on
    every run that touches the pair, and removed only by a manual unlink.
    """

    source_id: str
    target_id: str
    match_type: MatchType
    source_name: str | None = None
    target_name: str | None = None
    direction: SyncDirection = SyncDirection.SOURCE_TO_TARGET
    last_sync_at: datetime | None = None
    last_sync_status: SyncStatus = SyncStatus.PENDING
    conflicts: list[FieldConflict] = field(default_factory=list[FieldConflict])
    meta: dict[str, object] = field(default_factory=dict[str, object])
    id: int | None = None

    def content_key(self) -> tuple[object, ...]:
        """Fields compared by idempotent upserts (timestamps excluded)."""

        return (
            self.source_id,
            self.target_id,
            self.match_type,
            self.source_name,
            self.target_name,
            self.direction,
            self.last_sync_status,
            tuple(self.conflicts),
            tuple(sorted((key, repr(value)) for key, value in self.meta.items())),
        )

    def copy_content_from(self, other: SyncMapping) -> None:
        self.target_id = other.target_id
        self.match_type = other.match_type
        self.source_name = other.source_name
        self.target_name = other.target_name
        self.direction = other.direction
        self.last_sync_at = other.last_sync_at
        self.last_sync_status = other.last_sync_status
        self.conflicts = list(other.conflicts)
        self.meta = dict(other.meta)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)
