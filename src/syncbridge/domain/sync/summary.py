"""Run phases, per-pair details and the run summary returned to callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from syncbridge.domain.model import FieldConflict, RunStatus, SourceEntity, TargetEntity

if TYPE_CHECKING:
    from datetime import datetime

    from syncbridge.domain.model import MatchType, SyncMode, SyncStatus


class SyncPhase(StrEnum):
    EXTRACT = "extract"
    MATCH_ALL = "match_all"
    RESOLVE_AND_STAGE_WRITES = "resolve_and_stage_writes"
    COMMIT_OR_SKIP = "commit_or_skip"
    AUDIT = "audit"


class DetailAction(StrEnum):
    MATCHED = "matched"
    CREATED = "created"
    CREATE_STAGED = "create_staged"
    SKIPPED = "skipped"
    UNMATCHED = "unmatched"
    TARGET_MISSING = "target_missing"


@dataclass(slots=True, kw_only=True)
class SyncDetail:
    """What the run decided and did for one source entity."""

    source_id: str
    source_name: str | None
    action: DetailAction
    target_id: str | None = None
    target_name: str | None = None
    match_type: MatchType | None = None
    reason: str | None = None
    writes: dict[str, str] = field(default_factory=dict[str, str])
    conflicts: list[FieldConflict] = field(default_factory=list[FieldConflict])
    error: str | None = None


@dataclass(slots=True, kw_only=True)
class SyncRunSummary:
    mode: SyncMode
    matched: int = 0
    new_mappings: int = 0
    updated_mappings: int = 0
    writes_succeeded: int = 0
    creates_succeeded: int = 0
    conflicts: int = 0
    unmatched_source: int = 0
    unmatched_target: int = 0
    duration_ms: int = 0
    batch_failures: int = 0
    write_failures: int = 0
    skipped: int = 0
    details: list[SyncDetail] = field(default_factory=list[SyncDetail])

    @property
    def status(self) -> RunStatus:
        if self.batch_failures or self.write_failures or self.skipped:
            return RunStatus.PARTIAL
        return RunStatus.SUCCESS

    def counts(self) -> dict[str, int]:
        return {
            "matched": self.matched,
            "new_mappings": self.new_mappings,
            "updated_mappings": self.updated_mappings,
            "writes_succeeded": self.writes_succeeded,
            "creates_succeeded": self.creates_succeeded,
            "conflicts": self.conflicts,
            "unmatched_source": self.unmatched_source,
            "unmatched_target": self.unmatched_target,
            "batch_failures": self.batch_failures,
            "write_failures": self.write_failures,
            "skipped": self.skipped,
        }


@dataclass(frozen=True, slots=True)
class MappingDigest:
    """Comparable view of one stored mapping for overviews."""

    id: int | None
    source_id: str
    target_id: str
    match_type: MatchType
    last_sync_status: SyncStatus
    conflict_count: int


@dataclass(frozen=True, slots=True, kw_only=True)
class SyncOverview:
    total_mappings: int
    total_source: int
    total_target: int
    mapped_source: int
    mapped_target: int
    with_conflicts: int
    by_match_type: dict[str, int]
    last_run_at: datetime | None
    last_run_status: RunStatus | None
    recent_mappings: tuple[MappingDigest, ...] = ()


@dataclass(slots=True)
class UnmatchedEntities:
    sources: list[SourceEntity] = field(default_factory=list[SourceEntity])
    targets: list[TargetEntity] = field(default_factory=list[TargetEntity])
