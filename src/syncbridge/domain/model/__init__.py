"""Domain model for pairwise entity synchronisation."""

from __future__ import annotations

from .entity import SnapshotEntity, SourceEntity, TargetEntity
from .enums import (
    ChangeType,
    ConflictResolution,
    MatchType,
    RunStatus,
    SyncDirection,
    SyncMode,
    SyncStatus,
    SystemRole,
)
from .history import ChangeHistoryRecord, SyncRunRecord
from .mapping import FieldConflict, MatchCandidate, SyncMapping

__all__ = [
    "ChangeHistoryRecord",
    "ChangeType",
    "ConflictResolution",
    "FieldConflict",
    "MatchCandidate",
    "MatchType",
    "RunStatus",
    "SnapshotEntity",
    "SourceEntity",
    "SyncDirection",
    "SyncMapping",
    "SyncMode",
    "SyncRunRecord",
    "SyncStatus",
    "SystemRole",
    "TargetEntity",
]
