"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class SystemRole(StrEnum):
    """Which side of the synchronised pair an entity lives on."""

    SOURCE = "source"
    TARGET = "target"


class MatchType(StrEnum):
    """Rule that produced a mapping. Sticky lookups keep the original type."""

    EXACT_KEY = "exact_key"
    EXACT_NAME = "exact_name"
    FUZZY = "fuzzy"
    MANUAL = "manual"
    CREATED = "created"


class SyncDirection(StrEnum):
    SOURCE_TO_TARGET = "source_to_target"
    MANUAL = "manual"


class SyncStatus(StrEnum):
    PENDING = "pending"
    SYNCED = "synced"
    CONFLICT = "conflict"
    TARGET_MISSING = "target_missing"


class ConflictResolution(StrEnum):
    SOURCE_WINS = "source_wins"
    KEPT_BOTH = "kept_both"
    TARGET_PRESERVED = "target_preserved"


class ChangeType(StrEnum):
    CREATED = "created"
    FIELD_UPDATE = "field_update"


class RunStatus(StrEnum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class SyncMode(StrEnum):
    """Side-effect levels, strictly nested: dry-run < read-only < write."""

    DRY_RUN = "dry-run"
    READ_ONLY = "read-only"
    WRITE = "write"

    @property
    def persists_locally(self) -> bool:
        return self is not SyncMode.DRY_RUN

    @property
    def writes_remote(self) -> bool:
        return self is SyncMode.WRITE
