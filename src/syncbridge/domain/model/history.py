"""Append-only change history and per-run audit records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from .enums import ChangeType, RunStatus, SyncMode


@dataclass(eq=False, kw_only=True)
class ChangeHistoryRecord:
    """One change this engine applied to a remote record.

    Purged once older than the configured retention window.
    """

    entity_type: str
    entity_id: str
    change_type: ChangeType
    field: str | None = None
    old_value: str | None = None
    new_value: str | None = None
    snapshot: dict[str, object] = field(default_factory=dict[str, object])
    synced_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    id: int | None = None


@dataclass(eq=False, kw_only=True)
class SyncRunRecord:
    """Audit entry written exactly once per persisted run."""

    pair_name: str
    mode: SyncMode
    status: RunStatus
    started_at: datetime
    duration_ms: int = 0
    counts: dict[str, int] = field(default_factory=dict[str, int])
    error_message: str | None = None
    id: int | None = None
