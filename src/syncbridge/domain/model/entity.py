"""Snapshot entities mirrored from the two remote systems."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import ClassVar

from .enums import SystemRole


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(eq=False, kw_only=True)
class SnapshotEntity:
    """Per-system snapshot of one remote record.

    Rows are refreshed by upsert on ``external_id`` every extraction and are
    never deleted by the sync core. ``normalized_name_key`` is computed by the
    extractor (see ``reconciliation.normalize.normalize_name``) so matching
    never re-derives it.
    """

    ROLE: ClassVar[SystemRole]

    system_id: str
    external_id: str
    display_name: str | None = None
    normalized_name_key: str = ""
    identifying_fields: dict[str, str] = field(default_factory=dict[str, str])
    last_seen_at: datetime = field(default_factory=_utcnow)

    @property
    def role(self) -> SystemRole:
        return self.ROLE

    def field_value(self, name: str) -> str | None:
        value = self.identifying_fields.get(name)
        if value is None or not value.strip():
            return None
        return value

    def with_fields(self, updates: dict[str, str]) -> dict[str, str]:
        """Return a copy of the identifying fields with ``updates`` applied."""

        return {**self.identifying_fields, **updates}

    def snapshot(self) -> dict[str, object]:
        return {
            "system_id": self.system_id,
            "external_id": self.external_id,
            "display_name": self.display_name,
            "fields": dict(self.identifying_fields),
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.external_id!r}, {self.display_name!r})"


@dataclass(eq=False, kw_only=True)
class SourceEntity(SnapshotEntity):
    ROLE: ClassVar[SystemRole] = SystemRole.SOURCE


@dataclass(eq=False, kw_only=True)
class TargetEntity(SnapshotEntity):
    ROLE: ClassVar[SystemRole] = SystemRole.TARGET
