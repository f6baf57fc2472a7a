"""Ports for the two remote systems and the UI automation fallback.

Vendor HTTP clients, OAuth and browser automation live behind these
protocols; the sync core only awaits them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path


@dataclass(frozen=True, slots=True)
class RemoteRecord:
    """One record as listed by a remote system."""

    id: str
    properties: dict[str, str] = field(default_factory=dict[str, str])
    updated_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class RecordUpdate:
    """Field values to write onto one existing remote record."""

    id: str
    properties: dict[str, str]


@dataclass(frozen=True, slots=True)
class ItemResult:
    """Per-item outcome reported by a batch update call."""

    id: str
    ok: bool
    error: str | None = None


@runtime_checkable
class RemoteSystemClient(Protocol):
    """Read/write access to one remote system.

    ``create_record`` raises ``UniqueConstraintConflict`` when the remote
    refuses a duplicate unique value and ``RemoteWriteError`` for any other
    rejection. ``batch_update`` raises ``RemoteWriteError`` when the whole
    batch fails, otherwise reports per-item results.
    """

    system_id: str

    async def list_all(self, entity_kind: str) -> Sequence[RemoteRecord]: ...

    async def create_record(self, entity_kind: str, properties: Mapping[str, str]) -> str: ...

    async def batch_update(
        self,
        entity_kind: str,
        updates: Sequence[RecordUpdate],
    ) -> Sequence[ItemResult]: ...


@runtime_checkable
class RecordCreator(Protocol):
    """Anything able to create one remote record and return its id."""

    async def create_record(self, entity_kind: str, properties: Mapping[str, str]) -> str: ...


@runtime_checkable
class UIAutomationAgent(RecordCreator, Protocol):
    """Browser-driven fallback for systems whose write API is inadequate."""

    async def upload_document(self, record_id: str, document: Path) -> None: ...
