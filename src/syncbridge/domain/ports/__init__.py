"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import (
    ChangeHistoryRepository,
    MappingFilter,
    MappingRepository,
    Repository,
    SnapshotRepository,
    SourceEntityRepository,
    SyncRunRepository,
    TargetEntityRepository,
    UpsertOutcome,
)
from .remote import (
    ItemResult,
    RecordCreator,
    RecordUpdate,
    RemoteRecord,
    RemoteSystemClient,
    UIAutomationAgent,
)
from .unit_of_work import (
    RepositoryCollection,
    SyncRepositories,
    SyncUnitOfWork,
    UnitOfWork,
)

__all__ = [
    "ChangeHistoryRepository",
    "ItemResult",
    "MappingFilter",
    "MappingRepository",
    "RecordCreator",
    "RecordUpdate",
    "RemoteRecord",
    "RemoteSystemClient",
    "Repository",
    "RepositoryCollection",
    "SnapshotRepository",
    "SourceEntityRepository",
    "SyncRepositories",
    "SyncRunRepository",
    "SyncUnitOfWork",
    "TargetEntityRepository",
    "UIAutomationAgent",
    "UnitOfWork",
    "UpsertOutcome",
]
