"""Sync orchestration: runs, batch writes, creates and stored-state queries."""

from __future__ import annotations

from .batch import BatchOutcome, BatchWriter, BatchWriteReport, split_batches
from .create import CreateOutcome, CreateTemplate, build_create_properties, create_with_retry
from .extract import RemoteSide, extract_pair, snapshot_from_record
from .guard import DEFAULT_RUN_GUARD, RunGuard
from .orchestrator import SyncEngine
from .queries import (
    get_overview,
    get_unmatched,
    list_mappings,
    purge_change_history,
    unlink_mapping,
)
from .summary import (
    DetailAction,
    MappingDigest,
    SyncDetail,
    SyncOverview,
    SyncPhase,
    SyncRunSummary,
    UnmatchedEntities,
)

__all__ = [
    "DEFAULT_RUN_GUARD",
    "BatchOutcome",
    "BatchWriteReport",
    "BatchWriter",
    "CreateOutcome",
    "CreateTemplate",
    "DetailAction",
    "MappingDigest",
    "RemoteSide",
    "RunGuard",
    "SyncDetail",
    "SyncEngine",
    "SyncOverview",
    "SyncPhase",
    "SyncRunSummary",
    "UnmatchedEntities",
    "build_create_properties",
    "create_with_retry",
    "extract_pair",
    "get_overview",
    "get_unmatched",
    "list_mappings",
    "purge_change_history",
    "snapshot_from_record",
    "split_batches",
    "unlink_mapping",
]
