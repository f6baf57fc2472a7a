"""Read-mostly operations on the stored pairing state."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from syncbridge.domain.errors import EntityNotFound
from syncbridge.domain.ports import MappingFilter

from .summary import MappingDigest, SyncOverview, UnmatchedEntities

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from syncbridge.domain.model import SyncMapping
    from syncbridge.domain.ports import SyncUnitOfWork

log = logging.getLogger(__name__)

RECENT_MAPPINGS_LIMIT = 20


def get_unmatched(*, unit_of_work_factory: Callable[[], SyncUnitOfWork]) -> UnmatchedEntities:
    """Entities on either side without a stored mapping, in ``external_id`` order."""

    with unit_of_work_factory() as uow:
        repos = uow.repositories
        mappings = repos.mappings.list()
        mapped_sources = {mapping.source_id for mapping in mappings}
        mapped_targets = {mapping.target_id for mapping in mappings}
        return UnmatchedEntities(
            sources=[
                entity
                for entity in repos.sources.list_all()
                if entity.external_id not in mapped_sources
            ],
            targets=[
                entity
                for entity in repos.targets.list_all()
                if entity.external_id not in mapped_targets
            ],
        )


def get_overview(
    *,
    unit_of_work_factory: Callable[[], SyncUnitOfWork],
    recent_limit: int = RECENT_MAPPINGS_LIMIT,
) -> SyncOverview:
    with unit_of_work_factory() as uow:
        repos = uow.repositories
        mappings = repos.mappings.list()
        source_ids = {entity.external_id for entity in repos.sources.list_all()}
        target_ids = {entity.external_id for entity in repos.targets.list_all()}
        latest = repos.runs.latest()
        recent = sorted(mappings, key=_recency, reverse=True)[:recent_limit]
        return SyncOverview(
            total_mappings=len(mappings),
            total_source=len(source_ids),
            total_target=len(target_ids),
            mapped_source=sum(1 for mapping in mappings if mapping.source_id in source_ids),
            mapped_target=sum(1 for mapping in mappings if mapping.target_id in target_ids),
            with_conflicts=sum(1 for mapping in mappings if mapping.has_conflicts),
            by_match_type=dict(Counter(str(mapping.match_type) for mapping in mappings)),
            last_run_at=latest.started_at if latest is not None else None,
            last_run_status=latest.status if latest is not None else None,
            recent_mappings=tuple(_digest(mapping) for mapping in recent),
        )


def _recency(mapping: SyncMapping) -> tuple[bool, datetime | None, int]:
    return (mapping.last_sync_at is not None, mapping.last_sync_at, mapping.id or 0)


def _digest(mapping: SyncMapping) -> MappingDigest:
    return MappingDigest(
        id=mapping.id,
        source_id=mapping.source_id,
        target_id=mapping.target_id,
        match_type=mapping.match_type,
        last_sync_status=mapping.last_sync_status,
        conflict_count=len(mapping.conflicts),
    )


def list_mappings(
    mapping_filter: MappingFilter | None = None,
    *,
    unit_of_work_factory: Callable[[], SyncUnitOfWork],
) -> Sequence[SyncMapping]:
    with unit_of_work_factory() as uow:
        return list(uow.repositories.mappings.list(mapping_filter or MappingFilter()))


def unlink_mapping(
    mapping_id: int,
    *,
    unit_of_work_factory: Callable[[], SyncUnitOfWork],
) -> None:
    """Delete one mapping. This is the only path that ever removes a mapping."""

    with unit_of_work_factory() as uow:
        if not uow.repositories.mappings.delete(mapping_id):
            raise EntityNotFound(f"Unknown mapping id {mapping_id}")
        uow.commit()
    log.info("Unlinked mapping %d", mapping_id)


def purge_change_history(
    *,
    unit_of_work_factory: Callable[[], SyncUnitOfWork],
    retention_days: int,
    now: datetime | None = None,
) -> int:
    """Delete change history older than ``retention_days``; return the count removed."""

    cutoff = (now or datetime.now(tz=UTC)) - timedelta(days=retention_days)
    with unit_of_work_factory() as uow:
        removed = uow.repositories.change_history.purge_older_than(cutoff)
        uow.commit()
    log.info("Purged %d change history records older than %s", removed, cutoff.isoformat())
    return removed
