"""Concurrent snapshot extraction from both remote systems."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from syncbridge.domain.errors import RemoteReadError, SyncError
from syncbridge.domain.model import SnapshotEntity, SourceEntity, TargetEntity
from syncbridge.domain.reconciliation import normalize_name

if TYPE_CHECKING:
    from syncbridge.domain.ports import RemoteRecord, RemoteSystemClient

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RemoteSide:
    """One side of the pair: its client, entity kind and display-name property."""

    client: RemoteSystemClient
    entity_kind: str
    name_property: str = "name"

    @property
    def system_id(self) -> str:
        return self.client.system_id


def snapshot_from_record[TSnapshot: SnapshotEntity](
    record: RemoteRecord,
    entity_cls: type[TSnapshot],
    *,
    side: RemoteSide,
    seen_at: datetime,
) -> TSnapshot:
    display_name = record.properties.get(side.name_property)
    return entity_cls(
        system_id=side.system_id,
        external_id=record.id,
        display_name=display_name,
        normalized_name_key=normalize_name(display_name),
        identifying_fields=dict(record.properties),
        last_seen_at=seen_at,
    )


async def _list_side(side: RemoteSide, timeout_seconds: float) -> list[RemoteRecord]:
    try:
        records = await asyncio.wait_for(
            side.client.list_all(side.entity_kind), timeout=timeout_seconds
        )
    except TimeoutError as exc:
        raise RemoteReadError(
            f"Listing {side.entity_kind} from {side.system_id} timed out after "
            f"{timeout_seconds:.0f}s",
            system_id=side.system_id,
        ) from exc
    except RemoteReadError:
        raise
    except SyncError as exc:
        raise RemoteReadError(str(exc), system_id=side.system_id) from exc
    log.info("Listed %d %s records from %s", len(records), side.entity_kind, side.system_id)
    return list(records)


async def extract_pair(
    source: RemoteSide,
    target: RemoteSide,
    *,
    timeout_seconds: float,
    seen_at: datetime | None = None,
) -> tuple[list[SourceEntity], list[TargetEntity]]:
    """List both systems concurrently and build snapshot entities.

    Either side failing raises ``RemoteReadError``; matching needs both.
    """

    stamp = seen_at or datetime.now(tz=UTC)
    source_records, target_records = await asyncio.gather(
        _list_side(source, timeout_seconds),
        _list_side(target, timeout_seconds),
    )
    sources = [
        snapshot_from_record(record, SourceEntity, side=source, seen_at=stamp)
        for record in source_records
    ]
    targets = [
        snapshot_from_record(record, TargetEntity, side=target, seen_at=stamp)
        for record in target_records
    ]
    return sources, targets
