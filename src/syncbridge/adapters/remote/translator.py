"""Translate remote payloads into port-level records and outcomes."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from syncbridge.domain.ports import ItemResult, RemoteRecord

if TYPE_CHECKING:
    from collections.abc import Sequence

    from syncbridge.domain.ports import RecordUpdate

    from .schema import BatchResponse, ObjectPayload

log = getLogger(__name__)

MISSING_FROM_RESPONSE = "not reported by the remote"


def parse_record(payload: ObjectPayload) -> RemoteRecord:
    return RemoteRecord(
        id=payload.id,
        properties=dict(payload.properties),
        updated_at=payload.updated_at,
    )


def batch_item_results(
    updates: Sequence[RecordUpdate],
    response: BatchResponse,
) -> list[ItemResult]:
    """One result per requested update, in request order.

    Ids the remote neither confirmed nor rejected count as failed so the next
    run re-stages them.
    """

    confirmed = {result.id for result in response.results}
    rejected: dict[str, str] = {}
    for error in response.errors:
        for record_id in error.context.ids:
            rejected.setdefault(record_id, error.message or "rejected")

    results: list[ItemResult] = []
    for update in updates:
        if update.id in rejected:
            results.append(ItemResult(id=update.id, ok=False, error=rejected[update.id]))
        elif update.id in confirmed:
            results.append(ItemResult(id=update.id, ok=True))
        else:
            log.debug("Record %s missing from batch response", update.id)
            results.append(ItemResult(id=update.id, ok=False, error=MISSING_FROM_RESPONSE))
    return results
