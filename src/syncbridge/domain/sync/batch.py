"""Size-bounded, partially-failure-tolerant batch updates against the target."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from syncbridge.domain.errors import RemoteWriteError

if TYPE_CHECKING:
    import threading
    from collections.abc import Sequence

    from syncbridge.domain.ports import RecordUpdate, RemoteSystemClient

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BatchOutcome:
    """Result of one batch call, tracked independently of its siblings."""

    index: int
    size: int
    succeeded_ids: tuple[str, ...] = ()
    failed_ids: tuple[str, ...] = ()
    error: str | None = None
    cancelled: bool = False

    @property
    def succeeded(self) -> int:
        return len(self.succeeded_ids)

    @property
    def failed(self) -> bool:
        return self.error is not None or self.cancelled


@dataclass(slots=True)
class BatchWriteReport:
    outcomes: list[BatchOutcome] = field(default_factory=list[BatchOutcome])

    @property
    def succeeded(self) -> int:
        return sum(outcome.succeeded for outcome in self.outcomes)

    @property
    def failed_batches(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.failed)

    @property
    def failed_items(self) -> int:
        return sum(len(outcome.failed_ids) for outcome in self.outcomes)

    def succeeded_ids(self) -> set[str]:
        return {record_id for outcome in self.outcomes for record_id in outcome.succeeded_ids}


def split_batches(updates: Sequence[RecordUpdate], batch_size: int) -> list[list[RecordUpdate]]:
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [
        list(updates[start : start + batch_size]) for start in range(0, len(updates), batch_size)
    ]


@dataclass(slots=True)
class BatchWriter:
    """Issue batch updates with bounded concurrency.

    A failing batch neither rolls back nor blocks the others, and nothing is
    retried here: the next run re-stages whatever did not land, which is safe
    because writing the same value twice is a no-op. ``cancel_event`` is
    checked before each batch starts; batches already sent are kept.
    """

    client: RemoteSystemClient
    entity_kind: str
    batch_size: int = 100
    max_in_flight: int = 2
    timeout_seconds: float = 60.0
    cancel_event: threading.Event | None = None

    async def write(self, updates: Sequence[RecordUpdate]) -> BatchWriteReport:
        batches = split_batches(updates, self.batch_size)
        if not batches:
            return BatchWriteReport()
        semaphore = asyncio.Semaphore(self.max_in_flight)
        outcomes = await asyncio.gather(
            *(self._write_batch(index, batch, semaphore) for index, batch in enumerate(batches))
        )
        report = BatchWriteReport(outcomes=list(outcomes))
        log.info(
            "Wrote %d/%d %s records in %d batches (%d failed)",
            report.succeeded,
            len(updates),
            self.entity_kind,
            len(batches),
            report.failed_batches,
        )
        return report

    async def _write_batch(
        self,
        index: int,
        batch: list[RecordUpdate],
        semaphore: asyncio.Semaphore,
    ) -> BatchOutcome:
        async with semaphore:
            if self.cancel_event is not None and self.cancel_event.is_set():
                log.info("Batch %d not sent: run cancelled", index)
                return BatchOutcome(index=index, size=len(batch), cancelled=True)
            try:
                results = await asyncio.wait_for(
                    self.client.batch_update(self.entity_kind, batch),
                    timeout=self.timeout_seconds,
                )
            except TimeoutError:
                log.warning("Batch %d timed out after %.0fs", index, self.timeout_seconds)
                return BatchOutcome(
                    index=index,
                    size=len(batch),
                    error=f"timed out after {self.timeout_seconds:.0f}s",
                )
            except RemoteWriteError as exc:
                log.warning("Batch %d (%d records) failed: %s", index, len(batch), exc)
                return BatchOutcome(index=index, size=len(batch), error=str(exc))

        succeeded = tuple(result.id for result in results if result.ok)
        failed = tuple(result.id for result in results if not result.ok)
        for result in results:
            if not result.ok:
                log.info("Record %s rejected in batch %d: %s", result.id, index, result.error)
        return BatchOutcome(
            index=index, size=len(batch), succeeded_ids=succeeded, failed_ids=failed
        )
