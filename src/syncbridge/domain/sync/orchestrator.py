"""Sync orchestrator driving full runs and single-entity creates.

A run walks ``EXTRACT -> MATCH_ALL -> RESOLVE_AND_STAGE_WRITES ->
COMMIT_OR_SKIP -> AUDIT``. The three modes nest strictly in side effects:

- ``dry-run`` computes everything and writes nothing, locally or remotely
- ``read-only`` also persists mappings and run audits, but skips remote writes
- ``write`` additionally writes to the target and records change history

Unmatched sources are either created on the target (``create_on_unmatched``)
or only reported. Both behaviours are the same state machine.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from syncbridge.config.sync import SyncConfig
from syncbridge.domain.errors import EntityNotFound
from syncbridge.domain.model import (
    ChangeHistoryRecord,
    ChangeType,
    ConflictResolution,
    MatchType,
    RunStatus,
    SyncDirection,
    SyncMapping,
    SyncMode,
    SyncRunRecord,
    SyncStatus,
    TargetEntity,
)
from syncbridge.domain.ports import RecordUpdate, UpsertOutcome
from syncbridge.domain.reconciliation import (
    DEFAULT_FIELD_RULES,
    ClaimedTargets,
    Matcher,
    Resolution,
    normalize_name,
    resolve_fields,
)
from syncbridge.domain.stages import StageTranslator

from .batch import BatchWriter
from .create import CreateOutcome, CreateTemplate, build_create_properties, create_with_retry
from .extract import extract_pair
from .guard import DEFAULT_RUN_GUARD, RunGuard
from .summary import DetailAction, SyncDetail, SyncPhase, SyncRunSummary

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence

    from syncbridge.domain.model import SourceEntity
    from syncbridge.domain.ports import RecordCreator, SyncRepositories, SyncUnitOfWork
    from syncbridge.domain.reconciliation import FieldRule, MatchOutcome
    from syncbridge.domain.stages import TargetStage

    from .extract import RemoteSide

log = logging.getLogger(__name__)

DROPPED_FIELD_META = "dropped_field"


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


@dataclass(slots=True)
class _StagedPair:
    outcome: MatchOutcome
    resolution: Resolution
    detail: SyncDetail
    written: bool = False

    @property
    def target_id(self) -> str:
        candidate = self.outcome.candidate
        if candidate is None:
            raise ValueError("Staged pair without a match candidate")
        return candidate.target_id


@dataclass(slots=True)
class _StagedCreate:
    source: SourceEntity
    properties: dict[str, str]
    detail: SyncDetail
    result: CreateOutcome | None = None


@dataclass(slots=True)
class SyncEngine:
    """Reconcile one source system into one target system.

    ``source`` is only needed when ``config.refresh_snapshots`` is set;
    otherwise the snapshot stores are assumed to be populated externally.
    ``creator`` overrides the target client for record creation (for example a
    UI automation agent).
    """

    unit_of_work_factory: Callable[[], SyncUnitOfWork]
    target: RemoteSide
    source: RemoteSide | None = None
    config: SyncConfig = field(default_factory=SyncConfig)
    matcher: Matcher = field(default_factory=Matcher)
    field_rules: Sequence[FieldRule] = DEFAULT_FIELD_RULES
    translator: StageTranslator = field(default_factory=StageTranslator)
    template: CreateTemplate = field(default_factory=CreateTemplate)
    creator: RecordCreator | None = None
    guard: RunGuard = field(default_factory=lambda: DEFAULT_RUN_GUARD)
    cancel_event: threading.Event = field(default_factory=threading.Event)
    clock: Callable[[], datetime] = _utcnow

    def __post_init__(self) -> None:
        if self.config.refresh_snapshots and self.source is None:
            raise ValueError("refresh_snapshots requires a source side")

    # ------------------------------------------------------------------ runs

    def run(self, mode: SyncMode = SyncMode.WRITE) -> SyncRunSummary:
        """Execute one full run; raises ``ConcurrentRunRejected`` if one is active."""

        return asyncio.run(self.run_async(mode))

    async def run_async(self, mode: SyncMode = SyncMode.WRITE) -> SyncRunSummary:
        with self._exclusive():
            return await self._run(mode)

    def cancel(self) -> None:
        """Stop issuing writes at the next batch boundary."""

        self.cancel_event.set()

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        # a cancel request applies to the run it interrupts, not to later ones
        with self.guard.hold(self.config.pair_name):
            try:
                yield
            finally:
                self.cancel_event.clear()

    async def _run(self, mode: SyncMode) -> SyncRunSummary:
        started_at = self.clock()
        started = time.monotonic()
        summary = SyncRunSummary(mode=mode)
        log.info("Starting %s sync for %s", mode, self.config.pair_name)
        try:
            await self._execute(mode, summary)
        except Exception as exc:
            summary.duration_ms = _elapsed_ms(started)
            self._audit(summary, started_at, status=RunStatus.FAILED, error=str(exc))
            raise
        summary.duration_ms = _elapsed_ms(started)
        self._audit(summary, started_at, status=summary.status)
        return summary

    async def _execute(self, mode: SyncMode, summary: SyncRunSummary) -> None:
        self._enter(SyncPhase.EXTRACT)
        fetched = await self._extract() if self.config.refresh_snapshots else None

        with self.unit_of_work_factory() as uow:
            repos = uow.repositories
            if fetched is None:
                sources = list(repos.sources.list_all())
                targets = list(repos.targets.list_all())
            else:
                sources, targets = fetched
                if mode.persists_locally:
                    for source in sources:
                        repos.sources.upsert(source)
                    for target in targets:
                        repos.targets.upsert(target)
            mappings = list(repos.mappings.list())

            self._enter(SyncPhase.MATCH_ALL)
            claimed = ClaimedTargets()
            outcomes = self.matcher.match_all(sources, targets, mappings, claimed=claimed)
            reserved = {mapping.target_id for mapping in mappings}
            summary.unmatched_target = sum(
                1
                for target in targets
                if target.external_id not in claimed and target.external_id not in reserved
            )

            self._enter(SyncPhase.RESOLVE_AND_STAGE_WRITES)
            pairs, creates = self._stage(outcomes, summary)

            self._enter(SyncPhase.COMMIT_OR_SKIP)
            if mode.writes_remote:
                await self._write_remote(pairs, creates, summary)
            if mode.persists_locally:
                self._persist(repos, pairs, creates, summary, history=mode.writes_remote)
                uow.commit()
            else:
                self._predict(pairs, summary)

    async def _extract(self) -> tuple[list[SourceEntity], list[TargetEntity]]:
        if self.source is None:
            raise ValueError("refresh_snapshots requires a source side")
        return await extract_pair(
            self.source,
            self.target,
            timeout_seconds=self.config.read_timeout_seconds,
            seen_at=self.clock(),
        )

    # --------------------------------------------------------------- staging

    def _stage(
        self,
        outcomes: Sequence[MatchOutcome],
        summary: SyncRunSummary,
        *,
        stage: TargetStage | None = None,
    ) -> tuple[list[_StagedPair], list[_StagedCreate]]:
        pairs: list[_StagedPair] = []
        creates: list[_StagedCreate] = []
        for outcome in outcomes:
            source = outcome.source
            candidate = outcome.candidate
            if candidate is None:
                summary.unmatched_source += 1
                detail = SyncDetail(
                    source_id=source.external_id,
                    source_name=source.display_name,
                    action=DetailAction.UNMATCHED,
                )
                if self.config.create_on_unmatched:
                    detail.action = DetailAction.CREATE_STAGED
                    properties = build_create_properties(
                        source,
                        template=self.template,
                        translator=self.translator,
                        rules=self.field_rules,
                        pipeline=self.config.default_pipeline,
                        stage=stage,
                    )
                    detail.writes = dict(properties)
                    creates.append(_StagedCreate(source, properties, detail))
                summary.details.append(detail)
                continue

            detail = SyncDetail(
                source_id=source.external_id,
                source_name=source.display_name,
                action=DetailAction.MATCHED,
                target_id=candidate.target_id,
                match_type=candidate.match_type,
                reason=outcome.reason,
            )
            summary.details.append(detail)
            if outcome.target is None:
                detail.action = DetailAction.TARGET_MISSING
                pairs.append(_StagedPair(outcome, Resolution(), detail))
                continue

            resolution = resolve_fields(source, outcome.target, self.field_rules)
            self._honour_dropped_field(outcome, resolution)
            summary.matched += 1
            summary.conflicts += len(resolution.conflicts)
            detail.target_name = outcome.target.display_name
            detail.writes = dict(resolution.writes)
            detail.conflicts = list(resolution.conflicts)
            pairs.append(_StagedPair(outcome, resolution, detail))
        return pairs, creates

    @staticmethod
    def _honour_dropped_field(outcome: MatchOutcome, resolution: Resolution) -> None:
        # a field dropped at creation time stays dropped; it was already refused once
        existing = outcome.existing
        dropped = existing.meta.get(DROPPED_FIELD_META) if existing is not None else None
        if existing is None or not isinstance(dropped, str):
            return
        resolution.writes.pop(dropped, None)
        resolution.conflicts = [c for c in resolution.conflicts if c.field != dropped]
        resolution.conflicts.extend(c for c in existing.conflicts if c.field == dropped)

    # ---------------------------------------------------------------- commit

    def _writer(self) -> BatchWriter:
        return BatchWriter(
            client=self.target.client,
            entity_kind=self.target.entity_kind,
            batch_size=self.config.batch_size,
            max_in_flight=self.config.max_in_flight,
            timeout_seconds=self.config.write_timeout_seconds,
            cancel_event=self.cancel_event,
        )

    async def _write_remote(
        self,
        pairs: Sequence[_StagedPair],
        creates: Sequence[_StagedCreate],
        summary: SyncRunSummary,
    ) -> None:
        pending = [pair for pair in pairs if pair.resolution.has_writes]
        updates = [RecordUpdate(pair.target_id, dict(pair.resolution.writes)) for pair in pending]
        report = await self._writer().write(updates)
        succeeded = report.succeeded_ids()
        for pair in pending:
            pair.written = pair.target_id in succeeded
            if not pair.written:
                pair.detail.error = "update not applied"
        summary.writes_succeeded += report.succeeded
        summary.batch_failures += report.failed_batches
        summary.write_failures += report.failed_items

        creator = self.creator or self.target.client
        droppable = {rule.target_field for rule in self.field_rules}
        for staged in creates:
            if self.cancel_event.is_set():
                summary.skipped += 1
                staged.detail.action = DetailAction.SKIPPED
                staged.detail.error = "cancelled"
                continue
            result = await create_with_retry(
                creator,
                self.target.entity_kind,
                staged.source.external_id,
                staged.properties,
                droppable=droppable,
                default_unique_field=self.matcher.fields.key,
                timeout_seconds=self.config.write_timeout_seconds,
            )
            staged.result = result
            staged.detail.writes = dict(result.properties)
            if not result.created:
                summary.skipped += 1
                staged.detail.action = DetailAction.SKIPPED
                staged.detail.error = result.error
                continue
            summary.creates_succeeded += 1
            staged.detail.action = DetailAction.CREATED
            staged.detail.target_id = result.target_id
            staged.detail.target_name = result.properties.get(self.template.name_property)
            staged.detail.match_type = MatchType.CREATED
            if result.conflict is not None:
                summary.conflicts += 1
                staged.detail.conflicts.append(result.conflict)

    def _mapping_for(self, pair: _StagedPair, now: datetime) -> SyncMapping:
        outcome = pair.outcome
        source = outcome.source
        existing = outcome.existing
        target = outcome.target
        candidate = outcome.candidate
        if candidate is None:
            raise ValueError("Staged pair without a match candidate")

        if target is None:
            if existing is None:
                raise ValueError("Missing target for a non-sticky match")
            return SyncMapping(
                source_id=source.external_id,
                target_id=existing.target_id,
                match_type=existing.match_type,
                source_name=source.display_name,
                target_name=existing.target_name,
                direction=existing.direction,
                last_sync_at=now,
                last_sync_status=SyncStatus.TARGET_MISSING,
                conflicts=list(existing.conflicts),
                meta=dict(existing.meta),
            )

        resolution = pair.resolution
        # overwritten source_wins conflicts are settled; change history keeps them
        open_conflicts = [
            conflict
            for conflict in resolution.conflicts
            if not (pair.written and conflict.resolution is ConflictResolution.SOURCE_WINS)
        ]
        if resolution.has_writes and not pair.written:
            status = SyncStatus.PENDING
        elif open_conflicts:
            status = SyncStatus.CONFLICT
        else:
            status = SyncStatus.SYNCED
        return SyncMapping(
            source_id=source.external_id,
            target_id=candidate.target_id,
            match_type=candidate.match_type,
            source_name=source.display_name,
            target_name=target.display_name,
            direction=(
                existing.direction if existing is not None else SyncDirection.SOURCE_TO_TARGET
            ),
            last_sync_at=now,
            last_sync_status=status,
            conflicts=open_conflicts,
            meta=(
                dict(existing.meta)
                if existing is not None
                else {"match_reason": outcome.reason, "score": candidate.score}
            ),
        )

    def _created_mapping(
        self, staged: _StagedCreate, result: CreateOutcome, now: datetime
    ) -> SyncMapping:
        target_id = result.target_id or ""
        conflicts = [result.conflict] if result.conflict is not None else []
        return SyncMapping(
            source_id=staged.source.external_id,
            target_id=target_id,
            match_type=MatchType.CREATED,
            source_name=staged.source.display_name,
            target_name=result.properties.get(self.template.name_property),
            direction=SyncDirection.SOURCE_TO_TARGET,
            last_sync_at=now,
            last_sync_status=SyncStatus.CONFLICT if conflicts else SyncStatus.SYNCED,
            conflicts=conflicts,
            meta={DROPPED_FIELD_META: result.dropped_field} if result.dropped_field else {},
        )

    def _persist(
        self,
        repos: SyncRepositories,
        pairs: Sequence[_StagedPair],
        creates: Sequence[_StagedCreate],
        summary: SyncRunSummary,
        *,
        history: bool,
    ) -> None:
        now = self.clock()
        records: list[ChangeHistoryRecord] = []
        for pair in pairs:
            self._count(summary, repos.mappings.upsert(self._mapping_for(pair, now)))
            target = pair.outcome.target
            if not pair.written or target is None:
                continue
            writes = dict(pair.resolution.writes)
            records.extend(
                ChangeHistoryRecord(
                    entity_type=self.target.entity_kind,
                    entity_id=target.external_id,
                    change_type=ChangeType.FIELD_UPDATE,
                    field=name,
                    old_value=target.identifying_fields.get(name),
                    new_value=value,
                    snapshot=target.snapshot(),
                    synced_at=now,
                )
                for name, value in writes.items()
            )
            repos.targets.apply_fields(target.external_id, writes)

        for staged in creates:
            result = staged.result
            if result is None or result.target_id is None:
                continue
            name = result.properties.get(self.template.name_property)
            repos.targets.upsert(
                TargetEntity(
                    system_id=self.target.system_id,
                    external_id=result.target_id,
                    display_name=name,
                    normalized_name_key=normalize_name(name),
                    identifying_fields=dict(result.properties),
                    last_seen_at=now,
                )
            )
            self._count(summary, repos.mappings.upsert(self._created_mapping(staged, result, now)))
            records.append(
                ChangeHistoryRecord(
                    entity_type=self.target.entity_kind,
                    entity_id=result.target_id,
                    change_type=ChangeType.CREATED,
                    snapshot={
                        "source_id": staged.source.external_id,
                        "properties": dict(result.properties),
                    },
                    synced_at=now,
                )
            )

        if history and records:
            repos.change_history.append(records)

    def _predict(self, pairs: Sequence[_StagedPair], summary: SyncRunSummary) -> None:
        """Count the mapping changes a persisting run would make."""

        now = self.clock()
        for pair in pairs:
            existing = pair.outcome.existing
            if existing is None:
                summary.new_mappings += 1
            elif self._mapping_for(pair, now).content_key() != existing.content_key():
                summary.updated_mappings += 1

    @staticmethod
    def _count(summary: SyncRunSummary, outcome: UpsertOutcome) -> None:
        if outcome is UpsertOutcome.CREATED:
            summary.new_mappings += 1
        elif outcome is UpsertOutcome.UPDATED:
            summary.updated_mappings += 1

    # ----------------------------------------------------------------- audit

    def _audit(
        self,
        summary: SyncRunSummary,
        started_at: datetime,
        *,
        status: RunStatus,
        error: str | None = None,
    ) -> None:
        self._enter(SyncPhase.AUDIT)
        log.info(
            "Sync %s (%s) finished: status=%s duration_ms=%d %s",
            self.config.pair_name,
            summary.mode,
            status,
            summary.duration_ms,
            " ".join(f"{key}={value}" for key, value in summary.counts().items()),
        )
        if not summary.mode.persists_locally:
            return
        record = SyncRunRecord(
            pair_name=self.config.pair_name,
            mode=summary.mode,
            status=status,
            started_at=started_at,
            duration_ms=summary.duration_ms,
            counts=summary.counts(),
            error_message=error,
        )
        with self.unit_of_work_factory() as uow:
            uow.repositories.runs.add(record)
            uow.commit()

    def _enter(self, phase: SyncPhase) -> None:
        log.debug("Sync %s entering phase %s", self.config.pair_name, phase)

    # ------------------------------------------------------- single entity

    def create_for_source(
        self,
        source_id: str,
        mode: SyncMode = SyncMode.WRITE,
        *,
        stage: TargetStage | None = None,
    ) -> SyncDetail:
        """Match or create the counterpart of one source entity right now."""

        return asyncio.run(self.create_for_source_async(source_id, mode, stage=stage))

    async def create_for_source_async(
        self,
        source_id: str,
        mode: SyncMode = SyncMode.WRITE,
        *,
        stage: TargetStage | None = None,
    ) -> SyncDetail:
        with self._exclusive(), self.unit_of_work_factory() as uow:
            repos = uow.repositories
            source = repos.sources.get(source_id)
            if source is None:
                raise EntityNotFound(f"Unknown source entity {source_id!r}")
            existing = repos.mappings.get_by_source(source_id)
            if existing is not None:
                return SyncDetail(
                    source_id=source_id,
                    source_name=source.display_name,
                    action=DetailAction.MATCHED,
                    target_id=existing.target_id,
                    target_name=existing.target_name,
                    match_type=existing.match_type,
                    reason="already_mapped",
                )

            outcomes = self.matcher.match_all(
                [source], repos.targets.list_all(), repos.mappings.list()
            )
            summary = SyncRunSummary(mode=mode)
            pairs, creates = self._stage(outcomes, summary, stage=stage)
            if mode.writes_remote:
                await self._write_remote(pairs, creates, summary)
            if mode.persists_locally:
                self._persist(repos, pairs, creates, summary, history=mode.writes_remote)
                uow.commit()
            detail = summary.details[0]
            log.info("Single-entity sync for %s: %s", source_id, detail.action)
            return detail

    def handle_stage_change(
        self,
        source_id: str,
        previous: str | None,
        current: str | None,
        mode: SyncMode = SyncMode.WRITE,
    ) -> SyncDetail | None:
        """Run the single-entity create path when ``current`` is a creation trigger."""

        if not self.translator.should_trigger(previous, current):
            return None
        log.info("Stage %r for %s is a creation trigger", current, source_id)
        return self.create_for_source(
            source_id, mode, stage=self.translator.trigger_stage(current)
        )

    # ---------------------------------------------------------------- manual

    def create_manual_mapping(
        self,
        source_id: str,
        target_id: str,
        *,
        write_key: bool = False,
    ) -> SyncMapping:
        return asyncio.run(
            self.create_manual_mapping_async(source_id, target_id, write_key=write_key)
        )

    async def create_manual_mapping_async(
        self,
        source_id: str,
        target_id: str,
        *,
        write_key: bool = False,
    ) -> SyncMapping:
        """Link two entities by hand; raises ``AlreadyMapped`` if either side is taken.

        With ``write_key`` the source's business key is written onto the target
        when the target lacks it or holds a different value.
        """

        with self.guard.hold(self.config.pair_name), self.unit_of_work_factory() as uow:
            repos = uow.repositories
            source = repos.sources.get(source_id)
            if source is None:
                raise EntityNotFound(f"Unknown source entity {source_id!r}")
            target = repos.targets.get(target_id)
            if target is None:
                raise EntityNotFound(f"Unknown target entity {target_id!r}")
            now = self.clock()
            mapping = repos.mappings.create_manual(
                source_id,
                target_id,
                source_name=source.display_name,
                target_name=target.display_name,
                last_sync_at=now,
                last_sync_status=SyncStatus.SYNCED,
            )

            key_field = self.matcher.fields.key
            key = source.field_value(key_field)
            if write_key and key is not None and target.field_value(key_field) != key:
                report = await self._writer().write([RecordUpdate(target_id, {key_field: key})])
                if target_id in report.succeeded_ids():
                    repos.change_history.append(
                        [
                            ChangeHistoryRecord(
                                entity_type=self.target.entity_kind,
                                entity_id=target_id,
                                change_type=ChangeType.FIELD_UPDATE,
                                field=key_field,
                                old_value=target.field_value(key_field),
                                new_value=key,
                                snapshot=target.snapshot(),
                                synced_at=now,
                            )
                        ]
                    )
                    repos.targets.apply_fields(target_id, {key_field: key})
                else:
                    mapping.last_sync_status = SyncStatus.PENDING
            uow.commit()
            log.info("Manually mapped %s -> %s", source_id, target_id)
            return mapping
