"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from sqlalchemy import delete, func, select

from syncbridge.adapters.sqlalchemy.mappings import (
    change_history_table,
    sync_mappings_table,
    sync_runs_table,
)
from syncbridge.domain.errors import AlreadyMapped
from syncbridge.domain.model import (
    ChangeHistoryRecord,
    MatchType,
    SnapshotEntity,
    SourceEntity,
    SyncDirection,
    SyncMapping,
    SyncRunRecord,
    TargetEntity,
)
from syncbridge.domain.ports import MappingFilter, UpsertOutcome

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime

    from sqlalchemy import CursorResult
    from sqlalchemy.orm import Session


class SqlAlchemySnapshotRepository[TSnapshot: SnapshotEntity]:
    """Snapshot mirror keyed by ``external_id``; rows are never deleted here."""

    def __init__(self, session: Session, entity_cls: type[TSnapshot]) -> None:
        self.session = session
        self._entity_cls = entity_cls

    def add(self, entity: TSnapshot) -> None:
        self.session.add(entity)

    def get(self, external_id: str) -> TSnapshot | None:
        return self.session.get(self._entity_cls, external_id)

    def list_all(self) -> list[TSnapshot]:
        stmt = select(self._entity_cls).order_by(self._column("external_id"))
        return list(self.session.execute(stmt).scalars().all())

    def upsert(self, entity: TSnapshot) -> TSnapshot:
        stored = self.get(entity.external_id)
        if stored is None:
            self.session.add(entity)
            return entity
        if stored is entity:
            return stored
        stored.system_id = entity.system_id
        stored.display_name = entity.display_name
        stored.normalized_name_key = entity.normalized_name_key
        stored.identifying_fields = dict(entity.identifying_fields)
        stored.last_seen_at = entity.last_seen_at
        return stored

    def apply_fields(self, external_id: str, fields: dict[str, str]) -> None:
        stored = self.get(external_id)
        if stored is None:
            return
        # assign a new dict; in-place mutation of the JSON column is not tracked
        stored.identifying_fields = stored.with_fields(fields)

    def count(self) -> int:
        stmt = select(func.count()).select_from(self._entity_cls)
        return int(self.session.execute(stmt).scalar_one())

    def _column(self, name: str) -> object:
        return getattr(self._entity_cls, name)


class SqlAlchemySourceEntityRepository(SqlAlchemySnapshotRepository[SourceEntity]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, SourceEntity)


class SqlAlchemyTargetEntityRepository(SqlAlchemySnapshotRepository[TargetEntity]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, TargetEntity)


class SqlAlchemyMappingRepository:
    """Mapping store; the table's unique constraints back the 1:1 invariant."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: SyncMapping) -> None:
        self.session.add(entity)

    def get(self, mapping_id: int) -> SyncMapping | None:
        return self.session.get(SyncMapping, mapping_id)

    def get_by_source(self, source_id: str) -> SyncMapping | None:
        stmt = select(SyncMapping).where(sync_mappings_table.c.source_id == source_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def get_by_target(self, target_id: str) -> SyncMapping | None:
        stmt = select(SyncMapping).where(sync_mappings_table.c.target_id == target_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def upsert(self, mapping: SyncMapping) -> UpsertOutcome:
        stored = self.get_by_source(mapping.source_id)
        if stored is None:
            holder = self.get_by_target(mapping.target_id)
            if holder is not None:
                raise AlreadyMapped(
                    f"Target {mapping.target_id!r} is already mapped to {holder.source_id!r}",
                    source_id=mapping.source_id,
                    target_id=mapping.target_id,
                )
            self.session.add(mapping)
            self.session.flush()
            return UpsertOutcome.CREATED
        if stored is mapping:
            return UpsertOutcome.UNCHANGED
        if stored.target_id != mapping.target_id:
            holder = self.get_by_target(mapping.target_id)
            if holder is not None:
                raise AlreadyMapped(
                    f"Target {mapping.target_id!r} is already mapped to {holder.source_id!r}",
                    source_id=mapping.source_id,
                    target_id=mapping.target_id,
                )
        changed = stored.content_key() != mapping.content_key()
        stored.copy_content_from(mapping)
        return UpsertOutcome.UPDATED if changed else UpsertOutcome.UNCHANGED

    def create_manual(self, source_id: str, target_id: str, **values: object) -> SyncMapping:
        by_source = self.get_by_source(source_id)
        by_target = self.get_by_target(target_id)
        if by_source is not None or by_target is not None:
            taken = "source" if by_source is not None else "target"
            raise AlreadyMapped(
                f"Cannot map {source_id!r} -> {target_id!r}: the {taken} is already mapped",
                source_id=source_id,
                target_id=target_id,
            )
        mapping = SyncMapping(
            source_id=source_id,
            target_id=target_id,
            match_type=MatchType.MANUAL,
            direction=SyncDirection.MANUAL,
            **values,  # pyright: ignore[reportArgumentType]
        )
        self.session.add(mapping)
        self.session.flush()
        return mapping

    def delete(self, mapping_id: int) -> bool:
        stmt = delete(sync_mappings_table).where(sync_mappings_table.c.id == mapping_id)
        result = cast("CursorResult[object]", self.session.execute(stmt))
        return result.rowcount > 0

    def list(self, mapping_filter: MappingFilter | None = None) -> Sequence[SyncMapping]:
        active = mapping_filter or MappingFilter()
        stmt = select(SyncMapping).order_by(sync_mappings_table.c.source_id)
        if active.match_type is not None:
            stmt = stmt.where(sync_mappings_table.c.match_type == active.match_type)
        if active.status is not None:
            stmt = stmt.where(sync_mappings_table.c.last_sync_status == active.status)
        mappings = list(self.session.execute(stmt).scalars().all())
        if active.has_conflicts is not None:
            mappings = [m for m in mappings if m.has_conflicts is active.has_conflicts]
        if active.limit is not None:
            mappings = mappings[: active.limit]
        return mappings


class SqlAlchemyChangeHistoryRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def append(self, records: Iterable[ChangeHistoryRecord]) -> int:
        added = list(records)
        self.session.add_all(added)
        return len(added)

    def purge_older_than(self, cutoff: datetime) -> int:
        stmt = delete(change_history_table).where(change_history_table.c.synced_at < cutoff)
        result = cast("CursorResult[object]", self.session.execute(stmt))
        return result.rowcount

    def count(self) -> int:
        stmt = select(func.count()).select_from(change_history_table)
        return int(self.session.execute(stmt).scalar_one())


class SqlAlchemySyncRunRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: SyncRunRecord) -> None:
        self.session.add(entity)

    def latest(self) -> SyncRunRecord | None:
        stmt = (
            select(SyncRunRecord)
            .order_by(sync_runs_table.c.started_at.desc(), sync_runs_table.c.id.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()


if TYPE_CHECKING:
    from syncbridge.domain.ports import (
        ChangeHistoryRepository,
        MappingRepository,
        SourceEntityRepository,
        SyncRunRepository,
        TargetEntityRepository,
    )

    _session_stub = cast("Session", object())
    _source_repo: SourceEntityRepository = SqlAlchemySourceEntityRepository(_session_stub)
    _target_repo: TargetEntityRepository = SqlAlchemyTargetEntityRepository(_session_stub)
    _mapping_repo: MappingRepository = SqlAlchemyMappingRepository(_session_stub)
    _history_repo: ChangeHistoryRepository = SqlAlchemyChangeHistoryRepository(_session_stub)
    _run_repo: SyncRunRepository = SqlAlchemySyncRunRepository(_session_stub)
