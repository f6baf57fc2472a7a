"""Application orchestration entry points."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, cast

from syncbridge.adapters.remote import HttpRemoteSystemClient
from syncbridge.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemySyncUnitOfWork,
    is_started,
    startup,
)
from syncbridge.config import (
    ConfigurationError,
    SyncConfig,
    get_remote_config,
    get_sync_config,
    optional_env,
)
from syncbridge.domain.ports import SyncUnitOfWork
from syncbridge.domain.reconciliation import DEFAULT_FIELD_RULES, Matcher
from syncbridge.domain.stages import StageTranslator
from syncbridge.domain.sync import (
    CreateTemplate,
    RemoteSide,
    SyncEngine,
    get_overview,
    get_unmatched,
    list_mappings,
    purge_change_history,
    unlink_mapping,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from syncbridge.domain.model import SyncMapping, SyncMode
    from syncbridge.domain.ports import MappingFilter, RemoteSystemClient
    from syncbridge.domain.reconciliation import FieldRule
    from syncbridge.domain.sync import SyncDetail, SyncOverview, SyncRunSummary, UnmatchedEntities

UnitOfWorkFactory = Callable[[], SyncUnitOfWork]

log = getLogger(__name__)

STAGE_OVERRIDES_ENV = "SYNCBRIDGE_STAGE_OVERRIDES"
CREATION_TRIGGERS_ENV = "SYNCBRIDGE_CREATION_TRIGGERS"


def _default_unit_of_work_factory() -> UnitOfWorkFactory:
    if not is_started():
        startup()
    return SqlAlchemySyncUnitOfWork


def _json_table(name: str) -> dict[str, str] | None:
    raw = optional_env(name)
    if raw is None:
        return None
    try:
        loaded = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{name} must be a JSON object: {exc}") from exc
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"{name} must be a JSON object of label -> label")
    table = cast(dict[object, object], loaded)
    return {str(key): str(value) for key, value in table.items()}


def load_stage_translator() -> StageTranslator:
    """Default stage tables with overrides from the environment merged in."""

    return StageTranslator.from_overrides(
        _json_table(STAGE_OVERRIDES_ENV),
        creation_triggers=_json_table(CREATION_TRIGGERS_ENV),
    )


def _requested_properties(
    matcher: Matcher,
    rules: Sequence[FieldRule],
    *extra: str,
) -> tuple[str, ...]:
    names: list[str] = [*matcher.fields.names(), *extra]
    for rule in rules:
        names.append(rule.target_field)
        names.extend(rule.source_fields)
    return tuple(dict.fromkeys(names))


@dataclass(slots=True)
class EngineOverrides:
    """Collaborators substituted for the environment-configured ones.

    An injected client skips the ``SOURCE_*``/``TARGET_*`` variables entirely;
    its side then uses ``*_kind`` as the entity kind.
    """

    source_client: RemoteSystemClient | None = None
    target_client: RemoteSystemClient | None = None
    source_kind: str = "projects"
    target_kind: str = "deals"
    unit_of_work_factory: UnitOfWorkFactory | None = None
    sync_config: SyncConfig | None = None
    translator: StageTranslator | None = None
    field_rules: Sequence[FieldRule] = field(default_factory=lambda: DEFAULT_FIELD_RULES)


def _remote_side(
    prefix: str,
    client: RemoteSystemClient | None,
    *,
    kind: str,
    name_property: str,
    properties: Sequence[str],
) -> RemoteSide:
    if client is not None:
        return RemoteSide(client=client, entity_kind=kind, name_property=name_property)
    config = get_remote_config(prefix)
    return RemoteSide(
        client=HttpRemoteSystemClient.from_config(config, properties=properties),
        entity_kind=config.entity_kind,
        name_property=config.name_property,
    )


def build_sync_engine(overrides: EngineOverrides | None = None) -> SyncEngine:
    """Wire a ``SyncEngine`` from environment configuration."""

    active = overrides or EngineOverrides()
    config = active.sync_config or get_sync_config()
    matcher = Matcher()
    template = CreateTemplate()

    target = _remote_side(
        "TARGET",
        active.target_client,
        kind=active.target_kind,
        name_property=template.name_property,
        properties=_requested_properties(
            matcher, active.field_rules, template.name_property, template.stage_property
        ),
    )
    source = (
        _remote_side(
            "SOURCE",
            active.source_client,
            kind=active.source_kind,
            name_property="name",
            properties=_requested_properties(
                matcher, active.field_rules, template.source_stage_field
            ),
        )
        if config.refresh_snapshots
        else None
    )

    return SyncEngine(
        unit_of_work_factory=active.unit_of_work_factory or _default_unit_of_work_factory(),
        target=target,
        source=source,
        config=config,
        matcher=matcher,
        field_rules=active.field_rules,
        translator=active.translator or load_stage_translator(),
        template=template,
    )


def run_sync(mode: SyncMode, *, engine: SyncEngine | None = None) -> SyncRunSummary:
    effective_engine = engine or build_sync_engine()
    summary = effective_engine.run(mode)
    log.info(
        "Finished %s sync: status=%s matched=%d created=%d conflicts=%d",
        mode,
        summary.status,
        summary.matched,
        summary.creates_succeeded,
        summary.conflicts,
    )
    return summary


def trigger_stage_change(
    source_id: str,
    previous: str | None,
    current: str | None,
    mode: SyncMode,
    *,
    engine: SyncEngine | None = None,
) -> SyncDetail | None:
    return (engine or build_sync_engine()).handle_stage_change(source_id, previous, current, mode)


def create_for_source(
    source_id: str,
    mode: SyncMode,
    *,
    engine: SyncEngine | None = None,
) -> SyncDetail:
    return (engine or build_sync_engine()).create_for_source(source_id, mode)


def link_entities(
    source_id: str,
    target_id: str,
    *,
    write_key: bool = False,
    engine: SyncEngine | None = None,
) -> SyncMapping:
    return (engine or build_sync_engine()).create_manual_mapping(
        source_id, target_id, write_key=write_key
    )


def unlink(mapping_id: int, *, unit_of_work_factory: UnitOfWorkFactory | None = None) -> None:
    unlink_mapping(
        mapping_id, unit_of_work_factory=unit_of_work_factory or _default_unit_of_work_factory()
    )


def unmatched_entities(
    *, unit_of_work_factory: UnitOfWorkFactory | None = None
) -> UnmatchedEntities:
    return get_unmatched(
        unit_of_work_factory=unit_of_work_factory or _default_unit_of_work_factory()
    )


def overview(*, unit_of_work_factory: UnitOfWorkFactory | None = None) -> SyncOverview:
    return get_overview(
        unit_of_work_factory=unit_of_work_factory or _default_unit_of_work_factory()
    )


def mappings(
    mapping_filter: MappingFilter | None = None,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Sequence[SyncMapping]:
    return list_mappings(
        mapping_filter,
        unit_of_work_factory=unit_of_work_factory or _default_unit_of_work_factory(),
    )


def purge_history(
    *,
    retention_days: int | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> int:
    days = (
        retention_days
        if retention_days is not None
        else get_sync_config().history_retention_days
    )
    return purge_change_history(
        unit_of_work_factory=unit_of_work_factory or _default_unit_of_work_factory(),
        retention_days=days,
    )


def stage_table(translator: StageTranslator | None = None) -> Mapping[str, str]:
    """Effective source -> target stage labels, for display."""

    active = translator or load_stage_translator()
    return {source.value: target.value for source, target in active.stage_map.items()}
