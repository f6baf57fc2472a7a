from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from syncbridge import app
from syncbridge.config import ConfigurationError, SyncConfig
from syncbridge.domain.model import MatchType, SyncMode
from syncbridge.domain.stages import StageTranslator, TargetStage
from tests.helpers.remote import FakeRemoteClient

if TYPE_CHECKING:
    from collections.abc import Callable

    from syncbridge.adapters.sqlalchemy.unit_of_work import SqlAlchemySyncUnitOfWork

    UowFactory = Callable[[], SqlAlchemySyncUnitOfWork]


def _overrides(uow_factory: UowFactory) -> app.EngineOverrides:
    source_client = FakeRemoteClient(system_id="estimating")
    source_client.seed("projects", "S1", name="Alpha", project_number="P-1")
    target_client = FakeRemoteClient(system_id="crm")
    target_client.seed("deals", "T1", dealname="Alpha deal", project_number="P-1")
    return app.EngineOverrides(
        source_client=source_client,
        target_client=target_client,
        unit_of_work_factory=uow_factory,
        sync_config=SyncConfig(refresh_snapshots=True),
        translator=StageTranslator(),
    )


def test_build_sync_engine_uses_injected_collaborators(sqlite_unit_of_work: UowFactory) -> None:
    engine = app.build_sync_engine(_overrides(sqlite_unit_of_work))

    assert engine.source is not None
    assert engine.source.entity_kind == "projects"
    assert engine.target.entity_kind == "deals"
    assert engine.target.name_property == "dealname"


def test_run_sync_and_stored_state_queries(sqlite_unit_of_work: UowFactory) -> None:
    engine = app.build_sync_engine(_overrides(sqlite_unit_of_work))

    summary = app.run_sync(SyncMode.READ_ONLY, engine=engine)

    assert summary.matched == 1
    [mapping] = app.mappings(unit_of_work_factory=sqlite_unit_of_work)
    assert mapping.match_type is MatchType.EXACT_KEY
    stats = app.overview(unit_of_work_factory=sqlite_unit_of_work)
    assert stats.total_mappings == 1
    unmatched = app.unmatched_entities(unit_of_work_factory=sqlite_unit_of_work)
    assert unmatched.sources == []
    assert unmatched.targets == []

    assert mapping.id is not None
    app.unlink(mapping.id, unit_of_work_factory=sqlite_unit_of_work)
    assert list(app.mappings(unit_of_work_factory=sqlite_unit_of_work)) == []


def test_purge_history_defaults_to_configured_retention(
    sqlite_unit_of_work: UowFactory, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("SYNCBRIDGE_HISTORY_RETENTION_DAYS", "3")

    assert app.purge_history(unit_of_work_factory=sqlite_unit_of_work) == 0


def test_requested_properties_cover_matching_and_field_rules() -> None:
    names = app._requested_properties(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
        app.Matcher(), app.DEFAULT_FIELD_RULES, "dealname"
    )

    assert len(names) == len(set(names))
    assert {"project_number", "email", "city", "state", "project_location", "dealname"} <= set(
        names
    )


def test_load_stage_translator_reads_json_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(app.STAGE_OVERRIDES_ENV, '{"Estimate under review": "Estimating"}')
    monkeypatch.setenv(app.CREATION_TRIGGERS_ENV, '{"RFP": "Service – Estimating"}')

    translator = app.load_stage_translator()

    assert translator.translate("Estimate under review") == "Estimating"
    assert translator.trigger_stage("RFP") is TargetStage.SERVICE_ESTIMATING
    assert translator.trigger_stage("Service RFP") is None
    assert app.stage_table(translator)["Estimate under review"] == "Estimating"


@pytest.mark.parametrize("raw", ["not json", '["a", "b"]', '{"Nope": "Estimating"}'])
def test_load_stage_translator_rejects_bad_tables(
    monkeypatch: pytest.MonkeyPatch, raw: str
) -> None:
    monkeypatch.setenv(app.STAGE_OVERRIDES_ENV, raw)
    monkeypatch.delenv(app.CREATION_TRIGGERS_ENV, raising=False)

    with pytest.raises(ConfigurationError):
        app.load_stage_translator()
