from __future__ import annotations

import json

import pytest

from syncbridge.domain.errors import ConcurrentRunRejected, EntityNotFound
from syncbridge.domain.model import MatchType, RunStatus, SyncMode, SyncStatus
from syncbridge.domain.ports import MappingFilter
from syncbridge.domain.sync import SyncRunSummary
from syncbridge.ui import cli


class _FakeEngine:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


@pytest.fixture
def fake_engine(monkeypatch: pytest.MonkeyPatch) -> _FakeEngine:
    engine = _FakeEngine()
    monkeypatch.setattr(cli, "build_sync_engine", lambda: engine)
    monkeypatch.setattr(cli, "_install_cancel_handler", lambda _engine: None)
    return engine


def test_sync_defaults_to_dry_run(
    fake_engine: _FakeEngine,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    captured: dict[str, object] = {}

    def fake_run_sync(mode: SyncMode, *, engine: object) -> SyncRunSummary:
        captured["mode"] = mode
        captured["engine"] = engine
        return SyncRunSummary(mode=mode, matched=3)

    monkeypatch.setattr(cli, "run_sync", fake_run_sync)

    cli.main(["sync"])

    assert captured == {"mode": SyncMode.DRY_RUN, "engine": fake_engine}
    printed = json.loads(capsys.readouterr().out)
    assert printed["matched"] == 3
    assert printed["status"] == RunStatus.SUCCESS.value


def test_sync_with_write_mode(fake_engine: _FakeEngine, monkeypatch: pytest.MonkeyPatch) -> None:
    modes: list[SyncMode] = []

    def fake_run_sync(mode: SyncMode, *, engine: object) -> SyncRunSummary:
        _ = engine
        modes.append(mode)
        return SyncRunSummary(mode=mode)

    monkeypatch.setattr(cli, "run_sync", fake_run_sync)

    cli.main(["sync", "--mode", "write"])

    assert modes == [SyncMode.WRITE]


def test_concurrent_run_exits_with_dedicated_code(
    fake_engine: _FakeEngine, monkeypatch: pytest.MonkeyPatch
) -> None:
    _ = fake_engine

    def fake_run_sync(mode: SyncMode, *, engine: object) -> SyncRunSummary:
        raise ConcurrentRunRejected("source->target")

    monkeypatch.setattr(cli, "run_sync", fake_run_sync)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["sync"])

    assert excinfo.value.code == cli.EXIT_REJECTED


def test_validation_errors_exit_with_usage_code(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_unlink(mapping_id: int) -> None:
        raise EntityNotFound(f"Unknown mapping id {mapping_id}")

    monkeypatch.setattr(cli, "unlink", fake_unlink)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["unlink", "42"])

    assert excinfo.value.code == cli.EXIT_USAGE


def test_unexpected_errors_exit_with_one(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_overview() -> None:
        raise RuntimeError("database locked")

    monkeypatch.setattr(cli, "overview", fake_overview)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["overview"])

    assert excinfo.value.code == 1


@pytest.mark.parametrize(
    "argv",
    [
        ["mappings", "--limit", "0"],
        ["purge-history", "--retention-days", "-1"],
        ["sync", "--mode", "everything"],
        [],
    ],
)
def test_invalid_arguments_exit_with_usage_code(argv: list[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv)

    assert excinfo.value.code == cli.EXIT_USAGE


def test_mappings_filter_is_built_from_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    filters: list[MappingFilter | None] = []

    def fake_mappings(mapping_filter: MappingFilter | None = None) -> list[object]:
        filters.append(mapping_filter)
        return []

    monkeypatch.setattr(cli, "mappings", fake_mappings)

    cli.main(["mappings", "--match-type", "fuzzy", "--status", "conflict", "--conflicts"])

    assert filters == [
        MappingFilter(
            match_type=MatchType.FUZZY,
            status=SyncStatus.CONFLICT,
            has_conflicts=True,
            limit=None,
        )
    ]


def test_trigger_passes_both_stages(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[object, ...]] = []

    def fake_trigger(
        source_id: str, previous: str | None, current: str, mode: SyncMode
    ) -> None:
        calls.append((source_id, previous, current, mode))

    monkeypatch.setattr(cli, "trigger_stage_change", fake_trigger)

    cli.main(["trigger", "S1", "--current", "RFP", "--previous", "Estimate in Progress"])

    assert calls == [("S1", "Estimate in Progress", "RFP", SyncMode.WRITE)]


def test_link_forwards_the_write_key_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[str, str, bool]] = []

    class _Mapping:
        id = 5

    def fake_link(source_id: str, target_id: str, *, write_key: bool) -> _Mapping:
        calls.append((source_id, target_id, write_key))
        return _Mapping()

    monkeypatch.setattr(cli, "link_entities", fake_link)

    cli.main(["link", "S1", "T9", "--write-key"])

    assert calls == [("S1", "T9", True)]


def test_stages_prints_the_translation_table(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(cli, "stage_table", lambda: {"Sent to production": "Closed Won"})

    cli.main(["stages"])

    assert json.loads(capsys.readouterr().out) == {"Sent to production": "Closed Won"}
