from __future__ import annotations

import pytest

from syncbridge.config.errors import ConfigurationError
from syncbridge.domain.stages import (
    SourceStage,
    StageTranslator,
    TargetStage,
    parse_source_stage,
    parse_target_stage,
)


@pytest.mark.parametrize(
    ("label", "expected"),
    [
        ("Estimate in Progress", "Estimating"),
        ("estimate IN progress", "Estimating"),
        ("Service – Estimating", "Service – Estimating"),
        ("Service - Estimating", "Service – Estimating"),
        ("service-estimating", "Service – Estimating"),
        ("Estimate under review", "Internal Review"),
        ("Estimate sent to Client", "Proposal Sent"),
        ("Service – sent to production", "Service – Won"),
        ("Sent to production", "Closed Won"),
        ("Service – lost", "Service – Lost"),
        ("Production – lost", "Closed Lost"),
    ],
)
def test_translate_known_stages(label: str, expected: str) -> None:
    assert StageTranslator().translate(label) == expected


def test_unmapped_and_unknown_labels_pass_through() -> None:
    translator = StageTranslator()

    assert translator.translate("RFP") == "RFP"
    assert translator.translate("  On hold ") == "On hold"


def test_missing_stage_gets_the_default() -> None:
    translator = StageTranslator()

    assert translator.translate(None) == "Estimating"
    assert translator.translate("   ") == "Estimating"


def test_parse_keeps_the_raw_label() -> None:
    parsed = parse_source_stage(" Something new ")

    assert parsed.stage is SourceStage.UNKNOWN
    assert not parsed.known
    assert parsed.raw == "Something new"
    assert parse_target_stage("closed won").stage is TargetStage.CLOSED_WON


def test_trigger_stage_for_creation_triggers() -> None:
    translator = StageTranslator()

    assert translator.trigger_stage("RFP") is TargetStage.ESTIMATING
    assert translator.trigger_stage("service rfp") is TargetStage.SERVICE_ESTIMATING
    assert translator.trigger_stage("Estimate in Progress") is None
    assert translator.trigger_stage(None) is None


def test_should_trigger_on_entry_into_a_trigger_stage() -> None:
    translator = StageTranslator()

    assert translator.should_trigger(None, "RFP")
    assert translator.should_trigger("", "RFP")
    assert translator.should_trigger("Estimate in Progress", "RFP")
    assert translator.should_trigger("RFP", "Service RFP")


def test_should_not_trigger_without_a_transition() -> None:
    translator = StageTranslator()

    assert not translator.should_trigger("RFP", "rfp")
    assert not translator.should_trigger("RFP", "Estimate in Progress")
    assert not translator.should_trigger(None, None)


def test_overrides_merge_into_the_defaults() -> None:
    translator = StageTranslator.from_overrides({"Estimate under review": "Estimating"})

    assert translator.translate("Estimate under review") == "Estimating"
    assert translator.translate("Sent to production") == "Closed Won"
    assert translator.trigger_stage("RFP") is TargetStage.ESTIMATING


def test_creation_triggers_can_be_replaced() -> None:
    translator = StageTranslator.from_overrides(
        creation_triggers={"Estimate in Progress": "Estimating"}
    )

    assert translator.trigger_stage("RFP") is None
    assert translator.trigger_stage("Estimate in Progress") is TargetStage.ESTIMATING


@pytest.mark.parametrize(
    "table",
    [
        {"Not a stage": "Estimating"},
        {"RFP": "Not a stage"},
    ],
)
def test_overrides_reject_unknown_labels(table: dict[str, str]) -> None:
    with pytest.raises(ConfigurationError):
        StageTranslator.from_overrides(table)
