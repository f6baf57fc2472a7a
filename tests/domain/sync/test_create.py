from __future__ import annotations

import asyncio

from syncbridge.domain.model import ConflictResolution
from syncbridge.domain.reconciliation import DEFAULT_FIELD_RULES
from syncbridge.domain.stages import StageTranslator, TargetStage
from syncbridge.domain.sync import CreateTemplate, build_create_properties, create_with_retry
from tests.helpers.entities import make_source
from tests.helpers.remote import FakeRemoteClient

DROPPABLE = ("project_number",)


def _properties() -> dict[str, str]:
    return {"dealname": "Alpha", "pipeline": "default", "project_number": "P-1"}


def test_build_create_properties_is_minimal() -> None:
    source = make_source(
        "S1",
        "  Alpha  ",
        project_number="P-1",
        city="Austin",
        stage="Estimate sent to Client",
        email="pm@acme.com",
    )

    properties = build_create_properties(
        source,
        template=CreateTemplate(),
        translator=StageTranslator(),
        rules=DEFAULT_FIELD_RULES,
        pipeline="default",
    )

    assert properties == {
        "dealname": "Alpha",
        "pipeline": "default",
        "dealstage": "Proposal Sent",
        "project_number": "P-1",
        "project_location": "Austin",
    }


def test_build_create_properties_uses_fallbacks() -> None:
    properties = build_create_properties(
        make_source("S1"),
        template=CreateTemplate(),
        translator=StageTranslator(),
        rules=DEFAULT_FIELD_RULES,
        pipeline="default",
        stage=TargetStage.SERVICE_ESTIMATING,
    )

    assert properties["dealname"] == "Unnamed record"
    assert properties["dealstage"] == "Service – Estimating"


def test_create_succeeds_first_time() -> None:
    client = FakeRemoteClient()

    outcome = asyncio.run(
        create_with_retry(
            client,
            "deals",
            "S1",
            _properties(),
            droppable=DROPPABLE,
            default_unique_field="project_number",
            timeout_seconds=5,
        )
    )

    assert outcome.created
    assert outcome.dropped_field is None
    assert outcome.conflict is None
    assert len(client.create_calls) == 1


def test_unique_conflict_retries_once_without_the_field() -> None:
    client = FakeRemoteClient(unique_fields=("project_number",), unique_conflicts_remaining=1)

    outcome = asyncio.run(
        create_with_retry(
            client,
            "deals",
            "S1",
            _properties(),
            droppable=DROPPABLE,
            default_unique_field="project_number",
            timeout_seconds=5,
        )
    )

    assert outcome.created
    assert outcome.dropped_field == "project_number"
    assert "project_number" not in client.create_calls[1]
    assert outcome.conflict is not None
    assert outcome.conflict.source_value == "P-1"
    assert outcome.conflict.target_value == "duplicate_skipped"
    assert outcome.conflict.resolution is ConflictResolution.KEPT_BOTH
    assert outcome.target_id is not None
    assert "project_number" not in client.properties_of("deals", outcome.target_id)


def test_second_failure_skips_the_item() -> None:
    client = FakeRemoteClient(
        unique_fields=("project_number", "dealname"), unique_conflicts_remaining=2
    )

    outcome = asyncio.run(
        create_with_retry(
            client,
            "deals",
            "S1",
            _properties(),
            droppable=DROPPABLE,
            default_unique_field="project_number",
            timeout_seconds=5,
        )
    )

    assert not outcome.created
    assert outcome.error is not None
    assert outcome.dropped_field == "project_number"
    assert len(client.create_calls) == 2


def test_conflict_on_a_non_droppable_field_is_not_retried() -> None:
    client = FakeRemoteClient(unique_fields=("dealname",), unique_conflicts_remaining=1)

    outcome = asyncio.run(
        create_with_retry(
            client,
            "deals",
            "S1",
            _properties(),
            droppable=DROPPABLE,
            default_unique_field="project_number",
            timeout_seconds=5,
        )
    )

    assert not outcome.created
    assert len(client.create_calls) == 1


def test_create_timeout_is_recorded_as_an_error() -> None:
    client = FakeRemoteClient(create_delay=0.5)

    outcome = asyncio.run(
        create_with_retry(
            client,
            "deals",
            "S1",
            _properties(),
            droppable=DROPPABLE,
            default_unique_field="project_number",
            timeout_seconds=0.01,
        )
    )

    assert not outcome.created
    assert outcome.error == "TimeoutError: timed out"
