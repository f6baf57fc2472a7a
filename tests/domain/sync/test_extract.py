from __future__ import annotations

import asyncio

import pytest

from syncbridge.domain.errors import RemoteReadError
from syncbridge.domain.sync import RemoteSide, extract_pair
from tests.helpers.entities import SEEN_AT
from tests.helpers.remote import FakeRemoteClient


def test_extract_pair_builds_snapshots_for_both_sides() -> None:
    source_client = FakeRemoteClient(system_id="estimating")
    source_client.seed("projects", "S1", name="  Alpha  Tower", project_number="P-1")
    target_client = FakeRemoteClient(system_id="crm")
    target_client.seed("deals", "T1", dealname="Beta")

    sources, targets = asyncio.run(
        extract_pair(
            RemoteSide(source_client, "projects"),
            RemoteSide(target_client, "deals", name_property="dealname"),
            timeout_seconds=5,
            seen_at=SEEN_AT,
        )
    )

    [source] = sources
    assert source.system_id == "estimating"
    assert source.display_name == "  Alpha  Tower"
    assert source.normalized_name_key == "alpha tower"
    assert source.identifying_fields["project_number"] == "P-1"
    assert source.last_seen_at == SEEN_AT
    [target] = targets
    assert target.external_id == "T1"
    assert target.display_name == "Beta"


def test_extract_pair_fails_when_either_side_fails() -> None:
    source_client = FakeRemoteClient(system_id="estimating")
    target_client = FakeRemoteClient(system_id="crm", fail_list=True)

    with pytest.raises(RemoteReadError) as excinfo:
        asyncio.run(
            extract_pair(
                RemoteSide(source_client, "projects"),
                RemoteSide(target_client, "deals"),
                timeout_seconds=5,
            )
        )

    assert excinfo.value.system_id == "crm"
