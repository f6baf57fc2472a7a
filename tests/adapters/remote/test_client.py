from __future__ import annotations

import asyncio
import json
from collections.abc import Callable  # noqa: TC003

import httpx
import pytest

from syncbridge.adapters.http_resilience import ResilienceConfig, ResilientClient, RetryPolicy
from syncbridge.adapters.remote import HttpRemoteSystemClient
from syncbridge.adapters.remote.translator import MISSING_FROM_RESPONSE
from syncbridge.config import RemoteSystemConfig
from syncbridge.domain.errors import RemoteReadError, RemoteWriteError, UniqueConstraintConflict
from syncbridge.domain.ports import RecordUpdate

RESILIENCE = ResilienceConfig(
    name="crm",
    base_url="https://crm.test/",
    retry=RetryPolicy(total=0),
)


def _client(
    handler: Callable[[httpx.Request], httpx.Response],
    *,
    properties: tuple[str, ...] = ("dealname", "project_number"),
    page_size: int = 2,
) -> HttpRemoteSystemClient:
    def factory(resilience: ResilienceConfig) -> ResilientClient:
        return ResilientClient(resilience, transport=httpx.MockTransport(handler))

    return HttpRemoteSystemClient(
        system_id="crm",
        resilience=RESILIENCE,
        properties=properties,
        page_size=page_size,
        client_factory=factory,
    )


def test_list_all_follows_paging_cursors() -> None:
    seen_params: list[dict[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/crm/v3/objects/deals"
        params = dict(request.url.params)
        seen_params.append(params)
        if "after" not in params:
            return httpx.Response(
                200,
                json={
                    "results": [
                        {"id": 1, "properties": {"dealname": "Alpha", "amount": 10}},
                        {"id": "2", "properties": {"dealname": "Beta", "project_number": None}},
                    ],
                    "paging": {"next": {"after": "2"}},
                },
            )
        return httpx.Response(
            200,
            json={
                "results": [
                    {
                        "id": "3",
                        "properties": {"dealname": "Gamma"},
                        "updatedAt": "2025-03-01T12:00:00Z",
                    }
                ]
            },
        )

    records = asyncio.run(_client(handler).list_all("deals"))

    assert [record.id for record in records] == ["1", "2", "3"]
    assert records[0].properties == {"dealname": "Alpha", "amount": "10"}
    assert records[1].properties == {"dealname": "Beta"}
    assert records[2].updated_at is not None
    assert seen_params[0] == {"limit": "2", "properties": "dealname,project_number"}
    assert seen_params[1]["after"] == "2"


def test_list_all_wraps_http_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"message": "down"})

    with pytest.raises(RemoteReadError) as excinfo:
        asyncio.run(_client(handler).list_all("deals"))

    assert excinfo.value.system_id == "crm"


def test_list_all_rejects_malformed_pages() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"results": [{"properties": {}}]})

    with pytest.raises(RemoteReadError):
        asyncio.run(_client(handler).list_all("deals"))


def test_create_record_posts_properties() -> None:
    bodies: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/crm/v3/objects/deals"
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json={"id": 501, "properties": {}})

    created_id = asyncio.run(_client(handler).create_record("deals", {"dealname": "Alpha"}))

    assert created_id == "501"
    assert bodies == [{"properties": {"dealname": "Alpha"}}]


def test_create_record_reports_unique_conflicts() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={
                "message": "Property values were not valid",
                "category": "VALIDATION_ERROR",
                "subCategory": "CONFLICTING_UNIQUE_VALUE",
                "context": {"propertyName": ["project_number"]},
            },
        )

    with pytest.raises(UniqueConstraintConflict) as excinfo:
        asyncio.run(_client(handler).create_record("deals", {"project_number": "P-1"}))

    assert excinfo.value.field == "project_number"


def test_create_record_treats_409_as_a_conflict() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, text="duplicate")

    with pytest.raises(UniqueConstraintConflict) as excinfo:
        asyncio.run(_client(handler).create_record("deals", {"dealname": "Alpha"}))

    assert excinfo.value.field is None


def test_create_record_failure_is_a_write_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"message": "bad pipeline"})

    with pytest.raises(RemoteWriteError, match="bad pipeline"):
        asyncio.run(_client(handler).create_record("deals", {"dealname": "Alpha"}))


def test_batch_update_reports_per_item_results() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/crm/v3/objects/deals/batch/update"
        body = json.loads(request.content)
        assert [item["id"] for item in body["inputs"]] == ["T1", "T2", "T3"]
        return httpx.Response(
            207,
            json={
                "status": "COMPLETE",
                "results": [{"id": "T1", "properties": {}}],
                "errors": [{"message": "invalid amount", "context": {"ids": ["T2"]}}],
            },
        )

    updates = [RecordUpdate(record_id, {"amount": "1"}) for record_id in ("T1", "T2", "T3")]
    results = asyncio.run(_client(handler).batch_update("deals", updates))

    assert [(result.id, result.ok) for result in results] == [
        ("T1", True),
        ("T2", False),
        ("T3", False),
    ]
    assert results[1].error == "invalid amount"
    assert results[2].error == MISSING_FROM_RESPONSE


def test_batch_update_whole_batch_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "internal"})

    with pytest.raises(RemoteWriteError, match="internal"):
        asyncio.run(_client(handler).batch_update("deals", [RecordUpdate("T1", {"a": "1"})]))


def test_from_config_requests_the_name_property_first() -> None:
    config = RemoteSystemConfig(
        system_id="crm",
        entity_kind="deals",
        api_token="token",
        name_property="dealname",
        resilience=RESILIENCE,
    )

    client = HttpRemoteSystemClient.from_config(
        config, properties=("project_number", "dealname", "amount")
    )

    assert client.properties == ("dealname", "project_number", "amount")
    assert client.system_id == "crm"
