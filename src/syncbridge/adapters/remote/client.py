"""HTTP client for CRM-style object APIs (list pages, create, batch update)."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from syncbridge.adapters.http_resilience import ResilienceConfig, ResilientClient
from syncbridge.domain.errors import RemoteReadError, RemoteWriteError, UniqueConstraintConflict

from .schema import BatchResponse, CreatedObject, ErrorResponse, ObjectPage
from .translator import batch_item_results, parse_record

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from syncbridge.config import RemoteSystemConfig
    from syncbridge.domain.ports import ItemResult, RecordUpdate, RemoteRecord

log = getLogger(__name__)

OBJECTS_PATH = "crm/v3/objects"
DEFAULT_PAGE_SIZE = 100
_CONFLICT_STATUSES = frozenset({409})


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def _error_payload(response: httpx.Response) -> ErrorResponse:
    try:
        return ErrorResponse.model_validate(response.json())
    except (ValueError, ValidationError):
        return ErrorResponse(message=response.text[:200])


@dataclass(slots=True)
class HttpRemoteSystemClient:
    """``RemoteSystemClient`` over a paginated ``crm/v3/objects/{kind}`` API.

    Each call opens its own ``ResilientClient`` so the instance can be shared
    between event loops (the CLI runs one ``asyncio.run`` per command).
    """

    system_id: str
    resilience: ResilienceConfig
    properties: tuple[str, ...] = ()
    page_size: int = DEFAULT_PAGE_SIZE
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    @classmethod
    def from_config(
        cls,
        config: RemoteSystemConfig,
        *,
        properties: Sequence[str] = (),
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> HttpRemoteSystemClient:
        requested = tuple(dict.fromkeys([config.name_property, *properties]))
        return cls(
            system_id=config.system_id,
            resilience=config.resilience,
            properties=requested,
            client_factory=client_factory or _default_client_factory,
        )

    async def list_all(self, entity_kind: str) -> list[RemoteRecord]:
        records: list[RemoteRecord] = []
        after: str | None = None
        async with self.client_factory(self.resilience) as client:
            while True:
                page = await self._list_page(client, entity_kind, after)
                records.extend(parse_record(payload) for payload in page.results)
                after = page.next_after
                if after is None:
                    break
        log.debug("Fetched %d %s from %s", len(records), entity_kind, self.system_id)
        return records

    async def _list_page(
        self,
        client: ResilientClient,
        entity_kind: str,
        after: str | None,
    ) -> ObjectPage:
        params: dict[str, str | int] = {"limit": self.page_size}
        if self.properties:
            params["properties"] = ",".join(self.properties)
        if after is not None:
            params["after"] = after
        try:
            response = await client.get(f"{OBJECTS_PATH}/{entity_kind}", params=params)
            response.raise_for_status()
            return ObjectPage.model_validate(response.json())
        except httpx.HTTPError as exc:
            raise RemoteReadError(
                f"Listing {entity_kind} from {self.system_id} failed: {exc}",
                system_id=self.system_id,
            ) from exc
        except (ValueError, ValidationError) as exc:
            raise RemoteReadError(
                f"Unexpected {entity_kind} page from {self.system_id}: {exc}",
                system_id=self.system_id,
            ) from exc

    async def create_record(self, entity_kind: str, properties: Mapping[str, str]) -> str:
        async with self.client_factory(self.resilience) as client:
            try:
                response = await client.post(
                    f"{OBJECTS_PATH}/{entity_kind}", json={"properties": dict(properties)}
                )
            except httpx.HTTPError as exc:
                raise RemoteWriteError(f"Creating {entity_kind} failed: {exc}") from exc

        if response.is_error:
            error = _error_payload(response)
            if response.status_code in _CONFLICT_STATUSES or error.is_unique_conflict:
                raise UniqueConstraintConflict(
                    error.message or f"{entity_kind} conflicts with an existing record",
                    field=error.offending_property,
                )
            raise RemoteWriteError(
                f"Creating {entity_kind} failed ({response.status_code}): {error.message}"
            )
        try:
            created = CreatedObject.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise RemoteWriteError(f"Unexpected create response for {entity_kind}") from exc
        log.info("Created %s %s on %s", entity_kind, created.id, self.system_id)
        return created.id

    async def batch_update(
        self,
        entity_kind: str,
        updates: Sequence[RecordUpdate],
    ) -> list[ItemResult]:
        body = {
            "inputs": [
                {"id": update.id, "properties": dict(update.properties)} for update in updates
            ]
        }
        async with self.client_factory(self.resilience) as client:
            try:
                response = await client.post(
                    f"{OBJECTS_PATH}/{entity_kind}/batch/update", json=body
                )
            except httpx.HTTPError as exc:
                raise RemoteWriteError(f"Batch update of {entity_kind} failed: {exc}") from exc

        if response.is_error:
            error = _error_payload(response)
            raise RemoteWriteError(
                f"Batch update of {entity_kind} rejected ({response.status_code}): "
                f"{error.message}"
            )
        try:
            parsed = BatchResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise RemoteWriteError(f"Unexpected batch response for {entity_kind}") from exc
        return batch_item_results(updates, parsed)


if TYPE_CHECKING:
    from syncbridge.domain.ports import RemoteSystemClient

    _client_check: RemoteSystemClient = HttpRemoteSystemClient(
        system_id="check", resilience=ResilienceConfig(name="check")
    )
