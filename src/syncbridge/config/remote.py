"""Remote system (source/target) configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, optional_env, require_env_vars
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy

DEFAULT_REMOTE_TIMEOUT_SECONDS = 30.0
DEFAULT_NAME_PROPERTY = "name"


@dataclass(frozen=True, slots=True)
class RemoteSystemConfig:
    """Connection settings for one side of the synchronised pair.

    ``system_id`` is the label stored on snapshot rows (``procore``,
    ``hubspot``, ...). ``name_property`` is the remote property holding the
    record's display name.
    """

    system_id: str
    entity_kind: str
    api_token: str
    name_property: str
    resilience: ResilienceConfig


def _resilience_for(
    system_id: str,
    *,
    base_url: str,
    api_token: str,
    cache_ttl_seconds: float | None,
) -> ResilienceConfig:
    cache = (
        CacheConfig(default_ttl_seconds=cache_ttl_seconds)
        if cache_ttl_seconds is not None
        else None
    )
    return ResilienceConfig(
        name=system_id,
        base_url=base_url.rstrip("/") + "/",
        timeout_seconds=DEFAULT_REMOTE_TIMEOUT_SECONDS,
        retry=RetryPolicy(total=3),
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        cache=cache,
        default_headers={
            "Authorization": f"Bearer {api_token}",
            "Accept": "application/json",
        },
    )


def get_remote_config(prefix: str) -> RemoteSystemConfig:
    """Load the remote configuration stored under ``{prefix}_*`` variables.

    ``prefix`` is ``SOURCE`` or ``TARGET``. The optional
    ``{prefix}_CACHE_TTL_SECONDS`` enables a sqlite response cache for list
    reads; leave it unset when snapshots must always be fresh.
    """

    names = (f"{prefix}_SYSTEM_ID", f"{prefix}_BASE_URL", f"{prefix}_API_TOKEN", f"{prefix}_KIND")
    values = require_env_vars(names)
    system_id = values[f"{prefix}_SYSTEM_ID"]
    cache_ttl = (
        env_float(f"{prefix}_CACHE_TTL_SECONDS", 0.0)
        if optional_env(f"{prefix}_CACHE_TTL_SECONDS")
        else None
    )
    return RemoteSystemConfig(
        system_id=system_id,
        entity_kind=values[f"{prefix}_KIND"],
        api_token=values[f"{prefix}_API_TOKEN"],
        name_property=optional_env(f"{prefix}_NAME_PROPERTY") or DEFAULT_NAME_PROPERTY,
        resilience=_resilience_for(
            system_id,
            base_url=values[f"{prefix}_BASE_URL"],
            api_token=values[f"{prefix}_API_TOKEN"],
            cache_ttl_seconds=cache_ttl,
        ),
    )
