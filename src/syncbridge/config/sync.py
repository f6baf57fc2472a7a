"""Synchronization defaults for pairwise sync runs."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_bool, env_float, env_int, optional_env

DEFAULT_BATCH_SIZE = 100
DEFAULT_MAX_IN_FLIGHT = 2
DEFAULT_WRITE_TIMEOUT_SECONDS = 60.0
DEFAULT_READ_TIMEOUT_SECONDS = 300.0
DEFAULT_HISTORY_RETENTION_DAYS = 14
DEFAULT_PAIR_NAME = "source->target"


@dataclass(frozen=True, slots=True)
class SyncConfig:
    """Run-level knobs shared by the orchestrator and the batch writer.

    ``batch_size`` must not exceed what the target system accepts per batch
    call. ``max_in_flight`` bounds concurrent batch calls; matching itself is
    always sequential.
    """

    pair_name: str = DEFAULT_PAIR_NAME
    batch_size: int = DEFAULT_BATCH_SIZE
    max_in_flight: int = DEFAULT_MAX_IN_FLIGHT
    write_timeout_seconds: float = DEFAULT_WRITE_TIMEOUT_SECONDS
    read_timeout_seconds: float = DEFAULT_READ_TIMEOUT_SECONDS
    history_retention_days: int = DEFAULT_HISTORY_RETENTION_DAYS
    create_on_unmatched: bool = True
    refresh_snapshots: bool = False
    default_pipeline: str = "default"

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.max_in_flight < 1:
            raise ValueError("max_in_flight must be at least 1")
        if self.history_retention_days < 0:
            raise ValueError("history_retention_days must be non-negative")


def get_sync_config() -> SyncConfig:
    return SyncConfig(
        pair_name=optional_env("SYNCBRIDGE_PAIR_NAME") or DEFAULT_PAIR_NAME,
        batch_size=env_int("SYNCBRIDGE_BATCH_SIZE", DEFAULT_BATCH_SIZE, minimum=1),
        max_in_flight=env_int("SYNCBRIDGE_MAX_IN_FLIGHT", DEFAULT_MAX_IN_FLIGHT, minimum=1),
        write_timeout_seconds=env_float(
            "SYNCBRIDGE_WRITE_TIMEOUT_SECONDS", DEFAULT_WRITE_TIMEOUT_SECONDS
        ),
        read_timeout_seconds=env_float(
            "SYNCBRIDGE_READ_TIMEOUT_SECONDS", DEFAULT_READ_TIMEOUT_SECONDS
        ),
        history_retention_days=env_int(
            "SYNCBRIDGE_HISTORY_RETENTION_DAYS", DEFAULT_HISTORY_RETENTION_DAYS, minimum=0
        ),
        create_on_unmatched=env_bool("SYNCBRIDGE_CREATE_ON_UNMATCHED", default=True),
        refresh_snapshots=env_bool("SYNCBRIDGE_REFRESH_SNAPSHOTS", default=False),
        default_pipeline=optional_env("SYNCBRIDGE_DEFAULT_PIPELINE") or "default",
    )
