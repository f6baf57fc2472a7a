"""Where the mapping database and the HTTP cache live on disk."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env

DATA_DIR_ENV: Final[str] = "SYNCBRIDGE_DATA_DIR"
DATABASE_URI_ENV: Final[str] = "DATABASE_URI"
DATABASE_FILENAME: Final[str] = "syncbridge.db"
HTTP_CACHE_FILENAME: Final[str] = "http_cache.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """A single data directory holding the sqlite store and the response cache."""

    data_dir: Path

    def _dir(self, *, ensure: bool) -> Path:
        resolved = self.data_dir.expanduser().resolve()
        if ensure:
            resolved.mkdir(parents=True, exist_ok=True)
        return resolved

    def database_path(self, *, ensure: bool = True) -> Path:
        return self._dir(ensure=ensure) / DATABASE_FILENAME

    def http_cache_path(self, *, ensure: bool = True) -> Path:
        return self._dir(ensure=ensure) / HTTP_CACHE_FILENAME


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str


def get_storage_config() -> StorageConfig:
    # defaults to the XDG data home, as ~/.local/share/syncbridge
    configured = optional_env(DATA_DIR_ENV)
    if configured is not None:
        return StorageConfig(data_dir=Path(configured))
    xdg_home = optional_env("XDG_DATA_HOME")
    base = Path(xdg_home) if xdg_home else Path.home() / ".local" / "share"
    return StorageConfig(data_dir=base / "syncbridge")


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    configured = optional_env(DATABASE_URI_ENV)
    if configured is not None:
        return DatabaseConfig(uri=configured)
    path = (storage or get_storage_config()).database_path()
    return DatabaseConfig(uri=f"sqlite+pysqlite:///{path}")


def get_http_cache_path() -> Path:
    return get_storage_config().http_cache_path()
