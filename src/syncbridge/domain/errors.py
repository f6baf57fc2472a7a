"""Error taxonomy for sync runs.

Read failures abort a run, write failures are recorded per item, and field
conflicts are data (``FieldConflict``), so none of them appear here.
"""

from __future__ import annotations


class SyncError(RuntimeError):
    """Base class for errors raised by the sync core."""


class ValidationError(SyncError):
    """A caller request is inconsistent with stored state."""


class AlreadyMapped(ValidationError):  # noqa: N818
    """Manual mapping requested for an entity that already has a mapping."""

    def __init__(self, message: str, *, source_id: str, target_id: str) -> None:
        super().__init__(message)
        self.source_id = source_id
        self.target_id = target_id


class EntityNotFound(ValidationError):  # noqa: N818
    """Referenced snapshot entity or mapping does not exist."""


class RemoteReadError(SyncError):
    """Extraction from one system failed; the run cannot match without both sides."""

    def __init__(self, message: str, *, system_id: str) -> None:
        super().__init__(message)
        self.system_id = system_id


class RemoteWriteError(SyncError):
    """A write (batch update or record creation) was rejected or timed out."""


class UniqueConstraintConflict(RemoteWriteError):  # noqa: N818
    """The remote refused a create because a unique property value is taken.

    ``field`` names the offending property when the remote reports it.
    """

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class ConcurrentRunRejected(SyncError):  # noqa: N818
    """A run for this system pair is already active."""

    def __init__(self, pair_name: str) -> None:
        super().__init__(f"A sync run for {pair_name!r} is already in progress")
        self.pair_name = pair_name
