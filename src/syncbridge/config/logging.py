"""Shared logging helpers for syncbridge."""

from __future__ import annotations

import logging


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once with defaults suited to scheduled runs.

    Sync runs are usually started by a scheduler whose output ends up in a
    collected log, so the format carries the full date and the logger name.
    Pass ``force=True`` to reconfigure during tests or specialised entry points.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=force,
    )
    # httpx logs every request at INFO; batch runs issue hundreds of them
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
