"""SQLAlchemy adapter package for syncbridge."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyChangeHistoryRepository,
    SqlAlchemyMappingRepository,
    SqlAlchemySourceEntityRepository,
    SqlAlchemySyncRunRepository,
    SqlAlchemyTargetEntityRepository,
)
from .unit_of_work import SqlAlchemySyncUnitOfWork, shutdown, startup

__all__ = [
    "SqlAlchemyChangeHistoryRepository",
    "SqlAlchemyMappingRepository",
    "SqlAlchemySourceEntityRepository",
    "SqlAlchemySyncRunRepository",
    "SqlAlchemySyncUnitOfWork",
    "SqlAlchemyTargetEntityRepository",
    "create_all_tables",
    "mapper_registry",
    "shutdown",
    "startup",
    "start_mappers",
]
