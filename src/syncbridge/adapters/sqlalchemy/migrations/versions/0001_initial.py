"""Initial schema: snapshots, mappings, change history, run audits.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 09:00:00
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_MATCH_TYPE = sa.Enum(
    "EXACT_KEY", "EXACT_NAME", "FUZZY", "MANUAL", "CREATED", name="matchtype", native_enum=False
)
_DIRECTION = sa.Enum("SOURCE_TO_TARGET", "MANUAL", name="syncdirection", native_enum=False)
_SYNC_STATUS = sa.Enum(
    "PENDING", "SYNCED", "CONFLICT", "TARGET_MISSING", name="syncstatus", native_enum=False
)
_CHANGE_TYPE = sa.Enum("CREATED", "FIELD_UPDATE", name="changetype", native_enum=False)
_SYNC_MODE = sa.Enum("DRY_RUN", "READ_ONLY", "WRITE", name="syncmode", native_enum=False)
_RUN_STATUS = sa.Enum("SUCCESS", "PARTIAL", "FAILED", name="runstatus", native_enum=False)


def _create_snapshot_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column("external_id", sa.String(), nullable=False),
        sa.Column("system_id", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("normalized_name_key", sa.String(), nullable=False),
        sa.Column("identifying_fields", sa.Text(), nullable=False),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("external_id", name=f"pk_{name}"),
    )
    op.create_index(f"ix_{name}_normalized_name_key", name, ["normalized_name_key"])


def upgrade() -> None:
    _create_snapshot_table("entities_source")
    _create_snapshot_table("entities_target")

    op.create_table(
        "sync_mappings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("source_id", sa.String(), nullable=False),
        sa.Column("source_name", sa.String(), nullable=True),
        sa.Column("target_id", sa.String(), nullable=False),
        sa.Column("target_name", sa.String(), nullable=True),
        sa.Column("match_type", _MATCH_TYPE, nullable=False),
        sa.Column("direction", _DIRECTION, nullable=False),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_sync_status", _SYNC_STATUS, nullable=False),
        sa.Column("conflicts", sa.Text(), nullable=False),
        sa.Column("metadata", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_sync_mappings"),
        sa.UniqueConstraint("source_id", name="uq_sync_mappings_source_id"),
        sa.UniqueConstraint("target_id", name="uq_sync_mappings_target_id"),
    )

    op.create_table(
        "change_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column("change_type", _CHANGE_TYPE, nullable=False),
        sa.Column("field", sa.String(), nullable=True),
        sa.Column("old_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        sa.Column("snapshot", sa.Text(), nullable=False),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_change_history"),
    )
    op.create_index("ix_change_history_synced_at", "change_history", ["synced_at"])
    op.create_index("ix_change_history_entity", "change_history", ["entity_type", "entity_id"])

    op.create_table(
        "sync_runs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("pair_name", sa.String(), nullable=False),
        sa.Column("mode", _SYNC_MODE, nullable=False),
        sa.Column("status", _RUN_STATUS, nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_ms", sa.Integer(), nullable=False),
        sa.Column("counts", sa.Text(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_sync_runs"),
    )
    op.create_index("ix_sync_runs_started_at", "sync_runs", ["started_at"])


def downgrade() -> None:
    op.drop_index("ix_sync_runs_started_at", table_name="sync_runs")
    op.drop_table("sync_runs")
    op.drop_index("ix_change_history_entity", table_name="change_history")
    op.drop_index("ix_change_history_synced_at", table_name="change_history")
    op.drop_table("change_history")
    op.drop_table("sync_mappings")
    for name in ("entities_target", "entities_source"):
        op.drop_index(f"ix_{name}_normalized_name_key", table_name=name)
        op.drop_table(name)
