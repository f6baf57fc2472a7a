"""Minimal, non-destructive record creation on the target system."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from syncbridge.domain.errors import RemoteWriteError, UniqueConstraintConflict
from syncbridge.domain.model import ConflictResolution, FieldConflict
from syncbridge.domain.reconciliation import propagated_values

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping, Sequence

    from syncbridge.domain.model import SourceEntity
    from syncbridge.domain.ports import RecordCreator
    from syncbridge.domain.reconciliation import FieldRule
    from syncbridge.domain.stages import StageTranslator, TargetStage

log = logging.getLogger(__name__)

DUPLICATE_SKIPPED = "duplicate_skipped"


@dataclass(frozen=True, slots=True)
class CreateTemplate:
    """Target property names used for a freshly created record."""

    name_property: str = "dealname"
    pipeline_property: str = "pipeline"
    stage_property: str = "dealstage"
    source_stage_field: str = "stage"
    fallback_name: str = "Unnamed record"


@dataclass(frozen=True, slots=True)
class CreateOutcome:
    source_id: str
    properties: dict[str, str] = field(default_factory=dict[str, str])
    target_id: str | None = None
    dropped_field: str | None = None
    conflict: FieldConflict | None = None
    error: str | None = None

    @property
    def created(self) -> bool:
        return self.target_id is not None


def build_create_properties(
    source: SourceEntity,
    *,
    template: CreateTemplate,
    translator: StageTranslator,
    rules: Sequence[FieldRule],
    pipeline: str,
    stage: TargetStage | None = None,
) -> dict[str, str]:
    """Name, pipeline, stage and the non-blank whitelisted fields; nothing else."""

    name = (source.display_name or "").strip() or template.fallback_name
    stage_label = (
        stage.value
        if stage is not None
        else translator.translate(source.field_value(template.source_stage_field))
    )
    return {
        template.name_property: name,
        template.pipeline_property: pipeline,
        template.stage_property: stage_label,
        **propagated_values(source, rules),
    }


async def create_with_retry(
    creator: RecordCreator,
    entity_kind: str,
    source_id: str,
    properties: Mapping[str, str],
    *,
    droppable: Collection[str],
    default_unique_field: str,
    timeout_seconds: float,
) -> CreateOutcome:
    """Create one record, retrying once without a field the remote says is taken.

    Only fields in ``droppable`` are ever omitted. When the conflict does not
    name a field, ``default_unique_field`` is assumed. A second failure marks
    the item skipped; the caller carries on with the rest of the run.
    """

    sent = dict(properties)
    try:
        target_id = await asyncio.wait_for(
            creator.create_record(entity_kind, sent), timeout=timeout_seconds
        )
    except UniqueConstraintConflict as exc:
        offending = exc.field or default_unique_field
        if offending not in sent or offending not in droppable:
            log.warning("Create for %s skipped: %s", source_id, exc)
            return CreateOutcome(source_id=source_id, properties=sent, error=str(exc))
        log.info("Create for %s conflicts on %s; retrying without it", source_id, offending)
        return await _retry_without(
            creator,
            entity_kind,
            source_id,
            sent,
            offending=offending,
            timeout_seconds=timeout_seconds,
        )
    except (RemoteWriteError, TimeoutError) as exc:
        log.warning("Create for %s failed: %s", source_id, _describe(exc))
        return CreateOutcome(source_id=source_id, properties=sent, error=_describe(exc))
    return CreateOutcome(source_id=source_id, properties=sent, target_id=target_id)


async def _retry_without(
    creator: RecordCreator,
    entity_kind: str,
    source_id: str,
    properties: dict[str, str],
    *,
    offending: str,
    timeout_seconds: float,
) -> CreateOutcome:
    reduced = {key: value for key, value in properties.items() if key != offending}
    try:
        target_id = await asyncio.wait_for(
            creator.create_record(entity_kind, reduced), timeout=timeout_seconds
        )
    except (RemoteWriteError, TimeoutError) as exc:
        log.warning("Create for %s skipped after retry: %s", source_id, _describe(exc))
        return CreateOutcome(
            source_id=source_id,
            properties=reduced,
            dropped_field=offending,
            error=_describe(exc),
        )
    conflict = FieldConflict(
        field=offending,
        source_value=properties[offending],
        target_value=DUPLICATE_SKIPPED,
        resolution=ConflictResolution.KEPT_BOTH,
    )
    return CreateOutcome(
        source_id=source_id,
        properties=reduced,
        target_id=target_id,
        dropped_field=offending,
        conflict=conflict,
    )


def _describe(exc: BaseException) -> str:
    return str(exc) or f"{type(exc).__name__}: timed out"
