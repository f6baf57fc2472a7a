"""Lifecycle-stage vocabularies and the pure translation between them.

Each system's stage labels are parsed into an enum with an explicit
``UNKNOWN`` variant instead of being compared as raw strings. Parsing
tolerates case, surrounding whitespace and hyphen versus en dash, since
vendors are inconsistent about all three.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from syncbridge.config.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

_DASHES = re.compile(r"\s*[-‐-―]\s*")
_WHITESPACE = re.compile(r"\s+")


def _canonical(label: str) -> str:
    text = _WHITESPACE.sub(" ", label.strip().casefold())
    return _DASHES.sub(" – ", text)


class SourceStage(StrEnum):
    RFP = "RFP"
    SERVICE_RFP = "Service RFP"
    ESTIMATE_IN_PROGRESS = "Estimate in Progress"
    SERVICE_ESTIMATING = "Service – Estimating"
    ESTIMATE_UNDER_REVIEW = "Estimate under review"
    ESTIMATE_SENT = "Estimate sent to Client"
    SERVICE_SENT_TO_PRODUCTION = "Service – sent to production"
    SENT_TO_PRODUCTION = "Sent to production"
    SERVICE_LOST = "Service – lost"
    PRODUCTION_LOST = "Production – lost"
    UNKNOWN = "unknown"


class TargetStage(StrEnum):
    ESTIMATING = "Estimating"
    SERVICE_ESTIMATING = "Service – Estimating"
    INTERNAL_REVIEW = "Internal Review"
    PROPOSAL_SENT = "Proposal Sent"
    SERVICE_WON = "Service – Won"
    CLOSED_WON = "Closed Won"
    SERVICE_LOST = "Service – Lost"
    CLOSED_LOST = "Closed Lost"
    UNKNOWN = "unknown"


_SOURCE_LOOKUP = {_canonical(s.value): s for s in SourceStage if s is not SourceStage.UNKNOWN}
_TARGET_LOOKUP = {_canonical(s.value): s for s in TargetStage if s is not TargetStage.UNKNOWN}


@dataclass(frozen=True, slots=True)
class ParsedStage[TStage: StrEnum]:
    """A parsed label; ``raw`` is kept so unknown labels can pass through."""

    stage: TStage
    raw: str

    @property
    def known(self) -> bool:
        return self.stage.value != "unknown"


def parse_source_stage(label: str) -> ParsedStage[SourceStage]:
    return ParsedStage(_SOURCE_LOOKUP.get(_canonical(label), SourceStage.UNKNOWN), label.strip())


def parse_target_stage(label: str) -> ParsedStage[TargetStage]:
    return ParsedStage(_TARGET_LOOKUP.get(_canonical(label), TargetStage.UNKNOWN), label.strip())


DEFAULT_STAGE_MAP: dict[SourceStage, TargetStage] = {
    SourceStage.ESTIMATE_IN_PROGRESS: TargetStage.ESTIMATING,
    SourceStage.SERVICE_ESTIMATING: TargetStage.SERVICE_ESTIMATING,
    SourceStage.ESTIMATE_UNDER_REVIEW: TargetStage.INTERNAL_REVIEW,
    SourceStage.ESTIMATE_SENT: TargetStage.PROPOSAL_SENT,
    SourceStage.SERVICE_SENT_TO_PRODUCTION: TargetStage.SERVICE_WON,
    SourceStage.SENT_TO_PRODUCTION: TargetStage.CLOSED_WON,
    SourceStage.SERVICE_LOST: TargetStage.SERVICE_LOST,
    SourceStage.PRODUCTION_LOST: TargetStage.CLOSED_LOST,
}

# trigger stage -> stage given to the record created in response
DEFAULT_CREATION_TRIGGERS: dict[SourceStage, TargetStage] = {
    SourceStage.RFP: TargetStage.ESTIMATING,
    SourceStage.SERVICE_RFP: TargetStage.SERVICE_ESTIMATING,
}

DEFAULT_NEW_ENTITY_STAGE = TargetStage.ESTIMATING


@dataclass(frozen=True, slots=True)
class StageTranslator:
    """Translate source stage labels into target stage labels.

    Unmapped or unknown labels pass through unchanged. Entities with no
    observed stage get ``default_stage``.
    """

    stage_map: Mapping[SourceStage, TargetStage] = field(
        default_factory=lambda: dict(DEFAULT_STAGE_MAP)
    )
    creation_triggers: Mapping[SourceStage, TargetStage] = field(
        default_factory=lambda: dict(DEFAULT_CREATION_TRIGGERS)
    )
    default_stage: TargetStage = DEFAULT_NEW_ENTITY_STAGE

    @classmethod
    def from_overrides(
        cls,
        overrides: Mapping[str, str] | None = None,
        *,
        creation_triggers: Mapping[str, str] | None = None,
    ) -> StageTranslator:
        """Build a translator with operator-supplied label tables merged in.

        Raises ``ConfigurationError`` for any label outside the known
        vocabularies, so a typo cannot silently disable a mapping.
        """

        stage_map = dict(DEFAULT_STAGE_MAP)
        stage_map.update(_parse_table(overrides or {}, "stage override"))
        triggers = (
            _parse_table(creation_triggers, "creation trigger")
            if creation_triggers is not None
            else dict(DEFAULT_CREATION_TRIGGERS)
        )
        return cls(stage_map=stage_map, creation_triggers=triggers)

    def translate(self, label: str | None) -> str:
        if label is None or not label.strip():
            return self.default_stage.value
        parsed = parse_source_stage(label)
        target = self.stage_map.get(parsed.stage) if parsed.known else None
        if target is None:
            return parsed.raw
        return target.value

    def is_creation_trigger(self, label: str | None) -> bool:
        return self.trigger_stage(label) is not None

    def trigger_stage(self, label: str | None) -> TargetStage | None:
        """Stage for a record created because ``label`` is a creation trigger."""

        if label is None or not label.strip():
            return None
        return self.creation_triggers.get(parse_source_stage(label).stage)

    def should_trigger(self, previous: str | None, current: str | None) -> bool:
        """True on first observation in, or transition into, a trigger stage."""

        if not self.is_creation_trigger(current):
            return False
        if previous is None or not previous.strip():
            return True
        return parse_source_stage(previous).stage is not parse_source_stage(current or "").stage


def _parse_table(table: Mapping[str, str], what: str) -> dict[SourceStage, TargetStage]:
    parsed: dict[SourceStage, TargetStage] = {}
    for source_label, target_label in table.items():
        source = parse_source_stage(source_label)
        target = parse_target_stage(target_label)
        if not source.known:
            raise ConfigurationError(f"Unknown source stage in {what}: {source_label!r}")
        if not target.known:
            raise ConfigurationError(f"Unknown target stage in {what}: {target_label!r}")
        parsed[source.stage] = target.stage
    return parsed
