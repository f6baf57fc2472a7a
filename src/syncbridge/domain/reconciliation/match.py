"""Source-to-target entity matching.

Strategies run in a fixed order and the first hit wins; nothing stacks:

1. sticky lookup: an existing mapping is reused unconditionally
2. exact key: the shared business identifier is equal on both sides
3. exact name: the normalised display names are equal
4. composite score: the highest-priority firing rule sets the score and the
   candidate is accepted at ``score >= threshold``

Sources and targets are visited in ``external_id`` order. When several
candidates tie (same key, same name or same top score) the first one in that
order wins. This is reproducible rather than optimal: a later source may have
been the better partner for a target claimed earlier in the pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from syncbridge.domain.model import MatchCandidate, MatchType

from .normalize import compact, extract_domain, normalize_name

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping, Sequence

    from syncbridge.domain.model import SnapshotEntity, SourceEntity, SyncMapping, TargetEntity

log = logging.getLogger(__name__)

EXACT_MATCH_SCORE = 100


@dataclass(frozen=True, slots=True)
class MatchFields:
    """Names of the identifying fields consulted by each strategy."""

    key: str = "project_number"
    email: str = "email"
    domain: tuple[str, ...] = ("domain", "website")
    legal_name: str = "legal_name"
    trade_name: str = "trade_name"
    first_name: str = "first_name"
    last_name: str = "last_name"
    free_text: tuple[str, ...] = ("description", "notes")

    def names(self) -> tuple[str, ...]:
        """Every field consulted, for requesting properties from a remote."""

        return (
            self.key,
            self.email,
            *self.domain,
            self.legal_name,
            self.trade_name,
            self.first_name,
            self.last_name,
            *self.free_text,
        )


@dataclass(frozen=True, slots=True)
class ScoringPolicy:
    """Rule weights for the composite score, listed in priority order."""

    email: int = 100
    organization_name: int = 90
    domain: int = 80
    legal_or_trade_name: int = 70
    partial_name: int = 60
    person_name: int = 40
    threshold: int = 60
    min_partial_length: int = 4

    def accepts(self, score: int) -> bool:
        return score >= self.threshold


@dataclass(frozen=True, slots=True)
class ScoreResult:
    score: int
    reason: str | None = None


@dataclass(slots=True)
class ClaimedTargets:
    """Run-scoped set of target ids already taken in this pass.

    One instance per run is threaded through the match loop. Matching is
    sequential; sharing an instance between threads needs external locking or
    two sources could claim the same target.
    """

    _ids: set[str] = field(default_factory=set[str])

    def claim(self, target_id: str) -> None:
        self._ids.add(target_id)

    def __contains__(self, target_id: object) -> bool:
        return target_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._ids))


@dataclass(slots=True, kw_only=True)
class MatchOutcome:
    """Matcher decision for one source entity."""

    source: SourceEntity
    candidate: MatchCandidate | None = None
    target: TargetEntity | None = None
    existing: SyncMapping | None = None
    reason: str = "unmatched"

    @property
    def matched(self) -> bool:
        return self.candidate is not None

    @property
    def sticky(self) -> bool:
        return self.existing is not None


def _name_key(entity: SnapshotEntity) -> str:
    return entity.normalized_name_key or normalize_name(entity.display_name)


def _domain_of(entity: SnapshotEntity, fields: MatchFields) -> str:
    for name in fields.domain:
        domain = extract_domain(entity.field_value(name))
        if domain:
            return domain
    return extract_domain(entity.field_value(fields.email))


def score_candidate(
    source: SnapshotEntity,
    target: SnapshotEntity,
    *,
    fields: MatchFields,
    policy: ScoringPolicy,
) -> ScoreResult:
    """Score ``target`` against ``source``; the first firing rule sets the score."""

    source_email = compact(source.field_value(fields.email))
    if source_email and source_email == compact(target.field_value(fields.email)):
        return ScoreResult(policy.email, "exact_email")

    source_name = compact(source.display_name)
    target_name = compact(target.display_name)
    if source_name and source_name == target_name:
        return ScoreResult(policy.organization_name, "exact_organization_name")

    source_domain = _domain_of(source, fields)
    if source_domain and source_domain == _domain_of(target, fields):
        return ScoreResult(policy.domain, "domain_match")

    if source_name:
        for name_field in (fields.legal_name, fields.trade_name):
            if source_name == compact(target.field_value(name_field)):
                return ScoreResult(policy.legal_or_trade_name, f"{name_field}_match")

    if (
        len(source_name) >= policy.min_partial_length
        and len(target_name) >= policy.min_partial_length
        and (source_name in target_name or target_name in source_name)
    ):
        return ScoreResult(policy.partial_name, "partial_name")

    person = compact(
        f"{source.field_value(fields.first_name) or ''}{source.field_value(fields.last_name) or ''}"
    )
    if person and source.field_value(fields.first_name) and source.field_value(fields.last_name):
        haystacks = [target_name, *(compact(target.field_value(f)) for f in fields.free_text)]
        if any(person in haystack for haystack in haystacks if haystack):
            return ScoreResult(policy.person_name, "person_name_in_target")

    return ScoreResult(0)


@dataclass(frozen=True, slots=True)
class Matcher:
    """Pick at most one target per source, honouring the claimed-target set."""

    fields: MatchFields = field(default_factory=MatchFields)
    policy: ScoringPolicy = field(default_factory=ScoringPolicy)

    def match(
        self,
        source: SourceEntity,
        pool: Sequence[TargetEntity],
        *,
        existing: SyncMapping | None,
        claimed: ClaimedTargets,
        targets_by_id: Mapping[str, TargetEntity] | None = None,
    ) -> MatchOutcome:
        """Match one source and claim the selected target.

        ``pool`` must already be in enumeration order and exclude targets
        mapped to other sources.
        """

        if existing is not None:
            claimed.claim(existing.target_id)
            target = (targets_by_id or {}).get(existing.target_id)
            return MatchOutcome(
                source=source,
                candidate=MatchCandidate(
                    existing.target_id, existing.match_type, EXACT_MATCH_SCORE
                ),
                target=target,
                existing=existing,
                reason="sticky",
            )

        available = [target for target in pool if target.external_id not in claimed]
        outcome = (
            self._match_exact_key(source, available)
            or self._match_exact_name(source, available)
            or self._match_scored(source, available)
        )
        if outcome is None:
            return MatchOutcome(source=source)
        if outcome.candidate is not None:
            claimed.claim(outcome.candidate.target_id)
        return outcome

    def match_all(
        self,
        sources: Iterable[SourceEntity],
        targets: Iterable[TargetEntity],
        mappings: Iterable[SyncMapping],
        *,
        claimed: ClaimedTargets | None = None,
    ) -> list[MatchOutcome]:
        """Match every source sequentially in ``external_id`` order."""

        run_claims = claimed if claimed is not None else ClaimedTargets()
        ordered_targets = sorted(targets, key=lambda entity: entity.external_id)
        targets_by_id = {target.external_id: target for target in ordered_targets}
        mapping_by_source = {mapping.source_id: mapping for mapping in mappings}
        reserved = {mapping.target_id for mapping in mapping_by_source.values()}
        pool = [target for target in ordered_targets if target.external_id not in reserved]

        outcomes: list[MatchOutcome] = []
        for source in sorted(sources, key=lambda entity: entity.external_id):
            outcome = self.match(
                source,
                pool,
                existing=mapping_by_source.get(source.external_id),
                claimed=run_claims,
                targets_by_id=targets_by_id,
            )
            log.debug(
                "Matched source=%s target=%s reason=%s",
                source.external_id,
                outcome.candidate.target_id if outcome.candidate else None,
                outcome.reason,
            )
            outcomes.append(outcome)
        return outcomes

    def _match_exact_key(
        self, source: SourceEntity, available: Sequence[TargetEntity]
    ) -> MatchOutcome | None:
        key = source.field_value(self.fields.key)
        if key is None:
            return None
        key = key.strip()
        for target in available:
            target_key = target.field_value(self.fields.key)
            if target_key is not None and target_key.strip() == key:
                return self._outcome(
                    source, target, MatchType.EXACT_KEY, EXACT_MATCH_SCORE, "exact_key"
                )
        return None

    def _match_exact_name(
        self, source: SourceEntity, available: Sequence[TargetEntity]
    ) -> MatchOutcome | None:
        name_key = _name_key(source)
        if not name_key:
            return None
        for target in available:
            if _name_key(target) == name_key:
                return self._outcome(
                    source, target, MatchType.EXACT_NAME, EXACT_MATCH_SCORE, "exact_name"
                )
        return None

    def _match_scored(
        self, source: SourceEntity, available: Sequence[TargetEntity]
    ) -> MatchOutcome | None:
        best: tuple[TargetEntity, ScoreResult] | None = None
        for target in available:
            result = score_candidate(source, target, fields=self.fields, policy=self.policy)
            if not self.policy.accepts(result.score):
                continue
            # strict comparison: the first candidate keeps a tied top score
            if best is None or result.score > best[1].score:
                best = (target, result)
        if best is None:
            return None
        target, result = best
        reason = result.reason or "fuzzy"
        return self._outcome(source, target, MatchType.FUZZY, result.score, reason)

    @staticmethod
    def _outcome(
        source: SourceEntity,
        target: TargetEntity,
        match_type: MatchType,
        score: int,
        reason: str,
    ) -> MatchOutcome:
        return MatchOutcome(
            source=source,
            candidate=MatchCandidate(target.external_id, match_type, score),
            target=target,
            reason=reason,
        )
