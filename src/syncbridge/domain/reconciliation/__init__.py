"""Matching and field reconciliation between the two snapshot stores."""

from __future__ import annotations

from .match import (
    ClaimedTargets,
    Matcher,
    MatchFields,
    MatchOutcome,
    ScoreResult,
    ScoringPolicy,
    score_candidate,
)
from .normalize import compact, extract_domain, is_blank, join_values, normalize_name
from .resolve import (
    DEFAULT_FIELD_RULES,
    FieldRule,
    Resolution,
    propagated_values,
    resolve_fields,
)

__all__ = [
    "DEFAULT_FIELD_RULES",
    "ClaimedTargets",
    "FieldRule",
    "MatchFields",
    "MatchOutcome",
    "Matcher",
    "Resolution",
    "ScoreResult",
    "ScoringPolicy",
    "compact",
    "extract_domain",
    "is_blank",
    "join_values",
    "normalize_name",
    "propagated_values",
    "resolve_fields",
    "score_candidate",
]
