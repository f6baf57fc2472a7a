"""Field-level conflict resolution for a matched source/target pair."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from syncbridge.domain.model import ConflictResolution, FieldConflict

from .normalize import is_blank, join_values

if TYPE_CHECKING:
    from collections.abc import Sequence

    from syncbridge.domain.model import SourceEntity, TargetEntity


@dataclass(frozen=True, slots=True)
class FieldRule:
    """Static propagation policy for one target field.

    The source value is the ``", "``-join of the non-blank ``source_fields``
    (``("city", "state")`` yields ``"Austin, TX"``). ``numeric`` compares
    values as decimals so ``"1200"`` and ``"1200.00"`` are equal, and treats
    zero or unparseable amounts as absent.
    """

    target_field: str
    source_fields: tuple[str, ...]
    policy: ConflictResolution
    numeric: bool = False

    def source_value(self, source: SourceEntity) -> str | None:
        value = join_values([source.identifying_fields.get(name) for name in self.source_fields])
        if value is not None and self.numeric:
            amount = _as_decimal(value)
            if amount is None or amount <= 0:
                return None
        return value

    def same(self, source_value: str, target_value: str) -> bool:
        if self.numeric:
            left, right = _as_decimal(source_value), _as_decimal(target_value)
            if left is not None and right is not None:
                return left == right
        return source_value.strip() == target_value.strip()


def _as_decimal(value: str) -> Decimal | None:
    try:
        number = Decimal(value.strip().replace(",", ""))
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


DEFAULT_FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule("project_number", ("project_number",), ConflictResolution.SOURCE_WINS),
    FieldRule("project_location", ("city", "state"), ConflictResolution.KEPT_BOTH),
    FieldRule("amount", ("amount",), ConflictResolution.KEPT_BOTH, numeric=True),
)


@dataclass(slots=True)
class Resolution:
    """Staged writes and recorded conflicts for one pair."""

    writes: dict[str, str] = field(default_factory=dict[str, str])
    conflicts: list[FieldConflict] = field(default_factory=list[FieldConflict])

    @property
    def has_writes(self) -> bool:
        return bool(self.writes)


def resolve_fields(
    source: SourceEntity,
    target: TargetEntity,
    rules: Sequence[FieldRule] = DEFAULT_FIELD_RULES,
) -> Resolution:
    """Decide which whitelisted fields to write onto ``target``.

    Blank source values are never propagated. An empty target field takes the
    source value. Differing non-empty values become a ``FieldConflict`` with
    the rule's policy; only ``source_wins`` also stages the write.
    """

    resolution = Resolution()
    for rule in rules:
        source_value = rule.source_value(source)
        if source_value is None:
            continue
        target_value = target.identifying_fields.get(rule.target_field)
        if target_value is None or is_blank(target_value):
            resolution.writes[rule.target_field] = source_value
            continue
        if rule.same(source_value, target_value):
            continue
        resolution.conflicts.append(
            FieldConflict(
                field=rule.target_field,
                source_value=source_value,
                target_value=target_value,
                resolution=rule.policy,
            )
        )
        if rule.policy is ConflictResolution.SOURCE_WINS:
            resolution.writes[rule.target_field] = source_value
    return resolution


def propagated_values(source: SourceEntity, rules: Sequence[FieldRule]) -> dict[str, str]:
    """Return every non-blank whitelisted value, as used for new target records."""

    values: dict[str, str] = {}
    for rule in rules:
        value = rule.source_value(source)
        if value is not None:
            values[rule.target_field] = value
    return values
