"""Rule sets: scoring weights and roster limits for a pool.

A rule set record may describe its scoring either as a structured ``rules``
document (``scoring_rules`` + ``player_limits``) or through the older flat
``points_per_*`` / ``max_players_per_user`` / ``position_limits`` fields.
``RuleSet.from_record`` resolves both shapes into the same canonical form, so
scoring code never needs to know where a rule came from.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import InvalidRuleSet
from .models import PlayerLimits, PositionLimit, ScoringRule, StatType

MAX_PER_PARTICIPANT_RANGE = (1, 50)
DEFAULT_MAX_PER_PARTICIPANT = 20

# (legacy field, stat type, label) in the order legacy rules are emitted
LEGACY_FIELDS = (
    ('points_per_goal', StatType.GOAL, 'But'),
    ('points_per_assist', StatType.ASSIST, 'Passe'),
    ('points_per_shutout', StatType.SHUTOUT, 'Blanchissage'),
    ('points_per_victory', StatType.VICTORY, 'Victoire'),
)


@dataclass(frozen=True)
class RuleSet:
    id: Optional[int]
    name: str
    scoring_rules: Tuple[ScoringRule, ...] = ()
    player_limits: PlayerLimits = field(default_factory=PlayerLimits)
    uses_dynamic_rules: bool = False

    def weight(self, stat_type: StatType) -> int:
        return sum(r.points for r in self.scoring_rules if r.stat_type == stat_type)

    def position_limit(self, position: str) -> Optional[int]:
        """Return the configured maximum for ``position``, or None when there is no ceiling."""
        lim = self.player_limits.by_position.get((position or '').upper())
        if lim is None or lim.max <= 0:
            return None
        return lim.max

    def validate_for_pool(self) -> None:
        if not self.scoring_rules:
            raise InvalidRuleSet(f"Rule set {self.name!r} has no scoring rule")

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> 'RuleSet':
        rules_doc = record.get('rules') or {}
        if not isinstance(rules_doc, Mapping):
            raise InvalidRuleSet("'rules' must be a mapping")

        if 'scoring_rules' in rules_doc:
            scoring = tuple(_parse_rule(r) for r in rules_doc['scoring_rules'] or [])
        else:
            scoring = _legacy_rules(record)

        if 'player_limits' in rules_doc:
            limits = _parse_limits(rules_doc['player_limits'] or {})
        else:
            limits = _parse_limits({
                'max_per_user': record.get('max_players_per_user'),
                'by_position': record.get('position_limits'),
            })

        return cls(
            id=record.get('id'),
            name=record.get('name') or '',
            scoring_rules=scoring,
            player_limits=limits,
            uses_dynamic_rules=bool(rules_doc),
        )


def _int(value: Any, what: str, default: int = 0) -> int:
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        raise InvalidRuleSet(f"{what} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidRuleSet(f"{what} must be an integer, got {value!r}") from None


def _parse_rule(raw: Mapping[str, Any]) -> ScoringRule:
    try:
        stat_type = StatType(raw.get('type'))
    except ValueError:
        raise InvalidRuleSet(f"Unknown scoring rule type {raw.get('type')!r}") from None
    points = _int(raw.get('points'), f"points for {stat_type.value}")
    if points < 0:
        raise InvalidRuleSet(f"points for {stat_type.value} must be >= 0")
    return ScoringRule(stat_type=stat_type, label=raw.get('label') or stat_type.value, points=points)


def _legacy_rules(record: Mapping[str, Any]) -> Tuple[ScoringRule, ...]:
    out = []
    for key, stat_type, label in LEGACY_FIELDS:
        points = _int(record.get(key), key)
        if points:
            out.append(ScoringRule(stat_type=stat_type, label=label, points=points))
    return tuple(out)


def _parse_limits(raw: Mapping[str, Any]) -> PlayerLimits:
    max_per = _int(raw.get('max_per_user'), 'max_per_user', DEFAULT_MAX_PER_PARTICIPANT)
    lo, hi = MAX_PER_PARTICIPANT_RANGE
    if not lo <= max_per <= hi:
        raise InvalidRuleSet(f"max_per_user must be between {lo} and {hi}, got {max_per}")
    by_position: Dict[str, PositionLimit] = {}
    for pos, lim in (raw.get('by_position') or {}).items():
        lim = lim or {}
        mn = _int(lim.get('min'), f'{pos}.min')
        mx = _int(lim.get('max'), f'{pos}.max')
        if mn < 0 or mx < 0:
            raise InvalidRuleSet(f"position limits for {pos} must be >= 0")
        by_position[str(pos).upper()] = PositionLimit(min=mn, max=mx)
    return PlayerLimits(max_per_participant=max_per, by_position=by_position)
