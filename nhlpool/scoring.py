from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional

from .errors import DuplicatePick, PositionLimitExceeded
from .models import DraftPick, GoalieStats, SkaterStats, StatType
from .rules import RuleSet


class PositionClass(str, Enum):
    SKATER = 'skater'
    GOALIE = 'goalie'


POSITION_CLASSES: Dict[str, PositionClass] = {
    'C': PositionClass.SKATER,
    'L': PositionClass.SKATER,
    'R': PositionClass.SKATER,
    'LW': PositionClass.SKATER,
    'RW': PositionClass.SKATER,
    'F': PositionClass.SKATER,
    'D': PositionClass.SKATER,
    'G': PositionClass.GOALIE,
}


def position_class(position: str) -> PositionClass:
    return POSITION_CLASSES.get((position or '').upper(), PositionClass.SKATER)


@dataclass(frozen=True)
class PickScore:
    points: int
    goals: int = 0
    assists: int = 0
    wins: int = 0
    shutouts: int = 0


def _score_skater(rules: RuleSet, skater: SkaterStats, goalie: Optional[GoalieStats]) -> PickScore:
    points = skater.goals * rules.weight(StatType.GOAL) + skater.assists * rules.weight(StatType.ASSIST)
    return PickScore(points=points, goals=skater.goals, assists=skater.assists)


def _score_goalie(rules: RuleSet, skater: SkaterStats, goalie: Optional[GoalieStats]) -> PickScore:
    # goals/assists never count for a goaltender, whatever upstream reports
    g = goalie or GoalieStats()
    points = g.wins * rules.weight(StatType.VICTORY) + g.shutouts * rules.weight(StatType.SHUTOUT)
    return PickScore(points=points, wins=g.wins, shutouts=g.shutouts)


FORMULAS: Dict[PositionClass, Callable[[RuleSet, SkaterStats, Optional[GoalieStats]], PickScore]] = {
    PositionClass.SKATER: _score_skater,
    PositionClass.GOALIE: _score_goalie,
}


@dataclass(frozen=True)
class Admission:
    allowed: bool
    reason: Optional[str] = None
    detail: Dict[str, Any] = field(default_factory=dict)

    DUPLICATE = 'already_drafted'
    POSITION_LIMIT = 'position_limit'

    def raise_for_denial(self) -> None:
        if self.allowed:
            return
        if self.reason == self.DUPLICATE:
            raise DuplicatePick(self.detail['external_player_id'], self.detail.get('drafted_by'))
        raise PositionLimitExceeded(self.detail['limit'], self.detail['position'])


ALLOW = Admission(allowed=True)


class ScoringEngine:
    def __init__(self, rules: RuleSet):
        self.rules = rules

    def score(self, position: str, skater: SkaterStats, goalie: Optional[GoalieStats] = None) -> PickScore:
        return FORMULAS[position_class(position)](self.rules, skater, goalie)

    def can_add_pick(
        self,
        picks: Iterable[DraftPick],
        participant_id: int,
        position: str,
        external_player_id: int,
        names: Optional[Dict[int, str]] = None,
    ) -> Admission:
        """Check whether a participant may draft a player.

        ``names`` maps participant ids to display names so a duplicate denial
        can say who already holds the player.
        """
        picks = list(picks)
        for p in picks:
            if p.external_player_id == external_player_id:
                drafted_by = (names or {}).get(p.participant_id)
                return Admission(False, Admission.DUPLICATE, {
                    'external_player_id': external_player_id,
                    'drafted_by': drafted_by,
                })

        position = (position or '').upper()
        limit = self.rules.position_limit(position)
        if limit is not None:
            current = sum(1 for p in picks
                          if p.participant_id == participant_id and (p.position or '').upper() == position)
            if current >= limit:
                return Admission(False, Admission.POSITION_LIMIT, {
                    'limit': limit,
                    'position': position,
                    'current': current,
                })
        return ALLOW

    def position_counts(self, picks: Iterable[DraftPick], participant_id: int) -> Dict[str, int]:
        counts = {pos: 0 for pos in self.rules.player_limits.by_position}
        for p in picks:
            pos = (p.position or '').upper()
            if p.participant_id == participant_id and pos in counts:
                counts[pos] += 1
        return counts


def next_draft_order(picks: Iterable[DraftPick]) -> int:
    return max((p.draft_order for p in picks), default=0) + 1
