from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from .rules import RuleSet


class StatType(str, Enum):
    GOAL = 'goal'
    ASSIST = 'assist'
    SHUTOUT = 'shutout'
    VICTORY = 'victory'
    DEFEAT = 'defeat'
    OVERTIME = 'overtime'
    CUSTOM = 'custom'


class PoolStatus(str, Enum):
    SELECTION = 'selection'
    ACTIVE = 'active'
    FINISHED = 'finished'


@dataclass(frozen=True)
class ScoringRule:
    stat_type: StatType
    label: str
    points: int


@dataclass(frozen=True)
class PositionLimit:
    min: int = 0
    max: int = 0


@dataclass(frozen=True)
class PlayerLimits:
    max_per_participant: int = 20
    by_position: Dict[str, PositionLimit] = field(default_factory=dict)


@dataclass
class Participant:
    user_id: int
    name: str
    selection_completed_at: Optional[datetime] = None


@dataclass
class DraftPick:
    id: int
    pool_id: int
    participant_id: int
    external_player_id: int
    player_name: str
    position: str
    team_code: str
    draft_order: int
    team_name: str = ''
    headshot_url: Optional[str] = None


@dataclass
class Pool:
    id: int
    name: str
    start_date: date
    end_date: date
    rule_set: 'RuleSet'  # shared between pools, never mutated
    owner_id: int
    status: PoolStatus = PoolStatus.SELECTION
    participants: List[Participant] = field(default_factory=list)
    picks: List[DraftPick] = field(default_factory=list)

    def participant(self, user_id: int) -> Optional[Participant]:
        for p in self.participants:
            if p.user_id == user_id:
                return p
        return None


@dataclass(frozen=True)
class SkaterStats:
    goals: int = 0
    assists: int = 0
    points: int = 0
    games_played: int = 0
    plus_minus: int = 0


@dataclass(frozen=True)
class GoalieStats:
    wins: int = 0
    shutouts: int = 0
    games_played: int = 0


@dataclass(frozen=True)
class PlayerSummary:
    id: int
    first_name: str
    last_name: str
    full_name: str
    position: str
    team_abbrev: str
    team_name: str
    points: int = 0
    goals: int = 0
    assists: int = 0
    games_played: int = 0
    plus_minus: int = 0
    penalty_minutes: int = 0
    shots: int = 0
    shooting_pct: float = 0.0
    headshot_url: str = ''


@dataclass(frozen=True)
class PlayerSelected:
    pool_id: int
    external_player_id: int
    player_name: str
    selected_by_name: str


@dataclass(frozen=True)
class PlayerRemoved:
    pool_id: int
    external_player_id: int


@dataclass(frozen=True)
class StatsUpdated:
    pool_id: int
