"""Pool standings and draft operations.

``PoolAggregator`` is the composition point: it reads pools from the store,
fetches each pick's scoring-window stats through the cached stats service,
scores them with the pool's rule set and enforces the draft rules.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from . import lifecycle
from .errors import InvalidPool, NotPickOwner, NotPoolMember, PhaseViolation
from .models import (
    DraftPick, GoalieStats, Participant, PlayerRemoved, PlayerSelected, Pool,
    PoolStatus, PositionLimit, SkaterStats, StatsUpdated,
)
from .rules import RuleSet
from .scoring import Admission, PickScore, PositionClass, ScoringEngine, position_class
from .stats_service import StatsService
from .store import PoolStore

logger = logging.getLogger(__name__)


@dataclass
class PickStanding:
    pick: DraftPick
    points: int
    stats: Dict[str, int]
    games_in_pool: int
    can_delete: bool
    selected_by: str


@dataclass
class ParticipantStanding:
    user_id: int
    name: str
    total_points: int = 0
    total_goals: int = 0
    total_assists: int = 0
    total_plus_minus: int = 0
    active_players: int = 0
    injured_players: int = 0  # injury tracking is not implemented upstream
    is_owner: bool = False


@dataclass
class Standings:
    pool_id: int
    pool_phase: PoolStatus
    viewer_phase: PoolStatus
    window: Tuple[date, date]
    ranked_picks: List[PickStanding]
    ranked_participants: List[ParticipantStanding]
    viewer_pick_count: int = 0
    max_per_participant: int = 20
    position_limits: Dict[str, PositionLimit] = field(default_factory=dict)
    position_counts: Dict[str, int] = field(default_factory=dict)


@dataclass
class _PickStats:
    skater: SkaterStats
    goalie: Optional[GoalieStats]
    games_in_pool: int


class PoolAggregator:
    def __init__(
        self,
        store: PoolStore,
        stats: StatsService,
        publish: Optional[Callable[[Any], None]] = None,
        max_workers: int = 8,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.stats = stats
        self.publish = publish
        self.max_workers = max(1, max_workers)
        self.today = today
        self.now = now

    # -- pools ---------------------------------------------------------

    def create_pool(self, name: str, start_date: date, end_date: date, rule_set: RuleSet,
                    owner_id: int, participants: Iterable[Participant]) -> Pool:
        if not name:
            raise InvalidPool("Pool name is required")
        if end_date <= start_date:
            raise InvalidPool("End date must be after start date")
        rule_set.validate_for_pool()
        members = list(participants)
        if not members:
            raise InvalidPool("At least one participant is required")
        pool = Pool(
            id=self.store.next_pool_id(),
            name=name,
            start_date=start_date,
            end_date=end_date,
            rule_set=rule_set,
            owner_id=owner_id,
            participants=members,
        )
        lifecycle.recompute(pool, self.today())
        logger.info("created pool %s (%s) status=%s", pool.id, name, pool.status.value)
        return self.store.save_pool(pool)

    def complete_selection(self, pool_id: int, user_id: int) -> Participant:
        with self.store.pool_lock(pool_id) as pool:
            member = pool.participant(user_id)
            if member is None:
                raise NotPoolMember(f"User {user_id} is not part of pool {pool_id}")
            if member.selection_completed_at is None:
                member.selection_completed_at = self.now()
            return member

    # -- standings -----------------------------------------------------

    def get_standings(self, pool_id: int, viewer_id: int) -> Standings:
        today = self.today()
        with self.store.pool_lock(pool_id) as pool:
            lifecycle.recompute(pool, today)
            picks = sorted(pool.picks, key=lambda p: p.draft_order)
        viewer = pool.participant(viewer_id)
        viewer_phase = lifecycle.participant_phase(pool, viewer, today)
        start, end = lifecycle.scoring_window(pool)
        engine = ScoringEngine(pool.rule_set)
        names = {p.user_id: p.name for p in pool.participants}

        fetched = self._fetch_all(picks, start, end)

        pick_rows = []
        totals = {p.user_id: ParticipantStanding(p.user_id, p.name, is_owner=p.user_id == pool.owner_id)
                  for p in pool.participants}
        for pick, ps in zip(picks, fetched):
            score = engine.score(pick.position, ps.skater, ps.goalie)
            pick_rows.append(PickStanding(
                pick=pick,
                points=score.points,
                stats=_stats_dict(ps, score),
                games_in_pool=ps.games_in_pool,
                can_delete=lifecycle.can_delete_pick(pick, viewer_id, viewer_phase),
                selected_by=names.get(pick.participant_id, ''),
            ))
            t = totals.get(pick.participant_id)
            if t is None:
                continue
            t.total_points += score.points
            t.active_players += 1
            if position_class(pick.position) == PositionClass.SKATER:
                t.total_goals += ps.skater.goals
                t.total_assists += ps.skater.assists
                t.total_plus_minus += ps.skater.plus_minus

        # sorted() is stable: ties keep draft / membership order
        ranked_picks = sorted(pick_rows, key=lambda r: -r.points)
        ranked_participants = sorted(totals.values(), key=lambda t: -t.total_points)

        limits = pool.rule_set.player_limits
        return Standings(
            pool_id=pool.id,
            pool_phase=pool.status,
            viewer_phase=viewer_phase,
            window=(start, end),
            ranked_picks=ranked_picks,
            ranked_participants=ranked_participants,
            viewer_pick_count=sum(1 for p in picks if p.participant_id == viewer_id),
            max_per_participant=limits.max_per_participant,
            position_limits=dict(limits.by_position),
            position_counts=engine.position_counts(picks, viewer_id),
        )

    def _fetch_pick(self, pick: DraftPick, start: date, end: date) -> _PickStats:
        if position_class(pick.position) == PositionClass.GOALIE:
            skater = SkaterStats()
            goalie = self.stats.get_goalie_stats_in_range(pick.external_player_id, start, end)
        else:
            skater = self.stats.get_player_stats_in_range(pick.external_player_id, start, end)
            goalie = None
        games = self.stats.get_team_games_in_range(pick.team_code, start, end)
        return _PickStats(skater, goalie, games)

    def _fetch_all(self, picks: List[DraftPick], start: date, end: date) -> List[_PickStats]:
        if not picks:
            return []
        workers = min(self.max_workers, len(picks))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='pool-stats') as ex:
            return list(ex.map(lambda p: self._fetch_pick(p, start, end), picks))

    # -- draft ---------------------------------------------------------

    def can_add_pick(self, pool_id: int, participant_id: int, position: str, external_player_id: int) -> Admission:
        pool = self.store.get_pool(pool_id)
        names = {p.user_id: p.name for p in pool.participants}
        return ScoringEngine(pool.rule_set).can_add_pick(
            pool.picks, participant_id, position, external_player_id, names=names)

    def add_pick(self, pool_id: int, participant_id: int, external_player_id: int, player_name: str,
                 position: str, team_code: str, team_name: str = '', headshot_url: Optional[str] = None) -> DraftPick:
        position = (position or '').upper()
        with self.store.pool_lock(pool_id) as pool:
            member = pool.participant(participant_id)
            if member is None:
                raise NotPoolMember(f"User {participant_id} is not part of pool {pool_id}")
            self.can_add_pick(pool_id, participant_id, position, external_player_id).raise_for_denial()
            names = {p.user_id: p.name for p in pool.participants}
            pick = self.store.insert_pick(
                pool_id,
                lambda pick_id, order: DraftPick(
                    id=pick_id,
                    pool_id=pool_id,
                    participant_id=participant_id,
                    external_player_id=external_player_id,
                    player_name=player_name,
                    position=position,
                    team_code=team_code,
                    draft_order=order,
                    team_name=team_name,
                    headshot_url=headshot_url,
                ),
                drafted_by=lambda existing: names.get(existing.participant_id),
            )
        logger.info("pool %s: %s drafted %s (#%s)", pool_id, member.name, player_name, pick.draft_order)
        self._emit(PlayerSelected(pool_id, external_player_id, player_name, member.name))
        return pick

    def remove_pick(self, pick_id: int, requester_id: int) -> DraftPick:
        pick = self.store.find_pick(pick_id)
        with self.store.pool_lock(pick.pool_id) as pool:
            if pick.participant_id != requester_id:
                raise NotPickOwner("You cannot remove a player you did not draft")
            phase = lifecycle.participant_phase(pool, pool.participant(requester_id), self.today())
            if not lifecycle.can_delete_pick(pick, requester_id, phase):
                raise PhaseViolation("Picks can only be removed during selection")
            removed = self.store.delete_pick(pool.id, pick_id)
        self._emit(PlayerRemoved(removed.pool_id, removed.external_player_id))
        return removed

    def search_players(self, pool_id: int, query: str, limit: int = 50) -> List[Dict[str, Any]]:
        """Search upstream and mark which players are still available in the pool."""
        pool = self.store.get_pool(pool_id)
        players, _ = self.stats.search_players(query, limit)
        start, end = lifecycle.scoring_window(pool)
        names = {p.user_id: p.name for p in pool.participants}
        taken = {p.external_player_id: names.get(p.participant_id) for p in pool.picks}
        out = []
        for pl in players:
            row = asdict(pl)
            row['games_in_pool'] = self.stats.get_team_games_in_range(pl.team_abbrev, start, end)
            row['is_available'] = pl.id not in taken
            row['selected_by'] = taken.get(pl.id)
            out.append(row)
        return out

    # -- batch ---------------------------------------------------------

    def sync_stats(self, pool_ids: Optional[Iterable[int]] = None) -> Dict[int, int]:
        """Refresh pick stats for the given pools, or every pool still in selection/active."""
        today = self.today()
        if pool_ids is not None:
            pools = [self.store.get_pool(pid) for pid in pool_ids]
        else:
            pools = []
            for pool in self.store.list_pools():
                lifecycle.recompute(pool, today)
                if pool.status in (PoolStatus.SELECTION, PoolStatus.ACTIVE):
                    pools.append(pool)

        synced: Dict[int, int] = {}
        for pool in pools:
            logger.info("syncing pool %s (%s)", pool.id, pool.name)
            start, end = lifecycle.scoring_window(pool)
            with self.store.pool_lock(pool.id):
                picks = list(pool.picks)
            for pick, ps in zip(picks, self._fetch_all(picks, start, end)):
                if ps.goalie is not None:
                    logger.info("  %s: %sW %sSO", pick.player_name, ps.goalie.wins, ps.goalie.shutouts)
                else:
                    logger.info("  %s: %sG %sA = %sPTS", pick.player_name,
                                ps.skater.goals, ps.skater.assists, ps.skater.points)
            synced[pool.id] = len(picks)
            self._emit(StatsUpdated(pool.id))
        return synced

    def _emit(self, event: Any) -> None:
        if self.publish is None:
            return
        try:
            self.publish(event)
        except Exception:
            # the pick is already committed at this point
            logger.exception("failed to publish %s", type(event).__name__)


def _stats_dict(ps: _PickStats, score: PickScore) -> Dict[str, int]:
    stats = {
        'goals': ps.skater.goals,
        'assists': ps.skater.assists,
        'points': score.points,
        'games_played': ps.skater.games_played,
        'plus_minus': ps.skater.plus_minus,
    }
    if ps.goalie is not None:
        stats.update(goals=0, assists=0, wins=ps.goalie.wins, shutouts=ps.goalie.shutouts,
                     games_played=ps.goalie.games_played)
    return stats
