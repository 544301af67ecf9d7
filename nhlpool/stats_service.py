import logging
from datetime import date, timedelta
from typing import List, Optional, Tuple

from .cache import CacheKey, CacheKind, StatsCache
from .models import GoalieStats, PlayerSummary, SkaterStats
from .name_matcher import find_best_player
from .nhl_api import NHLClient

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2


class StatsService:
    """Cached access to NHL statistics.

    Never raises for upstream trouble: a failed fetch yields an empty or
    zero-valued result and is retried on the next call.
    """

    def __init__(self, client: NHLClient, cache: StatsCache):
        self.client = client
        self.cache = cache

    def get_player_stats_in_range(self, player_id: int, start: date, end: date) -> SkaterStats:
        key = CacheKey(CacheKind.PLAYER_WINDOW, int(player_id), start.isoformat(), end.isoformat())
        return self.cache.get(key, lambda: self.client.get_skater_window(player_id, start, end), SkaterStats)

    def get_goalie_stats_in_range(self, player_id: int, start: date, end: date) -> GoalieStats:
        key = CacheKey(CacheKind.GOALIE_WINDOW, int(player_id), start.isoformat(), end.isoformat())
        return self.cache.get(key, lambda: self.client.get_goalie_window(player_id, start, end), GoalieStats)

    def get_team_games_in_range(self, team_abbrev: str, start: date, end: date) -> int:
        if not team_abbrev:
            return 0
        key = CacheKey(CacheKind.TEAM_SCHEDULE, team_abbrev, start.isoformat(), end.isoformat())
        return self.cache.get(key, lambda: self.client.get_team_games_in_range(team_abbrev, start, end), int)

    def get_top_scorers(self, limit: int = 5, today: Optional[date] = None) -> List[PlayerSummary]:
        today = today or date.today()
        monday = today - timedelta(days=today.weekday())
        sunday = monday + timedelta(days=6)
        key = CacheKey(CacheKind.TOP_SCORERS, limit, monday.isoformat(), sunday.isoformat())
        return self.cache.get(key, lambda: self.client.get_top_scorers(monday, sunday, limit), list)

    def get_all_players(self, limit: int = 1000, start: int = 0) -> Tuple[List[PlayerSummary], int]:
        key = CacheKey(CacheKind.ROSTER, (start, limit))
        return self.cache.get(key, lambda: self.client.get_players(limit, start), lambda: ([], 0))

    def search_players(self, query: str, limit: int = 50) -> Tuple[List[PlayerSummary], int]:
        query = (query or '').strip()
        if len(query) < MIN_QUERY_LENGTH:
            return [], 0
        key = CacheKey(CacheKind.SEARCH, (query.lower(), limit))
        return self.cache.get(key, lambda: self.client.search_players(query, limit), lambda: ([], 0))

    def find_player(self, name: str, threshold: float = 0.8) -> Optional[PlayerSummary]:
        players, _ = self.get_all_players()
        match = find_best_player(name, players, threshold=threshold)
        if match is None:
            logger.info("no roster match for %r", name)
        return match
