import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import requests

from .config import CURRENT_SEASON, SCHEDULE_BASE, STATS_BASE
from .errors import UpstreamUnavailable
from .models import GoalieStats, PlayerSummary, SkaterStats

logger = logging.getLogger(__name__)

TEAM_NAMES = {
    'ANA': 'Anaheim Ducks', 'BOS': 'Boston Bruins', 'BUF': 'Buffalo Sabres',
    'CAR': 'Carolina Hurricanes', 'CBJ': 'Columbus Blue Jackets', 'CGY': 'Calgary Flames',
    'CHI': 'Chicago Blackhawks', 'COL': 'Colorado Avalanche', 'DAL': 'Dallas Stars',
    'DET': 'Detroit Red Wings', 'EDM': 'Edmonton Oilers', 'FLA': 'Florida Panthers',
    'LAK': 'Los Angeles Kings', 'MIN': 'Minnesota Wild', 'MTL': 'Montreal Canadiens',
    'NJD': 'New Jersey Devils', 'NSH': 'Nashville Predators', 'NYI': 'New York Islanders',
    'NYR': 'New York Rangers', 'OTT': 'Ottawa Senators', 'PHI': 'Philadelphia Flyers',
    'PIT': 'Pittsburgh Penguins', 'SEA': 'Seattle Kraken', 'SJS': 'San Jose Sharks',
    'STL': 'St. Louis Blues', 'TBL': 'Tampa Bay Lightning', 'TOR': 'Toronto Maple Leafs',
    'UTA': 'Utah Hockey Club', 'VAN': 'Vancouver Canucks', 'VGK': 'Vegas Golden Knights',
    'WPG': 'Winnipeg Jets', 'WSH': 'Washington Capitals',
}

TEAM_IDS = {
    'ANA': 24, 'BOS': 6, 'BUF': 7, 'CAR': 12, 'CBJ': 29, 'CGY': 20, 'CHI': 16, 'COL': 21,
    'DAL': 25, 'DET': 17, 'EDM': 22, 'FLA': 13, 'LAK': 26, 'MIN': 30, 'MTL': 8, 'NJD': 1,
    'NSH': 18, 'NYI': 2, 'NYR': 3, 'OTT': 9, 'PHI': 4, 'PIT': 5, 'SEA': 55, 'SJS': 28,
    'STL': 19, 'TBL': 14, 'TOR': 10, 'UTA': 53, 'VAN': 23, 'VGK': 54, 'WPG': 52, 'WSH': 15,
}


def team_full_name(abbrev: str) -> str:
    return TEAM_NAMES.get(abbrev, abbrev)


def headshot_url(player_id: int, team_abbrev: str, season: str = CURRENT_SEASON) -> str:
    if team_abbrev:
        return f'https://assets.nhle.com/mugs/nhl/{season}/{team_abbrev}/{player_id}.png'
    return f'https://nhl.bamcontent.com/images/headshots/current/168x168/{player_id}.png'


def _sort(*props: Tuple[str, str]) -> str:
    return json.dumps([{'property': p, 'direction': d} for p, d in props])


def _num(row: Dict[str, Any], key: str) -> int:
    v = row.get(key)
    if v is None:
        return 0
    try:
        return int(v)
    except (TypeError, ValueError):
        raise UpstreamUnavailable(f"non-numeric {key!r} in upstream row: {v!r}") from None


def _float(row: Dict[str, Any], key: str) -> float:
    v = row.get(key)
    if v is None:
        return 0.0
    try:
        return float(v)
    except (TypeError, ValueError):
        raise UpstreamUnavailable(f"non-numeric {key!r} in upstream row: {v!r}") from None


class NHLClient:
    """Thin client for the NHL stats and schedule endpoints.

    Every method raises ``UpstreamUnavailable`` on transport errors, timeouts,
    non-2xx responses and payloads that don't have the expected shape.
    """

    def __init__(self, base_url: str = STATS_BASE, schedule_url: str = SCHEDULE_BASE,
                 season: str = CURRENT_SEASON, timeout: float = 10, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.schedule_url = schedule_url.rstrip('/')
        self.season = season
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise UpstreamUnavailable(f"GET {url} failed: {exc}") from exc
        if not resp.ok:
            raise UpstreamUnavailable(f"GET {url} failed: {resp.status_code}")
        try:
            payload = resp.json()
        except ValueError as exc:
            raise UpstreamUnavailable(f"GET {url} returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise UpstreamUnavailable(f"GET {url} returned {type(payload).__name__}, expected object")
        return payload

    def _summary(self, kind: str, params: Dict[str, Any]) -> Tuple[List[Dict[str, Any]], int]:
        payload = self._get(f'{self.base_url}/{kind}/summary', params=params)
        data = payload.get('data') or []
        if not isinstance(data, list):
            raise UpstreamUnavailable(f"{kind} summary 'data' is not a list")
        if not all(isinstance(r, dict) for r in data):
            raise UpstreamUnavailable(f"{kind} summary has non-object rows")
        total = payload.get('total', len(data))
        try:
            return data, int(total or 0)
        except (TypeError, ValueError):
            raise UpstreamUnavailable(f"{kind} summary has non-numeric total: {total!r}") from None

    def _window_filter(self, player_id: int, start: date, end: date) -> str:
        return (f'seasonId={self.season} and gameTypeId=2 and playerId={int(player_id)} '
                f'and gameDate>="{start.isoformat()}" and gameDate<="{end.isoformat()}"')

    def get_skater_window(self, player_id: int, start: date, end: date) -> SkaterStats:
        rows, _ = self._summary('skater', {
            'isAggregate': 'false',
            'isGame': 'true',
            'cayenneExp': self._window_filter(player_id, start, end),
            'limit': 100,
        })
        # one row per game
        return SkaterStats(
            goals=sum(_num(r, 'goals') for r in rows),
            assists=sum(_num(r, 'assists') for r in rows),
            points=sum(_num(r, 'points') for r in rows),
            games_played=len(rows),
            plus_minus=sum(_num(r, 'plusMinus') for r in rows),
        )

    def get_goalie_window(self, player_id: int, start: date, end: date) -> GoalieStats:
        rows, _ = self._summary('goalie', {
            'isAggregate': 'false',
            'isGame': 'true',
            'cayenneExp': self._window_filter(player_id, start, end),
            'limit': 100,
        })
        return GoalieStats(
            wins=sum(_num(r, 'wins') for r in rows),
            shutouts=sum(_num(r, 'shutouts') for r in rows),
            games_played=len(rows),
        )

    def get_top_scorers(self, start: date, end: date, limit: int = 5) -> List[PlayerSummary]:
        rows, _ = self._summary('skater', {
            'isAggregate': 'false',
            'isGame': 'true',
            'sort': _sort(('points', 'DESC'), ('goals', 'DESC'), ('assists', 'DESC')),
            'start': 0,
            'limit': limit,
            'cayenneExp': f'gameTypeId=2 and gameDate>="{start.isoformat()}" and gameDate<="{end.isoformat()}"',
        })
        return [self._player(r, team_key='teamAbbrev') for r in rows[:limit]]

    def get_players(self, limit: int = 1000, start: int = 0) -> Tuple[List[PlayerSummary], int]:
        rows, total = self._summary('skater', {
            'isAggregate': 'false',
            'isGame': 'false',
            'sort': _sort(('lastName', 'ASC'), ('firstName', 'ASC')),
            'start': start,
            'limit': limit,
            'cayenneExp': f'seasonId={self.season} and gameTypeId=2',
        })
        return [self._player(r) for r in rows], total

    def search_players(self, query: str, limit: int = 50) -> Tuple[List[PlayerSummary], int]:
        q = query.replace('"', '')
        rows, total = self._summary('skater', {
            'isAggregate': 'false',
            'isGame': 'false',
            'sort': _sort(('points', 'DESC'), ('goals', 'DESC')),
            'start': 0,
            'limit': limit,
            'cayenneExp': f'seasonId={self.season} and gameTypeId=2 and skaterFullName likeIgnoreCase "%{q}%"',
        })
        return [self._player(r) for r in rows], total

    def get_team_games_in_range(self, team_abbrev: str, start: date, end: date) -> int:
        if team_abbrev not in TEAM_IDS:
            return 0
        payload = self._get(f'{self.schedule_url}/club-schedule-season/{team_abbrev}/now')
        games = payload.get('games') or []
        if not isinstance(games, list) or not all(isinstance(g, dict) for g in games):
            raise UpstreamUnavailable(f"schedule for {team_abbrev} has malformed 'games'")
        lo, hi = start.isoformat(), end.isoformat()
        count = 0
        for g in games:
            game_date = g.get('gameDate')
            if not game_date:
                continue
            # date-only comparison, inclusive both ends
            if lo <= str(game_date)[:10] <= hi:
                count += 1
        return count

    def _player(self, row: Dict[str, Any], team_key: str = 'teamAbbrevs') -> PlayerSummary:
        full_name = str(row.get('skaterFullName') or '')
        parts = full_name.split(' ')
        first = parts[0] if parts else ''
        last = ' '.join(parts[1:]) or first
        pid = _num(row, 'playerId')
        team = str(row.get(team_key) or '')
        return PlayerSummary(
            id=pid,
            first_name=first,
            last_name=last,
            full_name=full_name,
            position=str(row.get('positionCode') or ''),
            team_abbrev=team,
            team_name=team_full_name(team),
            points=_num(row, 'points'),
            goals=_num(row, 'goals'),
            assists=_num(row, 'assists'),
            games_played=_num(row, 'gamesPlayed'),
            plus_minus=_num(row, 'plusMinus'),
            penalty_minutes=_num(row, 'penaltyMinutes'),
            shots=_num(row, 'shots'),
            shooting_pct=_float(row, 'shootingPct'),
            headshot_url=headshot_url(pid, team, self.season),
        )
