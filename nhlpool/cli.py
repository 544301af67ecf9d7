import argparse
import json
import logging
from dataclasses import asdict
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from .aggregator import PoolAggregator, Standings
from .cache import StatsCache
from .config import Settings, load_settings
from .errors import PoolError
from .lifecycle import calculate_status
from .models import DraftPick, Participant, Pool
from .nhl_api import NHLClient
from .rules import RuleSet
from .stats_service import StatsService
from .store import PoolStore


def build_service(settings: Settings) -> StatsService:
    client = NHLClient(
        base_url=settings.stats_base_url,
        schedule_url=settings.schedule_base_url,
        season=settings.season,
        timeout=settings.timeout,
    )
    return StatsService(client, StatsCache(settings.ttls))


def _date(value: str) -> date:
    return date.fromisoformat(str(value)[:10])


def load_pool_file(path: str, store: PoolStore, today: Optional[date] = None) -> List[Pool]:
    """Load rule sets, pools, members and picks from a JSON document into ``store``."""
    try:
        doc = json.loads(Path(path).read_text(encoding='utf-8'))
    except OSError as exc:
        raise PoolError(f"Cannot read pool file {path}: {exc}") from exc
    except ValueError as exc:
        raise PoolError(f"Pool file {path} is not valid JSON: {exc}") from exc
    try:
        return _load_pools(doc, store, today or date.today())
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise PoolError(f"Malformed pool file {path}: {exc!r}") from exc


def _load_pools(doc: Dict[str, Any], store: PoolStore, today: date) -> List[Pool]:
    rule_sets = {r.get('id'): RuleSet.from_record(r) for r in doc.get('rule_sets', [])}
    pools = []
    for p in doc.get('pools', []):
        rs_id = p.get('rule_set_id')
        if rs_id not in rule_sets:
            raise PoolError(f"Pool {p.get('id')} references unknown rule set {rs_id}")
        members = [
            Participant(
                user_id=m['user_id'],
                name=m.get('name', str(m['user_id'])),
                selection_completed_at=datetime.fromisoformat(m['selection_completed_at'])
                if m.get('selection_completed_at') else None,
            )
            for m in p.get('participants', [])
        ]
        picks = [
            DraftPick(
                id=k['id'],
                pool_id=p['id'],
                participant_id=k['participant_id'],
                external_player_id=int(k['external_player_id']),
                player_name=k.get('player_name', ''),
                position=str(k.get('position') or '').upper(),
                team_code=k.get('team_code', ''),
                draft_order=k.get('draft_order') or i + 1,
                team_name=k.get('team_name', ''),
                headshot_url=k.get('headshot_url'),
            )
            for i, k in enumerate(p.get('picks', []))
        ]
        start, end = _date(p['start_date']), _date(p['end_date'])
        pool = Pool(
            id=p['id'],
            name=p.get('name', ''),
            start_date=start,
            end_date=end,
            rule_set=rule_sets[rs_id],
            owner_id=p.get('owner_id', 0),
            status=calculate_status(start, end, today),
            participants=members,
            picks=picks,
        )
        pools.append(store.save_pool(pool))
    return pools


def standings_frames(standings: Standings) -> Tuple[pd.DataFrame, pd.DataFrame]:
    participants = pd.DataFrame(
        [{
            'Rank': i + 1,
            'Participant': p.name,
            'Players': p.active_players,
            'G': p.total_goals,
            'A': p.total_assists,
            '+/-': p.total_plus_minus,
            'Points': p.total_points,
        } for i, p in enumerate(standings.ranked_participants)],
        columns=['Rank', 'Participant', 'Players', 'G', 'A', '+/-', 'Points'],
    )
    picks = pd.DataFrame(
        [{
            'Player': r.pick.player_name,
            'Pos': r.pick.position,
            'Team': r.pick.team_code,
            'Drafted by': r.selected_by,
            'GP': r.stats.get('games_played', 0),
            'Games in pool': r.games_in_pool,
            'Points': r.points,
        } for r in standings.ranked_picks],
        columns=['Player', 'Pos', 'Team', 'Drafted by', 'GP', 'Games in pool', 'Points'],
    )
    return participants, picks


def standings_report(standings: Standings) -> Dict[str, Any]:
    start, end = standings.window
    return {
        'pool_id': standings.pool_id,
        'pool_phase': standings.pool_phase.value,
        'viewer_phase': standings.viewer_phase.value,
        'window': [start.isoformat(), end.isoformat()],
        'participants': [asdict(p) for p in standings.ranked_participants],
        'picks': [{
            'id': r.pick.id,
            'external_player_id': r.pick.external_player_id,
            'player_name': r.pick.player_name,
            'position': r.pick.position,
            'team_code': r.pick.team_code,
            'draft_order': r.pick.draft_order,
            'selected_by': r.selected_by,
            'points': r.points,
            'stats': r.stats,
            'games_in_pool': r.games_in_pool,
            'can_delete': r.can_delete,
        } for r in standings.ranked_picks],
    }


def show_standings(pool_file: str, viewer: int, pool_id: Optional[int], today: Optional[date],
                   as_json: bool, settings: Settings):
    store = PoolStore()
    pools = load_pool_file(pool_file, store, today)
    if not pools:
        print("No pools in file.")
        return
    agg = PoolAggregator(store, build_service(settings), max_workers=settings.max_workers,
                         today=(lambda: today) if today else date.today)
    standings = agg.get_standings(pool_id or pools[0].id, viewer)
    start, end = standings.window
    print(f"Pool {standings.pool_id}: {standings.pool_phase.value} "
          f"(you: {standings.viewer_phase.value}), scoring {start} .. {end}")
    participants, picks = standings_frames(standings)
    print('SUMMARY_TABLE_START')
    print(participants.to_string(index=False))
    print()
    print(picks.to_string(index=False))
    if as_json:
        print('REPORT_JSON_START')
        print(json.dumps(standings_report(standings), indent=2, default=str))


def sync_stats(pool_file: str, pool_id: Optional[int], today: Optional[date], settings: Settings):
    store = PoolStore()
    load_pool_file(pool_file, store, today)
    agg = PoolAggregator(store, build_service(settings), max_workers=settings.max_workers,
                         today=(lambda: today) if today else date.today)
    synced = agg.sync_stats([pool_id] if pool_id else None)
    if not synced:
        print("No pools to sync.")
        return
    for pid, n in synced.items():
        print(f"Pool {pid}: {n} player(s) refreshed")
    print("Sync completed.")


def _players_frame(players) -> pd.DataFrame:
    return pd.DataFrame(
        [{'Id': p.id, 'Player': p.full_name, 'Pos': p.position, 'Team': p.team_abbrev,
          'GP': p.games_played, 'G': p.goals, 'A': p.assists, 'Pts': p.points} for p in players],
        columns=['Id', 'Player', 'Pos', 'Team', 'GP', 'G', 'A', 'Pts'],
    )


def main(argv: Optional[list[str]] = None):
    parser = argparse.ArgumentParser(prog='nhlpool')
    parser.add_argument('--log-level', default=None, help='Logging level (default from NHLPOOL_LOG_LEVEL or WARNING)')
    sub = parser.add_subparsers(dest='cmd')

    st = sub.add_parser('standings', help='Show standings for a pool')
    st.add_argument('--pool-file', required=True, help='JSON file with rule sets, pools and picks')
    st.add_argument('--pool', type=int, default=None, help='Pool id (default: first pool in file)')
    st.add_argument('--viewer', type=int, required=True, help='User id viewing the pool')
    st.add_argument('--today', type=_date, default=None, help='Override the current date (YYYY-MM-DD)')
    st.add_argument('--json', dest='as_json', action='store_true', help='Also print the JSON report')

    sy = sub.add_parser('sync-stats', help='Refresh stats for active pools')
    sy.add_argument('--pool-file', required=True)
    sy.add_argument('--pool', type=int, default=None, help='Only sync this pool id')
    sy.add_argument('--today', type=_date, default=None)

    top = sub.add_parser('top-scorers', help="This week's top scorers")
    top.add_argument('--limit', type=int, default=5)

    se = sub.add_parser('search', help='Search players by name')
    se.add_argument('query')
    se.add_argument('--limit', type=int, default=50)

    lk = sub.add_parser('lookup', help='Fuzzy-match a player name against the season roster')
    lk.add_argument('name')
    lk.add_argument('--threshold', type=float, default=0.8, help='Match threshold 0-1 (default 0.8)')

    args = parser.parse_args(argv)
    settings = load_settings()
    logging.basicConfig(level=(args.log_level or settings.log_level).upper(),
                        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s')

    try:
        if args.cmd == 'standings':
            show_standings(args.pool_file, args.viewer, args.pool, args.today, args.as_json, settings)
        elif args.cmd == 'sync-stats':
            sync_stats(args.pool_file, args.pool, args.today, settings)
        elif args.cmd == 'top-scorers':
            players = build_service(settings).get_top_scorers(args.limit)
            print(_players_frame(players).to_string(index=False))
        elif args.cmd == 'search':
            players, total = build_service(settings).search_players(args.query, args.limit)
            print(f"{total} match(es)")
            print(_players_frame(players).to_string(index=False))
        elif args.cmd == 'lookup':
            match = build_service(settings).find_player(args.name, threshold=args.threshold)
            if match is None:
                print(f"No match for {args.name!r}")
                return 1
            print(f"{match.full_name} ({match.position}, {match.team_abbrev}) id={match.id}")
        else:
            parser.print_help()
    except PoolError as e:
        print(f"Error: {e}")
        return 1
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
