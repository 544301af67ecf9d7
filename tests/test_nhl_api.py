import json
import unittest
from datetime import date
from urllib.parse import parse_qs, urlparse

import requests
import responses

from nhlpool.config import CURRENT_SEASON, SCHEDULE_BASE, STATS_BASE
from nhlpool.errors import UpstreamUnavailable
from nhlpool.models import GoalieStats, SkaterStats
from nhlpool.nhl_api import NHLClient, headshot_url, team_full_name

SKATER_URL = STATS_BASE + '/skater/summary'
GOALIE_URL = STATS_BASE + '/goalie/summary'


def _query(call):
    return {k: v[0] for k, v in parse_qs(urlparse(call.request.url).query).items()}


class TestNHLClient(unittest.TestCase):
    def setUp(self):
        self.client = NHLClient()

    @responses.activate
    def test_skater_window_sums_games(self):
        responses.add(responses.GET, SKATER_URL, json={'data': [
            {'goals': 1, 'assists': 2, 'points': 3, 'plusMinus': 1},
            {'goals': 0, 'assists': 1, 'points': 1, 'plusMinus': -2},
            {'goals': 2, 'assists': 0, 'points': 2},
        ], 'total': 3}, status=200)
        stats = self.client.get_skater_window(8478402, date(2025, 1, 2), date(2025, 1, 8))
        self.assertEqual(stats, SkaterStats(goals=3, assists=3, points=6, games_played=3, plus_minus=-1))
        q = _query(responses.calls[0])
        self.assertEqual(q['isGame'], 'true')
        self.assertIn('playerId=8478402', q['cayenneExp'])
        self.assertIn('gameDate>="2025-01-02"', q['cayenneExp'])
        self.assertIn('gameDate<="2025-01-08"', q['cayenneExp'])
        self.assertIn(f'seasonId={CURRENT_SEASON}', q['cayenneExp'])

    @responses.activate
    def test_goalie_window(self):
        responses.add(responses.GET, GOALIE_URL, json={'data': [
            {'wins': 1, 'shutouts': 1}, {'wins': 0, 'shutouts': 0}, {'wins': 1, 'shutouts': 0},
        ]}, status=200)
        stats = self.client.get_goalie_window(8478048, date(2025, 1, 2), date(2025, 1, 8))
        self.assertEqual(stats, GoalieStats(wins=2, shutouts=1, games_played=3))

    @responses.activate
    def test_empty_window(self):
        responses.add(responses.GET, SKATER_URL, json={'data': [], 'total': 0}, status=200)
        self.assertEqual(self.client.get_skater_window(1, date(2025, 1, 2), date(2025, 1, 8)), SkaterStats())

    @responses.activate
    def test_server_error_raises_upstream_unavailable(self):
        responses.add(responses.GET, SKATER_URL, json={}, status=500)
        with self.assertRaises(UpstreamUnavailable):
            self.client.get_skater_window(1, date(2025, 1, 2), date(2025, 1, 8))

    @responses.activate
    def test_timeout_raises_upstream_unavailable(self):
        responses.add(responses.GET, SKATER_URL, body=requests.exceptions.ConnectTimeout('slow'))
        with self.assertRaises(UpstreamUnavailable):
            self.client.get_skater_window(1, date(2025, 1, 2), date(2025, 1, 8))

    @responses.activate
    def test_malformed_payloads(self):
        for kwargs in ({'body': 'not json'}, {'json': [1, 2]}, {'json': {'data': 'oops'}},
                       {'json': {'data': [{'goals': 'many'}]}}, {'json': {'data': [None]}},
                       {'json': {'data': [], 'total': 'n/a'}}):
            with self.subTest(kwargs=kwargs):
                responses.reset()
                responses.add(responses.GET, SKATER_URL, status=200, **kwargs)
                with self.assertRaises(UpstreamUnavailable):
                    self.client.get_skater_window(1, date(2025, 1, 2), date(2025, 1, 8))

    @responses.activate
    def test_top_scorers_normalized(self):
        responses.add(responses.GET, SKATER_URL, json={'data': [{
            'playerId': 8478402, 'skaterFullName': 'Connor McDavid', 'positionCode': 'C',
            'teamAbbrev': 'EDM', 'points': 50, 'goals': 20, 'assists': 30, 'gamesPlayed': 5,
        }], 'total': 1}, status=200)
        players = self.client.get_top_scorers(date(2025, 1, 6), date(2025, 1, 12), limit=5)
        self.assertEqual(len(players), 1)
        p = players[0]
        self.assertEqual((p.first_name, p.last_name, p.team_name), ('Connor', 'McDavid', 'Edmonton Oilers'))
        self.assertEqual(p.headshot_url, f'https://assets.nhle.com/mugs/nhl/{CURRENT_SEASON}/EDM/8478402.png')
        q = _query(responses.calls[0])
        self.assertEqual(json.loads(q['sort'])[0], {'property': 'points', 'direction': 'DESC'})
        self.assertEqual(q['limit'], '5')

    @responses.activate
    def test_search_players_returns_total(self):
        responses.add(responses.GET, SKATER_URL, json={'data': [
            {'playerId': 1, 'skaterFullName': 'Sidney Crosby', 'positionCode': 'C', 'teamAbbrevs': 'PIT'},
        ], 'total': 1}, status=200)
        players, total = self.client.search_players('cros', 50)
        self.assertEqual(total, 1)
        self.assertEqual(players[0].team_name, 'Pittsburgh Penguins')
        self.assertIn('skaterFullName likeIgnoreCase "%cros%"', _query(responses.calls[0])['cayenneExp'])

    @responses.activate
    def test_team_games_filters_on_date_part_inclusive(self):
        responses.add(responses.GET, SCHEDULE_BASE + '/club-schedule-season/EDM/now', json={'games': [
            {'gameDate': '2025-01-01'},
            {'gameDate': '2025-01-02T19:00:00Z'},
            {'gameDate': '2025-01-05'},
            {'gameDate': '2025-01-08T23:30:00Z'},
            {'gameDate': '2025-01-09'},
            {},
        ]}, status=200)
        self.assertEqual(self.client.get_team_games_in_range('EDM', date(2025, 1, 2), date(2025, 1, 8)), 3)

    @responses.activate
    def test_malformed_schedule_raises_upstream_unavailable(self):
        url = SCHEDULE_BASE + '/club-schedule-season/EDM/now'
        for games in ({'x': 1}, [None], ['2025-01-03']):
            with self.subTest(games=games):
                responses.reset()
                responses.add(responses.GET, url, json={'games': games}, status=200)
                with self.assertRaises(UpstreamUnavailable):
                    self.client.get_team_games_in_range('EDM', date(2025, 1, 2), date(2025, 1, 8))

    @responses.activate
    def test_non_numeric_shooting_pct(self):
        responses.add(responses.GET, SKATER_URL, json={'data': [
            {'playerId': 1, 'skaterFullName': 'Sidney Crosby', 'shootingPct': '--'},
        ], 'total': 1}, status=200)
        with self.assertRaises(UpstreamUnavailable):
            self.client.search_players('cros', 50)

    @responses.activate
    def test_unknown_team_skips_upstream(self):
        self.assertEqual(self.client.get_team_games_in_range('XXX', date(2025, 1, 2), date(2025, 1, 8)), 0)
        self.assertEqual(len(responses.calls), 0)


def test_team_helpers():
    assert team_full_name('MTL') == 'Montreal Canadiens'
    assert team_full_name('ZZZ') == 'ZZZ'
    assert headshot_url(42, '').endswith('/168x168/42.png')
