import io
import json
import sys
import tempfile
from unittest import mock, TestCase

from nhlpool import cli
from nhlpool.errors import PoolError
from nhlpool.models import GoalieStats, PlayerSummary, SkaterStats
from nhlpool.store import PoolStore

POOL_DOC = {
    'rule_sets': [
        {'id': 1, 'name': 'Standard', 'points_per_goal': 2, 'points_per_assist': 1,
         'points_per_shutout': 3, 'points_per_victory': 2},
    ],
    'pools': [{
        'id': 7,
        'name': 'Office pool',
        'start_date': '2025-01-01',
        'end_date': '2025-01-08',
        'rule_set_id': 1,
        'owner_id': 1,
        'participants': [
            {'user_id': 1, 'name': 'Alice'},
            {'user_id': 2, 'name': 'Bob', 'selection_completed_at': '2024-12-31T20:00:00'},
        ],
        'picks': [
            {'id': 11, 'participant_id': 1, 'external_player_id': 97, 'player_name': 'Connor McDavid',
             'position': 'C', 'team_code': 'EDM', 'draft_order': 1},
            {'id': 12, 'participant_id': 2, 'external_player_id': 31, 'player_name': 'Igor Shesterkin',
             'position': 'G', 'team_code': 'NYR', 'draft_order': 2},
        ],
    }],
}


def _write_pool_file(tmp, doc=POOL_DOC):
    path = f'{tmp}/pools.json'
    with open(path, 'w', encoding='utf-8') as fh:
        if isinstance(doc, str):
            fh.write(doc)
        else:
            json.dump(doc, fh)
    return path


def _run(argv):
    buf = io.StringIO()
    old = sys.stdout
    sys.stdout = buf
    try:
        code = cli.main(argv)
    finally:
        sys.stdout = old
    return code, buf.getvalue()


class TestLoadPoolFile(TestCase):
    def test_load(self):
        with tempfile.TemporaryDirectory() as tmp:
            store = PoolStore()
            pools = cli.load_pool_file(_write_pool_file(tmp), store)
        pool = pools[0]
        self.assertEqual(pool.rule_set.name, 'Standard')
        self.assertEqual([p.name for p in pool.participants], ['Alice', 'Bob'])
        self.assertIsNotNone(pool.participant(2).selection_completed_at)
        self.assertEqual(store.find_pick(12).player_name, 'Igor Shesterkin')
        self.assertEqual(store.next_pool_id(), 8)

    def test_missing_field_raises_pool_error(self):
        pick = {k: v for k, v in POOL_DOC['pools'][0]['picks'][0].items() if k != 'participant_id'}
        doc = dict(POOL_DOC, pools=[dict(POOL_DOC['pools'][0], picks=[pick])])
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(PoolError) as ctx:
                cli.load_pool_file(_write_pool_file(tmp, doc), PoolStore())
        self.assertIn('participant_id', str(ctx.exception))

    def test_invalid_json_raises_pool_error(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(PoolError):
                cli.load_pool_file(_write_pool_file(tmp, '{"pools": ['), PoolStore())
            with self.assertRaises(PoolError):
                cli.load_pool_file(f'{tmp}/missing.json', PoolStore())

    def test_lower_case_positions_normalized(self):
        picks = [dict(POOL_DOC['pools'][0]['picks'][0], position='c')]
        doc = dict(POOL_DOC, pools=[dict(POOL_DOC['pools'][0], picks=picks)])
        with tempfile.TemporaryDirectory() as tmp:
            store = PoolStore()
            cli.load_pool_file(_write_pool_file(tmp, doc), store)
        self.assertEqual(store.find_pick(11).position, 'C')


class TestCLI(TestCase):
    @mock.patch('nhlpool.cli.NHLClient')
    def test_standings_report(self, mock_client_cls):
        client = mock_client_cls.return_value
        client.get_skater_window.return_value = SkaterStats(goals=2, assists=1, points=3, games_played=2)
        client.get_goalie_window.return_value = GoalieStats(wins=3, shutouts=1, games_played=3)
        client.get_team_games_in_range.return_value = 4
        with tempfile.TemporaryDirectory() as tmp:
            code, out = _run(['standings', '--pool-file', _write_pool_file(tmp), '--viewer', '1',
                              '--today', '2025-01-05', '--json'])
        self.assertEqual(code, 0)
        self.assertIn('SUMMARY_TABLE_START', out)
        self.assertIn('Connor McDavid', out)
        report = json.loads(out.split('REPORT_JSON_START', 1)[1])
        self.assertEqual(report['window'], ['2025-01-02', '2025-01-08'])
        self.assertEqual(report['pool_phase'], 'active')
        # Bob: 3 wins * 2 + 1 shutout * 3 = 9, Alice: 2 goals * 2 + 1 assist = 5
        self.assertEqual([(p['name'], p['total_points']) for p in report['participants']],
                         [('Bob', 9), ('Alice', 5)])
        client.get_skater_window.assert_called_once()

    @mock.patch('nhlpool.cli.NHLClient')
    def test_sync_stats(self, mock_client_cls):
        client = mock_client_cls.return_value
        client.get_skater_window.return_value = SkaterStats()
        client.get_goalie_window.return_value = GoalieStats()
        client.get_team_games_in_range.return_value = 0
        with tempfile.TemporaryDirectory() as tmp:
            code, out = _run(['sync-stats', '--pool-file', _write_pool_file(tmp), '--today', '2025-01-05'])
        self.assertEqual(code, 0)
        self.assertIn('Pool 7: 2 player(s) refreshed', out)

    @mock.patch('nhlpool.cli.NHLClient')
    def test_sync_nothing_when_finished(self, mock_client_cls):
        with tempfile.TemporaryDirectory() as tmp:
            code, out = _run(['sync-stats', '--pool-file', _write_pool_file(tmp), '--today', '2025-03-01'])
        self.assertIn('No pools to sync.', out)
        mock_client_cls.return_value.get_skater_window.assert_not_called()

    @mock.patch('nhlpool.cli.NHLClient')
    def test_lookup(self, mock_client_cls):
        mock_client_cls.return_value.get_players.return_value = ([
            PlayerSummary(id=97, first_name='Connor', last_name='McDavid', full_name='Connor McDavid',
                          position='C', team_abbrev='EDM', team_name='Edmonton Oilers'),
        ], 1)
        code, out = _run(['lookup', 'Connor Mcdavid'])
        self.assertEqual(code, 0)
        self.assertIn('id=97', out)
        code, out = _run(['lookup', 'Nobody Here', '--threshold', '0.99'])
        self.assertEqual(code, 1)

    def test_unknown_rule_set_is_reported(self):
        doc = dict(POOL_DOC, pools=[dict(POOL_DOC['pools'][0], rule_set_id=99)])
        with tempfile.NamedTemporaryFile('w+', delete=False, suffix='.json') as f:
            json.dump(doc, f)
            f.flush()
            code, out = _run(['standings', '--pool-file', f.name, '--viewer', '1'])
        self.assertEqual(code, 1)
        self.assertIn('unknown rule set', out)

    def test_malformed_pool_file_is_reported(self):
        with tempfile.TemporaryDirectory() as tmp:
            code, out = _run(['standings', '--pool-file', _write_pool_file(tmp, 'not json'), '--viewer', '1'])
        self.assertEqual(code, 1)
        self.assertIn('Error:', out)
        self.assertIn('not valid JSON', out)
