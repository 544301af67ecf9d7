import pytest

from nhlpool.config import DEFAULT_TTLS, STATS_BASE, load_settings


def test_defaults():
    s = load_settings({})
    assert s.stats_base_url == STATS_BASE
    assert s.ttls == DEFAULT_TTLS
    assert s.timeout == 10.0
    assert s.log_level == 'WARNING'


def test_overrides():
    s = load_settings({
        'NHLPOOL_TIMEOUT': '2.5',
        'NHLPOOL_TTL_PLAYER_WINDOW': '30',
        'NHLPOOL_MAX_WORKERS': '0',
        'NHLPOOL_LOG_LEVEL': 'debug',
        'NHLPOOL_SEASON': '20242025',
    })
    assert s.timeout == 2.5
    assert s.ttls['player_window'] == 30
    assert s.ttls['roster'] == DEFAULT_TTLS['roster']
    assert s.max_workers == 1
    assert s.log_level == 'DEBUG'
    assert s.season == '20242025'


def test_bad_number():
    with pytest.raises(ValueError):
        load_settings({'NHLPOOL_TIMEOUT': 'soon'})
