"""Runtime settings, read from ``NHLPOOL_*`` environment variables."""
import os
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional

STATS_BASE = 'https://api.nhle.com/stats/rest/en'
SCHEDULE_BASE = 'https://api-web.nhle.com/v1'
CURRENT_SEASON = '20252026'

# seconds, per cache kind
DEFAULT_TTLS: Dict[str, float] = {
    'top_scorers': 6 * 3600,
    'roster': 24 * 3600,
    'search': 6 * 3600,
    'team_schedule': 6 * 3600,
    'player_window': 60,
    'goalie_window': 60,
}


@dataclass
class Settings:
    stats_base_url: str = STATS_BASE
    schedule_base_url: str = SCHEDULE_BASE
    season: str = CURRENT_SEASON
    timeout: float = 10.0
    max_workers: int = 8
    log_level: str = 'WARNING'
    ttls: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_TTLS))


def _number(getenv: Callable[[str], Optional[str]], name: str, default: float) -> float:
    raw = getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    getenv = env.get if env is not None else os.getenv
    s = Settings(
        stats_base_url=getenv('NHLPOOL_STATS_URL') or STATS_BASE,
        schedule_base_url=getenv('NHLPOOL_SCHEDULE_URL') or SCHEDULE_BASE,
        season=getenv('NHLPOOL_SEASON') or CURRENT_SEASON,
        log_level=(getenv('NHLPOOL_LOG_LEVEL') or 'WARNING').upper(),
    )
    s.timeout = _number(getenv, 'NHLPOOL_TIMEOUT', s.timeout)
    s.max_workers = max(1, int(_number(getenv, 'NHLPOOL_MAX_WORKERS', s.max_workers)))
    for kind in s.ttls:
        s.ttls[kind] = _number(getenv, f'NHLPOOL_TTL_{kind.upper()}', s.ttls[kind])
    return s
