import unicodedata
from typing import Iterable, Optional, TypeVar

from rapidfuzz import fuzz

from .models import PlayerSummary

T = TypeVar('T', bound=PlayerSummary)


def normalize_name(name: str) -> str:
    if not name:
        return ''
    # fold accents so "Stützle" matches "Stutzle"
    folded = unicodedata.normalize('NFKD', name)
    folded = ''.join(ch for ch in folded if not unicodedata.combining(ch))
    return ''.join(ch for ch in folded.lower() if ch.isalnum() or ch.isspace()).strip()


def find_best_player(name: str, candidates: Iterable[T], threshold: float = 0.8) -> Optional[T]:
    """Pick the roster entry whose full name best matches ``name``.

    Exact normalized match wins, then the best rapidfuzz token_set_ratio at or
    above ``threshold`` (0..1). Below that, a unique last-name match is
    accepted unless the threshold is very strict.
    """
    norm = normalize_name(name)
    if not norm:
        return None
    cands = [(normalize_name(c.full_name), c) for c in candidates]

    for nc, c in cands:
        if nc == norm:
            return c

    best = None
    best_score = 0.0
    for nc, c in cands:
        score = fuzz.token_set_ratio(norm, nc) / 100.0
        if score > best_score:
            best_score = score
            best = c
    if best is not None and best_score >= threshold:
        return best

    if threshold < 0.95:
        last = norm.split()[-1]
        same_last = [c for nc, c in cands if nc.split() and nc.split()[-1] == last]
        if len(same_last) == 1:
            return same_last[0]
    return None
