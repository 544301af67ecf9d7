"""In-memory pool repository.

Stands in for the persistence layer: it provides the atomic
insert-if-absent on ``(pool_id, external_player_id)`` and the next draft
order, both under a per-pool re-entrant lock. Process-local only.
"""
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

from .errors import DuplicatePick, PickNotFound, PoolNotFound
from .models import DraftPick, Pool
from .scoring import next_draft_order


class PoolStore:
    def __init__(self):
        self._pools: Dict[int, Pool] = {}
        self._locks: Dict[int, threading.RLock] = {}
        self._ids_lock = threading.Lock()
        self._last_pool_id = 0
        self._last_pick_id = 0

    def next_pool_id(self) -> int:
        with self._ids_lock:
            self._last_pool_id += 1
            return self._last_pool_id

    def _next_pick_id(self) -> int:
        with self._ids_lock:
            self._last_pick_id += 1
            return self._last_pick_id

    def save_pool(self, pool: Pool) -> Pool:
        with self._ids_lock:
            self._pools[pool.id] = pool
            self._locks.setdefault(pool.id, threading.RLock())
            # pools loaded from a file carry their own ids
            self._last_pool_id = max(self._last_pool_id, pool.id)
            self._last_pick_id = max([self._last_pick_id] + [p.id for p in pool.picks])
        return pool

    def get_pool(self, pool_id: int) -> Pool:
        pool = self._pools.get(pool_id)
        if pool is None:
            raise PoolNotFound(f"Pool {pool_id} does not exist")
        return pool

    def list_pools(self) -> List[Pool]:
        return list(self._pools.values())

    @contextmanager
    def pool_lock(self, pool_id: int) -> Iterator[Pool]:
        pool = self.get_pool(pool_id)
        with self._locks[pool_id]:
            yield pool

    def insert_pick(self, pool_id: int, build: Callable[[int, int], DraftPick],
                    drafted_by: Optional[Callable[[DraftPick], Optional[str]]] = None) -> DraftPick:
        """Insert the pick made by ``build(pick_id, draft_order)``.

        Raises DuplicatePick when the player already belongs to the pool.
        The check, the order assignment and the append share one critical section.
        """
        with self.pool_lock(pool_id) as pool:
            pick = build(self._next_pick_id(), next_draft_order(pool.picks))
            for existing in pool.picks:
                if existing.external_player_id == pick.external_player_id:
                    who = drafted_by(existing) if drafted_by else None
                    raise DuplicatePick(pick.external_player_id, who)
            pool.picks.append(pick)
            return pick

    def find_pick(self, pick_id: int) -> DraftPick:
        for pool in self.list_pools():
            for p in pool.picks:
                if p.id == pick_id:
                    return p
        raise PickNotFound(f"Pick {pick_id} does not exist")

    def delete_pick(self, pool_id: int, pick_id: int) -> DraftPick:
        with self.pool_lock(pool_id) as pool:
            for i, p in enumerate(pool.picks):
                if p.id == pick_id:
                    return pool.picks.pop(i)
        raise PickNotFound(f"Pick {pick_id} does not exist in pool {pool_id}")
