"""Pool phases derived from the calendar.

The start date is draft day: a pool is in ``selection`` up to and including it,
``active`` from the next day through the end date, and ``finished`` afterwards.
"""
from datetime import date, timedelta
from typing import Optional, Tuple

from .models import DraftPick, Participant, Pool, PoolStatus


def calculate_status(start_date: date, end_date: date, today: date) -> PoolStatus:
    if today > end_date:
        return PoolStatus.FINISHED
    if today > start_date:
        return PoolStatus.ACTIVE
    return PoolStatus.SELECTION


def recompute(pool: Pool, today: date) -> bool:
    """Bring ``pool.status`` in line with ``today``. Returns True if it changed."""
    status = calculate_status(pool.start_date, pool.end_date, today)
    if status == pool.status:
        return False
    pool.status = status
    return True


def participant_phase(pool: Pool, participant: Optional[Participant], today: date) -> PoolStatus:
    if today > pool.start_date:
        return PoolStatus.ACTIVE
    if participant is not None and participant.selection_completed_at is not None:
        return PoolStatus.ACTIVE
    return PoolStatus.SELECTION


def can_delete_pick(pick: DraftPick, participant_id: int, phase: PoolStatus) -> bool:
    return pick.participant_id == participant_id and phase == PoolStatus.SELECTION


def scoring_window(pool: Pool) -> Tuple[date, date]:
    # draft day is not a playing day
    return pool.start_date + timedelta(days=1), pool.end_date
