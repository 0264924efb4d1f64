"""
Batch scheduler: orders a complete batch of proposals into weekly slots.
"""

import random
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, TypeVar

from . import dao
from .config import get_schedule_seed, get_schedule_weekday
from .schema import Phase, Proposal, ProposalStatus
from .state import write_state
from ..util.logging import logger

T = TypeVar("T")


def make_rng(seed: Optional[int] = None) -> random.Random:
    """Entropy source for the shuffle; seeded for reproducible schedules."""
    if seed is None:
        seed = get_schedule_seed()
    return random.Random(seed) if seed is not None else random.SystemRandom()


def shuffle(items: Sequence[T], rng: random.Random) -> List[T]:
    """Unbiased Fisher-Yates shuffle returning a new list."""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rng.randint(0, i)
        result[i], result[j] = result[j], result[i]
    return result


def next_weekday(now: datetime, weekday: int) -> datetime:
    """Midnight UTC of the next given weekday strictly after today."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    days_ahead = (weekday - now.weekday()) % 7 or 7
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight + timedelta(days=days_ahead)


def schedule_batch(conn: sqlite3.Connection, now: datetime,
                   rng: random.Random = None) -> List[Proposal]:
    """Shuffle the unscheduled PROPOSED items into weeks 1..N and open vetting for week 1.

    Week i (1-based) gets a vetting start date of the next scheduling weekday
    plus (i - 1) weeks. Returns the proposals in their scheduled order.
    """
    rng = rng or make_rng()
    proposals = dao.list_unscheduled_proposals(conn)
    if not proposals:
        return []

    ordered = shuffle(proposals, rng)
    first_date = next_weekday(now, get_schedule_weekday())

    for index, proposal in enumerate(ordered):
        proposal.week_number = index + 1
        proposal.vetting_start_date = first_date + timedelta(days=7 * index)
        dao.schedule_proposal(conn, proposal.id, proposal.week_number, proposal.vetting_start_date)

    first = ordered[0]
    if dao.transition_status(conn, first.id, ProposalStatus.PROPOSED, ProposalStatus.VETTING):
        first.status = ProposalStatus.VETTING
        logger.log_transition(first.id, ProposalStatus.PROPOSED.value, ProposalStatus.VETTING.value,
                              {"week_number": 1})

    write_state(conn, phase=Phase.ACTIVE, week=1)
    logger.log_schedule([p.id for p in ordered], first.id)
    return ordered
