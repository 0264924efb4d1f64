"""
Phase/week resolver.

The phase and week live in one typed row and are only read or written through
this module. get_app_state() is a pure read; run_weekly_transition() is the
only operation that advances the week.
"""

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from . import dao
from .db import get_db, transaction
from .notifications import Notification, NEW_VETTING_ITEM, dispatch
from .schema import ACTIVE_STATUSES, AppState, Phase, Proposal, ProposalStatus, utcnow
from ..util.logging import logger


@dataclass
class TransitionResult:
    phase: Phase
    previous_week: int
    current_week: int
    promoted_proposal_id: Optional[str] = None

    def to_dict(self):
        return {
            "phase": self.phase.value,
            "previous_week": self.previous_week,
            "current_week": self.current_week,
            "promoted_proposal_id": self.promoted_proposal_id
        }


def get_app_state() -> AppState:
    """Current phase and week, without side effects."""
    with get_db() as conn:
        return dao.load_state(conn)


def read_state(conn: sqlite3.Connection) -> AppState:
    return dao.load_state(conn)


def write_state(conn: sqlite3.Connection, phase: Phase = None, week: int = None) -> AppState:
    """Update phase and/or week inside the caller's transaction."""
    current = dao.load_state(conn)
    updated = AppState(
        phase=phase if phase is not None else current.phase,
        week=week if week is not None else current.week
    )
    if updated != current:
        dao.save_state(conn, updated)
        if updated.phase != current.phase:
            logger.log_phase_change(current.phase.value, updated.phase.value, updated.week)
        if updated.week != current.week:
            logger.log_week_change(current.week, updated.week)
    return updated


def promote_next(conn: sqlite3.Connection, now: datetime, allow_early: bool = False) -> Optional[Proposal]:
    """Open vetting for the next scheduled proposal.

    Picks the earliest PROPOSED item whose vetting date has arrived; with
    allow_early, falls back to the earliest scheduled one regardless of date.
    Nothing is promoted while another proposal is already in vetting. The week
    is left alone, so an early item cannot be voted on before its week opens.
    """
    if dao.get_earliest_vetting(conn) is not None:
        return None

    candidate = dao.find_next_proposed(conn, due_before=now)
    early = False
    if candidate is None and allow_early:
        candidate = dao.find_next_proposed(conn)
        early = True
    if candidate is None:
        return None

    if not dao.transition_status(conn, candidate.id, ProposalStatus.PROPOSED, ProposalStatus.VETTING):
        return None

    logger.log_transition(candidate.id, ProposalStatus.PROPOSED.value, ProposalStatus.VETTING.value,
                          {"week_number": candidate.week_number, "early": early})
    write_state(conn, phase=Phase.ACTIVE)
    candidate.status = ProposalStatus.VETTING
    return candidate


def has_open_items(conn: sqlite3.Connection, statuses=ACTIVE_STATUSES) -> bool:
    return dao.count_proposals(conn, statuses) > 0


def close_cycle_if_idle(conn: sqlite3.Connection) -> bool:
    """Reset to SUBMISSION/week 0 once no scheduled proposal is left in flight.

    Picks submitted while a rejected slot was open have no week yet; they
    carry over into the next batch.
    """
    if dao.count_in_flight(conn) > 0:
        return False
    write_state(conn, phase=Phase.SUBMISSION, week=0)
    logger.log_operation("cycle.closed", "success")
    return True


def run_weekly_transition(now: datetime = None) -> TransitionResult:
    """Advance the week to the latest due slot and open vetting if one is due.

    Idempotent and monotonic: running it twice at the same instant changes
    nothing the second time, and the week never decreases.
    """
    now = now or utcnow()
    notifications: List[Notification] = []

    with transaction() as conn:
        previous = dao.load_state(conn)
        due_week = dao.max_due_week(conn, now, statuses=ACTIVE_STATUSES)
        if due_week > previous.week:
            write_state(conn, week=due_week)

        promoted = promote_next(conn, now, allow_early=False)
        if promoted is not None:
            notifications.append(Notification(NEW_VETTING_ITEM, promoted.title))

        current = dao.load_state(conn)

    dispatch(notifications)

    result = TransitionResult(
        phase=current.phase,
        previous_week=previous.week,
        current_week=current.week,
        promoted_proposal_id=promoted.id if promoted else None
    )
    logger.log_operation("weekly_transition", "success", result.to_dict())
    return result
