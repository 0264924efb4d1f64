"""
Submission handler: accepts proposals, handles replacements for a rejected
slot and triggers scheduling once every member has proposed.
"""

import random
import sqlite3
from datetime import datetime
from typing import List, Optional

from . import dao
from .db import transaction
from .errors import ConflictError, InvalidPhase, InvalidProposal, MemberNotFound
from .notifications import Notification, NEW_VETTING_ITEM, dispatch
from .scheduler import schedule_batch
from .schema import AppState, Phase, Proposal, ProposalStatus, utcnow
from .state import read_state, write_state
from ..util.logging import logger


def _open_replacement_slot(conn: sqlite3.Connection, member_id: str, state: AppState) -> Optional[Proposal]:
    """The member's rejected proposal whose week slot is still open for a replacement.

    The slot is the current week, or a later week whose item was promoted
    early. A rejection in a week the cycle has already moved past opens nothing.
    """
    if state.week <= 0:
        return None
    latest = dao.get_latest_proposal_for_member(conn, member_id)
    if (latest is None
            or latest.status != ProposalStatus.REJECTED
            or latest.week_number is None
            or latest.week_number < state.week):
        return None
    return latest


def _submit_replacement(conn: sqlite3.Connection, member_id: str, state: AppState, rejected: Proposal,
                        title: str, cover_url: Optional[str], description: Optional[str],
                        year: Optional[int], now: datetime) -> Proposal:
    week = rejected.week_number
    if dao.get_active_proposal_for_member(conn, member_id) is not None:
        raise ConflictError("Member already has an active proposal")
    if dao.get_vetting_for_week(conn, week) is not None:
        raise ConflictError(f"Week {week} already has a proposal in vetting")

    # A slot ahead of the current week keeps its date so the week opens on schedule
    start_date = rejected.vetting_start_date if week > state.week else now

    proposal = dao.insert_proposal(
        conn, member_id, title,
        cover_url=cover_url,
        description=description,
        year=year,
        status=ProposalStatus.VETTING,
        week_number=week,
        vetting_start_date=start_date
    )
    write_state(conn, phase=Phase.ACTIVE)
    logger.log_operation("submission.replacement", "success", {
        "proposal_id": proposal.id,
        "member_id": member_id,
        "week_number": week,
        "replaces": rejected.id
    })
    return proposal


def _upsert_proposed(conn: sqlite3.Connection, member_id: str, title: str,
                     cover_url: Optional[str], description: Optional[str],
                     year: Optional[int]) -> Proposal:
    active = dao.get_active_proposal_for_member(conn, member_id)
    if active is not None and active.status != ProposalStatus.PROPOSED:
        raise ConflictError(f"Member's proposal is already {active.status.value.lower()}")
    if active is not None and active.week_number is not None:
        raise ConflictError(f"Member's proposal is already scheduled for week {active.week_number}")

    if active is not None:
        dao.update_proposal_details(conn, active.id, title, cover_url, description, year)
        logger.log_operation("submission.update", "success", {"proposal_id": active.id})
        return dao.get_proposal(conn, active.id)

    proposal = dao.insert_proposal(conn, member_id, title, cover_url=cover_url,
                                   description=description, year=year)
    logger.log_operation("submission.create", "success", {"proposal_id": proposal.id, "member_id": member_id})
    return proposal


def is_batch_complete(conn: sqlite3.Connection) -> bool:
    """Every member has an unscheduled PROPOSED item and no schedule is running."""
    member_count = dao.count_members(conn)
    if member_count == 0 or dao.count_in_flight(conn) > 0:
        return False
    return dao.count_unscheduled_proposals(conn) == member_count


def submit_movie(member_id: str, title: str, cover_url: Optional[str] = None,
                 description: Optional[str] = None, year: Optional[int] = None,
                 now: datetime = None, rng: random.Random = None) -> Proposal:
    """
    Submit (or re-submit) a member's proposal.

    A member whose proposal was rejected in the running schedule gets a
    replacement that goes straight into vetting for the same week slot.
    Anyone else may only submit during the SUBMISSION phase; re-submitting
    updates the existing PROPOSED row. A pick submitted while a schedule is
    still running waits for the next batch. When every member has proposed
    and nothing is in flight, the batch is scheduled.
    """
    if not title or not title.strip():
        raise InvalidProposal("Title is required")
    title = title.strip()
    now = now or utcnow()
    notifications: List[Notification] = []

    with transaction() as conn:
        if dao.get_member(conn, member_id) is None:
            raise MemberNotFound(f"Unknown member: {member_id}")

        state = read_state(conn)
        rejected = _open_replacement_slot(conn, member_id, state)
        if rejected is not None:
            proposal = _submit_replacement(conn, member_id, state, rejected, title, cover_url,
                                           description, year, now)
            notifications.append(Notification(NEW_VETTING_ITEM, proposal.title))
        else:
            if state.phase != Phase.SUBMISSION:
                raise InvalidPhase("Not in submission phase")

            proposal = _upsert_proposed(conn, member_id, title, cover_url, description, year)

            if is_batch_complete(conn):
                ordered = schedule_batch(conn, now, rng)
                if ordered:
                    notifications.append(Notification(NEW_VETTING_ITEM, ordered[0].title))
                proposal = dao.get_proposal(conn, proposal.id)

    dispatch(notifications)
    return proposal
