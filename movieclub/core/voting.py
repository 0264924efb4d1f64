"""
Voting handler: members score watched proposals. Once everyone has voted the
proposal is completed, the next scheduled item is promoted and, if nothing is
left in flight, the cycle closes.
"""

from datetime import datetime
from typing import List, Optional

from . import dao
from .config import is_early_promotion_enabled
from .db import get_db, transaction
from .errors import InvalidScore, MemberNotFound, MovieNotAvailable, VettingIncomplete
from .notifications import Notification, ITEM_COMPLETED, NEW_VETTING_ITEM, dispatch
from .schema import Member, Proposal, ProposalStatus, utcnow
from .state import close_cycle_if_idle, promote_next, read_state
from ..util.logging import logger

MIN_SCORE = 0
MAX_SCORE = 10


def validate_score(score) -> int:
    # bool is an int subclass but never a valid score
    if isinstance(score, bool) or not isinstance(score, int):
        raise InvalidScore(f"Score must be an integer, got {score!r}")
    if not MIN_SCORE <= score <= MAX_SCORE:
        raise InvalidScore(f"Score must be between {MIN_SCORE} and {MAX_SCORE}, got {score}")
    return score


def get_watching_movies() -> List[Proposal]:
    """Proposals being watched in the current or an earlier week."""
    with get_db() as conn:
        state = read_state(conn)
        return dao.list_watching_up_to_week(conn, state.week)


def get_pending_votes_for_user(member_id: str) -> List[Proposal]:
    """Watchable proposals with complete vetting that the member has not scored."""
    with get_db() as conn:
        state = read_state(conn)
        return dao.list_pending_votes_for_member(conn, member_id, state.week)


def get_users_pending_vote_for_movie(proposal_id: str) -> List[Member]:
    with get_db() as conn:
        return dao.list_members_pending_vote(conn, proposal_id)


def submit_vote(member_id: str, proposal_id: str, score: int, comment: Optional[str] = None,
                now: datetime = None) -> Proposal:
    """Record or update a member's score for a watched proposal."""
    score = validate_score(score)
    now = now or utcnow()
    notifications: List[Notification] = []

    with transaction() as conn:
        if dao.get_member(conn, member_id) is None:
            raise MemberNotFound(f"Unknown member: {member_id}")

        state = read_state(conn)
        proposal = dao.get_proposal(conn, proposal_id)
        if (proposal is None
                or proposal.status != ProposalStatus.WATCHING
                or proposal.week_number is None
                or proposal.week_number > state.week):
            raise MovieNotAvailable(f"Movie {proposal_id} is not open for voting")

        member_count = dao.count_members(conn)
        if dao.count_vetting_responses(conn, proposal.id) < member_count:
            raise VettingIncomplete("Vetting is not complete for this movie")

        dao.upsert_vote(conn, proposal.id, member_id, score, comment)
        logger.log_operation("vote.recorded", "success", {
            "proposal_id": proposal.id,
            "member_id": member_id,
            "score": score
        })

        if dao.count_votes(conn, proposal.id) >= member_count:
            average = dao.average_score(conn, proposal.id)
            if dao.transition_status(conn, proposal.id, ProposalStatus.WATCHING,
                                     ProposalStatus.COMPLETED, average_score=average):
                proposal.status = ProposalStatus.COMPLETED
                proposal.average_score = average
                logger.log_transition(proposal.id, ProposalStatus.WATCHING.value,
                                      ProposalStatus.COMPLETED.value, {"average_score": average})
                notifications.append(Notification(ITEM_COMPLETED, proposal.title, average_score=average))

                promoted = promote_next(conn, now, allow_early=is_early_promotion_enabled())
                if promoted is not None:
                    notifications.append(Notification(NEW_VETTING_ITEM, promoted.title))

                close_cycle_if_idle(conn)

    dispatch(notifications)
    return proposal
