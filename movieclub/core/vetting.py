"""
Vetting handler: members confirm they have not seen the proposal in vetting.
One "seen" answer rejects it on the spot; all members answering "not seen"
moves it to WATCHING.
"""

from typing import Dict, List, Optional

from . import dao
from .db import get_db, transaction
from .errors import MemberNotFound, NoVettingItem
from .schema import Member, Phase, Proposal, ProposalStatus
from .state import has_open_items, write_state
from ..util.logging import logger


def get_vetting_movie() -> Optional[Proposal]:
    """The proposal currently open for vetting (earliest week slot first)."""
    with get_db() as conn:
        return dao.get_earliest_vetting(conn)


def get_users_pending_vetting(proposal_id: str) -> List[Member]:
    """Members who have not acknowledged the proposal yet."""
    with get_db() as conn:
        return dao.list_members_pending_vetting(conn, proposal_id)


def get_vetting_status(member_id: str) -> Dict:
    """Vetting item, whether this member answered, and overall progress."""
    with get_db() as conn:
        proposal = dao.get_earliest_vetting(conn)
        if proposal is None:
            return {"movie": None, "has_vetted": False, "progress": None}

        return {
            "movie": proposal,
            "has_vetted": dao.has_vetted(conn, proposal.id, member_id),
            "progress": {
                "responded": dao.count_vetting_responses(conn, proposal.id),
                "total": dao.count_members(conn)
            }
        }


def submit_vetting(member_id: str, seen: bool) -> Proposal:
    """Record a member's answer for the current vetting proposal.

    Rejection only returns the phase to SUBMISSION when nothing else is still
    in vetting or being watched. Duplicate "not seen" answers are ignored.
    """
    with transaction() as conn:
        if dao.get_member(conn, member_id) is None:
            raise MemberNotFound(f"Unknown member: {member_id}")

        proposal = dao.get_earliest_vetting(conn)
        if proposal is None:
            raise NoVettingItem("No movie is in vetting")

        if seen:
            if not dao.transition_status(conn, proposal.id, ProposalStatus.VETTING, ProposalStatus.REJECTED):
                raise NoVettingItem("Movie is no longer in vetting")
            proposal.status = ProposalStatus.REJECTED
            logger.log_transition(proposal.id, ProposalStatus.VETTING.value, ProposalStatus.REJECTED.value,
                                  {"rejected_by": member_id})

            if not has_open_items(conn, [ProposalStatus.VETTING, ProposalStatus.WATCHING]):
                write_state(conn, phase=Phase.SUBMISSION)
            return proposal

        recorded = dao.add_vetting_response(conn, proposal.id, member_id)
        if not recorded:
            logger.debug(f"Duplicate vetting response ignored for member {member_id} on {proposal.id}")

        responses = dao.count_vetting_responses(conn, proposal.id)
        members = dao.count_members(conn)
        if responses >= members:
            if dao.transition_status(conn, proposal.id, ProposalStatus.VETTING, ProposalStatus.WATCHING):
                proposal.status = ProposalStatus.WATCHING
                logger.log_transition(proposal.id, ProposalStatus.VETTING.value, ProposalStatus.WATCHING.value,
                                      {"responses": responses})

        return proposal
