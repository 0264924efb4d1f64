"""
Read model for a member's view of the club: state, own submission, masked
queue and history with scores.
"""

from typing import Any, Dict, List

from . import dao
from .db import get_db
from .schema import ACTIVE_STATUSES, Proposal, ProposalStatus

MYSTERY_TITLE = "Mystery Movie"


def mask_proposal(proposal: Proposal) -> Dict[str, Any]:
    """Hide everything but scheduling data of someone else's proposal."""
    data = proposal.to_dict()
    data.update({
        "title": MYSTERY_TITLE,
        "description": "???",
        "cover_url": None,
        "year": None
    })
    return data


def get_queue(member_id: str) -> List[Dict[str, Any]]:
    with get_db() as conn:
        queue = dao.list_proposals(conn, [ProposalStatus.PROPOSED])
    return [p.to_dict() if p.proposed_by == member_id else mask_proposal(p) for p in queue]


def get_history() -> List[Dict[str, Any]]:
    """Completed proposals with their average score (one decimal)."""
    with get_db() as conn:
        completed = dao.list_proposals(conn, [ProposalStatus.COMPLETED])
        history = []
        for proposal in completed:
            data = proposal.to_dict()
            average = proposal.average_score
            if average is None:
                average = dao.average_score(conn, proposal.id)
            data["average_score"] = round(average, 1) if average is not None else None
            history.append(data)
    return history


def get_board(member_id: str) -> Dict[str, Any]:
    with get_db() as conn:
        state = dao.load_state(conn)
        mine = dao.get_active_proposal_for_member(conn, member_id)
        stats = {
            "submitted": dao.count_proposals(conn, ACTIVE_STATUSES),
            "total_members": dao.count_members(conn)
        }

    return {
        "state": state.to_dict(),
        "my_submission": mine.to_dict() if mine else None,
        "stats": stats,
        "queue": get_queue(member_id),
        "history": get_history()
    }
