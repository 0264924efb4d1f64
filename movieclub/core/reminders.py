"""
Reminder job: nudges members who still owe a vetting answer or a vote.
Invoked by an external trigger, never by the handlers.
"""

from datetime import datetime, timedelta
from typing import Dict, List

from . import dao
from .config import get_vote_reminder_hours
from .db import get_db
from .notifications import Notification, PENDING_VETTING, PENDING_VOTES, dispatch
from .schema import utcnow
from ..util.logging import logger


def collect_reminders(now: datetime) -> List[Notification]:
    notifications = []
    cutoff = now - timedelta(hours=get_vote_reminder_hours())

    with get_db() as conn:
        vetting = dao.get_earliest_vetting(conn)
        if vetting is not None:
            pending = dao.list_members_pending_vetting(conn, vetting.id)
            if pending:
                notifications.append(Notification(PENDING_VETTING, vetting.title, [m.id for m in pending]))

        state = dao.load_state(conn)
        member_count = dao.count_members(conn)
        for proposal in dao.list_watching_up_to_week(conn, state.week):
            if dao.count_vetting_responses(conn, proposal.id) < member_count:
                continue
            # vetting_start_date approximates when watching began
            if proposal.vetting_start_date and proposal.vetting_start_date > cutoff:
                continue
            pending = dao.list_members_pending_vote(conn, proposal.id)
            if pending:
                notifications.append(Notification(PENDING_VOTES, proposal.title, [m.id for m in pending]))

    return notifications


def send_reminders(now: datetime = None) -> Dict[str, int]:
    now = now or utcnow()
    notifications = collect_reminders(now)
    dispatch(notifications)

    result = {
        "vetting_reminders": sum(len(n.member_ids) for n in notifications if n.kind == PENDING_VETTING),
        "vote_reminders": sum(len(n.member_ids) for n in notifications if n.kind == PENDING_VOTES)
    }
    logger.log_operation("reminders", "success", result)
    return result
