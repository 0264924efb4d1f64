"""
Tests for the typed records and the status transition table.
"""

from datetime import datetime, timedelta, timezone

import pytest

from movieclub.core import dao
from movieclub.core.db import transaction
from movieclub.core.schema import (
    ACTIVE_STATUSES,
    AppState,
    Member,
    Phase,
    Proposal,
    ProposalStatus,
    can_transition,
    from_db_time,
    to_db_time,
)


class TestTransitions:
    """The lifecycle only moves forward along its edges."""

    @pytest.mark.parametrize("current,target", [
        (ProposalStatus.PROPOSED, ProposalStatus.VETTING),
        (ProposalStatus.VETTING, ProposalStatus.WATCHING),
        (ProposalStatus.VETTING, ProposalStatus.REJECTED),
        (ProposalStatus.WATCHING, ProposalStatus.COMPLETED),
    ])
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize("current,target", [
        (ProposalStatus.PROPOSED, ProposalStatus.WATCHING),
        (ProposalStatus.WATCHING, ProposalStatus.REJECTED),
        (ProposalStatus.VETTING, ProposalStatus.PROPOSED),
        (ProposalStatus.REJECTED, ProposalStatus.VETTING),
        (ProposalStatus.COMPLETED, ProposalStatus.WATCHING),
    ])
    def test_rejected(self, current, target):
        assert not can_transition(current, target)

    def test_dao_refuses_invalid_transition(self, make_member, make_proposal):
        member = make_member()
        proposal = make_proposal(member.id)

        with pytest.raises(ValueError, match="Invalid transition"):
            with transaction() as conn:
                dao.transition_status(conn, proposal.id, ProposalStatus.PROPOSED, ProposalStatus.COMPLETED)

    def test_conditional_transition_reports_stale_status(self, make_member, make_proposal, fetch):
        member = make_member()
        proposal = make_proposal(member.id, status=ProposalStatus.VETTING, week_number=1)

        with transaction() as conn:
            first = dao.transition_status(conn, proposal.id, ProposalStatus.VETTING, ProposalStatus.WATCHING)
            second = dao.transition_status(conn, proposal.id, ProposalStatus.VETTING, ProposalStatus.REJECTED)

        assert first is True
        assert second is False
        assert fetch.proposal(proposal.id).status == ProposalStatus.WATCHING


class TestRecords:

    def test_active_statuses(self):
        assert ACTIVE_STATUSES == {ProposalStatus.PROPOSED, ProposalStatus.VETTING, ProposalStatus.WATCHING}

    def test_proposal_is_active(self):
        proposal = Proposal(id="p1", title="Alien", proposed_by="m1", status=ProposalStatus.WATCHING)
        assert proposal.is_active
        proposal.status = ProposalStatus.COMPLETED
        assert not proposal.is_active

    def test_proposal_to_dict_serializes_enums_and_dates(self):
        start = datetime(2026, 10, 19, tzinfo=timezone.utc)
        proposal = Proposal(id="p1", title="Alien", proposed_by="m1", status=ProposalStatus.PROPOSED,
                            week_number=2, vetting_start_date=start)

        data = proposal.to_dict()

        assert data["status"] == "PROPOSED"
        assert data["vetting_start_date"] == "2026-10-19T00:00:00.000000+00:00"
        assert data["week_number"] == 2

    def test_member_public_dict_hides_pin(self):
        member = Member(id="m1", name="alice", pin="1234")
        assert member.to_public_dict() == {"id": "m1", "name": "alice"}

    def test_app_state_defaults(self):
        state = AppState()
        assert state.phase == Phase.SUBMISSION
        assert state.week == 0
        assert state.to_dict() == {"phase": "SUBMISSION", "week": 0}


class TestTimestamps:

    def test_naive_datetime_is_treated_as_utc(self):
        naive = datetime(2026, 1, 5, 8, 30)
        assert from_db_time(to_db_time(naive)) == naive.replace(tzinfo=timezone.utc)

    def test_other_offsets_are_normalized(self):
        cet = timezone(timedelta(hours=1))
        value = datetime(2026, 1, 5, 9, 30, tzinfo=cet)
        assert to_db_time(value) == "2026-01-05T08:30:00.000000+00:00"

    def test_string_order_matches_time_order(self):
        earlier = datetime(2026, 1, 5, 8, 30, 0, 999999, tzinfo=timezone.utc)
        later = datetime(2026, 1, 5, 8, 30, 1, tzinfo=timezone.utc)
        assert to_db_time(earlier) < to_db_time(later)

    def test_none_passes_through(self):
        assert to_db_time(None) is None
        assert from_db_time(None) is None
