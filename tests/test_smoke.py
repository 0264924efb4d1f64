"""
Smoke tests for the SQLite foundation: schema, state row and constraints.
"""

import sqlite3

import pytest

from movieclub.core import dao
from movieclub.core.db import get_db, health_check, init_db, transaction
from movieclub.core.schema import AppState, Phase, ProposalStatus
from movieclub.core.state import get_app_state


def test_database_health():
    """Test that database initializes correctly."""
    assert health_check() == True, "Database should be healthy"


def test_init_db_is_idempotent():
    """Running init twice keeps the schema and the data."""
    with transaction() as conn:
        dao.insert_member(conn, "alice", "1234")

    init_db()

    assert health_check()
    with get_db() as conn:
        assert dao.count_members(conn) == 1


def test_default_state_is_submission_week_zero():
    state = get_app_state()
    assert state == AppState(phase=Phase.SUBMISSION, week=0)


def test_state_row_round_trip():
    with transaction() as conn:
        dao.save_state(conn, AppState(phase=Phase.ACTIVE, week=3))
        dao.save_state(conn, AppState(phase=Phase.ACTIVE, week=4))

    with get_db() as conn:
        assert dao.load_state(conn) == AppState(phase=Phase.ACTIVE, week=4)
        assert conn.execute("SELECT COUNT(*) FROM process_state").fetchone()[0] == 1


def test_state_rejects_negative_week():
    with pytest.raises(sqlite3.IntegrityError):
        with transaction() as conn:
            conn.execute("INSERT INTO process_state (id, phase, week) VALUES (1, 'ACTIVE', -1)")


def test_one_active_proposal_per_member(make_member, make_proposal):
    """The store refuses a second non-terminal proposal for the same member."""
    member = make_member()
    make_proposal(member.id)

    with pytest.raises(sqlite3.IntegrityError):
        make_proposal(member.id, status=ProposalStatus.VETTING, week_number=1)


def test_terminal_proposals_do_not_block_new_ones(make_member, make_proposal, fetch):
    member = make_member()
    make_proposal(member.id, status=ProposalStatus.REJECTED, week_number=1)
    make_proposal(member.id, status=ProposalStatus.COMPLETED, week_number=2)
    make_proposal(member.id)

    assert fetch.count("proposals") == 3


def test_vote_score_checked_by_store(make_member, make_proposal):
    member = make_member()
    proposal = make_proposal(member.id, status=ProposalStatus.WATCHING, week_number=1)

    with pytest.raises(sqlite3.IntegrityError):
        with transaction() as conn:
            dao.upsert_vote(conn, proposal.id, member.id, 11)


def test_failed_transaction_rolls_back(make_member, fetch):
    with pytest.raises(RuntimeError):
        with transaction() as conn:
            dao.insert_member(conn, "ghost", "0000")
            raise RuntimeError("abort")

    assert fetch.count("members") == 0
