"""
Shared fixtures: a fresh SQLite database per test and a notifier that
records what the handlers emitted.
"""

from datetime import datetime, timedelta, timezone

import pytest

from movieclub.core import dao
from movieclub.core.db import get_db, init_db, transaction
from movieclub.core.notifications import NotificationSink, set_notifier
from movieclub.core.schema import AppState, Phase, ProposalStatus

# A Wednesday; the next Monday is 2026-10-19
NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)
DAY = timedelta(days=1)


class RecordingNotifier(NotificationSink):
    def __init__(self):
        self.calls = []

    def notify_new_vetting_item(self, title):
        self.calls.append(("new_vetting_item", title))

    def notify_pending_vetting(self, member_ids, title):
        self.calls.append(("pending_vetting", title, sorted(member_ids)))

    def notify_pending_votes(self, member_ids, title):
        self.calls.append(("pending_votes", title, sorted(member_ids)))

    def notify_item_completed(self, title, average_score):
        self.calls.append(("item_completed", title, average_score))

    def of_kind(self, kind):
        return [c for c in self.calls if c[0] == kind]


@pytest.fixture(autouse=True)
def test_db(tmp_path, monkeypatch):
    """Point the store at a temporary database file."""
    db_path = tmp_path / "movieclub.db"
    monkeypatch.setenv("DB_PATH", str(db_path))
    monkeypatch.delenv("SCHEDULE_SEED", raising=False)
    monkeypatch.delenv("NOTIFY_WEBHOOK_URL", raising=False)
    monkeypatch.setenv("EARLY_PROMOTION_ENABLED", "true")
    init_db()
    yield str(db_path)


@pytest.fixture(autouse=True)
def notifier():
    sink = RecordingNotifier()
    set_notifier(sink)
    yield sink
    set_notifier(None)


@pytest.fixture
def make_member():
    counter = {"n": 0}

    def _make(name=None, pin="1234"):
        counter["n"] += 1
        with transaction() as conn:
            return dao.insert_member(conn, name or f"member{counter['n']}", pin)

    return _make


@pytest.fixture
def make_proposal():
    def _make(member_id, status=ProposalStatus.PROPOSED, week_number=None,
              vetting_start_date=None, title=None, cover_url=None):
        with transaction() as conn:
            return dao.insert_proposal(
                conn, member_id, title or f"Movie of {member_id[:8]}",
                cover_url=cover_url,
                status=status,
                week_number=week_number,
                vetting_start_date=vetting_start_date
            )

    return _make


@pytest.fixture
def set_state():
    def _set(phase=Phase.ACTIVE, week=1):
        with transaction() as conn:
            dao.save_state(conn, AppState(phase=phase, week=week))

    return _set


@pytest.fixture
def add_vetting():
    def _add(proposal_id, *member_ids):
        with transaction() as conn:
            for member_id in member_ids:
                dao.add_vetting_response(conn, proposal_id, member_id)

    return _add


@pytest.fixture
def add_vote():
    def _add(proposal_id, member_id, score):
        with transaction() as conn:
            dao.upsert_vote(conn, proposal_id, member_id, score)

    return _add


@pytest.fixture
def fetch():
    """Read helpers that bypass the handlers."""
    class Fetch:
        @staticmethod
        def proposal(proposal_id):
            with get_db() as conn:
                return dao.get_proposal(conn, proposal_id)

        @staticmethod
        def state():
            with get_db() as conn:
                return dao.load_state(conn)

        @staticmethod
        def proposals(*statuses):
            with get_db() as conn:
                return dao.list_proposals(conn, statuses or list(ProposalStatus))

        @staticmethod
        def count(table):
            with get_db() as conn:
                return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    return Fetch
