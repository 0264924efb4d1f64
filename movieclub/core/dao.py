"""
Entity store access: members, proposals, vetting responses, votes and the
process state row.

Every function takes an open connection so handlers can compose several calls
inside one transaction. Writes that must be race-safe are expressed as
conditional updates or constraint-backed inserts, never check-then-insert.
"""

import sqlite3
import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from .schema import (
    AppState,
    Member,
    Phase,
    Proposal,
    ProposalStatus,
    can_transition,
    to_db_time,
    utcnow,
)

PROPOSAL_COLUMNS = (
    "id, title, description, year, cover_url, proposed_by, status, "
    "week_number, vetting_start_date, average_score, created_at"
)


def new_id() -> str:
    return str(uuid.uuid4())


def _placeholders(values: Iterable) -> str:
    return ", ".join("?" for _ in values)


# Members

def insert_member(conn: sqlite3.Connection, name: str, pin: str) -> Member:
    member = Member(id=new_id(), name=name, pin=pin, created_at=utcnow())
    conn.execute(
        "INSERT INTO members (id, name, pin, created_at) VALUES (?, ?, ?, ?)",
        (member.id, member.name, member.pin, to_db_time(member.created_at))
    )
    return member


def get_member(conn: sqlite3.Connection, member_id: str) -> Optional[Member]:
    row = conn.execute(
        "SELECT id, name, pin, created_at FROM members WHERE id = ?", (member_id,)
    ).fetchone()
    return Member.from_row(row) if row else None


def get_member_by_name(conn: sqlite3.Connection, name: str) -> Optional[Member]:
    row = conn.execute(
        "SELECT id, name, pin, created_at FROM members WHERE name = ?", (name,)
    ).fetchone()
    return Member.from_row(row) if row else None


def list_members(conn: sqlite3.Connection) -> List[Member]:
    rows = conn.execute(
        "SELECT id, name, pin, created_at FROM members ORDER BY created_at, name"
    ).fetchall()
    return [Member.from_row(row) for row in rows]


def count_members(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM members").fetchone()[0]


# Proposals

def insert_proposal(conn: sqlite3.Connection, member_id: str, title: str,
                    cover_url: Optional[str] = None, description: Optional[str] = None,
                    year: Optional[int] = None,
                    status: ProposalStatus = ProposalStatus.PROPOSED,
                    week_number: Optional[int] = None,
                    vetting_start_date: Optional[datetime] = None) -> Proposal:
    proposal = Proposal(
        id=new_id(),
        title=title,
        proposed_by=member_id,
        status=status,
        description=description,
        year=year,
        cover_url=cover_url,
        week_number=week_number,
        vetting_start_date=vetting_start_date,
        created_at=utcnow()
    )
    conn.execute(
        f"INSERT INTO proposals ({PROPOSAL_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            proposal.id, proposal.title, proposal.description, proposal.year,
            proposal.cover_url, proposal.proposed_by, proposal.status.value,
            proposal.week_number, to_db_time(proposal.vetting_start_date),
            proposal.average_score, to_db_time(proposal.created_at)
        )
    )
    return proposal


def get_proposal(conn: sqlite3.Connection, proposal_id: str) -> Optional[Proposal]:
    row = conn.execute(
        f"SELECT {PROPOSAL_COLUMNS} FROM proposals WHERE id = ?", (proposal_id,)
    ).fetchone()
    return Proposal.from_row(row) if row else None


def update_proposal_details(conn: sqlite3.Connection, proposal_id: str, title: str,
                            cover_url: Optional[str], description: Optional[str] = None,
                            year: Optional[int] = None):
    conn.execute(
        "UPDATE proposals SET title = ?, cover_url = ?, description = ?, year = ? WHERE id = ?",
        (title, cover_url, description, year, proposal_id)
    )


def get_active_proposal_for_member(conn: sqlite3.Connection, member_id: str) -> Optional[Proposal]:
    """The member's non-terminal proposal, if any."""
    row = conn.execute(
        f"""SELECT {PROPOSAL_COLUMNS} FROM proposals
            WHERE proposed_by = ? AND status IN ('PROPOSED', 'VETTING', 'WATCHING')""",
        (member_id,)
    ).fetchone()
    return Proposal.from_row(row) if row else None


def get_latest_proposal_for_member(conn: sqlite3.Connection, member_id: str) -> Optional[Proposal]:
    """The member's most recently created proposal, in any status."""
    row = conn.execute(
        f"""SELECT {PROPOSAL_COLUMNS} FROM proposals
            WHERE proposed_by = ?
            ORDER BY created_at DESC, rowid DESC LIMIT 1""",
        (member_id,)
    ).fetchone()
    return Proposal.from_row(row) if row else None


def list_proposals(conn: sqlite3.Connection, statuses: Iterable[ProposalStatus]) -> List[Proposal]:
    """Proposals with any of the given statuses, in week order."""
    values = [s.value for s in statuses]
    rows = conn.execute(
        f"""SELECT {PROPOSAL_COLUMNS} FROM proposals
            WHERE status IN ({_placeholders(values)})
            ORDER BY week_number IS NULL, week_number, created_at""",
        values
    ).fetchall()
    return [Proposal.from_row(row) for row in rows]


def count_proposals(conn: sqlite3.Connection, statuses: Iterable[ProposalStatus]) -> int:
    values = [s.value for s in statuses]
    return conn.execute(
        f"SELECT COUNT(*) FROM proposals WHERE status IN ({_placeholders(values)})", values
    ).fetchone()[0]


def list_unscheduled_proposals(conn: sqlite3.Connection) -> List[Proposal]:
    """PROPOSED items waiting for the next batch, oldest first."""
    rows = conn.execute(
        f"""SELECT {PROPOSAL_COLUMNS} FROM proposals
            WHERE status = 'PROPOSED' AND week_number IS NULL
            ORDER BY created_at"""
    ).fetchall()
    return [Proposal.from_row(row) for row in rows]


def count_unscheduled_proposals(conn: sqlite3.Connection) -> int:
    return conn.execute(
        "SELECT COUNT(*) FROM proposals WHERE status = 'PROPOSED' AND week_number IS NULL"
    ).fetchone()[0]


def count_in_flight(conn: sqlite3.Connection) -> int:
    """Items that still belong to the running schedule.

    Unscheduled PROPOSED rows wait for the next batch and are not counted.
    """
    return conn.execute(
        """SELECT COUNT(*) FROM proposals
           WHERE status IN ('VETTING', 'WATCHING')
              OR (status = 'PROPOSED' AND week_number IS NOT NULL)"""
    ).fetchone()[0]


def get_earliest_vetting(conn: sqlite3.Connection) -> Optional[Proposal]:
    """The vetting proposal holding the earliest week slot."""
    row = conn.execute(
        f"""SELECT {PROPOSAL_COLUMNS} FROM proposals
            WHERE status = 'VETTING'
            ORDER BY week_number IS NULL, week_number, created_at LIMIT 1"""
    ).fetchone()
    return Proposal.from_row(row) if row else None


def get_vetting_for_week(conn: sqlite3.Connection, week: int) -> Optional[Proposal]:
    row = conn.execute(
        f"SELECT {PROPOSAL_COLUMNS} FROM proposals WHERE status = 'VETTING' AND week_number = ? LIMIT 1",
        (week,)
    ).fetchone()
    return Proposal.from_row(row) if row else None


def list_watching_up_to_week(conn: sqlite3.Connection, week: int) -> List[Proposal]:
    rows = conn.execute(
        f"""SELECT {PROPOSAL_COLUMNS} FROM proposals
            WHERE status = 'WATCHING' AND week_number IS NOT NULL AND week_number <= ?
            ORDER BY week_number, created_at""",
        (week,)
    ).fetchall()
    return [Proposal.from_row(row) for row in rows]


def list_pending_votes_for_member(conn: sqlite3.Connection, member_id: str, week: int) -> List[Proposal]:
    """Watched items up to a week with full vetting that the member has not scored."""
    rows = conn.execute(
        f"""SELECT {PROPOSAL_COLUMNS} FROM proposals p
            WHERE p.status = 'WATCHING' AND p.week_number IS NOT NULL AND p.week_number <= ?
              AND NOT EXISTS (SELECT 1 FROM votes v WHERE v.proposal_id = p.id AND v.member_id = ?)
              AND p.id IN (SELECT proposal_id FROM vetting_responses
                           GROUP BY proposal_id
                           HAVING COUNT(*) >= (SELECT COUNT(*) FROM members))
            ORDER BY p.week_number, p.created_at""",
        (week, member_id)
    ).fetchall()
    return [Proposal.from_row(row) for row in rows]


def schedule_proposal(conn: sqlite3.Connection, proposal_id: str, week_number: int,
                      vetting_start_date: datetime):
    conn.execute(
        "UPDATE proposals SET week_number = ?, vetting_start_date = ? WHERE id = ? AND status = 'PROPOSED'",
        (week_number, to_db_time(vetting_start_date), proposal_id)
    )


def transition_status(conn: sqlite3.Connection, proposal_id: str, expected: ProposalStatus,
                      target: ProposalStatus, average_score: Optional[float] = None) -> bool:
    """Move a proposal from expected to target status.

    Returns False when the row was no longer in the expected status, so the
    caller can skip side effects that belong to the transition.
    """
    if not can_transition(expected, target):
        raise ValueError(f"Invalid transition {expected.value} -> {target.value}")

    if average_score is not None:
        cursor = conn.execute(
            "UPDATE proposals SET status = ?, average_score = ? WHERE id = ? AND status = ?",
            (target.value, average_score, proposal_id, expected.value)
        )
    else:
        cursor = conn.execute(
            "UPDATE proposals SET status = ? WHERE id = ? AND status = ?",
            (target.value, proposal_id, expected.value)
        )
    return cursor.rowcount == 1


def max_due_week(conn: sqlite3.Connection, now: datetime,
                 statuses: Iterable[ProposalStatus] = None) -> int:
    """Highest week number whose vetting start date has arrived, 0 if none."""
    query = """SELECT MAX(week_number) FROM proposals
               WHERE week_number IS NOT NULL AND vetting_start_date IS NOT NULL
                 AND vetting_start_date <= ?"""
    params = [to_db_time(now)]
    if statuses is not None:
        values = [s.value for s in statuses]
        query += f" AND status IN ({_placeholders(values)})"
        params.extend(values)

    row = conn.execute(query, params).fetchone()
    return row[0] or 0


def find_next_proposed(conn: sqlite3.Connection, due_before: Optional[datetime] = None) -> Optional[Proposal]:
    """Earliest scheduled PROPOSED item, optionally only one whose date has arrived."""
    query = f"""SELECT {PROPOSAL_COLUMNS} FROM proposals
                WHERE status = 'PROPOSED' AND week_number IS NOT NULL"""
    params = []
    if due_before is not None:
        query += " AND vetting_start_date IS NOT NULL AND vetting_start_date <= ?"
        params.append(to_db_time(due_before))
    query += " ORDER BY week_number, created_at LIMIT 1"

    row = conn.execute(query, params).fetchone()
    return Proposal.from_row(row) if row else None


# Vetting responses

def add_vetting_response(conn: sqlite3.Connection, proposal_id: str, member_id: str) -> bool:
    """Record a NOT_SEEN acknowledgment. Returns False for a duplicate."""
    cursor = conn.execute(
        """INSERT INTO vetting_responses (id, proposal_id, member_id, created_at)
           VALUES (?, ?, ?, ?)
           ON CONFLICT (proposal_id, member_id) DO NOTHING""",
        (new_id(), proposal_id, member_id, to_db_time(utcnow()))
    )
    return cursor.rowcount == 1


def count_vetting_responses(conn: sqlite3.Connection, proposal_id: str) -> int:
    return conn.execute(
        "SELECT COUNT(*) FROM vetting_responses WHERE proposal_id = ?", (proposal_id,)
    ).fetchone()[0]


def has_vetted(conn: sqlite3.Connection, proposal_id: str, member_id: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM vetting_responses WHERE proposal_id = ? AND member_id = ?",
        (proposal_id, member_id)
    ).fetchone()
    return row is not None


def list_members_pending_vetting(conn: sqlite3.Connection, proposal_id: str) -> List[Member]:
    rows = conn.execute(
        """SELECT id, name, pin, created_at FROM members
           WHERE id NOT IN (SELECT member_id FROM vetting_responses WHERE proposal_id = ?)
           ORDER BY created_at, name""",
        (proposal_id,)
    ).fetchall()
    return [Member.from_row(row) for row in rows]


# Votes

def upsert_vote(conn: sqlite3.Connection, proposal_id: str, member_id: str, score: int,
                comment: Optional[str] = None):
    """Insert a vote or update the existing one in place."""
    conn.execute(
        """INSERT INTO votes (id, proposal_id, member_id, score, comment, created_at)
           VALUES (?, ?, ?, ?, ?, ?)
           ON CONFLICT (proposal_id, member_id)
           DO UPDATE SET score = excluded.score, comment = excluded.comment""",
        (new_id(), proposal_id, member_id, score, comment, to_db_time(utcnow()))
    )


def count_votes(conn: sqlite3.Connection, proposal_id: str) -> int:
    return conn.execute(
        "SELECT COUNT(*) FROM votes WHERE proposal_id = ?", (proposal_id,)
    ).fetchone()[0]


def average_score(conn: sqlite3.Connection, proposal_id: str) -> Optional[float]:
    return conn.execute(
        "SELECT AVG(score) FROM votes WHERE proposal_id = ?", (proposal_id,)
    ).fetchone()[0]


def list_members_pending_vote(conn: sqlite3.Connection, proposal_id: str) -> List[Member]:
    rows = conn.execute(
        """SELECT id, name, pin, created_at FROM members
           WHERE id NOT IN (SELECT member_id FROM votes WHERE proposal_id = ?)
           ORDER BY created_at, name""",
        (proposal_id,)
    ).fetchall()
    return [Member.from_row(row) for row in rows]


# Process state

def load_state(conn: sqlite3.Connection) -> AppState:
    row = conn.execute("SELECT phase, week FROM process_state WHERE id = 1").fetchone()
    if row is None:
        return AppState()
    return AppState(phase=Phase(row["phase"]), week=row["week"])


def save_state(conn: sqlite3.Connection, state: AppState):
    conn.execute(
        """INSERT INTO process_state (id, phase, week) VALUES (1, ?, ?)
           ON CONFLICT (id) DO UPDATE SET phase = excluded.phase, week = excluded.week""",
        (state.phase.value, state.week)
    )
