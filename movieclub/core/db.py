"""
SQLite foundation for the entity store.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator

from .config import get_db_path, ensure_db_directory

# Seconds a writer waits on a locked database before giving up
BUSY_TIMEOUT_SEC = 30.0

REQUIRED_TABLES = ['members', 'proposals', 'vetting_responses', 'votes', 'process_state']


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection in autocommit mode."""
    ensure_db_directory()
    conn = sqlite3.connect(get_db_path(), timeout=BUSY_TIMEOUT_SEC, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction() -> Generator[sqlite3.Connection, None, None]:
    """Run a block of reads and writes as one write transaction.

    BEGIN IMMEDIATE takes the write lock up front, so concurrent handlers are
    serialized and every read inside the block sees committed state.
    """
    with get_db() as conn:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")


def init_db():
    """Initialize the database with required tables."""
    with get_db() as conn:
        cursor = conn.cursor()

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS members (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL UNIQUE,
                pin TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS proposals (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                description TEXT,
                year INTEGER,
                cover_url TEXT,
                proposed_by TEXT NOT NULL REFERENCES members(id),
                status TEXT NOT NULL DEFAULT 'PROPOSED'
                    CHECK (status IN ('PROPOSED', 'VETTING', 'WATCHING', 'REJECTED', 'COMPLETED')),
                week_number INTEGER,
                vetting_start_date TEXT,
                average_score REAL,
                created_at TEXT NOT NULL
            )
        ''')

        # One non-terminal proposal per member
        cursor.execute('''
            CREATE UNIQUE INDEX IF NOT EXISTS idx_proposals_active_slot
            ON proposals(proposed_by)
            WHERE status IN ('PROPOSED', 'VETTING', 'WATCHING')
        ''')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_proposals_status_week ON proposals(status, week_number)')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS vetting_responses (
                id TEXT PRIMARY KEY,
                proposal_id TEXT NOT NULL REFERENCES proposals(id),
                member_id TEXT NOT NULL REFERENCES members(id),
                created_at TEXT NOT NULL,
                UNIQUE (proposal_id, member_id)
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS votes (
                id TEXT PRIMARY KEY,
                proposal_id TEXT NOT NULL REFERENCES proposals(id),
                member_id TEXT NOT NULL REFERENCES members(id),
                score INTEGER NOT NULL CHECK (score BETWEEN 0 AND 10),
                comment TEXT,
                created_at TEXT NOT NULL,
                UNIQUE (proposal_id, member_id)
            )
        ''')

        # Single typed row holding the phase and week
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS process_state (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                phase TEXT NOT NULL DEFAULT 'SUBMISSION' CHECK (phase IN ('SUBMISSION', 'ACTIVE')),
                week INTEGER NOT NULL DEFAULT 0 CHECK (week >= 0)
            )
        ''')


def health_check():
    """Check database health."""
    try:
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table';")
            tables = cursor.fetchall()

            # Check if required tables exist
            table_names = [table[0] for table in tables]
            return all(table in table_names for table in REQUIRED_TABLES)
    except sqlite3.Error:
        return False
