"""
Typed records for the entity store.
Rows are converted to these dataclasses at the DAO boundary; nothing above
the DAO handles raw sqlite rows.
"""

import sqlite3
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, Optional


class Phase(str, Enum):
    SUBMISSION = "SUBMISSION"
    ACTIVE = "ACTIVE"


class ProposalStatus(str, Enum):
    PROPOSED = "PROPOSED"
    VETTING = "VETTING"
    WATCHING = "WATCHING"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


ACTIVE_STATUSES: FrozenSet[ProposalStatus] = frozenset({
    ProposalStatus.PROPOSED,
    ProposalStatus.VETTING,
    ProposalStatus.WATCHING,
})

# current_status -> statuses it may move to
VALID_TRANSITIONS: Dict[ProposalStatus, FrozenSet[ProposalStatus]] = {
    ProposalStatus.PROPOSED: frozenset({ProposalStatus.VETTING}),
    ProposalStatus.VETTING: frozenset({ProposalStatus.WATCHING, ProposalStatus.REJECTED}),
    ProposalStatus.WATCHING: frozenset({ProposalStatus.COMPLETED}),
    ProposalStatus.REJECTED: frozenset(),
    ProposalStatus.COMPLETED: frozenset(),
}


def can_transition(current: ProposalStatus, target: ProposalStatus) -> bool:
    """Check whether a status transition is part of the lifecycle."""
    return target in VALID_TRANSITIONS.get(current, frozenset())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db_time(value: Optional[datetime]) -> Optional[str]:
    """Serialize a timestamp as ISO-8601 UTC so string order matches time order."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Member:
    id: str
    name: str
    pin: str
    created_at: Optional[datetime] = None

    def to_public_dict(self) -> Dict:
        """Member data safe to hand out (no PIN)."""
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> 'Member':
        return cls(
            id=row["id"],
            name=row["name"],
            pin=row["pin"],
            created_at=from_db_time(row["created_at"])
        )


@dataclass
class Proposal:
    id: str
    title: str
    proposed_by: str
    status: ProposalStatus
    description: Optional[str] = None
    year: Optional[int] = None
    cover_url: Optional[str] = None
    week_number: Optional[int] = None
    vetting_start_date: Optional[datetime] = None
    average_score: Optional[float] = None
    created_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["status"] = self.status.value
        data["vetting_start_date"] = to_db_time(self.vetting_start_date)
        data["created_at"] = to_db_time(self.created_at)
        return data

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> 'Proposal':
        return cls(
            id=row["id"],
            title=row["title"],
            proposed_by=row["proposed_by"],
            status=ProposalStatus(row["status"]),
            description=row["description"],
            year=row["year"],
            cover_url=row["cover_url"],
            week_number=row["week_number"],
            vetting_start_date=from_db_time(row["vetting_start_date"]),
            average_score=row["average_score"],
            created_at=from_db_time(row["created_at"])
        )


@dataclass
class VettingResponse:
    id: str
    proposal_id: str
    member_id: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> 'VettingResponse':
        return cls(
            id=row["id"],
            proposal_id=row["proposal_id"],
            member_id=row["member_id"],
            created_at=from_db_time(row["created_at"])
        )


@dataclass
class Vote:
    id: str
    proposal_id: str
    member_id: str
    score: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> 'Vote':
        return cls(
            id=row["id"],
            proposal_id=row["proposal_id"],
            member_id=row["member_id"],
            score=row["score"],
            comment=row["comment"],
            created_at=from_db_time(row["created_at"])
        )


@dataclass(frozen=True)
class AppState:
    """Process-wide phase and week. Week 0 means no cycle is running."""
    phase: Phase = Phase.SUBMISSION
    week: int = 0

    def to_dict(self) -> Dict:
        return {"phase": self.phase.value, "week": self.week}
