"""
Member administration. Members are created by an admin and never deleted.
"""

import sqlite3
from typing import List

from . import dao
from .db import get_db, transaction
from .errors import InvalidMember, MemberNotFound
from .schema import Member
from ..util.logging import logger

PIN_LENGTH = 4


def validate_pin(pin: str) -> str:
    if not pin or len(pin) != PIN_LENGTH or not pin.isdigit():
        raise InvalidMember(f"PIN must be {PIN_LENGTH} digits")
    return pin


def create_member(name: str, pin: str) -> Member:
    """Create a member with a unique name and a numeric PIN."""
    name = (name or "").strip()
    if not name:
        raise InvalidMember("Name is required")
    validate_pin(pin)

    try:
        with transaction() as conn:
            if dao.get_member_by_name(conn, name) is not None:
                raise InvalidMember(f"Member '{name}' already exists")
            member = dao.insert_member(conn, name, pin)
    except sqlite3.IntegrityError as e:
        raise InvalidMember(f"Member '{name}' already exists") from e

    logger.log_operation("member.created", "success", {"member_id": member.id, "name": name})
    return member


def get_member(member_id: str) -> Member:
    with get_db() as conn:
        member = dao.get_member(conn, member_id)
    if member is None:
        raise MemberNotFound(f"Unknown member: {member_id}")
    return member


def list_members() -> List[Member]:
    with get_db() as conn:
        return dao.list_members(conn)


def count_members() -> int:
    with get_db() as conn:
        return dao.count_members(conn)
