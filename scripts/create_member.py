#!/usr/bin/env python3
"""
Create a club member from the command line.
"""

import argparse
import getpass
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from movieclub.core.db import init_db
from movieclub.core.errors import InvalidMember
from movieclub.core.members import create_member, list_members


def main():
    parser = argparse.ArgumentParser(description="Create a movie club member")
    parser.add_argument("name", nargs="?", help="Member name (prompted if omitted)")
    parser.add_argument("--pin", help="4-digit PIN (prompted if omitted)")
    parser.add_argument("--list", action="store_true", help="List existing members and exit")
    args = parser.parse_args()

    init_db()

    if args.list:
        for member in list_members():
            print(f"{member.id}  {member.name}")
        return

    name = args.name or input("Enter name: ").strip()
    pin = args.pin or getpass.getpass("Enter 4-digit PIN: ").strip()

    try:
        member = create_member(name, pin)
    except InvalidMember as e:
        print(f"Failed: {e.message}")
        sys.exit(1)

    print(f"Member '{member.name}' created with id {member.id}")


if __name__ == "__main__":
    main()
