#!/usr/bin/env python3
"""
Periodic trigger: runs the weekly transition and the reminder job on an
interval. Point a process supervisor at this, or call the /cron endpoints
from an external scheduler instead.
"""

import argparse
import sys
from pathlib import Path

# Add the parent directory to sys.path to import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from movieclub.core.config import validate_config
from movieclub.core.db import init_db
from movieclub.heartbeat import (
    DEFAULT_REMINDER_INTERVAL_SEC,
    register_lifecycle_tasks,
    reminders_task,
    start,
    stop,
    weekly_transition_task,
)


def main():
    """Main entry point for heartbeat script."""
    parser = argparse.ArgumentParser(description="Run movie club periodic jobs")
    parser.add_argument("--interval", type=int, default=None,
                        help="Seconds between weekly transition checks (default: HEARTBEAT_INTERVAL_SEC)")
    parser.add_argument("--reminder-interval", type=int, default=DEFAULT_REMINDER_INTERVAL_SEC,
                        help="Seconds between reminder runs")
    parser.add_argument("--once", action="store_true", help="Run each job once and exit")
    args = parser.parse_args()

    issues = validate_config()
    if issues:
        print(f"Configuration invalid: {issues}")
        sys.exit(1)

    init_db()

    if args.once:
        weekly_transition_task()
        reminders_task()
        return

    try:
        register_lifecycle_tasks(args.interval, args.reminder_interval)
        start()
    except KeyboardInterrupt:
        print("\nShutting down gracefully...")
        stop()
    except Exception as e:
        print(f"Critical error: {e}")
        stop()
        sys.exit(1)


if __name__ == "__main__":
    main()
