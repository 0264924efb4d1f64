"""
Periodic trigger for the weekly transition and reminder jobs.

This is the external scheduler the core relies on; the lifecycle handlers
never start timers themselves.
"""

import threading
import time
from typing import Callable, Dict, Optional

from .core.config import get_heartbeat_interval, validate_config
from .core.reminders import send_reminders
from .core.state import run_weekly_transition
from .util.logging import logger

WEEKLY_TRANSITION_TASK = "weekly_transition"
REMINDERS_TASK = "reminders"
DEFAULT_REMINDER_INTERVAL_SEC = 86400

tasks: Dict[str, Dict] = {}  # task_name -> {func, interval, last_run}
running = False
shutdown_event = None


def weekly_transition_task():
    result = run_weekly_transition()
    logger.info(f"Weekly transition: week {result.previous_week} -> {result.current_week}, "
                f"phase {result.phase.value}, promoted {result.promoted_proposal_id or 'nothing'}")


def reminders_task():
    result = send_reminders()
    logger.info(f"Reminders sent: {result['vetting_reminders']} vetting, {result['vote_reminders']} votes")


def register_lifecycle_tasks(transition_interval: Optional[int] = None,
                             reminder_interval: int = DEFAULT_REMINDER_INTERVAL_SEC):
    """Register the weekly transition and reminder jobs."""
    register_task(WEEKLY_TRANSITION_TASK, transition_interval or get_heartbeat_interval(),
                  weekly_transition_task)
    register_task(REMINDERS_TASK, reminder_interval, reminders_task)


def register_task(name: str, interval_sec: int, func: Callable):
    """
    Register a task to be executed periodically.

    Args:
        name: Unique task identifier
        interval_sec: How often to run this task in seconds
        func: Function to call (should be fast and not block)
    """
    if not callable(func):
        raise ValueError(f"Task function must be callable: {func}")

    if interval_sec < 1:
        raise ValueError(f"Interval must be >= 1 second: {interval_sec}")

    issues = validate_config()
    if issues:
        raise ValueError(f"Configuration invalid: {issues}")

    tasks[name] = {
        "func": func,
        "interval": interval_sec,
        "last_run": None
    }

    logger.info(f"Registered heartbeat task '{name}' (every {interval_sec}s)")


def unregister_task(name: str):
    """Remove a task from the registry."""
    if name in tasks:
        del tasks[name]
        logger.info(f"Unregistered heartbeat task '{name}'")


def list_tasks():
    """Return list of registered task names."""
    return list(tasks.keys())


def should_run_task(name: str, task_info: Dict) -> bool:
    """Check if a task should run this cycle."""
    if task_info["last_run"] is None:
        return True

    elapsed = time.monotonic() - task_info["last_run"]
    return elapsed >= task_info["interval"]


def run_task(name: str, task_info: Dict):
    """Execute a task and record timing."""
    start_time = time.monotonic()

    try:
        task_info["func"]()
    except Exception as e:
        task_info["last_run"] = time.monotonic()
        duration = task_info["last_run"] - start_time
        raise RuntimeError(f"Task '{name}' failed after {duration:.2f}s: {e}") from e

    end_time = time.monotonic()
    task_info["last_run"] = end_time
    logger.log_operation(f"heartbeat.{name}", "success", {
        "duration_ms": round((end_time - start_time) * 1000, 2)
    })


def start(poll_interval: float = 1.0):
    """
    Start the heartbeat loop.

    Runs a cooperative scheduling loop that checks task intervals and executes
    tasks when due. A failing task is logged and retried after its interval.
    """
    global running, shutdown_event

    if running:
        raise RuntimeError("Heartbeat already running")

    running = True
    shutdown_event = threading.Event()

    logger.info(f"Starting heartbeat loop with tasks: {list(tasks.keys())}")

    try:
        while running and not shutdown_event.is_set():
            for name, task_info in list(tasks.items()):
                if should_run_task(name, task_info):
                    try:
                        run_task(name, task_info)
                    except RuntimeError as e:
                        logger.error(str(e))

            shutdown_event.wait(poll_interval)
    except KeyboardInterrupt:
        logger.info("Heartbeat interrupted by user")
    finally:
        running = False
        logger.info("Heartbeat loop stopped")


def stop():
    """Stop the heartbeat loop gracefully."""
    global running

    if not running:
        logger.info("Heartbeat not running")
        return

    running = False
    if shutdown_event:
        shutdown_event.set()


def reset_task(name: str):
    """Reset a task's last_run time to force immediate execution."""
    if name in tasks:
        tasks[name]["last_run"] = None


def get_status():
    """Return current heartbeat status for monitoring."""
    return {
        "status": "running" if running else "stopped",
        "tasks": {
            name: {
                "interval_sec": info["interval"],
                "last_run": info["last_run"],
                "next_run": info["last_run"] + info["interval"] if info["last_run"] else None
            }
            for name, info in tasks.items()
        }
    }
