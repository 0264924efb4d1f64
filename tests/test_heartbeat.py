"""
Heartbeat scheduler that triggers the weekly transition and reminders.
"""

import threading
import time
from unittest.mock import MagicMock, patch

import pytest

from movieclub import heartbeat
from movieclub.heartbeat import (
    get_status,
    list_tasks,
    register_task,
    reset_task,
    run_task,
    should_run_task,
    start,
    stop,
    unregister_task,
)
from movieclub.core.schema import Phase, ProposalStatus

from conftest import DAY, NOW


@pytest.fixture(autouse=True)
def reset_heartbeat():
    """Reset heartbeat state between tests."""
    heartbeat.tasks.clear()
    heartbeat.running = False
    heartbeat.shutdown_event = None
    yield
    heartbeat.tasks.clear()
    heartbeat.running = False


class TestHeartbeatRegistration:
    """Test task registration functionality."""

    def test_register_task_valid(self):
        register_task("weekly_transition", 30, lambda: None)
        assert list_tasks() == ["weekly_transition"]

    def test_register_task_invalid_func(self):
        with pytest.raises(ValueError, match="Task function must be callable"):
            register_task("bad_task", 30, "not_callable")

    def test_register_task_invalid_interval(self):
        with pytest.raises(ValueError, match="Interval must be >= 1 second"):
            register_task("bad_task", 0, lambda: None)

    def test_register_duplicate_task(self):
        """Registering an existing name replaces it."""
        register_task("duplicate", 30, lambda: None)
        register_task("duplicate", 60, lambda: None)

        assert len(list_tasks()) == 1
        assert heartbeat.tasks["duplicate"]["interval"] == 60

    def test_unregister_task(self):
        register_task("reminders", 30, lambda: None)
        unregister_task("reminders")
        assert "reminders" not in list_tasks()

    def test_unregister_nonexistent_task(self):
        unregister_task("nonexistent")

    @patch('movieclub.heartbeat.validate_config', return_value=["Invalid setting"])
    def test_register_with_invalid_config(self, mock_validate):
        with pytest.raises(ValueError, match="Configuration invalid"):
            register_task("bad_config", 30, lambda: None)

    def test_register_with_bad_weekday(self, monkeypatch):
        monkeypatch.setenv("SCHEDULE_WEEKDAY", "9")
        with pytest.raises(ValueError, match="SCHEDULE_WEEKDAY"):
            register_task("weekly_transition", 30, lambda: None)


class TestHeartbeatScheduling:

    def test_should_run_first_time(self):
        assert should_run_task("test", {"last_run": None, "interval": 30}) is True

    def test_should_run_when_due(self):
        task_info = {"last_run": time.monotonic() - 35, "interval": 30}
        assert should_run_task("test", task_info) is True

    def test_should_not_run_too_soon(self):
        task_info = {"last_run": time.monotonic() - 10, "interval": 30}
        assert should_run_task("test", task_info) is False

    def test_reset_task_forces_run(self):
        register_task("reminders", 30, lambda: None)
        heartbeat.tasks["reminders"]["last_run"] = time.monotonic()

        reset_task("reminders")

        assert should_run_task("reminders", heartbeat.tasks["reminders"]) is True


class TestHeartbeatExecution:

    def test_run_task_success(self):
        mock_func = MagicMock()
        task_info = {"func": mock_func, "interval": 30, "last_run": None}

        run_task("weekly_transition", task_info)

        mock_func.assert_called_once()
        assert task_info["last_run"] is not None

    def test_run_task_failure(self):
        mock_func = MagicMock(side_effect=ValueError("Task failed"))
        task_info = {"func": mock_func, "interval": 30, "last_run": None}

        with pytest.raises(RuntimeError, match="Task failed"):
            run_task("failing_task", task_info)

        # A failed run still waits a full interval before retrying
        assert task_info["last_run"] is not None

    def test_start_already_running(self):
        heartbeat.running = True
        with pytest.raises(RuntimeError, match="already running"):
            start()

    def test_stop_not_running(self):
        stop()
        assert heartbeat.running is False

    def test_loop_runs_tasks_until_stopped(self):
        calls = []
        ran = threading.Event()

        def task():
            calls.append(1)
            ran.set()

        register_task("weekly_transition", 60, task)
        worker = threading.Thread(target=start, kwargs={"poll_interval": 0.01})
        worker.start()

        assert ran.wait(5)
        stop()
        worker.join(5)

        assert not worker.is_alive()
        assert calls == [1]
        assert get_status()["status"] == "stopped"

    def test_loop_survives_failing_task(self):
        ran = threading.Event()

        def failing():
            ran.set()
            raise RuntimeError("database locked")

        register_task("weekly_transition", 60, failing)
        worker = threading.Thread(target=start, kwargs={"poll_interval": 0.01})
        worker.start()

        assert ran.wait(5)
        stop()
        worker.join(5)
        assert not worker.is_alive()


class TestLifecycleTasks:
    """The weekly transition and reminder jobs."""

    def test_register_lifecycle_tasks(self, monkeypatch):
        monkeypatch.setenv("HEARTBEAT_INTERVAL_SEC", "600")

        heartbeat.register_lifecycle_tasks(reminder_interval=3600)

        assert sorted(list_tasks()) == ["reminders", "weekly_transition"]
        assert heartbeat.tasks["weekly_transition"]["interval"] == 600
        assert heartbeat.tasks["reminders"]["interval"] == 3600

    def test_explicit_transition_interval(self):
        heartbeat.register_lifecycle_tasks(transition_interval=30)
        assert heartbeat.tasks["weekly_transition"]["interval"] == 30
        assert heartbeat.tasks["reminders"]["interval"] == heartbeat.DEFAULT_REMINDER_INTERVAL_SEC

    def test_tasks_run_against_the_store(self, make_member, make_proposal, set_state, fetch):
        alice = make_member("alice")
        bob = make_member("bob")
        make_proposal(alice.id, status=ProposalStatus.WATCHING, week_number=1, vetting_start_date=NOW - 4000 * DAY)
        due = make_proposal(bob.id, week_number=2, vetting_start_date=NOW - 3993 * DAY)
        set_state(Phase.ACTIVE, 1)

        heartbeat.register_lifecycle_tasks()
        run_task("weekly_transition", heartbeat.tasks["weekly_transition"])
        run_task("reminders", heartbeat.tasks["reminders"])

        assert fetch.state().week == 2
        assert fetch.proposal(due.id).status == ProposalStatus.VETTING


class TestHeartbeatStatus:

    def test_get_status_stopped(self):
        status = get_status()
        assert status["status"] == "stopped"
        assert status["tasks"] == {}

    def test_get_status_lists_tasks(self):
        register_task("reminders", 60, lambda: None)
        heartbeat.running = True

        status = get_status()

        assert status["status"] == "running"
        assert status["tasks"]["reminders"]["interval_sec"] == 60
        assert status["tasks"]["reminders"]["next_run"] is None
