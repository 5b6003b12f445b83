"""Tests for the start/restart state machine of ProcessSupervisor."""

import pytest

from buildrun.errors import RESTARTING, SPAWN_FAILED, STARTING, SpawnFailed, TerminationFailed
from buildrun.local.supervisor import IDLE, RESTARTING_STATE, RUNNING, ProcessSupervisor


@pytest.fixture
def supervisor(spawner):
    return ProcessSupervisor(spawner=spawner)


class TestStart:

    def test_fresh_supervisor_is_idle(self, supervisor):
        assert supervisor.state == IDLE
        assert supervisor.current_process is None
        assert supervisor.restart_pending is False

    def test_first_call_starts_exactly_one_process(self, supervisor, spawner, kinds):
        supervisor.ensure_running("/out/app.py", ["--port", "1"])

        assert supervisor.state == RUNNING
        assert len(spawner.children) == 1
        assert supervisor.current_process is spawner.children[0]
        assert spawner.children[0].args == ("--port", "1")
        assert kinds() == [STARTING]

    def test_spawn_failure_stays_idle(self, supervisor, spawner):
        spawner.fail_with = FileNotFoundError("gone")

        with pytest.raises(SpawnFailed) as exc_info:
            supervisor.ensure_running("/out/app.py")

        assert isinstance(exc_info.value.cause, FileNotFoundError)
        assert supervisor.state == IDLE
        assert supervisor.current_process is None

    def test_next_call_after_spawn_failure_starts_normally(self, supervisor, spawner):
        spawner.fail_with = PermissionError("denied")
        with pytest.raises(SpawnFailed):
            supervisor.ensure_running("/out/app.py")

        supervisor.ensure_running("/out/app.py")

        assert supervisor.state == RUNNING
        assert len(spawner.children) == 1

    def test_disconnected_handle_is_treated_as_idle(self, supervisor, spawner):
        supervisor.ensure_running("/out/app.py")
        first = spawner.children[0]
        first.alive = False  # Died, exit not yet observed

        supervisor.ensure_running("/out/app.py")

        assert first.terminate_calls == 0
        assert len(spawner.children) == 2
        assert supervisor.current_process is spawner.children[1]

    def test_natural_exit_stops_tracking(self, supervisor, spawner, kinds):
        supervisor.ensure_running("/out/app.py")

        spawner.children[0].exit(code=1)

        assert supervisor.current_process is None
        assert supervisor.state == IDLE


class TestRestart:

    def test_restart_waits_for_exit_before_spawning(self, supervisor, spawner, kinds):
        supervisor.ensure_running("/out/app.py")
        first = spawner.children[0]

        supervisor.ensure_running("/out/app.py", ["--new"])

        assert first.terminate_calls == 1
        assert len(spawner.children) == 1
        assert supervisor.state == RESTARTING_STATE
        assert supervisor.restart_pending is True
        assert supervisor.current_process is first

        first.exit()

        assert len(spawner.children) == 2
        second = spawner.children[1]
        assert supervisor.current_process is second
        assert second.args == ("--new",)
        assert supervisor.state == RUNNING
        assert supervisor.restart_pending is False
        assert kinds() == [STARTING, RESTARTING]

    def test_replacement_uses_target_from_restart_request(self, supervisor, spawner):
        supervisor.ensure_running("/out/v1.py")
        supervisor.ensure_running("/out/v2.py", ["a"])

        spawner.children[0].exit()

        assert spawner.children[1].path == "/out/v2.py"

    def test_restart_requests_while_restarting_are_coalesced(self, supervisor, spawner):
        supervisor.ensure_running("/out/v1.py")
        first = spawner.children[0]

        supervisor.ensure_running("/out/v2.py")
        supervisor.ensure_running("/out/v3.py", ["--latest"])

        assert first.terminate_calls == 1
        assert len(spawner.children) == 1

        first.exit()

        assert len(spawner.children) == 2
        assert spawner.children[1].path == "/out/v3.py"
        assert spawner.children[1].args == ("--latest",)

    def test_late_exit_of_replaced_child_is_ignored(self, supervisor, spawner):
        supervisor.ensure_running("/out/app.py")
        first = spawner.children[0]
        supervisor.ensure_running("/out/app.py")
        first.exit()
        second = spawner.children[1]

        supervisor._handle_exit(first)

        assert supervisor.current_process is second
        assert len(spawner.children) == 2

    def test_termination_failure_keeps_running_state(self, supervisor, spawner):
        supervisor.ensure_running("/out/app.py")
        first = spawner.children[0]
        first.fail_terminate = True

        with pytest.raises(TerminationFailed):
            supervisor.ensure_running("/out/app.py")

        assert supervisor.state == RUNNING
        assert supervisor.restart_pending is False
        assert supervisor.current_process is first
        assert len(spawner.children) == 1

    def test_exit_after_failed_termination_still_respawns(self, supervisor, spawner):
        supervisor.ensure_running("/out/app.py")
        first = spawner.children[0]
        first.fail_terminate = True
        with pytest.raises(TerminationFailed):
            supervisor.ensure_running("/out/app.py", ["--new"])

        first.exit()

        assert len(spawner.children) == 2
        assert spawner.children[1].args == ("--new",)

    def test_failed_termination_is_retried_on_next_request(self, supervisor, spawner):
        supervisor.ensure_running("/out/app.py")
        first = spawner.children[0]
        first.fail_terminate = True
        with pytest.raises(TerminationFailed):
            supervisor.ensure_running("/out/app.py")
        first.fail_terminate = False

        supervisor.ensure_running("/out/app.py")

        assert first.terminate_calls == 2
        assert supervisor.state == RESTARTING_STATE

    def test_replacement_spawn_failure_is_logged_and_idles(self, supervisor, spawner, kinds):
        supervisor.ensure_running("/out/app.py")
        supervisor.ensure_running("/out/app.py")
        spawner.fail_with = FileNotFoundError("replaced during build")

        spawner.children[0].exit()

        assert supervisor.state == IDLE
        assert supervisor.current_process is None
        assert kinds()[-1] == SPAWN_FAILED

    def test_independent_supervisors_do_not_share_state(self, spawner):
        one = ProcessSupervisor(spawner=spawner)
        two = ProcessSupervisor(spawner=spawner)

        one.ensure_running("/out/a.py")

        assert one.state == RUNNING
        assert two.state == IDLE
