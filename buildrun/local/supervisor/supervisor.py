import psutil
import logging
import threading
import subprocess
from typing import Callable, Optional, Sequence, Tuple
from buildrun.errors import RESTARTING, SPAWN_FAILED, STARTING, SpawnFailed, TerminationFailed, kind_extra
from buildrun.local.supervisor.process_utils import ChildProcess, spawn_child

log = logging.getLogger(__name__)

IDLE = "idle"
RUNNING = "running"
RESTARTING_STATE = "restarting"

Spawner = Callable[[str, Sequence[str]], ChildProcess]


class ProcessSupervisor:
    """
    Keeps exactly one child process running and restarts it on request.

    States:
    - idle: no child is tracked, or the tracked one is no longer connected.
    - running: a connected child is tracked and no restart is in flight.
    - restarting: SIGTERM was sent; the replacement starts once exit is observed.

    `ensure_running` never waits for a child. The replacement is spawned from
    the old child's exit watcher, so it can never start before that exit.
    Transitions are serialized by an internal lock, but build events are still
    expected to arrive one at a time. Calls made from several threads can
    interleave between the arming of a restart and the respawn.

    A restart requested while one is already in flight is coalesced: the
    replacement uses the most recent path and args, and no second SIGTERM is sent.
    """

    def __init__(self, spawner: Optional[Spawner] = None) -> None:
        """
        :param spawner: Callable that starts a child; defaults to `spawn_child`.
        """
        self._spawn: Spawner = spawner or spawn_child
        self._lock = threading.RLock()

        self.current_process: Optional[ChildProcess] = None
        self.restart_pending = False
        # Target for the replacement once the tracked child exits. Set means armed.
        self._pending_target: Optional[Tuple[str, Tuple[str, ...]]] = None

    @property
    def state(self) -> str:
        with self._lock:
            if self.restart_pending:
                return RESTARTING_STATE
            if self.current_process is not None and self.current_process.is_connected():
                return RUNNING
            return IDLE

    def ensure_running(self, path: str, args: Sequence[str] = ()) -> None:
        """
        Starts the artifact, or gracefully restarts the current child with it.

        :param path: Absolute path of the artifact to run.
        :param args: Extra arguments for the artifact.
        :raises SpawnFailed: If the child could not be started (state stays idle).
        :raises TerminationFailed: If SIGTERM could not be sent (state stays running).
        """
        target = (path, tuple(args))
        with self._lock:
            current = self.current_process

            if self._pending_target is not None and current is not None:
                self._pending_target = target
                if self.restart_pending or not current.is_connected():
                    log.info(
                        f"Restart of '{current.name}' already in progress; replacement will run {path}",
                        extra=kind_extra(RESTARTING)
                    )
                    return
                # A previous SIGTERM failed. Try again with the newer target.
                self._request_termination(current)
                return

            if current is not None and current.is_connected():
                log.info(f"Script process restarting ... ({current.name}, PID {current.pid})", extra=kind_extra(RESTARTING))
                self._pending_target = target
                self._request_termination(current)
                return

            log.info(f"Script process starting ... ({path})", extra=kind_extra(STARTING))
            self._start(*target)

    def _start(self, path: str, args: Tuple[str, ...]) -> None:
        """Spawns a child and tracks it. Lock must be held."""
        try:
            child = self._spawn(path, args)
        except (OSError, ValueError, subprocess.SubprocessError, psutil.Error) as e:
            self.current_process = None
            self.restart_pending = False
            raise SpawnFailed(f"Failed to start '{path}': {e}", cause=e) from e

        self.current_process = child
        self.restart_pending = False
        child.on_exit(self._handle_exit)

    def _request_termination(self, current: ChildProcess) -> None:
        """Sends SIGTERM to the tracked child. Lock must be held."""
        self.restart_pending = True
        try:
            current.terminate()
        except (psutil.Error, OSError) as e:
            # The armed target stays, so a later natural exit still respawns.
            self.restart_pending = False
            raise TerminationFailed(f"Failed to terminate '{current.name}' (PID {current.pid}): {e}", cause=e) from e

    def _handle_exit(self, child: ChildProcess) -> None:
        """Exit observer for every tracked child. Runs on the child's watcher thread."""
        with self._lock:
            if child is not self.current_process:
                return

            self.current_process = None
            target, self._pending_target = self._pending_target, None
            if target is None:
                self.restart_pending = False
                log.warning(f"Process '{child.name}' (PID {child.pid}) exited with code {child.returncode}.")
                return

            log.debug(f"Process '{child.name}' exited; starting replacement {target[0]}")
            try:
                self._start(*target)
            except SpawnFailed as e:
                log.error(str(e), extra=kind_extra(SPAWN_FAILED))
