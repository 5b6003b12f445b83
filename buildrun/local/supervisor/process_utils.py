import os
import psutil
import logging
import threading
import subprocess
from typing import Callable, List, Optional, Sequence
from buildrun.local.app_process import build_command, get_popen_creation_flags, log_process_output

log = logging.getLogger(__name__)

ExitObserver = Callable[["ChildProcess"], None]


class ChildProcess:
    """
    A handle to one spawned child.

    Exit is observed by a daemon thread blocked in `Popen.wait()`, so nobody
    else ever has to wait on the child. Observers registered with `on_exit`
    run on that thread, once, after the exit has been confirmed.
    """

    def __init__(self, popen: subprocess.Popen, name: str) -> None:
        self.popen = popen
        self.name = name
        self.pid = popen.pid
        self.process = psutil.Process(popen.pid)
        self.returncode: Optional[int] = None
        self.exited = threading.Event()
        self._exit_observers: List[ExitObserver] = []
        self._observers_lock = threading.Lock()
        self._watcher = threading.Thread(
            target=self._wait_for_exit, daemon=True, name=f"{name}-exit-watcher"
        )

    def __repr__(self) -> str:
        return f"<ChildProcess {self.name} pid={self.pid}>"

    def start_watching(self) -> None:
        self._watcher.start()

    def _wait_for_exit(self) -> None:
        returncode = self.popen.wait()
        with self._observers_lock:
            self.returncode = returncode
            self.exited.set()
            observers, self._exit_observers = self._exit_observers, []

        log.debug(f"Process '{self.name}' (PID: {self.pid}) exited with code {returncode}.")
        for observer in observers:
            try:
                observer(self)
            except Exception as e:
                log.error(f"Exit observer for '{self.name}' failed: {e}", exc_info=True)

    def on_exit(self, observer: ExitObserver) -> None:
        """
        Registers a callable to run once the child has exited.

        If the exit was already observed, the callable runs immediately on the
        calling thread.
        """
        with self._observers_lock:
            if not self.exited.is_set():
                self._exit_observers.append(observer)
                return
        observer(self)

    def is_connected(self) -> bool:
        """True while the OS process is alive. Zombies and reaped processes count as gone."""
        if self.exited.is_set():
            return False
        try:
            return self.process.is_running() and self.process.status() != psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return False

    def terminate(self) -> None:
        """
        Sends SIGTERM (TerminateProcess on Windows) to the child.

        :raises psutil.Error: If the process is gone or cannot be signalled.
        """
        log.debug(f"Sending SIGTERM to {self.name} (PID {self.pid})")
        self.process.terminate()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Blocks until exit has been observed. Only meant for tests and tooling."""
        return self.exited.wait(timeout)


def spawn_child(path: str, args: Sequence[str], name: Optional[str] = None) -> ChildProcess:
    """
    Launches the artifact at `path` and starts tracking its output and exit.

    :param path: Absolute path of the artifact to run.
    :param args: Extra arguments for the artifact.
    :param name: Logical name used for the `proc.<name>` logger.
    :return ChildProcess: The started child.
    :raises FileNotFoundError: If the artifact vanished after it was resolved.
    :raises OSError: If the OS refuses to start the process.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Artifact '{path}' no longer exists.")

    name = name or os.path.basename(path)
    command = build_command(path, args)
    log.debug(f"Launching {name}: {command}")

    popen = subprocess.Popen(
        command,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        stdin=subprocess.DEVNULL,
        **get_popen_creation_flags()
    )
    log_process_output(popen, name)
    child = ChildProcess(popen, name)
    child.start_watching()
    log.info(f"{name} started successfully with PID: {popen.pid}")
    return child
