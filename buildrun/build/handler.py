import os
import logging
import threading
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple
from watchdog.observers import Observer
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from buildrun.build.snapshot import BuildSnapshot
from buildrun.local.config import effective_settings as config

log = logging.getLogger(__name__)

BuildCallback = Callable[[BuildSnapshot], Any]


def take_snapshot(output_dir: Path, error_marker: Optional[str] = None) -> BuildSnapshot:
    """
    Captures the current contents of the output directory as a build snapshot.

    Artifacts are the visible regular files directly inside the directory,
    ordered by modification time (then name) to approximate emission order.

    :param output_dir: The build output directory.
    :param error_marker: File name whose presence marks a failed build.
    :return BuildSnapshot: The snapshot.
    """
    error_marker = config.BUILD_ERROR_MARKER if error_marker is None else error_marker
    entries: List[Tuple[float, str]] = []
    try:
        with os.scandir(output_dir) as it:
            for entry in it:
                if entry.name.startswith('.') or entry.name == error_marker:
                    continue
                try:
                    if entry.is_file():
                        entries.append((entry.stat().st_mtime, entry.name))
                except FileNotFoundError:
                    continue  # Removed while scanning
    except FileNotFoundError:
        log.warning(f"Output directory '{output_dir}' does not exist.")

    entries.sort()
    has_errors = bool(error_marker) and (Path(output_dir) / error_marker).exists()
    return BuildSnapshot.create([name for _, name in entries], output_dir, has_errors)


class OutputChangeHandler(FileSystemEventHandler):
    """
    A watchdog event handler that turns output directory changes into build events.

    A build counts as finished once no file in the directory has changed for
    `settle_seconds`. Build events are delivered one at a time.
    """

    def __init__(self, output_dir: Path, on_build_finished: BuildCallback,
                 settle_seconds: Optional[float] = None, error_marker: Optional[str] = None):
        super().__init__()
        self.output_dir = Path(output_dir).resolve()
        self.on_build_finished = on_build_finished
        self.settle_seconds = config.BUILD_SETTLE_SECONDS if settle_seconds is None else settle_seconds
        self.error_marker = config.BUILD_ERROR_MARKER if error_marker is None else error_marker
        self._timer: Optional[threading.Timer] = None
        self._timer_lock = threading.Lock()
        self._emit_lock = threading.Lock()

    def _is_relevant(self, path_str: str) -> bool:
        """Only visible files directly in the output directory, plus the error marker, take part in a build."""
        if not path_str:
            return False
        path = Path(path_str).resolve()
        if path.parent != self.output_dir:
            return False
        return path.name == self.error_marker or not path.name.startswith('.')

    def on_any_event(self, event: FileSystemEvent) -> None:
        """The main event handler method for watchdog, called on any file change."""
        if event.event_type in ("opened", "closed_no_write"):
            return
        if event.is_directory:
            return

        paths = [event.src_path, getattr(event, "dest_path", "")]
        if not any(self._is_relevant(p) for p in paths):
            return

        log.debug(f"Watchdog event: {event.event_type} on {event.src_path}")
        self.schedule_build()

    def schedule_build(self) -> None:
        """(Re)arms the settle timer; the build is reported once it expires."""
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.settle_seconds, self.flush)
            self._timer.daemon = True
            self._timer.name = "BuildSettleTimer"
            self._timer.start()

    def flush(self) -> BuildSnapshot:
        """Takes a snapshot right now and reports it as a finished build."""
        with self._emit_lock:
            snapshot = take_snapshot(self.output_dir, self.error_marker)
            log.debug(f"Build finished with {len(snapshot.artifact_names)} artifact(s), errors={snapshot.has_errors}")
            self.on_build_finished(snapshot)
            return snapshot

    def cancel(self) -> None:
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


def _start_observer(handler: OutputChangeHandler) -> Observer:
    observer = Observer()
    observer.schedule(handler, str(handler.output_dir), recursive=False)
    observer.start()
    return observer


def watch_output_directory(output_dir: Path, session: Any, stop_event: threading.Event,
                           settle_seconds: Optional[float] = None) -> None:
    """
    The main loop of a watch session.

    It starts the observer, engages watch mode on the session, reports any
    existing output as the first build, then waits for the stop event while
    keeping the observer alive.

    :param output_dir: The build output directory to watch.
    :param session: The `WatchSession` receiving build events.
    :param stop_event: Set to end the watch.
    :param settle_seconds: Settle time override.
    """
    output_dir = Path(output_dir).resolve()
    output_dir.mkdir(parents=True, exist_ok=True)

    handler = OutputChangeHandler(output_dir, session.on_build_finished, settle_seconds)
    observer = _start_observer(handler)
    log.info(f"Watching build output in {output_dir}")
    session.on_watch_started()

    if take_snapshot(output_dir, handler.error_marker).artifact_names:
        handler.flush()

    try:
        while not stop_event.is_set():
            stop_event.wait(timeout=config.OBSERVER_HEALTH_CHECK_INTERVAL)
            if not observer.is_alive() and not stop_event.is_set():
                log.error("Watchdog observer thread has stopped unexpectedly. Restarting observer.")
                observer.stop()
                observer.join(timeout=5)
                observer = _start_observer(handler)
                log.info("Observer restarted.")
    except Exception as e:
        log.error(f"Unhandled exception in watch loop: {e}", exc_info=True)
        shutdown_reason = f"due to exception: {e}"
    else:
        shutdown_reason = "because stop event was received"
    finally:
        handler.cancel()
        observer.stop()
        observer.join()

    log.info(f"Watch stopped ({shutdown_reason}).")
