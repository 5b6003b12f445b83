import logging
import subprocess
import sys
import threading
from typing import Any, Dict, List, Optional, Sequence

from buildrun.local.config import effective_settings as config


def get_popen_creation_flags() -> Dict[str, Any]:
    """
    Returns platform-specific creation flags for subprocess.Popen.

    On Windows the child runs without its own console window, since its output
    is piped back through our loggers. The child stays in our process group,
    so an interrupt of the watcher reaches it too.

    :return dict: A dictionary of keyword arguments for Popen.
    """
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NO_WINDOW}
    return {}


def build_command(path: str, args: Sequence[str], interpreter: Optional[str] = None) -> List[str]:
    """
    Returns the command line that runs a resolved artifact.

    :param path: Absolute path of the artifact.
    :param args: Extra arguments for the artifact.
    :param interpreter: Interpreter override; defaults to `PYTHON_EXECUTABLE`.
    :return list: The full argument vector.
    """
    return [interpreter or config.PYTHON_EXECUTABLE, path, *args]


def _read_pipe(pipe, process_name, log_level):
    """Read from a pipe and log each line."""
    proc_logger = logging.getLogger(f"proc.{process_name}")
    try:
        for line_bytes in iter(pipe.readline, b""):
            line = line_bytes.decode("utf-8", errors="replace").rstrip()
            if not line:
                continue
            proc_logger.log(log_level, line)
    except (OSError, ValueError) as e:
        proc_logger.debug(f"Pipe reader for {process_name} stream exited: {e}")
    finally:
        pipe.close()


def log_process_output(
    process: subprocess.Popen,
    process_name: str
) -> List[threading.Thread]:
    """
    Reads a process's stdout/stderr in threads and logs the output.

    This function spawns background daemon threads to consume the output pipes
    of a subprocess, preventing the pipes from filling up and blocking the child
    process. It logs each line using a logger named after the process.

    :param process: The `subprocess.Popen` object to monitor.
    :param process_name: The logical name of the process for logging context.
    :return list: The started reader threads.
    """
    readers = []
    if process.stdout:
        readers.append(threading.Thread(
            target=_read_pipe,
            args=(process.stdout, process_name, logging.INFO),
            daemon=True,
            name=f"{process_name}-stdout"
        ))
    if process.stderr:
        readers.append(threading.Thread(
            target=_read_pipe,
            args=(process.stderr, process_name, logging.ERROR),
            daemon=True,
            name=f"{process_name}-stderr"
        ))
    for reader in readers:
        reader.start()
    return readers
