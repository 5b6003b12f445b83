"""Pytest configuration and fixtures for buildrun tests"""

import sys
import time
import logging
from pathlib import Path

import psutil
import pytest

# Ensure the project root is importable when running without an install
project_root = Path(__file__).resolve().parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


class FakeChild:
    """Stands in for ChildProcess; exits only when the test says so."""

    def __init__(self, path, args, pid):
        self.path = path
        self.args = tuple(args)
        self.pid = pid
        self.name = Path(path).name
        self.alive = True
        self.returncode = None
        self.terminate_calls = 0
        self.fail_terminate = False
        self._observers = []

    def is_connected(self):
        return self.alive

    def terminate(self):
        self.terminate_calls += 1
        if self.fail_terminate:
            raise psutil.AccessDenied(self.pid)

    def on_exit(self, observer):
        if not self.alive:
            observer(self)
        else:
            self._observers.append(observer)

    def exit(self, code=0):
        self.alive = False
        self.returncode = code
        observers, self._observers = self._observers, []
        for observer in observers:
            observer(self)


class FakeSpawner:
    """Records every spawn and hands out FakeChild instances."""

    def __init__(self):
        self.children = []
        self.fail_with = None

    def __call__(self, path, args):
        if self.fail_with is not None:
            error, self.fail_with = self.fail_with, None
            raise error
        child = FakeChild(path, args, pid=1000 + len(self.children))
        self.children.append(child)
        return child


@pytest.fixture
def spawner():
    return FakeSpawner()


@pytest.fixture
def kinds(caplog):
    """Returns a callable listing the `kind` of every captured log record."""
    caplog.set_level(logging.DEBUG)

    def _kinds():
        return [r.kind for r in caplog.records if hasattr(r, "kind")]
    return _kinds


def wait_for(predicate, timeout=10.0, interval=0.05):
    """Polls `predicate` until it is truthy or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())
