"""
The Supervisor package.
Manages the lifecycle of the single child process started from build output.

This package contains the ProcessSupervisor state machine and the ChildProcess
handle it tracks, which together handle starting, graceful restarts and exit
detection of the managed child.
"""
from .process_utils import ChildProcess, spawn_child
from .supervisor import IDLE, RESTARTING_STATE, RUNNING, ProcessSupervisor

__all__ = ['ChildProcess', 'spawn_child', 'ProcessSupervisor', 'IDLE', 'RUNNING', 'RESTARTING_STATE']
