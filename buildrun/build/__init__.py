"""
Build-side half of buildrun: snapshots of build output, artifact resolution,
the watchdog event source and the session that connects them to the supervisor.
"""

from .snapshot import BuildSnapshot, ResolvedTarget, TargetSpec
from .resolver import find_matching_artifact, resolve
from .session import WatchSession
from .handler import OutputChangeHandler, take_snapshot, watch_output_directory

__all__ = [
    "BuildSnapshot", "ResolvedTarget", "TargetSpec",
    "find_matching_artifact", "resolve",
    "WatchSession",
    "OutputChangeHandler", "take_snapshot", "watch_output_directory",
]
