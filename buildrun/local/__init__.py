"""
Local package for buildrun.

This package provides the merged configuration (`effective_settings`), the
child command/output helpers and the process supervisor.
"""

from .config import effective_settings

__all__ = ["effective_settings"]
