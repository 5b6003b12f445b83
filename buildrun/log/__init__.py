"""
Logging module for buildrun.
This module provides the console formatter and the optional Grafana Loki handler.
"""

from .setup import setup_logging

__all__ = ["setup_logging"]
