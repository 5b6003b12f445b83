"""
buildrun: start, and gracefully restart, the program a watched build emits.
"""

__version__ = "0.1.0"
