"""
iZUS portal automation.

Command-line helper for the iZUS school portal: pending lessons with their
notebook images, student lists and teacher statistics.
"""

__version__ = "0.1.0"
