"""Orphaned media garbage collector for the content backend."""

__version__ = "1.0.0"
