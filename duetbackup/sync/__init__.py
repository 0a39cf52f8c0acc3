"""Sync engine for duetbackup - mirror controller directories locally."""

from .comparator import FileComparator, SyncAction, SyncDecision, is_outdated
from .engine import SyncEngine, SyncStats
from .excludes import Excludes
from .operations import SyncOperations

__all__ = [
    "SyncEngine",
    "SyncStats",
    "SyncOperations",
    "Excludes",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "is_outdated",
]
