"""File comparison logic for sync operations."""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from ..exceptions import DuetSyncError
from ..models import FileEntry
from .excludes import Excludes


class SyncAction(str, Enum):
    """Actions that can be taken for a remote file."""

    ADD = "add"
    """Download a file that does not exist locally"""

    UPDATE = "update"
    """Download a file whose local copy is older"""

    SKIP = "skip"
    """Local copy is up to date"""

    EXCLUDE = "exclude"
    """File matches an exclude prefix"""

    @property
    def requires_download(self) -> bool:
        return self in (SyncAction.ADD, SyncAction.UPDATE)


@dataclass
class SyncDecision:
    """Represents a decision about how to sync a file."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    entry: FileEntry
    """Remote entry"""

    remote_path: str
    """Full remote path of the file"""

    local_path: Path
    """Local path of the file"""

    local_mtime: Optional[float] = None
    """Local modification time (None if the file does not exist)"""


def is_outdated(local_mtime: float, remote_mtime: float) -> bool:
    """Return True if the local copy is strictly older than the remote one.

    Equal timestamps count as up to date; downloads set the local mtime to
    the remote one so a second run finds nothing to do.
    """
    return local_mtime < remote_mtime


class FileComparator:
    """Compares remote entries with local files to determine sync actions."""

    def __init__(self, excludes: Excludes):
        """Initialize file comparator.

        Args:
            excludes: Remote path prefixes to skip
        """
        self.excludes = excludes

    def compare(
        self, entry: FileEntry, remote_path: str, local_path: Path
    ) -> SyncDecision:
        """Stat the local file and decide what to do with a remote file.

        Raises:
            DuetSyncError: If the local file exists but cannot be inspected
        """
        if self.excludes.contains(remote_path):
            return SyncDecision(
                action=SyncAction.EXCLUDE,
                reason="Matches exclude prefix",
                entry=entry,
                remote_path=remote_path,
                local_path=local_path,
            )

        try:
            local_mtime: Optional[float] = os.stat(local_path).st_mtime
        except FileNotFoundError:
            local_mtime = None
        except OSError as e:
            raise DuetSyncError("stat", local_path, e) from e

        return self._compare_single_file(entry, remote_path, local_path, local_mtime)

    def _compare_single_file(
        self,
        entry: FileEntry,
        remote_path: str,
        local_path: Path,
        local_mtime: Optional[float],
    ) -> SyncDecision:
        if local_mtime is None:
            action, reason = SyncAction.ADD, "New remote file"
        elif is_outdated(local_mtime, entry.mtime):
            action, reason = SyncAction.UPDATE, "Remote file is newer"
        else:
            action, reason = SyncAction.SKIP, "Local file is up to date"

        return SyncDecision(
            action=action,
            reason=reason,
            entry=entry,
            remote_path=remote_path,
            local_path=local_path,
            local_mtime=local_mtime,
        )
