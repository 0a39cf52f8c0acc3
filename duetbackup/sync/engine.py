"""Core sync engine mirroring a remote directory tree into a local one."""

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from ..api import RRFClient
from ..models import Filelist
from ..output import OutputFormatter
from ..utils import join_remote, transfer_rate_kib
from .comparator import FileComparator, SyncAction, SyncDecision
from .excludes import Excludes
from .operations import SyncOperations

logger = logging.getLogger(__name__)


@dataclass
class SyncStats:
    """Counters accumulated over one sync_folder invocation."""

    added: int = 0
    updated: int = 0
    up_to_date: int = 0
    excluded: int = 0
    removed: int = 0
    directories: int = 0

    @property
    def downloads(self) -> int:
        return self.added + self.updated

    def to_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class SyncEngine:
    """Mirrors remote directories of the controller into local directories.

    Every directory is handled in the same order: list it, download new or
    changed files, optionally prune local orphans, then descend into each
    subdirectory. The walk is depth-first and sequential, and any error
    aborts the whole run.
    """

    def __init__(
        self,
        client: RRFClient,
        output: Optional[OutputFormatter] = None,
        operations: Optional[SyncOperations] = None,
    ):
        """Initialize sync engine.

        Args:
            client: Controller file manager client
            output: Output formatter for displaying progress/status
            operations: Local filesystem operations (default: atomic writes)
        """
        self.client = client
        self.output = output or OutputFormatter()
        self.operations = operations or SyncOperations(client)

    def sync_folder(
        self,
        remote_path: str,
        local_path: Path,
        excludes: Optional[Excludes] = None,
        remove_orphans: bool = False,
    ) -> SyncStats:
        """Synchronize a remote directory to a local directory.

        Args:
            remote_path: Remote directory (e.g. "0:/sys")
            local_path: Local output directory (created if missing)
            excludes: Remote path prefixes to skip
            remove_orphans: Delete local files that no longer exist remotely

        Returns:
            Statistics of the run

        Raises:
            DuetAPIError: If listing or downloading fails
            DuetSyncError: If a local filesystem operation fails
        """
        stats = SyncStats()
        self._sync_folder(
            remote_path,
            Path(local_path),
            excludes if excludes is not None else Excludes(),
            remove_orphans,
            stats,
        )
        logger.debug(
            "Synced %s: %d downloads, %d removed",
            remote_path,
            stats.downloads,
            stats.removed,
        )
        return stats

    def _sync_folder(
        self,
        remote_path: str,
        local_path: Path,
        excludes: Excludes,
        remove_orphans: bool,
        stats: SyncStats,
    ) -> None:
        # Skip complete directories covered by an exclude prefix
        if excludes.contains(remote_path):
            self.output.info(f"Excluding {remote_path}")
            stats.excluded += 1
            return

        self.output.info(f"Fetching filelist for {remote_path}")
        filelist = self.client.get_filelist(remote_path)

        self.output.info(
            f"Downloading new/changed files from {remote_path} to {local_path}"
        )
        local_dir = self.operations.ensure_local_dir(local_path)
        stats.directories += 1
        self._update_local_files(filelist, local_dir, excludes, stats)

        if remove_orphans:
            self.output.info(f"Removing no longer existing files in {local_dir}")
            removed = self.operations.remove_orphans(filelist, local_dir)
            stats.removed += len(removed)

        for entry in filelist.directories:
            self._sync_folder(
                join_remote(filelist.directory, entry.name),
                local_dir / entry.name,
                excludes,
                remove_orphans,
                stats,
            )

    def _update_local_files(
        self,
        filelist: Filelist,
        local_dir: Path,
        excludes: Excludes,
        stats: SyncStats,
    ) -> None:
        comparator = FileComparator(excludes)

        for entry in filelist.files:
            decision = comparator.compare(
                entry,
                join_remote(filelist.directory, entry.name),
                local_dir / entry.name,
            )

            if decision.action == SyncAction.EXCLUDE:
                logger.debug(
                    "  Excluding:  %s (%s)", decision.remote_path, decision.reason
                )
                stats.excluded += 1
            elif decision.action == SyncAction.SKIP:
                logger.debug(
                    "  Up-to-date: %s (%s)", decision.remote_path, decision.reason
                )
                stats.up_to_date += 1
            else:
                self._download(decision, stats)

    def _download(self, decision: SyncDecision, stats: SyncStats) -> None:
        elapsed = self.operations.download_file(decision)
        kibs = transfer_rate_kib(decision.entry.size, elapsed)

        if decision.action == SyncAction.UPDATE:
            logger.debug(
                "  Updated:    %s (%s, %.1f KiB/s)",
                decision.remote_path,
                decision.reason,
                kibs,
            )
            stats.updated += 1
        else:
            logger.debug(
                "  Added:      %s (%s, %.1f KiB/s)",
                decision.remote_path,
                decision.reason,
                kibs,
            )
            stats.added += 1
