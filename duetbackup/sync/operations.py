"""Local filesystem side of a sync: directories, downloads and orphans."""

import logging
import os
import shutil
from pathlib import Path

from ..api import RRFClient
from ..config import DIR_MARKER
from ..exceptions import DuetSyncError
from ..models import Filelist
from .comparator import SyncDecision

logger = logging.getLogger(__name__)

# Suffix of the temporary file a download is written to before it is moved
PARTIAL_SUFFIX = ".part"


class SyncOperations:
    """Filesystem operations used by the sync engine."""

    def __init__(
        self,
        client: RRFClient,
        atomic_writes: bool = True,
        marker: str = DIR_MARKER,
    ):
        """Initialize sync operations.

        Args:
            client: Controller file manager client
            atomic_writes: Write downloads to a temporary file and move it
                into place, so a failed download never truncates a file
            marker: Name of the ownership marker file
        """
        self.client = client
        self.atomic_writes = atomic_writes
        self.marker = marker

    def ensure_local_dir(self, local_path: Path) -> Path:
        """Create the local directory if needed and (re)create its marker.

        The marker is written even if the directory already existed, which
        adopts a user-created directory into the managed tree.

        Returns:
            Absolute path of the directory
        """
        path = Path(local_path).absolute()
        try:
            if not path.exists():
                logger.debug("  Creating directory %s", path)
                path.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as e:
            raise DuetSyncError("create directory", path, e) from e

        marker_path = path / self.marker
        try:
            with open(marker_path, "wb"):
                pass
        except OSError as e:
            raise DuetSyncError("create marker", marker_path, e) from e
        return path

    def download_file(self, decision: SyncDecision) -> float:
        """Download a remote file and align its mtime with the remote one.

        Args:
            decision: ADD or UPDATE decision for the file

        Returns:
            Download duration in seconds as reported by the client
        """
        content, elapsed = self.client.get_file(decision.remote_path)
        local_path = decision.local_path

        if self.atomic_writes:
            self._write_atomic(local_path, content)
        else:
            self._write(local_path, content)

        mtime = decision.entry.mtime
        try:
            os.utime(local_path, (mtime, mtime))
        except OSError as e:
            raise DuetSyncError("set mtime of", local_path, e) from e
        return elapsed

    def _write(self, path: Path, content: bytes) -> None:
        try:
            with open(path, "wb") as f:
                f.write(content)
        except OSError as e:
            raise DuetSyncError("write", path, e) from e

    def _write_atomic(self, path: Path, content: bytes) -> None:
        tmp_path = path.with_name(path.name + PARTIAL_SUFFIX)
        try:
            with open(tmp_path, "wb") as f:
                f.write(content)
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise DuetSyncError("write", path, e) from e

    def is_managed(self, parent: Path, name: str) -> bool:
        """Return True if parent/name is a directory containing the marker.

        Any filesystem error is treated as "not managed" so nothing is
        deleted that cannot be positively identified as ours.
        """
        path = Path(parent) / name
        try:
            return path.is_dir() and (path / self.marker).exists()
        except OSError:
            return False

    def remove_orphans(self, filelist: Filelist, local_dir: Path) -> list[str]:
        """Delete local entries of local_dir that are not in the listing.

        Files are deleted directly. Directories are deleted recursively, and
        only if they carry the ownership marker. The marker itself is kept.

        Returns:
            Names of the removed entries
        """
        remote_names = filelist.names
        removed: list[str] = []

        try:
            children = sorted(Path(local_dir).iterdir())
        except OSError as e:
            raise DuetSyncError("list", local_dir, e) from e

        for child in children:
            name = child.name
            if name in remote_names or name == self.marker:
                continue

            if child.is_dir() and not child.is_symlink():
                if not self.is_managed(local_dir, name):
                    logger.debug("  Keeping unmanaged directory %s", child)
                    continue
                self.delete_local(child, recursive=True)
            else:
                self.delete_local(child)
            logger.debug("  Removed:    %s", name)
            removed.append(name)

        return removed

    def delete_local(self, path: Path, recursive: bool = False) -> None:
        """Delete a local file, or a whole directory tree if recursive."""
        try:
            if recursive:
                shutil.rmtree(path)
            else:
                path.unlink()
        except OSError as e:
            raise DuetSyncError("delete", path, e) from e
