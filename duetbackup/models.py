"""Data models for RepRapFirmware file listings."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from .exceptions import DuetInvalidResponseError
from .utils import parse_rrf_timestamp

# Used when the firmware omits the date (e.g. files without a valid FAT timestamp)
EPOCH = datetime.fromtimestamp(0)


class EntryKind(str, Enum):
    """Kind of a remote entry, using the firmware's type codes."""

    FILE = "f"
    """Regular file"""

    DIRECTORY = "d"
    """Directory"""


@dataclass(frozen=True)
class FileEntry:
    """A single file or directory as reported by rr_filelist."""

    kind: EntryKind
    """File or directory"""

    name: str
    """Base name, unique within its listing"""

    size: int
    """Size in bytes (meaningful for files only)"""

    modified_at: datetime
    """Last modification time (naive, local time)"""

    @property
    def is_dir(self) -> bool:
        return self.kind == EntryKind.DIRECTORY

    @property
    def is_file(self) -> bool:
        return self.kind == EntryKind.FILE

    @property
    def mtime(self) -> float:
        """Last modification time as a POSIX timestamp."""
        return self.modified_at.timestamp()

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> FileEntry:
        """Create a FileEntry from one element of the listing's files array.

        Args:
            data: Dictionary with "type", "name", "size" and "date" keys

        Returns:
            FileEntry instance

        Raises:
            DuetInvalidResponseError: If required fields are missing or invalid
        """
        try:
            name = data["name"]
            kind = EntryKind(data["type"])
            size = int(data.get("size") or 0)
        except (KeyError, ValueError, TypeError) as e:
            raise DuetInvalidResponseError(f"Malformed file entry: {data!r}") from e

        try:
            modified_at = parse_rrf_timestamp(data.get("date")) or EPOCH
        except (ValueError, TypeError) as e:
            raise DuetInvalidResponseError(
                f"Invalid date for {name!r}: {data.get('date')!r}"
            ) from e

        return cls(
            kind=kind,
            name=name,
            size=size,
            modified_at=modified_at,
        )


def sort_entries(entries: Iterable[FileEntry]) -> list[FileEntry]:
    """Sort entries directories first, then by name (stable).

    A listing of file b, dir a, file a and dir z comes out as
    dir a, dir z, file a, file b.
    """
    return sorted(entries, key=lambda e: (not e.is_dir, e.name))


@dataclass(frozen=True)
class Filelist:
    """Listing of one remote directory's immediate children."""

    directory: str
    """Remote path that was queried"""

    entries: tuple[FileEntry, ...]
    """Entries, directories first and then by name"""

    @classmethod
    def from_entries(cls, directory: str, entries: Iterable[FileEntry]) -> Filelist:
        return cls(directory=directory, entries=tuple(sort_entries(entries)))

    @property
    def names(self) -> set[str]:
        return {entry.name for entry in self.entries}

    @property
    def files(self) -> list[FileEntry]:
        return [entry for entry in self.entries if not entry.is_dir]

    @property
    def directories(self) -> list[FileEntry]:
        return [entry for entry in self.entries if entry.is_dir]

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)
