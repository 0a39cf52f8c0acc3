"""duetbackup - back up the SD card of a RepRapFirmware controller."""

from .api import RRFClient
from .exceptions import (
    DuetAPIError,
    DuetAuthenticationError,
    DuetConfigError,
    DuetConnectionLimitError,
    DuetDownloadError,
    DuetError,
    DuetInvalidResponseError,
    DuetNetworkError,
    DuetNotFoundError,
    DuetSyncError,
)
from .models import EntryKind, FileEntry, Filelist
from .sync import Excludes, SyncEngine, SyncStats

__version__ = "0.1.0"

__all__ = [
    "RRFClient",
    "SyncEngine",
    "SyncStats",
    "Excludes",
    "EntryKind",
    "FileEntry",
    "Filelist",
    "DuetError",
    "DuetAPIError",
    "DuetAuthenticationError",
    "DuetConfigError",
    "DuetConnectionLimitError",
    "DuetDownloadError",
    "DuetInvalidResponseError",
    "DuetNetworkError",
    "DuetNotFoundError",
    "DuetSyncError",
]
