"""Configuration for duetbackup.

Settings are read from environment variables first and then from
``~/.config/duetbackup/config`` (simple ``KEY=VALUE`` lines).
"""

import os
from pathlib import Path
from typing import Optional

from .exceptions import DuetConfigError

# Default directory on the controller to back up
SYS_DIR = "0:/sys"

# Zero-byte sentinel placed in every local directory managed by duetbackup
DIR_MARKER = ".duetbackup"

DEFAULT_PORT = 80
DEFAULT_PASSWORD = "reprap"
DEFAULT_TIMEOUT = 30.0

_KEYS = ("DUET_DOMAIN", "DUET_PORT", "DUET_PASSWORD", "DUET_TIMEOUT")


class Config:
    """Connection settings for the controller."""

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or (
            Path.home() / ".config" / "duetbackup" / "config"
        )
        self._values: dict[str, str] = {}
        self.reload()

    def reload(self) -> None:
        """Re-read the config file and environment."""
        values = self._read_file()
        for key in _KEYS:
            env_value = os.environ.get(key)
            if env_value:
                values[key] = env_value
        self._values = values

    def _read_file(self) -> dict[str, str]:
        values: dict[str, str] = {}
        if not self.config_path.is_file():
            return values
        with open(self.config_path, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, value = line.split("=", 1)
                values[key.strip()] = value.strip()
        return values

    @property
    def domain(self) -> Optional[str]:
        return self._values.get("DUET_DOMAIN") or None

    @property
    def port(self) -> int:
        raw = self._values.get("DUET_PORT")
        if not raw:
            return DEFAULT_PORT
        try:
            port = int(raw)
        except ValueError as e:
            raise DuetConfigError(f"Invalid port: {raw}") from e
        if not 0 < port <= 65535:
            raise DuetConfigError(f"Invalid port: {port}")
        return port

    @property
    def password(self) -> str:
        return self._values.get("DUET_PASSWORD", DEFAULT_PASSWORD)

    @property
    def timeout(self) -> float:
        raw = self._values.get("DUET_TIMEOUT")
        if not raw:
            return DEFAULT_TIMEOUT
        try:
            return float(raw)
        except ValueError as e:
            raise DuetConfigError(f"Invalid timeout: {raw}") from e

    def is_configured(self) -> bool:
        """Return True if a controller domain is known."""
        return self.domain is not None

    def get_config_path(self) -> Path:
        return self.config_path

    def save(self, domain: str, password: Optional[str] = None) -> None:
        """Write domain (and optionally password) to the config file.

        Other keys already present in the file are preserved.
        """
        values = self._read_file()
        values["DUET_DOMAIN"] = domain
        if password is not None:
            values["DUET_PASSWORD"] = password

        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            f.write("# duetbackup configuration\n")
            for key, value in values.items():
                f.write(f"{key}={value}\n")
        self.config_path.chmod(0o600)
        self.reload()


config = Config()
