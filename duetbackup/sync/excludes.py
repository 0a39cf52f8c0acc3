"""Prefix-based exclusion of remote paths."""

from collections.abc import Iterable, Iterator
from typing import Optional

from ..utils import clean_path


class Excludes:
    """Set of normalized remote path prefixes to skip during sync.

    Matching is a plain, case-sensitive string prefix test and is not aware
    of path segments: an exclude of ``0:/sys/a`` also matches ``0:/sys/abc``.

    Examples:
        >>> excls = Excludes(["0:/sys//macros/"])
        >>> excls.contains("0:/sys/macros/homeall.g")
        True
        >>> excls.contains("0:/sys/config.g")
        False
    """

    def __init__(self, prefixes: Optional[Iterable[str]] = None):
        self._prefixes: list[str] = []
        for prefix in prefixes or ():
            self.add(prefix)

    def add(self, prefix: str) -> None:
        """Normalize a raw prefix and add it.

        An empty prefix normalizes to ``""`` and then excludes every path.
        """
        self._prefixes.append(clean_path(prefix))

    def contains(self, path: str) -> bool:
        """Return True if path starts with any stored prefix."""
        return any(path.startswith(prefix) for prefix in self._prefixes)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.contains(path)

    def __iter__(self) -> Iterator[str]:
        return iter(self._prefixes)

    def __len__(self) -> int:
        return len(self._prefixes)

    def __str__(self) -> str:
        return ",".join(self._prefixes)

    def __repr__(self) -> str:
        return f"Excludes({self._prefixes!r})"
