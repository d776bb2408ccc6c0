"""Suffix filtering and depth calculation for watched paths."""
import os
from collections.abc import Iterable
from pathlib import Path


class PathFilter:
    """Admit paths whose string form ends with a configured suffix.

    An empty filter admits everything.
    """

    def __init__(self, suffixes: Iterable[str] | None = None) -> None:
        """Initialize filter.

        Args:
            suffixes: File name endings to admit, e.g. ``".png"``.
        """
        self._suffixes: tuple[str, ...] = tuple(dict.fromkeys(suffixes or ()))

    @property
    def suffixes(self) -> tuple[str, ...]:
        """Configured suffixes, duplicates removed, in insertion order."""
        return self._suffixes

    def allows(self, path: str | Path) -> bool:
        """Check whether a path qualifies for notification.

        Args:
            path: Path to check.

        Returns:
            True if no suffixes are configured or the path ends with one.
        """
        if not self._suffixes:
            return True
        value = str(path)
        return any(value.endswith(suffix) for suffix in self._suffixes)

    def __repr__(self) -> str:
        return f"PathFilter({list(self._suffixes)!r})"


def depth_of(path: str | Path, root: str | Path) -> int:
    """Count the segments a path lies below the root.

    Both paths are compared in absolute form; symlinks are not resolved.

    Args:
        path: Path to measure.
        root: Depth-zero reference directory.

    Returns:
        Number of segments beyond ``root``, or -1 if ``path`` is not under it.
    """
    absolute_path = Path(os.path.abspath(path))
    absolute_root = Path(os.path.abspath(root))
    if not absolute_path.is_relative_to(absolute_root):
        return -1
    return len(absolute_path.parts) - len(absolute_root.parts)
