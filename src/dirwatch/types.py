"""Event types and callback contract for directory watching."""
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol, runtime_checkable


class EventKind(str, Enum):
    """Kinds of change reported for a directory entry."""

    CREATED = "created"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True, slots=True)
class PathEvent:
    """A classified change for one concrete path.

    Attributes:
        path: Directory joined with the entry name reported by the primitive.
        kind: What happened to the entry.
        is_directory: Whether the entry is (or was) a directory.
        synthetic: True for the "created" events emitted while walking a tree
            that already existed when it was registered.
    """

    path: Path
    kind: EventKind
    is_directory: bool = False
    synthetic: bool = False


@runtime_checkable
class DirectoryWatcherCallback(Protocol):
    """Receiver for classified filesystem changes.

    Methods run synchronously on the dispatch thread; blocking in them
    stalls the watcher.
    """

    def path_created(self, path: Path) -> None:
        """Handle an entry that appeared."""
        ...

    def path_modified(self, path: Path) -> None:
        """Handle an entry that changed."""
        ...

    def path_removed(self, path: Path) -> None:
        """Handle an entry that disappeared."""
        ...


class TaggedCallback:
    """Adapt a single ``fn(path, kind)`` callable to the callback protocol."""

    def __init__(self, fn: Callable[[Path, EventKind], None]) -> None:
        """Initialize adapter.

        Args:
            fn: Callable receiving the path and the event kind.
        """
        self._fn = fn

    def path_created(self, path: Path) -> None:
        self._fn(path, EventKind.CREATED)

    def path_modified(self, path: Path) -> None:
        self._fn(path, EventKind.MODIFIED)

    def path_removed(self, path: Path) -> None:
        self._fn(path, EventKind.REMOVED)
