"""Mapping of live watch keys to the directories they watch."""
from collections.abc import Hashable
from pathlib import Path


class SubscriptionRegistry:
    """Watch keys of one dispatch run, keyed by handle identity.

    Only the dispatch thread touches a registry while its run is active,
    so no locking is done here.
    """

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._paths: dict[Hashable, Path] = {}
        self._keys: dict[Path, Hashable] = {}

    def add(self, key: Hashable, path: Path) -> None:
        """Record the directory watched by a key.

        Args:
            key: Handle returned by the watch primitive.
            path: Directory the key watches.

        Raises:
            ValueError: If the key is already registered.
        """
        if key in self._paths:
            raise ValueError(f"Watch key already registered for {self._paths[key]}")
        self._paths[key] = path
        self._keys[path] = key

    def path_for(self, key: Hashable) -> Path | None:
        """Return the directory for a key, or None for unknown keys."""
        return self._paths.get(key)

    def remove(self, key: Hashable) -> None:
        """Forget a key. Unknown keys are ignored."""
        path = self._paths.pop(key, None)
        if path is not None and self._keys.get(path) is key:
            del self._keys[path]

    def is_empty(self) -> bool:
        """Check whether no directory is watched any more."""
        return not self._paths

    def watches(self, path: Path) -> bool:
        """Check whether a directory currently has a live key."""
        return path in self._keys

    def __contains__(self, key: object) -> bool:
        return key in self._paths

    def __len__(self) -> int:
        return len(self._paths)
