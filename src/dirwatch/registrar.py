"""Directory tree registration with the watch primitive."""
import os
from collections.abc import Callable
from pathlib import Path

import structlog

from dirwatch.registry import SubscriptionRegistry
from dirwatch.service import WatchKey, WatchService

logger = structlog.get_logger()


class TreeRegistrar:
    """Registers directories with a watch service and records their keys.

    Directories found while walking a tree are announced through
    ``on_directory`` as they are registered, which is how directories that
    already exist are reported as created.
    """

    def __init__(
        self,
        service: WatchService,
        registry: SubscriptionRegistry,
        on_directory: Callable[[Path], None],
    ) -> None:
        """Initialize registrar.

        Args:
            service: Watch primitive to register directories with.
            registry: Registry receiving the resulting keys.
            on_directory: Called with each directory registered by a walk.
        """
        self._service = service
        self._registry = registry
        self._on_directory = on_directory

    def register(self, directory: Path) -> WatchKey:
        """Register a single directory without walking it.

        Args:
            directory: Directory to watch.

        Returns:
            Key watching the directory.

        Raises:
            OSError: If the directory cannot be watched.
        """
        key = self._service.register(directory)
        if key not in self._registry:
            self._registry.add(key, directory)
        return key

    def register_all(self, start: Path) -> int:
        """Register a directory and every directory below it, pre-order.

        Symlinked directories are not followed. A subdirectory that cannot
        be listed or registered is skipped together with its subtree.

        Args:
            start: Root of the subtree to register.

        Returns:
            Number of directories registered.

        Raises:
            OSError: If ``start`` itself cannot be registered.
        """
        self.register(start)
        self._on_directory(start)
        registered = 1

        pending = self._subdirectories(start)[::-1]
        while pending:
            directory = pending.pop()
            try:
                self.register(directory)
            except OSError as e:
                logger.warning("registrar_register_failed", path=str(directory), error=str(e))
                continue
            self._on_directory(directory)
            registered += 1
            pending.extend(self._subdirectories(directory)[::-1])

        logger.debug("registrar_walk_complete", path=str(start), directories=registered)
        return registered

    def _subdirectories(self, directory: Path) -> list[Path]:
        try:
            with os.scandir(directory) as entries:
                names = sorted(
                    entry.name
                    for entry in entries
                    if entry.is_dir(follow_symlinks=False)
                )
        except OSError as e:
            logger.warning("registrar_scan_failed", path=str(directory), error=str(e))
            return []
        return [directory / name for name in names]
