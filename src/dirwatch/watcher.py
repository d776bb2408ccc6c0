"""Directory watcher facade: configuration, lifecycle and callbacks."""
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING

import structlog

from dirwatch.dispatch import EventDispatchLoop, WatcherSetupError
from dirwatch.filters import PathFilter
from dirwatch.service import WatchService
from dirwatch.types import DirectoryWatcherCallback

if TYPE_CHECKING:
    from dirwatch.config import WatcherSettings

logger = structlog.get_logger()


class DirectoryWatcher:
    """Watch a directory, and optionally its subdirectories, for changes.

    Changes are reported through :meth:`path_created`, :meth:`path_modified`
    and :meth:`path_removed`. By default these forward to the ``callback``
    given at construction, or only log when there is none; subclasses may
    override them instead.

    Directories that already exist when the watcher starts are reported as
    created. ``max_depth`` limits only which newly created directories get
    watched; the tree present at start is registered in full.

    Attributes:
        stop_timeout: Seconds ``stop()`` waits for the dispatch thread.
    """

    def __init__(
        self,
        root_path: str | Path,
        recursive: bool,
        max_depth: int | None = None,
        file_filters: Iterable[str] | None = None,
        *,
        callback: DirectoryWatcherCallback | None = None,
        notify_directories: bool = True,
        service_factory: Callable[[], WatchService] | None = None,
        stop_timeout: float = 5.0,
    ) -> None:
        """Initialize watcher. Nothing is watched until :meth:`start`.

        Args:
            root_path: Directory to watch.
            recursive: Watch subdirectories as well.
            max_depth: Deepest level below the root at which newly created
                directories are still watched; None for no limit.
            file_filters: Path suffixes to report; empty reports everything.
            callback: Receiver for change notifications.
            notify_directories: Report changes to directories themselves.
            service_factory: Creates the watch primitive for each run.
            stop_timeout: Seconds ``stop()`` waits for the dispatch thread.
        """
        self._root_path = Path(root_path)
        self._recursive = recursive
        self._max_depth = self._validate_depth(max_depth)
        self._path_filter = PathFilter(file_filters)
        self._notify_directories = notify_directories
        self._callback = callback
        self._service_factory = service_factory or WatchService
        self.stop_timeout = stop_timeout
        self._loop: EventDispatchLoop | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: "WatcherSettings",
        callback: DirectoryWatcherCallback | None = None,
    ) -> "DirectoryWatcher":
        """Build a watcher from loaded settings.

        Args:
            settings: Watcher configuration.
            callback: Receiver for change notifications.

        Returns:
            Configured, not yet started watcher.
        """
        if settings.polling:
            def service_factory() -> WatchService:
                return WatchService.polling(join_timeout=settings.stop_timeout)
        else:
            def service_factory() -> WatchService:
                return WatchService(join_timeout=settings.stop_timeout)

        return cls(
            settings.root_path,
            settings.recursive,
            settings.max_depth,
            settings.file_filters,
            callback=callback,
            notify_directories=settings.notify_directories,
            service_factory=service_factory,
            stop_timeout=settings.stop_timeout,
        )

    @staticmethod
    def _validate_depth(max_depth: int | None) -> int | None:
        if max_depth is not None and max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {max_depth}")
        return max_depth

    @property
    def root_path(self) -> Path:
        """Directory the watcher is anchored to."""
        return self._root_path

    @property
    def recursive(self) -> bool:
        """Whether subdirectories are watched."""
        return self._recursive

    @property
    def max_depth(self) -> int | None:
        """Depth limit for watching newly created directories (None = unbounded)."""
        return self._max_depth

    @max_depth.setter
    def max_depth(self, value: int | None) -> None:
        self._max_depth = self._validate_depth(value)

    @property
    def file_filters(self) -> list[str]:
        """Path suffixes that are reported (empty = all)."""
        return list(self._path_filter.suffixes)

    @file_filters.setter
    def file_filters(self, value: Iterable[str] | None) -> None:
        self._path_filter = PathFilter(value)

    @property
    def path_filter(self) -> PathFilter:
        """Filter currently applied to reported paths."""
        return self._path_filter

    @property
    def notify_directories(self) -> bool:
        """Whether changes to directories themselves are reported."""
        return self._notify_directories

    @notify_directories.setter
    def notify_directories(self, value: bool) -> None:
        self._notify_directories = value

    @property
    def is_running(self) -> bool:
        """Whether the dispatch loop is active."""
        loop = self._loop
        return loop is not None and loop.running

    def start(self) -> None:
        """Register the root and start dispatching events in the background.

        Returns once the initial tree has been registered. Calling it while
        already running logs a warning and does nothing.

        Raises:
            WatcherSetupError: If the watch primitive cannot be created or
                the root cannot be registered.
        """
        with self._lock:
            if self.is_running:
                logger.warning("watcher_already_started", path=str(self._root_path))
                return

            previous = self._loop
            if previous is not None:
                # A run that ended by itself still owns its thread.
                previous.close(timeout=self.stop_timeout)

            try:
                service = self._service_factory()
            except OSError as e:
                raise WatcherSetupError(f"Unable to create watch service: {e}", self._root_path) from e

            loop = EventDispatchLoop(self, service)
            self._loop = loop
            loop.start()
            if loop.running:
                logger.info("watcher_started", path=str(self._root_path), recursive=self._recursive)

    def stop(self) -> None:
        """Stop watching. Safe to call when not running, and from callbacks."""
        loop = self._loop
        if loop is not None and loop.is_dispatch_thread():
            # start() may hold the lock while waiting on this very thread.
            loop.close()
            logger.info("watcher_stopped", path=str(self._root_path))
            return

        with self._lock:
            loop = self._loop
            if loop is None:
                return
            loop.close(timeout=self.stop_timeout)
            logger.info("watcher_stopped", path=str(self._root_path))

    close = stop

    def __enter__(self) -> "DirectoryWatcher":
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()

    def path_created(self, path: Path) -> None:
        """Handle a created entry.

        Args:
            path: Directory of the event joined with the entry name.
        """
        if self._callback is not None:
            self._callback.path_created(path)
        else:
            logger.debug("path_created", path=str(path))

    def path_modified(self, path: Path) -> None:
        """Handle a modified entry.

        Args:
            path: Directory of the event joined with the entry name.
        """
        if self._callback is not None:
            self._callback.path_modified(path)
        else:
            logger.debug("path_modified", path=str(path))

    def path_removed(self, path: Path) -> None:
        """Handle a removed entry.

        Args:
            path: Directory of the event joined with the entry name.
        """
        if self._callback is not None:
            self._callback.path_removed(path)
        else:
            logger.debug("path_removed", path=str(path))

    def __repr__(self) -> str:
        return (
            f"DirectoryWatcher({str(self._root_path)!r}, recursive={self._recursive}, "
            f"running={self.is_running})"
        )
