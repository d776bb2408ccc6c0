"""Background loop turning raw watch events into watcher callbacks."""
import os
import threading
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from dirwatch.filters import depth_of
from dirwatch.registrar import TreeRegistrar
from dirwatch.registry import SubscriptionRegistry
from dirwatch.service import WatchService, WatchServiceClosed
from dirwatch.types import EventKind, PathEvent

if TYPE_CHECKING:
    from dirwatch.watcher import DirectoryWatcher

logger = structlog.get_logger()

THREAD_NAME = "dirwatch-dispatch"


class WatcherSetupError(Exception):
    """Raised when a watcher cannot start watching its root."""

    def __init__(self, message: str, path: Path) -> None:
        """Initialize setup error.

        Args:
            message: Error description.
            path: Root path that could not be watched.
        """
        super().__init__(message)
        self.path = path


def _is_real_directory(path: Path) -> bool:
    return os.path.isdir(path) and not os.path.islink(path)


class EventDispatchLoop:
    """One run of a watcher: its primitive, registry and dispatch thread.

    A loop is started once and never restarted; the watcher builds a new
    loop with a fresh watch service for every ``start()``.

    Configuration is read from the watcher on every event without
    synchronization, so changes made while running take effect at some
    later event.
    """

    def __init__(self, watcher: "DirectoryWatcher", service: WatchService) -> None:
        """Initialize dispatch loop.

        Args:
            watcher: Owning watcher, source of configuration and callbacks.
            service: Freshly created watch primitive for this run.
        """
        self._watcher = watcher
        self._service = service
        self._registry = SubscriptionRegistry()
        self._registrar = TreeRegistrar(service, self._registry, self._announce_directory)
        self._running = threading.Event()
        self._ready = threading.Event()
        self._startup_error: OSError | None = None
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        """Whether the loop is active."""
        return self._running.is_set()

    @property
    def registry(self) -> SubscriptionRegistry:
        """Keys watched by this run."""
        return self._registry

    def start(self) -> None:
        """Launch the dispatch thread and wait for initial registration.

        Raises:
            WatcherSetupError: If the root could not be registered.
        """
        self._running.set()
        self._thread = threading.Thread(target=self._run, name=THREAD_NAME, daemon=True)
        self._thread.start()
        self._ready.wait()

        if self._startup_error is not None:
            root = self._watcher.root_path
            raise WatcherSetupError(
                f"Unable to watch {root}: {self._startup_error}", root
            ) from self._startup_error

    def close(self, timeout: float | None = None) -> None:
        """Stop the loop and release the primitive.

        Idempotent. Does not wait when called from the dispatch thread.

        Args:
            timeout: Seconds to wait for the dispatch thread to finish.
        """
        self._running.clear()
        self._service.close()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread() and thread.is_alive():
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("dispatch_thread_still_alive", timeout=timeout)

    def _run(self) -> None:
        try:
            try:
                self._register_root()
            except WatchServiceClosed:
                # Stopped while the initial tree was being registered.
                logger.info("watcher_stopped_during_registration", path=str(self._watcher.root_path))
                return
            except OSError as e:
                logger.warning("watcher_register_root_failed", path=str(self._watcher.root_path), error=str(e))
                self._startup_error = e
                return
            finally:
                self._ready.set()

            self.process_events()
        except Exception as e:
            logger.error("dispatch_loop_crashed", error=str(e), exc_info=True)
        finally:
            self._service.close()
            self._running.clear()

    def is_dispatch_thread(self) -> bool:
        """Check whether the caller runs on this loop's dispatch thread."""
        return self._thread is threading.current_thread()

    def _register_root(self) -> None:
        root = self._watcher.root_path
        if self._watcher.recursive:
            count = self._registrar.register_all(root)
        else:
            self._registrar.register(root)
            count = 1
        logger.info("watcher_registered", path=str(root), directories=count, recursive=self._watcher.recursive)

    def process_events(self) -> None:
        """Wait for signalled keys and dispatch their events until stopped."""
        while self._running.is_set():
            try:
                key = self._service.take()
            except WatchServiceClosed:
                # Closed by stop(); the running flag is already cleared.
                break
            except Exception as e:
                logger.error("dispatch_wait_failed", thread=THREAD_NAME, error=str(e))
                self.close()
                return

            directory = self._registry.path_for(key)
            if directory is None:
                logger.debug("dispatch_unknown_key", key=repr(key))
                continue

            for kind, name in key.poll_events():
                self._handle(directory, kind, name)

            if not key.reset():
                self._registry.remove(key)
                logger.info("watch_invalidated", path=str(directory))
                if self._registry.is_empty():
                    logger.info("dispatch_nothing_left_to_watch")
                    break

        logger.info("dispatch_loop_stopped", thread=THREAD_NAME)

    def _handle(self, directory: Path, raw_kind: str, name: str) -> None:
        try:
            kind = EventKind(raw_kind)
        except ValueError:
            logger.debug("dispatch_unknown_kind", kind=str(raw_kind), name=name)
            return

        watcher = self._watcher
        child = directory / name
        is_directory = _is_real_directory(child)

        if is_directory and watcher.recursive and kind is EventKind.CREATED and self._within_depth(child):
            try:
                self._registrar.register_all(child)
            except WatchServiceClosed:
                return
            except OSError as e:
                logger.warning("directory_access_failed", path=str(child), error=str(e))
        elif watcher.path_filter.allows(child):
            self.notify(
                PathEvent(
                    path=child,
                    kind=kind,
                    is_directory=is_directory or self._registry.watches(child),
                )
            )

    def _within_depth(self, path: Path) -> bool:
        max_depth = self._watcher.max_depth
        return max_depth is None or depth_of(path, self._watcher.root_path) < max_depth

    def _announce_directory(self, directory: Path) -> None:
        self.notify(PathEvent(path=directory, kind=EventKind.CREATED, is_directory=True, synthetic=True))

    def notify(self, event: PathEvent) -> None:
        """Invoke the watcher callback matching an event's kind.

        Directory events are dropped while directory notifications are off.
        Exceptions raised by the callback are logged and swallowed.

        Args:
            event: Classified event.
        """
        if event.is_directory and not self._watcher.notify_directories:
            logger.debug("directory_notification_suppressed", path=str(event.path), kind=event.kind.value)
            return

        watcher = self._watcher
        handlers = {
            EventKind.CREATED: watcher.path_created,
            EventKind.MODIFIED: watcher.path_modified,
            EventKind.REMOVED: watcher.path_removed,
        }
        try:
            handlers[event.kind](event.path)
        except Exception as e:
            logger.error(
                "watcher_callback_error",
                error=str(e),
                path=str(event.path),
                kind=event.kind.value,
                synthetic=event.synthetic,
            )
