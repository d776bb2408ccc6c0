"""Per-directory watch primitive backed by watchdog observers.

A :class:`WatchService` hands out one :class:`WatchKey` per registered
directory. Each directory is scheduled non-recursively, so a key only
ever reports entries that live directly inside its directory. Keys with
pending events are queued on a single ready queue that the consumer
drains with :meth:`WatchService.take`.
"""

import contextlib
import os
import queue
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any, NamedTuple

import structlog
from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch
from watchdog.observers.polling import PollingObserver

from dirwatch.types import EventKind

logger = structlog.get_logger()

_CLOSED = object()


class WatchServiceClosed(Exception):
    """Raised when a closed watch service is used."""


class RawEvent(NamedTuple):
    """Unresolved change reported for one entry of a watched directory.

    Attributes:
        kind: Change kind.
        name: Entry name relative to the watched directory.
    """

    kind: EventKind
    name: str


def _decode(path: str | bytes) -> str:
    return os.path.abspath(os.fsdecode(path))


class WatchKey:
    """Subscription of one directory with a :class:`WatchService`.

    A key is either ready or signalled. Posting an event to a ready key
    signals it and puts it on the service's ready queue; :meth:`reset`
    returns it to ready once the consumer has polled its events.
    """

    def __init__(self, service: "WatchService", directory: Path) -> None:
        """Initialize key.

        Args:
            service: Owning watch service.
            directory: Directory the key watches, as given at registration.
        """
        self._service = service
        self._directory = directory
        self._absolute = os.path.abspath(directory)
        self._events: list[RawEvent] = []
        self._signalled = False
        self._valid = True
        self.watch: ObservedWatch | None = None

    @property
    def directory(self) -> Path:
        """Directory watched by this key."""
        return self._directory

    @property
    def is_valid(self) -> bool:
        """Whether the key still watches an accessible directory."""
        return self._valid

    def poll_events(self) -> list[RawEvent]:
        """Take all events posted since the last poll.

        Returns:
            Pending events in arrival order.
        """
        with self._service.lock:
            events, self._events = self._events, []
        return events

    def reset(self) -> bool:
        """Re-arm the key after its events were processed.

        A key whose directory is gone is invalidated and unscheduled here.

        Returns:
            False if the key is no longer valid.
        """
        if self._valid and not os.path.isdir(self._absolute):
            self._invalidate()
        with self._service.lock:
            if self._valid:
                self._signalled = False
                if self._events:
                    self._signal()
                return True
        self._service.discard(self)
        return False

    def post(self, kind: EventKind, name: str) -> None:
        """Append a raw event and signal the key.

        Args:
            kind: Change kind.
            name: Entry name inside the watched directory.
        """
        with self._service.lock:
            if not self._valid:
                return
            self._events.append(RawEvent(kind, name))
            self._signal()

    def _invalidate(self) -> None:
        with self._service.lock:
            if not self._valid:
                return
            self._valid = False
            self._signal()

    def _signal(self) -> None:
        # Caller holds the service lock.
        if not self._signalled:
            self._signalled = True
            self._service.ready.put(self)

    def dispatch(self, event: FileSystemEvent) -> None:
        """Translate a watchdog event into raw events for this directory.

        Args:
            event: Event delivered by the observer for this key's watch.
        """
        src_path = _decode(event.src_path)

        if src_path == self._absolute:
            if event.event_type in (EVENT_TYPE_DELETED, EVENT_TYPE_MOVED):
                logger.debug("watch_key_directory_gone", path=src_path, event_type=event.event_type)
                self._invalidate()
            return

        if event.event_type == EVENT_TYPE_MOVED:
            dest_path = _decode(event.dest_path)
            if os.path.dirname(src_path) == self._absolute:
                self.post(EventKind.REMOVED, os.path.basename(src_path))
            if os.path.dirname(dest_path) == self._absolute:
                self.post(EventKind.CREATED, os.path.basename(dest_path))
            return

        if os.path.dirname(src_path) != self._absolute:
            return

        name = os.path.basename(src_path)
        if event.event_type == EVENT_TYPE_CREATED:
            self.post(EventKind.CREATED, name)
        elif event.event_type == EVENT_TYPE_MODIFIED:
            self.post(EventKind.MODIFIED, name)
        elif event.event_type == EVENT_TYPE_DELETED:
            with self._service.lock:
                if not event.is_directory:
                    self.post(EventKind.MODIFIED, name)
                self.post(EventKind.REMOVED, name)

    def __repr__(self) -> str:
        return f"WatchKey({str(self._directory)!r}, valid={self._valid})"


class _KeyHandler(FileSystemEventHandler):
    """Watchdog handler forwarding events of one watch to its key."""

    def __init__(self, key: WatchKey) -> None:
        super().__init__()
        self._key = key

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Forward raw watchdog event to the key.

        Args:
            event: Raw watchdog filesystem event.
        """
        self._key.dispatch(event)


class WatchService:
    """Watch primitive handing out one key per registered directory.

    Attributes:
        lock: Guards key state shared with the observer thread.
        ready: Signalled keys waiting for :meth:`take`.
    """

    def __init__(
        self,
        observer_factory: Callable[[], BaseObserver] = Observer,
        join_timeout: float = 5.0,
    ) -> None:
        """Create and start the underlying observer.

        Args:
            observer_factory: Watchdog observer class or factory.
            join_timeout: Seconds to wait for the observer thread on close.
        """
        self.lock = threading.RLock()
        self.ready: queue.Queue[Any] = queue.Queue()
        self._keys: dict[str, WatchKey] = {}
        self._closed = False
        self._join_timeout = join_timeout
        self._observer = observer_factory()
        self._observer.start()

    @classmethod
    def polling(cls, join_timeout: float = 5.0) -> "WatchService":
        """Create a service that polls directory snapshots instead of using OS events."""
        return cls(observer_factory=PollingObserver, join_timeout=join_timeout)

    @property
    def closed(self) -> bool:
        """Whether :meth:`close` has been called."""
        return self._closed

    def register(self, directory: Path) -> WatchKey:
        """Start watching the entries of a directory.

        Registering a directory that already has a live key returns that key.

        Args:
            directory: Directory to watch.

        Returns:
            Key for the directory.

        Raises:
            WatchServiceClosed: If the service is closed.
            NotADirectoryError: If the path is not a directory.
            OSError: If the directory cannot be watched.
        """
        if self._closed:
            raise WatchServiceClosed("Watch service is closed")

        absolute = os.path.abspath(directory)
        if not os.path.isdir(absolute):
            if not os.path.exists(absolute):
                raise FileNotFoundError(f"No such directory: {directory}")
            raise NotADirectoryError(f"Not a directory: {directory}")

        with self.lock:
            existing = self._keys.get(absolute)
            if existing is not None and existing.is_valid:
                return existing
            key = WatchKey(self, directory)
            self._keys[absolute] = key

        try:
            key.watch = self._observer.schedule(_KeyHandler(key), absolute, recursive=False)
        except Exception:
            with self.lock:
                self._keys.pop(absolute, None)
                key._valid = False
            raise

        logger.debug("watch_registered", path=str(directory))
        return key

    def take(self) -> WatchKey:
        """Block until a key is signalled.

        Returns:
            Next signalled key.

        Raises:
            WatchServiceClosed: If the service is or becomes closed.
        """
        if self._closed:
            raise WatchServiceClosed("Watch service is closed")
        item = self.ready.get()
        if item is _CLOSED:
            # Leave the marker for any other waiter.
            self.ready.put(_CLOSED)
            raise WatchServiceClosed("Watch service is closed")
        return item

    def discard(self, key: WatchKey) -> None:
        """Unschedule an invalid key.

        Args:
            key: Key to drop.
        """
        absolute = os.path.abspath(key.directory)
        with self.lock:
            if self._keys.get(absolute) is key:
                del self._keys[absolute]
        if key.watch is not None and not self._closed:
            with contextlib.suppress(KeyError):
                self._observer.unschedule(key.watch)

    def close(self) -> None:
        """Stop the observer and wake any blocked :meth:`take`.

        Idempotent.
        """
        with self.lock:
            if self._closed:
                return
            self._closed = True
            self._keys.clear()
        self.ready.put(_CLOSED)

        self._observer.stop()
        if self._observer is not threading.current_thread():
            self._observer.join(timeout=self._join_timeout)
        logger.debug("watch_service_closed")
