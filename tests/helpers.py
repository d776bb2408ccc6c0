"""Shared test doubles and polling helpers."""

import os
import queue
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from dirwatch.service import RawEvent, WatchServiceClosed
from dirwatch.types import EventKind

_CLOSED = object()


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll until predicate is true or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class RecordingCallback:
    """Callback recording every notification in arrival order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[tuple[EventKind, Path]] = []

    def path_created(self, path: Path) -> None:
        self._record(EventKind.CREATED, path)

    def path_modified(self, path: Path) -> None:
        self._record(EventKind.MODIFIED, path)

    def path_removed(self, path: Path) -> None:
        self._record(EventKind.REMOVED, path)

    def _record(self, kind: EventKind, path: Path) -> None:
        with self._lock:
            self._events.append((kind, path))

    @property
    def events(self) -> list[tuple[EventKind, Path]]:
        with self._lock:
            return list(self._events)

    def paths(self, kind: EventKind) -> list[Path]:
        return [path for event_kind, path in self.events if event_kind is kind]

    def kinds_for(self, path: Path) -> list[EventKind]:
        return [kind for kind, event_path in self.events if event_path == path]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class FakeWatchKey:
    """In-memory watch key with the ready/signalled states of the real one."""

    def __init__(self, service: "FakeWatchService", directory: Path) -> None:
        self.service = service
        self.directory = directory
        self.events: list[RawEvent] = []
        self.valid = True
        self.signalled = False
        self.reset_count = 0

    def poll_events(self) -> list[RawEvent]:
        with self.service.lock:
            events, self.events = self.events, []
        return events

    def reset(self) -> bool:
        with self.service.lock:
            self.reset_count += 1
            if not self.valid:
                return False
            self.signalled = False
            if self.events:
                self.signal()
            return True

    def signal(self) -> None:
        # Caller holds the service lock.
        if not self.signalled:
            self.signalled = True
            self.service.ready.put(self)

    def __repr__(self) -> str:
        return f"FakeWatchKey({str(self.directory)!r})"


class FakeWatchService:
    """Watch primitive whose events are injected by the test."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.ready: queue.Queue[Any] = queue.Queue()
        self.keys: dict[Path, FakeWatchKey] = {}
        self.registered: list[Path] = []
        self.failing: set[Path] = set()
        self.closed = False

    def register(self, directory: Path) -> FakeWatchKey:
        if self.closed:
            raise WatchServiceClosed("closed")
        if directory in self.failing:
            raise PermissionError(f"Permission denied: {directory}")
        if not os.path.isdir(directory):
            raise FileNotFoundError(f"No such directory: {directory}")
        key = self.keys.get(directory)
        if key is None or not key.valid:
            key = FakeWatchKey(self, directory)
            self.keys[directory] = key
            self.registered.append(directory)
        return key

    def emit(self, directory: Path, kind: EventKind | str, name: str) -> None:
        self.emit_key(self.keys[directory], kind, name)

    def emit_key(self, key: FakeWatchKey, kind: EventKind | str, name: str) -> None:
        with self.lock:
            key.events.append(RawEvent(kind, name))  # type: ignore[arg-type]
            key.signal()

    def invalidate(self, directory: Path) -> None:
        with self.lock:
            key = self.keys.pop(directory)
            key.valid = False
            key.signal()

    def fail_next_take(self, error: BaseException) -> None:
        self.ready.put(error)

    def take(self) -> FakeWatchKey:
        if self.closed:
            raise WatchServiceClosed("closed")
        item = self.ready.get()
        if item is _CLOSED:
            self.ready.put(_CLOSED)
            raise WatchServiceClosed("closed")
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.ready.put(_CLOSED)
