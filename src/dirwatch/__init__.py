"""Recursive, filterable directory change notification."""
from dirwatch.dispatch import EventDispatchLoop, WatcherSetupError
from dirwatch.filters import PathFilter, depth_of
from dirwatch.registrar import TreeRegistrar
from dirwatch.registry import SubscriptionRegistry
from dirwatch.service import RawEvent, WatchKey, WatchService, WatchServiceClosed
from dirwatch.types import DirectoryWatcherCallback, EventKind, PathEvent, TaggedCallback
from dirwatch.watcher import DirectoryWatcher

__all__ = [
    "DirectoryWatcher",
    "DirectoryWatcherCallback",
    "EventDispatchLoop",
    "EventKind",
    "PathEvent",
    "PathFilter",
    "RawEvent",
    "SubscriptionRegistry",
    "TaggedCallback",
    "TreeRegistrar",
    "WatchKey",
    "WatchService",
    "WatchServiceClosed",
    "WatcherSetupError",
    "depth_of",
]
