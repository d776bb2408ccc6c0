"""Entry point for python -m dirwatch."""

import signal
import sys
import threading
from pathlib import Path

import structlog

from dirwatch.config import WatcherSettings
from dirwatch.dispatch import WatcherSetupError
from dirwatch.logging import configure_logging
from dirwatch.types import EventKind, TaggedCallback
from dirwatch.watcher import DirectoryWatcher

logger = structlog.get_logger()


def log_path_event(path: Path, kind: EventKind) -> None:
    """Log a change notification.

    Args:
        path: Changed path.
        kind: What happened to it.
    """
    logger.info("path_event", kind=kind.value, path=str(path))


def run(settings: WatcherSettings) -> int:
    """Watch until SIGINT/SIGTERM or until nothing is left to watch.

    Args:
        settings: Watcher configuration.

    Returns:
        Process exit code.
    """
    watcher = DirectoryWatcher.from_settings(settings, callback=TaggedCallback(log_path_event))
    shutdown = threading.Event()

    def trigger(signum: int, frame: object) -> None:
        logger.info("shutdown_triggered", signal=signum)
        shutdown.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        signal.signal(sig, trigger)

    try:
        watcher.start()
    except WatcherSetupError as e:
        logger.error("watcher_setup_failed", path=str(e.path), error=str(e))
        return 1

    while watcher.is_running and not shutdown.wait(timeout=0.5):
        pass

    watcher.stop()
    return 0


def main() -> None:
    """Entry point for python -m dirwatch."""
    settings = WatcherSettings()
    configure_logging(debug=settings.debug, json_output=settings.log_json)
    sys.exit(run(settings))


if __name__ == "__main__":
    main()
