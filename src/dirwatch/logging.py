"""structlog setup for the watcher process."""

import logging
import sys

import structlog
from structlog.types import Processor

QUIET_LIBRARIES: tuple[str, ...] = ("watchdog",)


def _renderer(json_output: bool) -> Processor:
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(debug: bool = False, json_output: bool = True) -> None:
    """Route watcher events to stderr as JSON lines or readable console output.

    Stdout is left to the embedding application. Library loggers listed in
    ``QUIET_LIBRARIES`` never drop below INFO, since watchdog reports every
    emitter start and stop at debug level.

    Args:
        debug: Enable debug-level logging when True.
        json_output: Render JSON lines; otherwise use the console renderer.
    """
    level = logging.DEBUG if debug else logging.INFO

    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json_output:
        shared.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=[*shared, _renderer(json_output)],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(levelname)s %(name)s: %(message)s",
        level=level,
        stream=sys.stderr,
    )
    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(max(level, logging.INFO))
