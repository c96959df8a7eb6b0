"""structlog setup for couch-cache.

Library modules log through ``structlog.get_logger()`` and never configure
output themselves. The CLI calls :func:`configure_logging` once per command
and wraps the command in :func:`command_context`, so every entry emitted while
it runs, including those from the repository and the CouchDB adapter, carries
the command and collection. The repository adds the ``operation`` it is
running with :func:`operation_context`.

Log output goes to stderr; stdout is reserved for command results.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import TYPE_CHECKING

import structlog
from structlog.contextvars import (
    bind_contextvars,
    bound_contextvars,
    clear_contextvars,
    merge_contextvars,
)

if TYPE_CHECKING:
    from couch_cache_core.config.settings import Settings

# Loggers of the HTTP stack used by the CouchDB adapter; one line per request at INFO
_HTTP_LOGGERS = ("httpx", "httpcore")


def configure_logging(settings: Settings) -> None:
    """Route structlog and stdlib logging to stderr in the configured format."""
    level = _resolve_level(settings.log_level)
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(settings.log_format),
            ],
            foreign_pre_chain=shared,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _HTTP_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


@contextmanager
def command_context(command: str, collection: str) -> Iterator[None]:
    """Bind the CLI command and collection for the duration of one command."""
    bind_contextvars(command=command, collection=collection)
    try:
        yield
    finally:
        clear_contextvars()


def operation_context(operation: str) -> AbstractContextManager[None]:
    """Bind the repository operation while its store calls run."""
    return bound_contextvars(operation=operation)


def _shared_processors() -> list[structlog.types.Processor]:
    """Processors applied to both structlog and foreign stdlib records."""
    return [
        merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def _resolve_level(level_name: str) -> int:
    """Map a level name to its logging constant; unknown names fall back to INFO."""
    level = logging.getLevelName(level_name.upper())
    return level if isinstance(level, int) else logging.INFO
