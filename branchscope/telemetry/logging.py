"""
BranchScope — Structured Logging

All logging via structlog, rendered through the standard library so
coverage events interleave with whatever the host test runner logs.

Engine modules log through ``structlog.get_logger(system="coverage.<x>")``.
While a unit is analysed, ``unit_context`` binds its name into the
context variables, so builder, analyser and projector events all carry
``unit=`` without threading it through every call.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import IO, TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from branchscope.config import LoggingConfig


def _renderer(config: LoggingConfig) -> Any:
    if config.format == "json":
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.dev.ConsoleRenderer(colors=config.colors)


def setup_logging(config: LoggingConfig, *, stream: IO[str] | None = None) -> None:
    """
    Configure structured logging for BranchScope and its host process.

    ``stream`` defaults to stdout; coverage reports usually go to files,
    leaving the console to the engine's progress and failure events.
    """
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if config.format == "json":
        # Events logged with exc_info carry the traceback as a string field
        shared_processors.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(config),
        ],
    )

    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))


@contextmanager
def unit_context(unit: str) -> Iterator[None]:
    """Bind ``unit`` to every log event emitted inside the block."""
    with structlog.contextvars.bound_contextvars(unit=unit):
        yield
