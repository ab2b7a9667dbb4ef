"""Structured logging configuration using structlog.

Stdlib loggers (every module logs through ``logging.getLogger(__name__)``)
are rendered by structlog as JSON or as colored console lines. Log entries
emitted during a root run carry its trace id as ``run_id``, including entries
from nested sub-agent runs.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from hive_agent.settings import LoggingSettings

run_id_ctx: ContextVar[str | None] = ContextVar("run_id", default=None)

# Chatty client libraries used by the LLM backend
QUIET_LOGGERS = ("httpx", "httpcore", "LiteLLM")


def add_run_id(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Processor that adds the current run_id to a log entry."""
    run_id = run_id_ctx.get()
    if run_id:
        event_dict["run_id"] = run_id
    return event_dict


@contextmanager
def bind_run_id(run_id: str | None) -> Iterator[None]:
    """Bind ``run_id`` for the duration of a root run.

    Passing None leaves the current binding alone, so sub-agent runs log
    under the id of the root run that spawned them.
    """
    if run_id is None:
        yield
        return
    token = run_id_ctx.set(run_id)
    try:
        yield
    finally:
        run_id_ctx.reset(token)


def configure_logging(settings: LoggingSettings) -> None:
    """Route stdlib logging through structlog.

    Args:
        settings: Level and renderer choice (JSON or colored console)
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        add_run_id,
    ]

    renderer: structlog.types.Processor
    if settings.json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
