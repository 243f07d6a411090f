"""Structured logging for the synchronizer.

All output, including stdlib records from httpx and uvicorn, is rendered by
one structlog pipeline, so the pair_id/job_id bound by pair_context() show
up on every line emitted while a pair is being synchronized.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

LOG_FORMATS = ("console", "json")

# Library loggers that log every request at INFO
QUIET_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "uvicorn.access": logging.WARNING,
}


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    if log_format == "console":
        return structlog.dev.ConsoleRenderer()
    raise ValueError(f"log format must be one of {LOG_FORMATS}, got {log_format!r}")


def setup_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Route structlog and stdlib logging through a single stderr handler.

    Args:
        log_level: Root level name, e.g. "INFO" or "debug".
        log_format: "console" for development, "json" for log shippers.
    """
    renderer = _renderer(log_format.lower())

    # Applied to structlog events and, via foreign_pre_chain, to stdlib records
    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


@contextmanager
def pair_context(pair_id: str, job_id: str | None = None) -> Iterator[None]:
    """Bind pair_id and job_id to every log line emitted inside the block."""
    with structlog.contextvars.bound_contextvars(pair_id=pair_id, job_id=job_id):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
