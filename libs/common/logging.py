"""Structured logging configuration for the search service.

Logs are rendered by ``structlog`` as JSON (production) or colored console
lines (local dev). Every line carries the service name; lines emitted while
handling an HTTP request also carry its ``request_id`` so the rewrite, both
search branches and fusion of one request can be correlated.

Typical usage
- Call ``configure_logging(service_name, log_level, log_format)`` at startup
- Wrap request handling in ``request_context()``
- Acquire loggers via ``structlog.get_logger("search_service.<component>")``
"""

import logging
import sys
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog
from structlog.stdlib import LoggerFactory, add_logger_name

# Client libraries that log every HTTP round trip at INFO
NOISY_LOGGERS = ("opensearch", "httpx", "httpcore", "urllib3")


def configure_logging(
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
) -> None:
    """Configure structured logging for a service.

    Parameters
    - service_name: Logical service identifier bound to each log line
    - log_level: ``DEBUG``, ``INFO``, ``WARNING``, ``ERROR`` (case-insensitive);
      unknown names fall back to ``INFO``
    - log_format: ``json`` for production; anything else renders for a console
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_logger_name,
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name)


@contextmanager
def request_context(request_id: Optional[str] = None, **fields: Any) -> Iterator[str]:
    """Bind a request id, plus any ``fields``, to log lines inside the block.

    Yields the request id, generating one when the caller has none.
    """
    request_id = request_id or uuid.uuid4().hex
    with structlog.contextvars.bound_contextvars(request_id=request_id, **fields):
        yield request_id


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_performance(operation: str, duration_ms: float, **kwargs: Any) -> None:
    """Log how long a unit of work took.

    Parameters
    - operation: Stable identifier such as ``hybrid_search``
    - duration_ms: Elapsed time in milliseconds
    - kwargs: Additional dimensions (result counts, degraded sources)
    """
    get_logger("search_service.performance").info(
        "Operation completed",
        operation=operation,
        duration_ms=round(duration_ms, 3),
        **kwargs
    )
