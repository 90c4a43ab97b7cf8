"""
Structured logging for the catalog service.

Events are rendered by structlog as JSON lines or colored console output.
Request-scoped values (method, path, request id) are carried in context
variables and merged into every event logged while the request runs.
"""

import logging
import sys
import uuid
from pathlib import Path
from typing import Optional, Union

import structlog
from structlog.stdlib import LoggerFactory

# Libraries whose INFO chatter drowns out catalog events
QUIET_LOGGERS = ("pymongo", "motor", "passlib", "multipart")


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[Union[str, Path]] = None,
    debug: bool = False
) -> None:
    """
    Configure structlog and the root handler.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_format: json or console
        log_file: Optional file that receives a copy of every event
        debug: Add call-site information to every event
    """
    level = getattr(logging, log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if debug:
        processors.append(structlog.processors.CallsiteParameterAdder())
    if log_format == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logging.getLogger().addHandler(handler)

    structlog.get_logger(__name__).info(
        "Logging configured",
        level=log_level,
        format=log_format,
        file=str(log_file) if log_file else None,
    )


def bind_request_context(method: str, path: str, request_id: Optional[str] = None) -> str:
    """
    Start a fresh logging context for one request.

    Returns:
        The request id bound to the context, generated when not supplied
    """
    request_id = request_id or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, method=method, path=path)
    return request_id


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
