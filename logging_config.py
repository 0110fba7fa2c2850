# logging_config.py - structlog setup plus per-channel / per-session log context
import logging
import sys
from contextlib import contextmanager
from typing import IO, Any, Iterator, Optional

import structlog

from config import CONFIG

# Libraries that log every request or loop event at INFO
_NOISY_LOGGERS = ("werkzeug", "asyncio", "urllib3")


def _add_service(service_name: str):
    def processor(logger, method_name, event_dict):
        event_dict.setdefault("service", service_name)
        return event_dict
    return processor


def setup_logging(
    service_name: Optional[str] = None,
    *,
    level: Optional[str] = None,
    json_logs: Optional[bool] = None,
    stream: Optional[IO[str]] = None,
) -> None:
    """
    Configure structlog on top of stdlib logging.

    Args:
        service_name: stamped on every event as `service` (e.g. "sentineliq-api")
        level: overrides LOG_LEVEL
        json_logs: overrides STRUCTURED_LOGGING; production defaults to JSON
        stream: where the root handler writes (stderr by default)

    Values bound with `log_context()` or `bind_session()` are merged into every
    event, so callback failures carry the channel and the session they ran for.
    """
    logging.root.handlers.clear()

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if service_name:
        processors.insert(1, _add_service(service_name))

    if json_logs is None:
        json_logs = CONFIG.security.structured_logging or CONFIG.app.env.lower() == "production"
    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        out = stream or sys.stderr
        processors.append(structlog.dev.ConsoleRenderer(colors=out.isatty()))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    log_level = (level or CONFIG.security.log_level).upper()
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level, logging.INFO),
        handlers=[logging.StreamHandler(stream)],
        force=True,
    )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


@contextmanager
def log_context(**values: Any) -> Iterator[None]:
    """Bind `values` to every event logged inside the block, then restore."""
    with structlog.contextvars.bound_contextvars(**values):
        yield


def bind_session(user_id: Optional[str] = None, workspace_id: Optional[str] = None) -> None:
    """Tag the current task's events with the user and workspace it serves."""
    values = {k: v for k, v in (("user_id", user_id), ("workspace_id", workspace_id)) if v}
    structlog.contextvars.bind_contextvars(**values)
