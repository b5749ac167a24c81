"""Request-scoped correlation IDs for log records.

Every HTTP request runs inside ``request_scope``, which binds an ID to
the current context and restores the previous one on exit. Records that
pass through a handler carrying ``RequestIdFilter`` get a ``request_id``
attribute, so one booking can be followed from the route through
validation, persistence and the notification handoff.

Usage:
    from clinic_scheduler.logging_context import request_scope

    with request_scope(incoming_header) as request_id:
        coordinator.create_appointment(...)  # logs carry request_id
"""

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Optional

NO_REQUEST = "-"

LOG_FORMAT = "%(asctime)s [%(request_id)s] [%(name)s] %(levelname)s: %(message)s"

_request_id: ContextVar[str] = ContextVar("request_id", default=NO_REQUEST)


def new_request_id() -> str:
    """Generate a fresh correlation ID, e.g. ``REQ-1a2b3c4d5e6f``."""
    return f"REQ-{uuid.uuid4().hex[:12]}"


def get_request_id() -> str:
    return _request_id.get()


@contextmanager
def request_scope(request_id: Optional[str] = None) -> Iterator[str]:
    """Bind ``request_id`` (or a new one) for the duration of the block."""
    bound = request_id or new_request_id()
    token = _request_id.set(bound)
    try:
        yield bound
    finally:
        _request_id.reset(token)


class RequestIdFilter(logging.Filter):
    """Stamps the current request ID onto every record it sees."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True


def build_log_handler(datefmt: Optional[str] = None) -> logging.Handler:
    """Stream handler whose format includes the request ID.

    The filter sits on the handler rather than on individual loggers, so
    records from any module (and from third-party libraries) can be
    formatted with ``%(request_id)s``.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=datefmt))
    handler.addFilter(RequestIdFilter())
    return handler


def get_request_logger(name: str) -> logging.Logger:
    """Module logger that also stamps ``request_id`` for other sinks.

    Handlers built by ``build_log_handler`` already add the attribute;
    this covers handlers attached elsewhere (e.g. structured sinks).
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, RequestIdFilter) for f in logger.filters):
        logger.addFilter(RequestIdFilter())
    return logger
