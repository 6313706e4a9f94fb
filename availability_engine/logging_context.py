"""Request ID logging context for tracing one availability query.

A single slot query fans out into distance lookups and per-staff
evaluations on worker threads. Tagging every record with the request ID
keeps those lines attributable.

Usage:
    from availability_engine.logging_context import get_request_logger, set_request_id

    set_request_id("REQ-abc123")
    logger = get_request_logger(__name__)
    logger.info("Generating slots")  # record.request_id == "REQ-abc123"
"""

import contextvars
import logging
import uuid
from contextvars import ContextVar
from typing import Callable, TypeVar

T = TypeVar("T")

_request_id: ContextVar[str] = ContextVar("request_id", default="NO_REQUEST_ID")


def new_request_id() -> str:
    """Generate a short request ID."""
    return f"REQ-{uuid.uuid4().hex[:8]}"


def set_request_id(request_id: str) -> None:
    """Set the request ID for the current context."""
    _request_id.set(request_id)


def get_request_id() -> str:
    """Retrieve the current request ID."""
    return _request_id.get()


class RequestIdFilter(logging.Filter):
    """Injects request_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True


def get_request_logger(name: str) -> logging.Logger:
    """Return a logger with the RequestIdFilter attached.

    The filter adds ``request_id`` to each record so formatters can
    include ``%(request_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, RequestIdFilter) for f in logger.filters):
        logger.addFilter(RequestIdFilter())
    return logger


def bind_context(func: Callable[..., T]) -> Callable[..., T]:
    """Wrap ``func`` so worker threads run it with the caller's request ID.

    Each call runs in its own copy of the captured context, so the wrapper
    can be handed to a thread pool and invoked concurrently.
    """
    captured = contextvars.copy_context()

    def runner(*args, **kwargs) -> T:
        return captured.copy().run(func, *args, **kwargs)

    return runner
