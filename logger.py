"""
Structured logging for the RoleReady API.

Lines are ``key=value`` pairs. While a request is being served, every
record also carries the request id, the route, and (once
``deps.get_current_user`` has run) the acting user and role.
"""

import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional

from config import get_settings

# One dict per request; sync handlers run on worker threads with a copy of
# the context, so they share the dict rather than rebinding the var.
_request_context: ContextVar[Optional[Dict[str, Any]]] = ContextVar("request_context", default=None)

CONTEXT_FIELDS = ("request_id", "route", "actor", "actor_role")


@contextmanager
def request_scope(method: str, path: str, request_id: Optional[str] = None) -> Iterator[Dict[str, Any]]:
    context = {"request_id": request_id or uuid.uuid4().hex[:12], "route": f"{method} {path}"}
    token = _request_context.set(context)
    try:
        yield context
    finally:
        _request_context.reset(token)


def bind_actor(user: Dict[str, Any]) -> None:
    """Record the acting user on the current request, if there is one."""
    context = _request_context.get()
    if context is not None:
        context["actor"] = str(user.get("_id"))
        context["actor_role"] = user.get("role")


def current_context() -> Dict[str, Any]:
    return dict(_request_context.get() or {})


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in current_context().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class StructuredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.module,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS + ("user_id",):
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value

        log_data.update(getattr(record, "extra_data", {}))

        if record.exc_info:
            log_data["exc"] = self.formatException(record.exc_info).replace("\n", " | ")

        return " ".join(f"{k}={v}" for k, v in log_data.items())


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger writing structured lines to stdout, DEBUG in ``dev``
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        handler.addFilter(RequestContextFilter())
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG if get_settings().ROLEREADY_ENV == "dev" else logging.INFO)

    return logger


def log_with_context(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """Log ``msg`` with extra ``key=value`` fields; ``user_id`` is the subject of the event."""
    extra: Dict[str, Any] = {"extra_data": {k: v for k, v in kwargs.items() if k != "user_id"}}
    if kwargs.get("user_id") is not None:
        extra["user_id"] = kwargs["user_id"]
    logger.log(level, msg, extra=extra)
