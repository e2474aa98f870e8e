# app/core/logging.py
"""
Structured logging with correlation IDs.

Every HTTP request gets a correlation id (taken from the caller's
``X-Correlation-ID`` header when present) that is attached to each log line
emitted while the request runs, together with the authenticated caller once
the GraphQL context has been built.
"""
import logging
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Iterable, Optional

import structlog
from fastapi import Request

CORRELATION_HEADER = "X-Correlation-ID"

# Per-request log context
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
caller_context_var: ContextVar[Dict[str, Any]] = ContextVar("caller_context", default={})

# Chatty third-party loggers kept at WARNING unless debugging
NOISY_LOGGERS = ("pymongo", "motor", "botocore", "boto3", "urllib3", "httpx", "httpcore")


class TruncatingProcessor:
    """Cap the size of free-text fields (events, errors, GraphQL documents)."""

    def __init__(self, max_length: int = 200, keys: Iterable[str] = ("event", "error", "query", "variables")):
        self.max_length = max_length
        self.keys = tuple(keys)

    def __call__(self, logger, method_name, event_dict):
        for key in self.keys:
            if key in event_dict and event_dict[key] is not None:
                text = str(event_dict[key])
                if len(text) > self.max_length:
                    event_dict[key] = text[:self.max_length] + "..."
        return event_dict


class CorrelationProcessor:
    """Attach the correlation id and caller context to every event."""

    def __call__(self, logger, method_name, event_dict):
        correlation_id = correlation_id_var.get()
        if correlation_id:
            event_dict.setdefault("correlation_id", correlation_id)
        for key, value in caller_context_var.get().items():
            event_dict.setdefault(key, value)
        return event_dict


def setup_logging(debug: bool = False, max_log_length: int = 200, level: str = "INFO"):
    """Configure structlog on top of the standard library root logger."""
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        CorrelationProcessor(),
        TruncatingProcessor(max_length=max_log_length),
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=log_level, format="%(message)s")
    if not debug:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str = __name__):
    return structlog.get_logger(name)


def set_correlation_id(correlation_id: str):
    correlation_id_var.set(correlation_id)


def set_user_context(user_id: Optional[str] = None, **kwargs):
    """Add the authenticated caller (and any extra fields) to the log context."""
    context = dict(caller_context_var.get())
    if user_id:
        context["user_id"] = user_id
    context.update({k: v for k, v in kwargs.items() if v is not None})
    caller_context_var.set(context)


def clear_context():
    correlation_id_var.set("")
    caller_context_var.set({})


class LoggingMiddleware:
    """HTTP middleware: correlation id per request, slow/failed request logging."""

    def __init__(self, log_requests: bool = False, log_responses: bool = False,
                 slow_threshold: float = 2.0):
        self.log_requests = log_requests
        self.log_responses = log_responses
        self.slow_threshold = slow_threshold
        self.logger = get_logger("app.http")

    async def __call__(self, request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex[:12]
        set_correlation_id(correlation_id)
        set_user_context(path=request.url.path, method=request.method)
        request.state.correlation_id = correlation_id

        started = time.perf_counter()
        if self.log_requests:
            self.logger.info("request_start")

        try:
            response = await call_next(request)
        except Exception as e:
            self.logger.error(
                "request_error",
                error=str(e),
                error_type=type(e).__name__,
                duration=round(time.perf_counter() - started, 3),
            )
            clear_context()
            raise

        duration = time.perf_counter() - started
        slow = duration > self.slow_threshold
        if self.log_responses or slow or response.status_code >= 400:
            log = self.logger.warning if slow or response.status_code >= 500 else self.logger.info
            log("request_complete", status_code=response.status_code, duration=round(duration, 3), slow=slow)

        response.headers[CORRELATION_HEADER] = correlation_id
        clear_context()
        return response
