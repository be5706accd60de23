"""Structured logging configuration for Keepwise."""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar

# Context variable for request tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')

_EXTRA_FIELDS = ('duration_ms', 'method', 'path', 'status_code', 'owner_id')


class StructuredFormatter(logging.Formatter):
    """JSON-structured log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": request_id_var.get(''),
        }

        # Add extra fields
        for field in _EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Install a single stderr handler on the root logger."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_keepwise", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler._keepwise = True
    if json_output:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


async def request_logging_middleware(request, call_next):
    """Tag each HTTP request with an id and log its duration."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())[:8]
    token = request_id_var.set(request_id)
    start = time.perf_counter()
    status_code = 500

    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers["X-Request-ID"] = request_id
        return response
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        logging.getLogger("keepwise.http").info(
            "Request completed",
            extra={
                'duration_ms': round(duration_ms, 2),
                'method': request.method,
                'path': request.url.path,
                'status_code': status_code,
            }
        )
        request_id_var.reset(token)
