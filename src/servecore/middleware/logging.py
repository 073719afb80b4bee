"""
=============================================================================
LOGGING MIDDLEWARE
=============================================================================

One access-log line per request, with timing and a request ID.

    TEXT FORMAT (default):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 192.168.1.1 - - [10/Jun/2026:10:55:36 +0000] "POST /greet" 200 11 │
    │ 0.42ms                                                              │
    └─────────────────────────────────────────────────────────────────────┘

    JSON FORMAT (for log aggregators):
    {"request_id": "a1b2c3d4", "method": "POST", "path": "/greet", ...}

Logs go to the "servecore.access" logger so they can be routed separately:

    logging.getLogger("servecore.access").addHandler(file_handler)

=============================================================================
"""

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Iterable, Optional

from ..handlers.base import Handler
from ..http.request import HTTPRequest
from ..http.writer import ResponseWriter
from .base import Middleware


logger = logging.getLogger("servecore.access")


@dataclass
class RequestLog:
    """Structured access-log entry."""

    request_id: str
    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        """Apache combined-style line."""
        return (
            f'{self.client_ip or "-"} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Request logging middleware.

    Place it near the outside of the chain so it also sees requests that
    inner middleware rejects. Failures are logged and re-raised: turning
    them into responses is the recovery boundary's job.

    Usage:
        LoggingMiddleware()                          # text
        LoggingMiddleware(log_format="json")
        LoggingMiddleware(skip_paths=["/health"])    # noisy probes
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
    ):
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def process(self, writer: ResponseWriter, request: HTTPRequest, next: Handler) -> None:
        # first 8 hex chars of a UUID4
        request_id = str(uuid.uuid4())[:8]
        if self.include_request_id:
            writer.headers["X-Request-ID"] = request_id

        start_time = time.perf_counter()
        try:
            next(writer, request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise
        duration_ms = (time.perf_counter() - start_time) * 1000

        if request.path in self.skip_paths:
            return

        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            client_ip=request.client_address[0],
            user_agent=request.user_agent or "-",
            status_code=writer.status or 200,
            content_length=writer.bytes_written,
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())
