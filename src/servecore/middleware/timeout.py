"""
=============================================================================
TIMEOUT MIDDLEWARE
=============================================================================

Puts a deadline on the inner handler chain.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   caller thread                    worker thread                     │
    │   ─────────────                    ─────────────                     │
    │   start worker ───────────────────► next(buffer, request)           │
    │   wait(deadline)                        │                            │
    │        │                                │ writes go to buffer        │
    │   ┌────┴─────┐                          │                            │
    │   │ finished │ → copy buffer to writer  │                            │
    │   │ in time  │   (or re-raise failure)  │                            │
    │   ├──────────┤                          │                            │
    │   │ deadline │ → buffer.close()  ──────►│ next write → WriteError    │
    │   │ passed   │   raise RequestTimeout   │ handler unwinds, its own   │
    │   └──────────┘                          │ `with` blocks release      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The caller returns as soon as the deadline passes; other requests are never
blocked. Python threads cannot be killed, so a handler stuck in a blocking
call finishes that call in the background and is stopped at its next write.

=============================================================================
"""

import logging
import threading
from typing import Dict

from ..errors import ConfigError, RequestTimeout
from ..handlers.base import Handler
from ..http.request import HTTPRequest
from ..http.writer import BufferedResponseWriter, ResponseWriter
from .base import Middleware


logger = logging.getLogger(__name__)


class Timeout(Middleware):
    """Abort the inner chain after ``seconds`` with RequestTimeout (504)."""

    def __init__(self, seconds: float):
        if seconds is None or seconds <= 0:
            raise ConfigError(f"timeout must be > 0, got {seconds!r}")
        self.seconds = seconds

    def process(self, writer: ResponseWriter, request: HTTPRequest, next: Handler) -> None:
        buffer = BufferedResponseWriter()
        outcome: Dict[str, Exception] = {}
        done = threading.Event()

        def run():
            try:
                next(buffer, request)
            except Exception as e:
                outcome["error"] = e
            finally:
                done.set()

        worker = threading.Thread(
            target=run,
            name=f"servecore-request-{request.method}-{request.path}",
            daemon=True,
        )
        worker.start()

        if not done.wait(self.seconds):
            buffer.close()
            logger.warning(
                f"Deadline of {self.seconds}s exceeded: {request.method} {request.path}"
            )
            raise RequestTimeout(
                f"{request.method} {request.path} exceeded {self.seconds}s"
            )

        if "error" in outcome:
            raise outcome["error"]
        buffer.copy_to(writer)
