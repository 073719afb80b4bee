"""
=============================================================================
RECOVERY BOUNDARY
=============================================================================

The one place where per-request failures stop.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     WHAT THE BOUNDARY DOES                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Failure in the chain       Logged as     Response                  │
    │   ─────────────────────      ─────────     ────────────────────────  │
    │   WriteError (anywhere)      WARNING       none (client is gone)     │
    │   RequestError               ERROR         error.status + {"error"}  │
    │   any other Exception        EXCEPTION     500 + {"error"}           │
    │                                                                      │
    │   The half-written response is discarded first (writer.reset()).    │
    │   If bytes already left the process, nothing more can be sent.      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Nothing request-scoped escapes: the call always returns normally, so one
failing request never takes the process or other requests down.
KeyboardInterrupt and SystemExit are not request failures and pass through.

=============================================================================
"""

import logging

from ..errors import ErrorKind, RequestError, WriteError, is_kind, render
from ..handlers.base import Handler
from ..http.request import HTTPRequest
from ..http.response import write_error
from ..http.status_codes import HTTPStatus
from ..http.writer import ResponseWriter
from .base import Middleware


logger = logging.getLogger(__name__)


class Recovery(Middleware):
    """
    Converts any request-scoped failure into a fixed fallback response.

    A RequestError answers with its own status when that is a 4xx or 5xx,
    otherwise with 500.

    The Server always installs this as its outermost layer; it can also be
    used on its own around any handler.
    """

    def process(self, writer: ResponseWriter, request: HTTPRequest, next: Handler) -> None:
        try:
            next(writer, request)
        except Exception as e:
            if is_kind(e, ErrorKind.WRITE):
                logger.warning(
                    f"Response aborted for {request.method} {request.path}: {render(e)}"
                )
                return

            if isinstance(e, RequestError):
                logger.error(
                    f"Request failed: {request.method} {request.path}: {render(e)}"
                )
                status = e.status if 400 <= e.status <= 599 else HTTPStatus.INTERNAL_SERVER_ERROR
            else:
                logger.exception(
                    f"Unhandled error in {request.method} {request.path}: "
                    f"{type(e).__name__}: {e}"
                )
                status = HTTPStatus.INTERNAL_SERVER_ERROR

            self._fallback(writer, request, status)

    def _fallback(self, writer: ResponseWriter, request: HTTPRequest, status: int) -> None:
        if writer.committed or writer.closed:
            logger.warning(
                f"Cannot send fallback {status} for {request.method} {request.path}: "
                f"response already committed"
            )
            return
        try:
            writer.reset()
            write_error(writer, status)
        except WriteError as e:
            logger.warning(f"Fallback response not delivered: {render(e)}")
