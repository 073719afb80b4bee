"""
Bearer-token authorization.

A short-circuiting middleware: without a known token the request is
answered with 401 and nothing nested inside this layer runs.
"""

import hmac
import logging
from typing import Iterable

from ..errors import ConfigError
from ..handlers.base import Handler
from ..http.request import HTTPRequest
from ..http.response import write_error
from ..http.status_codes import HTTPStatus
from ..http.writer import ResponseWriter
from .base import Middleware


logger = logging.getLogger(__name__)


class BearerAuth(Middleware):
    """
    Require ``Authorization: Bearer <token>`` with one of ``tokens``.

        router.register("GET", "/admin", admin, middleware=[BearerAuth({"s3cret"})])
    """

    def __init__(self, tokens: Iterable[str], realm: str = "servecore"):
        self._tokens = [t for t in tokens if t]
        if not self._tokens:
            raise ConfigError("BearerAuth needs at least one token")
        self.realm = realm

    def _authorized(self, request: HTTPRequest) -> bool:
        scheme, _, token = request.get_header("Authorization").partition(" ")
        if scheme.lower() != "bearer" or not token:
            return False
        return any(hmac.compare_digest(token.strip().encode(), t.encode()) for t in self._tokens)

    def process(self, writer: ResponseWriter, request: HTTPRequest, next: Handler) -> None:
        if not self._authorized(request):
            logger.info(f"Unauthorized {request.method} {request.path}")
            writer.headers["WWW-Authenticate"] = f'Bearer realm="{self.realm}"'
            write_error(writer, HTTPStatus.UNAUTHORIZED)
            return
        next(writer, request)
