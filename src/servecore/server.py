"""
=============================================================================
SERVER AGGREGATE
=============================================================================

The Server owns the shared dependencies and the Router, and is the
top-level Handler the transport calls for every request.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    SERVER ARCHITECTURE                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   transport ──► Server.handle(writer, request)                      │
    │                   │                                                  │
    │                   ▼                                                  │
    │            ┌──────────────┐                                          │
    │            │   Recovery   │  ← failures stop here                   │
    │            └──────┬───────┘                                          │
    │                   ▼                                                  │
    │            ┌──────────────┐                                          │
    │            │ server-wide  │  logging, timeout, ...                  │
    │            │ middleware   │                                          │
    │            └──────┬───────┘                                          │
    │                   ▼                                                  │
    │            ┌──────────────┐      ┌────────┐ ┌────────┐              │
    │            │    Router    │ ───► │ store  │ │ mailer │ (shared,     │
    │            └──────────────┘      └────────┘ └────────┘  read-only)  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
STARTUP ORDER
=============================================================================

    1. Acquire resources           (lifecycle.acquire_all)
    2. Build handlers              (constructor injection of store/mailer)
    3. Register routes             (router.register)
    4. Server(router, store=..., mailer=...)
                                   (all dependencies present or ConfigError)
    5. Hand server to transport    (WSGIApp(server))

There are no module-level singletons: whatever a handler needs it was given
when it was constructed.

=============================================================================
"""

import logging
from typing import Any, Dict, Optional, Sequence

from .config import ServerConfig
from .errors import ConfigError
from .handlers.base import Handler
from .http.request import HTTPRequest
from .http.response import HTTPResponse
from .http.router import Router
from .http.writer import BufferedResponseWriter, ResponseWriter
from .interfaces import Mailer, Store
from .middleware.base import MiddlewareLike, chain
from .middleware.logging import LoggingMiddleware
from .middleware.recovery import Recovery
from .middleware.timeout import Timeout


logger = logging.getLogger(__name__)


class Server(Handler):
    """
    Aggregate of shared dependencies and the Router.

    Construction is all-or-nothing: a missing dependency is a ConfigError
    and no Server object exists afterwards.

    Usage:
        server = Server(router, store=store, mailer=mailer)
        response = server.serve(HTTPRequest.build("GET", "/health"))
    """

    def __init__(
        self,
        router: Router,
        *,
        store: Optional[Store] = None,
        mailer: Optional[Mailer] = None,
        config: Optional[ServerConfig] = None,
        middleware: Sequence[MiddlewareLike] = (),
    ):
        dependencies: Dict[str, Any] = {"router": router, "store": store, "mailer": mailer}
        missing = [name for name, dep in dependencies.items() if dep is None]
        if missing:
            raise ConfigError(f"server is missing dependencies: {', '.join(missing)}")
        if not isinstance(router, Router):
            raise ConfigError(f"router must be a Router, got {type(router).__name__}")

        self.config = config or ServerConfig()
        self.config.validate()

        self._router = router
        self._store = store
        self._mailer = mailer

        layers = [Recovery()]
        if self.config.access_log:
            layers.append(LoggingMiddleware(log_format=self.config.log_format))
        if self.config.request_timeout is not None:
            layers.append(Timeout(self.config.request_timeout))
        layers.extend(middleware)

        # Built once; every request runs this same chain.
        self._handler = chain(*layers)(router)
        router.freeze()

        logger.info(f"Server ready with {len(router.routes())} routes")

    @property
    def router(self) -> Router:
        return self._router

    @property
    def store(self) -> Store:
        return self._store

    @property
    def mailer(self) -> Mailer:
        return self._mailer

    def handle(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        """Run the recovery boundary, server middleware and router."""
        self._handler.handle(writer, request)

    def serve(self, request: HTTPRequest) -> HTTPResponse:
        """Drive one request through a buffered writer and return the result."""
        writer = BufferedResponseWriter()
        self.handle(writer, request)
        return writer.finish()
