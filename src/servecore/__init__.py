"""
=============================================================================
SERVECORE - Request-Handling Core for HTTP Services
=============================================================================

The part of a web service that sits between the transport and the
application: routing, middleware, dependency wiring, resource lifecycle
and error chains. Sockets belong to whatever server drives it (WSGI here).

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    SERVECORE ARCHITECTURE                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. HANDLERS                                                       │
    │      - One operation: handle(writer, request)                      │
    │      - Plain functions adapted with HandlerFunc                    │
    │                                                                      │
    │   2. MIDDLEWARE                                                     │
    │      - wrap(handler) -> handler, composed with chain()             │
    │      - Recovery, access logging, timeouts, bearer auth             │
    │                                                                      │
    │   3. ROUTING                                                        │
    │      - Static, :param and trailing *wildcard patterns              │
    │      - 404 vs 405 + Allow, conflicts rejected at registration      │
    │                                                                      │
    │   4. SERVER AGGREGATE                                               │
    │      - Shared store/mailer injected into handlers                  │
    │      - All-or-nothing construction                                  │
    │                                                                      │
    │   5. LIFECYCLE AND ERRORS                                           │
    │      - Leases released exactly once, in reverse order              │
    │      - Error chains with kinds and "outer: inner" messages         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    servecore/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m servecore)
    ├── app.py               # Demo greeting service
    ├── config.py            # ServerConfig dataclass, logging setup
    ├── errors.py            # Error chains and kinds
    ├── interfaces.py        # Store / Mailer protocols
    ├── lifecycle.py         # Resource providers and leases
    ├── server.py            # Server aggregate
    ├── http/
    │   ├── request.py       # HTTPRequest
    │   ├── response.py      # HTTPResponse, JSON/error helpers
    │   ├── writer.py        # ResponseWriter
    │   ├── router.py        # Router
    │   └── status_codes.py  # HTTPStatus
    ├── handlers/
    │   ├── base.py          # Handler, HandlerFunc
    │   └── health.py        # Health endpoints
    ├── middleware/
    │   ├── base.py          # Middleware, chain
    │   ├── recovery.py      # Failure boundary
    │   ├── logging.py       # Access log
    │   ├── timeout.py       # Per-request deadline
    │   └── auth.py          # Bearer tokens
    └── transport/
        └── wsgi.py          # WSGI adapter

=============================================================================
QUICK START
=============================================================================

    from servecore import Router, Server, WSGIApp

    router = Router()

    @router.get("/users/:id")
    def get_user(writer, request):
        writer.write(f"user {request.path_params['id']}")

    server = Server(router, store=store, mailer=mailer)
    application = WSGIApp(server)          # hand to any WSGI server

=============================================================================
"""

__version__ = "1.0.0"

# errors and http first: the other modules import from both
from .errors import (
    ChainError,
    ConfigError,
    ErrorKind,
    RequestError,
    RequestTimeout,
    SetupError,
    WriteError,
    render,
    wrap,
)
from .http import BufferedResponseWriter, HTTPRequest, HTTPResponse, ResponseWriter, Router
from .handlers import Handler, HandlerFunc
from .middleware import Middleware, chain
from .config import ServerConfig
from .lifecycle import FunctionProvider, ResourceProvider, acquire, acquire_all
from .server import Server
from .transport import WSGIApp

__all__ = [
    "__version__",
    "ChainError",
    "ConfigError",
    "SetupError",
    "RequestError",
    "RequestTimeout",
    "WriteError",
    "ErrorKind",
    "wrap",
    "render",
    "HTTPRequest",
    "HTTPResponse",
    "ResponseWriter",
    "BufferedResponseWriter",
    "Router",
    "Handler",
    "HandlerFunc",
    "Middleware",
    "chain",
    "ServerConfig",
    "ResourceProvider",
    "FunctionProvider",
    "acquire",
    "acquire_all",
    "Server",
    "WSGIApp",
]
