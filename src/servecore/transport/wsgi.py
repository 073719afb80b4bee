"""
=============================================================================
WSGI ADAPTER
=============================================================================

Lets any WSGI server act as the external transport.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   WSGI server (wsgiref, gunicorn, ...)   ← accepts connections      │
    │        │ environ, start_response                                     │
    │        ▼                                                             │
    │   WSGIApp                                                            │
    │        │ environ → HTTPRequest                                       │
    │        │ BufferedResponseWriter                                      │
    │        ▼                                                             │
    │   server.handle(writer, request)          ← the core                │
    │        │                                                             │
    │        ▼                                                             │
    │   start_response(status, headers); return [body]                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The adapter only translates. Sockets, TLS and worker threads belong to the
WSGI server.

=============================================================================
"""

import logging
from socketserver import ThreadingMixIn
from typing import Callable, Dict, Iterable, List, Tuple
from urllib.parse import parse_qs
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from ..handlers.base import Handler
from ..http.request import HTTPRequest
from ..http.status_codes import phrase_for
from ..http.writer import BufferedResponseWriter


logger = logging.getLogger(__name__)

StartResponse = Callable[[str, List[Tuple[str, str]]], object]


def request_from_environ(environ: Dict) -> HTTPRequest:
    """Decode a WSGI environ into an HTTPRequest."""
    headers: Dict[str, str] = {}
    for key, value in environ.items():
        if key.startswith("HTTP_"):
            headers[key[5:].replace("_", "-").lower()] = value
    if environ.get("CONTENT_TYPE"):
        headers["content-type"] = environ["CONTENT_TYPE"]
    if environ.get("CONTENT_LENGTH"):
        headers["content-length"] = environ["CONTENT_LENGTH"]

    try:
        length = int(environ.get("CONTENT_LENGTH") or 0)
    except ValueError:
        length = 0
    body = environ["wsgi.input"].read(length) if length > 0 else b""

    # PEP 3333 hands PATH_INFO over as latin-1 decoded bytes
    path = environ.get("PATH_INFO", "/").encode("latin-1").decode("utf-8", "replace")

    return HTTPRequest(
        method=environ.get("REQUEST_METHOD", "GET").upper(),
        path=path or "/",
        headers=headers,
        query_params=parse_qs(environ.get("QUERY_STRING", ""), keep_blank_values=True),
        body=body,
        client_address=(environ.get("REMOTE_ADDR", ""), int(environ.get("REMOTE_PORT") or 0)),
    )


class WSGIApp:
    """
    WSGI callable wrapping a top-level Handler (normally a Server).

        from wsgiref.simple_server import make_server
        make_server("127.0.0.1", 8080, WSGIApp(server)).serve_forever()
    """

    def __init__(self, handler: Handler, server_name: str = "servecore/1.0"):
        self.handler = handler
        self.server_name = server_name

    def __call__(self, environ: Dict, start_response: StartResponse) -> Iterable[bytes]:
        request = request_from_environ(environ)
        writer = BufferedResponseWriter()
        self.handler.handle(writer, request)
        response = writer.finish()

        headers = dict(response.headers)
        headers.setdefault("Content-Length", str(len(response.body)))
        headers.setdefault("Server", self.server_name)

        status = f"{int(response.status)} {phrase_for(response.status)}"
        start_response(status, list(headers.items()))
        return [response.body]


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """wsgiref server with one thread per connection."""

    daemon_threads = True


class _QuietHandler(WSGIRequestHandler):
    """Routes wsgiref's per-request stderr lines through logging."""

    def log_message(self, format, *args):
        logger.debug(f"{self.address_string()} {format % args}")


def make_wsgi_server(app: WSGIApp, host: str = "127.0.0.1", port: int = 8080) -> WSGIServer:
    """
    Bind a threaded wsgiref server for ``app``.

    Raises:
        OSError: the address could not be bound.
    """
    server = make_server(host, port, app, server_class=ThreadingWSGIServer,
                         handler_class=_QuietHandler)
    logger.info(f"Listening on http://{host}:{server.server_port}")
    return server
