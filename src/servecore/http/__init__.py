"""HTTP message types, the response writer and the router."""

# router pulls in handlers and middleware, which need the message types
# loaded first
from .status_codes import HTTPStatus, phrase_for
from .request import HTTPRequest
from .response import HTTPResponse, method_not_allowed, not_found, write_error, write_json
from .writer import BufferedResponseWriter, ResponseWriter
from .router import Route, RouteGroup, RouteMatch, Router, compile_pattern

__all__ = [
    "HTTPStatus",
    "phrase_for",
    "HTTPRequest",
    "HTTPResponse",
    "write_json",
    "write_error",
    "not_found",
    "method_not_allowed",
    "ResponseWriter",
    "BufferedResponseWriter",
    "Router",
    "RouteGroup",
    "Route",
    "RouteMatch",
    "compile_pattern",
]
