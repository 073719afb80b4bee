"""Transport adapters: hand a Server to an external HTTP server."""

from .wsgi import WSGIApp, make_wsgi_server, request_from_environ

__all__ = ["WSGIApp", "make_wsgi_server", "request_from_environ"]
