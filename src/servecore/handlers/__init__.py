"""
Request handlers.

    base.py    Handler contract, HandlerFunc adapter
    health.py  Liveness and readiness endpoints
"""

from .base import Handler, HandlerFunc, HandlerLike, as_handler, handler_func
from .health import HealthHandler

__all__ = [
    "Handler",
    "HandlerFunc",
    "HandlerLike",
    "as_handler",
    "handler_func",
    "HealthHandler",
]
