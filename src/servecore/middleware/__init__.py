"""
Middleware: decorators over Handlers.

    chain(A, B)(h) == A(B(h))   A sees the request first, the response last

    Recovery           Failures become logged fallback responses
    LoggingMiddleware  Access log with timing and request IDs
    Timeout            Per-request deadline (504)
    BearerAuth         Static bearer-token check (401)
"""

from .base import (
    FunctionMiddleware,
    Middleware,
    MiddlewareLike,
    MiddlewarePipeline,
    apply,
    chain,
    function_middleware,
)
from .recovery import Recovery
from .logging import LoggingMiddleware, RequestLog
from .timeout import Timeout
from .auth import BearerAuth

__all__ = [
    "Middleware",
    "MiddlewareLike",
    "MiddlewarePipeline",
    "FunctionMiddleware",
    "function_middleware",
    "apply",
    "chain",
    "Recovery",
    "LoggingMiddleware",
    "RequestLog",
    "Timeout",
    "BearerAuth",
]
