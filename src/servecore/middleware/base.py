"""
=============================================================================
MIDDLEWARE COMPOSITION
=============================================================================

A middleware TRANSFORMS one handler into another:

    wrap(handler) -> handler

The returned handler may run logic before delegating, may decide not to
delegate at all (short-circuit), and may run logic after delegating.

=============================================================================
ONION ORDERING
=============================================================================

    chain(A, B)(H)  ==  A.wrap(B.wrap(H))

    ┌─────────────────────────────────────────────────────────────────────┐
    │  A                                                                  │
    │  ┌───────────────────────────────────────────────────────────────┐  │
    │  │  B                                                            │  │
    │  │  ┌─────────────────────────────────────────────────────────┐  │  │
    │  │  │                         H                               │  │  │
    │  │  └─────────────────────────────────────────────────────────┘  │  │
    │  └───────────────────────────────────────────────────────────────┘  │
    └─────────────────────────────────────────────────────────────────────┘

    Request flows INWARD:   pre-A → pre-B → H
    Response flows OUTWARD: post-B → post-A

    If B short-circuits, H never runs and neither does B's post-logic;
    A's post-logic still runs exactly once.

=============================================================================
WHEN COMPOSITION HAPPENS
=============================================================================

Once, at registration time. The composed handler is immutable and reused
for every request on that route; nothing is re-wrapped per request.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, Iterator, List, Optional, Union
import logging

from ..errors import ConfigError
from ..handlers.base import Handler, HandlerLike, as_handler
from ..http.request import HTTPRequest
from ..http.writer import ResponseWriter


logger = logging.getLogger(__name__)


class Middleware(ABC):
    """
    Abstract base class for class-style middleware.

    =========================================================================
    MIDDLEWARE ANATOMY
    =========================================================================

        class RequireJSON(Middleware):
            def process(self, writer, request, next):
                # PRE-PROCESSING
                if not request.is_json:
                    write_error(writer, 415)
                    return                      # short-circuit

                next(writer, request)           # continue the chain

                # POST-PROCESSING
                logger.debug("json request served")

    =========================================================================
    """

    @abstractmethod
    def process(self, writer: ResponseWriter, request: HTTPRequest, next: Handler) -> None:
        """
        Handle the request, delegating to ``next`` unless short-circuiting.

        Args:
            writer: The response writer for this request
            request: The incoming request
            next: The wrapped handler (call it to continue!)
        """

    def wrap(self, handler: HandlerLike) -> Handler:
        """Return a new Handler that runs this middleware around ``handler``."""
        return _MiddlewareHandler(self, as_handler(handler))

    @property
    def name(self) -> str:
        """Middleware name for logging."""
        return self.__class__.__name__


class _MiddlewareHandler(Handler):
    """A handler wrapped by one middleware. Closes over ``next``."""

    def __init__(self, middleware: Middleware, next_handler: Handler):
        self._middleware = middleware
        self._next = next_handler

    def handle(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        self._middleware.process(writer, request, self._next)

    @property
    def name(self) -> str:
        return f"{self._middleware.name}({self._next.name})"


# Anything that can transform a handler: a Middleware instance, or a plain
# function taking a handler and returning a handler.
MiddlewareLike = Union[Middleware, Callable[[Handler], HandlerLike]]


def apply(middleware: MiddlewareLike, handler: HandlerLike) -> Handler:
    """Wrap ``handler`` with one middleware."""
    if isinstance(middleware, Middleware):
        return middleware.wrap(handler)
    if callable(middleware):
        return as_handler(middleware(as_handler(handler)))
    raise ConfigError(f"not a middleware: {middleware!r}")


def chain(*middleware: MiddlewareLike) -> Callable[[HandlerLike], Handler]:
    """
    Compose middleware, first argument outermost.

        stack = chain(LoggingMiddleware(), BearerAuth({"t0k3n"}))
        handler = stack(my_handler)

    =====================================================================
    HOW WRAPPING WORKS
    =====================================================================

    Given: [MW1, MW2, MW3] and handler

        current = handler
        current = MW3.wrap(current)
        current = MW2.wrap(current)
        current = MW1.wrap(current)

    Wrapping in REVERSE makes the first middleware the outermost one.

    =====================================================================
    """
    layers = list(middleware)
    for mw in layers:
        if not isinstance(mw, Middleware) and not callable(mw):
            raise ConfigError(f"not a middleware: {mw!r}")

    def compose(handler: HandlerLike) -> Handler:
        current = as_handler(handler)
        for mw in reversed(layers):
            current = apply(mw, current)
        return current

    return compose


class MiddlewarePipeline:
    """
    An ordered list of middleware applied with ``wrap``.

    Middleware runs in the order added (first added = outermost).

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware())
        pipeline.add(BearerAuth({"secret"}))
        handler = pipeline.wrap(router)
    """

    def __init__(self):
        self._middleware: List[MiddlewareLike] = []

    def add(self, middleware: MiddlewareLike) -> "MiddlewarePipeline":
        """Append one middleware. Returns self for chaining."""
        if not isinstance(middleware, Middleware) and not callable(middleware):
            raise ConfigError(f"not a middleware: {middleware!r}")
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {_name_of(middleware)}")
        return self

    def use(self, *middleware: MiddlewareLike) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: HandlerLike) -> Handler:
        """Wrap ``handler`` with every middleware in the pipeline."""
        return chain(*self._middleware)(handler)

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self) -> Iterator[MiddlewareLike]:
        return iter(self._middleware)


def _name_of(middleware: MiddlewareLike) -> str:
    if isinstance(middleware, Middleware):
        return middleware.name
    return getattr(middleware, "__name__", repr(middleware))


# =============================================================================
# FUNCTION MIDDLEWARE
# =============================================================================
#
# Quick one-off middleware without a class:
#
#     @function_middleware
#     def add_header(writer, request, next):
#         writer.headers["X-Custom"] = "value"
#         next(writer, request)
#
# =============================================================================

ProcessFunc = Callable[[ResponseWriter, HTTPRequest, Handler], None]


class FunctionMiddleware(Middleware):
    """Wraps a ``(writer, request, next)`` function as middleware."""

    def __init__(self, func: ProcessFunc, name: Optional[str] = None):
        self._func = func
        self._name = name or func.__name__

    def process(self, writer: ResponseWriter, request: HTTPRequest, next: Handler) -> None:
        self._func(writer, request, next)

    @property
    def name(self) -> str:
        return self._name


def function_middleware(func: ProcessFunc) -> FunctionMiddleware:
    """Decorator to create middleware from a function."""
    return FunctionMiddleware(func)
