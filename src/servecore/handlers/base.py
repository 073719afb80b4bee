"""
=============================================================================
HANDLER ABSTRACTION
=============================================================================

A handler serves one request. It has exactly ONE operation:

    handle(writer, request) -> None      (or raises)

    ┌─────────────────────────────────────────────────────────────────────┐
    │ Type              │ How it becomes a Handler                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │ Function          │ def hello(w, r): w.write(b"hi")                 │
    │                   │ HandlerFunc(hello)  /  @handler_func            │
    ├─────────────────────────────────────────────────────────────────────┤
    │ Closure           │ def make(store): return lambda w, r: ...        │
    │                   │ HandlerFunc(make(store))                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │ Class             │ class Greet(Handler): def handle(self, w, r)... │
    └─────────────────────────────────────────────────────────────────────┘

All three compose the same way: the router and every middleware accept any
of them and turn them into a Handler with ``as_handler``.

Shared behavior between handlers belongs in MIDDLEWARE, not in handler
base classes. Handler subclasses should be leaves: subclass Handler,
implement ``handle``, done.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional, Union

from ..errors import ConfigError
from ..http.request import HTTPRequest
from ..http.writer import ResponseWriter


HandlerCallable = Callable[[ResponseWriter, HTTPRequest], None]


class Handler(ABC):
    """
    The single-operation request handler.

    On success, ``handle`` has written zero or more bytes to ``writer``.
    On failure it raises (RequestError for expected failures); it does not
    return an error value. Implementations must not keep ``writer`` or
    ``request`` after the call.
    """

    @abstractmethod
    def handle(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        """Serve ``request`` by writing to ``writer``."""

    def __call__(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        self.handle(writer, request)

    @property
    def name(self) -> str:
        """Name for logs and route listings."""
        return type(self).__name__


class HandlerFunc(Handler):
    """
    Adapts a plain function or closure into a Handler.

        def hello(writer, request):
            writer.write(b"Hello!")

        router.register("GET", "/hello", HandlerFunc(hello))
    """

    def __init__(self, func: HandlerCallable, name: Optional[str] = None):
        if not callable(func):
            raise ConfigError(f"handler function must be callable, got {func!r}")
        self._func = func
        self._name = name or getattr(func, "__name__", type(func).__name__)

    def handle(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        self._func(writer, request)

    @property
    def name(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"HandlerFunc({self._name})"


HandlerLike = Union[Handler, HandlerCallable]


def as_handler(obj: HandlerLike) -> Handler:
    """
    Coerce ``obj`` into a Handler.

    Handlers pass through unchanged, callables are wrapped in HandlerFunc.

    Raises:
        ConfigError: ``obj`` is neither.
    """
    if isinstance(obj, Handler):
        return obj
    if callable(obj):
        return HandlerFunc(obj)
    raise ConfigError(f"not a handler: {obj!r}")


def handler_func(func: HandlerCallable) -> HandlerFunc:
    """
    Decorator form of HandlerFunc.

        @handler_func
        def hello(writer, request):
            writer.write(b"Hello!")
    """
    return HandlerFunc(func)
