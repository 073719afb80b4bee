"""
=============================================================================
ERROR CHAINS
=============================================================================

Every failure in servecore is an exception that can carry CONTEXT without
losing the original cause. Wrapping builds a chain through Python's own
``__cause__`` link:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         ERROR CHAIN                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   SetupError("starting server")          ← outermost context        │
    │        │ __cause__                                                   │
    │        ▼                                                             │
    │   SetupError("acquire 'database'")       ← added by lifecycle       │
    │        │ __cause__                                                   │
    │        ▼                                                             │
    │   ConnectionRefusedError(111)            ← ROOT CAUSE               │
    │                                                                      │
    │   render() → "starting server: acquire 'database': [Errno 111] ..." │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ERROR KINDS
=============================================================================

    CONFIG   - wiring is wrong (duplicate route, missing dependency).
               Startup only, never mid-request.
    SETUP    - a resource failed to acquire. Startup only.
    REQUEST  - a handler failed while serving one request.
               Contained by the recovery boundary.
    WRITE    - writing the response failed (client went away).
               Aborts the rest of that request only.
    INTERNAL - anything that is not a ChainError (a plain ValueError, ...)

=============================================================================
"""

from enum import Enum
from typing import Iterator, List, Optional


class ErrorKind(Enum):
    """Category of a failure; decides where it is handled."""
    CONFIG = "config"
    SETUP = "setup"
    REQUEST = "request"
    WRITE = "write"
    INTERNAL = "internal"


class ChainError(Exception):
    """
    Base class for all servecore errors.

    A ChainError is one node of an error chain: a context message, a kind,
    and an optional wrapped cause (stored in ``__cause__``, so tracebacks
    print the whole chain the usual Python way).

    The node exposes only read-only properties; it is not changed after
    construction.
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self._message = message
        if cause is not None:
            self.__cause__ = cause

    @property
    def message(self) -> str:
        """This node's own context message."""
        return self._message

    @property
    def cause(self) -> Optional[BaseException]:
        """The wrapped predecessor, if any."""
        return self.__cause__

    def __str__(self) -> str:
        return render(self)


class ConfigError(ChainError):
    """Invalid or incomplete wiring discovered at startup or registration."""
    kind = ErrorKind.CONFIG


class SetupError(ChainError):
    """A resource failed to acquire."""
    kind = ErrorKind.SETUP


class RequestError(ChainError):
    """
    A handler failed while serving one request.

    ``status`` is the HTTP status the recovery boundary answers with.
    """
    kind = ErrorKind.REQUEST

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        status: int = 500,
    ):
        super().__init__(message, cause)
        self._status = status

    @property
    def status(self) -> int:
        return self._status


class RequestTimeout(RequestError):
    """The request exceeded its deadline."""

    def __init__(self, message: str = "request deadline exceeded",
                 cause: Optional[BaseException] = None):
        super().__init__(message, cause, status=504)


class WriteError(ChainError):
    """Writing to a ResponseWriter failed (e.g. client disconnected)."""
    kind = ErrorKind.WRITE


_KIND_CLASSES = {
    ErrorKind.CONFIG: ConfigError,
    ErrorKind.SETUP: SetupError,
    ErrorKind.REQUEST: RequestError,
    ErrorKind.WRITE: WriteError,
    ErrorKind.INTERNAL: ChainError,
}


# =============================================================================
# CHAIN CONSTRUCTION AND TRAVERSAL
# =============================================================================

def kind_of(err: BaseException) -> ErrorKind:
    """Kind of a single node (INTERNAL for foreign exceptions)."""
    if isinstance(err, ChainError):
        return err.kind
    return ErrorKind.INTERNAL


def wrap(
    cause: BaseException,
    message: str,
    kind: Optional[ErrorKind] = None,
) -> ChainError:
    """
    Wrap ``cause`` in a new chain node carrying ``message``.

    The new node's class follows ``kind``; without a kind the cause's kind is
    kept, so re-wrapping a SetupError yields another SetupError.

    Example:
        try:
            conn = connect(dsn)
        except OSError as e:
            raise wrap(e, "acquire 'database'", ErrorKind.SETUP) from e
    """
    if kind is None:
        kind = kind_of(cause)
    cls = _KIND_CLASSES[kind]
    if cls is RequestError:
        status = cause.status if isinstance(cause, RequestError) else 500
        return RequestError(message, cause, status=status)
    return cls(message, cause)


def chain(err: BaseException) -> Iterator[BaseException]:
    """
    Iterate the chain from the outermost node to the root cause.

    Only explicit links (``__cause__``) are followed; an exception that
    merely happened while handling another is not part of the chain.
    """
    seen = set()
    current: Optional[BaseException] = err
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__


def root_cause(err: BaseException) -> BaseException:
    """The innermost exception of the chain."""
    last = err
    for last in chain(err):
        pass
    return last


def root_kind(err: BaseException) -> ErrorKind:
    """Kind of the root cause, however many times it has been wrapped."""
    return kind_of(root_cause(err))


def is_kind(err: BaseException, kind: ErrorKind) -> bool:
    """True if any node of the chain has ``kind``."""
    return any(kind_of(node) is kind for node in chain(err))


def _node_message(node: BaseException) -> str:
    if isinstance(node, ChainError):
        return node.message
    text = str(node)
    return text or type(node).__name__


def render(err: BaseException) -> str:
    """
    Combined message, outermost context first.

        render(wrap(wrap(root, "ctx1"), "ctx2")) == "ctx2: ctx1: <root>"
    """
    parts: List[str] = [_node_message(node) for node in chain(err)]
    return ": ".join(p for p in parts if p)
