"""
=============================================================================
RESOURCE LIFECYCLE
=============================================================================

Startup acquires shared resources (a database pool, a mail client, ...).
The rules:

    1. acquire() returns a READY resource or raises SetupError.
       Never a half-initialized one.
    2. Every resource that was acquired is released EXACTLY ONCE,
       whether the code using it succeeded or failed.
    3. If a later acquisition fails, the earlier ones are released in
       REVERSE order before the failure propagates.
    4. release never raises; problems are logged.

=============================================================================
SCOPED ACQUISITION
=============================================================================

    with acquire_all(database, mailer, cache) as (db, mail, cache):
        serve(db, mail, cache)

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    cache.acquire() FAILS                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   acquire database  ✓                                               │
    │   acquire mailer    ✓                                               │
    │   acquire cache     ✗ ConnectionRefusedError                        │
    │                                                                      │
    │   release mailer        ← reverse order                             │
    │   release database                                                   │
    │                                                                      │
    │   raise SetupError("acquire 'cache'") from ConnectionRefusedError   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The ``with`` block is the guarded scope: leaving it by any path (normal
return, exception, KeyboardInterrupt) runs the releases.

=============================================================================
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Generic, Iterator, List, Optional, Tuple, TypeVar
import logging
import threading

from .errors import ErrorKind, SetupError, render, wrap


logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResourceProvider(ABC, Generic[T]):
    """
    Knows how to acquire and release one kind of resource.

    Subclasses raise any exception from ``acquire`` on failure; the
    lifecycle wraps it in SetupError with the provider's name as context.
    """

    name: str = "resource"

    @abstractmethod
    def acquire(self) -> T:
        """Return a fully usable resource."""

    @abstractmethod
    def release(self, resource: T) -> None:
        """Give the resource back (close connections, flush, ...)."""


class FunctionProvider(ResourceProvider[T]):
    """
    Provider built from two callables.

        database = FunctionProvider("database",
                                    acquire=lambda: connect(dsn),
                                    release=lambda conn: conn.close())
    """

    def __init__(
        self,
        name: str,
        acquire: Callable[[], T],
        release: Optional[Callable[[T], Any]] = None,
    ):
        self.name = name
        self._acquire = acquire
        self._release = release

    def acquire(self) -> T:
        return self._acquire()

    def release(self, resource: T) -> None:
        if self._release is not None:
            self._release(resource)

    def __repr__(self) -> str:
        return f"FunctionProvider({self.name!r})"


class Lease(Generic[T]):
    """
    An acquired resource together with its release obligation.

    ``release()`` may be called any number of times from any thread; the
    provider's release runs exactly once.
    """

    def __init__(self, provider: ResourceProvider[T], value: T):
        self.provider = provider
        self.value = value
        self._released = False
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self.provider.name

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
        try:
            self.provider.release(self.value)
            logger.debug(f"Released {self.name!r}")
        except Exception as e:
            logger.error(f"Releasing {self.name!r} failed: {type(e).__name__}: {e}")

    def __enter__(self) -> T:
        return self.value

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False

    def __repr__(self) -> str:
        state = "released" if self._released else "held"
        return f"Lease({self.name!r}, {state})"


def acquire(provider: ResourceProvider[T]) -> Lease[T]:
    """
    Acquire one resource.

    Raises:
        SetupError: wrapping whatever the provider raised, with the
            resource name as context.
    """
    logger.debug(f"Acquiring {provider.name!r}")
    try:
        value = provider.acquire()
    except Exception as e:
        raise wrap(e, f"acquire {provider.name!r}", ErrorKind.SETUP) from e
    logger.info(f"Acquired {provider.name!r}")
    return Lease(provider, value)


class ResourceStack:
    """
    Leases released in reverse order when the scope ends.

        with ResourceStack() as stack:
            db = stack.acquire(database)
            mail = stack.acquire(mailer)
            ...
        # mailer released, then database

    If an acquisition fails inside the ``with``, the SetupError leaves the
    block and the leases acquired so far are released on the way out.
    """

    def __init__(self):
        self._leases: List[Lease] = []
        self._lock = threading.Lock()

    def acquire(self, provider: ResourceProvider[T]) -> T:
        lease = acquire(provider)
        with self._lock:
            self._leases.append(lease)
        return lease.value

    def push(self, lease: Lease) -> None:
        """Take over the release obligation of an existing lease."""
        with self._lock:
            self._leases.append(lease)

    @property
    def leases(self) -> Tuple[Lease, ...]:
        return tuple(self._leases)

    def close(self) -> None:
        """Release everything, newest first. Safe to call more than once."""
        with self._lock:
            leases, self._leases = self._leases, []
        for lease in reversed(leases):
            lease.release()

    def __enter__(self) -> "ResourceStack":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_val is not None and isinstance(exc_val, SetupError):
            logger.error(f"Startup failed, releasing acquired resources: {render(exc_val)}")
        self.close()
        return False


@contextmanager
def acquire_all(*providers: ResourceProvider) -> Iterator[Tuple[Any, ...]]:
    """
    Acquire ``providers`` in order and yield their values as a tuple.

    All of them are released in reverse order when the block exits; if one
    acquisition fails the earlier ones are released before SetupError
    propagates.
    """
    with ResourceStack() as stack:
        values = tuple(stack.acquire(p) for p in providers)
        yield values


@contextmanager
def scoped(provider: ResourceProvider[T]) -> Iterator[T]:
    """
    One resource for the duration of a ``with`` block.

    Handlers use this for request-scoped resources: on a timeout or any
    other failure the block unwinds and the resource is released.
    """
    with acquire(provider) as value:
        yield value
