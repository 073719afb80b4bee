"""
Contracts for the shared dependencies a Server carries.

The core never implements persistence or mail delivery; it only needs
something shaped like these. Implementations shared across concurrent
requests must do their own locking or pooling.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class Store(Protocol):
    """Read access to the persistence layer."""

    def lookup_email(self, name: str) -> str:
        """Address registered for ``name``; raises KeyError if unknown."""
        ...

    def ping(self) -> bool:
        ...


@runtime_checkable
class Mailer(Protocol):
    """Outbound mail capability."""

    def send(self, to: str, subject: str, body: str) -> None:
        ...

    def ping(self) -> bool:
        ...
