"""
=============================================================================
DEMO APPLICATION
=============================================================================

The greeting service ``python -m servecore`` runs:

    POST /greet   name=Bob
        → body "Hello, Bob!"
        → mails "Hello, Bob!" to the address the store has for Bob

    GET /health/live, GET /health/ready

The store and the mailer are in-memory stand-ins; a real deployment swaps
in providers for its database and mail transport without touching the
handlers.

=============================================================================
"""

import logging
import threading
from collections import deque
from typing import Deque, Dict, Optional, Tuple

from .errors import RequestError
from .handlers.base import Handler
from .handlers.health import HealthHandler
from .http.request import HTTPRequest
from .http.router import Router
from .http.status_codes import HTTPStatus
from .http.writer import ResponseWriter
from .interfaces import Mailer, Store
from .lifecycle import FunctionProvider, ResourceProvider


logger = logging.getLogger(__name__)


# =============================================================================
# HANDLERS
# =============================================================================

class GreetHandler(Handler):
    """
    Greets ``name`` and mails the greeting to that user.

    Dependencies arrive through the constructor; the handler keeps no
    per-request state, so one instance serves all requests.
    """

    subject = "Greetings!"

    def __init__(self, store: Store, mailer: Mailer):
        self._store = store
        self._mailer = mailer

    def handle(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        name = request.form_value("name")
        if not name:
            raise RequestError("missing form value 'name'", status=HTTPStatus.BAD_REQUEST)

        try:
            address = self._store.lookup_email(name)
        except KeyError as e:
            raise RequestError(f"no address for {name!r}", e, status=HTTPStatus.NOT_FOUND) from e

        greeting = f"Hello, {name}!"
        writer.headers["Content-Type"] = "text/plain; charset=utf-8"
        writer.write(greeting)
        self._mailer.send(address, self.subject, greeting)


def build_router(store: Store, mailer: Mailer) -> Router:
    """Register the demo routes."""
    router = Router()
    router.register("POST", "/greet", GreetHandler(store, mailer), name="greet")

    health = HealthHandler()
    health.add_check("store", store.ping)
    health.add_check("mailer", mailer.ping)
    router.register("GET", "/health/live", health.liveness, name="liveness")
    router.register("GET", "/health/ready", health, name="readiness")
    return router


# =============================================================================
# IN-MEMORY DEPENDENCIES
# =============================================================================

class MemoryStore:
    """Dictionary-backed Store. Read-only after construction."""

    def __init__(self, addresses: Optional[Dict[str, str]] = None):
        self._addresses = dict(addresses or {})
        self._open = True

    def lookup_email(self, name: str) -> str:
        return self._addresses[name]

    def ping(self) -> bool:
        return self._open

    def close(self) -> None:
        self._open = False


class LogMailer:
    """Mailer that logs messages and keeps the most recent ones in ``sent``."""

    def __init__(self, keep: int = 100):
        self.sent: Deque[Tuple[str, str, str]] = deque(maxlen=keep)
        self._lock = threading.Lock()
        self._open = True

    def send(self, to: str, subject: str, body: str) -> None:
        with self._lock:
            self.sent.append((to, subject, body))
        logger.info(f"Mail to {to}: {subject!r}")

    def ping(self) -> bool:
        return self._open

    def close(self) -> None:
        self._open = False


DEMO_ADDRESSES = {
    "Bob": "bob@example.com",
    "Alice": "alice@example.com",
}


def demo_providers() -> Tuple[ResourceProvider, ResourceProvider]:
    """Providers for the demo store and mailer, in acquisition order."""
    return (
        FunctionProvider("store", lambda: MemoryStore(DEMO_ADDRESSES), MemoryStore.close),
        FunctionProvider("mailer", LogMailer, LogMailer.close),
    )
