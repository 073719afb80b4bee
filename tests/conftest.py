"""
pytest configuration and fixtures.
"""

import threading
from typing import Dict, List, Tuple

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from servecore import Router, Server, ServerConfig
from servecore.http import BufferedResponseWriter


class FakeStore:
    """In-memory Store that counts lookups."""

    def __init__(self, addresses: Dict[str, str]):
        self.addresses = dict(addresses)
        self.lookups: List[str] = []
        self.healthy = True

    def lookup_email(self, name: str) -> str:
        self.lookups.append(name)
        return self.addresses[name]

    def ping(self) -> bool:
        return self.healthy


class RecordingMailer:
    """Mailer that records every send."""

    def __init__(self):
        self.sent: List[Tuple[str, str, str]] = []
        self._lock = threading.Lock()
        self.healthy = True

    def send(self, to: str, subject: str, body: str) -> None:
        with self._lock:
            self.sent.append((to, subject, body))

    def ping(self) -> bool:
        return self.healthy


@pytest.fixture
def store() -> FakeStore:
    return FakeStore({"Bob": "bob@example.com", "Alice": "alice@example.com"})


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def no_timeout_config() -> ServerConfig:
    """Config that runs handlers inline (no deadline thread, no access log)."""
    return ServerConfig(request_timeout=None, access_log=False)


@pytest.fixture
def writer() -> BufferedResponseWriter:
    return BufferedResponseWriter()


@pytest.fixture
def make_server(store, mailer, no_timeout_config):
    """Factory: Server around ``router`` with the shared fakes."""

    def factory(router: Router, **kwargs) -> Server:
        kwargs.setdefault("config", no_timeout_config)
        return Server(router, store=store, mailer=mailer, **kwargs)

    return factory

