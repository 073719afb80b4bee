"""
=============================================================================
HTTP RESPONSE
=============================================================================

The finished response a BufferedResponseWriter hands back to the transport,
plus the small helpers the core uses for its own fixed answers (404, 405,
recovery fallback).

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   handler ──write()──► BufferedResponseWriter ──finish()──►          │
    │                                                   HTTPResponse       │
    │                                                        │             │
    │                                 to_bytes() / WSGI ◄────┘             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Any, Dict, List, TYPE_CHECKING
import json

from .status_codes import HTTPStatus, phrase_for

if TYPE_CHECKING:
    from .writer import ResponseWriter


@dataclass
class HTTPResponse:
    """Status, headers and body of one response."""

    status: int = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """Status line, e.g. "HTTP/1.1 200 OK"."""
        return f"{self.version} {int(self.status)} {phrase_for(self.status)}"

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    def to_bytes(self, server_name: str = "servecore/1.0") -> bytes:
        """
        Serialize for a raw socket transport.

        Content-Length, Date and Server are added when missing.
        """
        response_headers = dict(self.headers)
        response_headers.setdefault("Content-Length", str(len(self.body)))
        response_headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        response_headers.setdefault("Server", server_name)

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + self.body


def format_http_date(dt: datetime) -> str:
    """RFC 7231 IMF-fixdate: "Wed, 01 Jan 2026 12:00:00 GMT"."""
    return format_datetime(dt, usegmt=True)


# =============================================================================
# FIXED ANSWERS
# =============================================================================
#
# These write straight into a ResponseWriter. The router uses not_found and
# method_not_allowed, the recovery boundary uses write_error.
#
# =============================================================================

def write_json(writer: "ResponseWriter", status: int, data: Any) -> None:
    """Write ``data`` as a JSON body with ``status``."""
    writer.headers["Content-Type"] = "application/json"
    writer.write_header(status)
    writer.write(json.dumps(data).encode("utf-8"))


def write_error(writer: "ResponseWriter", status: int) -> None:
    """Fixed error body: {"error": "<reason phrase>"}."""
    write_json(writer, status, {"error": phrase_for(status)})


def not_found(writer: "ResponseWriter") -> None:
    write_error(writer, HTTPStatus.NOT_FOUND)


def method_not_allowed(writer: "ResponseWriter", allowed: List[str]) -> None:
    """405 with the Allow header listing valid methods (RFC 7231)."""
    writer.headers["Allow"] = ", ".join(allowed)
    write_json(writer, HTTPStatus.METHOD_NOT_ALLOWED, {
        "error": HTTPStatus.METHOD_NOT_ALLOWED.phrase,
        "allowed": allowed,
    })
