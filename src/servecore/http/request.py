"""
=============================================================================
HTTP REQUEST
=============================================================================

The request as the core sees it: already decoded by the external transport,
read-only from the moment it enters the handler chain.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     WHERE REQUESTS COME FROM                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   transport (WSGI server, test, ...)                                │
    │        │  decodes method, path, headers, query, body                │
    │        ▼                                                             │
    │   HTTPRequest (frozen)                                               │
    │        │                                                             │
    │        ▼                                                             │
    │   Server.handle → Router.handle                                      │
    │        │  replace(request, path_params={...})   ← a COPY            │
    │        ▼                                                             │
    │   matched handler                                                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The router never mutates the request it was given; it hands the matched
handler a copy carrying the extracted path parameters.

=============================================================================
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlencode, urlsplit
import json

from ..errors import RequestError


FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass(frozen=True)
class HTTPRequest:
    """
    A decoded HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         HTTP method, upper-case ("GET", "POST", ...)
        path:           Request path WITHOUT query string
        headers:        Header name → value, names LOWER-CASE
        query_params:   "?a=1&a=2" → {"a": ["1", "2"]}
        body:           Raw body bytes
        path_params:    Filled by the router: "/users/:id" → {"id": "42"}
        client_address: (ip, port) of the peer, if the transport knows it

    =========================================================================
    """

    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, List[str]] = field(default_factory=dict)
    body: bytes = b""
    path_params: Dict[str, str] = field(default_factory=dict)
    client_address: Tuple[str, int] = ("", 0)

    @classmethod
    def build(
        cls,
        method: str,
        target: str,
        headers: Optional[Dict[str, str]] = None,
        body: bytes = b"",
        form: Optional[Dict[str, str]] = None,
        client_address: Tuple[str, int] = ("", 0),
    ) -> "HTTPRequest":
        """
        Convenience constructor for transports and tests.

        ``target`` may carry a query string ("/search?q=x"). ``form`` is
        encoded as an urlencoded body and sets the matching Content-Type.

        Example:
            HTTPRequest.build("POST", "/greet", form={"name": "Bob"})
        """
        parts = urlsplit(target)
        normalized = {k.lower(): v for k, v in (headers or {}).items()}
        if form is not None:
            body = urlencode(form).encode("utf-8")
            normalized.setdefault("content-type", FORM_CONTENT_TYPE)
        if body:
            normalized.setdefault("content-length", str(len(body)))
        return cls(
            method=method.upper(),
            path=parts.path or "/",
            headers=normalized,
            query_params=parse_qs(parts.query, keep_blank_values=True),
            body=body,
            client_address=client_address,
        )

    # =========================================================================
    # HEADERS
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters ("; charset=utf-8" stripped)."""
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    # =========================================================================
    # QUERY AND FORM VALUES
    # =========================================================================

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter."""
        values = self.query_params.get(name, [])
        return values[0] if values else default

    def get_query_list(self, name: str) -> List[str]:
        return self.query_params.get(name, [])

    @property
    def form(self) -> Dict[str, List[str]]:
        """
        Parsed urlencoded body; empty for any other content type.

        Parsed on each access: the request is immutable, so there is
        nothing to cache it on.
        """
        if self.content_type != FORM_CONTENT_TYPE or not self.body:
            return {}
        try:
            text = self.body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise RequestError("invalid form body", e, status=400) from e
        return parse_qs(text, keep_blank_values=True)

    def form_value(self, name: str, default: str = "") -> str:
        """
        First value for ``name`` from the form body, then the query string.

        Missing everywhere → ``default``.
        """
        values = self.form.get(name) or self.query_params.get(name)
        return values[0] if values else default

    # =========================================================================
    # JSON
    # =========================================================================

    @property
    def is_json(self) -> bool:
        return self.content_type == "application/json"

    @property
    def json(self) -> Any:
        """
        Body parsed as JSON (None for an empty body).

        Raises:
            RequestError: status 400 if the body is not valid JSON.
        """
        if not self.body:
            return None
        try:
            return json.loads(self.body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise RequestError("invalid JSON body", e, status=400) from e

    def with_path_params(self, params: Dict[str, str]) -> "HTTPRequest":
        """Copy of this request carrying ``params``."""
        return replace(self, path_params=dict(params))
