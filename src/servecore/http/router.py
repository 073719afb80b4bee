"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) to a Handler. The Router is itself a Handler: its
``handle`` dispatches to the matched route.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTING FLOW                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Incoming Request                                                   │
    │   GET /users/123                                                     │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  ROUTER                                                      │   │
    │   │  ┌────────────────────────────────────────────────────────┐ │   │
    │   │  │ GET  /health       → health                            │ │   │
    │   │  │ GET  /users/me     → current_user                      │ │   │
    │   │  │ GET  /users/:id    → get_user       ← MATCH!           │ │   │
    │   │  │ POST /users        → create_user                       │ │   │
    │   │  │ GET  /static/*path → static_files                      │ │   │
    │   │  └────────────────────────────────────────────────────────┘ │   │
    │   │  Extracted: path_params = {"id": "123"}                     │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                             │
    │        ▼                                                             │
    │   get_user(writer, request)   # request.path_params["id"] == "123"  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ROUTE PATTERNS
=============================================================================

1. STATIC SEGMENTS: exact match

   Pattern: /users          Matches: /users, /users/
                            Doesn't match: /users/123, /user

2. PARAMETERS (:name): exactly one non-empty segment

   Pattern: /users/:id      Matches: /users/123 → {"id": "123"}
                            Doesn't match: /users, /users/123/posts

3. WILDCARD (*name): the rest of the path, LAST segment only

   Pattern: /static/*path   Matches: /static/css/a.css → {"path": "css/a.css"}
                                     /static           → {"path": ""}

Malformed patterns (no leading slash, empty segment "//", bad parameter
name, wildcard not last, repeated parameter name) raise ConfigError.

=============================================================================
PRECEDENCE
=============================================================================

When several patterns match a path, the most specific wins, regardless of
registration order:

    1. Fully static pattern            /users/me
    2. Parameterised patterns          /users/:id
       (static beats parameter at the first position where they differ)
    3. Wildcard patterns               /users/*rest
       (longest prefix before the wildcard wins)

Ties cannot happen: two routes with the same method and the same SHAPE
(static text kept, parameter names erased) are rejected at registration:

    GET /users/:id   and   GET /users/:name    → ConfigError
    GET /users/:id   and   POST /users/:id     → fine

=============================================================================
LIFECYCLE
=============================================================================

Routes are registered during startup. The first dispatch (or an explicit
``freeze()``) fixes the table; registering after that raises ConfigError.
From then on the table is only read, so concurrent requests need no lock.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import logging
import re

from ..errors import ConfigError
from ..handlers.base import Handler, HandlerLike, as_handler
from ..middleware.base import MiddlewareLike, chain
from .request import HTTPRequest
from .response import method_not_allowed, not_found
from .writer import ResponseWriter


logger = logging.getLogger(__name__)


_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_METHOD_RE = re.compile(r"^[A-Z]+$")

STATIC = "static"
PARAM = "param"
WILDCARD = "wildcard"


@dataclass(frozen=True)
class Segment:
    """One compiled pattern segment."""
    kind: str       # STATIC, PARAM or WILDCARD
    value: str      # literal text, or the parameter name


@dataclass(frozen=True)
class Route:
    """
    A registered (method, pattern, handler) triple.

    ``handler`` is the fully composed chain (route middleware already
    applied). Routes are never modified after registration.
    """

    method: str
    pattern: str
    handler: Handler
    name: Optional[str] = None
    segments: Tuple[Segment, ...] = field(default=(), repr=False)

    @property
    def wildcard(self) -> Optional[Segment]:
        if self.segments and self.segments[-1].kind == WILDCARD:
            return self.segments[-1]
        return None

    @property
    def fixed(self) -> Tuple[Segment, ...]:
        """Segments before the wildcard (all of them if there is none)."""
        return self.segments[:-1] if self.wildcard else self.segments

    @property
    def shape(self) -> Tuple[Tuple[str, str], ...]:
        """Pattern with parameter and wildcard names erased."""
        return tuple(
            (seg.kind, seg.value if seg.kind == STATIC else "")
            for seg in self.segments
        )

    def precedence(self) -> tuple:
        """Sort key: smaller is more specific."""
        kinds = tuple(0 if seg.kind == STATIC else 1 for seg in self.fixed)
        if self.wildcard:
            return (2, -len(self.fixed), kinds)
        if any(kinds):
            return (1, 0, kinds)
        return (0, 0, kinds)

    def match(self, parts: Sequence[str]) -> Optional[Dict[str, str]]:
        """Path parameters if ``parts`` matches this route, else None."""
        fixed = self.fixed
        if self.wildcard is None and len(parts) != len(fixed):
            return None
        if len(parts) < len(fixed):
            return None

        params: Dict[str, str] = {}
        for seg, part in zip(fixed, parts):
            if seg.kind == STATIC:
                if seg.value != part:
                    return None
            elif not part:
                return None
            else:
                params[seg.value] = part

        if self.wildcard is not None:
            params[self.wildcard.value] = "/".join(parts[len(fixed):])
        return params


@dataclass
class RouteMatch:
    """A matched route and the parameters extracted from the path."""
    route: Route
    params: Dict[str, str]


def normalize_path(path: str) -> str:
    """'/users/' → '/users', '' → '/'."""
    stripped = path.strip("/")
    return "/" + stripped if stripped else "/"


def split_path(path: str) -> List[str]:
    normalized = normalize_path(path)
    return [] if normalized == "/" else normalized[1:].split("/")


def compile_pattern(pattern: str) -> Tuple[Segment, ...]:
    """
    Compile a route pattern into segments.

        "/users/:id/posts/*rest"
            → (STATIC users) (PARAM id) (STATIC posts) (WILDCARD rest)

    Raises:
        ConfigError: the pattern is malformed.
    """
    if not isinstance(pattern, str) or not pattern.startswith("/"):
        raise ConfigError(f"route pattern must start with '/': {pattern!r}")

    body = pattern[1:]
    if body.endswith("/"):
        body = body[:-1]
    if not body:
        return ()

    raw = body.split("/")
    segments: List[Segment] = []
    seen: set = set()

    for i, text in enumerate(raw):
        if not text:
            raise ConfigError(f"empty segment in route pattern {pattern!r}")

        if text[0] in ":*":
            kind = PARAM if text[0] == ":" else WILDCARD
            name = text[1:] or ("wildcard" if kind == WILDCARD else "")
            if not _NAME_RE.match(name):
                raise ConfigError(f"bad parameter name {text!r} in {pattern!r}")
            if kind == WILDCARD and i != len(raw) - 1:
                raise ConfigError(f"wildcard must be the last segment: {pattern!r}")
            if name in seen:
                raise ConfigError(f"repeated parameter {name!r} in {pattern!r}")
            seen.add(name)
            segments.append(Segment(kind, name))
        else:
            if "*" in text:
                raise ConfigError(f"'*' only allowed at segment start: {pattern!r}")
            segments.append(Segment(STATIC, text))

    return tuple(segments)


class Router(Handler):
    """
    HTTP request router. Itself a Handler.

    =========================================================================
    USAGE
    =========================================================================

        router = Router()

        router.register("GET", "/users", list_users)
        router.register("GET", "/users/:id", get_user,
                        middleware=[BearerAuth({"secret"})])

        @router.post("/users")
        def create_user(writer, request):
            ...

        api = router.group("/api/v1")

        @api.get("/status")          # GET /api/v1/status
        def status(writer, request):
            ...

    =========================================================================
    """

    def __init__(self):
        self._routes: List[Route] = []
        self._shapes: Dict[Tuple[str, tuple], Route] = {}
        self._named_routes: Dict[str, Route] = {}
        self._frozen = False

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def register(
        self,
        method: str,
        pattern: str,
        handler: HandlerLike,
        *,
        name: Optional[str] = None,
        middleware: Sequence[MiddlewareLike] = (),
    ) -> Route:
        """
        Register a route.

        ``middleware`` is composed around ``handler`` here, once; the
        composed chain is what every request on this route runs.

        Raises:
            ConfigError: duplicate (method, pattern shape), malformed
                pattern or method, duplicate route name, or the router is
                already serving.
        """
        if self._frozen:
            raise ConfigError(
                f"cannot register {method} {pattern}: router is already serving"
            )
        if not isinstance(method, str) or not _METHOD_RE.match(method.upper()):
            raise ConfigError(f"bad HTTP method {method!r}")
        method = method.upper()

        segments = compile_pattern(pattern)
        composed = chain(*middleware)(as_handler(handler))

        route = Route(
            method=method,
            pattern=normalize_path(pattern),
            handler=composed,
            name=name,
            segments=segments,
        )

        key = (method, route.shape)
        existing = self._shapes.get(key)
        if existing is not None:
            raise ConfigError(
                f"route {method} {pattern} conflicts with {existing.method} {existing.pattern}"
            )
        if name and name in self._named_routes:
            raise ConfigError(f"duplicate route name {name!r}")

        self._shapes[key] = route
        self._routes.append(route)
        if name:
            self._named_routes[name] = route

        logger.debug(f"Registered route {method} {route.pattern} → {composed.name}")
        return route

    def freeze(self) -> None:
        """Fix the routing table. Later registrations raise ConfigError."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    def _candidates(self, path: str) -> List[RouteMatch]:
        parts = split_path(path)
        found = []
        for route in self._routes:
            params = route.match(parts)
            if params is not None:
                found.append(RouteMatch(route, params))
        return found

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """Most specific route for (method, path), or None."""
        method = method.upper()
        matches = [m for m in self._candidates(path) if m.route.method == method]
        if not matches:
            return None
        return min(matches, key=lambda m: m.route.precedence())

    def allowed_methods(self, path: str) -> List[str]:
        """Methods with some route matching ``path`` (for the Allow header)."""
        return sorted({m.route.method for m in self._candidates(path)})

    def handle(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        """
        Dispatch ``request`` to the matching route.

        1. No pattern matches the path        → 404, call succeeds
        2. Path matches, method doesn't       → 405 + Allow, call succeeds
        3. Otherwise                          → matched handler; its failure
                                                propagates to the caller
        """
        self._frozen = True

        best = self.match(request.method, request.path)
        if best is None:
            allowed = self.allowed_methods(request.path)
            if not allowed:
                logger.debug(f"No route for {request.method} {request.path}")
                not_found(writer)
            else:
                logger.debug(f"{request.method} not allowed for {request.path}; allowed {allowed}")
                method_not_allowed(writer, allowed)
            return

        best.route.handler.handle(writer, request.with_path_params(best.params))

    # =========================================================================
    # DECORATOR-STYLE REGISTRATION
    # =========================================================================
    #
    #     @router.get("/users")
    #     def list_users(writer, request):
    #         ...
    #
    # is the same as router.register("GET", "/users", list_users).
    # The decorated function is returned unchanged so decorators stack.
    #
    # =========================================================================

    def route(
        self,
        method: str,
        pattern: str,
        name: Optional[str] = None,
        middleware: Sequence[MiddlewareLike] = (),
    ) -> Callable[[HandlerLike], HandlerLike]:
        def decorator(handler: HandlerLike) -> HandlerLike:
            self.register(method, pattern, handler, name=name, middleware=middleware)
            return handler
        return decorator

    def get(self, pattern: str, **kwargs) -> Callable[[HandlerLike], HandlerLike]:
        return self.route("GET", pattern, **kwargs)

    def post(self, pattern: str, **kwargs) -> Callable[[HandlerLike], HandlerLike]:
        return self.route("POST", pattern, **kwargs)

    def put(self, pattern: str, **kwargs) -> Callable[[HandlerLike], HandlerLike]:
        return self.route("PUT", pattern, **kwargs)

    def delete(self, pattern: str, **kwargs) -> Callable[[HandlerLike], HandlerLike]:
        return self.route("DELETE", pattern, **kwargs)

    def patch(self, pattern: str, **kwargs) -> Callable[[HandlerLike], HandlerLike]:
        return self.route("PATCH", pattern, **kwargs)

    def group(self, prefix: str, middleware: Sequence[MiddlewareLike] = ()) -> "RouteGroup":
        """
        Registration view that prefixes patterns and adds shared middleware.

            api = router.group("/api/v1", middleware=[BearerAuth(tokens)])
            api.register("GET", "/users", list_users)   # GET /api/v1/users
        """
        return RouteGroup(self, prefix, middleware)

    # =========================================================================
    # UTILITY METHODS
    # =========================================================================

    def routes(self) -> List[Route]:
        return list(self._routes)

    def url_for(self, name: str, **params: str) -> Optional[str]:
        """
        Reverse routing: build the path of a named route.

            router.url_for("get_user", id="123")  → "/users/123"

        Returns None for an unknown name.

        Raises:
            ConfigError: a parameter of the pattern was not supplied.
        """
        route = self._named_routes.get(name)
        if route is None:
            return None
        parts = []
        for seg in route.segments:
            if seg.kind == STATIC:
                parts.append(seg.value)
            elif seg.value in params:
                parts.append(str(params[seg.value]))
            elif seg.kind == WILDCARD:
                continue
            else:
                raise ConfigError(f"url_for({name!r}) missing parameter {seg.value!r}")
        return "/" + "/".join(p for p in parts if p)

    def log_routes(self) -> None:
        """Log the routing table at INFO."""
        logger.info("Registered routes:")
        for route in self._routes:
            logger.info(f"  {route.method:8} {route.pattern}")


class RouteGroup:
    """Prefix + middleware shared by several registrations."""

    def __init__(self, router: Router, prefix: str, middleware: Sequence[MiddlewareLike] = ()):
        compile_pattern(prefix)
        self._router = router
        self._prefix = normalize_path(prefix).rstrip("/")
        self._middleware = list(middleware)

    def register(
        self,
        method: str,
        pattern: str,
        handler: HandlerLike,
        *,
        name: Optional[str] = None,
        middleware: Sequence[MiddlewareLike] = (),
    ) -> Route:
        if not isinstance(pattern, str) or not pattern.startswith("/"):
            raise ConfigError(f"route pattern must start with '/': {pattern!r}")
        full = self._prefix + pattern if pattern != "/" else (self._prefix or "/")
        return self._router.register(
            method, full, handler,
            name=name, middleware=[*self._middleware, *middleware],
        )

    def route(self, method: str, pattern: str, **kwargs) -> Callable[[HandlerLike], HandlerLike]:
        def decorator(handler: HandlerLike) -> HandlerLike:
            self.register(method, pattern, handler, **kwargs)
            return handler
        return decorator

    def get(self, pattern: str, **kwargs) -> Callable[[HandlerLike], HandlerLike]:
        return self.route("GET", pattern, **kwargs)

    def post(self, pattern: str, **kwargs) -> Callable[[HandlerLike], HandlerLike]:
        return self.route("POST", pattern, **kwargs)

    def group(self, prefix: str, middleware: Sequence[MiddlewareLike] = ()) -> "RouteGroup":
        compile_pattern(prefix)
        return RouteGroup(
            self._router,
            self._prefix + normalize_path(prefix),
            [*self._middleware, *middleware],
        )
