"""
=============================================================================
URL ROUTER
=============================================================================

Prefix-based routing for a small, fixed route table.

=============================================================================
ROUTING FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTING FLOW                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   Incoming Request                                                  │
    │   GET /echo/abc                                                     │
    │        │                                                            │
    │        ▼                                                            │
    │   ┌────────────────────────────────────────────────────────────┐    │
    │   │  ROUTER (first match wins, registration order)             │    │
    │   │                                                            │    │
    │   │   ANY  /             (exact)  → root                       │    │
    │   │   ANY  /echo/        (prefix) → echo        ← MATCH!       │    │
    │   │   ANY  /user-agent   (prefix) → user_agent                 │    │
    │   │   ANY  /files        (prefix) → files (GET/POST only)      │    │
    │   │                                                            │    │
    │   │   Extracted: path_params = {"text": "abc"}                 │    │
    │   └────────────────────────────────────────────────────────────┘    │
    │        │                                                            │
    │        ▼                                                            │
    │   echo(request)                                                     │
    │                                                                     │
    │   no match → 404 Not Found, empty body                              │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
MATCHING RULES
=============================================================================

Matching is a plain string prefix test, NOT segment-aware:

    Prefix "/user-agent" matches "/user-agent", "/user-agent/x" and
    "/user-agentX" alike.

An exact route matches only the identical path. A route may also be pinned
to one method; method-less routes accept any method.

There is no 405 Method Not Allowed: a path whose routes all reject the
method simply falls through to 404.

=============================================================================
"""

from dataclasses import dataclass, replace
from typing import Callable, Optional, List, Any
import logging

from .request import HTTPRequest
from .response import HTTPResponse, not_found


logger = logging.getLogger(__name__)


# Handler: A function that takes a request and returns a response
Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """
    A registered route.

        Route(
            prefix="/echo/",     # path prefix (or full path if exact)
            handler=echo,        # handler function
            exact=False,         # prefix match
            method=None,         # any method
            param="text",        # path_params key for the remainder
        )
    """

    prefix: str
    handler: Handler
    exact: bool = False
    method: Optional[str] = None
    param: Optional[str] = None
    name: Optional[str] = None

    def matches(self, method: str, path: str) -> bool:
        if self.method and self.method != method.upper():
            return False
        if self.exact:
            return path == self.prefix
        return path.startswith(self.prefix)


@dataclass
class RouteMatch:
    """
    Result of a successful route match.

    Example:
        Route:   prefix "/echo/"
        Path:    /echo/abc
        Result:  RouteMatch(route=<Route>, remainder="abc")
    """

    route: Route
    remainder: str


class Router:
    """
    HTTP request router with prefix routes.

    Routes are registered with add_route() or the decorator helpers:

        router = Router()

        @router.route("/echo/", param="text")
        def echo(request):
            return ok(request.path_params["text"])

        router.add_route("/", root, exact=True)
    """

    def __init__(self):
        self._routes: List[Route] = []

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        prefix: str,
        handler: Handler,
        exact: bool = False,
        method: Optional[str] = None,
        param: Optional[str] = None,
        name: Optional[str] = None
    ) -> Route:
        """
        Register a route.

        Args:
            prefix: Path prefix to match (the full path when exact=True).
            handler: Function taking a request and returning a response.
            exact: Require path == prefix instead of a prefix match.
            method: Restrict to one HTTP method (None for any).
            param: If set, the text after the prefix is exposed to the
                   handler as request.path_params[param].
            name: Optional label, used in debug logging.

        Returns:
            The registered Route.
        """
        route = Route(
            prefix=prefix,
            handler=handler,
            exact=exact,
            method=method.upper() if method else None,
            param=param,
            name=name or getattr(handler, "__name__", None),
        )
        self._routes.append(route)
        return route

    def route(
        self,
        prefix: str,
        exact: bool = False,
        method: Optional[str] = None,
        param: Optional[str] = None
    ) -> Callable[[Handler], Handler]:
        """
        Decorator for registering routes.

        Usage:
            @router.route("/", exact=True)
            def root(request):
                return ok(b"", ContentType.NONE)
        """
        def decorator(handler: Handler) -> Handler:
            self.add_route(prefix, handler, exact, method, param)
            return handler
        return decorator

    def get(self, prefix: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        """Register a GET-only route."""
        return self.route(prefix, method="GET", **kwargs)

    def post(self, prefix: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        """Register a POST-only route."""
        return self.route(prefix, method="POST", **kwargs)

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        Find the first route matching method and path.

        Order matters: first-registered, first-matched.
        """
        for route in self._routes:
            if route.matches(method, path):
                return RouteMatch(route, path[len(route.prefix):])
        return None

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request to the appropriate handler.

        1. Find matching route
        2. Expose the path remainder as a path parameter
        3. Call handler
        4. No match → 404
        """
        match = self.match(request.method, request.path)

        if match is None:
            logger.debug(f"No route for {request.method} {request.path!r}")
            return not_found()

        if match.route.param:
            params = dict(request.path_params)
            params[match.route.param] = match.remainder
            request = replace(request, path_params=params)

        return match.route.handler(request)

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        return self.handle(request)

    def routes(self) -> List[Route]:
        """All registered routes, in match order."""
        return list(self._routes)


def build_router(config) -> Router:
    """
    Wire the fixed route table.

        /              exact   → root
        /echo/         prefix  → echo
        /user-agent    prefix  → user_agent
        /files         prefix  → FileHandler (GET/POST), needs a directory

    Args:
        config: ServerConfig; config.directory selects the file store root
                (None disables the file routes, which then answer 404).
    """
    # Handlers import the response helpers from this package
    from ..handlers import basic
    from ..handlers.files import FileHandler, FileStore

    store = FileStore(config.directory) if config.directory else None

    router = Router()
    router.add_route("/", basic.root, exact=True)
    router.add_route("/echo/", basic.echo, param="text")
    router.add_route("/user-agent", basic.user_agent)
    router.add_route("/files", FileHandler(store), param="filename", name="files")
    return router
