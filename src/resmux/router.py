"""ASGI router/multiplexer with an ordered layer stack.

Inspired by Express' Router: routes and mounted routers are kept in
registration order and the first matching layer wins, so the same path (or
the same mount point) can be registered more than once.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from functools import reduce

from .types import ASGIApp, Middleware, Receive, Scope, Send

logger = logging.getLogger(__name__)

path_params: ContextVar[dict[str, str]] = ContextVar("path_params")
http_route: ContextVar[str] = ContextVar("http_route")
allowed_methods: ContextVar[frozenset[str]] = ContextVar("allowed_methods")


class Method(Enum):
    """Keys a route can be registered under: HTTP methods, any method, or websocket.

    Methods from the following RFCs are all observed:

        * RFC 9110: HTTP Semantics, obsoletes 7231, which obsoleted 2616
        * RFC 5789: PATCH Method for HTTP
    """

    CONNECT = "CONNECT"  # Establish a connection to the server.
    DELETE = "DELETE"  # Remove the target.
    GET = "GET"  # Retrieve the target.
    HEAD = "HEAD"  # Same as GET, but only retrieve status line and header section.
    OPTIONS = "OPTIONS"  # Describe the communication options for the target.
    PATCH = "PATCH"  # Apply partial modifications to a target.
    POST = "POST"  # Perform target-specific processing with the request payload.
    PUT = "PUT"  # Replace the target with the request payload.
    TRACE = "TRACE"  # Perform a message loop-back test along the path to the target.

    ALL = "ALL"  # Any method, websocket included.
    WEBSOCKET = "WEBSOCKET"  # Websocket connection.

    def __repr__(self) -> str:
        return str(self.value)


_HTTP_METHODS = {
    m.value: m for m in Method if m not in (Method.ALL, Method.WEBSOCKET)
}


# --- PATH PATTERNS ------------------------------------------------------------
_TOKEN_RE = re.compile(r":(?P<name>\w+)(?P<optional>\?)?|(?P<star>\*)")


@dataclass(slots=True, frozen=True)
class PathPattern:
    """Compiled express-style path: ``/user/:id``, ``/post/:slug?``, ``/files/*``.

    Wildcards are exposed as positional params ``"0"``, ``"1"``, ...
    """

    source: str
    regex: re.Pattern[str]
    names: tuple[str, ...]

    def params(self, match: re.Match[str]) -> dict[str, str]:
        return {
            name: value
            for i, name in enumerate(self.names)
            if (value := match.group(f"p{i}")) is not None
        }


def compile_path(
    path: str,
    *,
    case_sensitive: bool = False,
    strict: bool = False,
    end: bool = True,
) -> PathPattern:
    """Compile path into a regex.

    With ``strict=False`` a trailing slash is optional. With ``end=False`` the
    pattern matches a prefix that ends on a segment boundary (used for mounts).
    """
    if not isinstance(path, str) or not path.startswith("/"):
        msg = f"path must start with '/', provided {path=}"
        raise ValueError(msg)

    names: list[str] = []
    parts: list[str] = []
    wildcards = 0
    pos = 0
    for token in _TOKEN_RE.finditer(path):
        literal = path[pos : token.start()]
        pos = token.end()
        group = f"p{len(names)}"
        if token.group("star"):
            parts.append(re.escape(literal))
            parts.append(f"(?P<{group}>.*)")
            names.append(str(wildcards))
            wildcards += 1
        elif token.group("optional"):
            # the separator before an optional param is optional too
            if literal.endswith("/"):
                parts.append(re.escape(literal[:-1]))
                parts.append(f"(?:/(?P<{group}>[^/]+?))?")
            else:
                parts.append(re.escape(literal))
                parts.append(f"(?P<{group}>[^/]+?)?")
            names.append(token.group("name"))
        else:
            parts.append(re.escape(literal))
            parts.append(f"(?P<{group}>[^/]+?)")
            names.append(token.group("name"))
    parts.append(re.escape(path[pos:]))
    body = "".join(parts)

    if not end:
        body = body.removesuffix("/") + "(?=/|$)"
    elif strict:
        body += "$"
    else:
        body = body.removesuffix("/") + "/?$"
    flags = 0 if case_sensitive else re.IGNORECASE
    return PathPattern(
        source=path,
        regex=re.compile(f"^{body}", flags),
        names=tuple(names),
    )


# --- LAYERS -------------------------------------------------------------------
@dataclass(slots=True, frozen=True)
class Route:
    method: Method
    path: str
    pattern: PathPattern
    handler: ASGIApp | None
    middleware: tuple[Middleware[ASGIApp], ...] = field(default=())

    def accepts(self, method: Method | None) -> bool:
        return self.method is method or self.method is Method.ALL


@dataclass(slots=True, frozen=True)
class Mount:
    path: str
    pattern: PathPattern
    router: Router


@dataclass(slots=True, frozen=True)
class RouteInfo:
    """A registered route as seen from the router it is listed on."""

    method: str
    path: str
    handler: ASGIApp | None
    middleware: tuple[Middleware[ASGIApp], ...]


type Layer = Route | Mount


# --- DEFAULT HANDLERS ---------------------------------------------------------
async def _respond(
    scope: Scope,
    send: Send,
    status: int,
    body: bytes,
    headers: Iterable[tuple[bytes, bytes]] = (),
) -> None:
    if scope["type"] == "websocket":
        await send({"type": "websocket.close", "code": 1008})
        return
    await send(
        {
            "type": "http.response.start",
            "status": status,
            "headers": [(b"content-type", b"text/plain; charset=utf-8"), *headers],
        }
    )
    await send({"type": "http.response.body", "body": body})


async def default_not_found(scope: Scope, receive: Receive, send: Send) -> None:
    await _respond(scope, send, 404, b"Not Found")


async def default_method_not_allowed(
    scope: Scope, receive: Receive, send: Send
) -> None:
    allow = ", ".join(sorted(allowed_methods.get(frozenset())))
    await _respond(
        scope, send, 405, b"Method Not Allowed", [(b"allow", allow.encode("latin-1"))]
    )


# --- IMPLEMENTATION -----------------------------------------------------------
class Router:
    __slots__ = (
        "__weakref__",
        "_layers",
        "_method_not_allowed_handler",
        "_middleware",
        "_not_found_handler",
        "case_sensitive",
        "merge_params",
        "strict",
    )
    _layers: list[Layer]
    _middleware: tuple[Middleware[ASGIApp], ...]
    _not_found_handler: ASGIApp | None
    _method_not_allowed_handler: ASGIApp | None

    def __init__(
        self,
        *,
        case_sensitive: bool = False,
        merge_params: bool = False,
        strict: bool = False,
        not_found_handler: ASGIApp | None = None,
        method_not_allowed_handler: ASGIApp | None = None,
    ) -> None:
        self.case_sensitive = case_sensitive
        self.merge_params = merge_params
        self.strict = strict
        self._layers = []
        self._middleware = ()
        self._not_found_handler = not_found_handler
        self._method_not_allowed_handler = method_not_allowed_handler

    def __repr__(self) -> str:
        return f"Router(layers={len(self._layers)})"

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return
        scope.setdefault("app", self)
        await self._wrap(self._dispatch)(scope, receive, send)

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Handle ASGI lifespan events."""
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    def _wrap(self, handler: ASGIApp) -> ASGIApp:
        return reduce(lambda h, m: m(h), reversed(self._middleware), handler)

    async def _dispatch(self, scope: Scope, receive: Receive, send: Send) -> None:
        # methods outside the enum only match routes registered with all()
        method = (
            Method.WEBSOCKET
            if scope["type"] == "websocket"
            else _HTTP_METHODS.get(scope["method"].upper())
        )
        allowed: set[str] = set()

        async def unmatched(scope: Scope, receive: Receive, send: Send) -> None:
            if allowed:
                handler = self._method_not_allowed_handler or default_method_not_allowed
                with allowed_methods.set(frozenset(allowed)):
                    await handler(scope, receive, send)
                return
            await (self._not_found_handler or default_not_found)(scope, receive, send)

        await self._resume(
            method, scope.get("path") or "/", {}, "", allowed, unmatched, 0
        )(scope, receive, send)

    def _resume(
        self,
        method: Method | None,
        path: str,
        inherited: dict[str, str],
        prefix: str,
        allowed: set[str],
        fallback: ASGIApp,
        start: int,
    ) -> ASGIApp:
        """Continuation that carries on the search from layer start.

        Calls fallback when no later layer matches.
        """

        async def next_layer(scope: Scope, receive: Receive, send: Send) -> None:
            found = self._find(
                method, path, inherited, prefix, allowed, fallback, start
            )
            if found is None:
                await fallback(scope, receive, send)
                return
            handler, params, route = found
            with path_params.set(params), http_route.set(route):
                await handler(scope, receive, send)

        return next_layer

    def _find(
        self,
        method: Method | None,
        path: str,
        inherited: dict[str, str],
        prefix: str,
        allowed: set[str],
        fallback: ASGIApp,
        start: int = 0,
    ) -> tuple[ASGIApp, dict[str, str], str] | None:
        """Walks the layer stack in order from start and returns the first match.

        Returns (handler, params, route_pattern), with route and router
        middleware already applied, or None. Methods of routes whose path
        matched but whose method did not are collected into allowed.

        A route without a handler runs its middleware around a continuation
        of the search, so later layers (including later mounts of the parent
        routers) still get the request.
        """
        for i in range(start, len(self._layers)):
            layer = self._layers[i]
            match = layer.pattern.regex.match(path)
            if match is None:
                continue
            if isinstance(layer, Route):
                if not layer.accepts(method):
                    allowed.add(layer.method.value)
                    continue
                terminal = layer.handler
                if terminal is None:
                    terminal = self._resume(
                        method, path, inherited, prefix, allowed, fallback, i + 1
                    )
                handler = reduce(
                    lambda h, m: m(h), reversed(layer.middleware), terminal
                )
                params = inherited | layer.pattern.params(match)
                return handler, params, _join_route(prefix, layer.path)

            child = layer.router
            mount_params = inherited | layer.pattern.params(match)
            found = child._find(
                method,
                path[match.end() :] or "/",
                mount_params if child.merge_params else {},
                _join_route(prefix, layer.path),
                allowed,
                child._not_found_handler
                or self._resume(
                    method, path, inherited, prefix, allowed, fallback, i + 1
                ),
            )
            if found is not None:
                handler, params, route = found
                return child._wrap(handler), params, route
        return None

    def _add(
        self,
        method: Method,
        path: str,
        handler: ASGIApp | None,
        middleware: tuple[Middleware[ASGIApp], ...],
    ) -> None:
        pattern = compile_path(
            path, case_sensitive=self.case_sensitive, strict=self.strict
        )
        self._layers.append(Route(method, path, pattern, handler, tuple(middleware)))
        logger.debug("registered %s %s", method.value, path)

    def method(
        self,
        method: str,
        path: str,
        handler: ASGIApp | None = None,
        middleware: tuple[Middleware[ASGIApp], ...] = (),
    ) -> None:
        """Registers handler at path for method, with optional middleware.

        The method name is case-insensitive: ``"get"`` and ``"GET"`` are the same.
        """
        try:
            key = Method(method.upper())
        except (AttributeError, ValueError) as e:
            msg = f"unsupported method {method!r}"
            raise ValueError(msg) from e
        self._add(key, path, handler, middleware)

    def all(
        self,
        path: str,
        handler: ASGIApp | None = None,
        middleware: tuple[Middleware[ASGIApp], ...] = (),
    ) -> None:
        """Registers handler at path for any method, with optional middleware."""
        self._add(Method.ALL, path, handler, middleware)

    def connect(
        self,
        path: str,
        handler: ASGIApp | None = None,
        middleware: tuple[Middleware[ASGIApp], ...] = (),
    ) -> None:
        """Registers http handler at path for CONNECT, with optional middleware."""
        self._add(Method.CONNECT, path, handler, middleware)

    def delete(
        self,
        path: str,
        handler: ASGIApp | None = None,
        middleware: tuple[Middleware[ASGIApp], ...] = (),
    ) -> None:
        """Registers http handler at path for DELETE, with optional middleware."""
        self._add(Method.DELETE, path, handler, middleware)

    def get(
        self,
        path: str,
        handler: ASGIApp | None = None,
        middleware: tuple[Middleware[ASGIApp], ...] = (),
    ) -> None:
        """Registers http handler at path for GET, with optional middleware."""
        self._add(Method.GET, path, handler, middleware)

    def head(
        self,
        path: str,
        handler: ASGIApp | None = None,
        middleware: tuple[Middleware[ASGIApp], ...] = (),
    ) -> None:
        """Registers http handler at path for HEAD, with optional middleware."""
        self._add(Method.HEAD, path, handler, middleware)

    def options(
        self,
        path: str,
        handler: ASGIApp | None = None,
        middleware: tuple[Middleware[ASGIApp], ...] = (),
    ) -> None:
        """Registers http handler at path for OPTIONS, with optional middleware."""
        self._add(Method.OPTIONS, path, handler, middleware)

    def patch(
        self,
        path: str,
        handler: ASGIApp | None = None,
        middleware: tuple[Middleware[ASGIApp], ...] = (),
    ) -> None:
        """Registers http handler at path for PATCH, with optional middleware."""
        self._add(Method.PATCH, path, handler, middleware)

    def post(
        self,
        path: str,
        handler: ASGIApp | None = None,
        middleware: tuple[Middleware[ASGIApp], ...] = (),
    ) -> None:
        """Registers http handler at path for POST, with optional middleware."""
        self._add(Method.POST, path, handler, middleware)

    def put(
        self,
        path: str,
        handler: ASGIApp | None = None,
        middleware: tuple[Middleware[ASGIApp], ...] = (),
    ) -> None:
        """Registers http handler at path for PUT, with optional middleware."""
        self._add(Method.PUT, path, handler, middleware)

    def trace(
        self,
        path: str,
        handler: ASGIApp | None = None,
        middleware: tuple[Middleware[ASGIApp], ...] = (),
    ) -> None:
        """Registers http handler at path for TRACE, with optional middleware."""
        self._add(Method.TRACE, path, handler, middleware)

    def websocket(
        self,
        path: str,
        handler: ASGIApp | None = None,
        middleware: tuple[Middleware[ASGIApp], ...] = (),
    ) -> None:
        """Registers websocket handler at path, with optional middleware."""
        self._add(Method.WEBSOCKET, path, handler, middleware)

    def not_found(self, handler: ASGIApp) -> None:
        """Registers handler for paths that can't be found."""
        if self._not_found_handler is not None:
            msg = "not found handler is already set"
            raise ValueError(msg)
        self._not_found_handler = handler

    def method_not_allowed(self, handler: ASGIApp) -> None:
        """Registers http handler for paths where the method is unresolved."""
        if self._method_not_allowed_handler is not None:
            msg = "method not allowed handler is already set"
            raise ValueError(msg)
        self._method_not_allowed_handler = handler

    def use(self, *middleware: Middleware[ASGIApp]) -> None:
        """Adds middleware around this router's dispatch, first added = outermost."""
        self._middleware = self._middleware + middleware

    def mount(self, path: str, router: Router) -> None:
        """Appends another router at path.

        Mounting is not deduplicated: mounting twice adds a second layer.
        """
        pattern = compile_path(
            path, case_sensitive=self.case_sensitive, strict=self.strict, end=False
        )
        self._layers.append(Mount(path, pattern, router))
        logger.debug("mounted %r at %s", router, path)

    def routes(self) -> list[RouteInfo]:
        """Lists every registered route in stack order, mount prefixes applied."""
        return list(_collect_routes(self, ""))


def _join_route(prefix: str, path: str) -> str:
    if not prefix or prefix == "/":
        return path
    if path == "/":
        return prefix
    return prefix.removesuffix("/") + path


def _collect_routes(router: Router, prefix: str) -> Iterable[RouteInfo]:
    for layer in router._layers:
        if isinstance(layer, Route):
            yield RouteInfo(
                layer.method.value,
                _join_route(prefix, layer.path),
                layer.handler,
                layer.middleware,
            )
        else:
            yield from _collect_routes(layer.router, _join_route(prefix, layer.path))


def format_routes(router: Router) -> str:
    """Format registered routes as a column-aligned list, in registration order.

        GET    /users            Users.index
        GET    /users/:id        Users.show    [auth > audit]
        POST   /users            -             [auth]

    Routes registered without a handler show ``-``.
    """
    routes = router.routes()
    if not routes:
        return ""

    rows = [
        (
            r.method,
            r.path,
            "-" if r.handler is None else _qualname(r.handler),
            [_qualname(m) for m in r.middleware],
        )
        for r in routes
    ]
    method_w = max(len(r[0]) for r in rows)
    path_w = max(len(r[1]) for r in rows)
    handler_w = max(len(r[2]) for r in rows)

    lines: list[str] = []
    for method, path, handler, mw in rows:
        if mw:
            lines.append(
                f"{method:<{method_w}}   {path:<{path_w}}   "
                f"{handler:<{handler_w}}   [{' > '.join(mw)}]"
            )
        else:
            lines.append(f"{method:<{method_w}}   {path:<{path_w}}   {handler}")
    return "\n".join(lines)


def _qualname(obj: object) -> str:
    """Extract __qualname__ from a callable, falling back to repr."""
    return str(obj.__qualname__) if hasattr(obj, "__qualname__") else repr(obj)
