"""
Routing system for Mooring.
Implements route declaration, mounting with path rebasing, and resolution.

Routes are tried in declaration order; the first route whose pattern and
method match wins. Routers mount other routers under a base path, which
rebases every route they own, transitively.
"""

import inspect
import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from mooring.exceptions import RoutingError, TypeMismatchError
from mooring.middleware.chain import MiddlewareChain, ensure_handler
from mooring.pathmatch import CompiledMatcher, MatcherOptions, compile_pattern
from mooring.types import Handler, Next, Params

logger = logging.getLogger("mooring.routing")

# Wildcard accepted in place of a method set
ANY_METHOD: str = "*"


def _normalize_methods(methods: str | Iterable[str] | None) -> frozenset[str] | str:
    if methods is None:
        return frozenset({"GET"})
    if isinstance(methods, str):
        if methods == ANY_METHOD:
            return ANY_METHOD
        methods = [methods]
    normalized = frozenset(m.upper() for m in methods)
    if ANY_METHOD in normalized:
        return ANY_METHOD
    if not normalized:
        raise TypeMismatchError("A route needs at least one method")
    return normalized


def _normalize_base(base_path: str) -> str:
    if not isinstance(base_path, str):
        raise TypeMismatchError(
            f"Base path must be a string, got {type(base_path).__name__}"
        )
    return base_path.rstrip("/")


@dataclass(slots=True)
class Route:
    """
    A single route: methods, path pattern and route-scoped middleware.

    The matcher is rebuilt every time the path or options change.
    """

    methods: frozenset[str] | str
    path: str
    middleware: tuple[Handler, ...] = ()
    options: MatcherOptions = field(default_factory=MatcherOptions)
    name: str | None = None
    _matcher: CompiledMatcher | None = field(default=None, init=False, repr=False)
    _chain: MiddlewareChain | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.methods = _normalize_methods(self.methods)
        self.middleware = tuple(
            ensure_handler(h, "Route middleware") for h in self.middleware
        )
        self._compile()

    def _compile(self) -> None:
        self._matcher = compile_pattern(self.path, self.options)

    @property
    def matcher(self) -> CompiledMatcher:
        if self._matcher is None:
            raise RoutingError(f"Route {self.path!r} has no compiled matcher")
        return self._matcher

    @property
    def chain(self) -> MiddlewareChain:
        """Compiled route-scope chain."""
        if self._chain is None:
            self._chain = MiddlewareChain(self.middleware)
        return self._chain

    def allows(self, method: str) -> bool:
        """Whether *method* is accepted (case-insensitive)."""
        if self.methods == ANY_METHOD:
            return True
        return method.upper() in self.methods

    def match(self, path: str) -> bool:
        return self.matcher.test(path)

    def extract_params(self, path: str) -> Params:
        """Parameters bound by *path*, or an empty dict if it does not match."""
        return self.matcher.exec(path) or {}

    def rebase(self, base_path: str) -> "Route":
        """
        Prefix the route path with *base_path* and recompile.

        Each mount applies its base exactly once, so nested mounts compound.
        """
        base = _normalize_base(base_path)
        if base:
            self.path = f"{base}{self.path}"
            self._compile()
        return self

    def apply_options(self, options: MatcherOptions) -> "Route":
        """Recompile with different matcher options."""
        self.options = options
        self._compile()
        return self


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route resolution."""

    route: Route
    router: "Router"
    params: Params


@dataclass(frozen=True, slots=True)
class MountOptions:
    """
    How a router is attached to its parent.

    base_route: path prefix applied to every route of the mounted router.
    middleware: handlers that run before the mounted router's own.
    """

    base_route: str | None = None
    middleware: tuple[Handler, ...] = ()

    def __post_init__(self) -> None:
        if self.base_route is not None and not isinstance(self.base_route, str):
            raise TypeMismatchError(
                f"base_route must be a string, got {type(self.base_route).__name__}"
            )
        if callable(self.middleware):
            object.__setattr__(self, "middleware", (self.middleware,))
        try:
            middleware = tuple(self.middleware)
        except TypeError:
            raise TypeMismatchError(
                "Mount middleware must be a callable or a sequence of callables"
            ) from None
        for handler in middleware:
            ensure_handler(handler, "Mount middleware")
        object.__setattr__(self, "middleware", middleware)


class PathScopedMiddleware:
    """
    Router middleware that only runs for paths under a prefix pattern.

    For other paths it passes straight through to ``next``.
    """

    __slots__ = ("path", "handler", "_matcher")

    def __init__(self, path: str, handler: Handler) -> None:
        self.path = path
        self.handler = ensure_handler(handler)
        self._matcher = compile_pattern(path, MatcherOptions(end=False))

    def __repr__(self) -> str:
        name = getattr(self.handler, "__name__", repr(self.handler))
        return f"PathScopedMiddleware({self.path!r}, {name})"

    def rebase(self, base_path: str) -> None:
        base = _normalize_base(base_path)
        if base:
            self.path = f"{base}{self.path}"
            self._matcher = compile_pattern(self.path, self._matcher.options)

    def apply_options(self, options: MatcherOptions) -> None:
        self._matcher = compile_pattern(
            self.path,
            MatcherOptions(sensitive=options.sensitive, strict=options.strict, end=False),
        )

    async def __call__(self, context: Any, next_: Next) -> None:
        if not self._matcher.test(context.req.path):
            await next_()
            return
        result = self.handler(context, next_)
        if inspect.isawaitable(result):
            await result


class Router:
    """
    An ordered collection of routes with router-scoped middleware.

    Implements the Composite pattern: routers mount child routers.
    """

    def __init__(
        self,
        options: MatcherOptions | None = None,
        name: str | None = None,
    ) -> None:
        self.name = name
        self.options = options or MatcherOptions()
        self.parent: "Router | None" = None
        self.base_path = ""
        self.owner: Any = None
        self._routes: list[Route] = []
        self._middleware: list[Handler] = []
        self._children: list["Router"] = []
        self._active = False
        self._chain_cache: tuple[tuple[Handler, ...], MiddlewareChain] | None = None

    def __repr__(self) -> str:
        return (
            f"Router(name={self.name!r}, routes={len(self._routes)}, "
            f"children={len(self._children)})"
        )

    @property
    def routes(self) -> list[Route]:
        """Routes declared on this router, in priority order."""
        return list(self._routes)

    @property
    def children(self) -> list["Router"]:
        """Mounted child routers, in mount order."""
        return list(self._children)

    @property
    def middleware(self) -> tuple[Handler, ...]:
        """This router's own middleware."""
        return tuple(self._middleware)

    @property
    def active(self) -> bool:
        return self._active

    @property
    def scoped_middleware(self) -> tuple[Handler, ...]:
        """Ancestor router middleware followed by this router's own."""
        inherited = self.parent.scoped_middleware if self.parent else ()
        return inherited + tuple(self._middleware)

    @property
    def chain(self) -> MiddlewareChain:
        """Compiled router-scope chain, rebuilt when the middleware changes."""
        handlers = self.scoped_middleware
        if self._chain_cache is None or self._chain_cache[0] != handlers:
            self._chain_cache = (handlers, MiddlewareChain(handlers))
        return self._chain_cache[1]

    # ------------------------------------------------------------------
    # Declaration
    # ------------------------------------------------------------------

    def add_route(
        self,
        methods: str | Iterable[str] | None,
        path: str,
        *middleware: Handler,
        name: str | None = None,
    ) -> Route:
        """Add a route to the router."""
        route = Route(
            methods=methods,
            path=path,
            middleware=middleware,
            options=self.options,
            name=name,
        )
        if self.base_path:
            route.rebase(self.base_path)
        self._routes.append(route)
        return route

    def use(self, *middleware: Handler, path: str | None = None) -> None:
        """
        Append router-scoped middleware.

        With *path*, each handler only runs for requests under that prefix.
        """
        for handler in middleware:
            ensure_handler(handler, "Router middleware")
            if path is not None:
                scoped = PathScopedMiddleware(path, handler)
                scoped.apply_options(self.options)
                if self.base_path:
                    scoped.rebase(self.base_path)
                self._middleware.append(scoped)
            else:
                self._middleware.append(handler)

    # ------------------------------------------------------------------
    # Mounting
    # ------------------------------------------------------------------

    def mount(
        self,
        child: "Router",
        base_path: str | None = None,
        middleware: Iterable[Handler] | Handler | None = None,
        *,
        options: MountOptions | None = None,
    ) -> "Router":
        """Mount *child* under this router."""
        if not isinstance(child, Router):
            raise TypeMismatchError(
                f"Only Router instances can be mounted, got {type(child).__name__}"
            )
        options = resolve_mount_options(base_path, middleware, options)

        if child is self or child in self.lineage():
            raise RoutingError("A router cannot be mounted inside itself")
        if child.parent is not None or child.owner is not None:
            raise RoutingError(f"{child!r} is already mounted")

        child.attach(options)
        if self.base_path:
            child.rebase(self.base_path)
        child.parent = self
        self._children.append(child)

        if self._active:
            child.apply_options(self.options)
            child.activate()

        logger.debug(
            "Mounted %r under %r at %r",
            child, self, options.base_route or "/",
        )
        return child

    def attach(self, options: MountOptions) -> None:
        """Apply mount options: rebase and prepend mount middleware."""
        if options.base_route is not None:
            self.rebase(options.base_route)
        if options.middleware:
            self._middleware[:0] = options.middleware

    def rebase(self, base_path: str) -> None:
        """Rebase every route owned by this router and its descendants."""
        self.base_path = _normalize_base(base_path) + self.base_path
        for route in self._routes:
            route.rebase(base_path)
        for handler in self._middleware:
            if isinstance(handler, PathScopedMiddleware):
                handler.rebase(base_path)
        for child in self._children:
            child.rebase(base_path)

    def apply_options(self, options: MatcherOptions) -> None:
        """Recompile every owned route with *options*, recursively."""
        self.options = options
        for route in self._routes:
            route.apply_options(options)
        for handler in self._middleware:
            if isinstance(handler, PathScopedMiddleware):
                handler.apply_options(options)
        for child in self._children:
            child.apply_options(options)

    def lineage(self) -> list["Router"]:
        """This router's ancestors, nearest first."""
        ancestors: list[Router] = []
        node = self.parent
        while node is not None:
            ancestors.append(node)
            node = node.parent
        return ancestors

    def walk(self) -> Iterator["Router"]:
        """Yield this router and its descendants, depth-first in mount order."""
        yield self
        for child in self._children:
            yield from child.walk()

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def activate(self) -> None:
        """Finalize matchers; must run before :meth:`resolve`."""
        for route in self._routes:
            route.apply_options(route.options)
        for child in self._children:
            child.activate()
        self._active = True

    def resolve(self, path: str, method: str) -> RouteMatch | None:
        """
        Find the first of this router's own routes matching *path* and *method*.

        Raises:
            RoutingError: If the router has not been activated.
        """
        if not self._active:
            raise RoutingError(f"{self!r} must be activated before resolving routes")

        for route in self._routes:
            if not route.allows(method):
                continue
            params = route.matcher.exec(path)
            if params is not None:
                return RouteMatch(route=route, router=self, params=params)
        return None

    # ------------------------------------------------------------------
    # Decorator shortcuts
    # ------------------------------------------------------------------

    def route(
        self,
        path: str,
        *middleware: Handler,
        methods: str | Iterable[str] | None = None,
        name: str | None = None,
    ) -> Callable[[Handler], Handler]:
        """Decorator for routes with custom methods."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(methods, path, *middleware, handler, name=name)
            return handler
        return decorator

    def get(self, path: str, *middleware: Handler, name: str | None = None) -> Callable[[Handler], Handler]:
        """Decorator for GET routes."""
        return self.route(path, *middleware, methods="GET", name=name)

    def post(self, path: str, *middleware: Handler, name: str | None = None) -> Callable[[Handler], Handler]:
        """Decorator for POST routes."""
        return self.route(path, *middleware, methods="POST", name=name)

    def put(self, path: str, *middleware: Handler, name: str | None = None) -> Callable[[Handler], Handler]:
        """Decorator for PUT routes."""
        return self.route(path, *middleware, methods="PUT", name=name)

    def patch(self, path: str, *middleware: Handler, name: str | None = None) -> Callable[[Handler], Handler]:
        """Decorator for PATCH routes."""
        return self.route(path, *middleware, methods="PATCH", name=name)

    def delete(self, path: str, *middleware: Handler, name: str | None = None) -> Callable[[Handler], Handler]:
        """Decorator for DELETE routes."""
        return self.route(path, *middleware, methods="DELETE", name=name)

    def all(self, path: str, *middleware: Handler, name: str | None = None) -> Callable[[Handler], Handler]:
        """Decorator for routes answering every method."""
        return self.route(path, *middleware, methods=ANY_METHOD, name=name)


def resolve_mount_options(
    base_path: Any,
    middleware: Any,
    options: MountOptions | None,
) -> MountOptions:
    """Build :class:`MountOptions` from loose arguments, rejecting mixtures."""
    if options is not None:
        if not isinstance(options, MountOptions):
            raise TypeMismatchError(
                f"options must be MountOptions, got {type(options).__name__}"
            )
        if base_path is not None or middleware is not None:
            raise TypeMismatchError(
                "Pass either MountOptions or base_path/middleware, not both"
            )
        return options
    return MountOptions(
        base_route=base_path,
        middleware=middleware if middleware is not None else (),
    )
