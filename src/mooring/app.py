"""
Main Mooring application class.
Owns global middleware and mounted routers and dispatches each request
through the global, router and route tiers.
"""

import logging
import uuid
from collections.abc import Iterable
from typing import Any

from mooring.config import Settings
from mooring.context import RequestContext, RequestView, ResponseView
from mooring.exceptions import HTTPException, RoutingError, TypeMismatchError
from mooring.middleware.chain import MiddlewareChain, ensure_handler
from mooring.routing import MountOptions, RouteMatch, Router, resolve_mount_options
from mooring.types import Handler, Receive, Scope, Send

# Value of the X-Powered-By header
POWERED_BY: str = "Mooring"

logger = logging.getLogger("mooring.routing")
error_logger = logging.getLogger("mooring.errors")


class Mooring:
    """
    The Mooring application.

    Implements the Facade pattern over routers and middleware chains and
    is itself an ASGI application.

    Usage:
        app = Mooring()
        api = Router()

        @api.get("/users/:id")
        async def show_user(ctx, next):
            await ctx.res.json({"id": ctx.req.params["id"]})

        app.mount(api, "/api")

        # Run with: uvicorn main:app
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()
        self._global_middleware: list[Handler] = []
        self._routers: list[Router] = []
        self._global_chain: MiddlewareChain | None = None

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    @property
    def debug(self) -> bool:
        return self.settings.debug

    def get(self, key: str, default: Any = None) -> Any:
        """Read a setting."""
        return self.settings.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Write a setting."""
        self.settings.set(key, value)

    # -------------------------------------------------------------------------
    # Middleware
    # -------------------------------------------------------------------------

    @property
    def middleware(self) -> tuple[Handler, ...]:
        """Global middleware, in execution order."""
        return tuple(self._global_middleware)

    @property
    def global_chain(self) -> MiddlewareChain:
        if self._global_chain is None:
            self._global_chain = MiddlewareChain(self._global_middleware)
        return self._global_chain

    def use(self, middleware: Handler) -> None:
        """
        Add a global middleware run before any router or route middleware.

        Raises:
            TypeMismatchError: If *middleware* is not callable.
        """
        ensure_handler(middleware, "Middleware provided with use()")
        self._global_middleware.append(middleware)
        self._global_chain = None

    # -------------------------------------------------------------------------
    # Routing
    # -------------------------------------------------------------------------

    @property
    def routers(self) -> list[Router]:
        """Top-level routers, in mount order."""
        return list(self._routers)

    def mount(
        self,
        router: Router,
        base_route: str | None = None,
        middleware: Iterable[Handler] | Handler | None = None,
        *,
        options: MountOptions | None = None,
    ) -> Router:
        """
        Mount a router.

        Args:
            router: The router whose routes should be matched.
            base_route: Path to prefix every route of the router with.
            middleware: Handlers run before the router's own middleware.
            options: A :class:`MountOptions` instead of the two above.

        Raises:
            TypeMismatchError: If the arguments have the wrong shape.
            RoutingError: If the router is already mounted.
        """
        if isinstance(router, str):
            raise TypeMismatchError(
                "mount() takes the router first; pass the base path as "
                "base_route= or through MountOptions"
            )
        if not isinstance(router, Router):
            raise TypeMismatchError(
                f"Only Mooring routers can be mounted, got {type(router).__name__}"
            )
        if router.parent is not None or router.owner is not None:
            raise RoutingError(f"{router!r} is already mounted")

        mount_options = resolve_mount_options(base_route, middleware, options)
        router.attach(mount_options)

        routing_options = self.settings.routing_options
        if routing_options is not None:
            router.apply_options(routing_options)

        router.activate()
        router.owner = self
        self._routers.append(router)

        logger.debug(
            "Mounted %r at %r with %d middleware",
            router, mount_options.base_route or "/", len(mount_options.middleware),
        )
        return router

    def find_route(self, path: str, method: str) -> RouteMatch | None:
        """
        Resolve *path* and *method* against mounted routers.

        Routers are tried in mount order; within one, its own routes come
        before those of routers mounted inside it.
        """
        for router in self._routers:
            for candidate in router.walk():
                match = candidate.resolve(path, method)
                if match is not None:
                    return match
        return None

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def build_context(self, scope: Scope, receive: Receive, send: Send) -> RequestContext:
        """Create the per-request context for one ASGI connection."""
        request = RequestView(
            scope,
            receive,
            proxy=self.settings.proxy,
            proxy_header=self.settings.proxy_header,
        )
        response = ResponseView(send)

        request.app = self
        request.res = response
        response.req = request

        request_id = scope.get("request_id") or str(uuid.uuid4())
        scope["request_id"] = request_id
        response.set_header("X-Request-ID", request_id)

        if self.get("x-powered-by") is True:
            response.set_header("X-Powered-By", POWERED_BY)

        return RequestContext(req=request, res=response, app=self, request_id=request_id)

    async def dispatch_request(self, context: RequestContext) -> None:
        """
        Run the global chain, then the matched router and route chains.

        Handler exceptions propagate to the caller.
        """
        await self.global_chain(context, self._dispatch_route)

    async def _dispatch_route(self, context: RequestContext) -> None:
        match = self.find_route(context.req.path, context.req.method)
        if match is None:
            return

        context.req.params = dict(match.params)
        context.route = match.route
        context.router = match.router

        async def run_route(ctx: RequestContext) -> None:
            await match.route.chain(ctx, self._fall_through)

        await match.router.chain(context, run_route)

    async def _fall_through(self, context: RequestContext) -> None:
        logger.debug(
            "Route %r passed control past its last handler request_id=%s",
            context.route.path if context.route else None,
            context.request_id,
        )

    # -------------------------------------------------------------------------
    # ASGI Interface
    # -------------------------------------------------------------------------

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI application entry point."""
        scope["app"] = self

        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
        elif scope["type"] == "websocket":
            await send({"type": "websocket.close", "code": 1008})
        else:
            await self._handle_http(scope, receive, send)

    async def _handle_http(self, scope: Scope, receive: Receive, send: Send) -> None:
        context = self.build_context(scope, receive, send)

        try:
            await self.dispatch_request(context)
        except HTTPException as exc:
            # Log client errors at warning, server errors at error
            if exc.status_code >= 500:
                error_logger.error(
                    "request_id=%s status=%d detail=%s",
                    context.request_id, exc.status_code, exc.detail,
                    exc_info=True,
                )
            else:
                error_logger.warning(
                    "request_id=%s status=%d detail=%s",
                    context.request_id, exc.status_code, exc.detail,
                )
            await self._send_error(context, exc.status_code, exc.detail, exc.headers)
        except Exception as exc:
            error_logger.exception(
                "Unhandled exception request_id=%s: %s",
                context.request_id, exc,
            )
            # Never expose internal details to the client
            await self._send_error(context, 500, "Internal Server Error")
        else:
            if not context.res.started:
                await self._send_error(context, 404, "Not Found")
            elif not context.res.finished:
                await context.res.end()

    async def _send_error(
        self,
        context: RequestContext,
        status_code: int,
        detail: str,
        headers: dict[str, str] | None = None,
    ) -> None:
        response = context.res
        if response.started:
            # Too late for a new status line; just close the body
            if not response.finished:
                await response.end()
            return

        response.status(status_code)
        for name, value in (headers or {}).items():
            response.set_header(name, value)
        await response.json({
            "error": detail,
            "status_code": status_code,
            "request_id": context.request_id,
        })

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -------------------------------------------------------------------------
    # Serving
    # -------------------------------------------------------------------------

    def listen(
        self,
        port: int = 8000,
        host: str = "localhost",
        ssl_keyfile: str | None = None,
        ssl_certfile: str | None = None,
        log_level: str = "info",
    ) -> None:
        """
        Serve the application with uvicorn.

        Args:
            port: Port to bind to.
            host: Host to bind to.
            ssl_keyfile: PEM key file; serves HTTPS together with ssl_certfile.
            ssl_certfile: PEM certificate file.
            log_level: Logging level.
        """
        import uvicorn

        uvicorn.run(
            self,
            host=host,
            port=port,
            ssl_keyfile=ssl_keyfile,
            ssl_certfile=ssl_certfile,
            log_level=log_level,
        )
