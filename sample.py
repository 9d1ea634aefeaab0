"""
Mooring - sample application

Demonstrates global, router and route middleware, nested mounts and
path parameters.
Run with: uvicorn sample:app --reload
"""


import logging
import time

import jwt

from mooring import Mooring, MountOptions, Router, Settings, request_logger
from mooring.auth import JWTAuthBackend, authenticate, login_required, require_scopes
from mooring.exceptions import BadRequest, Unauthorized

# =============================================================================
# Application Setup
# =============================================================================

SECRET_KEY = "{YOUR_SECRET_HERE}"

logger = logging.getLogger("mooring.sample")

app: Mooring = Mooring(settings=Settings(debug=True))

# Global middleware runs first, in the order added
app.use(request_logger())
app.use(authenticate(JWTAuthBackend(secret_key=SECRET_KEY)))


# =============================================================================
# Routes - Hello World
# =============================================================================

site = Router(name="site")


@site.get("/")
async def hello_world(ctx, next) -> None:
    """Hello World endpoint."""
    await ctx.res.json({
        "message": "Hello, World! Welcome to Mooring",
        "framework": "Mooring",
    })


@site.get("/health")
async def health_check(ctx, next) -> None:
    await ctx.res.json({"status": "healthy"})


@site.post("/login")
async def login(ctx, next) -> None:
    """Issue a demo token for ?user=admin."""
    if "user=admin" not in ctx.req.query_string:
        raise Unauthorized("Invalid credentials")

    payload: dict[str, int | str | list[str]] = {
        "sub": "1",
        "username": "admin",
        "scopes": ["read"],
        "iat": int(time.time()),
        "exp": int(time.time()) + 3600,
    }
    await ctx.res.json({"token": jwt.encode(payload, SECRET_KEY, algorithm="HS256")})


@site.get("/protected", login_required)
async def protected(ctx, next) -> None:
    await ctx.res.json({"user": ctx.state["user"].username})


@site.get("/error")
async def trigger_error(ctx, next) -> None:
    """Demonstrates error handling."""
    raise BadRequest("This is a demonstration error")


# =============================================================================
# Routes - Path Parameters
# =============================================================================

users = Router(name="users")


async def load_user(ctx, next) -> None:
    """Route middleware: look the user up before the handler runs."""
    user_id = ctx.req.params["user_id"]
    ctx.state["profile"] = {
        "user_id": user_id,
        "username": f"user_{user_id}",
        "email": f"user{user_id}@example.com",
    }
    await next()


@users.get(r"/:user_id(\d+)", load_user)
async def get_user(ctx, next) -> None:
    await ctx.res.json(ctx.state["profile"])


@users.get("/me", login_required)
async def current_user(ctx, next) -> None:
    # Never reached for numeric ids: the route above is declared first
    await ctx.res.json({"user": ctx.state["user"].identity})


# =============================================================================
# Nested Mounts - API v1
# =============================================================================

api_v1 = Router(name="api_v1")


async def api_version_header(ctx, next) -> None:
    ctx.res.set_header("X-API-Version", "1")
    await next()


@api_v1.get("/info")
async def api_info(ctx, next) -> None:
    """API version information."""
    await ctx.res.json({"api_version": "0.1.0", "framework": "Mooring"})


@api_v1.get("/products", require_scopes("read"))
async def list_products(ctx, next) -> None:
    await ctx.res.json({
        "products": [
            {"id": 1, "name": "Bollard", "price": 99.99},
            {"id": 2, "name": "Cleat", "price": 12.99},
        ],
    })


api_v1.mount(users, "/users")

app.mount(site)
app.mount(api_v1, options=MountOptions(base_route="/api/v1", middleware=(api_version_header,)))


# =============================================================================
# Main Entry Point
# =============================================================================


def main() -> None:
    """Run the sample application."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s  %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    logger.info("""
    Mooring sample
    ==============

    Available endpoints:
    - GET  /                     - Hello World
    - GET  /health               - Health check
    - POST /login?user=admin     - Issue a token
    - GET  /protected            - Requires a token
    - GET  /error                - Error handling demo
    - GET  /api/v1/info          - API info
    - GET  /api/v1/products      - Requires the "read" scope
    - GET  /api/v1/users/:id     - Path parameters
    """)

    app.listen(port=8000, host="127.0.0.1", log_level="info")


if __name__ == "__main__":
    main()
