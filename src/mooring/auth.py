"""
Authentication for Mooring.
Provides pluggable authentication backends and guard middleware.
"""
import base64
import jwt

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from mooring.context import RequestContext, RequestView
from mooring.exceptions import Forbidden, Unauthorized
from mooring.types import Handler, Next

# Key under which the authenticated user is stored in ``context.state``
USER_STATE_KEY: str = "user"


@dataclass
class User:
    """User identity attached to a request."""

    id: str
    username: str | None = None
    is_authenticated: bool = True
    scopes: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def identity(self) -> str:
        return self.id

    def has_scope(self, scope: str) -> bool:
        """Check if user has a specific scope/permission."""
        return scope in self.scopes


@dataclass
class AnonymousUser:
    """Anonymous user for unauthenticated requests."""

    id: str = ""
    username: str | None = None
    is_authenticated: bool = False
    scopes: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def identity(self) -> None:
        return None

    def has_scope(self, scope: str) -> bool:
        return False


def _split_authorization(request: RequestView) -> tuple[str, str] | None:
    auth_header = request.get_header("authorization")
    if not auth_header:
        return None
    try:
        scheme, credentials = auth_header.split(" ", 1)
    except ValueError:
        return None
    return scheme, credentials


class AuthBackend(ABC):
    """
    Abstract authentication backend.
    Implements the Strategy pattern for pluggable authentication.
    """

    @abstractmethod
    async def authenticate(self, request: RequestView) -> User | AnonymousUser:
        """Return a User if *request* carries valid credentials."""
        ...


class JWTAuthBackend(AuthBackend):
    """JWT bearer token authentication backend."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        token_prefix: str = "Bearer",
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._token_prefix = token_prefix

    async def authenticate(self, request: RequestView) -> User | AnonymousUser:
        parts = _split_authorization(request)
        if parts is None:
            return AnonymousUser()

        scheme, token = parts
        if scheme.lower() != self._token_prefix.lower():
            return AnonymousUser()

        try:
            payload: dict[str, Any] = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
            return User(
                id=str(payload["sub"]),
                username=payload.get("username"),
                scopes=payload.get("scopes", []),
            )
        except jwt.ExpiredSignatureError:
            return AnonymousUser()
        except (jwt.InvalidTokenError, KeyError):
            return AnonymousUser()


class BasicAuthBackend(AuthBackend):
    """HTTP Basic authentication backend."""

    def __init__(
        self,
        verify_credentials: Callable[[str, str], Awaitable[User | None]] | None = None,
    ) -> None:
        self._verify_credentials = verify_credentials

    async def authenticate(self, request: RequestView) -> User | AnonymousUser:
        parts = _split_authorization(request)
        if parts is None or parts[0].lower() != "basic":
            return AnonymousUser()

        try:
            decoded = base64.b64decode(parts[1]).decode("utf-8")
            username, password = decoded.split(":", 1)
        except (ValueError, UnicodeDecodeError):
            return AnonymousUser()

        if self._verify_credentials:
            user = await self._verify_credentials(username, password)
            if user:
                return user

        return AnonymousUser()


def authenticate(
    backend: AuthBackend,
    exclude_paths: list[str] | None = None,
) -> Handler:
    """
    Build a middleware that attaches the request's user to
    ``context.state["user"]``. It always continues the chain.
    """
    excluded = exclude_paths or []

    async def attach_user(context: RequestContext, next_: Next) -> None:
        if any(context.req.path.startswith(p) for p in excluded):
            context.state[USER_STATE_KEY] = AnonymousUser()
        else:
            context.state[USER_STATE_KEY] = await backend.authenticate(context.req)
        await next_()

    return attach_user


async def login_required(context: RequestContext, next_: Next) -> None:
    """
    Guard middleware that stops the chain for anonymous users.

    Raises:
        Unauthorized: If no authenticated user is attached.
    """
    user = context.state.get(USER_STATE_KEY)
    if not user or not user.is_authenticated:
        raise Unauthorized("Authentication required")
    await next_()


def require_scopes(*required_scopes: str) -> Handler:
    """Build a guard middleware that requires specific scopes."""
    async def check_scopes(context: RequestContext, next_: Next) -> None:
        user = context.state.get(USER_STATE_KEY)
        if not user or not user.is_authenticated:
            raise Unauthorized("Authentication required")

        for scope in required_scopes:
            if not user.has_scope(scope):
                raise Forbidden(f"Missing required scope: {scope}")

        await next_()

    return check_scopes
