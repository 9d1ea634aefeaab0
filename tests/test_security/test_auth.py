"""Tests for mooring.auth — backends and guard middleware."""

import base64
import json
import time

import jwt
import pytest

from mooring.app import Mooring
from mooring.auth import (
    AnonymousUser,
    BasicAuthBackend,
    JWTAuthBackend,
    User,
    authenticate,
    login_required,
    require_scopes,
)
from mooring.context import RequestView
from mooring.routing import Router

from tests.conftest import ResponseCapture, make_receive, make_scope

SECRET = "a-test-secret-that-is-long-enough"


def bearer(payload: dict) -> dict[str, str]:
    token = jwt.encode(payload, SECRET, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


def build_app() -> Mooring:
    app = Mooring()
    app.use(authenticate(JWTAuthBackend(SECRET), exclude_paths=["/public"]))
    router = Router()

    @router.get("/me", login_required)
    async def me(ctx, next) -> None:
        await ctx.res.json({"id": ctx.state["user"].id})

    @router.get("/admin", require_scopes("admin"))
    async def admin(ctx, next) -> None:
        await ctx.res.text("welcome")

    @router.get("/public/info")
    async def info(ctx, next) -> None:
        await ctx.res.json({"user": ctx.state["user"].is_authenticated})

    app.mount(router)
    return app


async def call(app: Mooring, path: str, headers: dict[str, str] | None = None) -> ResponseCapture:
    cap = ResponseCapture()
    await app(make_scope(path=path, headers=headers), make_receive(), cap)
    return cap


class TestJWTAuthBackend:
    async def test_valid_token(self) -> None:
        request = RequestView(make_scope(headers=bearer({"sub": "u1", "scopes": ["a"]})), make_receive())
        user = await JWTAuthBackend(SECRET).authenticate(request)
        assert isinstance(user, User)
        assert user.id == "u1"
        assert user.has_scope("a")

    async def test_expired_token(self) -> None:
        headers = bearer({"sub": "u1", "exp": int(time.time()) - 60})
        request = RequestView(make_scope(headers=headers), make_receive())
        user = await JWTAuthBackend(SECRET).authenticate(request)
        assert isinstance(user, AnonymousUser)

    async def test_wrong_scheme(self) -> None:
        request = RequestView(make_scope(headers={"Authorization": "Token abc"}), make_receive())
        assert isinstance(await JWTAuthBackend(SECRET).authenticate(request), AnonymousUser)

    async def test_missing_subject(self) -> None:
        request = RequestView(make_scope(headers=bearer({"name": "x"})), make_receive())
        assert isinstance(await JWTAuthBackend(SECRET).authenticate(request), AnonymousUser)


class TestBasicAuthBackend:
    async def test_verifies_credentials(self) -> None:
        async def verify(username: str, password: str) -> User | None:
            return User(id="1", username=username) if password == "pw" else None

        encoded = base64.b64encode(b"alice:pw").decode()
        request = RequestView(make_scope(headers={"Authorization": f"Basic {encoded}"}), make_receive())
        user = await BasicAuthBackend(verify).authenticate(request)
        assert user.username == "alice"

    async def test_garbage_credentials(self) -> None:
        request = RequestView(make_scope(headers={"Authorization": "Basic !!!"}), make_receive())
        assert isinstance(await BasicAuthBackend().authenticate(request), AnonymousUser)


class TestGuards:
    async def test_login_required_rejects_anonymous(self) -> None:
        cap = await call(build_app(), "/me")
        assert cap.status == 401
        assert cap.headers["www-authenticate"] == "Bearer"

    async def test_login_required_allows_user(self) -> None:
        cap = await call(build_app(), "/me", bearer({"sub": "u9"}))
        assert cap.status == 200
        assert json.loads(cap.body) == {"id": "u9"}

    async def test_missing_scope_forbidden(self) -> None:
        cap = await call(build_app(), "/admin", bearer({"sub": "u9", "scopes": ["read"]}))
        assert cap.status == 403

    async def test_scope_granted(self) -> None:
        cap = await call(build_app(), "/admin", bearer({"sub": "u9", "scopes": ["admin"]}))
        assert cap.status == 200
        assert cap.body == b"welcome"

    async def test_excluded_paths_are_anonymous(self) -> None:
        cap = await call(build_app(), "/public/info", bearer({"sub": "u9"}))
        assert json.loads(cap.body) == {"user": False}
