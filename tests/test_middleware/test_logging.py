"""Tests for mooring.middleware.logging — access log middleware."""

import logging

import pytest

from mooring.app import Mooring
from mooring.middleware import request_logger
from mooring.routing import Router

from tests.conftest import ResponseCapture, make_receive, make_scope


class TestRequestLogger:
    async def test_logs_after_downstream(self, caplog: pytest.LogCaptureFixture) -> None:
        app = Mooring()
        app.use(request_logger())
        router = Router()

        @router.get("/ping")
        async def ping(ctx, next) -> None:
            await ctx.res.text("pong", status_code=202)

        app.mount(router)
        cap = ResponseCapture()
        with caplog.at_level(logging.INFO, logger="mooring.access"):
            await app(make_scope(path="/ping"), make_receive(), cap)

        assert cap.status == 202
        records = [r for r in caplog.records if r.name == "mooring.access"]
        assert len(records) == 1
        assert "GET /ping 202" in records[0].getMessage()
        assert "client=127.0.0.1" in records[0].getMessage()

    async def test_logs_even_when_handler_fails(self, caplog: pytest.LogCaptureFixture) -> None:
        app = Mooring()
        app.use(request_logger(log_level=logging.WARNING))

        async def boom(ctx, next) -> None:
            raise RuntimeError("boom")

        app.use(boom)
        cap = ResponseCapture()
        with caplog.at_level(logging.WARNING, logger="mooring.access"):
            await app(make_scope(path="/x"), make_receive(), cap)

        assert cap.status == 500
        assert any(
            r.name == "mooring.access" and r.levelno == logging.WARNING
            for r in caplog.records
        )

    async def test_custom_logger(self) -> None:
        messages: list[str] = []

        class ListLogger:
            def log(self, level: int, msg: str, *args) -> None:
                messages.append(msg % args)

        app = Mooring()
        app.use(request_logger(logger=ListLogger()))
        cap = ResponseCapture()
        await app(make_scope(path="/missing"), make_receive(), cap)

        # The default 404 is produced after the chain, so the log sees 200
        assert len(messages) == 1
        assert messages[0].startswith("GET /missing 200")
