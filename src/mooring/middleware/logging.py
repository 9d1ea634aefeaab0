"""
Request logging middleware.
"""

import logging
import time
from typing import Any

from mooring.types import Handler, Next


def request_logger(
    logger: Any = None,
    log_level: int | None = None,
) -> Handler:
    """
    Build a middleware that logs each request once the rest of its chain
    has finished, using Python's standard logging module.

    Usage:
        app.use(request_logger())
    """
    access_logger = logger or logging.getLogger("mooring.access")
    level = log_level or logging.INFO

    async def log_request(context: Any, next_: Next) -> None:
        start_time = time.perf_counter()
        try:
            await next_()
        finally:
            duration = (time.perf_counter() - start_time) * 1000
            client = context.req.client
            access_logger.log(
                level,
                "%s %s %d %.2fms request_id=%s client=%s",
                context.req.method,
                context.req.path,
                context.res.status_code,
                duration,
                context.request_id or "-",
                client[0] if client else "-",
            )

    return log_request
