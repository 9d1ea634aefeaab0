"""
Middleware package for Mooring.
"""

from mooring.middleware.chain import MiddlewareChain, compile_chain, ensure_handler
from mooring.middleware.logging import request_logger

__all__ = [
    "MiddlewareChain",
    "compile_chain",
    "ensure_handler",
    "request_logger",
]
