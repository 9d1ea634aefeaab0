"""
Mooring - an ASGI request-dispatch core.

Compiles path patterns into matchers, mounts routers with path rebasing,
and runs global, router and route middleware chains with explicit
continuations.
"""

from mooring.app import Mooring
from mooring.config import Settings
from mooring.context import RequestContext, RequestView, ResponseView
from mooring.exceptions import (
    DoubleNextError,
    HTTPException,
    PatternError,
    RoutingError,
    TypeMismatchError,
)
from mooring.middleware import MiddlewareChain, compile_chain, request_logger
from mooring.pathmatch import CompiledMatcher, MatcherOptions, compile_pattern
from mooring.routing import ANY_METHOD, MountOptions, Route, RouteMatch, Router

__version__ = "0.1.0"
__all__ = [
    "Mooring",
    "Settings",
    "RequestContext",
    "RequestView",
    "ResponseView",
    "DoubleNextError",
    "HTTPException",
    "PatternError",
    "RoutingError",
    "TypeMismatchError",
    "MiddlewareChain",
    "compile_chain",
    "request_logger",
    "CompiledMatcher",
    "MatcherOptions",
    "compile_pattern",
    "ANY_METHOD",
    "MountOptions",
    "Route",
    "RouteMatch",
    "Router",
]
