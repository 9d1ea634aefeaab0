"""
Type definitions for Mooring.
"""

from collections.abc import Awaitable, Callable, MutableMapping
from typing import Any, TypeAlias

# ASGI Types
Scope: TypeAlias = MutableMapping[str, Any]
Message: TypeAlias = MutableMapping[str, Any]
Receive: TypeAlias = Callable[[], Awaitable[Message]]
Send: TypeAlias = Callable[[Message], Awaitable[None]]

# Chain Types
# A handler receives the request context and the continuation of its chain.
Next: TypeAlias = Callable[[], Awaitable[None]]
Handler: TypeAlias = Callable[[Any, Next], Awaitable[None] | Any]
Continuation: TypeAlias = Callable[[Any], Awaitable[None]]

# State Types
State: TypeAlias = MutableMapping[str, Any]
Params: TypeAlias = dict[str, str]
