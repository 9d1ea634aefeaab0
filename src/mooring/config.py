"""
Application settings for Mooring.

Settings are an explicit object handed to the application at construction,
never a process-wide singleton.
"""

import os
from dataclasses import dataclass, field
from typing import Any

from mooring.pathmatch import MatcherOptions

# Environment variable consulted for the default ``env``
ENV_VARIABLE: str = "MOORING_ENV"

# Dashed setting keys and the attributes they map to
_KEY_ALIASES: dict[str, str] = {
    "x-powered-by": "powered_by",
    "routing-engine": "routing_options",
}


def _default_env() -> str:
    return os.environ.get(ENV_VARIABLE, "development")


@dataclass
class Settings:
    """
    Toggles for cross-cutting behaviour.

    Usage:
        settings = Settings(env="production", proxy=True)
        app = Mooring(settings=settings)
        app.get("x-powered-by")   # False in production
    """

    env: str = field(default_factory=_default_env)
    debug: bool = False
    powered_by: bool | None = None
    proxy: bool = False
    proxy_header: str = "X-Forwarded-For"
    routing_options: MatcherOptions | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Advertising the framework is off in production
        if self.powered_by is None:
            self.powered_by = self.env != "production"

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    def _attribute(self, key: str) -> str | None:
        name = _KEY_ALIASES.get(key, key.replace("-", "_"))
        if name != "extras" and name in self.__dataclass_fields__:
            return name
        return None

    def get(self, key: str, default: Any = None) -> Any:
        """Read a setting by attribute name or dashed key."""
        name = self._attribute(key)
        if name is not None:
            return getattr(self, name)
        return self.extras.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Write a setting by attribute name or dashed key."""
        name = self._attribute(key)
        if name is not None:
            setattr(self, name, value)
        else:
            self.extras[key] = value
