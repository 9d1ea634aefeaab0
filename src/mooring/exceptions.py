"""
Mooring exceptions.
Setup-time errors abort startup; HTTP errors are converted to responses
by the ASGI integration in :mod:`mooring.app`.
"""


class MooringException(Exception):
    """Base exception for all Mooring errors."""

    def __init__(self, message: str = "An error occurred") -> None:
        self.message = message
        super().__init__(self.message)


class PatternError(MooringException):
    """Malformed path pattern, raised at compile or rebase time."""
    pass


class TypeMismatchError(MooringException, TypeError):
    """Wrong kind of object passed to ``use`` or ``mount``."""
    pass


class DoubleNextError(MooringException):
    """A chain continuation was invoked more than once by one handler."""
    pass


class RoutingError(MooringException):
    """Invalid router topology or lifecycle misuse."""
    pass


class ResponseError(MooringException):
    """Response view used after it was finished."""
    pass


class HTTPException(MooringException):
    """HTTP-related exceptions with status codes."""

    def __init__(
        self,
        status_code: int = 500,
        detail: str = "Internal Server Error",
        headers: dict[str, str] | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        self.headers = headers or {}
        super().__init__(detail)


class BadRequest(HTTPException):
    """400 Bad Request."""

    def __init__(self, detail: str = "Bad Request") -> None:
        super().__init__(400, detail)


class Unauthorized(HTTPException):
    """401 Unauthorized."""

    def __init__(
        self,
        detail: str = "Unauthorized",
        headers: dict[str, str] | None = None,
    ) -> None:
        default_headers = {"WWW-Authenticate": "Bearer"}
        if headers:
            default_headers.update(headers)
        super().__init__(401, detail, default_headers)


class Forbidden(HTTPException):
    """403 Forbidden."""

    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(403, detail)


class NotFound(HTTPException):
    """404 Not Found."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(404, detail)


class InternalServerError(HTTPException):
    """500 Internal Server Error."""

    def __init__(self, detail: str = "Internal Server Error") -> None:
        super().__init__(500, detail)
