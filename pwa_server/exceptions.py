"""Error types raised while resolving and sending files."""

from typing import Optional

from starlette.exceptions import HTTPException


class PWAError(HTTPException):
    """Base class for request-scoped errors.

    ``detail`` defaults to the generic status phrase (e.g. "Not Found"),
    which is the only text ever written to the client.
    """

    def __init__(self, status_code: int, detail: Optional[str] = None) -> None:
        super().__init__(status_code=status_code, detail=detail)


class ForbiddenError(PWAError):
    """The requested path resolves outside the root directory."""

    def __init__(self) -> None:
        super().__init__(403)


class BadRequestError(PWAError):
    """The requested path can never name a file (e.g. embedded NUL byte)."""

    def __init__(self) -> None:
        super().__init__(400)


class TransmissionError(PWAError):
    """Sending the target file failed (missing, unreadable, ...)."""


class ConfigError(Exception):
    """The configuration file or a configured value is invalid."""
