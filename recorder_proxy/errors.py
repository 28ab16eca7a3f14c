"""Error taxonomy for the execution pipeline.

Every execution ends in success or exactly one of these errors. Each class
carries an ErrorKind tag so callers can branch on ``exc.kind`` instead of
stacking except clauses.
"""

from __future__ import annotations

from enum import Enum


UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred."


class ErrorKind(str, Enum):
    """Classification of a failed execution."""

    APPLICATION = "application"
    SERVER = "server"
    HTTP_STATUS = "http_status"
    UNREACHABLE = "unreachable"
    UNEXPECTED = "unexpected"


class ProxyError(Exception):
    """Base class for classified pipeline errors.

    Once raised, a ProxyError propagates unchanged; outer layers never
    re-log or re-wrap it.
    """

    kind: ErrorKind = ErrorKind.APPLICATION

    @property
    def message(self) -> str:
        return str(self)


class ApplicationError(ProxyError):
    """Caller-facing failure whose message is fit to show to a user."""

    kind = ErrorKind.APPLICATION


class ServerError(ApplicationError):
    """HTTP 500 with a structured ``{"detail": ...}`` body."""

    kind = ErrorKind.SERVER

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class HttpStatusError(ApplicationError):
    """HTTP error status other than 500; message is the reason phrase."""

    kind = ErrorKind.HTTP_STATUS

    def __init__(self, reason: str, status_code: int) -> None:
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


class TargetUnreachableError(ProxyError):
    """The recorder could not be reached (connect, DNS, proxy or TLS failure)."""

    kind = ErrorKind.UNREACHABLE


class UnexpectedError(ProxyError):
    """Anything unclassified. The real cause is only visible in the log."""

    kind = ErrorKind.UNEXPECTED

    def __init__(self, message: str = UNEXPECTED_ERROR_MESSAGE) -> None:
        super().__init__(message)
