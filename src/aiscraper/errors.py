from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Union


FailureKind = Literal["timeout", "network", "http", "unexpected"]


@dataclass(frozen=True)
class TimeoutFailure:
    url: str
    timeout_ms: int
    kind: FailureKind = field(default="timeout", init=False)

    @property
    def message(self) -> str:
        return f"Request to {self.url} timed out after {self.timeout_ms}ms"


@dataclass(frozen=True)
class NetworkFailure:
    url: str
    detail: str = ""
    kind: FailureKind = field(default="network", init=False)

    @property
    def message(self) -> str:
        if self.detail:
            return f"Network error when requesting {self.url}: {self.detail}"
        return f"Network error when requesting {self.url}"


@dataclass(frozen=True)
class HttpFailure:
    status_code: int
    body: Any
    message: str
    kind: FailureKind = field(default="http", init=False)

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.status_code <= 599


@dataclass(frozen=True)
class UnexpectedFailure:
    cause: BaseException
    kind: FailureKind = field(default="unexpected", init=False)

    @property
    def message(self) -> str:
        return f"Unexpected error: {self.cause}"


ClassifiedError = Union[TimeoutFailure, NetworkFailure, HttpFailure, UnexpectedFailure]


class ApiClientError(Exception):
    """Raised by `ApiResult.unwrap()`; carries the terminal classified failure."""

    def __init__(self, error: ClassifiedError, *, attempts: int = 1) -> None:
        super().__init__(error.message)
        self.error = error
        self.attempts = attempts

    @property
    def kind(self) -> FailureKind:
        return self.error.kind

    @property
    def status_code(self) -> int | None:
        if isinstance(self.error, HttpFailure):
            return self.error.status_code
        return None


def http_failure_message(*, status_code: int, reason: str, body: Any) -> str:
    # Prefer the server-reported message when the body carries one.
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message.strip():
            return message
    return f"HTTP {status_code}: {reason}".rstrip(": ")


def describe_error(error: ClassifiedError) -> str:
    if isinstance(error, TimeoutFailure):
        return "Request timed out. Please try again."
    if isinstance(error, NetworkFailure):
        return "Network error. Please check your connection."
    return error.message


def describe_failure(exc: BaseException) -> str:
    """Human-readable text for an operation failure, used in error notifications."""
    if isinstance(exc, ApiClientError):
        return describe_error(exc.error)
    text = str(exc)
    return text if text else "Unknown error"
