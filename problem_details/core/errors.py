"""Error taxonomy for problem details resolution."""

from __future__ import annotations

from collections.abc import Mapping

from problem_details.schemas.problem import ProblemEnvelope
from problem_details.schemas.validation import ValidationFailure

__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "DuplicateHandlerError",
    "HandlerNotFoundError",
    "ProblemDetailsError",
    "ValidationFailure",
]


def _copy_headers(headers: Mapping[str, str | list[str]] | None) -> dict[str, list[str]]:
    if not headers:
        return {}
    return {name: [value] if isinstance(value, str) else list(value) for name, value in headers.items()}


class ProblemDetailsError(Exception):
    """Client-facing error that carries its own fully formed envelope."""

    def __init__(self, envelope: ProblemEnvelope) -> None:
        super().__init__(envelope.detail or envelope.effective_title())
        self.envelope = envelope

    @property
    def status_code(self) -> int:
        return self.envelope.status

    @property
    def headers(self) -> dict[str, list[str]]:
        return self.envelope.headers


class AuthenticationError(Exception):
    """The caller could not be authenticated (401)."""

    def __init__(self, message: str = "Full authentication is required", *, headers: Mapping[str, str | list[str]] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.headers = _copy_headers(headers)


class AuthorizationError(Exception):
    """The authenticated caller is not allowed to perform the operation (403)."""

    def __init__(self, message: str = "Access Denied", *, headers: Mapping[str, str | list[str]] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.headers = _copy_headers(headers)


class HandlerNotFoundError(LookupError):
    """No registered handler matches an error type or any of its ancestors."""

    def __init__(self, error_type: type[BaseException]) -> None:
        super().__init__(f"No handler found for exception: {error_type.__module__}.{error_type.__qualname__}")
        self.error_type = error_type


class DuplicateHandlerError(ValueError):
    """Two handlers were registered for the same error type."""

    def __init__(self, error_type: type[BaseException]) -> None:
        super().__init__(f"A handler is already registered for {error_type.__module__}.{error_type.__qualname__}")
        self.error_type = error_type
