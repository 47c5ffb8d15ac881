"""Builder for client-facing problem details errors."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from fastapi import status as http_status

from problem_details.core.errors import ProblemDetailsError
from problem_details.schemas.problem import ProblemEnvelope
from problem_details.schemas.problem import check_extension_keys
from problem_details.schemas.problem import reason_phrase


class ApiError:
    """Fluent builder that ends in a raiseable ``ProblemDetailsError``.

    Example::

        raise (
            ApiError.status(409)
            .title("Duplicate pipeline")
            .extension("pipeline", name)
            .detail("A pipeline with this name already exists")
        )
    """

    def __init__(self, status: int = http_status.HTTP_400_BAD_REQUEST) -> None:
        self._status = status
        self._title: str | None = None
        self._type: str | None = None
        self._instance: str | None = None
        self._extensions: dict[str, Any] = {}
        self._headers: dict[str, list[str]] = {}

    @classmethod
    def status(cls, status: int) -> ApiError:
        return cls(status)

    def title(self, title: str) -> ApiError:
        self._title = title
        return self

    def type(self, problem_type: str) -> ApiError:
        self._type = problem_type
        return self

    def instance(self, instance: str) -> ApiError:
        self._instance = instance
        return self

    def extensions(self, extensions: Mapping[str, Any]) -> ApiError:
        """Replace all extension members."""
        check_extension_keys(extensions)
        self._extensions = dict(extensions)
        return self

    def extension(self, key: str, value: Any) -> ApiError:
        check_extension_keys((key,))
        self._extensions[key] = value
        return self

    def header(self, name: str, *values: str) -> ApiError:
        self._headers.setdefault(name, []).extend(values)
        return self

    def headers(self, headers: Mapping[str, str | list[str]]) -> ApiError:
        for name, values in headers.items():
            if isinstance(values, str):
                self.header(name, values)
            else:
                self.header(name, *values)
        return self

    def envelope(self, detail: str | None) -> ProblemEnvelope:
        """Return the envelope described so far with ``detail`` as its detail member."""
        envelope = ProblemEnvelope(
            status=self._status,
            title=self._title,
            instance=self._instance,
            detail=detail,
            extensions=dict(self._extensions),
            headers={name: list(values) for name, values in self._headers.items()},
        )
        if self._type is not None:
            envelope.type = self._type
        return envelope

    def detail(self, detail: str | None) -> ProblemDetailsError:
        return ProblemDetailsError(self.envelope(detail))

    @classmethod
    def fail(cls, detail: str | None, status: int, title: str | None = None) -> ProblemDetailsError:
        builder = cls.status(status)
        if title is not None:
            builder.title(title)
        return builder.detail(detail if detail is not None else reason_phrase(status))

    @classmethod
    def bad_request(cls, detail: str | None = None, title: str | None = None) -> ProblemDetailsError:
        return cls.fail(detail, http_status.HTTP_400_BAD_REQUEST, title)

    @classmethod
    def unauthorized(cls, detail: str | None = None, title: str | None = None) -> ProblemDetailsError:
        return cls.fail(detail, http_status.HTTP_401_UNAUTHORIZED, title)

    @classmethod
    def forbidden(cls, detail: str | None = None, title: str | None = None) -> ProblemDetailsError:
        return cls.fail(detail, http_status.HTTP_403_FORBIDDEN, title)

    @classmethod
    def not_found(cls, detail: str | None = None, title: str | None = None) -> ProblemDetailsError:
        return cls.fail(detail, http_status.HTTP_404_NOT_FOUND, title)

    @classmethod
    def conflict(cls, detail: str | None = None, title: str | None = None) -> ProblemDetailsError:
        return cls.fail(detail, http_status.HTTP_409_CONFLICT, title)

    @classmethod
    def precondition_failed(cls, detail: str | None = None, title: str | None = None) -> ProblemDetailsError:
        return cls.fail(detail, http_status.HTTP_412_PRECONDITION_FAILED, title)

    @classmethod
    def precondition_required(cls, detail: str | None = None, title: str | None = None) -> ProblemDetailsError:
        return cls.fail(detail, http_status.HTTP_428_PRECONDITION_REQUIRED, title)

    @classmethod
    def too_many_requests(cls, detail: str | None = None, title: str | None = None) -> ProblemDetailsError:
        return cls.fail(detail, http_status.HTTP_429_TOO_MANY_REQUESTS, title)

    @classmethod
    def internal_server_error(cls, detail: str | None = None, title: str | None = None) -> ProblemDetailsError:
        return cls.fail(detail, http_status.HTTP_500_INTERNAL_SERVER_ERROR, title)

    @classmethod
    def not_implemented(cls, detail: str | None = None, title: str | None = None) -> ProblemDetailsError:
        return cls.fail(detail, http_status.HTTP_501_NOT_IMPLEMENTED, title)

    @classmethod
    def bad_gateway(cls, detail: str | None = None, title: str | None = None) -> ProblemDetailsError:
        return cls.fail(detail, http_status.HTTP_502_BAD_GATEWAY, title)

    @classmethod
    def service_unavailable(cls, detail: str | None = None, title: str | None = None) -> ProblemDetailsError:
        return cls.fail(detail, http_status.HTTP_503_SERVICE_UNAVAILABLE, title)

    @classmethod
    def gateway_timeout(cls, detail: str | None = None, title: str | None = None) -> ProblemDetailsError:
        return cls.fail(detail, http_status.HTTP_504_GATEWAY_TIMEOUT, title)
