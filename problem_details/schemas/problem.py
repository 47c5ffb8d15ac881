"""Problem details envelope shared by every error response."""

from __future__ import annotations

from collections.abc import Iterable
from collections.abc import Mapping
from http import HTTPStatus
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator

DEFAULT_PROBLEM_TYPE = "about:blank"
RESERVED_MEMBERS = frozenset({"type", "title", "status", "detail", "instance"})


def check_extension_keys(keys: Iterable[str]) -> None:
    """Raise ``ValueError`` when an extension key would shadow a standard member."""
    clashes = RESERVED_MEMBERS.intersection(keys)
    if clashes:
        raise ValueError(f"extension keys shadow standard members: {sorted(clashes)}")


def reason_phrase(status_code: int) -> str:
    """Return the standard reason phrase for a status code, or a neutral fallback."""
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


class ProblemEnvelope(BaseModel):
    """Status, title, type, instance, detail and extension members of an error response.

    ``status`` is fixed once the envelope exists; every other member can be
    adjusted until the response is rendered. ``headers`` travel with the
    envelope but are never part of the body.
    """

    model_config = ConfigDict(validate_assignment=True)

    status: int = Field(ge=100, le=599, frozen=True)
    title: str | None = None
    type: str = DEFAULT_PROBLEM_TYPE
    instance: str | None = None
    detail: str | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)
    headers: dict[str, list[str]] = Field(default_factory=dict, exclude=True)

    @field_validator("extensions")
    @classmethod
    def _no_reserved_members(cls, value: dict[str, Any]) -> dict[str, Any]:
        check_extension_keys(value)
        return value

    @classmethod
    def for_status(cls, status: int, detail: str | None = None) -> ProblemEnvelope:
        return cls(status=status, detail=detail)

    def set_extension(self, key: str, value: Any) -> None:
        """Set one extension member, keeping insertion order."""
        check_extension_keys((key,))
        self.extensions[key] = value

    def update_extensions(self, values: Mapping[str, Any]) -> None:
        for key, value in values.items():
            self.set_extension(key, value)

    def add_header(self, name: str, *values: str) -> None:
        self.headers.setdefault(name, []).extend(values)

    def effective_title(self) -> str:
        return self.title if self.title else reason_phrase(self.status)

    def to_body(self) -> dict[str, Any]:
        """Return the JSON-compatible body with extensions flattened next to the standard members."""
        body: dict[str, Any] = {
            "status": self.status,
            "title": self.effective_title(),
            "type": self.type or DEFAULT_PROBLEM_TYPE,
        }
        if self.instance is not None:
            body["instance"] = self.instance
        if self.detail is not None:
            body["detail"] = self.detail
        body.update(self.extensions)
        return body
