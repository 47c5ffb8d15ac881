"""Aggregation of field-level and global validation failures."""

from __future__ import annotations

from collections.abc import Iterable
from collections.abc import Mapping
from typing import Any
from typing import NamedTuple
from typing import NoReturn

ERRORS_KEY = "errors"
GLOBAL_ERRORS_KEY = "globalErrors"

LOCATION_PREFIXES = frozenset({"body", "query", "path", "header", "cookie"})


class FieldMessage(NamedTuple):
    """One violation: a message and the field it belongs to, if any."""

    field: str | None
    message: str


class ValidationErrorCollector:
    """Collect validation failures during one validation pass.

    Messages for the same field share one ordered list; fields keep the
    order in which they were first reported. Call ``raise_if_has_errors``
    at the end of the pass to turn the collected failures into a 400
    problem response.
    """

    def __init__(self) -> None:
        self._errors: dict[str, list[str]] = {}
        self._global_errors: list[str] = []

    @property
    def errors(self) -> dict[str, list[str]]:
        return {field: list(messages) for field, messages in self._errors.items()}

    @property
    def global_errors(self) -> list[str]:
        return list(self._global_errors)

    def add_field_error(self, field: str, message: str) -> None:
        self._errors.setdefault(field, []).append(message)

    def add_global_error(self, message: str) -> None:
        self._global_errors.append(message)

    def add(self, violation: FieldMessage) -> None:
        if violation.field is not None:
            self.add_field_error(violation.field, violation.message)
        else:
            self.add_global_error(violation.message)

    def extend(self, violations: Iterable[FieldMessage]) -> None:
        for violation in violations:
            self.add(violation)

    def has_errors(self) -> bool:
        return bool(self._errors) or bool(self._global_errors)

    def to_extensions(self) -> dict[str, Any]:
        """Return the ``errors``/``globalErrors`` members, omitting empty collections."""
        extensions: dict[str, Any] = {}
        if self._errors:
            extensions[ERRORS_KEY] = self.errors
        if self._global_errors:
            extensions[GLOBAL_ERRORS_KEY] = self.global_errors
        return extensions

    def add_and_raise(self, field: str, message: str) -> NoReturn:
        self.add_field_error(field, message)
        self._raise()

    def raise_if_has_errors(self) -> None:
        if self.has_errors():
            self._raise()

    def _raise(self) -> NoReturn:
        raise ValidationFailure(self)


class ValidationFailure(Exception):
    """Raised by a collector that holds at least one validation failure."""

    def __init__(self, collector: ValidationErrorCollector, message: str = "Validation error") -> None:
        super().__init__(message)
        self.collector = collector


def _field_from_location(location: Any) -> str | None:
    if not isinstance(location, (tuple, list)):
        return str(location) if location not in (None, "") else None

    # Only the last named segment is kept: ("body", "address", "street") -> "street".
    named = [part for part in location if isinstance(part, str) and part not in LOCATION_PREFIXES]
    if named:
        return named[-1]
    return None


def field_messages_from_errors(errors: Iterable[Mapping[str, Any]]) -> list[FieldMessage]:
    """Map pydantic/FastAPI error dicts to violations; errors without a field become global."""
    violations: list[FieldMessage] = []
    for issue in errors:
        field = _field_from_location(issue.get("loc", ()))
        message = str(issue.get("msg", "Invalid value"))
        violations.append(FieldMessage(field=field, message=message))
    return violations
