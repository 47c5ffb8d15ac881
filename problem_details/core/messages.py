"""Localized titles, types and details for problem envelopes."""

from __future__ import annotations

from collections.abc import Mapping
from collections.abc import Sequence
from typing import Any
from typing import Protocol

from fastapi.exceptions import RequestValidationError

from problem_details.core.config import DEFAULT_LOCALE
from problem_details.core.errors import AuthenticationError
from problem_details.core.errors import AuthorizationError
from problem_details.core.errors import ValidationFailure

MESSAGE_CODE_PREFIX = "problemDetail"


class MessageSource(Protocol):
    """Lookup of localized text by message code."""

    def get_message(
        self,
        code: str,
        locale: str | None,
        args: Sequence[Any] = (),
        default: str | None = None,
    ) -> str | None: ...


def type_name(error_type: type[BaseException]) -> str:
    return f"{error_type.__module__}.{error_type.__qualname__}"


def title_code(error_type: type[BaseException]) -> str:
    return f"{MESSAGE_CODE_PREFIX}.title.{type_name(error_type)}"


def type_code(error_type: type[BaseException]) -> str:
    return f"{MESSAGE_CODE_PREFIX}.type.{type_name(error_type)}"


def detail_code(error_type: type[BaseException], *, with_message: bool = False) -> str:
    code = f"{MESSAGE_CODE_PREFIX}.{type_name(error_type)}"
    return f"{code}.message" if with_message else code


def _normalize_locale(locale: str) -> str:
    return locale.strip().replace("_", "-").lower()


class CatalogMessageSource:
    """In-memory message catalog keyed by locale and message code.

    ``es-EC`` falls back to ``es`` and then to the default locale.
    Messages may use ``{0}``-style positional placeholders.
    """

    def __init__(
        self,
        catalog: Mapping[str, Mapping[str, str]] | None = None,
        *,
        default_locale: str = DEFAULT_LOCALE,
    ) -> None:
        self._default_locale = _normalize_locale(default_locale)
        self._catalog: dict[str, dict[str, str]] = {}
        for locale, messages in (catalog or {}).items():
            self.add_messages(locale, messages)

    @property
    def default_locale(self) -> str:
        return self._default_locale

    def add_messages(self, locale: str, messages: Mapping[str, str]) -> None:
        self._catalog.setdefault(_normalize_locale(locale), {}).update(messages)

    def get_message(
        self,
        code: str,
        locale: str | None,
        args: Sequence[Any] = (),
        default: str | None = None,
    ) -> str | None:
        for candidate in self._candidates(locale):
            template = self._catalog.get(candidate, {}).get(code)
            if template is not None:
                return _format(template, args)
        return default

    def _candidates(self, locale: str | None) -> list[str]:
        candidates: list[str] = []
        if locale:
            normalized = _normalize_locale(locale)
            candidates.append(normalized)
            language = normalized.split("-", 1)[0]
            if language != normalized:
                candidates.append(language)
        if self._default_locale not in candidates:
            candidates.append(self._default_locale)
        return candidates


def _format(template: str, args: Sequence[Any]) -> str:
    if not args:
        return template
    try:
        return template.format(*args)
    except (KeyError, IndexError, ValueError):
        # Catalog text with literal or named braces is returned as written.
        return template


def _messages_for(
    error_type: type[BaseException],
    *,
    title: str,
    detail: str | None = None,
) -> dict[str, str]:
    messages = {title_code(error_type): title}
    if detail is not None:
        messages[detail_code(error_type)] = detail
    return messages


DEFAULT_MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        **_messages_for(Exception, title="Internal Server Error", detail="Internal Server Error"),
        **_messages_for(ValidationFailure, title="Bad Request", detail="One or more fields are invalid."),
        **_messages_for(RequestValidationError, title="Bad Request", detail="One or more fields are invalid."),
        **_messages_for(AuthenticationError, title="Unauthorized"),
        **_messages_for(AuthorizationError, title="Forbidden"),
    },
    "es": {
        **_messages_for(Exception, title="Error interno del servidor", detail="Error interno del servidor"),
        **_messages_for(ValidationFailure, title="Solicitud incorrecta", detail="Uno o más campos no son válidos."),
        **_messages_for(RequestValidationError, title="Solicitud incorrecta", detail="Uno o más campos no son válidos."),
        **_messages_for(AuthenticationError, title="No autorizado"),
        **_messages_for(AuthorizationError, title="Prohibido"),
    },
}


def default_message_source(default_locale: str = DEFAULT_LOCALE) -> CatalogMessageSource:
    """Return a catalog preloaded with the bundled English and Spanish messages."""
    return CatalogMessageSource(DEFAULT_MESSAGES, default_locale=default_locale)


def resolve_locale(accept_language: str | None, default: str = DEFAULT_LOCALE) -> str:
    """Pick the first language tag of an ``Accept-Language`` header."""
    if not accept_language:
        return default
    first = accept_language.split(",", 1)[0].split(";", 1)[0].strip()
    if not first or first == "*":
        return default
    return first
