"""Construction of problem envelopes for each kind of failure."""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Iterable
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
import logging
import traceback

from fastapi import status as http_status

from problem_details.core.config import ProblemDetailsSettings
from problem_details.core.errors import ProblemDetailsError
from problem_details.core.messages import MessageSource
from problem_details.core.messages import default_message_source
from problem_details.core.messages import detail_code
from problem_details.core.messages import title_code
from problem_details.core.messages import type_code
from problem_details.schemas.problem import ProblemEnvelope
from problem_details.schemas.validation import FieldMessage
from problem_details.schemas.validation import ValidationErrorCollector

logger = logging.getLogger(__name__)

GENERIC_DETAIL = "Internal Server Error"
VALIDATION_DETAIL = "One or more fields are invalid."
STACK_TRACE_KEY = "stackTrace"

ProblemCallback = Callable[[BaseException, ProblemEnvelope], None]


class AuthFailureKind(Enum):
    """Authentication and authorization failures with their status codes."""

    UNAUTHENTICATED = http_status.HTTP_401_UNAUTHORIZED
    UNAUTHORIZED = http_status.HTTP_403_FORBIDDEN


@dataclass(frozen=True)
class RequestContext:
    """Request facts needed to build an envelope."""

    locale: str | None = None
    instance: str | None = None


def format_stack_trace(error: BaseException) -> str:
    return "".join(traceback.format_exception(type(error), error, error.__traceback__))


def _no_callback(_: BaseException, __: ProblemEnvelope) -> None:
    return None


class EnvelopeBuilder:
    """Build envelopes and apply the logging and stack-trace policy to each of them."""

    def __init__(
        self,
        settings: ProblemDetailsSettings | None = None,
        *,
        messages: MessageSource | None = None,
        on_problem: ProblemCallback | None = None,
    ) -> None:
        self._settings = settings or ProblemDetailsSettings()
        self._messages = messages or default_message_source(self._settings.default_locale)
        self._on_problem = on_problem or _no_callback

    @property
    def settings(self) -> ProblemDetailsSettings:
        return self._settings

    def apply_settings(self, settings: ProblemDetailsSettings) -> None:
        self._settings = settings

    def build_for_generic_failure(self, error: BaseException, context: RequestContext | None = None) -> ProblemEnvelope:
        """500 envelope; the error's own message is exposed only with ``report_all_errors``."""
        context = context or RequestContext()
        status = http_status.HTTP_500_INTERNAL_SERVER_ERROR
        if self._settings.report_all_errors:
            error_type = type(error)
            detail = self._messages.get_message(
                detail_code(error_type, with_message=True),
                context.locale,
                args=(str(error),),
                default=str(error),
            )
        else:
            # Title and type come from the generic keys so the concrete type stays hidden.
            error_type = Exception
            detail = self._messages.get_message(detail_code(Exception), context.locale, default=GENERIC_DETAIL)

        envelope = ProblemEnvelope(status=status, detail=detail, instance=context.instance)
        self._localize(envelope, error_type, context, fallback=Exception)
        return self._finish(error, envelope)

    def build_for_structured_error(self, error: ProblemDetailsError) -> ProblemEnvelope:
        """Pass the error's own envelope through; policy additions go on a copy."""
        envelope = error.envelope.model_copy(deep=True)
        return self._finish(error, envelope)

    def build_for_validation_failure(
        self,
        error: BaseException,
        violations: Iterable[FieldMessage] | ValidationErrorCollector,
        context: RequestContext | None = None,
    ) -> ProblemEnvelope:
        """400 envelope with ``errors`` and ``globalErrors`` aggregated from the violations."""
        context = context or RequestContext()
        if isinstance(violations, ValidationErrorCollector):
            collector = violations
        else:
            collector = ValidationErrorCollector()
            collector.extend(violations)

        detail = self._messages.get_message(detail_code(type(error)), context.locale, default=VALIDATION_DETAIL)
        envelope = ProblemEnvelope(
            status=http_status.HTTP_400_BAD_REQUEST,
            detail=detail,
            instance=context.instance,
        )
        self._localize(envelope, type(error), context)
        envelope.update_extensions(collector.to_extensions())
        return self._finish(error, envelope)

    def build_for_auth_failure(
        self,
        error: BaseException,
        kind: AuthFailureKind,
        context: RequestContext | None = None,
    ) -> ProblemEnvelope:
        """401/403 envelope; the detail is the error's message as produced by the auth layer."""
        context = context or RequestContext()
        envelope = ProblemEnvelope(status=kind.value, detail=str(error), instance=context.instance)
        self._localize(envelope, type(error), context)
        self._copy_headers(envelope, getattr(error, "headers", None))
        return self._finish(error, envelope)

    def build_for_http_error(
        self,
        error: BaseException,
        status: int,
        detail: str | None,
        headers: Mapping[str, str] | None = None,
        context: RequestContext | None = None,
    ) -> ProblemEnvelope:
        """Envelope for framework HTTP errors such as unknown routes or disallowed methods."""
        context = context or RequestContext()
        envelope = ProblemEnvelope(status=status, detail=detail, instance=context.instance)
        self._localize(envelope, type(error), context)
        self._copy_headers(envelope, headers)
        return self._finish(error, envelope)

    def _localize(
        self,
        envelope: ProblemEnvelope,
        error_type: type[BaseException],
        context: RequestContext,
        *,
        fallback: type[BaseException] | None = None,
    ) -> None:
        title = self._messages.get_message(title_code(error_type), context.locale)
        problem_type = self._messages.get_message(type_code(error_type), context.locale)
        if fallback is not None and fallback is not error_type:
            title = title or self._messages.get_message(title_code(fallback), context.locale)
            problem_type = problem_type or self._messages.get_message(type_code(fallback), context.locale)
        if title:
            envelope.title = title
        if problem_type:
            envelope.type = problem_type

    @staticmethod
    def _copy_headers(envelope: ProblemEnvelope, headers: Mapping[str, str | list[str]] | None) -> None:
        for name, values in (headers or {}).items():
            if isinstance(values, str):
                envelope.add_header(name, values)
            else:
                envelope.add_header(name, *values)

    def _finish(self, error: BaseException, envelope: ProblemEnvelope) -> ProblemEnvelope:
        if self._settings.log_errors:
            logger.error("Error: %s", error, exc_info=error)
        if self._settings.send_stack_trace:
            envelope.set_extension(STACK_TRACE_KEY, format_stack_trace(error))
        self._on_problem(error, envelope)
        return envelope
