"""Exception resolution for FastAPI applications using problem details envelopes."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
import inspect
import logging

from fastapi import FastAPI
from fastapi import Request
from fastapi import status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response
from starlette.types import ASGIApp
from starlette.types import Message
from starlette.types import Receive
from starlette.types import Scope
from starlette.types import Send

from problem_details.core.builder import AuthFailureKind
from problem_details.core.builder import EnvelopeBuilder
from problem_details.core.builder import ProblemCallback
from problem_details.core.builder import RequestContext
from problem_details.core.config import ProblemDetailsSettings
from problem_details.core.config import get_problem_details_settings
from problem_details.core.config import propagate_settings
from problem_details.core.errors import AuthenticationError
from problem_details.core.errors import AuthorizationError
from problem_details.core.errors import ProblemDetailsError
from problem_details.core.errors import ValidationFailure
from problem_details.core.messages import MessageSource
from problem_details.core.messages import resolve_locale
from problem_details.core.registry import HandlerBinding
from problem_details.core.registry import HandlerRegistry
from problem_details.schemas.problem import ProblemEnvelope
from problem_details.schemas.validation import field_messages_from_errors

logger = logging.getLogger(__name__)

PROBLEM_JSON_MEDIA_TYPE = "application/problem+json"
RESPONSE_STARTED_STATE_KEY = "problem_details_response_started"

BUILTIN_ERROR_TYPES: tuple[type[BaseException], ...] = (
    ProblemDetailsError,
    ValidationFailure,
    RequestValidationError,
    AuthenticationError,
    AuthorizationError,
    StarletteHTTPException,
)


class Resolution(Enum):
    """Outcomes of resolution that do not produce a response."""

    ALREADY_COMMITTED = "already_committed"


class ResponseCommitMiddleware:
    """Record in the request state once the response has started."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        state = scope.setdefault("state", {})
        state[RESPONSE_STARTED_STATE_KEY] = False

        async def send_tracking_start(message: Message) -> None:
            if message["type"] == "http.response.start":
                state[RESPONSE_STARTED_STATE_KEY] = True
            await send(message)

        await self.app(scope, receive, send_tracking_start)


def is_response_committed(request: Request) -> bool:
    return bool(getattr(request.state, RESPONSE_STARTED_STATE_KEY, False))


def render_problem(envelope: ProblemEnvelope) -> JSONResponse:
    """Turn an envelope into a ``application/problem+json`` response with its headers."""
    response = JSONResponse(
        status_code=envelope.status,
        content=envelope.to_body(),
        media_type=PROBLEM_JSON_MEDIA_TYPE,
    )
    for name, values in envelope.headers.items():
        for value in values:
            response.headers.append(name, value)
    return response


class ProblemDetailsHandler:
    """Resolve any exception raised while handling a request to a problem response.

    With the open registry enabled, handlers registered in the
    ``HandlerRegistry`` are tried first. Otherwise, or when none matches,
    the first matching built-in rule applies: structured errors,
    validation failures, authentication and authorization failures, HTTP
    errors, then everything else as a 500.
    """

    def __init__(
        self,
        settings: ProblemDetailsSettings | None = None,
        *,
        messages: MessageSource | None = None,
        registry: HandlerRegistry | None = None,
        on_problem: ProblemCallback | None = None,
    ) -> None:
        self._settings = settings or ProblemDetailsSettings()
        self._registry = registry
        self._builder = EnvelopeBuilder(self._settings, messages=messages, on_problem=on_problem)

    @property
    def builder(self) -> EnvelopeBuilder:
        return self._builder

    @property
    def registry(self) -> HandlerRegistry | None:
        return self._registry

    def apply_settings(self, settings: ProblemDetailsSettings) -> None:
        self._settings = settings
        self._builder.apply_settings(settings)

    async def __call__(self, request: Request, exc: Exception) -> Response:
        result = await self.resolve(request, exc)
        if result is Resolution.ALREADY_COMMITTED:
            # Never sent: the server has already started the response.
            return Response(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
        return result

    async def resolve(self, request: Request, exc: BaseException) -> Response | Resolution:
        if is_response_committed(request):
            logger.warning("Response already committed; skipping problem details for %s", type(exc).__name__)
            return Resolution.ALREADY_COMMITTED

        context = self.request_context(request)
        if self._settings.open_registry and self._registry is not None:
            binding = self._registry.resolve(type(exc))
            if binding is not None:
                return await self._invoke_registered(binding, request, exc, context)

        return render_problem(self.build_envelope(exc, context))

    def request_context(self, request: Request) -> RequestContext:
        locale = resolve_locale(request.headers.get("accept-language"), self._settings.default_locale)
        return RequestContext(locale=locale, instance=request.url.path)

    def build_envelope(self, exc: BaseException, context: RequestContext) -> ProblemEnvelope:
        """Apply the first built-in rule that matches ``exc``."""
        builder = self._builder
        if isinstance(exc, ProblemDetailsError):
            envelope = builder.build_for_structured_error(exc)
        elif isinstance(exc, ValidationFailure):
            envelope = builder.build_for_validation_failure(exc, exc.collector, context)
        elif isinstance(exc, RequestValidationError):
            envelope = builder.build_for_validation_failure(exc, field_messages_from_errors(exc.errors()), context)
        elif isinstance(exc, AuthenticationError):
            envelope = builder.build_for_auth_failure(exc, AuthFailureKind.UNAUTHENTICATED, context)
        elif isinstance(exc, AuthorizationError):
            envelope = builder.build_for_auth_failure(exc, AuthFailureKind.UNAUTHORIZED, context)
        elif isinstance(exc, StarletteHTTPException):
            detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
            envelope = builder.build_for_http_error(exc, exc.status_code, detail, exc.headers, context)
        else:
            envelope = builder.build_for_generic_failure(exc, context)

        if envelope.instance is None:
            envelope.instance = context.instance
        return envelope

    async def _invoke_registered(
        self,
        binding: HandlerBinding,
        request: Request,
        exc: BaseException,
        context: RequestContext,
    ) -> Response:
        try:
            if inspect.iscoroutinefunction(binding.handler):
                result = await binding(exc, request)
            else:
                result = await run_in_threadpool(binding, exc, request)
            if inspect.isawaitable(result):
                result = await result
            if isinstance(result, ProblemEnvelope):
                if result.instance is None:
                    result.instance = context.instance
                return render_problem(result)
            if isinstance(result, Response):
                return result
            raise TypeError(f"Handler {binding.name} returned {type(result).__name__}, expected a response")
        except Exception as handler_exc:
            logger.error("Exception handler %s failed", binding.name, exc_info=handler_exc)
            return render_problem(self._builder.build_for_generic_failure(handler_exc, context))


def register_problem_details(
    app: FastAPI,
    *,
    settings: ProblemDetailsSettings | None = None,
    messages: MessageSource | None = None,
    providers: Iterable[object] = (),
    registry: HandlerRegistry | None = None,
    on_problem: ProblemCallback | None = None,
) -> ProblemDetailsHandler:
    """Attach problem details resolution to a FastAPI app instance.

    Providers are registered here, while the app is being built, so the
    registry is complete and frozen before the first request is served.
    """
    settings = settings or get_problem_details_settings()
    logger.info("Setting problem details properties: %s", settings.safe_for_logging())

    registry = registry if registry is not None else HandlerRegistry()
    handler = ProblemDetailsHandler(settings, messages=messages, registry=registry, on_problem=on_problem)
    propagate_settings(settings, registry, handler)
    registry.discover(providers)

    app.add_middleware(ResponseCommitMiddleware)
    handled_types = dict.fromkeys((*BUILTIN_ERROR_TYPES, *registry.error_types))
    for error_type in handled_types:
        app.add_exception_handler(error_type, handler)
    app.add_exception_handler(Exception, handler)
    return handler
