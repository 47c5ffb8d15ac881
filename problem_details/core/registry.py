"""Registry of externally provided exception handlers with nearest-ancestor dispatch."""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Iterable
from dataclasses import dataclass
import inspect
import logging
import threading
from typing import Any

from problem_details.core.config import DuplicateHandlerPolicy
from problem_details.core.config import ProblemDetailsSettings
from problem_details.core.errors import DuplicateHandlerError
from problem_details.core.errors import HandlerNotFoundError

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[BaseException, Any], Any]

HANDLED_TYPES_ATTR = "__problem_details_handles__"

_NO_HANDLER = object()


def exception_handler(*error_types: type[BaseException]) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Mark a provider method as the handler for one or more error types."""
    if not error_types:
        raise TypeError("exception_handler() needs at least one error type")
    for error_type in error_types:
        _require_error_type(error_type)

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        setattr(func, HANDLED_TYPES_ATTR, tuple(error_types))
        return func

    return decorator


def _require_error_type(error_type: Any) -> None:
    if not (isinstance(error_type, type) and issubclass(error_type, BaseException)):
        raise TypeError(f"{error_type!r} is not an exception type")


def _accepts_error_and_request(handler: Callable[..., Any]) -> bool:
    try:
        parameters = list(inspect.signature(handler).parameters.values())
    except (TypeError, ValueError):
        return False
    positional = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    return len(parameters) == 2 and all(parameter.kind in positional for parameter in parameters)


@dataclass(frozen=True)
class HandlerBinding:
    """A handler bound to the most specific error type it declares."""

    error_type: type[BaseException]
    handler: ErrorHandler
    provider: object | None = None

    def __call__(self, error: BaseException, request: Any) -> Any:
        return self.handler(error, request)

    @property
    def name(self) -> str:
        return getattr(self.handler, "__qualname__", repr(self.handler))


class HandlerRegistry:
    """Error type to handler bindings, resolved by walking the type's ancestors.

    Registration happens at startup. After ``freeze`` the binding set is
    fixed, so each resolution result (including "no handler") is cached
    for the lifetime of the process.
    """

    def __init__(self, *, duplicate_policy: DuplicateHandlerPolicy = DuplicateHandlerPolicy.WARN) -> None:
        self._duplicate_policy = duplicate_policy
        self._bindings: dict[type[BaseException], HandlerBinding] = {}
        self._cache: dict[type[BaseException], Any] = {}
        self._cache_lock = threading.Lock()
        self._frozen = False

    def apply_settings(self, settings: ProblemDetailsSettings) -> None:
        self._duplicate_policy = settings.duplicate_handlers

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def error_types(self) -> tuple[type[BaseException], ...]:
        return tuple(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def __contains__(self, error_type: object) -> bool:
        return error_type in self._bindings

    def register(
        self,
        error_type: type[BaseException],
        handler: ErrorHandler,
        *,
        provider: object | None = None,
    ) -> HandlerBinding:
        """Bind ``handler`` to ``error_type``; a later binding for the same type replaces the earlier one."""
        if self._frozen:
            raise RuntimeError("Handler registry is frozen; register handlers before the application starts")
        _require_error_type(error_type)
        if not callable(handler):
            raise TypeError(f"Handler for {error_type.__name__} is not callable")

        binding = HandlerBinding(error_type=error_type, handler=handler, provider=provider)
        existing = self._bindings.get(error_type)
        if existing is not None:
            if self._duplicate_policy is DuplicateHandlerPolicy.ERROR:
                raise DuplicateHandlerError(error_type)
            logger.warning(
                "Handler %s replaces %s for exception %s",
                binding.name,
                existing.name,
                error_type.__name__,
            )

        self._bindings[error_type] = binding
        with self._cache_lock:
            self._cache.clear()
        logger.debug("Registered exception handler %s for %s", binding.name, error_type.__name__)
        return binding

    def register_provider(self, provider: object) -> list[HandlerBinding]:
        """Register every ``@exception_handler`` method of ``provider`` shaped ``(error, request)``."""
        bindings: list[HandlerBinding] = []
        seen: set[str] = set()
        for klass in type(provider).__mro__:
            for attribute, member in vars(klass).items():
                error_types = getattr(member, HANDLED_TYPES_ATTR, None)
                if error_types is None or attribute in seen:
                    continue
                seen.add(attribute)
                handler = getattr(provider, attribute)
                if not _accepts_error_and_request(handler):
                    logger.debug(
                        "Ignoring handler %s.%s: expected signature (error, request)",
                        type(provider).__name__,
                        attribute,
                    )
                    continue
                for error_type in error_types:
                    bindings.append(self.register(error_type, handler, provider=provider))
        return bindings

    def discover(self, providers: Iterable[object]) -> None:
        """Register all providers and freeze the registry; runs once at startup."""
        for provider in providers:
            logger.debug("Found exception handler provider: %s", type(provider).__name__)
            self.register_provider(provider)
        self.freeze()

    def freeze(self) -> None:
        self._frozen = True

    def resolve(self, error_type: type[BaseException]) -> HandlerBinding | None:
        """Return the binding for ``error_type`` or its nearest registered ancestor."""
        cached = self._cache.get(error_type)
        if cached is not None:
            return None if cached is _NO_HANDLER else cached

        binding: HandlerBinding | None = None
        for ancestor in error_type.__mro__:
            binding = self._bindings.get(ancestor)
            if binding is not None:
                break

        with self._cache_lock:
            self._cache[error_type] = _NO_HANDLER if binding is None else binding
        return binding

    def dispatch(self, error: BaseException, request: Any) -> Any:
        """Invoke the nearest handler for ``error``; handler exceptions propagate unchanged."""
        binding = self.resolve(type(error))
        if binding is None:
            not_found = HandlerNotFoundError(type(error))
            logger.error("%s", not_found)
            raise not_found
        return binding(error, request)
