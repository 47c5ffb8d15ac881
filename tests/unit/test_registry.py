"""Unit tests for exception handler registration and nearest-ancestor resolution."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from problem_details.core.config import DuplicateHandlerPolicy
from problem_details.core.config import ProblemDetailsSettings
from problem_details.core.errors import DuplicateHandlerError
from problem_details.core.errors import HandlerNotFoundError
from problem_details.core.registry import HandlerRegistry
from problem_details.core.registry import exception_handler


class BaseFailure(Exception):
    pass


class SpecificFailure(BaseFailure):
    pass


class SiblingFailure(BaseFailure):
    pass


class UnrelatedFailure(Exception):
    pass


def _handler(label: str):
    def handle(error: BaseException, request: Any) -> tuple[str, BaseException, Any]:
        return label, error, request

    handle.__qualname__ = f"handle_{label}"
    return handle


class _Provider:
    def __init__(self) -> None:
        self.calls: list[str] = []

    @exception_handler(BaseFailure)
    def handle_base(self, error: BaseFailure, request: Any) -> str:
        self.calls.append("base")
        return "base"

    @exception_handler(KeyError, IndexError)
    def handle_lookup(self, error: LookupError, request: Any) -> str:
        return "lookup"

    @exception_handler(UnrelatedFailure)
    def handle_without_request(self, error: UnrelatedFailure) -> str:
        return "wrong-shape"

    def not_a_handler(self, error: BaseException, request: Any) -> str:
        return "unmarked"


def test_resolution_prefers_the_most_specific_binding() -> None:
    registry = HandlerRegistry()
    base = registry.register(BaseFailure, _handler("base"))
    specific = registry.register(SpecificFailure, _handler("specific"))

    assert registry.resolve(SpecificFailure) is specific
    assert registry.resolve(SiblingFailure) is base
    assert registry.resolve(BaseFailure) is base


def test_resolution_is_stable_between_cache_miss_and_cache_hit() -> None:
    registry = HandlerRegistry()
    registry.register(BaseFailure, _handler("base"))

    first = registry.resolve(SiblingFailure)
    second = registry.resolve(SiblingFailure)

    assert first is not None
    assert first is second


def test_unmatched_type_is_an_explicit_cached_miss() -> None:
    registry = HandlerRegistry()
    registry.register(BaseFailure, _handler("base"))

    assert registry.resolve(UnrelatedFailure) is None
    assert registry.resolve(UnrelatedFailure) is None
    assert UnrelatedFailure in registry._cache


def test_root_binding_catches_everything_below_it() -> None:
    registry = HandlerRegistry()
    root = registry.register(Exception, _handler("root"))

    assert registry.resolve(UnrelatedFailure) is root
    assert registry.resolve(ValueError) is root
    assert registry.resolve(KeyboardInterrupt) is None


def test_registering_clears_previous_resolutions() -> None:
    registry = HandlerRegistry()
    base = registry.register(BaseFailure, _handler("base"))
    assert registry.resolve(SpecificFailure) is base

    specific = registry.register(SpecificFailure, _handler("specific"))

    assert registry.resolve(SpecificFailure) is specific


def test_dispatch_invokes_handler_with_error_and_request() -> None:
    registry = HandlerRegistry()
    registry.register(BaseFailure, _handler("base"))
    error = SpecificFailure("boom")

    result = registry.dispatch(error, "request")

    assert result == ("base", error, "request")


def test_dispatch_without_handler_raises_handler_not_found(caplog: pytest.LogCaptureFixture) -> None:
    registry = HandlerRegistry()
    registry.register(BaseFailure, _handler("base"))

    with caplog.at_level(logging.ERROR, logger="problem_details.core.registry"):
        with pytest.raises(HandlerNotFoundError) as excinfo:
            registry.dispatch(UnrelatedFailure("nope"), None)

    assert excinfo.value.error_type is UnrelatedFailure
    assert "UnrelatedFailure" in str(excinfo.value)
    assert any("No handler found" in record.getMessage() for record in caplog.records)


def test_dispatch_propagates_handler_errors_unchanged() -> None:
    registry = HandlerRegistry()

    def broken(error: BaseException, request: Any) -> None:
        raise RuntimeError("handler bug")

    registry.register(BaseFailure, broken)

    with pytest.raises(RuntimeError, match="handler bug"):
        registry.dispatch(BaseFailure(), None)


def test_duplicate_binding_replaces_earlier_one_with_warning(caplog: pytest.LogCaptureFixture) -> None:
    registry = HandlerRegistry()
    registry.register(BaseFailure, _handler("first"))

    with caplog.at_level(logging.WARNING, logger="problem_details.core.registry"):
        second = registry.register(BaseFailure, _handler("second"))

    assert registry.resolve(BaseFailure) is second
    assert any("replaces" in record.getMessage() for record in caplog.records)


def test_duplicate_binding_fails_under_error_policy() -> None:
    registry = HandlerRegistry(duplicate_policy=DuplicateHandlerPolicy.ERROR)
    first = registry.register(BaseFailure, _handler("first"))

    with pytest.raises(DuplicateHandlerError):
        registry.register(BaseFailure, _handler("second"))

    assert registry.resolve(BaseFailure) is first


def test_duplicate_policy_comes_from_settings() -> None:
    registry = HandlerRegistry()
    registry.apply_settings(ProblemDetailsSettings(duplicate_handlers=DuplicateHandlerPolicy.ERROR))
    registry.register(BaseFailure, _handler("first"))

    with pytest.raises(DuplicateHandlerError):
        registry.register(BaseFailure, _handler("second"))


def test_register_rejects_non_exception_types() -> None:
    registry = HandlerRegistry()

    with pytest.raises(TypeError):
        registry.register(str, _handler("str"))  # type: ignore[arg-type]


def test_provider_registration_keeps_only_error_and_request_handlers() -> None:
    registry = HandlerRegistry()
    provider = _Provider()

    bindings = registry.register_provider(provider)

    assert {binding.error_type for binding in bindings} == {BaseFailure, KeyError, IndexError}
    assert UnrelatedFailure not in registry
    assert registry.dispatch(SpecificFailure(), None) == "base"
    assert registry.dispatch(KeyError("k"), None) == "lookup"
    assert provider.calls == ["base"]
    assert all(binding.provider is provider for binding in bindings)


def test_overriding_provider_method_uses_the_subclass_marking() -> None:
    class LookupProvider:
        @exception_handler(KeyError)
        def handle(self, error: LookupError, request: Any) -> str:
            return "base"

    class IndexProvider(LookupProvider):
        @exception_handler(IndexError)
        def handle(self, error: LookupError, request: Any) -> str:
            return "override"

    registry = HandlerRegistry()

    registry.register_provider(IndexProvider())

    assert registry.error_types == (IndexError,)
    assert KeyError not in registry
    assert registry.dispatch(IndexError("i"), None) == "override"


def test_discover_freezes_the_registry() -> None:
    registry = HandlerRegistry()

    registry.discover([_Provider()])

    assert registry.frozen
    assert set(registry.error_types) == {BaseFailure, KeyError, IndexError}
    with pytest.raises(RuntimeError):
        registry.register(SpecificFailure, _handler("late"))


def test_exception_handler_decorator_requires_exception_types() -> None:
    with pytest.raises(TypeError):
        exception_handler()

    with pytest.raises(TypeError):
        exception_handler(int)  # type: ignore[arg-type]
