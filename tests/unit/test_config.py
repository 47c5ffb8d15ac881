"""Unit tests for problem details settings loading and propagation."""

from __future__ import annotations

import pytest

from problem_details.core.config import DuplicateHandlerPolicy
from problem_details.core.config import ProblemDetailsSettings
from problem_details.core.config import get_problem_details_settings
from problem_details.core.config import propagate_settings


class _AwareComponent:
    def __init__(self) -> None:
        self.received: list[ProblemDetailsSettings] = []

    def apply_settings(self, settings: ProblemDetailsSettings) -> None:
        self.received.append(settings)


def test_defaults_hide_internals() -> None:
    settings = ProblemDetailsSettings()

    assert settings.report_all_errors is False
    assert settings.log_errors is False
    assert settings.send_stack_trace is False
    assert settings.open_registry is True
    assert settings.duplicate_handlers is DuplicateHandlerPolicy.WARN


def test_settings_load_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROBLEM_DETAILS_REPORT_ALL_ERRORS", "true")
    monkeypatch.setenv("PROBLEM_DETAILS_LOG_ERRORS", "1")
    monkeypatch.setenv("PROBLEM_DETAILS_SEND_STACK_TRACE", "off")
    monkeypatch.setenv("PROBLEM_DETAILS_OPEN_REGISTRY", "No")
    monkeypatch.setenv("PROBLEM_DETAILS_DUPLICATE_HANDLERS", "ERROR")
    monkeypatch.setenv("PROBLEM_DETAILS_DEFAULT_LOCALE", "es")

    settings = get_problem_details_settings()

    assert settings == ProblemDetailsSettings(
        report_all_errors=True,
        log_errors=True,
        send_stack_trace=False,
        open_registry=False,
        duplicate_handlers=DuplicateHandlerPolicy.ERROR,
        default_locale="es",
    )


def test_settings_are_loaded_once(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_problem_details_settings()
    monkeypatch.setenv("PROBLEM_DETAILS_LOG_ERRORS", "true")

    assert get_problem_details_settings() is first


def test_invalid_boolean_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROBLEM_DETAILS_SEND_STACK_TRACE", "maybe")

    with pytest.raises(ValueError, match="PROBLEM_DETAILS_SEND_STACK_TRACE"):
        get_problem_details_settings()


def test_from_mapping_accepts_documented_keys() -> None:
    settings = ProblemDetailsSettings.from_mapping(
        {
            "report-all-errors": "true",
            "log-errors": True,
            "send-stack-trace": "false",
            "duplicate-handlers": "error",
        }
    )

    assert settings.report_all_errors is True
    assert settings.log_errors is True
    assert settings.send_stack_trace is False
    assert settings.duplicate_handlers is DuplicateHandlerPolicy.ERROR


def test_from_mapping_rejects_unknown_keys() -> None:
    with pytest.raises(ValueError, match="all-errors"):
        ProblemDetailsSettings.from_mapping({"all-errors": True})


def test_safe_for_logging_uses_plain_values() -> None:
    assert ProblemDetailsSettings().safe_for_logging() == {
        "report_all_errors": False,
        "log_errors": False,
        "send_stack_trace": False,
        "open_registry": True,
        "duplicate_handlers": "warn",
        "default_locale": "en",
    }


def test_propagation_reaches_only_aware_components() -> None:
    settings = ProblemDetailsSettings(log_errors=True)
    aware = _AwareComponent()
    unaware = object()

    propagate_settings(settings, aware, unaware)

    assert aware.received == [settings]
