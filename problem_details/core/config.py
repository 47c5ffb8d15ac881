"""Problem details runtime policy and its propagation to interested components."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
import logging
import os
from typing import Any
from typing import Protocol
from typing import runtime_checkable

logger = logging.getLogger(__name__)

ENV_PREFIX = "PROBLEM_DETAILS_"
DEFAULT_LOCALE = "en"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


class DuplicateHandlerPolicy(str, Enum):
    """What the handler registry does when an error type is bound twice."""

    WARN = "warn"
    ERROR = "error"


def _parse_bool(name: str, raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    normalized = str(raw).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return _parse_bool(name, raw)


@dataclass(frozen=True)
class ProblemDetailsSettings:
    """Policy flags controlling detail exposure, error logging and stack traces."""

    report_all_errors: bool = False
    log_errors: bool = False
    send_stack_trace: bool = False
    open_registry: bool = True
    duplicate_handlers: DuplicateHandlerPolicy = DuplicateHandlerPolicy.WARN
    default_locale: str = DEFAULT_LOCALE

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> ProblemDetailsSettings:
        """Build settings from dashed configuration keys such as ``report-all-errors``."""
        known = {
            "report-all-errors": "report_all_errors",
            "log-errors": "log_errors",
            "send-stack-trace": "send_stack_trace",
            "open-registry": "open_registry",
            "duplicate-handlers": "duplicate_handlers",
            "default-locale": "default_locale",
        }
        unknown = set(values) - set(known)
        if unknown:
            raise ValueError(f"Unknown problem details settings: {sorted(unknown)}")

        kwargs: dict[str, Any] = {}
        for key, raw in values.items():
            attribute = known[key]
            if attribute == "duplicate_handlers":
                kwargs[attribute] = DuplicateHandlerPolicy(str(raw).strip().lower())
            elif attribute == "default_locale":
                kwargs[attribute] = str(raw)
            else:
                kwargs[attribute] = _parse_bool(key, raw)
        return cls(**kwargs)

    def safe_for_logging(self) -> dict[str, str | bool]:
        """Return settings as plain values for startup logs."""
        values = asdict(self)
        values["duplicate_handlers"] = self.duplicate_handlers.value
        return values


@runtime_checkable
class SettingsAware(Protocol):
    """Component that wants the problem details settings pushed into it."""

    def apply_settings(self, settings: ProblemDetailsSettings) -> None: ...


def propagate_settings(settings: ProblemDetailsSettings, *components: object) -> None:
    """Push settings into every component that declares interest in them."""
    for component in components:
        if isinstance(component, SettingsAware):
            logger.debug("Setting problem details configuration for %s", type(component).__name__)
            component.apply_settings(settings)


@lru_cache(maxsize=1)
def get_problem_details_settings() -> ProblemDetailsSettings:
    """Load problem details settings from the environment."""
    return ProblemDetailsSettings(
        report_all_errors=_get_bool_env(f"{ENV_PREFIX}REPORT_ALL_ERRORS", False),
        log_errors=_get_bool_env(f"{ENV_PREFIX}LOG_ERRORS", False),
        send_stack_trace=_get_bool_env(f"{ENV_PREFIX}SEND_STACK_TRACE", False),
        open_registry=_get_bool_env(f"{ENV_PREFIX}OPEN_REGISTRY", True),
        duplicate_handlers=DuplicateHandlerPolicy(
            os.getenv(f"{ENV_PREFIX}DUPLICATE_HANDLERS", DuplicateHandlerPolicy.WARN.value).strip().lower()
        ),
        default_locale=os.getenv(f"{ENV_PREFIX}DEFAULT_LOCALE", DEFAULT_LOCALE),
    )
