"""Shared pytest fixtures for problem details test suites."""

from collections.abc import Generator
from pathlib import Path
import sys

import pytest
from fastapi.testclient import TestClient

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Provide a test client for the sample application."""
    from problem_details.main import app

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def _reset_cached_settings() -> Generator[None, None, None]:
    from problem_details.core.config import get_problem_details_settings

    get_problem_details_settings.cache_clear()
    yield
    get_problem_details_settings.cache_clear()
