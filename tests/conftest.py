"""Shared fixtures for tests."""

from unittest.mock import patch

import pytest

from regwatch.registry.client import Registry
from regwatch.registry.models import RegistryConfig
from tests.fixtures.fake_registry import FakeRegistry


@pytest.fixture
def registry():
    """Registry client with a short timeout."""
    with Registry(RegistryConfig(timeout=5)) as client:
        yield client


@pytest.fixture
def fake_registry(registry):
    """FakeRegistry wired into the registry client's HTTP session."""
    fake = FakeRegistry()
    with patch.object(registry._session, "get", side_effect=fake) as mock_get:
        fake.mock_get = mock_get
        yield fake


@pytest.fixture(autouse=True)
def log_dir(tmp_path, monkeypatch):
    """Keep log files written by the CLI out of the working tree."""
    monkeypatch.setattr("regwatch.logging_config.LOG_DIR", tmp_path / "logs")
    return tmp_path / "logs"
