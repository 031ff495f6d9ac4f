"""Pytest configuration and shared fixtures."""

import os

import pytest

# The contextspec plugin is registered via a ``pytest11`` entry point
# (pyproject.toml) for external consumers.  Our own suite disables it
# (``-p no:contextspec``): test modules define fixture classes as test
# data, which the plugin would otherwise collect and run.  The plugin
# itself is exercised in-process through ``pytester``.
pytest_plugins = ["pytester"]


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (run pytest in-process via pytester)"
    )


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Strip ``CONTEXTSPEC_*`` variables exported by the host."""
    for key in list(os.environ):
        if key.startswith("CONTEXTSPEC_"):
            monkeypatch.delenv(key)
