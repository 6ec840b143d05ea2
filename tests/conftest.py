"""Root pytest configuration for all tests."""

from __future__ import annotations

import pytest

from contextprune.config import reset_config

# Configure pytest-asyncio to use auto mode
# This is redundant with pyproject.toml but ensures it's set
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(scope="session")
def anyio_backend():
    """Set anyio backend to asyncio."""
    return "asyncio"


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """Keep the user's real config files and env out of every test."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.delenv("CONTEXTPRUNE_CONFIG_DIR", raising=False)
    monkeypatch.delenv("CONTEXTPRUNE_LOG", raising=False)
    monkeypatch.delenv("CONTEXTPRUNE_DEBUG", raising=False)
    reset_config()
    yield
    reset_config()
