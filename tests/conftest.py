"""Pytest configuration and fixtures."""

import logging
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from commonupdater.config import UpdaterConfig
from commonupdater.models import UpdateTarget
from commonupdater.retry import Retrier


@pytest.fixture
def config(tmp_path: Path) -> UpdaterConfig:
    """Config pointing at test hosts, with no retry delay."""
    return UpdaterConfig(
        log_path=tmp_path / "logs" / "updater.log",
        server_base_url="https://updates.test",
        github_api_url="https://api.github.test",
        github_url="https://github.test",
        retry_delay=0.0,
        self_update=False,
        helper_command=("helper",),
    )


@pytest.fixture
def sleep() -> AsyncMock:
    """Stand-in for asyncio.sleep that records delays without waiting."""
    return AsyncMock()


@pytest.fixture
def retrier(sleep: AsyncMock) -> Retrier:
    return Retrier(max_attempts=3, delay=1.0, sleep=sleep)


@pytest.fixture
def make_target(tmp_path: Path):
    """Factory for update targets living under tmp_path."""

    def _make(
        current_version: str = "1.0.0",
        project_name: str = "Demo",
        executable_name: str = "Demo.exe",
        publisher: str = "acme",
    ) -> UpdateTarget:
        return UpdateTarget(
            project_name=project_name,
            executable_name=executable_name,
            publisher=publisher,
            current_version=current_version,
            install_path=tmp_path / "app" / executable_name,
            download_path=tmp_path / "app" / f"{executable_name}.new",
        )

    return _make


@pytest.fixture
def restore_root_logging():
    """Undo logging.basicConfig(force=True) calls made by a test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
