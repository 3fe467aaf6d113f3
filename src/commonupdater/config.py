"""Process-wide updater configuration.

Built once at start-up and passed explicitly to every component that logs,
talks to the network or spawns the swap helper.
"""

import logging
import os
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Final

import httpx

from commonupdater import __version__
from commonupdater.models import UpdateTarget

logger = logging.getLogger(__name__)

ENV_PREFIX: Final = "COMMONUPDATER_"

DEFAULT_STATE_DIR: Final = Path.home() / ".commonupdater"
DEFAULT_LOG_PATH: Final = DEFAULT_STATE_DIR / "updater.log"

# Operator-controlled feed, preferred over the public release index
DEFAULT_SERVER_BASE_URL: Final = "http://localhost:8080/updates"
DEFAULT_GITHUB_API_URL: Final = "https://api.github.com"
DEFAULT_GITHUB_URL: Final = "https://github.com"

# GitHub rejects API requests without a user agent
USER_AGENT: Final = f"commonupdater/{__version__}"

DEFAULT_MAX_ATTEMPTS: Final = 3
DEFAULT_RETRY_DELAY: Final = 1.0

SELF_PROJECT_NAME: Final = "CommonUpdater"
SELF_EXECUTABLE_NAME: Final = "CommonUpdater.exe" if sys.platform == "win32" else "CommonUpdater"
SELF_PUBLISHER: Final = "XKaguya"

HELPER_EXECUTABLE_NAME: Final = (
    "commonupdater-helper.exe" if sys.platform == "win32" else "commonupdater-helper"
)


def is_frozen() -> bool:
    """Whether we are running as a bundled executable rather than from a Python install."""
    return bool(getattr(sys, "frozen", False))


def default_helper_command() -> tuple[str, ...]:
    """Command prefix used to start the swap helper.

    A frozen build ships the helper binary next to itself. Its
    ``sys.executable`` is the updater, not an interpreter, so there is no
    module fallback and a missing helper is only reported. Otherwise the
    helper module is run with the current interpreter.
    """
    if is_frozen():
        bundled = Path(sys.executable).with_name(HELPER_EXECUTABLE_NAME)
        if not bundled.exists():
            logger.error(f"Swap helper not found at {bundled}; updates cannot be applied")
        return (str(bundled),)
    return (sys.executable, "-m", "commonupdater.swap")


@dataclass(frozen=True)
class UpdaterConfig:
    """Configuration for one updater process."""

    log_path: Path = DEFAULT_LOG_PATH
    server_base_url: str = DEFAULT_SERVER_BASE_URL
    github_api_url: str = DEFAULT_GITHUB_API_URL
    github_url: str = DEFAULT_GITHUB_URL
    user_agent: str = USER_AGENT

    # Retry policy shared by every network call
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retry_delay: float = DEFAULT_RETRY_DELAY

    # None means wait indefinitely
    request_timeout: float | None = None
    process_wait_timeout: float | None = None

    # Identity used when the updater checks for its own new builds
    self_project_name: str = SELF_PROJECT_NAME
    self_executable_name: str = SELF_EXECUTABLE_NAME
    self_publisher: str = SELF_PUBLISHER
    self_update: bool = True

    helper_command: tuple[str, ...] = field(default_factory=default_helper_command)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.retry_delay < 0:
            raise ValueError(f"retry_delay must not be negative, got {self.retry_delay}")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides) -> "UpdaterConfig":
        """Build a config from ``COMMONUPDATER_*`` environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``.
            **overrides: Field values that win over both defaults and environment.

        Returns:
            UpdaterConfig with environment values applied.
        """
        env = os.environ if environ is None else environ
        values: dict = {}

        def get(name: str) -> str | None:
            value = env.get(f"{ENV_PREFIX}{name}")
            return value.strip() if value and value.strip() else None

        if log_path := get("LOG_PATH"):
            values["log_path"] = Path(log_path).expanduser()
        if publisher := get("SELF_PUBLISHER"):
            values["self_publisher"] = publisher
        if server_url := get("SERVER_URL"):
            values["server_base_url"] = server_url.rstrip("/")
        if api_url := get("GITHUB_API_URL"):
            values["github_api_url"] = api_url.rstrip("/")
        if github_url := get("GITHUB_URL"):
            values["github_url"] = github_url.rstrip("/")
        if attempts := get("MAX_ATTEMPTS"):
            values["max_attempts"] = int(attempts)
        if delay := get("RETRY_DELAY"):
            values["retry_delay"] = float(delay)
        if timeout := get("REQUEST_TIMEOUT"):
            values["request_timeout"] = float(timeout)
        if wait := get("PROCESS_WAIT_TIMEOUT"):
            values["process_wait_timeout"] = float(wait)
        if self_update := get("SELF_UPDATE"):
            values["self_update"] = self_update.lower() not in ("0", "false", "no", "off")

        values.update(overrides)
        return cls(**values)

    def with_overrides(self, **changes) -> "UpdaterConfig":
        return replace(self, **changes)


def build_http_client(config: UpdaterConfig) -> httpx.AsyncClient:
    """Create the HTTP client shared by the version sources and the downloader."""
    return httpx.AsyncClient(
        headers={"User-Agent": config.user_agent},
        timeout=config.request_timeout,
        follow_redirects=True,
    )


def build_self_target(config: UpdaterConfig) -> UpdateTarget | None:
    """Describe the updater's own executable as an update target.

    Returns None when self-update is disabled or when running from a Python
    install, where ``sys.executable`` is the interpreter and must never be
    replaced.
    """
    if not config.self_update or not is_frozen():
        return None

    install_path = Path(sys.executable).absolute()
    return UpdateTarget(
        project_name=config.self_project_name,
        executable_name=config.self_executable_name,
        publisher=config.self_publisher,
        current_version=__version__,
        install_path=install_path,
        download_path=install_path.with_name(f"{install_path.name}.new"),
    )
