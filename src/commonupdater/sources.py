"""Version sources.

Two providers answer "what is the latest version of this project":

- ServerVersionProvider: the operator's own feed, a JSON object mapping
  project names to version strings
- GitHubReleaseProvider: the public "latest release" endpoint of a
  publisher's repository

FallbackVersionSource asks the server first and the public index second.
"""

import json
import logging
from dataclasses import dataclass
from typing import Protocol

import httpx
from pydantic import BaseModel, ValidationError

from commonupdater.config import UpdaterConfig
from commonupdater.errors import NetworkError, NotFoundError, ParseError, UpdaterError
from commonupdater.retry import Retrier
from commonupdater.version import Version

logger = logging.getLogger(__name__)


class VersionProvider(Protocol):
    """Protocol for anything that knows a project's latest version."""

    name: str

    async def resolve(self, project_name: str, publisher: str) -> Version:
        """Return the latest published version of ``project_name``."""
        ...

    def artifact_url(self, project_name: str, publisher: str, executable_name: str) -> str:
        """Return the download URL of the latest build of ``executable_name``."""
        ...


async def _get_json(client: httpx.AsyncClient, url: str, headers: dict[str, str] | None = None) -> object:
    """GET ``url`` and decode the JSON body, converting failures to updater errors."""
    try:
        response = await client.get(url, headers=headers)
        response.raise_for_status()
    except httpx.HTTPStatusError as err:
        raise NetworkError(f"{url} answered {err.response.status_code}") from err
    except (httpx.HTTPError, httpx.InvalidURL) as err:
        raise NetworkError(f"Request to {url} failed: {type(err).__name__}: {err}") from err

    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        raise ParseError(f"Response from {url} is not valid JSON: {err}") from err


class ServerVersionProvider:
    """Look the project up in the operator's version feed."""

    name = "server"

    def __init__(self, client: httpx.AsyncClient, config: UpdaterConfig):
        self._client = client
        self._base_url = config.server_base_url.rstrip("/")

    @property
    def feed_url(self) -> str:
        return f"{self._base_url}/versions.json"

    async def resolve(self, project_name: str, publisher: str) -> Version:
        data = await _get_json(self._client, self.feed_url)
        if not isinstance(data, dict):
            raise ParseError(f"Version feed {self.feed_url} is not a JSON object")

        if project_name not in data:
            raise NotFoundError(project_name, self.feed_url)

        raw = data[project_name]
        if not isinstance(raw, str):
            raise ParseError(f"Version for {project_name!r} in feed is not a string: {raw!r}")

        version = Version.parse(raw.strip())
        logger.debug(f"Server feed reports {project_name} {version}")
        return version

    def artifact_url(self, project_name: str, publisher: str, executable_name: str) -> str:
        return f"{self._base_url}/{project_name}/{executable_name}"


class LatestRelease(BaseModel):
    """The part of a GitHub release payload we rely on."""

    tag_name: str


class GitHubReleaseProvider:
    """Read the tag of the latest GitHub release."""

    name = "github"

    def __init__(self, client: httpx.AsyncClient, config: UpdaterConfig):
        self._client = client
        self._api_url = config.github_api_url.rstrip("/")
        self._site_url = config.github_url.rstrip("/")

    def release_url(self, project_name: str, publisher: str) -> str:
        return f"{self._api_url}/repos/{publisher}/{project_name}/releases/latest"

    async def resolve(self, project_name: str, publisher: str) -> Version:
        url = self.release_url(project_name, publisher)
        data = await _get_json(
            self._client,
            url,
            headers={"Accept": "application/vnd.github+json"},
        )

        try:
            release = LatestRelease.model_validate(data)
        except ValidationError as err:
            raise ParseError(f"Release payload from {url} has no usable tag_name") from err

        # Tags are conventionally "v1.2.3"
        tag = release.tag_name.strip()
        version = Version.parse(tag[1:] if tag[:1] in ("v", "V") else tag)

        logger.info(f"Project Name: {project_name}")
        logger.info(f"Project Author: {publisher}")
        logger.info(f"Project Newest Version On GitHub: {version}")
        return version

    def artifact_url(self, project_name: str, publisher: str, executable_name: str) -> str:
        return f"{self._site_url}/{publisher}/{project_name}/releases/latest/download/{executable_name}"


@dataclass(frozen=True)
class Resolution:
    """A resolved version and the provider that reported it."""

    version: Version
    provider: VersionProvider


class FallbackVersionSource:
    """Resolve through the primary provider, then the fallback.

    Each leg goes through the retrier, so the fallback is only consulted once
    every attempt against the primary has failed.
    """

    def __init__(self, primary: VersionProvider, fallback: VersionProvider, retrier: Retrier):
        self.primary = primary
        self.fallback = fallback
        self._retrier = retrier

    async def resolve(self, project_name: str, publisher: str) -> Resolution:
        """Return the latest version of ``project_name``.

        Raises:
            UpdaterError: The fallback provider's failure, when both fail.
        """
        try:
            version = await self._retrier.run(
                lambda: self.primary.resolve(project_name, publisher),
                label=f"Resolve version from {self.primary.name}",
            )
            return Resolution(version, self.primary)
        except UpdaterError as e:
            logger.warning(
                f"Version provider {self.primary.name} failed ({e}); "
                f"falling back to {self.fallback.name}"
            )

        version = await self._retrier.run(
            lambda: self.fallback.resolve(project_name, publisher),
            label=f"Resolve version from {self.fallback.name}",
        )
        return Resolution(version, self.fallback)


def build_version_source(
    client: httpx.AsyncClient,
    config: UpdaterConfig,
    retrier: Retrier,
) -> FallbackVersionSource:
    """Server feed first, GitHub releases second."""
    return FallbackVersionSource(
        ServerVersionProvider(client, config),
        GitHubReleaseProvider(client, config),
        retrier,
    )
