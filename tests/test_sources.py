"""Tests for version providers and the fallback source."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from commonupdater.config import UpdaterConfig
from commonupdater.errors import NetworkError, NotFoundError, ParseError
from commonupdater.retry import Retrier
from commonupdater.sources import (
    FallbackVersionSource,
    GitHubReleaseProvider,
    ServerVersionProvider,
    build_version_source,
)
from commonupdater.version import Version


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _json(payload: object, status: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=payload)

    return handler


class FakeProvider:
    """Provider answering from a canned result or error."""

    def __init__(self, name: str, result: Version | Exception):
        self.name = name
        self._result = result
        self.calls = 0

    async def resolve(self, project_name: str, publisher: str) -> Version:
        self.calls += 1
        if isinstance(self._result, Exception):
            raise self._result
        return self._result

    def artifact_url(self, project_name: str, publisher: str, executable_name: str) -> str:
        return f"https://{self.name}.test/{executable_name}"


class TestServerVersionProvider:
    """Tests for ServerVersionProvider."""

    @pytest.mark.asyncio
    async def test_resolves_project_from_feed(self, config: UpdaterConfig) -> None:
        """Should request the feed once and read the project's entry."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"Demo": "1.4.2", "Other": "9.0"})

        async with _client(handler) as client:
            version = await ServerVersionProvider(client, config).resolve("Demo", "acme")

        assert version == Version.parse("1.4.2")
        assert len(requests) == 1
        assert str(requests[0].url) == "https://updates.test/versions.json"

    @pytest.mark.asyncio
    async def test_missing_project_is_not_found(self, config: UpdaterConfig) -> None:
        """Should raise NotFoundError when the feed lacks the project."""
        async with _client(_json({"Other": "1.0"})) as client:
            with pytest.raises(NotFoundError) as exc_info:
                await ServerVersionProvider(client, config).resolve("Demo", "acme")

        assert exc_info.value.project_name == "Demo"

    @pytest.mark.asyncio
    async def test_server_error_is_network_error(self, config: UpdaterConfig) -> None:
        """Should raise NetworkError on a non-success status."""
        async with _client(_json({}, status=503)) as client:
            with pytest.raises(NetworkError, match="503"):
                await ServerVersionProvider(client, config).resolve("Demo", "acme")

    @pytest.mark.asyncio
    async def test_connection_failure_is_network_error(self, config: UpdaterConfig) -> None:
        """Should wrap transport errors."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(NetworkError, match="ConnectError"):
                await ServerVersionProvider(client, config).resolve("Demo", "acme")

    @pytest.mark.asyncio
    async def test_invalid_url_is_network_error(self, config: UpdaterConfig) -> None:
        """Should wrap a server URL httpx cannot parse."""
        handler = MagicMock()
        bad_config = config.with_overrides(server_base_url="http://localhost:notaport/updates")

        async with _client(handler) as client:
            with pytest.raises(NetworkError, match="InvalidURL"):
                await ServerVersionProvider(client, bad_config).resolve("Demo", "acme")

        handler.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload",[["Demo", "1.0"], {"Demo": 1.0}, {"Demo": "one"}])
    async def test_malformed_feed_is_parse_error(self, config: UpdaterConfig, payload: object) -> None:
        """Should raise ParseError for non-object feeds and bad version values."""
        async with _client(_json(payload)) as client:
            with pytest.raises(ParseError):
                await ServerVersionProvider(client, config).resolve("Demo", "acme")

    @pytest.mark.asyncio
    async def test_invalid_json_is_parse_error(self, config: UpdaterConfig) -> None:
        """Should raise ParseError when the body is not JSON."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>maintenance</html>")

        async with _client(handler) as client:
            with pytest.raises(ParseError):
                await ServerVersionProvider(client, config).resolve("Demo", "acme")

    def test_artifact_url(self, config: UpdaterConfig) -> None:
        """Should serve artifacts under the project directory."""
        provider = ServerVersionProvider(MagicMock(spec=httpx.AsyncClient), config)
        assert provider.artifact_url("Demo", "acme", "Demo.exe") == "https://updates.test/Demo/Demo.exe"


class TestGitHubReleaseProvider:
    """Tests for GitHubReleaseProvider."""

    @pytest.mark.asyncio
    async def test_reads_tag_name(self, config: UpdaterConfig) -> None:
        """Should query the latest-release endpoint and strip the v prefix."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"tag_name": "v2.3.1", "name": "Release 2.3.1"})

        async with _client(handler) as client:
            version = await GitHubReleaseProvider(client, config).resolve("Demo", "acme")

        assert version == Version.parse("2.3.1")
        assert str(requests[0].url) == "https://api.github.test/repos/acme/Demo/releases/latest"
        assert requests[0].headers["Accept"] == "application/vnd.github+json"

    @pytest.mark.asyncio
    async def test_plain_tag(self, config: UpdaterConfig) -> None:
        """Should accept tags without a prefix."""
        async with _client(_json({"tag_name": "1.0.0.5"})) as client:
            version = await GitHubReleaseProvider(client, config).resolve("Demo", "acme")

        assert version.parts == (1, 0, 0, 5)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [{}, {"tag_name": None}, {"tag_name": ["v1"]}, {"tag_name": "nightly"}, []],
    )
    async def test_missing_or_bad_tag_is_parse_error(
        self,
        config: UpdaterConfig,
        payload: object,
    ) -> None:
        """Should raise ParseError when tag_name is absent or malformed."""
        async with _client(_json(payload)) as client:
            with pytest.raises(ParseError):
                await GitHubReleaseProvider(client, config).resolve("Demo", "acme")

    @pytest.mark.asyncio
    async def test_not_found_status_is_network_error(self, config: UpdaterConfig) -> None:
        """Should raise NetworkError when the repository has no releases."""
        async with _client(_json({"message": "Not Found"}, status=404)) as client:
            with pytest.raises(NetworkError):
                await GitHubReleaseProvider(client, config).resolve("Demo", "acme")

    def test_artifact_url(self, config: UpdaterConfig) -> None:
        """Should point at the latest release download."""
        provider = GitHubReleaseProvider(MagicMock(spec=httpx.AsyncClient), config)
        assert (
            provider.artifact_url("Demo", "acme", "Demo.exe")
            == "https://github.test/acme/Demo/releases/latest/download/Demo.exe"
        )


class TestFallbackVersionSource:
    """Tests for FallbackVersionSource."""

    @pytest.mark.asyncio
    async def test_prefers_primary(self, retrier: Retrier) -> None:
        """Should not consult the fallback when the primary answers."""
        primary = FakeProvider("server", Version.parse("1.1.0"))
        fallback = FakeProvider("github", Version.parse("9.9.9"))

        resolution = await FallbackVersionSource(primary, fallback, retrier).resolve("Demo", "acme")

        assert resolution.version == Version.parse("1.1.0")
        assert resolution.provider is primary
        assert fallback.calls == 0

    @pytest.mark.asyncio
    async def test_falls_back_after_primary_exhausts_retries(
        self,
        retrier: Retrier,
        sleep: AsyncMock,
    ) -> None:
        """Should use the fallback's version without surfacing the primary's error."""
        primary = FakeProvider("server", NetworkError("unreachable"))
        fallback = FakeProvider("github", Version.parse("1.5.0"))

        resolution = await FallbackVersionSource(primary, fallback, retrier).resolve("Demo", "acme")

        assert resolution.version == Version.parse("1.5.0")
        assert resolution.provider is fallback
        assert primary.calls == 3
        assert fallback.calls == 1
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_falls_back_when_project_unknown(self, retrier: Retrier) -> None:
        """Should treat NotFoundError like any other primary failure."""
        primary = FakeProvider("server", NotFoundError("Demo", "https://updates.test/versions.json"))
        fallback = FakeProvider("github", Version.parse("1.0.1"))

        resolution = await FallbackVersionSource(primary, fallback, retrier).resolve("Demo", "acme")

        assert resolution.provider is fallback

    @pytest.mark.asyncio
    async def test_both_failing_raises_fallback_error(self, retrier: Retrier) -> None:
        """Should propagate the fallback's failure when both legs fail."""
        primary = FakeProvider("server", NetworkError("unreachable"))
        fallback = FakeProvider("github", ParseError("no tag"))

        with pytest.raises(ParseError, match="no tag"):
            await FallbackVersionSource(primary, fallback, retrier).resolve("Demo", "acme")

        assert primary.calls == 3
        assert fallback.calls == 3

    @pytest.mark.asyncio
    async def test_built_source_uses_server_then_github(
        self,
        config: UpdaterConfig,
        retrier: Retrier,
    ) -> None:
        """Should fall from a server that lacks the project to GitHub."""
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.host)
            if request.url.host == "updates.test":
                return httpx.Response(200, content=json.dumps({"Other": "1.0"}).encode())
            return httpx.Response(200, json={"tag_name": "v3.0.0"})

        async with _client(handler) as client:
            source = build_version_source(client, config, retrier)
            resolution = await source.resolve("Demo", "acme")

        assert resolution.version == Version.parse("3.0.0")
        assert resolution.provider.name == "github"
        assert seen == ["updates.test"] * 3 + ["api.github.test"]

    @pytest.mark.asyncio
    async def test_unparseable_server_url_falls_back(
        self,
        config: UpdaterConfig,
        retrier: Retrier,
    ) -> None:
        """Should treat a malformed server URL as a failed primary."""
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.host)
            return httpx.Response(200, json={"tag_name": "v1.0.0"})

        bad_config = config.with_overrides(server_base_url="http://localhost:notaport/updates")
        async with _client(handler) as client:
            source = build_version_source(client, bad_config, retrier)
            resolution = await source.resolve("Demo", "acme")

        assert resolution.version == Version.parse("1.0.0")
        assert resolution.provider.name == "github"
        assert seen == ["api.github.test"]
