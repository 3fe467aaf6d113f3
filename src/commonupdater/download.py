"""Artifact download."""

import asyncio
import contextlib
import logging
import os
from pathlib import Path

import httpx

from commonupdater.errors import IoError, NetworkError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class Downloader:
    """Stream a remote file to disk.

    Every call starts clean: a file already at the destination, possibly a
    truncated one from an earlier failed attempt, is deleted first. There is
    no resume support.
    """

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def fetch(self, url: str, destination: Path) -> Path:
        """Download ``url`` to ``destination``.

        Args:
            url: Location of the artifact.
            destination: File to write. Its parent directory must exist.

        Returns:
            The destination path.

        Raises:
            NetworkError: On transport failures or a non-success status.
            IoError: If the destination cannot be removed or written.
        """
        destination = Path(destination)
        if not destination.parent.is_dir():
            raise IoError(f"Download directory does not exist: {destination.parent}")

        try:
            destination.unlink(missing_ok=True)
        except OSError as err:
            raise IoError(f"Cannot remove stale file {destination}: {err}") from err

        logger.info(f"Downloading the newest build from {url}")
        written = 0
        try:
            async with self._client.stream("GET", url) as response:
                response.raise_for_status()
                # "x" fails if anything recreated the path since the unlink
                with open(destination, "xb") as fh:
                    async for chunk in response.aiter_bytes(CHUNK_SIZE):
                        await asyncio.to_thread(fh.write, chunk)
                        written += len(chunk)
        except httpx.HTTPStatusError as err:
            raise NetworkError(f"{url} answered {err.response.status_code}") from err
        except (httpx.HTTPError, httpx.InvalidURL) as err:
            raise NetworkError(f"Download of {url} failed: {type(err).__name__}: {err}") from err
        except OSError as err:
            raise IoError(f"Cannot write {destination}: {err}") from err

        if os.name == "posix":
            with contextlib.suppress(OSError):
                destination.chmod(0o755)

        logger.info(f"Downloaded {written} bytes to {destination}")
        return destination
