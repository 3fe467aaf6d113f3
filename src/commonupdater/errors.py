"""Error taxonomy for the updater.

Every failure that can end an update run is one of these. Third-party
exceptions (httpx, json, pydantic, psutil, OSError) are converted at the
component boundary so the orchestrator only ever has to catch
:class:`UpdaterError`.
"""


class UpdaterError(Exception):
    """Base class for all updater failures."""

    pass


class NetworkError(UpdaterError):
    """Raised when an endpoint is unreachable or answers with a non-success status."""

    pass


class ParseError(UpdaterError):
    """Raised when a version string or a response body is malformed."""

    pass


class NotFoundError(UpdaterError):
    """Raised when the server feed does not know the requested project."""

    def __init__(self, project_name: str, feed_url: str):
        self.project_name = project_name
        self.feed_url = feed_url
        super().__init__(f"Project {project_name!r} not found in version feed {feed_url}")


class IoError(UpdaterError):
    """Raised when a file cannot be written, removed or moved."""

    pass


class ProcessError(UpdaterError):
    """Raised when a process cannot be spawned or terminated."""

    pass
