"""Update orchestration.

The update flow for one target is:
1. Resolve the latest version (server feed, then GitHub releases)
2. Compare it with the running version
3. Download the new build next to the installed one
4. Stop running copies of the executable
5. Hand the file swap to the helper process, which also relaunches

Steps run strictly one after another. The orchestrator never touches the
installed file itself: when it is updating its own binary that file is
the one it is executing from.
"""

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable

import httpx

from commonupdater.config import UpdaterConfig
from commonupdater.download import Downloader
from commonupdater.errors import IoError, UpdaterError
from commonupdater.handoff import HelperHandoff
from commonupdater.launcher import HelperLauncher
from commonupdater.models import OutcomeKind, UpdateOutcome, UpdateState, UpdateTarget
from commonupdater.reaper import ProcessReaper
from commonupdater.retry import Retrier
from commonupdater.sources import FallbackVersionSource, build_version_source
from commonupdater.version import Version

logger = logging.getLogger(__name__)


class UpdateOrchestrator:
    """Drive one target through the update state machine.

    The machine depends only on the target and the injected collaborators,
    so the same instance updates the updater itself and then the caller's
    application.
    """

    def __init__(
        self,
        version_source: FallbackVersionSource,
        downloader: Downloader,
        reaper: ProcessReaper,
        launcher: HelperLauncher,
        retrier: Retrier,
    ):
        self._version_source = version_source
        self._downloader = downloader
        self._reaper = reaper
        self._launcher = launcher
        self._retrier = retrier

    async def run(
        self,
        target: UpdateTarget,
        parent_pid: int = 0,
        self_update: bool = False,
    ) -> UpdateOutcome:
        """Update ``target`` if a newer build exists.

        Args:
            target: Application to update.
            parent_pid: Process the helper must kill before swapping files,
                0 when no process stands in the way.
            self_update: Marks the outcome as the updater's own update.

        Returns:
            UpdateOutcome. Updater errors never escape; they end in FAILED.
        """
        outcome = UpdateOutcome(
            kind=OutcomeKind.FAILED,
            current_version=target.current_version,
            self_update=self_update,
        )

        def enter(state: UpdateState) -> None:
            outcome.states.append(state)
            logger.info(f"{target.project_name}: {state.value}")

        enter(UpdateState.START)
        try:
            enter(UpdateState.RESOLVING_VERSION)
            resolution = await self._version_source.resolve(target.project_name, target.publisher)
            outcome.latest_version = str(resolution.version)

            enter(UpdateState.COMPARING)
            current = Version.parse(target.current_version)
            latest = resolution.version
            logger.info(
                f"{target.project_name}: installed {current}, latest {latest} "
                f"(from {resolution.provider.name})"
            )

            if current == latest:
                enter(UpdateState.ALREADY_LATEST)
                logger.info("You are already using the latest version.")
                outcome.kind = OutcomeKind.ALREADY_LATEST
                return outcome

            if current > latest:
                enter(UpdateState.NEWER_LOCAL)
                logger.info("You are using a testing version.")
                outcome.kind = OutcomeKind.RUNNING_NEWER_THAN_REMOTE
                return outcome

            enter(UpdateState.DOWNLOADING)
            if target.download_path == target.install_path:
                raise IoError(f"Download path must differ from the install path: {target.install_path}")
            self._launcher.ensure_available()
            url = resolution.provider.artifact_url(
                target.project_name, target.publisher, target.executable_name
            )
            await self._retrier.run(
                lambda: self._downloader.fetch(url, target.download_path),
                label=f"Download {target.executable_name}",
            )

            enter(UpdateState.TERMINATING)
            await self._stop_running_copies(target)

            enter(UpdateState.SWAPPING)
            handoff = HelperHandoff(
                parent_pid=parent_pid,
                target_path=target.install_path,
                new_path=target.download_path,
            )
            outcome.handoff = handoff
            await self._launcher.launch(handoff)

            enter(UpdateState.RELAUNCHING)
            enter(UpdateState.DONE)
            logger.info(f"{target.project_name} updated to {latest}.")
            outcome.kind = OutcomeKind.UPDATED
            return outcome

        except UpdaterError as e:
            enter(UpdateState.FAILED)
            logger.error(f"Update of {target.project_name} failed: {e}")
            outcome.kind = OutcomeKind.FAILED
            outcome.reason = str(e)
            return outcome

    async def run_with_self_update(
        self,
        target: UpdateTarget,
        self_target: UpdateTarget | None = None,
    ) -> UpdateOutcome:
        """Update the updater first, then ``target``.

        When the updater itself was replaced the target is not processed:
        the helper kills this process and whoever launched us re-issues the
        request against the new binary.
        """
        if self_target is not None:
            logger.info(f"Checking for a newer {self_target.project_name}")
            self_outcome = await self.run(self_target, parent_pid=os.getpid(), self_update=True)
            if self_outcome.kind == OutcomeKind.UPDATED:
                logger.info("Updater replaced itself; re-run the update with the new build")
                return self_outcome
            if not self_outcome.succeeded:
                logger.warning(
                    f"Self-update check failed ({self_outcome.reason}); continuing with "
                    f"{target.project_name}"
                )

        return await self.run(target)

    async def _stop_running_copies(self, target: UpdateTarget) -> None:
        # Best effort: survivors only make the helper's delete fail later
        try:
            await asyncio.to_thread(self._reaper.stop_all, target.executable_name)
        except Exception as e:
            logger.warning(
                f"Could not stop running copies of {target.executable_name}: "
                f"{type(e).__name__}: {e}"
            )


def build_orchestrator(
    config: UpdaterConfig,
    client: httpx.AsyncClient,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> UpdateOrchestrator:
    """Wire the production collaborators from ``config``."""
    retrier = Retrier(max_attempts=config.max_attempts, delay=config.retry_delay, sleep=sleep)
    return UpdateOrchestrator(
        version_source=build_version_source(client, config, retrier),
        downloader=Downloader(client),
        reaper=ProcessReaper(wait_timeout=config.process_wait_timeout),
        launcher=HelperLauncher(config),
        retrier=retrier,
    )
