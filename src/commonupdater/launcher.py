"""Spawning the swap helper."""

import asyncio
import logging
import shutil
import subprocess
import sys

from commonupdater.config import UpdaterConfig
from commonupdater.errors import ProcessError
from commonupdater.handoff import HelperHandoff

logger = logging.getLogger(__name__)


def _detach_kwargs() -> dict:
    """Keyword arguments that start a child outside our process group.

    The helper must outlive this process: in the self-update case it kills us.
    """
    if sys.platform == "win32":
        return {
            "creationflags": subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP,
        }
    return {"start_new_session": True}


class HelperLauncher:
    """Start the swap helper detached and wait for it to finish."""

    def __init__(self, config: UpdaterConfig):
        self._command = tuple(config.helper_command)

    def command_for(self, handoff: HelperHandoff) -> list[str]:
        return [*self._command, *handoff.to_argv()]

    def ensure_available(self) -> None:
        """Raise ProcessError unless the helper program can be found.

        The orchestrator calls this before anything is downloaded or stopped.
        """
        program = self._command[0] if self._command else ""
        if not program or shutil.which(program) is None:
            raise ProcessError(f"Swap helper not found: {program or '(empty command)'}")

    async def launch(self, handoff: HelperHandoff) -> int:
        """Run the helper for ``handoff`` and return its exit code.

        Raises:
            ProcessError: If the helper cannot be started or reports failure.
        """
        cmd = self.command_for(handoff)
        logger.info(f"Starting swap helper: {' '.join(cmd)}")
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                **_detach_kwargs(),
            )
        except OSError as err:
            raise ProcessError(f"Failed to start swap helper {cmd[0]}: {err}") from err

        returncode = await process.wait()
        if returncode != 0:
            raise ProcessError(f"Swap helper exited with code {returncode}")

        logger.debug(f"Swap helper {process.pid} finished")
        return returncode
