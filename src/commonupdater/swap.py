"""Swap helper: replace an executable after its owner has exited.

Runs as its own short-lived process and depends on nothing but the standard
library, so it can be frozen and shipped next to the updater without an
update path of its own.

Usage: commonupdater-helper <parent_pid> <target_path> <new_path>

A parent pid of 0 means there is no process to kill.
"""

import logging
import os
import signal
import subprocess
import sys
import time
from collections.abc import Callable
from pathlib import Path

from commonupdater.handoff import HelperHandoff

logger = logging.getLogger("commonupdater.swap")

USAGE = "Usage: commonupdater-helper <parentProcessId> <targetExePath> <newExePath>"

# Time for the OS to release the killed parent's file handles
SETTLE_DELAY = 0.5
# Extra margin for filesystems with deferred delete semantics
HANDLE_RELEASE_DELAY = 0.5


def terminate_parent(pid: int) -> None:
    """Kill ``pid``; a parent that already exited is not an error."""
    try:
        os.kill(pid, signal.SIGTERM)
        logger.info(f"Terminated parent process {pid}")
    except ProcessLookupError:
        logger.info(f"Parent process {pid} already exited")
    except OSError as e:
        logger.warning(f"Could not terminate parent process {pid}: {e}")


def start_detached(path: Path) -> subprocess.Popen:
    """Start ``path`` in its own directory, independent of this process."""
    kwargs: dict = {"cwd": str(path.parent), "close_fds": True}
    if sys.platform == "win32":
        kwargs["creationflags"] = subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
    else:
        kwargs["start_new_session"] = True
    return subprocess.Popen([str(path)], **kwargs)


def perform_swap(
    handoff: HelperHandoff,
    *,
    sleep: Callable[[float], None] = time.sleep,
    kill: Callable[[int], None] = terminate_parent,
    start: Callable[[Path], object] = start_detached,
) -> bool:
    """Delete the old file, move the new one into its place and start it.

    There is no retry and no rollback: once the old file is deleted a failed
    move leaves nothing at the target path.

    Returns:
        True on success, False if any filesystem or start step failed.
    """
    if handoff.parent_pid:
        kill(handoff.parent_pid)
        sleep(SETTLE_DELAY)
    sleep(HANDLE_RELEASE_DELAY)

    target = handoff.target_path
    new = handoff.new_path
    try:
        if target.exists():
            target.unlink()
            logger.info(f"Deleted {target}")

        os.replace(new, target)
        logger.info(f"Moved {new} to {target}")

        if os.name == "posix":
            target.chmod(target.stat().st_mode | 0o111)

        start(target)
        logger.info(f"Started {target}")
    except OSError as e:
        logger.error(f"Update failed: {e}")
        return False
    return True


def main(argv: list[str] | None = None) -> int:
    """Entry point of the helper process."""
    args = sys.argv[1:] if argv is None else argv
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stdout,
    )

    if len(args) != 3:
        print(USAGE)
        return 1

    logger.info(" ".join(args))
    try:
        handoff = HelperHandoff.from_argv(args)
    except ValueError:
        logger.error("Invalid parent process ID.")
        return 1

    return 0 if perform_swap(handoff) else 1


if __name__ == "__main__":
    sys.exit(main())
