"""Stopping running copies of an executable."""

import logging
import os
import sys
from pathlib import Path

import psutil

logger = logging.getLogger(__name__)


def _normalise(name: str) -> str:
    # Windows image names are case-insensitive
    return name.casefold() if sys.platform == "win32" else name


def _image_names(executable_name: str) -> set[str]:
    """Names a running copy may report: the file name itself or its stem."""
    stem = Path(executable_name).stem
    names = {executable_name, stem}
    if sys.platform == "win32":
        names.add(f"{stem}.exe")
    return {_normalise(name) for name in names}


class ProcessReaper:
    """Kill every running process whose image matches an executable name.

    Best effort: a process that cannot be stopped is logged and skipped, and
    a process started after enumeration is not seen at all.
    """

    def __init__(self, wait_timeout: float | None = None):
        self._wait_timeout = wait_timeout

    def find(self, executable_name: str) -> list[psutil.Process]:
        """Running processes matching ``executable_name``, excluding this one."""
        wanted = _image_names(executable_name)
        own_pid = os.getpid()
        matches = []
        for proc in psutil.process_iter(["pid", "name"]):
            name = proc.info.get("name")
            if not name or proc.info.get("pid") == own_pid:
                continue
            if _normalise(name) in wanted:
                matches.append(proc)
        return matches

    def stop_all(self, executable_name: str) -> int:
        """Kill matching processes and wait for each to exit.

        Args:
            executable_name: File name of the executable, with or without extension.

        Returns:
            Number of processes stopped.
        """
        stopped = 0
        for proc in self.find(executable_name):
            try:
                logger.info(f"Stopping {proc.info.get('name')} (pid {proc.pid})")
                proc.kill()
                proc.wait(timeout=self._wait_timeout)
                stopped += 1
            except psutil.NoSuchProcess:
                logger.debug(f"Process {proc.pid} already exited")
            except (psutil.Error, OSError) as e:
                logger.warning(f"Failed to kill process {proc.pid}: {type(e).__name__}: {e}")

        logger.info(f"Stopped {stopped} running instance(s) of {executable_name}")
        return stopped
