"""The helper's command-line contract.

Kept free of third-party imports: the swap helper depends on it.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class HelperHandoff:
    """Arguments passed to the swap helper process.

    Crosses the process boundary as three plain strings: the decimal parent
    pid (``0`` for "nothing to kill") and two absolute paths.
    """

    parent_pid: int
    target_path: Path
    new_path: Path

    def to_argv(self) -> list[str]:
        return [str(self.parent_pid), str(self.target_path), str(self.new_path)]

    @classmethod
    def from_argv(cls, argv: list[str]) -> "HelperHandoff":
        """Rebuild a handoff from helper command-line arguments.

        Raises:
            ValueError: If there are not exactly three arguments or the pid
                is not a non-negative integer.
        """
        if len(argv) != 3:
            raise ValueError(f"Expected 3 arguments, got {len(argv)}")
        pid_text, target, new = argv
        pid = int(pid_text)
        if pid < 0:
            raise ValueError(f"Invalid parent process ID: {pid_text}")
        return cls(parent_pid=pid, target_path=Path(target), new_path=Path(new))
