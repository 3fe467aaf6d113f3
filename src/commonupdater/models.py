"""Data carried through one update run.

- UpdateTarget: what is being updated, built from the command line
- HelperHandoff: what the swap helper receives (defined in handoff)
- UpdateOutcome: the terminal result of one orchestrator run
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, field_validator

from commonupdater.handoff import HelperHandoff


class UpdateState(str, Enum):
    """States of the update state machine."""

    START = "start"
    RESOLVING_VERSION = "resolving_version"
    COMPARING = "comparing"
    ALREADY_LATEST = "already_latest"
    NEWER_LOCAL = "newer_local"
    DOWNLOADING = "downloading"
    TERMINATING = "terminating"
    SWAPPING = "swapping"
    RELAUNCHING = "relaunching"
    DONE = "done"
    FAILED = "failed"


class OutcomeKind(str, Enum):
    """Result of an orchestrator run."""

    ALREADY_LATEST = "already_latest"
    RUNNING_NEWER_THAN_REMOTE = "running_newer_than_remote"
    UPDATED = "updated"
    FAILED = "failed"


class UpdateTarget(BaseModel):
    """The application being updated.

    Read-only for the duration of a run.
    """

    model_config = ConfigDict(frozen=True)

    project_name: str
    executable_name: str
    publisher: str
    current_version: str
    install_path: Path
    download_path: Path

    @field_validator("project_name", "executable_name", "publisher", "current_version")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("install_path", "download_path")
    @classmethod
    def _absolute(cls, value: Path) -> Path:
        return value.expanduser().absolute()

    @property
    def base_name(self) -> str:
        """Executable name without its extension, as process tables report it."""
        return Path(self.executable_name).stem


@dataclass
class UpdateOutcome:
    """Result of one orchestrator run. Never persisted."""

    kind: OutcomeKind
    current_version: str
    latest_version: str | None = None
    reason: str | None = None
    states: list[UpdateState] = field(default_factory=list)
    handoff: HelperHandoff | None = None
    self_update: bool = False

    @property
    def succeeded(self) -> bool:
        return self.kind != OutcomeKind.FAILED

    @property
    def final_state(self) -> UpdateState | None:
        return self.states[-1] if self.states else None
