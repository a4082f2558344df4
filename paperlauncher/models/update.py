"""Self-update state machine models — states, transitions, staging paths."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict

PART_SUFFIX = ".part"
STAGED_SUFFIX = ".new"
BACKUP_SUFFIX = ".old"


class UpdateState(str, Enum):
    """States of one self-update attempt."""

    IDLE = "idle"
    CHECKING = "checking"
    NO_UPDATE = "no_update"
    UPDATE_AVAILABLE = "update_available"
    DOWNLOADING = "downloading"
    VALIDATING = "validating"
    INSTALLING = "installing"
    DONE = "done"
    FAILED = "failed"


# Valid state transitions, enforced by SelfUpdateSequencer.
# Terminal states (NO_UPDATE, DONE, FAILED) have no outgoing transitions.
VALID_TRANSITIONS: dict[UpdateState, set[UpdateState]] = {
    UpdateState.IDLE: {UpdateState.CHECKING, UpdateState.FAILED},
    UpdateState.CHECKING: {
        UpdateState.NO_UPDATE,
        UpdateState.UPDATE_AVAILABLE,
        UpdateState.FAILED,
    },
    UpdateState.UPDATE_AVAILABLE: {
        UpdateState.DOWNLOADING,
        UpdateState.NO_UPDATE,  # declined by the user
        UpdateState.FAILED,
    },
    UpdateState.DOWNLOADING: {UpdateState.VALIDATING, UpdateState.FAILED},
    UpdateState.VALIDATING: {UpdateState.INSTALLING, UpdateState.FAILED},
    UpdateState.INSTALLING: {UpdateState.DONE, UpdateState.FAILED},
    UpdateState.NO_UPDATE: set(),
    UpdateState.DONE: set(),
    UpdateState.FAILED: set(),
}

TERMINAL_STATES = frozenset(
    state for state, targets in VALID_TRANSITIONS.items() if not targets
)


class UpdateTransition(BaseModel):
    """Records a single state transition of a self-update attempt."""

    model_config = ConfigDict(frozen=True)

    from_state: UpdateState
    to_state: UpdateState
    reason: str = ""


class StagedUpdate(BaseModel):
    """The on-disk names used while replacing ``target``.

    ``<target>.part`` is the download in progress, ``<target>.new`` the
    validated-but-unswapped file and ``<target>.old`` the one-generation
    backup of the previously live executable.
    """

    model_config = ConfigDict(frozen=True)

    target: Path

    @property
    def staged_path(self) -> Path:
        return self.target.with_name(self.target.name + STAGED_SUFFIX)

    @property
    def part_path(self) -> Path:
        return self.staged_path.with_name(self.staged_path.name + PART_SUFFIX)

    @property
    def backup_path(self) -> Path:
        return self.target.with_name(self.target.name + BACKUP_SUFFIX)


class SelfUpdateOutcome(BaseModel):
    """What a self-update run ended with, for presentation by the CLI."""

    model_config = ConfigDict(frozen=True)

    state: UpdateState
    current_version: str
    latest_version: str | None = None
    staged_path: Path | None = None
    backup_path: Path | None = None
    error: str | None = None
    reason: str = ""

    @property
    def restart_required(self) -> bool:
        return self.state == UpdateState.DONE
