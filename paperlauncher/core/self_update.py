"""Self-update sequencer — replaces the launcher's own executable.

State machine::

    idle -> checking -> no_update
                     -> update_available -> downloading -> validating
                                         -> installing -> done
    (any non-terminal state) -> failed

Enforces:
- Valid transitions only (VALID_TRANSITIONS table), every one recorded
- No self-update from an unversioned (``dev``) build
- Download and validation failures leave the live executable untouched
- The install swap ignores cancellation and restores the backup on failure
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Callable
from pathlib import Path

from paperlauncher.core.context import LaunchContext
from paperlauncher.core.errors import (
    FilesystemError,
    InstallFailedRestoredError,
    InstallFailedUnrecoverableError,
    LauncherError,
    OperationCancelledError,
    UpstreamUnavailableError,
)
from paperlauncher.core.feeds import ReleaseFeedClient
from paperlauncher.core.fetcher import ProgressObserver, ResilientFetcher
from paperlauncher.core.versioning import is_release_version
from paperlauncher.models.releases import ReleaseAsset, ReleaseDescriptor
from paperlauncher.models.update import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    SelfUpdateOutcome,
    StagedUpdate,
    UpdateState,
    UpdateTransition,
)

logger = logging.getLogger(__name__)

EXECUTABLE_MODE = 0o755

ConfirmCallback = Callable[[str], bool]


class InvalidTransitionError(RuntimeError):
    """Raised when a requested self-update state transition is not valid."""


def resolve_executable_path() -> Path | None:
    """Return the path of the running standalone executable.

    Only frozen (single-binary) builds replace themselves; running from a
    Python installation returns ``None``.
    """
    if not getattr(sys, "frozen", False):
        return None
    return Path(sys.executable).resolve()


def _make_executable(path: Path) -> None:
    if os.name != "nt":
        os.chmod(path, EXECUTABLE_MODE)


class SelfUpdateSequencer:
    """Drives one self-update attempt through the update state machine.

    Parameters
    ----------
    context:
        Launch context (current version, cancel event).
    feed:
        Release feed client for the launcher.
    fetcher:
        Resilient fetcher used to download the new executable.
    executable_path:
        The live executable to replace. ``None`` disables self-update.
    platform:
        ``(os, arch)`` override for asset selection; the host by default.
    """

    def __init__(
        self,
        context: LaunchContext,
        feed: ReleaseFeedClient,
        fetcher: ResilientFetcher,
        executable_path: Path | None,
        *,
        platform: tuple[str, str] | None = None,
    ) -> None:
        self._ctx = context
        self._feed = feed
        self._fetcher = fetcher
        self._executable = Path(executable_path) if executable_path else None
        self._platform = platform
        self._state = UpdateState.IDLE
        self._history: list[UpdateTransition] = []
        self._release: ReleaseDescriptor | None = None
        self._asset: ReleaseAsset | None = None

    # ------------------------------------------------------------------
    # State management
    # ------------------------------------------------------------------

    @property
    def state(self) -> UpdateState:
        return self._state

    @property
    def history(self) -> list[UpdateTransition]:
        return list(self._history)

    @property
    def release(self) -> ReleaseDescriptor | None:
        return self._release

    @property
    def staging(self) -> StagedUpdate | None:
        if self._executable is None:
            return None
        return StagedUpdate(target=self._executable)

    def _transition(self, target: UpdateState, reason: str = "") -> None:
        allowed = VALID_TRANSITIONS.get(self._state, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition self-update from {self._state.value} to "
                f"{target.value}. Allowed: {sorted(s.value for s in allowed)}"
            )
        self._history.append(
            UpdateTransition(from_state=self._state, to_state=target, reason=reason)
        )
        logger.debug("Self-update %s -> %s %s", self._state.value, target.value, reason)
        self._state = target

    def _fail(self, reason: str) -> None:
        if self._state not in TERMINAL_STATES:
            self._transition(UpdateState.FAILED, reason)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def check(self) -> ReleaseDescriptor | None:
        """Ask the release feed for a newer version.

        Ends in ``update_available`` (returns the release), ``no_update``
        or ``failed`` (feed unavailable; logged, never raised).
        """
        self._transition(UpdateState.CHECKING)
        current = self._ctx.launcher_version

        if not is_release_version(current):
            self._transition(UpdateState.NO_UPDATE, "unversioned development build")
            return None
        if self._executable is None:
            self._transition(UpdateState.NO_UPDATE, "not running from a standalone executable")
            return None

        try:
            release = self._feed.check_for_update(current)
        except UpstreamUnavailableError as exc:
            logger.warning("Failed to check for launcher updates: %s", exc)
            self._transition(UpdateState.FAILED, str(exc))
            return None

        if release is None:
            self._transition(UpdateState.NO_UPDATE, "already up to date")
            return None

        asset = self._feed.asset_for(release, self._platform)
        if asset is None:
            logger.info(
                "Launcher %s is available but has no build for this platform",
                release.tag,
            )
            self._transition(UpdateState.NO_UPDATE, "no asset for this platform")
            return None

        self._release = release
        self._asset = asset
        self._transition(UpdateState.UPDATE_AVAILABLE, release.tag)
        return release

    def decline(self) -> None:
        """Record that the user chose not to update."""
        self._transition(UpdateState.NO_UPDATE, "declined")

    def download(self, progress: ProgressObserver | None = None) -> Path:
        """Fetch the platform asset to ``<exe>.new``."""
        if self._asset is None or self._executable is None:
            raise InvalidTransitionError("download requires an available update")
        self._transition(UpdateState.DOWNLOADING, self._asset.name)
        staged = StagedUpdate(target=self._executable).staged_path

        url, headers = self._feed.download_request(self._asset)
        if not url:
            raise UpstreamUnavailableError(f"asset {self._asset.name} has no download URL")
        self._fetcher.fetch(url, staged, headers=headers, progress=progress)
        try:
            _make_executable(staged)
        except OSError as exc:
            raise FilesystemError(
                f"failed to set executable permissions on {staged}: {exc}"
            ) from exc
        return staged

    def validate(self, staged: Path) -> None:
        """Minimal integrity check of a raw executable: non-empty and readable."""
        self._transition(UpdateState.VALIDATING)
        staged = Path(staged)
        try:
            size = staged.stat().st_size
            with staged.open("rb") as handle:
                handle.read(1)
        except OSError as exc:
            raise FilesystemError(f"failed to read update file {staged}: {exc}") from exc
        if size == 0:
            raise FilesystemError(f"update file is empty: {staged}")

    def install(self, staged: Path) -> None:
        """Swap the staged executable into place.

        Not cancellable: once the first rename happens the sequence runs to
        completion, restoring the backup if the second rename fails.
        """
        if self._executable is None:
            raise InvalidTransitionError("install requires an executable path")
        self._transition(UpdateState.INSTALLING)
        live = self._executable
        backup = StagedUpdate(target=live).backup_path

        try:
            if backup.exists():
                backup.unlink()
            os.replace(live, backup)
        except OSError as exc:
            raise FilesystemError(f"failed to back up current executable: {exc}") from exc

        try:
            os.replace(staged, live)
        except OSError as exc:
            try:
                os.replace(backup, live)
            except OSError as restore_exc:
                raise InstallFailedUnrecoverableError(
                    live,
                    backup,
                    f"failed to install update and restore backup: {exc} "
                    f"(restore error: {restore_exc}). The previous launcher "
                    f"was left at {backup}",
                ) from exc
            raise InstallFailedRestoredError(
                f"failed to install update (backup restored): {exc}"
            ) from exc

        try:
            _make_executable(live)
        except OSError as exc:
            logger.warning("Failed to set executable permissions on %s: %s", live, exc)
        self._transition(UpdateState.DONE, f"backup at {backup}")

    # ------------------------------------------------------------------
    # Full sequence
    # ------------------------------------------------------------------

    def run(
        self,
        *,
        auto_update: bool,
        confirm: ConfirmCallback | None = None,
        progress: ProgressObserver | None = None,
    ) -> SelfUpdateOutcome:
        """Check, and if accepted download, validate and install.

        Only ``InstallFailedUnrecoverableError`` and cancellation escape;
        every other failure is reported in the returned outcome with the
        live executable untouched.
        """
        if self._state == UpdateState.IDLE:
            self.check()
        if self._state != UpdateState.UPDATE_AVAILABLE:
            return self.outcome()

        release = self._release
        if release is None:
            raise InvalidTransitionError("update available without a release")
        if release.summary:
            logger.info("Release notes: %s", release.summary)

        if not auto_update:
            question = f"Do you want to update the launcher to {release.tag}?"
            if confirm is None or not confirm(question):
                self.decline()
                return self.outcome()
        else:
            logger.info("Auto-updating launcher to %s", release.tag)

        staged: Path | None = None
        try:
            staged = self.download(progress)
            self.validate(staged)
        except OperationCancelledError:
            self._discard_staging()
            self._fail("cancelled")
            raise
        except LauncherError as exc:
            logger.error("Launcher update failed: %s", exc)
            self._discard_staging()
            self._fail(str(exc))
            return self.outcome(error=str(exc))

        try:
            self.install(staged)
        except InstallFailedUnrecoverableError as exc:
            self._fail(str(exc))
            raise
        except LauncherError as exc:
            logger.error("Failed to install update: %s", exc)
            self._discard_staging()
            self._fail(str(exc))
            return self.outcome(error=str(exc))

        logger.info("Launcher updated to %s; restart required", release.tag)
        return self.outcome()

    def _discard_staging(self) -> None:
        staging = self.staging
        if staging is None:
            return
        for path in (staging.part_path, staging.staged_path):
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Failed to remove staging file %s: %s", path, exc)

    def outcome(self, error: str | None = None) -> SelfUpdateOutcome:
        staging = self.staging
        reason = self._history[-1].reason if self._history else ""
        return SelfUpdateOutcome(
            state=self._state,
            current_version=self._ctx.launcher_version,
            latest_version=self._release.normalized_version if self._release else None,
            staged_path=staging.staged_path if staging and staging.staged_path.exists() else None,
            backup_path=staging.backup_path if staging and staging.backup_path.exists() else None,
            error=error,
            reason=reason,
        )
