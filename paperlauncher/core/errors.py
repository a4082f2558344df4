"""Launcher error taxonomy.

Every failure the core can surface derives from ``LauncherError`` so the CLI
can map outcomes to exit codes in one place:

- ``TransientNetworkError``    : retryable (connection refused, timeout, 5xx)
- ``UpstreamUnavailableError`` : a feed or download is unusable for this run
- ``IntegrityViolationError``  : checksum mismatch or structural corruption
- ``FilesystemError``          : permission, disk full, path conflict
- ``InstallFailedRestoredError`` / ``InstallFailedUnrecoverableError`` :
  self-update swap outcomes
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class LauncherError(RuntimeError):
    """Base class for all launcher failures."""


class ConfigError(LauncherError):
    """Raised when the launcher configuration is missing or invalid."""


class OperationCancelledError(LauncherError):
    """Raised when a blocking operation is interrupted by the cancel event."""


# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------


class TransientNetworkError(LauncherError):
    """A single network attempt failed in a way that may succeed on retry."""


class UpstreamUnavailableError(LauncherError):
    """An upstream feed or download cannot be used during this run."""


class FetchFailedError(UpstreamUnavailableError):
    """Raised when every retry attempt of a request has failed.

    ``last_cause`` holds the final transport exception or HTTP status
    description for diagnostics.
    """

    def __init__(self, url: str, attempts: int, last_cause: object) -> None:
        self.url = url
        self.attempts = attempts
        self.last_cause = last_cause
        super().__init__(
            f"request to {url} failed after {attempts} attempts: {last_cause}"
        )


class ReleaseFeedError(UpstreamUnavailableError):
    """Raised when the release feed answers with a non-200 status."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(message)


# ---------------------------------------------------------------------------
# Integrity
# ---------------------------------------------------------------------------


class IntegrityViolationError(LauncherError):
    """An artifact is not what it is expected to be. Never silently trusted."""


class MalformedDigestError(IntegrityViolationError):
    """Raised when a checksum sidecar does not hold a 64-character hex digest."""


class ChecksumMismatchError(IntegrityViolationError):
    """Raised when an artifact's SHA-256 differs from the expected digest."""

    def __init__(self, path: Path, expected: str, actual: str) -> None:
        self.path = Path(path)
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"checksum mismatch for {path}: expected {expected}, actual {actual}"
        )


class StructureErrorKind(str, Enum):
    """Reasons a file fails structural (zip container) validation."""

    NOT_FOUND = "not_found"
    IS_DIRECTORY = "is_directory"
    EMPTY = "empty"
    TOO_SMALL = "too_small"
    BAD_MAGIC = "bad_magic"
    CORRUPT_CONTAINER = "corrupt_container"
    NO_ENTRIES = "no_entries"


class StructureError(IntegrityViolationError):
    """Raised when a file is not a well-formed archive container."""

    def __init__(
        self,
        kind: StructureErrorKind,
        path: Path,
        detail: str = "",
        *,
        expected: str = "",
        found: str = "",
    ) -> None:
        self.kind = kind
        self.path = Path(path)
        self.expected = expected
        self.found = found
        message = f"{kind.value}: {path}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


# ---------------------------------------------------------------------------
# Filesystem and install
# ---------------------------------------------------------------------------


class FilesystemError(LauncherError):
    """Raised when a local file operation fails."""


class InstallFailedRestoredError(LauncherError):
    """The new executable could not be installed; the previous one is back."""


class InstallFailedUnrecoverableError(LauncherError):
    """The swap failed and the previous executable could not be restored.

    ``backup_path`` is where the previous executable was left, so a human
    can move it back by hand.
    """

    def __init__(self, live_path: Path, backup_path: Path, message: str) -> None:
        self.live_path = Path(live_path)
        self.backup_path = Path(backup_path)
        super().__init__(message)


# ---------------------------------------------------------------------------
# Runtime collaborators
# ---------------------------------------------------------------------------


class JavaNotFoundError(LauncherError):
    """Raised when no usable Java runtime is available."""
