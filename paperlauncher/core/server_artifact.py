"""Managed server JAR acquisition and verification.

A JAR is reused when its checksum sidecar still matches; otherwise it is
downloaded again through the resilient fetcher, structurally validated and
hashed in one pass, checked against the digest the build feed publishes
(when it publishes one), and a fresh sidecar is written. Newer builds are stored
under their own versioned file name; the previous JAR is never replaced in
place.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from paperlauncher.core.checksum_store import ChecksumStore
from paperlauncher.core.errors import (
    ChecksumMismatchError,
    FilesystemError,
    IntegrityViolationError,
    MalformedDigestError,
    UpstreamUnavailableError,
)
from paperlauncher.core.feeds import BuildFeedClient
from paperlauncher.core.fetcher import ProgressObserver, ResilientFetcher
from paperlauncher.core.hasher import digests_equal
from paperlauncher.core.validator import validate_and_digest
from paperlauncher.core.versioning import version_key
from paperlauncher.models.artifacts import Artifact, parse_jar_name
from paperlauncher.models.releases import BuildUpdate
from paperlauncher.models.update import PART_SUFFIX

logger = logging.getLogger(__name__)

JAR_GLOB = "paper-*.jar"


class VerificationStatus(str, Enum):
    VERIFIED = "verified"  # sidecar present and matching
    RECORDED = "recorded"  # no usable sidecar; validated and recorded now
    FAILED = "failed"  # mismatch or structural failure


class VerificationReport(BaseModel):
    """Result of checking a local JAR before launch."""

    model_config = ConfigDict(frozen=True)

    path: Path
    status: VerificationStatus
    digest: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != VerificationStatus.FAILED


def discard_stale_staging(directory: Path) -> list[Path]:
    """Delete ``*.part`` files left behind by interrupted downloads."""
    removed: list[Path] = []
    for part in sorted(Path(directory).glob(f"*{PART_SUFFIX}")):
        if not part.is_file():
            continue
        logger.info("Found incomplete download, removing: %s", part)
        try:
            part.unlink()
        except OSError as exc:
            logger.warning("Failed to remove incomplete download %s: %s", part, exc)
            continue
        removed.append(part)
    return removed


def find_local_jar(directory: Path) -> Path | None:
    """Return the newest ``paper-*.jar`` in ``directory``.

    JARs following ``paper-<version>-<build>.jar`` are ordered by Minecraft
    version, then build number; anything else falls back to modification
    time. Build numbers restart with every version.
    """
    candidates = [p for p in Path(directory).glob(JAR_GLOB) if p.is_file()]
    if not candidates:
        return None

    def sort_key(path: Path) -> tuple[int, tuple[int, ...], int, float]:
        parsed = parse_jar_name(path.name)
        if parsed is None:
            return (0, (), 0, path.stat().st_mtime)
        version, build = parsed
        return (1, version_key(version), build, path.stat().st_mtime)

    return max(candidates, key=sort_key)


class ServerArtifactManager:
    """Finds, verifies, downloads and updates the Paper server JAR.

    Parameters
    ----------
    store:
        Checksum sidecar store.
    feed:
        Paper build feed client.
    fetcher:
        Resilient fetcher for downloads.
    directory:
        Where JARs live (the server working directory).
    """

    def __init__(
        self,
        store: ChecksumStore,
        feed: BuildFeedClient,
        fetcher: ResilientFetcher,
        directory: Path = Path("."),
    ) -> None:
        self._store = store
        self._feed = feed
        self._fetcher = fetcher
        self._dir = Path(directory)

    @property
    def directory(self) -> Path:
        return self._dir

    def discard_stale_staging(self) -> list[Path]:
        return discard_stale_staging(self._dir)

    def find_local_jar(self) -> Path | None:
        return find_local_jar(self._dir)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify_local(self, jar: Path) -> VerificationReport:
        """Verify an existing JAR before deciding to reuse it.

        A matching sidecar is trusted without re-validating the container.
        Without a usable sidecar the JAR is validated, hashed and recorded.
        """
        jar = Path(jar)
        sidecar = self._store.sidecar_path(jar)
        try:
            expected = self._store.load(sidecar)
        except MalformedDigestError as exc:
            logger.warning("Ignoring unusable checksum file: %s", exc)
            expected = None

        if expected is not None:
            try:
                self._store.verify(jar, expected)
            except IntegrityViolationError as exc:
                return VerificationReport(
                    path=jar, status=VerificationStatus.FAILED, error=str(exc)
                )
            logger.info("Validated existing JAR file checksum")
            return VerificationReport(
                path=jar, status=VerificationStatus.VERIFIED, digest=expected.lower()
            )

        try:
            digest = validate_and_digest(jar, self._store_chunk_size())
        except IntegrityViolationError as exc:
            return VerificationReport(
                path=jar, status=VerificationStatus.FAILED, error=str(exc)
            )
        try:
            self._store.save(sidecar, digest)
        except FilesystemError as exc:
            logger.warning("Failed to save checksum file: %s", exc)
        else:
            logger.info("Calculated and saved checksum for existing JAR")
        return VerificationReport(path=jar, status=VerificationStatus.RECORDED, digest=digest)

    def _store_chunk_size(self) -> int:
        return self._fetcher.context.chunk_size

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------

    def acquire(
        self, version: str = "latest", *, progress: ProgressObserver | None = None
    ) -> Artifact:
        """Return a verified JAR for ``version``, downloading it if needed."""
        resolved = self._feed.resolve(version)
        target = self._dir / resolved.name

        if target.exists():
            logger.info("JAR file already exists: %s", resolved.name)
            existing = self._reuse_if_verified(target)
            if existing is not None:
                return existing

        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FilesystemError(f"failed to create {self._dir}: {exc}") from exc

        url = self._feed.artifact_url(resolved.version, resolved.build, resolved.name)
        logger.info("Downloading %s...", resolved.name)
        self._fetcher.fetch(url, target, progress=progress)

        try:
            digest = validate_and_digest(target, self._store_chunk_size())
            if resolved.sha256 and not digests_equal(digest, resolved.sha256):
                raise ChecksumMismatchError(target, resolved.sha256.strip().lower(), digest)
        except IntegrityViolationError:
            target.unlink(missing_ok=True)
            raise
        self._store.save(self._store.sidecar_path(target), digest)
        logger.info("Downloaded and validated JAR file (SHA-256: %s...)", digest[:16])
        return Artifact.from_path(target, digest)

    def _reuse_if_verified(self, target: Path) -> Artifact | None:
        try:
            expected = self._store.load(self._store.sidecar_path(target))
            if expected is None:
                logger.info("No checksum file found, re-downloading to ensure integrity...")
                return None
            self._store.verify(target, expected)
        except IntegrityViolationError as exc:
            logger.info("Checksum validation failed (%s), re-downloading...", exc)
            return None
        logger.info("Existing JAR file checksum validated")
        return Artifact.from_path(target, expected)

    def check_update(self, jar: Path) -> BuildUpdate | None:
        """Non-fatal build-feed check for a newer build of ``jar``."""
        try:
            return self._feed.check_update(Path(jar).name)
        except (UpstreamUnavailableError, ValueError) as exc:
            logger.warning("Failed to check for updates: %s", exc)
            return None

    def update(
        self, update: BuildUpdate, *, progress: ProgressObserver | None = None
    ) -> Artifact:
        """Download the newer build next to the current JAR."""
        logger.info("Updating server JAR to build %d...", update.latest_build)
        return self.acquire(update.version, progress=progress)
