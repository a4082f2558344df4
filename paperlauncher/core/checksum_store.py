"""Checksum sidecar store.

Layout: ``{artifact}.sha256`` next to each artifact, holding exactly 64 hex
characters and nothing else.

Sidecars are advisory. A missing sidecar means "no prior checksum" and a
malformed one is reported so the caller can recompute; neither is fatal.
"""

from __future__ import annotations

import logging
from pathlib import Path

from paperlauncher.core.errors import (
    ChecksumMismatchError,
    FilesystemError,
    MalformedDigestError,
)
from paperlauncher.core.hasher import (
    DEFAULT_CHUNK_SIZE,
    digests_equal,
    file_sha256,
    is_hex_digest,
)
from paperlauncher.models.artifacts import ChecksumSidecar, sidecar_path_for

logger = logging.getLogger(__name__)

_DIGEST_LENGTH = 64


class ChecksumStore:
    """Computes, persists and verifies SHA-256 sidecars for artifacts.

    Parameters
    ----------
    chunk_size:
        Read buffer used when hashing artifacts.
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._chunk_size = chunk_size

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @staticmethod
    def sidecar_path(artifact_path: Path) -> Path:
        """Return ``<artifact>.sha256``."""
        return sidecar_path_for(artifact_path)

    # ------------------------------------------------------------------
    # Compute and persist
    # ------------------------------------------------------------------

    def compute(self, artifact_path: Path) -> str:
        """Stream the artifact through SHA-256 and return lowercase hex."""
        try:
            return file_sha256(Path(artifact_path), self._chunk_size)
        except OSError as exc:
            raise FilesystemError(
                f"failed to hash {artifact_path}: {exc}"
            ) from exc

    def save(self, sidecar_path: Path, hex_digest: str) -> None:
        """Write the digest as raw text, replacing any existing sidecar."""
        try:
            Path(sidecar_path).write_text(hex_digest, encoding="ascii")
        except OSError as exc:
            raise FilesystemError(
                f"failed to write checksum file {sidecar_path}: {exc}"
            ) from exc

    def record(self, artifact_path: Path, hex_digest: str | None = None) -> ChecksumSidecar:
        """Compute (unless given) and save the sidecar for an artifact."""
        digest = hex_digest or self.compute(artifact_path)
        sidecar = ChecksumSidecar(artifact_path=Path(artifact_path), hex_digest=digest)
        self.save(sidecar.sidecar_path, digest)
        logger.debug("Recorded checksum %s for %s", digest[:16], artifact_path)
        return sidecar

    # ------------------------------------------------------------------
    # Load and verify
    # ------------------------------------------------------------------

    def load(self, sidecar_path: Path) -> str | None:
        """Read a sidecar back.

        Returns ``None`` when the file does not exist. Raises
        ``MalformedDigestError`` when it exists but, after trimming
        surrounding whitespace, is not exactly 64 hex characters.
        """
        path = Path(sidecar_path)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise FilesystemError(f"failed to read checksum file {path}: {exc}") from exc

        try:
            text = raw.strip().decode("ascii")
        except UnicodeDecodeError as exc:
            raise MalformedDigestError(
                f"invalid checksum format in {path}: contains non-hexadecimal characters"
            ) from exc

        if len(text) != _DIGEST_LENGTH:
            raise MalformedDigestError(
                f"invalid checksum format in {path}: expected {_DIGEST_LENGTH} "
                f"characters, got {len(text)}"
            )
        if not is_hex_digest(text):
            raise MalformedDigestError(
                f"invalid checksum format in {path}: contains non-hexadecimal characters"
            )
        return text

    def verify(self, artifact_path: Path, expected_digest: str | None) -> None:
        """Check the artifact against ``expected_digest``.

        An empty expected digest means there is no baseline and always
        succeeds.
        """
        if not expected_digest or not expected_digest.strip():
            return
        actual = self.compute(artifact_path)
        if not digests_equal(actual, expected_digest):
            raise ChecksumMismatchError(
                Path(artifact_path), expected_digest.strip().lower(), actual
            )

    def verify_with_sidecar(self, artifact_path: Path) -> bool:
        """Verify against the stored sidecar.

        Returns ``True`` when a sidecar existed and matched, ``False`` when
        there was none. Mismatch and malformed sidecars raise.
        """
        expected = self.load(self.sidecar_path(artifact_path))
        if expected is None:
            return False
        self.verify(artifact_path, expected)
        return True
