"""Structural validation of downloaded archive artifacts (server JARs).

Answers "is this a well-formed zip container at all", which catches
truncated or corrupted downloads. Byte identity is the checksum store's job;
after a fresh download both are resolved from one open file handle.
"""

from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import BinaryIO

from paperlauncher.core.errors import FilesystemError, StructureError, StructureErrorKind
from paperlauncher.core.hasher import DEFAULT_CHUNK_SIZE, stream_sha256

logger = logging.getLogger(__name__)

# Size of an end-of-central-directory record, i.e. the smallest valid zip.
MIN_ARCHIVE_SIZE = 22
ZIP_MAGIC = b"PK"
MANIFEST_ENTRY = "META-INF/MANIFEST.MF"


def _stat_regular_file(path: Path) -> int:
    if not path.exists():
        raise StructureError(StructureErrorKind.NOT_FOUND, path)
    if path.is_dir():
        raise StructureError(StructureErrorKind.IS_DIRECTORY, path)
    return path.stat().st_size


def _check_open_archive(path: Path, handle: BinaryIO, size: int) -> None:
    if size == 0:
        raise StructureError(StructureErrorKind.EMPTY, path)
    if size < MIN_ARCHIVE_SIZE:
        raise StructureError(
            StructureErrorKind.TOO_SMALL, path, f"{size} bytes"
        )

    handle.seek(0)
    magic = handle.read(len(ZIP_MAGIC))
    if magic != ZIP_MAGIC:
        raise StructureError(
            StructureErrorKind.BAD_MAGIC,
            path,
            f"expected {ZIP_MAGIC.hex().upper()}, found {magic.hex().upper()}",
            expected=ZIP_MAGIC.hex().upper(),
            found=magic.hex().upper(),
        )

    handle.seek(0)
    try:
        with zipfile.ZipFile(handle) as archive:
            names = archive.namelist()
    except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError) as exc:
        raise StructureError(
            StructureErrorKind.CORRUPT_CONTAINER, path, str(exc)
        ) from exc

    if not names:
        raise StructureError(StructureErrorKind.NO_ENTRIES, path)

    if MANIFEST_ENTRY not in names:
        logger.warning("JAR file missing %s: %s", MANIFEST_ENTRY, path)


def validate_structure(path: Path) -> None:
    """Raise ``StructureError`` unless ``path`` is a non-empty zip archive."""
    path = Path(path)
    size = _stat_regular_file(path)
    try:
        with path.open("rb") as handle:
            _check_open_archive(path, handle, size)
    except OSError as exc:
        raise FilesystemError(f"failed to read {path}: {exc}") from exc


def validate_and_digest(path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Validate the archive structure and return its SHA-256 in one open.

    Used right after a fresh download, where both the container check and
    the checksum for the new sidecar are needed.
    """
    path = Path(path)
    size = _stat_regular_file(path)
    try:
        with path.open("rb") as handle:
            _check_open_archive(path, handle, size)
            handle.seek(0)
            return stream_sha256(handle, chunk_size)
    except OSError as exc:
        raise FilesystemError(f"failed to read {path}: {exc}") from exc


def is_valid_archive(path: Path) -> bool:
    """Boolean form of ``validate_structure`` for quick checks."""
    try:
        validate_structure(path)
    except StructureError:
        return False
    return True
