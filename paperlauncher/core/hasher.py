"""SHA-256 helpers for artifact verification.

Files are always hashed through a bounded read buffer so that large server
JARs never have to be loaded into memory in one piece.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path
from typing import BinaryIO

DEFAULT_CHUNK_SIZE = 32 * 1024

HEX_DIGEST_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def stream_sha256(handle: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Hash an open binary file from its current position to EOF."""
    digest = hashlib.sha256()
    for chunk in iter(lambda: handle.read(chunk_size), b""):
        digest.update(chunk)
    return digest.hexdigest()


def file_sha256(path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Return the lowercase SHA-256 hex digest of a file on disk."""
    with Path(path).open("rb") as handle:
        return stream_sha256(handle, chunk_size)


def is_hex_digest(value: str) -> bool:
    """Whether ``value`` is exactly 64 hex characters (either case)."""
    return bool(HEX_DIGEST_PATTERN.match(value))


def digests_equal(a: str, b: str) -> bool:
    """Case-insensitive digest comparison, ignoring surrounding whitespace."""
    return a.strip().lower() == b.strip().lower()
