"""Tests for structural archive validation."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import pytest

from paperlauncher.core.errors import StructureError, StructureErrorKind
from paperlauncher.core.hasher import sha256_hex
from paperlauncher.core.validator import (
    MIN_ARCHIVE_SIZE,
    is_valid_archive,
    validate_and_digest,
    validate_structure,
)

# End-of-central-directory record with zero entries: a valid empty zip.
EMPTY_ZIP = b"PK\x05\x06" + b"\x00" * 18


def _kind(path: Path) -> StructureErrorKind:
    with pytest.raises(StructureError) as excinfo:
        validate_structure(path)
    return excinfo.value.kind


class TestValidateStructure:
    def test_valid_jar_passes(self, make_jar: Callable[..., Path]):
        validate_structure(make_jar())

    def test_missing_file(self, tmp_path: Path):
        assert _kind(tmp_path / "nope.jar") == StructureErrorKind.NOT_FOUND

    def test_directory(self, tmp_path: Path):
        assert _kind(tmp_path) == StructureErrorKind.IS_DIRECTORY

    def test_empty_file(self, tmp_path: Path):
        path = tmp_path / "empty.jar"
        path.write_bytes(b"")
        assert _kind(path) == StructureErrorKind.EMPTY

    def test_too_small(self, tmp_path: Path):
        path = tmp_path / "small.jar"
        path.write_bytes(b"PK" + b"\x00" * (MIN_ARCHIVE_SIZE - 3))
        assert _kind(path) == StructureErrorKind.TOO_SMALL

    def test_bad_magic_reports_bytes(self, tmp_path: Path):
        path = tmp_path / "html.jar"
        path.write_bytes(b"<html>" + b" " * 100)
        with pytest.raises(StructureError) as excinfo:
            validate_structure(path)
        assert excinfo.value.kind == StructureErrorKind.BAD_MAGIC
        assert excinfo.value.expected == "504B"
        assert excinfo.value.found == "3C68"

    def test_corrupt_container(self, tmp_path: Path):
        path = tmp_path / "corrupt.jar"
        path.write_bytes(b"PK\x03\x04" + b"\x00" * 200)
        assert _kind(path) == StructureErrorKind.CORRUPT_CONTAINER

    def test_no_entries(self, tmp_path: Path):
        path = tmp_path / "empty-zip.jar"
        path.write_bytes(EMPTY_ZIP)
        assert _kind(path) == StructureErrorKind.NO_ENTRIES

    def test_missing_manifest_only_warns(
        self, make_jar: Callable[..., Path], caplog: pytest.LogCaptureFixture
    ):
        path = make_jar(manifest=False)
        with caplog.at_level(logging.WARNING):
            validate_structure(path)
        assert "MANIFEST.MF" in caplog.text

    def test_is_valid_archive(self, make_jar: Callable[..., Path], tmp_path: Path):
        assert is_valid_archive(make_jar())
        bad = tmp_path / "bad.jar"
        bad.write_bytes(b"x" * 50)
        assert not is_valid_archive(bad)


class TestValidateAndDigest:
    def test_returns_digest_of_file(self, make_jar: Callable[..., Path]):
        path = make_jar()
        assert validate_and_digest(path) == sha256_hex(path.read_bytes())

    def test_small_chunks_same_digest(self, make_jar: Callable[..., Path]):
        path = make_jar(entries={"big.bin": b"\x01" * 100_000})
        assert validate_and_digest(path, chunk_size=13) == sha256_hex(path.read_bytes())

    def test_structure_failure_raises_before_digest(self, tmp_path: Path):
        path = tmp_path / "bad.jar"
        path.write_bytes(b"MZ" + b"\x00" * 100)
        with pytest.raises(StructureError) as excinfo:
            validate_and_digest(path)
        assert excinfo.value.kind == StructureErrorKind.BAD_MAGIC
