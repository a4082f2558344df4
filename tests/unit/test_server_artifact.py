"""Tests for managed server JAR discovery, verification and acquisition."""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path

import pytest

from paperlauncher.core.checksum_store import ChecksumStore
from paperlauncher.core.errors import ChecksumMismatchError, FetchFailedError, StructureError
from paperlauncher.core.feeds import BuildFeedClient
from paperlauncher.core.fetcher import ResilientFetcher
from paperlauncher.core.hasher import sha256_hex
from paperlauncher.core.server_artifact import (
    ServerArtifactManager,
    VerificationStatus,
    discard_stale_staging,
    find_local_jar,
)


@pytest.fixture
def manager(
    store: ChecksumStore,
    build_feed: BuildFeedClient,
    fetcher: ResilientFetcher,
    tmp_path: Path,
) -> ServerArtifactManager:
    return ServerArtifactManager(store, build_feed, fetcher, tmp_path)


class TestDiscovery:
    def test_no_jar(self, tmp_path: Path):
        assert find_local_jar(tmp_path) is None

    def test_highest_build_wins(self, make_jar: Callable[..., Path], tmp_path: Path):
        make_jar("paper-1.20.4-99.jar")
        newest = make_jar("paper-1.20.4-120.jar")
        make_jar("paper-1.20.4-100.jar")
        assert find_local_jar(tmp_path) == newest

    def test_newer_version_beats_higher_build(
        self, make_jar: Callable[..., Path], tmp_path: Path
    ):
        make_jar("paper-1.20.4-499.jar")
        newest = make_jar("paper-1.21.4-100.jar")
        make_jar("paper-1.9.4-800.jar")
        assert find_local_jar(tmp_path) == newest

    def test_unparseable_name_still_found(self, make_jar: Callable[..., Path], tmp_path: Path):
        jar = make_jar("paper-custom.jar")
        assert find_local_jar(tmp_path) == jar

    def test_versioned_beats_unversioned(self, make_jar: Callable[..., Path], tmp_path: Path):
        versioned = make_jar("paper-1.20.4-1.jar")
        custom = make_jar("paper-custom.jar")
        os.utime(custom, (versioned.stat().st_mtime + 100,) * 2)
        assert find_local_jar(tmp_path) == versioned

    def test_discard_stale_staging(self, tmp_path: Path):
        (tmp_path / "paper-1.20.4-100.jar.part").write_bytes(b"half")
        (tmp_path / "keep.jar").write_bytes(b"x")
        removed = discard_stale_staging(tmp_path)
        assert [p.name for p in removed] == ["paper-1.20.4-100.jar.part"]
        assert (tmp_path / "keep.jar").exists()


class TestVerifyLocal:
    def test_matching_sidecar(self, manager: ServerArtifactManager, make_jar, store):
        jar = make_jar()
        store.record(jar)
        report = manager.verify_local(jar)
        assert report.status == VerificationStatus.VERIFIED
        assert report.ok

    def test_mismatched_sidecar_fails(self, manager: ServerArtifactManager, make_jar, store):
        jar = make_jar()
        store.save(store.sidecar_path(jar), "0" * 64)
        report = manager.verify_local(jar)
        assert report.status == VerificationStatus.FAILED
        assert not report.ok
        assert "mismatch" in (report.error or "")

    def test_missing_sidecar_is_recorded(self, manager: ServerArtifactManager, make_jar, store):
        jar = make_jar()
        report = manager.verify_local(jar)
        assert report.status == VerificationStatus.RECORDED
        assert store.load(store.sidecar_path(jar)) == sha256_hex(jar.read_bytes())

    def test_malformed_sidecar_is_recomputed(
        self, manager: ServerArtifactManager, make_jar, store
    ):
        jar = make_jar()
        store.sidecar_path(jar).write_text("not a digest")
        report = manager.verify_local(jar)
        assert report.status == VerificationStatus.RECORDED
        assert store.load(store.sidecar_path(jar)) == report.digest

    def test_corrupt_jar_without_sidecar(self, manager: ServerArtifactManager, tmp_path: Path):
        jar = tmp_path / "paper-1.20.4-100.jar"
        jar.write_bytes(b"<html>not found</html>" * 3)
        report = manager.verify_local(jar)
        assert report.status == VerificationStatus.FAILED
        assert "bad_magic" in (report.error or "")


class TestAcquire:
    def test_fresh_download(self, manager: ServerArtifactManager, paper_feed, store, tmp_path):
        body = paper_feed(builds=[100, 101])
        artifact = manager.acquire("latest")

        assert artifact.path == tmp_path / "paper-1.20.4-101.jar"
        assert artifact.path.read_bytes() == body
        assert artifact.content_hash == sha256_hex(body)
        assert artifact.declared_version == "1.20.4"
        assert artifact.build == 101
        assert store.load(store.sidecar_path(artifact.path)) == artifact.content_hash
        assert not (tmp_path / "paper-1.20.4-101.jar.part").exists()

    def test_published_digest_matches(
        self, manager: ServerArtifactManager, paper_feed, jar_bytes, tmp_path: Path
    ):
        body = jar_bytes({"io/papermc/Main.class": b"\xca\xfe\xba\xbe"})
        paper_feed(body=body, sha256=sha256_hex(body).upper())
        artifact = manager.acquire("1.20.4")
        assert artifact.content_hash == sha256_hex(body)

    def test_published_digest_mismatch_discards_download(
        self, manager: ServerArtifactManager, paper_feed, store, tmp_path: Path
    ):
        body = paper_feed(sha256="0" * 64)
        jar = tmp_path / "paper-1.20.4-100.jar"
        with pytest.raises(ChecksumMismatchError) as excinfo:
            manager.acquire("1.20.4")
        assert excinfo.value.expected == "0" * 64
        assert excinfo.value.actual == sha256_hex(body)
        assert not jar.exists()
        assert not store.sidecar_path(jar).exists()

    def test_verified_file_is_reused(
        self, manager: ServerArtifactManager, paper_feed, session, store, make_jar
    ):
        paper_feed(builds=[100])
        jar = make_jar("paper-1.20.4-100.jar")
        store.record(jar)
        artifact = manager.acquire("1.20.4")
        assert artifact.path == jar
        assert not any(url.endswith("/downloads/paper-1.20.4-100.jar") for url in session.urls())

    def test_tampered_file_is_redownloaded(
        self, manager: ServerArtifactManager, paper_feed, store, make_jar
    ):
        body = paper_feed(builds=[100])
        jar = make_jar("paper-1.20.4-100.jar", entries={"tampered.class": b"evil"})
        store.save(store.sidecar_path(jar), sha256_hex(body))
        artifact = manager.acquire("1.20.4")
        assert artifact.path.read_bytes() == body
        assert artifact.content_hash == sha256_hex(body)

    def test_file_without_sidecar_is_redownloaded(
        self, manager: ServerArtifactManager, paper_feed, session, make_jar
    ):
        paper_feed(builds=[100])
        make_jar("paper-1.20.4-100.jar")
        manager.acquire("1.20.4")
        assert any(url.endswith("/downloads/paper-1.20.4-100.jar") for url in session.urls())

    def test_invalid_download_is_deleted(
        self, manager: ServerArtifactManager, paper_feed, store, tmp_path: Path
    ):
        paper_feed(builds=[100], body=b"<html>rate limited</html>")
        with pytest.raises(StructureError):
            manager.acquire("1.20.4")
        target = tmp_path / "paper-1.20.4-100.jar"
        assert not target.exists()
        assert not store.sidecar_path(target).exists()

    def test_feed_outage_propagates(self, manager: ServerArtifactManager, session, paper_base):
        session.add(paper_base, status=503)
        with pytest.raises(FetchFailedError):
            manager.acquire("latest")


class TestBuildUpdates:
    def test_check_update(self, manager: ServerArtifactManager, paper_feed, make_jar):
        paper_feed(builds=[100, 130])
        update = manager.check_update(make_jar("paper-1.20.4-100.jar"))
        assert update is not None
        assert update.latest_build == 130

    def test_check_update_is_non_fatal(self, manager: ServerArtifactManager, make_jar):
        assert manager.check_update(make_jar("paper-1.20.4-100.jar")) is None

    def test_check_update_bad_name_is_non_fatal(self, manager: ServerArtifactManager, make_jar):
        assert manager.check_update(make_jar("paper-custom.jar")) is None

    def test_update_keeps_previous_jar(
        self, manager: ServerArtifactManager, paper_feed, make_jar, tmp_path: Path
    ):
        paper_feed(builds=[100, 130])
        old = make_jar("paper-1.20.4-100.jar")
        update = manager.check_update(old)
        assert update is not None
        artifact = manager.update(update)
        assert artifact.path == tmp_path / "paper-1.20.4-130.jar"
        assert old.exists()
        assert find_local_jar(tmp_path) == artifact.path
