"""Adversarial tests — self-update under hostile feeds and interrupted swaps.

These tests verify that:
1. Downgrades, garbage tags and look-alike asset names never install
2. Leftovers from a crashed update cannot leak into the next install
3. A locked executable fails the update without touching the live file
4. Every failure path leaves exactly one runnable executable in place
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from paperlauncher.core.context import LaunchContext
from paperlauncher.core.feeds import ReleaseFeedClient
from paperlauncher.core.fetcher import ResilientFetcher
from paperlauncher.core.self_update import SelfUpdateSequencer
from paperlauncher.models.update import StagedUpdate, UpdateState

ASSET = "paper-launcher-linux-amd64"
NEW_BINARY = b"\x7fELF new launcher" * 64


@pytest.fixture
def executable(tmp_path: Path) -> Path:
    path = tmp_path / "paper-launcher"
    path.write_bytes(b"old launcher")
    return path


@pytest.fixture
def sequencer(
    context: LaunchContext,
    release_feed: ReleaseFeedClient,
    fetcher: ResilientFetcher,
    executable: Path,
) -> SelfUpdateSequencer:
    return SelfUpdateSequencer(
        context, release_feed, fetcher, executable, platform=("linux", "amd64")
    )


def _only_live(executable: Path) -> None:
    staging = StagedUpdate(target=executable)
    assert executable.exists()
    assert not staging.staged_path.exists()
    assert not staging.part_path.exists()


class TestHostileReleases:
    @pytest.mark.parametrize("tag", ["v1.1.9", "v1.2.0", "1.2", "nightly", "", "v"])
    def test_not_newer_never_installs(
        self, tag: str, sequencer, session, release_feed_url: str, release_payload, executable
    ):
        session.add_json(release_feed_url, release_payload(tag, assets=[ASSET]))
        session.add(f"https://downloads.test/{ASSET}", body=NEW_BINARY)
        outcome = sequencer.run(auto_update=True)
        assert outcome.state == UpdateState.NO_UPDATE
        assert executable.read_bytes() == b"old launcher"
        assert f"https://downloads.test/{ASSET}" not in session.urls()

    @pytest.mark.parametrize(
        "name",
        [
            "paper-launcher-linux-amd64.exe",
            "paper-launcher-linux-amd64-debug",
            "paper-launcher-linux-amd64.sha256",
            "PAPER-LAUNCHER-LINUX-AMD64",
            "other-tool-linux-amd64",
        ],
    )
    def test_look_alike_assets_ignored(
        self, name: str, sequencer, session, release_feed_url: str, release_payload, executable
    ):
        session.add_json(release_feed_url, release_payload("v9.0.0", assets=[name]))
        outcome = sequencer.run(auto_update=True)
        assert outcome.state == UpdateState.NO_UPDATE
        assert outcome.reason == "no asset for this platform"
        assert executable.read_bytes() == b"old launcher"

    def test_descriptor_missing_fields(
        self, sequencer, session, release_feed_url: str, executable
    ):
        session.add_json(release_feed_url, {"name": "no tag here", "assets": "nope"})
        outcome = sequencer.run(auto_update=True)
        assert outcome.state == UpdateState.FAILED
        assert executable.read_bytes() == b"old launcher"

    def test_html_instead_of_descriptor(
        self, sequencer, session, release_feed_url: str, executable
    ):
        session.add(release_feed_url, body=b"<html>GitHub is down</html>")
        assert sequencer.run(auto_update=True).state == UpdateState.FAILED
        assert executable.read_bytes() == b"old launcher"


class TestCrashLeftovers:
    @pytest.fixture(autouse=True)
    def newer_release(self, session, release_feed_url: str, release_payload) -> None:
        session.add_json(release_feed_url, release_payload("v1.3.0", assets=[ASSET]))
        session.add(f"https://downloads.test/{ASSET}", body=NEW_BINARY)

    def test_stale_staged_file_replaced(self, sequencer, executable: Path):
        staging = StagedUpdate(target=executable)
        staging.staged_path.write_bytes(b"planted by someone else")
        outcome = sequencer.run(auto_update=True)
        assert outcome.state == UpdateState.DONE
        assert executable.read_bytes() == NEW_BINARY
        _only_live(executable)

    def test_stale_part_file_replaced(self, sequencer, executable: Path):
        staging = StagedUpdate(target=executable)
        staging.part_path.write_bytes(b"half of an old download")
        sequencer.run(auto_update=True)
        assert executable.read_bytes() == NEW_BINARY
        _only_live(executable)


class TestLockedExecutable:
    @pytest.fixture(autouse=True)
    def newer_release(self, session, release_feed_url: str, release_payload) -> None:
        session.add_json(release_feed_url, release_payload("v1.3.0", assets=[ASSET]))
        session.add(f"https://downloads.test/{ASSET}", body=NEW_BINARY)

    def test_backup_rename_refused(
        self, sequencer, executable: Path, monkeypatch: pytest.MonkeyPatch
    ):
        real_replace = os.replace

        def locked(src, dst):
            if Path(src) == executable:
                raise PermissionError("text file busy")
            return real_replace(src, dst)

        monkeypatch.setattr(os, "replace", locked)
        outcome = sequencer.run(auto_update=True)

        assert outcome.state == UpdateState.FAILED
        assert "back up" in (outcome.error or "")
        assert executable.read_bytes() == b"old launcher"
        assert outcome.backup_path is None
        _only_live(executable)

    def test_install_swap_refused_restores(
        self, sequencer, executable: Path, monkeypatch: pytest.MonkeyPatch
    ):
        real_replace = os.replace
        staged = StagedUpdate(target=executable).staged_path

        def refuse_install(src, dst):
            if Path(src) == staged:
                raise PermissionError("read-only file system")
            return real_replace(src, dst)

        monkeypatch.setattr(os, "replace", refuse_install)
        outcome = sequencer.run(auto_update=True)

        assert outcome.state == UpdateState.FAILED
        assert executable.read_bytes() == b"old launcher"
        _only_live(executable)
