"""Shared test fixtures for paper-launcher."""

from __future__ import annotations

import io
import json
import zipfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import requests

from paperlauncher.core.checksum_store import ChecksumStore
from paperlauncher.core.context import LaunchContext
from paperlauncher.core.feeds import BuildFeedClient, ReleaseFeedClient
from paperlauncher.core.fetcher import ResilientFetcher
from paperlauncher.models.context import RetryPolicy

PAPER_BASE = "https://papermc.test/v2/projects/paper"
RELEASE_FEED = "https://github.test/repos/owner/launcher/releases/latest"


# ---------------------------------------------------------------------------
# Scripted HTTP session
# ---------------------------------------------------------------------------


def make_response(
    url: str,
    *,
    status: int = 200,
    body: bytes = b"",
    headers: dict[str, str] | None = None,
) -> requests.Response:
    """Build a real ``requests.Response`` backed by an in-memory body."""
    response = requests.Response()
    response.status_code = status
    response.url = url
    response.raw = io.BytesIO(body)
    response.encoding = "utf-8"
    response.headers["Content-Length"] = str(len(body))
    response.headers.update(headers or {})
    return response


class FakeSession:
    """Stands in for ``requests.Session``: scripted responses per URL.

    Each URL holds a queue of replies; the last reply repeats once the
    queue is down to one entry. A reply is either a response dict or
    an exception instance to raise.
    """

    def __init__(self) -> None:
        self.routes: dict[str, list[Any]] = {}
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def add(
        self,
        url: str,
        *,
        status: int = 200,
        body: bytes | str = b"",
        headers: dict[str, str] | None = None,
    ) -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.routes.setdefault(url, []).append(
            {"status": status, "body": body, "headers": headers}
        )

    def add_json(self, url: str, payload: Any, *, status: int = 200) -> None:
        self.add(url, status=status, body=json.dumps(payload))

    def add_error(self, url: str, error: Exception) -> None:
        self.routes.setdefault(url, []).append(error)

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        self.calls.append({"url": url, **kwargs})
        queue = self.routes.get(url)
        if not queue:
            raise requests.ConnectionError(f"no route for {url}")
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        return make_response(url, **reply)

    def urls(self) -> list[str]:
        return [call["url"] for call in self.calls]

    def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def context(session: FakeSession) -> LaunchContext:
    """A context with zero backoff and a small download buffer."""
    return LaunchContext(
        session=session,  # type: ignore[arg-type]
        retry=RetryPolicy(max_attempts=3, base_delay=0.0, multiplier=2.0),
        timeout=5.0,
        launcher_version="1.2.0",
        chunk_size=1024,
    )


@pytest.fixture
def fetcher(context: LaunchContext) -> ResilientFetcher:
    return ResilientFetcher(context)


@pytest.fixture
def store() -> ChecksumStore:
    return ChecksumStore()


@pytest.fixture
def build_feed(fetcher: ResilientFetcher) -> BuildFeedClient:
    return BuildFeedClient(fetcher, PAPER_BASE)


@pytest.fixture
def release_feed(context: LaunchContext) -> ReleaseFeedClient:
    return ReleaseFeedClient(context, RELEASE_FEED)


# ---------------------------------------------------------------------------
# Artifact and feed factories
# ---------------------------------------------------------------------------


def _jar_bytes(entries: dict[str, bytes] | None = None, *, manifest: bool = True) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        if manifest:
            archive.writestr("META-INF/MANIFEST.MF", "Manifest-Version: 1.0\n")
        for name, data in (entries or {"io/papermc/Main.class": b"\xca\xfe\xba\xbe"}).items():
            archive.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture
def jar_bytes() -> Callable[..., bytes]:
    """Factory fixture: bytes of a small, valid JAR archive."""
    return _jar_bytes


@pytest.fixture
def make_jar(tmp_path: Path) -> Callable[..., Path]:
    """Factory fixture: write a JAR into ``tmp_path`` (or ``directory``)."""

    def _factory(
        name: str = "paper-1.20.4-100.jar",
        *,
        directory: Path | None = None,
        entries: dict[str, bytes] | None = None,
        manifest: bool = True,
    ) -> Path:
        path = (directory or tmp_path) / name
        path.write_bytes(_jar_bytes(entries, manifest=manifest))
        return path

    return _factory


@pytest.fixture
def paper_feed(session: FakeSession) -> Callable[..., bytes]:
    """Factory fixture: script the Paper build feed; returns the JAR body."""

    def _factory(
        *,
        version: str = "1.20.4",
        builds: list[int] | None = None,
        body: bytes | None = None,
        versions: list[str] | None = None,
        sha256: str | None = None,
    ) -> bytes:
        builds = builds or [100]
        body = body if body is not None else _jar_bytes()
        session.add_json(PAPER_BASE, {"versions": versions or ["1.20.2", version]})
        session.add_json(
            f"{PAPER_BASE}/versions/{version}/builds",
            {"builds": [{"build": b} for b in builds]},
        )
        for build in builds:
            name = f"paper-{version}-{build}.jar"
            session.add_json(
                f"{PAPER_BASE}/versions/{version}/builds/{build}",
                {"downloads": {"application": {"name": name, "sha256": sha256}}},
            )
            session.add(
                f"{PAPER_BASE}/versions/{version}/builds/{build}/downloads/{name}",
                body=body,
            )
        return body

    return _factory


@pytest.fixture
def release_payload() -> Callable[..., dict[str, Any]]:
    """Factory fixture: a GitHub ``releases/latest`` JSON payload."""

    def _factory(
        tag: str = "v1.3.0",
        *,
        assets: list[str] | None = None,
        body: str = "Faster downloads\nMore details",
    ) -> dict[str, Any]:
        names = assets if assets is not None else [
            "paper-launcher-linux-amd64",
            "paper-launcher-windows-amd64.exe",
        ]
        return {
            "tag_name": tag,
            "name": f"Release {tag}",
            "body": body,
            "published_at": "2026-01-01T00:00:00Z",
            "assets": [
                {
                    "name": name,
                    "browser_download_url": f"https://downloads.test/{name}",
                    "url": f"https://api.github.test/assets/{i}",
                    "size": 16,
                }
                for i, name in enumerate(names)
            ],
        }

    return _factory


@pytest.fixture
def paper_base() -> str:
    return PAPER_BASE


@pytest.fixture
def release_feed_url() -> str:
    return RELEASE_FEED
