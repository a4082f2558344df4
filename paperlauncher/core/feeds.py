"""Upstream feed clients.

Two independent feeds share the same comparison logic:

- the Paper build feed (versions → builds → application download) for the
  managed server JAR;
- the launcher's own GitHub release feed (single "latest" descriptor with
  platform-keyed assets).

Failures surface as ``UpstreamUnavailableError``. Update checks must never
block launching, so callers log them and carry on.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import requests
from pydantic import BaseModel, ValidationError

from paperlauncher.core.context import LaunchContext
from paperlauncher.core.errors import ReleaseFeedError, UpstreamUnavailableError
from paperlauncher.core.fetcher import ResilientFetcher
from paperlauncher.core.versioning import (
    DEFAULT_ASSET_PREFIX,
    current_platform,
    is_newer,
    is_release_version,
    select_asset_for_platform,
)
from paperlauncher.models.artifacts import parse_jar_name
from paperlauncher.models.releases import (
    ApplicationDownload,
    BuildDownloadResponse,
    BuildsResponse,
    BuildUpdate,
    ProjectResponse,
    ReleaseAsset,
    ReleaseDescriptor,
    ResolvedBuild,
)

logger = logging.getLogger(__name__)

PAPER_API_BASE = "https://api.papermc.io/v2/projects/paper"
RELEASE_FEED_URL = (
    "https://api.github.com/repos/nevcea/minecraft-server-launcher/releases/latest"
)
GITHUB_API_VERSION = "2022-11-28"

_ERROR_BODY_LIMIT = 4096


def _parse(model: type[BaseModel], payload: Any, what: str) -> Any:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise UpstreamUnavailableError(f"failed to parse {what}: {exc}") from exc


class BuildFeedClient:
    """Client for the Paper v2 build API.

    Parameters
    ----------
    fetcher:
        Resilient fetcher used for every request (retries apply).
    base_url:
        Project root, e.g. ``https://api.papermc.io/v2/projects/paper``.
    """

    def __init__(self, fetcher: ResilientFetcher, base_url: str = PAPER_API_BASE) -> None:
        self._fetcher = fetcher
        self._base = base_url.rstrip("/")

    @property
    def base_url(self) -> str:
        return self._base

    def latest_version(self) -> str:
        """Return the newest published Minecraft version."""
        project = _parse(ProjectResponse, self._fetcher.get_json(self._base), "versions")
        if not project.versions:
            raise UpstreamUnavailableError("no versions found")
        return project.versions[-1]

    def latest_build(self, version: str) -> int:
        """Return the newest build number for ``version``."""
        url = f"{self._base}/versions/{version}/builds"
        builds = _parse(BuildsResponse, self._fetcher.get_json(url), "builds")
        if not builds.builds:
            raise UpstreamUnavailableError(f"no builds found for {version}")
        return builds.builds[-1].build

    def application(self, version: str, build: int) -> ApplicationDownload:
        """Return the server download entry of a build."""
        url = f"{self._base}/versions/{version}/builds/{build}"
        info = _parse(BuildDownloadResponse, self._fetcher.get_json(url), "download info")
        application = info.downloads.application
        name = application.name
        if not name or Path(name).name != name:
            raise UpstreamUnavailableError(f"invalid artifact name: {name!r}")
        return application

    def artifact_name(self, version: str, build: int) -> str:
        """Return the download file name of a build."""
        return self.application(version, build).name

    def artifact_url(self, version: str, build: int, name: str) -> str:
        return f"{self._base}/versions/{version}/builds/{build}/downloads/{name}"

    def resolve(self, version: str) -> ResolvedBuild:
        """Resolve ``version`` (or ``latest``) to its newest build."""
        if version == "latest":
            version = self.latest_version()
        build = self.latest_build(version)
        application = self.application(version, build)
        return ResolvedBuild(
            version=version,
            build=build,
            name=application.name,
            sha256=application.sha256 or None,
        )

    def check_update(self, jar_name: str) -> BuildUpdate | None:
        """Return the newer build for the version encoded in ``jar_name``."""
        parsed = parse_jar_name(jar_name)
        if parsed is None:
            raise ValueError(f"invalid jar filename format: {jar_name}")
        version, current_build = parsed

        latest = self.latest_build(version)
        if latest <= current_build:
            return None
        return BuildUpdate(
            version=version,
            current_build=current_build,
            latest_build=latest,
            artifact_name=self.artifact_name(version, latest),
        )


class ReleaseFeedClient:
    """Client for the launcher's own GitHub "latest release" endpoint.

    Parameters
    ----------
    context:
        Launch context providing the session, timeout and token.
    feed_url:
        The ``releases/latest`` API URL.
    asset_prefix:
        Prefix of the platform asset names (``<prefix>-<os>-<arch>``).
    """

    def __init__(
        self,
        context: LaunchContext,
        feed_url: str = RELEASE_FEED_URL,
        *,
        asset_prefix: str = DEFAULT_ASSET_PREFIX,
    ) -> None:
        self._ctx = context
        self._url = feed_url
        self.asset_prefix = asset_prefix

    def _headers(self, accept: str) -> dict[str, str]:
        headers = {
            "User-Agent": self._ctx.user_agent,
            "Accept": accept,
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if self._ctx.github_token:
            headers["Authorization"] = f"Bearer {self._ctx.github_token}"
        return headers

    def latest_release(self) -> ReleaseDescriptor:
        """Fetch and parse the latest release descriptor."""
        self._ctx.raise_if_cancelled()
        try:
            response = self._ctx.session.get(
                self._url,
                headers=self._headers("application/vnd.github.v3+json"),
                timeout=self._ctx.timeout,
            )
        except requests.RequestException as exc:
            raise UpstreamUnavailableError(f"failed to check for updates: {exc}") from exc

        try:
            if response.status_code != 200:
                raise self._status_error(response)
            try:
                payload = response.json()
            except ValueError as exc:
                raise UpstreamUnavailableError(
                    f"failed to parse release info: {exc}"
                ) from exc
        finally:
            response.close()

        return _parse(ReleaseDescriptor, payload, "release info")

    def _status_error(self, response: requests.Response) -> ReleaseFeedError:
        body = response.text[:_ERROR_BODY_LIMIT].strip()
        detail = f": {body}" if body else ""
        status = response.status_code
        if status == 404 and not self._ctx.github_token:
            return ReleaseFeedError(
                status,
                f"release feed returned status {status} (the repository may be "
                f"private; set github_token in config.yaml or the "
                f"LAUNCHER_GITHUB_TOKEN environment variable){detail}",
            )
        if status in (401, 403):
            return ReleaseFeedError(
                status,
                f"release feed returned status {status} (check that the "
                f"configured token is valid and has read access){detail}",
            )
        return ReleaseFeedError(status, f"release feed returned status {status}{detail}")

    def check_for_update(self, current_version: str) -> ReleaseDescriptor | None:
        """Return the latest release if it is newer than ``current_version``."""
        if not is_release_version(current_version):
            logger.debug("Unversioned launcher build, skipping release check")
            return None
        release = self.latest_release()
        if not release.normalized_version:
            return None
        if not is_newer(release.normalized_version, current_version):
            return None
        return release

    def asset_for(
        self, release: ReleaseDescriptor, platform: tuple[str, str] | None = None
    ) -> ReleaseAsset | None:
        os_name, arch = platform or current_platform()
        return select_asset_for_platform(release.assets, os_name, arch, self.asset_prefix)

    def download_request(self, asset: ReleaseAsset) -> tuple[str, dict[str, str]]:
        """Return ``(url, headers)`` for downloading ``asset``.

        Private feeds need the API URL with the token; public ones use the
        browser URL.
        """
        if self._ctx.github_token and asset.url:
            return asset.url, self._headers("application/octet-stream")
        return asset.browser_download_url, {}
