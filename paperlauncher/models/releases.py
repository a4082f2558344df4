"""Upstream feed models — build feed responses and release descriptors.

Descriptors are ephemeral: fetched fresh on every check, never persisted.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from paperlauncher.core.versioning import normalize_version


# ---------------------------------------------------------------------------
# Paper build feed (v2 API)
# ---------------------------------------------------------------------------


class ProjectResponse(BaseModel):
    """``GET {base}`` → list of published Minecraft versions, oldest first."""

    versions: list[str] = []


class BuildEntry(BaseModel):
    build: int


class BuildsResponse(BaseModel):
    """``GET {base}/versions/{version}/builds``."""

    builds: list[BuildEntry] = []


class ApplicationDownload(BaseModel):
    name: str
    sha256: str | None = None


class BuildDownloads(BaseModel):
    application: ApplicationDownload


class BuildDownloadResponse(BaseModel):
    """``GET {base}/versions/{version}/builds/{build}``."""

    downloads: BuildDownloads


class ResolvedBuild(BaseModel):
    """A concrete build to download; ``sha256`` is the digest the feed publishes."""

    model_config = ConfigDict(frozen=True)

    version: str
    build: int
    name: str
    sha256: str | None = None


class BuildUpdate(BaseModel):
    """A newer build of the managed server JAR for the same Minecraft version."""

    model_config = ConfigDict(frozen=True)

    version: str
    current_build: int
    latest_build: int
    artifact_name: str


# ---------------------------------------------------------------------------
# Launcher release feed (GitHub releases API)
# ---------------------------------------------------------------------------


class ReleaseAsset(BaseModel):
    """A downloadable file attached to a release."""

    model_config = ConfigDict(frozen=True)

    name: str
    browser_download_url: str = ""
    url: str = ""  # API url, used with a token for private feeds
    size: int = 0


class ReleaseDescriptor(BaseModel):
    """The latest release of the launcher as reported by the release feed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tag: str = Field(alias="tag_name")
    name: str = ""
    notes: str = Field(default="", alias="body")
    published_at: str | None = None
    assets: list[ReleaseAsset] = []

    @property
    def normalized_version(self) -> str:
        return normalize_version(self.tag)

    @property
    def summary(self) -> str:
        """First line of the release notes, for display."""
        lines = self.notes.strip().splitlines()
        return lines[0].strip() if lines else ""
