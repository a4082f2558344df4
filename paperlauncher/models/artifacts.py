"""Artifact models — files on disk the launcher acquires and verifies."""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

SIDECAR_SUFFIX = ".sha256"

# paper-<minecraft version>-<build>.jar
PAPER_JAR_PATTERN = re.compile(r"paper-(.+)-(\d+)\.jar")


def parse_jar_name(name: str) -> tuple[str, int] | None:
    """Split ``paper-1.21.1-130.jar`` into ``("1.21.1", 130)``."""
    match = PAPER_JAR_PATTERN.fullmatch(Path(name).name)
    if match is None:
        return None
    return match.group(1), int(match.group(2))


class Artifact(BaseModel):
    """A verified binary file on local disk.

    An artifact is either verified this session or not modelled at all:
    instances are only built after the content hash has been computed.
    """

    model_config = ConfigDict(frozen=True)

    path: Path
    size: int = Field(gt=0)
    content_hash: str = Field(pattern=r"^[0-9a-f]{64}$")
    declared_version: str | None = None
    build: int | None = None

    @classmethod
    def from_path(cls, path: Path, content_hash: str) -> Artifact:
        """Build an Artifact for ``path``, reading version/build from its name."""
        path = Path(path)
        parsed = parse_jar_name(path.name)
        version, build = parsed if parsed else (None, None)
        return cls(
            path=path,
            size=path.stat().st_size,
            content_hash=content_hash.lower(),
            declared_version=version,
            build=build,
        )


class ChecksumSidecar(BaseModel):
    """A persisted digest stored next to its artifact (``<path>.sha256``)."""

    model_config = ConfigDict(frozen=True)

    artifact_path: Path
    hex_digest: str = Field(pattern=r"^[0-9a-fA-F]{64}$")

    @property
    def sidecar_path(self) -> Path:
        return sidecar_path_for(self.artifact_path)


def sidecar_path_for(artifact_path: Path) -> Path:
    """Return the sidecar location for an artifact."""
    artifact_path = Path(artifact_path)
    return artifact_path.with_name(artifact_path.name + SIDECAR_SUFFIX)
