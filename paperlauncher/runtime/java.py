"""Java runtime detection."""

from __future__ import annotations

import logging
import re
import subprocess

from pydantic import BaseModel, ConfigDict

from paperlauncher.core.errors import JavaNotFoundError

logger = logging.getLogger(__name__)

MIN_JAVA_VERSION = 17
DEFAULT_JAVA = "java"

_QUOTED = re.compile(r'"([^"]+)"')


class JavaRuntime(BaseModel):
    """A detected Java installation."""

    model_config = ConfigDict(frozen=True)

    path: str
    version: str
    major: int


def extract_java_version(output: str) -> str | None:
    """Pull the version string out of ``java -version`` output."""
    for line in output.splitlines():
        line = line.strip()
        if "version" not in line.lower():
            continue
        quoted = _QUOTED.search(line)
        if quoted:
            return quoted.group(1)
        for part in line.split():
            part = part.strip('"')
            if part[:1].isdigit():
                return part
    return None


def parse_java_major(version: str) -> int:
    """Return the major version: ``1.8.0_392`` → 8, ``21.0.2`` → 21."""
    parts = version.strip().split(".")
    major = parts[0]
    if major == "1" and len(parts) > 1:
        major = parts[1]
    digits = re.search(r"\d+", major)
    if digits is None or int(digits.group()) <= 0:
        raise ValueError(f"invalid Java version: {version}")
    return int(digits.group())


def check_java(java_path: str = "", minimum: int = MIN_JAVA_VERSION) -> JavaRuntime:
    """Run ``java -version`` and require at least ``minimum``."""
    java_path = java_path or DEFAULT_JAVA
    try:
        result = subprocess.run(
            [java_path, "-version"],
            capture_output=True,
            text=True,
            timeout=30,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        raise JavaNotFoundError(
            f"Java is not installed or not found at: {java_path}"
        ) from exc
    if result.returncode != 0:
        raise JavaNotFoundError(f"Java is not installed or not found at: {java_path}")

    # java -version prints to stderr
    version = extract_java_version(result.stderr or result.stdout)
    if version is None:
        raise JavaNotFoundError("failed to parse Java version from output")
    try:
        major = parse_java_major(version)
    except ValueError as exc:
        raise JavaNotFoundError(f"failed to parse Java version: {exc}") from exc

    if major < minimum:
        raise JavaNotFoundError(
            f"Java {minimum} or higher is required, found Java {major}"
        )
    return JavaRuntime(path=java_path, version=version, major=major)
