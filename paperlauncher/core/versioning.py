"""Version comparison and platform asset selection.

Comparison is permissive: components are dot-separated
numbers, anything non-numeric or missing counts as zero. ``"1.0"`` equals
``"1.0.0"`` and ``"1.x.0"`` equals ``"1.0.0"``.
"""

from __future__ import annotations

import logging
import platform
import subprocess
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from paperlauncher.models.releases import ReleaseAsset

logger = logging.getLogger(__name__)

UNVERSIONED = "dev"
DEFAULT_ASSET_PREFIX = "paper-launcher"

_OS_NAMES: dict[str, str] = {
    "windows": "windows",
    "linux": "linux",
    "darwin": "darwin",
}

_ARCH_NAMES: dict[str, str] = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}


def normalize_version(version: str) -> str:
    """Strip one leading ``v`` and surrounding whitespace."""
    return version.strip().removeprefix("v").strip()


def _component(part: str) -> int:
    return int(part) if part.isascii() and part.isdigit() else 0


def compare_versions(a: str, b: str) -> int:
    """Return 1, 0 or -1 as ``a`` is newer than, equal to or older than ``b``."""
    left = [_component(p) for p in a.split(".")] if a else []
    right = [_component(p) for p in b.split(".")] if b else []
    width = max(len(left), len(right))
    left += [0] * (width - len(left))
    right += [0] * (width - len(right))
    for x, y in zip(left, right):
        if x != y:
            return 1 if x > y else -1
    return 0


def version_key(version: str) -> tuple[int, ...]:
    """Sortable key consistent with :func:`compare_versions`."""
    parts = [_component(p) for p in version.split(".")] if version else []
    while parts and parts[-1] == 0:
        parts.pop()
    return tuple(parts)


def is_newer(candidate: str, current: str) -> bool:
    """Whether ``candidate`` is strictly newer than ``current``."""
    return compare_versions(normalize_version(candidate), normalize_version(current)) > 0


def is_release_version(version: str) -> bool:
    """False for empty or ``dev`` versions, which must never self-update."""
    normalized = normalize_version(version or "")
    return bool(normalized) and normalized != UNVERSIONED


# ---------------------------------------------------------------------------
# Platform assets
# ---------------------------------------------------------------------------


def current_platform() -> tuple[str, str]:
    """Return the host as ``(os, arch)`` in release-asset naming."""
    return platform.system().lower(), platform.machine().lower()


def platform_asset_name(
    os_name: str, arch_name: str, prefix: str = DEFAULT_ASSET_PREFIX
) -> str | None:
    """Return the published asset name for a platform, or ``None``."""
    os_key = _OS_NAMES.get(os_name.lower())
    arch_key = _ARCH_NAMES.get(arch_name.lower())
    if os_key is None or arch_key is None:
        return None
    suffix = ".exe" if os_key == "windows" else ""
    return f"{prefix}-{os_key}-{arch_key}{suffix}"


def select_asset_for_platform(
    assets: Iterable[ReleaseAsset],
    os_name: str,
    arch_name: str,
    prefix: str = DEFAULT_ASSET_PREFIX,
) -> ReleaseAsset | None:
    """Exact-match lookup of the asset for ``os_name``/``arch_name``.

    ``None`` means the platform has no published build; callers treat that
    as "no update available", not as a failure.
    """
    wanted = platform_asset_name(os_name, arch_name, prefix)
    if wanted is None:
        return None
    for asset in assets:
        if asset.name == wanted:
            return asset
    return None


# ---------------------------------------------------------------------------
# Running version
# ---------------------------------------------------------------------------


def detect_launcher_version(declared: str) -> str:
    """Resolve the running launcher version once at start-up.

    Release builds carry their version; development checkouts fall back to
    the nearest git tag, and to ``dev`` when there is none.
    """
    if is_release_version(declared):
        return normalize_version(declared)
    try:
        result = subprocess.run(
            ["git", "describe", "--tags", "--abbrev=0"],
            capture_output=True,
            text=True,
            timeout=5,
            check=True,
        )
    except (OSError, subprocess.SubprocessError):
        return UNVERSIONED
    version = normalize_version(result.stdout)
    return version or UNVERSIONED
