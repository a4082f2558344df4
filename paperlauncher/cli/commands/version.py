"""``paperlauncher version`` — print the launcher version."""

from __future__ import annotations

from paperlauncher import __version__
from paperlauncher.cli.common import console
from paperlauncher.core.versioning import detect_launcher_version


def version_cmd() -> None:
    """Print the running launcher version."""
    console.print(f"paper-launcher {detect_launcher_version(__version__)}")
