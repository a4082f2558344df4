"""Minecraft EULA acceptance."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from paperlauncher.core.errors import LauncherError

logger = logging.getLogger(__name__)

EULA_FILE = "eula.txt"
EULA_URL = "https://aka.ms/MinecraftEULA"


def eula_accepted(directory: Path) -> bool:
    path = Path(directory) / EULA_FILE
    if not path.is_file():
        return False
    for line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        key, _, value = line.partition("=")
        if key.strip().lower() == "eula":
            return value.strip().lower() == "true"
    return False


def ensure_eula(directory: Path, confirm: Callable[[str], bool]) -> None:
    """Write ``eula=true`` once the user agrees; refuse to continue otherwise."""
    if eula_accepted(directory):
        return
    if not confirm(f"Do you agree to the Minecraft EULA ({EULA_URL})?"):
        raise LauncherError("the Minecraft EULA must be accepted to run the server")
    (Path(directory) / EULA_FILE).write_text(
        f"# By changing the setting below to TRUE you are indicating your "
        f"agreement to our EULA ({EULA_URL}).\neula=true\n",
        encoding="utf-8",
    )
    logger.info("Accepted the Minecraft EULA")
