"""Pre-launch world backups with rotation."""

from __future__ import annotations

import logging
import os
import zipfile
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "backup-"
BACKUP_SUFFIX = ".zip"
SKIPPED_FILES = frozenset({"session.lock"})


def perform_backup(
    worlds: list[str],
    backup_dir: Path,
    retention: int,
    *,
    base_dir: Path = Path("."),
    now: datetime | None = None,
) -> Path | None:
    """Zip existing world directories and keep the newest ``retention`` archives.

    Returns the archive path, or ``None`` when no world directory exists.
    """
    backup_dir = Path(backup_dir)
    backup_dir.mkdir(parents=True, exist_ok=True)

    existing = [w for w in worlds if (Path(base_dir) / w).is_dir()]
    if not existing:
        logger.info("No worlds found to back up, skipping backup")
        return None

    stamp = (now or datetime.now()).strftime("%Y-%m-%d_%H-%M-%S")
    target = backup_dir / f"{BACKUP_PREFIX}{stamp}{BACKUP_SUFFIX}"
    logger.info("Creating backup: %s", target)

    try:
        with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for world in existing:
                _add_tree(archive, Path(base_dir), world)
    except OSError:
        target.unlink(missing_ok=True)
        raise

    logger.info("Backup created successfully")
    try:
        rotate_backups(backup_dir, retention)
    except OSError as exc:
        logger.warning("Failed to rotate backups: %s", exc)
    return target


def _add_tree(archive: zipfile.ZipFile, base_dir: Path, world: str) -> None:
    root = base_dir / world
    archive.write(root, f"{world}/")
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        current = Path(dirpath)
        for dirname in dirnames:
            sub = current / dirname
            archive.write(sub, sub.relative_to(base_dir).as_posix() + "/")
        for filename in sorted(filenames):
            if filename in SKIPPED_FILES:
                continue
            path = current / filename
            archive.write(path, path.relative_to(base_dir).as_posix())


def rotate_backups(backup_dir: Path, retention: int) -> list[Path]:
    """Delete the oldest archives beyond ``retention``. Names sort by time."""
    backups = sorted(
        p
        for p in Path(backup_dir).iterdir()
        if p.is_file() and p.name.startswith(BACKUP_PREFIX) and p.name.endswith(BACKUP_SUFFIX)
    )
    excess = len(backups) - retention
    if excess <= 0:
        return []
    removed = backups[:excess]
    for path in removed:
        logger.info("Deleting old backup: %s", path.name)
        path.unlink()
    return removed
