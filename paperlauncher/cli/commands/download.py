"""``paperlauncher download [VERSION]`` — acquire a verified server JAR."""

from __future__ import annotations

import threading
from pathlib import Path

import typer
from rich.panel import Panel

from paperlauncher.cli.common import (
    ConfigOption,
    DownloadProgress,
    LogLevelOption,
    QuietOption,
    VerboseOption,
    cancel_on_signals,
    console,
    handle_errors,
    open_sequence,
    setup_logging,
)


def download_cmd(
    version: str = typer.Argument(
        None, help="Minecraft version (defaults to the configured one)."
    ),
    config: Path = ConfigOption,
    work_dir: Path = typer.Option(
        None, "--work-dir", "-w", help="Directory to store the JAR in."
    ),
    log_level: str | None = LogLevelOption,
    verbose: bool = VerboseOption,
    quiet: bool = QuietOption,
) -> None:
    """Download the latest Paper build for VERSION, or reuse a verified copy."""
    setup_logging(log_level, verbose=verbose, quiet=quiet)
    progress = DownloadProgress()
    cancel_event = threading.Event()

    with handle_errors(), cancel_on_signals(cancel_event):
        sequence = open_sequence(
            config,
            work_dir=work_dir,
            version=version,
            progress=progress,
            cancel_event=cancel_event,
            log_level=log_level,
            verbose=verbose,
            quiet=quiet,
        )
        try:
            sequence.artifacts.discard_stale_staging()
            artifact = sequence.artifacts.acquire(
                sequence.settings.minecraft_version, progress=progress
            )
        finally:
            progress.close()
            sequence.context.close()

    console.print(
        Panel(
            f"Path:    {artifact.path}\n"
            f"Version: {artifact.declared_version or '-'}\n"
            f"Build:   {artifact.build if artifact.build is not None else '-'}\n"
            f"Size:    {artifact.size} bytes\n"
            f"SHA-256: {artifact.content_hash}",
            title="Server JAR",
            border_style="green",
        )
    )
