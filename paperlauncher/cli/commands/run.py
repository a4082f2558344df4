"""``paperlauncher run`` — prepare and start the Paper server.

Self-updates the launcher when a newer release exists, verifies or downloads
the server JAR, optionally backs up worlds, then runs the server until it
exits or a termination signal arrives.
"""

from __future__ import annotations

import threading
from pathlib import Path

import typer

from paperlauncher.cli.common import (
    ConfigOption,
    DownloadProgress,
    LogLevelOption,
    QuietOption,
    VerboseOption,
    YesOption,
    cancel_on_signals,
    console,
    handle_errors,
    open_sequence,
    setup_logging,
)


def run_cmd(
    config: Path = ConfigOption,
    work_dir: Path = typer.Option(
        None, "--work-dir", "-w", help="Override the server working directory."
    ),
    version: str = typer.Option(
        None, "--version", "-v", help="Override the Minecraft version."
    ),
    log_level: str | None = LogLevelOption,
    verbose: bool = VerboseOption,
    quiet: bool = QuietOption,
    yes: bool = YesOption,
) -> None:
    """Run the full launch sequence."""
    setup_logging(log_level, verbose=verbose, quiet=quiet)
    progress = DownloadProgress()
    cancel_event = threading.Event()

    with handle_errors(), cancel_on_signals(cancel_event):
        sequence = open_sequence(
            config,
            work_dir=work_dir,
            version=version,
            assume_yes=yes,
            progress=progress,
            cancel_event=cancel_event,
            log_level=log_level,
            verbose=verbose,
            quiet=quiet,
        )
        try:
            outcome = sequence.run()
        finally:
            progress.close()
            sequence.context.close()

    if outcome.restart_required:
        console.print(
            "[bold green]Launcher updated successfully![/bold green] "
            "Please restart the launcher."
        )
        return
    if outcome.exit_code:
        raise typer.Exit(code=outcome.exit_code)
