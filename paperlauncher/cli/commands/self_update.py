"""``paperlauncher self-update`` — update the launcher executable only."""

from __future__ import annotations

import threading
from pathlib import Path

import typer
from rich.panel import Panel

from paperlauncher.cli.common import (
    EXIT_FAILURE,
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
from paperlauncher.models.update import UpdateState


def self_update_cmd(
    config: Path = ConfigOption,
    log_level: str | None = LogLevelOption,
    verbose: bool = VerboseOption,
    quiet: bool = QuietOption,
    yes: bool = YesOption,
) -> None:
    """Run the self-update sequence and exit."""
    setup_logging(log_level, verbose=verbose, quiet=quiet)
    progress = DownloadProgress()
    cancel_event = threading.Event()

    with handle_errors(), cancel_on_signals(cancel_event):
        sequence = open_sequence(
            config,
            assume_yes=yes,
            progress=progress,
            cancel_event=cancel_event,
            log_level=log_level,
            verbose=verbose,
            quiet=quiet,
        )
        try:
            outcome = sequence.sequencer.run(
                auto_update=yes,
                confirm=sequence.confirm,
                progress=progress,
            )
        finally:
            progress.close()
            sequence.context.close()

    lines = [
        f"State:   {outcome.state.value}",
        f"Current: {outcome.current_version}",
        f"Latest:  {outcome.latest_version or '-'}",
    ]
    if outcome.reason:
        lines.append(f"Reason:  {outcome.reason}")
    if outcome.backup_path is not None:
        lines.append(f"Backup:  {outcome.backup_path}")
    if outcome.error:
        lines.append(f"Error:   {outcome.error}")

    style = "green" if outcome.state in (UpdateState.DONE, UpdateState.NO_UPDATE) else "red"
    console.print(Panel("\n".join(lines), title="Launcher Self-Update", border_style=style))

    if outcome.restart_required:
        console.print("Please restart the launcher.")
    elif outcome.state == UpdateState.FAILED:
        raise typer.Exit(code=EXIT_FAILURE)
