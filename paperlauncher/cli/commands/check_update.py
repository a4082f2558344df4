"""``paperlauncher check-update`` — report available updates, change nothing."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from paperlauncher.cli.common import (
    ConfigOption,
    LogLevelOption,
    QuietOption,
    VerboseOption,
    console,
    handle_errors,
    open_sequence,
    setup_logging,
)
from paperlauncher.core.launcher import check_updates


def check_update_cmd(
    config: Path = ConfigOption,
    work_dir: Path = typer.Option(
        None, "--work-dir", "-w", help="Override the server working directory."
    ),
    log_level: str | None = LogLevelOption,
    verbose: bool = VerboseOption,
    quiet: bool = QuietOption,
) -> None:
    """Check the launcher release feed and the Paper build feed."""
    setup_logging(log_level, verbose=verbose, quiet=quiet)

    with handle_errors():
        sequence = open_sequence(
            config, work_dir=work_dir, log_level=log_level, verbose=verbose, quiet=quiet
        )
        try:
            release, build = check_updates(sequence)
        finally:
            sequence.context.close()

    table = Table(title="Update Check")
    table.add_column("Component", style="cyan")
    table.add_column("Current")
    table.add_column("Available")
    table.add_column("Status", justify="center")

    current = sequence.context.launcher_version
    if release is not None:
        table.add_row("launcher", current, release.normalized_version, "[yellow]update[/yellow]")
    else:
        table.add_row("launcher", current, "-", "[green]current[/green]")

    jar = sequence.artifacts.find_local_jar()
    if build is not None:
        table.add_row(
            f"server ({build.version})",
            f"build {build.current_build}",
            f"build {build.latest_build}",
            "[yellow]update[/yellow]",
        )
    elif jar is not None:
        table.add_row("server", jar.name, "-", "[green]current[/green]")
    else:
        table.add_row("server", "[dim]not installed[/dim]", "-", "-")

    console.print(table)
    if release is not None and release.summary:
        console.print(f"[dim]Release notes:[/dim] {release.summary}")
