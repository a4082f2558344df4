"""Main Typer application — imports and registers all CLI commands.

Entry point: ``paperlauncher`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import typer

from paperlauncher.cli.commands.check_update import check_update_cmd
from paperlauncher.cli.commands.download import download_cmd
from paperlauncher.cli.commands.run import run_cmd
from paperlauncher.cli.commands.self_update import self_update_cmd
from paperlauncher.cli.commands.verify import verify_cmd
from paperlauncher.cli.commands.version import version_cmd

app = typer.Typer(
    name="paperlauncher",
    help="Integrity-verified launcher and updater for Paper Minecraft servers.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="run", help="Prepare and start the Paper server.")(run_cmd)
app.command(name="check-update", help="Report launcher and server updates.")(check_update_cmd)
app.command(name="self-update", help="Update the launcher executable.")(self_update_cmd)
app.command(name="verify", help="Verify a server JAR and its checksum sidecar.")(verify_cmd)
app.command(name="download", help="Download a verified server JAR.")(download_cmd)
app.command(name="version", help="Print the launcher version.")(version_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
