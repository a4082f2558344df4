"""``paperlauncher verify JAR`` — structural and checksum verification."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from paperlauncher.cli.common import (
    EXIT_FAILURE,
    LogLevelOption,
    QuietOption,
    VerboseOption,
    console,
    err_console,
    setup_logging,
)
from paperlauncher.core.checksum_store import ChecksumStore
from paperlauncher.core.errors import (
    FilesystemError,
    IntegrityViolationError,
    MalformedDigestError,
)
from paperlauncher.core.validator import validate_and_digest


def verify_cmd(
    jar: Path = typer.Argument(..., help="The server JAR to verify."),
    write_sidecar: bool = typer.Option(
        False,
        "--write-sidecar",
        help="Record the digest in <jar>.sha256 when no sidecar exists.",
    ),
    log_level: str | None = LogLevelOption,
    verbose: bool = VerboseOption,
    quiet: bool = QuietOption,
) -> None:
    """Check that JAR is a well-formed archive and matches its sidecar.

    Exits 1 when the archive is damaged, the sidecar is malformed, or the
    digest does not match.
    """
    setup_logging(log_level, verbose=verbose, quiet=quiet)
    store = ChecksumStore()
    sidecar = store.sidecar_path(jar)

    table = Table(title=f"Verify {jar.name}")
    table.add_column("Check", style="cyan")
    table.add_column("Result")

    try:
        digest = validate_and_digest(jar, store.chunk_size)
    except IntegrityViolationError as exc:
        table.add_row("structure", f"[red]FAIL[/red] {exc}")
        console.print(table)
        raise typer.Exit(code=EXIT_FAILURE) from exc
    except FilesystemError as exc:
        err_console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=EXIT_FAILURE) from exc
    table.add_row("structure", "[green]OK[/green]")
    table.add_row("sha256", digest)

    failed = False
    try:
        expected = store.load(sidecar)
    except MalformedDigestError as exc:
        table.add_row("sidecar", f"[red]MALFORMED[/red] {exc}")
        expected = None
        failed = True

    if expected is not None:
        if expected.lower() == digest:
            table.add_row("sidecar", "[green]MATCH[/green]")
        else:
            table.add_row("sidecar", f"[red]MISMATCH[/red] expected {expected.lower()}")
            failed = True
    elif not failed:
        if write_sidecar:
            try:
                store.save(sidecar, digest)
            except FilesystemError as exc:
                table.add_row("sidecar", f"[red]NOT SAVED[/red] {exc}")
                failed = True
            else:
                table.add_row("sidecar", f"[yellow]RECORDED[/yellow] {sidecar.name}")
        else:
            table.add_row("sidecar", "[dim]none[/dim]")

    console.print(table)
    if failed:
        raise typer.Exit(code=EXIT_FAILURE)
