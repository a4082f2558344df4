"""Shared CLI plumbing — logging, prompts, progress, signals and exit codes."""

from __future__ import annotations

import contextlib
import logging
import signal
import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TaskID,
    TextColumn,
    TransferSpeedColumn,
)
from rich.prompt import Confirm

from paperlauncher import __version__
from paperlauncher.config import (
    DEFAULT_CONFIG_PATH,
    LOG_LEVELS,
    LauncherSettings,
    load_settings,
)
from paperlauncher.core.context import LaunchContext
from paperlauncher.core.errors import (
    InstallFailedUnrecoverableError,
    LauncherError,
    OperationCancelledError,
)
from paperlauncher.core.launcher import ConfirmCallback, LaunchSequence
from paperlauncher.core.self_update import resolve_executable_path
from paperlauncher.core.versioning import detect_launcher_version

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 2
EXIT_UNRECOVERABLE = 3

# Options shared by several commands
ConfigOption = typer.Option(
    DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to the launcher config file."
)
LogLevelOption = typer.Option(
    None,
    "--log-level",
    help="Log level (trace, debug, info, warn, error). Defaults to log_level in the config.",
)
VerboseOption = typer.Option(False, "--verbose", help="Enable verbose logging.")
QuietOption = typer.Option(
    False, "--quiet", "-q", help="Suppress all output except errors."
)
YesOption = typer.Option(False, "--yes", "-y", help="Answer yes to every prompt.")


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def resolve_level(
    level: str | None, *, verbose: bool = False, quiet: bool = False
) -> int:
    if quiet:
        return logging.ERROR
    if verbose:
        return logging.DEBUG
    name = (level or "INFO").strip().upper()
    if name not in LOG_LEVELS:
        raise typer.BadParameter(f"unknown log level: {level}", param_hint="--log-level")
    if name == "TRACE":
        return logging.DEBUG
    if name == "WARN":
        return logging.WARNING
    return logging.getLevelName(name)


def setup_logging(
    level: str | None = None, *, verbose: bool = False, quiet: bool = False
) -> None:
    """Route all records through a Rich console handler on stderr."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(resolve_level(level, verbose=verbose, quiet=quiet))

    handler = RichHandler(console=err_console, show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)

    for noisy in ("urllib3", "requests"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def apply_settings_logging(
    settings: LauncherSettings,
    level: str | None = None,
    *,
    verbose: bool = False,
    quiet: bool = False,
) -> None:
    """Apply the configured log level and log file once settings are loaded.

    ``--log-level``, ``--verbose`` and ``--quiet`` keep precedence over
    ``log_level`` from the config.
    """
    if level is None and not verbose and not quiet:
        logging.getLogger().setLevel(resolve_level(settings.log_level))
    if settings.log_file_enable:
        add_file_handler(Path(settings.log_file or "launcher.log"))


def add_file_handler(path: Path) -> None:
    """Also append plain-text records to ``path``. Failure only warns."""
    try:
        handler = logging.FileHandler(path, encoding="utf-8")
    except OSError as exc:
        logger.warning("Failed to open log file: %s", exc)
        return
    handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    )
    logging.getLogger().addHandler(handler)


# ---------------------------------------------------------------------------
# Prompts and progress
# ---------------------------------------------------------------------------


def make_confirm(assume_yes: bool) -> ConfirmCallback:
    if assume_yes:
        return lambda question: True

    def ask(question: str) -> bool:
        try:
            return Confirm.ask(question, console=console)
        except EOFError:
            logger.warning("Failed to read user input, assuming no")
            return False

    return ask


class DownloadProgress:
    """Rich progress bar driven by the fetcher's ``(done, total)`` callbacks.

    The bar appears on the first callback and is removed once the announced
    size is reached or ``close`` is called.
    """

    def __init__(self, target: Console | None = None) -> None:
        self._console = target or err_console
        self._progress: Progress | None = None
        self._task: TaskID | None = None
        self._last = 0

    def __call__(self, done: int, total: int | None) -> None:
        if self._progress is None or self._task is None or done < self._last:
            self.close()
            self._progress, self._task = self._start(total)
        self._progress.update(self._task, completed=done, total=total)
        self._last = done
        if total is not None and done >= total:
            self.close()

    def _start(self, total: int | None) -> tuple[Progress, TaskID]:
        progress = Progress(
            TextColumn("[bold blue]Downloading"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            console=self._console,
            transient=True,
        )
        progress.start()
        return progress, progress.add_task("download", total=total)

    def close(self) -> None:
        if self._progress is not None:
            self._progress.stop()
        self._progress = None
        self._task = None
        self._last = 0


# ---------------------------------------------------------------------------
# Signals and errors
# ---------------------------------------------------------------------------


@contextlib.contextmanager
def cancel_on_signals(event: threading.Event) -> Iterator[threading.Event]:
    """Set ``event`` on SIGINT/SIGTERM while the block runs."""
    if threading.current_thread() is not threading.main_thread():
        yield event
        return

    def handler(signum: int, frame: Any) -> None:
        logger.info("Received %s, shutting down...", signal.Signals(signum).name)
        event.set()

    signums = [signal.SIGINT]
    if hasattr(signal, "SIGTERM"):
        signums.append(signal.SIGTERM)
    previous = {signum: signal.signal(signum, handler) for signum in signums}
    try:
        yield event
    finally:
        for signum, old in previous.items():
            signal.signal(signum, old)


def exit_code_for(exc: BaseException) -> int:
    if isinstance(exc, (OperationCancelledError, KeyboardInterrupt)):
        return EXIT_CANCELLED
    if isinstance(exc, InstallFailedUnrecoverableError):
        return EXIT_UNRECOVERABLE
    return EXIT_FAILURE


@contextlib.contextmanager
def handle_errors() -> Iterator[None]:
    """Turn launcher failures into a message and the matching exit code."""
    try:
        yield
    except (OperationCancelledError, KeyboardInterrupt) as exc:
        logger.info("Operation cancelled by user")
        raise typer.Exit(code=exit_code_for(exc)) from exc
    except InstallFailedUnrecoverableError as exc:
        err_console.print(
            f"[bold red]Launcher update failed and could not be rolled back.[/bold red]\n"
            f"{exc}\n"
            f"Restore it manually by renaming [bold]{exc.backup_path}[/bold] "
            f"to [bold]{exc.live_path}[/bold]."
        )
        raise typer.Exit(code=EXIT_UNRECOVERABLE) from exc
    except LauncherError as exc:
        err_console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=EXIT_FAILURE) from exc


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def open_sequence(
    config_path: Path,
    *,
    work_dir: Path | None = None,
    version: str | None = None,
    assume_yes: bool = False,
    progress: DownloadProgress | None = None,
    cancel_event: threading.Event | None = None,
    log_level: str | None = None,
    verbose: bool = False,
    quiet: bool = False,
) -> LaunchSequence:
    """Load settings and build a ``LaunchSequence`` ready to run."""
    overrides: dict[str, Any] = {}
    if work_dir is not None:
        overrides["work_dir"] = str(work_dir)
    if version:
        overrides["minecraft_version"] = version
    settings = load_settings(config_path, **overrides)
    apply_settings_logging(settings, log_level, verbose=verbose, quiet=quiet)

    context = LaunchContext.from_settings(
        settings,
        launcher_version=detect_launcher_version(__version__),
        cancel_event=cancel_event,
    )
    return LaunchSequence(
        settings,
        context,
        executable_path=resolve_executable_path(),
        confirm=make_confirm(assume_yes),
        progress=progress,
    )
