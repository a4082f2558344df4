"""Server process supervision."""

from __future__ import annotations

import logging
import subprocess
import threading
from pathlib import Path

from paperlauncher.core.errors import LauncherError

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.5
SHUTDOWN_GRACE = 60.0


class ServerExitError(LauncherError):
    """Raised when the server process exits with a non-zero status."""

    def __init__(self, returncode: int, message: str) -> None:
        self.returncode = returncode
        super().__init__(message)


def build_command(
    java_path: str, jvm_args: list[str], jar: Path, server_args: list[str]
) -> list[str]:
    return [java_path, *jvm_args, "-jar", str(jar), *server_args]


def run_server(
    java_path: str,
    jvm_args: list[str],
    jar: Path,
    server_args: list[str],
    cancel_event: threading.Event,
    *,
    cwd: Path | None = None,
    poll_interval: float = POLL_INTERVAL,
    grace: float = SHUTDOWN_GRACE,
) -> int:
    """Run the server attached to this terminal and wait for it.

    When ``cancel_event`` fires the server is asked to stop, then killed if
    it does not exit within ``grace`` seconds. A server stopped this way
    returns its exit code; any other non-zero exit raises ``ServerExitError``.
    """
    command = build_command(java_path, jvm_args, jar, server_args)
    logger.debug("Starting server: %s", " ".join(command))
    try:
        process = subprocess.Popen(command, cwd=cwd)
    except OSError as exc:
        raise LauncherError(f"failed to start server: {exc}") from exc

    stopping = False
    while True:
        try:
            returncode = process.wait(timeout=poll_interval)
            break
        except subprocess.TimeoutExpired:
            pass
        if cancel_event.is_set():
            stopping = True
            logger.info("Shutting down server...")
            process.terminate()
            try:
                returncode = process.wait(timeout=grace)
            except subprocess.TimeoutExpired:
                logger.warning("Server did not stop within %.0fs, killing it", grace)
                process.kill()
                returncode = process.wait()
            break

    if stopping:
        logger.info("Server stopped by signal")
        return returncode
    if returncode != 0:
        raise ServerExitError(returncode, f"server stopped with exit code {returncode}")
    return returncode
