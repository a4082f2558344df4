"""Launch context — the explicit, per-process state shared by the core.

Built once at start-up and handed by reference to the fetcher, the feed
clients and the self-update sequencer. There are no module-level HTTP
clients or cached versions.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import requests

from paperlauncher import __version__
from paperlauncher.core.errors import OperationCancelledError
from paperlauncher.models.context import RetryPolicy

if TYPE_CHECKING:
    from paperlauncher.config import LauncherSettings

DEFAULT_USER_AGENT = f"paper-launcher/{__version__}"
DEFAULT_TIMEOUT = 30.0
DEFAULT_DOWNLOAD_CHUNK_SIZE = 128 * 1024


class LaunchContext:
    """Per-run collaborators and tuning for network operations.

    Parameters
    ----------
    session:
        HTTP session used for every request. A fresh ``requests.Session``
        is created when omitted.
    retry:
        Retry/backoff policy for the resilient fetcher.
    timeout:
        Per-request timeout in seconds.
    user_agent:
        Client identity sent with every request.
    github_token:
        Optional bearer token for a private release feed.
    launcher_version:
        The version of the running launcher (``dev`` for unversioned builds).
    cancel_event:
        Set from the signal handler to abort blocking operations.
    """

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        retry: RetryPolicy | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        github_token: str = "",
        launcher_version: str = "dev",
        chunk_size: int = DEFAULT_DOWNLOAD_CHUNK_SIZE,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.session = session if session is not None else requests.Session()
        self.retry = retry or RetryPolicy()
        self.timeout = timeout
        self.user_agent = user_agent
        self.github_token = github_token.strip()
        self.launcher_version = launcher_version
        self.chunk_size = chunk_size
        self.cancel_event = cancel_event or threading.Event()

    @classmethod
    def from_settings(
        cls,
        settings: LauncherSettings,
        *,
        launcher_version: str,
        session: requests.Session | None = None,
        cancel_event: threading.Event | None = None,
    ) -> LaunchContext:
        """Build the context from loaded launcher settings."""
        return cls(
            session=session,
            retry=RetryPolicy(
                max_attempts=settings.retry_attempts,
                base_delay=settings.retry_base_delay,
                multiplier=settings.retry_multiplier,
            ),
            timeout=settings.request_timeout,
            github_token=settings.github_token,
            launcher_version=launcher_version,
            chunk_size=settings.download_chunk_size,
            cancel_event=cancel_event,
        )

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise OperationCancelledError("operation cancelled")

    def sleep(self, seconds: float) -> None:
        """Wait ``seconds`` unless cancelled first, in which case raise."""
        if self.cancel_event.wait(seconds):
            raise OperationCancelledError("operation cancelled during backoff")

    def close(self) -> None:
        self.session.close()
