"""Resilient HTTP fetcher — bounded retry, staged writes, atomic publish.

Every download goes to ``<dest>.part`` first and is renamed onto ``<dest>``
only after the body has been fully written and the file closed. Any failure
removes the staging file, so ``<dest>`` is either unchanged or fully
replaced, never partially written.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any, BinaryIO

import requests

from paperlauncher.core.context import LaunchContext
from paperlauncher.core.errors import (
    FetchFailedError,
    FilesystemError,
    OperationCancelledError,
    TransientNetworkError,
    UpstreamUnavailableError,
)
from paperlauncher.models.update import PART_SUFFIX

logger = logging.getLogger(__name__)

# (bytes written so far, total size if the server announced one)
ProgressObserver = Callable[[int, "int | None"], None]


def part_path_for(dest: Path) -> Path:
    dest = Path(dest)
    return dest.with_name(dest.name + PART_SUFFIX)


def discard_stale_part(dest: Path) -> bool:
    """Delete a leftover ``<dest>.part`` from an interrupted download."""
    part = part_path_for(dest)
    if not part.exists():
        return False
    logger.info("Found incomplete download, removing: %s", part)
    try:
        part.unlink()
    except OSError as exc:
        raise FilesystemError(f"failed to remove incomplete download {part}: {exc}") from exc
    return True


def promote(staging: Path, dest: Path) -> None:
    """Atomically move ``staging`` onto ``dest``.

    ``os.replace`` overwrites atomically on POSIX and on Windows. Where the
    platform still refuses (a Windows file held open elsewhere), the old
    file is removed immediately before a plain rename.
    """
    try:
        os.replace(staging, dest)
        return
    except PermissionError:
        if os.name != "nt" or not Path(dest).exists():
            raise
    logger.debug("Replace refused for %s, removing before rename", dest)
    os.remove(dest)
    os.rename(staging, dest)


@contextlib.contextmanager
def staged_file(dest: Path) -> Iterator[tuple[Path, BinaryIO]]:
    """Open ``<dest>.part`` for writing and guarantee cleanup.

    The staging file is removed on every exit path except a normal return
    from the ``with`` block, after which the caller promotes it.
    """
    staging = part_path_for(dest)
    discard_stale_part(dest)
    try:
        handle = staging.open("wb")
    except OSError as exc:
        raise FilesystemError(f"failed to create temp file {staging}: {exc}") from exc

    completed = False
    try:
        yield staging, handle
        try:
            handle.close()
        except OSError as exc:
            raise FilesystemError(f"failed to close {staging}: {exc}") from exc
        completed = True
    finally:
        if not completed:
            handle.close()
            with contextlib.suppress(FileNotFoundError):
                staging.unlink()


class ResilientFetcher:
    """HTTP GET with retry/backoff and crash-safe downloads.

    Parameters
    ----------
    context:
        The launch context providing the session, retry policy, timeout,
        client identity and cancel event.
    """

    def __init__(self, context: LaunchContext) -> None:
        self._ctx = context

    @property
    def context(self) -> LaunchContext:
        return self._ctx

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def request(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        stream: bool = False,
    ) -> requests.Response:
        """GET ``url``, retrying transport failures and non-200 statuses.

        Returns the open 200 response; the caller owns closing it.
        """
        retry = self._ctx.retry
        delays = retry.delays()
        merged = {"User-Agent": self._ctx.user_agent}
        merged.update(headers or {})
        last_cause: TransientNetworkError | None = None

        for attempt in range(1, retry.max_attempts + 1):
            if attempt > 1:
                self._ctx.sleep(delays[attempt - 2])
            else:
                self._ctx.raise_if_cancelled()

            try:
                return self._attempt(url, merged, stream)
            except TransientNetworkError as exc:
                last_cause = exc
                if attempt < retry.max_attempts:
                    logger.warning(
                        "Request failed (attempt %d/%d), retrying: %s",
                        attempt, retry.max_attempts, exc,
                    )

        raise FetchFailedError(url, retry.max_attempts, last_cause) from last_cause

    def _attempt(
        self, url: str, headers: dict[str, str], stream: bool
    ) -> requests.Response:
        """One GET; anything but an open 200 response is a TransientNetworkError."""
        try:
            response = self._ctx.session.get(
                url, headers=headers, timeout=self._ctx.timeout, stream=stream
            )
        except requests.RequestException as exc:
            self._ctx.raise_if_cancelled()
            raise TransientNetworkError(str(exc)) from exc

        if response.status_code != 200:
            response.close()
            raise TransientNetworkError(f"HTTP status {response.status_code}")
        return response

    def get_json(self, url: str, *, headers: dict[str, str] | None = None) -> Any:
        """GET ``url`` and decode the JSON body."""
        response = self.request(url, headers=headers)
        try:
            return response.json()
        except (ValueError, json.JSONDecodeError) as exc:
            raise UpstreamUnavailableError(
                f"failed to parse response from {url}: {exc}"
            ) from exc
        finally:
            response.close()

    # ------------------------------------------------------------------
    # Downloads
    # ------------------------------------------------------------------

    def fetch(
        self,
        url: str,
        dest: Path,
        *,
        headers: dict[str, str] | None = None,
        progress: ProgressObserver | None = None,
    ) -> Path:
        """Download ``url`` to ``dest`` through a ``.part`` staging file."""
        dest = Path(dest)
        response = self.request(url, headers=headers, stream=True)
        total = _content_length(response)

        with contextlib.closing(response):
            with staged_file(dest) as (staging, handle):
                written = 0
                try:
                    for chunk in response.iter_content(chunk_size=self._ctx.chunk_size):
                        if self._ctx.cancelled:
                            raise OperationCancelledError(
                                f"download of {dest.name} cancelled"
                            )
                        if not chunk:
                            continue
                        handle.write(chunk)
                        written += len(chunk)
                        if progress is not None:
                            progress(written, total)
                except requests.RequestException as exc:
                    raise FetchFailedError(url, 1, exc) from exc
                except OSError as exc:
                    raise FilesystemError(f"failed to write {staging}: {exc}") from exc

                if total is not None and written != total:
                    raise FetchFailedError(
                        url, 1, f"truncated body: {written} of {total} bytes"
                    )

            try:
                promote(staging, dest)
            except OSError as exc:
                with contextlib.suppress(FileNotFoundError):
                    staging.unlink()
                raise FilesystemError(
                    f"failed to move {staging} into place: {exc}"
                ) from exc

        logger.info("Download complete: %s (%d bytes)", dest.name, written)
        return dest


def _content_length(response: requests.Response) -> int | None:
    # iter_content decodes compressed bodies, so the header no longer
    # describes what gets written.
    if response.headers.get("Content-Encoding", "identity") != "identity":
        return None
    value = response.headers.get("Content-Length")
    if value is None:
        return None
    try:
        length = int(value)
    except ValueError:
        return None
    return length if length > 0 else None
