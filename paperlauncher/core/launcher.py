"""Launch sequence — the central coordinator for one launcher run.

Wires the checksum store, fetcher, feed clients, artifact manager and
self-update sequencer around a single ``LaunchContext``, then drives:

1. start-up probes (Java, RAM, launcher release check) as a thread fan-out;
2. the self-update sequence, completed before anything touches the server;
3. EULA acceptance and server JAR resolution (verify, re-download, update);
4. optional world backup;
5. heap sizing, JVM flags and the server process itself.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from paperlauncher.config import LauncherSettings
from paperlauncher.core.checksum_store import ChecksumStore
from paperlauncher.core.context import LaunchContext
from paperlauncher.core.errors import (
    FilesystemError,
    IntegrityViolationError,
    JavaNotFoundError,
    LauncherError,
    UpstreamUnavailableError,
)
from paperlauncher.core.feeds import BuildFeedClient, ReleaseFeedClient
from paperlauncher.core.fetcher import ProgressObserver, ResilientFetcher
from paperlauncher.core.self_update import SelfUpdateSequencer
from paperlauncher.core.server_artifact import ServerArtifactManager
from paperlauncher.models.releases import BuildUpdate, ReleaseDescriptor
from paperlauncher.models.update import SelfUpdateOutcome
from paperlauncher.runtime.backup import perform_backup
from paperlauncher.runtime.eula import ensure_eula
from paperlauncher.runtime.java import JavaRuntime, check_java
from paperlauncher.runtime.jvm import build_jvm_args
from paperlauncher.runtime.memory import SystemRAM, calculate_smart_ram, system_ram
from paperlauncher.runtime.process import run_server

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str], bool]


def _decline(question: str) -> bool:
    logger.info("%s (no answer available, assuming no)", question)
    return False


class ProbeResults(BaseModel):
    """Joined results of the start-up fan-out."""

    model_config = ConfigDict(frozen=True)

    java: JavaRuntime | None = None
    java_error: str | None = None
    ram: SystemRAM | None = None
    launcher_update: ReleaseDescriptor | None = None


class LaunchOutcome(BaseModel):
    """What a launch run ended with."""

    model_config = ConfigDict(frozen=True)

    self_update: SelfUpdateOutcome | None = None
    jar: Path | None = None
    exit_code: int | None = None

    @property
    def restart_required(self) -> bool:
        return self.self_update is not None and self.self_update.restart_required


class LaunchSequence:
    """Prepares and runs the Paper server.

    Parameters
    ----------
    settings:
        Loaded launcher settings.
    context:
        Launch context shared by every network operation.
    executable_path:
        The launcher's own executable; ``None`` disables self-update.
    confirm:
        Yes/no prompt. Defaults to declining every question.
    progress:
        Download progress observer.
    java_probe, ram_probe, server_runner:
        Collaborators for the Java check, the RAM query and the server
        process. Replaceable for tests.
    """

    def __init__(
        self,
        settings: LauncherSettings,
        context: LaunchContext,
        *,
        executable_path: Path | None = None,
        confirm: ConfirmCallback | None = None,
        progress: ProgressObserver | None = None,
        java_probe: Callable[[str], JavaRuntime] = check_java,
        ram_probe: Callable[[], SystemRAM] = system_ram,
        server_runner: Callable[..., int] = run_server,
    ) -> None:
        self.settings = settings
        self.context = context
        self.directory = Path(settings.work_dir) if settings.work_dir else Path(".")
        self.confirm = confirm or _decline
        self._progress = progress
        self._java_probe = java_probe
        self._ram_probe = ram_probe
        self._server_runner = server_runner

        # Core subsystems
        self.fetcher = ResilientFetcher(context)
        self.store = ChecksumStore()
        self.build_feed = BuildFeedClient(self.fetcher, settings.build_feed_url)
        self.release_feed = ReleaseFeedClient(
            context, settings.release_feed_url, asset_prefix=settings.asset_prefix
        )
        self.artifacts = ServerArtifactManager(
            self.store, self.build_feed, self.fetcher, self.directory
        )
        self.sequencer = SelfUpdateSequencer(
            context, self.release_feed, self.fetcher, executable_path
        )

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    def run(self) -> LaunchOutcome:
        """Run every step in order; returns early when a restart is needed."""
        logger.info("Launcher started")
        logger.info("Launcher version: %s", self.context.launcher_version)

        probes = self.probe()
        outcome = self.apply_self_update()
        if outcome.restart_required:
            logger.info("Launcher updated successfully! Please restart the launcher.")
            return LaunchOutcome(self_update=outcome)

        if probes.java is None:
            raise JavaNotFoundError(probes.java_error or "Java runtime not available")
        logger.info("Java version: %s", probes.java.version)

        self.context.raise_if_cancelled()
        if self.directory != Path("."):
            logger.info("Using working directory: %s", self.directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        ensure_eula(self.directory, self.confirm)

        jar = self.resolve_jar()
        self.context.raise_if_cancelled()
        if self.settings.auto_backup:
            self.backup()

        exit_code = self.start_server(jar, probes)
        return LaunchOutcome(self_update=outcome, jar=jar, exit_code=exit_code)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def probe(self) -> ProbeResults:
        """Run the Java check, RAM query and launcher release check concurrently."""
        with ThreadPoolExecutor(max_workers=3, thread_name_prefix="probe") as pool:
            java_future = pool.submit(self._java_probe, self.settings.java_path)
            ram_future = pool.submit(self._ram_probe)
            release_future = pool.submit(self.sequencer.check)

            java: JavaRuntime | None = None
            java_error: str | None = None
            try:
                java = java_future.result()
            except JavaNotFoundError as exc:
                java_error = str(exc)

            ram: SystemRAM | None = None
            try:
                ram = ram_future.result()
            except OSError as exc:
                logger.warning("Failed to get system RAM info: %s", exc)
            else:
                logger.info(
                    "System RAM: %d GB total, %d GB available", ram.total_gb, ram.available_gb
                )

            release = release_future.result()

        if release is not None:
            logger.info("New launcher version available: %s", release.tag)
        return ProbeResults(java=java, java_error=java_error, ram=ram, launcher_update=release)

    def apply_self_update(self) -> SelfUpdateOutcome:
        """Finish the self-update sequence started by ``probe``."""
        return self.sequencer.run(
            auto_update=self.settings.auto_update_launcher,
            confirm=self.confirm,
            progress=self._progress,
        )

    def resolve_jar(self) -> Path:
        """Find, verify, download or update the server JAR."""
        self.artifacts.discard_stale_staging()
        version = self.settings.minecraft_version

        jar = self.artifacts.find_local_jar()
        if jar is None:
            if not self.confirm("No Paper JAR file found. Download automatically?"):
                raise LauncherError("cannot start server without a JAR file")
            artifact = self.artifacts.acquire(version, progress=self._progress)
            logger.info("Found JAR file: %s", artifact.path.name)
            return artifact.path

        logger.info("Found JAR file: %s", jar.name)
        report = self.artifacts.verify_local(jar)
        if not report.ok:
            logger.warning("Existing JAR failed validation: %s", report.error)
            if self.confirm("JAR file checksum validation failed. Re-download?"):
                artifact = self.artifacts.acquire(version, progress=self._progress)
                logger.info("Re-downloaded JAR file: %s", artifact.path.name)
                return artifact.path
            logger.warning("Continuing with invalid JAR file (not recommended)")
            return jar

        update = self.artifacts.check_update(jar)
        if update is None:
            return jar
        logger.info(
            "New version available: %s (Build %d)", update.artifact_name, update.latest_build
        )
        if not (self.settings.auto_update or self.confirm("Do you want to update?")):
            return jar
        try:
            artifact = self.artifacts.update(update, progress=self._progress)
        except (UpstreamUnavailableError, IntegrityViolationError, FilesystemError) as exc:
            logger.error("Failed to update server JAR, keeping %s: %s", jar.name, exc)
            return jar
        logger.info("Updated to: %s", artifact.path.name)
        return artifact.path

    def backup(self) -> Path | None:
        backup_dir = Path(self.settings.backup_dir)
        if not backup_dir.is_absolute():
            backup_dir = self.directory / backup_dir
        try:
            return perform_backup(
                self.settings.backup_worlds,
                backup_dir,
                self.settings.backup_count,
                base_dir=self.directory,
            )
        except OSError as exc:
            raise FilesystemError(f"backup failed: {exc}") from exc

    def start_server(self, jar: Path, probes: ProbeResults) -> int:
        if probes.java is None:
            raise JavaNotFoundError(probes.java_error or "Java runtime not available")
        settings = self.settings
        available = probes.ram.available_gb if probes.ram else None
        max_ram = calculate_smart_ram(
            settings.max_ram, settings.auto_ram_percentage, settings.min_ram, available
        )
        try:
            jvm_args = build_jvm_args(
                settings.min_ram,
                max_ram,
                use_zgc=settings.use_zgc,
                java_major=probes.java.major,
            )
        except ValueError as exc:
            raise LauncherError(str(exc)) from exc

        message = f"Starting server with {settings.min_ram}G - {max_ram}G RAM"
        if settings.max_ram == 0:
            message += f" (auto-calculated: {settings.auto_ram_percentage}% of available RAM)"
        logger.info("%s", message)

        return self._server_runner(
            probes.java.path,
            jvm_args,
            Path(jar.name),
            list(settings.server_args),
            self.context.cancel_event,
            cwd=self.directory,
        )


def check_updates(
    sequence: LaunchSequence,
) -> tuple[ReleaseDescriptor | None, BuildUpdate | None]:
    """Report launcher and server-build updates without changing anything.

    Feed failures are logged and reported as "no update".
    """
    release: ReleaseDescriptor | None = None
    try:
        release = sequence.release_feed.check_for_update(sequence.context.launcher_version)
    except UpstreamUnavailableError as exc:
        logger.warning("Failed to check for launcher updates: %s", exc)

    build: BuildUpdate | None = None
    jar = sequence.artifacts.find_local_jar()
    if jar is None:
        logger.info("No local Paper JAR found in %s", sequence.directory)
    else:
        build = sequence.artifacts.check_update(jar)
    return release, build
