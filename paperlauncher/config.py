"""Launcher configuration — YAML file plus environment overrides.

Settings come from ``config.yaml`` (created with commented defaults on first
run) and from ``LAUNCHER_*`` environment variables or a ``.env`` file.
Environment values take precedence over the file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import AliasChoices, Field, ValidationError, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from paperlauncher.core.context import DEFAULT_DOWNLOAD_CHUNK_SIZE
from paperlauncher.core.errors import ConfigError
from paperlauncher.core.feeds import PAPER_API_BASE, RELEASE_FEED_URL
from paperlauncher.core.versioning import DEFAULT_ASSET_PREFIX

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config.yaml")
MAX_SAFE_RAM = 128
LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "WARN", "WARNING", "ERROR")

DEFAULT_CONFIG_YAML = """\
# Paper server launcher settings
# This file is created automatically on first run.

# Minecraft version to run ("latest" or e.g. "1.20.4")
minecraft_version: "latest"

# Check for newer Paper builds on start-up
auto_update: true

# Check for and install new launcher releases on start-up
auto_update_launcher: true

# Token for the launcher release feed
# - required when the release repository is private (GitHub answers 404 without it)
# - prefer the LAUNCHER_GITHUB_TOKEN environment variable over storing it here
github_token: ""

# Back up world directories before starting the server
auto_backup: false

# Number of backup archives to keep (oldest are deleted first)
backup_count: 10

# Directory for backup archives
backup_dir: "backups"

# World directories to back up
backup_worlds:
  - world
  - world_nether
  - world_the_end

# Minimum heap size in GB
min_ram: 2

# Maximum heap size in GB
# 0 computes it from available memory and auto_ram_percentage
max_ram: 0

# Use the Z Garbage Collector (requires Java 11+)
use_zgc: false

# Share of available memory used when max_ram is 0 (%)
auto_ram_percentage: 50

# Extra arguments passed to the server
server_args:
  - nogui

# Log level when --log-level is not given (trace, debug, info, warn, error)
log_level: INFO

# Also write logs to log_file
log_file_enable: false
"""


class LauncherSettings(BaseSettings):
    """Launcher settings with environment variable overrides.

    Every field can be overridden via ``LAUNCHER_<FIELD>`` environment
    variables or a ``.env`` file. A few fields also accept unprefixed names.

    Examples
    --------
    Override via environment::

        export LAUNCHER_MINECRAFT_VERSION=1.20.4
        export LAUNCHER_MAX_RAM=8
        export GITHUB_TOKEN=ghp_...
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="LAUNCHER_",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Server
    minecraft_version: str = Field(
        default="latest",
        validation_alias=AliasChoices(
            "minecraft_version", "LAUNCHER_MINECRAFT_VERSION", "MINECRAFT_VERSION"
        ),
    )
    auto_update: bool = True
    server_args: list[str] = Field(default_factory=lambda: ["nogui"])
    work_dir: str = Field(
        default="", validation_alias=AliasChoices("work_dir", "LAUNCHER_WORK_DIR", "WORK_DIR")
    )
    java_path: str = Field(
        default="",
        validation_alias=AliasChoices("java_path", "LAUNCHER_JAVA_PATH", "JAVA_PATH"),
    )

    # Launcher self-update
    auto_update_launcher: bool = True
    github_token: str = Field(
        default="",
        validation_alias=AliasChoices(
            "github_token", "LAUNCHER_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN"
        ),
    )

    # Backups
    auto_backup: bool = False
    backup_count: int = 10
    backup_dir: str = "backups"
    backup_worlds: list[str] = Field(
        default_factory=lambda: ["world", "world_nether", "world_the_end"]
    )

    # Memory and GC
    min_ram: int = Field(
        default=2, validation_alias=AliasChoices("min_ram", "LAUNCHER_MIN_RAM", "MIN_RAM")
    )
    max_ram: int = Field(
        default=0, validation_alias=AliasChoices("max_ram", "LAUNCHER_MAX_RAM", "MAX_RAM")
    )
    use_zgc: bool = False
    auto_ram_percentage: int = 50

    # Logging
    log_file_enable: bool = False
    log_file: str = Field(
        default="launcher.log",
        validation_alias=AliasChoices("log_file", "LAUNCHER_LOG_FILE", "LOG_FILE"),
    )
    log_level: str = "INFO"

    # Feeds and network
    build_feed_url: str = PAPER_API_BASE
    release_feed_url: str = RELEASE_FEED_URL
    asset_prefix: str = DEFAULT_ASSET_PREFIX
    request_timeout: float = 30.0
    retry_attempts: int = 3
    retry_base_delay: float = 2.0
    retry_multiplier: float = 2.0
    download_chunk_size: int = DEFAULT_DOWNLOAD_CHUNK_SIZE

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # File values arrive as init kwargs; environment wins over them.
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @model_validator(mode="after")
    def _check_limits(self) -> LauncherSettings:
        if not self.minecraft_version.strip():
            raise ValueError("minecraft_version cannot be empty")
        if self.min_ram <= 0:
            raise ValueError("min_ram must be greater than 0")
        if self.max_ram < 0:
            raise ValueError("max_ram cannot be negative")
        if self.max_ram != 0 and self.min_ram > self.max_ram:
            raise ValueError("min_ram cannot be greater than max_ram")
        if self.max_ram > MAX_SAFE_RAM:
            raise ValueError(f"max_ram exceeds safety limit ({MAX_SAFE_RAM}GB)")
        if not 10 <= self.auto_ram_percentage <= 95:
            raise ValueError("auto_ram_percentage must be between 10 and 95")
        if self.backup_count < 1:
            raise ValueError("backup_count must be at least 1")
        if self.retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        if self.download_chunk_size <= 0:
            raise ValueError("download_chunk_size must be greater than 0")
        if self.log_level.strip().upper() not in LOG_LEVELS:
            raise ValueError(f"unknown log_level: {self.log_level}")
        return self


def write_default_config(path: Path) -> None:
    try:
        path.write_text(DEFAULT_CONFIG_YAML, encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"failed to create config: {exc}") from exc
    logger.info("Created %s with default settings", path)


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse the YAML file into a mapping, dropping empty (null) values."""
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"failed to read config: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse config: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"failed to parse config: {path} must contain a mapping")
    return {str(k): v for k, v in raw.items() if v is not None}


def load_settings(path: Path | str = DEFAULT_CONFIG_PATH, **overrides: Any) -> LauncherSettings:
    """Load settings from ``path``, creating it with defaults when absent.

    ``overrides`` (command-line options) win over both the file and the
    environment. Invalid values raise ``ConfigError``.
    """
    path = Path(path)
    if not path.exists():
        write_default_config(path)

    values = read_config_file(path)
    try:
        settings = LauncherSettings(**values)
        if overrides:
            settings = LauncherSettings.model_validate(
                {**settings.model_dump(), **overrides}
            )
    except ValidationError as exc:
        raise ConfigError(_describe(exc)) from exc
    return settings


def _describe(exc: ValidationError) -> str:
    messages = []
    for error in exc.errors():
        where = ".".join(str(part) for part in error.get("loc", ()))
        msg = error.get("msg", "invalid value")
        messages.append(f"{where}: {msg}" if where else msg)
    return "invalid configuration: " + "; ".join(messages)
