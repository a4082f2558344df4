"""JVM flag selection for the Paper server."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

MIN_JAVA_FOR_ZGC = 11
MIN_JAVA_FOR_GENERATIONAL_ZGC = 17

# https://docs.papermc.io/paper/aikars-flags
AIKAR_FLAGS: tuple[str, ...] = (
    "-XX:+UseG1GC",
    "-XX:+ParallelRefProcEnabled",
    "-XX:MaxGCPauseMillis=200",
    "-XX:+UnlockExperimentalVMOptions",
    "-XX:+DisableExplicitGC",
    "-XX:+AlwaysPreTouch",
    "-XX:G1NewSizePercent=30",
    "-XX:G1MaxNewSizePercent=40",
    "-XX:G1HeapRegionSize=8M",
    "-XX:G1ReservePercent=20",
    "-XX:G1HeapWastePercent=5",
    "-XX:G1MixedGCCountTarget=4",
    "-XX:InitiatingHeapOccupancyPercent=15",
    "-XX:G1MixedGCLiveThresholdPercent=90",
    "-XX:G1RSetUpdatingPauseTimePercent=5",
    "-XX:SurvivorRatio=32",
    "-XX:+PerfDisableSharedMem",
    "-XX:MaxTenuringThreshold=1",
    "-Dusing.aikars.flags=https://mcflags.emc.gs",
    "-Daikars.new.flags=true",
    "-Dfile.encoding=UTF-8",
)

ZGC_FLAGS: tuple[str, ...] = (
    "-XX:+UseZGC",
    "-XX:+ZGenerational",
    "-XX:+DisableExplicitGC",
    "-XX:+AlwaysPreTouch",
    "-XX:+PerfDisableSharedMem",
    "-Dfile.encoding=UTF-8",
)


def build_jvm_args(
    min_ram: int,
    max_ram: int,
    *,
    use_zgc: bool,
    java_major: int,
) -> list[str]:
    """Return heap and GC flags for ``java``."""
    args = [f"-Xms{min_ram}G", f"-Xmx{max_ram}G"]

    if not use_zgc:
        logger.info("Using G1 Garbage Collector (G1GC)")
        return args + list(AIKAR_FLAGS)

    if java_major < MIN_JAVA_FOR_ZGC:
        raise ValueError(
            f"ZGC requires Java {MIN_JAVA_FOR_ZGC} or higher, found Java {java_major}"
        )
    flags = list(ZGC_FLAGS)
    if java_major < MIN_JAVA_FOR_GENERATIONAL_ZGC:
        flags = [f for f in flags if "ZGenerational" not in f]
        logger.info(
            "Using Z Garbage Collector (ZGC); generational ZGC requires Java %d+",
            MIN_JAVA_FOR_GENERATIONAL_ZGC,
        )
    else:
        logger.info("Using Z Garbage Collector (ZGC)")
    if max_ram < 4:
        logger.warning("ZGC enabled but max RAM < 4GB, G1GC may perform better")
    return args + flags
