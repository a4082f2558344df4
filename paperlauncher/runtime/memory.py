"""System memory queries and heap sizing."""

from __future__ import annotations

import logging

import psutil
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

_GIB = 1024**3


class SystemRAM(BaseModel):
    """Whole gigabytes of physical memory."""

    model_config = ConfigDict(frozen=True)

    total_gb: int
    available_gb: int


def system_ram() -> SystemRAM:
    """Query total and available RAM via psutil."""
    vm = psutil.virtual_memory()
    return SystemRAM(total_gb=int(vm.total // _GIB), available_gb=int(vm.available // _GIB))


def calculate_smart_ram(
    config_max: int,
    percentage: int,
    min_ram: int,
    available_gb: int | None,
) -> int:
    """Pick the ``-Xmx`` size in GB.

    A configured maximum is honoured unless it exceeds available memory, in
    which case it is clamped to leave 1 GB free. Otherwise ``percentage`` of
    available memory is used, also leaving at least 1 GB. Never below
    ``min_ram``.
    """
    if available_gb is None:
        return config_max if config_max > 0 else min_ram + 2

    if config_max > 0:
        if config_max > available_gb:
            safe = available_gb - 1
            logger.warning(
                "Configured max_ram (%dGB) exceeds available RAM (%dGB), adjusting to %dGB",
                config_max, available_gb, max(safe, min_ram),
            )
            return max(safe, min_ram)
        return config_max

    calculated = int(available_gb * (percentage / 100.0))
    if available_gb - calculated < 1:
        calculated = available_gb - 1
    return max(calculated, min_ram)
