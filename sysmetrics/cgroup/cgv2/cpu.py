"""Metrics from the cgroup v2 "cpu" controller, which merges cpu and cpuacct."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from sysmetrics.cgroup.cgcommon import (
    CPUUsage,
    Pressure,
    get_pressure,
    parse_cgroup_param_key_value,
)


@dataclass
class ThrottledField:
    """Throttling totals, present only when the controller is enabled."""

    us: int | None = None
    periods: int | None = None

    def is_zero(self) -> bool:
        """True when neither value was reported."""
        return self.us is None and self.periods is None


@dataclass
class CPUStats:
    """Counters from the ``cpu.stat`` file."""

    throttled: ThrottledField = field(default_factory=ThrottledField)
    periods: int | None = None
    usage: CPUUsage = field(default_factory=CPUUsage)
    user: CPUUsage = field(default_factory=CPUUsage)
    system: CPUUsage = field(default_factory=CPUUsage)


@dataclass
class CPUSubsystem:
    """CPU pressure and usage of one v2 cgroup."""

    id: str = ""
    path: str = ""
    pressure: dict[str, Pressure] = field(default_factory=dict)
    stats: CPUStats = field(default_factory=CPUStats)

    def get(self, path: str | os.PathLike) -> None:
        """Read pressure and stats from the cgroup directory at ``path``.

        Systems without ``cpu.pressure`` are treated as having no CPU data.
        """
        try:
            self.pressure = get_pressure(Path(path, "cpu.pressure"))
        except FileNotFoundError:
            return
        self.stats = get_stats(path)


def get_stats(path: str | os.PathLike) -> CPUStats:
    """Parse ``cpu.stat``; a missing file yields empty stats."""
    try:
        text = Path(path, "cpu.stat").read_text()
    except FileNotFoundError:
        return CPUStats()
    data = CPUStats()
    for line in text.splitlines():
        try:
            key, value = parse_cgroup_param_key_value(line)
        except ValueError as err:
            raise ValueError(f"error parsing cpu.stat file: {err}") from err
        if key == "usage_usec":
            data.usage.ns = value
        elif key == "user_usec":
            data.user.ns = value
        elif key == "system_usec":
            data.system.ns = value
        elif key == "nr_periods":
            data.periods = value
        elif key == "nr_throttled":
            data.throttled.periods = value
        elif key == "throttled_usec":
            data.throttled.us = value
    return data