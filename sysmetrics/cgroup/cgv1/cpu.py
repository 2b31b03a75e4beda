"""Metrics and limits from the cgroup v1 "cpu" subsystem."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from sysmetrics.cgroup.cgcommon import parse_cgroup_param_key_value, parse_uint_from_file


@dataclass
class RT:
    """Tunables of the real-time scheduler, in microseconds."""

    period: int = 0
    runtime: int = 0


@dataclass
class CFS:
    """Tunables of the completely fair scheduler."""

    period_micros: int = 0
    quota_micros: int = 0
    shares: int = 0


@dataclass
class ThrottledField:
    """Throttling totals for the cgroup."""

    us: int = 0
    periods: int = 0


@dataclass
class CPUStats:
    """How far the cgroup's CPU usage was throttled."""

    periods: int = 0
    throttled: ThrottledField = field(default_factory=ThrottledField)


@dataclass
class CPUSubsystem:
    """Scheduler settings and throttling stats of one cgroup."""

    id: str = ""
    path: str = ""
    cfs: CFS = field(default_factory=CFS)
    rt: RT = field(default_factory=RT)
    stats: CPUStats = field(default_factory=CPUStats)

    def get(self, path: str | os.PathLike) -> None:
        """Read the subsystem's files from the cgroup directory at ``path``."""
        cpu_cfs(path, self)
        cpu_rt(path, self)
        cpu_stat(path, self)


def cpu_stat(path: str | os.PathLike, cpu: CPUSubsystem) -> None:
    """Fill ``cpu.stats`` from ``cpu.stat``; a missing file leaves it untouched."""
    try:
        text = Path(path, "cpu.stat").read_text()
    except FileNotFoundError:
        return
    for line in text.splitlines():
        key, value = parse_cgroup_param_key_value(line)
        if key == "nr_periods":
            cpu.stats.periods = value
        elif key == "nr_throttled":
            cpu.stats.throttled.periods = value
        elif key == "throttled_time":
            cpu.stats.throttled.us = value


def cpu_cfs(path: str | os.PathLike, cpu: CPUSubsystem) -> None:
    """Fill ``cpu.cfs`` from the CFS tunables."""
    cpu.cfs.period_micros = parse_uint_from_file(path, "cpu.cfs_period_us")
    cpu.cfs.quota_micros = parse_uint_from_file(path, "cpu.cfs_quota_us")
    cpu.cfs.shares = parse_uint_from_file(path, "cpu.shares")


def cpu_rt(path: str | os.PathLike, cpu: CPUSubsystem) -> None:
    """Fill ``cpu.rt`` from the real-time scheduler tunables."""
    cpu.rt.period = parse_uint_from_file(path, "cpu.rt_period_us")
    cpu.rt.runtime = parse_uint_from_file(path, "cpu.rt_runtime_us")