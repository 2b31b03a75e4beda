"""Metrics from the cgroup v1 "cpuacct" subsystem."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from sysmetrics.cgroup.cgcommon import (
    CPUUsage,
    parse_cgroup_param_key_value,
    parse_uint,
    parse_uint_from_file,
)

_NANOS_PER_SECOND = 1_000_000_000


def _system_clock_ticks() -> int:
    try:
        ticks = os.sysconf("SC_CLK_TCK")
    except (AttributeError, ValueError, OSError):
        return 100
    return ticks if ticks > 0 else 100


CLOCK_TICKS = _system_clock_ticks()


@dataclass
class CPUAccountingStats:
    """User and system CPU time of the cgroup's tasks."""

    user: CPUUsage = field(default_factory=CPUUsage)
    system: CPUUsage = field(default_factory=CPUUsage)


@dataclass
class CPUAccountingSubsystem:
    """CPU accounting of one cgroup; percentages are filled in later from two samples."""

    id: str = ""
    path: str = ""
    total: CPUUsage = field(default_factory=CPUUsage)
    usage_per_cpu: dict[str, int] = field(default_factory=dict)
    stats: CPUAccountingStats = field(default_factory=CPUAccountingStats)

    def get(self, path: str | os.PathLike) -> None:
        """Read the subsystem's files from the cgroup directory at ``path``."""
        self.usage_per_cpu = {}
        cpuacct_stat(path, self)
        cpuacct_usage(path, self)
        cpuacct_usage_per_cpu(path, self)


def cpuacct_stat(path: str | os.PathLike, cpuacct: CPUAccountingSubsystem) -> None:
    """Fill user and system time from ``cpuacct.stat``; a missing file is ignored."""
    try:
        text = Path(path, "cpuacct.stat").read_text()
    except FileNotFoundError:
        return
    for line in text.splitlines():
        key, value = parse_cgroup_param_key_value(line)
        if key == "user":
            cpuacct.stats.user.ns = convert_jiffies_to_nanos(value)
        elif key == "system":
            cpuacct.stats.system.ns = convert_jiffies_to_nanos(value)


def cpuacct_usage(path: str | os.PathLike, cpuacct: CPUAccountingSubsystem) -> None:
    """Fill the total CPU time from ``cpuacct.usage``."""
    cpuacct.total.ns = parse_uint_from_file(path, "cpuacct.usage")


def cpuacct_usage_per_cpu(path: str | os.PathLike, cpuacct: CPUAccountingSubsystem) -> None:
    """Fill per-CPU usage from ``cpuacct.usage_percpu``, numbering CPUs from 1."""
    try:
        contents = Path(path, "cpuacct.usage_percpu").read_bytes()
    except FileNotFoundError:
        return
    cpuacct.usage_per_cpu = {
        str(cpu): parse_uint(usage) for cpu, usage in enumerate(contents.split(), start=1)
    }


def convert_jiffies_to_nanos(jiffies: int) -> int:
    """Convert clock ticks to nanoseconds."""
    return (jiffies * _NANOS_PER_SECOND) // CLOCK_TICKS