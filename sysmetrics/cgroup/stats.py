"""Combined cgroup statistics for v1 and v2 hierarchies."""

from __future__ import annotations

import enum
import math
import os
from dataclasses import dataclass, fields, is_dataclass
from datetime import datetime, timedelta
from typing import Any

from sysmetrics.cgroup.cgcommon import CPUUsage, Pressure
from sysmetrics.cgroup.cgv1 import blkio as v1_blkio
from sysmetrics.cgroup.cgv1 import cpu as v1_cpu
from sysmetrics.cgroup.cgv1 import cpuacct as v1_cpuacct
from sysmetrics.cgroup.cgv1 import memory as v1_memory
from sysmetrics.cgroup.cgv2 import cpu as v2_cpu
from sysmetrics.cgroup.cgv2 import io as v2_io
from sysmetrics.cgroup.cgv2 import memory as v2_memory


class CgroupsVersion(enum.IntEnum):
    """Which cgroups hierarchy a process is attached to."""

    V1 = 1
    V2 = 2


# Attribute names whose reported key differs.
_KEYS = {
    "cpu_accounting": "cpuacct",
    "block_io": "blkio",
    "version": "cgroups_version",
    "async_": "async",
    "mem_swap": "memsw",
    "kernel": "kmem",
    "kernel_tcp": "kmem_tcp",
    "period_micros": "period",
    "quota_micros": "quota",
    "usage_per_cpu": "percpu",
}


def _cpu_usage_map(usage: CPUUsage) -> dict[str, Any]:
    out: dict[str, Any] = {"ns": usage.ns}
    if usage.pct is not None:
        out["pct"] = usage.pct
    if usage.norm_pct is not None:
        out["norm"] = {"pct": usage.norm_pct}
    return out


def _pressure_map(pressure: Pressure) -> dict[str, Any]:
    out: dict[str, Any] = {
        "10": {"pct": pressure.ten},
        "60": {"pct": pressure.sixty},
        "300": {"pct": pressure.three_hundred},
    }
    if pressure.total is not None:
        out["total"] = pressure.total
    return out


def _omitted(value: Any) -> bool:
    if value is None or value == "" or value == {}:
        return True
    is_zero = getattr(value, "is_zero", None)
    return callable(is_zero) and is_zero()


def _to_map(value: Any) -> Any:
    if isinstance(value, CPUUsage):
        return _cpu_usage_map(value)
    if isinstance(value, Pressure):
        return _pressure_map(value)
    if isinstance(value, enum.Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return {
            _KEYS.get(f.name, f.name): _to_map(getattr(value, f.name))
            for f in fields(value)
            if not _omitted(getattr(value, f.name))
        }
    if isinstance(value, dict):
        return {str(key): _to_map(item) for key, item in value.items()}
    return value


def _num_cpu() -> int:
    return os.cpu_count() or 1


def _divide(numerator: float, denominator: float) -> float:
    if denominator:
        return numerator / denominator
    if numerator > 0:
        return math.inf
    if numerator < 0:
        return -math.inf
    return math.nan


def _round(value: float) -> float:
    return round(value, 4)


def _nanos(delta: timedelta) -> int:
    return (delta // timedelta(microseconds=1)) * 1000


def _fill_usage(
    usage: CPUUsage, prev: CPUUsage, elapsed_ns: int, cpu_count: int
) -> None:
    pct = _divide(usage.ns - prev.ns, elapsed_ns)
    usage.pct = _round(pct)
    usage.norm_pct = _round(pct / cpu_count)


@dataclass
class StatsV1:
    """Metrics and limits from each cgroup v1 subsystem of a process."""

    id: str = ""
    path: str = ""
    cpu: v1_cpu.CPUSubsystem | None = None
    cpu_accounting: v1_cpuacct.CPUAccountingSubsystem | None = None
    memory: v1_memory.MemorySubsystem | None = None
    block_io: v1_blkio.BlockIOSubsystem | None = None
    version: CgroupsVersion = CgroupsVersion.V1

    def cg_version(self) -> CgroupsVersion:
        """The cgroups version of these stats."""
        return CgroupsVersion.V1

    def format(self) -> dict[str, Any]:
        """The stats as a nested mapping ready to be reported."""
        return _to_map(self)

    def fill_percentages(
        self, prev: StatsV1 | StatsV2 | None, cur_time: datetime, prev_time: datetime
    ) -> None:
        """Derive CPU percentages from an earlier sample of the same process.

        Nothing is filled when ``prev`` is missing, of another version, or
        either sample lacks cpuacct data.
        """
        if not isinstance(prev, StatsV1):
            return
        current, previous = self.cpu_accounting, prev.cpu_accounting
        if current is None or previous is None:
            return
        elapsed_ns = _nanos(cur_time - prev_time)
        cpu_count = len(current.usage_per_cpu) or _num_cpu()
        _fill_usage(current.total, previous.total, elapsed_ns, cpu_count)
        _fill_usage(current.stats.user, previous.stats.user, elapsed_ns, cpu_count)
        _fill_usage(current.stats.system, previous.stats.system, elapsed_ns, cpu_count)


@dataclass
class StatsV2:
    """Metrics and limits from each cgroup v2 controller of a process."""

    id: str = ""
    path: str = ""
    cpu: v2_cpu.CPUSubsystem | None = None
    memory: v2_memory.MemorySubsystem | None = None
    io: v2_io.IOSubsystem | None = None
    version: CgroupsVersion = CgroupsVersion.V2

    def cg_version(self) -> CgroupsVersion:
        """The cgroups version of these stats."""
        return CgroupsVersion.V2

    def format(self) -> dict[str, Any]:
        """The stats as a nested mapping ready to be reported."""
        return _to_map(self)

    def fill_percentages(
        self, prev: StatsV1 | StatsV2 | None, cur_time: datetime, prev_time: datetime
    ) -> None:
        """Derive CPU percentages from an earlier sample of the same process.

        Nothing is filled when ``prev`` is missing, of another version, or
        either sample lacks CPU data.
        """
        if not isinstance(prev, StatsV2):
            return
        current, previous = self.cpu, prev.cpu
        if current is None or previous is None:
            return
        elapsed_ns = _nanos(cur_time - prev_time)
        cpu_count = _num_cpu()
        _fill_usage(current.stats.usage, previous.stats.usage, elapsed_ns, cpu_count)
        _fill_usage(current.stats.user, previous.stats.user, elapsed_ns, cpu_count)
        _fill_usage(current.stats.system, previous.stats.system, elapsed_ns, cpu_count)