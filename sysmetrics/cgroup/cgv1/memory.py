"""Metrics and limits from the cgroup v1 "memory" subsystem."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from sysmetrics.cgroup.cgcommon import parse_cgroup_param_key_value, parse_uint_from_file


@dataclass
class MemSubsystemUsage:
    """Current and peak usage in bytes."""

    bytes: int = 0
    max: int = 0


@dataclass
class MemoryData:
    """Usage, limit and failure count of one memory counter."""

    usage: MemSubsystemUsage = field(default_factory=MemSubsystemUsage)
    limit: int = 0
    failures: int = 0


@dataclass
class MemoryStat:
    """Memory statistics and accounting from ``memory.stat``; sizes in bytes."""

    cache: int = 0
    rss: int = 0
    rss_huge: int = 0
    mapped_file: int = 0
    pages_in: int = 0
    pages_out: int = 0
    page_faults: int = 0
    major_page_faults: int = 0
    swap: int = 0
    active_anon: int = 0
    inactive_anon: int = 0
    active_file: int = 0
    inactive_file: int = 0
    unevictable: int = 0
    hierarchical_memory_limit: int = 0
    hierarchical_memsw_limit: int = 0


# Keys of memory.stat and the MemoryStat attributes they fill.
_STAT_FIELDS = {
    "cache": "cache",
    "rss": "rss",
    "rss_huge": "rss_huge",
    "mapped_file": "mapped_file",
    "pgpgin": "pages_in",
    "pgpgout": "pages_out",
    "pgfault": "page_faults",
    "pgmajfault": "major_page_faults",
    "swap": "swap",
    "active_anon": "active_anon",
    "inactive_anon": "inactive_anon",
    "active_file": "active_file",
    "inactive_file": "inactive_file",
    "unevictable": "unevictable",
    "hierarchical_memory_limit": "hierarchical_memory_limit",
    "hierarchical_memsw_limit": "hierarchical_memsw_limit",
}


@dataclass
class MemorySubsystem:
    """Memory usage, limits and statistics of one cgroup."""

    id: str = ""
    path: str = ""
    mem: MemoryData = field(default_factory=MemoryData)
    mem_swap: MemoryData = field(default_factory=MemoryData)
    kernel: MemoryData = field(default_factory=MemoryData)
    kernel_tcp: MemoryData = field(default_factory=MemoryData)
    stats: MemoryStat = field(default_factory=MemoryStat)

    def get(self, path: str | os.PathLike) -> None:
        """Read the subsystem's files from the cgroup directory at ``path``."""
        self.mem = memory_data(path, "memory")
        self.mem_swap = memory_data(path, "memory.memsw")
        self.kernel = memory_data(path, "memory.kmem")
        self.kernel_tcp = memory_data(path, "memory.kmem.tcp")
        memory_stats(path, self)


def _read_counter(path: str | os.PathLike, filename: str) -> int:
    try:
        return parse_uint_from_file(path, filename)
    except ValueError as err:
        raise ValueError(f"error fetching {filename}: {err}") from err


def memory_data(path: str | os.PathLike, prefix: str) -> MemoryData:
    """Read the usage, peak, limit and failure files named by ``prefix``.

    Missing files count as 0.
    """
    return MemoryData(
        usage=MemSubsystemUsage(
            bytes=_read_counter(path, prefix + ".usage_in_bytes"),
            max=_read_counter(path, prefix + ".max_usage_in_bytes"),
        ),
        limit=_read_counter(path, prefix + ".limit_in_bytes"),
        failures=_read_counter(path, prefix + ".failcnt"),
    )


def memory_stats(path: str | os.PathLike, mem: MemorySubsystem) -> None:
    """Fill ``mem.stats`` from ``memory.stat``; a missing file is ignored."""
    try:
        text = Path(path, "memory.stat").read_text()
    except FileNotFoundError:
        return
    for line in text.splitlines():
        key, value = parse_cgroup_param_key_value(line)
        attribute = _STAT_FIELDS.get(key)
        if attribute is not None:
            setattr(mem.stats, attribute, value)