"""Metrics and limits from the cgroup v2 "memory" controller."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from sysmetrics.cgroup.cgcommon import (
    parse_cgroup_param_key_value,
    parse_uint,
    parse_uint_from_file,
)


@dataclass
class Events:
    """Counters from a ``*.events`` file of the memory controller."""

    low: int | None = None
    high: int = 0
    max: int = 0
    oom: int | None = None
    oom_kill: int | None = None
    fail: int | None = None


@dataclass
class MemoryData:
    """Usage and limits of one memory counter, in bytes.

    ``high`` and ``max`` are ``None`` when unset or set to ``max`` (no limit).
    """

    events: Events = field(default_factory=Events)
    usage: int = 0
    low: int = 0
    high: int | None = None
    max: int | None = None


@dataclass
class MemoryStat:
    """Detailed statistics from ``memory.stat``; sizes in bytes, the rest are counts."""

    anon: int = 0
    file: int = 0
    kernel_stack: int = 0
    page_tables: int = 0
    per_cpu: int = 0
    sock: int = 0
    shmem: int = 0
    file_mapped: int = 0
    file_dirty: int = 0
    file_writeback: int = 0
    swap_cached: int = 0
    anon_thp: int = 0
    file_thp: int = 0
    shmem_thp: int = 0
    inactive_anon: int = 0
    active_anon: int = 0
    inactive_file: int = 0
    active_file: int = 0
    unevictable: int = 0
    slab_reclaimable: int = 0
    slab_unreclaimable: int = 0
    slab: int = 0
    working_set_refault_anon: int = 0
    working_set_refault_file: int = 0
    working_set_activate_anon: int = 0
    working_set_activate_file: int = 0
    working_set_restore_anon: int = 0
    working_set_restore_file: int = 0
    working_set_node_reclaim: int = 0
    page_faults: int = 0
    major_page_faults: int = 0
    page_refill: int = 0
    page_scan: int = 0
    page_steal: int = 0
    page_activate: int = 0
    page_deactivate: int = 0
    page_lazy_free: int = 0
    page_lazy_freed: int = 0
    thp_fault_alloc: int = 0
    thp_collapse_alloc: int = 0


# Keys of memory.stat and the MemoryStat attributes they fill.
_STAT_FIELDS = {
    "anon": "anon",
    "file": "file",
    "kernel_stack": "kernel_stack",
    "pagetables": "page_tables",
    "percpu": "per_cpu",
    "sock": "sock",
    "shmem": "shmem",
    "file_mapped": "file_mapped",
    "file_dirty": "file_dirty",
    "file_writeback": "file_writeback",
    "swapcached": "swap_cached",
    "anon_thp": "anon_thp",
    "file_thp": "file_thp",
    "shmem_thp": "shmem_thp",
    "inactive_anon": "inactive_anon",
    "active_anon": "active_anon",
    "inactive_file": "inactive_file",
    "active_file": "active_file",
    "unevictable": "unevictable",
    "slab_reclaimable": "slab_reclaimable",
    "slab_unreclaimable": "slab_unreclaimable",
    "slab": "slab",
    "workingset_refault_anon": "working_set_refault_anon",
    "workingset_refault_file": "working_set_refault_file",
    "workingset_activate_anon": "working_set_activate_anon",
    "workingset_activate_file": "working_set_activate_file",
    "workingset_restore_anon": "working_set_restore_anon",
    "workingset_restore_file": "working_set_restore_file",
    "workingset_nodereclaim": "working_set_node_reclaim",
    "pgfault": "page_faults",
    "pgmajfault": "major_page_faults",
    "pgrefill": "page_refill",
    "pgscan": "page_scan",
    "pgsteal": "page_steal",
    "pgactivate": "page_activate",
    "pgdeactivate": "page_deactivate",
    "pglazyfree": "page_lazy_free",
    "pglazyfreed": "page_lazy_freed",
    "thp_fault_alloc": "thp_fault_alloc",
    "thp_collapse_alloc": "thp_collapse_alloc",
}


@dataclass
class MemorySubsystem:
    """Memory usage, limits and statistics of one v2 cgroup."""

    id: str = ""
    path: str = ""
    mem: MemoryData = field(default_factory=MemoryData)
    mem_swap: MemoryData = field(default_factory=MemoryData)
    stats: MemoryStat = field(default_factory=MemoryStat)

    def get(self, path: str | os.PathLike) -> None:
        """Read the controller's files from the cgroup directory at ``path``."""
        self.mem = memory_data(path, "memory")
        self.mem_swap = memory_data(path, "memory.swap")
        self.stats = fill_stat_struct(path)


def memory_data(path: str | os.PathLike, file: str) -> MemoryData:
    """Read the low/high/max/current/events files named by ``file``.

    Root cgroups lack these files: if ``<file>.high`` is missing, empty data
    is returned.
    """
    if not Path(path, file + ".high").exists():
        return MemoryData()
    low = parse_uint_from_file(path, file + ".low")
    high = max_or_value(path, file + ".high")
    maximum = max_or_value(path, file + ".max")
    current = parse_uint_from_file(path, file + ".current")
    events = fetch_events_file(path, file + ".events")
    return MemoryData(events=events, usage=current, low=low, high=high, max=maximum)


def fetch_events_file(path: str | os.PathLike, file: str) -> Events:
    """Parse a ``*.events`` file; a missing file raises."""
    text = Path(path, file).read_text()
    events = Events()
    for line in text.splitlines():
        try:
            key, value = parse_cgroup_param_key_value(line)
        except ValueError as err:
            raise ValueError(f"error parsing key from events: {err}") from err
        if key in ("low", "high", "max", "oom", "oom_kill", "fail"):
            setattr(events, key, value)
    return events


def max_or_value(path: str | os.PathLike, file: str) -> int | None:
    """Read a limit that may be ``max``; ``max`` (no limit) gives ``None``."""
    raw = Path(path, file).read_bytes()
    if raw.strip() == b"max":
        return None
    try:
        return parse_uint(raw)
    except ValueError as err:
        raise ValueError(f"error parsing raw value {raw!r}: {err}") from err


def fill_stat_struct(path: str | os.PathLike) -> MemoryStat:
    """Parse ``memory.stat`` into a MemoryStat; unknown keys are ignored."""
    text = Path(path, "memory.stat").read_text()
    stats = MemoryStat()
    for line in text.splitlines():
        parts = line.split(" ", 1)
        if len(parts) != 2:
            continue
        key, raw_value = parts
        try:
            value = parse_uint(raw_value)
        except ValueError as err:
            raise ValueError(f"error parsing value {raw_value!r}: {err}") from err
        attribute = _STAT_FIELDS.get(key)
        if attribute is not None:
            setattr(stats, attribute, value)
    return stats