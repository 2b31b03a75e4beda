from pathlib import Path

import pytest

from sysmetrics.cgroup.cgv2.memory import (
    Events,
    MemoryData,
    MemorySubsystem,
    fetch_events_file,
    fill_stat_struct,
    max_or_value,
    memory_data,
)

MEMORY_STAT = """anon 5365760
file 15806464
kernel_stack 73728
pagetables 270336
percpu 0
sock 0
shmem 0
file_mapped 4055040
slab_reclaimable 17756400
slab_unreclaimable 376432
slab 18132832
workingset_nodereclaim 7
pgfault 4578
pgmajfault 66
thp_fault_alloc 12
thp_collapse_alloc 2
"""


def _write(directory: Path, files: dict) -> Path:
    for name, content in files.items():
        (directory / name).write_text(content)
    return directory


@pytest.fixture
def v2_dir(tmp_path):
    return _write(
        tmp_path,
        {
            "memory.low": "4\n",
            "memory.high": "max\n",
            "memory.max": "max\n",
            "memory.current": "9125888\n",
            "memory.events": "low 0\nhigh 3\nmax 0\noom 0\noom_kill 0\n",
            "memory.swap.high": "max\n",
            "memory.swap.max": "2048\n",
            "memory.swap.current": "0\n",
            "memory.swap.events": "max 5\nfail 1\n",
            "memory.stat": MEMORY_STAT,
        },
    )


def test_get_mem(v2_dir):
    mem = MemorySubsystem()
    mem.get(v2_dir)
    assert mem.mem.events.high == 3
    assert mem.mem.low == 4
    assert mem.mem.usage == 9125888
    assert mem.stats.slab_reclaimable == 17756400
    assert mem.stats.thp_fault_alloc == 12


def test_get_mem_limits_and_swap(v2_dir):
    mem = MemorySubsystem()
    mem.get(v2_dir)
    assert mem.mem.high is None
    assert mem.mem.max is None
    assert mem.mem_swap.max == 2048
    assert mem.mem_swap.low == 0
    assert mem.mem_swap.events == Events(max=5, fail=1)


def test_memory_data_without_high_file_is_empty(tmp_path):
    _write(tmp_path, {"memory.current": "100\n"})
    assert memory_data(tmp_path, "memory") == MemoryData()


def test_memory_data_missing_events_raises(tmp_path):
    _write(
        tmp_path,
        {"memory.high": "10\n", "memory.max": "20\n", "memory.current": "5\n"},
    )
    with pytest.raises(FileNotFoundError):
        memory_data(tmp_path, "memory")


def test_max_or_value(tmp_path):
    _write(tmp_path, {"a": "max\n", "b": "1024\n", "c": "-1\n", "d": "bogus\n"})
    assert max_or_value(tmp_path, "a") is None
    assert max_or_value(tmp_path, "b") == 1024
    assert max_or_value(tmp_path, "c") == 0
    with pytest.raises(ValueError):
        max_or_value(tmp_path, "d")
    with pytest.raises(FileNotFoundError):
        max_or_value(tmp_path, "missing")


def test_fetch_events_file(tmp_path):
    _write(tmp_path, {"e": "low 1\nhigh 2\nmax 3\noom 4\noom_kill 5\nfail 6\nother 9\n"})
    assert fetch_events_file(tmp_path, "e") == Events(
        low=1, high=2, max=3, oom=4, oom_kill=5, fail=6
    )


def test_fetch_events_file_bad_line(tmp_path):
    _write(tmp_path, {"e": "high 2 extra\n"})
    with pytest.raises(ValueError):
        fetch_events_file(tmp_path, "e")


def test_fill_stat_struct_fields(tmp_path):
    _write(tmp_path, {"memory.stat": MEMORY_STAT})
    stats = fill_stat_struct(tmp_path)
    assert stats.anon == 5365760
    assert stats.page_tables == 270336
    assert stats.working_set_node_reclaim == 7
    assert stats.major_page_faults == 66
    assert stats.thp_collapse_alloc == 2
    assert stats.swap_cached == 0


def test_fill_stat_struct_skips_and_clamps(tmp_path):
    _write(tmp_path, {"memory.stat": "nospace\nunknown_key 7\nanon -5\nsock 9\n"})
    stats = fill_stat_struct(tmp_path)
    assert stats.anon == 0
    assert stats.sock == 9


def test_fill_stat_struct_bad_value(tmp_path):
    _write(tmp_path, {"memory.stat": "anon abc\n"})
    with pytest.raises(ValueError):
        fill_stat_struct(tmp_path)


def test_get_missing_stat_raises(v2_dir):
    (v2_dir / "memory.stat").unlink()
    with pytest.raises(FileNotFoundError):
        MemorySubsystem().get(v2_dir)