# sysmetrics

`sysmetrics` reads Linux control group metrics and limits for a process. It
supports cgroups v1, cgroups v2, and hybrid hierarchies that mix the two. It
also works when the host's root filesystem is mounted somewhere else, such as
`/hostfs` inside a container.

## Installation

```
pip install sysmetrics
```

To run the test suite, install the `test` extra:

```
pip install "sysmetrics[test]"
```

## Reading stats for a process

```python
from sysmetrics.cgroup.reader import Reader
from sysmetrics.cgroup.stats import CgroupsVersion

reader = Reader("/", ignore_root_cgroups=True, cgroups_hierarchy_override="")

version = reader.cgroups_version(1234)   # CgroupsVersion.V1 or CgroupsVersion.V2
stats = reader.get_stats_for_pid(1234)

print(stats.path, stats.id)
print(stats.format())
```

`Reader(rootfs, ignore_root_cgroups, cgroups_hierarchy_override)` takes three
arguments:

- `rootfs` is the mountpoint of the host's root filesystem. The default is `/`.
- `ignore_root_cgroups` skips controllers whose cgroup path is `/`.
- `cgroups_hierarchy_override` replaces the paths read from `/proc/<pid>/cgroup`
  when it is not empty. Inside a container this is usually `/`.

When you create a reader, it reads `/proc/cgroups` and `/proc/self/mountinfo`
under `rootfs` to find the mountpoints.

`get_stats_for_pid` returns a `StatsV1` or a `StatsV2`, depending on which
hierarchy the process uses. You can ask for one hierarchy directly with
`get_v1_stats_for_process` or `get_v2_stats_for_process`.

- `StatsV1` holds `cpu`, `cpu_accounting`, `memory` and `block_io`.
- `StatsV2` holds `cpu`, `memory` and `io`.

A subsystem is `None` when the process is not attached to it. `path` and `id`
are set only when every controller shares the same cgroup path. Otherwise both
are empty strings.

`format()` turns the stats into nested dictionaries, ready for reporting:

- empty and unset fields are left out;
- some keys are renamed to their usual names, such as `cpuacct`, `blkio`,
  `memsw` and `cgroups_version`.

For v2 IO stats, the reader keys each device by its name from `/dev` where it
can find one. Otherwise it uses `major:minor`.

## CPU percentages

Cgroup CPU counters are cumulative. To get percentages, take two samples of
the same process. Then let the newer sample fill in its percentages from the
difference:

```python
import time
from datetime import datetime

prev_time = datetime.now()
prev = reader.get_stats_for_pid(1234)
time.sleep(5)
cur_time = datetime.now()
cur = reader.get_stats_for_pid(1234)

cur.fill_percentages(prev, cur_time, prev_time)
```

This fills `pct` and `norm_pct` for the total, user and system CPU usage. The
values are rounded to four decimal places, and `norm_pct` is divided by the
number of CPUs. For v1 the CPU count is the number of per-CPU entries in
cpuacct, or `os.cpu_count()` when there are none. For v2 it is always
`os.cpu_count()`.

Nothing is filled when:

- the earlier sample is missing;
- the earlier sample is of the other version;
- either sample has no CPU data.

## Lower-level helpers

- `sysmetrics.cgroup.util`: `supported_subsystems`, `subsystem_mountpoints`,
  `parse_mountinfo_line` and `resolve_hostfs`.
- `sysmetrics.cgroup.reader.process_cgroup_paths(hostfs, pid)`: returns a
  `PathList` of a process's v1 and v2 controller paths. `PathList.flatten()`
  gives them as one list.
- `sysmetrics.cgroup.cgcommon`: `get_pressure`, `parse_uint`,
  `parse_uint_from_file` and `parse_cgroup_param_key_value`.
  - `parse_uint` turns negative values into 0.
  - `parse_uint_from_file` returns 0 for a missing file.
- `sysmetrics.cgroup.cgv1`: one module per v1 controller, namely `cpu`,
  `cpuacct`, `memory` and `blkio`.
- `sysmetrics.cgroup.cgv2`: one module per v2 controller, namely `cpu`,
  `memory` and `io`.

To fill a subsystem object, call its `get(path)` method with the absolute path
of the cgroup directory. The v2 `IOSubsystem` is the exception: call
`get(path, resolve_dev_ids)`.

## Errors

- `CgroupsMissingError` (in `sysmetrics.cgroup.util`) is raised when
  `/proc/cgroups` does not exist under the root filesystem.
- `InvalidFormatError` (in `sysmetrics.cgroup.cgcommon`, a `ValueError`) is
  raised for lines that are not a single `key value` pair.
- `ValueError` is raised for other malformed file contents.
- `OSError`, including `FileNotFoundError`, is raised when a file the reader
  needs cannot be read.
- Looking up device names for v2 IO stats raises `OSError` on systems other
  than Linux.

## What this package does not do

This package is a library for cgroup metrics only:

- It has no command-line tool.
- It does not report or store metrics over time.
- It does not collect host-wide figures such as load averages, disk IO
  counters, filesystem usage or host information.

The caller decides when to sample and where the results go.