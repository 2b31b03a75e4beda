"""Reading cgroup metrics and limits for processes."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from sysmetrics.cgroup.cgv1.blkio import BlockIOSubsystem
from sysmetrics.cgroup.cgv1.cpu import CPUSubsystem as V1CPUSubsystem
from sysmetrics.cgroup.cgv1.cpuacct import CPUAccountingSubsystem
from sysmetrics.cgroup.cgv1.memory import MemorySubsystem as V1MemorySubsystem
from sysmetrics.cgroup.cgv2.cpu import CPUSubsystem as V2CPUSubsystem
from sysmetrics.cgroup.cgv2.io import IOSubsystem
from sysmetrics.cgroup.cgv2.memory import MemorySubsystem as V2MemorySubsystem
from sysmetrics.cgroup.stats import CgroupsVersion, StatsV1, StatsV2
from sysmetrics.cgroup.util import (
    ControllerPath,
    PathList,
    resolve_hostfs,
    subsystem_mountpoints,
    supported_subsystems,
)

_log = logging.getLogger(__name__)

_V2_MARKER = "0::/"


def _join(*parts: str) -> str:
    """Join path parts, ignoring empty ones, and clean the result."""
    present = [part for part in parts if part]
    if not present:
        return ""
    return os.path.normpath("/".join(present))


def _base(path: str) -> str:
    """The last element of ``path``; ``.`` for an empty path."""
    if path == "":
        return "."
    stripped = path.rstrip("/")
    if stripped == "":
        return "/"
    return stripped.rsplit("/", 1)[-1]


def _common_metadata(
    mounts: dict[str, ControllerPath], ignore_root: bool
) -> tuple[str, str]:
    """Path and ID shared by all controllers, or empty strings if they differ."""
    path = ""
    for mount in mounts.values():
        # Root v1 controllers alongside non-root ones must not hide the real ID.
        if not mount.is_v2 and ignore_root and mount.controller_path == "/":
            continue
        if path == "":
            path = mount.controller_path
        elif path != mount.controller_path:
            return "", ""
    return path, _base(path)


def _read_controller_list(cgroups_file: str, v2_path: str) -> list[str]:
    """The controllers listed in ``cgroup.controllers`` of the process's v2 cgroup."""
    if v2_path == "":
        return []
    cg_path = ""
    for line in cgroups_file.split("\n"):
        if _V2_MARKER in line:
            cg_path = line.split(":")[2]
    if cg_path == "":
        return []
    file = _join(v2_path, cg_path, "cgroup.controllers")
    try:
        raw = Path(file).read_text()
    except OSError as err:
        raise OSError(f"error reading {file}: {err}") from err
    if raw == "":
        return []
    return raw.split(" ")


def _fill_v1(path: ControllerPath, name: str, stats: StatsV1) -> None:
    cgroup_id = _base(path.controller_path)
    if name == "blkio":
        subsystem = BlockIOSubsystem()
        stats.block_io = subsystem
    elif name == "cpu":
        subsystem = V1CPUSubsystem()
        stats.cpu = subsystem
    elif name == "cpuacct":
        subsystem = CPUAccountingSubsystem()
        stats.cpu_accounting = subsystem
    elif name == "memory":
        subsystem = V1MemorySubsystem()
        stats.memory = subsystem
    else:
        return
    subsystem.get(path.full_path)
    subsystem.id = cgroup_id
    subsystem.path = path.controller_path


def _fill_v2(path: ControllerPath, name: str, stats: StatsV2) -> None:
    cgroup_id = _base(path.controller_path)
    if name == "cpu":
        cpu = V2CPUSubsystem()
        stats.cpu = cpu
        cpu.get(path.full_path)
        subsystem = cpu
    elif name == "memory":
        memory = V2MemorySubsystem()
        stats.memory = memory
        memory.get(path.full_path)
        subsystem = memory
    elif name == "io":
        io = IOSubsystem()
        stats.io = io
        io.get(path.full_path, True)
        subsystem = io
    else:
        return
    subsystem.id = cgroup_id
    subsystem.path = path.controller_path


class Reader:
    """Reads cgroup metrics and limits of processes.

    ``rootfs`` is the mountpoint of the host's root filesystem (``/`` when
    unset). With ``ignore_root_cgroups`` controllers at ``/`` are skipped.
    A non-empty ``cgroups_hierarchy_override`` replaces the cgroup paths read
    from ``/proc/<pid>/cgroup``; inside a container this is usually ``/``.
    """

    def __init__(
        self,
        rootfs: str | os.PathLike | None = None,
        ignore_root_cgroups: bool = False,
        cgroups_hierarchy_override: str = "",
    ) -> None:
        self.rootfs = os.fspath(rootfs) if rootfs else None
        self.ignore_root_cgroups = ignore_root_cgroups
        self.cgroups_hierarchy_override = cgroups_hierarchy_override
        subsystems = supported_subsystems(self.rootfs)
        self.mountpoints = subsystem_mountpoints(self.rootfs, subsystems)

    @property
    def _rootfs_is_set(self) -> bool:
        return self.rootfs is not None and os.path.normpath(self.rootfs) != "/"

    def _resolve(self, path: str) -> str:
        return resolve_hostfs(self.rootfs, path)

    def cgroups_version(self, pid: int) -> CgroupsVersion:
        """Whether the process is attached to v1 or v2 controllers."""
        cg_path = self._resolve(f"/proc/{pid}/cgroup")
        try:
            text = Path(cg_path).read_text()
        except OSError as err:
            raise OSError(f"error reading {cg_path}: {err}") from err
        if _V2_MARKER not in text:
            return CgroupsVersion.V1
        if len(text.strip().split("\n")) == 1:
            return CgroupsVersion.V2
        # Hybrid setups may carry an unused v2 entry; only count it if it has controllers.
        controllers = _read_controller_list(text, self.mountpoints.v2_loc)
        if controllers:
            _log.debug("fetching V2 controller: %r for pid %d", controllers, pid)
            return CgroupsVersion.V2
        return CgroupsVersion.V1

    def get_stats_for_pid(self, pid: int) -> StatsV1 | StatsV2:
        """Stats of the process from whichever hierarchy it is attached to."""
        if self.cgroups_version(pid) == CgroupsVersion.V1:
            return self.get_v1_stats_for_process(pid)
        return self.get_v2_stats_for_process(pid)

    def _skipped(self, path: ControllerPath) -> bool:
        return (
            self.ignore_root_cgroups
            and path.controller_path == "/"
            and self.cgroups_hierarchy_override != path.controller_path
        )

    def get_v1_stats_for_process(self, pid: int) -> StatsV1:
        """Cgroup v1 metrics and limits of the process."""
        paths = self.process_cgroup_paths(pid)
        stats = StatsV1()
        stats.path, stats.id = _common_metadata(paths.v1, self.ignore_root_cgroups)
        stats.version = CgroupsVersion.V1
        for name, cg_path in paths.v1.items():
            if self._skipped(cg_path):
                continue
            _fill_v1(cg_path, name, stats)
        return stats

    def get_v2_stats_for_process(self, pid: int) -> StatsV2:
        """Cgroup v2 metrics and limits of the process."""
        paths = self.process_cgroup_paths(pid)
        stats = StatsV2()
        stats.path, stats.id = _common_metadata(paths.v2, self.ignore_root_cgroups)
        stats.version = CgroupsVersion.V2
        for name, cg_path in paths.v2.items():
            if self._skipped(cg_path):
                continue
            _fill_v2(cg_path, name, stats)
        return stats

    def process_cgroup_paths(self, pid: int) -> PathList:
        """The cgroups of the process and their paths, split into v1 and v2."""
        text = Path(self._resolve(f"proc/{pid}/cgroup")).read_text()
        paths = PathList()
        v2_loc = self.mountpoints.v2_loc
        for line in text.splitlines():
            # Format: hierarchy-ID:subsystem-list:cgroup-path
            fields = line.split(":")
            if len(fields) != 3:
                continue
            path = self.cgroups_hierarchy_override or fields[2]
            if _V2_MARKER in line:
                controller_path = _join(v2_loc, path)
                if v2_loc == "":
                    if not self._rootfs_is_set:
                        _log.debug(
                            "PID %d contains a cgroups V2 path (%s) but no V2 mountpoint "
                            "was found. Mount the unified hierarchy as "
                            "/sys/fs/cgroup/unified and set the host filesystem root.",
                            pid,
                            line,
                        )
                        continue
                    controller_path = self._resolve(_join("/sys/fs/cgroup/unified", path))
                try:
                    entries = sorted(os.listdir(controller_path))
                except OSError as err:
                    raise OSError(
                        "error fetching cgroupV2 controllers for cgroup location "
                        f"'{v2_loc}' and path line '{line}': {err}"
                    ) from err
                # The unified hierarchy lists no controllers per PID; infer them from *.stat files.
                for name in entries:
                    if "stat" in name:
                        controller = name.removesuffix(".stat")
                        paths.v2[controller] = ControllerPath(path, controller_path, True)
            else:
                for subsystem in fields[1].split(","):
                    full_path = _join(self.mountpoints.v1_mounts.get(subsystem, ""), path)
                    paths.v1[subsystem] = ControllerPath(path, full_path, False)
        return paths


def process_cgroup_paths(hostfs: str | os.PathLike | None, pid: int) -> PathList:
    """The cgroup paths of a process, read with a default reader for ``hostfs``."""
    return Reader(hostfs, False).process_cgroup_paths(pid)