"""Discovery of cgroup subsystems, their mountpoints and the paths of a process."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


class CgroupsMissingError(Exception):
    """``/proc/cgroups`` was not found.

    Either cgroups are disabled in the kernel or an invalid rootfs was given.
    """

    def __init__(self, message: str = "cgroups not found or unsupported by OS") -> None:
        super().__init__(message)


@dataclass
class Mountinfo:
    """The fields of a ``/proc/[pid]/mountinfo`` line that cgroup discovery needs."""

    mountpoint: str
    filesystem_type: str
    super_options: list[str]


@dataclass
class Mountpoints:
    """Mountpoints of the v1 subsystems and of the unified v2 hierarchy."""

    v1_mounts: dict[str, str] = field(default_factory=dict)
    v2_loc: str = ""


@dataclass
class ControllerPath:
    """A controller's cgroup path and its absolute location on disk."""

    controller_path: str
    full_path: str
    is_v2: bool = False


@dataclass
class PathList:
    """Controller paths of a process, kept apart for v1 and v2."""

    v1: dict[str, ControllerPath] = field(default_factory=dict)
    v2: dict[str, ControllerPath] = field(default_factory=dict)

    def flatten(self) -> list[ControllerPath]:
        """All controller paths, v1 first, without their names."""
        return [*self.v1.values(), *self.v2.values()]


def resolve_hostfs(rootfs: str | os.PathLike | None, path: str) -> str:
    """Place ``path`` below the root filesystem ``rootfs`` (``/`` when unset)."""
    root = os.fspath(rootfs) if rootfs else "/"
    return os.path.normpath(os.path.join(root, path.lstrip("/")))


def parse_mountinfo_line(line: str) -> Mountinfo:
    """Parse one line of ``/proc/[pid]/mountinfo``."""
    fields = line.split()
    if len(fields) < 10:
        raise ValueError(
            "invalid mountinfo line, expected at least 10 fields but got "
            f"{len(fields)} from line='{line}'"
        )
    mountpoint = fields[4]
    try:
        separator = fields.index("-")
    except ValueError:
        raise ValueError(
            f"invalid mountinfo line, separator ('-') not found in line='{line}'"
        ) from None
    after = fields[separator + 1:]
    if len(after) < 3:
        raise ValueError(
            "invalid mountinfo line, expected at least 3 fields after separator "
            f"but got {len(after)} from line='{line}'"
        )
    return Mountinfo(
        mountpoint=mountpoint,
        filesystem_type=after[0],
        super_options=after[2].split(","),
    )


def supported_subsystems(rootfs: str | os.PathLike | None) -> set[str]:
    """Names of the cgroup subsystems the kernel supports and has enabled."""
    try:
        text = Path(resolve_hostfs(rootfs, "/proc/cgroups")).read_text()
    except FileNotFoundError as err:
        raise CgroupsMissingError() from err
    subsystems: set[str] = set()
    for line in text.splitlines():
        if line.startswith("#"):
            continue
        # Format: subsys_name hierarchy num_cgroups enabled
        fields = line.split()
        if not fields:
            continue
        if len(fields) > 3 and fields[3] == "0":
            continue
        subsystems.add(fields[0])
    return subsystems


def subsystem_mountpoints(
    rootfs: str | os.PathLike | None, subsystems: set[str] | dict[str, object]
) -> Mountpoints:
    """Find where each of ``subsystems`` is mounted, and the v2 hierarchy."""
    text = Path(resolve_hostfs(rootfs, "/proc/self/mountinfo")).read_text()
    root = resolve_hostfs(rootfs, "")
    mounts: dict[str, str] = {}
    v2_loc = ""
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        mount = parse_mountinfo_line(line)
        # A mountpoint outside our root belongs to something else.
        if not mount.mountpoint.startswith(root):
            continue
        if mount.filesystem_type == "cgroup":
            for option in mount.super_options:
                # Subsystems are sometimes written as "name=blkio".
                name = option.split("=", 1)[1] if "=" in option else option
                if name in subsystems and name not in mounts:
                    mounts[name] = mount.mountpoint
        if mount.filesystem_type == "cgroup2":
            v2_loc = mount.mountpoint
    return Mountpoints(v1_mounts=mounts, v2_loc=v2_loc)