"""Metrics from the cgroup v2 "io" controller, the successor of v1 blkio."""

from __future__ import annotations

import logging
import os
import re
import stat
import sys
from dataclasses import dataclass, field
from pathlib import Path

from sysmetrics.cgroup.cgcommon import Pressure, get_pressure

_log = logging.getLogger(__name__)

_IO_STAT_LINE = re.compile(
    r"\s*(\d+):(\d+)\s+rbytes=(\d+)\s+wbytes=(\d+)\s+rios=(\d+)\s+wios=(\d+)"
    r"\s+dbytes=(\d+)\s+dios=(\d+)"
)
_DEV_DIR = "/dev/"


@dataclass
class IOMetric:
    """Bytes and operation count of one kind of IO."""

    bytes: int = 0
    ios: int = 0


@dataclass
class IOStat:
    """Per-device read, write and discard counters."""

    read: IOMetric = field(default_factory=IOMetric)
    write: IOMetric = field(default_factory=IOMetric)
    discarded: IOMetric = field(default_factory=IOMetric)


@dataclass
class IOSubsystem:
    """IO counters and pressure of one v2 cgroup."""

    id: str = ""
    path: str = ""
    stats: dict[str, IOStat] = field(default_factory=dict)
    pressure: dict[str, Pressure] = field(default_factory=dict)

    def get(self, path: str | os.PathLike, resolve_dev_ids: bool) -> None:
        """Read ``io.stat`` and, where it exists, ``io.pressure`` from ``path``.

        With ``resolve_dev_ids`` the stats are keyed by device name where one
        can be found, otherwise by ``major:minor``.
        """
        self.stats = get_io_stats(path, resolve_dev_ids)
        pressure_file = Path(path, "io.pressure")
        if not pressure_file.exists():
            _log.debug("io.pressure does not exist. Skipping.")
            return
        self.pressure = get_pressure(pressure_file)


def get_io_stats(path: str | os.PathLike, resolve_dev_ids: bool) -> dict[str, IOStat]:
    """Parse ``io.stat`` into a mapping of device key to counters."""
    file = Path(path, "io.stat")
    text = file.read_text()
    stats: dict[str, IOStat] = {}
    for line in text.splitlines():
        match = _IO_STAT_LINE.match(line)
        if match is None:
            raise ValueError(f"error scanning file: {file}: unexpected line {line!r}")
        major, minor, rbytes, wbytes, rios, wios, dbytes, dios = map(int, match.groups())
        metric = IOStat(
            read=IOMetric(rbytes, rios),
            write=IOMetric(wbytes, wios),
            discarded=IOMetric(dbytes, dios),
        )
        name = fetch_device_name(major, minor) if resolve_dev_ids else None
        stats[name if name is not None else f"{major}:{minor}"] = metric
    return stats


def _split_device_number(dev_id: int) -> tuple[int, int]:
    major = ((dev_id & 0xFFFFF00000000000) >> 32) | ((dev_id & 0x00000000000FFF00) >> 8)
    minor = (dev_id & 0x00000000000000FF) | ((dev_id & 0x00000FFFFFF00000) >> 12)
    return major, minor


def fetch_device_name(major: int, minor: int) -> str | None:
    """Find the name of the block device in /dev with this major/minor pair.

    Returns ``None`` when no device matches. Only available on Linux.
    """
    if not sys.platform.startswith("linux"):
        raise OSError("device name lookup is linux-only")
    try:
        entries = sorted(os.scandir(_DEV_DIR), key=lambda entry: entry.name)
    except OSError as err:
        raise OSError(f"error walking {_DEV_DIR}: {err}") from err
    found = None
    for entry in entries:
        try:
            info = entry.stat(follow_symlinks=False)
        except OSError:
            continue
        if not stat.S_ISBLK(info.st_mode):
            continue
        if _split_device_number(info.st_rdev) == (major, minor):
            found = entry.name
    return found