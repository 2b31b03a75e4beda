"""Limits and metrics from the cgroup v1 "blkio" subsystem."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from sysmetrics.cgroup.cgcommon import InvalidFormatError, parse_uint

_MAX_UINT64 = 2**64 - 1
_SEPARATORS = re.compile(r"[\s:]+")


@dataclass
class TotalIOs:
    """Bytes and operations summed over all devices."""

    bytes: int = 0
    ios: int = 0


@dataclass
class OperationValues:
    """Values for read, write, async and sync operations."""

    read: int = 0
    write: int = 0
    async_: int = 0
    sync: int = 0


@dataclass(frozen=True)
class DeviceID:
    """A Linux block device, identified by its major and minor numbers."""

    major: int
    minor: int


@dataclass
class ThrottleDevice:
    """Throttle limits and metrics of a single device; zero limits mean no limit."""

    device_id: DeviceID
    read_limit_bps: int = 0
    write_limit_bps: int = 0
    read_limit_iops: int = 0
    write_limit_iops: int = 0
    bytes: OperationValues = field(default_factory=OperationValues)
    ios: OperationValues = field(default_factory=OperationValues)


@dataclass
class BlkioValue:
    """A single value read from a blkio file, tied to a device."""

    device_id: DeviceID
    operation: str
    value: int

    @property
    def major(self) -> int:
        return self.device_id.major

    @property
    def minor(self) -> int:
        return self.device_id.minor


@dataclass
class BlockIOSubsystem:
    """Block IO totals of one cgroup."""

    id: str = ""
    path: str = ""
    total: TotalIOs = field(default_factory=TotalIOs)

    def get(self, path: str | os.PathLike) -> None:
        """Read the throttle data from the cgroup directory at ``path``."""
        blkio_throttle(path, self)


def blkio_throttle(path: str | os.PathLike, blkio: BlockIOSubsystem) -> None:
    """Read the throttling policy files and add their totals to ``blkio``."""
    devices: dict[DeviceID, ThrottleDevice] = {}

    def device(device_id: DeviceID) -> ThrottleDevice:
        return devices.setdefault(device_id, ThrottleDevice(device_id))

    for device_id, ops in collect_op_values(
        read_blkio_values(path, "blkio.throttle.io_service_bytes") or []
    ).items():
        device(device_id).bytes = ops

    for device_id, ops in collect_op_values(
        read_blkio_values(path, "blkio.throttle.io_serviced") or []
    ).items():
        device(device_id).ios = ops

    limits = (
        ("blkio.throttle.read_bps_device", "read_limit_bps"),
        ("blkio.throttle.write_bps_device", "write_limit_bps"),
        ("blkio.throttle.read_iops_device", "read_limit_iops"),
        ("blkio.throttle.write_iops_device", "write_limit_iops"),
    )
    for filename, attribute in limits:
        for value in read_blkio_values(path, filename) or []:
            setattr(device(value.device_id), attribute, value.value)

    for dev in devices.values():
        blkio.total.bytes += dev.bytes.read + dev.bytes.write
        blkio.total.ios += dev.ios.read + dev.ios.write


def collect_op_values(values: list[BlkioValue]) -> dict[DeviceID, OperationValues]:
    """Group per-operation values into one OperationValues per device."""
    result: dict[DeviceID, OperationValues] = {}
    attributes = {"read": "read", "write": "write", "async": "async_", "sync": "sync"}
    for value in values:
        ops = result.setdefault(value.device_id, OperationValues())
        attribute = attributes.get(value.operation)
        if attribute is not None:
            setattr(ops, attribute, value.value)
    return result


def read_blkio_values(*args: str | os.PathLike) -> list[BlkioValue] | None:
    """Read the values of a blkio file at the joined path; ``None`` if it is missing.

    Lines look like ``245:1 read 18880`` or ``254:1 1909``; lines that do not
    start with a device number are skipped.
    """
    try:
        text = Path(*args).read_text()
    except FileNotFoundError:
        return None
    values = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or not stripped[0].isnumeric():
            continue
        values.append(parse_blkio_value(line))
    return values


def _parse_device_number(text: str) -> int:
    if not (text.isascii() and text.isdigit()):
        raise ValueError(f"invalid device number: {text!r}")
    number = int(text)
    if number > _MAX_UINT64:
        raise ValueError(f"device number out of range: {text!r}")
    return number


def parse_blkio_value(line: str) -> BlkioValue:
    """Parse one ``major:minor [operation] value`` line."""
    fields = [part for part in _SEPARATORS.split(line) if part]
    if len(fields) not in (3, 4):
        raise InvalidFormatError()
    device_id = DeviceID(_parse_device_number(fields[0]), _parse_device_number(fields[1]))
    if len(fields) == 3:
        return BlkioValue(device_id, "", parse_uint(fields[2]))
    return BlkioValue(device_id, fields[2].lower(), parse_uint(fields[3]))