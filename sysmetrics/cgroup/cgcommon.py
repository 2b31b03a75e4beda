"""Helpers and value types shared by the cgroup v1 and v2 readers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

_MAX_UINT64 = 2**64 - 1


class InvalidFormatError(ValueError):
    """A line did not hold a well-formed key/value pair."""

    def __init__(self, message: str = "error invalid key/value format") -> None:
        super().__init__(message)


@dataclass
class CPUUsage:
    """CPU time in nanoseconds, with optional derived percentages."""

    ns: int = 0
    pct: float | None = None
    norm_pct: float | None = None


@dataclass
class Pressure:
    """Pressure stall averages over 10, 60 and 300 seconds, plus a total in microseconds."""

    ten: float = 0.0
    sixty: float = 0.0
    three_hundred: float = 0.0
    total: int | None = None

    def is_zero(self) -> bool:
        """Pressure data is all-or-nothing: without a total there is none."""
        return self.total is None


def _float_field(token: str, prefix: str) -> float:
    if not token.startswith(prefix):
        raise ValueError(f"expected field {prefix!r}, got {token!r}")
    return float(token[len(prefix):])


def _parse_pressure_line(line: str) -> tuple[str, Pressure]:
    tokens = line.split()
    if len(tokens) < 5:
        raise ValueError(f"expected 5 fields, got {len(tokens)} in {line!r}")
    stall_time = tokens[0]
    ten = _float_field(tokens[1], "avg10=")
    sixty = _float_field(tokens[2], "avg60=")
    three_hundred = _float_field(tokens[3], "avg300=")
    total_token = tokens[4]
    if not total_token.startswith("total="):
        raise ValueError(f"expected field 'total=', got {total_token!r}")
    total = int(total_token[len("total="):])
    if not 0 <= total <= _MAX_UINT64:
        raise ValueError(f"total out of range in {line!r}")
    return stall_time, Pressure(ten, sixty, three_hundred, total)


def get_pressure(path: str | os.PathLike) -> dict[str, Pressure]:
    """Read a ``*.pressure`` file into a mapping of stall kind ("some", "full") to values.

    Errors opening the file propagate unchanged.
    """
    text = Path(path).read_text()
    pressure: dict[str, Pressure] = {}
    for line in text.splitlines():
        try:
            stall_time, data = _parse_pressure_line(line)
        except ValueError as err:
            raise ValueError(f"error scanning file: {path}: {err}") from err
        pressure[stall_time] = data
    return pressure


def parse_uint_from_file(*args: str | os.PathLike) -> int:
    """Read a single unsigned value from the file at the joined path; a missing file gives 0."""
    try:
        raw = Path(*args).read_bytes()
    except FileNotFoundError:
        return 0
    return parse_uint(raw)


def _is_decimal(text: str) -> bool:
    return text.isascii() and text.isdigit()


def parse_uint(value: bytes | str) -> int:
    """Parse an unsigned decimal after stripping whitespace; negative values become 0."""
    text = value.decode() if isinstance(value, (bytes, bytearray)) else value
    text = text.strip()
    if _is_decimal(text):
        number = int(text)
        if number <= _MAX_UINT64:
            return number
        raise ValueError(f"value out of range: {text!r}")
    if text.startswith("-") and _is_decimal(text[1:]) and int(text[1:]) > 0:
        return 0
    raise ValueError(f"invalid unsigned integer: {text!r}")


def parse_cgroup_param_key_value(text: str) -> tuple[str, int]:
    """Split a ``key value`` cgroup line into its key and unsigned value."""
    parts = text.split()
    if len(parts) != 2:
        raise InvalidFormatError()
    try:
        value = parse_uint(parts[1])
    except ValueError as err:
        raise ValueError(
            f"unable to convert param value ({parts[1]!r}) to uint64: {err}"
        ) from err
    return parts[0], value