from pathlib import Path
from unittest import mock

import pytest

from sysmetrics.cgroup.cgcommon import Pressure
from sysmetrics.cgroup.cgv2.io import (
    IOMetric,
    IOStat,
    IOSubsystem,
    fetch_device_name,
    get_io_stats,
)

IO_STAT = """\
253:0 rbytes=1024 wbytes=4096 rios=1 wios=1 dbytes=6 dios=8
8:0 rbytes=512 wbytes=4096 rios=100 wios=1 dbytes=5 dios=23
"""

IO_PRESSURE = """\
some avg10=3.00 avg60=2.10 avg300=4.00 total=1154482
full avg10=10.00 avg60=30.00 avg300=0.50 total=1154482
"""

GOOD_STAT = {
    "253:0": IOStat(
        read=IOMetric(bytes=1024, ios=1),
        write=IOMetric(bytes=4096, ios=1),
        discarded=IOMetric(bytes=6, ios=8),
    ),
    "8:0": IOStat(
        read=IOMetric(bytes=512, ios=100),
        write=IOMetric(bytes=4096, ios=1),
        discarded=IOMetric(bytes=5, ios=23),
    ),
}


@pytest.fixture
def v2_path(tmp_path: Path) -> Path:
    (tmp_path / "io.stat").write_text(IO_STAT)
    (tmp_path / "io.pressure").write_text(IO_PRESSURE)
    return tmp_path


def test_get_io(v2_path):
    io = IOSubsystem()
    io.get(v2_path, False)
    assert io.stats == GOOD_STAT


def test_get_io_pressure(v2_path):
    io = IOSubsystem()
    io.get(v2_path, False)
    assert io.pressure == {
        "some": Pressure(3.0, 2.1, 4.0, 1154482),
        "full": Pressure(10.0, 30.0, 0.5, 1154482),
    }


def test_missing_pressure_is_skipped(tmp_path):
    (tmp_path / "io.stat").write_text(IO_STAT)
    io = IOSubsystem()
    io.get(tmp_path, False)
    assert io.pressure == {}
    assert io.stats == GOOD_STAT


def test_missing_io_stat_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        get_io_stats(tmp_path, False)


def test_malformed_io_stat_raises(tmp_path):
    (tmp_path / "io.stat").write_text("8:0 rbytes=1 wbytes=2\n")
    with pytest.raises(ValueError, match="error scanning file"):
        get_io_stats(tmp_path, False)


def test_fetch_device_name_off_linux_raises():
    with mock.patch("sys.platform", "darwin"):
        with pytest.raises(OSError, match="linux-only"):
            fetch_device_name(8, 0)


def test_resolving_ids_off_linux_raises(v2_path):
    with mock.patch("sys.platform", "win32"):
        with pytest.raises(OSError):
            get_io_stats(v2_path, True)


def test_fetch_device_name_unknown_device():
    with mock.patch("sys.platform", "linux"):
        assert fetch_device_name(4095, 1048575) is None