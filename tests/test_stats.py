from datetime import datetime, timedelta

import pytest

from sysmetrics.cgroup.cgcommon import CPUUsage, Pressure
from sysmetrics.cgroup.cgv1.blkio import BlockIOSubsystem, TotalIOs
from sysmetrics.cgroup.cgv1.cpuacct import CPUAccountingStats, CPUAccountingSubsystem
from sysmetrics.cgroup.cgv2.cpu import CPUStats, CPUSubsystem
from sysmetrics.cgroup.stats import CgroupsVersion, StatsV1, StatsV2

T0 = datetime(2024, 1, 1, 12, 0, 0)
T1 = T0 + timedelta(seconds=1)


def _v1(total, user, system, cpus=4):
    return StatsV1(
        cpu_accounting=CPUAccountingSubsystem(
            total=CPUUsage(ns=total),
            usage_per_cpu={str(i): 0 for i in range(1, cpus + 1)},
            stats=CPUAccountingStats(user=CPUUsage(ns=user), system=CPUUsage(ns=system)),
        )
    )


def _v2(usage, user, system):
    return StatsV2(
        cpu=CPUSubsystem(
            stats=CPUStats(
                usage=CPUUsage(ns=usage), user=CPUUsage(ns=user), system=CPUUsage(ns=system)
            )
        )
    )


def test_versions():
    assert StatsV1().cg_version() == CgroupsVersion.V1
    assert StatsV2().cg_version() == CgroupsVersion.V2
    assert int(CgroupsVersion.V1) == 1
    assert int(CgroupsVersion.V2) == 2


def test_v1_fill_percentages():
    prev = _v1(1_000_000_000, 0, 0)
    cur = _v1(3_000_000_000, 1_500_000_000, 500_000_000)
    cur.fill_percentages(prev, T1, T0)
    acct = cur.cpu_accounting
    assert acct.total.pct == 2.0
    assert acct.total.norm_pct * 4 == pytest.approx(acct.total.pct)
    assert acct.stats.user.pct + acct.stats.system.pct == pytest.approx(acct.total.pct)
    assert acct.stats.user.norm_pct * 4 == pytest.approx(acct.stats.user.pct)
    assert acct.stats.system.norm_pct * 4 == pytest.approx(acct.stats.system.pct)


def test_v1_fill_percentages_ignores_other_version():
    cur = _v1(3_000_000_000, 1, 1)
    cur.fill_percentages(_v2(0, 0, 0), T1, T0)
    assert cur.cpu_accounting.total.pct is None
    cur.fill_percentages(None, T1, T0)
    assert cur.cpu_accounting.total.norm_pct is None


def test_v1_fill_percentages_needs_cpuacct():
    cur = _v1(3_000_000_000, 1, 1)
    cur.fill_percentages(StatsV1(), T1, T0)
    assert cur.cpu_accounting.stats.user.pct is None


def test_v2_fill_percentages():
    prev = _v2(0, 0, 0)
    cur = _v2(1_000_000_000, 600_000_000, 400_000_000)
    cur.fill_percentages(prev, T1, T0)
    stats = cur.cpu.stats
    assert stats.usage.pct == 1.0
    assert 0 < stats.usage.norm_pct <= stats.usage.pct
    assert stats.user.pct + stats.system.pct == pytest.approx(stats.usage.pct)
    assert stats.user.norm_pct <= stats.user.pct


def test_v2_fill_percentages_ignores_other_version():
    cur = _v2(1_000_000_000, 1, 1)
    cur.fill_percentages(_v1(0, 0, 0), T1, T0)
    assert cur.cpu.stats.usage.pct is None


def test_v1_format():
    stats = StatsV1(
        id="abc",
        path="/docker/abc",
        block_io=BlockIOSubsystem(id="abc", path="/docker/abc", total=TotalIOs(bytes=1648128, ios=46)),
    )
    result = stats.format()
    assert result["id"] == "abc"
    assert result["path"] == "/docker/abc"
    assert result["blkio"]["total"] == {"bytes": 1648128, "ios": 46}
    assert result["cgroups_version"] == 1
    assert "memory" not in result
    assert "cpuacct" not in result


def test_v1_format_cpu_usage():
    prev = _v1(0, 0, 0, cpus=2)
    cur = _v1(1_000_000_000, 0, 0, cpus=2)
    cur.fill_percentages(prev, T1, T0)
    result = cur.format()["cpuacct"]
    assert result["total"]["ns"] == 1_000_000_000
    assert result["total"]["pct"] == cur.cpu_accounting.total.pct
    assert result["total"]["norm"] == {"pct": cur.cpu_accounting.total.norm_pct}
    assert result["percpu"] == {"1": 0, "2": 0}
    assert "id" not in result


def test_v2_format():
    stats = _v2(26772130245, 0, 5793060316)
    stats.cpu.pressure = {"some": Pressure(3.0, 2.1, 4.0, 1154482), "none": Pressure()}
    result = stats.format()
    assert result["cgroups_version"] == 2
    assert result["cpu"]["stats"]["usage"] == {"ns": 26772130245}
    assert result["cpu"]["stats"]["system"] == {"ns": 5793060316}
    assert "throttled" not in result["cpu"]["stats"]
    some = result["cpu"]["pressure"]["some"]
    assert some["total"] == 1154482
    assert some["10"] == {"pct": 3.0}
    assert "total" not in result["cpu"]["pressure"]["none"]
    assert "io" not in result