"""Tests for hostwatch data models."""

import pytest

from hostwatch.models import (
    CpuAggregateSample,
    DiskRecord,
    FanInfo,
    FanReading,
    MemoryInfo,
    ProcessAlert,
    ProcessRecord,
    ProcessState,
    Provenance,
    StateCategory,
    TcpState,
)


def test_process_record_creation():
    """Test ProcessRecord dataclass creation."""
    record = ProcessRecord(
        pid=123,
        name="test_process",
        state="R",
        ppid=1,
        priority=20,
        nice=0,
        utime=150,
        stime=50,
        vsize=8192000,
        rss=1024000,
    )

    assert record.pid == 123
    assert record.name == "test_process"
    assert record.state_kind is ProcessState.RUNNING
    assert record.cpu_ticks == 200
    assert record.cpu_usage == 0.0
    assert record.memory_usage == 0.0


def test_process_record_is_frozen():
    """Test that ProcessRecord is immutable (frozen)."""
    record = ProcessRecord(pid=1, name="init", state="S")

    with pytest.raises(AttributeError):
        record.pid = 999


def test_process_record_uses_slots():
    """Test that ProcessRecord uses __slots__ for memory efficiency."""
    record = ProcessRecord(pid=1, name="init", state="S")

    # Slots-based dataclasses don't have __dict__
    assert not hasattr(record, "__dict__")


class TestProcessState:
    """Tests for the ProcessState enumeration."""

    @pytest.mark.parametrize(
        ("code", "expected"),
        [
            ("R", StateCategory.RUNNING),
            ("S", StateCategory.SLEEPING),
            ("D", StateCategory.SLEEPING),
            ("I", StateCategory.SLEEPING),
            ("T", StateCategory.STOPPED),
            ("t", StateCategory.STOPPED),
            ("Z", StateCategory.ZOMBIE),
            ("X", StateCategory.ZOMBIE),
            ("W", StateCategory.SLEEPING),
            ("", StateCategory.SLEEPING),
        ],
    )
    def test_every_code_has_a_category(self, code, expected):
        """Test each code maps to exactly one bucket, unseen ones to sleeping."""
        assert ProcessState.from_code(code).category is expected

    def test_unseen_code_is_unknown(self):
        """Test an unrecognized state character is an explicit UNKNOWN."""
        assert ProcessState.from_code("W") is ProcessState.UNKNOWN

    def test_labels(self):
        """Test human-readable labels."""
        assert ProcessState.DISK_SLEEP.label == "Disk Sleep"
        assert ProcessState.from_code("t").label == "Tracing"
        assert ProcessState.UNKNOWN.label == "Unknown"


class TestTcpState:
    """Tests for the TcpState enumeration."""

    def test_listen_and_time_wait(self):
        """Test hex codes 0A and 06."""
        assert TcpState.from_code(0x0A) is TcpState.LISTEN
        assert TcpState.from_code(0x06) is TcpState.TIME_WAIT

    def test_out_of_range(self):
        """Test codes outside 1..11 decode to UNKNOWN."""
        assert TcpState.from_code(0) is TcpState.UNKNOWN
        assert TcpState.from_code(12) is TcpState.UNKNOWN
        assert TcpState.from_code(0xFF) is TcpState.UNKNOWN

    def test_eleven_named_states(self):
        """Test the table has 11 named states plus UNKNOWN."""
        named = [state for state in TcpState if state is not TcpState.UNKNOWN]
        assert len(named) == 11


class TestCpuAggregateSample:
    """Tests for CpuAggregateSample."""

    def test_idle_includes_iowait(self):
        """Test idle time counts both idle and iowait."""
        sample = CpuAggregateSample(idle=800, iowait=50)
        assert sample.idle_time == 850

    def test_total_excludes_guest(self):
        """Test guest time is not counted twice."""
        sample = CpuAggregateSample(100, 10, 50, 800, 50, 5, 5, 2, 30, 3)
        assert sample.total_time == 100 + 10 + 50 + 800 + 50 + 5 + 5 + 2

    def test_defaults_are_zero(self):
        """Test an empty sample is all zeros."""
        assert CpuAggregateSample().total_time == 0


class TestUsageRatios:
    """Tests for derived usage percentages."""

    def test_disk_usage_percent(self):
        """Test disk usage ratio."""
        disk = DiskRecord("/", "/dev/sda1", "ext4", total=1000, free=250, used=750)
        assert disk.usage_percent == 75.0

    def test_disk_usage_percent_zero_total(self):
        """Test an empty filesystem reports 0%."""
        disk = DiskRecord("/", "/dev/sda1", "ext4", total=0, free=0, used=0)
        assert disk.usage_percent == 0.0

    def test_memory_percentages(self):
        """Test RAM and swap ratios, and zero totals."""
        info = MemoryInfo(total_ram=1000, used_ram=250, total_swap=0, used_swap=0)
        assert info.memory_percent == 25.0
        assert info.swap_percent == 0.0


class TestFanModels:
    """Tests for provenance-tagged fan readings."""

    def test_is_estimate(self):
        """Test only measured readings are not estimates."""
        assert not FanReading(1200, Provenance.MEASURED).is_estimate
        assert FanReading(2500, Provenance.ESTIMATED).is_estimate
        assert FanReading(0, Provenance.DEFAULT).is_estimate

    def test_fan_info_active(self):
        """Test the status reading drives the active flag."""
        info = FanInfo(
            status=FanReading(0, Provenance.MEASURED),
            speed=FanReading(0, Provenance.MEASURED),
            level=FanReading(0, Provenance.MEASURED),
        )
        assert info.active is False


def test_process_alert_is_active():
    """Test an alert is active when either flag is set."""
    alert = ProcessAlert(1, "init", 50.0, 50.0)
    assert not alert.is_active
    assert ProcessAlert(1, "init", 50.0, 50.0, memory_alert_active=True).is_active
