"""Parsers for raw kernel counter sources.

Every ``parse_*`` function works on text already read from a source so it can
be exercised without touching the filesystem. The ``read_*`` helpers open the
source under a configurable root and degrade to a zeroed or empty value when
the file is missing or unreadable.
"""

import logging
import re
import socket
import struct
from collections.abc import Callable
from pathlib import Path

from hostwatch.models import (
    CpuAggregateSample,
    ConnectionRecord,
    InterfaceCounters,
    MemoryInfo,
    MountEntry,
    ProcessRecord,
    TcpState,
)

logger = logging.getLogger(__name__)

VIRTUAL_FS_TYPES = frozenset({"tmpfs", "devtmpfs", "sysfs", "proc"})
REAL_DEVICE_PREFIX = "/dev/"

_NON_DIGITS = re.compile(r"\D")


def read_text(path: Path) -> str | None:
    """Read a whole text source, or None when it cannot be opened."""
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        logger.debug("Source unavailable: %s", path)
        return None


def read_int(path: Path) -> int | None:
    """Read a sysfs-style single integer attribute."""
    text = read_text(path)
    if text is None:
        return None
    try:
        return int(text.strip())
    except ValueError:
        logger.debug("Malformed integer in %s: %r", path, text)
        return None


# ---------------------------------------------------------------------------
# CPU, uptime, load
# ---------------------------------------------------------------------------


def parse_cpu_line(line: str) -> CpuAggregateSample:
    """Parse the aggregate ``cpu`` line of the global stat source.

    Kernels older than 2.6.33 expose fewer than 10 counters; the missing
    ones are treated as zero.
    """
    parts = line.split()
    if not parts or not parts[0].startswith("cpu"):
        raise ValueError(f"not a cpu line: {line!r}")
    values = [int(p) for p in parts[1:11]]
    values.extend([0] * (10 - len(values)))
    return CpuAggregateSample(*values)


def read_cpu_sample(proc_root: Path) -> CpuAggregateSample:
    text = read_text(proc_root / "stat")
    if not text:
        return CpuAggregateSample()
    try:
        return parse_cpu_line(text.splitlines()[0])
    except ValueError:
        logger.debug("Malformed cpu line in %s", proc_root / "stat")
        return CpuAggregateSample()


def read_uptime(proc_root: Path) -> float:
    """Seconds since boot, 0.0 when unavailable."""
    text = read_text(proc_root / "uptime")
    if not text:
        return 0.0
    try:
        return float(text.split()[0])
    except (ValueError, IndexError):
        return 0.0


def read_loadavg(proc_root: Path) -> tuple[float, float, float]:
    text = read_text(proc_root / "loadavg")
    if not text:
        return (0.0, 0.0, 0.0)
    try:
        one, five, fifteen = (float(v) for v in text.split()[:3])
    except ValueError:
        return (0.0, 0.0, 0.0)
    return (one, five, fifteen)


def read_cpu_model(proc_root: Path) -> str:
    text = read_text(proc_root / "cpuinfo") or ""
    for line in text.splitlines():
        key, _, value = line.partition(":")
        if key.strip() == "model name":
            return value.strip()
    return ""


# ---------------------------------------------------------------------------
# Memory
# ---------------------------------------------------------------------------


def parse_meminfo(text: str) -> MemoryInfo:
    """Parse ``Key: value kB`` lines into byte counts.

    Used RAM follows ``free``: total - free - buffers - cached.
    """
    fields: dict[str, int] = {}
    for line in text.splitlines():
        key, sep, rest = line.partition(":")
        if not sep:
            continue
        parts = rest.split()
        if not parts:
            continue
        try:
            fields[key.strip()] = int(parts[0]) * 1024
        except ValueError:
            continue

    total = fields.get("MemTotal", 0)
    free = fields.get("MemFree", 0)
    buffers = fields.get("Buffers", 0)
    cached = fields.get("Cached", 0)
    swap_total = fields.get("SwapTotal", 0)
    swap_free = fields.get("SwapFree", 0)
    return MemoryInfo(
        total_ram=total,
        free_ram=free,
        used_ram=max(0, total - free - buffers - cached),
        total_swap=swap_total,
        free_swap=swap_free,
        used_swap=max(0, swap_total - swap_free),
    )


# ---------------------------------------------------------------------------
# Processes
# ---------------------------------------------------------------------------

# Offsets into the fields following "<pid> (<name>) ".
_STAT_STATE = 0
_STAT_PPID = 1
_STAT_UTIME = 11
_STAT_STIME = 12
_STAT_PRIORITY = 15
_STAT_NICE = 16
_STAT_VSIZE = 20


def parse_process_stat(line: str) -> ProcessRecord | None:
    """Parse a ``/proc/<pid>/stat`` line.

    The command name can itself contain spaces and parentheses, so the fixed
    fields are located after the *last* ``)``.
    """
    open_paren = line.find("(")
    close_paren = line.rfind(")")
    if open_paren < 0 or close_paren < open_paren:
        return None

    fields = line[close_paren + 1 :].split()
    if len(fields) <= _STAT_VSIZE:
        return None

    try:
        return ProcessRecord(
            pid=int(line[:open_paren]),
            name=line[open_paren + 1 : close_paren],
            state=fields[_STAT_STATE],
            ppid=int(fields[_STAT_PPID]),
            priority=int(fields[_STAT_PRIORITY]),
            nice=int(fields[_STAT_NICE]),
            utime=int(fields[_STAT_UTIME]),
            stime=int(fields[_STAT_STIME]),
            vsize=int(fields[_STAT_VSIZE]),
        )
    except ValueError:
        return None


def parse_vm_rss(text: str) -> int:
    """Resident set size in bytes from a ``/proc/<pid>/status`` body."""
    for line in text.splitlines():
        if line.startswith("VmRSS:"):
            digits = _NON_DIGITS.sub("", line)
            return int(digits) * 1024 if digits else 0
    # Kernel threads have no VmRSS line
    return 0


def read_process_name(proc_root: Path, pid: int) -> str:
    """Resolve a process name: comm first, then stat, then argv[0]."""
    pid_dir = proc_root / str(pid)

    comm = read_text(pid_dir / "comm")
    if comm and comm.strip():
        return comm.strip()

    stat = read_text(pid_dir / "stat")
    if stat:
        start, end = stat.find("("), stat.rfind(")")
        if 0 <= start < end:
            return stat[start + 1 : end]

    cmdline = read_text(pid_dir / "cmdline")
    if cmdline:
        argv0 = cmdline.split("\0", 1)[0]
        if argv0:
            return Path(argv0).name
    return ""


# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------


def parse_net_dev(text: str) -> dict[str, InterfaceCounters]:
    """Parse the network-device counters table keyed by interface name."""
    counters: dict[str, InterfaceCounters] = {}
    for line in text.splitlines():
        name, sep, rest = line.strip().partition(":")
        if not sep:
            # Header lines have no colon
            continue
        values = rest.split()
        if len(values) < 16:
            continue
        try:
            counters[name.strip()] = InterfaceCounters(*(int(v) for v in values[:16]))
        except ValueError:
            continue
    return counters


def decode_hex_endpoint(field: str) -> tuple[str, int]:
    """Decode an ``AAAAAAAA:PPPP`` socket-table endpoint.

    The address is a little-endian 32-bit integer; the port is big-endian.
    """
    address_hex, port_hex = field.split(":")
    if len(address_hex) != 8:
        raise ValueError(f"not an IPv4 endpoint: {field!r}")
    address = socket.inet_ntoa(struct.pack("<I", int(address_hex, 16)))
    return address, int(port_hex, 16)


def parse_tcp_line(line: str, protocol: str = "TCP") -> ConnectionRecord | None:
    """Parse one row of the TCP (or UDP) connection table."""
    fields = line.split()
    if len(fields) < 4 or not fields[0].endswith(":"):
        return None
    try:
        local_address, local_port = decode_hex_endpoint(fields[1])
        remote_address, remote_port = decode_hex_endpoint(fields[2])
        state = TcpState.from_code(int(fields[3], 16))
    except ValueError:
        return None
    return ConnectionRecord(
        protocol=protocol,
        local_address=local_address,
        local_port=local_port,
        remote_address=remote_address,
        remote_port=remote_port,
        state=state,
    )


def parse_socket_table(text: str, protocol: str = "TCP") -> list[ConnectionRecord]:
    records = []
    for line in text.splitlines():
        record = parse_tcp_line(line, protocol)
        if record is not None:
            records.append(record)
    return records


# ---------------------------------------------------------------------------
# Mounts
# ---------------------------------------------------------------------------


def parse_mounts(text: str) -> list[MountEntry]:
    entries = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 3:
            continue
        options = parts[3] if len(parts) > 3 else ""
        entries.append(MountEntry(parts[0], parts[1], parts[2], options))
    return entries


MountRule = tuple[Callable[[MountEntry], bool], bool]

# Evaluated in order, first match wins.
MOUNT_RULES: list[MountRule] = [
    (lambda entry: entry.fs_type in VIRTUAL_FS_TYPES, False),
    (lambda entry: not entry.device.startswith(REAL_DEVICE_PREFIX), False),
]


def is_real_mount(entry: MountEntry) -> bool:
    """Whether a mount-table entry is backed by a real block device."""
    for predicate, verdict in MOUNT_RULES:
        if predicate(entry):
            return verdict
    return True


# ---------------------------------------------------------------------------
# hwmon / thermal
# ---------------------------------------------------------------------------


def hwmon_attributes(sys_root: Path, pattern: str) -> list[Path]:
    """All hwmon attribute files matching ``pattern``, in stable order."""
    hwmon = sys_root / "class" / "hwmon"
    return sorted(hwmon.glob(f"hwmon*/{pattern}"))


def read_temperature(sys_root: Path) -> float | None:
    """CPU temperature in degrees Celsius, or None without a sensor.

    Thermal zones are preferred; hwmon ``temp*_input`` is the fallback.
    Both report millidegrees.
    """
    zones = sorted((sys_root / "class" / "thermal").glob("thermal_zone*/temp"))
    for path in zones + hwmon_attributes(sys_root, "temp*_input"):
        value = read_int(path)
        if value is not None:
            return value / 1000.0
    return None
