"""Shared fixtures: miniature procfs and sysfs trees under tmp_path."""

from pathlib import Path

import pytest

CPU_LINE = "cpu  100 0 50 800 50 0 0 0 0 0"

MEMINFO = """\
MemTotal:        8000000 kB
MemFree:         2000000 kB
MemAvailable:    5000000 kB
Buffers:          500000 kB
Cached:          1500000 kB
SwapTotal:       2000000 kB
SwapFree:        1500000 kB
"""

NET_DEV = """\
Inter-|   Receive                                                |  Transmit
 face |bytes    packets errs drop fifo frame compressed multicast|bytes    packets errs drop fifo colls carrier compressed
    lo:    5000      50    0    0    0     0          0         0     5000      50    0    0    0     0       0          0
  eth0: 1000000    800    1    2    0     0          0         3   200000     400    0    0    0     0       0          0
"""

TCP_TABLE = """\
  sl  local_address rem_address   st tx_queue rx_queue tr tm->when retrnsmt   uid  timeout inode
   0: 0100007F:0035 00000000:0000 0A 00000000:00000000 00:00000000 00000000   101        0 20001 1 0 100 0 0 10 0
   1: 00000000:0016 00000000:0000 0A 00000000:00000000 00:00000000 00000000     0        0 20002 1 0 100 0 0 10 0
   2: 0F02000A:0016 0202000A:C350 01 00000000:00000000 02:000A7D2A 00000000     0        0 20003 4 0 20 4 30 10 -1
   3: 0F02000A:9C40 0202000A:01BB 06 00000000:00000000 03:00001524 00000000     0        0 0 3 0
"""

UDP_TABLE = """\
  sl  local_address rem_address   st tx_queue rx_queue tr tm->when retrnsmt   uid  timeout inode ref pointer drops
  100: 00000000:0044 00000000:0000 07 00000000:00000000 00:00000000 00000000     0        0 30001 2 0 0
  101: 0100007F:0035 00000000:0000 07 00000000:00000000 00:00000000 00000000   101        0 30002 2 0 0
"""

MOUNTS = """\
/dev/sda1 / ext4 rw,relatime 0 0
proc /proc proc rw,nosuid 0 0
tmpfs /run tmpfs rw,nosuid 0 0
/dev/sda1 /mnt/bind ext4 rw,relatime 0 0
/dev/sdb1 /data xfs rw,relatime 0 0
"""


def stat_line(
    pid: int,
    name: str,
    state: str = "S",
    ppid: int = 1,
    utime: int = 0,
    stime: int = 0,
    priority: int = 20,
    nice: int = 0,
    vsize: int = 4096000,
) -> str:
    """Build a /proc/<pid>/stat line with realistic filler fields."""
    fields = [
        state, ppid, pid, pid, 0, -1, 4194304, 100, 0, 0, 0,
        utime, stime, 0, 0, priority, nice, 1, 0, 100, vsize, 200,
    ]
    return f"{pid} ({name}) " + " ".join(str(f) for f in fields)


def write_process(
    proc_root: Path,
    pid: int,
    name: str,
    state: str = "S",
    ppid: int = 1,
    utime: int = 0,
    stime: int = 0,
    rss_kb: int | None = 1024,
    nice: int = 0,
) -> Path:
    """Create /proc/<pid>/{stat,status,comm}."""
    pid_dir = proc_root / str(pid)
    pid_dir.mkdir(parents=True, exist_ok=True)
    (pid_dir / "stat").write_text(
        stat_line(pid, name, state, ppid, utime, stime, nice=nice) + "\n"
    )
    status = f"Name:\t{name}\nState:\t{state}\n"
    if rss_kb is not None:
        status += f"VmRSS:\t    {rss_kb} kB\n"
    (pid_dir / "status").write_text(status)
    (pid_dir / "comm").write_text(name + "\n")
    return pid_dir


@pytest.fixture
def proc_root(tmp_path: Path) -> Path:
    """A procfs tree with global sources but no processes."""
    root = tmp_path / "proc"
    (root / "net").mkdir(parents=True)
    (root / "stat").write_text(CPU_LINE + "\ncpu0 50 0 25 400 25 0 0 0 0 0\n")
    (root / "uptime").write_text("12345.67 40000.00\n")
    (root / "loadavg").write_text("0.50 0.75 1.00 2/300 4242\n")
    (root / "meminfo").write_text(MEMINFO)
    (root / "cpuinfo").write_text("processor\t: 0\nmodel name\t: Test CPU @ 3.00GHz\n")
    (root / "mounts").write_text(MOUNTS)
    (root / "net" / "dev").write_text(NET_DEV)
    (root / "net" / "tcp").write_text(TCP_TABLE)
    (root / "net" / "udp").write_text(UDP_TABLE)
    return root


@pytest.fixture
def process_tree(proc_root: Path) -> Path:
    """proc_root populated with a small process hierarchy."""
    write_process(proc_root, 1, "systemd", ppid=0, utime=100, stime=50)
    write_process(proc_root, 2, "kthreadd", ppid=0, rss_kb=None)
    write_process(proc_root, 100, "bash", ppid=1, utime=10, stime=5)
    write_process(proc_root, 101, "python", state="R", ppid=100, utime=300, stime=20)
    write_process(proc_root, 102, "defunct", state="Z", ppid=100, rss_kb=None)
    write_process(proc_root, 300, "kworker/0:1", state="I", ppid=2, rss_kb=None)
    (proc_root / "self").mkdir()
    # Listed but exited before it could be read
    (proc_root / "999").mkdir()
    return proc_root


@pytest.fixture
def sys_root(tmp_path: Path) -> Path:
    """An empty sysfs tree: no hwmon, no thermal zones, no interfaces."""
    root = tmp_path / "sys"
    (root / "class" / "hwmon").mkdir(parents=True)
    (root / "class" / "thermal").mkdir(parents=True)
    (root / "class" / "net").mkdir(parents=True)
    return root


def write_attr(path: Path, value: object) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"{value}\n")
    return path
