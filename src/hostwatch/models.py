"""Data models for hostwatch."""

from dataclasses import dataclass
from enum import Enum


class StateCategory(Enum):
    """Coarse process state buckets used for process counts."""

    RUNNING = "running"
    SLEEPING = "sleeping"
    STOPPED = "stopped"
    ZOMBIE = "zombie"


class ProcessState(Enum):
    """Single-character process state codes from the kernel stat line."""

    RUNNING = "R"
    SLEEPING = "S"
    DISK_SLEEP = "D"
    IDLE = "I"
    STOPPED = "T"
    TRACING = "t"
    ZOMBIE = "Z"
    DEAD = "X"
    UNKNOWN = "?"

    @classmethod
    def from_code(cls, code: str) -> "ProcessState":
        """Map a state character to a member; unseen codes become UNKNOWN."""
        for member in cls:
            if member.value == code:
                return member
        return cls.UNKNOWN

    @property
    def label(self) -> str:
        """Human-readable state name."""
        return _STATE_LABELS[self]

    @property
    def category(self) -> StateCategory:
        """Bucket this state falls into for process counts."""
        return _STATE_CATEGORIES.get(self, StateCategory.SLEEPING)


_STATE_LABELS = {
    ProcessState.RUNNING: "Running",
    ProcessState.SLEEPING: "Sleeping",
    ProcessState.DISK_SLEEP: "Disk Sleep",
    ProcessState.IDLE: "Idle",
    ProcessState.STOPPED: "Stopped",
    ProcessState.TRACING: "Tracing",
    ProcessState.ZOMBIE: "Zombie",
    ProcessState.DEAD: "Dead",
    ProcessState.UNKNOWN: "Unknown",
}

# Anything missing here (D, I, UNKNOWN) folds into SLEEPING.
_STATE_CATEGORIES = {
    ProcessState.RUNNING: StateCategory.RUNNING,
    ProcessState.SLEEPING: StateCategory.SLEEPING,
    ProcessState.STOPPED: StateCategory.STOPPED,
    ProcessState.TRACING: StateCategory.STOPPED,
    ProcessState.ZOMBIE: StateCategory.ZOMBIE,
    ProcessState.DEAD: StateCategory.ZOMBIE,
}


class TcpState(Enum):
    """TCP connection states in kernel order (1-based in /proc/net/tcp)."""

    ESTABLISHED = 1
    SYN_SENT = 2
    SYN_RECV = 3
    FIN_WAIT1 = 4
    FIN_WAIT2 = 5
    TIME_WAIT = 6
    CLOSE = 7
    CLOSE_WAIT = 8
    LAST_ACK = 9
    LISTEN = 10
    CLOSING = 11
    UNKNOWN = 0

    @classmethod
    def from_code(cls, code: int) -> "TcpState":
        """Map a numeric state to a member; out-of-range codes become UNKNOWN."""
        if 1 <= code <= 11:
            return cls(code)
        return cls.UNKNOWN


class InterfaceType(Enum):
    """Network interface classification."""

    ETHERNET = "Ethernet"
    WIRELESS = "Wireless"
    LOOPBACK = "Loopback"
    VPN = "VPN"
    BRIDGE = "Bridge"
    DOCKER = "Docker"
    UNKNOWN = "Unknown"


class Provenance(Enum):
    """Where a sensor value came from."""

    MEASURED = "measured"
    ESTIMATED = "estimated"
    DEFAULT = "default"


@dataclass(slots=True, frozen=True)
class CpuAggregateSample:
    """Cumulative CPU jiffies since boot, summed over all cores."""

    user: int = 0
    nice: int = 0
    system: int = 0
    idle: int = 0
    iowait: int = 0
    irq: int = 0
    softirq: int = 0
    steal: int = 0
    guest: int = 0
    guest_nice: int = 0

    @property
    def idle_time(self) -> int:
        return self.idle + self.iowait

    @property
    def total_time(self) -> int:
        # guest and guest_nice are already accounted inside user and nice
        return (
            self.user
            + self.nice
            + self.system
            + self.idle
            + self.iowait
            + self.irq
            + self.softirq
            + self.steal
        )


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable snapshot of a process, built fresh on every enumeration."""

    pid: int
    name: str
    state: str  # 'R', 'S', 'Z', 'D', etc.
    ppid: int = 0
    priority: int = 0
    nice: int = 0
    utime: int = 0
    stime: int = 0
    vsize: int = 0  # Bytes
    rss: int = 0  # Bytes
    cpu_usage: float = 0.0
    memory_usage: float = 0.0

    @property
    def cpu_ticks(self) -> int:
        return self.utime + self.stime

    @property
    def state_kind(self) -> ProcessState:
        return ProcessState.from_code(self.state)


@dataclass(slots=True, frozen=True)
class InterfaceCounters:
    """One row of the network-device counters table."""

    rx_bytes: int = 0
    rx_packets: int = 0
    rx_errs: int = 0
    rx_drop: int = 0
    rx_fifo: int = 0
    rx_frame: int = 0
    rx_compressed: int = 0
    rx_multicast: int = 0
    tx_bytes: int = 0
    tx_packets: int = 0
    tx_errs: int = 0
    tx_drop: int = 0
    tx_fifo: int = 0
    tx_colls: int = 0
    tx_carrier: int = 0
    tx_compressed: int = 0


@dataclass(slots=True, frozen=True)
class InterfaceRate:
    """Throughput in bytes/second; None when there is no rate this tick."""

    rx_bytes_per_sec: float | None = None
    tx_bytes_per_sec: float | None = None


@dataclass(slots=True, frozen=True)
class NetworkInterfaceRecord:
    """An IPv4-bearing network interface."""

    name: str
    type: InterfaceType
    is_up: bool
    ipv4_address: str
    mac_address: str


@dataclass(slots=True, frozen=True)
class MountEntry:
    """One line of the mount table."""

    device: str
    mount_point: str
    fs_type: str
    options: str = ""


@dataclass(slots=True, frozen=True)
class DiskRecord:
    """Usage of one backing device."""

    mount_point: str
    device: str
    fs_type: str
    total: int  # Bytes
    free: int
    used: int

    @property
    def usage_percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.used * 100.0 / self.total


@dataclass(slots=True, frozen=True)
class ConnectionRecord:
    """A socket from the TCP connection table."""

    protocol: str
    local_address: str
    local_port: int
    remote_address: str
    remote_port: int
    state: TcpState

    @property
    def local(self) -> str:
        return f"{self.local_address}:{self.local_port}"

    @property
    def remote(self) -> str:
        return f"{self.remote_address}:{self.remote_port}"


@dataclass(slots=True, frozen=True)
class PortRecord:
    """A locally bound port."""

    port: int
    protocol: str
    state: str


@dataclass(slots=True, frozen=True)
class MemoryInfo:
    """RAM and swap usage in bytes."""

    total_ram: int = 0
    free_ram: int = 0
    used_ram: int = 0
    total_swap: int = 0
    free_swap: int = 0
    used_swap: int = 0

    @property
    def memory_percent(self) -> float:
        if self.total_ram <= 0:
            return 0.0
        return self.used_ram * 100.0 / self.total_ram

    @property
    def swap_percent(self) -> float:
        if self.total_swap <= 0:
            return 0.0
        return self.used_swap * 100.0 / self.total_swap


@dataclass(slots=True, frozen=True)
class FanReading:
    """A fan value tagged with its provenance."""

    value: int
    source: Provenance

    @property
    def is_estimate(self) -> bool:
        return self.source is not Provenance.MEASURED


@dataclass(slots=True, frozen=True)
class FanInfo:
    """Fan status, speed (RPM) and PWM level (0-255)."""

    status: FanReading  # value is 1 for active, 0 for inactive
    speed: FanReading
    level: FanReading

    @property
    def active(self) -> bool:
        return bool(self.status.value)


@dataclass(slots=True, frozen=True)
class ProcessAlert:
    """CPU/memory thresholds watched for a single pid."""

    pid: int
    name: str
    cpu_threshold: float
    memory_threshold: float
    cpu_alert_active: bool = False
    memory_alert_active: bool = False

    @property
    def is_active(self) -> bool:
        return self.cpu_alert_active or self.memory_alert_active


@dataclass(slots=True, frozen=True)
class SystemInfo:
    """Static facts about the host."""

    os_name: str
    username: str
    hostname: str
    cpu_model: str
    cpu_cores: int
