"""Sampling scheduler for hostwatch."""

import getpass
import logging
import platform
import socket
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from pathlib import Path
from queue import Queue

import psutil

from hostwatch.alerts import AlertBook
from hostwatch.config import MIN_INTERVAL, SamplerConfig
from hostwatch.estimator import DeltaEstimator
from hostwatch.fans import fan_info
from hostwatch.models import (
    ConnectionRecord,
    DiskRecord,
    FanInfo,
    InterfaceCounters,
    InterfaceRate,
    InterfaceType,
    MemoryInfo,
    NetworkInterfaceRecord,
    PortRecord,
    ProcessAlert,
    ProcessRecord,
    SystemInfo,
)
from hostwatch.processes import count_states, enumerate_processes
from hostwatch.readers import (
    read_cpu_model,
    read_cpu_sample,
    read_loadavg,
    read_temperature,
    read_uptime,
)
from hostwatch.resources import (
    classify_interface_name,
    list_connections,
    list_disks,
    list_interfaces,
    list_listening_ports,
    read_interface_counters,
    read_memory,
)

logger = logging.getLogger(__name__)

# Domain -> SamplerConfig cadence field, in the order sampled within one pass.
DOMAIN_INTERVALS = {
    "cpu": "cpu_interval",
    "processes": "process_interval",
    "disks": "disk_interval",
    "interfaces": "interface_interval",
    "connections": "connection_interval",
    "ports": "port_interval",
}
DOMAINS = tuple(DOMAIN_INTERVALS)

HISTORIES = ("cpu", "temperature", "fan_speed", "rx_kbps", "tx_kbps")


@dataclass(slots=True)
class HostSnapshot:
    """Latest value of every sampled domain."""

    timestamp: float = 0.0
    cpu_percent: float = 0.0
    uptime_seconds: float = 0.0
    load_avg: tuple[float, float, float] = (0.0, 0.0, 0.0)
    memory: MemoryInfo = field(default_factory=MemoryInfo)
    temperature: float | None = None
    fan: FanInfo | None = None
    processes: list[ProcessRecord] = field(default_factory=list)
    process_counts: dict[str, int] = field(default_factory=dict)
    disks: list[DiskRecord] = field(default_factory=list)
    interfaces: list[NetworkInterfaceRecord] = field(default_factory=list)
    interface_counters: dict[str, InterfaceCounters] = field(default_factory=dict)
    interface_rates: dict[str, InterfaceRate] = field(default_factory=dict)
    connections: list[ConnectionRecord] = field(default_factory=list)
    ports: list[PortRecord] = field(default_factory=list)
    alerts: list[ProcessAlert] = field(default_factory=list)


class SampleHistory:
    """Fixed-size ring of recent values for graphing; can be paused."""

    def __init__(self, maxlen: int = 100) -> None:
        self._values: deque[float] = deque(maxlen=maxlen)
        self.paused = False

    def append(self, value: float) -> None:
        if not self.paused:
            self._values.append(value)

    def values(self) -> list[float]:
        return list(self._values)

    @property
    def latest(self) -> float:
        return self._values[-1] if self._values else 0.0

    def __len__(self) -> int:
        return len(self._values)


def system_info(proc_root: Path = Path("/proc")) -> SystemInfo:
    """Static host facts: OS, user, hostname and CPU."""
    try:
        username = getpass.getuser()
    except (KeyError, OSError):
        username = "unknown"
    return SystemInfo(
        os_name=platform.system() or "Other",
        username=username,
        hostname=socket.gethostname(),
        cpu_model=read_cpu_model(proc_root) or platform.processor(),
        cpu_cores=psutil.cpu_count() or 1,
    )


class SampleScheduler:
    """
    Drives every sampling domain at its own cadence.

    Runs a single daemon thread that keeps a "due" timestamp per domain,
    samples whatever is due, and pushes a HostSnapshot to a thread-safe Queue.
    A domain that fails keeps its previous value for that tick; the loop never
    stops on a read error.
    """

    def __init__(
        self,
        update_queue: Queue[HostSnapshot],
        config: SamplerConfig | None = None,
        estimator: DeltaEstimator | None = None,
        alerts: AlertBook | None = None,
    ) -> None:
        """
        Initialize the SampleScheduler.

        Args:
            update_queue: Thread-safe queue to push snapshots to.
            config: Source roots and cadences. Defaults to SamplerConfig().
            estimator: Delta state owner; a fresh one is created if omitted.
            alerts: Process alerts evaluated on every process pass.
        """
        self._queue = update_queue
        self._config = config or SamplerConfig()
        self._estimator = estimator or DeltaEstimator()
        self._alerts = alerts or AlertBook()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._state = HostSnapshot()
        self._due: dict[str, float] = dict.fromkeys(DOMAINS, 0.0)
        self._selected_interface: str | None = None
        self._histories = {
            name: SampleHistory(self._config.history_size) for name in HISTORIES
        }
        self._collectors: dict[str, Callable[[float], None]] = {
            "cpu": self._sample_cpu,
            "processes": self._sample_processes,
            "disks": self._sample_disks,
            "interfaces": self._sample_interfaces,
            "connections": self._sample_connections,
            "ports": self._sample_ports,
        }

    @property
    def config(self) -> SamplerConfig:
        return self._config

    @property
    def estimator(self) -> DeltaEstimator:
        return self._estimator

    @property
    def alerts(self) -> AlertBook:
        return self._alerts

    @property
    def poll_rate(self) -> float:
        """Get the fast-domain (CPU, thermal, fan, traffic) interval."""
        return self._config.cpu_interval

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the fast-domain interval."""
        self._config.cpu_interval = max(MIN_INTERVAL, value)

    @property
    def is_running(self) -> bool:
        """Check if the sampler thread is running."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def selected_interface(self) -> str | None:
        """Interface whose throughput feeds the rx/tx histories."""
        return self._selected_interface

    @selected_interface.setter
    def selected_interface(self, name: str | None) -> None:
        with self._lock:
            if name != self._selected_interface:
                self._histories["rx_kbps"] = SampleHistory(self._config.history_size)
                self._histories["tx_kbps"] = SampleHistory(self._config.history_size)
            self._selected_interface = name

    def interval(self, domain: str) -> float:
        return getattr(self._config, DOMAIN_INTERVALS[domain])

    def history(self, name: str) -> SampleHistory:
        return self._histories[name]

    def get_cpu_history(self) -> list[float]:
        """Get the CPU usage history for graph rendering."""
        return self._histories["cpu"].values()

    def start(self) -> None:
        """Start the sampler thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="SampleScheduler",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the sampler thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def refresh(self, domain: str) -> None:
        """Make ``domain`` due on the next pass."""
        if domain not in self._due:
            raise KeyError(f"unknown domain: {domain}")
        with self._lock:
            self._due[domain] = 0.0

    def snapshot(self) -> HostSnapshot:
        """Copy of the latest state."""
        with self._lock:
            return replace(self._state)

    def run_due(self, now: float | None = None) -> list[str]:
        """
        Sample every domain whose due time has passed.

        Returns:
            The domains sampled in this pass.
        """
        now = time.monotonic() if now is None else now
        with self._lock:
            due = [domain for domain in DOMAINS if self._due[domain] <= now]

        for domain in due:
            try:
                self._collectors[domain](now)
            except Exception:
                logger.exception("Sampling domain %r failed", domain)
            with self._lock:
                self._due[domain] = now + self.interval(domain)
        return due

    def _seconds_until_due(self, now: float) -> float:
        with self._lock:
            next_due = min(self._due.values())
        return max(0.0, next_due - now)

    def _poll_loop(self) -> None:
        """Main sampling loop running in the background thread."""
        while not self._stop_event.is_set():
            if self.run_due():
                self._queue.put(self.snapshot())

            # Wait until the next domain is due or until stop is requested
            self._stop_event.wait(timeout=self._seconds_until_due(time.monotonic()))

    def _update(self, **changes: object) -> None:
        with self._lock:
            for name, value in changes.items():
                setattr(self._state, name, value)
            self._state.timestamp = time.time()

    def _sample_cpu(self, now: float) -> None:
        proc_root = self._config.proc_root
        sys_root = self._config.sys_root

        cpu_percent = self._estimator.update_cpu(read_cpu_sample(proc_root))
        temperature = read_temperature(sys_root)
        fan = fan_info(sys_root, temperature)

        counters = read_interface_counters(proc_root)
        rates = self._estimator.update_interfaces(counters, now)

        self._histories["cpu"].append(cpu_percent)
        if temperature is not None:
            self._histories["temperature"].append(temperature)
        self._histories["fan_speed"].append(float(fan.speed.value))
        self._record_traffic(counters, rates)

        self._update(
            cpu_percent=cpu_percent,
            uptime_seconds=read_uptime(proc_root),
            load_avg=read_loadavg(proc_root),
            memory=read_memory(proc_root),
            temperature=temperature,
            fan=fan,
            interface_counters=counters,
            interface_rates=rates,
        )

    def _record_traffic(
        self, counters: dict[str, InterfaceCounters], rates: dict[str, InterfaceRate]
    ) -> None:
        # An empty read keeps the current selection and its history
        if counters and self._selected_interface not in counters:
            names = list(counters)
            non_loopback = [
                name
                for name in names
                if classify_interface_name(name) is not InterfaceType.LOOPBACK
            ]
            candidates = non_loopback or names
            self.selected_interface = candidates[0] if candidates else None

        rate = rates.get(self._selected_interface or "")
        if rate is None:
            return
        self._histories["rx_kbps"].append((rate.rx_bytes_per_sec or 0.0) / 1024)
        self._histories["tx_kbps"].append((rate.tx_bytes_per_sec or 0.0) / 1024)

    def _sample_processes(self, now: float) -> None:
        proc_root = self._config.proc_root
        with self._lock:
            total_ram = self._state.memory.total_ram
        if total_ram <= 0:
            total_ram = read_memory(proc_root).total_ram

        records = enumerate_processes(proc_root, total_ram)
        records = self._estimator.update_processes(records, read_cpu_sample(proc_root))
        self._alerts.evaluate(records)

        self._update(
            processes=records,
            process_counts=count_states(records),
            alerts=self._alerts.alerts(),
        )

    def _sample_disks(self, now: float) -> None:
        self._update(disks=list_disks(self._config.proc_root))

    def _sample_interfaces(self, now: float) -> None:
        self._update(interfaces=list_interfaces(self._config.sys_root))

    def _sample_connections(self, now: float) -> None:
        self._update(connections=list_connections(self._config.proc_root))

    def _sample_ports(self, now: float) -> None:
        self._update(ports=list_listening_ports(self._config.proc_root))
