"""Rates and percentages derived from successive counter samples."""

import threading
from dataclasses import dataclass, replace

from hostwatch.models import (
    CpuAggregateSample,
    InterfaceCounters,
    InterfaceRate,
    ProcessRecord,
)


def cpu_utilization(
    previous: CpuAggregateSample | None, current: CpuAggregateSample
) -> float:
    """
    Busy share of CPU time between two aggregate samples, in percent.

    Returns 0.0 for the first sample and whenever the total did not grow
    (counter reset or clock skew), never a negative or infinite value.
    """
    if previous is None:
        return 0.0
    total_diff = current.total_time - previous.total_time
    if total_diff <= 0:
        return 0.0
    idle_diff = current.idle_time - previous.idle_time
    busy = (total_diff - idle_diff) * 100.0 / total_diff
    return min(100.0, max(0.0, busy))


def counter_rate(
    previous: int, current: int, elapsed_seconds: float
) -> float | None:
    """
    Per-second rate of a monotonically increasing counter.

    None means "no data this tick": a zero sample on either side (cold
    start), a zero-width interval, or a counter that went backwards.
    """
    if previous <= 0 or current <= 0 or elapsed_seconds <= 0:
        return None
    if current < previous:
        return None
    return (current - previous) / elapsed_seconds


@dataclass(slots=True)
class _InterfaceState:
    rx_bytes: int
    tx_bytes: int
    timestamp: float


class DeltaEstimator:
    """
    Owner of all cross-sample state.

    Keeps the previous aggregate CPU sample, per-pid CPU ticks and
    per-interface byte counters. Every update evicts entries for entities that
    were not observed in the current pass so the maps cannot grow without
    bound. All methods are safe to call from several threads.
    """

    def __init__(self) -> None:
        """Initialize empty delta state."""
        self._lock = threading.Lock()
        self._prev_cpu: CpuAggregateSample | None = None
        self._prev_proc_cpu: CpuAggregateSample | None = None
        self._proc_ticks: dict[int, int] = {}
        self._interfaces: dict[str, _InterfaceState] = {}

    def update_cpu(self, sample: CpuAggregateSample) -> float:
        """Record a new aggregate sample and return utilization since the last one."""
        with self._lock:
            if not sample.total_time:
                # Unreadable source, the next good sample becomes a new baseline
                self._prev_cpu = None
                return 0.0
            utilization = cpu_utilization(self._prev_cpu, sample)
            self._prev_cpu = sample
        return utilization

    def update_processes(
        self, records: list[ProcessRecord], cpu_sample: CpuAggregateSample
    ) -> list[ProcessRecord]:
        """
        Fill in ``cpu_usage`` for a fresh enumeration.

        Each process's tick delta is divided by the global CPU time delta over
        the same interval (summed over all cores, not normalized per core).
        A pid seen for the first time reports 0.0.

        Args:
            records: Records from the current enumeration pass.
            cpu_sample: Aggregate CPU sample taken alongside the enumeration.

        Returns:
            New records with ``cpu_usage`` set.
        """
        with self._lock:
            previous = self._prev_proc_cpu
            baseline: CpuAggregateSample | None = cpu_sample if cpu_sample.total_time else None
            total_diff = (
                cpu_sample.total_time - previous.total_time if previous and baseline else 0
            )

            updated = []
            current_ticks: dict[int, int] = {}
            for record in records:
                ticks = record.cpu_ticks
                current_ticks[record.pid] = ticks
                usage = 0.0
                prev_ticks = self._proc_ticks.get(record.pid)
                if prev_ticks is not None and total_diff > 0 and ticks >= prev_ticks:
                    usage = (ticks - prev_ticks) * 100.0 / total_diff
                updated.append(replace(record, cpu_usage=usage))

            # Replacing the map evicts pids that were not seen this pass
            self._proc_ticks = current_ticks
            self._prev_proc_cpu = baseline
        return updated

    def update_interfaces(
        self, counters: dict[str, InterfaceCounters], now: float
    ) -> dict[str, InterfaceRate]:
        """
        Compute byte/second throughput for every interface in ``counters``.

        Args:
            counters: Current counters keyed by interface name.
            now: Monotonic timestamp of the sample, in seconds.

        Returns:
            Rates keyed by interface name; a direction with no data is None.
        """
        rates: dict[str, InterfaceRate] = {}
        with self._lock:
            current: dict[str, _InterfaceState] = {}
            for name, sample in counters.items():
                prev = self._interfaces.get(name)
                if prev is None:
                    rates[name] = InterfaceRate()
                else:
                    elapsed = now - prev.timestamp
                    rates[name] = InterfaceRate(
                        rx_bytes_per_sec=counter_rate(prev.rx_bytes, sample.rx_bytes, elapsed),
                        tx_bytes_per_sec=counter_rate(prev.tx_bytes, sample.tx_bytes, elapsed),
                    )
                current[name] = _InterfaceState(sample.rx_bytes, sample.tx_bytes, now)
            self._interfaces = current
        return rates

    def tracked_pids(self) -> set[int]:
        """Pids with retained CPU tick state."""
        with self._lock:
            return set(self._proc_ticks)

    def tracked_interfaces(self) -> set[str]:
        """Interface names with retained byte counters."""
        with self._lock:
            return set(self._interfaces)

    def reset(self) -> None:
        """Drop all retained state; the next samples become baselines."""
        with self._lock:
            self._prev_cpu = None
            self._prev_proc_cpu = None
            self._proc_ticks.clear()
            self._interfaces.clear()
