"""Per-process CPU and memory threshold alerts."""

import logging
import threading
from dataclasses import replace

from hostwatch.models import ProcessAlert, ProcessRecord

logger = logging.getLogger(__name__)


class AlertBook:
    """
    Thread-safe list of process alerts.

    The scheduler thread evaluates alerts against each process pass while the
    presentation layer adds, removes and reads them.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._alerts: dict[int, ProcessAlert] = {}

    def add(self, pid: int, name: str, cpu_threshold: float, memory_threshold: float) -> ProcessAlert:
        """Watch ``pid``; an existing alert for the pid gets the new thresholds."""
        with self._lock:
            existing = self._alerts.get(pid)
            if existing is not None:
                alert = replace(
                    existing, cpu_threshold=cpu_threshold, memory_threshold=memory_threshold
                )
            else:
                alert = ProcessAlert(pid, name, cpu_threshold, memory_threshold)
            self._alerts[pid] = alert
        return alert

    def remove(self, pid: int) -> bool:
        with self._lock:
            return self._alerts.pop(pid, None) is not None

    def evaluate(self, records: list[ProcessRecord]) -> list[ProcessAlert]:
        """
        Update active flags from the latest process pass.

        Alerts whose pid is no longer present are deactivated but kept.

        Returns:
            The alerts that are active after this pass.
        """
        by_pid = {record.pid: record for record in records}
        with self._lock:
            for pid, alert in self._alerts.items():
                record = by_pid.get(pid)
                if record is None:
                    updated = replace(alert, cpu_alert_active=False, memory_alert_active=False)
                else:
                    updated = replace(
                        alert,
                        cpu_alert_active=record.cpu_usage > alert.cpu_threshold,
                        memory_alert_active=record.memory_usage > alert.memory_threshold,
                    )
                if updated.is_active and not alert.is_active:
                    logger.info(
                        "Alert raised for %s (pid %d): cpu=%.1f%% mem=%.1f%%",
                        alert.name,
                        pid,
                        record.cpu_usage if record else 0.0,
                        record.memory_usage if record else 0.0,
                    )
                self._alerts[pid] = updated
            return [alert for alert in self._alerts.values() if alert.is_active]

    def alerts(self) -> list[ProcessAlert]:
        with self._lock:
            return list(self._alerts.values())

    def active(self) -> list[ProcessAlert]:
        with self._lock:
            return [alert for alert in self._alerts.values() if alert.is_active]

    def __len__(self) -> int:
        with self._lock:
            return len(self._alerts)
