"""Tests for process threshold alerts."""

import logging

from hostwatch.alerts import AlertBook
from hostwatch.models import ProcessRecord


def proc(pid: int, cpu: float = 0.0, mem: float = 0.0) -> ProcessRecord:
    return ProcessRecord(pid=pid, name=f"p{pid}", state="R", cpu_usage=cpu, memory_usage=mem)


def test_add_and_remove():
    """Test alerts can be added, updated and removed."""
    book = AlertBook()
    book.add(10, "nginx", 50.0, 20.0)
    updated = book.add(10, "nginx", 75.0, 30.0)

    assert len(book) == 1
    assert updated.cpu_threshold == 75.0
    assert book.remove(10) is True
    assert book.remove(10) is False
    assert len(book) == 0


def test_thresholds_are_exclusive():
    """Test a value equal to the threshold does not trigger."""
    book = AlertBook()
    book.add(10, "nginx", 50.0, 20.0)
    assert book.evaluate([proc(10, cpu=50.0, mem=20.0)]) == []

    active = book.evaluate([proc(10, cpu=50.1, mem=5.0)])
    assert len(active) == 1
    assert active[0].cpu_alert_active
    assert not active[0].memory_alert_active


def test_alert_clears():
    """Test flags follow the latest pass."""
    book = AlertBook()
    book.add(10, "nginx", 50.0, 20.0)
    book.evaluate([proc(10, mem=90.0)])
    assert [a.pid for a in book.active()] == [10]

    book.evaluate([proc(10, mem=1.0)])
    assert book.active() == []


def test_exited_process_deactivates():
    """Test an alert for a vanished pid is kept but inactive."""
    book = AlertBook()
    book.add(10, "nginx", 50.0, 20.0)
    book.evaluate([proc(10, cpu=99.0)])

    assert book.evaluate([proc(11, cpu=99.0)]) == []
    assert [a.pid for a in book.alerts()] == [10]


def test_raise_is_logged_once(caplog):
    """Test only the transition to active is logged."""
    book = AlertBook()
    book.add(10, "nginx", 50.0, 20.0)
    with caplog.at_level(logging.INFO, logger="hostwatch.alerts"):
        book.evaluate([proc(10, cpu=99.0)])
        book.evaluate([proc(10, cpu=98.0)])

    raised = [r for r in caplog.records if "Alert raised" in r.getMessage()]
    assert len(raised) == 1
    assert "nginx" in raised[0].getMessage()
