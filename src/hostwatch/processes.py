"""Process enumeration, hierarchy and process actions."""

import logging
from collections.abc import Iterator
from pathlib import Path

import psutil

from hostwatch.models import ProcessRecord, ProcessState, StateCategory
from hostwatch.readers import (
    parse_process_stat,
    parse_vm_rss,
    read_process_name,
    read_text,
)

logger = logging.getLogger(__name__)

# Parent links are re-read every pass, so a walk can meet a table that changed
# underneath it; this bounds recursion even if a cycle slips through.
MAX_TREE_DEPTH = 64

NICE_MIN = -20
NICE_MAX = 19


def list_pids(proc_root: Path) -> list[int]:
    """Numeric entries under the process root, ascending."""
    try:
        names = [entry.name for entry in proc_root.iterdir()]
    except OSError:
        logger.debug("Process root unavailable: %s", proc_root)
        return []
    return sorted(int(name) for name in names if name.isdigit())


def read_process(proc_root: Path, pid: int, total_ram: int = 0) -> ProcessRecord | None:
    """
    Assemble one ProcessRecord from the pid's stat and status sources.

    Returns None when the process exited between listing and reading, or when
    its stat line is malformed.
    """
    pid_dir = proc_root / str(pid)
    stat = read_text(pid_dir / "stat")
    if not stat:
        return None
    record = parse_process_stat(stat.strip())
    if record is None:
        logger.debug("Malformed stat line for pid %d", pid)
        return None

    name = read_process_name(proc_root, pid) or record.name
    if not name:
        return None

    status = read_text(pid_dir / "status")
    rss = parse_vm_rss(status) if status else 0
    memory_usage = rss * 100.0 / total_ram if total_ram > 0 else 0.0

    return ProcessRecord(
        pid=pid,
        name=name,
        state=record.state,
        ppid=record.ppid,
        priority=record.priority,
        nice=record.nice,
        utime=record.utime,
        stime=record.stime,
        vsize=record.vsize,
        rss=rss,
        memory_usage=memory_usage,
    )


def enumerate_processes(proc_root: Path, total_ram: int = 0) -> list[ProcessRecord]:
    """All live processes, silently skipping those that vanish mid-scan."""
    records = []
    for pid in list_pids(proc_root):
        record = read_process(proc_root, pid, total_ram)
        if record is not None:
            records.append(record)
    return records


def classify_state(code: str) -> StateCategory:
    """Map a state character to exactly one of the four count buckets."""
    return ProcessState.from_code(code).category


def count_states(records: list[ProcessRecord]) -> dict[str, int]:
    """Process counts by bucket; the values sum to ``len(records)``."""
    counts = {category.value: 0 for category in StateCategory}
    for record in records:
        counts[classify_state(record.state).value] += 1
    return counts


def build_tree(records: list[ProcessRecord]) -> dict[int, list[int]]:
    """Parent pid -> child pids (ascending) for the given record set."""
    tree: dict[int, list[int]] = {}
    for record in sorted(records, key=lambda r: r.pid):
        if record.ppid > 0:
            tree.setdefault(record.ppid, []).append(record.pid)
    return tree


def root_pids(records: list[ProcessRecord]) -> list[int]:
    """
    Pids the tree walk starts from.

    These are processes whose parent is pid 1 or the kernel, plus processes
    whose parent was not captured in this pass.
    """
    known = {record.pid for record in records}
    return sorted(
        record.pid for record in records if record.ppid <= 1 or record.ppid not in known
    )


def walk_tree(records: list[ProcessRecord]) -> Iterator[tuple[int, ProcessRecord]]:
    """
    Depth-first ``(depth, record)`` pairs starting from the root processes.

    Every record is yielded exactly once. Records unreachable from a root
    (parent-link cycles, chains past MAX_TREE_DEPTH) follow at depth 0.
    """
    by_pid = {record.pid: record for record in records}
    tree = build_tree(records)
    visited: set[int] = set()

    def visit(pid: int, depth: int) -> Iterator[tuple[int, ProcessRecord]]:
        if pid in visited or depth > MAX_TREE_DEPTH:
            return
        visited.add(pid)
        yield depth, by_pid[pid]
        for child in tree.get(pid, []):
            if child in by_pid:
                yield from visit(child, depth + 1)

    for pid in root_pids(records):
        yield from visit(pid, 0)

    # Cycles and chains deeper than MAX_TREE_DEPTH are listed flat at the end
    for pid in sorted(by_pid):
        if pid not in visited:
            yield from visit(pid, 0)


def children_of(records: list[ProcessRecord], pid: int) -> list[ProcessRecord]:
    """Direct children of ``pid`` within the record set."""
    by_pid = {record.pid: record for record in records}
    return [by_pid[child] for child in build_tree(records).get(pid, []) if child in by_pid]


def get_priority(proc_root: Path, pid: int) -> int:
    """Current nice value of ``pid``, 0 when it cannot be read."""
    stat = read_text(proc_root / str(pid) / "stat")
    record = parse_process_stat(stat.strip()) if stat else None
    return record.nice if record else 0


def kill_process(pid: int) -> bool:
    """Send SIGTERM to ``pid``. Returns False on failure."""
    if pid <= 0:
        return False
    try:
        psutil.Process(pid).terminate()
    except (psutil.NoSuchProcess, psutil.AccessDenied, OSError) as exc:
        logger.info("Could not terminate pid %d: %s", pid, exc)
        return False
    return True


def set_priority(pid: int, nice: int) -> bool:
    """Set the nice value of ``pid``, clamped to [-20, 19]. Returns False on failure."""
    if pid <= 0:
        return False
    nice = max(NICE_MIN, min(nice, NICE_MAX))
    try:
        psutil.Process(pid).nice(nice)
    except (psutil.NoSuchProcess, psutil.AccessDenied, OSError) as exc:
        logger.info("Could not set priority of pid %d to %d: %s", pid, nice, exc)
        return False
    return True
