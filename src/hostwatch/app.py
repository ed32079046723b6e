"""hostwatch - Textual front end for the sampler."""

import logging
from enum import Enum
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.css.query import NoMatches
from textual.widgets import DataTable, Footer, Static
from textual.widgets.data_table import CellDoesNotExist

from hostwatch.config import SamplerConfig
from hostwatch.models import InterfaceRate, NetworkInterfaceRecord, ProcessRecord
from hostwatch.monitor import HostSnapshot, SampleScheduler, system_info
from hostwatch.processes import kill_process, walk_tree


class SortKey(Enum):
    """Sort keys for the process table."""

    CPU = "cpu"
    MEM = "mem"
    PID = "pid"
    NAME = "name"


def format_bytes(size: float) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size < 1024:
            return f"{size:.2f} {unit}" if unit != "B" else f"{int(size)} {unit}"
        size = size / 1024
    return f"{size:.2f} PB"


def format_rate(bytes_per_sec: float | None) -> str:
    """Format a throughput value; a missing rate renders as a dash."""
    if bytes_per_sec is None:
        return "-"
    return f"{format_bytes(bytes_per_sec)}/s"


def format_uptime(seconds: float) -> str:
    days = int(seconds // 86400)
    hours = int((seconds % 86400) // 3600)
    minutes = int((seconds % 3600) // 60)
    return f"{days}d {hours}h {minutes}m"


def usage_bar(percent: float, color: str, width: int = 20) -> str:
    filled = min(width, max(0, int(percent * width / 100)))
    # Escaped bracket for the bar container
    return f"\\[[{color}]{'█' * filled}[/{color}][dim]{'░' * (width - filled)}[/dim]]"


class HeaderStats(Static):
    """Header widget showing CPU, thermal, memory and process counts."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 5;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._snapshot: HostSnapshot | None = None

    def compose(self) -> ComposeResult:
        """Compose the header stats layout."""
        yield Horizontal(
            Static(self._get_cpu_info(), id="cpu-info"),
            Static(self._get_mem_info(), id="mem-info"),
        )

    def update_stats(self, snapshot: HostSnapshot) -> None:
        """Update the statistics from a host snapshot."""
        self._snapshot = snapshot
        try:
            self.query_one("#cpu-info", Static).update(self._get_cpu_info())
            self.query_one("#mem-info", Static).update(self._get_mem_info())
        except NoMatches:
            pass  # Widget not mounted yet

    def _get_cpu_info(self) -> str:
        snapshot = self._snapshot
        if snapshot is None:
            return "Loading CPU info..."
        lines = [f"CPU {usage_bar(snapshot.cpu_percent, 'green')} {snapshot.cpu_percent:5.1f}%"]
        if snapshot.temperature is not None:
            lines.append(f"Temp: {snapshot.temperature:.1f}°C")
        if snapshot.fan is not None:
            fan = snapshot.fan
            marker = " (est.)" if fan.speed.is_estimate else ""
            lines.append(
                f"Fan: {'Active' if fan.active else 'Inactive'} "
                f"{fan.speed.value} RPM{marker}, level {fan.level.value}"
            )
        counts = snapshot.process_counts
        lines.append(
            f"Tasks: {sum(counts.values())} | R {counts.get('running', 0)} "
            f"S {counts.get('sleeping', 0)} T {counts.get('stopped', 0)} "
            f"Z {counts.get('zombie', 0)}"
        )
        return "\n".join(lines)

    def _get_mem_info(self) -> str:
        snapshot = self._snapshot
        if snapshot is None or snapshot.memory.total_ram == 0:
            return "Loading memory info..."
        mem = snapshot.memory
        load = snapshot.load_avg
        return (
            f"Mem{usage_bar(mem.memory_percent, 'cyan')} "
            f"{format_bytes(mem.used_ram)}/{format_bytes(mem.total_ram)}\n"
            f"Swp{usage_bar(mem.swap_percent, 'yellow')} "
            f"{format_bytes(mem.used_swap)}/{format_bytes(mem.total_swap)}\n"
            f"Load average: {load[0]:.2f} {load[1]:.2f} {load[2]:.2f}\n"
            f"Uptime: {format_uptime(snapshot.uptime_seconds)}"
        )


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._current_pids: set[int] = set()
        self._sort_key: SortKey = SortKey.CPU
        self._sort_reverse: bool = True  # Default: descending for CPU
        self.tree_view: bool = False

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        self._sort_key = keys[(keys.index(self._sort_key) + 1) % len(keys)]
        self._sort_reverse = self._sort_key in (SortKey.CPU, SortKey.MEM)
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"
        table.add_column("PID", key="pid", width=8)
        table.add_column("S", key="state", width=3)
        table.add_column("PRI", key="priority", width=5)
        table.add_column("CPU%", key="cpu", width=7)
        table.add_column("MEM%", key="mem", width=7)
        table.add_column("RES", key="rss", width=11)
        table.add_column("VIRT", key="vsize", width=11)
        table.add_column("Name", key="name")

    @property
    def selected_pid(self) -> int | None:
        """Pid of the row under the cursor."""
        table = self.query_one("#process-table", DataTable)
        if table.row_count == 0:
            return None
        try:
            row_key = table.coordinate_to_cell_key(table.cursor_coordinate).row_key
        except CellDoesNotExist:
            return None
        return int(row_key.value) if row_key.value is not None else None

    def update_processes(self, processes: list[ProcessRecord]) -> None:
        """Rebuild the table in display order, keeping the cursor on the same pid."""
        table = self.query_one("#process-table", DataTable)
        selected = self.selected_pid

        if self.tree_view:
            rows = list(walk_tree(processes))
        else:
            rows = [(0, proc) for proc in self._sort_processes(processes)]

        table.clear()
        for depth, proc in rows:
            table.add_row(
                str(proc.pid),
                proc.state,
                str(proc.priority),
                f"{proc.cpu_usage:5.1f}",
                f"{proc.memory_usage:5.1f}",
                format_bytes(proc.rss),
                format_bytes(proc.vsize),
                "  " * depth + proc.name,
                key=str(proc.pid),
            )
        self._current_pids = {proc.pid for _, proc in rows}

        if selected in self._current_pids:
            table.move_cursor(row=table.get_row_index(str(selected)))

    def _sort_processes(self, processes: list[ProcessRecord]) -> list[ProcessRecord]:
        """Sort processes based on the current sort key."""
        key_func = {
            SortKey.CPU: lambda p: p.cpu_usage,
            SortKey.MEM: lambda p: p.memory_usage,
            SortKey.PID: lambda p: p.pid,
            SortKey.NAME: lambda p: p.name.lower(),
        }
        return sorted(processes, key=key_func[self._sort_key], reverse=self._sort_reverse)


class NetworkTable(Container):
    """Interfaces with their current throughput."""

    DEFAULT_CSS = """
    NetworkTable {
        height: auto;
        max-height: 10;
        border: solid $secondary;
    }
    """

    def compose(self) -> ComposeResult:
        yield DataTable(id="network-table")

    def on_mount(self) -> None:
        table = self.query_one("#network-table", DataTable)
        for label in ("Interface", "Type", "Status", "IPv4", "MAC", "RX", "TX"):
            table.add_column(label, key=label.lower())

    def update_interfaces(
        self, interfaces: list[NetworkInterfaceRecord], rates: dict[str, InterfaceRate]
    ) -> None:
        table = self.query_one("#network-table", DataTable)
        table.clear()
        for iface in interfaces:
            rate = rates.get(iface.name, InterfaceRate())
            table.add_row(
                iface.name,
                iface.type.value,
                "Up" if iface.is_up else "Down",
                iface.ipv4_address,
                iface.mac_address,
                format_rate(rate.rx_bytes_per_sec),
                format_rate(rate.tx_bytes_per_sec),
            )


class HostwatchApp(App):
    """Main hostwatch application."""

    TITLE = "hostwatch"
    SUB_TITLE = "Live host telemetry"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
        min-height: 6;
    }

    Horizontal {
        height: auto;
    }

    #cpu-info {
        width: 1fr;
        padding-right: 2;
    }

    #mem-info {
        width: 1fr;
        padding-left: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
        ("t", "tree", "Tree"),
        ("k", "kill", "Kill"),
        ("r", "refresh", "Refresh"),
    ]

    def __init__(self, config: SamplerConfig | None = None) -> None:
        """Initialize the HostwatchApp."""
        super().__init__()
        self._update_queue: Queue[HostSnapshot] = Queue()
        self._monitor = SampleScheduler(self._update_queue, config)

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        yield ProcessTable()
        yield NetworkTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the sampler when the app is mounted."""
        info = system_info(self._monitor.config.proc_root)
        self.sub_title = (
            f"{info.username}@{info.hostname} - {info.os_name}, {info.cpu_model} x{info.cpu_cores}"
        )
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and render the most recent snapshot."""
        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break

        if snapshot is not None:
            self._update_ui(snapshot)

    def _update_ui(self, snapshot: HostSnapshot) -> None:
        """Update the UI with the new host snapshot."""
        try:
            self.query_one("#header-stats", HeaderStats).update_stats(snapshot)
            self.query_one(ProcessTable).update_processes(snapshot.processes)
            self.query_one(NetworkTable).update_interfaces(
                snapshot.interfaces, snapshot.interface_rates
            )
        except NoMatches:
            pass  # Screen is being torn down

    def action_sort(self) -> None:
        """Cycle through sort keys."""
        new_sort_key = self.query_one(ProcessTable).cycle_sort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_tree(self) -> None:
        """Toggle between the flat and the tree process view."""
        table = self.query_one(ProcessTable)
        table.tree_view = not table.tree_view
        self.notify("Tree view" if table.tree_view else "Flat view")

    def action_kill(self) -> None:
        """Terminate the selected process."""
        pid = self.query_one(ProcessTable).selected_pid
        if pid is None:
            return
        if kill_process(pid):
            self.notify(f"Sent SIGTERM to {pid}")
            self._monitor.refresh("processes")
        else:
            self.notify(f"Could not terminate {pid}", severity="error")

    def action_refresh(self) -> None:
        """Resample interfaces, connections and ports now."""
        for domain in ("interfaces", "connections", "ports"):
            self._monitor.refresh(domain)

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def main() -> None:
    """Entry point for the hostwatch application."""
    config = SamplerConfig.from_env()
    logging.basicConfig(
        filename=config.log_file,
        level=config.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app = HostwatchApp(config)
    app.run()


if __name__ == "__main__":
    main()
