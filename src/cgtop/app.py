"""cgtop - Textual container stats viewer."""

from enum import Enum
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.css.query import NoMatches
from textual.widgets import DataTable, Footer, Static

from cgtop.config import Settings
from cgtop.cri import Crictl
from cgtop.models import StatsSnapshot
from cgtop.monitor import ContainerMonitor


class SortKey(Enum):
    """Sort keys for the container table."""

    CPU = "cpu"
    MEM = "mem"
    PID = "pid"
    ID = "id"


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{size:5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_cpu_time(usec: int) -> str:
    """Format cumulative CPU microseconds as [H:]MM:SS.ss."""
    seconds = usec / 1_000_000
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = seconds % 60
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:05.2f}"
    return f"{minutes:02d}:{secs:05.2f}"


class HeaderStats(Static):
    """Header widget summarizing the latest poll."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 3;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__("Waiting for first poll...", *args, **kwargs)
        self.summary = ""

    def update_stats(self, snapshots: list[StatsSnapshot]) -> None:
        """Update the summary from a list of container snapshots."""
        ok = [s for s in snapshots if s.ok]
        failed = len(snapshots) - len(ok)
        total_cpu = sum(s.stats.cpu_usage_usec for s in ok)
        total_mem = sum(s.stats.memory_usage_bytes for s in ok)
        self.summary = (
            f"Containers: {len(snapshots)} ([red]{failed} failed[/red])  "
            f"CPU time: {format_cpu_time(total_cpu)}  "
            f"Memory: {format_bytes(total_mem).strip()}"
        )
        self.update(self.summary)


class ContainerTable(Container):
    """Container for the stats data table."""

    DEFAULT_CSS = """
    ContainerTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ContainerTable."""
        super().__init__(*args, **kwargs)
        self._sort_key: SortKey = SortKey.CPU
        self._sort_reverse: bool = True  # Default: descending for CPU

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        next_index = (keys.index(self._sort_key) + 1) % len(keys)
        self._sort_key = keys[next_index]
        self._sort_reverse = self._sort_key in (SortKey.CPU, SortKey.MEM)
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Compose the container table."""
        yield DataTable(id="container-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#container-table", DataTable)
        table.cursor_type = "row"

        table.add_column("CONTAINER", key="id", width=14)
        table.add_column("PID", key="pid", width=8)
        table.add_column("CPU TIME", key="cpu", width=12)
        table.add_column("MEM", key="mem", width=8)
        table.add_column("COMMAND", key="command", width=16)
        table.add_column("STATUS", key="status")

    def update_containers(self, snapshots: list[StatsSnapshot]) -> None:
        """Replace the table rows with the given snapshots."""
        table = self.query_one("#container-table", DataTable)
        table.clear()
        for snap in self.sort_snapshots(snapshots):
            table.add_row(*self._row(snap), key=snap.container_id)

    def sort_snapshots(self, snapshots: list[StatsSnapshot]) -> list[StatsSnapshot]:
        """Sort snapshots by the current sort key; failed ones sort as zero."""
        key_func = {
            SortKey.CPU: lambda s: s.stats.cpu_usage_usec if s.stats else 0,
            SortKey.MEM: lambda s: s.stats.memory_usage_bytes if s.stats else 0,
            SortKey.PID: lambda s: s.pid or 0,
            SortKey.ID: lambda s: s.container_id,
        }
        return sorted(snapshots, key=key_func[self._sort_key], reverse=self._sort_reverse)

    @staticmethod
    def _row(snap: StatsSnapshot) -> tuple[str, ...]:
        pid = str(snap.pid) if snap.pid is not None else "-"
        if snap.stats is None:
            return (snap.container_id[:13], pid, "-", "-", snap.command[:16], snap.error or "")
        return (
            snap.container_id[:13],
            pid,
            format_cpu_time(snap.stats.cpu_usage_usec),
            format_bytes(snap.stats.memory_usage_bytes),
            snap.command[:16],
            "ok",
        )


class CgtopApp(App):
    """Main cgtop application."""

    TITLE = "cgtop"
    SUB_TITLE = "cgroup v2 container stats"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
    ]

    def __init__(
        self,
        container_ids: list[str] | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the CgtopApp."""
        super().__init__()
        settings = settings or Settings()
        self._update_queue: Queue[list[StatsSnapshot]] = Queue()
        self._monitor = ContainerMonitor(
            self._update_queue,
            container_ids=container_ids,
            crictl=Crictl(settings.crictl_path),
            poll_rate=settings.poll_rate,
            proc_root=settings.proc_root,
            mountinfo_path=settings.mountinfo_path,
        )
        self._latest: list[StatsSnapshot] = []

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        yield ContainerTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the container monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def on_unmount(self) -> None:
        """Stop polling when the app shuts down."""
        self._monitor.stop()

    def _check_for_updates(self) -> None:
        """Drain the queue and render the most recent poll."""
        snapshots = None
        while True:
            try:
                snapshots = self._update_queue.get_nowait()
            except Empty:
                break

        if snapshots is None:
            return
        self._latest = snapshots
        try:
            self._update_ui(snapshots)
        except NoMatches:
            pass  # Widgets not mounted yet or already torn down

    def _update_ui(self, snapshots: list[StatsSnapshot]) -> None:
        """Update the UI with the new poll results."""
        self.query_one("#header-stats", HeaderStats).update_stats(snapshots)
        self.query_one(ContainerTable).update_containers(snapshots)

    def action_sort(self) -> None:
        """Handle sort action - cycle through sort keys."""
        table = self.query_one(ContainerTable)
        new_sort_key = table.cycle_sort()
        table.update_containers(self._latest)
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()
