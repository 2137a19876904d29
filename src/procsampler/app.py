"""procsampler - Textual viewer hosting the process sampler."""

import argparse
import logging
import os
from enum import Enum
from queue import Empty, Queue

import psutil
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.logging import TextualHandler
from textual.widgets import DataTable, Footer, Static

from procsampler.config import NANOS_PER_MILLI, RecorderArguments, SamplerConfig
from procsampler.errors import SamplerError
from procsampler.models import ProcessSnapshot
from procsampler.recorder import ProcRecorder
from procsampler.sink import QueueSink
from procsampler.source import ProcessDataSource
from procsampler.worker import SamplingWorker

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 4096


def page_size() -> int:
    """Get the memory page size in bytes, used to scale statm pages."""
    try:
        size = os.sysconf("SC_PAGE_SIZE")
    except (AttributeError, ValueError, OSError):
        return DEFAULT_PAGE_SIZE
    return size if size > 0 else DEFAULT_PAGE_SIZE


PAGE_SIZE = page_size()


class SortKey(Enum):
    """Sort keys for the sample table."""

    CPU = "cpu"
    MEM = "mem"
    PID = "pid"
    FDS = "fds"


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{size:5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


class HeaderStats(Static):
    """Header widget showing sampler counters and memory usage."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 3;
        padding: 0 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._ticks = 0
        self._read = 0
        self._attempted = 0
        self._tracked = 0
        self._memory_percent = 0.0

    def update_stats(self, worker: SamplingWorker) -> None:
        """Update the counters from the worker."""
        self._ticks = worker.tick_count
        self._read = worker.last_read_count
        self._attempted = worker.last_attempt_count
        self._tracked = worker.history_size
        self._memory_percent = psutil.virtual_memory().percent
        self.update(self.render_stats())

    def render_stats(self) -> str:
        """Get the header text."""
        if self._ticks == 0:
            return "Waiting for first sample..."
        mem_bar_len = min(int(self._memory_percent / 5), 20)
        mem_bar = "[cyan]█[/cyan]" * mem_bar_len + "[dim]░[/dim]" * (20 - mem_bar_len)
        return (
            f"Ticks: {self._ticks}  Read: {self._read}/{self._attempted}  "
            f"Tracked: {self._tracked}\n"
            f"Mem\\[{mem_bar}] {self._memory_percent:5.1f}%"
        )


class SampleTable(Container):
    """Container for the sample data table."""

    DEFAULT_CSS = """
    SampleTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize SampleTable."""
        super().__init__(*args, **kwargs)
        self._samples: dict[int, ProcessSnapshot] = {}
        self._seen_tick: dict[int, int] = {}
        self._sort_key: SortKey = SortKey.CPU
        self._sort_reverse: bool = True

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    @property
    def pids(self) -> set[int]:
        """PIDs currently shown."""
        return set(self._samples)

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        self._sort_key = keys[(keys.index(self._sort_key) + 1) % len(keys)]
        self._sort_reverse = self._sort_key is not SortKey.PID
        self._redraw()
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Compose the sample table."""
        yield DataTable(id="sample-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#sample-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("PPID", key="ppid", width=8)
        table.add_column("UID", key="uid", width=6)
        table.add_column("S", key="state", width=3)
        table.add_column("CPU%", key="cpu", width=8)
        table.add_column("RES", key="res", width=8)
        table.add_column("THR", key="threads", width=5)
        table.add_column("FDS", key="fds", width=5)
        table.add_column("READ", key="io_read", width=8)
        table.add_column("WRITE", key="io_write", width=8)
        table.add_column("Name", key="name")

    def update_samples(self, samples: list[ProcessSnapshot], tick_count: int) -> None:
        """
        Merge the samples of one drain into the table.

        A drain may see part of a tick, so a PID is only removed once a
        whole tick has completed without it.
        """
        for sample in samples:
            self._samples[sample.pid] = sample
            self._seen_tick[sample.pid] = tick_count
        stale = [pid for pid, seen in self._seen_tick.items() if seen < tick_count - 1]
        for pid in stale:
            del self._samples[pid]
            del self._seen_tick[pid]
        if samples or stale:
            self._redraw()

    def _sorted_samples(self) -> list[ProcessSnapshot]:
        """Sort samples based on the current sort key."""
        key_func = {
            SortKey.CPU: lambda s: s.cpu_percent,
            SortKey.MEM: lambda s: s.mem_resident,
            SortKey.PID: lambda s: s.pid,
            SortKey.FDS: lambda s: s.fds,
        }
        return sorted(self._samples.values(), key=key_func[self._sort_key], reverse=self._sort_reverse)

    def _redraw(self) -> None:
        """Rebuild the table rows in sort order."""
        table = self.query_one("#sample-table", DataTable)
        table.clear()
        for sample in self._sorted_samples():
            table.add_row(
                str(sample.pid),
                str(sample.ppid),
                str(sample.uid),
                sample.state,
                f"{sample.cpu_percent:5.1f}",
                format_bytes(sample.mem_resident * PAGE_SIZE),
                str(sample.threads),
                str(sample.fds),
                format_bytes(sample.io_read),
                format_bytes(sample.io_write),
                sample.name,
                key=str(sample.pid),
            )


class SamplerApp(App):
    """Live view of the samples recorded by ProcRecorder."""

    TITLE = "procsampler"
    SUB_TITLE = "Process Metrics"

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
    ]

    def __init__(
        self,
        config: SamplerConfig | None = None,
        interval_ns: int = 1_000 * NANOS_PER_MILLI,
        source: ProcessDataSource | None = None,
    ) -> None:
        """Initialize the SamplerApp."""
        super().__init__()
        self._update_queue: Queue[tuple[str, ProcessSnapshot]] = Queue(maxsize=10_000)
        self._recorder = ProcRecorder(QueueSink(self._update_queue), source, config)
        self._args = RecorderArguments(proc_interval=interval_ns)

    @property
    def recorder(self) -> ProcRecorder:
        """Get the hosted recorder."""
        return self._recorder

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        yield SampleTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the recorder when the app is mounted."""
        try:
            self._recorder.start(self._args)
        except SamplerError as e:
            logger.error("Cannot start process sampling: %s", e)
            self.notify(str(e), severity="error", timeout=10)
            return
        self.set_interval(0.5, self._check_for_updates)

    def on_unmount(self) -> None:
        """Stop the recorder when the app shuts down."""
        self._recorder.stop()

    def _check_for_updates(self) -> None:
        """Drain the sink queue and refresh the UI."""
        samples: list[ProcessSnapshot] = []
        while True:
            try:
                _, snapshot = self._update_queue.get_nowait()
            except Empty:
                break
            samples.append(snapshot)

        worker = self._recorder.worker
        self.query_one(SampleTable).update_samples(samples, worker.tick_count)
        self.query_one("#header-stats", HeaderStats).update_stats(worker)

    def action_sort(self) -> None:
        """Handle sort action - cycle through sort keys."""
        new_sort_key = self.query_one(SampleTable).cycle_sort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._recorder.stop()
        self.exit()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    defaults = SamplerConfig()
    parser = argparse.ArgumentParser(prog="procsampler", description="Live process metrics sampler")
    parser.add_argument("--interval", type=float, default=1.0, help="Sampling interval in seconds")
    parser.add_argument("--max-pids", type=int, default=defaults.max_pids)
    parser.add_argument("--detailed", type=int, default=defaults.max_detailed_pids,
                        help="Number of processes fully read per tick")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Entry point for procsampler application."""
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        handlers=[TextualHandler()],
    )
    config = SamplerConfig(max_pids=args.max_pids, max_detailed_pids=args.detailed)
    app = SamplerApp(config, interval_ns=int(args.interval * 1_000_000_000))
    app.run()


if __name__ == "__main__":
    main()
