"""Shared fixtures: an on-disk fake procfs and in-memory collaborators."""

import shutil
from pathlib import Path

import pytest

from procsampler.errors import ProcessNotFoundError
from procsampler.models import ProcessSnapshot
from procsampler.source import ProcessDataSource


def stat_line(
    pid: int,
    name: str = "bash",
    state: str = "S",
    ppid: int = 1,
    utime: int = 0,
    stime: int = 0,
    threads: int = 1,
    start_time: int = 1000,
) -> str:
    """Build a /proc/<pid>/stat record in the kernel's field order."""
    return (
        f"{pid} ({name}) {state} {ppid} {pid} {pid} 0 -1 4194304 120 0 0 0 "
        f"{utime} {stime} 0 0 20 0 {threads} 0 {start_time} 12345678 300 "
        "18446744073709551615 1 1 0 0 0 0 0 0 0 0 0 0 17 0 0 0 0 0 0\n"
    )


class FakeProc:
    """A procfs tree under a temporary directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def add(
        self,
        pid: int,
        name: str | None = "bash",
        stat: str | None = None,
        statm: str | None = "2500 300 200 50 0 400 0\n",
        io: str | None = "rchar: 10\nwchar: 20\nread_bytes: 4096\nwrite_bytes: 8192\n",
        status: str | None = "Name:\tbash\nUid:\t1000\t1000\t1000\t1000\n",
        fds: int | None = 3,
        **stat_fields,
    ) -> Path:
        """Create /proc/<pid>; pass None to leave a file out."""
        proc_dir = self.root / str(pid)
        proc_dir.mkdir(exist_ok=True)
        if name is not None:
            (proc_dir / "comm").write_text(f"{name}\n")
        if stat is None:
            stat = stat_line(pid, name=name or "x", **stat_fields)
        (proc_dir / "stat").write_text(stat)
        if statm is not None:
            (proc_dir / "statm").write_text(statm)
        if io is not None:
            (proc_dir / "io").write_text(io)
        if status is not None:
            (proc_dir / "status").write_text(status)
        if fds is not None:
            fd_dir = proc_dir / "fd"
            fd_dir.mkdir(exist_ok=True)
            for fd in range(fds):
                (fd_dir / str(fd)).write_text("")
        return proc_dir

    def remove(self, pid: int) -> None:
        """Simulate process exit."""
        shutil.rmtree(self.root / str(pid))


@pytest.fixture
def fake_proc(tmp_path: Path) -> FakeProc:
    """Empty fake procfs with a couple of non-process entries."""
    root = tmp_path / "proc"
    root.mkdir()
    (root / "self").mkdir()
    (root / "meminfo").write_text("MemTotal: 1024 kB\n")
    return FakeProc(root)


class FakeSource(ProcessDataSource):
    """In-memory data source with controllable process table."""

    def __init__(self) -> None:
        self.processes: dict[int, ProcessSnapshot] = {}
        self.failing: set[int] = set()
        self.acquired: list[int] = []
        self.now = 0

    def set(self, pid: int, cpu_total: int = 0, timestamp_ns: int | None = None) -> None:
        self.processes[pid] = ProcessSnapshot(
            pid=pid,
            name=f"proc{pid}",
            cpu_user=cpu_total,
            timestamp_ns=self.now if timestamp_ns is None else timestamp_ns,
        )

    def list_pids(self, limit: int) -> list[int]:
        return list(self.processes)[:limit]

    def acquire(self, pid: int) -> ProcessSnapshot:
        self.acquired.append(pid)
        if pid in self.failing or pid not in self.processes:
            raise ProcessNotFoundError(pid)
        return self.processes[pid]


class ListSink:
    """Sink collecting records in a list."""

    def __init__(self) -> None:
        self.records: list[tuple[str, ProcessSnapshot]] = []

    def record(self, kind: str, snapshot: ProcessSnapshot) -> None:
        self.records.append((kind, snapshot))


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def list_sink() -> ListSink:
    return ListSink()
