"""Per-process data acquisition from OS accounting files."""

import logging
import os
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import NamedTuple

import psutil

from procsampler.errors import ProcessNotFoundError, UnsupportedPlatformError
from procsampler.models import NAME_MAX_LENGTH, ProcessSnapshot

logger = logging.getLogger(__name__)

# Fields after the "(comm)" part of /proc/<pid>/stat, 0-indexed from "state".
_STAT_STATE = 0
_STAT_PPID = 1
_STAT_UTIME = 11
_STAT_STIME = 12
_STAT_NUM_THREADS = 17
_STAT_STARTTIME = 19


class StatRecord(NamedTuple):
    """Identity and scheduling fields of /proc/<pid>/stat."""

    pid: int
    ppid: int
    state: str
    utime: int
    stime: int
    threads: int
    start_time: int


class StatmRecord(NamedTuple):
    """Memory page counts of /proc/<pid>/statm."""

    size: int
    resident: int
    shared: int
    text: int
    data: int


def parse_stat(text: str) -> StatRecord:
    """
    Parse the content of /proc/<pid>/stat.

    The command name is enclosed in parentheses and may itself contain
    spaces or parentheses, so fields are split after the last ')'.

    Raises:
        ValueError: If the record is truncated or malformed.
    """
    lparen = text.find("(")
    rparen = text.rfind(")")
    if lparen == -1 or rparen < lparen:
        raise ValueError("missing command name")

    fields = text[rparen + 1 :].split()
    if len(fields) <= _STAT_STARTTIME:
        raise ValueError(f"expected at least {_STAT_STARTTIME + 1} fields, got {len(fields)}")

    state = fields[_STAT_STATE]
    if len(state) != 1:
        raise ValueError(f"invalid state {state!r}")

    return StatRecord(
        pid=int(text[:lparen]),
        ppid=int(fields[_STAT_PPID]),
        state=state,
        utime=int(fields[_STAT_UTIME]),
        stime=int(fields[_STAT_STIME]),
        threads=int(fields[_STAT_NUM_THREADS]),
        start_time=int(fields[_STAT_STARTTIME]),
    )


def parse_statm(text: str) -> StatmRecord:
    """Parse /proc/<pid>/statm: size resident shared text lib data dt."""
    values = [int(value) for value in text.split()]
    if len(values) < 6:
        raise ValueError(f"expected at least 6 fields, got {len(values)}")
    # values[4] is "lib", unused since Linux 2.6
    return StatmRecord(
        size=values[0],
        resident=values[1],
        shared=values[2],
        text=values[3],
        data=values[5],
    )


def parse_io(text: str) -> tuple[int, int]:
    """Parse read_bytes and write_bytes out of /proc/<pid>/io."""
    read_bytes = 0
    write_bytes = 0
    for line in text.splitlines():
        key, _, value = line.partition(":")
        try:
            if key == "read_bytes":
                read_bytes = int(value)
            elif key == "write_bytes":
                write_bytes = int(value)
        except ValueError:
            continue
    return read_bytes, write_bytes


def parse_uid(text: str) -> int | None:
    """Return the real user id from the Uid: line of /proc/<pid>/status."""
    for line in text.splitlines():
        if line.startswith("Uid:"):
            values = line[4:].split()
            if values:
                try:
                    return int(values[0])
                except ValueError:
                    return None
    return None


class ProcessDataSource(ABC):
    """Platform capability for enumerating and reading processes."""

    supported: bool = True
    unsupported_reason: str = ""

    @abstractmethod
    def list_pids(self, limit: int) -> list[int]:
        """List at most `limit` live process ids."""

    @abstractmethod
    def acquire(self, pid: int) -> ProcessSnapshot:
        """
        Read one process.

        Raises:
            ProcessNotFoundError: If the process identity could not be read.
        """


class ProcfsDataSource(ProcessDataSource):
    """
    Linux implementation reading /proc.

    Only the stat record is mandatory. Name, memory, I/O, owner and
    descriptor count fall back to defaults when their file cannot be read,
    e.g. /proc/<pid>/io and fd/ of processes owned by other users.
    """

    def __init__(
        self,
        proc_root: str = "/proc",
        clock: Callable[[], int] = time.monotonic_ns,
    ) -> None:
        self._proc_root = proc_root
        self._clock = clock

    @property
    def proc_root(self) -> str:
        """Get the procfs mount point."""
        return self._proc_root

    def _path(self, pid: int, name: str) -> str:
        return os.path.join(self._proc_root, str(pid), name)

    def _read(self, pid: int, name: str) -> str:
        with open(self._path(pid, name), encoding="utf-8", errors="replace") as f:
            return f.read()

    def list_pids(self, limit: int) -> list[int]:
        pids: list[int] = []
        try:
            with os.scandir(self._proc_root) as entries:
                for entry in entries:
                    if len(pids) >= limit:
                        break
                    if entry.name.isdigit() and entry.is_dir():
                        pids.append(int(entry.name))
        except OSError as e:
            logger.warning("Cannot enumerate processes in %s: %s", self._proc_root, e)
        return pids

    def acquire(self, pid: int) -> ProcessSnapshot:
        name = self.read_name(pid)

        try:
            stat = parse_stat(self._read(pid, "stat"))
        except (OSError, ValueError) as e:
            raise ProcessNotFoundError(pid, str(e)) from e

        memory = self.read_memory(pid)
        io_read, io_write = self.read_io(pid)

        return ProcessSnapshot(
            pid=stat.pid,
            ppid=stat.ppid,
            name=name,
            uid=self.read_uid(pid),
            start_time=stat.start_time,
            state=stat.state,
            cpu_user=stat.utime,
            cpu_system=stat.stime,
            threads=stat.threads,
            mem_size=memory.size,
            mem_resident=memory.resident,
            mem_shared=memory.shared,
            mem_text=memory.text,
            mem_data=memory.data,
            io_read=io_read,
            io_write=io_write,
            fds=self.count_fds(pid),
            timestamp_ns=self._clock(),
        )

    def read_name(self, pid: int) -> str:
        """Read the short command name, or synthesize "pid-<N>"."""
        try:
            name = self._read(pid, "comm").rstrip("\n")
        except OSError:
            name = ""
        if not name:
            name = f"pid-{pid}"
        return name[:NAME_MAX_LENGTH]

    def read_memory(self, pid: int) -> StatmRecord:
        """Read memory page counts; all zero if unavailable."""
        try:
            return parse_statm(self._read(pid, "statm"))
        except (OSError, ValueError):
            return StatmRecord(0, 0, 0, 0, 0)

    def read_io(self, pid: int) -> tuple[int, int]:
        """Read cumulative storage I/O bytes; (0, 0) if unavailable."""
        try:
            return parse_io(self._read(pid, "io"))
        except OSError:
            return 0, 0

    def read_uid(self, pid: int) -> int:
        """Read the real user id; 0 if unavailable."""
        try:
            uid = parse_uid(self._read(pid, "status"))
        except OSError:
            return 0
        return uid if uid is not None else 0

    def count_fds(self, pid: int) -> int:
        """Count open file descriptors; 0 if the fd directory is unreadable."""
        try:
            names = os.listdir(self._path(pid, "fd"))
        except OSError:
            return 0
        return sum(1 for name in names if not name.startswith("."))


class UnsupportedDataSource(ProcessDataSource):
    """Stand-in for platforms without an implementation."""

    supported = False

    def __init__(self, reason: str) -> None:
        self.unsupported_reason = reason

    def list_pids(self, limit: int) -> list[int]:
        return []

    def acquire(self, pid: int) -> ProcessSnapshot:
        raise UnsupportedPlatformError(self.unsupported_reason)


def default_source(proc_root: str = "/proc") -> ProcessDataSource:
    """Select the data source for the running platform."""
    if psutil.LINUX:
        return ProcfsDataSource(proc_root)
    if psutil.MACOS:
        return UnsupportedDataSource("Process metrics collection is not yet implemented on macOS")
    if psutil.WINDOWS:
        return UnsupportedDataSource("Process metrics collection is not yet implemented on Windows")
    return UnsupportedDataSource("Process metrics collection is not supported on this platform")
