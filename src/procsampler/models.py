"""Data models for procsampler."""

from dataclasses import dataclass

# Kernel TASK_COMM_LEN is 16 including the terminating NUL.
NAME_MAX_LENGTH = 15


@dataclass(slots=True, frozen=True)
class ProcessSnapshot:
    """Immutable snapshot of one process at one sampling instant."""

    pid: int
    ppid: int = 0
    name: str = ""
    uid: int = 0
    start_time: int = 0  # Clock ticks since boot
    state: str = "?"  # 'R', 'S', 'D', 'Z', 'T', etc.

    cpu_user: int = 0  # Clock ticks
    cpu_system: int = 0  # Clock ticks
    cpu_percent: float = 0.0  # 0.0 - ceiling
    threads: int = 0

    # Pages, from statm
    mem_size: int = 0
    mem_resident: int = 0
    mem_shared: int = 0
    mem_text: int = 0
    mem_data: int = 0

    io_read: int = 0  # Bytes
    io_write: int = 0  # Bytes
    fds: int = 0

    timestamp_ns: int = 0  # Monotonic

    @property
    def cpu_total(self) -> int:
        """User plus system CPU ticks."""
        return self.cpu_user + self.cpu_system


@dataclass(slots=True)
class HistoryEntry:
    """Previous CPU accounting sample of a process."""

    prev_cpu_total: int = 0
    prev_timestamp_ns: int = 0
    has_history: bool = False
