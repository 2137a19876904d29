"""Per-process CPU history used to derive CPU percentage."""

import os

from procsampler.models import HistoryEntry

NANOS_PER_SECOND = 1_000_000_000
DEFAULT_CLOCK_TICKS = 100


def clock_ticks_per_second() -> int:
    """Get the scheduler clock-tick frequency (USER_HZ)."""
    try:
        ticks = os.sysconf("SC_CLK_TCK")
    except (AttributeError, ValueError, OSError):
        return DEFAULT_CLOCK_TICKS
    return ticks if ticks > 0 else DEFAULT_CLOCK_TICKS


class HistoryTable:
    """
    Previous CPU sample per PID.

    Keeps a sliding window of one sample per process. Not thread-safe:
    it is owned by the single sampling thread.
    """

    def __init__(self, clock_ticks: int | None = None, ceiling: float = 1000.0) -> None:
        """
        Initialize the HistoryTable.

        Args:
            clock_ticks: Clock ticks per second. Defaults to SC_CLK_TCK.
            ceiling: Upper bound of a derived percentage. Default 1000%,
                which leaves room for multi-threaded processes.
        """
        self._clock_ticks = clock_ticks or clock_ticks_per_second()
        self._ceiling = ceiling
        self._entries: dict[int, HistoryEntry] = {}

    @property
    def clock_ticks(self) -> int:
        """Get the clock-tick frequency."""
        return self._clock_ticks

    @property
    def ceiling(self) -> float:
        """Get the CPU percentage ceiling."""
        return self._ceiling

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, pid: object) -> bool:
        return pid in self._entries

    def get(self, pid: int) -> HistoryEntry | None:
        """Get the stored entry for a PID."""
        return self._entries.get(pid)

    def clear(self) -> None:
        """Forget all processes."""
        self._entries.clear()

    def derive(self, pid: int, total_ticks: int, timestamp_ns: int) -> float:
        """
        Compute the CPU percentage since the previous sample of `pid`.

        The first sample of a PID returns 0.0. The stored sample is always
        replaced by the current one.
        """
        entry = self._entries.get(pid)
        if entry is None:
            entry = self._entries[pid] = HistoryEntry()

        if not entry.has_history:
            entry.prev_cpu_total = total_ticks
            entry.prev_timestamp_ns = timestamp_ns
            entry.has_history = True
            return 0.0

        delta_ticks = total_ticks - entry.prev_cpu_total
        delta_ns = timestamp_ns - entry.prev_timestamp_ns

        cpu_percent = 0.0
        if delta_ns > 0:
            cpu_ns = delta_ticks * (NANOS_PER_SECOND / self._clock_ticks)
            cpu_percent = min(max(cpu_ns / delta_ns * 100.0, 0.0), self._ceiling)

        entry.prev_cpu_total = total_ticks
        entry.prev_timestamp_ns = timestamp_ns
        return cpu_percent

    def prune(self, live_pids: set[int]) -> int:
        """
        Remove entries of processes absent from `live_pids`.

        Must run before a tick's acquisitions so a reused PID starts fresh.

        Returns:
            Number of entries removed.
        """
        stale = [pid for pid in self._entries if pid not in live_pids]
        for pid in stale:
            del self._entries[pid]
        return len(stale)
