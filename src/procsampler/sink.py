"""Recording sinks that receive process samples."""

import logging
from queue import Full, Queue
from typing import Protocol

from procsampler.models import ProcessSnapshot

PROCESS_SAMPLE = "process_sample"

logger = logging.getLogger(__name__)


class RecordSink(Protocol):
    """Consumer of emitted samples."""

    def record(self, kind: str, snapshot: ProcessSnapshot) -> None:
        """Record one sample of the given kind."""


class QueueSink:
    """Pushes (kind, snapshot) pairs to a thread-safe Queue."""

    def __init__(self, queue: Queue[tuple[str, ProcessSnapshot]]) -> None:
        self._queue = queue
        self.dropped = 0

    @property
    def queue(self) -> Queue[tuple[str, ProcessSnapshot]]:
        """Get the underlying queue."""
        return self._queue

    def record(self, kind: str, snapshot: ProcessSnapshot) -> None:
        # Never block the sampling thread on a bounded, full queue
        try:
            self._queue.put_nowait((kind, snapshot))
        except Full:
            self.dropped += 1


class LoggingSink:
    """Writes one log line per sample."""

    def __init__(self, log: logging.Logger | None = None, level: int = logging.INFO) -> None:
        self._log = log or logger
        self._level = level

    def record(self, kind: str, snapshot: ProcessSnapshot) -> None:
        self._log.log(self._level, "[%s] %s", kind, format_snapshot(snapshot))


def format_snapshot(snapshot: ProcessSnapshot) -> str:
    """Format a snapshot as a single line."""
    return (
        f"PID: {snapshot.pid}, Name: {snapshot.name}, PPID: {snapshot.ppid}, "
        f"State: {snapshot.state}, CPU(U/S): {snapshot.cpu_user}/{snapshot.cpu_system}, "
        f"CPU%: {snapshot.cpu_percent:.2f}%, "
        f"Mem(Size/Res/Shared): {snapshot.mem_size}/{snapshot.mem_resident}/"
        f"{snapshot.mem_shared} pages, "
        f"I/O(R/W): {snapshot.io_read}/{snapshot.io_write} bytes, "
        f"Threads: {snapshot.threads}, FDs: {snapshot.fds}"
    )
