"""Sampling worker that periodically scans processes."""

import logging
import threading
from dataclasses import replace
from enum import Enum

from procsampler.config import SamplerConfig
from procsampler.errors import SamplerError, ThreadStartError
from procsampler.history import HistoryTable
from procsampler.sink import PROCESS_SAMPLE, RecordSink
from procsampler.source import ProcessDataSource

logger = logging.getLogger(__name__)


class WorkerState(Enum):
    """Lifecycle states of the sampling worker."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"


class SamplingWorker:
    """
    Periodic process sampler.

    Runs in a separate daemon thread. Each tick enumerates processes,
    prunes the history of exited ones, fully reads a bounded prefix of the
    PID list, derives CPU percentages and forwards samples to the sink.
    Processes that vanish mid-tick are skipped.
    """

    def __init__(
        self,
        source: ProcessDataSource,
        history: HistoryTable | None = None,
        sink: RecordSink | None = None,
        config: SamplerConfig | None = None,
    ) -> None:
        """
        Initialize the SamplingWorker.

        Args:
            source: Platform data source.
            history: CPU history table. A new one is created if omitted.
            sink: Receiver of samples. Without a sink samples are still
                acquired so that the history stays consistent.
            config: Engine tunables.
        """
        self._config = config or SamplerConfig()
        self._source = source
        if history is None:
            history = HistoryTable(ceiling=self._config.cpu_percent_ceiling)
        self._history = history
        self._sink = sink
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._state = WorkerState.IDLE
        self._lock = threading.Lock()

        self.tick_count = 0
        self.last_attempt_count = 0
        self.last_read_count = 0

    @property
    def config(self) -> SamplerConfig:
        """Get the engine configuration."""
        return self._config

    @config.setter
    def config(self, value: SamplerConfig) -> None:
        """Set the configuration; takes effect from the next tick."""
        self._config = value

    @property
    def state(self) -> WorkerState:
        """Get the lifecycle state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Check if the sampling thread is running."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def history_size(self) -> int:
        """Number of processes with CPU history."""
        return len(self._history)

    def start(self) -> None:
        """
        Start the sampling thread.

        Starting a running worker is a no-op.

        Raises:
            ThreadStartError: If the thread could not be created.
        """
        with self._lock:
            if self.is_running:
                return

            self._stop_event.clear()
            thread = threading.Thread(
                target=self._run,
                daemon=True,
                name="SamplingWorker",
            )
            try:
                thread.start()
            except RuntimeError as e:
                logger.error("Failed to create process sampling thread: %s", e)
                raise ThreadStartError("Unable to create process sampling thread") from e

            self._thread = thread
            self._state = WorkerState.RUNNING
        logger.info(
            "Process sampling started (interval %d ms, %d/%d pids)",
            self._config.interval_ms,
            self._config.max_detailed_pids,
            self._config.max_pids,
        )

    def stop(self, timeout: float | None = None) -> None:
        """
        Stop the sampling thread and wait for it to exit.

        Safe to call before start() and more than once.

        Args:
            timeout: How long to wait for the thread (seconds). None waits
                until the current tick has finished.
        """
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._state = WorkerState.STOPPING
            self._stop_event.set()
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Process sampling thread did not exit within %s s", timeout)
                return
            self._thread = None
            self._state = WorkerState.IDLE
        logger.info("Process sampling stopped after %d ticks", self.tick_count)

    def _run(self) -> None:
        """Main loop running in the background thread."""
        logger.debug("Sampling thread entering loop")
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("Process sampling tick failed")

            # Wait for the interval or until stop is requested
            self._stop_event.wait(timeout=self._config.interval_seconds)
        logger.debug("Sampling thread leaving loop")

    def tick(self) -> int:
        """
        Run one enumerate-prune-acquire-derive-forward cycle.

        Returns:
            Number of processes successfully acquired.
        """
        config = self._config
        pids = self._source.list_pids(config.max_pids)
        removed = self._history.prune(set(pids))

        selected = pids[: config.max_detailed_pids]
        read = 0
        for pid in selected:
            try:
                snapshot = self._source.acquire(pid)
            except (SamplerError, OSError) as e:
                logger.debug("Failed to read pid %d: %s", pid, e)
                continue

            cpu_percent = self._history.derive(pid, snapshot.cpu_total, snapshot.timestamp_ns)
            snapshot = replace(snapshot, cpu_percent=cpu_percent)
            read += 1

            if self._sink is not None:
                self._sink.record(PROCESS_SAMPLE, snapshot)

        self.tick_count += 1
        self.last_attempt_count = len(selected)
        self.last_read_count = read
        logger.debug(
            "Tick %d: found %d processes, read %d/%d, pruned %d, tracking %d histories",
            self.tick_count,
            len(pids),
            read,
            len(selected),
            removed,
            len(self._history),
        )
        return read
