"""Process metrics engine exposed to the profiling host."""

import logging

from procsampler.config import RecorderArguments, SamplerConfig
from procsampler.errors import UnsupportedPlatformError
from procsampler.history import HistoryTable
from procsampler.sink import RecordSink
from procsampler.source import ProcessDataSource, default_source
from procsampler.worker import SamplingWorker, WorkerState

logger = logging.getLogger(__name__)


class ProcRecorder:
    """
    Start/stop/check contract of the process metrics engine.

    Validates platform support, converts the host interval and drives a
    SamplingWorker. Each recorder owns its own worker and history, so
    independent instances do not interfere.
    """

    type = "proc"
    title = "Process Metrics"
    units = "processes"

    def __init__(
        self,
        sink: RecordSink | None = None,
        source: ProcessDataSource | None = None,
        config: SamplerConfig | None = None,
    ) -> None:
        self._config = config or SamplerConfig()
        self._source = source or default_source(self._config.proc_root)
        self._worker = SamplingWorker(
            self._source,
            HistoryTable(ceiling=self._config.cpu_percent_ceiling),
            sink,
            self._config,
        )

    @property
    def worker(self) -> SamplingWorker:
        """Get the underlying sampling worker."""
        return self._worker

    @property
    def running(self) -> bool:
        """Check if sampling is in progress."""
        return self._worker.is_running

    def check(self, args: RecorderArguments | None = None) -> None:
        """
        Check that process metrics can be collected on this platform.

        Raises:
            UnsupportedPlatformError: If the platform has no data source.
        """
        if not self._source.supported:
            raise UnsupportedPlatformError(self._source.unsupported_reason)

    def start(self, args: RecorderArguments) -> None:
        """
        Start collecting with the interval from the host arguments.

        Raises:
            UnsupportedPlatformError: If the platform has no data source.
            ThreadStartError: If the sampling thread could not be created.
        """
        self.check(args)

        logger.info("Starting process metrics collection")
        config = self._config.with_interval_ns(args.proc_interval)
        logger.info("Process metrics collection interval set to %d ms", config.interval_ms)

        self._worker.config = config
        self._worker.start()

    def stop(self) -> None:
        """Stop collecting; no-op if not started."""
        if self._worker.state is not WorkerState.IDLE:
            logger.info("Stopping process metrics collection")
        self._worker.stop()
