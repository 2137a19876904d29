"""Configuration for the process sampler."""

from dataclasses import dataclass, replace

NANOS_PER_MILLI = 1_000_000


@dataclass(slots=True, frozen=True)
class SamplerConfig:
    """
    Tunables of the sampling engine.

    Attributes:
        interval_ms: Sleep between two ticks, in milliseconds.
        min_interval_ms: Floor applied to host-supplied intervals.
        max_pids: Cap on the number of PIDs enumerated per tick.
        max_detailed_pids: Cap on the number of PIDs fully acquired per tick.
        cpu_percent_ceiling: Upper bound of a derived CPU percentage.
        proc_root: Mount point of procfs.
    """

    interval_ms: int = 30_000
    min_interval_ms: int = 1_000
    max_pids: int = 100
    max_detailed_pids: int = 10
    cpu_percent_ceiling: float = 1000.0
    proc_root: str = "/proc"

    @property
    def interval_seconds(self) -> float:
        """Get the interval in seconds, as used by the sleep."""
        return self.interval_ms / 1000

    def with_interval_ns(self, interval_ns: int) -> "SamplerConfig":
        """Return a copy using a host interval in nanoseconds, clamped to the floor."""
        interval_ms = int(interval_ns // NANOS_PER_MILLI)
        return replace(self, interval_ms=max(interval_ms, self.min_interval_ms))


@dataclass(slots=True)
class RecorderArguments:
    """Arguments the host passes to the recorder."""

    proc_interval: int = 30_000 * NANOS_PER_MILLI  # Nanoseconds
