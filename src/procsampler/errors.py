"""Exceptions raised by procsampler."""


class SamplerError(Exception):
    """Base class for sampler errors."""


class UnsupportedPlatformError(SamplerError):
    """Process metrics collection is not available on this platform."""


class ThreadStartError(SamplerError):
    """The sampling thread could not be created."""


class ProcessNotFoundError(SamplerError):
    """The mandatory stat record of a process could not be read."""

    def __init__(self, pid: int, reason: str = "") -> None:
        self.pid = pid
        message = f"process {pid} not found"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
