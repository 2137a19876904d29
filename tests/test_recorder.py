"""Tests for the ProcRecorder lifecycle controller."""

import time

import psutil
import pytest

from procsampler.config import RecorderArguments, SamplerConfig
from procsampler.errors import UnsupportedPlatformError
from procsampler.recorder import ProcRecorder
from procsampler.sink import PROCESS_SAMPLE
from procsampler.source import UnsupportedDataSource
from procsampler.worker import WorkerState

MILLI = 1_000_000
SECOND = 1_000_000_000


def test_engine_description():
    """Test the engine identifies itself to the host."""
    assert ProcRecorder.type == "proc"
    assert ProcRecorder.title == "Process Metrics"
    assert ProcRecorder.units == "processes"


def test_check_supported(fake_source):
    """Test check passes for a supported source."""
    recorder = ProcRecorder(source=fake_source)
    recorder.check()
    assert not recorder.running


def test_check_unsupported():
    """Test check reports an unsupported platform without side effects."""
    recorder = ProcRecorder(source=UnsupportedDataSource("not here"))

    with pytest.raises(UnsupportedPlatformError, match="not here"):
        recorder.check(RecorderArguments())

    assert recorder.worker.state is WorkerState.IDLE


def test_start_unsupported_does_not_run():
    """Test start on an unsupported platform fails and spawns nothing."""
    recorder = ProcRecorder(source=UnsupportedDataSource("not here"))

    with pytest.raises(UnsupportedPlatformError):
        recorder.start(RecorderArguments())

    assert not recorder.running


def test_start_converts_interval(fake_source):
    """Test the host interval is converted from nanoseconds to milliseconds."""
    recorder = ProcRecorder(source=fake_source)

    recorder.start(RecorderArguments(proc_interval=2_500 * MILLI))
    try:
        assert recorder.running
        assert recorder.worker.config.interval_ms == 2_500
    finally:
        recorder.stop()


def test_start_clamps_interval(fake_source):
    """Test intervals below the floor are raised to it."""
    recorder = ProcRecorder(source=fake_source)

    recorder.start(RecorderArguments(proc_interval=10 * MILLI))
    try:
        assert recorder.worker.config.interval_ms == 1_000
    finally:
        recorder.stop()


def test_start_clamps_to_configured_floor(fake_source):
    """Test the floor itself is configurable."""
    recorder = ProcRecorder(source=fake_source, config=SamplerConfig(min_interval_ms=5_000))

    recorder.start(RecorderArguments(proc_interval=10 * MILLI))
    try:
        assert recorder.worker.config.interval_ms == 5_000
    finally:
        recorder.stop()


def test_stop_before_start(fake_source):
    """Test stop without start is a no-op."""
    recorder = ProcRecorder(source=fake_source)
    recorder.stop()
    recorder.stop()
    assert not recorder.running


def test_start_stop_records(fake_source, list_sink):
    """Test samples reach the sink while running and stop after stop()."""
    fake_source.set(1)
    fake_source.set(2)
    recorder = ProcRecorder(list_sink, fake_source)

    recorder.start(RecorderArguments(proc_interval=1_000 * MILLI))
    deadline = time.monotonic() + 5.0
    while len(list_sink.records) < 2 and time.monotonic() < deadline:
        time.sleep(0.01)
    recorder.stop()

    assert not recorder.running
    assert {s.pid for _, s in list_sink.records} == {1, 2}
    assert all(kind == PROCESS_SAMPLE for kind, _ in list_sink.records)


def test_configured_ceiling_caps_cpu_percent(fake_source, list_sink):
    """Test the recorder's history uses the configured CPU ceiling."""
    recorder = ProcRecorder(list_sink, fake_source, SamplerConfig(cpu_percent_ceiling=50.0))

    fake_source.set(1, cpu_total=0, timestamp_ns=0)
    recorder.worker.tick()
    fake_source.set(1, cpu_total=100_000, timestamp_ns=SECOND)
    recorder.worker.tick()

    assert recorder.worker._history.ceiling == 50.0
    assert list_sink.records[-1][1].cpu_percent == 50.0


def test_independent_instances(fake_source, list_sink):
    """Test two recorders keep separate histories."""
    fake_source.set(1)
    first = ProcRecorder(list_sink, fake_source)
    second = ProcRecorder(None, fake_source)

    first.worker.tick()

    assert first.worker.history_size == 1
    assert second.worker.history_size == 0


@pytest.mark.skipif(not psutil.LINUX, reason="procfs is Linux only")
def test_live_recording(list_sink):
    """Test the default source records real processes."""
    recorder = ProcRecorder(list_sink)
    recorder.check()

    recorder.start(RecorderArguments(proc_interval=1_000 * MILLI))
    deadline = time.monotonic() + 5.0
    while not list_sink.records and time.monotonic() < deadline:
        time.sleep(0.05)
    recorder.stop()

    assert list_sink.records
    assert len(list_sink.records) <= SamplerConfig().max_detailed_pids * max(recorder.worker.tick_count, 1)
    for _, snapshot in list_sink.records:
        assert snapshot.pid > 0
        assert snapshot.name
        assert snapshot.cpu_percent >= 0.0
