"""Test doubles: deterministic executor, scriptable capture source, manual timers."""

from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import Callable, List, Optional

import numpy as np

from audio_spectrum.audio.format import RawBuffer
from audio_spectrum.capture.source import BufferSink, CaptureSource, StreamHandle
from audio_spectrum.errors import CapturePermissionError


class ManualExecutor:
    """Executor whose tasks run only when the test says so."""

    def __init__(self) -> None:
        self.pending: List[tuple] = []

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        future: Future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run(self, index: int = 0) -> Future:
        future, fn, args, kwargs = self.pending.pop(index)
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:  # surfaced through the future
            future.set_exception(exc)
        return future

    def run_all(self) -> None:
        while self.pending:
            self.run()

    def shutdown(self, wait: bool = True) -> None:
        self.run_all()


class FakeSource(CaptureSource):
    """Capture source that fails a scripted number of times, then succeeds."""

    def __init__(self, failures: int = 0, error: Optional[Exception] = None):
        self.failures = failures
        self.error = error or CapturePermissionError("screen recording not allowed")
        self.acquired: List[StreamHandle] = []
        self.released: List[StreamHandle] = []
        self.sinks: List[BufferSink] = []
        # Delivered from inside acquire(), before it returns
        self.early_buffers: List[RawBuffer] = []
        self._lock = threading.Lock()

    def acquire(self, sink: BufferSink) -> StreamHandle:
        with self._lock:
            if self.failures > 0:
                self.failures -= 1
                raise self.error
            handle = StreamHandle(self)
            self.acquired.append(handle)
            self.sinks.append(sink)
        for buffer in self.early_buffers:
            sink(buffer)
        return handle

    def release(self, handle: StreamHandle) -> None:
        with self._lock:
            handle.released = True
            self.released.append(handle)

    def push(self, buffer: RawBuffer, sink_index: int = -1) -> None:
        self.sinks[sink_index](buffer)

    @property
    def open_streams(self) -> int:
        return len(self.acquired) - len(self.released)


class FakeTimer:
    """Stands in for threading.Timer; fire() runs the callback."""

    def __init__(self, delay: float, function: Callable[[], None]):
        self.delay = delay
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.function()


class TimerRecorder:
    """timer_factory that keeps every timer it creates."""

    def __init__(self) -> None:
        self.timers: List[FakeTimer] = []

    def __call__(self, delay: float, function: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(delay, function)
        self.timers.append(timer)
        return timer


def tone_buffers(
    freq: float,
    sample_rate: float,
    total_frames: int,
    block_frames: int = 480,
    channels: int = 2,
    amplitude: float = 0.5,
) -> List[RawBuffer]:
    """Interleaved float32 buffers carrying a sine tone."""
    t = np.arange(total_frames) / sample_rate
    mono = (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)
    frames = np.repeat(mono[:, None], channels, axis=1)
    return [
        RawBuffer.interleaved(frames[start : start + block_frames], sample_rate)
        for start in range(0, total_frames, block_frames)
    ]
