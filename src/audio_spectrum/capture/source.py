"""Capture source interface consumed by the lifecycle controller."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable

from audio_spectrum.audio.format import RawBuffer

# Called by the source on its own delivery thread, once per raw buffer
BufferSink = Callable[[RawBuffer], None]


class StreamHandle:
    """An acquired, running capture stream.

    Sources subclass this or attach their backend object as `stream`.
    """

    def __init__(self, source: "CaptureSource", stream: Any = None):
        self.source = source
        self.stream = stream
        self.released = False

    def __repr__(self) -> str:
        state = "released" if self.released else "running"
        return f"<{type(self).__name__} {state} from {type(self.source).__name__}>"


class CaptureSource(ABC):
    """Opens and closes audio streams that push buffers into a sink.

    `acquire` may block while the backend starts and raises `CaptureError`
    (or any exception) on failure. `release` stops a stream previously
    returned by `acquire`; releasing twice is harmless.
    """

    @abstractmethod
    def acquire(self, sink: BufferSink) -> StreamHandle:
        """Start capturing and deliver every buffer to `sink`."""

    @abstractmethod
    def release(self, handle: StreamHandle) -> None:
        """Stop the stream behind `handle`."""
