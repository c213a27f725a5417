"""Concrete capture sources: live input via sounddevice, WAV file replay."""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Iterator, Optional, Tuple, Union

import numpy as np

try:
    import sounddevice as sd
except (ImportError, OSError):
    sd = None  # type: ignore

from audio_spectrum.audio.format import RawBuffer
from audio_spectrum.capture.source import BufferSink, CaptureSource, StreamHandle
from audio_spectrum.errors import CaptureUnavailableError

logger = logging.getLogger(__name__)


class SounddeviceCaptureSource(CaptureSource):
    """Captures an input device (or a loopback/monitor device) as float32 blocks."""

    def __init__(
        self,
        device: Optional[Union[int, str]] = None,
        channels: int = 2,
        sample_rate: Optional[float] = None,
        blocksize: int = 0,
    ):
        self.device = device
        self.channels = channels
        self.sample_rate = sample_rate
        self.blocksize = blocksize

    def _resolve_sample_rate(self) -> float:
        if self.sample_rate is not None:
            return float(self.sample_rate)
        info = sd.query_devices(self.device, "input")
        return float(info["default_samplerate"])

    def acquire(self, sink: BufferSink) -> StreamHandle:
        """Open and start an input stream whose callback feeds `sink`.

        Raises:
            CaptureUnavailableError: sounddevice/PortAudio is missing, or the
                device cannot be opened.
        """
        if sd is None:
            raise CaptureUnavailableError("sounddevice is required for live capture. pip install sounddevice")

        try:
            sample_rate = self._resolve_sample_rate()

            def callback(indata: np.ndarray, _frames: int, _time: object, status: object) -> None:
                if status:
                    logger.debug("Input stream status: %s", status)
                sink(RawBuffer.interleaved(indata, sample_rate))

            stream = sd.InputStream(
                samplerate=sample_rate,
                channels=self.channels,
                dtype="float32",
                blocksize=self.blocksize,
                device=self.device,
                callback=callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as exc:
            raise CaptureUnavailableError(f"Cannot open input device {self.device!r}: {exc}") from exc

        logger.info("Opened input stream on device %r at %.0f Hz", self.device, sample_rate)
        return StreamHandle(self, stream)

    def release(self, handle: StreamHandle) -> None:
        if handle.released:
            return
        handle.released = True
        handle.stream.stop()
        handle.stream.close()
        logger.info("Closed input stream on device %r", self.device)


def read_wav(path: Union[str, Path]) -> Tuple[int, np.ndarray]:
    """Read a WAV file as (sample_rate, (frames, channels) array).

    Raises:
        CaptureUnavailableError: the file is missing or not a readable WAV.
    """
    import scipy.io.wavfile as wavfile

    try:
        rate, data = wavfile.read(str(path))
    except (OSError, ValueError) as exc:
        raise CaptureUnavailableError(f"Cannot read {path}: {exc}") from exc
    if data.ndim == 1:
        data = data.reshape(-1, 1)
    return rate, data


def wav_blocks(data: np.ndarray, sample_rate: float, block_frames: int = 1024) -> Iterator[RawBuffer]:
    """Slice a (frames, channels) array into interleaved raw buffers."""
    for start in range(0, data.shape[0], block_frames):
        yield RawBuffer.interleaved(data[start : start + block_frames], sample_rate)


class _WavReplay(StreamHandle):
    def __init__(self, source: "WavFileCaptureSource", sink: BufferSink, rate: int, data: np.ndarray):
        super().__init__(source)
        self.finished = threading.Event()
        self._stop = threading.Event()
        self._sink = sink
        self._rate = rate
        self._data = data
        self.stream = threading.Thread(target=self._run, name="wav-capture", daemon=True)

    def _run(self) -> None:
        source = self.source
        interval = source.block_frames / self._rate
        next_time = time.monotonic()
        try:
            for buffer in wav_blocks(self._data, self._rate, source.block_frames):
                if self._stop.is_set():
                    return
                self._sink(buffer)
                if source.realtime:
                    next_time += interval
                    delay = next_time - time.monotonic()
                    if delay > 0 and self._stop.wait(delay):
                        return
        finally:
            self.finished.set()

    def stop(self) -> None:
        self._stop.set()
        if self.stream is not threading.current_thread():
            self.stream.join()


class WavFileCaptureSource(CaptureSource):
    """Replays a WAV file as if it were a live stream.

    Blocks are delivered from a background thread, paced at real time
    unless `realtime=False`. Samples are passed on in the file's own
    format; formats other than float32/int16 reach the downmixer as
    unsupported and are dropped there.
    """

    def __init__(self, path: Union[str, Path], block_frames: int = 1024, realtime: bool = True):
        if block_frames < 1:
            raise ValueError("block_frames must be >= 1")
        self.path = Path(path)
        self.block_frames = block_frames
        self.realtime = realtime

    def acquire(self, sink: BufferSink) -> StreamHandle:
        rate, data = read_wav(self.path)
        handle = _WavReplay(self, sink, rate, data)
        handle.stream.start()
        logger.info(
            "Replaying %s (%d frames, %d ch, %d Hz, %s)",
            self.path, data.shape[0], data.shape[1], rate, data.dtype,
        )
        return handle

    def release(self, handle: StreamHandle) -> None:
        if handle.released:
            return
        handle.released = True
        handle.stop()
