"""Capture lifecycle: start/stop with generation tags, sample path into the spectrum pipeline.

Two contexts touch the controller:
- control: start(), stop(), update_settings() and the executor threads that
  acquire/release streams. A lock guards generation, state and stream here.
- sample: the capture source's delivery thread calling on_sample_buffer().
  It never takes the lock; it reads the published config snapshot and the
  current generation as plain references.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from enum import Enum
from typing import Callable, Optional

import numpy as np

from audio_spectrum.audio.config import AnalyzerConfig
from audio_spectrum.audio.format import RawBuffer
from audio_spectrum.capture.source import CaptureSource, StreamHandle
from audio_spectrum.errors import CapturePermissionError
from audio_spectrum.pipeline.spectrum_pipeline import SpectrumPipeline

logger = logging.getLogger(__name__)

BandsCallback = Callable[[np.ndarray], None]
ErrorCallback = Callable[[str], None]

PERMISSION_HINT = "Allow this application to capture audio in the system privacy settings."


class CaptureState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"


def describe_failure(exc: BaseException) -> str:
    """User-facing message for a failed start."""
    detail = str(exc) or type(exc).__name__
    if isinstance(exc, CapturePermissionError):
        return f"Audio capture is not authorized.\n{PERMISSION_HINT}\nDetails: {detail}"
    return f"Audio capture failed to start.\nDetails: {detail}"


class CaptureController:
    """Owns one capture source and turns its buffers into band vectors.

    Every start() and stop() bumps a generation counter. An acquisition only
    takes effect if its generation is still current when it completes;
    otherwise the stream it opened is released right away.

    Interface:
      controller = CaptureController(source, on_bands=render, on_error=report)
      controller.start()                  # returns a Future, or None if already running
      controller.update_settings(64, 0.1, True, 3)
      controller.stop()
    """

    def __init__(
        self,
        source: CaptureSource,
        config: Optional[AnalyzerConfig] = None,
        on_bands: Optional[BandsCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_state_change: Optional[Callable[[CaptureState], None]] = None,
        executor: Optional[Executor] = None,
    ):
        self.source = source
        self.on_bands = on_bands or (lambda bands: None)
        self.on_error = on_error or (lambda message: None)
        self.on_state_change = on_state_change

        self._config = config or AnalyzerConfig()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(thread_name_prefix="capture-control")
        self._lock = threading.Lock()
        self._generation = 0
        self._starting = False
        self._stream: Optional[StreamHandle] = None
        self._closed = False
        # Sample-context state; replaced wholesale, never mutated from control
        self._pipeline: Optional[SpectrumPipeline] = None

    # -- state -------------------------------------------------------------

    @property
    def config(self) -> AnalyzerConfig:
        """Currently published config snapshot."""
        return self._config

    @property
    def stream(self) -> Optional[StreamHandle]:
        """Adopted stream handle while ACTIVE."""
        return self._stream

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def state(self) -> CaptureState:
        if self._stream is not None:
            return CaptureState.ACTIVE
        if self._starting:
            return CaptureState.STARTING
        return CaptureState.IDLE

    @property
    def is_active(self) -> bool:
        """True while starting or capturing."""
        return self._starting or self._stream is not None

    def _notify_state(self, state: CaptureState) -> None:
        if self.on_state_change is None:
            return
        try:
            self.on_state_change(state)
        except Exception:
            logger.exception("State change callback failed")

    # -- control context ---------------------------------------------------

    def start(self) -> Optional[Future]:
        """Begin acquiring a stream unless one is starting or running.

        Returns:
            Future of the acquisition attempt, or None if this call was a no-op
            (already starting or running, or the controller was shut down).

        Raises:
            RuntimeError: the executor no longer accepts work. The controller
                is back in IDLE when this propagates.
        """
        with self._lock:
            if self._closed:
                logger.debug("Ignoring start() after shutdown")
                return None
            if self._starting or self._stream is not None:
                return None
            self._generation += 1
            generation = self._generation
            self._starting = True
        logger.info("Starting capture (generation %d)", generation)
        self._notify_state(CaptureState.STARTING)
        try:
            return self._executor.submit(self._acquire, generation)
        except RuntimeError:
            with self._lock:
                current = generation == self._generation
                if current:
                    self._starting = False
            if current:
                self._notify_state(CaptureState.IDLE)
            raise

    def _acquire(self, generation: int) -> None:
        def sink(buffer: RawBuffer) -> None:
            if generation == self._generation:
                self.on_sample_buffer(buffer)

        try:
            handle = self.source.acquire(sink)
        except Exception as exc:
            with self._lock:
                current = generation == self._generation
                if current:
                    self._starting = False
            if not current:
                logger.debug("Discarding stale capture failure (generation %d): %s", generation, exc)
                return
            logger.warning("Capture failed to start (generation %d): %s", generation, exc)
            self._notify_state(CaptureState.IDLE)
            try:
                self.on_error(describe_failure(exc))
            except Exception:
                logger.exception("Error callback failed")
            return

        with self._lock:
            adopted = generation == self._generation
            if adopted:
                self._stream = handle
                self._starting = False
        if not adopted:
            logger.debug("Releasing stream from superseded start (generation %d)", generation)
            self._release(handle)
            return
        logger.info("Capture active (generation %d)", generation)
        self._notify_state(CaptureState.ACTIVE)

    def stop(self) -> Optional[Future]:
        """Stop capturing. Always legal; returns the teardown future if a stream was running.

        The controller reads as idle as soon as this returns; the stream is
        released in the background.
        """
        with self._lock:
            self._generation += 1
            was_active = self._starting or self._stream is not None
            self._starting = False
            handle = self._stream
            self._stream = None
            self._pipeline = None
        if was_active:
            logger.info("Stopped capture (generation %d)", self._generation)
            self._notify_state(CaptureState.IDLE)
        if handle is None:
            return None
        return self._executor.submit(self._release, handle)

    def _release(self, handle: StreamHandle) -> None:
        try:
            self.source.release(handle)
        except Exception:
            logger.exception("Failed to release capture stream %r", handle)

    def update_settings(
        self,
        band_count: int,
        threshold: float,
        frequency_smoothing_enabled: bool,
        frequency_smoothing_radius: int,
    ) -> AnalyzerConfig:
        """Publish new analyzer settings.

        A band count change makes the sample path rebuild its pipeline (and
        restart frame accumulation) on the next buffer; the other settings
        are applied to the running analyzer in place.
        """
        config = self._config.with_settings(
            band_count,
            threshold,
            frequency_smoothing_enabled,
            frequency_smoothing_radius,
        )
        if config.band_count != self._config.band_count:
            logger.info("Band count %d -> %d", self._config.band_count, config.band_count)
        self._config = config
        return config

    def shutdown(self) -> None:
        """Stop capturing for good and wait for pending acquisitions/teardowns.

        Later start() calls are no-ops.
        """
        with self._lock:
            self._closed = True
        self.stop()
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    # -- sample context ----------------------------------------------------

    def _pipeline_for(self, config: AnalyzerConfig, generation: int) -> SpectrumPipeline:
        pipeline = self._pipeline
        if pipeline is None or not pipeline.matches(config, generation):
            pipeline = SpectrumPipeline(config, generation=generation)
            self._pipeline = pipeline
            logger.debug(
                "Built analyzer: %d bands, fft %d, %.0f Hz",
                config.band_count, config.fft_size, config.sample_rate,
            )
        else:
            pipeline.apply_tuning(config.tuning)
        return pipeline

    def on_sample_buffer(self, buffer: RawBuffer) -> None:
        """Process one raw buffer from the capture source.

        Buffers are processed while STARTING as well as ACTIVE, since a
        source may deliver before its acquisition returns. Drops the buffer
        while idle, when it has no frames, or when its data is not ready.
        The analyzer is built lazily from the first usable buffer, since the
        sample rate is only known once data arrives.
        """
        if not self.is_active:
            return
        if buffer.frame_count <= 0 or not buffer.data_ready or buffer.format.sample_rate <= 0:
            return

        generation = self._generation
        config = self._config.with_sample_rate(buffer.format.sample_rate)
        pipeline = self._pipeline_for(config, generation)

        for bands in pipeline.process(buffer):
            # Settings or capture changed under us; later vectors would be stale
            if self._config.band_count != pipeline.band_count or self._generation != generation:
                break
            try:
                self.on_bands(bands)
            except Exception:
                logger.exception("Bands callback failed")
