"""Sample path: raw buffer -> mono downmix -> overlapping frames -> band vectors.

One `SpectrumPipeline` is one "analyzer generation": its frame buffer and
analyzer are sized for a single config (band count, FFT size, sample rate).
A sizing change replaces the whole pipeline; tunables are forwarded in place.
"""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional

import numpy as np

from audio_spectrum.analyzer.spectrum import SpectrumAnalyzer
from audio_spectrum.audio.config import AnalyzerConfig, BandTuning
from audio_spectrum.audio.downmix import Downmixer
from audio_spectrum.audio.format import RawBuffer
from audio_spectrum.audio.frames import FrameBuffer

BandsCallback = Callable[[np.ndarray], None]


class SpectrumPipeline:
    """Runs downmix -> frame buffer -> analyzer for one analyzer generation.

    Components are injected so tests can replace any stage.

    Interface:
      pipeline = SpectrumPipeline(AnalyzerConfig(sample_rate=48_000))
      for bands in pipeline.process(raw_buffer):
          render(bands)
    """

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        generation: int = 0,
        downmixer: Optional[Downmixer] = None,
        frame_buffer: Optional[FrameBuffer] = None,
        analyzer: Optional[SpectrumAnalyzer] = None,
    ):
        self.config = config or AnalyzerConfig()
        self.generation = generation
        self.downmixer = downmixer or Downmixer()
        self.frame_buffer = frame_buffer or FrameBuffer(self.config.fft_size, self.config.hop_size)
        self.analyzer = analyzer or SpectrumAnalyzer(self.config)

    @property
    def band_count(self) -> int:
        return self.config.band_count

    @property
    def sample_rate(self) -> float:
        return self.config.sample_rate

    def matches(self, config: AnalyzerConfig, generation: int) -> bool:
        """True if this pipeline can serve `config` without being rebuilt."""
        return (
            self.generation == generation
            and self.config.band_count == config.band_count
            and self.config.fft_size == config.fft_size
            and self.config.sample_rate == config.sample_rate
        )

    def apply_tuning(self, tuning: BandTuning) -> None:
        """Swap threshold/smoothing in place (no rebuild)."""
        if self.analyzer.tuning != tuning:
            self.analyzer.tuning = tuning

    def feed_mono(self, samples: np.ndarray) -> List[np.ndarray]:
        """Feed mono samples; return one band vector per completed frame."""
        return [self.analyzer.analyze(frame) for frame in self.frame_buffer.feed(samples)]

    def process(self, buffer: RawBuffer) -> List[np.ndarray]:
        """Downmix one raw buffer and analyze every frame it completes.

        Buffers that cannot be downmixed are dropped; the frame cursor is
        unaffected apart from losing their samples.
        """
        if buffer.frame_count <= 0 or not buffer.data_ready:
            return []
        mono = self.downmixer(buffer)
        if mono is None:
            return []
        return self.feed_mono(mono)

    def reset(self) -> None:
        """Discard buffered samples (analyzer state is stateless across frames)."""
        self.frame_buffer.reset()

    def run(
        self,
        buffers: Iterable[RawBuffer],
        on_bands: Optional[BandsCallback] = None,
    ) -> int:
        """Process buffers until the iterator is exhausted.

        Returns:
            Number of band vectors emitted.
        """
        on_bands = on_bands or (lambda bands: None)
        emitted = 0
        for buffer in buffers:
            for bands in self.process(buffer):
                on_bands(bands)
                emitted += 1
        return emitted

    def run_for_n_updates(
        self,
        n: int,
        buffers: Iterable[RawBuffer],
    ) -> List[np.ndarray]:
        """Process buffers until n band vectors were produced; used for tests."""
        vectors: List[np.ndarray] = []
        for buffer in buffers:
            if len(vectors) >= n:
                break
            vectors.extend(self.process(buffer))
        return vectors[:n]
