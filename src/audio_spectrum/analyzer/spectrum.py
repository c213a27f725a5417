"""Spectrum analysis: Hann window, FFT magnitudes, log-spaced bands, dB, gate, smoothing."""

import logging
from typing import Optional

import numpy as np
from scipy.fft import rfft
from scipy.signal import get_window

from audio_spectrum.audio.config import AnalyzerConfig, BandTuning

logger = logging.getLogger(__name__)

MIN_FREQUENCY = 40.0
MAX_FREQUENCY = 16_000.0
DB_FLOOR = -60.0
MAGNITUDE_EPSILON = 1e-6
PERCEPTUAL_EXPONENT = 0.7
RMS_FALLBACK_GAIN = 10.0


def _is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def band_edges(band_count: int, sample_rate: float) -> np.ndarray:
    """Log-spaced band edge frequencies in Hz, shape (band_count + 1,)."""
    max_freq = min(MAX_FREQUENCY, sample_rate / 2)
    ratio = max_freq / MIN_FREQUENCY
    return MIN_FREQUENCY * ratio ** (np.arange(band_count + 1) / band_count)


def band_bin_ranges(band_count: int, sample_rate: float, bin_count: int) -> np.ndarray:
    """Half-open FFT bin range [low, high) per band, shape (band_count, 2).

    Bands whose range is empty produce 0.
    """
    nyquist = sample_rate / 2
    edges = band_edges(band_count, sample_rate)
    # Round half up, as the bins are non-negative
    bins = np.floor(edges / nyquist * bin_count + 0.5).astype(np.int64)
    bins = np.clip(bins, 0, bin_count)
    return np.stack([bins[:-1], bins[1:]], axis=1)


def smooth_bands(bands: np.ndarray, radius: int) -> np.ndarray:
    """Triangular-weighted moving average across neighbouring bands.

    A neighbour at distance d weighs (radius - d + 1). Edge bands use the
    truncated window; there is no wraparound.
    """
    bands = np.asarray(bands, dtype=np.float64)
    n = bands.size
    if n <= 1:
        return bands.copy()
    radius = min(max(1, radius), n - 1)

    total = np.zeros(n, dtype=np.float64)
    weight = np.zeros(n, dtype=np.float64)
    for offset in range(-radius, radius + 1):
        w = float(radius - abs(offset) + 1)
        # Output indices i whose neighbour i + offset lies inside the vector
        lo = max(0, -offset)
        hi = min(n, n - offset)
        total[lo:hi] += w * bands[lo + offset : hi + offset]
        weight[lo:hi] += w
    return total / weight


class SpectrumAnalyzer:
    """Turns one analysis frame into a normalized band vector.

    Sizing (band count, FFT size, sample rate) is fixed at construction:
    the window and band table are built for it. Tunables (threshold and
    smoothing) live in a single `BandTuning` reference that may be swapped
    at any time; each call to `analyze` reads it once.

    Interface:
      analyzer = SpectrumAnalyzer(AnalyzerConfig(band_count=64, sample_rate=44_100))
      bands = analyzer.analyze(frame)      # frame: fft_size samples
      analyzer.tuning = BandTuning(threshold=0.2)
    """

    def __init__(self, config: Optional[AnalyzerConfig] = None):
        self.config = config or AnalyzerConfig()
        self.band_count = self.config.band_count
        self.fft_size = self.config.fft_size
        self.sample_rate = float(self.config.sample_rate)
        self.tuning: BandTuning = self.config.tuning

        self.bin_count = self.fft_size // 2
        self.fft_available = _is_power_of_two(self.fft_size)
        if self.fft_available:
            # Periodic Hann: the "denormalized" window, edges are not forced to zero
            self._window: Optional[np.ndarray] = get_window("hann", self.fft_size, fftbins=True)
            self._bins = band_bin_ranges(self.band_count, self.sample_rate, self.bin_count)
        else:
            logger.warning(
                "FFT size %d is not a power of two; falling back to RMS level estimate",
                self.fft_size,
            )
            self._window = None
            self._bins = np.zeros((self.band_count, 2), dtype=np.int64)

    @property
    def bin_ranges(self) -> np.ndarray:
        """Per-band [low, high) FFT bin ranges used by `band_levels`."""
        return self._bins.copy()

    def analyze(self, frame: np.ndarray) -> np.ndarray:
        """Compute the band vector for one frame.

        Args:
            frame: `fft_size` mono samples in [-1, 1].

        Returns:
            float32 array of `band_count` values in [0, 1].
        """
        frame = np.asarray(frame, dtype=np.float64).reshape(-1)
        if frame.size != self.fft_size:
            raise ValueError(f"Expected frame of {self.fft_size} samples, got {frame.size}")
        tuning = self.tuning

        if not self.fft_available:
            return self._rms_fallback(frame)

        magnitudes = np.abs(rfft(frame * self._window))[: self.bin_count]
        return self.band_levels(magnitudes, tuning)

    def _rms_fallback(self, frame: np.ndarray) -> np.ndarray:
        rms = float(np.sqrt(np.mean(frame ** 2))) if frame.size else 0.0
        level = min(max(rms * RMS_FALLBACK_GAIN, 0.0), 1.0)
        return np.full(self.band_count, level, dtype=np.float32)

    def band_levels(self, magnitudes: np.ndarray, tuning: Optional[BandTuning] = None) -> np.ndarray:
        """Map `bin_count` FFT magnitudes to gated, curved band levels."""
        tuning = tuning or self.tuning
        levels = np.zeros(self.band_count, dtype=np.float64)
        for band, (low, high) in enumerate(self._bins):
            if high <= low:
                continue
            levels[band] = magnitudes[low:high].mean()
        valid = self._bins[:, 1] > self._bins[:, 0]

        db = 20.0 * np.log10(levels + MAGNITUDE_EPSILON)
        normalized = np.clip((db - DB_FLOOR) / -DB_FLOOR, 0.0, 1.0)

        levels = np.where(valid, gate_levels(normalized, tuning.threshold), 0.0)
        levels = levels ** PERCEPTUAL_EXPONENT

        if tuning.frequency_smoothing_enabled:
            levels = smooth_bands(levels, tuning.frequency_smoothing_radius)
        return np.clip(levels, 0.0, 1.0).astype(np.float32)


def gate_levels(normalized: np.ndarray, threshold: float) -> np.ndarray:
    """Apply sensitivity (threshold < 0) and the hard noise gate (threshold > 0)."""
    scale = max(0.0, 1.0 + threshold) if threshold < 0 else 1.0
    adjusted = normalized * scale
    gate = max(0.0, threshold)
    if gate <= 0:
        return adjusted
    return np.where(adjusted <= gate, 0.0, (adjusted - gate) / (1.0 - gate))
