"""Centralized analyzer configuration.

Analysis standards:
- Frames: FFT 2048, 50% overlap (hop = fft_size / 2)
- Bands: 160 log-spaced bands between 40 Hz and min(16 kHz, Nyquist)
- Levels: -60 dB floor mapped to 0, 0 dB mapped to 1, gate/sensitivity from threshold
- Smoothing: triangular moving average across neighbouring bands
"""

from dataclasses import dataclass, replace

# Limits enforced on user-facing settings
MIN_BAND_COUNT = 12
MAX_BAND_COUNT = 480
MIN_THRESHOLD = -0.8
MAX_THRESHOLD = 0.5
MIN_SMOOTHING_RADIUS = 1
MAX_SMOOTHING_RADIUS = 8


def _clamp(value, low, high):
    return min(max(value, low), high)


@dataclass(frozen=True)
class BandTuning:
    """Analyzer parameters that may change without rebuilding the analyzer."""

    threshold: float = -0.33
    frequency_smoothing_enabled: bool = True
    frequency_smoothing_radius: int = 2

    def __post_init__(self) -> None:
        if not -1.0 <= self.threshold < 1.0:
            raise ValueError("threshold must be in [-1, 1)")
        if self.frequency_smoothing_radius < 1:
            raise ValueError("frequency_smoothing_radius must be >= 1")


@dataclass(frozen=True)
class AnalyzerConfig:
    """Spectrum analysis configuration.

    Instances are immutable; a settings change produces a new value that is
    published to the sample path as a single reference.
    """

    # Sizing (changing any of these rebuilds the analyzer)
    band_count: int = 160
    fft_size: int = 2048
    sample_rate: float = 48_000.0

    # Tunables (updated in place)
    threshold: float = -0.33
    frequency_smoothing_enabled: bool = True
    frequency_smoothing_radius: int = 2

    def __post_init__(self) -> None:
        if self.band_count < 1:
            raise ValueError("band_count must be >= 1")
        if self.fft_size < 2:
            raise ValueError("fft_size must be >= 2")
        if self.sample_rate <= 0:
            raise ValueError("sample_rate must be > 0")
        # BandTuning validates the tunables
        BandTuning(
            self.threshold,
            self.frequency_smoothing_enabled,
            self.frequency_smoothing_radius,
        )

    @property
    def hop_size(self) -> int:
        """Samples between consecutive analysis frames."""
        return self.fft_size // 2

    @property
    def frames_per_second(self) -> float:
        """Band vectors produced per second of steady input."""
        return self.sample_rate / self.hop_size

    @property
    def tuning(self) -> BandTuning:
        return BandTuning(
            threshold=self.threshold,
            frequency_smoothing_enabled=self.frequency_smoothing_enabled,
            frequency_smoothing_radius=self.frequency_smoothing_radius,
        )

    def with_sample_rate(self, sample_rate: float) -> "AnalyzerConfig":
        """Copy of this config for a stream running at `sample_rate`."""
        if sample_rate == self.sample_rate:
            return self
        return replace(self, sample_rate=float(sample_rate))

    def with_settings(
        self,
        band_count: int,
        threshold: float,
        frequency_smoothing_enabled: bool,
        frequency_smoothing_radius: int,
    ) -> "AnalyzerConfig":
        """Copy with user-facing settings applied (clamped to the allowed ranges)."""
        return replace(
            self,
            band_count=int(_clamp(band_count, MIN_BAND_COUNT, MAX_BAND_COUNT)),
            threshold=float(_clamp(threshold, MIN_THRESHOLD, MAX_THRESHOLD)),
            frequency_smoothing_enabled=bool(frequency_smoothing_enabled),
            frequency_smoothing_radius=int(
                _clamp(frequency_smoothing_radius, MIN_SMOOTHING_RADIUS, MAX_SMOOTHING_RADIUS)
            ),
        )

    @classmethod
    def from_settings(
        cls,
        band_count: int = 160,
        threshold: float = -0.33,
        frequency_smoothing_enabled: bool = True,
        frequency_smoothing_radius: int = 2,
        fft_size: int = 2048,
    ) -> "AnalyzerConfig":
        """Build a config from user-facing settings, clamping out-of-range values."""
        return cls(fft_size=fft_size).with_settings(
            band_count,
            threshold,
            frequency_smoothing_enabled,
            frequency_smoothing_radius,
        )
