"""FFT band analysis."""

from audio_spectrum.analyzer.spectrum import SpectrumAnalyzer, band_edges, smooth_bands

__all__ = ["SpectrumAnalyzer", "band_edges", "smooth_bands"]
