"""Raw buffer -> band vector pipeline."""

from audio_spectrum.pipeline.spectrum_pipeline import SpectrumPipeline

__all__ = ["SpectrumPipeline"]
