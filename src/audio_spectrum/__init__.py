"""Real-time audio spectrum - downmix, frame buffering, band analysis, capture lifecycle."""

from audio_spectrum.audio.config import AnalyzerConfig
from audio_spectrum.capture.controller import CaptureController, CaptureState

__all__ = ["AnalyzerConfig", "CaptureController", "CaptureState"]
