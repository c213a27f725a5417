"""Audio formats, mono downmix and frame buffering."""

from audio_spectrum.audio.config import AnalyzerConfig, BandTuning
from audio_spectrum.audio.downmix import Downmixer, downmix
from audio_spectrum.audio.format import RawBuffer, SampleFormat, SampleType
from audio_spectrum.audio.frames import FrameBuffer

__all__ = [
    "AnalyzerConfig",
    "BandTuning",
    "Downmixer",
    "FrameBuffer",
    "RawBuffer",
    "SampleFormat",
    "SampleType",
    "downmix",
]
