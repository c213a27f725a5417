"""Capture sources, lifecycle controller and retry supervisor."""

from audio_spectrum.capture.controller import CaptureController, CaptureState
from audio_spectrum.capture.source import CaptureSource, StreamHandle
from audio_spectrum.capture.sources import SounddeviceCaptureSource, WavFileCaptureSource
from audio_spectrum.capture.supervisor import CaptureSupervisor, RetryPolicy

__all__ = [
    "CaptureController",
    "CaptureSource",
    "CaptureState",
    "CaptureSupervisor",
    "RetryPolicy",
    "SounddeviceCaptureSource",
    "StreamHandle",
    "WavFileCaptureSource",
]
