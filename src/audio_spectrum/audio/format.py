"""Sample format descriptors and raw buffers delivered by capture sources."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

import numpy as np

BufferLike = Union[bytes, bytearray, memoryview, np.ndarray]


class SampleType(Enum):
    """Element type of a raw sample buffer."""

    FLOAT32 = "f32"
    INT16 = "s16"
    UNSUPPORTED = "unsupported"

    @property
    def dtype(self) -> Optional[np.dtype]:
        if self is SampleType.FLOAT32:
            return np.dtype(np.float32)
        if self is SampleType.INT16:
            return np.dtype(np.int16)
        return None


@dataclass(frozen=True)
class SampleFormat:
    """Describes one raw buffer: rate, channel layout and element type.

    Supplied per buffer by the capture source. It may change between
    buffers (device change), so consumers must not cache it.
    """

    sample_rate: float
    channels: int
    sample_type: SampleType = SampleType.FLOAT32
    interleaved: bool = True

    @classmethod
    def from_description(
        cls,
        sample_rate: float,
        channels: int,
        is_float: bool,
        bits_per_sample: int,
        interleaved: bool = True,
    ) -> "SampleFormat":
        """Map a backend format description onto a supported sample type."""
        if is_float and bits_per_sample == 32:
            sample_type = SampleType.FLOAT32
        elif not is_float and bits_per_sample == 16:
            sample_type = SampleType.INT16
        else:
            sample_type = SampleType.UNSUPPORTED
        return cls(
            sample_rate=float(sample_rate),
            channels=int(channels),
            sample_type=sample_type,
            interleaved=interleaved,
        )


@dataclass(frozen=True)
class RawBuffer:
    """One block of raw samples as handed over by a capture source.

    `channel_data` holds a single entry for interleaved data, or one entry
    per channel for planar data. Planar sources may omit channels, and
    entries may be None when a channel carries no data.
    """

    format: SampleFormat
    frame_count: int
    channel_data: Tuple[Optional[BufferLike], ...]
    data_ready: bool = True

    @classmethod
    def interleaved(
        cls,
        samples: np.ndarray,
        sample_rate: float,
    ) -> "RawBuffer":
        """Wrap a (frames, channels) or (frames,) float32/int16 array."""
        samples = np.ascontiguousarray(samples)
        if samples.ndim == 1:
            samples = samples.reshape(-1, 1)
        if samples.dtype == np.int16:
            sample_type = SampleType.INT16
        elif samples.dtype == np.float32:
            sample_type = SampleType.FLOAT32
        else:
            sample_type = SampleType.UNSUPPORTED
        fmt = SampleFormat(
            sample_rate=float(sample_rate),
            channels=samples.shape[1],
            sample_type=sample_type,
            interleaved=True,
        )
        return cls(format=fmt, frame_count=samples.shape[0], channel_data=(samples.tobytes(),))

    @classmethod
    def planar(
        cls,
        channels: Sequence[Optional[np.ndarray]],
        sample_rate: float,
        sample_type: SampleType = SampleType.FLOAT32,
        declared_channels: Optional[int] = None,
    ) -> "RawBuffer":
        """Wrap one array per channel (None entries stand for empty channels)."""
        present = [c for c in channels if c is not None]
        frame_count = len(present[0]) if present else 0
        fmt = SampleFormat(
            sample_rate=float(sample_rate),
            channels=declared_channels if declared_channels is not None else len(channels),
            sample_type=sample_type,
            interleaved=False,
        )
        data = tuple(
            None if c is None else np.ascontiguousarray(c, dtype=sample_type.dtype).tobytes()
            for c in channels
        )
        return cls(format=fmt, frame_count=frame_count, channel_data=data)
