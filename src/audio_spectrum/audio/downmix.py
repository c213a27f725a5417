"""Mono downmix: float32/int16, interleaved/planar, any channel count -> mono float32."""

import logging
from typing import Optional

import numpy as np

from audio_spectrum.audio.format import RawBuffer, SampleType

logger = logging.getLogger(__name__)

INT16_SCALE = 1.0 / 32767.0


def _as_samples(data, dtype: np.dtype, count: int) -> Optional[np.ndarray]:
    """View `count` samples of `data`, or None if it holds fewer."""
    if isinstance(data, np.ndarray):
        # memoryview needs a C-contiguous buffer
        data = np.ascontiguousarray(data)
    raw = memoryview(data).cast("B")
    usable = len(raw) - len(raw) % dtype.itemsize
    samples = np.frombuffer(raw[:usable], dtype=dtype)
    if samples.size < count:
        return None
    return samples[:count]


def downmix(buffer: RawBuffer) -> Optional[np.ndarray]:
    """Average all channels of a raw buffer into one float32 channel.

    Args:
        buffer: Raw buffer with its per-buffer format.

    Returns:
        Mono float32 array of length `buffer.frame_count`, or None when the
        buffer cannot be downmixed (no channel data, unsupported sample type,
        short data). None means "drop this buffer", never an error.
    """
    fmt = buffer.format
    dtype = fmt.sample_type.dtype
    if dtype is None:
        logger.debug("Dropping buffer with unsupported sample type %s", fmt.sample_type)
        return None

    channel_data = [c for c in buffer.channel_data if c is not None]
    if not channel_data:
        logger.debug("Dropping buffer without channel data")
        return None

    frame_count = buffer.frame_count
    scale = INT16_SCALE if fmt.sample_type is SampleType.INT16 else 1.0

    if fmt.interleaved:
        channels = max(1, fmt.channels)
        samples = _as_samples(channel_data[0], dtype, frame_count * channels)
        if samples is None:
            logger.debug("Dropping short interleaved buffer (%d frames x %d ch)", frame_count, channels)
            return None
        frames = samples.reshape(frame_count, channels).astype(np.float32)
        if scale != 1.0:
            frames *= np.float32(scale)
        return frames.sum(axis=1, dtype=np.float32) / np.float32(channels)

    mono = np.zeros(frame_count, dtype=np.float32)
    inspected = 0
    for data in channel_data:
        samples = _as_samples(data, dtype, frame_count)
        if samples is None:
            logger.debug("Dropping planar buffer with a short channel (%d frames)", frame_count)
            return None
        if scale != 1.0:
            mono += samples.astype(np.float32) * np.float32(scale)
        else:
            mono += samples
        inspected += 1
    mono /= np.float32(max(1, inspected))
    return mono


class Downmixer:
    """Converts raw capture buffers into mono sample blocks."""

    def __init__(self) -> None:
        self.dropped = 0

    def __call__(self, buffer: RawBuffer) -> Optional[np.ndarray]:
        mono = downmix(buffer)
        if mono is None:
            self.dropped += 1
        return mono
