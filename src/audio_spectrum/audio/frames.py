"""Frame buffer: continuous mono stream -> overlapping fixed-length analysis frames."""

from typing import List, Optional

import numpy as np

# Consumed samples are dropped once the read cursor passes this many frames
COMPACT_AFTER_FRAMES = 4


class FrameBuffer:
    """Accumulates mono samples and slices them into 50%-overlapping frames.

    Frames depend only on the sample sequence, not on how it was chunked:
    feeding one large block or many small ones yields the same frames.
    """

    def __init__(self, frame_size: int, hop_size: Optional[int] = None, dtype: type = np.float32):
        if frame_size < 1:
            raise ValueError("frame_size must be >= 1")
        self.frame_size = frame_size
        self.hop_size = hop_size if hop_size is not None else max(1, frame_size // 2)
        if not 1 <= self.hop_size <= frame_size:
            raise ValueError("hop_size must be in [1, frame_size]")
        self.dtype = dtype
        self._pending = np.zeros(0, dtype=dtype)
        self._cursor = 0
        self.frames_emitted = 0

    def feed(self, samples: np.ndarray) -> List[np.ndarray]:
        """Append samples; return every complete frame now available, in order."""
        samples = np.asarray(samples, dtype=self.dtype).reshape(-1)
        if samples.size:
            self._pending = np.concatenate([self._pending, samples])

        frames: List[np.ndarray] = []
        while self._pending.size - self._cursor >= self.frame_size:
            start = self._cursor
            frames.append(self._pending[start : start + self.frame_size].copy())
            self._cursor += self.hop_size
            if self._cursor > self.frame_size * COMPACT_AFTER_FRAMES:
                self._pending = self._pending[self._cursor :].copy()
                self._cursor = 0
        self.frames_emitted += len(frames)
        return frames

    @property
    def pending(self) -> int:
        """Unconsumed samples past the read cursor."""
        return self._pending.size - self._cursor

    def reset(self) -> None:
        """Drop all buffered samples."""
        self._pending = np.zeros(0, dtype=self.dtype)
        self._cursor = 0
        self.frames_emitted = 0
