"""Unit tests for the overlapping frame buffer."""

from __future__ import annotations

import unittest
from typing import List

import numpy as np

from audio_spectrum.audio.frames import FrameBuffer


def _feed_in_chunks(buffer: FrameBuffer, samples: np.ndarray, sizes: List[int]) -> List[np.ndarray]:
    frames: List[np.ndarray] = []
    start = 0
    i = 0
    while start < len(samples):
        size = sizes[i % len(sizes)]
        frames.extend(buffer.feed(samples[start : start + size]))
        start += size
        i += 1
    return frames


class TestFrameBuffer(unittest.TestCase):
    """Tests for FrameBuffer."""

    def test_no_frame_until_full(self) -> None:
        buffer = FrameBuffer(16)
        self.assertEqual(buffer.feed(np.zeros(15, dtype=np.float32)), [])
        frames = buffer.feed(np.zeros(1, dtype=np.float32))
        self.assertEqual(len(frames), 1)
        self.assertEqual(frames[0].shape, (16,))

    def test_half_overlap(self) -> None:
        """Consecutive frames advance by hop = frame_size / 2."""
        buffer = FrameBuffer(8)
        samples = np.arange(24, dtype=np.float32)
        frames = buffer.feed(samples)
        self.assertEqual(buffer.hop_size, 4)
        # Starts at 0, 4, 8, 12, 16
        self.assertEqual(len(frames), 5)
        for k, frame in enumerate(frames):
            np.testing.assert_array_equal(frame, samples[4 * k : 4 * k + 8])
        self.assertEqual(buffer.pending, 4)

    def test_chunking_does_not_change_frames(self) -> None:
        """One large block and many small blocks yield identical frames."""
        rng = np.random.default_rng(7)
        samples = rng.standard_normal(20_000).astype(np.float32)

        whole = FrameBuffer(1024).feed(samples)
        chunked = _feed_in_chunks(FrameBuffer(1024), samples, [1, 17, 480, 3000, 5])

        self.assertEqual(len(whole), len(chunked))
        self.assertEqual(len(whole), (20_000 - 1024) // 512 + 1)
        for a, b in zip(whole, chunked):
            np.testing.assert_array_equal(a, b)

    def test_compaction_keeps_stream_contiguous(self) -> None:
        """Frames stay contiguous across compaction of the consumed prefix."""
        buffer = FrameBuffer(4)
        samples = np.arange(200, dtype=np.float32)
        frames = _feed_in_chunks(buffer, samples, [3])
        starts = [int(f[0]) for f in frames]
        self.assertEqual(starts, list(range(0, 197, 2)))
        # Consumed prefix never grows beyond a few frames
        self.assertLessEqual(buffer._pending.size, 4 * 4 + 4 + 3)

    def test_frames_are_copies(self) -> None:
        buffer = FrameBuffer(4)
        frames = buffer.feed(np.ones(4, dtype=np.float32))
        frames[0][:] = 9
        more = buffer.feed(np.ones(2, dtype=np.float32))
        np.testing.assert_array_equal(more[0], np.ones(4))

    def test_reset(self) -> None:
        buffer = FrameBuffer(8)
        buffer.feed(np.zeros(12, dtype=np.float32))
        buffer.reset()
        self.assertEqual(buffer.pending, 0)
        self.assertEqual(buffer.frames_emitted, 0)
        self.assertEqual(buffer.feed(np.zeros(7, dtype=np.float32)), [])

    def test_invalid_sizes(self) -> None:
        with self.assertRaises(ValueError):
            FrameBuffer(0)
        with self.assertRaises(ValueError):
            FrameBuffer(8, hop_size=9)


if __name__ == "__main__":
    unittest.main()
