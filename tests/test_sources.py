"""Unit tests for the concrete capture sources."""

from __future__ import annotations

import tempfile
import unittest
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from unittest import mock

import numpy as np
from scipy.io import wavfile

from audio_spectrum.audio.format import SampleType
from audio_spectrum.capture.controller import CaptureController, CaptureState
from audio_spectrum.capture.sources import (
    SounddeviceCaptureSource,
    WavFileCaptureSource,
    read_wav,
    wav_blocks,
)
from audio_spectrum.errors import CaptureUnavailableError


def _write_wav(path: Path, seconds: float, rate: int = 48_000) -> int:
    frames = int(seconds * rate)
    t = np.arange(frames) / rate
    tone = (0.5 * np.sin(2 * np.pi * 440 * t) * 32767).astype(np.int16)
    wavfile.write(str(path), rate, np.stack([tone, tone], axis=1))
    return frames


class TestWavFileCaptureSource(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "tone.wav"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_replays_every_frame(self) -> None:
        frames = _write_wav(self.path, 0.25)
        source = WavFileCaptureSource(self.path, block_frames=1000, realtime=False)
        received = []
        handle = source.acquire(received.append)
        self.assertTrue(handle.finished.wait(5))
        source.release(handle)

        self.assertTrue(handle.released)
        self.assertEqual(sum(b.frame_count for b in received), frames)
        self.assertTrue(all(b.format.sample_type is SampleType.INT16 for b in received))
        self.assertTrue(all(b.format.channels == 2 for b in received))
        self.assertEqual(received[0].format.sample_rate, 48_000)

    def test_missing_file(self) -> None:
        source = WavFileCaptureSource(self.path / "missing.wav")
        with self.assertRaises(CaptureUnavailableError):
            source.acquire(lambda buffer: None)

    def test_invalid_block_size(self) -> None:
        with self.assertRaises(ValueError):
            WavFileCaptureSource(self.path, block_frames=0)

    def test_release_stops_replay(self) -> None:
        _write_wav(self.path, 5.0)
        source = WavFileCaptureSource(self.path, block_frames=480, realtime=True)
        handle = source.acquire(lambda buffer: None)
        source.release(handle)
        self.assertTrue(handle.finished.is_set())
        source.release(handle)

    def _run_through_controller(self, realtime: bool) -> list:
        bands = []
        executor = ThreadPoolExecutor(max_workers=1)
        source = WavFileCaptureSource(self.path, block_frames=1024, realtime=realtime)
        controller = CaptureController(source, on_bands=bands.append, executor=executor)
        try:
            controller.start().result(timeout=5)
            self.assertIs(controller.state, CaptureState.ACTIVE)
            self.assertTrue(controller.stream.finished.wait(5))
        finally:
            controller.shutdown()
            executor.shutdown(wait=True)
        return bands

    def test_fast_replay_through_controller_keeps_every_frame(self) -> None:
        """Blocks delivered before the stream is adopted are still analyzed."""
        frames = _write_wav(self.path, 1.0)
        for _ in range(3):
            bands = self._run_through_controller(realtime=False)
            self.assertEqual(len(bands), (frames - 2048) // 1024 + 1)
            self.assertTrue(all(len(b) == 160 for b in bands))

    def test_realtime_replay_through_controller(self) -> None:
        frames = _write_wav(self.path, 0.5)
        bands = self._run_through_controller(realtime=True)
        self.assertEqual(len(bands), (frames - 2048) // 1024 + 1)

    def test_read_wav_mono_and_blocks(self) -> None:
        rate = 16_000
        wavfile.write(str(self.path), rate, np.zeros(2500, dtype=np.float32))
        read_rate, data = read_wav(self.path)
        self.assertEqual(read_rate, rate)
        self.assertEqual(data.shape, (2500, 1))
        blocks = list(wav_blocks(data, read_rate, 1000))
        self.assertEqual([b.frame_count for b in blocks], [1000, 1000, 500])
        self.assertTrue(all(b.format.sample_type is SampleType.FLOAT32 for b in blocks))


class TestSounddeviceCaptureSource(unittest.TestCase):
    def _fake_sd(self) -> mock.MagicMock:
        fake = mock.MagicMock()
        fake.PortAudioError = RuntimeError
        fake.query_devices.return_value = {"default_samplerate": 44_100.0}
        return fake

    def test_missing_backend(self) -> None:
        with mock.patch("audio_spectrum.capture.sources.sd", None):
            with self.assertRaises(CaptureUnavailableError):
                SounddeviceCaptureSource().acquire(lambda buffer: None)

    def test_callback_feeds_sink(self) -> None:
        fake = self._fake_sd()
        received = []
        with mock.patch("audio_spectrum.capture.sources.sd", fake):
            source = SounddeviceCaptureSource(device=3, channels=2)
            handle = source.acquire(received.append)

            kwargs = fake.InputStream.call_args.kwargs
            self.assertEqual(kwargs["samplerate"], 44_100.0)
            self.assertEqual(kwargs["device"], 3)
            kwargs["callback"](np.zeros((256, 2), dtype=np.float32), 256, None, None)

            source.release(handle)
            source.release(handle)

        self.assertEqual(len(received), 1)
        self.assertEqual(received[0].frame_count, 256)
        self.assertEqual(received[0].format.sample_rate, 44_100.0)
        stream = fake.InputStream.return_value
        stream.start.assert_called_once()
        stream.stop.assert_called_once()
        stream.close.assert_called_once()

    def test_open_failure_is_unavailable(self) -> None:
        fake = self._fake_sd()
        fake.InputStream.side_effect = ValueError("no such device")
        with mock.patch("audio_spectrum.capture.sources.sd", fake):
            with self.assertRaises(CaptureUnavailableError):
                SounddeviceCaptureSource(device="nope", sample_rate=48_000).acquire(lambda buffer: None)
        fake.query_devices.assert_not_called()


if __name__ == "__main__":
    unittest.main()
