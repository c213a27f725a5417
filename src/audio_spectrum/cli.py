"""CLI: capture audio and print the band spectrum as a line of text bars."""

import argparse
import sys
import threading
import time
from pathlib import Path

import numpy as np

from audio_spectrum.audio.config import AnalyzerConfig
from audio_spectrum.capture.controller import CaptureController
from audio_spectrum.capture.sources import (
    SounddeviceCaptureSource,
    WavFileCaptureSource,
    read_wav,
    wav_blocks,
)
from audio_spectrum.capture.supervisor import CaptureSupervisor, RetryPolicy
from audio_spectrum.errors import CaptureError
from audio_spectrum.logging_config import setup_logging
from audio_spectrum.pipeline.spectrum_pipeline import SpectrumPipeline

BAR_GLYPHS = " ▁▂▃▄▅▆▇█"


def render_bars(bands: np.ndarray, width: int) -> str:
    """Collapse a band vector into `width` glyphs (max of each group)."""
    if bands.size == 0 or width < 1:
        return ""
    groups = np.array_split(bands, min(width, bands.size))
    levels = np.array([g.max() for g in groups])
    index = np.clip(np.rint(levels * (len(BAR_GLYPHS) - 1)), 0, len(BAR_GLYPHS) - 1).astype(int)
    return "".join(BAR_GLYPHS[i] for i in index)


def analyze_file(path: Path, config: AnalyzerConfig, on_bands, block_frames: int = 1024) -> int:
    """Run a WAV file through one pipeline as fast as possible.

    Returns:
        Number of band vectors produced.
    """
    rate, data = read_wav(path)
    pipeline = SpectrumPipeline(config.with_sample_rate(rate))
    return pipeline.run(wav_blocks(data, rate, block_frames), on_bands)


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Real-time audio spectrum as terminal bars")
    parser.add_argument(
        "--input",
        "-i",
        type=Path,
        default=None,
        help="Replay a WAV file instead of capturing an input device",
    )
    parser.add_argument(
        "--device",
        default=None,
        help="Input device index or name (list with --list-devices)",
    )
    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List available audio devices and exit",
    )
    parser.add_argument("--bands", type=int, default=160, help="Number of bands (12-480, default: 160)")
    parser.add_argument(
        "--threshold",
        type=float,
        default=-0.33,
        help="Sensitivity below 0, noise gate above 0 (-0.8 to 0.5, default: -0.33)",
    )
    parser.add_argument("--smoothing-radius", type=int, default=2, help="Band smoothing radius (1-8)")
    parser.add_argument("--no-smoothing", action="store_true", help="Disable band smoothing")
    parser.add_argument("--fft-size", type=int, default=2048, help="FFT size in samples (default: 2048)")
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds (default: until Ctrl+C or end of file)",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Analyze the --input file as fast as possible, one bar line per vector",
    )
    parser.add_argument("--width", type=int, default=80, help="Output width in characters")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    if args.list_devices:
        try:
            import sounddevice as sd
            print(sd.query_devices())
        except (ImportError, OSError):
            print("sounddevice not installed: pip install sounddevice", file=sys.stderr)
            sys.exit(1)
        return

    if args.offline and args.input is None:
        parser.error("--offline requires --input")

    config = AnalyzerConfig.from_settings(
        band_count=args.bands,
        threshold=args.threshold,
        frequency_smoothing_enabled=not args.no_smoothing,
        frequency_smoothing_radius=args.smoothing_radius,
        fft_size=args.fft_size,
    )

    if args.offline:
        try:
            count = analyze_file(args.input, config, lambda bands: print(render_bars(bands, args.width)))
        except CaptureError as exc:
            print(exc, file=sys.stderr)
            sys.exit(1)
        print(f"{count} band vectors", file=sys.stderr)
        return

    if args.input is not None:
        source = WavFileCaptureSource(args.input)
    else:
        device = int(args.device) if args.device is not None and args.device.isdigit() else args.device
        source = SounddeviceCaptureSource(device=device)

    done = threading.Event()

    def show(bands: np.ndarray) -> None:
        sys.stdout.write("\r" + render_bars(bands, args.width))
        sys.stdout.flush()

    def give_up(message: str) -> None:
        print(f"\n{message}", file=sys.stderr)
        done.set()

    controller = CaptureController(source, config=config, on_bands=show)
    supervisor = CaptureSupervisor(
        controller,
        policy=RetryPolicy(),
        on_error=lambda message: print(f"\n{message}", file=sys.stderr),
        on_give_up=give_up,
    )

    supervisor.start()
    deadline = None if args.duration is None else time.monotonic() + args.duration
    try:
        while not done.is_set():
            if deadline is not None and time.monotonic() >= deadline:
                break
            handle = controller.stream
            finished = getattr(handle, "finished", None)
            if finished is not None and finished.is_set():
                break
            done.wait(0.1)
    except KeyboardInterrupt:
        pass
    finally:
        supervisor.close()
        controller.shutdown()
        print()


if __name__ == "__main__":
    main()
