"""Shared test fixtures."""

import io
from pathlib import Path

import pytest
from PIL import Image

from gifmov.models import FrameTiming, OutputSize

# 16-entry palette; index 0 doubles as the transparent color.
PALETTE = [
    0, 0, 0,  255, 0, 0,  0, 255, 0,  0, 0, 255,
    255, 255, 0,  0, 255, 255,  255, 0, 255,  255, 255, 255,
    128, 0, 0,  0, 128, 0,  0, 0, 128,  128, 128, 0,
    0, 128, 128,  128, 0, 128,  128, 128, 128,  64, 64, 64,
]


def make_gif(
    durations_ms: list[int],
    size: tuple[int, int] = (64, 32),
    transparent: bool = False,
) -> bytes:
    """Encode one distinctly colored frame per entry of *durations_ms*.

    With *transparent*, the left half of every frame uses the transparent
    palette index.
    """
    frames = []
    for i in range(len(durations_ms)):
        frame = Image.new("P", size, color=i % 15 + 1)
        frame.putpalette(PALETTE)
        if transparent:
            frame.paste(0, (0, 0, size[0] // 2, size[1]))
        frames.append(frame)

    kwargs = {"transparency": 0} if transparent else {}
    buf = io.BytesIO()
    frames[0].save(
        buf,
        format="GIF",
        save_all=True,
        append_images=frames[1:],
        duration=list(durations_ms),
        loop=0,
        disposal=2,
        optimize=False,
        **kwargs,
    )
    return buf.getvalue()


class RecordingSink:
    """In-memory VideoSink that records what the orchestrator sends it."""

    def __init__(self, output_path: Path, reject: set[int] | None = None):
        self.output_path = output_path
        self.reject = reject or set()
        self.size: OutputSize | None = None
        self.started = False
        self.finished = False
        self.aborted = False
        self.frame_sizes: list[tuple[int, int]] = []
        self.timings: list[FrameTiming] = []

    async def open(self, size: OutputSize) -> None:
        self.size = size

    def begin_session(self) -> None:
        self.started = True

    async def append(self, frame: Image.Image, timing: FrameTiming) -> bool:
        if timing.index in self.reject:
            return False
        self.frame_sizes.append(frame.size)
        self.timings.append(timing)
        return True

    async def finish(self) -> Path:
        self.finished = True
        self.output_path.write_bytes(b"movie")
        return self.output_path

    async def abort(self) -> None:
        self.aborted = True


@pytest.fixture
def gif_bytes() -> bytes:
    return make_gif([100, 100, 100])


@pytest.fixture
def recording_sink(tmp_path: Path) -> RecordingSink:
    return RecordingSink(tmp_path / "out.mov")


@pytest.fixture
def gif_factory():
    return make_gif


@pytest.fixture
def sink_factory(tmp_path: Path):
    def factory(reject: set[int] | None = None) -> RecordingSink:
        return RecordingSink(tmp_path / "out.mov", reject=reject)
    return factory
