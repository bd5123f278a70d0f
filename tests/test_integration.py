"""End-to-end conversions through a real ffmpeg binary."""

import asyncio
import shutil

import pytest

from gifmov import ffutil
from gifmov.engine import GifToMovConverter
from gifmov.timeline import TimingPolicy

pytestmark = pytest.mark.skipif(
    shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
    reason="ffmpeg/ffprobe not on PATH",
)


def _convert(tmp_path, data, name, **kwargs):
    converter = GifToMovConverter(output_path=tmp_path / name, codec="prores_4444", **kwargs)
    return asyncio.run(converter.convert(data, 32))


class TestRealEncode:
    def test_writes_alpha_movie(self, tmp_path, gif_factory):
        data = gif_factory([100] * 5, size=(64, 32), transparent=True)
        result = _convert(tmp_path, data, "sticker.mov")

        assert result.output_location.exists()
        info = ffutil.probe(result.output_location)
        assert (info.width, info.height) == (32, 16)
        assert info.codec_video == "prores"
        assert info.frame_count >= 5
        assert info.duration == pytest.approx(0.5, abs=0.1)
        assert not list(tmp_path.glob("*.partial.mov"))

    def test_idempotent(self, tmp_path, gif_factory):
        data = gif_factory([100, 300, 200], size=(48, 48))
        first = _convert(tmp_path, data, "a.mov", timing_policy=TimingPolicy.CUMULATIVE_SUM)
        second = _convert(tmp_path, data, "b.mov", timing_policy=TimingPolicy.CUMULATIVE_SUM)

        assert first.output_size == second.output_size
        probe_a = ffutil.probe(first.output_location)
        probe_b = ffutil.probe(second.output_location)
        assert probe_a.frame_count == probe_b.frame_count
        assert probe_a.duration == pytest.approx(0.6, abs=0.1)
