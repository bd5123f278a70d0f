"""Tests for the GIF frame source."""

import io
import random
from unittest.mock import MagicMock, PropertyMock, patch

import pytest
from PIL import Image

from gifmov.errors import FrameDecodeError, SourceError
from gifmov.readers.gif import MIN_FRAME_DURATION, GifSource


def _mock_source(info: dict, n_frames: int = 1) -> GifSource:
    image = MagicMock(n_frames=n_frames, info=info)
    return GifSource(image)


class TestOpen:
    def test_frame_count(self, gif_factory):
        with GifSource.open(gif_factory([100, 200, 300, 400])) as source:
            assert source.frame_count == 4

    def test_empty_buffer(self):
        with pytest.raises(SourceError, match="no frames"):
            GifSource.open(b"")

    def test_garbage_buffer(self):
        with pytest.raises(SourceError, match="no frames"):
            GifSource.open(b"definitely not an image")

    @patch("gifmov.readers.gif.Image.open")
    def test_zero_frames(self, mock_open):
        image = MagicMock(n_frames=0, format="GIF")
        mock_open.return_value = image
        with pytest.raises(SourceError, match="no frames"):
            GifSource.open(b"GIF89a")
        image.close.assert_called_once()

    def test_other_image_format_rejected(self):
        buf = io.BytesIO()
        Image.new("RGBA", (8, 8), (0, 0, 0, 0)).save(buf, format="PNG")
        with pytest.raises(SourceError, match="PNG data is not a GIF"):
            GifSource.open(buf.getvalue())

    @patch("gifmov.readers.gif.Image.open")
    def test_frame_count_failure_closes_image(self, mock_open):
        image = MagicMock(format="GIF")
        type(image).n_frames = PropertyMock(side_effect=OSError("image file is truncated"))
        mock_open.return_value = image
        with pytest.raises(SourceError, match="truncated"):
            GifSource.open(b"GIF89a")
        image.close.assert_called_once()


class TestDecodeFrame:
    def test_returns_rgba_canvas(self, gif_factory):
        with GifSource.open(gif_factory([100, 100], size=(40, 20))) as source:
            raster = source.decode_frame(1)
            assert raster.mode == "RGBA"
            assert raster.size == (40, 20)

    def test_preserves_transparency(self, gif_factory):
        data = gif_factory([100], size=(40, 20), transparent=True)
        with GifSource.open(data) as source:
            raster = source.decode_frame(0)
            assert raster.getpixel((0, 0))[3] == 0
            assert raster.getpixel((39, 0))[3] == 255

    def test_out_of_range(self, gif_factory):
        with GifSource.open(gif_factory([100, 100])) as source:
            with pytest.raises(FrameDecodeError) as exc_info:
                source.decode_frame(2)
            assert exc_info.value.index == 2

    def test_truncated_data(self):
        noise = Image.frombytes("P", (64, 64), random.Random(0).randbytes(64 * 64))
        noise.putpalette(list(range(256)) * 3)
        buf = io.BytesIO()
        noise.save(buf, format="GIF")
        data = buf.getvalue()

        with pytest.raises((FrameDecodeError, SourceError)):
            source = GifSource.open(data[: len(data) * 7 // 10])
            for i in range(source.frame_count):
                source.decode_frame(i)


class TestRawDuration:
    def test_reads_per_frame_delay(self, gif_factory):
        with GifSource.open(gif_factory([200, 500, 300])) as source:
            assert source.raw_duration(0) == pytest.approx(0.2)
            assert source.raw_duration(1) == pytest.approx(0.5)
            assert source.raw_duration(2) == pytest.approx(0.3)

    def test_short_delays_floored(self, gif_factory):
        with GifSource.open(gif_factory([50] * 10)) as source:
            for i in range(source.frame_count):
                assert source.raw_duration(i) == MIN_FRAME_DURATION

    def test_zero_delay_uses_clamped_value(self, gif_factory):
        data = gif_factory([0, 0], transparent=True)
        with GifSource.open(data) as source:
            assert source.raw_duration(0) == pytest.approx(0.1)

    def test_missing_delay_defaults(self):
        source = _mock_source(info={})
        assert source.unclamped_delay(0) is None
        assert source.clamped_delay(0) is None
        assert source.raw_duration(0) == MIN_FRAME_DURATION

    def test_clamped_delay_legacy_rule(self):
        assert _mock_source(info={"duration": 10}).clamped_delay(0) == pytest.approx(0.1)
        assert _mock_source(info={"duration": 30}).clamped_delay(0) == pytest.approx(0.03)

    def test_long_delay_kept(self):
        assert _mock_source(info={"duration": 1500}).raw_duration(0) == pytest.approx(1.5)
