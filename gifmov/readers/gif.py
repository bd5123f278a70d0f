"""GIF frame source — frame count, per-frame decode and delay lookup."""

import io
import logging

from PIL import Image, UnidentifiedImageError

from gifmov.errors import FrameDecodeError, SourceError

logger = logging.getLogger(__name__)

# Frames shorter than this are shown for this long instead.
MIN_FRAME_DURATION = 0.1

# Browsers (and most GIF decoders) read delays of 10 ms or less as 100 ms.
LEGACY_CLAMP_THRESHOLD = 0.01
LEGACY_CLAMPED_DELAY = 0.1


class GifSource:
    """Read-only view over an encoded GIF held in memory.

    Frames are decoded lazily; Pillow composites each frame onto the
    logical screen so every raster has the full canvas size.
    """

    def __init__(self, image: Image.Image):
        self._image = image
        self.frame_count: int = getattr(image, "n_frames", 1)

    @classmethod
    def open(cls, data: bytes) -> "GifSource":
        """Open *data*, raising SourceError if it holds no frames."""
        if not data:
            raise SourceError("no frames")
        try:
            image = Image.open(io.BytesIO(data))
        except (UnidentifiedImageError, OSError) as e:
            raise SourceError(f"no frames: {e}") from e

        if image.format != "GIF":
            image.close()
            raise SourceError(f"no frames: {image.format} data is not a GIF")
        try:
            # Counting frames walks the whole file, so truncation shows up here.
            source = cls(image)
        except (OSError, EOFError) as e:
            image.close()
            raise SourceError(f"no frames: {e}") from e

        if source.frame_count <= 0:
            source.close()
            raise SourceError("no frames")
        logger.debug(
            "Opened %s source: %d frames, %dx%d",
            image.format, source.frame_count, image.width, image.height,
        )
        return source

    def __enter__(self) -> "GifSource":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._image.close()

    def _seek(self, index: int) -> None:
        if not 0 <= index < self.frame_count:
            raise FrameDecodeError(index, "frame index out of range")
        try:
            self._image.seek(index)
        except (EOFError, OSError, ValueError) as e:
            raise FrameDecodeError(index, f"frame decode failed: {e}") from e

    def decode_frame(self, index: int) -> Image.Image:
        """Return frame *index* as an independent RGBA raster."""
        self._seek(index)
        try:
            return self._image.convert("RGBA")
        except (OSError, ValueError, SyntaxError) as e:
            raise FrameDecodeError(index, f"frame decode failed: {e}") from e

    def unclamped_delay(self, index: int) -> float | None:
        """Delay stored in the frame's graphic control extension, in seconds."""
        self._seek(index)
        duration_ms = self._image.info.get("duration")
        if duration_ms is None:
            return None
        return duration_ms / 1000.0

    def clamped_delay(self, index: int) -> float | None:
        """Legacy delay: very short delays read as 100 ms."""
        delay = self.unclamped_delay(index)
        if delay is None:
            return None
        if delay <= LEGACY_CLAMP_THRESHOLD:
            return LEGACY_CLAMPED_DELAY
        return delay

    def raw_duration(self, index: int) -> float:
        """Display duration of frame *index* in seconds, at least 0.1 s."""
        delay = self.unclamped_delay(index)
        if not delay:
            delay = self.clamped_delay(index)
        if delay is None:
            delay = MIN_FRAME_DURATION
        return max(delay, MIN_FRAME_DURATION)
