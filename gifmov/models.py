"""Shared data types used across GifMov."""

from dataclasses import dataclass
from fractions import Fraction
from pathlib import Path


@dataclass(frozen=True)
class OutputSize:
    """Normalized output dimensions, computed once per conversion."""

    width: float
    height: float

    @property
    def pixel_size(self) -> tuple[int, int]:
        """Integer raster dimensions used for every encoded frame."""
        return max(1, round(self.width)), max(1, round(self.height))


@dataclass(frozen=True)
class FrameTiming:
    """Display duration and presentation timestamp of one source frame."""

    index: int
    duration_seconds: float
    presentation_timestamp: Fraction
    timescale: int = 600

    @property
    def ticks(self) -> int:
        return int(self.presentation_timestamp * self.timescale)

    @property
    def duration_ticks(self) -> int:
        return round(self.duration_seconds * self.timescale)


@dataclass
class ConversionResult:
    """Product of a successful conversion; the file belongs to the caller."""

    output_size: OutputSize
    output_location: Path
    frames_encoded: int = 0
    frames_skipped: int = 0


@dataclass
class ProbeResult:
    """Metadata extracted from a written movie via ffprobe."""

    duration: float
    width: int
    height: int
    codec_video: str
    frame_count: int
