"""Orchestrator — converts one GIF into an alpha-preserving movie."""

import asyncio
import logging
import tempfile
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

from gifmov import ffutil
from gifmov.editors.geometry import MAX_IMAGE_SIZE, compute_output_size, normalize
from gifmov.errors import FrameNormalizeError, SourceError
from gifmov.manifest import Manifest
from gifmov.models import ConversionResult, OutputSize
from gifmov.readers.gif import GifSource
from gifmov.sink import FFmpegSink, VideoSink
from gifmov.timeline import Timeline, TimingPolicy

logger = logging.getLogger(__name__)


class ConversionState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SIZE_COMPUTED = "size_computed"
    ENCODING = "encoding"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


def temporary_output_path() -> Path:
    return Path(tempfile.gettempdir()) / f"{uuid.uuid4()}.mov"


class GifToMovConverter:
    """Single-use converter: one instance, one output location, one call.

    Args:
        output_path: Where the movie is written. Defaults to a fresh file in
            the system temporary directory.
        timing_policy: How frame delays become presentation timestamps.
        codec: Codec profile name used when no *sink* is given.
        sink: Video sink to drive; defaults to an FFmpegSink.
        on_progress: Optional callback(stage_name, fraction_complete).
    """

    def __init__(
        self,
        output_path: Path | None = None,
        timing_policy: TimingPolicy = TimingPolicy.INDEX_TIMES_DURATION,
        codec: str = "auto",
        sink: VideoSink | None = None,
        on_progress: Callable[[str, float], None] | None = None,
    ):
        self.output_path = Path(output_path) if output_path else temporary_output_path()
        self.timeline = Timeline(timing_policy)
        self.sink = sink if sink is not None else FFmpegSink(self.output_path, codec=codec)
        self.on_progress = on_progress
        self.state = ConversionState.IDLE
        self.current_frame = 0
        self.frame_count = 0

    def _progress(self, stage: str, frac: float) -> None:
        if self.on_progress:
            self.on_progress(stage, frac)

    async def convert(
        self, data: bytes, max_dimension: float = MAX_IMAGE_SIZE
    ) -> ConversionResult:
        """Convert GIF *data* into a movie whose longer edge is capped.

        Raises a ConversionError subclass on failure; in that case no
        output file is left behind.
        """
        if self.state is not ConversionState.IDLE:
            raise RuntimeError("GifToMovConverter instances convert exactly once")

        self.state = ConversionState.VALIDATING
        try:
            result = await self._run(data, max_dimension)
        except (Exception, asyncio.CancelledError):
            self.state = ConversionState.FAILED
            await self.sink.abort()
            raise

        self.state = ConversionState.DONE
        self._progress("Done", 1.0)
        return result

    async def _run(self, data: bytes, max_dimension: float) -> ConversionResult:
        self._progress("Reading GIF", 0.0)
        with GifSource.open(data) as source:
            self.frame_count = source.frame_count
            if self.frame_count <= 0:
                raise SourceError("no frames in GIF")

            size = await self._compute_size(source, max_dimension)
            self.state = ConversionState.SIZE_COMPUTED

            await self.sink.open(size)
            self.sink.begin_session()

            self.state = ConversionState.ENCODING
            encoded, skipped = await self._encode_frames(source, size)

        self.state = ConversionState.FINALIZING
        self._progress("Finalizing movie", 0.9)
        output_location = await self.sink.finish()

        return ConversionResult(
            output_size=size,
            output_location=output_location,
            frames_encoded=encoded,
            frames_skipped=skipped,
        )

    async def _compute_size(self, source: GifSource, max_dimension: float) -> OutputSize:
        first = await asyncio.to_thread(source.decode_frame, 0)
        width, height = first.size
        first.close()
        if width <= 0 or height <= 0:
            raise SourceError(f"first frame has no extent ({width}x{height})")

        size = compute_output_size(width, height, max_dimension)
        logger.info(
            "Output size %.1fx%.1f from native %dx%d (cap %s)",
            size.width, size.height, width, height, max_dimension,
        )
        return size

    async def _encode_frames(self, source: GifSource, size: OutputSize) -> tuple[int, int]:
        encoded = skipped = 0

        for i in range(self.frame_count):
            self.current_frame = i
            self._progress(
                f"Encoding frame {i + 1}/{self.frame_count}",
                0.05 + 0.85 * i / self.frame_count,
            )

            raster = await asyncio.to_thread(source.decode_frame, i)
            try:
                frame = await asyncio.to_thread(normalize, raster, size)
            except FrameNormalizeError as e:
                logger.warning("Skipping frame %d: %s", i, e.reason)
                skipped += 1
                continue
            finally:
                raster.close()

            duration = await asyncio.to_thread(source.raw_duration, i)
            timing = self.timeline.timing_for(i, duration)

            if await self.sink.append(frame, timing):
                encoded += 1
            else:
                skipped += 1
            frame.close()

        return encoded, skipped


@dataclass
class EngineResult:
    output_path: Path
    width: float = 0.0
    height: float = 0.0
    frames_encoded: int = 0
    frames_skipped: int = 0
    duration: float = 0.0


def process(
    manifest: Manifest,
    on_progress: Callable[[str, float], None] | None = None,
) -> EngineResult:
    """Run one conversion described by *manifest* and verify the movie.

    Args:
        manifest: Validated conversion manifest.
        on_progress: Optional callback(stage_name, fraction_complete).
    """
    data = manifest.input.read_bytes()

    converter = GifToMovConverter(
        output_path=manifest.output,
        timing_policy=TimingPolicy(manifest.timing_policy),
        codec=manifest.codec,
        on_progress=on_progress,
    )
    result = asyncio.run(converter.convert(data, manifest.max_dimension))

    final_probe = ffutil.probe(result.output_location)

    return EngineResult(
        output_path=result.output_location,
        width=result.output_size.width,
        height=result.output_size.height,
        frames_encoded=result.frames_encoded,
        frames_skipped=result.frames_skipped,
        duration=final_probe.duration,
    )
