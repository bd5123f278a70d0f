"""Video sink — one encoder session writing normalized frames to a movie."""

import asyncio
import logging
import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from PIL import Image

from gifmov import ffutil
from gifmov.errors import EncoderSessionError, PixelAcquisitionError
from gifmov.models import FrameTiming, OutputSize

logger = logging.getLogger(__name__)

MIN_BUFFER_COUNT = 3


class VideoSink(Protocol):
    """Capability interface the orchestrator drives.

    Any backend able to write alpha-channel compressed video can implement
    it without touching the orchestrator.
    """

    async def open(self, size: OutputSize) -> None: ...

    def begin_session(self) -> None: ...

    async def append(self, frame: Image.Image, timing: FrameTiming) -> bool: ...

    async def finish(self) -> Path: ...

    async def abort(self) -> None: ...


class FramePool:
    """Fixed number of frame buffers shared by in-flight writes.

    ``acquire`` waits until a buffer is released, which bounds memory to
    ``capacity`` frames.
    """

    def __init__(self, size: tuple[int, int], capacity: int = MIN_BUFFER_COUNT):
        self.size = size
        self.capacity = max(capacity, MIN_BUFFER_COUNT)
        self._free = self.capacity
        self._closed = False
        self._cond = asyncio.Condition()

    @property
    def in_flight(self) -> int:
        return self.capacity - self._free

    async def acquire(self, frame: Image.Image) -> Image.Image:
        """Wait for a free buffer and fill it with *frame*."""
        if frame.size != self.size:
            raise PixelAcquisitionError(
                f"frame is {frame.size[0]}x{frame.size[1]}, "
                f"pool buffers are {self.size[0]}x{self.size[1]}"
            )
        async with self._cond:
            await self._cond.wait_for(lambda: self._free > 0 or self._closed)
            if self._closed:
                raise PixelAcquisitionError("buffer pool is closed")
            self._free -= 1
        return frame.convert("RGBA") if frame.mode != "RGBA" else frame.copy()

    async def release(self) -> None:
        async with self._cond:
            self._free += 1
            self._cond.notify()

    async def close(self) -> None:
        async with self._cond:
            self._closed = True
            self._cond.notify_all()


@dataclass
class StagedFrame:
    filename: str
    timing: FrameTiming


class FFmpegSink:
    """Stages frames as PNGs and encodes them with one ffmpeg call on finish.

    Timestamps are carried through an ffconcat script, so the movie keeps
    the exact variable-rate timeline. The output path only appears once the
    encode has fully succeeded.
    """

    def __init__(self, output_path: Path, codec: str = "auto"):
        self.output_path = Path(output_path)
        self.codec = ffutil.resolve_codec(codec)
        self.size: OutputSize | None = None
        self._staging_dir: Path | None = None
        self._pool: FramePool | None = None
        self._staged: list[StagedFrame] = []
        self._writes: list[asyncio.Task] = []
        self._started = False
        self._finished = False

    @property
    def partial_path(self) -> Path:
        return self.output_path.with_name(
            f"{self.output_path.stem}.partial{self.output_path.suffix}"
        )

    async def open(self, size: OutputSize) -> None:
        if self._pool is not None:
            raise EncoderSessionError("sink session is already open")

        # Probing ffmpeg spawns processes; keep it off the event loop.
        await asyncio.to_thread(ffutil.check_ffmpeg)
        await asyncio.to_thread(ffutil.check_encoder, self.codec.encoder)

        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            staging = await asyncio.to_thread(tempfile.mkdtemp, prefix="gifmov_")
            self._staging_dir = Path(staging)
        except OSError as e:
            raise EncoderSessionError(f"cannot create staging area: {e}") from e

        self.size = size
        self._pool = FramePool(size.pixel_size)
        logger.info(
            "Opened %s session at %dx%d -> %s",
            self.codec.name, *size.pixel_size, self.output_path,
        )

    def begin_session(self) -> None:
        if self._pool is None:
            raise EncoderSessionError("begin_session called before open")
        self._started = True

    async def append(self, frame: Image.Image, timing: FrameTiming) -> bool:
        """Queue *frame* at *timing*; returns False if the frame was skipped."""
        if not self._started or self._finished:
            raise EncoderSessionError("append called outside an active session")

        if self._staged and timing.ticks <= self._staged[-1].timing.ticks:
            logger.warning(
                "Skipping frame %d: timestamp %s does not advance past %s",
                timing.index,
                timing.presentation_timestamp,
                self._staged[-1].timing.presentation_timestamp,
            )
            return False

        try:
            buffer = await self._pool.acquire(frame)
        except PixelAcquisitionError as e:
            logger.warning("Skipping frame %d: %s", timing.index, e.reason)
            return False

        filename = f"frame_{len(self._staged):06d}.png"
        self._staged.append(StagedFrame(filename=filename, timing=timing))

        self._writes.append(
            asyncio.create_task(self._write(buffer, self._staging_dir / filename))
        )
        return True

    async def _write(self, buffer: Image.Image, path: Path) -> None:
        try:
            await asyncio.to_thread(buffer.save, path, "PNG")
        finally:
            buffer.close()
            await self._pool.release()

    async def finish(self) -> Path:
        """Flush staged frames, encode, and move the movie into place."""
        if not self._started:
            raise EncoderSessionError("finish called before begin_session")
        self._finished = True

        try:
            await asyncio.gather(*self._writes)
        except OSError as e:
            await self.abort()
            raise EncoderSessionError(f"failed to stage frame: {e}") from e

        if not self._staged:
            await self.abort()
            raise EncoderSessionError("no frames were appended")

        last = self._staged[-1].timing
        script = ffutil.build_concat_script(
            [(s.filename, s.timing.ticks) for s in self._staged],
            last_duration_ticks=last.duration_ticks,
            timescale=last.timescale,
        )
        script_path = self._staging_dir / "frames.ffconcat"
        script_path.write_text(script, encoding="utf-8")

        logger.debug("Encoding %d staged frames", len(self._staged))
        try:
            await asyncio.to_thread(
                ffutil.encode_concat,
                script_path,
                self.partial_path,
                self.codec,
                last.timescale,
            )
            os.replace(self.partial_path, self.output_path)
        except subprocess.CalledProcessError as e:
            await self.abort()
            stderr = e.stderr if isinstance(e.stderr, str) else (e.stderr or b"").decode(errors="replace")
            raise EncoderSessionError(
                f"ffmpeg failed: {stderr[-500:]}" if stderr else str(e)
            ) from e
        except OSError as e:
            await self.abort()
            raise EncoderSessionError(f"failed to write movie: {e}") from e

        self._cleanup()
        logger.info("Wrote %d frames to %s", len(self._staged), self.output_path)
        return self.output_path

    async def abort(self) -> None:
        """Tear down the session, leaving no staged or partial files behind."""
        if self._pool is not None:
            await self._pool.close()
        # In-flight PNG writes run in threads; let them land before cleanup.
        if self._writes:
            await asyncio.gather(*self._writes, return_exceptions=True)
        self.partial_path.unlink(missing_ok=True)
        self._cleanup()

    def _cleanup(self) -> None:
        if self._staging_dir is not None:
            shutil.rmtree(self._staging_dir, ignore_errors=True)
            self._staging_dir = None
