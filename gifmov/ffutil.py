"""FFmpeg/ffprobe subprocess helpers."""

import json
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

from gifmov.errors import EncoderSessionError
from gifmov.models import ProbeResult


class FFmpegNotFoundError(EncoderSessionError):
    pass


@dataclass(frozen=True)
class CodecProfile:
    """Encoder arguments for one alpha-capable codec in a .mov container."""

    name: str
    encoder: str
    args: tuple[str, ...]


CODEC_PROFILES: dict[str, CodecProfile] = {
    "hevc_alpha": CodecProfile(
        name="hevc_alpha",
        encoder="hevc_videotoolbox",
        args=(
            "-c:v", "hevc_videotoolbox",
            "-alpha_quality", "1",
            "-pix_fmt", "bgra",
            "-tag:v", "hvc1",
        ),
    ),
    "prores_4444": CodecProfile(
        name="prores_4444",
        encoder="prores_ks",
        args=(
            "-c:v", "prores_ks",
            "-profile:v", "4444",
            "-pix_fmt", "yuva444p10le",
            "-alpha_bits", "16",
        ),
    ),
    "qtrle": CodecProfile(
        name="qtrle",
        encoder="qtrle",
        args=("-c:v", "qtrle", "-pix_fmt", "argb"),
    ),
}

CODEC_CHOICES = ("auto", *CODEC_PROFILES)


def resolve_codec(name: str = "auto", platform: str | None = None) -> CodecProfile:
    """Map a codec name to its profile; ``auto`` prefers HEVC on macOS."""
    if name == "auto":
        platform = platform or sys.platform
        name = "hevc_alpha" if platform == "darwin" else "prores_4444"
    try:
        return CODEC_PROFILES[name]
    except KeyError:
        raise ValueError(
            f"Unknown codec {name!r}; expected one of {', '.join(CODEC_CHOICES)}"
        ) from None


def check_ffmpeg() -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe are not on PATH."""
    for cmd in ("ffmpeg", "ffprobe"):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


def check_encoder(encoder: str) -> None:
    """Raise EncoderSessionError if this ffmpeg build lacks *encoder*."""
    cmd = ["ffmpeg", "-hide_banner", "-encoders"]
    result = subprocess.run(cmd, capture_output=True, text=True)

    available: set[str] = set()
    for line in result.stdout.splitlines():
        parts = line.split()
        if len(parts) >= 2:
            available.add(parts[1])

    if encoder not in available:
        raise EncoderSessionError(f"ffmpeg encoder {encoder} is not available")


def probe(input_path: Path) -> ProbeResult:
    """Extract movie metadata via ffprobe."""
    cmd = [
        "ffprobe",
        "-v", "quiet",
        "-print_format", "json",
        "-count_frames",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    result = subprocess.run(cmd, capture_output=True, text=True, check=True)
    data = json.loads(result.stdout)

    video_stream = next(
        (s for s in data["streams"] if s["codec_type"] == "video"), None
    )
    if video_stream is None:
        raise ValueError(f"No video stream found in {input_path}")

    frame_count = video_stream.get("nb_read_frames") or video_stream.get("nb_frames", 0)

    return ProbeResult(
        duration=float(data["format"].get("duration", 0.0)),
        width=int(video_stream["width"]),
        height=int(video_stream["height"]),
        codec_video=video_stream["codec_name"],
        frame_count=int(frame_count),
    )


def format_seconds(ticks: int, timescale: int) -> str:
    return f"{ticks / timescale:.6f}"


def build_concat_script(
    entries: list[tuple[str, int]], last_duration_ticks: int, timescale: int
) -> str:
    """Build an ffconcat script from ``(filename, pts_ticks)`` pairs.

    Each frame lasts until the next frame's timestamp; the last frame keeps
    *last_duration_ticks*. The last file is listed twice because the concat
    demuxer ignores the duration of the final entry.
    """
    if not entries:
        raise ValueError("build_concat_script called with no entries")

    lines = ["ffconcat version 1.0"]
    for i, (filename, ticks) in enumerate(entries):
        if i + 1 < len(entries):
            duration = entries[i + 1][1] - ticks
        else:
            duration = last_duration_ticks
        lines.append(f"file '{filename}'")
        lines.append(f"duration {format_seconds(duration, timescale)}")
    lines.append(f"file '{entries[-1][0]}'")
    return "\n".join(lines) + "\n"


def encode_concat(
    script_path: Path,
    output_path: Path,
    codec: CodecProfile,
    timescale: int,
) -> None:
    """Encode the frames listed in *script_path* into a .mov file."""
    cmd = [
        "ffmpeg", "-y",
        "-f", "concat",
        "-safe", "0",
        "-i", str(script_path),
        "-fps_mode", "vfr",
        *codec.args,
        "-video_track_timescale", str(timescale),
        "-an",
        "-f", "mov",
        str(output_path),
    ]
    subprocess.run(cmd, capture_output=True, check=True)
