"""Geometry normalizer — capped output size, cover-fit scale and center crop."""

from PIL import Image

from gifmov.errors import FrameNormalizeError
from gifmov.models import OutputSize

# Longer output edge, in pixels, when no cap is configured.
MAX_IMAGE_SIZE = 1024.0


def compute_output_size(
    native_width: float, native_height: float, max_dimension: float = MAX_IMAGE_SIZE
) -> OutputSize:
    """Cap the longer edge at *max_dimension*, preserving the aspect ratio.

    The longer native edge maps to ``min(max_dimension, longer_edge)``, so
    sources smaller than the cap are never upscaled.
    """
    if native_width <= 0 or native_height <= 0:
        raise ValueError(
            f"native size must be positive, got {native_width}x{native_height}"
        )
    if max_dimension <= 0:
        raise ValueError(f"max_dimension must be positive, got {max_dimension}")

    m = min(max_dimension, max(native_width, native_height))
    ratio = native_width / native_height

    if native_height >= native_width:
        return OutputSize(width=m * ratio, height=m)
    return OutputSize(width=m, height=m / ratio)


def cover_scale(raster_size: tuple[int, int], target: OutputSize) -> float:
    """Uniform scale factor that makes *raster_size* fully cover *target*."""
    width, height = raster_size
    return max(target.width / width, target.height / height)


def normalize(raster: Image.Image, target: OutputSize) -> Image.Image:
    """Scale *raster* to cover *target*, then center-crop to its pixel size."""
    width, height = raster.size
    if width <= 0 or height <= 0:
        raise FrameNormalizeError(f"cannot scale a {width}x{height} raster")

    target_width, target_height = target.pixel_size
    scale = cover_scale(raster.size, target)

    # Rounding must never leave the scaled raster smaller than the target.
    scaled_width = max(target_width, round(width * scale))
    scaled_height = max(target_height, round(height * scale))

    try:
        scaled = raster.resize(
            (scaled_width, scaled_height), Image.Resampling.LANCZOS
        )
    except (ValueError, OSError) as e:
        raise FrameNormalizeError(f"resampling failed: {e}") from e

    if scaled.width == 0 or scaled.height == 0:
        raise FrameNormalizeError("resampling produced an empty raster")

    left = (scaled_width - target_width) // 2
    top = (scaled_height - target_height) // 2
    return scaled.crop((left, top, left + target_width, top + target_height))
