"""Conversion error taxonomy.

Fatal errors abort the conversion and reach the caller. Frame-level errors
(normalize, pixel acquisition) are absorbed by the orchestrator or the sink
and only reduce the number of encoded frames.
"""


class ConversionError(Exception):
    """Base class; ``reason`` is a human-readable description."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class SourceError(ConversionError):
    """The input buffer is not a readable multi-frame image, or is empty."""
    pass


class FrameDecodeError(ConversionError):
    def __init__(self, index: int, reason: str = "frame decode failed"):
        super().__init__(f"{reason} (frame {index})")
        self.index = index


class FrameNormalizeError(ConversionError):
    """Scaling or cropping a decoded frame failed; the frame is skipped."""
    pass


class PixelAcquisitionError(ConversionError):
    """No output buffer could be produced for a frame; the frame is skipped."""
    pass


class EncoderSessionError(ConversionError):
    """The encoder session could not be opened or finalized."""
    pass
