"""Timeline builder — presentation timestamps from per-frame durations."""

from enum import Enum
from fractions import Fraction

from gifmov.models import FrameTiming
from gifmov.readers.gif import MIN_FRAME_DURATION

# Units per second of every presentation timestamp.
TIMESCALE = 600


class TimingPolicy(str, Enum):
    """How frame durations become presentation timestamps.

    ``INDEX_TIMES_DURATION`` multiplies the frame's own duration by its
    index. It is the reference-compatible default but is only
    monotonic when all delays are equal. ``CUMULATIVE_SUM`` places each
    frame at the sum of the durations before it.
    """

    INDEX_TIMES_DURATION = "index_times_duration"
    CUMULATIVE_SUM = "cumulative_sum"


class Timeline:
    def __init__(
        self,
        policy: TimingPolicy = TimingPolicy.INDEX_TIMES_DURATION,
        timescale: int = TIMESCALE,
    ):
        self.policy = TimingPolicy(policy)
        self.timescale = timescale
        self._elapsed_ticks = 0

    def _to_ticks(self, seconds: float) -> int:
        return round(seconds * self.timescale)

    def timing_for(self, index: int, duration_seconds: float) -> FrameTiming:
        """Return the timing of frame *index*; call in frame order."""
        duration = max(duration_seconds, MIN_FRAME_DURATION)

        if self.policy is TimingPolicy.CUMULATIVE_SUM:
            ticks = self._elapsed_ticks
            self._elapsed_ticks += self._to_ticks(duration)
        else:
            ticks = self._to_ticks(duration * index)

        return FrameTiming(
            index=index,
            duration_seconds=duration,
            presentation_timestamp=Fraction(ticks, self.timescale),
            timescale=self.timescale,
        )
