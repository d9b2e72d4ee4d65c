"""
Duration Allocator - Decides how long each slide stays on screen.

Crossfades overlap the tail of one slide with the head of the next; they do
not add time. For n slides and transition duration T the video plays for
``sum(durations) - T * (n - 1)`` seconds, and that must match the audio
within ALLOCATION_TOLERANCE seconds.
"""

import logging
from typing import List, Optional, Sequence

from slidecast.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ALLOCATION_TOLERANCE = 0.1


def presentation_time(durations: Sequence[float], transition_duration: float) -> float:
    """Total playback time of slides joined by overlapping transitions"""
    if not durations:
        return 0.0
    return sum(durations) - transition_duration * (len(durations) - 1)


class DurationAllocator:
    """
    Allocates per-slide durations against an audio track.

    Slides are scaled by (audio + overlap) / raw so that playback time minus
    the crossfade overlap equals the audio; see "Scaling formula" under
    "Open questions and decisions" in DESIGN.md.

    Example:
        >>> allocator = DurationAllocator()
        >>> allocator.allocate([None, None, None], audio_duration=8.0, transition_duration=1.0)
        [3.3333333333333335, 3.3333333333333335, 3.3333333333333335]
    """

    def __init__(self, tolerance: float = ALLOCATION_TOLERANCE):
        self.tolerance = tolerance

    def allocate(
        self,
        explicit_durations: Sequence[Optional[float]],
        audio_duration: float,
        transition_duration: float,
    ) -> List[float]:
        """
        Compute the final duration of every slide.

        Args:
            explicit_durations: Per-slide duration override, or None for "unset"
            audio_duration: Audio length in seconds
            transition_duration: Crossfade length in seconds

        Returns:
            Final per-slide durations, in slide order

        Raises:
            ConfigurationError: For empty input, a non-positive audio duration,
                a negative transition, or transitions that consume all slide time
        """
        count = len(explicit_durations)
        if count == 0:
            raise ConfigurationError("Cannot allocate durations for zero slides")
        if audio_duration <= 0:
            raise ConfigurationError(f"Audio duration must be positive, got {audio_duration}")
        if transition_duration < 0:
            raise ConfigurationError(
                f"Transition duration must not be negative, got {transition_duration}",
                key="transition_duration",
            )

        if count == 1:
            logger.debug(f"Single slide: duration = audio duration ({audio_duration:.3f}s)")
            return [audio_duration]

        default_share = audio_duration / count
        durations = [
            float(d) if d is not None and d > 0 else default_share
            for d in explicit_durations
        ]

        raw_total = sum(durations)
        total_overlap = transition_duration * (count - 1)
        net_total = raw_total - total_overlap

        logger.debug(
            f"Timing details: audio={audio_duration:.3f}s, raw_total={raw_total:.3f}s, "
            f"transition_overlap={total_overlap:.3f}s"
        )

        if net_total <= 0:
            raise ConfigurationError(
                f"Transitions ({total_overlap:.3f}s across {count} slides) consume all slide time "
                f"({raw_total:.3f}s); shorten transition_duration or lengthen the slides",
                key="transition_duration",
            )

        if abs(net_total - audio_duration) > self.tolerance:
            # The overlap is fixed by the transition length, so only the raw
            # slide time scales: k * raw_total - total_overlap == audio_duration
            scale_factor = (audio_duration + total_overlap) / raw_total
            durations = [d * scale_factor for d in durations]
            logger.debug(f"Scaled slide durations by {scale_factor:.4f} to match audio")

        for index, duration in enumerate(durations):
            if duration < transition_duration:
                logger.warning(
                    f"Slide {index} lasts {duration:.3f}s, shorter than the {transition_duration:.3f}s transition"
                )
            logger.debug(f"Slide {index} duration set to {duration:.3f}s")

        return durations
