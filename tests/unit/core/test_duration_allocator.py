"""
Unit tests for DurationAllocator.

Tests cover:
- Single slide takes the whole audio
- Equal split and scaling so that playback time matches the audio
- Explicit durations that already fit are left alone
- Invalid configurations raise ConfigurationError
"""

import logging

import pytest

from slidecast.core.duration_allocator import (
    ALLOCATION_TOLERANCE,
    DurationAllocator,
    presentation_time,
)
from slidecast.core.exceptions import ConfigurationError


class TestSingleSlide:
    """n == 1: no transitions, no scaling"""

    def test_single_slide_gets_audio_duration(self):
        allocator = DurationAllocator()
        assert allocator.allocate([None], audio_duration=8.0, transition_duration=1.0) == [8.0]

    def test_single_slide_ignores_explicit_duration(self):
        allocator = DurationAllocator()
        assert allocator.allocate([3.0], audio_duration=12.5, transition_duration=1.0) == [12.5]


class TestMultipleSlides:
    """Allocation with crossfade overlap"""

    def test_equal_split_is_scaled_to_cover_overlap(self):
        """3 slides, 8s audio, 1s transitions: raw 8s minus 2s overlap is stretched back to 8s"""
        allocator = DurationAllocator()
        durations = allocator.allocate([None, None, None], audio_duration=8.0, transition_duration=1.0)

        assert len(durations) == 3
        assert durations[0] == pytest.approx(10.0 / 3)
        assert durations[0] == durations[1] == durations[2]
        assert presentation_time(durations, 1.0) == pytest.approx(8.0)

    def test_explicit_durations_that_fit_are_unchanged(self):
        """[2, 3, 5] with 1s transitions plays for exactly 8s"""
        allocator = DurationAllocator()
        durations = allocator.allocate([2.0, 3.0, 5.0], audio_duration=8.0, transition_duration=1.0)
        assert durations == [2.0, 3.0, 5.0]

    def test_mix_of_explicit_and_default_durations(self):
        allocator = DurationAllocator()
        durations = allocator.allocate([4.0, None], audio_duration=10.0, transition_duration=1.0)

        # Default share is 5s; both are scaled by the same factor
        assert durations[1] / durations[0] == pytest.approx(5.0 / 4.0)
        assert presentation_time(durations, 1.0) == pytest.approx(10.0)

    def test_non_positive_explicit_duration_counts_as_unset(self):
        allocator = DurationAllocator()
        durations = allocator.allocate([0.0, -2.0], audio_duration=6.0, transition_duration=0.0)
        assert durations == [3.0, 3.0]

    def test_within_tolerance_is_not_scaled(self):
        allocator = DurationAllocator()
        durations = allocator.allocate([2.0, 3.05], audio_duration=4.0, transition_duration=1.0)
        assert durations == [2.0, 3.05]

    def test_zero_transition(self):
        allocator = DurationAllocator()
        durations = allocator.allocate([1.0, 1.0, 2.0], audio_duration=8.0, transition_duration=0.0)
        assert durations == pytest.approx([2.0, 2.0, 4.0])

    @pytest.mark.parametrize("explicit,audio,transition", [
        ([None] * 2, 5.0, 0.5),
        ([None] * 5, 30.0, 1.0),
        ([1.0, 7.0, None, 2.5], 17.3, 0.75),
        ([10.0, 10.0, 10.0], 9.0, 2.0),
        ([None] * 12, 60.0, 1.5),
    ])
    def test_playback_time_matches_audio(self, explicit, audio, transition):
        allocator = DurationAllocator()
        durations = allocator.allocate(explicit, audio_duration=audio, transition_duration=transition)

        assert len(durations) == len(explicit)
        assert abs(presentation_time(durations, transition) - audio) <= ALLOCATION_TOLERANCE

    def test_warns_when_slide_is_shorter_than_transition(self, caplog):
        allocator = DurationAllocator()
        with caplog.at_level(logging.WARNING, logger="slidecast.core.duration_allocator"):
            allocator.allocate([0.5, 6.0], audio_duration=5.7, transition_duration=0.8)
        assert "shorter than" in caplog.text


class TestInvalidInput:
    """Configuration errors abort the build"""

    def test_zero_slides(self):
        with pytest.raises(ConfigurationError):
            DurationAllocator().allocate([], audio_duration=8.0, transition_duration=1.0)

    @pytest.mark.parametrize("audio", [0.0, -1.0])
    def test_non_positive_audio(self, audio):
        with pytest.raises(ConfigurationError):
            DurationAllocator().allocate([None, None], audio_duration=audio, transition_duration=1.0)

    def test_negative_transition(self):
        with pytest.raises(ConfigurationError) as exc_info:
            DurationAllocator().allocate([None, None], audio_duration=8.0, transition_duration=-0.5)
        assert exc_info.value.key == "transition_duration"

    def test_transitions_consuming_all_slide_time(self):
        """2 slides of 1s each cannot hold a 5s transition"""
        with pytest.raises(ConfigurationError) as exc_info:
            DurationAllocator().allocate([None, None], audio_duration=2.0, transition_duration=5.0)
        assert exc_info.value.key == "transition_duration"


class TestPresentationTime:

    def test_empty(self):
        assert presentation_time([], 1.0) == 0.0

    def test_overlap_is_subtracted(self):
        assert presentation_time([3.0, 3.0, 3.0], 1.0) == 7.0
