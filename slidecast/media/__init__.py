"""
Media helpers for Slidecast.

Probing and resolution handling shared by the video engine.
"""

from .ffmpeg_utils import (
    run_ffprobe,
    probe_audio_duration,
    parse_resolution,
    resolution_for_quality,
    clear_ffprobe_cache,
)

__all__ = [
    'run_ffprobe',
    'probe_audio_duration',
    'parse_resolution',
    'resolution_for_quality',
    'clear_ffprobe_cache',
]
