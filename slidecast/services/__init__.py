"""
Slidecast Services Module

Orchestration of a full video build for a pipeline step.
"""

from .video_generation_service import VideoGenerationService

__all__ = [
    'VideoGenerationService',
]
