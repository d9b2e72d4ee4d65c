"""
Slidecast Core Module

This module contains the build stages that do not touch the encoder:
file resolution, duration allocation, the data model and the error taxonomy.
"""

from .exceptions import (
    SlidecastError,
    ConfigurationError,
    ProbeError,
    EncodeError,
    EncodeCancelledError,
    OverlayValidationError,
)
from .duration_allocator import DurationAllocator
from .file_resolver import FileResolver
from .pipeline_context import PipelineContext, PipelineStep

__all__ = [
    'SlidecastError',
    'ConfigurationError',
    'ProbeError',
    'EncodeError',
    'EncodeCancelledError',
    'OverlayValidationError',
    'DurationAllocator',
    'FileResolver',
    'PipelineContext',
    'PipelineStep',
]
