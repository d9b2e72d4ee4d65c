"""
Video processing module for Slidecast.

Components:
    - TextOverlayEngine: Placeholder substitution, positioning and escaping for drawtext
    - FilterGraphBuilder: filter_complex graph for slides, overlays and crossfades
    - EncoderInvocation: ffmpeg arguments and the encoder process
    - FontResolver: Font family to font file lookup
"""

from slidecast.core.video.font_resolver import FontResolver
from slidecast.core.video.text_overlay import TextOverlayEngine
from slidecast.core.video.filter_graph import FilterGraph, FilterGraphBuilder
from slidecast.core.video.encoder import EncoderInvocation

__all__ = [
    'FontResolver',
    'TextOverlayEngine',
    'FilterGraph',
    'FilterGraphBuilder',
    'EncoderInvocation',
]
