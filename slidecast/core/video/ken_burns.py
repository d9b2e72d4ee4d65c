"""
Ken Burns motion - zoompan parameters for slow zoom/pan over a still image.

The zoompan stage is appended after the base scale/format fragment of a slide
chain, so slides without motion keep the plain fragment.
"""

import logging
from typing import Dict

from slidecast.core.models import KenBurnsOptions

logger = logging.getLogger(__name__)

STYLES = ("zoom_in", "zoom_out", "pan_left", "pan_right", "pan_up", "pan_down")

ZOOM_SPEED: Dict[str, float] = {
    "subtle": 0.0005,
    "moderate": 0.001,
    "strong": 0.002,
}

# Fraction of the shorter frame side panned per second
PAN_SPEED_FACTOR: Dict[str, float] = {
    "subtle": 0.05,
    "moderate": 0.1,
    "strong": 0.15,
}

MAX_ZOOM = 1.2
PAN_ZOOM = 1.1


def pick_style(style: str, slide_index: int, duration: float) -> str:
    """
    Resolve "random" to a concrete style.

    The choice depends only on the slide index and duration, so the same
    build always produces the same graph.
    """
    if style != "random":
        return style
    return STYLES[(slide_index + int(duration * 10)) % len(STYLES)]


def build_zoompan_filter(
    options: KenBurnsOptions,
    slide_index: int,
    duration: float,
    framerate: int,
    width: int,
    height: int,
) -> str:
    """
    Build a zoompan stage for one slide.

    Every expression is driven by the output frame number ``on`` with one
    output frame per input frame (d=1), since the looped image input already
    supplies a frame at every tick.

    Args:
        options: Ken Burns options for the build
        slide_index: Position of the slide in the video
        duration: Allocated slide duration in seconds
        framerate: Output frames per second
        width: Target frame width
        height: Target frame height

    Returns:
        zoompan filter string
    """
    framerate = max(1, int(framerate))
    style = pick_style(options.style, slide_index, duration)

    zoom_speed = ZOOM_SPEED.get(options.intensity)
    if zoom_speed is None:
        logger.warning(f"Unknown Ken Burns intensity '{options.intensity}', using moderate")
        zoom_speed = ZOOM_SPEED["moderate"]
    pan_factor = PAN_SPEED_FACTOR.get(options.intensity, PAN_SPEED_FACTOR["moderate"])

    pan_speed = (min(width, height) * pan_factor) / framerate
    if pan_speed <= 0:
        pan_speed = 0.01

    tail = f":d=1:s={width}x{height}:fps={framerate}"
    center_x = f"iw/2-(iw/{PAN_ZOOM}/2)"
    center_y = f"ih/2-(ih/{PAN_ZOOM}/2)"

    if style == "zoom_out":
        return (
            f"zoompan=z='max({MAX_ZOOM}-{zoom_speed:f}*on,1.0)'"
            f":x='iw/2-(iw/zoom/2)':y='ih/2-(ih/zoom/2)'{tail}"
        )
    if style == "pan_left":
        return (
            f"zoompan=z={PAN_ZOOM}"
            f":x='max(0,iw-iw/{PAN_ZOOM}-{pan_speed:f}*on)':y='{center_y}'{tail}"
        )
    if style == "pan_right":
        return (
            f"zoompan=z={PAN_ZOOM}"
            f":x='min(iw-iw/{PAN_ZOOM},{pan_speed:f}*on)':y='{center_y}'{tail}"
        )
    if style == "pan_up":
        return (
            f"zoompan=z={PAN_ZOOM}"
            f":x='{center_x}':y='max(0,ih-ih/{PAN_ZOOM}-{pan_speed:f}*on)'{tail}"
        )
    if style == "pan_down":
        return (
            f"zoompan=z={PAN_ZOOM}"
            f":x='{center_x}':y='min(ih-ih/{PAN_ZOOM},{pan_speed:f}*on)'{tail}"
        )
    if style != "zoom_in":
        logger.warning(f"Unknown Ken Burns style '{style}', defaulting to zoom_in")

    return (
        f"zoompan=z='min(1.0+{zoom_speed:f}*on,{MAX_ZOOM})'"
        f":x='iw/2-(iw/zoom/2)':y='ih/2-(ih/zoom/2)'{tail}"
    )
