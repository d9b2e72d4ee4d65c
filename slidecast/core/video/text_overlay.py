"""
Text Overlay Engine - Turns slide text overlays into drawtext filter stages.

This module is responsible for:
- Substituting {step_output_key} placeholders from the upstream context
- Resolving anchor keywords to x/y expressions over text_w/text_h
- Escaping text for the drawtext filter inside a filter_complex graph
- Deciding whether an overlay is active
- Stacking several overlays that share an anchor
- Font family/style, color conversion and entry animations
"""

import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from slidecast import settings
from slidecast.core.exceptions import OverlayValidationError
from slidecast.core.models import TextAnimation, TextOverlay, is_enabled_flag
from slidecast.core.video.font_resolver import FontResolver

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{([^}]+)\}")

# Characters that delimit options, filters and pads in a filter graph
STRUCTURAL_CHARACTERS = (":", ",", "[", "]", ";", "=")

TOP_ANCHORS = ("top", "top_left", "top_right")
MIDDLE_ANCHORS = ("left", "center", "right")
BOTTOM_ANCHORS = ("bottom", "bottom_left", "bottom_right")
ANCHORS = TOP_ANCHORS + MIDDLE_ANCHORS + BOTTOM_ANCHORS

STACK_SPACING = 1.5
SLIDE_IN_DISTANCE = 100

FONT_STYLES = {
    "outline": ":borderw=1.5:bordercolor=black",
    "shadow": ":shadowx=2:shadowy=2:shadowcolor=black",
    "outline_shadow": ":borderw=1.5:bordercolor=black:shadowx=2:shadowy=2:shadowcolor=black",
}

EASINGS = ("linear", "ease_in", "ease_out", "ease_in_out")

_RGBA_PATTERN = re.compile(r"rgba\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*,\s*([\d.]+)\s*\)")
_RGB_PATTERN = re.compile(r"rgb\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*\)")

OverlayConfig = Union[Mapping[str, Any], TextOverlay]


def convert_to_ffmpeg_color(color: str) -> str:
    """
    Convert CSS rgb()/rgba() colors to FFmpeg's 0xRRGGBBAA form.

    Named colors and #hex values pass through unchanged.

    Example:
        >>> convert_to_ffmpeg_color("rgba(0, 0, 0, 0.5)")
        '0x0000007f'
    """
    if not color or color.startswith("#") or "(" not in color:
        return color

    match = _RGBA_PATTERN.search(color)
    if match:
        r, g, b = (min(255, int(match.group(i))) for i in range(1, 4))
        alpha = min(255, int(float(match.group(4)) * 255))
        return f"0x{r:02x}{g:02x}{b:02x}{alpha:02x}"

    match = _RGB_PATTERN.search(color)
    if match:
        r, g, b = (min(255, int(match.group(i))) for i in range(1, 4))
        return f"0x{r:02x}{g:02x}{b:02x}ff"

    logger.warning(f"Unrecognized color '{color}', passing it to the encoder unchanged")
    return color


def quote_expression(expression: str) -> str:
    """
    Single-quote an x/y expression that contains filter graph delimiters.

    Plain values ("100", "(w-text_w)/2") and already quoted expressions are
    returned unchanged.

    Example:
        >>> quote_expression("if(gt(t,1),100,200)")
        "'if(gt(t,1),100,200)'"
    """
    if expression.startswith("'") or not any(char in expression for char in STRUCTURAL_CHARACTERS):
        return expression
    return f"'{expression}'"


def _ease(progress: str, easing: str) -> str:
    """Wrap a 0..1 progress expression in an easing curve"""
    if easing == "ease_in":
        return f"pow({progress},2)"
    if easing == "ease_out":
        return f"(1-pow(1-{progress},2))"
    if easing == "ease_in_out":
        return f"((1-cos(PI*{progress}))/2)"
    return progress


class TextOverlayEngine:
    """
    Builds drawtext filter stages for slide text overlays.

    Example:
        >>> engine = TextOverlayEngine()
        >>> overlay = engine.require_active({"enabled": True, "text": "Hello", "position": "top"})
        >>> engine.build_text_filter(overlay)
        "drawtext=text='Hello':fontsize=40:fontcolor=white:x=(w-text_w)/2:y=20"
    """

    def __init__(self, font_resolver: Optional[FontResolver] = None, margin: Optional[int] = None):
        self._font_resolver = font_resolver
        self.margin = margin if margin is not None else settings.get_text_margin()

    @property
    def font_resolver(self) -> FontResolver:
        if self._font_resolver is None:
            self._font_resolver = FontResolver()
        return self._font_resolver

    # ------------------------------------------------------------------
    # Placeholder substitution
    # ------------------------------------------------------------------

    def process_text_content(self, text: str, context_values: Optional[Mapping[str, Any]]) -> str:
        """
        Replace {key} placeholders with upstream step outputs.

        Strings are substituted verbatim, records with a string "text" field
        contribute that field, other records are JSON encoded and anything
        else is stringified. Unknown keys stay as literal placeholders.
        """
        if not text or not context_values:
            return text

        def replace(match: "re.Match[str]") -> str:
            key = match.group(1)
            if key not in context_values:
                return match.group(0)
            value = context_values[key]
            if isinstance(value, str):
                return value
            if isinstance(value, dict):
                if isinstance(value.get("text"), str):
                    return value["text"]
                return json.dumps(value)
            return str(value)

        return PLACEHOLDER_PATTERN.sub(replace, text)

    # ------------------------------------------------------------------
    # Positioning
    # ------------------------------------------------------------------

    def _position_expressions(self, overlay: TextOverlay, stack_offset: int = 0) -> Tuple[str, str]:
        margin = self.margin
        position = overlay.position

        if position == "custom" and overlay.custom_x and overlay.custom_y:
            for coordinate in (overlay.custom_x, overlay.custom_y):
                if "'" in coordinate or "\\" in coordinate:
                    raise OverlayValidationError(
                        f"Custom coordinate cannot contain quotes or backslashes: {coordinate}",
                        overlay_id=overlay.id or None,
                    )
            return overlay.custom_x, overlay.custom_y
        if position not in ANCHORS:
            position = "center"

        if position in ("top_left", "left", "bottom_left"):
            x = str(margin)
        elif position in ("top_right", "right", "bottom_right"):
            x = f"w-text_w-{margin}"
        else:
            x = "(w-text_w)/2"

        if position in TOP_ANCHORS:
            y = str(margin + stack_offset)
        elif position in BOTTOM_ANCHORS:
            y = f"h-text_h-{margin + stack_offset}"
        elif stack_offset > 0:
            y = f"(h-text_h)/2+{stack_offset}"
        elif stack_offset < 0:
            y = f"(h-text_h)/2-{-stack_offset}"
        else:
            y = "(h-text_h)/2"

        return x, y

    def get_text_position(self, overlay: TextOverlay, stack_offset: int = 0) -> str:
        """
        Resolve an overlay's anchor to drawtext "x=...:y=..." parameters.

        Unknown positions, and "custom" without both coordinates, are centered.

        Args:
            overlay: Parsed overlay
            stack_offset: Pixels to move the text away from its anchor edge
                (signed for middle anchors)
        """
        x, y = self._position_expressions(overlay, stack_offset)
        return f"x={quote_expression(x)}:y={quote_expression(y)}"

    def stack_overlays(self, overlays: List[TextOverlay]) -> List[Tuple[TextOverlay, int]]:
        """
        Assign stacking offsets to overlays that share an anchor.

        The first overlay of each anchor keeps its position. Later ones move
        down from top anchors, up from bottom anchors, and alternate below
        and above the middle for middle anchors. Custom positions never stack.
        """
        seen: Dict[str, int] = {}
        stacked = []
        for overlay in overlays:
            if overlay.position == "custom" and overlay.custom_x and overlay.custom_y:
                stacked.append((overlay, 0))
                continue

            group = overlay.position if overlay.position in ANCHORS else "center"
            index = seen.get(group, 0)
            seen[group] = index + 1

            spacing = overlay.font_size_px * STACK_SPACING
            if group in MIDDLE_ANCHORS:
                offset = int(index * spacing / 2)
                if index % 2 == 1:
                    offset = -offset
            else:
                offset = int(index * spacing)
            stacked.append((overlay, offset))
        return stacked

    # ------------------------------------------------------------------
    # Escaping
    # ------------------------------------------------------------------

    @staticmethod
    def escape_ffmpeg_text(text: str) -> str:
        """
        Escape text for a quoted drawtext value inside a filter graph.

        Backslashes are doubled first so that the escapes added afterwards
        are not escaped again.

        Example:
            >>> TextOverlayEngine.escape_ffmpeg_text("It's 10:30")
            "It\\\\'s 10\\\\:30"
        """
        escaped = text.replace("\\", "\\\\")
        escaped = escaped.replace("'", "\\'")
        for char in STRUCTURAL_CHARACTERS:
            escaped = escaped.replace(char, "\\" + char)
        return escaped

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def validate_text_overlay_config(config: Optional[OverlayConfig]) -> bool:
        """
        Check whether an overlay should be drawn.

        Active means an explicit truthy "enabled" flag (True, "1", "true" in
        any case, or 1) and a non-empty string text. A missing flag is inactive.
        """
        if config is None:
            return False
        if isinstance(config, TextOverlay):
            return config.enabled and bool(config.text)
        if not isinstance(config, Mapping) or "enabled" not in config:
            return False
        if not is_enabled_flag(config["enabled"]):
            return False
        text = config.get("text")
        return isinstance(text, str) and text != ""

    def parse_overlay(self, config: OverlayConfig) -> TextOverlay:
        """
        Decode a raw overlay config, filling unset fields from configuration.

        Raises:
            OverlayValidationError: If the config cannot be decoded
        """
        if isinstance(config, TextOverlay):
            return config
        if not isinstance(config, Mapping):
            raise OverlayValidationError(f"Text overlay must be a mapping, got {type(config).__name__}")

        data = dict(config)
        defaults = {
            "font_size": settings.get_default_font_size(),
            "font_color": settings.get_default_font_color(),
            "position": settings.get_default_text_position(),
        }
        for key, value in defaults.items():
            if data.get(key) in (None, ""):
                data[key] = value

        try:
            return TextOverlay.model_validate(data)
        except ValidationError as e:
            raise OverlayValidationError(
                f"Invalid text overlay: {e.error_count()} validation error(s)",
                overlay_id=str(data.get("id", "")) or None,
            ) from e

    def require_active(self, config: Optional[OverlayConfig]) -> TextOverlay:
        """
        Parse an overlay that must be drawn.

        Raises:
            OverlayValidationError: If the overlay is inactive, malformed or has quotes in a custom coordinate
        """
        overlay_id = None
        if isinstance(config, Mapping) and config.get("id"):
            overlay_id = str(config["id"])
        elif isinstance(config, TextOverlay) and config.id:
            overlay_id = config.id

        if not self.validate_text_overlay_config(config):
            raise OverlayValidationError("Text overlay is disabled or has no text", overlay_id=overlay_id)
        overlay = self.parse_overlay(config)
        self._position_expressions(overlay)
        return overlay

    # ------------------------------------------------------------------
    # Filter building
    # ------------------------------------------------------------------

    def build_text_filter(
        self,
        overlay: TextOverlay,
        slide_duration: Optional[float] = None,
        stack_offset: int = 0,
    ) -> str:
        """
        Build one drawtext stage.

        The text is escaped here; placeholders must already be substituted.

        Args:
            overlay: Active overlay
            slide_duration: Slide length in seconds; needed for animations
            stack_offset: Offset from stack_overlays()

        Returns:
            drawtext filter string
        """
        text = self.escape_ffmpeg_text(overlay.text)
        x, y = self._position_expressions(overlay, stack_offset)
        font_size = str(overlay.font_size_px)

        animation = overlay.animation
        animated = (
            animation is not None
            and animation.type not in ("", "none")
            and slide_duration is not None
            and slide_duration > 0
        )

        extra = ""
        if animated:
            x, y, font_size, extra = self._animate(overlay, animation, slide_duration, x, y, font_size)
        x, y = quote_expression(x), quote_expression(y)

        text_filter = (
            f"drawtext=text='{text}':fontsize={font_size}"
            f":fontcolor={convert_to_ffmpeg_color(overlay.font_color)}:x={x}:y={y}"
        )

        if overlay.background_color:
            text_filter += f":box=1:boxcolor={convert_to_ffmpeg_color(overlay.background_color)}:boxborderw=5"

        font_file = self.font_resolver.resolve(overlay.font_family)
        if font_file:
            text_filter += f":fontfile='{self.escape_ffmpeg_text(font_file)}'"

        text_filter += FONT_STYLES.get(overlay.font_style, "")
        text_filter += extra
        return text_filter

    def _animate(
        self,
        overlay: TextOverlay,
        animation: TextAnimation,
        slide_duration: float,
        x: str,
        y: str,
        font_size: str,
    ) -> Tuple[str, str, str, str]:
        """Return animated (x, y, fontsize, extra options) for an overlay"""
        easing = animation.easing if animation.easing in EASINGS else "linear"
        if animation.easing not in EASINGS:
            logger.warning(f"Unknown easing '{animation.easing}', using linear")

        duration = min(animation.duration, slide_duration / 2)
        if duration <= 0:
            duration = min(1.0, slide_duration / 2)
        start = min(animation.delay, slide_duration)
        end = min(start + duration, slide_duration)
        fade_out_start = max(slide_duration - duration, end)

        progress_in = _ease(f"(t-{start:.3f})/{duration:.3f}", easing)
        fade_in = f"if(lt(t,{start:.3f}),0,if(between(t,{start:.3f},{end:.3f}),{progress_in},1))"

        extra = f":enable='between(t,0,{slide_duration:.3f})'"
        kind = animation.type

        if kind == "fade":
            progress_out = _ease(f"(t-{fade_out_start:.3f})/{duration:.3f}", easing)
            alpha = (
                f"if(lt(t,{start:.3f}),0,"
                f"if(between(t,{start:.3f},{end:.3f}),{progress_in},"
                f"if(between(t,{fade_out_start:.3f},{slide_duration:.3f}),1-{progress_out},1)))"
            )
            extra += f":alpha='{alpha}'"
        elif kind == "slide":
            direction = self._slide_direction(overlay.position)
            sign = "-" if direction in ("top", "left") else "+"

            def moving(resting: str) -> str:
                # Starts SLIDE_IN_DISTANCE px outside the resting place
                return f"({resting}){sign}{SLIDE_IN_DISTANCE}*(1-{progress_in})"

            if direction in ("left", "right"):
                x = f"'if(between(t,{start:.3f},{end:.3f}),{moving(x)},{x})'"
            else:
                y = f"'if(between(t,{start:.3f},{end:.3f}),{moving(y)},{y})'"
            extra += f":alpha='{fade_in}'"
        elif kind == "scale":
            font_size = (
                f"'if(between(t,{start:.3f},{end:.3f}),max(1,{font_size}*{progress_in}),{font_size})'"
            )
            extra += f":alpha='{fade_in}'"
        elif kind == "typewriter":
            extra += f":alpha='{fade_in}'"
        else:
            logger.warning(f"Unknown text animation '{kind}' on overlay '{overlay.id}', drawing it static")

        return x, y, font_size, extra

    @staticmethod
    def _slide_direction(position: str) -> str:
        if position in TOP_ANCHORS:
            return "top"
        if position == "left":
            return "left"
        if position == "right":
            return "right"
        return "bottom"
