"""
Data model for one video build.

Pydantic models cover data decoded at the pipeline boundary (file info,
overlay settings, the result record); plain dataclasses cover the in-build
aggregates that the engine creates fresh for every call.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


POSITIONS = (
    "top", "bottom", "center",
    "top_left", "top_right",
    "bottom_left", "bottom_right",
    "left", "right",
    "custom",
)


def is_enabled_flag(value: Any) -> bool:
    """
    Interpret an 'enabled' flag as it arrives from JSON or form data.

    Accepts boolean True, the strings "1"/"true" (any case) and numeric 1.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value == "1" or value.lower() == "true"
    if isinstance(value, (int, float)):
        return value == 1
    return False


def _as_text(value: Any, default: str = "") -> str:
    """Stringify a config value; JSON numbers keep their short form"""
    if value is None or value == "":
        return default
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


# --------------------------- Text overlays ---------------------------

class TextAnimation(BaseModel):
    """Entry animation for a text overlay"""
    type: str = "none"
    easing: str = "linear"
    duration: float = 1.0
    delay: float = 0.0

    @field_validator('type', 'easing', mode='before')
    @classmethod
    def _coerce_name(cls, value: Any, info) -> str:
        default = "none" if info.field_name == 'type' else "linear"
        return _as_text(value, default).lower()

    @field_validator('duration', mode='before')
    @classmethod
    def _coerce_duration(cls, value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return 1.0

    @field_validator('delay', mode='before')
    @classmethod
    def _coerce_delay(cls, value: Any) -> float:
        try:
            return max(0.0, float(value))
        except (TypeError, ValueError):
            return 0.0


class TextOverlay(BaseModel):
    """
    One text block drawn on a slide (a.k.a. TextBlock).

    ``text`` holds the raw text; placeholder substitution and escaping happen
    when the filter graph is built.
    """
    id: str = ""
    text: str = ""
    position: str = "center"
    custom_x: str = ""
    custom_y: str = ""
    font_size: str = "40"
    font_color: str = "white"
    font_family: str = "default"
    font_style: str = "normal"
    background_color: str = ""
    enabled: bool = False
    animation: Optional[TextAnimation] = None

    @field_validator('enabled', mode='before')
    @classmethod
    def _coerce_enabled(cls, value: Any) -> bool:
        return is_enabled_flag(value)

    @field_validator('id', 'text', 'custom_x', 'custom_y', 'background_color', mode='before')
    @classmethod
    def _coerce_optional_text(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator('position', mode='before')
    @classmethod
    def _coerce_position(cls, value: Any) -> str:
        return _as_text(value, "center").strip().lower()

    @field_validator('font_size', mode='before')
    @classmethod
    def _coerce_font_size(cls, value: Any) -> str:
        return _as_text(value, "40")

    @field_validator('font_color', mode='before')
    @classmethod
    def _coerce_font_color(cls, value: Any) -> str:
        return _as_text(value, "white")

    @field_validator('font_family', mode='before')
    @classmethod
    def _coerce_font_family(cls, value: Any) -> str:
        return _as_text(value, "default")

    @field_validator('font_style', mode='before')
    @classmethod
    def _coerce_font_style(cls, value: Any) -> str:
        return _as_text(value, "normal").lower()

    @property
    def font_size_px(self) -> int:
        """Font size in pixels; unparseable, infinite or non-positive sizes give 24"""
        try:
            size = int(float(self.font_size))
        except (ValueError, OverflowError):
            return 24
        return size if size > 0 else 24


# --------------------------- Boundary file info ---------------------------

class FileInfo(BaseModel):
    """Structured file reference produced by upload/generation steps"""
    file_id: int = 0
    uri: str
    url: str = ""
    mime_type: str = ""
    filename: str = ""
    size: int = 0
    timestamp: int = 0
    duration: float = 0.0
    text_overlay: Optional[Dict[str, Any]] = None
    text_blocks: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator('file_id', 'size', 'timestamp', mode='before')
    @classmethod
    def _coerce_int(cls, value: Any) -> int:
        # Some services send numeric ids as strings
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return 0

    @field_validator('duration', mode='before')
    @classmethod
    def _coerce_duration(cls, value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0

    @field_validator('url', 'mime_type', 'filename', mode='before')
    @classmethod
    def _coerce_str(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator('text_blocks', mode='before')
    @classmethod
    def _coerce_blocks(cls, value: Any) -> List[Dict[str, Any]]:
        if not isinstance(value, list):
            return []
        return [block for block in value if isinstance(block, dict)]


# --------------------------- Build aggregates ---------------------------

@dataclass
class ImageSlide:
    """
    One still image shown for part of the video.

    The engine only reads the file at ``uri``; it never mutates or deletes it.
    Overlay configs stay raw until the filter graph is built so that a
    malformed overlay only costs that overlay.
    """
    uri: str
    step_key: str = ""
    order_weight: int = 0
    explicit_duration: Optional[float] = None
    text_overlay: Optional[Dict[str, Any]] = None
    text_blocks: List[Dict[str, Any]] = field(default_factory=list)
    file_id: int = 0
    filename: str = ""

    @property
    def overlay_configs(self) -> List[Dict[str, Any]]:
        configs = []
        if self.text_overlay is not None:
            configs.append(self.text_overlay)
        configs.extend(self.text_blocks)
        return configs


@dataclass
class AudioTrack:
    uri: str
    duration: float = 0.0
    file_id: int = 0
    mime_type: str = ""


@dataclass
class KenBurnsOptions:
    enabled: bool = False
    style: str = "random"
    intensity: str = "moderate"


@dataclass
class VideoParams:
    """Everything needed to build the filter graph and encoder arguments"""
    slides: List[ImageSlide]
    audio: AudioTrack
    output_path: str
    resolution: str = "1280:720"
    transition_type: str = "fade"
    transition_duration: float = 1.0
    durations: List[float] = field(default_factory=list)
    bitrate: Optional[str] = None
    framerate: Optional[float] = None
    ken_burns: KenBurnsOptions = field(default_factory=KenBurnsOptions)
    context_values: Dict[str, Any] = field(default_factory=dict)

    @property
    def dimensions(self) -> Tuple[int, int]:
        width, height = self.resolution.split(":")
        return int(width), int(height)


# --------------------------- Result record ---------------------------

class SlideInfo(BaseModel):
    file_id: int = 0
    duration: float
    step_key: str = ""
    text_overlay: Optional[Dict[str, str]] = None
    text_blocks: Optional[List[Dict[str, str]]] = None


class VideoGenerationResult(BaseModel):
    """Metadata record returned to the pipeline step"""
    file_id: str
    uri: str
    url: str
    mime_type: str
    filename: str
    duration: float
    size: int
    timestamp: int
    slides: List[SlideInfo] = Field(default_factory=list)
    download_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
