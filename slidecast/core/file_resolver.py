"""
File Resolver - Finds the slide images and the audio track for one build.

This module is responsible for:
- Decoding heterogeneous step outputs into one tagged variant
  (ImageURLVariant | StructuredFileInfoVariant), once, at the boundary
- Collecting "featured_image" outputs as ImageSlides ordered by step weight
- Selecting exactly one "audio_content" output as the AudioTrack
- Verifying that every referenced local file exists

The resolver performs no network I/O. Remote image URLs are materialized only
through an injected ``url_resolver`` (the upload/download collaborator).
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Literal, Optional, Tuple, Union

from pydantic import ValidationError

from slidecast.core.exceptions import ConfigurationError
from slidecast.core.models import AudioTrack, FileInfo, ImageSlide
from slidecast.core.pipeline_context import PipelineContext, PipelineStep

logger = logging.getLogger(__name__)

IMAGE_OUTPUT_TYPE = "featured_image"
AUDIO_OUTPUT_TYPE = "audio_content"

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")

UrlResolver = Callable[[str, str], str]


@dataclass(frozen=True)
class ImageURLVariant:
    """A bare remote image URL (e.g. straight from an image-generation step)"""
    url: str
    kind: Literal["image_url"] = "image_url"


@dataclass(frozen=True)
class StructuredFileInfoVariant:
    """A structured file record, from a JSON string or a mapping"""
    info: FileInfo
    kind: Literal["file_info"] = "file_info"


FileReference = Union[ImageURLVariant, StructuredFileInfoVariant]


# --------------------------- Type detection ---------------------------

def is_image_url(value: str) -> bool:
    lowered = value.lower()
    return lowered.startswith("http") and (
        any(ext in lowered for ext in IMAGE_EXTENSIONS) or "image" in lowered
    )


def detect_mime_type(url: str, default: str = "image/jpeg") -> str:
    """Guess a MIME type from a URL or filename"""
    lowered = url.lower()
    if ".jpg" in lowered or ".jpeg" in lowered:
        return "image/jpeg"
    if ".png" in lowered:
        return "image/png"
    if ".webp" in lowered:
        return "image/webp"
    if ".gif" in lowered:
        return "image/gif"
    if ".mp3" in lowered:
        return "audio/mpeg"
    if ".wav" in lowered:
        return "audio/wav"
    return default


def matches_output_type(info: FileInfo, output_type: str) -> bool:
    """Check a decoded record against the expected output type"""
    if output_type == IMAGE_OUTPUT_TYPE:
        return info.mime_type.startswith("image/") or "images" in info.uri
    if output_type == AUDIO_OUTPUT_TYPE:
        return info.mime_type.startswith("audio/") or "audio" in info.uri
    return True


def decode_file_reference(value: Any, output_type: str) -> Optional[FileReference]:
    """
    Decode one step output into a file reference variant.

    Accepts a bare image URL, a JSON string, a mapping, or an already
    decoded FileInfo. Returns None when the value is not a file reference of
    the expected type.
    """
    if isinstance(value, FileInfo):
        info = value
    elif isinstance(value, str):
        stripped = value.strip()
        if output_type == IMAGE_OUTPUT_TYPE and is_image_url(stripped):
            return ImageURLVariant(url=stripped)
        try:
            payload = json.loads(stripped)
        except json.JSONDecodeError:
            logger.debug("Step output is a string but not a file reference")
            return None
        if not isinstance(payload, dict):
            return None
        return decode_file_reference(payload, output_type)
    elif isinstance(value, dict):
        try:
            info = FileInfo.model_validate(value)
        except ValidationError as e:
            logger.debug(f"Step output is not a file record: {e.error_count()} validation error(s)")
            return None
        if not info.uri:
            return None
    else:
        return None

    if not matches_output_type(info, output_type):
        logger.debug(f"File record {info.uri} does not match output type {output_type}")
        return None
    return StructuredFileInfoVariant(info=info)


# --------------------------- Resolver ---------------------------

class FileResolver:
    """
    Resolves slide images and the audio track from a pipeline context.

    Example:
        >>> resolver = FileResolver()
        >>> slides, audio = resolver.resolve(pipeline_context)
    """

    def __init__(self, url_resolver: Optional[UrlResolver] = None):
        """
        Args:
            url_resolver: Optional collaborator that downloads a remote URL and
                returns a local path; called as ``url_resolver(url, "images")``
        """
        self.url_resolver = url_resolver

    @staticmethod
    def uri_to_file_path(uri: str) -> str:
        """Convert a file URI (``file:///x``, ``public://x``) or plain path to a local path"""
        if uri.startswith("/") or uri.startswith("storage/"):
            return uri
        if "://" in uri:
            return uri[uri.index("://") + 3:]
        return uri

    def resolve(self, pipeline_context: PipelineContext) -> Tuple[List[ImageSlide], AudioTrack]:
        """Resolve all slides and the audio track; see resolve_images/resolve_audio"""
        slides = self.resolve_images(pipeline_context)
        audio = self.resolve_audio(pipeline_context)
        logger.info(f"📁 Resolved {len(slides)} image(s) and audio {audio.uri}")
        return slides, audio

    # ---- images ----

    def resolve_images(self, pipeline_context: PipelineContext) -> List[ImageSlide]:
        """
        Collect featured images as slides in ascending step weight.

        Raises:
            ConfigurationError: If no image is found or an image file is missing
        """
        slides: List[ImageSlide] = []

        steps = pipeline_context.get_steps_by_output_type(IMAGE_OUTPUT_TYPE)
        logger.debug(f"Found {len(steps)} step(s) with output type {IMAGE_OUTPUT_TYPE}: {[s.id for s in steps]}")
        for step in steps:
            value, exists = pipeline_context.get_step_output(step.step_output_key)
            if not exists:
                continue
            slide = self._build_slide(value, step.step_output_key, step)
            if slide is not None:
                slides.append(slide)

        if not slides:
            # Fall back to well-known output keys
            for key in sorted(pipeline_context.step_outputs):
                if "image_data" not in key:
                    continue
                step = pipeline_context.get_step_by_output_key(key)
                slide = self._build_slide(pipeline_context.step_outputs[key], key, step)
                if slide is not None:
                    logger.info(f"Found image from key scan: {key}")
                    slides.append(slide)

        if not slides:
            raise ConfigurationError(f"No image files found with output type: {IMAGE_OUTPUT_TYPE}")

        slides.sort(key=lambda s: s.order_weight)

        for slide in slides:
            if not Path(slide.uri).is_file():
                raise ConfigurationError(f"Image file not found at path: {slide.uri}", key=slide.step_key)

        return slides

    def _build_slide(self, value: Any, step_key: str, step: Optional[PipelineStep]) -> Optional[ImageSlide]:
        reference = decode_file_reference(value, IMAGE_OUTPUT_TYPE)
        if reference is None:
            logger.debug(f"Could not decode image reference from {step_key}")
            return None

        info = self._materialize(reference)
        if info is None:
            return None

        slide = ImageSlide(
            uri=self.uri_to_file_path(info.uri),
            step_key=step_key,
            order_weight=step.weight if step else 0,
            explicit_duration=info.duration if info.duration > 0 else None,
            text_overlay=info.text_overlay,
            text_blocks=list(info.text_blocks),
            file_id=info.file_id,
            filename=info.filename or Path(info.uri).name,
        )

        # Step-level settings win over what the file record carries
        config = step.upload_image_config if step else None
        if config is not None:
            if config.duration > 0:
                slide.explicit_duration = config.duration
            if config.text_overlay is not None:
                slide.text_overlay = config.text_overlay
            if config.text_blocks:
                slide.text_blocks = list(config.text_blocks)

        return slide

    def _materialize(self, reference: FileReference) -> Optional[FileInfo]:
        if isinstance(reference, StructuredFileInfoVariant):
            return reference.info

        if self.url_resolver is None:
            logger.warning(f"Skipping remote image (no URL resolver configured): {reference.url}")
            return None

        local_path = self.url_resolver(reference.url, "images")
        logger.debug(f"Remote image {reference.url} materialized at {local_path}")
        return FileInfo(
            uri=local_path,
            url=reference.url,
            mime_type=detect_mime_type(reference.url, "image/jpeg"),
            filename=Path(local_path).name,
        )

    # ---- audio ----

    def resolve_audio(self, pipeline_context: PipelineContext) -> AudioTrack:
        """
        Select the audio track.

        Raises:
            ConfigurationError: If no audio reference is found or the file is missing
        """
        info = self._find_audio_info(pipeline_context)
        if info is None:
            raise ConfigurationError(f"No audio file found with output type: {AUDIO_OUTPUT_TYPE}")

        path = self.uri_to_file_path(info.uri)
        if not Path(path).is_file():
            raise ConfigurationError(f"Audio file not found at path: {path}")

        return AudioTrack(uri=path, file_id=info.file_id, mime_type=info.mime_type)

    def _find_audio_info(self, pipeline_context: PipelineContext) -> Optional[FileInfo]:
        for step in pipeline_context.get_steps_by_output_type(AUDIO_OUTPUT_TYPE):
            value, exists = pipeline_context.get_step_output(step.step_output_key)
            if not exists:
                continue
            reference = decode_file_reference(value, AUDIO_OUTPUT_TYPE)
            if isinstance(reference, StructuredFileInfoVariant):
                return reference.info

        candidates = []
        if "audio_data" in pipeline_context.step_outputs:
            candidates.append("audio_data")
        candidates.extend(
            key for key in sorted(pipeline_context.step_outputs)
            if "audio" in key and key != "audio_data"
        )

        for key in candidates:
            reference = decode_file_reference(pipeline_context.step_outputs[key], AUDIO_OUTPUT_TYPE)
            if isinstance(reference, StructuredFileInfoVariant):
                logger.info(f"Found audio from step output scanning: {key}")
                return reference.info

        return None
