"""
Video Generation Service
Runs one slideshow build for a pipeline step: resolve → allocate → build filters → encode
"""
import json
import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from slidecast import settings
from slidecast.core.duration_allocator import DurationAllocator
from slidecast.core.exceptions import ConfigurationError, EncodeError
from slidecast.core.file_resolver import FileResolver, UrlResolver
from slidecast.core.models import (
    AudioTrack,
    ImageSlide,
    KenBurnsOptions,
    SlideInfo,
    TextOverlay,
    VideoGenerationResult,
    VideoParams,
    is_enabled_flag,
)
from slidecast.core.pipeline_context import PipelineContext
from slidecast.core.video.encoder import EncoderInvocation
from slidecast.core.video.filter_graph import FilterGraph, FilterGraphBuilder
from slidecast.media.ffmpeg_utils import parse_resolution, probe_audio_duration, resolution_for_quality

logger = logging.getLogger(__name__)

VIDEO_GENERATION_SERVICE_NAME = "video_generation"


# --------------------------- Action config helpers ---------------------------

def get_string_value(config: Mapping[str, Any], key: str, default: str) -> str:
    """
    Read a config value as a string.

    JSON numbers keep their short form (1.0 → "1"); empty or missing values
    and other types give the default.
    """
    value = config.get(key)
    if isinstance(value, bool):
        return default
    if isinstance(value, str) and value != "":
        return value
    if isinstance(value, float):
        return f"{value:g}"
    if isinstance(value, int):
        return str(value)
    return default


def get_float_value(config: Mapping[str, Any], key: str, default: float) -> float:
    raw = get_string_value(config, key, "")
    if raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Failed to parse {key} '{raw}', using default {default}")
        return default


def parse_ken_burns(config: Mapping[str, Any]) -> KenBurnsOptions:
    """Ken Burns options from the "ken_burns" block, falling back to configuration"""
    options = KenBurnsOptions(
        enabled=settings.is_ken_burns_enabled(),
        style=settings.get_ken_burns_style(),
        intensity=settings.get_ken_burns_intensity(),
    )
    block = config.get("ken_burns")
    if not isinstance(block, Mapping):
        return options

    if "ken_burns_enabled" in block:
        options.enabled = is_enabled_flag(block["ken_burns_enabled"])
    options.style = get_string_value(block, "ken_burns_style", options.style)
    options.intensity = get_string_value(block, "ken_burns_intensity", options.intensity)
    return options


class VideoGenerationService:
    """
    Builds a slideshow video for a pipeline step.

    Every collaborator can be injected, which keeps each stage testable on
    its own. Nothing is shared between builds, so one service instance can
    serve concurrent builds.

    Example:
        >>> service = VideoGenerationService()
        >>> result = service.generate(pipeline_context, {"video_quality": "high"})
        >>> result.uri
        'storage/pipeline/videos/2026-10/video_1792300000000000000.mp4'
    """

    def __init__(
        self,
        file_resolver: Optional[FileResolver] = None,
        allocator: Optional[DurationAllocator] = None,
        graph_builder: Optional[FilterGraphBuilder] = None,
        encoder: Optional[EncoderInvocation] = None,
        audio_prober: Optional[Callable[[str], float]] = None,
        url_resolver: Optional[UrlResolver] = None,
    ):
        self.file_resolver = file_resolver or FileResolver(url_resolver=url_resolver)
        self.allocator = allocator or DurationAllocator()
        self.graph_builder = graph_builder or FilterGraphBuilder()
        self.encoder = encoder or EncoderInvocation()
        self.audio_prober = audio_prober or probe_audio_duration

    @staticmethod
    def can_handle(action_service: str) -> bool:
        return action_service == VIDEO_GENERATION_SERVICE_NAME

    def execute(
        self,
        pipeline_context: Union[PipelineContext, Mapping[str, Any]],
        action_config: Optional[Mapping[str, Any]],
        output_path: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """Run generate() and return the result record as the step's JSON output"""
        result = self.generate(pipeline_context, action_config, output_path=output_path, cancel_event=cancel_event)
        return json.dumps(result.to_dict())

    def generate(
        self,
        pipeline_context: Union[PipelineContext, Mapping[str, Any]],
        action_config: Optional[Mapping[str, Any]],
        output_path: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> VideoGenerationResult:
        """
        Build one video.

        Args:
            pipeline_context: Step outputs and steps of the running pipeline
            action_config: The step's action configuration
            output_path: Explicit output path (overrides action_config["output_path"])
            cancel_event: Set by the caller to cancel; the encoder is killed

        Returns:
            VideoGenerationResult describing the produced file

        Raises:
            ConfigurationError: For missing inputs or inconsistent settings
            ProbeError: If the audio duration cannot be determined
            EncodeError: If encoding fails (EncodeCancelledError when cancelled)
        """
        if action_config is None:
            raise ConfigurationError("Missing action configuration for video generation")
        if not isinstance(pipeline_context, PipelineContext):
            pipeline_context = PipelineContext.model_validate(pipeline_context)

        started = time.time()
        logger.info("🎞️ Starting video generation")

        slides, audio = self.file_resolver.resolve(pipeline_context)
        audio.duration = self.audio_prober(audio.uri)
        logger.info(f"Audio duration: {audio.duration:.3f}s for {len(slides)} slide(s)")

        output_format = get_string_value(action_config, "output_format", settings.get_default_output_format())
        file_id = str(time.time_ns())
        target_path, public_url = self._output_location(action_config, output_path, file_id, output_format)

        params = self.build_params(action_config, slides, audio, target_path, pipeline_context)
        params.durations = self.allocator.allocate(
            [slide.explicit_duration for slide in slides],
            audio.duration,
            params.transition_duration,
        )

        graph = self.graph_builder.build(params)
        self.encoder.run(params, graph, cancel_event=cancel_event)

        try:
            size = Path(target_path).stat().st_size
        except OSError as e:
            raise EncodeError(f"Failed to read video file info: {e}", output_path=target_path) from e

        download_url = None
        base_url = settings.get_service_base_url()
        if base_url:
            download_url = f"{base_url}/api/videos/{file_id}"

        result = VideoGenerationResult(
            file_id=file_id,
            uri=target_path,
            url=public_url,
            mime_type=f"video/{output_format}",
            filename=Path(target_path).name,
            duration=audio.duration,
            size=size,
            timestamp=int(time.time()),
            slides=self._slide_records(slides, params.durations, graph),
            download_url=download_url,
        )

        logger.info(
            f"✅ Video generation completed: {target_path} "
            f"({audio.duration:.1f}s, {len(slides)} slide(s), {time.time() - started:.1f}s elapsed)"
        )
        return result

    def build_params(
        self,
        action_config: Mapping[str, Any],
        slides: List[ImageSlide],
        audio: AudioTrack,
        output_path: str,
        pipeline_context: PipelineContext,
    ) -> VideoParams:
        """
        Turn the action configuration into VideoParams (durations not yet allocated).

        Raises:
            ConfigurationError: For an unparseable resolution or a
                negative transition duration
        """
        resolution = get_string_value(action_config, "resolution", "")
        if not resolution:
            quality = get_string_value(action_config, "video_quality", settings.get_default_video_quality())
            orientation = get_string_value(action_config, "orientation", settings.get_default_orientation())
            resolution = resolution_for_quality(quality, orientation)
        width, height = parse_resolution(resolution)
        resolution = f"{width}:{height}"

        transition_duration = get_float_value(
            action_config, "transition_duration", settings.get_default_transition_duration()
        )
        if transition_duration < 0:
            raise ConfigurationError(
                f"Transition duration must not be negative, got {transition_duration}",
                key="transition_duration",
            )

        framerate = get_float_value(action_config, "framerate", 0.0)
        bitrate = get_string_value(action_config, "bitrate", "")

        return VideoParams(
            slides=slides,
            audio=audio,
            output_path=output_path,
            resolution=resolution,
            transition_type=get_string_value(
                action_config, "transition_type", settings.get_default_transition_type()
            ),
            transition_duration=transition_duration,
            bitrate=bitrate or None,
            framerate=framerate if framerate > 0 else None,
            ken_burns=parse_ken_burns(action_config),
            context_values=dict(pipeline_context.step_outputs),
        )

    @staticmethod
    def _output_location(
        action_config: Mapping[str, Any],
        output_path: Optional[str],
        file_id: str,
        output_format: str,
    ) -> Tuple[str, str]:
        """Return (output path, public url) and make sure the directory exists"""
        explicit = output_path or get_string_value(action_config, "output_path", "")
        if explicit:
            path = Path(explicit)
            url = str(path)
        else:
            month = datetime.now().strftime("%Y-%m")
            filename = f"video_{file_id}.{output_format}"
            path = Path(settings.get_output_root()) / month / filename
            url = f"{settings.get_public_url_prefix()}/{month}/{filename}"

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(f"Failed to create output directory: {e}", key="output_path") from e
        return str(path), url

    @staticmethod
    def _slide_records(slides: List[ImageSlide], durations: List[float], graph: FilterGraph) -> List[SlideInfo]:
        records = []
        for index, slide in enumerate(slides):
            overlays = graph.overlays.get(index, [])
            record = SlideInfo(file_id=slide.file_id, duration=durations[index], step_key=slide.step_key)
            if overlays:
                record.text_overlay = {"text": overlays[0].text, "position": overlays[0].position}
                record.text_blocks = [_overlay_summary(overlay) for overlay in overlays]
            records.append(record)
        return records


def _overlay_summary(overlay: TextOverlay) -> Dict[str, str]:
    summary = {
        "id": overlay.id,
        "text": overlay.text,
        "position": overlay.position,
        "font_size": overlay.font_size,
        "font_color": overlay.font_color,
    }
    if overlay.background_color:
        summary["background_color"] = overlay.background_color
    return summary
