"""
Filter Graph Builder - Builds the filter_complex graph for a slideshow.

Graph layout for n slides:

    [i:v]scale=...,setsar=1,format=yuv420p[,zoompan=...][,drawtext=...]...[v{i}]
    [v{i}]trim=duration=D,setpts=PTS-STARTPTS[hold{i}]
    [hold0][hold1]xfade=...[trans1];[trans1][hold2]xfade=...[trans2];...

A single slide is one chain ending in [hold0] with no transitions.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from slidecast import settings
from slidecast.core.exceptions import ConfigurationError, OverlayValidationError
from slidecast.core.models import ImageSlide, TextOverlay, VideoParams
from slidecast.core.video.ken_burns import build_zoompan_filter
from slidecast.core.video.text_overlay import TextOverlayEngine

logger = logging.getLogger(__name__)

MIN_SEGMENT_DURATION = 0.001


def scale_fragment(width: int, height: int) -> str:
    """Scale to the target size with even dimensions, square pixels and yuv420p"""
    return f"scale={width}:{height}:force_divisible_by=2,setsar=1,format=yuv420p"


def trim_fragment(duration: float) -> str:
    return f"trim=duration={max(MIN_SEGMENT_DURATION, duration):.3f},setpts=PTS-STARTPTS"


def xfade_fragment(transition_type: str, duration: float, offset: float) -> str:
    return f"xfade=transition={transition_type}:duration={duration:.3f}:offset={offset:.3f}"


def transition_offsets(durations: Sequence[float], transition_duration: float) -> List[float]:
    """
    Start time of each crossfade, one per slide after the first.

    Crossfade i starts when the stream built so far (slides 0..i-1 joined by
    i-1 earlier crossfades) has transition_duration seconds left.

    Example:
        >>> transition_offsets([3.0, 3.0, 3.0], 1.0)
        [2.0, 4.0]
    """
    if len(durations) < 2:
        return []

    safe_transition = max(MIN_SEGMENT_DURATION, transition_duration)
    offsets = []
    current = durations[0] - safe_transition
    for duration in durations[1:]:
        offsets.append(max(0.0, current))
        current += max(MIN_SEGMENT_DURATION, duration) - safe_transition
    return offsets


@dataclass
class FilterStage:
    """One ';'-separated stage: input pads, a ','-joined filter chain, one output pad"""
    inputs: List[str]
    filters: List[str]
    output: str

    def render(self) -> str:
        pads_in = "".join(f"[{pad}]" for pad in self.inputs)
        return f"{pads_in}{','.join(self.filters)}[{self.output}]"


@dataclass
class FilterGraph:
    """
    A filter_complex graph under construction.

    ``overlays`` records, per slide index, the overlays that were actually
    drawn (with placeholders substituted).
    """
    stages: List[FilterStage] = field(default_factory=list)
    overlays: Dict[int, List[TextOverlay]] = field(default_factory=dict)

    def add_stage(self, inputs: List[str], filters: List[str], output: str) -> FilterStage:
        """
        Append a stage.

        Input pads are either encoder streams ("0:v") or outputs of earlier
        stages; each stage output may be consumed once.

        Raises:
            ValueError: If the output label is reused or an input pad is
                unknown or already consumed
        """
        known = {stage.output for stage in self.stages}
        if output in known:
            raise ValueError(f"Pad label [{output}] is already defined")

        consumed = {pad for stage in self.stages for pad in stage.inputs}
        for pad in inputs:
            if ":" in pad:
                continue
            if pad not in known:
                raise ValueError(f"Pad label [{pad}] is not defined")
            if pad in consumed:
                raise ValueError(f"Pad label [{pad}] is already consumed")

        stage = FilterStage(inputs=list(inputs), filters=list(filters), output=output)
        self.stages.append(stage)
        return stage

    @property
    def final_pad(self) -> str:
        if not self.stages:
            raise ValueError("Filter graph is empty")
        return self.stages[-1].output

    def render(self) -> str:
        return ";".join(stage.render() for stage in self.stages)

    def __str__(self) -> str:
        return self.render()


class FilterGraphBuilder:
    """
    Builds the filter graph for one video build.

    Example:
        >>> builder = FilterGraphBuilder()
        >>> graph = builder.build(params)
        >>> graph.render()
        '[0:v]scale=1280:720:force_divisible_by=2,setsar=1,format=yuv420p,trim=duration=8.000,...'
    """

    def __init__(self, text_engine: Optional[TextOverlayEngine] = None):
        self.text_engine = text_engine or TextOverlayEngine()

    def build(self, params: VideoParams) -> FilterGraph:
        """
        Build the graph for the slides, durations and settings in params.

        Raises:
            ConfigurationError: If there are no slides or the durations do not
                line up with the slides
        """
        count = len(params.slides)
        if count == 0:
            raise ConfigurationError("Cannot build a filter graph without slides")
        if len(params.durations) != count:
            raise ConfigurationError(
                f"Got {len(params.durations)} duration(s) for {count} slide(s)", key="durations"
            )

        graph = FilterGraph()

        if count == 1:
            filters = self._slide_filters(params, 0, graph)
            filters.append(trim_fragment(params.durations[0]))
            graph.add_stage(["0:v"], filters, "hold0")
            logger.debug(f"Single-slide graph: {graph.render()}")
            return graph

        for index in range(count):
            graph.add_stage([f"{index}:v"], self._slide_filters(params, index, graph), f"v{index}")

        for index, duration in enumerate(params.durations):
            graph.add_stage([f"v{index}"], [trim_fragment(duration)], f"hold{index}")

        transition = max(MIN_SEGMENT_DURATION, params.transition_duration)
        last_output = "hold0"
        for index, offset in enumerate(transition_offsets(params.durations, params.transition_duration), start=1):
            graph.add_stage(
                [last_output, f"hold{index}"],
                [xfade_fragment(params.transition_type, transition, offset)],
                f"trans{index}",
            )
            last_output = f"trans{index}"

        logger.debug(f"Filter graph with {count} slides and {count - 1} transition(s): {graph.render()}")
        return graph

    def _slide_filters(self, params: VideoParams, index: int, graph: FilterGraph) -> List[str]:
        width, height = params.dimensions
        duration = params.durations[index]
        filters = [scale_fragment(width, height)]

        if params.ken_burns.enabled:
            framerate = int(params.framerate) if params.framerate else settings.get_default_framerate()
            filters.append(build_zoompan_filter(params.ken_burns, index, duration, framerate, width, height))

        text_filters = self.overlay_filters(params.slides[index], index, duration, params.context_values, graph)
        filters.extend(text_filters)
        return filters

    def overlay_filters(
        self,
        slide: ImageSlide,
        index: int,
        duration: float,
        context_values: Dict,
        graph: Optional[FilterGraph] = None,
    ) -> List[str]:
        """
        Build the drawtext stages for a slide's active overlays.

        Inactive or malformed overlays are logged and skipped; the slide still
        renders.
        """
        active: List[TextOverlay] = []
        for config in slide.overlay_configs:
            try:
                overlay = self.text_engine.require_active(config)
            except OverlayValidationError as e:
                logger.warning(f"⚠️ Skipping text overlay on slide {index} ({slide.step_key}): {e}")
                continue

            text = self.text_engine.process_text_content(overlay.text, context_values)
            if not text:
                logger.warning(f"⚠️ Skipping text overlay on slide {index}: text is empty after substitution")
                continue
            active.append(overlay.model_copy(update={"text": text}))

        if graph is not None:
            graph.overlays[index] = active

        filters = []
        for overlay, offset in self.text_engine.stack_overlays(active):
            filters.append(self.text_engine.build_text_filter(overlay, duration, offset))
        if filters:
            logger.debug(f"Slide {index}: {len(filters)} text overlay(s)")
        return filters
