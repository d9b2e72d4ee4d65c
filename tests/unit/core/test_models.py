"""
Unit tests for the build data model and pipeline context.
"""

import pytest

from slidecast.core.models import (
    ImageSlide,
    SlideInfo,
    TextOverlay,
    VideoGenerationResult,
    VideoParams,
    AudioTrack,
    is_enabled_flag,
)
from slidecast.core.pipeline_context import PipelineContext, PipelineStep


class TestEnabledFlag:

    @pytest.mark.parametrize("value", [True, "1", "true", "TRUE", "True", 1, 1.0])
    def test_truthy_values(self, value):
        assert is_enabled_flag(value) is True

    @pytest.mark.parametrize("value", [False, "0", "yes", "", 0, 2, None, [], {}])
    def test_falsy_values(self, value):
        assert is_enabled_flag(value) is False


class TestTextOverlay:
    """Coercion of overlay settings as they arrive from JSON"""

    def test_defaults(self):
        overlay = TextOverlay()
        assert overlay.position == "center"
        assert overlay.font_size == "40"
        assert overlay.font_color == "white"
        assert overlay.enabled is False
        assert overlay.animation is None

    def test_numbers_and_case(self):
        overlay = TextOverlay.model_validate({
            "text": "Hi",
            "enabled": "1",
            "position": " Top_Left ",
            "font_size": 32.0,
            "custom_x": 100,
            "font_style": "OUTLINE",
        })
        assert overlay.enabled is True
        assert overlay.position == "top_left"
        assert overlay.font_size == "32"
        assert overlay.font_size_px == 32
        assert overlay.custom_x == "100"
        assert overlay.font_style == "outline"

    def test_unparseable_font_size(self):
        assert TextOverlay(font_size="big").font_size_px == 24

    @pytest.mark.parametrize("font_size", ["inf", "-inf", "nan", "0", "-12"])
    def test_out_of_range_font_size_falls_back(self, font_size):
        """Infinite, NaN and non-positive sizes never abort the build"""
        assert TextOverlay(font_size=font_size).font_size_px == 24

    def test_animation(self):
        overlay = TextOverlay.model_validate({
            "animation": {"type": "Fade", "easing": None, "duration": "0.5", "delay": -3}
        })
        assert overlay.animation.type == "fade"
        assert overlay.animation.easing == "linear"
        assert overlay.animation.duration == 0.5
        assert overlay.animation.delay == 0.0


class TestImageSlide:

    def test_overlay_configs_combines_overlay_and_blocks(self):
        slide = ImageSlide(uri="/a.png", text_overlay={"text": "a"}, text_blocks=[{"text": "b"}, {"text": "c"}])
        assert [config["text"] for config in slide.overlay_configs] == ["a", "b", "c"]

    def test_overlay_configs_empty(self):
        assert ImageSlide(uri="/a.png").overlay_configs == []


class TestVideoParams:

    def test_dimensions(self):
        params = VideoParams(slides=[], audio=AudioTrack(uri="/v.mp3"), output_path="/o.mp4", resolution="720:1280")
        assert params.dimensions == (720, 1280)


class TestVideoGenerationResult:

    def test_to_dict_omits_unset_optional_fields(self):
        result = VideoGenerationResult(
            file_id="123",
            uri="storage/pipeline/videos/2026-10/video_123.mp4",
            url="/storage/pipeline/videos/2026-10/video_123.mp4",
            mime_type="video/mp4",
            filename="video_123.mp4",
            duration=8.0,
            size=2048,
            timestamp=1700000000,
            slides=[SlideInfo(file_id=1, duration=8.0, step_key="image_1")],
        )
        data = result.to_dict()

        assert "download_url" not in data
        assert data["slides"] == [{"file_id": 1, "duration": 8.0, "step_key": "image_1"}]
        assert data["mime_type"] == "video/mp4"


class TestPipelineContext:

    def test_get_step_output(self):
        context = PipelineContext(step_outputs={"a": "x", "empty": None})
        assert context.get_step_output("a") == ("x", True)
        assert context.get_step_output("empty") == (None, True)
        assert context.get_step_output("missing") == (None, False)

    def test_step_lookup(self):
        context = PipelineContext(steps=[
            PipelineStep(id="1", step_output_key="img", output_type="featured_image", weight="3"),
            PipelineStep(id="2", step_output_key="voice", output_type="audio_content"),
        ])
        assert [s.id for s in context.get_steps_by_output_type("featured_image")] == ["1"]
        assert context.get_step_by_output_key("voice").id == "2"
        assert context.get_step_by_output_key("nope") is None

    def test_from_json_payload(self):
        context = PipelineContext.model_validate({
            "step_outputs": {"img": {"uri": "/a.png"}},
            "steps": [{"id": "s", "step_output_key": "img", "output_type": "featured_image", "weight": None}],
        })
        assert context.steps[0].weight == 0
