"""
Unit tests for FileResolver.

Tests cover:
- Decoding step outputs into ImageURLVariant / StructuredFileInfoVariant
- Ordering slides by step weight
- Step-level duration and overlay settings
- Fallback key scanning for images and audio
- ConfigurationError for missing references and missing files
"""

import json
from unittest.mock import MagicMock

import pytest

from slidecast.core.exceptions import ConfigurationError
from slidecast.core.file_resolver import (
    AUDIO_OUTPUT_TYPE,
    IMAGE_OUTPUT_TYPE,
    FileResolver,
    ImageURLVariant,
    StructuredFileInfoVariant,
    decode_file_reference,
    detect_mime_type,
    is_image_url,
)
from slidecast.core.models import FileInfo
from slidecast.core.pipeline_context import PipelineContext, PipelineStep, UploadImageConfig


@pytest.fixture
def media_files(tmp_path):
    """Three images and one audio file on disk"""
    images = []
    for name in ("a.png", "b.png", "c.png"):
        path = tmp_path / name
        path.write_bytes(b"\x89PNG fake")
        images.append(str(path))
    audio = tmp_path / "voice.mp3"
    audio.write_bytes(b"ID3 fake")
    return images, str(audio)


def image_output(path, **extra):
    record = {"file_id": 1, "uri": path, "mime_type": "image/png", "filename": path.rsplit("/", 1)[-1]}
    record.update(extra)
    return record


def audio_output(path):
    return {"file_id": 99, "uri": path, "mime_type": "audio/mpeg", "filename": "voice.mp3"}


def make_context(images, audio, weights=None, as_json=False):
    weights = weights or list(range(len(images)))
    step_outputs = {}
    steps = []
    for index, (path, weight) in enumerate(zip(images, weights)):
        key = f"image_{index}"
        value = image_output(path, file_id=index + 1)
        step_outputs[key] = json.dumps(value) if as_json else value
        steps.append(PipelineStep(id=f"s{index}", step_output_key=key, output_type=IMAGE_OUTPUT_TYPE, weight=weight))
    step_outputs["narration"] = audio_output(audio)
    steps.append(PipelineStep(id="audio", step_output_key="narration", output_type=AUDIO_OUTPUT_TYPE, weight=10))
    return PipelineContext(step_outputs=step_outputs, steps=steps)


class TestDecodeFileReference:
    """Boundary decoding of heterogeneous step outputs"""

    def test_bare_image_url(self):
        reference = decode_file_reference("https://cdn.example.com/pic.jpg", IMAGE_OUTPUT_TYPE)
        assert reference == ImageURLVariant(url="https://cdn.example.com/pic.jpg")
        assert reference.kind == "image_url"

    def test_json_string(self):
        value = json.dumps({"uri": "/data/images/a.png", "mime_type": "image/png", "file_id": "12"})
        reference = decode_file_reference(value, IMAGE_OUTPUT_TYPE)

        assert isinstance(reference, StructuredFileInfoVariant)
        assert reference.info.uri == "/data/images/a.png"
        assert reference.info.file_id == 12

    def test_mapping(self):
        reference = decode_file_reference({"uri": "/data/audio/v.mp3", "mime_type": "audio/mpeg"}, AUDIO_OUTPUT_TYPE)
        assert isinstance(reference, StructuredFileInfoVariant)
        assert reference.kind == "file_info"

    def test_file_info_instance(self):
        info = FileInfo(uri="/data/images/a.png", mime_type="image/png")
        assert decode_file_reference(info, IMAGE_OUTPUT_TYPE).info is info

    def test_wrong_output_type_is_rejected(self):
        assert decode_file_reference({"uri": "/data/audio/v.mp3", "mime_type": "audio/mpeg"}, IMAGE_OUTPUT_TYPE) is None

    def test_uri_path_identifies_type_without_mime(self):
        reference = decode_file_reference({"uri": "public://images/a.png"}, IMAGE_OUTPUT_TYPE)
        assert isinstance(reference, StructuredFileInfoVariant)

    @pytest.mark.parametrize("value", ["plain text output", "[1, 2, 3]", 42, None, {"no_uri": True}])
    def test_non_file_values(self, value):
        assert decode_file_reference(value, IMAGE_OUTPUT_TYPE) is None

    def test_url_is_not_image_for_audio(self):
        assert decode_file_reference("https://cdn.example.com/pic.jpg", AUDIO_OUTPUT_TYPE) is None


class TestHelpers:

    def test_is_image_url(self):
        assert is_image_url("https://x.com/a.PNG")
        assert is_image_url("http://x.com/image?id=3")
        assert not is_image_url("/local/a.png")
        assert not is_image_url("https://x.com/track.mp3")

    @pytest.mark.parametrize("url,expected", [
        ("a.jpg", "image/jpeg"),
        ("a.jpeg", "image/jpeg"),
        ("a.png", "image/png"),
        ("a.webp", "image/webp"),
        ("a.gif", "image/gif"),
        ("a.mp3", "audio/mpeg"),
        ("a.wav", "audio/wav"),
        ("a.bin", "application/octet-stream"),
    ])
    def test_detect_mime_type(self, url, expected):
        assert detect_mime_type(url, "application/octet-stream") == expected

    @pytest.mark.parametrize("uri,expected", [
        ("file:///tmp/a.png", "/tmp/a.png"),
        ("public://images/a.png", "images/a.png"),
        ("/abs/a.png", "/abs/a.png"),
        ("storage/pipeline/a.png", "storage/pipeline/a.png"),
        ("relative/a.png", "relative/a.png"),
    ])
    def test_uri_to_file_path(self, uri, expected):
        assert FileResolver.uri_to_file_path(uri) == expected


class TestResolveImages:
    """Slide collection and ordering"""

    def test_slides_are_ordered_by_weight(self, media_files):
        images, audio = media_files
        context = make_context(images, audio, weights=[30, 10, 20])

        slides = FileResolver().resolve_images(context)

        assert [slide.uri for slide in slides] == [images[1], images[2], images[0]]
        assert [slide.order_weight for slide in slides] == [10, 20, 30]
        assert [slide.step_key for slide in slides] == ["image_1", "image_2", "image_0"]

    def test_equal_weights_keep_step_order(self, media_files):
        images, audio = media_files
        context = make_context(images, audio, weights=[5, 5, 5])

        slides = FileResolver().resolve_images(context)
        assert [slide.uri for slide in slides] == images

    def test_json_string_outputs(self, media_files):
        images, audio = media_files
        slides = FileResolver().resolve_images(make_context(images, audio, as_json=True))
        assert len(slides) == 3

    def test_file_record_duration_and_overlay(self, media_files):
        images, audio = media_files
        overlay = {"enabled": True, "text": "Hello"}
        context = PipelineContext(
            step_outputs={"img": image_output(images[0], duration="4.5", text_overlay=overlay)},
            steps=[PipelineStep(step_output_key="img", output_type=IMAGE_OUTPUT_TYPE)],
        )

        slide = FileResolver().resolve_images(context)[0]
        assert slide.explicit_duration == 4.5
        assert slide.text_overlay == overlay

    def test_step_config_overrides_file_record(self, media_files):
        images, audio = media_files
        step_overlay = {"enabled": "1", "text": "From step", "position": "top"}
        context = PipelineContext(
            step_outputs={"img": image_output(images[0], duration=2, text_overlay={"enabled": True, "text": "x"})},
            steps=[PipelineStep(
                step_output_key="img",
                output_type=IMAGE_OUTPUT_TYPE,
                upload_image_config=UploadImageConfig(
                    duration="6", text_overlay=step_overlay, text_blocks=[{"text": "b"}]
                ),
            )],
        )

        slide = FileResolver().resolve_images(context)[0]
        assert slide.explicit_duration == 6.0
        assert slide.text_overlay == step_overlay
        assert slide.text_blocks == [{"text": "b"}]
        assert slide.overlay_configs == [step_overlay, {"text": "b"}]

    def test_unset_duration_is_none(self, media_files):
        images, audio = media_files
        slide = FileResolver().resolve_images(make_context(images[:1], audio))[0]
        assert slide.explicit_duration is None

    def test_fallback_to_image_data_keys(self, media_files):
        images, audio = media_files
        context = PipelineContext(step_outputs={
            "image_data_2": image_output(images[1]),
            "image_data_1": image_output(images[0]),
            "summary": "not an image",
        })

        slides = FileResolver().resolve_images(context)
        assert [slide.uri for slide in slides] == [images[0], images[1]]

    def test_no_images_raises(self, media_files):
        _, audio = media_files
        context = PipelineContext(step_outputs={"narration": audio_output(audio)})
        with pytest.raises(ConfigurationError, match="No image files found"):
            FileResolver().resolve_images(context)

    def test_missing_image_file_raises(self, media_files, tmp_path):
        images, audio = media_files
        missing = str(tmp_path / "gone.png")
        with pytest.raises(ConfigurationError, match="Image file not found"):
            FileResolver().resolve_images(make_context([images[0], missing], audio))

    def test_remote_url_without_resolver_is_skipped(self, media_files):
        images, audio = media_files
        context = PipelineContext(
            step_outputs={"remote": "https://cdn.example.com/pic.jpg", "local": image_output(images[0])},
            steps=[
                PipelineStep(step_output_key="remote", output_type=IMAGE_OUTPUT_TYPE, weight=0),
                PipelineStep(step_output_key="local", output_type=IMAGE_OUTPUT_TYPE, weight=1),
            ],
        )

        slides = FileResolver().resolve_images(context)
        assert [slide.uri for slide in slides] == [images[0]]

    def test_remote_url_with_resolver(self, media_files):
        images, audio = media_files
        url_resolver = MagicMock(return_value=images[2])
        context = PipelineContext(
            step_outputs={"remote": "https://cdn.example.com/pic.png"},
            steps=[PipelineStep(step_output_key="remote", output_type=IMAGE_OUTPUT_TYPE)],
        )

        slides = FileResolver(url_resolver=url_resolver).resolve_images(context)

        url_resolver.assert_called_once_with("https://cdn.example.com/pic.png", "images")
        assert slides[0].uri == images[2]


class TestResolveAudio:
    """Audio track selection"""

    def test_audio_by_output_type(self, media_files):
        images, audio = media_files
        track = FileResolver().resolve_audio(make_context(images, audio))
        assert track.uri == audio
        assert track.file_id == 99
        assert track.mime_type == "audio/mpeg"

    def test_fallback_to_audio_data_key(self, media_files):
        _, audio = media_files
        context = PipelineContext(step_outputs={"audio_data": audio_output(audio)})
        assert FileResolver().resolve_audio(context).uri == audio

    def test_fallback_to_keys_containing_audio(self, media_files):
        _, audio = media_files
        context = PipelineContext(step_outputs={"tts_audio_output": json.dumps(audio_output(audio))})
        assert FileResolver().resolve_audio(context).uri == audio

    def test_missing_audio_reference_raises(self, media_files):
        images, _ = media_files
        context = PipelineContext(step_outputs={"img": image_output(images[0])})
        with pytest.raises(ConfigurationError, match="No audio file found"):
            FileResolver().resolve_audio(context)

    def test_missing_audio_file_raises(self, tmp_path):
        context = PipelineContext(step_outputs={"audio_data": audio_output(str(tmp_path / "gone.mp3"))})
        with pytest.raises(ConfigurationError, match="Audio file not found"):
            FileResolver().resolve_audio(context)


class TestResolve:

    def test_resolve_returns_slides_and_audio(self, media_files):
        images, audio = media_files
        slides, track = FileResolver().resolve(make_context(images, audio))
        assert len(slides) == 3
        assert track.uri == audio
