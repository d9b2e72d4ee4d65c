"""
Pipeline context seen by the video engine.

The pipeline framework owns execution; the engine only reads step metadata
and step outputs that upstream upload steps have already materialized.
The context is read-only for the duration of one build.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class UploadImageConfig(BaseModel):
    """Per-image settings attached to an upload-image step"""
    duration: float = 0.0
    text_overlay: Optional[Dict[str, Any]] = None
    text_blocks: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator('duration', mode='before')
    @classmethod
    def _coerce_duration(cls, value: Any) -> float:
        try:
            return float(value) if value not in (None, "") else 0.0
        except (TypeError, ValueError):
            return 0.0


class PipelineStep(BaseModel):
    """The subset of a pipeline step that file resolution relies on"""
    id: str = ""
    step_output_key: str = ""
    output_type: str = ""
    weight: int = 0
    upload_image_config: Optional[UploadImageConfig] = None

    @field_validator('weight', mode='before')
    @classmethod
    def _coerce_weight(cls, value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0


class PipelineContext(BaseModel):
    """
    Step outputs keyed by step output key, plus the ordered step list.

    Example:
        >>> ctx = PipelineContext(
        ...     step_outputs={"image_1": {"uri": "/data/images/a.png", "mime_type": "image/png"}},
        ...     steps=[PipelineStep(id="s1", step_output_key="image_1", output_type="featured_image")],
        ... )
    """
    step_outputs: Dict[str, Any] = Field(default_factory=dict)
    steps: List[PipelineStep] = Field(default_factory=list)

    def get_step_output(self, key: str) -> tuple[Any, bool]:
        """Return (value, exists) for a step output key"""
        if key in self.step_outputs:
            return self.step_outputs[key], True
        return None, False

    def get_steps_by_output_type(self, output_type: str) -> List[PipelineStep]:
        return [step for step in self.steps if step.output_type == output_type]

    def get_step_by_output_key(self, output_key: str) -> Optional[PipelineStep]:
        for step in self.steps:
            if step.step_output_key == output_key:
                return step
        return None
