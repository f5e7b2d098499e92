"""Pydantic models for the LLM-driven prompt enhancement loop."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EnhancementRequest(CamelModel):
    """Input payload describing what the enhanced prompt should produce."""

    user_intent: str = Field(..., min_length=1, description="Free-text description of the image")
    use_case: str = Field(..., description="Detected or requested use case, e.g. 'blog-header'")
    style_preference: str = Field(default="photorealistic")
    aspect_ratio: str = Field(default="16:9")
    additional_context: Optional[str] = Field(default=None)


class CompositionAttributes(CamelModel):
    framing: str = ""
    perspective: str = ""
    focal_point: str = ""


class LightingAttributes(CamelModel):
    type: str = ""
    direction: str = ""
    mood: str = ""


class StyleAttributes(CamelModel):
    genre: str = ""
    aesthetic: str = ""
    references: List[str] = Field(default_factory=list)


class CameraAttributes(CamelModel):
    camera: str = ""
    lens: str = ""
    aperture: str = ""
    iso: str = ""


class ColorAttributes(CamelModel):
    palette: List[str] = Field(default_factory=list)
    temperature: str = ""
    saturation: str = ""


class VisualAttributes(CamelModel):
    """Visual breakdown of an intent, as extracted by the LLM."""

    subject: str = Field(..., min_length=1)
    composition: CompositionAttributes = Field(default_factory=CompositionAttributes)
    lighting: LightingAttributes = Field(default_factory=LightingAttributes)
    style: StyleAttributes = Field(default_factory=StyleAttributes)
    technical: CameraAttributes = Field(default_factory=CameraAttributes)
    colors: ColorAttributes = Field(default_factory=ColorAttributes)
    mood: List[str] = Field(default_factory=list)


class TechnicalDetails(CamelModel):
    composition: str = ""
    lighting: str = ""
    camera_settings: str = ""
    color_palette: str = ""


class OptimizationReply(CamelModel):
    """Shape of the JSON object the optimization template asks the LLM for."""

    optimized_prompt: str = Field(..., min_length=1)
    negative_prompt: str = ""
    reasoning: str = ""
    expected_issues: List[str] = Field(default_factory=list)
    technical_details: TechnicalDetails = Field(default_factory=TechnicalDetails)
    confidence_score: Optional[float] = None


class EnhancedPrompt(CamelModel):
    """One successful iteration's prompt."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    optimized_prompt: str
    negative_prompt: str
    reasoning: str = ""
    expected_issues: List[str] = Field(default_factory=list)
    technical_details: TechnicalDetails = Field(default_factory=TechnicalDetails)
    iteration_number: int = Field(..., ge=1)
    confidence_score: int = Field(..., ge=0, le=100)


class ImageCritique(CamelModel):
    artifacts: List[str] = Field(default_factory=list)
    generic_issues: List[str] = Field(default_factory=list)
    composition_problems: List[str] = Field(default_factory=list)
    lighting_issues: List[str] = Field(default_factory=list)
    overall_quality: float = Field(..., ge=0, le=100)
    suggested_improvements: List[str] = Field(default_factory=list)
    should_refine: bool = True


class IterationRecord(CamelModel):
    iteration: int = Field(..., ge=1)
    prompt: EnhancedPrompt
    timestamp: int = Field(..., description="Epoch milliseconds when the iteration finished")
    image_url: Optional[str] = None
    critique: Optional[ImageCritique] = None


class EnhancementResult(CamelModel):
    """Envelope returned by :meth:`PromptEnhancementAgent.enhance`."""

    success: bool
    final_prompt: Optional[EnhancedPrompt] = None
    iterations: List[IterationRecord] = Field(default_factory=list)
    total_iterations: int = 0
    attempts: int = Field(default=0, description="LLM optimization calls attempted")
    processing_time: int = Field(default=0, description="Milliseconds")
    error: Optional[str] = None
    error_type: Optional[str] = None


__all__ = [
    "CamelModel",
    "CameraAttributes",
    "ColorAttributes",
    "CompositionAttributes",
    "EnhancedPrompt",
    "EnhancementRequest",
    "EnhancementResult",
    "ImageCritique",
    "IterationRecord",
    "LightingAttributes",
    "OptimizationReply",
    "StyleAttributes",
    "TechnicalDetails",
    "VisualAttributes",
]
