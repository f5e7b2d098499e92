"""Pydantic models for the image generation agent."""
from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from prompt_enhancement.schemas import CamelModel

UseCase = Literal[
    "blog-header",
    "social-post",
    "hero-banner",
    "product-feature",
    "team-photo",
    "concept-illustration",
    "custom",
]

Platform = Literal["web", "blog", "twitter", "linkedin", "instagram", "facebook", "email", "print"]

StylePreference = Literal[
    "photorealistic",
    "illustration",
    "minimalist",
    "professional",
    "marketing",
    "editorial",
    "social-media",
    "custom",
]


class _FrozenCamelModel(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class GenerationRequest(CamelModel):
    """Caller-facing request: a free-text intent plus optional hints."""

    intent: str = Field(..., description="Natural language description of what to generate")
    use_case: Optional[UseCase] = Field(
        default=None, description="Use-case hint; auto-detected if omitted"
    )
    platform: Optional[Platform] = Field(
        default=None, description="Platform hint; auto-detected if omitted"
    )
    style_preference: Optional[StylePreference] = Field(
        default=None, description="Style hint; auto-detected if omitted"
    )
    refinement_instructions: List[str] = Field(
        default_factory=list,
        description="Follow-up edits applied one after another to the generated image",
    )
    filename: Optional[str] = Field(default=None, description="Custom filename stem")


class DetectedIntent(_FrozenCamelModel):
    use_case: UseCase
    topic: str
    style: StylePreference
    platform: Optional[Platform] = None
    confidence: int = Field(..., ge=0, le=100)
    signals: List[str] = Field(default_factory=list)


class IntentValidation(_FrozenCamelModel):
    is_valid: bool
    suggestions: List[str] = Field(default_factory=list)


class CompositionSpec(_FrozenCamelModel):
    aspect_ratio: str
    framing: str
    perspective: str


class TechnicalSpec(_FrozenCamelModel):
    lighting: str
    camera: str
    quality: str


class ContextSpec(_FrozenCamelModel):
    """Structured visual specification derived from a detected intent."""

    use_case: UseCase
    subject: str
    style: StylePreference
    composition: CompositionSpec
    technical: TechnicalSpec
    mood: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)


class ContextValidation(_FrozenCamelModel):
    is_valid: bool
    missing: List[str] = Field(default_factory=list)


class TranslatedPrompt(_FrozenCamelModel):
    prompt: str
    negative_prompt: str = ""
    optimizations: List[str] = Field(default_factory=list)
    quality_score: int = Field(..., ge=0, le=100)


class TranslationValidation(_FrozenCamelModel):
    is_valid: bool
    issues: List[str] = Field(default_factory=list)


class Reasoning(CamelModel):
    """Trace of every stage that ran before the outcome was decided."""

    detected_intent: Optional[DetectedIntent] = None
    context_analysis: Optional[ContextSpec] = None
    translated_prompt: Optional[TranslatedPrompt] = None


class EnhancementSummary(CamelModel):
    used: bool = Field(default=False, description="Whether the LLM-enhanced prompt was used")
    total_iterations: int = 0
    final_confidence: Optional[int] = None
    error: Optional[str] = None


class GenerationResponse(CamelModel):
    """Caller-facing response envelope; failures are reported here, never raised."""

    success: bool = Field(..., description="Whether an image was produced")
    image_url: Optional[str] = Field(default=None, description="Public URL of the image")
    file_path: Optional[str] = Field(default=None, description="Local path of the image")
    error: Optional[str] = Field(default=None, description="Human-readable failure message")
    reasoning: Reasoning = Field(default_factory=Reasoning)
    original_intent: str = Field(..., description="Echo of the request intent")
    processing_time: int = Field(default=0, description="Milliseconds spent in generate()")
    warnings: List[str] = Field(default_factory=list)
    refinements_applied: int = 0
    attempts: int = Field(default=0, description="Image synthesis calls made for the base image")
    enhancement: Optional[EnhancementSummary] = None


__all__ = [
    "CompositionSpec",
    "ContextSpec",
    "ContextValidation",
    "DetectedIntent",
    "EnhancementSummary",
    "GenerationRequest",
    "GenerationResponse",
    "IntentValidation",
    "Platform",
    "Reasoning",
    "StylePreference",
    "TechnicalSpec",
    "TranslatedPrompt",
    "TranslationValidation",
    "UseCase",
]
