"""Deterministic prompt assembly and a heuristic prompt-quality score."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from .schemas import ContextSpec, StylePreference, TranslatedPrompt, TranslationValidation, UseCase

LOGGER = logging.getLogger("image_agent.prompt")

QUALITY_KEYWORDS = ["high resolution", "professional quality", "detailed", "sharp focus", "8K quality"]
BASE_QUALITY_TERMS = ["high resolution", "professional quality", "detailed"]
STYLE_QUALITY_TERMS: Dict[StylePreference, List[str]] = {
    "photorealistic": ["sharp focus", "8K quality"],
    "illustration": ["clean lines", "vibrant colors"],
    "minimalist": ["clean", "crisp"],
}
MAX_QUALITY_TERMS = 5
MOOD_TERMS_IN_PROMPT = 3

DEFAULT_NEGATIVE_PROMPTS = [
    "blurry",
    "low quality",
    "distorted",
    "watermark",
    "text overlay",
    "pixelated",
    "amateur",
    "generic stock photo",
    "cluttered",
    "messy",
]
USE_CASE_NEGATIVES: Dict[UseCase, List[str]] = {
    "blog-header": ["clickbait", "sensational"],
    "social-post": ["boring", "unappealing"],
    "hero-banner": ["small", "unimpressive"],
    "product-feature": ["damaged", "cheap-looking"],
    "team-photo": ["unflattering", "awkward"],
}
STYLE_NEGATIVES: Dict[StylePreference, List[str]] = {
    "photorealistic": ["artificial", "fake", "CGI"],
    "illustration": ["photographic", "realistic"],
    "minimalist": ["cluttered", "busy", "complex"],
}

# Leading phrase of each style's descriptor; presence counts as a style specification.
STYLE_DESCRIPTORS = [
    "photorealistic",
    "digital illustration",
    "minimalist design",
    "professional business photography",
    "marketing campaign quality",
    "editorial photography",
    "social media optimized",
    "hero banner style",
]
VAGUE_TERMS = ["nice", "good", "cool", "awesome", "thing", "stuff"]
TECHNICAL_TERMS = ["lighting", "camera", "angle", "composition", "focus"]

MIN_PROMPT_LENGTH = 50
MAX_PROMPT_LENGTH = 2000
RECOMMENDED_QUALITY = 60


@dataclass(frozen=True)
class PromptScore:
    score: int
    suggestions: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.score >= 50


def score_prompt(prompt: str) -> PromptScore:
    """Heuristic 0-100 quality estimate for a prompt.

    Starts at 100 and subtracts: 30 for fewer than 10 characters (10 for fewer
    than 30), 15 for vague wording, 10 when no style descriptor is present and
    10 when no technical term (lighting, camera, angle, composition, focus)
    appears. Hand-tuned rules, not a learned model.
    """

    lowered = prompt.lower()
    score = 100
    suggestions: List[str] = []

    if len(prompt) < 10:
        suggestions.append("Prompt is too short. Add more descriptive details.")
        score -= 30
    elif len(prompt) < 30:
        suggestions.append("Consider adding more specific details for better results.")
        score -= 10

    if any(term in lowered for term in VAGUE_TERMS):
        suggestions.append("Replace vague terms with specific descriptive language.")
        score -= 15

    if not any(descriptor in lowered for descriptor in STYLE_DESCRIPTORS):
        suggestions.append(
            "Consider adding a style specification (e.g., photorealistic, illustration)."
        )
        score -= 10

    if not any(term in lowered for term in TECHNICAL_TERMS):
        suggestions.append("Add technical details like lighting or camera angle for more control.")
        score -= 10

    return PromptScore(score=max(0, score), suggestions=suggestions)


def _unique(items: List[str]) -> List[str]:
    """Drop repeats case-insensitively, keeping the first spelling and order."""

    seen: Dict[str, str] = {}
    for item in items:
        seen.setdefault(item.strip().lower(), item)
    return list(seen.values())


class PromptTranslator:
    """Builds a paragraph-style prompt from a :class:`ContextSpec`.

    Order is fixed: subject, composition, lighting and camera, color palette,
    quality keywords, mood phrase. The output depends only on the context, so
    translating the same context twice gives identical results.
    """

    def __init__(self, enhance_prompts: bool = True, add_negative_prompts: bool = True) -> None:
        self.enhance_prompts = enhance_prompts
        self.add_negative_prompts = add_negative_prompts

    def translate(self, context: ContextSpec) -> TranslatedPrompt:
        parts: List[str] = [context.subject]
        optimizations = ["Front-loaded subject for Gemini optimization"]

        spec = context.composition
        composition = [spec.framing, spec.perspective]
        if spec.aspect_ratio:
            composition.append(f"aspect ratio {spec.aspect_ratio}")
        composition = [item for item in composition if item]
        if composition:
            parts.append(", ".join(composition))
            optimizations.append("Added composition specifications")

        technical = [
            item for item in (context.technical.lighting, context.technical.camera) if item
        ]
        if technical:
            parts.append(", ".join(technical))
            optimizations.append("Added technical photography details")

        if context.colors:
            parts.append(f"{' and '.join(context.colors)} color palette")
            optimizations.append("Specified color palette")

        if self.enhance_prompts:
            parts.append(", ".join(self.select_quality_keywords(context)))
            optimizations.append("Added Gemini-optimized quality keywords")
            if context.mood:
                parts.append(f"{', '.join(context.mood[:MOOD_TERMS_IN_PROMPT])} atmosphere")
                optimizations.append("Added mood/atmosphere for emotional context")

        prompt = ", ".join(parts)
        negative = self.negative_prompt_for(context) if self.add_negative_prompts else ""
        translated = TranslatedPrompt(
            prompt=prompt,
            negative_prompt=negative,
            optimizations=optimizations,
            quality_score=score_prompt(prompt).score,
        )
        LOGGER.debug("Translated prompt (score %s): %s", translated.quality_score, prompt)
        return translated

    def select_quality_keywords(self, context: ContextSpec) -> List[str]:
        keywords = list(BASE_QUALITY_TERMS)
        keywords.extend(STYLE_QUALITY_TERMS.get(context.style, []))
        if context.technical.quality:
            terms = [term.strip() for term in context.technical.quality.split(",")]
            keywords.extend(term for term in terms[:2] if term)
        return _unique(keywords)[:MAX_QUALITY_TERMS]

    def negative_prompt_for(self, context: ContextSpec) -> str:
        negatives = list(DEFAULT_NEGATIVE_PROMPTS)
        negatives.extend(USE_CASE_NEGATIVES.get(context.use_case, []))
        negatives.extend(STYLE_NEGATIVES.get(context.style, []))
        return ", ".join(_unique(negatives))

    def enhance_prompt(self, translated: TranslatedPrompt, details: str) -> TranslatedPrompt:
        """Append caller-supplied details and rescore."""

        prompt = f"{translated.prompt}, {details}"
        return translated.model_copy(
            update={
                "prompt": prompt,
                "quality_score": score_prompt(prompt).score,
                "optimizations": [
                    *translated.optimizations,
                    "Enhanced with additional user details",
                ],
            }
        )

    def optimize_for_refinement(self, translated: TranslatedPrompt, instruction: str) -> str:
        return (
            f"Based on the previous image, {instruction.strip().rstrip('.')}. "
            "Maintain the overall style and quality."
        )

    def validate_translation(self, translated: TranslatedPrompt) -> TranslationValidation:
        issues: List[str] = []
        if len(translated.prompt) < MIN_PROMPT_LENGTH:
            issues.append("Prompt too short - may not have enough detail for quality output")
        if len(translated.prompt) > MAX_PROMPT_LENGTH:
            issues.append("Prompt too long - may exceed model limits")
        if translated.quality_score < RECOMMENDED_QUALITY:
            issues.append(
                f"Quality score ({translated.quality_score}) below recommended threshold "
                f"({RECOMMENDED_QUALITY})"
            )
        if len(translated.prompt) <= 10:
            issues.append("Missing clear subject description")
        lowered = translated.prompt.lower()
        if not any(keyword.lower() in lowered for keyword in QUALITY_KEYWORDS):
            issues.append("Missing quality specifications")
        return TranslationValidation(is_valid=not issues, issues=issues)


__all__ = [
    "DEFAULT_NEGATIVE_PROMPTS",
    "PromptScore",
    "PromptTranslator",
    "QUALITY_KEYWORDS",
    "score_prompt",
]
