"""Derives a structured visual specification from a detected intent."""
from __future__ import annotations

import logging
from typing import Dict, List, Tuple

from .schemas import (
    CompositionSpec,
    ContextSpec,
    ContextValidation,
    DetectedIntent,
    StylePreference,
    TechnicalSpec,
    UseCase,
)

LOGGER = logging.getLogger("image_agent.context")

MAX_MOODS = 5

ASPECT_RATIOS: Dict[UseCase, str] = {
    "blog-header": "16:9",
    "social-post": "1:1",
    "hero-banner": "16:9",
    "product-feature": "4:3",
    "team-photo": "3:4",
    "concept-illustration": "16:9",
    "custom": "16:9",
}

# framing, perspective
COMPOSITION_SPECS: Dict[UseCase, Tuple[str, str]] = {
    "blog-header": ("wide banner format", "eye-level or slightly elevated"),
    "social-post": ("square format, bold central focus", "direct, engaging angle"),
    "hero-banner": ("wide panoramic view", "dramatic perspective"),
    "product-feature": ("clean background, product in focus", "slight angle showcasing features"),
    "team-photo": ("medium shot, portrait orientation", "eye-level, slight angle"),
    "concept-illustration": ("balanced, centered composition", "abstract or flat design"),
    "custom": ("balanced composition", "natural perspective"),
}

# lighting, camera, quality
TECHNICAL_SPECS: Dict[StylePreference, Tuple[str, str, str]] = {
    "photorealistic": (
        "natural lighting, soft diffused",
        "professional camera, shallow depth of field",
        "high resolution, sharp focus, detailed textures, 8K quality",
    ),
    "illustration": (
        "flat or stylized lighting",
        "illustrative perspective",
        "clean lines, vibrant colors, vector-quality",
    ),
    "minimalist": ("clean, even lighting", "simple perspective", "clean, crisp, high contrast"),
    "professional": (
        "professional studio lighting",
        "professional camera setup",
        "high resolution, polished, refined",
    ),
    "marketing": (
        "dramatic, eye-catching lighting",
        "dynamic angles",
        "commercial quality, high impact",
    ),
    "editorial": (
        "natural or ambient lighting",
        "magazine-quality photography",
        "publication-ready, sophisticated",
    ),
    "social-media": (
        "bright, vibrant lighting",
        "mobile-friendly perspective",
        "shareable quality, attention-grabbing",
    ),
    "custom": ("appropriate lighting", "standard perspective", "high quality"),
}

MOOD_KEYWORDS: Dict[UseCase, List[str]] = {
    "blog-header": ["informative", "engaging", "professional", "thoughtful"],
    "social-post": ["attention-grabbing", "shareable", "energetic", "vibrant"],
    "hero-banner": ["impressive", "inspiring", "memorable", "impactful"],
    "product-feature": ["appealing", "innovative", "desirable", "premium"],
    "team-photo": ["approachable", "confident", "professional", "authentic"],
    "concept-illustration": ["clear", "insightful", "creative", "elegant"],
    "custom": ["professional", "high-quality", "engaging"],
}

STYLE_MOODS: Dict[StylePreference, List[str]] = {
    "photorealistic": ["authentic", "realistic", "natural"],
    "illustration": ["creative", "artistic", "stylized"],
    "minimalist": ["clean", "simple", "elegant"],
    "professional": ["polished", "refined", "sophisticated"],
    "marketing": ["compelling", "persuasive", "impactful"],
    "editorial": ["sophisticated", "thoughtful", "refined"],
    "social-media": ["trendy", "viral", "engaging"],
    "custom": [],
}

TOPIC_MOODS: List[Tuple[Tuple[str, ...], List[str]]] = [
    (("innovative", "futuristic"), ["cutting-edge", "forward-thinking"]),
    (("warm", "friendly"), ["welcoming", "approachable"]),
    (("professional", "corporate"), ["business-like", "trustworthy"]),
    (("creative", "artistic"), ["imaginative", "expressive"]),
]

COLOR_PALETTES: List[Tuple[str, List[str]]] = [
    ("technology", ["blue", "cyan", "silver", "modern gradients"]),
    ("business", ["navy", "gray", "professional tones"]),
    ("creative", ["vibrant", "colorful", "bold contrasts"]),
    ("nature", ["green", "earth tones", "natural colors"]),
    ("health", ["blue", "green", "white", "calming tones"]),
    ("finance", ["blue", "gold", "professional", "trustworthy colors"]),
    ("education", ["blue", "orange", "bright", "engaging colors"]),
    ("food", ["warm tones", "appetizing colors", "natural"]),
]

COLOR_WORDS = ["blue", "red", "green", "yellow", "purple", "orange", "vibrant", "warm", "cool"]
DEFAULT_COLORS = ["professional", "modern", "balanced"]

SUBJECT_PREFIXES: Dict[UseCase, str] = {
    "blog-header": "Editorial photography for blog article about",
    "social-post": "Eye-catching social media graphic about",
    "hero-banner": "Hero banner showcasing",
    "product-feature": "Professional product showcase of",
    "team-photo": "Professional portrait of",
    "concept-illustration": "Abstract illustration of",
    "custom": "Image of",
}

ENHANCE_MOODS: List[Tuple[Tuple[str, ...], List[str]]] = [
    (("energetic", "dynamic"), ["energetic", "dynamic"]),
    (("calm", "peaceful"), ["calm", "peaceful"]),
]
ENHANCE_COLORS = ["blue", "red", "green", "vibrant", "warm", "cool"]


def _unique(items: List[str]) -> List[str]:
    return list(dict.fromkeys(items))


class ContextDeriver:
    """Pure table lookups from (use case, style, topic) to a :class:`ContextSpec`."""

    def __init__(self, use_templates: bool = True) -> None:
        self.use_templates = use_templates

    def derive(self, detected: DetectedIntent) -> ContextSpec:
        framing, perspective = COMPOSITION_SPECS[detected.use_case]
        lighting, camera, quality = TECHNICAL_SPECS[detected.style]
        context = ContextSpec(
            use_case=detected.use_case,
            subject=self.subject_for(detected.topic, detected.use_case),
            style=detected.style,
            composition=CompositionSpec(
                aspect_ratio=ASPECT_RATIOS[detected.use_case],
                framing=framing,
                perspective=perspective,
            ),
            technical=TechnicalSpec(lighting=lighting, camera=camera, quality=quality),
            mood=self.moods_for(detected.use_case, detected.style, detected.topic),
            colors=self.palette_for(detected.topic),
        )
        LOGGER.debug(
            "Context: %s style, %s aspect ratio", context.style, context.composition.aspect_ratio
        )
        return context

    def moods_for(self, use_case: UseCase, style: StylePreference, topic: str) -> List[str]:
        moods = list(MOOD_KEYWORDS[use_case]) + list(STYLE_MOODS[style])
        lowered = topic.lower()
        for triggers, extra in TOPIC_MOODS:
            if any(trigger in lowered for trigger in triggers):
                moods.extend(extra)
        return _unique(moods)[:MAX_MOODS]

    def palette_for(self, topic: str) -> List[str]:
        lowered = topic.lower()
        for category, palette in COLOR_PALETTES:
            if category in lowered:
                return list(palette)
        mentioned = [color for color in COLOR_WORDS if color in lowered]
        return mentioned or list(DEFAULT_COLORS)

    def subject_for(self, topic: str, use_case: UseCase) -> str:
        if not self.use_templates:
            return topic
        return f"{SUBJECT_PREFIXES[use_case]} {topic}"

    def validate_context(self, context: ContextSpec) -> ContextValidation:
        """Advisory completeness check; generation proceeds regardless."""

        missing: List[str] = []
        if not context.subject.strip():
            missing.append("subject")
        if not context.style:
            missing.append("style")
        if not context.composition.aspect_ratio:
            missing.append("aspect ratio")
        if not context.technical.quality:
            missing.append("quality specifications")
        if not context.mood:
            missing.append("mood/atmosphere")
        return ContextValidation(is_valid=not missing, missing=missing)

    def enhance_context(self, context: ContextSpec, details: str) -> ContextSpec:
        """Fold mood and color mentions from ``details`` into a copy of ``context``."""

        lowered = details.lower()
        moods = list(context.mood)
        for triggers, extra in ENHANCE_MOODS:
            if any(trigger in lowered for trigger in triggers):
                moods.extend(extra)
        colors = list(context.colors) + [c for c in ENHANCE_COLORS if c in lowered]
        return context.model_copy(update={"mood": _unique(moods), "colors": _unique(colors)})


__all__ = [
    "ASPECT_RATIOS",
    "COLOR_PALETTES",
    "COMPOSITION_SPECS",
    "ContextDeriver",
    "MOOD_KEYWORDS",
    "SUBJECT_PREFIXES",
    "TECHNICAL_SPECS",
]
