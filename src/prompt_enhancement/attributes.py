"""Visual attribute extraction through the LLM."""
from __future__ import annotations

import logging
from typing import Optional

from providers.errors import ParseError, ProviderError
from providers.llm_client import LLMClient, text_message
from providers.retry import Deadline

from .errors import AttributeExtractionError
from .schemas import EnhancementRequest, VisualAttributes

LOGGER = logging.getLogger("prompt_enhancement.attributes")

ATTRIBUTE_EXTRACTION_PROMPT = """You are an expert photography director and visual analyst.

Your task: Analyze the user's intent and extract detailed visual attributes that will guide image generation.

User Intent: {userIntent}
Use Case: {useCase}
Style Preference: {stylePreference}
Aspect Ratio: {aspectRatio}

Extract these attributes:

1. **Subject**: The main focus/subject of the image
2. **Composition**: Framing, perspective, focal point
3. **Lighting**: Type (natural/studio/ambient), direction, mood
4. **Style**: Genre, aesthetic, visual references
5. **Technical**: Camera type, lens, aperture, ISO
6. **Colors**: Palette, temperature (warm/cool), saturation
7. **Mood**: Emotional atmosphere (professional, energetic, calm, etc.)

Output ONLY valid JSON in this exact format:
```json
{
  "subject": "...",
  "composition": {"framing": "...", "perspective": "...", "focalPoint": "..."},
  "lighting": {"type": "...", "direction": "...", "mood": "..."},
  "style": {"genre": "...", "aesthetic": "...", "references": ["..."]},
  "technical": {"camera": "...", "lens": "...", "aperture": "...", "iso": "..."},
  "colors": {"palette": ["..."], "temperature": "...", "saturation": "..."},
  "mood": ["..."]
}
```

Be specific and detailed. Focus on attributes that will produce photorealistic, professional results."""


def render_template(template: str, **values: str) -> str:
    """Substitute ``{name}`` placeholders without touching JSON braces."""

    rendered = template
    for key, value in values.items():
        rendered = rendered.replace("{" + key + "}", value)
    return rendered


def build_attribute_prompt(request: EnhancementRequest) -> str:
    intent = request.user_intent
    if request.additional_context:
        intent = f"{intent}\nAdditional context: {request.additional_context}"
    return render_template(
        ATTRIBUTE_EXTRACTION_PROMPT,
        userIntent=intent,
        useCase=request.use_case,
        stylePreference=request.style_preference,
        aspectRatio=request.aspect_ratio,
    )


async def extract_attributes(
    llm: LLMClient,
    request: EnhancementRequest,
    *,
    deadline: Optional[Deadline] = None,
) -> VisualAttributes:
    """Ask the LLM for a :class:`VisualAttributes` breakdown of the intent."""

    messages = [text_message("user", build_attribute_prompt(request))]
    try:
        attributes = await llm.complete_json(messages, VisualAttributes, deadline=deadline)
    except ParseError as exc:
        LOGGER.error("Attribute reply was not valid JSON: %s | raw=%s", exc, exc.raw[:200])
        raise AttributeExtractionError(f"Failed to parse visual attributes: {exc}") from exc
    except ProviderError as exc:
        LOGGER.error("Attribute extraction request failed: %s", exc)
        raise AttributeExtractionError(f"Failed to extract visual attributes: {exc}") from exc

    LOGGER.debug("Extracted attributes for subject '%s'", attributes.subject)
    return attributes


__all__ = [
    "ATTRIBUTE_EXTRACTION_PROMPT",
    "build_attribute_prompt",
    "extract_attributes",
    "render_template",
]
