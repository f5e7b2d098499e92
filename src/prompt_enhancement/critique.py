"""Vision critique of a generated image, usable as feedback for the next loop."""
from __future__ import annotations

import logging
from typing import List, Optional

from providers.llm_client import LLMClient, build_image_message
from providers.retry import Deadline

from .attributes import render_template
from .negatives import dedupe_terms, extract_negatives_from_critique
from .schemas import ImageCritique

LOGGER = logging.getLogger("prompt_enhancement.critique")

REFINE_BELOW_QUALITY = 80

IMAGE_CRITIQUE_PROMPT = """You are an expert photography critic and AI image quality analyst.

Your task: Analyze this AI-generated image and identify quality issues that need fixing.

Original Prompt: {prompt}
Iteration: {iteration}/{maxIterations}

Focus on these categories:

1. **AI Artifacts**: Synthetic textures, impossible physics, anatomical errors (fingers, limbs, faces)
2. **Generic Issues**: Stock photo feel, cliché composition, uninspired styling
3. **Composition Problems**: Poor framing, empty space, cluttered background, weak focal point
4. **Lighting Issues**: Flat lighting, unnatural shadows, incorrect light direction, poor contrast
5. **Overall Quality**: Professional vs amateur feel, realism, attention to detail

Rate overall quality 0-100 (80+ is publication-ready).

Provide ACTIONABLE improvements: What specific changes to the prompt will fix these issues?

Output ONLY valid JSON:
```json
{
  "artifacts": ["list specific artifacts found"],
  "genericIssues": ["list generic/cliché elements"],
  "compositionProblems": ["list composition issues"],
  "lightingIssues": ["list lighting problems"],
  "overallQuality": 75,
  "suggestedImprovements": [
    "Add: specific camera angle (e.g., 'shot from slightly above')",
    "Specify: exact lighting setup (e.g., 'soft window light from left')",
    "Replace: vague term with specific detail"
  ],
  "shouldRefine": true
}
```

If overall quality is 80+, set shouldRefine to false."""


class CritiqueAnalyzer:
    """Scores a generated image with a vision-capable LLM.

    Not wired into the default enhancement loop; callers that can see the
    generated image feed :func:`critique_to_feedback` into
    ``PromptEnhancementAgent.enhance(feedback=...)``.
    """

    def __init__(self, llm: LLMClient, max_iterations: int = 4) -> None:
        self.llm = llm
        self.max_iterations = max_iterations

    async def analyze(
        self,
        image_b64: str,
        original_prompt: str,
        iteration: int = 1,
        *,
        mime_type: str = "image/png",
        deadline: Optional[Deadline] = None,
    ) -> ImageCritique:
        prompt = render_template(
            IMAGE_CRITIQUE_PROMPT,
            prompt=original_prompt,
            iteration=str(iteration),
            maxIterations=str(self.max_iterations),
        )
        message = build_image_message(prompt, image_b64, mime_type)
        critique = await self.llm.complete_json([message], ImageCritique, deadline=deadline)
        should_refine = critique.overall_quality < REFINE_BELOW_QUALITY
        if critique.should_refine != should_refine:
            LOGGER.debug(
                "Overriding model shouldRefine=%s for quality %.0f",
                critique.should_refine,
                critique.overall_quality,
            )
        return critique.model_copy(update={"should_refine": should_refine})


def critique_to_feedback(critique: ImageCritique) -> str:
    """Render a critique as the prior-feedback block of the optimization template."""

    lines: List[str] = [
        f"The generated image scored {critique.overall_quality:.0f}/100 for overall quality."
    ]
    sections = (
        ("AI artifacts observed", critique.artifacts),
        ("Generic issues", critique.generic_issues),
        ("Composition problems", critique.composition_problems),
        ("Lighting issues", critique.lighting_issues),
        ("Suggested improvements", critique.suggested_improvements),
    )
    for title, items in sections:
        if items:
            lines.append(f"\n{title}:")
            lines.extend(f"- {item}" for item in items)
    return "\n".join(lines)


def critique_negatives(critique: ImageCritique) -> List[str]:
    """Extra negative-prompt terms implied by a critique."""

    harvested = extract_negatives_from_critique(" . ".join(critique.suggested_improvements))
    return dedupe_terms(harvested + [item.lower() for item in critique.artifacts])


__all__ = [
    "CritiqueAnalyzer",
    "IMAGE_CRITIQUE_PROMPT",
    "critique_negatives",
    "critique_to_feedback",
]
