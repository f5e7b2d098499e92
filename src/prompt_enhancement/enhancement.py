"""Iterative LLM prompt optimization with early exit and carried feedback."""
from __future__ import annotations

import json
import logging
import time
from typing import Callable, Iterable, List, Optional

from providers.errors import DeadlineExceeded, ParseError, ProviderAuthError, ProviderError
from providers.llm_client import LLMClient, text_message
from providers.retry import Deadline

from .attributes import extract_attributes, render_template
from .errors import EnhancementError, PromptGenerationError
from .negatives import build_negative_prompt, merge_negative_prompts
from .schemas import (
    EnhancedPrompt,
    EnhancementRequest,
    EnhancementResult,
    IterationRecord,
    OptimizationReply,
    VisualAttributes,
)

LOGGER = logging.getLogger("prompt_enhancement.enhancement")

INITIAL_FEEDBACK = "None - this is the first iteration."
DEFAULT_CONFIDENCE = 70

PROMPT_OPTIMIZATION_TEMPLATE = """You are an expert prompt engineer specializing in Google's Gemini image generation.

Your mission: Create the PERFECT prompt that will generate photorealistic, artifact-free, professional-quality images.

## Input Context
User Intent: {userIntent}
Use Case: {useCase}
Style: {stylePreference}
Aspect Ratio: {aspectRatio}

## Visual Attributes (from analysis)
{attributes}

## Previous Iteration Feedback (if any)
{critiqueFeedback}

## Your Task
Generate an optimized prompt that:

1. **Fills the entire frame** ({aspectRatio} ratio) edge-to-edge, no borders or empty space
2. **Avoids ALL AI artifacts**: No synthetic skin, weird fingers, impossible physics, unnatural lighting
3. **Achieves magazine-quality** professional photography standards
4. **Includes specific technical details**: Camera model, lens type, aperture (f/1.4-f/2.8 for shallow DOF), ISO, lighting setup
5. **Creates unique composition**: Avoid generic stock photo feel
6. **Plays to the model's strengths**: Paragraph-style prompts, front-loaded subject, specific details

## Critical Requirements
- Use PARAGRAPH format (not keyword lists)
- Front-load the main subject in first sentence
- Be highly specific about composition, lighting, technical specs
- Include camera/lens details (e.g., "shot with Sony A7III, 85mm f/1.4 lens")
- Specify exact lighting (e.g., "soft golden hour sunlight from camera left")
- Add quality keywords: "high resolution", "professional photography", "8K", "sharp focus"
- End with mood/atmosphere

## Output Format
Return ONLY valid JSON:
```json
{
  "optimizedPrompt": "A detailed paragraph-style prompt with subject first, then composition, lighting, technical details, and mood...",
  "negativePrompt": "artifacts to avoid, comma-separated",
  "reasoning": "Why this prompt will work better than generic prompts",
  "expectedIssues": ["potential issues to watch for"],
  "technicalDetails": {
    "composition": "specific framing description",
    "lighting": "exact lighting setup",
    "cameraSettings": "camera, lens, aperture, ISO",
    "colorPalette": "color scheme description"
  },
  "confidenceScore": 85
}
```

Confidence score: Your estimate (0-100) of how well this prompt will perform.
Aim for 85+ confidence. If lower, explain why in expectedIssues."""


def clamp_confidence(value: Optional[float]) -> int:
    if value is None:
        return DEFAULT_CONFIDENCE
    return int(round(max(0.0, min(100.0, float(value)))))


def build_iterative_feedback(prompt: EnhancedPrompt, target_confidence: int = 80) -> str:
    """Feedback carried into the next iteration from this iteration's output."""

    feedback: List[str] = [
        f"Iteration {prompt.iteration_number} generated a prompt with "
        f"{prompt.confidence_score}% confidence."
    ]
    if prompt.expected_issues:
        feedback.append("\nExpected issues to address:")
        feedback.extend(f"- {issue}" for issue in prompt.expected_issues)

    feedback.append("\nFor next iteration, focus on:")
    feedback.append("- Adding more specific technical details")
    feedback.append("- Refining composition to avoid generic stock photo feel")
    feedback.append("- Ensuring lighting description is highly specific")
    feedback.append("- Front-loading the main subject more clearly")
    if prompt.confidence_score < target_confidence:
        feedback.append(
            f"- Aim for {target_confidence}+ confidence by being even more specific and detailed"
        )
    return "\n".join(feedback)


class PromptEnhancementAgent:
    """Runs ExtractAttributes followed by up to ``max_iterations`` optimization calls.

    A failed iteration (RPC error or unparseable reply) consumes one attempt
    and leaves the feedback unchanged; only successful iterations are
    recorded, so ``iteration_number`` always runs 1..k. The loop stops early
    once an iteration numbered at least ``early_exit_min_iteration`` reaches
    ``early_exit_confidence``.
    """

    def __init__(
        self,
        llm: Optional[LLMClient] = None,
        *,
        max_iterations: int = 4,
        quality_threshold: int = 80,
        early_exit_confidence: int = 90,
        early_exit_min_iteration: int = 2,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        self.llm = llm or LLMClient()
        self.max_iterations = max_iterations
        self.quality_threshold = quality_threshold
        self.early_exit_confidence = early_exit_confidence
        self.early_exit_min_iteration = early_exit_min_iteration
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def enhance(
        self,
        request: EnhancementRequest,
        *,
        feedback: Optional[str] = None,
        extra_negatives: Optional[Iterable[str]] = None,
        deadline: Optional[Deadline] = None,
    ) -> EnhancementResult:
        """Return an :class:`EnhancementResult`; failures are reported, not raised."""

        start = self._now_ms()
        iterations: List[IterationRecord] = []
        state = {"attempts": 0}
        LOGGER.info(
            "Starting enhancement: use_case=%s max_iterations=%s intent=%.100s",
            request.use_case,
            self.max_iterations,
            request.user_intent,
        )
        try:
            final = await self._run(
                request, feedback, list(extra_negatives or []), iterations, state, deadline
            )
        except (EnhancementError, DeadlineExceeded) as exc:
            LOGGER.warning("Enhancement failed: %s", exc)
            return EnhancementResult(
                success=False,
                iterations=iterations,
                total_iterations=len(iterations),
                attempts=state["attempts"],
                processing_time=self._now_ms() - start,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )

        elapsed = self._now_ms() - start
        LOGGER.info(
            "Enhancement complete: %s iteration(s), confidence %s%%, %sms",
            len(iterations),
            final.confidence_score,
            elapsed,
        )
        return EnhancementResult(
            success=True,
            final_prompt=final,
            iterations=iterations,
            total_iterations=len(iterations),
            attempts=state["attempts"],
            processing_time=elapsed,
        )

    async def _run(
        self,
        request: EnhancementRequest,
        feedback: Optional[str],
        extra_negatives: List[str],
        iterations: List[IterationRecord],
        state: dict,
        deadline: Optional[Deadline],
    ) -> EnhancedPrompt:
        attributes = await extract_attributes(self.llm, request, deadline=deadline)
        base_negatives = build_negative_prompt(request, extra_negatives)
        current_feedback = feedback or INITIAL_FEEDBACK
        current: Optional[EnhancedPrompt] = None

        for attempt in range(1, self.max_iterations + 1):
            if deadline is not None:
                deadline.check(f"enhancement attempt {attempt}")
            state["attempts"] = attempt
            number = len(iterations) + 1
            LOGGER.debug("Enhancement attempt %s/%s", attempt, self.max_iterations)
            try:
                reply = await self._request_optimization(
                    request, attributes, current_feedback, deadline
                )
            except ProviderAuthError as exc:
                raise PromptGenerationError(f"Failed to generate any prompts: {exc}") from exc
            except (ParseError, ProviderError) as exc:
                LOGGER.warning("Enhancement attempt %s discarded: %s", attempt, exc)
                continue

            current = EnhancedPrompt(
                optimized_prompt=reply.optimized_prompt,
                negative_prompt=merge_negative_prompts(base_negatives, reply.negative_prompt),
                reasoning=reply.reasoning,
                expected_issues=reply.expected_issues,
                technical_details=reply.technical_details,
                iteration_number=number,
                confidence_score=clamp_confidence(reply.confidence_score),
            )
            iterations.append(
                IterationRecord(iteration=number, prompt=current, timestamp=self._now_ms())
            )
            LOGGER.info(
                "Iteration %s: confidence %s%%, %s chars",
                number,
                current.confidence_score,
                len(current.optimized_prompt),
            )

            if (
                current.confidence_score >= self.early_exit_confidence
                and number >= self.early_exit_min_iteration
            ):
                LOGGER.info("High confidence reached, stopping early")
                break
            if attempt < self.max_iterations:
                current_feedback = build_iterative_feedback(current, self.quality_threshold)

        if current is None:
            raise PromptGenerationError("Failed to generate any prompts")
        return current

    async def _request_optimization(
        self,
        request: EnhancementRequest,
        attributes: VisualAttributes,
        feedback: str,
        deadline: Optional[Deadline],
    ) -> OptimizationReply:
        prompt = render_template(
            PROMPT_OPTIMIZATION_TEMPLATE,
            userIntent=request.user_intent,
            useCase=request.use_case,
            stylePreference=request.style_preference,
            aspectRatio=request.aspect_ratio,
            attributes=json.dumps(attributes.model_dump(by_alias=True), indent=2),
            critiqueFeedback=feedback,
        )
        return await self.llm.complete_json(
            [text_message("user", prompt)], OptimizationReply, deadline=deadline
        )


__all__ = [
    "DEFAULT_CONFIDENCE",
    "INITIAL_FEEDBACK",
    "PROMPT_OPTIMIZATION_TEMPLATE",
    "PromptEnhancementAgent",
    "build_iterative_feedback",
    "clamp_confidence",
]
