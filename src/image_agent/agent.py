#!/usr/bin/env python3
"""Image generation agent: intent in, stored image and reasoning trace out."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from prompt_enhancement.enhancement import PromptEnhancementAgent
from prompt_enhancement.schemas import EnhancementRequest
from providers.errors import DeadlineExceeded, ProviderError
from providers.llm_client import LLMClient
from providers.retry import Deadline, retry_async
from providers.settings import ProviderSettings
from providers.storage import ImageStore
from providers.synthesis import ImageSynthesisClient, SynthesisRequest, SynthesisResult

from .config import PRESET_CONFIGS, AgentConfig, ConfigOverrides, create_config, merge_config
from .context import ContextDeriver
from .errors import GenerationFailedError, InvalidIntentError, RefinementFailedError
from .intent import IntentClassifier
from .schemas import (
    ContextSpec,
    DetectedIntent,
    EnhancementSummary,
    GenerationRequest,
    GenerationResponse,
    Reasoning,
    TranslatedPrompt,
)
from .translator import PromptTranslator, score_prompt

_STAGE_LOGGERS = {
    "verbose": (logging.getLogger("image_agent.agent"), "verbose"),
    "intent": (logging.getLogger("image_agent.intent"), "log_intent_detection"),
    "prompt": (logging.getLogger("image_agent.prompt"), "log_prompt_translation"),
    "generation": (logging.getLogger("image_agent.generation"), "log_generation"),
}
LOGGER = logging.getLogger("image_agent.agent")

RequestLike = Union[GenerationRequest, Mapping[str, Any], str]


def _synthesis_retryable(exc: BaseException) -> bool:
    if isinstance(exc, DeadlineExceeded):
        return False
    if isinstance(exc, ProviderError):
        return exc.retryable
    return True


class _Pipeline:
    """Config and stage components captured when a request starts.

    A concurrent ``update_config`` rebuilds the agent's stages but never the
    ones a running request already holds.
    """

    def __init__(self, agent: "ImageGenerationAgent") -> None:
        self._agent = agent
        self.config = agent.get_config()
        self.classifier = agent.classifier
        self.deriver = agent.deriver
        self.translator = agent.translator
        self._synthesis = agent._synthesis
        self._enhancer = agent._enhancer

    @property
    def synthesis(self) -> ImageSynthesisClient:
        if self._synthesis is None:
            if self._agent.get_config() is self.config:
                self._synthesis = self._agent.synthesis
            else:
                self._synthesis = self._agent._new_synthesis(self.config)
        return self._synthesis

    @property
    def enhancer(self) -> PromptEnhancementAgent:
        if self._enhancer is None:
            if self._agent.get_config() is self.config:
                self._enhancer = self._agent.enhancer
            else:
                self._enhancer = self._agent._new_enhancer(self.config)
        return self._enhancer

    def log(self, stage: str, message: str, *args: Any) -> None:
        _log_stage(self.config, stage, message, *args)


def _log_stage(config: AgentConfig, stage: str, message: str, *args: Any) -> None:
    logger, flag = _STAGE_LOGGERS[stage]
    enabled = getattr(config.logging, flag) or config.logging.verbose
    logger.log(logging.INFO if enabled else logging.DEBUG, message, *args)


class ImageGenerationAgent:
    """Runs validate, classify, derive, translate, synthesize and refine in sequence.

    ``generate`` never raises: every failure becomes a ``GenerationResponse``
    with ``success=False`` and whatever reasoning was produced before it.
    The config is frozen; ``update_config`` swaps in a merged copy, and each
    request keeps the config and stages it started with.
    """

    def __init__(
        self,
        config: ConfigOverrides = None,
        *,
        preset: Optional[str] = None,
        settings: Optional[ProviderSettings] = None,
        synthesis: Optional[ImageSynthesisClient] = None,
        enhancer: Optional[PromptEnhancementAgent] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = create_config(preset, config)
        self._settings = settings
        self._injected_synthesis = synthesis
        self._injected_enhancer = enhancer
        self._sleep = sleep
        self._clock = clock
        self._build_components()

    def _build_components(self) -> None:
        config = self._config
        self.classifier = IntentClassifier(config.scoring)
        self.deriver = ContextDeriver(use_templates=config.prompt_translation.use_templates)
        self.translator = PromptTranslator(
            enhance_prompts=config.prompt_translation.enhance_prompts,
            add_negative_prompts=config.prompt_translation.add_negative_prompts,
        )
        self._synthesis = self._injected_synthesis
        self._enhancer = self._injected_enhancer

    def _provider_settings(self) -> ProviderSettings:
        if self._settings is None:
            self._settings = ProviderSettings.from_env()
        return self._settings

    def _new_synthesis(self, config: AgentConfig) -> ImageSynthesisClient:
        fm = config.file_management
        return ImageSynthesisClient(
            self._provider_settings(),
            model=config.model,
            store=ImageStore(fm.output_directory, fm.public_url_prefix),
            timeout_ms=config.generation.timeout,
            filename_pattern=fm.filename_pattern,
        )

    def _new_enhancer(self, config: AgentConfig) -> PromptEnhancementAgent:
        return PromptEnhancementAgent(
            LLMClient(self._provider_settings(), config.llm, sleep=self._sleep),
            max_iterations=config.prompt_translation.iterations,
            quality_threshold=config.scoring.feedback_target_confidence,
            early_exit_confidence=config.scoring.early_exit_confidence,
            early_exit_min_iteration=config.scoring.early_exit_min_iteration,
        )

    @property
    def synthesis(self) -> ImageSynthesisClient:
        if self._synthesis is None:
            self._synthesis = self._new_synthesis(self._config)
        return self._synthesis

    @property
    def enhancer(self) -> PromptEnhancementAgent:
        if self._enhancer is None:
            self._enhancer = self._new_enhancer(self._config)
        return self._enhancer

    def get_config(self) -> AgentConfig:
        return self._config

    def update_config(self, overrides: ConfigOverrides) -> AgentConfig:
        """Merge ``overrides`` into a new config and rebuild the pipeline stages."""

        self._config = merge_config(self._config, overrides)
        self._build_components()
        return self._config

    def _elapsed_ms(self, start: float) -> int:
        return int((self._clock() - start) * 1000)

    async def generate(self, request: RequestLike) -> GenerationResponse:
        start = self._clock()
        pipeline = _Pipeline(self)
        reasoning = Reasoning()
        warnings: List[str] = []
        progress = {"attempts": 0, "enhancement": None}
        original_intent = ""

        def failure(message: str) -> GenerationResponse:
            return GenerationResponse(
                success=False,
                error=message,
                reasoning=reasoning,
                original_intent=original_intent,
                processing_time=self._elapsed_ms(start),
                warnings=warnings,
                attempts=progress["attempts"],
                enhancement=progress["enhancement"],
            )

        try:
            original_intent = self._intent_of(request)
            parsed = self._coerce_request(request)
            deadline = Deadline(pipeline.config.generation.request_budget, clock=self._clock)
            response = await self._run(
                parsed, pipeline, deadline, reasoning, warnings, progress, start
            )
        except InvalidIntentError as exc:
            pipeline.log("verbose", "Rejected intent: %s", exc)
            return failure(str(exc))
        except GenerationFailedError as exc:
            LOGGER.error("Image generation failed after %s attempt(s): %s", exc.attempts, exc)
            return failure(str(exc))
        except DeadlineExceeded as exc:
            LOGGER.warning("Request budget exhausted: %s", exc)
            return failure(str(exc))
        except ValidationError as exc:
            return failure(f"Invalid request: {exc.error_count()} validation error(s)")
        except Exception as exc:
            LOGGER.exception("Unexpected error during generation")
            return failure(f"Unexpected error: {exc}")
        return response

    @staticmethod
    def _intent_of(request: Any) -> str:
        if isinstance(request, GenerationRequest):
            return request.intent
        if isinstance(request, str):
            return request
        if isinstance(request, Mapping):
            intent = request.get("intent")
            return intent if isinstance(intent, str) else ""
        return ""

    @staticmethod
    def _coerce_request(request: RequestLike) -> GenerationRequest:
        if isinstance(request, GenerationRequest):
            return request
        if isinstance(request, str):
            return GenerationRequest(intent=request)
        return GenerationRequest.model_validate(request)

    async def _run(
        self,
        request: GenerationRequest,
        pipeline: _Pipeline,
        deadline: Deadline,
        reasoning: Reasoning,
        warnings: List[str],
        progress: dict,
        start: float,
    ) -> GenerationResponse:
        config = pipeline.config
        pipeline.log("verbose", "Validating intent...")
        validation = pipeline.classifier.validate_intent(request.intent)
        if not validation.is_valid:
            raise InvalidIntentError(validation.suggestions)

        detected = self._classify(request, pipeline)
        reasoning.detected_intent = detected

        deadline.check("context analysis")
        context = pipeline.deriver.derive(detected)
        reasoning.context_analysis = context
        completeness = pipeline.deriver.validate_context(context)
        if not completeness.is_valid:
            missing = ", ".join(completeness.missing)
            pipeline.log("verbose", "Context incomplete: missing %s", missing)
        pipeline.log(
            "verbose",
            "Context: %s style, %s aspect ratio",
            context.style,
            context.composition.aspect_ratio,
        )

        deadline.check("prompt translation")
        translated, summary = await self._translate(
            request, detected, context, pipeline, deadline, warnings
        )
        reasoning.translated_prompt = translated
        progress["enhancement"] = summary

        deadline.check("image generation")
        result = await self._synthesize_with_retry(
            translated, request, pipeline, deadline, progress
        )

        refinements_applied = 0
        if request.refinement_instructions:
            if config.generation.enable_refinement:
                result, refinements_applied = await self._apply_refinements(
                    request, translated, result, pipeline, deadline, warnings
                )
            else:
                warnings.append(
                    f"Refinement is disabled; ignored {len(request.refinement_instructions)} "
                    "instruction(s)"
                )

        pipeline.log("generation", "Image generated successfully: %s", result.image_url)
        return GenerationResponse(
            success=True,
            image_url=result.image_url,
            file_path=result.file_path,
            reasoning=reasoning,
            original_intent=request.intent,
            processing_time=self._elapsed_ms(start),
            warnings=warnings,
            refinements_applied=refinements_applied,
            attempts=progress["attempts"],
            enhancement=summary,
        )

    @staticmethod
    def _classify(request: GenerationRequest, pipeline: _Pipeline) -> DetectedIntent:
        pipeline.log("intent", "Detecting intent...")
        detected = pipeline.classifier.detect_intent(request.intent)
        detected = pipeline.classifier.apply_hints(
            detected,
            use_case=request.use_case,
            style=request.style_preference,
            platform=request.platform,
            intent=request.intent,
        )
        pipeline.log(
            "intent",
            "Intent detected: %s (confidence: %s%%)",
            detected.use_case,
            detected.confidence,
        )
        return detected

    async def _translate(
        self,
        request: GenerationRequest,
        detected: DetectedIntent,
        context: ContextSpec,
        pipeline: _Pipeline,
        deadline: Deadline,
        warnings: List[str],
    ) -> Tuple[TranslatedPrompt, Optional[EnhancementSummary]]:
        settings = pipeline.config.prompt_translation
        pipeline.log("prompt", "Translating to optimized prompt...")
        translated = pipeline.translator.translate(context)
        summary: Optional[EnhancementSummary] = None

        if settings.use_llm_enhancement:
            translated, summary = await self._enhance(
                request, detected, context, translated, pipeline, deadline, warnings
            )

        pipeline.log("prompt", "Prompt: %s", translated.prompt)
        pipeline.log("prompt", "Quality score: %s", translated.quality_score)
        if translated.quality_score < settings.min_quality_score:
            message = (
                f"Quality score below threshold ({translated.quality_score} < "
                f"{settings.min_quality_score}); proceeding anyway"
            )
            LOGGER.warning(message)
            warnings.append(message)
        return translated, summary

    async def _enhance(
        self,
        request: GenerationRequest,
        detected: DetectedIntent,
        context: ContextSpec,
        fallback: TranslatedPrompt,
        pipeline: _Pipeline,
        deadline: Deadline,
        warnings: List[str],
    ) -> Tuple[TranslatedPrompt, EnhancementSummary]:
        pipeline.log("prompt", "Running LLM prompt enhancement...")
        enhancement_request = EnhancementRequest(
            user_intent=request.intent,
            use_case=detected.use_case,
            style_preference=detected.style,
            aspect_ratio=context.composition.aspect_ratio,
        )
        result = await pipeline.enhancer.enhance(enhancement_request, deadline=deadline)
        if not result.success or result.final_prompt is None:
            warnings.append(
                f"Prompt enhancement failed ({result.error}); using deterministic prompt"
            )
            LOGGER.warning("Falling back to deterministic prompt: %s", result.error)
            return fallback, EnhancementSummary(
                used=False, total_iterations=result.total_iterations, error=result.error
            )

        final = result.final_prompt
        add_negatives = pipeline.config.prompt_translation.add_negative_prompts
        negative = final.negative_prompt if add_negatives else ""
        translated = TranslatedPrompt(
            prompt=final.optimized_prompt,
            negative_prompt=negative,
            optimizations=[
                f"LLM-enhanced prompt after {result.total_iterations} iteration(s)",
                f"Model confidence {final.confidence_score}%",
            ],
            quality_score=score_prompt(final.optimized_prompt).score,
        )
        return translated, EnhancementSummary(
            used=True,
            total_iterations=result.total_iterations,
            final_confidence=final.confidence_score,
        )

    async def _synthesize_with_retry(
        self,
        translated: TranslatedPrompt,
        request: GenerationRequest,
        pipeline: _Pipeline,
        deadline: Deadline,
        progress: dict,
    ) -> SynthesisResult:
        gen = pipeline.config.generation
        max_retries = gen.max_retries if gen.retry_on_failure else 0
        synthesis = pipeline.synthesis
        synthesis_request = SynthesisRequest(
            prompt=translated.prompt,
            negative_prompt=translated.negative_prompt or None,
            filename=request.filename,
        )

        async def attempt(number: int) -> SynthesisResult:
            progress["attempts"] = number
            pipeline.log(
                "generation", "Generating image (attempt %s/%s)...", number, max_retries + 1
            )
            return await synthesis.generate(
                synthesis_request, deadline=deadline, timeout_ms=gen.timeout
            )

        def on_retry(retry: int, delay_ms: float, exc: BaseException) -> None:
            pipeline.log(
                "generation",
                "Generation failed (%s); waiting %.0fms before retry %s/%s",
                exc,
                delay_ms,
                retry,
                max_retries,
            )

        try:
            return await retry_async(
                attempt,
                max_retries=max_retries,
                base_delay_ms=gen.base_delay,
                jitter=gen.jitter,
                should_retry=_synthesis_retryable,
                sleep=self._sleep,
                deadline=deadline,
                on_retry=on_retry,
            )
        except DeadlineExceeded:
            raise
        except Exception as exc:
            attempts = progress["attempts"]
            if attempts > 1:
                message = f"Failed after {attempts - 1} retry attempts: {exc}"
            else:
                message = str(exc) or exc.__class__.__name__
            raise GenerationFailedError(message, attempts=attempts, cause=exc) from exc

    async def _apply_refinements(
        self,
        request: GenerationRequest,
        translated: TranslatedPrompt,
        base: SynthesisResult,
        pipeline: _Pipeline,
        deadline: Deadline,
        warnings: List[str],
    ) -> Tuple[SynthesisResult, int]:
        current_prompt = translated.prompt
        last_good = base
        applied = 0
        for step, instruction in enumerate(request.refinement_instructions, start=1):
            pipeline.log("generation", "Applying refinement %s: %s", step, instruction)
            refinement_prompt = pipeline.translator.optimize_for_refinement(translated, instruction)
            filename = f"{request.filename}-refined-{step}" if request.filename else None
            try:
                deadline.check(f"refinement {step}")
                refined = await pipeline.synthesis.refine(
                    current_prompt,
                    refinement_prompt,
                    filename=filename,
                    deadline=deadline,
                    timeout_ms=pipeline.config.generation.timeout,
                )
            except Exception as exc:
                error = RefinementFailedError(step, instruction, str(exc))
                LOGGER.warning("%s; keeping the last successful image", error)
                warnings.append(str(error))
                break
            last_good = refined
            current_prompt = refinement_prompt
            applied += 1
        return last_good, applied


async def generate_image_with_agent(
    intent: str, config: ConfigOverrides = None, **hints: Any
) -> GenerationResponse:
    """One-shot helper: build an agent and run a single request."""

    agent = ImageGenerationAgent(config)
    return await agent.generate(GenerationRequest(intent=intent, **hints))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate an image from a natural-language intent"
    )
    parser.add_argument("intent", help="What the image should depict")
    parser.add_argument("--use-case", default=None, help="Use-case hint, e.g. blog-header")
    parser.add_argument("--style", default=None, help="Style hint, e.g. photorealistic")
    parser.add_argument("--platform", default=None, help="Platform hint, e.g. linkedin")
    parser.add_argument(
        "--refine",
        action="append",
        default=[],
        help="Refinement instruction; repeat to chain several",
    )
    parser.add_argument("--filename", default=None, help="Custom filename stem")
    parser.add_argument(
        "--preset", default=None, choices=sorted(PRESET_CONFIGS), help="Configuration preset"
    )
    parser.add_argument(
        "--llm-enhance",
        action="store_true",
        help="Refine the prompt with the LLM enhancement loop before generating",
    )
    parser.add_argument("--output-dir", default=None, help="Directory for generated images")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    overrides: dict = {}
    if args.llm_enhance:
        overrides["prompt_translation"] = {"use_llm_enhancement": True}
    if args.output_dir:
        overrides["file_management"] = {"output_directory": args.output_dir}

    try:
        request = GenerationRequest(
            intent=args.intent,
            use_case=args.use_case,
            style_preference=args.style,
            platform=args.platform,
            refinement_instructions=args.refine,
            filename=args.filename,
        )
    except ValidationError as exc:
        print(f"Invalid arguments: {exc}", file=sys.stderr)
        return 2

    agent = ImageGenerationAgent(overrides, preset=args.preset)
    response = asyncio.run(agent.generate(request))
    print(json.dumps(response.model_dump(mode="json", by_alias=True, exclude_none=True), indent=2))
    return 0 if response.success else 1


__all__ = ["ImageGenerationAgent", "generate_image_with_agent", "main"]


if __name__ == "__main__":
    raise SystemExit(main())
