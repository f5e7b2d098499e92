"""Image synthesis through an OpenAI-compatible chat endpoint with image output."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI
from pydantic import BaseModel, Field

from .errors import EmptyResponseError, ProviderError, ProviderTimeoutError, map_openai_error
from .retry import Deadline
from .settings import ProviderSettings
from .storage import (
    DEFAULT_FILENAME_PATTERN,
    ImageStore,
    StoredImage,
    generate_filename,
    sanitize_prompt,
)

LOGGER = logging.getLogger("providers.synthesis")


class SynthesisRequest(BaseModel):
    """One call to the image model."""

    prompt: str = Field(..., min_length=1, description="Positive prompt")
    negative_prompt: Optional[str] = Field(
        default=None, description="Comma-joined terms appended as an 'Avoid:' clause"
    )
    context: List[str] = Field(
        default_factory=list,
        description="Prior turns, replayed alternately as user/assistant messages",
    )
    filename: Optional[str] = Field(default=None, description="Custom filename stem")


class SynthesisResult(BaseModel):
    prompt: str
    image_url: str
    file_path: str
    mime_type: str = "image/png"
    model: str


def build_messages(
    prompt: str, negative_prompt: Optional[str] = None, context: Optional[List[str]] = None
) -> List[Dict[str, Any]]:
    messages: List[Dict[str, Any]] = []
    for index, turn in enumerate(context or []):
        messages.append({"role": "user" if index % 2 == 0 else "assistant", "content": turn})

    full_prompt = prompt
    if negative_prompt:
        full_prompt += f"\n\nAvoid: {negative_prompt}"
    messages.append({"role": "user", "content": full_prompt})
    return messages


def extract_image_ref(response: Any) -> Optional[str]:
    """Return the first image URL (usually a ``data:`` URL) in a completion."""

    choices = getattr(response, "choices", None) or []
    if not choices:
        return None
    message = choices[0].message
    images = getattr(message, "images", None)
    if images is None and hasattr(message, "model_dump"):
        images = message.model_dump().get("images")
    if not images:
        return None

    first = images[0]
    if isinstance(first, dict):
        image_url = first.get("image_url") or {}
        return image_url.get("url") if isinstance(image_url, dict) else image_url
    image_url = getattr(first, "image_url", None)
    if isinstance(image_url, dict):
        return image_url.get("url")
    return getattr(image_url, "url", None)


class ImageSynthesisClient:
    """Calls the image model once per :meth:`generate` and stores the result.

    Retrying is left to the caller so the attempt count stays visible to it.
    """

    def __init__(
        self,
        settings: Optional[ProviderSettings] = None,
        *,
        model: Optional[str] = None,
        store: Optional[ImageStore] = None,
        timeout_ms: int = 120000,
        filename_pattern: str = DEFAULT_FILENAME_PATTERN,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.settings = settings or ProviderSettings.from_env()
        self.model = model or self.settings.image_model
        self.store = store or ImageStore()
        self.timeout_ms = timeout_ms
        self.filename_pattern = filename_pattern
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.settings.require_api_key(),
                base_url=self.settings.base_url,
                default_headers=self.settings.default_headers("- Media Generator"),
                max_retries=0,
            )
        return self._client

    async def generate(
        self,
        request: SynthesisRequest,
        *,
        deadline: Optional[Deadline] = None,
        timeout_ms: Optional[int] = None,
    ) -> SynthesisResult:
        client = self._get_client()
        prompt = sanitize_prompt(request.prompt)
        messages = build_messages(prompt, request.negative_prompt, request.context)

        timeout = (timeout_ms or self.timeout_ms) / 1000.0
        if deadline is not None:
            timeout = deadline.cap(timeout)

        LOGGER.debug("Requesting image from %s (%d messages)", self.model, len(messages))
        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    extra_body={"modalities": ["image", "text"]},
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ProviderTimeoutError(f"Image generation exceeded {timeout:.1f}s") from exc
        except ProviderError:
            raise
        except Exception as exc:
            raise map_openai_error(exc) from exc

        image_ref = extract_image_ref(response)
        if not image_ref:
            raise EmptyResponseError(
                "No image data in response. The model may not have generated an image."
            )

        stem = generate_filename(prompt, request.filename, pattern=self.filename_pattern)
        stored: StoredImage = await self.store.save(image_ref, stem)
        LOGGER.info("Image stored at %s", stored.public_url)
        return SynthesisResult(
            prompt=request.prompt,
            image_url=stored.public_url,
            file_path=stored.file_path,
            mime_type=stored.mime_type,
            model=self.model,
        )

    async def refine(
        self,
        original_prompt: str,
        instruction: str,
        context: Optional[List[str]] = None,
        *,
        filename: Optional[str] = None,
        deadline: Optional[Deadline] = None,
        timeout_ms: Optional[int] = None,
    ) -> SynthesisResult:
        """Generate a follow-up image with the prior prompt replayed as context."""

        request = SynthesisRequest(
            prompt=instruction,
            context=context or [original_prompt],
            filename=filename,
        )
        return await self.generate(request, deadline=deadline, timeout_ms=timeout_ms)

    async def generate_variations(self, prompt: str, count: int = 3) -> List[SynthesisResult]:
        """Generate ``count`` independent variations of ``prompt`` concurrently.

        Every variation runs to completion; the first failure is then raised.
        """

        stem = generate_filename(sanitize_prompt(prompt), pattern=self.filename_pattern)
        requests_ = [
            SynthesisRequest(
                prompt=f"{prompt} (variation {index})",
                filename=f"{stem}-var-{index}",
            )
            for index in range(1, count + 1)
        ]
        outcomes = await asyncio.gather(
            *(self.generate(req) for req in requests_), return_exceptions=True
        )
        failures = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
        if failures:
            LOGGER.error("%s of %s variation(s) failed: %s", len(failures), count, failures[0])
            raise failures[0]
        return list(outcomes)


__all__ = [
    "ImageSynthesisClient",
    "SynthesisRequest",
    "SynthesisResult",
    "build_messages",
    "extract_image_ref",
]
