"""Chat-completions client for the text/vision LLM used by prompt enhancement."""
from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, TypeVar

from openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import (
    EmptyResponseError,
    ParseError,
    ProviderError,
    ProviderTimeoutError,
    map_openai_error,
)
from .retry import Deadline, retry_async
from .settings import ProviderSettings

LOGGER = logging.getLogger("providers.llm")

M = TypeVar("M", bound=BaseModel)

Message = Dict[str, Any]

_FENCED_JSON = re.compile(r"```(?:json)?\n([\s\S]*?)\n```")


class LLMOptions(BaseModel):
    """Sampling and transport parameters for one LLM client."""

    model_config = ConfigDict(frozen=True)

    model: str = "google/gemini-2.5-flash-preview-09-2025"
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=8192, gt=0)
    top_p: float = Field(default=0.95, ge=0.0, le=1.0)
    top_k: int = Field(default=40, ge=0)
    max_retries: int = Field(default=2, ge=0)
    timeout: int = Field(default=120000, gt=0, description="Per-call timeout in milliseconds")


@dataclass
class JsonReply:
    ok: bool
    value: Any = None
    error: Optional[str] = None


def parse_json_reply(text: str) -> JsonReply:
    """Decode a reply that is either raw JSON or JSON inside a fenced block."""

    try:
        return JsonReply(ok=True, value=json.loads(text))
    except (TypeError, ValueError):
        pass

    match = _FENCED_JSON.search(text or "")
    if match:
        try:
            return JsonReply(ok=True, value=json.loads(match.group(1)))
        except ValueError as exc:
            return JsonReply(ok=False, error=f"Fenced block is not valid JSON: {exc}")
    return JsonReply(ok=False, error="Reply is neither JSON nor a fenced JSON block")


def validate_json_reply(text: str, model_cls: Type[M]) -> M:
    reply = parse_json_reply(text)
    if not reply.ok:
        raise ParseError(reply.error or "Unparseable reply", raw=text)
    try:
        return model_cls.model_validate(reply.value)
    except ValidationError as exc:
        raise ParseError(
            f"Reply does not match {model_cls.__name__}: {exc.error_count()} error(s)",
            raw=text,
        ) from exc


def text_message(role: str, text: str) -> Message:
    return {"role": role, "content": text}


def build_image_message(text: str, image_b64: str, mime_type: str = "image/png") -> Message:
    """User message carrying an instruction and an inline base64 image."""

    url = image_b64 if image_b64.startswith("data:") else f"data:{mime_type};base64,{image_b64}"
    return {
        "role": "user",
        "content": [
            {"type": "text", "text": text},
            {"type": "image_url", "image_url": {"url": url}},
        ],
    }


class LLMClient:
    """Thin async wrapper over an OpenAI-compatible chat-completions endpoint.

    The underlying SDK client is created on first use so a missing API key
    surfaces as :class:`~providers.errors.ProviderAuthError` from the call
    rather than at construction time. SDK-level retries are disabled; retries
    go through :func:`providers.retry.retry_async`.
    """

    def __init__(
        self,
        settings: Optional[ProviderSettings] = None,
        options: Optional[LLMOptions] = None,
        *,
        client: Optional[AsyncOpenAI] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or ProviderSettings.from_env()
        self.options = options or LLMOptions(model=self.settings.llm_model)
        self._client = client
        self._sleep = sleep

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.settings.require_api_key(),
                base_url=self.settings.base_url,
                default_headers=self.settings.default_headers("- Prompt Enhancement"),
                max_retries=0,
            )
        return self._client

    async def _complete_once(
        self, messages: List[Message], options: LLMOptions, deadline: Optional[Deadline]
    ) -> str:
        client = self._get_client()
        timeout = options.timeout / 1000.0
        if deadline is not None:
            timeout = deadline.cap(timeout)
        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=options.model,
                    messages=messages,
                    temperature=options.temperature,
                    max_tokens=options.max_tokens,
                    top_p=options.top_p,
                    extra_body={"top_k": options.top_k},
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ProviderTimeoutError(f"LLM call exceeded {timeout:.1f}s") from exc
        except ProviderError:
            raise
        except Exception as exc:
            raise map_openai_error(exc) from exc

        choices = getattr(response, "choices", None) or []
        if not choices:
            raise EmptyResponseError("No response from LLM")
        content = choices[0].message.content
        if not content:
            raise EmptyResponseError("LLM reply did not include text content")
        return content

    async def complete(
        self,
        messages: List[Message],
        *,
        deadline: Optional[Deadline] = None,
        **overrides: Any,
    ) -> str:
        """Send ``messages`` and return the first choice's text, retrying transient faults."""

        options = self.options.model_copy(update=overrides) if overrides else self.options

        def _log_retry(retry: int, delay_ms: float, exc: BaseException) -> None:
            LOGGER.warning(
                "LLM call failed (%s); retry %s/%s in %.0fms",
                exc,
                retry,
                options.max_retries,
                delay_ms,
            )

        return await retry_async(
            lambda _attempt: self._complete_once(messages, options, deadline),
            max_retries=options.max_retries,
            sleep=self._sleep,
            deadline=deadline,
            on_retry=_log_retry,
        )

    async def complete_json(
        self,
        messages: List[Message],
        model_cls: Type[M],
        *,
        deadline: Optional[Deadline] = None,
        **overrides: Any,
    ) -> M:
        text = await self.complete(messages, deadline=deadline, **overrides)
        LOGGER.debug("LLM reply (%d chars) for %s", len(text), model_cls.__name__)
        return validate_json_reply(text, model_cls)


__all__ = [
    "JsonReply",
    "LLMClient",
    "LLMOptions",
    "build_image_message",
    "parse_json_reply",
    "text_message",
    "validate_json_reply",
]
