"""Shared test fixtures: fake model clients and a recording sleep."""

from __future__ import annotations

import os
import tempfile
from types import SimpleNamespace
from typing import Any, List, Optional

import pytest

os.environ.setdefault(
    "IMAGE_AGENT_LOG_FILE", os.path.join(tempfile.gettempdir(), "image_agent-tests.log")
)

from providers.llm_client import validate_json_reply  # noqa: E402
from providers.synthesis import SynthesisRequest, SynthesisResult  # noqa: E402


class FakeLLM:
    """Stands in for ``LLMClient``; replies are consumed in order.

    A reply is either raw text (decoded like a real completion) or an
    exception instance, which is raised.
    """

    def __init__(self, replies: List[Any]) -> None:
        self.replies = list(replies)
        self.calls: List[list] = []

    async def complete(self, messages, *, deadline=None, **overrides) -> str:
        self.calls.append(messages)
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    async def complete_json(self, messages, model_cls, *, deadline=None, **overrides):
        text = await self.complete(messages, deadline=deadline)
        return validate_json_reply(text, model_cls)


class FakeSynthesis:
    """Stands in for ``ImageSynthesisClient``.

    ``outcomes`` lists what each successive call does: an exception instance
    is raised, anything else produces a stored-image result.
    """

    def __init__(self, outcomes: Optional[List[Any]] = None) -> None:
        self.outcomes = list(outcomes or [])
        self.requests: List[SynthesisRequest] = []
        self.refinements: List[dict] = []

    def _next(self, prompt: str, name: str) -> SynthesisResult:
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, BaseException):
            raise outcome
        return SynthesisResult(
            prompt=prompt,
            image_url=f"/generated/images/{name}.png",
            file_path=f"/tmp/{name}.png",
            model="fake-image-model",
        )

    async def generate(self, request, *, deadline=None, timeout_ms=None) -> SynthesisResult:
        self.requests.append(request)
        return self._next(request.prompt, request.filename or f"image-{len(self.requests)}")

    async def refine(
        self, original_prompt, instruction, context=None, *, filename=None, deadline=None,
        timeout_ms=None,
    ) -> SynthesisResult:
        self.refinements.append(
            {"original": original_prompt, "instruction": instruction, "filename": filename}
        )
        return self._next(instruction, filename or f"refined-{len(self.refinements)}")


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def completion(content: Optional[str] = None, images: Optional[list] = None) -> Any:
    message = SimpleNamespace(content=content, images=images)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeOpenAI:
    """Minimal ``AsyncOpenAI`` look-alike exposing ``chat.completions.create``."""

    def __init__(self, responses: List[Any]) -> None:
        self.responses = list(responses)
        self.kwargs: List[dict] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    async def _create(self, **kwargs: Any) -> Any:
        self.kwargs.append(kwargs)
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fake_synthesis() -> FakeSynthesis:
    return FakeSynthesis()
