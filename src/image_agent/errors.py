"""Failures raised inside the generation pipeline.

``ImageGenerationAgent.generate`` catches all of them and reports the message
in ``GenerationResponse.error``.
"""
from __future__ import annotations

from typing import List, Optional


class AgentError(RuntimeError):
    code = "agent_error"


class InvalidIntentError(AgentError):
    code = "invalid_intent"

    def __init__(self, suggestions: List[str]) -> None:
        super().__init__(f"Invalid intent: {', '.join(suggestions)}")
        self.suggestions = list(suggestions)


class GenerationFailedError(AgentError):
    code = "generation_failed"

    def __init__(self, message: str, *, attempts: int = 0, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.attempts = attempts
        self.cause = cause


class RefinementFailedError(AgentError):
    """A refinement step failed; earlier results are kept."""

    code = "refinement_failed"

    def __init__(self, step: int, instruction: str, reason: str) -> None:
        super().__init__(f"Refinement {step} ('{instruction}') failed: {reason}")
        self.step = step
        self.instruction = instruction


__all__ = [
    "AgentError",
    "GenerationFailedError",
    "InvalidIntentError",
    "RefinementFailedError",
]
