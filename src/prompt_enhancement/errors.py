"""Failures of the prompt enhancement loop."""
from __future__ import annotations


class EnhancementError(RuntimeError):
    """Base class; the caller falls back to the deterministic translator."""


class AttributeExtractionError(EnhancementError):
    """The LLM did not return usable visual attributes."""


class PromptGenerationError(EnhancementError):
    """No optimization iteration produced a usable prompt."""


__all__ = ["AttributeExtractionError", "EnhancementError", "PromptGenerationError"]
