"""Singleton-based utility hook for the generation service."""
from __future__ import annotations

import logging
import os
import sys
import threading
from typing import Any, Dict, Iterable, List, Optional

from fastapi import HTTPException

from .agent import ImageGenerationAgent
from .api_models import ApiError, ErrorResponse
from .errors import InvalidIntentError
from .schemas import GenerationResponse


class _SingletonMeta(type):
    """Thread-safe singleton metaclass."""

    _instances: Dict[type, Any] = {}
    _lock: threading.Lock = threading.Lock()

    def __call__(cls, *args: Any, **kwargs: Any) -> Any:  # type: ignore[override]
        if cls not in cls._instances:
            with cls._lock:
                if cls not in cls._instances:
                    cls._instances[cls] = super().__call__(*args, **kwargs)
        return cls._instances[cls]


class AgentHook(metaclass=_SingletonMeta):
    """Shared agent instance plus request/response helpers for the HTTP layer."""

    def __init__(self) -> None:
        self.logger = logging.getLogger("image_agent.hook")
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
            self.logger.addHandler(handler)
        self.logger.setLevel(logging.DEBUG)

        self._agent_lock = threading.Lock()
        self._agent: Optional[ImageGenerationAgent] = None
        self._preset = os.getenv("IMAGE_AGENT_PRESET") or None
        if self._preset:
            self.logger.debug("Using configuration preset %s", self._preset)

    def parse_csv_env(self, name: str, fallback: Iterable[str]) -> List[str]:
        raw = os.getenv(name, "")
        if not raw:
            return list(fallback)
        parsed = [item.strip() for item in raw.split(",") if item.strip()]
        self.logger.debug("Parsed CSV env %s -> %s", name, parsed)
        return parsed

    def get_agent(self) -> ImageGenerationAgent:
        """Build the agent on first use so importing the app needs no credentials."""

        if self._agent is None:
            with self._agent_lock:
                if self._agent is None:
                    self._agent = ImageGenerationAgent(preset=self._preset)
                    self.logger.info(
                        "Image generation agent ready (model %s)", self._agent.get_config().model
                    )
        return self._agent

    @property
    def preset(self) -> Optional[str]:
        return self._preset

    def set_agent(self, agent: Optional[ImageGenerationAgent]) -> None:
        with self._agent_lock:
            self._agent = agent

    def build_error_exception(
        self,
        status_code: int,
        *,
        code: str,
        message: str,
        action: str,
        details: Optional[Any] = None,
        retryable: bool = False,
    ) -> HTTPException:
        body = ErrorResponse(
            error=ApiError(
                code=code,
                message=message,
                details=details,
                action=action,
                retryable=retryable,
            )
        )
        return HTTPException(status_code=status_code, detail=body.model_dump())

    def error_for_response(self, response: GenerationResponse) -> HTTPException:
        """Map an unsuccessful generation to 400 (bad intent) or 502 (upstream failure)."""

        details = response.model_dump(mode="json", by_alias=True, exclude_none=True)
        error = response.error or "The image generation agent did not return an image"
        if error.startswith("Invalid intent") or error.startswith("Invalid request"):
            return self.build_error_exception(
                400,
                code=InvalidIntentError.code,
                message=error,
                details=details,
                action="Describe the image in more detail and retry",
            )
        return self.build_error_exception(
            502,
            code="generation_failed",
            message=error,
            details=details,
            retryable=response.attempts > 1,
            action="Verify OPENROUTER_API_KEY and model availability, then retry",
        )


def get_agent_hook() -> AgentHook:
    """Public accessor for the singleton hook."""

    return AgentHook()


__all__ = ["AgentHook", "get_agent_hook"]
