"""Environment-backed settings for the OpenAI-compatible provider endpoint."""
from __future__ import annotations

import os
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import ProviderAuthError

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_SITE_URL = "https://omnisignalai.com"
DEFAULT_LLM_MODEL = "google/gemini-2.5-flash-preview-09-2025"
DEFAULT_IMAGE_MODEL = "google/gemini-2.5-flash-image-preview"


class ProviderSettings(BaseModel):
    """Connection settings shared by the LLM and image-synthesis clients."""

    model_config = ConfigDict(frozen=True)

    api_key: Optional[str] = Field(default=None, description="Bearer token for the provider")
    base_url: str = Field(default=DEFAULT_BASE_URL, description="OpenAI-compatible API root")
    site_url: str = Field(default=DEFAULT_SITE_URL, description="Sent as HTTP-Referer")
    site_title: str = Field(default="Image Generation Agent", description="Sent as X-Title")
    llm_model: str = Field(default=DEFAULT_LLM_MODEL)
    image_model: str = Field(default=DEFAULT_IMAGE_MODEL)

    @classmethod
    def from_env(cls, **overrides: str) -> "ProviderSettings":
        values = {
            "api_key": os.getenv("OPENROUTER_API_KEY"),
            "base_url": os.getenv("OPENROUTER_BASE_URL") or DEFAULT_BASE_URL,
            "site_url": os.getenv("SITE_URL") or DEFAULT_SITE_URL,
            "site_title": os.getenv("SITE_TITLE") or "Image Generation Agent",
            "llm_model": os.getenv("LLM_MODEL") or DEFAULT_LLM_MODEL,
            "image_model": os.getenv("IMAGE_MODEL") or DEFAULT_IMAGE_MODEL,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def require_api_key(self) -> str:
        key = (self.api_key or "").strip()
        if not key:
            raise ProviderAuthError(
                "OPENROUTER_API_KEY is not set in environment variables. "
                "Please add it to your .env file."
            )
        if len(key) < 10:
            raise ProviderAuthError("OPENROUTER_API_KEY appears to be invalid (too short).")
        return key

    def default_headers(self, title_suffix: str = "") -> Dict[str, str]:
        title = f"{self.site_title} {title_suffix}".strip()
        return {"HTTP-Referer": self.site_url, "X-Title": title}


__all__ = ["ProviderSettings"]
