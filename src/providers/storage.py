"""Filesystem persistence for generated images."""
from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import mimetypes
import os
import pathlib
import re
import threading
import time
from typing import Callable, Optional

import requests
from pydantic import BaseModel, Field

from .errors import ProviderTransientError

LOGGER = logging.getLogger("providers.storage")

DEFAULT_OUTPUT_DIR = os.path.join("public", "generated", "images")
DEFAULT_PUBLIC_PREFIX = "/generated/images"
DEFAULT_FILENAME_PATTERN = "{slug}-{timestamp}"

_DATA_URL = re.compile(r"^data:image/(\w+);base64,(.+)$", re.DOTALL)
_CUSTOM_NAME_UNSAFE = re.compile(r"[^a-zA-Z0-9\-_]")
_SLUG_UNSAFE = re.compile(r"[^a-z0-9]+")
_PROMPT_LIMIT = 2000


class StoredImage(BaseModel):
    """Where a generated image was written and how it is served."""

    file_path: str = Field(..., description="Absolute path of the written file")
    public_url: str = Field(..., description="Stable URL under the public prefix")
    mime_type: str = Field(default="image/png")


def sanitize_prompt(prompt: str, limit: int = _PROMPT_LIMIT) -> str:
    """Collapse whitespace, drop angle brackets and cap the prompt length."""

    sanitized = re.sub(r"\s+", " ", (prompt or "").strip())
    sanitized = sanitized.replace("<", "").replace(">", "")
    return sanitized[:limit]


def generate_filename(
    prompt: str,
    custom_name: Optional[str] = None,
    now_ms: Optional[Callable[[], int]] = None,
    pattern: str = DEFAULT_FILENAME_PATTERN,
) -> str:
    """Return a filename stem (without extension) for a generated image.

    ``pattern`` may reference ``{slug}`` and ``{timestamp}``.
    """

    if custom_name:
        return _CUSTOM_NAME_UNSAFE.sub("_", custom_name)

    timestamp = now_ms() if now_ms else int(time.time() * 1000)
    slug = _SLUG_UNSAFE.sub("-", prompt.lower())[:50].strip("-")
    stem = pattern.replace("{slug}", slug).replace("{timestamp}", str(timestamp))
    return _CUSTOM_NAME_UNSAFE.sub("_", stem)


class ImageStore:
    """Writes decoded images under ``output_dir`` and maps them to public URLs."""

    def __init__(
        self,
        output_dir: Optional[str] = None,
        public_url_prefix: str = DEFAULT_PUBLIC_PREFIX,
        *,
        download_timeout: float = 180.0,
    ) -> None:
        self.output_dir = pathlib.Path(
            output_dir or os.getenv("IMAGE_OUTPUT_DIR") or DEFAULT_OUTPUT_DIR
        ).resolve()
        self.public_url_prefix = public_url_prefix.rstrip("/")
        self.download_timeout = download_timeout
        self._file_lock = threading.RLock()

    def _write(self, stem: str, extension: str, payload: bytes) -> StoredImage:
        full_name = f"{stem}.{extension}"
        path = self.output_dir / full_name
        with self._file_lock:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(payload)
        LOGGER.debug("Saved image %s (%s bytes)", path, len(payload))
        return StoredImage(
            file_path=str(path),
            public_url=f"{self.public_url_prefix}/{full_name}",
            mime_type=mimetypes.guess_type(full_name)[0] or f"image/{extension}",
        )

    def save_data_url(self, data_url: str, stem: str) -> StoredImage:
        match = _DATA_URL.match(data_url.strip())
        if not match:
            raise ValueError("Invalid base64 image data format")
        extension, encoded = match.group(1), match.group(2)
        try:
            payload = base64.b64decode(encoded, validate=False)
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"Image payload is not valid base64: {exc}") from exc
        return self._write(stem, extension, payload)

    def download(self, url: str, stem: str) -> StoredImage:
        try:
            resp = requests.get(url, timeout=self.download_timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise ProviderTransientError(f"Failed to download generated image: {exc}") from exc
        content_type = resp.headers.get("Content-Type", "image/png").split(";")[0].strip()
        extension = (mimetypes.guess_extension(content_type) or ".png").lstrip(".")
        if extension == "jpe":
            extension = "jpg"
        return self._write(stem, extension, resp.content)

    async def save(self, image_ref: str, stem: str) -> StoredImage:
        """Persist either a ``data:`` URL or a remote http(s) URL."""

        if image_ref.startswith("data:"):
            return self.save_data_url(image_ref, stem)
        if image_ref.startswith(("http://", "https://")):
            return await asyncio.to_thread(self.download, image_ref, stem)
        raise ValueError("Unsupported image reference; expected a data URL or http(s) URL")


__all__ = [
    "ImageStore",
    "StoredImage",
    "generate_filename",
    "sanitize_prompt",
]
