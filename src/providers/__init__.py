"""Clients for the remote LLM and image models, plus retry and storage helpers."""

from .errors import (  # noqa: F401
    DeadlineExceeded,
    EmptyResponseError,
    ParseError,
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitError,
    ProviderRequestError,
    ProviderTimeoutError,
    ProviderTransientError,
)
from .llm_client import LLMClient, LLMOptions, JsonReply, parse_json_reply  # noqa: F401
from .retry import Deadline, backoff_delay, is_retryable, retry_async  # noqa: F401
from .settings import ProviderSettings  # noqa: F401
from .storage import ImageStore, StoredImage, generate_filename, sanitize_prompt  # noqa: F401
from .synthesis import ImageSynthesisClient, SynthesisRequest, SynthesisResult  # noqa: F401
