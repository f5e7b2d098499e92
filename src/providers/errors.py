"""Exception hierarchy shared by the provider clients."""
from __future__ import annotations

from typing import Optional

import openai


class ProviderError(RuntimeError):
    """Base class for failures raised while talking to a remote model."""

    retryable: bool = False

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderAuthError(ProviderError):
    """Missing or rejected credentials. Never retried."""


class ProviderRequestError(ProviderError):
    """The provider rejected the request itself (4xx other than auth/429)."""


class ProviderRateLimitError(ProviderError):
    retryable = True


class ProviderTransientError(ProviderError):
    """Connection resets, 5xx responses and other recoverable faults."""

    retryable = True


class ProviderTimeoutError(ProviderTransientError):
    pass


class EmptyResponseError(ProviderTransientError):
    """The reply carried no usable choice, text or image."""


class ParseError(ValueError):
    """An LLM reply could not be decoded into the expected JSON shape."""

    def __init__(self, message: str, *, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw[:500]


class DeadlineExceeded(TimeoutError):
    """The per-request time budget ran out at a stage boundary."""

    def __init__(self, stage: str) -> None:
        super().__init__(f"Request deadline exceeded before stage '{stage}'")
        self.stage = stage


_TRANSIENT_STATUSES = {500, 502, 503, 504}


def error_for_status(status_code: Optional[int], message: str) -> ProviderError:
    """Classify an HTTP status returned by the provider."""

    if status_code == 401:
        return ProviderAuthError(
            "Invalid API key. Please check your OPENROUTER_API_KEY.", status_code=401
        )
    if status_code == 403:
        return ProviderAuthError(
            "Access forbidden. Your API key may not have access to this model.",
            status_code=403,
        )
    if status_code == 429:
        return ProviderRateLimitError(
            "Rate limit exceeded. Please try again later.", status_code=429
        )
    if status_code in _TRANSIENT_STATUSES:
        return ProviderTransientError(
            f"Provider service temporarily unavailable: {message}", status_code=status_code
        )
    return ProviderRequestError(message, status_code=status_code)


def map_openai_error(exc: Exception) -> ProviderError:
    """Translate an ``openai`` SDK exception into the provider taxonomy."""

    if isinstance(exc, ProviderError):
        return exc
    if isinstance(exc, openai.APITimeoutError):
        return ProviderTimeoutError(f"Provider request timed out: {exc}")
    if isinstance(exc, openai.APIConnectionError):
        return ProviderTransientError(f"Provider connection failed: {exc}")
    if isinstance(exc, openai.APIStatusError):
        return error_for_status(exc.status_code, getattr(exc, "message", None) or str(exc))
    return ProviderRequestError(str(exc))


__all__ = [
    "DeadlineExceeded",
    "EmptyResponseError",
    "ParseError",
    "ProviderAuthError",
    "ProviderError",
    "ProviderRateLimitError",
    "ProviderRequestError",
    "ProviderTimeoutError",
    "ProviderTransientError",
    "error_for_status",
    "map_openai_error",
]
