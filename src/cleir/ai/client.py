"""Central Gemini client for Cleir.

This module is the only place that talks to the Gemini API. Detection and
every analyzer send their prompts (and optional image bytes) through
``AIClient.generate`` and receive an ``AIResponse``.

The client provides:
- Bounded retry with exponential backoff and jitter for retriable failures
- Typed exceptions mapped from the google-genai SDK
- A per-request deadline through ``HttpOptions(timeout=...)``
- Security-first logging (never logs keys, prompts or full responses)

Example:
    >>> from cleir.ai.client import AIClient, AIUnavailableError
    >>>
    >>> try:
    ...     client = AIClient()
    ...     response = client.generate("Classify this document...", image=png_bytes)
    ...     print(response.text)
    ... except AIUnavailableError:
    ...     print("Gemini is not configured")
"""

from __future__ import annotations

import logging
import random
import re
import time
from typing import Any, Callable, Literal

import httpx
from google import genai
from google.genai import errors, types
from pydantic import BaseModel, Field

from cleir.config import AppConfig, get_config


# =============================================================================
# Secure Logging Filter
# =============================================================================


class RedactingFilter(logging.Filter):
    """Logging filter that redacts anything that looks like a credential.

    Example:
        >>> logger = logging.getLogger("my_module")
        >>> logger.addFilter(RedactingFilter())
        >>> logger.info("Using key=AIzaSy123456789...")
        # Output: "Using key=[REDACTED]"
    """

    PATTERNS = [
        re.compile(r'(api_key\s*[=:]\s*)["\']?([a-zA-Z0-9_\-]{20,})["\']?', re.IGNORECASE),
        re.compile(r'(key\s*[=:]\s*)["\']?([a-zA-Z0-9_\-]{20,})["\']?', re.IGNORECASE),
        re.compile(r'(token\s*[=:]\s*)["\']?([a-zA-Z0-9_\-]{20,})["\']?', re.IGNORECASE),
        re.compile(r"(bearer\s+)([a-zA-Z0-9_\-]{20,})", re.IGNORECASE),
        # Google API keys start with AIza
        re.compile(r"\bAIza[a-zA-Z0-9_\-]{30,}\b"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._redact(record.msg)
        if record.args:
            record.args = tuple(
                self._redact(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True

    def _redact(self, text: str) -> str:
        for pattern in self.PATTERNS[:4]:
            text = pattern.sub(r"\1[REDACTED]", text)
        for pattern in self.PATTERNS[4:]:
            text = pattern.sub("[REDACTED]", text)
        return text


logger = logging.getLogger(__name__)
logger.addFilter(RedactingFilter())


# =============================================================================
# Exception Hierarchy
# =============================================================================


class AIClientError(Exception):
    """Base exception for all AI client errors.

    Attributes:
        message: Human-readable error description (safe to log).
        retriable: Whether the operation can be retried.
        details: Additional error context (may contain sensitive data, don't log).
        original_error: The underlying exception that caused this error.
    """

    def __init__(
        self,
        message: str,
        retriable: bool = False,
        details: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.retriable = retriable
        self.details = details or {}
        self.original_error = original_error

    def __str__(self) -> str:
        return self.message


class AIUnavailableError(AIClientError):
    """Gemini cannot be used at all (no key, service down).

    Attributes:
        reason: Why the service is unavailable.
    """

    def __init__(
        self,
        reason: Literal["no_api_key", "offline", "service_down"],
        message: str | None = None,
    ) -> None:
        self.reason = reason

        default_messages = {
            "no_api_key": "No Gemini API key configured",
            "offline": "Cannot reach Gemini API (network offline)",
            "service_down": "Gemini service is temporarily unavailable",
        }

        msg = message or default_messages.get(reason, f"AI unavailable: {reason}")
        super().__init__(msg, retriable=False)


class APIKeyMissingError(AIUnavailableError):
    """No API key configured.

    Attributes:
        suggestion: How to configure the key.
    """

    def __init__(
        self,
        message: str | None = None,
        suggestion: str = "Set GEMINI_API_KEY or CLEIR_AI__API_KEY",
    ) -> None:
        self.suggestion = suggestion
        super().__init__(
            reason="no_api_key",
            message=message or f"No API key configured. {suggestion}",
        )


class AIAuthenticationError(AIClientError):
    """API key is invalid or expired. Never retriable."""

    def __init__(
        self,
        message: str = "API authentication failed. Please check your API key.",
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, retriable=False, original_error=original_error)


class AIRateLimitError(AIClientError):
    """Rate limit exceeded. Retriable after waiting.

    Attributes:
        retry_after_seconds: Suggested wait time before retry (may be None).
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded. Please wait before retrying.",
        retry_after_seconds: float | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, retriable=True, original_error=original_error)
        self.retry_after_seconds = retry_after_seconds


class AIQuotaExceededError(AIClientError):
    """Quota or billing limit reached. Not retriable."""

    def __init__(
        self,
        message: str = "API quota exceeded. Check your billing and usage limits.",
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, retriable=False, original_error=original_error)


class AIServerError(AIClientError):
    """Server-side error (5xx). Retriable.

    Attributes:
        status_code: HTTP status code if available.
    """

    def __init__(
        self,
        message: str = "AI server error. The service may be temporarily unavailable.",
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, retriable=True, original_error=original_error)
        self.status_code = status_code


class AIBadRequestError(AIClientError):
    """Invalid request (malformed prompt, unsupported image, bad parameters)."""

    def __init__(
        self,
        message: str = "Invalid request to AI service.",
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, retriable=False, original_error=original_error)


class AITimeoutError(AIClientError):
    """Request exceeded its deadline. Retriable.

    Attributes:
        timeout_seconds: The deadline that was exceeded.
    """

    def __init__(
        self,
        timeout_seconds: float,
        message: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        msg = message or f"Request timed out after {timeout_seconds} seconds"
        super().__init__(msg, retriable=True, original_error=original_error)
        self.timeout_seconds = timeout_seconds


class ModelNotAvailableError(AIClientError):
    """Requested model doesn't exist or isn't available.

    Attributes:
        model_name: The model that was requested.
    """

    def __init__(
        self,
        model_name: str,
        message: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        msg = message or f"Model '{model_name}' not found. Check model name in configuration."
        super().__init__(msg, retriable=False, original_error=original_error)
        self.model_name = model_name


class ContentBlockedError(AIClientError):
    """Content was blocked by safety filters.

    Attributes:
        blocked_reason: The reason for blocking if available.
    """

    def __init__(
        self,
        message: str = "Content blocked by safety filters.",
        blocked_reason: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, retriable=False, original_error=original_error)
        self.blocked_reason = blocked_reason


# =============================================================================
# Response Model
# =============================================================================


class AIResponse(BaseModel):
    """Standardized response from a generation call.

    Attributes:
        text: The generated content.
        model: Name of the model that generated this response.
        prompt_tokens: Number of tokens in the input prompt.
        completion_tokens: Number of tokens in the generated output.
        total_tokens: Total tokens used.
        finish_reason: Why generation stopped (e.g., "STOP", "MAX_TOKENS").
        latency_ms: Time taken for generation in milliseconds.
        raw_response: Original SDK response (excluded from serialization).
    """

    text: str = Field(..., description="The generated content")
    model: str = Field(..., description="Model that generated this response")
    prompt_tokens: int | None = Field(None, description="Tokens in input prompt")
    completion_tokens: int | None = Field(None, description="Tokens in output")
    total_tokens: int | None = Field(None, description="Total tokens used")
    finish_reason: str | None = Field(None, description="Why generation stopped")
    latency_ms: float | None = Field(None, description="Generation time in ms")
    raw_response: Any = Field(None, exclude=True, description="Original SDK response")

    def is_truncated(self) -> bool:
        """Check if the response was cut short by token limits."""
        return self.finish_reason in {"MAX_TOKENS", "LENGTH"} if self.finish_reason else False


# =============================================================================
# Client
# =============================================================================


class AIClient:
    """Client for all Gemini API communication.

    The SDK client is created lazily on the first request, so constructing an
    ``AIClient`` never touches the network.

    Example:
        >>> client = AIClient()
        >>> response = client.generate(
        ...     "Extract the destination country.",
        ...     image=passport_scan,
        ...     system_instruction="You are a visa document analyst.",
        ...     max_retries=0,
        ... )

    Attributes:
        config: Application configuration.
    """

    MAX_RETRY_DELAY: float = 60.0

    def __init__(
        self,
        config: AppConfig | None = None,
        api_key: str | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Application configuration. If None, loads from get_config().
            api_key: Override API key. If None, uses the configured key.
        """
        self.config = config or get_config()
        self._api_key = api_key or self.config.ai.resolve_api_key()
        self._client: Any = None
        self._logger = logging.getLogger(f"{__name__}.AIClient")
        self._logger.addFilter(RedactingFilter())

        if not self._api_key:
            self._logger.warning("No Gemini API key configured")

    @property
    def model_name(self) -> str:
        return self.config.ai.model

    def is_available(self) -> bool:
        """Return True when a key is configured."""
        return bool(self._api_key)

    def _get_client(self) -> Any:
        if not self._api_key:
            raise APIKeyMissingError()

        if self._client is None:
            timeout_ms = int(self.config.ai.timeout_seconds * 1000)
            self._client = genai.Client(
                api_key=self._api_key,
                http_options=types.HttpOptions(timeout=timeout_ms),
            )
            self._logger.debug(f"Gemini client created for model {self.model_name}")
        return self._client

    def _build_generation_config(
        self,
        system_instruction: str | None = None,
        **overrides: Any,
    ) -> types.GenerateContentConfig:
        params: dict[str, Any] = {
            "temperature": self.config.ai.temperature,
            "max_output_tokens": self.config.ai.max_output_tokens,
        }
        params.update(overrides)
        if system_instruction:
            params["system_instruction"] = system_instruction
        return types.GenerateContentConfig(**params)

    def generate(
        self,
        prompt: str,
        image: bytes | None = None,
        mime_type: str | None = None,
        system_instruction: str | None = None,
        max_retries: int | None = None,
        **overrides: Any,
    ) -> AIResponse:
        """Generate text from a prompt and an optional image.

        Args:
            prompt: The text prompt.
            image: Optional image bytes sent inline before the prompt.
            mime_type: MIME type of the image (defaults to image/jpeg).
            system_instruction: Optional system instruction.
            max_retries: Override the configured retry count. Detection
                passes 0 so it is never retried.
            **overrides: Per-call generation overrides (temperature, ...).

        Returns:
            AIResponse with the generated text and metadata.

        Raises:
            AIClientError: Any mapped failure, after retries are exhausted.
        """
        client = self._get_client()

        contents: list[Any] = []
        if image:
            contents.append(types.Part.from_bytes(data=image, mime_type=mime_type or "image/jpeg"))
        contents.append(prompt)

        gen_config = self._build_generation_config(system_instruction, **overrides)

        start_time = time.time()
        try:
            raw_response = self._execute_with_retry(
                self._do_generate,
                client,
                contents,
                gen_config,
                max_retries=max_retries,
            )
        except AIClientError as e:
            self._logger.error(f"Generation failed: {type(e).__name__}")
            raise

        latency_ms = (time.time() - start_time) * 1000
        text = raw_response.text
        if text is None:
            feedback = getattr(raw_response, "prompt_feedback", None)
            block_reason = getattr(feedback, "block_reason", None) if feedback else None
            if block_reason:
                raise ContentBlockedError(blocked_reason=str(block_reason))
            text = ""

        prompt_tokens = completion_tokens = total_tokens = None
        usage = getattr(raw_response, "usage_metadata", None)
        if usage:
            prompt_tokens = getattr(usage, "prompt_token_count", None)
            completion_tokens = getattr(usage, "candidates_token_count", None)
            total_tokens = getattr(usage, "total_token_count", None)

        finish_reason = None
        candidates = getattr(raw_response, "candidates", None)
        if candidates:
            reason = getattr(candidates[0], "finish_reason", None)
            if reason is not None:
                finish_reason = getattr(reason, "name", str(reason))

        self._logger.info(
            f"Generation successful: {total_tokens or '?'} tokens in {latency_ms:.0f}ms"
        )

        return AIResponse(
            text=text,
            model=self.model_name,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
            finish_reason=finish_reason,
            latency_ms=latency_ms,
            raw_response=raw_response,
        )

    def _do_generate(
        self,
        client: Any,
        contents: list[Any],
        config: types.GenerateContentConfig,
    ) -> Any:
        return client.models.generate_content(
            model=self.model_name,
            contents=contents,
            config=config,
        )

    def _execute_with_retry(
        self,
        func: Callable[..., Any],
        *args: Any,
        max_retries: int | None = None,
        **kwargs: Any,
    ) -> Any:
        """Execute ``func`` with retry on transient failures.

        Uses exponential backoff with jitter. A rate-limit hint from the
        service raises the delay to at least the suggested wait.

        Args:
            func: Function to execute.
            *args: Positional arguments for the function.
            max_retries: Override max retries (uses config default if None).
            **kwargs: Keyword arguments for the function.

        Returns:
            The function's return value.

        Raises:
            AIClientError: On failure after all retries are exhausted.
        """
        retries = max_retries if max_retries is not None else self.config.ai.max_retries
        base_delay = self.config.ai.retry_base_delay
        max_delay = min(self.config.ai.max_retry_delay, self.MAX_RETRY_DELAY)

        for attempt in range(retries + 1):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                mapped_error = e if isinstance(e, AIClientError) else self._map_exception(e)

                if not mapped_error.retriable:
                    raise mapped_error from e

                if attempt >= retries:
                    if retries:
                        self._logger.error(
                            f"Max retries ({retries}) exhausted: {type(mapped_error).__name__}"
                        )
                    raise mapped_error from e

                delay = min(base_delay * (2**attempt), max_delay)
                total_delay = delay + random.uniform(0, 1)

                if isinstance(mapped_error, AIRateLimitError) and mapped_error.retry_after_seconds:
                    total_delay = max(total_delay, mapped_error.retry_after_seconds)

                self._logger.warning(
                    f"Retry {attempt + 1}/{retries} after {total_delay:.1f}s: "
                    f"{type(mapped_error).__name__}"
                )
                time.sleep(total_delay)

        raise AIClientError("Unknown error during retry")

    def _map_exception(self, error: Exception) -> AIClientError:
        """Map SDK and transport exceptions to the client hierarchy.

        Args:
            error: The original exception.

        Returns:
            Mapped AIClientError subclass.
        """
        error_str = str(error).lower()

        if isinstance(error, httpx.TimeoutException):
            return AITimeoutError(self.config.ai.timeout_seconds, original_error=error)

        if isinstance(error, httpx.TransportError):
            return AIServerError(
                "Cannot reach Gemini API. Check your network connection.",
                original_error=error,
            )

        if isinstance(error, errors.APIError):
            code = getattr(error, "code", None)
            if code in (401, 403):
                return AIAuthenticationError(original_error=error)
            if code == 429:
                if "quota" in error_str and "rate" not in error_str:
                    return AIQuotaExceededError(original_error=error)
                return AIRateLimitError(original_error=error)
            if code == 404:
                return ModelNotAvailableError(self.model_name, original_error=error)
            if code == 408 or code == 504:
                return AITimeoutError(self.config.ai.timeout_seconds, original_error=error)
            if code == 400:
                if "safety" in error_str or "blocked" in error_str:
                    return ContentBlockedError(original_error=error)
                return AIBadRequestError(str(error), original_error=error)
            if isinstance(error, errors.ServerError) or (code is not None and code >= 500):
                return AIServerError(status_code=code, original_error=error)

        # Fallback pattern matching on the error message
        if "blocked" in error_str or "safety" in error_str:
            return ContentBlockedError(original_error=error)

        if "unauthorized" in error_str or "api key not valid" in error_str:
            return AIAuthenticationError(original_error=error)

        if "rate limit" in error_str or "resource exhausted" in error_str:
            return AIRateLimitError(original_error=error)

        if "timeout" in error_str or "deadline" in error_str:
            return AITimeoutError(self.config.ai.timeout_seconds, original_error=error)

        return AIClientError(str(error), retriable=False, original_error=error)
