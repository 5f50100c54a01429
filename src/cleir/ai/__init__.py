"""Gemini access for Cleir: the client, prompt templates and JSON recovery."""

from cleir.ai.client import (
    AIAuthenticationError,
    AIBadRequestError,
    AIClient,
    AIClientError,
    AIQuotaExceededError,
    AIRateLimitError,
    AIResponse,
    AIServerError,
    AITimeoutError,
    AIUnavailableError,
    APIKeyMissingError,
    ContentBlockedError,
    ModelNotAvailableError,
)
from cleir.ai.parsing import (
    ItineraryValidationError,
    ParseError,
    ResultParser,
    extract_itinerary,
    validate_itinerary,
)
from cleir.ai.prompts import PromptTemplate, get_prompt

__all__ = [
    # Client
    "AIClient",
    "AIResponse",
    # Errors
    "AIClientError",
    "AIUnavailableError",
    "APIKeyMissingError",
    "AIAuthenticationError",
    "AIRateLimitError",
    "AIQuotaExceededError",
    "AIServerError",
    "AIBadRequestError",
    "AITimeoutError",
    "ModelNotAvailableError",
    "ContentBlockedError",
    # Parsing
    "ResultParser",
    "ParseError",
    "ItineraryValidationError",
    "extract_itinerary",
    "validate_itinerary",
    # Prompts
    "PromptTemplate",
    "get_prompt",
]
