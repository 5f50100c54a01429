"""Recovery of JSON payloads from free-form model text.

Models asked for JSON often wrap it in prose or markdown fences. Everything
that digs structured data out of model text lives here, behind a narrow
interface, so a native structured-output mode can replace it later.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from cleir.models import Itinerary

logger = logging.getLogger(__name__)

JSON_FENCE_PATTERN = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)


class ParseError(Exception):
    """No structured answer could be recovered.

    Attributes:
        text: The original model text.
    """

    def __init__(self, message: str, text: str) -> None:
        super().__init__(message)
        self.text = text


class ItineraryValidationError(ValueError):
    """Decoded JSON does not match the itinerary payload contract."""

    pass


class ResultParser:
    """Extracts the outermost JSON object embedded in model text.

    Example:
        >>> ResultParser().parse('Sure! {"track": "visa", "confidence": 0.9} Hope that helps.')
        {'track': 'visa', 'confidence': 0.9}
    """

    def parse(self, text: str) -> Any:
        """Decode the span from the first ``{`` to the last ``}``.

        Args:
            text: Raw model output.

        Returns:
            The decoded JSON value.

        Raises:
            ParseError: If there is no brace span or it is not valid JSON.
        """
        if not text:
            raise ParseError("Empty model response", text or "")

        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            raise ParseError("No JSON object found in model response", text)

        try:
            return json.loads(text[start : end + 1])
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON in model response: {e.msg}", text) from e

    def parse_object(self, text: str) -> dict[str, Any]:
        """Like ``parse`` but the result must be a JSON object."""
        value = self.parse(text)
        if not isinstance(value, dict):
            raise ParseError("Model response JSON is not an object", text)
        return value


def validate_itinerary(payload: Any) -> Itinerary:
    """Check a decoded payload against the itinerary contract.

    Args:
        payload: Decoded JSON.

    Returns:
        The validated Itinerary.

    Raises:
        ItineraryValidationError: If ``type`` is not "itinerary", ``days`` is
            missing, or any field is malformed.
    """
    if not isinstance(payload, dict):
        raise ItineraryValidationError("Itinerary payload must be a JSON object")
    if payload.get("type") != "itinerary":
        raise ItineraryValidationError(f"Not an itinerary payload (type={payload.get('type')!r})")
    if not isinstance(payload.get("days"), list):
        raise ItineraryValidationError("Itinerary payload has no days")
    try:
        return Itinerary.model_validate(payload)
    except ValidationError as e:
        raise ItineraryValidationError(f"Malformed itinerary: {e.error_count()} invalid field(s)") from e


def extract_itinerary(text: str) -> tuple[Itinerary | None, str]:
    """Pull an itinerary out of a model reply.

    A fenced ```json block is tried first; otherwise the outermost brace span.
    The returned text has the JSON removed and is stripped.

    Args:
        text: Model reply, usually prose plus an embedded itinerary.

    Returns:
        ``(itinerary, clean_text)``. ``itinerary`` is None when nothing valid
        was found, in which case ``clean_text`` is the stripped input.
    """
    fence = JSON_FENCE_PATTERN.search(text)
    if fence:
        candidate = fence.group(1)
        span = (fence.start(), fence.end())
    else:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            return None, text.strip()
        candidate = text[start : end + 1]
        span = (start, end + 1)

    try:
        itinerary = validate_itinerary(json.loads(candidate))
    except json.JSONDecodeError as e:
        logger.debug(f"Itinerary JSON did not decode: {e.msg}")
        return None, text.strip()
    except ItineraryValidationError as e:
        logger.debug(f"Ignoring embedded JSON: {e}")
        return None, text.strip()

    clean_text = (text[: span[0]] + text[span[1] :]).strip()
    return itinerary, clean_text
