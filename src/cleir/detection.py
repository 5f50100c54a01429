"""Track detection for Cleir.

The detector asks the model which specialist track a raw input needs and
turns the reply into a ``DetectionResult``. Detection is designed to be:
- Single-shot (the client is called with ``max_retries=0``)
- Non-throwing (any failure yields an unknown result with confidence 0)
- Family-scoped (a personal request can never be routed to a business track)
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from cleir.ai.client import AIClient, AIClientError
from cleir.ai.parsing import ParseError, ResultParser
from cleir.ai.prompts import BUSINESS_DETECTION_PROMPT, PERSONAL_DETECTION_PROMPT, PromptTemplate
from cleir.models import BusinessTrack, DetectionResult, PersonalTrack, RawInput

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

Family = Literal["personal", "business"]

FAMILY_TRACKS: dict[str, type[PersonalTrack] | type[BusinessTrack]] = {
    "personal": PersonalTrack,
    "business": BusinessTrack,
}

FAMILY_PROMPTS: dict[str, PromptTemplate] = {
    "personal": PERSONAL_DETECTION_PROMPT,
    "business": BUSINESS_DETECTION_PROMPT,
}

FAILED_REASONING = "Failed to analyze document"

# Older replies used different key names
TRACK_KEYS = ("track", "type", "detectedMode")
TEXT_KEYS = ("extracted_text", "extractedText")
FIELD_KEYS = ("extracted_fields", "extractedFields", "extractedData")


# =============================================================================
# Helpers
# =============================================================================


def _first(data: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _clamp_confidence(value: Any) -> float:
    """Clamp to [0, 1]; missing or non-numeric confidence is 0."""
    if isinstance(value, bool):
        return 0.0
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if confidence != confidence:  # NaN
        return 0.0
    return max(0.0, min(1.0, confidence))


def unknown_result(
    family: Family,
    reasoning: str = FAILED_REASONING,
) -> DetectionResult:
    """Build the fallback detection for a family."""
    return DetectionResult(
        track=FAMILY_TRACKS[family].UNKNOWN,
        confidence=0.0,
        reasoning=reasoning,
    )


def forced_result(track: PersonalTrack | BusinessTrack) -> DetectionResult:
    """Build a detection for a caller-chosen track, skipping the model."""
    return DetectionResult(track=track, confidence=1.0, reasoning="Mode manually specified")


# =============================================================================
# Detector
# =============================================================================


class ModeDetector:
    """Classifies raw input into one track of a family.

    Example:
        >>> detector = ModeDetector(client, family="business")
        >>> result = detector.detect(RawInput(text="Invoice #442, wire today..."))
        >>> result.track
        <BusinessTrack.SCAM_DOCUMENT: 'scam'>
    """

    def __init__(
        self,
        client: AIClient,
        family: Family = "business",
        parser: ResultParser | None = None,
    ) -> None:
        if family not in FAMILY_TRACKS:
            raise ValueError(f"Unknown track family: {family}")
        self.client = client
        self.family = family
        self.parser = parser or ResultParser()
        self._tracks = FAMILY_TRACKS[family]

    def detect(self, raw_input: RawInput, context_text: str | None = None) -> DetectionResult:
        """Detect the track for ``raw_input``.

        Never raises for model or parse failures; those yield the unknown
        track with confidence 0.

        Args:
            raw_input: The content to classify.
            context_text: Extra context appended to the prompt.

        Returns:
            DetectionResult for this detector's family.
        """
        context_parts = []
        if raw_input.text:
            context_parts.append(f"Additional context/text:\n{raw_input.text}")
        if context_text:
            context_parts.append(f"Additional context:\n{context_text}")

        system, prompt = FAMILY_PROMPTS[self.family].render(context="\n\n".join(context_parts))

        try:
            response = self.client.generate(
                prompt,
                image=raw_input.image_bytes,
                mime_type=raw_input.image_mime_type,
                system_instruction=system,
                max_retries=0,
                temperature=0.1,
            )
            data = self.parser.parse_object(response.text)
        except AIClientError as e:
            logger.warning(f"Detection call failed: {type(e).__name__}")
            return unknown_result(self.family)
        except ParseError as e:
            logger.warning(f"Detection reply had no usable JSON: {e}")
            return unknown_result(self.family)

        raw_track = _first(data, TRACK_KEYS)
        try:
            track = self._tracks(str(raw_track).strip().lower())
        except ValueError:
            logger.warning(f"Detection returned unsupported track: {raw_track!r}")
            return unknown_result(self.family)

        fields = _first(data, FIELD_KEYS)
        extracted_text = _first(data, TEXT_KEYS)

        result = DetectionResult(
            track=track,
            confidence=_clamp_confidence(data.get("confidence")),
            reasoning=str(data.get("reasoning") or ""),
            extracted_text=str(extracted_text) if extracted_text else None,
            extracted_fields=fields if isinstance(fields, dict) else {},
        )
        logger.info(f"Detected {self.family} track {track.value} ({result.confidence:.0%} confidence)")
        return result
