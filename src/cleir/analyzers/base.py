"""Analyzer base infrastructure for Cleir.

Every track has one analyzer. An analyzer receives a flat input record built
by the router, runs one or more model round trips, and returns a typed
output record for the synthesis stage.

Example:
    >>> class EchoAnalyzer(BaseAnalyzer):
    ...     track = BusinessTrack.LEGAL
    ...
    ...     def analyze(self, analyzer_input):
    ...         data = self._ask(LEGAL_CONTRACT_PROMPT, contract_type="nda", contract_text="...")
    ...         return LegalAnalysis(**...)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from cleir.ai.client import AIClient
from cleir.ai.parsing import ParseError, ResultParser
from cleir.ai.prompts import TEXT_EXTRACTION_PROMPT, PromptTemplate
from cleir.models import AnalyzerInput, AnalyzerOutput, BusinessTrack, PersonalTrack

logger = logging.getLogger(__name__)


class AnalysisError(Exception):
    """An analyzer could not produce a result.

    Attributes:
        track: Track value of the failing analyzer.
        message: Human-readable description.
    """

    def __init__(self, track: str, message: str) -> None:
        super().__init__(message)
        self.track = track
        self.message = message


class BaseAnalyzer(ABC):
    """Abstract base class for all track analyzers.

    Subclasses must:
    - Set the ``track`` class attribute
    - Implement ``analyze``

    Provider failures (``AIClientError``) are left to propagate; the router
    turns them into pipeline errors carrying the track.
    """

    track: PersonalTrack | BusinessTrack

    def __init__(self, client: AIClient, parser: ResultParser | None = None) -> None:
        self.client = client
        self.parser = parser or ResultParser()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    def analyze(self, analyzer_input: AnalyzerInput) -> AnalyzerOutput:
        """Run the analysis for one input."""

    def __call__(self, analyzer_input: AnalyzerInput) -> AnalyzerOutput:
        return self.analyze(analyzer_input)

    def _fail(self, message: str) -> AnalysisError:
        return AnalysisError(self.track.value, message)

    def _ask(
        self,
        template: PromptTemplate,
        image: bytes | None = None,
        mime_type: str | None = None,
        system_instruction: str | None = None,
        temperature: float = 0.1,
        **variables: Any,
    ) -> dict[str, Any]:
        """Render ``template``, call the model and decode its JSON object.

        Raises:
            AnalysisError: If the reply holds no JSON object.
            AIClientError: If the model call fails after retries.
        """
        system, prompt = template.render(**variables)
        response = self.client.generate(
            prompt,
            image=image,
            mime_type=mime_type,
            system_instruction=system_instruction or system,
            temperature=temperature,
            response_mime_type="application/json",
        )
        try:
            return self.parser.parse_object(response.text)
        except ParseError as e:
            self.logger.error(f"Unparseable {self.track.value} reply ({len(e.text)} chars)")
            raise self._fail(f"Failed to analyze {self.track.value} content. Please try again.") from e

    def _extract_text(self, data: bytes, mime_type: str | None) -> str:
        """Transcribe the text in an image or PDF."""
        system, prompt = TEXT_EXTRACTION_PROMPT.render()
        response = self.client.generate(
            prompt,
            image=data,
            mime_type=mime_type,
            system_instruction=system,
            temperature=0.0,
        )
        return response.text.strip()


# =============================================================================
# Field Helpers
# =============================================================================


def str_list(value: Any) -> list[str]:
    """Coerce a model-provided list to a list of non-empty strings."""
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item not in (None, "")]


def optional_str(value: Any) -> str | None:
    """Model-provided scalar as a string, or None when blank or structured."""
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def dict_list(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return default


def as_float(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
