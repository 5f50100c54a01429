"""Errors raised at the public boundary of the pipeline.

Every failure that leaves ``cleir.pipeline`` is a ``PipelineError``. Each one
carries a short machine-readable ``kind`` and a human ``detail`` so callers
(the CLI, a web handler) can report it without inspecting the traceback.

Example:
    >>> try:
    ...     analyze_document(raw)
    ... except PipelineError as e:
    ...     print(e.to_dict())
    {'kind': 'unhandled_track', 'detail': 'No analyzer bound for track: trip'}
"""

from __future__ import annotations

from typing import Any


class PipelineError(Exception):
    """Base class for structured pipeline failures.

    Attributes:
        kind: Machine-readable error category.
        detail: Human-readable description.
    """

    kind: str = "internal"

    def __init__(self, detail: str, kind: str | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        if kind is not None:
            self.kind = kind

    def __str__(self) -> str:
        return f"{self.kind}: {self.detail}"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "detail": self.detail}


class InvalidInputError(PipelineError):
    """Raw input carries neither an image nor text."""

    kind = "invalid_input"


class UnhandledTrackError(PipelineError):
    """A routable track has no analyzer bound to it.

    Attributes:
        track: The track value that could not be dispatched.
    """

    kind = "unhandled_track"

    def __init__(self, track: str, detail: str | None = None) -> None:
        self.track = track
        super().__init__(detail or f"No analyzer bound for track: {track}")


class AnalysisPipelineError(PipelineError):
    """An analyzer failed for the given track.

    ``kind`` is ``provider_unavailable`` when the language model could not be
    reached and ``analysis_failed`` for every other analyzer failure.

    Attributes:
        track: Track whose analyzer failed.
    """

    kind = "analysis_failed"

    def __init__(self, track: str, detail: str, provider_unavailable: bool = False) -> None:
        self.track = track
        super().__init__(
            detail,
            kind="provider_unavailable" if provider_unavailable else "analysis_failed",
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["track"] = self.track
        return data


class EnrichmentError(PipelineError):
    """Itinerary payload does not match the expected contract."""

    kind = "invalid_itinerary"
