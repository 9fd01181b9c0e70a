"""
Highlight Selector - Picks the time ranges worth turning into clips.

The primary path asks a chat-completion model for 3-5 engaging segments.
When that call fails or its answer does not decode into the expected shape,
a deterministic fallback samples three evenly spaced word windows from the
transcript instead. A transcript that is too short for the fallback simply
yields no highlights; that is not an error.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from clipper.config import get_settings
from clipper.services.transcription_service import TranscriptionResult, TranscriptWord

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are a video clip creator. Analyze the transcript and identify 3-5 engaging segments that would make good 30-90 second clips.
Look for:
- Key insights or tips
- Emotional moments
- Surprising facts
- Action items
- Dramatic moments

Return a JSON object of the form {"segments": [{"start_time": <seconds>, "duration": <seconds>, "title": "<short title>"}]}."""


@dataclass(frozen=True)
class Highlight:
    """A candidate time range in the source video, in seconds."""

    start: float
    duration: float
    title: str


class AnalysisSegment(BaseModel):
    """One segment as returned by the analysis model."""

    start_time: Optional[float] = None
    duration: Optional[float] = None
    title: Optional[str] = None

    model_config = ConfigDict(allow_inf_nan=False)


class AnalysisPayload(BaseModel):
    """Expected JSON body of the analysis model's answer."""

    segments: list[AnalysisSegment]


def fallback_highlights(
    words: Sequence[TranscriptWord],
    partitions: int = 3,
    window_words: int = 50,
    min_words: int = 100,
    max_duration: float = 90.0,
) -> list[Highlight]:
    """
    Sample evenly spaced word windows from a transcript.

    Partition ``i`` starts at word ``i * (n // partitions)`` and ends at most
    ``window_words`` words later. Transcripts with fewer than ``min_words``
    words produce no highlights.
    """
    word_count = len(words)
    if word_count < min_words:
        logger.info(f"Fallback skipped: transcript has {word_count} words (< {min_words})")
        return []

    step = word_count // partitions
    highlights = []
    for i in range(partitions):
        start_idx = i * step
        end_idx = min(start_idx + window_words, word_count - 1)
        start_word = words[start_idx]
        end_word = words[end_idx]

        highlights.append(Highlight(
            start=float(start_word.start),
            duration=min(float(end_word.end) - float(start_word.start), max_duration),
            title=f"Highlight {i + 1}",
        ))

    return highlights


class HighlightSelectorService:
    """
    Service for selecting highlight segments from a transcript.

    Uses an OpenAI-compatible chat completions endpoint for the primary
    analysis and falls back to ``fallback_highlights`` on any failure.
    """

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = get_settings()
        self._http_client = http_client

        if not self.settings.llm_api_key:
            logger.warning("LLM_API_KEY not set, highlight analysis will use the fallback")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self.settings.llm_base_url,
                timeout=httpx.Timeout(self.settings.analysis_timeout_seconds, connect=30.0),
                headers={"Authorization": f"Bearer {self.settings.llm_api_key}"},
            )
        return self._http_client

    async def select_highlights(self, transcript: TranscriptionResult) -> list[Highlight]:
        """
        Select highlights for a transcript.

        Args:
            transcript: TranscriptionResult with full text and word timings

        Returns:
            Ordered list of highlights (possibly empty)
        """
        try:
            highlights = await self.analyze(transcript.full_text)
            logger.info(f"Analysis selected {len(highlights)} highlights")
            return highlights
        except HighlightAnalysisError as e:
            logger.warning(f"Highlight analysis error, using fallback: {e}")
        except Exception as e:
            logger.exception(f"Unexpected highlight analysis failure, using fallback: {e}")

        highlights = fallback_highlights(
            transcript.words,
            partitions=self.settings.fallback_partitions,
            window_words=self.settings.fallback_window_words,
            min_words=self.settings.fallback_min_words,
            max_duration=self.settings.max_highlight_duration_seconds,
        )
        logger.info(f"Fallback selected {len(highlights)} highlights")
        return highlights

    async def analyze(self, text: str) -> list[Highlight]:
        """
        Ask the analysis model for highlight segments.

        Raises:
            HighlightAnalysisError: On transport errors, non-200 responses,
                undecodable or mis-shaped answers, or an empty segment list
        """
        if not self.settings.llm_api_key:
            raise HighlightAnalysisError("LLM_API_KEY not configured")

        client = await self._get_client()
        payload = {
            "model": self.settings.analysis_model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": f"Transcript: {text}\n\nFind the best segments for short clips:",
                },
            ],
            "response_format": {"type": "json_object"},
        }

        try:
            response = await client.post("/chat/completions", json=payload)
        except httpx.HTTPError as e:
            raise HighlightAnalysisError(f"Analysis request failed: {e}") from e

        if response.status_code != 200:
            raise HighlightAnalysisError(
                f"Analysis API error ({response.status_code}): {response.text[:500]}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise HighlightAnalysisError(f"Analysis API returned invalid JSON: {e}") from e

        return self.parse_analysis_response(body)

    def parse_analysis_response(self, response: dict) -> list[Highlight]:
        """Decode and validate a chat completion into highlights."""
        try:
            content = response["choices"][0]["message"]["content"]
            parsed = AnalysisPayload.model_validate(json.loads(content))
        except (KeyError, IndexError, TypeError, json.JSONDecodeError, ValidationError) as e:
            raise HighlightAnalysisError(f"Unusable analysis response: {e}") from e

        if not parsed.segments:
            raise HighlightAnalysisError("Analysis returned no segments")

        return [
            self._normalize_segment(segment)
            for segment in parsed.segments[:self.settings.max_highlights]
        ]

    def _normalize_segment(self, segment: AnalysisSegment) -> Highlight:
        """Apply defaults and clamp the duration into the allowed range."""
        duration = segment.duration or self.settings.default_highlight_duration_seconds
        duration = min(duration, self.settings.max_highlight_duration_seconds)
        duration = max(duration, self.settings.min_highlight_duration_seconds)

        return Highlight(
            start=max(segment.start_time or 0.0, 0.0),
            duration=duration,
            title=segment.title or "Highlight",
        )

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()


class HighlightAnalysisError(Exception):
    """Exception raised when the analysis model cannot be used."""
    pass
