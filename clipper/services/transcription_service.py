"""
Transcription Service - Audio transcription using Whisper via Groq.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional

from clipper.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class TranscriptWord:
    """Word-level timing, in seconds."""

    word: str
    start: float
    end: float


@dataclass
class TranscriptSegment:
    """A segment of transcribed audio with timing, in seconds."""

    start: float
    end: float
    text: str


@dataclass
class TranscriptionResult:
    """Result of transcription operation."""

    full_text: str
    words: list[TranscriptWord] = field(default_factory=list)
    segments: list[TranscriptSegment] = field(default_factory=list)
    language: Optional[str] = None
    duration_seconds: Optional[float] = None
    model: str = "whisper-large-v3-turbo"

    @property
    def word_count(self) -> int:
        return len(self.words)


class TranscriptionService:
    """
    Service for transcribing audio using Whisper models via Groq.

    Requests the ``verbose_json`` format with word granularity so the
    highlight fallback can work from word timings.
    """

    def __init__(self, client: Any = None):
        self.settings = get_settings()
        self._groq_client = client
        if self._groq_client is None:
            self._init_client()

    def _init_client(self):
        """Initialize Groq client."""
        if not self.settings.groq_api_key:
            logger.warning("GROQ_API_KEY not set, transcription will fail")
            return

        from groq import Groq

        self._groq_client = Groq(api_key=self.settings.groq_api_key)
        logger.info("Groq client initialized for transcription")

    async def transcribe_audio(
        self,
        audio_path: str,
        language: Optional[str] = None,
    ) -> TranscriptionResult:
        """
        Transcribe an audio file.

        Args:
            audio_path: Path to audio file (WAV)
            language: Optional language code (auto-detected if not specified)

        Returns:
            TranscriptionResult with full text and word-level timing

        Raises:
            TranscriptionError: If the file is missing or the service fails
        """
        if not os.path.isfile(audio_path):
            raise TranscriptionError(f"Audio file not found: {audio_path}")

        if not self._groq_client:
            raise TranscriptionError("Groq client not initialized. Set GROQ_API_KEY environment variable.")

        model = self.settings.transcription_model
        logger.info(f"Transcribing audio: {audio_path} (model={model})")

        def _sync_transcribe():
            with open(audio_path, "rb") as audio_file:
                kwargs = {
                    "file": (os.path.basename(audio_path), audio_file),
                    "model": model,
                    "response_format": "verbose_json",
                    "timestamp_granularities": ["word", "segment"],
                }
                if language and language != "auto":
                    kwargs["language"] = language

                return self._groq_client.audio.transcriptions.create(**kwargs)

        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(None, _sync_transcribe)
        except Exception as e:
            logger.error(f"Transcription error: {e}")
            raise TranscriptionError(f"Failed to transcribe audio: {e}") from e

        return self.parse_whisper_response(response, model)

    def _get_value(self, obj, key: str, default=None):
        """Get value from object (handles both dict and object attributes)."""
        if isinstance(obj, dict):
            return obj.get(key, default)
        return getattr(obj, key, default)

    def parse_whisper_response(self, response: Any, model: str) -> TranscriptionResult:
        """Parse a Whisper ``verbose_json`` response into TranscriptionResult."""
        try:
            words = [
                TranscriptWord(
                    word=str(self._get_value(w, "word", "")).strip(),
                    start=float(self._get_value(w, "start", 0)),
                    end=float(self._get_value(w, "end", 0)),
                )
                for w in (self._get_value(response, "words") or [])
            ]
            segments = [
                TranscriptSegment(
                    start=float(self._get_value(s, "start", 0)),
                    end=float(self._get_value(s, "end", 0)),
                    text=str(self._get_value(s, "text", "")).strip(),
                )
                for s in (self._get_value(response, "segments") or [])
            ]
        except (TypeError, ValueError) as e:
            raise TranscriptionError(f"Malformed transcription response: {e}") from e

        full_text = str(self._get_value(response, "text", "") or "").strip()
        if not full_text and segments:
            full_text = " ".join(s.text for s in segments)

        duration = self._get_value(response, "duration")

        logger.info(f"Parsed transcript: {len(words)} words, {len(segments)} segments")

        return TranscriptionResult(
            full_text=full_text,
            words=words,
            segments=segments,
            language=self._get_value(response, "language"),
            duration_seconds=float(duration) if duration is not None else None,
            model=model,
        )


class TranscriptionError(Exception):
    """Exception raised when transcription fails."""
    pass
