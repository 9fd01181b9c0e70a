"""
Pytest configuration and fixtures.
"""

import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from clipper.config import get_settings
from clipper.services.job_store import JobStore
from clipper.services.media_service import MediaProcessingError
from clipper.services.transcription_service import TranscriptionResult, TranscriptWord


@pytest.fixture(autouse=True)
def settings_env(tmp_path, monkeypatch):
    """Point storage at a temp dir and strip credentials for every test."""
    upload_dir = tmp_path / "uploads"
    output_dir = tmp_path / "output"
    upload_dir.mkdir()
    output_dir.mkdir()

    monkeypatch.setenv("UPLOAD_DIRECTORY", str(upload_dir))
    monkeypatch.setenv("OUTPUT_DIRECTORY", str(output_dir))
    for key in (
        "LLM_API_KEY",
        "GROQ_API_KEY",
        "AUTH_BASE_URL",
        "AUTH_API_KEY",
        "MAX_CONCURRENT_JOBS",
    ):
        monkeypatch.delenv(key, raising=False)

    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def make_words():
    """Build a transcript of ``n`` words spaced ``spacing`` seconds apart."""

    def _make(n: int, spacing: float = 0.5):
        return [
            TranscriptWord(word=f"w{i}", start=i * spacing, end=i * spacing + 0.4)
            for i in range(n)
        ]

    return _make


@pytest.fixture
def make_transcript(make_words):
    def _make(n: int, spacing: float = 0.5):
        words = make_words(n, spacing)
        return TranscriptionResult(
            full_text=" ".join(w.word for w in words),
            words=words,
        )

    return _make


@pytest.fixture
def job_store():
    return JobStore()


@pytest.fixture
def video_file(settings_env):
    """A placeholder source video in the upload directory."""
    path = os.path.join(settings_env.upload_directory, "source.mp4")
    with open(path, "wb") as f:
        f.write(b"not really a video")
    return path


class FakeMediaService:
    """Media engine stand-in that writes placeholder files."""

    def __init__(self, fail_audio: bool = False, fail_clip_at: int = None):
        self.fail_audio = fail_audio
        self.fail_clip_at = fail_clip_at
        self.audio_calls = []
        self.clip_calls = []

    async def extract_audio(self, video_path, audio_path):
        self.audio_calls.append((video_path, audio_path))
        if self.fail_audio:
            raise MediaProcessingError("FFmpeg failed: corrupt input")
        with open(audio_path, "wb") as f:
            f.write(b"RIFF")
        return audio_path

    async def cut_clip(self, video_path, output_path, start_seconds, duration_seconds):
        self.clip_calls.append((output_path, start_seconds, duration_seconds))
        if self.fail_clip_at is not None and len(self.clip_calls) == self.fail_clip_at:
            raise MediaProcessingError("FFmpeg failed: disk full")
        with open(output_path, "wb") as f:
            f.write(b"mp4")
        return output_path


@pytest.fixture
def make_media():
    return FakeMediaService


@pytest.fixture
def fake_media():
    return FakeMediaService()


@pytest.fixture
def fake_transcription(mocker, make_transcript):
    """Transcription gateway returning a 250-word transcript by default."""
    service = mocker.MagicMock()
    service.transcribe_audio = mocker.AsyncMock(return_value=make_transcript(250))
    return service
