"""
Tests for the job orchestrator.
"""

import asyncio
import os

import pytest

from clipper.services.clipping_pipeline import ClippingPipeline, clip_id_for, download_url_for
from clipper.services.highlight_selector import Highlight, HighlightSelectorService
from clipper.services.job_store import JobStatus
from clipper.services.transcription_service import TranscriptionError


@pytest.fixture
def job(job_store, video_file):
    return job_store.create(user_id="user-1", video_path=video_file)


def _pipeline(job_store, media, transcription, selector=None):
    return ClippingPipeline(
        job_store=job_store,
        media_service=media,
        transcription_service=transcription,
        highlight_selector=selector or HighlightSelectorService(),
    )


class TestClipIds:
    def test_clip_id_format(self):
        assert clip_id_for("abc", 2) == "abc_clip_2"
        assert download_url_for("abc_clip_2") == "/api/download/abc_clip_2"


class TestSuccessfulRun:
    """Tests for a job that runs to completion."""

    def test_fallback_scenario(self, job_store, job, fake_media, fake_transcription):
        """250 words and no analysis model: three clips from the fallback."""
        pipeline = _pipeline(job_store, fake_media, fake_transcription)

        asyncio.run(pipeline.process_job(job.id))

        done = job_store.get(job.id)
        assert done.status == JobStatus.COMPLETED
        assert done.progress == 100
        assert done.error is None
        assert [c.id for c in done.clips] == [
            f"{job.id}_clip_1",
            f"{job.id}_clip_2",
            f"{job.id}_clip_3",
        ]
        assert [c.title for c in done.clips] == [
            "Clip 1: Highlight 1",
            "Clip 2: Highlight 2",
            "Clip 3: Highlight 3",
        ]
        assert all(c.duration <= 90.0 for c in done.clips)
        assert all(c.download_url == f"/api/download/{c.id}" for c in done.clips)

    def test_clips_rendered_in_order(self, job_store, job, fake_media, fake_transcription, settings_env):
        pipeline = _pipeline(job_store, fake_media, fake_transcription)

        asyncio.run(pipeline.process_job(job.id))

        outputs = [call[0] for call in fake_media.clip_calls]
        assert outputs == [
            os.path.join(settings_env.output_directory, f"{job.id}_clip_{n}.mp4")
            for n in (1, 2, 3)
        ]
        starts = [call[1] for call in fake_media.clip_calls]
        assert starts == sorted(starts)
        assert all(os.path.exists(path) for path in outputs)

    def test_progress_sequence(self, mocker, job_store, job, fake_media, fake_transcription):
        spy = mocker.spy(job_store, "update")
        pipeline = _pipeline(job_store, fake_media, fake_transcription)

        asyncio.run(pipeline.process_job(job.id))

        transitions = [(c.kwargs["status"], c.kwargs["progress"]) for c in spy.call_args_list]
        assert transitions == [
            (JobStatus.TRANSCRIBING, 10),
            (JobStatus.TRANSCRIBING, 30),
            (JobStatus.ANALYZING, 50),
            (JobStatus.CLIPPING, 70),
            (JobStatus.COMPLETED, 100),
        ]

    def test_no_highlights_completes_empty(self, job_store, job, fake_media, fake_transcription, make_transcript):
        """A 99-word transcript completes with no clips."""
        fake_transcription.transcribe_audio.return_value = make_transcript(99)
        pipeline = _pipeline(job_store, fake_media, fake_transcription)

        asyncio.run(pipeline.process_job(job.id))

        done = job_store.get(job.id)
        assert done.status == JobStatus.COMPLETED
        assert done.progress == 100
        assert done.clips == ()
        assert fake_media.clip_calls == []

    def test_audio_removed_after_success(self, job_store, job, fake_media, fake_transcription):
        pipeline = _pipeline(job_store, fake_media, fake_transcription)

        asyncio.run(pipeline.process_job(job.id))

        audio_path = fake_media.audio_calls[0][1]
        assert audio_path == pipeline.audio_path_for(job.id)
        assert not os.path.exists(audio_path)
        fake_transcription.transcribe_audio.assert_awaited_once_with(audio_path)

    def test_start_logs_source(self, caplog, job_store, fake_media, fake_transcription, video_file):
        job = job_store.create("user-1", video_file, source_url="https://example.com/talk")
        pipeline = _pipeline(job_store, fake_media, fake_transcription)

        with caplog.at_level("INFO", logger="clipper.services.clipping_pipeline"):
            asyncio.run(pipeline.process_job(job.id))

        assert f"Starting clipping job: {job.id} (source: https://example.com/talk)" in caplog.text

    def test_clips_follow_selector_order(self, mocker, job_store, job, fake_media, fake_transcription):
        selector = mocker.MagicMock()
        selector.select_highlights = mocker.AsyncMock(return_value=[
            Highlight(start=120.0, duration=30.0, title="Late"),
            Highlight(start=10.0, duration=45.0, title="Early"),
        ])
        pipeline = _pipeline(job_store, fake_media, fake_transcription, selector)

        asyncio.run(pipeline.process_job(job.id))

        done = job_store.get(job.id)
        assert [c.title for c in done.clips] == ["Clip 1: Late", "Clip 2: Early"]
        assert [c.duration for c in done.clips] == [30.0, 45.0]
        assert [call[1] for call in fake_media.clip_calls] == [120.0, 10.0]


class TestFailedRun:
    """Tests for stage failures."""

    def test_audio_failure(self, job_store, job, make_media, fake_transcription):
        """Audio failure stops the run before transcription or analysis."""
        media = make_media(fail_audio=True)
        pipeline = _pipeline(job_store, media, fake_transcription)

        asyncio.run(pipeline.process_job(job.id))

        failed = job_store.get(job.id)
        assert failed.status == JobStatus.FAILED
        assert failed.progress <= 30
        assert "corrupt input" in failed.error
        assert failed.clips == ()
        fake_transcription.transcribe_audio.assert_not_called()

    def test_audio_failure_skips_analysis(self, mocker, job_store, job, make_media, fake_transcription):
        selector = mocker.MagicMock()
        selector.select_highlights = mocker.AsyncMock(return_value=[])
        pipeline = _pipeline(job_store, make_media(fail_audio=True), fake_transcription, selector)

        asyncio.run(pipeline.process_job(job.id))

        selector.select_highlights.assert_not_called()

    def test_transcription_failure(self, job_store, job, fake_media, fake_transcription):
        fake_transcription.transcribe_audio.side_effect = TranscriptionError("rate limited")
        pipeline = _pipeline(job_store, fake_media, fake_transcription)

        asyncio.run(pipeline.process_job(job.id))

        failed = job_store.get(job.id)
        assert failed.status == JobStatus.FAILED
        assert failed.progress == 30
        assert failed.error == "rate limited"
        assert fake_media.clip_calls == []

    def test_clip_failure_publishes_no_clips(self, job_store, job, make_media, fake_transcription):
        """A failure on the second clip leaves the job failed with no clips."""
        media = make_media(fail_clip_at=2)
        pipeline = _pipeline(job_store, media, fake_transcription)

        asyncio.run(pipeline.process_job(job.id))

        failed = job_store.get(job.id)
        assert failed.status == JobStatus.FAILED
        assert failed.progress == 70
        assert failed.clips == ()
        assert len(media.clip_calls) == 2

    def test_unknown_job_is_ignored(self, job_store, fake_media, fake_transcription):
        pipeline = _pipeline(job_store, fake_media, fake_transcription)

        asyncio.run(pipeline.process_job("missing"))

        assert fake_media.audio_calls == []
