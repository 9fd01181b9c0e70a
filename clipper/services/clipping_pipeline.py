"""
Clipping Pipeline - Orchestrator for a single job, end to end.

Stages, in order:
1. Audio extraction (FFmpeg)
2. Transcription (Whisper)
3. Highlight selection (LLM analysis with deterministic fallback)
4. Clip cutting (FFmpeg, one clip per highlight, in highlight order)

Each stage boundary commits one atomic update to the job store. Any stage
failure moves the job to ``failed`` and stops the run; nothing is retried.
"""

import logging
import os
import time
from typing import Optional

from clipper.config import get_settings
from clipper.services.highlight_selector import Highlight, HighlightSelectorService
from clipper.services.job_store import Clip, JobStatus, JobStore
from clipper.services.media_service import MediaService
from clipper.services.transcription_service import TranscriptionService

logger = logging.getLogger(__name__)


# Progress checkpoints for each stage boundary
PROGRESS_STARTED = 10
PROGRESS_AUDIO_EXTRACTED = 30
PROGRESS_TRANSCRIBED = 50
PROGRESS_HIGHLIGHTS_SELECTED = 70
PROGRESS_COMPLETED = 100


def clip_id_for(job_id: str, sequence: int) -> str:
    """Clip ids are the job id plus a 1-based sequence number."""
    return f"{job_id}_clip_{sequence}"


def download_url_for(clip_id: str) -> str:
    return f"/api/download/{clip_id}"


class ClippingPipeline:
    """
    Drives one job through the clipping state machine.

    Gateways are injected so they can be shared across runs (and replaced in
    tests); missing ones are created from settings.
    """

    def __init__(
        self,
        job_store: JobStore,
        media_service: Optional[MediaService] = None,
        transcription_service: Optional[TranscriptionService] = None,
        highlight_selector: Optional[HighlightSelectorService] = None,
    ):
        self.settings = get_settings()
        self.job_store = job_store
        self.media_service = media_service or MediaService()
        self.transcription_service = transcription_service or TranscriptionService()
        self.highlight_selector = highlight_selector or HighlightSelectorService()

    def audio_path_for(self, job_id: str) -> str:
        return os.path.join(self.settings.upload_directory, f"{job_id}.wav")

    def clip_path_for(self, clip_id: str) -> str:
        return os.path.join(self.settings.output_directory, f"{clip_id}.mp4")

    def _update_progress(self, job_id: str, status: JobStatus, progress: int, **changes) -> None:
        """Commit a stage transition."""
        self.job_store.update(job_id, status=status, progress=progress, **changes)
        logger.info(f"Job {job_id}: {status.value} - {progress}%")

    async def process_job(self, job_id: str) -> None:
        """
        Run every stage for a job. Never raises for stage failures; they are
        recorded on the job instead.

        Args:
            job_id: Job to process (must exist in the store)
        """
        job = self.job_store.get(job_id)
        if job is None:
            logger.warning(f"Job {job_id} not found, nothing to process")
            return

        start_time = time.time()
        video_path = job.video_path

        try:
            logger.info(f"Starting clipping job: {job_id} (source: {job.source_url or video_path})")
            self._update_progress(job_id, JobStatus.TRANSCRIBING, PROGRESS_STARTED)

            # Step 1: Extract audio for transcription
            audio_path = await self.media_service.extract_audio(
                video_path, self.audio_path_for(job_id)
            )
            self._update_progress(job_id, JobStatus.TRANSCRIBING, PROGRESS_AUDIO_EXTRACTED)

            # Step 2: Transcribe
            transcript = await self.transcription_service.transcribe_audio(audio_path)
            logger.info(f"Transcription complete: {transcript.word_count} words")
            self._update_progress(job_id, JobStatus.ANALYZING, PROGRESS_TRANSCRIBED)

            # Step 3: Find highlight segments
            highlights = await self.highlight_selector.select_highlights(transcript)
            logger.info(f"Selected {len(highlights)} highlights")
            self._update_progress(job_id, JobStatus.CLIPPING, PROGRESS_HIGHLIGHTS_SELECTED)

            # Step 4: Create clips, strictly in highlight order
            clips = []
            for sequence, highlight in enumerate(highlights, start=1):
                clips.append(await self._create_clip(job_id, video_path, sequence, highlight))

            self._update_progress(
                job_id, JobStatus.COMPLETED, PROGRESS_COMPLETED, clips=clips,
            )

            self._remove_file(audio_path)

            logger.info(
                f"Job {job_id} completed in {time.time() - start_time:.1f}s "
                f"with {len(clips)} clips"
            )

        except Exception as e:
            logger.exception(f"Job {job_id} failed: {e}")
            self.job_store.update(job_id, status=JobStatus.FAILED, error=str(e))

    async def _create_clip(
        self,
        job_id: str,
        video_path: str,
        sequence: int,
        highlight: Highlight,
    ) -> Clip:
        """Render one highlight and describe the result."""
        clip_id = clip_id_for(job_id, sequence)

        await self.media_service.cut_clip(
            video_path,
            self.clip_path_for(clip_id),
            highlight.start,
            highlight.duration,
        )

        return Clip(
            id=clip_id,
            title=f"Clip {sequence}: {highlight.title}",
            duration=highlight.duration,
            download_url=download_url_for(clip_id),
        )

    def _remove_file(self, path: str) -> None:
        """Delete an intermediate artifact; a leftover file is only logged."""
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove intermediate file {path}: {e}")
