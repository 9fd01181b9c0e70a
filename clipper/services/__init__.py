"""
Services for the clipping worker.

Includes:
- Job bookkeeping (store, runner)
- Media services (download, audio extraction, clip cutting)
- AI services (transcription, highlight selection)
- Identity verification
"""

from clipper.services.clipping_pipeline import ClippingPipeline
from clipper.services.highlight_selector import HighlightSelectorService
from clipper.services.identity_service import IdentityService
from clipper.services.job_runner import JobRunner
from clipper.services.job_store import JobStore
from clipper.services.media_service import MediaService
from clipper.services.transcription_service import TranscriptionService
from clipper.services.video_downloader import VideoDownloaderService

__all__ = [
    # Jobs
    "JobStore",
    "JobRunner",
    "ClippingPipeline",
    # Media
    "VideoDownloaderService",
    "MediaService",
    # AI
    "TranscriptionService",
    "HighlightSelectorService",
    # Identity
    "IdentityService",
]
