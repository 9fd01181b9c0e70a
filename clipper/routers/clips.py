"""
Clipping API Router - Upload, process, status polling and clip download.
"""

import logging
import os
import re
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import FileResponse
from pydantic import ValidationError
from starlette.datastructures import UploadFile

from clipper.auth import get_current_user
from clipper.config import get_settings
from clipper.schemas.requests import ProcessRequest, UrlUploadRequest
from clipper.schemas.responses import JobStatusResponse, ProcessResponse, UploadResponse
from clipper.services.identity_service import AuthenticatedUser
from clipper.services.job_runner import JobAlreadyStartedError, JobRunner
from clipper.services.job_store import JobStore, new_job_id
from clipper.services.video_downloader import VideoDownloaderService, VideoDownloadError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Clips"])

CLIP_ID_PATTERN = re.compile(r"^(?P<job_id>[A-Za-z0-9-]+)_clip_(?P<sequence>[1-9][0-9]*)$")


# ============================================================================
# Dependencies
# ============================================================================


def get_job_store(request: Request) -> JobStore:
    """Get the job store from app state (initialized at startup)."""
    return request.app.state.job_store


def get_job_runner(request: Request) -> JobRunner:
    """Get the job runner from app state (initialized at startup)."""
    return request.app.state.job_runner


def get_video_downloader(request: Request) -> VideoDownloaderService:
    """Get the video downloader from app state (initialized at startup)."""
    return request.app.state.video_downloader


# ============================================================================
# Upload helpers
# ============================================================================


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


async def _save_upload(video: UploadFile, upload_id: str) -> str:
    """
    Stream an uploaded video to disk, enforcing type and size limits.

    Returns:
        Path of the saved file

    Raises:
        HTTPException: 400 for a non-video type, an oversized or an empty file
    """
    settings = get_settings()

    if video.content_type not in settings.allowed_video_types:
        raise _bad_request("Only MP4 and MOV files are allowed")

    if video.size is not None and video.size > settings.max_upload_bytes:
        raise _bad_request("File too large (max 500MB)")

    suffix = Path(video.filename or "").suffix.lower() or ".mp4"
    video_path = os.path.join(settings.upload_directory, f"{upload_id}{suffix}")
    os.makedirs(settings.upload_directory, exist_ok=True)

    total = 0
    try:
        with open(video_path, "wb") as f:
            while True:
                chunk = await video.read(settings.upload_chunk_size)
                if not chunk:
                    break
                total += len(chunk)
                if total > settings.max_upload_bytes:
                    raise _bad_request("File too large (max 500MB)")
                f.write(chunk)
    except HTTPException:
        Path(video_path).unlink(missing_ok=True)
        raise

    if total == 0:
        Path(video_path).unlink(missing_ok=True)
        raise _bad_request("Uploaded file is empty")

    logger.info(f"Upload saved: {video_path} ({total / 1024 / 1024:.1f} MB)")
    return video_path


async def _read_upload_source(request: Request) -> tuple[Optional[UploadFile], Optional[str]]:
    """Pull the ``video`` file or the ``url`` field out of a multipart or JSON body."""
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        video = form.get("video")
        url = form.get("url")
        return (
            video if isinstance(video, UploadFile) else None,
            url if isinstance(url, str) and url.strip() else None,
        )

    if content_type.startswith("application/json"):
        try:
            body = UrlUploadRequest.model_validate(await request.json())
        except (ValueError, ValidationError):
            return None, None
        return None, body.url.strip() or None

    return None, None


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/upload", response_model=UploadResponse)
async def upload_video(
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
    job_store: JobStore = Depends(get_job_store),
    downloader: VideoDownloaderService = Depends(get_video_downloader),
) -> UploadResponse:
    """
    Create a job from an uploaded file (multipart field ``video``) or a
    remote URL (JSON body ``{"url": ...}``).
    """
    settings = get_settings()
    video, url = await _read_upload_source(request)
    upload_id = new_job_id()

    if video is not None:
        video_path = await _save_upload(video, upload_id)
        source_url = None
    elif url is not None:
        try:
            result = await downloader.download_video(
                url=url,
                output_dir=settings.upload_directory,
                file_stem=upload_id,
            )
        except VideoDownloadError as e:
            logger.error(f"Download error: {e}")
            raise _bad_request("Failed to download video from URL")
        logger.info(
            f"Downloaded \"{result.title or url}\" for upload {upload_id} "
            f"({result.file_size_bytes / 1024 / 1024:.1f} MB)"
        )
        video_path = result.video_path
        source_url = url
    else:
        raise _bad_request("No video file or URL provided")

    job = job_store.create(
        user_id=user.id,
        video_path=video_path,
        source_url=source_url,
        job_id=upload_id,
    )

    return UploadResponse(upload_id=job.id, message="Video uploaded successfully")


@router.post("/process", response_model=ProcessResponse)
async def process_video(
    body: ProcessRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    job_store: JobStore = Depends(get_job_store),
    job_runner: JobRunner = Depends(get_job_runner),
) -> ProcessResponse:
    """
    Start processing an uploaded video.

    Returns immediately; poll ``/api/status/{uploadId}`` for progress.
    """
    job = job_store.get_owned(body.upload_id, user.id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Upload not found")

    try:
        job_runner.submit(job.id)
    except JobAlreadyStartedError as e:
        raise _bad_request(str(e))

    return ProcessResponse(message="Processing started", upload_id=job.id)


@router.get("/status/{upload_id}", response_model=JobStatusResponse)
async def get_job_status(
    upload_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    job_store: JobStore = Depends(get_job_store),
) -> JobStatusResponse:
    """Get the current status, progress and clips of a job."""
    job = job_store.get_owned(upload_id, user.id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")

    return JobStatusResponse.from_job(job)


@router.get("/download/{clip_id}")
async def download_clip(
    clip_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    job_store: JobStore = Depends(get_job_store),
) -> FileResponse:
    """Stream a rendered clip as an MP4 attachment."""
    settings = get_settings()
    not_found = HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Clip not found")

    match = CLIP_ID_PATTERN.match(clip_id)
    if match is None:
        raise not_found

    if job_store.get_owned(match.group("job_id"), user.id) is None:
        raise not_found

    clip_path = os.path.join(settings.output_directory, f"{clip_id}.mp4")
    if not os.path.isfile(clip_path):
        raise not_found

    return FileResponse(
        clip_path,
        media_type="video/mp4",
        filename=f"{clip_id}.mp4",
    )
