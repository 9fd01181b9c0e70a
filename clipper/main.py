"""
FastAPI application entry point for the highlight clipper.

The clipper turns a long video into short vertical highlight clips:
1. Upload a file or submit a URL
2. Extract audio, transcribe, pick highlights, cut 720x1280 clips
3. Poll job status and download the finished clips
"""

import logging
import os
import shutil
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from clipper import __version__
from clipper.config import get_settings
from clipper.routers import clips, health
from clipper.services.clipping_pipeline import ClippingPipeline
from clipper.services.highlight_selector import HighlightSelectorService
from clipper.services.identity_service import IdentityService
from clipper.services.job_runner import JobRunner
from clipper.services.job_store import JobStore
from clipper.services.media_service import MediaService
from clipper.services.transcription_service import TranscriptionService
from clipper.services.video_downloader import VideoDownloaderService

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for startup and shutdown events.
    Wires services on startup and cancels running jobs on shutdown.
    """
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} ({settings.environment})...")

    # Create storage directories
    os.makedirs(settings.upload_directory, exist_ok=True)
    os.makedirs(settings.output_directory, exist_ok=True)
    logger.info(f"Upload directory: {settings.upload_directory}")
    logger.info(f"Output directory: {settings.output_directory}")

    job_store = JobStore()
    highlight_selector = HighlightSelectorService()
    pipeline = ClippingPipeline(
        job_store=job_store,
        media_service=MediaService(),
        transcription_service=TranscriptionService(),
        highlight_selector=highlight_selector,
    )
    job_runner = JobRunner(
        pipeline=pipeline,
        job_store=job_store,
        max_concurrent_jobs=settings.max_concurrent_jobs,
    )
    identity_service = IdentityService()

    if settings.max_concurrent_jobs > 0:
        logger.info(f"Max concurrent jobs: {settings.max_concurrent_jobs}")
    else:
        logger.info("Max concurrent jobs: unbounded")

    # Store in app state for dependency injection
    app.state.job_store = job_store
    app.state.job_runner = job_runner
    app.state.identity_service = identity_service
    app.state.video_downloader = VideoDownloaderService()

    # Verify external tools
    _verify_external_tools()

    logger.info("Clipper ready to accept requests.")

    yield

    # Cleanup on shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await job_runner.shutdown()
    await highlight_selector.close()
    await identity_service.close()
    logger.info("Shutdown complete")


def _verify_external_tools():
    """Verify that required external tools are available."""
    tools = {
        "ffmpeg": "FFmpeg for audio extraction and clip cutting",
    }

    for tool, description in tools.items():
        if shutil.which(tool):
            logger.info(f"✓ {description} available")
        else:
            logger.warning(f"✗ {description} NOT FOUND - jobs will fail")


# Create FastAPI application
app = FastAPI(
    title="Highlight Clipper",
    description="""
Turns long-form videos into short vertical highlight clips.

## Usage

1. Upload a video: `POST /api/upload` (multipart `video`, or JSON `{"url": ...}`)
2. Start processing: `POST /api/process` with `{"uploadId": ...}`
3. Poll status: `GET /api/status/{uploadId}`
4. Download clips: `GET /api/download/{clipId}`

All `/api` endpoints require an `Authorization: Bearer <token>` header.
    """,
    version=__version__,
    debug=get_settings().debug,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(clips.router)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors as ``{"detail": ...}``; unknown routes get a fixed message."""
    detail = exc.detail
    if exc.status_code == 404 and detail == "Not Found":
        detail = "Endpoint not found"
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors, reported as 400."""
    logger.warning(f"Rejected request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request"},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Last-resort handler; internals never leak to the client."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Serve the web client when it has been built next to the API
if os.path.isdir(get_settings().static_directory):
    app.mount(
        "/",
        StaticFiles(directory=get_settings().static_directory, html=True),
        name="static",
    )
