"""
Response schemas for the clipping API.

Field names follow the JSON contract consumed by the web client
(``uploadId``, ``download_url``).
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from clipper.services.job_store import Job, JobStatus


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: str


class UploadResponse(BaseModel):
    """Response after a video was accepted."""

    upload_id: str = Field(..., alias="uploadId")
    message: str

    model_config = ConfigDict(populate_by_name=True)


class ProcessResponse(BaseModel):
    """Response after processing was started."""

    message: str
    upload_id: str = Field(..., alias="uploadId")

    model_config = ConfigDict(populate_by_name=True)


class ClipResponse(BaseModel):
    """A produced clip and where to fetch it."""

    id: str
    title: str
    duration: float
    download_url: str


class JobStatusResponse(BaseModel):
    """Current state of a job."""

    id: str
    status: JobStatus
    progress: int = Field(..., ge=0, le=100)
    clips: List[ClipResponse] = Field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def from_job(cls, job: Job) -> "JobStatusResponse":
        return cls(
            id=job.id,
            status=job.status,
            progress=job.progress,
            clips=[
                ClipResponse(
                    id=c.id,
                    title=c.title,
                    duration=c.duration,
                    download_url=c.download_url,
                )
                for c in job.clips
            ],
            error=job.error,
        )
