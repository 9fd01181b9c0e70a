"""
Request schemas for the clipping API.
"""

from pydantic import BaseModel, ConfigDict, Field


class UrlUploadRequest(BaseModel):
    """JSON body for creating a job from a remote video URL."""

    url: str = Field(..., min_length=1, description="Remote video URL to download")

    model_config = ConfigDict(
        json_schema_extra={"example": {"url": "https://example.com/video.mp4"}}
    )


class ProcessRequest(BaseModel):
    """Request to start processing an uploaded video."""

    upload_id: str = Field(..., alias="uploadId", description="Id returned by /api/upload")

    model_config = ConfigDict(populate_by_name=True)
