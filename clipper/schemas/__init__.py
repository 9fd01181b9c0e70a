"""
Pydantic schemas for request/response models.
"""

from clipper.schemas.requests import ProcessRequest, UrlUploadRequest
from clipper.schemas.responses import (
    ClipResponse,
    HealthResponse,
    JobStatusResponse,
    ProcessResponse,
    UploadResponse,
)

__all__ = [
    "UrlUploadRequest",
    "ProcessRequest",
    "HealthResponse",
    "UploadResponse",
    "ProcessResponse",
    "ClipResponse",
    "JobStatusResponse",
]
