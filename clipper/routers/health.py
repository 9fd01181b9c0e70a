"""
Health check endpoint for the clipping service.
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from clipper.schemas.responses import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Basic health check endpoint.

    Returns 200 with the current UTC time if the service is running.
    """
    return HealthResponse(
        status="OK",
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
