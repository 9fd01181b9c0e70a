"""
FastAPI routers for the clipping service.
"""

from clipper.routers import clips, health

__all__ = ["health", "clips"]
