"""
Bearer token authentication.

Provides the FastAPI dependency that resolves the calling user on
protected endpoints.
"""

import logging
from typing import Optional

from fastapi import Header, HTTPException, Request, status

from clipper.services.identity_service import (
    AuthenticatedUser,
    AuthenticationError,
    IdentityService,
)

logger = logging.getLogger(__name__)


def get_identity_service(request: Request) -> IdentityService:
    """Get the identity service from app state (initialized at startup)."""
    return request.app.state.identity_service


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> AuthenticatedUser:
    """
    FastAPI dependency to verify the caller's bearer token.

    Args:
        request: Incoming request (used to reach the identity service)
        authorization: The ``Authorization`` header

    Returns:
        The authenticated user

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    token = None
    if authorization:
        token = authorization.replace("Bearer ", "", 1).strip()

    if not token:
        logger.warning("Request missing bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user = await get_identity_service(request).get_user(token)
    except AuthenticationError as e:
        logger.warning(f"Invalid token received: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.debug(f"Token validated for user {user.id}")
    return user
