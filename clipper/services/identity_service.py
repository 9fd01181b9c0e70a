"""
Identity Service - Resolves bearer tokens to users via the identity provider.

Talks to a Supabase GoTrue compatible ``/auth/v1/user`` endpoint.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from clipper.config import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedUser:
    """The caller behind a verified token."""

    id: str
    email: Optional[str] = None


class IdentityService:
    """Token introspection against the identity provider."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = get_settings()
        self._http_client = http_client

        if not self.settings.auth_base_url:
            logger.warning("AUTH_BASE_URL not set, every token will be rejected")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            headers = {}
            if self.settings.auth_api_key:
                headers["apikey"] = self.settings.auth_api_key
            self._http_client = httpx.AsyncClient(
                base_url=self.settings.auth_base_url or "",
                timeout=httpx.Timeout(10.0),
                headers=headers,
            )
        return self._http_client

    async def get_user(self, token: str) -> AuthenticatedUser:
        """
        Verify a token and return its user.

        Raises:
            AuthenticationError: If the token is rejected or cannot be checked
        """
        if not self.settings.auth_base_url:
            raise AuthenticationError("Identity provider not configured")

        client = await self._get_client()
        try:
            response = await client.get(
                "/auth/v1/user",
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            raise AuthenticationError(f"Identity provider unreachable: {e}") from e

        if response.status_code != 200:
            raise AuthenticationError(f"Token rejected ({response.status_code})")

        try:
            data = response.json()
            user_id = data["id"]
        except (ValueError, KeyError, TypeError) as e:
            raise AuthenticationError(f"Malformed identity response: {e}") from e

        if not user_id:
            raise AuthenticationError("Identity response has no user id")

        return AuthenticatedUser(id=str(user_id), email=data.get("email"))

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()


class AuthenticationError(Exception):
    """Exception raised when a token cannot be verified."""
    pass
