"""
Authentication
Resolves a caller's access token to a user through the hosted auth backend.
"""
from dataclasses import dataclass
from typing import Optional
import httpx
from loguru import logger

from deckslayer.config import settings
from deckslayer.core.exceptions import UpstreamError


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: Optional[str] = None


class SupabaseAuthService:
    """
    Verifies access tokens against the auth backend's user endpoint.

    A rejected token means "not signed in" (None). Transport failures are
    raised, so a flaky auth backend fails the request instead of letting it
    through as anonymous.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        anon_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url if base_url is not None else settings.supabase_url).rstrip("/")
        self.anon_key = anon_key if anon_key is not None else settings.supabase_anon_key
        self.timeout = timeout
        self._transport = transport

    async def get_user(self, access_token: Optional[str]) -> Optional[AuthenticatedUser]:
        """
        Look up the user owning `access_token`.

        Returns:
            The user, or None when the token is missing or rejected

        Raises:
            UpstreamError: If the auth backend is unreachable or misconfigured
        """
        if not access_token:
            return None

        if not self.base_url:
            raise UpstreamError("Authentication unavailable", detail="supabase_url is not configured")

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.base_url}/auth/v1/user",
                    headers={
                        "apikey": self.anon_key,
                        "Authorization": f"Bearer {access_token}"
                    }
                )
        except httpx.HTTPError as e:
            logger.error(f"Auth backend request failed: {e}")
            raise UpstreamError("Authentication unavailable", detail=str(e)) from e

        if response.status_code in (401, 403):
            logger.debug("Access token rejected by auth backend")
            return None

        if response.status_code >= 400:
            logger.error(f"Auth backend returned {response.status_code}")
            raise UpstreamError("Authentication unavailable", detail=f"status={response.status_code}")

        data = response.json()
        user_id = data.get("id")
        if not user_id:
            return None

        return AuthenticatedUser(id=user_id, email=data.get("email"))
