"""
Shared Meta Graph API token flow used by the Facebook, Instagram and
WhatsApp adapters.
"""

import logging
from typing import Any

import httpx

from .base import (
    BaseOAuthAdapter,
    PlatformCredentials,
    SocialAPIError,
    SocialAuthError,
    SocialRateLimitError,
    response_error_message,
)

logger = logging.getLogger(__name__)

GRAPH_HOST = "https://graph.facebook.com"

# Meta does not always echo expires_in for long-lived user tokens (~60 days)
DEFAULT_LONG_LIVED_EXPIRES_IN = 5184000


class MetaGraphAdapter(BaseOAuthAdapter):
    """Base for adapters authenticating through the Meta Graph API."""

    def __init__(self, credentials: PlatformCredentials, timeout: int = 30):
        super().__init__(credentials, timeout)
        self.graph_base = f"{GRAPH_HOST}/{self.api_version}"

        if not credentials.is_configured:
            logger.warning(
                "%s OAuth credentials not configured. "
                "Add a platform integration or set the app id and secret in settings.",
                self.platform.label,
            )

    @property
    def api_version(self) -> str:
        return self.credentials.api_version

    async def _exchange_code_for_token(self, code: str, redirect_uri: str) -> dict[str, Any]:
        """Exchange an authorization code for a short-lived user token."""
        return await self._token_request(
            {
                "client_id": self.credentials.app_id,
                "client_secret": self.credentials.app_secret,
                "redirect_uri": redirect_uri,
                "code": code,
            },
            failure="Token exchange failed",
        )

    async def _exchange_for_long_lived_token(self, token: str) -> dict[str, Any]:
        """Exchange a user token for a fresh long-lived (~60 day) user token."""
        return await self._token_request(
            {
                "grant_type": "fb_exchange_token",
                "client_id": self.credentials.app_id,
                "client_secret": self.credentials.app_secret,
                "fb_exchange_token": token,
            },
            failure="Long-lived token exchange failed",
        )

    async def _token_request(self, params: dict[str, str], failure: str) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{self.graph_base}/oauth/access_token", params=params)
        except httpx.HTTPError as e:
            logger.error("HTTP error during %s token request: %s", self.platform.label, e)
            raise SocialAuthError(f"{failure}: {e}") from e

        if response.status_code != 200:
            error_msg = response_error_message(response, failure)
            logger.error("%s token request failed: %s", self.platform.label, error_msg)
            raise SocialAuthError(f"{failure}: {error_msg}")

        data = response.json()
        if not data.get("access_token"):
            raise SocialAuthError(f"{failure}: no access token in response")
        return data

    async def _graph_get(
        self, path: str, access_token: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """GET a Graph resource, raising SocialAPIError on any failure."""
        query = {**(params or {}), "access_token": access_token}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{self.graph_base}{path}", params=query)
        except httpx.HTTPError as e:
            raise SocialAPIError(f"Graph request failed: {e}") from e

        if response.status_code == 429:
            raise SocialRateLimitError(response_error_message(response, "Graph rate limit reached"))
        if response.status_code != 200:
            raise SocialAPIError(response_error_message(response, "Graph request failed"))
        return response.json()

    async def revoke_token(self, access_token: str) -> None:
        """Remove the app's permissions for the user owning ``access_token``."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.delete(
                    f"{self.graph_base}/me/permissions",
                    params={"access_token": access_token},
                )
        except httpx.HTTPError as e:
            raise SocialAPIError(f"Token revocation failed: {e}") from e

        if response.status_code != 200:
            raise SocialAPIError(
                f"Token revocation failed: {response_error_message(response, 'unknown error')}"
            )
        logger.info("%s permissions revoked", self.platform.label)
