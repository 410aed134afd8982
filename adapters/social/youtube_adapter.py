"""
YouTube (Google OAuth 2.0) adapter.
"""

import logging
from typing import Any, Dict

import httpx

from .base import (
    BaseOAuthAdapter,
    OAuthTokenData,
    PlatformCredentials,
    SocialAPIError,
    SocialAuthError,
    SocialPlatform,
    response_error_message,
)

logger = logging.getLogger(__name__)


class YouTubeAdapter(BaseOAuthAdapter):
    """YouTube channel OAuth adapter using Google's token endpoint."""

    platform = SocialPlatform.YOUTUBE

    OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"
    OAUTH_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
    API_BASE_URL = "https://www.googleapis.com/youtube/v3"

    DEFAULT_EXPIRES_IN = 3600

    def __init__(self, credentials: PlatformCredentials, timeout: int = 30):
        super().__init__(credentials, timeout)

        if not credentials.is_configured:
            logger.warning(
                "YouTube OAuth credentials not configured. "
                "Set youtube_client_id and youtube_client_secret in settings."
            )

    async def exchange_code(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> OAuthTokenData:
        """
        Exchange an authorization code for tokens and the user's channel.

        Raises:
            SocialAuthError: If token exchange fails
        """
        token_data = await self._token_request(
            {
                "code": code,
                "client_id": self.credentials.app_id,
                "client_secret": self.credentials.app_secret,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            },
            failure="Token exchange failed",
        )

        channel = await self.get_profile(token_data["access_token"])
        snippet = channel.get("snippet", {})

        return OAuthTokenData(
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token"),
            expires_in=token_data.get("expires_in") or self.DEFAULT_EXPIRES_IN,
            platform_account_id=channel.get("id", ""),
            account_name=snippet.get("title") or "YouTube Channel",
            account_username=snippet.get("customUrl"),
            profile_image_url=snippet.get("thumbnails", {}).get("default", {}).get("url"),
            metadata={
                "channel_id": channel.get("id", ""),
                "description": snippet.get("description", ""),
            },
        )

    async def refresh_token(self, token: str) -> OAuthTokenData:
        """
        Refresh an access token. Google keeps the refresh token unchanged.

        Raises:
            SocialAuthError: If token refresh fails
        """
        token_data = await self._token_request(
            {
                "client_id": self.credentials.app_id,
                "client_secret": self.credentials.app_secret,
                "refresh_token": token,
                "grant_type": "refresh_token",
            },
            failure="Token refresh failed",
        )

        channel = await self.get_profile(token_data["access_token"])
        snippet = channel.get("snippet", {})

        return OAuthTokenData(
            access_token=token_data["access_token"],
            refresh_token=token,
            expires_in=token_data.get("expires_in") or self.DEFAULT_EXPIRES_IN,
            platform_account_id=channel.get("id", ""),
            account_name=snippet.get("title") or "YouTube Channel",
            account_username=snippet.get("customUrl"),
            profile_image_url=snippet.get("thumbnails", {}).get("default", {}).get("url"),
            metadata=None,
        )

    async def revoke_token(self, access_token: str) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.OAUTH_REVOKE_URL, data={"token": access_token})
        except httpx.HTTPError as e:
            raise SocialAPIError(f"Token revocation failed: {e}") from e

        if response.status_code != 200:
            raise SocialAPIError(
                f"Token revocation failed: {response_error_message(response, 'unknown error')}"
            )

    async def get_profile(self, access_token: str) -> Dict[str, Any]:
        """The authenticated user's channel resource, or {} when none is found."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.API_BASE_URL}/channels",
                    headers={"Authorization": f"Bearer {access_token}"},
                    params={"part": "snippet,contentDetails,statistics", "mine": "true"},
                )
        except httpx.HTTPError as e:
            logger.warning("YouTube channel lookup failed: %s", e)
            return {}

        if response.status_code != 200:
            logger.warning(
                "YouTube channel lookup failed: %s",
                response_error_message(response, str(response.status_code)),
            )
            return {}

        items = response.json().get("items") or []
        return items[0] if items else {}

    async def _token_request(self, data: Dict[str, str], failure: str) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.OAUTH_TOKEN_URL, data=data)
        except httpx.HTTPError as e:
            logger.error("HTTP error during YouTube token request: %s", e)
            raise SocialAuthError(f"{failure}: {e}") from e

        if response.status_code != 200:
            error_msg = response_error_message(response, failure)
            logger.error("YouTube token request failed: %s", error_msg)
            raise SocialAuthError(f"{failure}: {error_msg}")

        data = response.json()
        if not data.get("access_token"):
            raise SocialAuthError(f"{failure}: no access token in response")
        return data
