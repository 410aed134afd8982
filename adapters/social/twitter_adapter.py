"""
Twitter/X OAuth 2.0 (PKCE) adapter.
"""

import logging
from typing import Any, Dict, Optional

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


class TwitterAdapter(BaseOAuthAdapter):
    """
    Twitter/X OAuth 2.0 adapter.

    Token requests authenticate the app with HTTP basic auth and carry the
    PKCE verifier generated when the authorization URL was built.
    """

    platform = SocialPlatform.TWITTER

    OAUTH_TOKEN_URL = "https://api.twitter.com/2/oauth2/token"
    API_BASE_URL = "https://api.twitter.com/2"

    # Access tokens last two hours; offline.access provides a refresh token
    DEFAULT_EXPIRES_IN = 7200

    def __init__(self, credentials: PlatformCredentials, timeout: int = 30):
        super().__init__(credentials, timeout)

        if not credentials.is_configured:
            logger.warning(
                "Twitter OAuth credentials not configured. "
                "Set twitter_client_id and twitter_client_secret in settings."
            )

    @property
    def _basic_auth(self) -> httpx.BasicAuth:
        return httpx.BasicAuth(self.credentials.app_id, self.credentials.app_secret)

    async def exchange_code(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: Optional[str] = None,
    ) -> OAuthTokenData:
        """
        Exchange authorization code for access tokens.

        Args:
            code: Authorization code from OAuth callback
            redirect_uri: Redirect URI used in the authorization request
            code_verifier: PKCE code verifier used in authorization

        Returns:
            Normalized token data

        Raises:
            SocialAuthError: If the verifier is missing or token exchange fails
        """
        if not code_verifier:
            raise SocialAuthError("Token exchange failed: missing PKCE code verifier")

        token_data = await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "code_verifier": code_verifier,
            },
            failure="Token exchange failed",
        )

        user = (await self.get_profile(token_data["access_token"])).get("data", {})

        result = OAuthTokenData(
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token"),
            expires_in=token_data.get("expires_in") or self.DEFAULT_EXPIRES_IN,
            platform_account_id=user.get("id", ""),
            account_name=user.get("name") or "Twitter Account",
            account_username=user.get("username"),
            profile_image_url=user.get("profile_image_url"),
            metadata={"user_id": user.get("id")},
        )
        logger.info("Twitter authentication successful: @%s", result.account_username)
        return result

    async def refresh_token(self, token: str) -> OAuthTokenData:
        """
        Refresh an access token. Twitter rotates refresh tokens on every use.

        Raises:
            SocialAuthError: If token refresh fails
        """
        token_data = await self._token_request(
            {"grant_type": "refresh_token", "refresh_token": token},
            failure="Token refresh failed",
        )

        user = (await self.get_profile(token_data["access_token"])).get("data", {})

        return OAuthTokenData(
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token") or token,
            expires_in=token_data.get("expires_in") or self.DEFAULT_EXPIRES_IN,
            platform_account_id=user.get("id", ""),
            account_name=user.get("name") or "Twitter Account",
            account_username=user.get("username"),
            profile_image_url=user.get("profile_image_url"),
            metadata=None,
        )

    async def revoke_token(self, access_token: str) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.OAUTH_TOKEN_URL}/revoke",
                    data={"token": access_token, "token_type_hint": "access_token"},
                    auth=self._basic_auth,
                )
        except httpx.HTTPError as e:
            raise SocialAPIError(f"Token revocation failed: {e}") from e

        if response.status_code != 200:
            raise SocialAPIError(
                f"Token revocation failed: {response_error_message(response, 'unknown error')}"
            )

    async def get_profile(self, access_token: str) -> Dict[str, Any]:
        """
        Get the authenticated user's profile.

        Returns:
            ``/2/users/me`` payload (``{"data": {...}}``), or {} on failure
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.API_BASE_URL}/users/me",
                    headers={"Authorization": f"Bearer {access_token}"},
                    params={"user.fields": "id,name,username,profile_image_url"},
                )
        except httpx.HTTPError as e:
            logger.warning("Twitter profile lookup failed: %s", e)
            return {}

        if response.status_code != 200:
            logger.warning("Twitter profile lookup failed: HTTP %s", response.status_code)
            return {}
        return response.json()

    async def _token_request(self, data: Dict[str, str], failure: str) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.OAUTH_TOKEN_URL,
                    data=data,
                    auth=self._basic_auth,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.HTTPError as e:
            logger.error("HTTP error during Twitter token request: %s", e)
            raise SocialAuthError(f"{failure}: {e}") from e

        if response.status_code != 200:
            error_msg = response_error_message(response, failure)
            logger.error("Twitter token request failed: %s", error_msg)
            raise SocialAuthError(f"{failure}: {error_msg}")

        data = response.json()
        if not data.get("access_token"):
            raise SocialAuthError(f"{failure}: no access token in response")
        return data
