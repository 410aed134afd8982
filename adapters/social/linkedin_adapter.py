"""
LinkedIn OAuth 2.0 adapter.
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


class LinkedInAdapter(BaseOAuthAdapter):
    """
    LinkedIn OAuth adapter.

    Uses the standard authorization-code grant and OpenID ``userinfo``
    endpoint for the member identity.
    """

    platform = SocialPlatform.LINKEDIN

    OAUTH_TOKEN_URL = "https://www.linkedin.com/oauth/v2/accessToken"
    OAUTH_REVOKE_URL = "https://www.linkedin.com/oauth/v2/revoke"
    USERINFO_URL = "https://api.linkedin.com/v2/userinfo"

    # Member tokens last 60 days
    DEFAULT_EXPIRES_IN = 5184000

    def __init__(self, credentials: PlatformCredentials, timeout: int = 30):
        super().__init__(credentials, timeout)

        if not credentials.is_configured:
            logger.warning(
                "LinkedIn OAuth credentials not configured. "
                "Set linkedin_client_id and linkedin_client_secret in settings."
            )

    async def exchange_code(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> OAuthTokenData:
        """
        Exchange authorization code for access tokens.

        Args:
            code: Authorization code from OAuth callback
            redirect_uri: Redirect URI used in the authorization request
            code_verifier: Unused by LinkedIn

        Returns:
            Normalized token data

        Raises:
            SocialAuthError: If token exchange fails
        """
        token_data = await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": self.credentials.app_id,
                "client_secret": self.credentials.app_secret,
            },
            failure="Token exchange failed",
        )

        profile = await self.get_profile(token_data["access_token"])

        result = OAuthTokenData(
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token"),
            expires_in=token_data.get("expires_in") or self.DEFAULT_EXPIRES_IN,
            platform_account_id=profile.get("sub") or profile.get("id") or "",
            account_name=profile.get("name") or "LinkedIn Account",
            profile_image_url=profile.get("picture"),
            metadata={"organization_id": profile.get("organization_id")},
        )
        logger.info("LinkedIn authentication successful: %s", result.account_name)
        return result

    async def refresh_token(self, token: str) -> OAuthTokenData:
        """
        Refresh an access token.

        LinkedIn only rotates refresh tokens occasionally; the current one is
        kept when the response carries none.

        Raises:
            SocialAuthError: If token refresh fails
        """
        token_data = await self._token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": token,
                "client_id": self.credentials.app_id,
                "client_secret": self.credentials.app_secret,
            },
            failure="Token refresh failed",
        )

        profile = await self.get_profile(token_data["access_token"])

        return OAuthTokenData(
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token") or token,
            expires_in=token_data.get("expires_in") or self.DEFAULT_EXPIRES_IN,
            platform_account_id=profile.get("sub") or profile.get("id") or "",
            account_name=profile.get("name") or "LinkedIn Account",
            profile_image_url=profile.get("picture"),
            metadata=None,
        )

    async def revoke_token(self, access_token: str) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.OAUTH_REVOKE_URL,
                    data={
                        "client_id": self.credentials.app_id,
                        "client_secret": self.credentials.app_secret,
                        "token": access_token,
                    },
                )
        except httpx.HTTPError as e:
            raise SocialAPIError(f"Token revocation failed: {e}") from e

        if response.status_code != 200:
            raise SocialAPIError(
                f"Token revocation failed: {response_error_message(response, 'unknown error')}"
            )

    async def get_profile(self, access_token: str) -> Dict[str, Any]:
        """
        Get the authenticated member's OpenID profile.

        Returns:
            ``userinfo`` payload (``sub``, ``name``, ``picture``...), or {} on failure
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    self.USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as e:
            logger.warning("LinkedIn profile lookup failed: %s", e)
            return {}

        if response.status_code != 200:
            logger.warning(
                "LinkedIn profile lookup failed: %s",
                response_error_message(response, str(response.status_code)),
            )
            return {}
        return response.json()

    async def _token_request(self, data: Dict[str, str], failure: str) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.OAUTH_TOKEN_URL,
                    data=data,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.HTTPError as e:
            logger.error("HTTP error during LinkedIn token request: %s", e)
            raise SocialAuthError(f"{failure}: {e}") from e

        if response.status_code != 200:
            error_msg = response_error_message(response, failure)
            logger.error("LinkedIn token request failed: %s", error_msg)
            raise SocialAuthError(f"{failure}: {error_msg}")

        data = response.json()
        if not data.get("access_token"):
            raise SocialAuthError(f"{failure}: no access token in response")
        return data
