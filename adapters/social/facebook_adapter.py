"""
Facebook Graph API OAuth adapter.

Connects a Facebook Page: the authorization code becomes a short-lived
user token, then a long-lived (~60 day) user token, and finally the
first managed Page's access token, which does not expire.
"""

import logging
from typing import Any

from .base import OAuthTokenData, SocialAPIError, SocialPlatform
from .graph import DEFAULT_LONG_LIVED_EXPIRES_IN, MetaGraphAdapter

logger = logging.getLogger(__name__)


class FacebookAdapter(MetaGraphAdapter):
    """Facebook Pages OAuth adapter."""

    platform = SocialPlatform.FACEBOOK

    async def exchange_code(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> OAuthTokenData:
        """
        Exchange an authorization code for a Page access token.

        Args:
            code: Authorization code from the OAuth callback
            redirect_uri: Redirect URI used in the authorization request
            code_verifier: Unused by Facebook

        Returns:
            Page token data, or the long-lived user token when the user manages no Pages

        Raises:
            SocialAuthError: If either token exchange fails
        """
        short_lived = await self._exchange_code_for_token(code, redirect_uri)
        token_data = await self._page_token_data(short_lived["access_token"], include_pages=True)
        logger.info("Facebook authentication successful: %s", token_data.account_name)
        return token_data

    async def refresh_token(self, token: str) -> OAuthTokenData:
        """
        Re-derive tokens from the stored long-lived user token.

        Facebook issues no refresh token: the long-lived user token kept in
        account metadata is exchanged for a new one and the Page token is
        fetched again.

        Args:
            token: Long-lived user token (or the current access token)

        Returns:
            Token data carrying the new ``user_token`` in metadata

        Raises:
            SocialAuthError: If the long-lived exchange fails
        """
        return await self._page_token_data(token, include_pages=False)

    async def get_profile(self, access_token: str) -> dict[str, Any]:
        try:
            return await self._graph_get(
                "/me", access_token, {"fields": "id,name,email,picture{url}"}
            )
        except SocialAPIError as e:
            logger.warning("Facebook profile lookup failed: %s", e)
            return {}

    async def get_pages(self, user_token: str) -> list[dict[str, Any]]:
        """Pages managed by the user, each with its own access token."""
        try:
            data = await self._graph_get(
                "/me/accounts", user_token, {"fields": "id,name,access_token"}
            )
        except SocialAPIError as e:
            logger.warning("Facebook pages lookup failed: %s", e)
            return []
        return data.get("data", [])

    async def _page_token_data(self, user_token: str, include_pages: bool) -> OAuthTokenData:
        long_lived = await self._exchange_for_long_lived_token(user_token)
        long_lived_token = long_lived["access_token"]
        expires_in = long_lived.get("expires_in") or DEFAULT_LONG_LIVED_EXPIRES_IN

        pages = await self.get_pages(long_lived_token)
        if pages:
            page = pages[0]
            metadata: dict[str, Any] = {
                "page_id": page["id"],
                "user_token": long_lived_token,
                "user_token_expires_in": expires_in,
            }
            if include_pages:
                metadata["pages"] = [{"id": p["id"], "name": p["name"]} for p in pages]

            return OAuthTokenData(
                access_token=page["access_token"],
                refresh_token=None,
                # Page tokens derived from a long-lived user token never expire
                expires_in=None,
                platform_account_id=page["id"],
                account_name=page["name"],
                profile_image_url=f"{self.graph_base}/{page['id']}/picture?type=large",
                metadata=metadata,
            )

        profile = await self.get_profile(long_lived_token)
        return OAuthTokenData(
            access_token=long_lived_token,
            refresh_token=None,
            expires_in=expires_in,
            platform_account_id=profile.get("id", ""),
            account_name=profile.get("name", "Facebook Account"),
            profile_image_url=(profile.get("picture") or {}).get("data", {}).get("url"),
            metadata={
                "page_id": None,
                "user_token": long_lived_token,
                "user_token_expires_in": expires_in,
            },
        )
