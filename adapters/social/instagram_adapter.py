"""
Instagram (Graph API business account) OAuth adapter.
"""

import logging
from typing import Any

from .base import OAuthTokenData, SocialAPIError, SocialPlatform
from .graph import DEFAULT_LONG_LIVED_EXPIRES_IN, MetaGraphAdapter

logger = logging.getLogger(__name__)


class InstagramAdapter(MetaGraphAdapter):
    """
    Instagram business account OAuth adapter.

    Instagram publishing goes through the Facebook Page the business account
    is linked to, so authentication is the Meta Graph flow: the long-lived
    user token is the account's access token.
    """

    platform = SocialPlatform.INSTAGRAM

    async def exchange_code(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> OAuthTokenData:
        """
        Exchange an authorization code for a long-lived token and locate the
        Instagram business account.

        Raises:
            SocialAuthError: If either token exchange fails
        """
        short_lived = await self._exchange_code_for_token(code, redirect_uri)
        long_lived = await self._exchange_for_long_lived_token(short_lived["access_token"])
        access_token = long_lived["access_token"]

        ig_account = await self.find_instagram_account(access_token)
        if not ig_account:
            logger.warning("No Instagram business account linked to any managed Page")

        return OAuthTokenData(
            access_token=access_token,
            refresh_token=None,
            expires_in=long_lived.get("expires_in") or DEFAULT_LONG_LIVED_EXPIRES_IN,
            platform_account_id=ig_account.get("id", ""),
            account_name=ig_account.get("name") or "Instagram Account",
            account_username=ig_account.get("username"),
            profile_image_url=ig_account.get("profile_picture_url"),
            metadata={
                "ig_user_id": ig_account.get("id"),
                "account_type": "BUSINESS",
            },
        )

    async def refresh_token(self, token: str) -> OAuthTokenData:
        """
        Exchange the current long-lived token for a new one.

        Raises:
            SocialAuthError: If the exchange fails
        """
        long_lived = await self._exchange_for_long_lived_token(token)
        access_token = long_lived["access_token"]
        ig_account = await self.find_instagram_account(access_token)

        return OAuthTokenData(
            access_token=access_token,
            refresh_token=None,
            expires_in=long_lived.get("expires_in") or DEFAULT_LONG_LIVED_EXPIRES_IN,
            platform_account_id=ig_account.get("id", ""),
            account_name=ig_account.get("name") or "Instagram Account",
            account_username=ig_account.get("username"),
            profile_image_url=ig_account.get("profile_picture_url"),
            metadata=None,
        )

    async def get_profile(self, access_token: str) -> dict[str, Any]:
        return await self.find_instagram_account(access_token)

    async def find_instagram_account(self, access_token: str) -> dict[str, Any]:
        """First Instagram business account linked to one of the user's Pages, or {}."""
        try:
            data = await self._graph_get(
                "/me/accounts",
                access_token,
                {"fields": "id,instagram_business_account{id,name,username,profile_picture_url}"},
            )
        except SocialAPIError as e:
            logger.warning("Instagram account lookup failed: %s", e)
            return {}

        for page in data.get("data", []):
            if page.get("instagram_business_account"):
                return page["instagram_business_account"]
        return {}
