"""
WhatsApp Business (embedded signup) OAuth adapter.
"""

import logging
from typing import Any

from .base import (
    OAuthTokenData,
    SocialAPIError,
    SocialAuthError,
    SocialPlatform,
)
from .graph import MetaGraphAdapter

logger = logging.getLogger(__name__)

# Embedded signup is pinned to this Graph version regardless of the integration's setting
WHATSAPP_GRAPH_VERSION = "v19.0"


class WhatsAppAdapter(MetaGraphAdapter):
    """
    WhatsApp Business Account adapter.

    Embedded signup yields a system-user token that does not expire and
    can't be refreshed or revoked individually; "refresh" validates it.
    """

    platform = SocialPlatform.WHATSAPP

    @property
    def api_version(self) -> str:
        return WHATSAPP_GRAPH_VERSION

    async def exchange_code(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> OAuthTokenData:
        """
        Exchange an embedded-signup code and locate the owned WhatsApp Business Account.

        Raises:
            SocialAuthError: If the exchange or the business lookup fails
        """
        token_data = await self._exchange_code_for_token(code, redirect_uri)
        access_token = token_data["access_token"]

        try:
            businesses = await self._graph_get(
                "/me/businesses",
                access_token,
                {"fields": "id,name,owned_whatsapp_business_accounts{id,name}"},
            )
        except SocialAPIError as e:
            raise SocialAuthError(f"WhatsApp business lookup failed: {e}") from e

        business = (businesses.get("data") or [{}])[0]
        wabas = business.get("owned_whatsapp_business_accounts", {}).get("data") or [{}]
        waba = wabas[0]

        return OAuthTokenData(
            access_token=access_token,
            refresh_token=None,
            # System user tokens don't expire
            expires_in=None,
            platform_account_id=waba.get("id", ""),
            account_name=waba.get("name") or "WhatsApp Business",
            metadata={
                "waba_id": waba.get("id", ""),
                "business_id": business.get("id", ""),
            },
        )

    async def refresh_token(self, token: str) -> OAuthTokenData:
        """
        Validate the system-user token and return it unchanged.

        Raises:
            SocialAuthError: If Meta reports the token invalid
        """
        try:
            debug = await self._graph_get("/debug_token", token, {"input_token": token})
        except SocialAPIError as e:
            raise SocialAuthError(f"WhatsApp token validation failed: {e}") from e

        token_info = debug.get("data", {})
        if token_info.get("is_valid") is False:
            message = (token_info.get("error") or {}).get("message", "token is not valid")
            raise SocialAuthError(f"WhatsApp token validation failed: {message}")

        return OAuthTokenData(
            access_token=token,
            refresh_token=None,
            expires_in=None,
            platform_account_id=token_info.get("app_id", ""),
            account_name="WhatsApp Business",
            metadata=None,
        )

    async def revoke_token(self, access_token: str) -> None:
        # System user tokens are revoked from Business Manager, not per token
        logger.info("WhatsApp token revocation skipped; system user tokens can't be revoked via API")

    async def get_profile(self, access_token: str) -> dict[str, Any]:
        try:
            return await self._graph_get("/me", access_token, {"fields": "id,name"})
        except SocialAPIError as e:
            logger.warning("WhatsApp profile lookup failed: %s", e)
            return {}
