"""
OAuth flow orchestration for social platforms.

An authorization attempt moves from "awaiting callback" (state cached)
to "token exchanged" (state consumed, tokens returned to the caller, who
persists the account). A callback with an unknown, expired, replayed or
cross-platform state never reaches the platform's token endpoint.
"""

import base64
import hashlib
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Optional
from urllib.parse import urlencode

from sqlalchemy.ext.asyncio import AsyncSession

from adapters.social import get_social_adapter
from adapters.social.base import (
    BaseOAuthAdapter,
    OAuthTokenData,
    PlatformCredentials,
    SocialPlatform,
)
from infrastructure.cache import CacheStore, get_cache_store
from infrastructure.config import Settings, settings as default_settings
from infrastructure.database.models.base import as_utc
from infrastructure.database.models.social import SocialAccount
from services.credential_resolver import PlatformCredentialResolver, build_callback_url
from services.exceptions import (
    InvalidOAuthStateError,
    NoRefreshTokenAvailableError,
    PlatformMismatchError,
)
from services.oauth_state import OAuthStateStore

logger = logging.getLogger(__name__)

STATE_LENGTH = 40
CODE_VERIFIER_LENGTH = 64

AUTHORIZE_URLS = {
    SocialPlatform.LINKEDIN: "https://www.linkedin.com/oauth/v2/authorization",
    SocialPlatform.TWITTER: "https://twitter.com/i/oauth2/authorize",
    SocialPlatform.YOUTUBE: "https://accounts.google.com/o/oauth2/v2/auth",
    SocialPlatform.WHATSAPP: "https://www.facebook.com/v19.0/dialog/oauth",
}

AdapterFactory = Callable[[SocialPlatform, PlatformCredentials], BaseOAuthAdapter]


@dataclass(frozen=True)
class AuthorizationUrl:
    url: str
    state: str
    platform: str


def _random_string(length: int) -> str:
    # token_urlsafe yields ~1.3 chars per byte
    return secrets.token_urlsafe(length)[:length]


def pkce_challenge(verifier: str) -> str:
    """S256 code challenge: unpadded base64url of sha256(verifier)."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


class OAuthService:
    """Builds authorization URLs and runs the token exchange, refresh and revoke flows."""

    def __init__(
        self,
        state_store: OAuthStateStore,
        credential_resolver: PlatformCredentialResolver,
        adapter_factory: AdapterFactory = get_social_adapter,
        config: Optional[Settings] = None,
    ):
        self.state_store = state_store
        self.credential_resolver = credential_resolver
        self.adapter_factory = adapter_factory
        self.settings = config or default_settings

    # ── Authorization ─────────────────────────────────────────────────────────

    def generate_state(self) -> str:
        """40 random URL-safe characters."""
        return _random_string(STATE_LENGTH)

    def callback_url(self, platform: SocialPlatform | str) -> str:
        return build_callback_url(self.settings.app_url, SocialPlatform(platform).value)

    async def get_authorization_url(
        self, platform: SocialPlatform | str, state: str
    ) -> AuthorizationUrl:
        """
        Remember ``state`` and build the platform's consent URL.

        Args:
            platform: Platform being connected
            state: Value from generate_state(); valid for 600 seconds

        Returns:
            AuthorizationUrl to redirect the user to
        """
        platform = SocialPlatform(platform)
        await self.state_store.remember(state, platform.value)

        credentials = await self.credential_resolver.resolve(platform)
        params = {
            "client_id": credentials.app_id,
            "redirect_uri": credentials.redirect_uri or self.callback_url(platform),
            "state": state,
            "response_type": "code",
        }

        if platform.uses_graph_token_exchange:
            params["scope"] = ",".join(credentials.scopes)
            base_url = f"https://www.facebook.com/{credentials.api_version}/dialog/oauth"
        elif platform == SocialPlatform.WHATSAPP:
            params["scope"] = ",".join(credentials.scopes)
            params["config_id"] = credentials.config_id
            base_url = AUTHORIZE_URLS[platform]
        else:
            params["scope"] = " ".join(credentials.scopes)
            base_url = AUTHORIZE_URLS[platform]

        if platform == SocialPlatform.TWITTER:
            verifier = _random_string(CODE_VERIFIER_LENGTH)
            await self.state_store.remember_code_verifier(state, verifier)
            params["code_challenge"] = pkce_challenge(verifier)
            params["code_challenge_method"] = "S256"
        elif platform == SocialPlatform.YOUTUBE:
            params["access_type"] = "offline"
            params["prompt"] = "consent"

        logger.info("OAuth authorization URL generated for %s", platform.value)
        return AuthorizationUrl(
            url=f"{base_url}?{urlencode(params)}",
            state=state,
            platform=platform.value,
        )

    async def handle_callback(
        self, platform: SocialPlatform | str, code: str, state: str
    ) -> OAuthTokenData:
        """
        Validate the callback state and exchange the code for tokens.

        The state is consumed before it is checked, so it can't be replayed
        even when the check fails.

        Raises:
            InvalidOAuthStateError: State unknown, expired or already used
            PlatformMismatchError: State was issued for another platform
            SocialAuthError: The platform rejected the exchange
        """
        platform = SocialPlatform(platform)

        state_data = await self.state_store.consume(state)
        if state_data is None:
            raise InvalidOAuthStateError()
        if state_data.get("platform") != platform.value:
            logger.warning(
                "OAuth state issued for %s presented to %s callback",
                state_data.get("platform"),
                platform.value,
            )
            raise PlatformMismatchError()

        code_verifier = None
        if platform == SocialPlatform.TWITTER:
            code_verifier = await self.state_store.consume_code_verifier(state)

        credentials = await self.credential_resolver.resolve(platform)
        adapter = self.adapter_factory(platform, credentials)
        redirect_uri = credentials.redirect_uri or self.callback_url(platform)

        token_data = await adapter.exchange_code(code, redirect_uri, code_verifier=code_verifier)
        logger.info("OAuth callback handled for %s", platform.value)
        return token_data

    # ── Token lifecycle ───────────────────────────────────────────────────────

    async def refresh_token(self, account: SocialAccount) -> OAuthTokenData:
        """
        Obtain fresh tokens for an account.

        Facebook and Instagram have no refresh tokens: they re-exchange a
        long-lived user token instead, and the returned user token is written
        back into the account's metadata (the caller commits).

        Raises:
            NoRefreshTokenAvailableError: Non-Graph account without a refresh token
            SocialAuthError: The platform rejected the refresh
        """
        platform = SocialPlatform(account.platform)
        refresh_token = account.refresh_token
        if not refresh_token and not platform.uses_graph_token_exchange:
            raise NoRefreshTokenAvailableError()

        credentials = await self.credential_resolver.resolve(platform)
        adapter = self.adapter_factory(platform, credentials)

        if refresh_token:
            token_data = await adapter.refresh_token(refresh_token)
            logger.info("OAuth token refreshed for account %s (%s)", account.id, platform.value)
            return token_data

        # Page accounts hold a non-expiring page token; the exchangeable user token is in metadata
        if platform == SocialPlatform.FACEBOOK:
            token_to_refresh = account.get_metadata("user_token") or account.access_token
        else:
            token_to_refresh = account.access_token

        token_data = await adapter.refresh_token(token_to_refresh)

        metadata = token_data.metadata or {}
        if metadata.get("user_token"):
            account.set_metadata("user_token", metadata["user_token"])
            if metadata.get("user_token_expires_in") is not None:
                account.set_metadata("user_token_expires_in", metadata["user_token_expires_in"])

        logger.info(
            "OAuth token refreshed (long-lived exchange) for account %s (%s)",
            account.id,
            platform.value,
        )
        return token_data

    async def revoke_token(self, account: SocialAccount) -> None:
        """
        Revoke the account's access token at the platform.

        Raises:
            SocialAPIError: The platform rejected the revocation
        """
        platform = SocialPlatform(account.platform)
        credentials = await self.credential_resolver.resolve(platform)
        adapter = self.adapter_factory(platform, credentials)
        await adapter.revoke_token(account.access_token)
        logger.info("OAuth token revoked for account %s (%s)", account.id, platform.value)

    def validate_token(self, account: SocialAccount, now: Optional[datetime] = None) -> bool:
        """True if the account is connected and its token has not expired."""
        if not account.is_connected():
            return False
        expires_at = as_utc(account.token_expires_at)
        return expires_at is None or expires_at > (now or datetime.now(UTC))


def build_oauth_service(db: AsyncSession, cache: Optional[CacheStore] = None) -> OAuthService:
    """OAuthService wired to the shared cache and a database-backed credential resolver."""
    return OAuthService(
        state_store=OAuthStateStore(cache or get_cache_store(), ttl=default_settings.oauth_state_ttl),
        credential_resolver=PlatformCredentialResolver(db),
    )
