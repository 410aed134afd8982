"""
Base classes and interfaces for social platform OAuth adapters.

Provides the platform enum, credential and token value objects, the
adapter exception hierarchy and the abstract adapter every platform
(Facebook, Instagram, LinkedIn, Twitter, YouTube, WhatsApp) implements.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

import httpx


class SocialPlatform(StrEnum):
    """Supported social media platforms."""

    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    LINKEDIN = "linkedin"
    TWITTER = "twitter"
    YOUTUBE = "youtube"
    WHATSAPP = "whatsapp"

    @property
    def label(self) -> str:
        return _PLATFORM_LABELS[self]

    @property
    def provider(self) -> str:
        """Integration provider owning this platform's OAuth app."""
        if self in (SocialPlatform.FACEBOOK, SocialPlatform.INSTAGRAM):
            return "meta"
        return self.value

    @property
    def uses_graph_token_exchange(self) -> bool:
        """Facebook and Instagram refresh by re-exchanging a long-lived token."""
        return self in (SocialPlatform.FACEBOOK, SocialPlatform.INSTAGRAM)

    def oauth_scopes(self) -> list[str]:
        """Default OAuth scopes requested when no integration overrides them."""
        return list(_DEFAULT_SCOPES[self])


_PLATFORM_LABELS = {
    SocialPlatform.FACEBOOK: "Facebook",
    SocialPlatform.INSTAGRAM: "Instagram",
    SocialPlatform.LINKEDIN: "LinkedIn",
    SocialPlatform.TWITTER: "Twitter",
    SocialPlatform.YOUTUBE: "YouTube",
    SocialPlatform.WHATSAPP: "WhatsApp",
}

_DEFAULT_SCOPES = {
    SocialPlatform.FACEBOOK: (
        "pages_manage_posts",
        "pages_read_engagement",
        "pages_show_list",
        "public_profile",
    ),
    SocialPlatform.INSTAGRAM: (
        "instagram_basic",
        "instagram_content_publish",
        "instagram_manage_comments",
        "instagram_manage_insights",
        "pages_show_list",
        "pages_read_engagement",
    ),
    SocialPlatform.LINKEDIN: (
        "r_liteprofile",
        "r_emailaddress",
        "w_member_social",
        "r_organization_social",
        "w_organization_social",
    ),
    SocialPlatform.TWITTER: (
        "tweet.read",
        "tweet.write",
        "users.read",
        "offline.access",
    ),
    SocialPlatform.YOUTUBE: (
        "https://www.googleapis.com/auth/youtube.upload",
        "https://www.googleapis.com/auth/youtube",
        "https://www.googleapis.com/auth/youtube.readonly",
    ),
    SocialPlatform.WHATSAPP: (
        "business_management",
        "whatsapp_business_management",
        "whatsapp_business_messaging",
    ),
}


@dataclass(frozen=True)
class PlatformCredentials:
    """Resolved OAuth application credentials for one platform. Never persisted."""

    app_id: str
    app_secret: str = field(repr=False)
    redirect_uri: str
    api_version: str
    scopes: tuple[str, ...] = ()
    config_id: str = ""

    def __post_init__(self) -> None:
        # Keep first occurrence order while dropping duplicates
        object.__setattr__(self, "scopes", tuple(dict.fromkeys(self.scopes)))

    @property
    def is_configured(self) -> bool:
        return bool(self.app_id and self.app_secret)


@dataclass
class OAuthTokenData:
    """Normalized result of a token exchange or refresh."""

    access_token: str = field(repr=False)
    platform_account_id: str
    account_name: str
    refresh_token: str | None = field(default=None, repr=False)
    expires_in: int | None = None
    account_username: str | None = None
    profile_image_url: str | None = None
    metadata: dict[str, Any] | None = None

    def expires_at(self, now: datetime | None = None) -> datetime | None:
        """Absolute expiry computed from ``expires_in`` (None for non-expiring tokens)."""
        if self.expires_in is None:
            return None
        return (now or datetime.now(UTC)) + timedelta(seconds=self.expires_in)


# Custom Exceptions
class SocialAdapterError(Exception):
    """Base exception for social platform adapter errors."""

    pass


class SocialAuthError(SocialAdapterError):
    """Raised when a token exchange, refresh or validation fails."""

    pass


class SocialAPIError(SocialAdapterError):
    """Raised when a platform API returns an error outside the token flow."""

    pass


class SocialRateLimitError(SocialAPIError):
    """Raised when a platform answers 429 Too Many Requests."""

    pass


def response_error_message(response: httpx.Response, default: str) -> str:
    """Pull a human-readable error out of a failed OAuth/API response."""
    try:
        payload = response.json()
    except ValueError:
        return default
    if not isinstance(payload, dict):
        return default
    error = payload.get("error")
    if isinstance(error, dict):
        return error.get("message") or default
    description = payload.get("error_description") or payload.get("message")
    if error and description:
        # OAuth error codes (invalid_grant, ...) are kept for classification
        return f"{error}: {description}"
    return description or error or default


class BaseOAuthAdapter(ABC):
    """
    Abstract base class for platform OAuth adapters.

    Adapters encapsulate token acquisition for one platform and normalize
    the platform's response into OAuthTokenData.
    """

    platform: SocialPlatform

    def __init__(self, credentials: PlatformCredentials, timeout: int = 30):
        """
        Initialize adapter.

        Args:
            credentials: Resolved OAuth app credentials
            timeout: Request timeout in seconds
        """
        self.credentials = credentials
        self.timeout = timeout

    @abstractmethod
    async def exchange_code(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> OAuthTokenData:
        """
        Exchange an authorization code for tokens and account identity.

        Args:
            code: Authorization code from the OAuth callback
            redirect_uri: Redirect URI used in the authorization request
            code_verifier: PKCE verifier (Twitter only)

        Returns:
            Normalized token data

        Raises:
            SocialAuthError: If the exchange fails
        """
        pass

    @abstractmethod
    async def refresh_token(self, token: str) -> OAuthTokenData:
        """
        Obtain fresh tokens.

        Args:
            token: Refresh token, or for Graph platforms the current long-lived token

        Returns:
            Normalized token data

        Raises:
            SocialAuthError: If the refresh fails
        """
        pass

    @abstractmethod
    async def revoke_token(self, access_token: str) -> None:
        """
        Revoke an access token at the platform.

        Raises:
            SocialAPIError: If the platform rejects the revocation
        """
        pass

    @abstractmethod
    async def get_profile(self, access_token: str) -> dict[str, Any]:
        """Fetch the raw profile of the account owning ``access_token``."""
        pass
