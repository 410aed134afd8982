"""
Social platform OAuth adapters.

Provides a unified token lifecycle (code exchange, refresh, revocation)
for Facebook, Instagram, LinkedIn, Twitter, YouTube and WhatsApp.
"""

from .base import (
    BaseOAuthAdapter,
    OAuthTokenData,
    PlatformCredentials,
    SocialAdapterError,
    SocialAPIError,
    SocialAuthError,
    SocialPlatform,
    SocialRateLimitError,
)
from .facebook_adapter import FacebookAdapter
from .instagram_adapter import InstagramAdapter
from .linkedin_adapter import LinkedInAdapter
from .twitter_adapter import TwitterAdapter
from .whatsapp_adapter import WhatsAppAdapter
from .youtube_adapter import YouTubeAdapter

_ADAPTERS: dict[SocialPlatform, type[BaseOAuthAdapter]] = {
    SocialPlatform.FACEBOOK: FacebookAdapter,
    SocialPlatform.INSTAGRAM: InstagramAdapter,
    SocialPlatform.LINKEDIN: LinkedInAdapter,
    SocialPlatform.TWITTER: TwitterAdapter,
    SocialPlatform.YOUTUBE: YouTubeAdapter,
    SocialPlatform.WHATSAPP: WhatsAppAdapter,
}


def get_social_adapter(
    platform: SocialPlatform | str,
    credentials: PlatformCredentials,
    **kwargs,
) -> BaseOAuthAdapter:
    """
    Factory function to get the platform-specific OAuth adapter.

    Args:
        platform: Social platform (enum member or its string value)
        credentials: Resolved OAuth app credentials for the platform
        **kwargs: Additional adapter arguments (e.g. ``timeout``)

    Returns:
        Platform-specific adapter instance

    Raises:
        ValueError: If platform is not supported

    Examples:
        >>> credentials = await resolver.resolve(SocialPlatform.LINKEDIN)
        >>> linkedin = get_social_adapter(SocialPlatform.LINKEDIN, credentials)
        >>> token_data = await linkedin.exchange_code(code, credentials.redirect_uri)
    """
    try:
        adapter_class = _ADAPTERS[SocialPlatform(platform)]
    except (KeyError, ValueError):
        raise ValueError(
            f"Unsupported social platform: {platform}. "
            f"Supported platforms: {', '.join([p.value for p in SocialPlatform])}"
        ) from None

    return adapter_class(credentials, **kwargs)


__all__ = [
    # Base classes and enums
    "BaseOAuthAdapter",
    "SocialPlatform",
    "PlatformCredentials",
    "OAuthTokenData",
    # Exceptions
    "SocialAdapterError",
    "SocialAuthError",
    "SocialAPIError",
    "SocialRateLimitError",
    # Adapters
    "FacebookAdapter",
    "InstagramAdapter",
    "LinkedInAdapter",
    "TwitterAdapter",
    "YouTubeAdapter",
    "WhatsAppAdapter",
    # Factory
    "get_social_adapter",
]
