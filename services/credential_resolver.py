"""
Resolve OAuth application credentials for a platform.

Admin-managed platform integrations take precedence over environment
configuration, so credentials can be rotated without a redeploy.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.social.base import PlatformCredentials, SocialPlatform
from infrastructure.config import Settings, settings as default_settings
from infrastructure.database.models.integration import PlatformIntegration

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/api/v1/oauth/{platform}/callback"

# Settings field prefix per platform; Facebook and Instagram share one Meta app
_ENV_PREFIXES = {
    SocialPlatform.FACEBOOK: ("facebook_app_id", "facebook_app_secret", "facebook_redirect_uri"),
    SocialPlatform.INSTAGRAM: ("facebook_app_id", "facebook_app_secret", "facebook_redirect_uri"),
    SocialPlatform.LINKEDIN: ("linkedin_client_id", "linkedin_client_secret", "linkedin_redirect_uri"),
    SocialPlatform.TWITTER: ("twitter_client_id", "twitter_client_secret", "twitter_redirect_uri"),
    SocialPlatform.YOUTUBE: ("youtube_client_id", "youtube_client_secret", "youtube_redirect_uri"),
    SocialPlatform.WHATSAPP: ("whatsapp_app_id", "whatsapp_app_secret", "whatsapp_redirect_uri"),
}

_DEFAULT_API_VERSIONS = {
    SocialPlatform.LINKEDIN: "v2",
    SocialPlatform.TWITTER: "2",
    SocialPlatform.YOUTUBE: "v3",
    SocialPlatform.WHATSAPP: "v19.0",
}


def build_callback_url(app_url: str, platform: str) -> str:
    """``<app_url>/api/v1/oauth/<platform>/callback``"""
    return app_url.rstrip("/") + CALLBACK_PATH.format(platform=platform)


class PlatformCredentialResolver:
    """Builds PlatformCredentials from the database or, failing that, settings."""

    def __init__(self, db: AsyncSession, config: Optional[Settings] = None):
        self.db = db
        self.settings = config or default_settings

    async def resolve(self, platform: SocialPlatform | str) -> PlatformCredentials:
        """
        Resolve credentials for ``platform``.

        Args:
            platform: Social platform

        Returns:
            Credentials from the enabled integration, else from settings. When
            neither has an app id or secret the result carries empty strings
            and ``is_configured`` is False.
        """
        platform = SocialPlatform(platform)

        integration = await self._find_integration(platform)
        if integration is not None:
            logger.debug(
                "Using %s integration credentials for %s (app %s)",
                integration.provider,
                platform.value,
                integration.masked_app_id(),
            )
            return self._from_integration(platform, integration)

        credentials = self._from_settings(platform)
        if not credentials.is_configured:
            logger.warning(
                "No OAuth credentials configured for %s; set them in a platform integration "
                "or the environment",
                platform.value,
            )
        return credentials

    async def _find_integration(self, platform: SocialPlatform) -> Optional[PlatformIntegration]:
        result = await self.db.execute(
            select(PlatformIntegration).where(
                PlatformIntegration.provider == platform.provider,
                PlatformIntegration.is_enabled.is_(True),
            )
        )
        integration = result.scalar_one_or_none()
        if integration is None or not integration.is_usable:
            return None
        if integration.platforms and platform.value not in integration.platforms:
            return None
        return integration

    def _from_integration(
        self, platform: SocialPlatform, integration: PlatformIntegration
    ) -> PlatformCredentials:
        redirect_uri = integration.redirect_uri_for(platform.value) or build_callback_url(
            self.settings.app_url, platform.value
        )
        return PlatformCredentials(
            app_id=integration.app_id,
            app_secret=integration.app_secret,
            redirect_uri=redirect_uri,
            api_version=integration.api_version or self._default_api_version(platform),
            scopes=tuple(integration.scopes_for(platform.value) or platform.oauth_scopes()),
            config_id=integration.config_id or "",
        )

    def _from_settings(self, platform: SocialPlatform) -> PlatformCredentials:
        id_field, secret_field, redirect_field = _ENV_PREFIXES[platform]
        config_id = (
            self.settings.whatsapp_config_id or "" if platform == SocialPlatform.WHATSAPP else ""
        )
        return PlatformCredentials(
            app_id=getattr(self.settings, id_field) or "",
            app_secret=getattr(self.settings, secret_field) or "",
            redirect_uri=getattr(self.settings, redirect_field) or "",
            api_version=self._default_api_version(platform),
            scopes=tuple(platform.oauth_scopes()),
            config_id=config_id,
        )

    def _default_api_version(self, platform: SocialPlatform) -> str:
        return _DEFAULT_API_VERSIONS.get(platform, self.settings.facebook_api_version)
