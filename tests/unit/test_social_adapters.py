"""
Unit tests for social platform OAuth adapters.

Tests the token lifecycle of each platform adapter:
- Authorization code exchange and identity lookup
- Facebook Page token derivation and long-lived token refresh
- Refresh token rotation and retention
- Revocation
- Error propagation (auth failures, rate limits)
"""

from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from adapters.social import get_social_adapter
from adapters.social.base import (
    PlatformCredentials,
    SocialAPIError,
    SocialAuthError,
    SocialPlatform,
    SocialRateLimitError,
    response_error_message,
)
from adapters.social.facebook_adapter import FacebookAdapter
from adapters.social.graph import DEFAULT_LONG_LIVED_EXPIRES_IN
from adapters.social.instagram_adapter import InstagramAdapter
from adapters.social.linkedin_adapter import LinkedInAdapter
from adapters.social.twitter_adapter import TwitterAdapter
from adapters.social.whatsapp_adapter import WhatsAppAdapter
from adapters.social.youtube_adapter import YouTubeAdapter


def _json(status_code: int, payload: Any) -> httpx.Response:
    return httpx.Response(status_code, json=payload)


@pytest.fixture
def facebook_adapter(meta_credentials):
    return FacebookAdapter(meta_credentials)


@pytest.fixture
def instagram_adapter(meta_credentials):
    return InstagramAdapter(meta_credentials)


@pytest.fixture
def linkedin_adapter(oauth_credentials):
    return LinkedInAdapter(oauth_credentials)


@pytest.fixture
def twitter_adapter(oauth_credentials):
    return TwitterAdapter(oauth_credentials)


@pytest.fixture
def youtube_adapter(oauth_credentials):
    return YouTubeAdapter(oauth_credentials)


# ============================================================================
# Facebook Adapter Tests
# ============================================================================


class TestFacebookAdapter:
    """Tests for the Facebook Pages adapter."""

    @pytest.mark.asyncio
    async def test_exchange_code_returns_page_token(self, facebook_adapter):
        """The first managed Page's token becomes the account token."""
        responses = [
            _json(200, {"access_token": "short_lived"}),
            _json(200, {"access_token": "long_lived_user", "expires_in": 5183944}),
            _json(
                200,
                {
                    "data": [
                        {"id": "page-1", "name": "Acme Page", "access_token": "page_token"},
                        {"id": "page-2", "name": "Other Page", "access_token": "other_token"},
                    ]
                },
            ),
        ]
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = responses
            token_data = await facebook_adapter.exchange_code("auth_code", "https://app/cb")

        assert token_data.access_token == "page_token"
        assert token_data.refresh_token is None
        assert token_data.expires_in is None
        assert token_data.platform_account_id == "page-1"
        assert token_data.account_name == "Acme Page"
        assert token_data.metadata["user_token"] == "long_lived_user"
        assert token_data.metadata["user_token_expires_in"] == 5183944
        assert token_data.metadata["pages"] == [
            {"id": "page-1", "name": "Acme Page"},
            {"id": "page-2", "name": "Other Page"},
        ]

        first_call = mock_get.call_args_list[0]
        assert first_call.args[0] == "https://graph.facebook.com/v19.0/oauth/access_token"
        assert first_call.kwargs["params"]["code"] == "auth_code"
        assert first_call.kwargs["params"]["redirect_uri"] == "https://app/cb"
        second_call = mock_get.call_args_list[1]
        assert second_call.kwargs["params"]["grant_type"] == "fb_exchange_token"
        assert second_call.kwargs["params"]["fb_exchange_token"] == "short_lived"

    @pytest.mark.asyncio
    async def test_exchange_code_without_pages_uses_user_token(self, facebook_adapter):
        responses = [
            _json(200, {"access_token": "short_lived"}),
            _json(200, {"access_token": "long_lived_user"}),
            _json(200, {"data": []}),
            _json(200, {"id": "user-1", "name": "Jane Doe"}),
        ]
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = responses
            token_data = await facebook_adapter.exchange_code("auth_code", "https://app/cb")

        assert token_data.access_token == "long_lived_user"
        assert token_data.expires_in == DEFAULT_LONG_LIVED_EXPIRES_IN
        assert token_data.platform_account_id == "user-1"
        assert token_data.metadata["page_id"] is None

    @pytest.mark.asyncio
    async def test_exchange_code_failure_raises_auth_error(self, facebook_adapter):
        error = {"error": {"message": "Invalid verification code format.", "code": 100}}
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = _json(400, error)
            with pytest.raises(SocialAuthError, match="Invalid verification code format"):
                await facebook_adapter.exchange_code("bad_code", "https://app/cb")

    @pytest.mark.asyncio
    async def test_refresh_reexchanges_user_token(self, facebook_adapter):
        responses = [
            _json(200, {"access_token": "fresh_user_token", "expires_in": 5184000}),
            _json(200, {"data": [{"id": "page-1", "name": "Acme Page", "access_token": "page_token"}]}),
        ]
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = responses
            token_data = await facebook_adapter.refresh_token("old_user_token")

        assert token_data.access_token == "page_token"
        assert token_data.metadata["user_token"] == "fresh_user_token"
        assert "pages" not in token_data.metadata
        assert mock_get.call_args_list[0].kwargs["params"]["fb_exchange_token"] == "old_user_token"

    @pytest.mark.asyncio
    async def test_refresh_network_error_raises_auth_error(self, facebook_adapter):
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = httpx.ConnectError("connection refused")
            with pytest.raises(SocialAuthError):
                await facebook_adapter.refresh_token("old_user_token")

    @pytest.mark.asyncio
    async def test_revoke_token(self, facebook_adapter):
        with patch("httpx.AsyncClient.delete", new_callable=AsyncMock) as mock_delete:
            mock_delete.return_value = _json(200, {"success": True})
            await facebook_adapter.revoke_token("page_token")

        assert mock_delete.call_args.args[0] == "https://graph.facebook.com/v19.0/me/permissions"
        assert mock_delete.call_args.kwargs["params"] == {"access_token": "page_token"}

    @pytest.mark.asyncio
    async def test_revoke_token_failure_raises_api_error(self, facebook_adapter):
        with patch("httpx.AsyncClient.delete", new_callable=AsyncMock) as mock_delete:
            mock_delete.return_value = _json(400, {"error": {"message": "Invalid OAuth access token."}})
            with pytest.raises(SocialAPIError, match="Invalid OAuth access token"):
                await facebook_adapter.revoke_token("bad_token")

    @pytest.mark.asyncio
    async def test_graph_rate_limit_raises_rate_limit_error(self, facebook_adapter):
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = _json(429, {"error": {"message": "Application request limit reached"}})
            with pytest.raises(SocialRateLimitError, match="request limit reached"):
                await facebook_adapter._graph_get("/me", "token")

    @pytest.mark.asyncio
    async def test_profile_failure_returns_empty(self, facebook_adapter):
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = _json(500, {"error": {"message": "Service unavailable"}})
            assert await facebook_adapter.get_profile("token") == {}


# ============================================================================
# Instagram Adapter Tests
# ============================================================================


class TestInstagramAdapter:
    """Tests for the Instagram business account adapter."""

    @pytest.mark.asyncio
    async def test_exchange_code_finds_business_account(self, instagram_adapter):
        responses = [
            _json(200, {"access_token": "short_lived"}),
            _json(200, {"access_token": "long_lived"}),
            _json(
                200,
                {
                    "data": [
                        {"id": "page-1"},
                        {
                            "id": "page-2",
                            "instagram_business_account": {
                                "id": "ig-123",
                                "name": "Acme",
                                "username": "acme",
                            },
                        },
                    ]
                },
            ),
        ]
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = responses
            token_data = await instagram_adapter.exchange_code("auth_code", "https://app/cb")

        assert token_data.access_token == "long_lived"
        assert token_data.expires_in == DEFAULT_LONG_LIVED_EXPIRES_IN
        assert token_data.platform_account_id == "ig-123"
        assert token_data.account_username == "acme"
        assert token_data.metadata == {"ig_user_id": "ig-123", "account_type": "BUSINESS"}

    @pytest.mark.asyncio
    async def test_exchange_code_without_business_account(self, instagram_adapter):
        responses = [
            _json(200, {"access_token": "short_lived"}),
            _json(200, {"access_token": "long_lived", "expires_in": 100}),
            _json(200, {"data": [{"id": "page-1"}]}),
        ]
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = responses
            token_data = await instagram_adapter.exchange_code("auth_code", "https://app/cb")

        assert token_data.platform_account_id == ""
        assert token_data.account_name == "Instagram Account"
        assert token_data.expires_in == 100

    @pytest.mark.asyncio
    async def test_refresh_token_exchanges_current_token(self, instagram_adapter):
        responses = [
            _json(200, {"access_token": "renewed", "expires_in": 5184000}),
            _json(200, {"data": [{"id": "p", "instagram_business_account": {"id": "ig-123"}}]}),
        ]
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = responses
            token_data = await instagram_adapter.refresh_token("current")

        assert token_data.access_token == "renewed"
        assert token_data.refresh_token is None
        assert mock_get.call_args_list[0].kwargs["params"]["fb_exchange_token"] == "current"


# ============================================================================
# LinkedIn Adapter Tests
# ============================================================================


class TestLinkedInAdapter:
    """Tests for LinkedIn OAuth adapter."""

    @pytest.mark.asyncio
    async def test_exchange_code_success(self, linkedin_adapter):
        with (
            patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post,
            patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get,
        ):
            mock_post.return_value = _json(
                200,
                {"access_token": "li_access", "refresh_token": "li_refresh", "expires_in": 5184000},
            )
            mock_get.return_value = _json(
                200, {"sub": "member-1", "name": "Jane Doe", "picture": "https://img/p.png"}
            )
            token_data = await linkedin_adapter.exchange_code("auth_code", "https://app/cb")

        assert token_data.access_token == "li_access"
        assert token_data.refresh_token == "li_refresh"
        assert token_data.platform_account_id == "member-1"
        assert token_data.account_name == "Jane Doe"
        assert mock_post.call_args.kwargs["data"]["grant_type"] == "authorization_code"
        assert mock_get.call_args.kwargs["headers"] == {"Authorization": "Bearer li_access"}

    @pytest.mark.asyncio
    async def test_refresh_keeps_refresh_token_when_not_rotated(self, linkedin_adapter):
        with (
            patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post,
            patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get,
        ):
            mock_post.return_value = _json(200, {"access_token": "li_new", "expires_in": 5184000})
            mock_get.return_value = _json(200, {"sub": "member-1", "name": "Jane Doe"})
            token_data = await linkedin_adapter.refresh_token("li_refresh")

        assert token_data.access_token == "li_new"
        assert token_data.refresh_token == "li_refresh"

    @pytest.mark.asyncio
    async def test_refresh_invalid_grant_keeps_error_code(self, linkedin_adapter):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _json(
                400,
                {"error": "invalid_grant", "error_description": "The refresh token is invalid"},
            )
            with pytest.raises(SocialAuthError) as exc_info:
                await linkedin_adapter.refresh_token("expired_refresh")

        assert "invalid_grant" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_revoke_failure_raises_api_error(self, linkedin_adapter):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _json(401, {"message": "Unauthorized"})
            with pytest.raises(SocialAPIError, match="Unauthorized"):
                await linkedin_adapter.revoke_token("li_access")

    @pytest.mark.asyncio
    async def test_refresh_without_access_token_raises(self, linkedin_adapter):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _json(200, {"expires_in": 5184000})
            with pytest.raises(SocialAuthError, match="no access token in response"):
                await linkedin_adapter.refresh_token("li_refresh")


# ============================================================================
# Twitter/X Adapter Tests
# ============================================================================


class TestTwitterAdapter:
    """Tests for Twitter/X OAuth 2.0 adapter."""

    @pytest.mark.asyncio
    async def test_exchange_code_requires_code_verifier(self, twitter_adapter):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            with pytest.raises(SocialAuthError, match="PKCE"):
                await twitter_adapter.exchange_code("auth_code", "https://app/cb")

        mock_post.assert_not_called()

    @pytest.mark.asyncio
    async def test_exchange_code_success(self, twitter_adapter):
        with (
            patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post,
            patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get,
        ):
            mock_post.return_value = _json(
                200,
                {
                    "token_type": "bearer",
                    "access_token": "tw_access",
                    "refresh_token": "tw_refresh",
                    "expires_in": 7200,
                },
            )
            mock_get.return_value = _json(
                200, {"data": {"id": "42", "name": "Test User", "username": "testuser"}}
            )
            token_data = await twitter_adapter.exchange_code(
                "auth_code", "https://app/cb", code_verifier="verifier-123"
            )

        assert token_data.access_token == "tw_access"
        assert token_data.refresh_token == "tw_refresh"
        assert token_data.expires_in == 7200
        assert token_data.account_username == "testuser"
        assert mock_post.call_args.kwargs["data"]["code_verifier"] == "verifier-123"
        assert isinstance(mock_post.call_args.kwargs["auth"], httpx.BasicAuth)

    @pytest.mark.asyncio
    async def test_refresh_uses_rotated_refresh_token(self, twitter_adapter):
        with (
            patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post,
            patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get,
        ):
            mock_post.return_value = _json(
                200, {"access_token": "tw_new", "refresh_token": "tw_rotated", "expires_in": 7200}
            )
            mock_get.return_value = _json(200, {"data": {"id": "42", "name": "Test User"}})
            token_data = await twitter_adapter.refresh_token("tw_refresh")

        assert token_data.refresh_token == "tw_rotated"

    @pytest.mark.asyncio
    async def test_refresh_without_access_token_raises(self, twitter_adapter):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _json(200, {"refresh_token": "tw_rotated"})
            with pytest.raises(SocialAuthError, match="no access token in response"):
                await twitter_adapter.refresh_token("tw_refresh")


# ============================================================================
# YouTube Adapter Tests
# ============================================================================


class TestYouTubeAdapter:
    """Tests for YouTube (Google) OAuth adapter."""

    @pytest.mark.asyncio
    async def test_exchange_code_reads_channel(self, youtube_adapter):
        channel = {
            "id": "UC123",
            "snippet": {
                "title": "Acme TV",
                "customUrl": "@acmetv",
                "thumbnails": {"default": {"url": "https://yt/thumb.jpg"}},
            },
        }
        with (
            patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post,
            patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get,
        ):
            mock_post.return_value = _json(
                200, {"access_token": "yt_access", "refresh_token": "yt_refresh", "expires_in": 3599}
            )
            mock_get.return_value = _json(200, {"items": [channel]})
            token_data = await youtube_adapter.exchange_code("auth_code", "https://app/cb")

        assert token_data.platform_account_id == "UC123"
        assert token_data.account_name == "Acme TV"
        assert token_data.profile_image_url == "https://yt/thumb.jpg"
        assert token_data.metadata["channel_id"] == "UC123"

    @pytest.mark.asyncio
    async def test_refresh_keeps_refresh_token(self, youtube_adapter):
        with (
            patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post,
            patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get,
        ):
            mock_post.return_value = _json(200, {"access_token": "yt_new", "expires_in": 3599})
            mock_get.return_value = _json(200, {"items": []})
            token_data = await youtube_adapter.refresh_token("yt_refresh")

        assert token_data.access_token == "yt_new"
        assert token_data.refresh_token == "yt_refresh"
        assert token_data.account_name == "YouTube Channel"

    @pytest.mark.asyncio
    async def test_refresh_revoked_grant(self, youtube_adapter):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _json(
                400,
                {"error": "invalid_grant", "error_description": "Token has been expired or revoked."},
            )
            with pytest.raises(SocialAuthError, match="Token has been expired or revoked"):
                await youtube_adapter.refresh_token("yt_refresh")

    @pytest.mark.asyncio
    async def test_exchange_code_without_access_token_raises(self, youtube_adapter):
        with (
            patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post,
            patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get,
        ):
            mock_post.return_value = _json(200, {"token_type": "Bearer", "expires_in": 3599})
            with pytest.raises(SocialAuthError, match="no access token in response"):
                await youtube_adapter.exchange_code("auth_code", "https://app/cb")

        mock_get.assert_not_called()


# ============================================================================
# WhatsApp Adapter Tests
# ============================================================================


class TestWhatsAppAdapter:
    """Tests for WhatsApp Business embedded signup adapter."""

    @pytest.fixture
    def whatsapp_adapter(self):
        credentials = PlatformCredentials(
            app_id="wa_app",
            app_secret="wa_secret",
            redirect_uri="https://app/cb",
            api_version="v21.0",
            config_id="cfg-1",
        )
        return WhatsAppAdapter(credentials)

    def test_graph_version_is_pinned(self, whatsapp_adapter):
        assert whatsapp_adapter.api_version == "v19.0"
        assert whatsapp_adapter.graph_base == "https://graph.facebook.com/v19.0"

    @pytest.mark.asyncio
    async def test_exchange_code_locates_waba(self, whatsapp_adapter):
        responses = [
            _json(200, {"access_token": "system_user_token"}),
            _json(
                200,
                {
                    "data": [
                        {
                            "id": "biz-1",
                            "owned_whatsapp_business_accounts": {
                                "data": [{"id": "waba-1", "name": "Acme Support"}]
                            },
                        }
                    ]
                },
            ),
        ]
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = responses
            token_data = await whatsapp_adapter.exchange_code("auth_code", "https://app/cb")

        assert token_data.expires_in is None
        assert token_data.platform_account_id == "waba-1"
        assert token_data.metadata == {"waba_id": "waba-1", "business_id": "biz-1"}

    @pytest.mark.asyncio
    async def test_refresh_invalid_token_raises(self, whatsapp_adapter):
        debug = {"data": {"is_valid": False, "error": {"message": "Session has been revoked"}}}
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = _json(200, debug)
            with pytest.raises(SocialAuthError, match="revoked"):
                await whatsapp_adapter.refresh_token("system_user_token")

    @pytest.mark.asyncio
    async def test_refresh_valid_token_returns_it_unchanged(self, whatsapp_adapter):
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = _json(200, {"data": {"is_valid": True, "app_id": "wa_app"}})
            token_data = await whatsapp_adapter.refresh_token("system_user_token")

        assert token_data.access_token == "system_user_token"
        assert token_data.expires_in is None

    @pytest.mark.asyncio
    async def test_revoke_makes_no_request(self, whatsapp_adapter):
        with patch("httpx.AsyncClient.delete", new_callable=AsyncMock) as mock_delete:
            await whatsapp_adapter.revoke_token("system_user_token")

        mock_delete.assert_not_called()


# ============================================================================
# Factory & helpers
# ============================================================================


class TestAdapterFactory:
    @pytest.mark.parametrize(
        "platform, adapter_class",
        [
            (SocialPlatform.FACEBOOK, FacebookAdapter),
            ("instagram", InstagramAdapter),
            ("linkedin", LinkedInAdapter),
            ("twitter", TwitterAdapter),
            ("youtube", YouTubeAdapter),
            ("whatsapp", WhatsAppAdapter),
        ],
    )
    def test_returns_platform_adapter(self, platform, adapter_class, meta_credentials):
        assert isinstance(get_social_adapter(platform, meta_credentials), adapter_class)

    def test_unsupported_platform(self, meta_credentials):
        with pytest.raises(ValueError, match="Unsupported social platform: myspace"):
            get_social_adapter("myspace", meta_credentials)

    def test_timeout_is_forwarded(self, meta_credentials):
        adapter = get_social_adapter("facebook", meta_credentials, timeout=5)
        assert adapter.timeout == 5

    def test_credentials_repr_hides_secret(self, meta_credentials):
        assert "test_meta_app_secret" not in repr(meta_credentials)


class TestResponseErrorMessage:
    def test_graph_error_object(self):
        response = _json(400, {"error": {"message": "Invalid OAuth access token."}})
        assert response_error_message(response, "default") == "Invalid OAuth access token."

    def test_oauth_error_code_and_description(self):
        response = _json(400, {"error": "access_denied", "error_description": "User denied"})
        assert response_error_message(response, "default") == "access_denied: User denied"

    def test_non_json_body(self):
        response = httpx.Response(502, text="<html>Bad gateway</html>")
        assert response_error_message(response, "default") == "default"
