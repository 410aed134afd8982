"""
Unit tests for the social account lifecycle service.

Tests:
- Idempotent connect / reconnect with metadata merge
- Best-effort revoke on disconnect
- Manual refresh success and failure
- Listing filters, pagination and workspace scoping
- Health aggregation and refresh candidates
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from pydantic import ValidationError
from sqlalchemy import func, select

from adapters.social.base import OAuthTokenData, SocialAPIError, SocialAuthError
from infrastructure.database.models import (
    AuditAction,
    AuditLog,
    SocialAccount,
    SocialAccountStatus,
    Workspace,
)
from infrastructure.database.models.base import as_utc
from services.audit_log import AuditLogService
from services.exceptions import (
    NoRefreshTokenAvailableError,
    SocialAccountNotFoundError,
    TokenRefreshFailedError,
)
from services.social_account_service import (
    AccountListFilters,
    ConnectAccountData,
    SocialAccountService,
)


@pytest.fixture
def oauth_service():
    service = Mock()
    service.refresh_token = AsyncMock()
    service.revoke_token = AsyncMock()
    return service


@pytest.fixture
def account_service(db_session, oauth_service):
    return SocialAccountService(db_session, oauth_service, AuditLogService(db_session))


def _connect_data(**overrides) -> ConnectAccountData:
    values = {
        "platform": "linkedin",
        "platform_account_id": "li-42",
        "account_name": "Acme Corp",
        "access_token": "first_access",
        "refresh_token": "first_refresh",
        "token_expires_at": datetime.now(UTC) + timedelta(days=60),
        "metadata": {"organization_id": "org-1", "vanity": "acme"},
    }
    values.update(overrides)
    return ConnectAccountData(**values)


async def _count_accounts(db_session) -> int:
    return (await db_session.execute(select(func.count(SocialAccount.id)))).scalar_one()


class TestConnect:
    @pytest.mark.asyncio
    async def test_creates_account_with_encrypted_tokens(
        self, account_service, db_session, workspace, test_user
    ):
        account = await account_service.connect(workspace.id, test_user.id, _connect_data())

        assert account.status == SocialAccountStatus.CONNECTED.value
        assert account.connected_by_user_id == test_user.id
        assert account.access_token == "first_access"
        assert account.refresh_token == "first_refresh"
        assert account.access_token_encrypted != "first_access"
        assert account.connected_at is not None

        audit = (await db_session.execute(select(AuditLog))).scalar_one()
        assert audit.action == AuditAction.SOCIAL_ACCOUNT_CONNECTED.value
        assert audit.tenant_id == workspace.tenant_id
        assert audit.target_id == account.id

    @pytest.mark.asyncio
    async def test_reconnect_updates_same_row(
        self, account_service, db_session, workspace, test_user
    ):
        first = await account_service.connect(workspace.id, test_user.id, _connect_data())
        first.mark_revoked()
        await db_session.commit()

        second = await account_service.connect(
            workspace.id,
            test_user.id,
            _connect_data(
                access_token="second_access",
                refresh_token="second_refresh",
                account_name="Acme Corporation",
                metadata={"vanity": "acme-corp", "follower_count": 10},
            ),
        )

        assert second.id == first.id
        assert await _count_accounts(db_session) == 1
        assert second.status == SocialAccountStatus.CONNECTED.value
        assert second.access_token == "second_access"
        assert second.refresh_token == "second_refresh"
        assert second.account_name == "Acme Corporation"
        assert second.account_metadata == {
            "organization_id": "org-1",
            "vanity": "acme-corp",
            "follower_count": 10,
        }

    @pytest.mark.asyncio
    async def test_same_platform_account_in_other_workspace_is_separate(
        self, account_service, db_session, workspace, test_user
    ):
        other = Workspace(id=str(uuid4()), tenant_id=workspace.tenant_id, name="Sales")
        db_session.add(other)
        await db_session.commit()

        first = await account_service.connect(workspace.id, test_user.id, _connect_data())
        second = await account_service.connect(other.id, test_user.id, _connect_data())

        assert first.id != second.id
        assert await _count_accounts(db_session) == 2

    def test_from_token_data(self, token_data):
        data = ConnectAccountData.from_token_data("linkedin", token_data)

        assert data.platform_account_id == "acct-123"
        assert data.refresh_token == "new_refresh_token"
        assert data.token_expires_at > datetime.now(UTC)
        assert "new_access_token" not in repr(data)

    def test_empty_access_token_rejected(self):
        with pytest.raises(ValidationError, match="access_token"):
            _connect_data(access_token="")


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_revokes_and_disconnects(self, account_service, oauth_service, make_account):
        account = await make_account()

        await account_service.disconnect(account)

        oauth_service.revoke_token.assert_awaited_once_with(account)
        assert account.status == SocialAccountStatus.DISCONNECTED.value
        assert account.disconnected_at is not None

    @pytest.mark.asyncio
    async def test_revoke_failure_still_disconnects(
        self, account_service, oauth_service, make_account, db_session
    ):
        oauth_service.revoke_token.side_effect = SocialAPIError("Failed to revoke token")
        account = await make_account(platform="youtube")

        await account_service.disconnect(account, user_id=account.connected_by_user_id)

        reloaded = await db_session.get(SocialAccount, account.id)
        assert reloaded.status == SocialAccountStatus.DISCONNECTED.value
        # Soft delete only
        assert await _count_accounts(db_session) == 1

        audit = (await db_session.execute(select(AuditLog))).scalar_one()
        assert audit.action == AuditAction.SOCIAL_ACCOUNT_DISCONNECTED.value


class TestRefresh:
    @pytest.mark.asyncio
    async def test_success_updates_tokens(self, account_service, oauth_service, make_account):
        account = await make_account(expires_in=timedelta(days=1))
        oauth_service.refresh_token.return_value = OAuthTokenData(
            access_token="fresh_access",
            refresh_token="fresh_refresh",
            expires_in=5184000,
            platform_account_id=account.platform_account_id,
            account_name=account.account_name,
        )

        refreshed = await account_service.refresh(account)

        assert refreshed.access_token == "fresh_access"
        assert refreshed.refresh_token == "fresh_refresh"
        assert as_utc(refreshed.token_expires_at) > datetime.now(UTC) + timedelta(days=59)
        assert refreshed.last_refreshed_at is not None

    @pytest.mark.asyncio
    async def test_missing_refresh_token_in_response_keeps_old_one(
        self, account_service, oauth_service, make_account
    ):
        account = await make_account(platform="youtube")
        oauth_service.refresh_token.return_value = OAuthTokenData(
            access_token="fresh_access",
            expires_in=3600,
            platform_account_id=account.platform_account_id,
            account_name=account.account_name,
        )

        refreshed = await account_service.refresh(account)

        assert refreshed.refresh_token == "stored_refresh_token"

    @pytest.mark.asyncio
    async def test_platform_failure_marks_expired(
        self, account_service, oauth_service, make_account, db_session
    ):
        account = await make_account()
        oauth_service.refresh_token.side_effect = SocialAuthError("invalid_grant")

        with pytest.raises(TokenRefreshFailedError) as exc_info:
            await account_service.refresh(account)

        assert "invalid_grant" in exc_info.value.message
        reloaded = await db_session.get(SocialAccount, account.id)
        assert reloaded.status == SocialAccountStatus.TOKEN_EXPIRED.value
        assert reloaded.access_token == "stored_access_token"

    @pytest.mark.asyncio
    async def test_no_refresh_token_propagates(self, account_service, oauth_service, make_account):
        account = await make_account(refresh_token=None)
        oauth_service.refresh_token.side_effect = NoRefreshTokenAvailableError()

        with pytest.raises(NoRefreshTokenAvailableError):
            await account_service.refresh(account)

        assert account.status == SocialAccountStatus.CONNECTED.value


class TestQueries:
    @pytest.mark.asyncio
    async def test_list_filters(self, account_service, make_account, workspace):
        await make_account(platform="linkedin")
        await make_account(platform="facebook")
        await make_account(platform="facebook", status=SocialAccountStatus.REVOKED.value)

        all_accounts = await account_service.list_for_workspace(workspace.id)
        facebook = await account_service.list_for_workspace(
            workspace.id, AccountListFilters(platform="facebook")
        )
        connected_facebook = await account_service.list_for_workspace(
            workspace.id, AccountListFilters(platform="facebook", connected=True)
        )
        revoked = await account_service.list_for_workspace(
            workspace.id, AccountListFilters(status="revoked")
        )

        assert all_accounts.total == 3
        assert facebook.total == 2
        assert connected_facebook.total == 1
        assert revoked.total == 1

    @pytest.mark.asyncio
    async def test_unknown_filter_values_are_ignored(self, account_service, make_account, workspace):
        await make_account()
        await make_account(platform="twitter")

        page = await account_service.list_for_workspace(
            workspace.id, AccountListFilters(status="bogus", platform="myspace")
        )

        assert page.total == 2

    @pytest.mark.asyncio
    async def test_pagination_and_cap(self, account_service, make_account, workspace):
        for _ in range(3):
            await make_account()

        page = await account_service.list_for_workspace(
            workspace.id, AccountListFilters(page=2, per_page=2)
        )
        capped = await account_service.list_for_workspace(
            workspace.id, AccountListFilters(per_page=500)
        )

        assert len(page.items) == 1
        assert page.total_pages == 2
        assert capped.per_page == 100

    @pytest.mark.asyncio
    async def test_get_by_workspace_and_id_is_scoped(
        self, account_service, make_account, workspace, db_session
    ):
        other = Workspace(id=str(uuid4()), tenant_id=workspace.tenant_id, name="Other")
        db_session.add(other)
        await db_session.commit()
        account = await make_account()

        found = await account_service.get_by_workspace_and_id(workspace.id, account.id)
        assert found.id == account.id

        with pytest.raises(SocialAccountNotFoundError):
            await account_service.get_by_workspace_and_id(other.id, account.id)

    @pytest.mark.asyncio
    async def test_get_by_id_missing(self, account_service):
        with pytest.raises(SocialAccountNotFoundError):
            await account_service.get_by_id(str(uuid4()))

    @pytest.mark.asyncio
    async def test_health_status(self, account_service, make_account, workspace):
        await make_account(platform="linkedin")
        await make_account(platform="facebook")
        await make_account(platform="facebook", status=SocialAccountStatus.TOKEN_EXPIRED.value)
        await make_account(platform="twitter", status=SocialAccountStatus.REVOKED.value)
        await make_account(platform="youtube", status=SocialAccountStatus.DISCONNECTED.value)

        health = await account_service.get_health_status(workspace.id)

        assert health.total_accounts == 5
        assert health.connected_count == 2
        assert health.expired_count == 1
        assert health.revoked_count == 1
        assert health.disconnected_count == 1
        assert health.by_platform["facebook"].total == 2
        assert health.by_platform["facebook"].connected == 1
        assert health.by_platform["whatsapp"].total == 0

    @pytest.mark.asyncio
    async def test_accounts_needing_refresh(self, account_service, make_account):
        soon = await make_account(expires_in=timedelta(days=2))
        await make_account(expires_in=timedelta(days=30))
        await make_account(expires_in=None)
        await make_account(expires_in=timedelta(days=1), status=SocialAccountStatus.REVOKED.value)

        accounts = await account_service.get_accounts_needing_refresh(days_before_expiry=7)

        assert [account.id for account in accounts] == [soon.id]

    @pytest.mark.asyncio
    async def test_update_status(self, account_service, make_account):
        account = await make_account()

        await account_service.update_status(account, SocialAccountStatus.DISCONNECTED)

        assert account.status == SocialAccountStatus.DISCONNECTED.value
        assert account.disconnected_at is not None
