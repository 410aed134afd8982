"""
Unit tests for admin-forced re-authorization.
"""

from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from infrastructure.database.models import (
    AuditAction,
    AuditLog,
    Notification,
    NotificationType,
    SocialAccount,
    SocialAccountStatus,
    Tenant,
    Workspace,
)
from services.force_reauthorization import REVOKE_REASON, ForceReauthorizationService


@pytest.fixture
async def second_workspace(db_session) -> Workspace:
    tenant = Tenant(id=str(uuid4()), name="Globex")
    db_session.add(tenant)
    await db_session.flush()
    workspace = Workspace(id=str(uuid4()), tenant_id=tenant.id, name="Globex Social")
    db_session.add(workspace)
    await db_session.commit()
    return workspace


@pytest.fixture
async def third_workspace(db_session) -> Workspace:
    tenant = Tenant(id=str(uuid4()), name="Initech")
    db_session.add(tenant)
    await db_session.flush()
    workspace = Workspace(id=str(uuid4()), tenant_id=tenant.id, name="Initech Social")
    db_session.add(workspace)
    await db_session.commit()
    return workspace


async def _status(session_factory, account_id: str) -> str:
    async with session_factory() as db:
        return (await db.get(SocialAccount, account_id)).status


class TestForceReauthorization:
    @pytest.mark.asyncio
    async def test_revokes_across_tenants(
        self, db_session, session_factory, make_account, workspace, second_workspace
    ):
        admin_id = str(uuid4())
        fb_one = await make_account(platform="facebook")
        fb_two = await make_account(
            platform="facebook",
            status=SocialAccountStatus.TOKEN_EXPIRED.value,
            workspace_id=second_workspace.id,
        )
        ig = await make_account(platform="instagram", workspace_id=second_workspace.id)
        linkedin = await make_account(platform="linkedin")
        disconnected = await make_account(
            platform="facebook", status=SocialAccountStatus.DISCONNECTED.value
        )

        result = await ForceReauthorizationService(db_session).execute(
            ["facebook", "instagram"], "New permissions required", admin_id
        )

        assert result.accounts_revoked == 3
        assert result.tenants_affected == 2
        assert result.tenants_notified == 2

        for account in (fb_one, fb_two, ig):
            assert await _status(session_factory, account.id) == SocialAccountStatus.REVOKED.value
        assert await _status(session_factory, linkedin.id) == SocialAccountStatus.CONNECTED.value
        assert (
            await _status(session_factory, disconnected.id)
            == SocialAccountStatus.DISCONNECTED.value
        )

        assert fb_one.get_metadata("revoke_reason") == REVOKE_REASON
        assert fb_one.get_metadata("revoke_detail") == "New permissions required"
        assert fb_one.get_metadata("revoked_by_admin") == admin_id

        notifications = (await db_session.execute(select(Notification))).scalars().all()
        assert {n.tenant_id for n in notifications} == {
            workspace.tenant_id,
            second_workspace.tenant_id,
        }
        assert all(n.type == NotificationType.PLATFORM_REAUTH_REQUIRED.value for n in notifications)
        assert all(n.user_id is None for n in notifications)
        assert "New permissions required" in notifications[0].message

        audit = (await db_session.execute(select(AuditLog))).scalar_one()
        assert audit.action == AuditAction.FORCE_REAUTHORIZATION.value
        assert audit.actor_id == admin_id
        assert audit.details["accounts_revoked"] == 3

    @pytest.mark.asyncio
    async def test_without_notifications(self, db_session, make_account):
        await make_account(platform="youtube")

        result = await ForceReauthorizationService(db_session).execute(
            ["youtube"], "Rotated secret", str(uuid4()), notify=False
        )

        assert result.accounts_revoked == 1
        assert result.tenants_affected == 1
        assert result.tenants_notified == 0
        assert (await db_session.execute(select(Notification))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_notification_failure_keeps_revocations(
        self, db_session, session_factory, make_account
    ):
        account = await make_account(platform="twitter")
        notifications = Mock()
        notifications.notify_platform_reauthorization = AsyncMock(
            side_effect=OperationalError("INSERT INTO notifications", {}, Exception("db down"))
        )

        result = await ForceReauthorizationService(db_session, notifications=notifications).execute(
            ["twitter"], "Scope change", str(uuid4())
        )

        assert result.accounts_revoked == 1
        assert result.tenants_notified == 0
        assert await _status(session_factory, account.id) == SocialAccountStatus.REVOKED.value

    @pytest.mark.asyncio
    async def test_no_matching_accounts(self, db_session, make_account):
        await make_account(platform="linkedin")

        result = await ForceReauthorizationService(db_session).execute(
            ["whatsapp"], "Scope change", str(uuid4())
        )

        assert result.to_dict() == {
            "accounts_revoked": 0,
            "tenants_affected": 0,
            "tenants_notified": 0,
        }

    @pytest.mark.asyncio
    async def test_already_revoked_tenant_is_left_alone(
        self,
        db_session,
        session_factory,
        make_account,
        workspace,
        second_workspace,
        third_workspace,
    ):
        connected = await make_account(platform="facebook")
        expired = await make_account(
            platform="facebook",
            status=SocialAccountStatus.TOKEN_EXPIRED.value,
            workspace_id=second_workspace.id,
        )
        revoked = await make_account(
            platform="facebook",
            status=SocialAccountStatus.REVOKED.value,
            metadata={"source": "manual"},
            workspace_id=third_workspace.id,
        )

        result = await ForceReauthorizationService(db_session).execute(
            ["facebook"], "App review changes", str(uuid4())
        )

        assert result.accounts_revoked == 2
        assert result.tenants_affected == 2
        assert result.tenants_notified == 2

        for account in (connected, expired):
            assert await _status(session_factory, account.id) == SocialAccountStatus.REVOKED.value

        async with session_factory() as db:
            untouched = await db.get(SocialAccount, revoked.id)
        assert untouched.status == SocialAccountStatus.REVOKED.value
        assert untouched.account_metadata == {"source": "manual"}
        assert untouched.get_metadata("revoke_reason") is None

        notifications = (await db_session.execute(select(Notification))).scalars().all()
        notified = {n.tenant_id for n in notifications}
        assert notified == {workspace.tenant_id, second_workspace.tenant_id}
        assert third_workspace.tenant_id not in notified
