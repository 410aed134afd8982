"""
Social account lifecycle: connect, disconnect, refresh and health reporting.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.social.base import OAuthTokenData, SocialAdapterError, SocialPlatform
from infrastructure.database.models.admin import AuditAction, AuditTargetType
from infrastructure.database.models.social import SocialAccount, SocialAccountStatus
from infrastructure.database.models.user import Workspace
from services.audit_log import AuditLogService
from services.exceptions import SocialAccountNotFoundError, TokenRefreshFailedError
from services.oauth_service import OAuthService

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 15
MAX_PER_PAGE = 100


class ConnectAccountData(BaseModel):
    """Account identity and tokens returned by a completed OAuth flow."""

    platform: SocialPlatform
    platform_account_id: str
    account_name: str
    access_token: str = Field(min_length=1, repr=False)
    refresh_token: Optional[str] = Field(default=None, repr=False)
    token_expires_at: Optional[datetime] = None
    account_username: Optional[str] = None
    profile_image_url: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    @classmethod
    def from_token_data(
        cls, platform: SocialPlatform | str, token_data: OAuthTokenData
    ) -> "ConnectAccountData":
        return cls(
            platform=SocialPlatform(platform),
            platform_account_id=token_data.platform_account_id,
            account_name=token_data.account_name,
            access_token=token_data.access_token,
            refresh_token=token_data.refresh_token,
            token_expires_at=token_data.expires_at(),
            account_username=token_data.account_username,
            profile_image_url=token_data.profile_image_url,
            metadata=token_data.metadata,
        )


class AccountListFilters(BaseModel):
    status: Optional[str] = None
    platform: Optional[str] = None
    connected: bool = False
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=DEFAULT_PER_PAGE, ge=1)


class AccountPage(BaseModel):
    """One page of social accounts."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    items: list[SocialAccount]
    total: int
    page: int
    per_page: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.per_page) if self.total else 0


class PlatformHealth(BaseModel):
    total: int = 0
    connected: int = 0


class HealthStatus(BaseModel):
    """Connection health of a workspace's accounts."""

    total_accounts: int
    connected_count: int
    expired_count: int
    revoked_count: int
    disconnected_count: int
    by_platform: dict[str, PlatformHealth]


class SocialAccountService:
    """Persists social accounts and drives their token lifecycle."""

    def __init__(
        self,
        db: AsyncSession,
        oauth_service: OAuthService,
        audit_log: Optional[AuditLogService] = None,
    ):
        self.db = db
        self.oauth_service = oauth_service
        self.audit_log = audit_log

    # ── Queries ───────────────────────────────────────────────────────────────

    async def list_for_workspace(
        self, workspace_id: str, filters: Optional[AccountListFilters] = None
    ) -> AccountPage:
        """
        List a workspace's accounts, newest connection first.

        Unknown status or platform filter values are ignored. ``per_page`` is
        capped at 100.
        """
        filters = filters or AccountListFilters()
        per_page = min(filters.per_page, MAX_PER_PAGE)

        query = select(SocialAccount).where(SocialAccount.workspace_id == workspace_id)
        if filters.status in {s.value for s in SocialAccountStatus}:
            query = query.where(SocialAccount.status == filters.status)
        if filters.platform in {p.value for p in SocialPlatform}:
            query = query.where(SocialAccount.platform == filters.platform)
        if filters.connected:
            query = query.where(SocialAccount.status == SocialAccountStatus.CONNECTED.value)

        total = (
            await self.db.execute(select(func.count()).select_from(query.subquery()))
        ).scalar_one()

        result = await self.db.execute(
            query.order_by(SocialAccount.connected_at.desc())
            .offset((filters.page - 1) * per_page)
            .limit(per_page)
        )
        return AccountPage(
            items=list(result.scalars().all()),
            total=total,
            page=filters.page,
            per_page=per_page,
        )

    async def get_by_id(self, account_id: str) -> SocialAccount:
        """
        Raises:
            SocialAccountNotFoundError: No account with this id
        """
        account = await self.db.get(SocialAccount, account_id)
        if account is None:
            raise SocialAccountNotFoundError()
        return account

    async def get_by_workspace_and_id(self, workspace_id: str, account_id: str) -> SocialAccount:
        """Load an account only if it belongs to ``workspace_id``."""
        result = await self.db.execute(
            select(SocialAccount).where(
                SocialAccount.workspace_id == workspace_id,
                SocialAccount.id == account_id,
            )
        )
        account = result.scalar_one_or_none()
        if account is None:
            raise SocialAccountNotFoundError(field="social_account")
        return account

    async def get_accounts_needing_refresh(self, days_before_expiry: int = 7) -> list[SocialAccount]:
        """Connected accounts whose token expires within ``days_before_expiry`` days."""
        cutoff = datetime.now(UTC) + timedelta(days=days_before_expiry)
        result = await self.db.execute(
            select(SocialAccount)
            .where(
                SocialAccount.status == SocialAccountStatus.CONNECTED.value,
                SocialAccount.token_expires_at.is_not(None),
                SocialAccount.token_expires_at <= cutoff,
            )
            .order_by(SocialAccount.token_expires_at)
        )
        return list(result.scalars().all())

    async def get_health_status(self, workspace_id: str) -> HealthStatus:
        result = await self.db.execute(
            select(SocialAccount.platform, SocialAccount.status, func.count(SocialAccount.id))
            .where(SocialAccount.workspace_id == workspace_id)
            .group_by(SocialAccount.platform, SocialAccount.status)
        )

        by_status: dict[str, int] = {}
        by_platform = {platform.value: PlatformHealth() for platform in SocialPlatform}
        for platform, status, count in result.all():
            by_status[status] = by_status.get(status, 0) + count
            health = by_platform.setdefault(platform, PlatformHealth())
            health.total += count
            if status == SocialAccountStatus.CONNECTED.value:
                health.connected += count

        return HealthStatus(
            total_accounts=sum(by_status.values()),
            connected_count=by_status.get(SocialAccountStatus.CONNECTED.value, 0),
            expired_count=by_status.get(SocialAccountStatus.TOKEN_EXPIRED.value, 0),
            revoked_count=by_status.get(SocialAccountStatus.REVOKED.value, 0),
            disconnected_count=by_status.get(SocialAccountStatus.DISCONNECTED.value, 0),
            by_platform=by_platform,
        )

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def connect(
        self, workspace_id: str, user_id: str, data: ConnectAccountData
    ) -> SocialAccount:
        """
        Create the account, or reconnect it if the platform account is already
        linked to the workspace.

        Reconnecting replaces the tokens, refreshes the profile fields and
        merges the metadata; it never creates a second row.
        """
        platform = SocialPlatform(data.platform).value
        result = await self.db.execute(
            select(SocialAccount).where(
                SocialAccount.workspace_id == workspace_id,
                SocialAccount.platform == platform,
                SocialAccount.platform_account_id == data.platform_account_id,
            )
        )
        account = result.scalar_one_or_none()

        if account is not None:
            account.update_tokens(data.access_token, data.refresh_token, data.token_expires_at)
            account.account_name = data.account_name
            account.account_username = data.account_username
            account.profile_image_url = data.profile_image_url
            account.disconnected_at = None
            account.merge_metadata(data.metadata or {})
            logger.info(
                "Social account reconnected",
                extra={"account_id": account.id, "platform": platform},
            )
        else:
            now = datetime.now(UTC)
            account = SocialAccount(
                workspace_id=workspace_id,
                connected_by_user_id=user_id,
                platform=platform,
                platform_account_id=data.platform_account_id,
                account_name=data.account_name,
                account_username=data.account_username,
                profile_image_url=data.profile_image_url,
                status=SocialAccountStatus.CONNECTED.value,
                token_expires_at=data.token_expires_at,
                connected_at=now,
                last_refreshed_at=now,
                account_metadata=data.metadata,
            )
            account.access_token = data.access_token
            account.refresh_token = data.refresh_token
            self.db.add(account)
            await self.db.flush()
            logger.info(
                "Social account connected",
                extra={"account_id": account.id, "platform": platform, "user_id": user_id},
            )

        await self._audit(account, AuditAction.SOCIAL_ACCOUNT_CONNECTED, user_id)
        await self.db.commit()
        await self.db.refresh(account)
        return account

    async def disconnect(self, account: SocialAccount, user_id: Optional[str] = None) -> None:
        """
        Revoke the token at the platform (best effort) and soft-disconnect the account.
        """
        try:
            await self.oauth_service.revoke_token(account)
        except SocialAdapterError as e:
            # The platform may be unavailable; the local disconnect still applies
            logger.warning(
                "Failed to revoke token on platform for account %s: %s", account.id, e
            )

        account.disconnect()
        await self._audit(account, AuditAction.SOCIAL_ACCOUNT_DISCONNECTED, user_id)
        await self.db.commit()
        logger.info(
            "Social account disconnected",
            extra={"account_id": account.id, "platform": account.platform},
        )

    async def refresh(self, account: SocialAccount) -> SocialAccount:
        """
        Refresh the account's tokens.

        Facebook and Instagram refresh through the long-lived token exchange
        and need no refresh token.

        Raises:
            NoRefreshTokenAvailableError: Other platforms without a refresh token
            TokenRefreshFailedError: The platform rejected the refresh; the
                account is marked token_expired
        """
        try:
            token_data = await self.oauth_service.refresh_token(account)
        except SocialAdapterError as e:
            account.mark_token_expired()
            await self.db.commit()
            logger.error("Token refresh failed for account %s: %s", account.id, e)
            raise TokenRefreshFailedError(f"Failed to refresh token: {e}", field="refresh") from e

        self.apply_token_data(account, token_data)
        await self.db.commit()
        logger.info(
            "Social account token refreshed",
            extra={"account_id": account.id, "platform": account.platform},
        )
        return account

    @staticmethod
    def apply_token_data(account: SocialAccount, token_data: OAuthTokenData) -> None:
        """Store refreshed tokens on the account; a missing refresh token keeps the old one."""
        account.update_tokens(
            token_data.access_token,
            token_data.refresh_token or account.refresh_token,
            token_data.expires_at(),
        )
        if token_data.metadata:
            account.merge_metadata(token_data.metadata)

    async def update_status(self, account: SocialAccount, status: SocialAccountStatus) -> SocialAccount:
        account.status = SocialAccountStatus(status).value
        if account.status == SocialAccountStatus.DISCONNECTED.value:
            account.disconnected_at = datetime.now(UTC)
        await self.db.commit()
        logger.info("Social account %s status updated to %s", account.id, account.status)
        return account

    async def _audit(self, account: SocialAccount, action: AuditAction, user_id: Optional[str]) -> None:
        if self.audit_log is None:
            return
        workspace = await self.db.get(Workspace, account.workspace_id)
        if workspace is None:
            return
        await self.audit_log.record(
            action=action,
            tenant_id=workspace.tenant_id,
            actor_id=user_id,
            target_type=AuditTargetType.SOCIAL_ACCOUNT,
            target_id=account.id,
            details={"platform": account.platform, "platform_account_id": account.platform_account_id},
            commit=False,
        )
