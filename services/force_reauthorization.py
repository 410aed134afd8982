"""
Administrative bulk revocation of social accounts.

Used when a platform app's permissions change (new scopes, rotated
secret) and every tenant must reconnect. Revocations are committed
before any tenant is notified; a failed notification never undoes them.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.social.base import SocialPlatform
from infrastructure.database.models.admin import AuditAction, AuditTargetType
from infrastructure.database.models.social import SocialAccount, SocialAccountStatus
from infrastructure.database.models.user import Workspace
from services.audit_log import AuditLogService
from services.notifications import NotificationService

logger = logging.getLogger(__name__)

REVOKE_REASON = "admin_force_reauth"

REVOCABLE_STATUSES = (
    SocialAccountStatus.CONNECTED.value,
    SocialAccountStatus.TOKEN_EXPIRED.value,
)


@dataclass
class ForceReauthorizationResult:
    accounts_revoked: int
    tenants_affected: int
    tenants_notified: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class ForceReauthorizationService:
    def __init__(
        self,
        db: AsyncSession,
        notifications: Optional[NotificationService] = None,
        audit_log: Optional[AuditLogService] = None,
    ):
        self.db = db
        self.notifications = notifications or NotificationService(db)
        self.audit_log = audit_log or AuditLogService(db)

    async def execute(
        self,
        platforms: list[SocialPlatform | str],
        reason: str,
        admin_id: str,
        notify: bool = True,
    ) -> ForceReauthorizationResult:
        """
        Revoke every connected or token-expired account on ``platforms``, in all tenants.

        Args:
            platforms: Platforms whose accounts must reconnect
            reason: Human-readable reason shown to tenants and stored on each account
            admin_id: Admin performing the operation
            notify: Send each affected tenant an in-app notification

        Returns:
            Counts of revoked accounts, affected tenants and notified tenants
        """
        platform_values = [SocialPlatform(p).value for p in platforms]
        now = datetime.now(UTC)

        result = await self.db.execute(
            select(SocialAccount, Workspace.tenant_id)
            .join(Workspace, Workspace.id == SocialAccount.workspace_id)
            .where(
                SocialAccount.platform.in_(platform_values),
                SocialAccount.status.in_(REVOCABLE_STATUSES),
            )
        )
        rows = result.all()

        tenant_ids: set[str] = set()
        for account, tenant_id in rows:
            account.mark_revoked()
            account.merge_metadata(
                {
                    "revoke_reason": REVOKE_REASON,
                    "revoke_detail": reason,
                    "revoked_at": now.isoformat(),
                    "revoked_by_admin": admin_id,
                }
            )
            if tenant_id:
                tenant_ids.add(tenant_id)

        await self.db.commit()
        logger.warning(
            "Force re-authorization revoked %d accounts on %s across %d tenants",
            len(rows),
            ", ".join(platform_values),
            len(tenant_ids),
            extra={"user_id": admin_id},
        )

        tenants_notified = 0
        if notify:
            for tenant_id in sorted(tenant_ids):
                if await self._notify_tenant(tenant_id, platform_values, reason):
                    tenants_notified += 1

        outcome = ForceReauthorizationResult(
            accounts_revoked=len(rows),
            tenants_affected=len(tenant_ids),
            tenants_notified=tenants_notified,
        )

        await self.audit_log.record(
            action=AuditAction.FORCE_REAUTHORIZATION,
            target_type=AuditTargetType.SOCIAL_PLATFORM,
            target_id=",".join(platform_values),
            actor_id=admin_id,
            details={
                "platforms": platform_values,
                "reason": reason,
                **outcome.to_dict(),
            },
        )
        return outcome

    async def _notify_tenant(self, tenant_id: str, platforms: list[str], reason: str) -> bool:
        try:
            await self.notifications.notify_platform_reauthorization(tenant_id, platforms, reason)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to notify tenant %s of forced re-authorization: %s", tenant_id, e)
            return False
        return True
