"""
In-app notifications raised by the social subsystem.

Only the in-app record is created here; e-mail and push delivery belong
to the notification pipeline that reads these rows.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.models.admin import Notification, NotificationType
from infrastructure.database.models.social import SocialAccount

logger = logging.getLogger(__name__)

RECONNECT_NOTIFICATION_COOLDOWN = timedelta(days=1)


class NotificationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def notify_user(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
        tenant_id: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            tenant_id=tenant_id,
            user_id=user_id,
            type=type.value,
            title=title,
            message=message,
            data=data,
        )
        self.db.add(notification)
        await self.db.flush()
        return notification

    async def notify_tenant(
        self,
        tenant_id: str,
        type: NotificationType,
        title: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> Notification:
        """Tenant-wide notification, shown to every member of the tenant."""
        notification = Notification(
            tenant_id=tenant_id,
            user_id=None,
            type=type.value,
            title=title,
            message=message,
            data=data,
        )
        self.db.add(notification)
        await self.db.flush()
        return notification

    async def notify_platform_reauthorization(
        self, tenant_id: str, platforms: list[str], reason: str
    ) -> Notification:
        names = ", ".join(platform.capitalize() for platform in platforms)
        return await self.notify_tenant(
            tenant_id,
            NotificationType.PLATFORM_REAUTH_REQUIRED,
            title="Social Accounts Need Reconnection",
            message=(
                f"Your {names} accounts were disconnected and must be reconnected "
                f"to keep publishing. Reason: {reason}"
            ),
            data={"platforms": platforms, "reason": reason},
        )

    async def was_reconnect_notified_recently(
        self, user_id: str, account_id: str, now: Optional[datetime] = None
    ) -> bool:
        """True if this user got a reconnect notice for this account within a day."""
        since = (now or datetime.now(UTC)) - RECONNECT_NOTIFICATION_COOLDOWN
        result = await self.db.execute(
            select(Notification).where(
                Notification.user_id == user_id,
                Notification.type == NotificationType.SOCIAL_ACCOUNT_RECONNECT_REQUIRED.value,
                Notification.created_at > since,
            )
        )
        # JSON containment differs between backends; match on the loaded rows
        return any((n.data or {}).get("account_id") == account_id for n in result.scalars())

    async def notify_reconnect_required(
        self, account: SocialAccount, reason: str
    ) -> Optional[Notification]:
        """
        Ask the user who connected ``account`` to reconnect it.

        At most one notice per account and user per day; returns None when
        skipped or when nobody can be notified.
        """
        user_id = account.connected_by_user_id
        if user_id is None:
            logger.warning("No user to notify for account %s", account.id)
            return None

        if await self.was_reconnect_notified_recently(user_id, account.id):
            logger.debug("Skipping reconnect notification for account %s: sent recently", account.id)
            return None

        return await self.notify_user(
            user_id,
            NotificationType.SOCIAL_ACCOUNT_RECONNECT_REQUIRED,
            title="Social Account Needs Reconnection",
            message=(
                f'Your {account.platform} account "{account.account_name}" needs to be '
                f"reconnected. {reason}"
            ),
            data={
                "account_id": account.id,
                "workspace_id": account.workspace_id,
                "platform": account.platform,
                "reason": reason,
                "action_url": f"/workspaces/{account.workspace_id}/settings/social-accounts",
            },
        )
