"""
Background refresh of OAuth tokens that are about to expire.

Every run finds connected accounts whose token expires within the
configured window and refreshes them. Accounts that can't be refreshed
are flagged for reconnection and the user who connected them is told,
at most once a day per account.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from adapters.social.base import SocialAdapterError, SocialPlatform
from infrastructure.config import settings
from infrastructure.database import async_session_maker
from infrastructure.database.models.social import SocialAccount
from services.notifications import NotificationService
from services.oauth_service import OAuthService, build_oauth_service
from services.social_account_service import SocialAccountService

logger = logging.getLogger(__name__)

# Substrings of platform errors that mean the grant is gone for good
PERMANENT_ERROR_INDICATORS = (
    "revoked",
    "invalid_grant",
    "access_denied",
    "unauthorized",
    "token has been expired or revoked",
    "user has not authorized",
)


class RefreshOutcome(str, Enum):
    REFRESHED = "refreshed"
    NEEDS_RECONNECT = "needs_reconnect"
    FAILED = "failed"


@dataclass
class RefreshSummary:
    total_processed: int = 0
    refreshed: int = 0
    needs_reconnect: int = 0
    failed: int = 0

    def count(self, outcome: RefreshOutcome) -> None:
        self.total_processed += 1
        if outcome == RefreshOutcome.REFRESHED:
            self.refreshed += 1
        elif outcome == RefreshOutcome.NEEDS_RECONNECT:
            self.needs_reconnect += 1
        else:
            self.failed += 1

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def is_permanent_error(error: Exception) -> bool:
    message = str(error).lower()
    return any(indicator in message for indicator in PERMANENT_ERROR_INDICATORS)


class TokenRefreshJob:
    """Periodic token refresh loop."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session_maker,
        oauth_service_factory: Callable[[AsyncSession], OAuthService] = build_oauth_service,
        days_before_expiry: Optional[int] = None,
        check_interval: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.oauth_service_factory = oauth_service_factory
        self.days_before_expiry = (
            days_before_expiry
            if days_before_expiry is not None
            else settings.token_refresh_days_before_expiry
        )
        self.check_interval = check_interval or settings.token_refresh_interval_seconds
        self.is_running = False

    async def start(self):
        """Run refresh passes until stop() is called."""
        if self.is_running:
            logger.warning("Token refresh job is already running")
            return

        self.is_running = True
        logger.info(
            "Token refresh job started - checking every %d seconds", self.check_interval
        )

        while self.is_running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Token refresh job error: {e}", exc_info=True)

            await asyncio.sleep(self.check_interval)

    async def stop(self):
        if not self.is_running:
            return
        self.is_running = False
        logger.info("Token refresh job stopped")

    async def run_once(self) -> RefreshSummary:
        """Refresh every account whose token expires within the window."""
        summary = RefreshSummary()

        async with self.session_factory() as db:
            account_service = SocialAccountService(db, self.oauth_service_factory(db))
            accounts = await account_service.get_accounts_needing_refresh(self.days_before_expiry)
            account_ids = [account.id for account in accounts]

        if not account_ids:
            logger.debug("No accounts with expiring tokens found")
            return summary

        logger.info("Found %d accounts with expiring tokens", len(account_ids))

        # One session per account so a failure never expires the others
        for account_id in account_ids:
            summary.count(await self._refresh_account(account_id))

        logger.info("Token refresh completed: %s", summary.to_dict())
        return summary

    async def _refresh_account(self, account_id: str) -> RefreshOutcome:
        async with self.session_factory() as db:
            account = await db.get(SocialAccount, account_id)
            if account is None:
                return RefreshOutcome.FAILED

            try:
                outcome = await self.process_account(
                    account, self.oauth_service_factory(db), NotificationService(db)
                )
                await db.commit()
            except Exception as e:
                await db.rollback()
                logger.error("Failed to process account %s: %s", account_id, e, exc_info=True)
                return RefreshOutcome.FAILED

        return outcome

    async def process_account(
        self,
        account: SocialAccount,
        oauth_service: OAuthService,
        notifications: NotificationService,
    ) -> RefreshOutcome:
        """
        Refresh one account; the caller commits.

        Facebook and Instagram refresh through the long-lived token exchange;
        any other account without a refresh token needs a reconnect.
        """
        platform = SocialPlatform(account.platform)
        if not account.refresh_token and not platform.uses_graph_token_exchange:
            logger.debug("No refresh token available for account %s", account.id)
            await notifications.notify_reconnect_required(account, "No refresh token available")
            return RefreshOutcome.NEEDS_RECONNECT

        try:
            token_data = await oauth_service.refresh_token(account)
        except SocialAdapterError as e:
            logger.error(
                "Token refresh failed",
                extra={"account_id": account.id, "platform": platform.value, "error": str(e)},
            )
            if is_permanent_error(e):
                account.mark_revoked()
                await notifications.notify_reconnect_required(account, "Access was revoked")
                return RefreshOutcome.NEEDS_RECONNECT
            return RefreshOutcome.FAILED

        SocialAccountService.apply_token_data(account, token_data)
        logger.info(
            "Token refreshed successfully",
            extra={"account_id": account.id, "platform": platform.value},
        )
        return RefreshOutcome.REFRESHED
