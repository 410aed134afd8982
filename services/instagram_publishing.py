"""
Deferred publishing of Instagram video containers.

Video and story-video containers can take minutes to process. Instead of
holding a request open, the container is persisted and this worker polls
it with exponential backoff, publishing once Instagram reports FINISHED.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from adapters.social.base import PlatformCredentials, SocialAPIError, SocialPlatform
from adapters.social.clients import InstagramClient
from adapters.social.clients.base import ApiResult
from adapters.social.clients.instagram_client import (
    STATUS_FINISHED,
    STATUS_IN_PROGRESS,
    STORY_PROCESSING_FAILED,
    VIDEO_PROCESSING_FAILED,
)
from infrastructure.cache import get_cache_store
from infrastructure.config import Settings, settings as default_settings
from infrastructure.database import async_session_maker
from infrastructure.database.models.social import (
    ContainerMediaKind,
    ContainerState,
    InstagramMediaContainer,
    SocialAccount,
)
from services.credential_resolver import PlatformCredentialResolver
from services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

ACTIVE_STATES = (ContainerState.PENDING.value, ContainerState.PROCESSING.value)

ClientFactory = Callable[[PlatformCredentials], InstagramClient]


def default_client_factory(credentials: PlatformCredentials) -> InstagramClient:
    return InstagramClient(
        credentials,
        rate_limiter=RateLimiter(get_cache_store()),
        timeout=default_settings.social_http_timeout,
        poll_interval=default_settings.instagram_poll_interval,
        max_poll_attempts=default_settings.instagram_poll_max_attempts,
    )


def poll_backoff(attempts: int, interval: float, max_backoff: float) -> float:
    """Seconds until the next poll after ``attempts`` status checks."""
    return min(interval * 2 ** max(attempts - 1, 0), max_backoff)


def processing_failed_message(container: InstagramMediaContainer) -> str:
    if container.media_kind == ContainerMediaKind.STORY_VIDEO.value:
        return STORY_PROCESSING_FAILED
    return VIDEO_PROCESSING_FAILED


async def enqueue_container(
    db: AsyncSession,
    client: InstagramClient,
    account: SocialAccount,
    media_url: str,
    caption: str = "",
    media_kind: ContainerMediaKind = ContainerMediaKind.VIDEO,
    options: Optional[dict] = None,
    max_attempts: Optional[int] = None,
) -> InstagramMediaContainer:
    """
    Create an Instagram container and persist it for the worker to publish.

    Args:
        db: Database session; the row is committed here
        client: Instagram client used to create the container
        account: Connected Instagram account
        media_url: Public URL of the video
        caption: Caption for feed videos
        media_kind: Feed video or story video
        options: Extra container parameters (thumb_offset, location_id)
        max_attempts: Status checks before the container is given up on

    Returns:
        The pending container row

    Raises:
        SocialAPIError: If Instagram refused to create the container
    """
    ig_user_id = account.get_metadata("ig_user_id") or account.platform_account_id

    if media_kind == ContainerMediaKind.STORY_VIDEO:
        result = await client.create_story_container(
            ig_user_id, account.access_token, media_url, media_type="VIDEO"
        )
    else:
        result = await client.create_video_container(
            ig_user_id, account.access_token, media_url, caption, options
        )

    if not result.success:
        raise SocialAPIError(f"Failed to create Instagram container: {result.error}")

    container = InstagramMediaContainer(
        social_account_id=account.id,
        ig_user_id=ig_user_id,
        container_id=result["container_id"],
        media_kind=media_kind.value,
        caption=caption or None,
        state=ContainerState.PENDING.value,
        attempts=0,
        max_attempts=max_attempts or default_settings.instagram_poll_max_attempts,
        next_poll_at=datetime.now(UTC),
    )
    db.add(container)
    await db.commit()
    await db.refresh(container)

    logger.info(
        "Instagram container %s queued for account %s", container.container_id, account.id
    )
    return container


class InstagramContainerWorker:
    """Polls pending Instagram containers and publishes the finished ones."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session_maker,
        client_factory: ClientFactory = default_client_factory,
        config: Optional[Settings] = None,
    ):
        self.session_factory = session_factory
        self.client_factory = client_factory
        self.settings = config or default_settings
        self.poll_interval = self.settings.instagram_poll_interval
        self.max_backoff = self.settings.instagram_poll_max_backoff
        self.check_interval = self.settings.instagram_worker_interval
        self.batch_size = self.settings.instagram_worker_batch_size
        self.is_running = False

    async def start(self):
        """Poll due containers until stop() is called."""
        if self.is_running:
            logger.warning("Instagram container worker is already running")
            return

        self.is_running = True
        logger.info(
            "Instagram container worker started - checking every %d seconds", self.check_interval
        )

        while self.is_running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Instagram container worker error: {e}", exc_info=True)

            await asyncio.sleep(self.check_interval)

    async def stop(self):
        if not self.is_running:
            return
        self.is_running = False
        logger.info("Instagram container worker stopped")

    async def run_once(self, now: Optional[datetime] = None) -> int:
        """
        Poll every container that is due.

        Returns:
            Number of containers polled
        """
        now = now or datetime.now(UTC)

        async with self.session_factory() as db:
            result = await db.execute(
                select(InstagramMediaContainer.id)
                .where(
                    InstagramMediaContainer.state.in_(ACTIVE_STATES),
                    or_(
                        InstagramMediaContainer.next_poll_at.is_(None),
                        InstagramMediaContainer.next_poll_at <= now,
                    ),
                )
                .order_by(InstagramMediaContainer.next_poll_at)
                .limit(self.batch_size)
            )
            container_ids = list(result.scalars().all())
            if not container_ids:
                return 0

            credentials = await PlatformCredentialResolver(db, self.settings).resolve(
                SocialPlatform.INSTAGRAM
            )

        logger.debug("Polling %d Instagram containers", len(container_ids))
        client = self.client_factory(credentials)

        # One session per container so a failure never expires the others
        for container_id in container_ids:
            await self._poll_container(container_id, client, now)

        return len(container_ids)

    async def _poll_container(
        self, container_id: str, client: InstagramClient, now: datetime
    ) -> None:
        async with self.session_factory() as db:
            container = await db.get(InstagramMediaContainer, container_id)
            if container is None:
                return
            account = await db.get(SocialAccount, container.social_account_id)

            try:
                if account is None:
                    self._fail(container, "Social account is not connected")
                else:
                    await self.process_container(container, account, client, now)
                await db.commit()
            except Exception as e:
                await db.rollback()
                logger.error(
                    "Failed to process Instagram container %s: %s", container_id, e, exc_info=True
                )

    async def process_container(
        self,
        container: InstagramMediaContainer,
        account: SocialAccount,
        client: InstagramClient,
        now: datetime,
    ) -> None:
        """Advance one container by a single status check; the caller commits."""
        if not account.is_connected():
            self._fail(container, "Social account is not connected")
            return

        status = await client.get_container_status(container.container_id, account.access_token)

        if status.rate_limited:
            # Budget exhausted: try again later without spending an attempt
            container.next_poll_at = now + timedelta(seconds=self.max_backoff)
            logger.debug("Instagram container %s deferred by rate limit", container.container_id)
            return

        if not status.success:
            container.attempts += 1
            container.error_message = status.error
            self._schedule_or_fail(container, now, processing_failed_message(container))
            return

        status_code = status.get("status_code")
        container.last_status_code = status_code

        if status_code == STATUS_FINISHED:
            await self._publish(container, account, client, now)
        elif status_code == STATUS_IN_PROGRESS:
            container.state = ContainerState.PROCESSING.value
            container.attempts += 1
            self._schedule_or_fail(container, now, processing_failed_message(container))
        else:
            self._fail(container, processing_failed_message(container))

    async def _publish(
        self,
        container: InstagramMediaContainer,
        account: SocialAccount,
        client: InstagramClient,
        now: datetime,
    ) -> None:
        result: ApiResult = await client.publish_container(
            container.ig_user_id,
            account.access_token,
            container.container_id,
            with_permalink=container.media_kind != ContainerMediaKind.STORY_VIDEO.value,
        )
        if result.rate_limited:
            # Container stays FINISHED on Instagram's side; publish on a later poll
            container.next_poll_at = now + timedelta(seconds=self.max_backoff)
            logger.debug(
                "Instagram container %s publish deferred by rate limit", container.container_id
            )
            return
        if not result.success:
            self._fail(container, result.error or "Failed to publish Instagram media")
            return

        container.state = ContainerState.FINISHED.value
        container.published_media_id = result["media_id"]
        container.permalink = result.get("permalink")
        container.published_at = now
        container.next_poll_at = None
        container.error_message = None
        logger.info(
            "Instagram container %s published as media %s",
            container.container_id,
            container.published_media_id,
        )

    def _schedule_or_fail(
        self, container: InstagramMediaContainer, now: datetime, failure_message: str
    ) -> None:
        if container.attempts >= container.max_attempts:
            self._fail(container, failure_message)
            return
        delay = poll_backoff(container.attempts, self.poll_interval, self.max_backoff)
        container.next_poll_at = now + timedelta(seconds=delay)

    @staticmethod
    def _fail(container: InstagramMediaContainer, message: str) -> None:
        container.state = ContainerState.ERROR.value
        container.error_message = message
        container.next_poll_at = None
        logger.warning(
            "Instagram container %s failed: %s (last status %s)",
            container.container_id,
            message,
            container.last_status_code or "-",
        )
