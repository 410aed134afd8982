"""
Instagram Graph API client for Business accounts.

Publishing is a two-step flow: create a media container, then publish it
with ``media_publish``. Video and story-video containers must finish
server-side processing first; ``wait_for_container`` polls for that with
non-blocking sleeps, while long-running publishes can hand the container
to ``InstagramContainerWorker`` instead.
"""

import asyncio
import json
from datetime import datetime
from typing import Any, Optional

import httpx

from ..base import PlatformCredentials, SocialPlatform
from .base import ApiResult, GraphApiClient

CONTAINER_TIMEOUT = 60

STATUS_FINISHED = "FINISHED"
STATUS_IN_PROGRESS = "IN_PROGRESS"

VIDEO_PROCESSING_FAILED = "Video processing failed or timed out"
STORY_PROCESSING_FAILED = "Story video processing failed or timed out"

DEFAULT_MEDIA_FIELDS = "id,caption,media_type,media_url,permalink,timestamp,like_count,comments_count"
DEFAULT_COMMENT_FIELDS = "id,text,username,timestamp,like_count"
DEFAULT_MEDIA_METRICS = ["impressions", "reach", "saved", "video_views"]
DEFAULT_ACCOUNT_METRICS = [
    "impressions",
    "reach",
    "profile_views",
    "follower_count",
    "engagement",
    "likes",
    "comments",
    "shares",
    "saves",
    "video_views",
]


class ContainerProcessingError(ValueError):
    """A media container did not reach FINISHED."""


def permalink_fallback(media_id: str) -> str:
    return f"https://www.instagram.com/p/{media_id}"


class InstagramClient(GraphApiClient):
    """Instagram Graph API client (200 requests per hour per app)."""

    platform = SocialPlatform.INSTAGRAM

    def __init__(
        self,
        credentials: PlatformCredentials,
        rate_limiter=None,
        timeout: int = 30,
        poll_interval: float = 2.0,
        max_poll_attempts: int = 30,
    ):
        """
        Args:
            credentials: Meta app credentials
            rate_limiter: Shared limiter; calls are unthrottled when omitted
            timeout: Default request timeout in seconds
            poll_interval: Seconds between container status checks
            max_poll_attempts: Status checks before a container counts as timed out
        """
        super().__init__(credentials, rate_limiter, timeout)
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts

    # ── Publishing ────────────────────────────────────────────────────────────

    async def publish_image_post(
        self,
        ig_user_id: str,
        access_token: str,
        image_url: str,
        caption: str,
        options: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        """
        Publish a single image to the feed.

        Args:
            ig_user_id: Instagram Business account ID
            access_token: Page access token
            image_url: Publicly reachable JPEG URL
            caption: Post caption
            options: ``location_id``, ``user_tags``

        Returns:
            ApiResult with ``media_id`` and ``permalink``
        """
        options = options or {}
        params: dict[str, Any] = {
            "image_url": image_url,
            "caption": caption,
            "access_token": access_token,
        }
        if options.get("location_id"):
            params["location_id"] = options["location_id"]
        if options.get("user_tags"):
            params["user_tags"] = json.dumps(options["user_tags"])

        async def request() -> dict[str, Any]:
            container_id = await self._create_container(ig_user_id, params)
            return await self._publish(ig_user_id, access_token, container_id)

        return await self._call("publish_image_post", ig_user_id, request)

    async def publish_video_post(
        self,
        ig_user_id: str,
        access_token: str,
        video_url: str,
        caption: str,
        options: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        """
        Publish a feed video, waiting for Instagram to finish processing it.

        The container is never published unless its status reaches FINISHED.

        Returns:
            ApiResult with ``media_id`` and ``permalink``, or the error
            "Video processing failed or timed out"
        """
        params = self._video_container_params(access_token, video_url, caption, options)

        async def request() -> dict[str, Any]:
            container_id = await self._create_container(ig_user_id, params, timeout=CONTAINER_TIMEOUT)
            status = await self.wait_for_container(container_id, access_token)
            if status != STATUS_FINISHED:
                raise ContainerProcessingError(VIDEO_PROCESSING_FAILED)
            return await self._publish(ig_user_id, access_token, container_id)

        return await self._call("publish_video_post", ig_user_id, request)

    async def publish_carousel_post(
        self,
        ig_user_id: str,
        access_token: str,
        items: list[dict[str, str]],
        caption: str,
    ) -> ApiResult:
        """
        Publish a carousel.

        Args:
            items: ``{"type": "IMAGE" | "VIDEO", "url": ...}`` entries, in order
        """

        async def request() -> dict[str, Any]:
            child_ids = []
            for item in items:
                child: dict[str, Any] = {"is_carousel_item": "true", "access_token": access_token}
                if item.get("type") == "VIDEO":
                    child["media_type"] = "VIDEO"
                    child["video_url"] = item["url"]
                else:
                    child["image_url"] = item["url"]
                child_ids.append(
                    await self._create_container(ig_user_id, child, timeout=CONTAINER_TIMEOUT)
                )

            container_id = await self._create_container(
                ig_user_id,
                {
                    "media_type": "CAROUSEL",
                    "caption": caption,
                    "children": ",".join(child_ids),
                    "access_token": access_token,
                },
            )
            return await self._publish(ig_user_id, access_token, container_id)

        return await self._call("publish_carousel_post", ig_user_id, request)

    async def publish_story(
        self,
        ig_user_id: str,
        access_token: str,
        media_url: str,
        media_type: str = "IMAGE",
    ) -> ApiResult:
        """Publish an image or video story. Returns ``media_id`` (stories have no permalink)."""
        params = self._story_container_params(access_token, media_url, media_type)

        async def request() -> dict[str, Any]:
            container_id = await self._create_container(ig_user_id, params, timeout=CONTAINER_TIMEOUT)
            if media_type == "VIDEO":
                status = await self.wait_for_container(container_id, access_token)
                if status != STATUS_FINISHED:
                    raise ContainerProcessingError(STORY_PROCESSING_FAILED)
            return await self._publish(ig_user_id, access_token, container_id, with_permalink=False)

        return await self._call("publish_story", ig_user_id, request)

    # ── Container steps ───────────────────────────────────────────────────────

    async def create_video_container(
        self,
        ig_user_id: str,
        access_token: str,
        video_url: str,
        caption: str,
        options: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        """Create a feed-video container without waiting for it. Returns ``container_id``."""
        params = self._video_container_params(access_token, video_url, caption, options)

        async def request() -> dict[str, Any]:
            container_id = await self._create_container(ig_user_id, params, timeout=CONTAINER_TIMEOUT)
            return {"container_id": container_id}

        return await self._call("create_video_container", ig_user_id, request)

    async def create_story_container(
        self,
        ig_user_id: str,
        access_token: str,
        media_url: str,
        media_type: str = "VIDEO",
    ) -> ApiResult:
        params = self._story_container_params(access_token, media_url, media_type)

        async def request() -> dict[str, Any]:
            container_id = await self._create_container(ig_user_id, params, timeout=CONTAINER_TIMEOUT)
            return {"container_id": container_id}

        return await self._call("create_story_container", ig_user_id, request)

    async def get_container_status(self, container_id: str, access_token: str) -> ApiResult:
        """Returns ``status_code`` (IN_PROGRESS, FINISHED, ERROR, EXPIRED or PUBLISHED)."""

        async def request() -> dict[str, Any]:
            return {"status_code": await self._fetch_status(container_id, access_token)}

        return await self._call("get_container_status", container_id, request)

    async def publish_container(
        self,
        ig_user_id: str,
        access_token: str,
        container_id: str,
        with_permalink: bool = True,
    ) -> ApiResult:
        """``media_publish`` a processed container. Returns ``media_id`` and ``permalink``."""

        async def request() -> dict[str, Any]:
            return await self._publish(ig_user_id, access_token, container_id, with_permalink)

        return await self._call("publish_container", ig_user_id, request)

    async def wait_for_container(
        self,
        container_id: str,
        access_token: str,
        max_attempts: Optional[int] = None,
        interval: Optional[float] = None,
    ) -> str:
        """
        Poll a container until it leaves IN_PROGRESS or the attempts run out.

        Returns:
            The last status seen; a missing status counts as ERROR

        Raises:
            httpx.HTTPError: If a status request fails
        """
        max_attempts = max_attempts if max_attempts is not None else self.max_poll_attempts
        interval = interval if interval is not None else self.poll_interval

        status = STATUS_IN_PROGRESS
        attempt = 0
        while status == STATUS_IN_PROGRESS and attempt < max_attempts:
            await asyncio.sleep(interval)
            status = await self._fetch_status(container_id, access_token)
            attempt += 1
        return status

    # ── Reading ───────────────────────────────────────────────────────────────

    async def fetch_media(
        self,
        ig_user_id: str,
        access_token: str,
        options: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        options = options or {}
        params: dict[str, Any] = {
            "fields": options.get("fields", DEFAULT_MEDIA_FIELDS),
            "limit": options.get("limit", 25),
            "access_token": access_token,
        }
        for key in ("since", "until"):
            if options.get(key) is not None:
                params[key] = options[key]

        async def request() -> dict[str, Any]:
            data = (
                await self._send("GET", f"{self.graph_base}/{ig_user_id}/media", params=params)
            ).json()
            return {"media": data.get("data", []), "paging": data.get("paging")}

        return await self._call("fetch_media", ig_user_id, request)

    async def fetch_comments(
        self,
        media_id: str,
        access_token: str,
        options: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        options = options or {}
        params = {
            "fields": options.get("fields", DEFAULT_COMMENT_FIELDS),
            "limit": options.get("limit", 50),
            "access_token": access_token,
        }

        async def request() -> dict[str, Any]:
            data = (
                await self._send("GET", f"{self.graph_base}/{media_id}/comments", params=params)
            ).json()
            return {"comments": data.get("data", []), "paging": data.get("paging")}

        return await self._call("fetch_comments", media_id, request)

    async def reply_to_comment(self, comment_id: str, access_token: str, message: str) -> ApiResult:
        async def request() -> dict[str, Any]:
            data = (
                await self._send(
                    "POST",
                    f"{self.graph_base}/{comment_id}/replies",
                    data={"message": message, "access_token": access_token},
                )
            ).json()
            return {"comment_id": data.get("id", "")}

        return await self._call("reply_to_comment", comment_id, request)

    async def get_media_insights(
        self,
        media_id: str,
        access_token: str,
        metrics: Optional[list[str]] = None,
    ) -> ApiResult:
        """Media insights plus ``likes`` and ``comments`` counts."""
        metrics_to_fetch = metrics or DEFAULT_MEDIA_METRICS

        async def request() -> dict[str, Any]:
            response = await self._send(
                "GET",
                f"{self.graph_base}/{media_id}/insights",
                params={"metric": ",".join(metrics_to_fetch), "access_token": access_token},
            )
            insights: dict[str, Any] = {}
            for insight in response.json().get("data", []):
                name = insight.get("name")
                if not name:
                    continue
                values = insight.get("values") or [{}]
                insights[name] = values[0].get("value", 0)

            media = (
                await self._send(
                    "GET",
                    f"{self.graph_base}/{media_id}",
                    params={"fields": "like_count,comments_count", "access_token": access_token},
                )
            ).json()
            insights["likes"] = media.get("like_count", 0)
            insights["comments"] = media.get("comments_count", 0)
            return {"insights": insights}

        return await self._call("get_media_insights", media_id, request)

    async def get_account_insights(
        self,
        ig_user_id: str,
        access_token: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        metrics: Optional[list[str]] = None,
        period: str = "day",
    ) -> dict[str, Any]:
        """Account insights as a flat mapping of the latest values, {} on failure."""
        params: dict[str, Any] = {
            "metric": ",".join(metrics or DEFAULT_ACCOUNT_METRICS),
            "period": period,
            "access_token": access_token,
        }
        if since is not None:
            params["since"] = int(since.timestamp())
        if until is not None:
            params["until"] = int(until.timestamp())

        async def request() -> dict[str, Any]:
            response = await self._send(
                "GET", f"{self.graph_base}/{ig_user_id}/insights", params=params
            )
            insights: dict[str, Any] = {}
            for insight in response.json().get("data", []):
                name = insight.get("name")
                if not name:
                    continue
                values = insight.get("values") or []
                insights[name] = values[-1].get("value", 0) if values else 0
            return insights

        result = await self._call("get_account_insights", ig_user_id, request)
        return result.data if result.success else {}

    async def get_media_permalink(self, media_id: str, access_token: str) -> str:
        """Permalink of published media, falling back to the ``/p/<id>`` URL."""
        try:
            response = await self._send(
                "GET",
                f"{self.graph_base}/{media_id}",
                params={"fields": "permalink", "access_token": access_token},
            )
            return response.json().get("permalink") or permalink_fallback(media_id)
        except (httpx.HTTPError, ValueError, AttributeError):
            return permalink_fallback(media_id)

    # ── Internals ─────────────────────────────────────────────────────────────

    @staticmethod
    def _video_container_params(
        access_token: str,
        video_url: str,
        caption: str,
        options: Optional[dict[str, Any]],
    ) -> dict[str, Any]:
        options = options or {}
        params: dict[str, Any] = {
            "media_type": "VIDEO",
            "video_url": video_url,
            "caption": caption,
            "access_token": access_token,
        }
        for key in ("thumb_offset", "location_id"):
            if options.get(key) is not None:
                params[key] = options[key]
        return params

    @staticmethod
    def _story_container_params(access_token: str, media_url: str, media_type: str) -> dict[str, Any]:
        params: dict[str, Any] = {"media_type": "STORIES", "access_token": access_token}
        if media_type == "VIDEO":
            params["video_url"] = media_url
        else:
            params["image_url"] = media_url
        return params

    async def _create_container(
        self,
        ig_user_id: str,
        params: dict[str, Any],
        timeout: Optional[float] = None,
    ) -> str:
        response = await self._send(
            "POST", f"{self.graph_base}/{ig_user_id}/media", data=params, timeout=timeout
        )
        container_id = response.json().get("id")
        if not container_id:
            raise ValueError("Instagram did not return a media container id")
        return container_id

    async def _fetch_status(self, container_id: str, access_token: str) -> str:
        response = await self._send(
            "GET",
            f"{self.graph_base}/{container_id}",
            params={"fields": "status_code", "access_token": access_token},
        )
        return response.json().get("status_code") or "ERROR"

    async def _publish(
        self,
        ig_user_id: str,
        access_token: str,
        container_id: str,
        with_permalink: bool = True,
    ) -> dict[str, Any]:
        response = await self._send(
            "POST",
            f"{self.graph_base}/{ig_user_id}/media_publish",
            data={"creation_id": container_id, "access_token": access_token},
        )
        media_id = response.json().get("id")
        if not media_id:
            raise ValueError("Instagram did not return a published media id")

        result: dict[str, Any] = {"media_id": media_id}
        if with_permalink:
            result["permalink"] = await self.get_media_permalink(media_id, access_token)
        return result
