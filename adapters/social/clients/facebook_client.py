"""
Facebook Graph API client for Pages: publishing, posts, insights and comments.
"""

from datetime import datetime
from typing import Any, Optional

from ..base import SocialPlatform
from .base import ApiResult, GraphApiClient

DEFAULT_POST_FIELDS = "id,message,created_time,permalink_url,full_picture"
DEFAULT_COMMENT_FIELDS = "id,message,from{name,id,picture},created_time"

DEFAULT_POST_METRICS = [
    "post_impressions",
    "post_impressions_unique",
    "post_engaged_users",
    "post_clicks",
]

DEFAULT_PAGE_METRICS = [
    "page_impressions",
    "page_impressions_unique",
    "page_engaged_users",
    "page_post_engagements",
    "page_fans",
    "page_reach",
    "page_likes",
    "page_comments",
    "page_shares",
    "page_clicks",
    "page_video_views",
]


class FacebookClient(GraphApiClient):
    """Facebook Pages API client (200 requests per hour per app)."""

    platform = SocialPlatform.FACEBOOK

    async def publish_post(
        self,
        page_id: str,
        access_token: str,
        message: str,
        options: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        """
        Publish a post to a Facebook Page.

        Args:
            page_id: Facebook Page ID
            access_token: Page access token
            message: Post content
            options: ``link``, ``image_url`` (photo post) or ``video_url`` (video post)

        Returns:
            ApiResult with ``post_id`` on success
        """
        options = options or {}
        params: dict[str, Any] = {"message": message, "access_token": access_token}
        if options.get("link"):
            params["link"] = options["link"]

        endpoint = f"{self.graph_base}/{page_id}/feed"
        if options.get("image_url"):
            params["url"] = options["image_url"]
            endpoint = f"{self.graph_base}/{page_id}/photos"
        elif options.get("video_url"):
            params["file_url"] = options["video_url"]
            params["description"] = params.pop("message")
            endpoint = f"{self.graph_base}/{page_id}/videos"

        async def request() -> dict[str, Any]:
            data = (await self._send("POST", endpoint, data=params)).json()
            return {"post_id": data.get("id") or data.get("post_id") or ""}

        return await self._call("publish_post", page_id, request)

    async def fetch_posts(
        self,
        page_id: str,
        access_token: str,
        options: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        """Fetch a Page's posts (``limit``, ``since``, ``until``, ``fields`` options)."""
        options = options or {}
        params: dict[str, Any] = {
            "fields": options.get("fields", DEFAULT_POST_FIELDS),
            "limit": options.get("limit", 25),
            "access_token": access_token,
        }
        for key in ("since", "until"):
            if options.get(key) is not None:
                params[key] = options[key]

        async def request() -> dict[str, Any]:
            data = (await self._send("GET", f"{self.graph_base}/{page_id}/posts", params=params)).json()
            return {"posts": data.get("data", []), "paging": data.get("paging")}

        return await self._call("fetch_posts", page_id, request)

    async def get_post_insights(
        self,
        post_id: str,
        access_token: str,
        metrics: Optional[list[str]] = None,
    ) -> ApiResult:
        """
        Fetch insights for a post plus its like, comment and share counts.

        Returns:
            ApiResult with ``insights``: metric name -> first reported value
        """
        metrics_to_fetch = metrics or DEFAULT_POST_METRICS

        async def request() -> dict[str, Any]:
            response = await self._send(
                "GET",
                f"{self.graph_base}/{post_id}/insights",
                params={"metric": ",".join(metrics_to_fetch), "access_token": access_token},
            )
            insights: dict[str, Any] = {}
            for insight in response.json().get("data", []):
                name = insight.get("name")
                if not name:
                    continue
                values = insight.get("values") or [{}]
                insights[name] = values[0].get("value", 0)

            engagement = (
                await self._send(
                    "GET",
                    f"{self.graph_base}/{post_id}",
                    params={
                        "fields": "likes.summary(true),comments.summary(true),shares",
                        "access_token": access_token,
                    },
                )
            ).json()
            insights["likes"] = engagement.get("likes", {}).get("summary", {}).get("total_count", 0)
            insights["comments"] = (
                engagement.get("comments", {}).get("summary", {}).get("total_count", 0)
            )
            insights["shares"] = engagement.get("shares", {}).get("count", 0)
            return {"insights": insights}

        return await self._call("get_post_insights", post_id, request)

    async def get_page_insights(
        self,
        page_id: str,
        access_token: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        metrics: Optional[list[str]] = None,
        period: str = "day",
    ) -> dict[str, Any]:
        """
        Fetch Page insights as a flat mapping.

        Returns:
            Metric name -> latest value in the period, or {} on failure
        """
        params: dict[str, Any] = {
            "metric": ",".join(metrics or DEFAULT_PAGE_METRICS),
            "period": period,
            "access_token": access_token,
        }
        if since is not None:
            params["since"] = int(since.timestamp())
        if until is not None:
            params["until"] = int(until.timestamp())

        async def request() -> dict[str, Any]:
            response = await self._send("GET", f"{self.graph_base}/{page_id}/insights", params=params)
            insights: dict[str, Any] = {}
            for insight in response.json().get("data", []):
                name = insight.get("name")
                if not name:
                    continue
                values = insight.get("values") or []
                insights[name] = values[-1].get("value", 0) if values else 0
            return insights

        result = await self._call("get_page_insights", page_id, request)
        return result.data if result.success else {}

    async def fetch_comments(
        self,
        post_id: str,
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
                await self._send("GET", f"{self.graph_base}/{post_id}/comments", params=params)
            ).json()
            return {"comments": data.get("data", []), "paging": data.get("paging")}

        return await self._call("fetch_comments", post_id, request)

    async def reply_to_comment(self, comment_id: str, access_token: str, message: str) -> ApiResult:
        async def request() -> dict[str, Any]:
            data = (
                await self._send(
                    "POST",
                    f"{self.graph_base}/{comment_id}/comments",
                    data={"message": message, "access_token": access_token},
                )
            ).json()
            return {"comment_id": data.get("id", "")}

        return await self._call("reply_to_comment", comment_id, request)

    async def get_pages(self, user_token: str) -> ApiResult:
        """Pages the user manages, with their page tokens, categories and tasks."""

        async def request() -> dict[str, Any]:
            data = (
                await self._send(
                    "GET",
                    f"{self.graph_base}/me/accounts",
                    params={"fields": "id,name,access_token,category,tasks", "access_token": user_token},
                )
            ).json()
            return {"pages": data.get("data", [])}

        return await self._call("get_pages", "me", request)

    async def delete_post(self, post_id: str, access_token: str) -> ApiResult:
        async def request() -> dict[str, Any]:
            await self._send(
                "DELETE", f"{self.graph_base}/{post_id}", params={"access_token": access_token}
            )
            return {}

        return await self._call("delete_post", post_id, request)
