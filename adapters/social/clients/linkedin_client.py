"""
LinkedIn API client: UGC posts, organization analytics and profile lookups.
"""

from datetime import datetime
from typing import Any, Optional
from urllib.parse import quote

from ..base import SocialPlatform
from .base import ApiResult, BasePlatformClient

API_BASE = "https://api.linkedin.com/v2"
USERINFO_URL = "https://api.linkedin.com/v2/userinfo"
POST_URL_BASE = "https://www.linkedin.com/feed/update/"

RESTLI_HEADER = {"X-Restli-Protocol-Version": "2.0.0"}


class LinkedInClient(BasePlatformClient):
    """
    LinkedIn API client (100 requests per hour).

    The rate-limit budget is tracked per author, organization or post URN.
    """

    platform = SocialPlatform.LINKEDIN

    @staticmethod
    def _headers(access_token: str, restli: bool = True) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {access_token}"}
        if restli:
            headers.update(RESTLI_HEADER)
        return headers

    def _error_from_body(self, body: dict[str, Any]) -> Optional[str]:
        message = body.get("message") or body.get("error")
        return message if isinstance(message, str) else None

    async def publish_post(
        self,
        access_token: str,
        author_urn: str,
        text: str,
        options: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        """
        Publish a UGC post.

        Args:
            access_token: Member or organization access token
            author_urn: ``urn:li:person:...`` or ``urn:li:organization:...``
            text: Post commentary
            options: ``media`` (list of ``{url, title, description}``) for an
                image post, or ``article_url`` / ``article_title`` /
                ``article_description`` for an article share

        Returns:
            ApiResult with ``post_id`` and ``post_url``
        """
        options = options or {}
        share_content: dict[str, Any] = {
            "shareCommentary": {"text": text},
            "shareMediaCategory": "NONE",
        }

        if options.get("media"):
            share_content["shareMediaCategory"] = "IMAGE"
            share_content["media"] = [
                self._media_entry(item["url"], item.get("title"), item.get("description"))
                for item in options["media"]
            ]
        if options.get("article_url"):
            share_content["shareMediaCategory"] = "ARTICLE"
            share_content["media"] = [
                self._media_entry(
                    options["article_url"],
                    options.get("article_title"),
                    options.get("article_description"),
                )
            ]

        body = {
            "author": author_urn,
            "lifecycleState": "PUBLISHED",
            "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
            "specificContent": {"com.linkedin.ugc.ShareContent": share_content},
        }

        async def request() -> dict[str, Any]:
            response = await self._send(
                "POST", f"{API_BASE}/ugcPosts", headers=self._headers(access_token), json=body
            )
            post_id = response.json().get("id", "")
            return {"post_id": post_id, "post_url": f"{POST_URL_BASE}{post_id}"}

        return await self._call("publish_post", author_urn, request)

    async def fetch_posts(
        self,
        access_token: str,
        author_urn: str,
        options: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        options = options or {}
        params = {
            "q": "author",
            "author": author_urn,
            "count": options.get("count", 50),
            "start": options.get("start", 0),
        }

        async def request() -> dict[str, Any]:
            data = (
                await self._send(
                    "GET", f"{API_BASE}/ugcPosts", headers=self._headers(access_token), params=params
                )
            ).json()
            return {"posts": data.get("elements", []), "paging": data.get("paging")}

        return await self._call("fetch_posts", author_urn, request)

    async def get_post_analytics(self, access_token: str, post_urn: str) -> ApiResult:
        """Share statistics for one post. Returns ``analytics``."""
        url = (
            f"{API_BASE}/organizationalEntityShareStatistics"
            f"?q=organizationalEntity&shares=List({quote(post_urn, safe='')})"
        )

        async def request() -> dict[str, Any]:
            data = (await self._send("GET", url, headers=self._headers(access_token))).json()
            elements = data.get("elements") or [{}]
            stats = elements[0].get("totalShareStatistics", {})
            return {
                "analytics": {
                    "impressions": stats.get("impressionCount", 0),
                    "unique_impressions": stats.get("uniqueImpressionsCount", 0),
                    "clicks": stats.get("clickCount", 0),
                    "likes": stats.get("likeCount", 0),
                    "comments": stats.get("commentCount", 0),
                    "shares": stats.get("shareCount", 0),
                    "engagement": stats.get("engagement", 0),
                }
            }

        return await self._call("get_post_analytics", post_urn, request)

    async def get_organization_analytics(
        self,
        access_token: str,
        organization_urn: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> ApiResult:
        """Organization page statistics, optionally bounded to a time range."""
        params: dict[str, Any] = {"q": "organization", "organization": organization_urn}
        # LinkedIn takes epoch milliseconds
        if start is not None:
            params["timeIntervals.timeRange.start"] = int(start.timestamp() * 1000)
        if end is not None:
            params["timeIntervals.timeRange.end"] = int(end.timestamp() * 1000)

        async def request() -> dict[str, Any]:
            data = (
                await self._send(
                    "GET",
                    f"{API_BASE}/organizationPageStatistics",
                    headers=self._headers(access_token),
                    params=params,
                )
            ).json()
            return {"analytics": data.get("elements", [])}

        return await self._call("get_organization_analytics", organization_urn, request)

    async def get_follower_statistics(self, access_token: str, organization_urn: str) -> ApiResult:
        async def request() -> dict[str, Any]:
            data = (
                await self._send(
                    "GET",
                    f"{API_BASE}/networkSizes",
                    headers=self._headers(access_token),
                    params={"q": "organization", "organization": organization_urn},
                )
            ).json()
            elements = data.get("elements") or [{}]
            return {"followers": {"total": elements[0].get("firstDegreeSize", 0)}}

        return await self._call("get_follower_statistics", organization_urn, request)

    async def get_analytics(
        self,
        organization_urn: str,
        access_token: str,
        start: datetime,
        end: datetime,
    ) -> dict[str, Any]:
        """
        Organization analytics for a date range as a flat mapping.

        Returns:
            Share statistics plus ``followerCount``, or {} if the statistics call fails
        """
        analytics_result = await self.get_organization_analytics(
            access_token, organization_urn, start, end
        )
        if not analytics_result.success:
            return {}
        followers_result = await self.get_follower_statistics(access_token, organization_urn)

        elements = analytics_result.get("analytics") or [{}]
        stats = elements[0].get("totalShareStatistics", {})
        return {
            "impressions": stats.get("impressionCount", 0),
            "uniqueImpressions": stats.get("uniqueImpressionsCount", 0),
            "engagement": stats.get("engagement", 0),
            "likes": stats.get("likeCount", 0),
            "comments": stats.get("commentCount", 0),
            "shares": stats.get("shareCount", 0),
            "clicks": stats.get("clickCount", 0),
            "videoViews": stats.get("videoViews", 0),
            "followerCount": followers_result.get("followers", {}).get("total", 0),
        }

    async def get_profile(self, access_token: str) -> ApiResult:
        async def request() -> dict[str, Any]:
            data = (
                await self._send("GET", USERINFO_URL, headers=self._headers(access_token, restli=False))
            ).json()
            return {
                "profile": {
                    "id": data.get("sub", ""),
                    "name": data.get("name", ""),
                    "email": data.get("email", ""),
                    "picture": data.get("picture"),
                    "locale": data.get("locale"),
                }
            }

        return await self._call("get_profile", "me", request)

    async def get_organizations(self, access_token: str) -> ApiResult:
        """Organizations the member administers."""

        async def request() -> dict[str, Any]:
            data = (
                await self._send(
                    "GET",
                    f"{API_BASE}/organizationAcls",
                    headers=self._headers(access_token),
                    params={
                        "q": "roleAssignee",
                        "projection": "(elements*(organizationalTarget~(localizedName,logoV2)))",
                    },
                )
            ).json()
            organizations = []
            for element in data.get("elements", []):
                org = element.get("organizationalTarget~") or {}
                if org:
                    organizations.append(
                        {
                            "id": element.get("organizationalTarget", ""),
                            "name": org.get("localizedName", "Unknown Organization"),
                            "logo": (org.get("logoV2") or {}).get("original"),
                        }
                    )
            return {"organizations": organizations}

        return await self._call("get_organizations", "me", request)

    async def delete_post(self, access_token: str, post_urn: str) -> ApiResult:
        async def request() -> dict[str, Any]:
            await self._send(
                "DELETE",
                f"{API_BASE}/ugcPosts/{quote(post_urn, safe='')}",
                headers=self._headers(access_token),
            )
            return {}

        return await self._call("delete_post", post_urn, request)

    @staticmethod
    def _media_entry(url: str, title: Optional[str], description: Optional[str]) -> dict[str, Any]:
        return {
            "status": "READY",
            "originalUrl": url,
            "title": {"text": title or ""},
            "description": {"text": description or ""},
        }
