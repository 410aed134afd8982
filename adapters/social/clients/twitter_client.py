"""
Twitter/X API v2 client.

Minimal surface until elevated API access is granted; Twitter calls are
not rate-gated locally.
"""

from datetime import datetime
from typing import Any, Optional

from ..base import PlatformCredentials, SocialPlatform
from .base import ApiResult, BasePlatformClient

API_BASE = "https://api.twitter.com/2"
MEDIA_UPLOAD_URL = "https://upload.twitter.com/1.1/media/upload.json"

_METRIC_TOTALS = {
    "total_likes": "like_count",
    "total_retweets": "retweet_count",
    "total_replies": "reply_count",
    "total_quotes": "quote_count",
}


class TwitterClient(BasePlatformClient):
    platform = SocialPlatform.TWITTER

    def __init__(self, credentials: PlatformCredentials, rate_limiter=None, timeout: int = 30):
        super().__init__(rate_limiter, timeout)
        self.credentials = credentials

    @staticmethod
    def _headers(access_token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    def _error_from_body(self, body: dict[str, Any]) -> Optional[str]:
        return body.get("detail") or body.get("title")

    async def post_tweet(
        self,
        access_token: str,
        text: str,
        media_ids: Optional[list[str]] = None,
        reply_to_tweet_id: Optional[str] = None,
    ) -> ApiResult:
        """Post a tweet, optionally with media or as a reply. Returns ``tweet_id``."""
        payload: dict[str, Any] = {"text": text}
        if media_ids:
            payload["media"] = {"media_ids": media_ids}
        if reply_to_tweet_id:
            payload["reply"] = {"in_reply_to_tweet_id": reply_to_tweet_id}

        async def request() -> dict[str, Any]:
            data = (
                await self._send(
                    "POST", f"{API_BASE}/tweets", headers=self._headers(access_token), json=payload
                )
            ).json()
            return {"tweet_id": data.get("data", {}).get("id", "")}

        return await self._call("post_tweet", "me", request)

    async def get_analytics(
        self,
        account_id: str,
        access_token: str,
        start: datetime,
        end: datetime,
    ) -> dict[str, Any]:
        """
        Public metrics of the account's tweets in a date range, summed.

        Returns:
            ``total_*`` counters and the ``tweets`` themselves; zeroed
            counters plus ``error`` on failure
        """

        async def request() -> dict[str, Any]:
            data = (
                await self._send(
                    "GET",
                    f"{API_BASE}/users/{account_id}/tweets",
                    headers=self._headers(access_token),
                    params={
                        "start_time": start.isoformat(),
                        "end_time": end.isoformat(),
                        "tweet.fields": "public_metrics,created_at",
                        "max_results": 100,
                    },
                )
            ).json()
            return {"tweets": data.get("data", [])}

        result = await self._call("get_analytics", account_id, request)
        tweets = result.get("tweets", [])

        analytics: dict[str, Any] = {"total_tweets": len(tweets)}
        for total, metric in _METRIC_TOTALS.items():
            analytics[total] = sum(t.get("public_metrics", {}).get(metric, 0) for t in tweets)
        analytics["total_engagements"] = sum(analytics[total] for total in _METRIC_TOTALS)
        analytics["tweets"] = tweets
        if not result.success:
            analytics["error"] = result.error
        return analytics

    async def get_follower_count(self, account_id: str, access_token: str) -> int:
        async def request() -> dict[str, Any]:
            data = (
                await self._send(
                    "GET",
                    f"{API_BASE}/users/{account_id}",
                    headers=self._headers(access_token),
                    params={"user.fields": "public_metrics"},
                )
            ).json()
            return {"followers": data.get("data", {}).get("public_metrics", {}).get("followers_count", 0)}

        result = await self._call("get_follower_count", account_id, request)
        return result.get("followers", 0)

    async def get_timeline(self, account_id: str, access_token: str, max_results: int = 10) -> ApiResult:
        async def request() -> dict[str, Any]:
            data = (
                await self._send(
                    "GET",
                    f"{API_BASE}/users/{account_id}/tweets",
                    headers=self._headers(access_token),
                    params={
                        "tweet.fields": "created_at,public_metrics,text",
                        "max_results": min(max_results, 100),
                    },
                )
            ).json()
            return {"tweets": data.get("data", []), "meta": data.get("meta", {})}

        return await self._call("get_timeline", account_id, request)

    async def upload_media(self, access_token: str, media_url: str) -> ApiResult:
        """Download media from a URL and upload it through the v1.1 media endpoint."""

        async def request() -> dict[str, Any]:
            content = (await self._send("GET", media_url)).content
            data = (
                await self._send(
                    "POST",
                    MEDIA_UPLOAD_URL,
                    headers=self._headers(access_token),
                    files={"media": content},
                    timeout=60,
                )
            ).json()
            return {"media_id": data.get("media_id_string", "")}

        return await self._call("upload_media", "me", request)

    async def get_tweet_metrics(self, access_token: str, tweet_id: str) -> ApiResult:
        async def request() -> dict[str, Any]:
            data = (
                await self._send(
                    "GET",
                    f"{API_BASE}/tweets/{tweet_id}",
                    headers=self._headers(access_token),
                    params={"tweet.fields": "public_metrics,non_public_metrics,organic_metrics"},
                )
            ).json()
            tweet = data.get("data", {})
            public = tweet.get("public_metrics", {})
            non_public = tweet.get("non_public_metrics", {})
            organic = tweet.get("organic_metrics", {})
            return {
                "metrics": {
                    "impressions": non_public.get(
                        "impression_count", organic.get("impression_count", 0)
                    ),
                    "likes": public.get("like_count", 0),
                    "retweets": public.get("retweet_count", 0),
                    "replies": public.get("reply_count", 0),
                    "quotes": public.get("quote_count", 0),
                    "bookmarks": public.get("bookmark_count", 0),
                    "url_clicks": non_public.get("url_link_clicks", 0),
                    "profile_clicks": non_public.get("user_profile_clicks", 0),
                }
            }

        return await self._call("get_tweet_metrics", tweet_id, request)
