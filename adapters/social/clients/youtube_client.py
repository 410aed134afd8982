"""
YouTube Data API v3 client: uploads, video and playlist management, statistics.
"""

from typing import Any, Optional

from ..base import SocialPlatform
from .base import ApiResult, BasePlatformClient

API_BASE = "https://www.googleapis.com/youtube/v3"
UPLOAD_BASE = "https://www.googleapis.com/upload/youtube/v3"

# "People & Blogs"
DEFAULT_CATEGORY_ID = "22"


class YouTubeClient(BasePlatformClient):
    """
    YouTube Data API client (100 requests per hour).

    The rate-limit budget is tracked per channel, video or playlist id.
    """

    platform = SocialPlatform.YOUTUBE

    @staticmethod
    def _headers(access_token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    async def upload_video(
        self,
        access_token: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        """
        Initialize a resumable upload.

        Sending the video bytes to ``upload_url`` is left to the caller.

        Args:
            access_token: Channel access token
            metadata: ``title``, ``description``, ``tags``, ``category_id``,
                ``privacy``, ``made_for_kids``, ``playlist_id``, ``mime_type``

        Returns:
            ApiResult with ``upload_url``
        """
        metadata = metadata or {}
        body: dict[str, Any] = {
            "snippet": {
                "title": metadata.get("title", "Untitled Video"),
                "description": metadata.get("description", ""),
                "tags": metadata.get("tags", []),
                "categoryId": metadata.get("category_id", DEFAULT_CATEGORY_ID),
            },
            "status": {
                "privacyStatus": metadata.get("privacy", "public"),
                "selfDeclaredMadeForKids": metadata.get("made_for_kids", False),
            },
        }
        if metadata.get("playlist_id"):
            body["status"]["playlistId"] = metadata["playlist_id"]

        headers = {
            **self._headers(access_token),
            "X-Upload-Content-Type": metadata.get("mime_type", "video/*"),
        }

        async def request() -> dict[str, Any]:
            response = await self._send(
                "POST",
                f"{UPLOAD_BASE}/videos",
                headers=headers,
                params={"part": "snippet,status", "uploadType": "resumable"},
                json=body,
            )
            upload_url = response.headers.get("Location")
            if not upload_url:
                raise ValueError("Failed to initialize video upload")
            return {
                "upload_url": upload_url,
                "message": "Video upload initialized. Use the upload_url to complete the upload.",
            }

        return await self._call("upload_video", "new", request, rate_identifier="upload")

    async def update_video(
        self,
        access_token: str,
        video_id: str,
        metadata: dict[str, Any],
    ) -> ApiResult:
        """Update title, description, tags, category and/or privacy of a video."""
        body: dict[str, Any] = {"id": video_id}
        snippet = {
            field: metadata[key]
            for key, field in (
                ("title", "title"),
                ("description", "description"),
                ("tags", "tags"),
                ("category_id", "categoryId"),
            )
            if key in metadata
        }
        if snippet:
            body["snippet"] = snippet
        if "privacy" in metadata:
            body["status"] = {"privacyStatus": metadata["privacy"]}

        parts = [part for part in ("snippet", "status") if part in body]

        async def request() -> dict[str, Any]:
            await self._send(
                "PUT",
                f"{API_BASE}/videos",
                headers=self._headers(access_token),
                params={"part": ",".join(parts)},
                json=body,
            )
            return {}

        return await self._call("update_video", video_id, request)

    async def delete_video(self, access_token: str, video_id: str) -> ApiResult:
        async def request() -> dict[str, Any]:
            await self._send(
                "DELETE", f"{API_BASE}/videos", headers=self._headers(access_token), params={"id": video_id}
            )
            return {}

        return await self._call("delete_video", video_id, request)

    async def get_video(self, access_token: str, video_id: str) -> ApiResult:
        async def request() -> dict[str, Any]:
            data = (
                await self._send(
                    "GET",
                    f"{API_BASE}/videos",
                    headers=self._headers(access_token),
                    params={"part": "snippet,contentDetails,statistics,status", "id": video_id},
                )
            ).json()
            items = data.get("items") or [None]
            return {"video": items[0]}

        return await self._call("get_video", video_id, request)

    async def list_videos(
        self,
        access_token: str,
        channel_id: str,
        options: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        options = options or {}
        params: dict[str, Any] = {
            "part": "snippet",
            "channelId": channel_id,
            "type": "video",
            "maxResults": options.get("max_results", 25),
            "order": options.get("order", "date"),
        }
        if options.get("page_token"):
            params["pageToken"] = options["page_token"]

        async def request() -> dict[str, Any]:
            data = (
                await self._send(
                    "GET", f"{API_BASE}/search", headers=self._headers(access_token), params=params
                )
            ).json()
            return {
                "videos": data.get("items", []),
                "next_page_token": data.get("nextPageToken"),
                "total_results": data.get("pageInfo", {}).get("totalResults", 0),
            }

        return await self._call("list_videos", channel_id, request)

    async def create_playlist(
        self,
        access_token: str,
        title: str,
        options: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        options = options or {}
        body = {
            "snippet": {"title": title, "description": options.get("description", "")},
            "status": {"privacyStatus": options.get("privacy", "public")},
        }

        async def request() -> dict[str, Any]:
            data = (
                await self._send(
                    "POST",
                    f"{API_BASE}/playlists",
                    headers=self._headers(access_token),
                    params={"part": "snippet,status"},
                    json=body,
                )
            ).json()
            return {"playlist_id": data.get("id", "")}

        return await self._call("create_playlist", "new", request, rate_identifier="playlist")

    async def add_video_to_playlist(
        self,
        access_token: str,
        playlist_id: str,
        video_id: str,
    ) -> ApiResult:
        body = {
            "snippet": {
                "playlistId": playlist_id,
                "resourceId": {"kind": "youtube#video", "videoId": video_id},
            }
        }

        async def request() -> dict[str, Any]:
            await self._send(
                "POST",
                f"{API_BASE}/playlistItems",
                headers=self._headers(access_token),
                params={"part": "snippet"},
                json=body,
            )
            return {}

        return await self._call("add_video_to_playlist", playlist_id, request)

    async def list_playlists(
        self,
        access_token: str,
        channel_id: str,
        options: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        options = options or {}
        params: dict[str, Any] = {
            "part": "snippet,contentDetails",
            "channelId": channel_id,
            "maxResults": options.get("max_results", 25),
        }
        if options.get("page_token"):
            params["pageToken"] = options["page_token"]

        async def request() -> dict[str, Any]:
            data = (
                await self._send(
                    "GET", f"{API_BASE}/playlists", headers=self._headers(access_token), params=params
                )
            ).json()
            return {"playlists": data.get("items", []), "next_page_token": data.get("nextPageToken")}

        return await self._call("list_playlists", channel_id, request)

    async def get_video_analytics(self, access_token: str, video_id: str) -> ApiResult:
        """Public statistics of a video; YouTube reports the counts as strings."""

        async def request() -> dict[str, Any]:
            data = (
                await self._send(
                    "GET",
                    f"{API_BASE}/videos",
                    headers=self._headers(access_token),
                    params={"part": "statistics", "id": video_id},
                )
            ).json()
            stats = (data.get("items") or [{}])[0].get("statistics", {})
            return {
                "analytics": {
                    "views": int(stats.get("viewCount", 0)),
                    "likes": int(stats.get("likeCount", 0)),
                    "dislikes": int(stats.get("dislikeCount", 0)),
                    "comments": int(stats.get("commentCount", 0)),
                    "favorites": int(stats.get("favoriteCount", 0)),
                }
            }

        return await self._call("get_video_analytics", video_id, request)

    async def get_channel_analytics(self, channel_id: str, access_token: str) -> dict[str, Any]:
        """
        Channel statistics as a flat mapping, {} on failure.

        Engagement breakdowns need the YouTube Analytics API and are reported as 0.
        """

        async def request() -> dict[str, Any]:
            data = (
                await self._send(
                    "GET",
                    f"{API_BASE}/channels",
                    headers=self._headers(access_token),
                    params={"part": "statistics", "id": channel_id},
                )
            ).json()
            stats = (data.get("items") or [{}])[0].get("statistics", {})
            return {
                "subscriberCount": int(stats.get("subscriberCount", 0)),
                "views": int(stats.get("viewCount", 0)),
                "likes": 0,
                "comments": 0,
                "shares": 0,
                "impressions": 0,
                "clicks": 0,
            }

        result = await self._call("get_channel_analytics", channel_id, request)
        return result.data if result.success else {}

    async def get_channel(self, access_token: str) -> ApiResult:
        """The authenticated user's own channel."""

        async def request() -> dict[str, Any]:
            data = (
                await self._send(
                    "GET",
                    f"{API_BASE}/channels",
                    headers=self._headers(access_token),
                    params={"part": "snippet,contentDetails,statistics", "mine": "true"},
                )
            ).json()
            items = data.get("items") or [None]
            return {"channel": items[0]}

        return await self._call("get_channel", "me", request, rate_identifier="channel")
