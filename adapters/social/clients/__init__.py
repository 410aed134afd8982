"""
Platform API clients for publishing and analytics.

Every call returns an ApiResult (or a plain mapping for analytics
helpers) instead of raising on network or platform errors.
"""

from .base import RATE_LIMIT_EXCEEDED, ApiResult, BasePlatformClient, GraphApiClient
from .facebook_client import FacebookClient
from .instagram_client import (
    STORY_PROCESSING_FAILED,
    VIDEO_PROCESSING_FAILED,
    InstagramClient,
    permalink_fallback,
)
from .linkedin_client import LinkedInClient
from .twitter_client import TwitterClient
from .youtube_client import YouTubeClient

__all__ = [
    "ApiResult",
    "BasePlatformClient",
    "GraphApiClient",
    "RATE_LIMIT_EXCEEDED",
    "FacebookClient",
    "InstagramClient",
    "LinkedInClient",
    "TwitterClient",
    "YouTubeClient",
    "VIDEO_PROCESSING_FAILED",
    "STORY_PROCESSING_FAILED",
    "permalink_fallback",
]
