"""
Shared plumbing for platform API clients.

Clients never raise for network or platform errors: every public call
returns an ApiResult, logs one line to the ``social`` channel and is
gated by the shared rate limiter before any request leaves the process.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from infrastructure.logging_config import get_social_logger, redact
from services.rate_limiter import PLATFORM_RATE_LIMITS, RateLimiter, rate_limit_key

from ..base import PlatformCredentials, SocialPlatform

social_logger = get_social_logger()

RATE_LIMIT_EXCEEDED = "Rate limit exceeded. Please try again later."


@dataclass
class ApiResult:
    """Outcome of a platform API call."""

    success: bool
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @classmethod
    def ok(cls, **data: Any) -> "ApiResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ApiResult":
        return cls(success=False, error=error)

    @property
    def rate_limited(self) -> bool:
        return not self.success and self.error == RATE_LIMIT_EXCEEDED

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def to_dict(self) -> dict[str, Any]:
        """Flat ``{success, ...data, error?}`` mapping."""
        result = {"success": self.success, **self.data}
        if self.error is not None:
            result["error"] = self.error
        return result


class BasePlatformClient:
    """Rate-limited, logged HTTP access to one platform's API."""

    platform: SocialPlatform

    def __init__(self, rate_limiter: RateLimiter | None = None, timeout: int = 30):
        """
        Args:
            rate_limiter: Shared limiter; calls are unthrottled when omitted
            timeout: Default request timeout in seconds
        """
        self.rate_limiter = rate_limiter
        self.timeout = timeout

    # ── Rate limiting ─────────────────────────────────────────────────────────

    @property
    def max_requests_per_hour(self) -> int | None:
        return PLATFORM_RATE_LIMITS.get(self.platform.value)

    async def check_rate_limit(self, identifier: str) -> bool:
        if self.rate_limiter is None or self.max_requests_per_hour is None:
            return True
        return await self.rate_limiter.attempt(
            rate_limit_key(self.platform.value, identifier),
            self.max_requests_per_hour,
        )

    # ── Requests ──────────────────────────────────────────────────────────────

    async def _send(
        self,
        method: str,
        url: str,
        *,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request and raise httpx.HTTPStatusError for non-2xx responses."""
        async with httpx.AsyncClient(timeout=timeout or self.timeout) as client:
            response = await client.request(method, url, **kwargs)
        response.raise_for_status()
        return response

    async def _call(
        self,
        operation: str,
        resource_id: str,
        request: Callable[[], Awaitable[dict[str, Any]]],
        rate_identifier: str | None = None,
    ) -> ApiResult:
        """
        Run ``request`` behind the rate limiter and convert failures to ApiResult.

        Args:
            operation: Name logged as the call's ``method``
            resource_id: Page/account/post the call targets
            request: Coroutine factory returning the success payload
            rate_identifier: Rate-limit bucket; defaults to ``resource_id``
        """
        if not await self.check_rate_limit(rate_identifier or resource_id):
            return ApiResult.fail(RATE_LIMIT_EXCEEDED)

        try:
            payload = await request()
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            error = self._extract_error_message(e)
            self._log_api_call(operation, resource_id, False, error)
            return ApiResult.fail(error)

        self._log_api_call(operation, resource_id, True)
        return ApiResult.ok(**payload)

    # ── Errors & logging ──────────────────────────────────────────────────────

    def _error_from_body(self, body: dict[str, Any]) -> str | None:
        error = body.get("error")
        if isinstance(error, dict):
            return error.get("message")
        return None

    def _extract_error_message(self, exc: Exception) -> str:
        if isinstance(exc, (KeyError, TypeError, AttributeError)):
            return f"Unexpected {self.platform.label} API response"
        if isinstance(exc, httpx.HTTPStatusError):
            try:
                body = exc.response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                message = self._error_from_body(body)
                if message:
                    return redact(str(message))
        # Exception text can include request URLs carrying tokens
        return redact(str(exc)) or exc.__class__.__name__

    def _log_context(self) -> dict[str, Any]:
        return {}

    def _log_api_call(
        self,
        operation: str,
        resource_id: str,
        success: bool,
        error: str | None = None,
    ) -> None:
        extra = {
            "platform": self.platform.value,
            "method": operation,
            "resource_id": resource_id,
            "success": success,
            "error": error,
            **self._log_context(),
        }
        if success:
            social_logger.info("%s API call", self.platform.label, extra=extra)
        else:
            social_logger.warning("%s API call", self.platform.label, extra=extra)


class GraphApiClient(BasePlatformClient):
    """Meta Graph API client; the rate-limit budget is shared per app id."""

    def __init__(
        self,
        credentials: PlatformCredentials,
        rate_limiter: RateLimiter | None = None,
        timeout: int = 30,
    ):
        super().__init__(rate_limiter, timeout)
        self.credentials = credentials
        self.graph_base = f"https://graph.facebook.com/{credentials.api_version}"

    async def check_rate_limit(self, identifier: str) -> bool:
        return await super().check_rate_limit(self.credentials.app_id)

    def _log_context(self) -> dict[str, Any]:
        return {"app_id": self.credentials.app_id}
