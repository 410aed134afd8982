"""
Errors raised by the social account services.

Each error carries a field-keyed ``errors`` mapping so the HTTP layer can
render it as a validation failure.
"""


class SocialValidationError(Exception):
    """Base class for social account contract violations."""

    field = "social"
    default_message = "The social account request is invalid."

    def __init__(self, message: str | None = None, field: str | None = None):
        self.message = message or self.default_message
        if field is not None:
            self.field = field
        self.errors: dict[str, list[str]] = {self.field: [self.message]}
        super().__init__(self.message)


class InvalidOAuthStateError(SocialValidationError):
    """OAuth state is unknown, expired or already used."""

    field = "state"
    default_message = "Invalid or expired OAuth state. Please try connecting again."


class PlatformMismatchError(SocialValidationError):
    """Callback platform differs from the platform the state was issued for."""

    field = "platform"
    default_message = "Platform mismatch in OAuth callback."


class NoRefreshTokenAvailableError(SocialValidationError):
    field = "refresh_token"
    default_message = "No refresh token available. Please reconnect the account."


class SocialAccountNotFoundError(SocialValidationError):
    field = "account"
    default_message = "Social account not found."


class TokenRefreshFailedError(SocialValidationError):
    """Refreshing an account's token failed; the account was marked expired."""

    field = "token"
    default_message = "Failed to refresh the access token. Please reconnect the account."
