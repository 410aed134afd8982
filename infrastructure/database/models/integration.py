"""
Platform integration (OAuth app credentials) model.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, JSON, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from core.security.encryption import decrypt_credential, encrypt_credential, mask_secret
from infrastructure.config import settings

from .base import Base, TimestampMixin


class IntegrationStatus(str, Enum):
    """Operational status of a platform integration."""

    ACTIVE = "active"
    DISABLED = "disabled"


class PlatformIntegration(Base, TimestampMixin):
    """
    Admin-managed OAuth application credentials for a provider.

    A provider may serve more than one platform: ``meta`` covers both
    Facebook and Instagram. Redirect URIs and scopes are keyed by platform.
    App id and secret are stored encrypted.
    """

    __tablename__ = "platform_integrations"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    provider: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    platforms: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Credentials (encrypted)
    app_id_encrypted: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    app_secret_encrypted: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    config_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    api_version: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    redirect_uris: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    scopes: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=IntegrationStatus.ACTIVE.value
    )

    last_verified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_rotated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_by: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    @property
    def app_id(self) -> str:
        return decrypt_credential(self.app_id_encrypted or "", settings.secret_key)

    @app_id.setter
    def app_id(self, value: str) -> None:
        self.app_id_encrypted = encrypt_credential(value, settings.secret_key)

    @property
    def app_secret(self) -> str:
        return decrypt_credential(self.app_secret_encrypted or "", settings.secret_key)

    @app_secret.setter
    def app_secret(self, value: str) -> None:
        self.app_secret_encrypted = encrypt_credential(value, settings.secret_key)

    @property
    def is_usable(self) -> bool:
        return self.is_enabled and self.status == IntegrationStatus.ACTIVE.value

    def redirect_uri_for(self, platform: str) -> Optional[str]:
        return (self.redirect_uris or {}).get(platform)

    def scopes_for(self, platform: str) -> list[str]:
        return list((self.scopes or {}).get(platform) or [])

    def masked_app_id(self) -> str:
        return mask_secret(self.app_id)

    def __repr__(self) -> str:
        return f"<PlatformIntegration(provider={self.provider}, status={self.status})>"
