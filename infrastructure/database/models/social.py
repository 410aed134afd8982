"""
Social account and Instagram media container models.
"""

import copy
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    JSON,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.security.encryption import decrypt_credential, encrypt_credential
from infrastructure.config import settings

from .base import Base, TimestampMixin, as_utc


class SocialAccountStatus(str, Enum):
    """Connection status of a social account."""

    CONNECTED = "connected"
    TOKEN_EXPIRED = "token_expired"
    REVOKED = "revoked"
    DISCONNECTED = "disconnected"


class SocialAccount(Base, TimestampMixin):
    """
    Connected social media account.

    One row per (workspace, platform, platform account). Tokens are stored
    Fernet-encrypted; the ``access_token`` / ``refresh_token`` properties
    encrypt on write and decrypt on read. Rows are never hard-deleted.
    """

    __tablename__ = "social_accounts"

    # Primary key
    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    # Ownership
    workspace_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    connected_by_user_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Platform info
    platform: Mapped[str] = mapped_column(String(50), nullable=False)
    platform_account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_username: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    profile_image_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)

    # OAuth tokens (encrypted)
    access_token_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token_encrypted: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    token_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=SocialAccountStatus.CONNECTED.value
    )
    connected_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_refreshed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    disconnected_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Platform-specific data (page_id, user_token, ig_user_id, waba_id, ...)
    account_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    # Relationships
    workspace: Mapped["Workspace"] = relationship("Workspace", lazy="noload")  # noqa: F821

    __table_args__ = (
        Index(
            "ix_social_accounts_workspace_platform_account",
            "workspace_id",
            "platform",
            "platform_account_id",
            unique=True,
        ),
        Index("ix_social_accounts_status_expires", "status", "token_expires_at"),
        Index("ix_social_accounts_platform_status", "platform", "status"),
    )

    # ── Tokens ────────────────────────────────────────────────────────────────

    @property
    def access_token(self) -> str:
        return decrypt_credential(self.access_token_encrypted, settings.secret_key)

    @access_token.setter
    def access_token(self, value: str) -> None:
        self.access_token_encrypted = encrypt_credential(value, settings.secret_key)

    @property
    def refresh_token(self) -> Optional[str]:
        if not self.refresh_token_encrypted:
            return None
        return decrypt_credential(self.refresh_token_encrypted, settings.secret_key)

    @refresh_token.setter
    def refresh_token(self, value: Optional[str]) -> None:
        self.refresh_token_encrypted = (
            encrypt_credential(value, settings.secret_key) if value else None
        )

    # ── State checks ──────────────────────────────────────────────────────────

    def is_connected(self) -> bool:
        return self.status == SocialAccountStatus.CONNECTED.value

    def is_token_expired(self) -> bool:
        """True when an expiry is recorded and already passed."""
        expires_at = as_utc(self.token_expires_at)
        if expires_at is None:
            return False
        return expires_at <= datetime.now(UTC)

    def is_token_expiring_soon(self, days: int = 7) -> bool:
        expires_at = as_utc(self.token_expires_at)
        if expires_at is None:
            return False
        return expires_at <= datetime.now(UTC) + timedelta(days=days)

    @property
    def display_name(self) -> str:
        if self.account_username:
            return f"{self.account_name} (@{self.account_username})"
        return self.account_name

    # ── Transitions ───────────────────────────────────────────────────────────

    def disconnect(self) -> None:
        self.status = SocialAccountStatus.DISCONNECTED.value
        self.disconnected_at = datetime.now(UTC)

    def mark_token_expired(self) -> None:
        self.status = SocialAccountStatus.TOKEN_EXPIRED.value

    def mark_revoked(self) -> None:
        self.status = SocialAccountStatus.REVOKED.value

    def update_tokens(
        self,
        access_token: str,
        refresh_token: Optional[str],
        expires_at: Optional[datetime],
    ) -> None:
        """Store freshly issued tokens and bring the account back to connected."""
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.token_expires_at = expires_at
        self.last_refreshed_at = datetime.now(UTC)
        self.status = SocialAccountStatus.CONNECTED.value

    # ── Metadata ──────────────────────────────────────────────────────────────

    def get_metadata(self, key: str, default: Any = None) -> Any:
        """Read a metadata value using dot notation (``"pages.0.id"`` style keys)."""
        node: Any = self.account_metadata or {}
        for part in key.split("."):
            if isinstance(node, dict) and part in node:
                node = node[part]
            elif isinstance(node, list) and part.isdigit() and int(part) < len(node):
                node = node[int(part)]
            else:
                return default
        return node

    def set_metadata(self, key: str, value: Any) -> None:
        """Write a metadata value using dot notation, creating nested dicts as needed."""
        # A fresh dict is assigned so the JSON column is flagged dirty
        metadata = copy.deepcopy(self.account_metadata or {})
        node = metadata
        parts = key.split(".")
        for part in parts[:-1]:
            if not isinstance(node.get(part), dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        self.account_metadata = metadata

    def merge_metadata(self, values: dict[str, Any]) -> None:
        self.account_metadata = {**(self.account_metadata or {}), **values}

    def __repr__(self) -> str:
        return f"<SocialAccount(platform={self.platform}, account={self.platform_account_id}, status={self.status})>"


class ContainerState(str, Enum):
    """Processing state of an Instagram media container."""

    PENDING = "pending"
    PROCESSING = "processing"
    FINISHED = "finished"
    ERROR = "error"


class ContainerMediaKind(str, Enum):
    """Kind of media a container publishes."""

    VIDEO = "video"
    STORY_VIDEO = "story_video"


class InstagramMediaContainer(Base, TimestampMixin):
    """
    Instagram media container awaiting server-side processing.

    Video and story-video uploads are processed asynchronously by Instagram;
    each poll moves the row through PENDING -> PROCESSING -> FINISHED | ERROR.
    Persisting the row lets the worker resume after a restart.
    """

    __tablename__ = "instagram_media_containers"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    social_account_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("social_accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    ig_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    container_id: Mapped[str] = mapped_column(String(255), nullable=False)
    media_kind: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ContainerMediaKind.VIDEO.value
    )
    caption: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Polling state
    state: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ContainerState.PENDING.value
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    last_status_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    next_poll_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Publish outcome
    published_media_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    permalink: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    published_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    social_account: Mapped["SocialAccount"] = relationship("SocialAccount", lazy="noload")

    __table_args__ = (
        Index("ix_instagram_containers_state_next_poll", "state", "next_poll_at"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.state in (ContainerState.FINISHED.value, ContainerState.ERROR.value)

    def __repr__(self) -> str:
        return f"<InstagramMediaContainer(container_id={self.container_id}, state={self.state})>"
