"""
Audit log and notification models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Index, String, Text, JSON, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class AuditAction(str, Enum):
    """Audit log action types."""

    FORCE_REAUTHORIZATION = "force_reauthorization"
    SOCIAL_ACCOUNT_CONNECTED = "social_account_connected"
    SOCIAL_ACCOUNT_DISCONNECTED = "social_account_disconnected"


class AuditTargetType(str, Enum):
    """Audit log target types."""

    SOCIAL_PLATFORM = "social_platform"
    SOCIAL_ACCOUNT = "social_account"


class AuditLog(Base, TimestampMixin):
    """Audit log of administrative and account lifecycle actions."""

    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    # Who performed the action (admin or user); null for system jobs
    actor_id: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False), nullable=True, index=True)
    tenant_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("tenants.id", ondelete="SET NULL"),
        nullable=True,
    )

    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    target_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    """
    Structure (force re-authorization):
    {
        "platforms": ["facebook", "instagram"],
        "reason": "scope_upgrade",
        "accounts_revoked": 12,
        "tenants_affected": 3
    }
    """

    __table_args__ = (
        Index("ix_audit_logs_target", "target_type", "target_id"),
        Index("ix_audit_logs_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action={self.action}, actor_id={self.actor_id})>"


class NotificationType(str, Enum):
    """In-app notification types raised by the social subsystem."""

    PLATFORM_REAUTH_REQUIRED = "platform_reauth_required"
    SOCIAL_ACCOUNT_RECONNECT_REQUIRED = "social_account_reconnect_required"


class Notification(Base, TimestampMixin):
    """In-app notification for a user, or a tenant-wide one when user_id is null."""

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    tenant_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    user_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    type: Mapped[str] = mapped_column(String(100), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_notifications_user_type_created", "user_id", "type", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, type={self.type})>"
