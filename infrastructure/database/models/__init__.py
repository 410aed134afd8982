"""
SQLAlchemy database models.
"""

from .admin import AuditAction, AuditLog, AuditTargetType, Notification, NotificationType
from .base import Base, TimestampMixin
from .integration import IntegrationStatus, PlatformIntegration
from .social import (
    ContainerMediaKind,
    ContainerState,
    InstagramMediaContainer,
    SocialAccount,
    SocialAccountStatus,
)
from .user import Tenant, User, UserRole, Workspace

__all__ = [
    "Base",
    "TimestampMixin",
    "Tenant",
    "Workspace",
    "User",
    "UserRole",
    "SocialAccount",
    "SocialAccountStatus",
    "InstagramMediaContainer",
    "ContainerState",
    "ContainerMediaKind",
    "PlatformIntegration",
    "IntegrationStatus",
    "AuditLog",
    "AuditAction",
    "AuditTargetType",
    "Notification",
    "NotificationType",
]
