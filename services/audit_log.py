"""
Audit log writer.
"""

import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.models.admin import AuditAction, AuditLog, AuditTargetType

logger = logging.getLogger(__name__)


class AuditLogService:
    """Records who did what to which social platform or account."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        action: AuditAction,
        target_type: AuditTargetType,
        target_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        commit: bool = True,
    ) -> AuditLog:
        """
        Create an audit log entry.

        Args:
            action: Action performed
            target_type: Kind of object acted on
            target_id: Identifier of that object
            actor_id: Admin or user who acted; None for system jobs
            tenant_id: Tenant the action concerns, if any
            details: Free-form context
            commit: Commit immediately; pass False to join the caller's transaction
        """
        entry = AuditLog(
            actor_id=actor_id,
            tenant_id=tenant_id,
            action=action.value,
            target_type=target_type.value,
            target_id=target_id,
            details=details or None,
        )
        self.db.add(entry)
        if commit:
            await self.db.commit()
        else:
            await self.db.flush()

        logger.info(
            "Audit: %s on %s %s",
            action.value,
            target_type.value,
            target_id or "-",
            extra={"user_id": actor_id},
        )
        return entry
