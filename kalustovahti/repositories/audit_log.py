"""
Audit Log Repository
"""

from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from kalustovahti.models.audit_log import AuditLog
from kalustovahti.repositories.base import CRUDBase

logger = structlog.get_logger()


class AuditLogRepository(CRUDBase[AuditLog]):
    def record(
        self,
        db: AsyncSession,
        *,
        actor_id: UUID,
        action: str,
        table_name: str,
        record_id: str,
        description: Optional[str] = None,
        old_data: Optional[dict[str, Any]] = None,
        new_data: Optional[dict[str, Any]] = None,
    ) -> AuditLog:
        """Stage an audit row in the caller's transaction"""
        entry = AuditLog(
            user_id=actor_id,
            action=action,
            table_name=table_name,
            record_id=record_id,
            description=description,
            old_data=old_data,
            new_data=new_data,
        )
        db.add(entry)
        logger.info("Audit entry recorded", actor_id=str(actor_id), action=action, table=table_name, record_id=record_id)
        return entry


audit_log_repository = AuditLogRepository(AuditLog)
