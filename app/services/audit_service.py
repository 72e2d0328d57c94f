"""Audit log service"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditLog

logger = logging.getLogger(__name__)


@dataclass
class AuditContext:
    """Who triggered an operation and from where"""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditService:
    """Writes audit rows inside the caller's transaction"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        user_id: Optional[int],
        action: str,
        resource_type: str,
        resource_id: Any,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[AuditContext] = None,
    ) -> AuditLog:
        """Add an audit entry, committed together with the change it describes"""
        context = context or AuditContext()
        entry = AuditLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id),
            details=json.dumps(details, default=str) if details is not None else None,
            ip_address=context.ip_address,
            user_agent=(context.user_agent or "")[:512] or None,
        )
        self.db.add(entry)
        await self.db.flush()
        logger.debug(f"Audit: user={user_id} {action} {resource_type}:{resource_id}")
        return entry
