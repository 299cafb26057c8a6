# pg_repense/services/audit_service.py - Audit trail writes and queries
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select, func
from typing import Optional, Dict, Any, List
from uuid import UUID
import logging

from pg_repense.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    """
    Audit rows are written after the audited change has committed, in their
    own transaction. A failed audit write is logged and never undoes the
    change it describes.
    """

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        event_type: str,
        action: str,
        actor_id: Optional[UUID] = None,
        actor_type: str = "admin",
        target_entity: Optional[str] = None,
        target_id: Optional[UUID] = None,
        metadata: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        status: str = "success",
        error_message: Optional[str] = None,
    ) -> Optional[AuditLog]:
        entry = AuditLog(
            event_type=event_type,
            action=action,
            actor_id=actor_id,
            actor_type=actor_type,
            target_entity=target_entity,
            target_id=target_id,
            metadata_=metadata,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:255] or None,
            status=status,
            error_message=error_message,
        )
        try:
            self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to write audit log {event_type}: {e}")
            return None
        return entry

    def record_request(self, ctx: Dict[str, Any], request, event_type: str, action: str, **kwargs) -> Optional[AuditLog]:
        """Record an action taken by the authenticated caller of `request`"""
        return self.record(
            event_type,
            action,
            actor_id=ctx["user"].id,
            actor_type=ctx["role"],
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
            **kwargs,
        )

    def list_logs(
        self,
        event_type: Optional[str] = None,
        actor_id: Optional[UUID] = None,
        target_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Dict[str, Any]:
        stmt = select(AuditLog)
        count_stmt = select(func.count(AuditLog.id))
        filters = []
        if event_type:
            filters.append(AuditLog.event_type == event_type)
        if actor_id:
            filters.append(AuditLog.actor_id == actor_id)
        if target_id:
            filters.append(AuditLog.target_id == target_id)
        if filters:
            stmt = stmt.where(*filters)
            count_stmt = count_stmt.where(*filters)

        logs: List[AuditLog] = self.db.execute(
            stmt.order_by(AuditLog.criado_em.desc()).limit(limit).offset(offset)
        ).scalars().all()
        return {
            "logs": logs,
            "total": self.db.execute(count_stmt).scalar_one(),
            "limit": limit,
            "offset": offset,
        }
