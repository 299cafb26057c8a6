# pg_repense/api/routers/admin_activity.py - Notifications, conversations, sessions and stats for admins
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from sqlalchemy import select, func
from typing import Dict, Any, Optional
from uuid import UUID
import logging

from pg_repense.core.db import get_db
from pg_repense.api.deps.auth import require_admin, require_superadmin
from pg_repense.models.class_model import Class
from pg_repense.models.student import Student
from pg_repense.models.teacher import Teacher
from pg_repense.models.enrollment import Enrollment
from pg_repense.schemas.notification import MarkReadIn, MarkObservationsReadIn, MessageIn
from pg_repense.schemas.people import AuditLogOut
from pg_repense.services.notification_service import NotificationService
from pg_repense.services.conversation_service import ConversationService, message_out
from pg_repense.services.session_service import SessionService
from pg_repense.services.audit_service import AuditService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: UUID,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return SessionService(db).get_session(session_id)


# ----------------------------------------------------------------------
# Notifications
# ----------------------------------------------------------------------

@router.get("/notifications")
async def list_notifications(
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db),
    type: Optional[str] = Query(None),
):
    notifications = NotificationService(db).list_admin(ctx["user"].id, notification_type=type)
    return {"notifications": notifications, "count": len(notifications)}


@router.get("/notifications/count")
async def count_notifications(
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return NotificationService(db).count_admin(ctx["user"].id)


@router.post("/notifications/mark-read")
async def mark_notifications_read(
    payload: MarkReadIn,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return NotificationService(db).mark_admin_read(
        ctx["user"].id,
        notification_ids=payload.notification_ids,
        notification_type=payload.type,
        reference_id=payload.reference_id,
    )


@router.post("/observations/mark-read")
async def mark_observations_read(
    payload: MarkObservationsReadIn,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    count = NotificationService(db).mark_observations_read(payload.attendance_ids)
    return {"success": True, "marked_count": count}


# ----------------------------------------------------------------------
# Conversations
# ----------------------------------------------------------------------

@router.get("/conversations")
async def list_conversations(
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db),
    class_id: Optional[UUID] = Query(None),
):
    return ConversationService(db).list_for_admin(class_id=class_id)


@router.get("/conversations/{conversation_id}/messages")
async def list_messages(
    conversation_id: UUID,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return ConversationService(db).admin_messages(conversation_id)


@router.post("/conversations/{conversation_id}/messages", status_code=status.HTTP_201_CREATED)
async def post_message(
    conversation_id: UUID,
    payload: MessageIn,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    message = ConversationService(db).post_as_admin(ctx["user"], conversation_id, payload.body)
    return message_out(message)


# ----------------------------------------------------------------------
# Dashboard
# ----------------------------------------------------------------------

@router.get("/stats")
async def get_stats(
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Counters for the admin dashboard"""
    def count(stmt):
        return db.execute(stmt).scalar_one()

    open_classes = (Class.eh_ativo.is_(True), Class.arquivada.is_(False))
    enrollments_by_status = dict(
        db.execute(select(Enrollment.status, func.count(Enrollment.id)).group_by(Enrollment.status)).all()
    )

    return {
        "classes": {
            "active": count(select(func.count(Class.id)).where(*open_classes)),
            "archived": count(select(func.count(Class.id)).where(Class.arquivada.is_(True))),
            "capacity": count(select(func.coalesce(func.sum(Class.capacidade), 0)).where(*open_classes)),
            "enrolled": count(select(func.coalesce(func.sum(Class.numero_inscritos), 0)).where(*open_classes)),
        },
        "students": {
            "total": count(select(func.count(Student.id))),
            "priority_list": count(select(func.count(Student.id)).where(Student.priority_list.is_(True))),
        },
        "teachers": {
            "total": count(select(func.count(Teacher.id))),
            "active": count(select(func.count(Teacher.id)).where(Teacher.eh_ativo.is_(True))),
        },
        "enrollments": {
            "ativo": enrollments_by_status.get("ativo", 0),
            "concluido": enrollments_by_status.get("concluido", 0),
            "cancelado": enrollments_by_status.get("cancelado", 0),
            "transferido": enrollments_by_status.get("transferido", 0),
        },
    }


# ----------------------------------------------------------------------
# Audit trail
# ----------------------------------------------------------------------

superadmin_router = APIRouter()


@superadmin_router.get("/audit-logs")
async def list_audit_logs(
    ctx: Dict[str, Any] = Depends(require_superadmin),
    db: Session = Depends(get_db),
    event_type: Optional[str] = Query(None),
    actor_id: Optional[UUID] = Query(None),
    target_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    result = AuditService(db).list_logs(
        event_type=event_type, actor_id=actor_id, target_id=target_id, limit=limit, offset=offset
    )
    result["logs"] = [AuditLogOut.model_validate(log) for log in result["logs"]]
    return result
