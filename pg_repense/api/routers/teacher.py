# pg_repense/api/routers/teacher.py - Facilitator dashboard: classes, sessions, check-in, messages
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session
from sqlalchemy import select, func
from typing import Dict, Any, List
from uuid import UUID
import logging

from pg_repense.core.db import get_db
from pg_repense.api.deps.auth import require_teacher
from pg_repense.models.class_model import Class
from pg_repense.models.session import Attendance
from pg_repense.schemas.class_schema import ClassOut
from pg_repense.schemas.session import SessionOpenIn, SessionFinalizeIn, AttendanceIn, FinalReportIn
from pg_repense.schemas.notification import MarkReadIn, ConversationOpenIn, MessageIn
from pg_repense.services.session_service import SessionService, session_summary
from pg_repense.services.notification_service import NotificationService
from pg_repense.services.conversation_service import ConversationService, message_out
from pg_repense.core.errors import ConversationError

logger = logging.getLogger(__name__)
router = APIRouter()


# ----------------------------------------------------------------------
# Classes
# ----------------------------------------------------------------------

@router.get("/classes", response_model=List[ClassOut])
async def my_classes(
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    return db.execute(
        select(Class)
        .where(Class.teacher_id == ctx["user"].id, Class.arquivada.is_(False))
        .order_by(Class.data_inicio.desc())
    ).scalars().all()


@router.get("/classes/{class_id}/students")
async def class_students(
    class_id: UUID,
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    """Active students with their attendance counts in this class"""
    service = SessionService(db)
    service.get_owned_class(ctx["user"], class_id)
    enrollments = service.active_enrollments(class_id)

    counts = {
        (enrollment_id, presente): total
        for enrollment_id, presente, total in db.execute(
            select(Attendance.enrollment_id, Attendance.presente, func.count(Attendance.id))
            .where(Attendance.enrollment_id.in_([e.id for e in enrollments]))
            .group_by(Attendance.enrollment_id, Attendance.presente)
        ).all()
    }

    return [
        {
            "student_id": e.student_id,
            "enrollment_id": e.id,
            "nome": e.student.nome,
            "telefone": e.student.telefone,
            "email": e.student.email,
            "presencas": counts.get((e.id, True), 0),
            "faltas": counts.get((e.id, False), 0),
        }
        for e in enrollments
    ]


@router.get("/classes/{class_id}/sessions")
async def class_sessions(
    class_id: UUID,
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    return SessionService(db).class_sessions(class_id, teacher=ctx["user"])


@router.get("/classes/{class_id}/final-report")
async def get_final_report(
    class_id: UUID,
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    return SessionService(db).get_final_report(ctx["user"], class_id)


@router.put("/classes/{class_id}/final-report")
async def submit_final_report(
    class_id: UUID,
    payload: FinalReportIn,
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    service = SessionService(db)
    service.submit_final_report(ctx["user"], class_id, payload.final_report)
    return service.get_final_report(ctx["user"], class_id)


@router.get("/at-risk-students")
async def at_risk_students(
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    return SessionService(db).at_risk_students(ctx["user"])


# ----------------------------------------------------------------------
# Sessions
# ----------------------------------------------------------------------

@router.post("/sessions")
async def open_session(
    payload: SessionOpenIn,
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    """Start a session, or return the class's open one (200, reused)"""
    service = SessionService(db)
    session, reused = service.open_session(ctx["user"], payload.class_id)
    body = service.get_session(session.id, teacher=ctx["user"])
    body["reused"] = reused
    return JSONResponse(
        status_code=status.HTTP_200_OK if reused else status.HTTP_201_CREATED,
        content=jsonable_encoder(body),
    )


@router.get("/sessions/active")
async def active_session(
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    active = SessionService(db).get_active_session(ctx["user"])
    return active or {"session": None}


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: UUID,
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    return SessionService(db).get_session(session_id, teacher=ctx["user"])


@router.put("/sessions/{session_id}")
async def finalize_session(
    session_id: UUID,
    payload: SessionFinalizeIn,
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    session = SessionService(db).finalize(ctx["user"], session_id, payload.relatorio)
    return {"success": True, "session": session_summary(session)}


@router.get("/sessions/{session_id}/attendance")
async def get_attendance(
    session_id: UUID,
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    return SessionService(db).get_attendance(ctx["user"], session_id)


@router.post("/sessions/{session_id}/attendance")
async def save_attendance(
    session_id: UUID,
    payload: AttendanceIn,
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    records = [record.model_dump() for record in payload.records]
    return SessionService(db).save_attendance(ctx["user"], session_id, records)


# ----------------------------------------------------------------------
# Notifications
# ----------------------------------------------------------------------

@router.get("/notifications")
async def list_notifications(
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    notifications = NotificationService(db).list_teacher(ctx["user"].id)
    return {"notifications": notifications, "count": len(notifications)}


@router.get("/notifications/count")
async def count_notifications(
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    return NotificationService(db).count_teacher(ctx["user"].id)


@router.post("/notifications/mark-read")
async def mark_notifications_read(
    payload: MarkReadIn,
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    return NotificationService(db).mark_teacher_read(
        ctx["user"].id,
        notification_ids=payload.notification_ids,
        notification_type=payload.type,
        reference_id=payload.reference_id,
    )


# ----------------------------------------------------------------------
# Conversations
# ----------------------------------------------------------------------

@router.get("/conversations")
async def list_conversations(
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    return ConversationService(db).list_for_teacher(ctx["user"])


@router.post("/conversations")
async def open_conversation(
    payload: ConversationOpenIn,
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    """Find or create the thread for one of the facilitator's classes"""
    if not payload.class_id:
        raise ConversationError("Informe a turma", "CLASS_REQUIRED", 400)
    service = ConversationService(db)
    conversation = service.open_for_teacher(ctx["user"], payload.class_id, payload.student_id)
    return service.summary(conversation)


@router.get("/conversations/{conversation_id}/messages")
async def list_messages(
    conversation_id: UUID,
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    return ConversationService(db).teacher_messages(ctx["user"], conversation_id)


@router.post("/conversations/{conversation_id}/messages", status_code=status.HTTP_201_CREATED)
async def post_message(
    conversation_id: UUID,
    payload: MessageIn,
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    message = ConversationService(db).post_as_teacher(ctx["user"], conversation_id, payload.body)
    return message_out(message)
