# pg_repense/api/routers/admin_classes.py - Class administration
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Dict, Any, List, Optional
from uuid import UUID
import logging

from pg_repense.core.db import get_db
from pg_repense.api.deps.auth import require_admin
from pg_repense.models.enrollment import Enrollment
from pg_repense.models.student import Student
from pg_repense.schemas.class_schema import (
    ClassCreate,
    ClassUpdate,
    ClassOut,
    BatchArchiveIn,
    MoveStudentIn,
    update_changes,
)
from pg_repense.schemas.enrollment import EnrollmentOut
from pg_repense.schemas.notification import ConversationOpenIn
from pg_repense.services.class_service import ClassService
from pg_repense.services.enrollment_service import EnrollmentService
from pg_repense.services.session_service import SessionService
from pg_repense.services.conversation_service import ConversationService
from pg_repense.services.audit_service import AuditService

logger = logging.getLogger(__name__)
router = APIRouter()


def class_detail(service: ClassService, klass) -> Dict[str, Any]:
    body = ClassOut.model_validate(klass).model_dump()
    body["sessions_count"] = service.session_count(klass.id)
    return body


@router.get("/classes", response_model=List[ClassOut])
async def list_classes(
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db),
    eh_ativo: Optional[bool] = Query(None),
    teacher_id: Optional[UUID] = Query(None),
    grupo_repense: Optional[str] = Query(None),
    arquivada: Optional[bool] = Query(False),
    aguardando_inicio: bool = Query(False),
):
    """Archived classes are only listed with ?arquivada=true"""
    return ClassService(db).list_classes(
        eh_ativo=eh_ativo,
        teacher_id=teacher_id,
        grupo_repense=grupo_repense,
        arquivada=arquivada,
        aguardando_inicio=aguardando_inicio,
    )


@router.post("/classes", response_model=ClassOut, status_code=status.HTTP_201_CREATED)
async def create_class(
    payload: ClassCreate,
    request: Request,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    klass = ClassService(db).create(payload.model_dump())
    AuditService(db).record_request(
        ctx, request, "class.create", f"Created class {klass.grupo_repense} ({klass.cidade})",
        target_entity="class", target_id=klass.id,
    )
    return klass


@router.post("/classes/batch/archive")
async def batch_archive_classes(
    payload: BatchArchiveIn,
    request: Request,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    result = ClassService(db).batch_archive(payload.class_ids)
    AuditService(db).record_request(
        ctx, request, "class.batch_archive", f"Archived {result['count']} class(es)",
        target_entity="class", metadata={"archived": result["archived"], "skipped": result["skipped"]},
    )
    return result


@router.get("/classes/{class_id}")
async def get_class(
    class_id: UUID,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    service = ClassService(db)
    return class_detail(service, service.get(class_id))


@router.put("/classes/{class_id}")
async def update_class(
    class_id: UUID,
    payload: ClassUpdate,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    service = ClassService(db)
    klass = service.update(class_id, update_changes(payload))
    return class_detail(service, klass)


@router.delete("/classes/{class_id}")
async def delete_class(
    class_id: UUID,
    request: Request,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Classes are never removed; deleting archives them"""
    klass = ClassService(db).archive(class_id)
    AuditService(db).record_request(
        ctx, request, "class.archive", "Archived class", target_entity="class", target_id=klass.id,
    )
    return {"success": True, "id": klass.id, "arquivada": klass.arquivada}


@router.put("/classes/{class_id}/archive")
async def toggle_archive_class(
    class_id: UUID,
    request: Request,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    service = ClassService(db)
    klass = service.toggle_archive(class_id)
    AuditService(db).record_request(
        ctx, request, "class.archive" if klass.arquivada else "class.unarchive",
        "Archived class" if klass.arquivada else "Unarchived class",
        target_entity="class", target_id=klass.id,
    )
    return class_detail(service, klass)


@router.get("/classes/{class_id}/students")
async def list_class_students(
    class_id: UUID,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db),
    status_filter: Optional[str] = Query(None, alias="status"),
):
    """Enrollments of a class with their students, active ones by default"""
    ClassService(db).get(class_id)
    stmt = (
        select(Enrollment)
        .join(Student, Student.id == Enrollment.student_id)
        .where(Enrollment.class_id == class_id)
        .order_by(Student.nome)
    )
    stmt = stmt.where(Enrollment.status == (status_filter or "ativo"))

    return [
        {
            "enrollment": EnrollmentOut.model_validate(e).model_dump(),
            "student": {
                "id": e.student.id,
                "nome": e.student.nome,
                "telefone": e.student.telefone,
                "email": e.student.email,
                "genero": e.student.genero,
            },
        }
        for e in db.execute(stmt).scalars().all()
    ]


@router.get("/classes/{class_id}/sessions")
async def list_class_sessions(
    class_id: UUID,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return SessionService(db).class_sessions(class_id)


@router.post("/classes/{class_id}/move-student", response_model=EnrollmentOut)
async def move_student(
    class_id: UUID,
    payload: MoveStudentIn,
    request: Request,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Transfer the student's active enrollment in this class to `to_class_id`"""
    enrollment = EnrollmentService(db).transfer_enrolled(payload.student_id, class_id, payload.to_class_id)
    AuditService(db).record_request(
        ctx, request, "enrollment.transfer", "Moved student to another class",
        target_entity="student", target_id=payload.student_id,
        metadata={"from_class_id": str(class_id), "to_class_id": str(payload.to_class_id)},
    )
    return enrollment


@router.post("/classes/{class_id}/conversations", status_code=status.HTTP_201_CREATED)
async def open_class_conversation(
    class_id: UUID,
    payload: ConversationOpenIn,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    service = ConversationService(db)
    conversation = service.open_for_admin(class_id, payload.student_id)
    return service.summary(conversation)
