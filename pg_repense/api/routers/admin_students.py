# pg_repense/api/routers/admin_students.py - Students and enrollment lifecycle for admins
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from sqlalchemy import select, func, or_
from typing import Dict, Any, Optional
from uuid import UUID
import logging

from pg_repense.core.db import get_db
from pg_repense.api.deps.auth import require_admin
from pg_repense.models.student import Student
from pg_repense.models.enrollment import Enrollment
from pg_repense.models.session import Attendance, ClassSession
from pg_repense.schemas.enrollment import EnrollmentCreate, EnrollmentOut, TransferPriorityIn
from pg_repense.schemas.people import StudentOut, StudentDetail, StudentUpdate
from pg_repense.services.enrollment_service import EnrollmentService, course_summary
from pg_repense.services.audit_service import AuditService
from pg_repense.utils.documents import only_digits

logger = logging.getLogger(__name__)
router = APIRouter()


# ----------------------------------------------------------------------
# Enrollments
# ----------------------------------------------------------------------

@router.post("/enrollments", response_model=EnrollmentOut, status_code=status.HTTP_201_CREATED)
async def create_enrollment(
    payload: EnrollmentCreate,
    request: Request,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    enrollment = EnrollmentService(db).create(
        payload.student_id, payload.class_id, confirm_reenrollment=payload.confirm_reenrollment
    )
    AuditService(db).record_request(
        ctx, request, "enrollment.create", "Enrolled student",
        target_entity="enrollment", target_id=enrollment.id,
        metadata={"student_id": str(payload.student_id), "class_id": str(payload.class_id)},
    )
    return enrollment


@router.post("/enrollments/{enrollment_id}/complete", response_model=EnrollmentOut)
async def complete_enrollment(
    enrollment_id: UUID,
    request: Request,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    enrollment = EnrollmentService(db).complete(enrollment_id)
    AuditService(db).record_request(
        ctx, request, "enrollment.complete", "Completed enrollment",
        target_entity="enrollment", target_id=enrollment.id,
    )
    return enrollment


@router.post("/enrollments/{enrollment_id}/cancel", response_model=EnrollmentOut)
async def cancel_enrollment(
    enrollment_id: UUID,
    request: Request,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    enrollment = EnrollmentService(db).cancel(enrollment_id)
    AuditService(db).record_request(
        ctx, request, "enrollment.cancel", "Cancelled enrollment",
        target_entity="enrollment", target_id=enrollment.id,
    )
    return enrollment


# ----------------------------------------------------------------------
# Students
# ----------------------------------------------------------------------

@router.get("/students")
async def list_students(
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db),
    search: Optional[str] = Query(None),
    priority_list: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
):
    """Students with search by name, CPF or phone"""
    filters = []
    if search:
        term = f"%{search.strip().lower()}%"
        digits = only_digits(search)
        conditions = [func.lower(Student.nome).like(term)]
        if digits:
            conditions.append(Student.cpf.like(f"%{digits}%"))
            conditions.append(Student.telefone.like(f"%{digits}%"))
        filters.append(or_(*conditions))
    if priority_list is not None:
        filters.append(Student.priority_list.is_(priority_list))

    total = db.execute(select(func.count(Student.id)).where(*filters)).scalar_one()
    students = db.execute(
        select(Student)
        .where(*filters)
        .order_by(Student.nome)
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()

    return {
        "students": [StudentOut.model_validate(s) for s in students],
        "total": total,
        "page": page,
        "limit": limit,
    }


def _get_student(db: Session, student_id: UUID) -> Student:
    student = db.get(Student, student_id)
    if not student:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Participante não encontrado")
    return student


def _student_detail(db: Session, student: Student) -> StudentDetail:
    enrollments = db.execute(
        select(Enrollment).where(Enrollment.student_id == student.id).order_by(Enrollment.criado_em.desc())
    ).scalars().all()

    observations = db.execute(
        select(Attendance, ClassSession)
        .join(ClassSession, ClassSession.id == Attendance.session_id)
        .where(Attendance.student_id == student.id, Attendance.observacao.is_not(None))
        .order_by(ClassSession.data_sessao.desc())
    ).all()

    return StudentDetail(
        **StudentOut.model_validate(student).model_dump(),
        enrollments=[
            {**EnrollmentOut.model_validate(e).model_dump(), "class": course_summary(e.class_)}
            for e in enrollments
        ],
        observations=[
            {
                "id": attendance.id,
                "session_id": session.id,
                "numero_sessao": session.numero_sessao,
                "data_sessao": session.data_sessao,
                "class_id": session.class_id,
                "observacao": attendance.observacao,
                "presente": attendance.presente,
                "lida_por_admin": attendance.lida_por_admin,
                "lida_em": attendance.lida_em,
            }
            for attendance, session in observations
        ],
    )


@router.get("/students/{student_id}", response_model=StudentDetail)
async def get_student(
    student_id: UUID,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return _student_detail(db, _get_student(db, student_id))


@router.put("/students/{student_id}", response_model=StudentDetail)
async def update_student(
    student_id: UUID,
    payload: StudentUpdate,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    student = _get_student(db, student_id)
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}

    if "telefone" in changes:
        owner = db.execute(
            select(Student.id).where(Student.telefone == changes["telefone"], Student.id != student.id)
        ).first()
        if owner:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Telefone já cadastrado")
    if "email" in changes:
        changes["email"] = changes["email"].lower()
        owner = db.execute(
            select(Student.id).where(Student.email == changes["email"], Student.id != student.id)
        ).first()
        if owner:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email já cadastrado")

    for field, value in changes.items():
        setattr(student, field, value)

    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating student {student_id}: {e}")
        raise

    logger.info(f"Student updated: {student.id} fields={sorted(changes)}")
    return _student_detail(db, student)


@router.post("/students/{student_id}/transfer-priority", response_model=EnrollmentOut)
async def transfer_from_priority_list(
    student_id: UUID,
    payload: TransferPriorityIn,
    request: Request,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    enrollment = EnrollmentService(db).transfer_from_priority_list(student_id, payload.to_class_id)
    AuditService(db).record_request(
        ctx, request, "enrollment.transfer_priority", "Placed student from priority list",
        target_entity="student", target_id=student_id,
        metadata={"to_class_id": str(payload.to_class_id)},
    )
    return enrollment
