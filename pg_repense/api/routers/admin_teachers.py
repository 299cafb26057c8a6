# pg_repense/api/routers/admin_teachers.py - Facilitator accounts
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Dict, Any, List, Optional
from uuid import UUID
import logging

from pg_repense.core.db import get_db
from pg_repense.core.security import hash_password, password_manager
from pg_repense.api.deps.auth import require_admin
from pg_repense.models.teacher import Teacher
from pg_repense.models.class_model import Class
from pg_repense.schemas.people import TeacherCreate, TeacherUpdate, TeacherOut, TeacherCreated
from pg_repense.schemas.class_schema import ClassOut
from pg_repense.services.class_service import ClassService
from pg_repense.services.audit_service import AuditService

logger = logging.getLogger(__name__)
router = APIRouter()


def _email_taken(db: Session, email: str, exclude_id: Optional[UUID] = None) -> bool:
    stmt = select(Teacher.id).where(Teacher.email == email)
    if exclude_id:
        stmt = stmt.where(Teacher.id != exclude_id)
    return db.execute(stmt).first() is not None


@router.get("/teachers", response_model=List[TeacherOut])
async def list_teachers(
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db),
    eh_ativo: Optional[bool] = Query(None),
):
    stmt = select(Teacher).order_by(Teacher.nome)
    if eh_ativo is not None:
        stmt = stmt.where(Teacher.eh_ativo.is_(eh_ativo))
    return db.execute(stmt).scalars().all()


@router.post("/teachers", response_model=TeacherCreated, status_code=status.HTTP_201_CREATED)
async def create_teacher(
    payload: TeacherCreate,
    request: Request,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Create a facilitator; the password is generated when not given and returned once"""
    if _email_taken(db, payload.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email já cadastrado")

    password = payload.password or password_manager.generate_password()
    if payload.password:
        strength = password_manager.validate_password_strength(password)
        if not strength["valid"]:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="; ".join(strength["feedback"]))

    teacher = Teacher(
        nome=payload.nome,
        email=payload.email,
        telefone=payload.telefone,
        password_hash=hash_password(password),
        eh_ativo=True,
    )
    try:
        db.add(teacher)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating facilitator: {e}")
        raise

    logger.info(f"Facilitator created: {teacher.email}")
    AuditService(db).record_request(
        ctx, request, "teacher.create", f"Created facilitator {teacher.email}",
        target_entity="teacher", target_id=teacher.id,
    )
    return TeacherCreated(**TeacherOut.model_validate(teacher).model_dump(), password=password)


@router.post("/teachers/sync-status")
async def sync_teacher_status(
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Recompute every facilitator's active flag from their classes"""
    try:
        result = ClassService(db).sync_teachers_active_status()
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"success": True, **result}


def _get_teacher(db: Session, teacher_id: UUID) -> Teacher:
    teacher = db.get(Teacher, teacher_id)
    if not teacher:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Facilitador não encontrado")
    return teacher


@router.get("/teachers/{teacher_id}")
async def get_teacher(
    teacher_id: UUID,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    teacher = _get_teacher(db, teacher_id)
    classes = db.execute(
        select(Class).where(Class.teacher_id == teacher.id).order_by(Class.criado_em.desc())
    ).scalars().all()
    return {
        **TeacherOut.model_validate(teacher).model_dump(),
        "classes": [ClassOut.model_validate(c) for c in classes],
    }


@router.put("/teachers/{teacher_id}", response_model=TeacherOut)
async def update_teacher(
    teacher_id: UUID,
    payload: TeacherUpdate,
    ctx: Dict[str, Any] = Depends(require_admin),
    db: Session = Depends(get_db)
):
    teacher = _get_teacher(db, teacher_id)
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}

    if "email" in changes and _email_taken(db, changes["email"], exclude_id=teacher.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email já cadastrado")

    for field, value in changes.items():
        setattr(teacher, field, value)

    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating facilitator {teacher_id}: {e}")
        raise

    logger.info(f"Facilitator updated: {teacher.id} fields={sorted(changes)}")
    return teacher
