# pg_repense/api/routers/public.py - Registration page endpoints (no authentication)
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID
import logging

from pg_repense.core.db import get_db
from pg_repense.schemas.registration import RegisterIn, ChangeCourseIn, PriorityListIn, ValidateEnrollmentIn
from pg_repense.schemas.class_schema import PublicClassOut
from pg_repense.services.enrollment_service import EnrollmentService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/register")
async def register(payload: RegisterIn, db: Session = Depends(get_db)):
    """
    Public enrollment.

    Returns 201 with the new enrollment, or 200 with a
    `requires_course_change` proposal when the registrant already holds an
    active enrollment.
    """
    data = payload.model_dump(exclude={"class_id"})
    result = EnrollmentService(db).register(data, payload.class_id)

    if result.get("requires_course_change"):
        return JSONResponse(status_code=status.HTTP_200_OK, content=jsonable_encoder(result))
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=jsonable_encoder(result))


@router.post("/register/change-course")
async def change_course(payload: ChangeCourseIn, db: Session = Depends(get_db)):
    """Confirm a course change proposed by /register"""
    return EnrollmentService(db).change_course(
        payload.cpf, payload.student_id, payload.old_enrollment_id, payload.new_class_id
    )


@router.post("/enrollment/validate")
async def validate_enrollment(payload: ValidateEnrollmentIn, db: Session = Depends(get_db)):
    return EnrollmentService(db).validate(payload.student_id, payload.class_id)


@router.get("/courses")
async def list_courses(
    student_id: Optional[UUID] = Query(None),
    genero: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """Open classes grouped by grupo_repense, then city"""
    grouped = EnrollmentService(db).available_classes(student_id=student_id, genero=genero)
    return {
        grupo: {
            cidade: [PublicClassOut.model_validate(klass) for klass in classes]
            for cidade, classes in cities.items()
        }
        for grupo, cities in grouped.items()
    }


@router.post("/students/priority-list", status_code=status.HTTP_201_CREATED)
async def add_to_priority_list(payload: PriorityListIn, db: Session = Depends(get_db)):
    data = payload.model_dump(exclude={"class_id"})
    student = EnrollmentService(db).add_to_priority_list(data, payload.class_id)
    return {
        "success": True,
        "student_id": student.id,
        "priority_list_course_id": student.priority_list_course_id,
    }
