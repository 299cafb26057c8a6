# pg_repense/api/routers/auth.py - Login endpoints for admins and facilitators
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import Dict, Any
import logging

from pg_repense.core.db import get_db
from pg_repense.api.deps.auth import require_admin, require_teacher
from pg_repense.schemas.auth import LoginIn, TokenOut, ChangePasswordIn
from pg_repense.schemas.people import AdminOut, TeacherOut
from pg_repense.services.auth_service import AuthService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/admin/login", response_model=TokenOut)
async def admin_login(payload: LoginIn, db: Session = Depends(get_db)):
    service = AuthService(db)
    admin = service.authenticate_admin(payload.email, payload.password)
    if not admin:
        logger.warning(f"Failed admin login for {payload.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email ou senha inválidos"
        )
    return service.token_for_admin(admin)


@router.get("/admin/me", response_model=AdminOut)
async def admin_me(ctx: Dict[str, Any] = Depends(require_admin)):
    return ctx["user"]


@router.post("/teacher/login", response_model=TokenOut)
async def teacher_login(payload: LoginIn, db: Session = Depends(get_db)):
    service = AuthService(db)
    teacher = service.authenticate_teacher(payload.email, payload.password)
    return service.token_for_teacher(teacher)


@router.get("/teacher/me", response_model=TeacherOut)
async def teacher_me(ctx: Dict[str, Any] = Depends(require_teacher)):
    return ctx["user"]


@router.post("/teacher/change-password")
async def teacher_change_password(
    payload: ChangePasswordIn,
    ctx: Dict[str, Any] = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    AuthService(db).change_teacher_password(ctx["user"], payload.current_password, payload.new_password)
    return {"success": True, "message": "Senha alterada com sucesso"}
