# pg_repense/api/deps/auth.py - Role-based authorization for admins and facilitators
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from uuid import UUID
from typing import Dict, Any, Optional

from pg_repense.core.db import get_db
from pg_repense.core.security import decode_token
from pg_repense.models.admin import Admin
from pg_repense.models.teacher import Teacher

security = HTTPBearer(auto_error=False)

ADMIN_ROLES = ("admin", "superadmin")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Decode the bearer token and load the account it names.
    Returns: {"user": Admin | Teacher, "claims": dict, "role": str}
    """
    if credentials is None:
        raise _unauthorized("Não autenticado")

    claims = decode_token(credentials.credentials)

    try:
        subject = UUID(claims.get("sub") or "")
    except ValueError:
        raise _unauthorized("Token inválido")

    role = claims.get("role")
    if role in ADMIN_ROLES:
        user = db.get(Admin, subject)
    elif role == "teacher":
        user = db.get(Teacher, subject)
    else:
        raise _unauthorized("Token inválido")

    if not user:
        raise _unauthorized("Usuário não encontrado")

    return {"user": user, "claims": claims, "role": role}


def require_admin(ctx = Depends(get_current_principal)):
    """Require admin or superadmin role"""
    if ctx["role"] not in ADMIN_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Acesso restrito a administradores"
        )
    return ctx


def require_superadmin(ctx = Depends(require_admin)):
    if not ctx["user"].is_superadmin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Acesso restrito a superadministradores"
        )
    return ctx


def require_teacher(ctx = Depends(get_current_principal)):
    """Require an active facilitator"""
    if ctx["role"] != "teacher":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Acesso restrito a facilitadores"
        )
    if not ctx["user"].eh_ativo:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Facilitador inativo"
        )
    return ctx
